# Relationship Resolver
#
# http://jsonapi.org/format/#fetching-includes
#
# Inclusion of Related Resources
# In order to request resources related to other resources,
# a dot-separated path for each relationship name can be specified:
#     include=comments.author,post
#
# All related instances are stored in an IncludedSet so every resource is
# serialized only once, no matter how many include paths reach it.
# The set lives for the duration of one document build.
#
# pylint: disable=too-many-arguments
from collections import OrderedDict
from enum import Enum
from http import HTTPStatus
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
import resdoc
from .config import Config, get_config
from .errors import JsonapiError
from .request import QueryDescriptor
from .resource import Registry, RelationshipDefinition, ResourceType


class ResolutionState(Enum):
    PENDING = "pending"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    FAILED = "failed"


def relationship_not_found(name: str, config: Config) -> JsonapiError:
    """
    :return: the 404 error for an undefined relationship `name`
    """
    resdoc.log.warning(f"Invalid relationship '{name}'")
    return JsonapiError(controller="relationships", action="lookup", code="not_found", t={"name": name}, config=config).with_header(
        status=HTTPStatus.NOT_FOUND
    )


def lookup_definition(resource_type: ResourceType, name: str, config: Config) -> RelationshipDefinition:
    definition = resource_type.relationships.get(name)
    if definition is None:
        raise relationship_not_found(name, config)
    return definition


class IncludedEntry:
    """
    :param paths: the include paths requested for the resource, relative to the resource
    :param fields: extra attribute names requested for the resource
    """

    def __init__(self, resource: Any, resource_type: ResourceType, primary: bool = False) -> None:
        self.resource = resource
        self.resource_type = resource_type
        self.primary = primary
        self.paths: List[str] = []
        self.fields: Optional[Set[str]] = None

    @property
    def key(self) -> Tuple[str, str]:
        return self.resource_type.name, self.resource_type.get_id(self.resource)

    @property
    def included_relationships(self) -> Set[str]:
        """
        :return: the names of the relationships that were requested for inclusion
        """
        return {path.split(".")[0] for path in self.paths}


class IncludedSet:
    """
    Resources keyed by (type, id), in the order they were reached
    """

    def __init__(self) -> None:
        self._entries: "OrderedDict[Tuple[str, str], IncludedEntry]" = OrderedDict()

    def entry(self, resource: Any, resource_type: ResourceType) -> Optional[IncludedEntry]:
        return self._entries.get((resource_type.name, resource_type.get_id(resource)))

    def add_primary(self, resource: Any, resource_type: ResourceType, paths: Iterable[str] = ()) -> IncludedEntry:
        """
        Primary data is tracked so it's not repeated in the included list
        """
        key = (resource_type.name, resource_type.get_id(resource))
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = IncludedEntry(resource, resource_type, primary=True)
        entry.primary = True
        for path in paths:
            if path not in entry.paths:
                entry.paths.append(path)
        return entry

    def add(self, resource: Any, resource_type: ResourceType, path: Optional[str] = None, fields: Optional[Iterable[str]] = None) -> bool:
        """
        :param path: remaining include path to resolve for `resource`
        :param fields: attribute names requested on this path, added to the sparse fieldset of the resource type
        :return: True if `path` still has to be resolved for `resource`
        """
        key = (resource_type.name, resource_type.get_id(resource))
        entry = self._entries.get(key)
        is_new = entry is None
        if is_new:
            entry = self._entries[key] = IncludedEntry(resource, resource_type)
        if fields is not None:
            entry.fields = set(fields) | (entry.fields or set())
        if not path:
            return is_new
        if path in entry.paths:
            resdoc.log.debug(f"{key} already resolved for '{path}'")
            return False
        entry.paths.append(path)
        return True

    def included(self) -> List[IncludedEntry]:
        """
        :return: the entries that aren't primary data
        """
        return [entry for entry in self._entries.values() if not entry.primary]

    def __contains__(self, key: Tuple[str, str]) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class RelationshipResolver:
    """
    Resolves the relationships of the resources in one document:
    - the linkage (type + id) of every relationship
    - the resources to include, following the include paths
    - the json:api resource objects
    """

    def __init__(self, registry: Registry, descriptor: Optional[QueryDescriptor] = None, config: Optional[Config] = None) -> None:
        self.registry = registry
        self.descriptor = descriptor if descriptor is not None else QueryDescriptor()
        self.config = config if config is not None else get_config()
        self.included = IncludedSet()
        self.states: Dict[Tuple[str, str, str], ResolutionState] = {}
        self._related_cache: Dict[Tuple[str, str, str], Any] = {}

    def related(self, resource: Any, resource_type: ResourceType, definition: RelationshipDefinition) -> Any:
        """
        :return: the related resource (or None) for to-one relationships, a list of the (scoped) members for to-many relationships
        """
        cache_key = (resource_type.name, resource_type.get_id(resource), definition.name)
        if cache_key in self._related_cache:
            return self._related_cache[cache_key]
        result = definition.get(resource)
        if definition.is_to_many:
            result = resource_type.scope(definition.name, result, resource)
            result = [] if result is None else list(result)
        self._related_cache[cache_key] = result
        return result

    def linkage(self, related: Any) -> Any:
        """
        :return: resource identifier object(s) for `related`
        """
        if related is None:
            return None
        if isinstance(related, list):
            return [self.registry.identifier(member) for member in related]
        return self.registry.identifier(related)

    def resolve(
        self,
        resource: Any,
        path: str,
        depth_remaining: Optional[int] = None,
        fields: Optional[Iterable[str]] = None,
        included: Optional[IncludedSet] = None,
    ) -> Any:
        """
        Resolve the include `path` starting from `resource`

        :param resource: the resource owning the first relationship in `path`
        :param path: dotted relationship path, eg. "post.user"
        :param depth_remaining: how many path segments may still be included, defaults to the length of the path
        :param fields: attribute names requested for the resources included on this path,
            these widen the fields[type] sparse fieldset, when None only the fields[type] fieldset applies
        :param included: IncludedSet, defaults to the set of this resolver
        :return: the linkage of the first relationship in `path`
        """
        included = self.included if included is None else included
        if depth_remaining is None:
            depth_remaining = path.count(".") + 1
        rel_name, _, remaining_path = path.partition(".")
        resource_type = self.registry.type_of(resource)
        state_key = (resource_type.name, resource_type.get_id(resource), path)
        self.states[state_key] = ResolutionState.PENDING

        definition = resource_type.relationships.get(rel_name)
        if definition is None:
            self.states[state_key] = ResolutionState.FAILED
            raise relationship_not_found(rel_name, self.config)

        self.states[state_key] = ResolutionState.RESOLVING
        try:
            related = self.related(resource, resource_type, definition)
            if depth_remaining > 0:
                members = related if definition.is_to_many else [related] if related is not None else []
                for member in members:
                    member_type = self.registry.type_of(member)
                    if included.add(member, member_type, remaining_path, fields) and remaining_path:
                        self.resolve(member, remaining_path, depth_remaining - 1, fields, included)
        except Exception:
            self.states[state_key] = ResolutionState.FAILED
            raise

        self.states[state_key] = ResolutionState.RESOLVED
        return self.linkage(related)

    def resolve_all(self, resources: Iterable[Any], paths: Iterable[str]) -> None:
        """
        Resolve every include path for every primary resource
        """
        resources = list(resources)
        paths = list(paths)
        for resource in resources:
            self.included.add_primary(resource, self.registry.type_of(resource), paths)
        for resource in resources:
            for path in paths:
                # the query only has per-type fieldsets, these are applied in fields_for
                self.resolve(resource, path)

    def fields_for(self, resource_type: ResourceType, entry: Optional[IncludedEntry] = None) -> Optional[Set[str]]:
        """
        A resource reached by several paths gets the union of the fields requested on these paths,
        None means all attributes
        """
        fields = self.descriptor.fields_for(resource_type.name)
        if fields is None:
            return None
        result = set(fields)
        if entry is not None and entry.fields:
            result |= entry.fields
        return result

    def relationships_object(self, resource: Any, resource_type: ResourceType, included_relationships: Set[str]) -> Dict[str, Any]:
        """
        http://jsonapi.org/format/#document-resource-object-relationships

        A "relationship object" contains the "links" and the resource linkage ("data").
        When the optimize_relationships option is set, the data is only added for included relationships.
        """
        relationships = {}
        for rel_name, definition in resource_type.relationships.items():
            rel_data: Dict[str, Any] = {}
            if not self.config.optimize_relationships or rel_name in included_relationships:
                rel_data["data"] = self.linkage(self.related(resource, resource_type, definition))
            links = resource_type.relationship_links(resource, definition, self.config)
            if links:
                rel_data["links"] = links
            relationships[rel_name] = rel_data
        return relationships

    def resource_object(self, resource: Any, linkage_only: bool = False) -> Dict[str, Any]:
        """
        :return: Encoded object according to the jsonapi specification:
        `data = {
                "type": "...",
                "id": "...",
                "attributes": { ... },
                "relationships": { ... },
                "links": { ... }
                }`
        """
        resource_type = self.registry.type_of(resource)
        if linkage_only:
            return self.registry.identifier(resource)
        entry = self.included.entry(resource, resource_type)
        included_relationships = entry.included_relationships if entry is not None else set()
        return {
            "type": resource_type.name,
            "id": resource_type.get_id(resource),
            "attributes": resource_type.get_attributes(resource, self.fields_for(resource_type, entry)),
            "relationships": self.relationships_object(resource, resource_type, included_relationships),
            "links": {"self": resource_type.url(resource, self.config)},
        }

    def included_objects(self) -> List[Dict[str, Any]]:
        """
        :return: the resource objects of the "included" list
        """
        return [self.resource_object(entry.resource) for entry in self.included.included()]
