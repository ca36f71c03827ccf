# Document Builder
#
# http://jsonapi.org/format/#document-top-level
#
# A document contains either
# - the primary "data", with the optional "included", "meta" and "links" members, or
# - the "errors" that occurred while building it.
# Errors detected while building the data discard the partial data.
#
from http import HTTPStatus
from typing import Any, Dict, Iterable, Mapping, Optional
import resdoc
from .config import Config, get_config
from .errors import JsonapiError, JsonapiException
from .provider import as_provider
from .relationships import RelationshipResolver, lookup_definition
from .request import QueryDescriptor
from .resource import Registry, ResourceType
from .scope import ScopedResult, apply, find_member


class Document:
    """
    Response document with its HTTP status and extra headers,
    `body` is None for responses without content (204)
    """

    def __init__(self, body: Optional[Dict[str, Any]] = None, status: HTTPStatus = HTTPStatus.OK, headers: Optional[Dict[str, str]] = None) -> None:
        self.body = body
        self.status = status
        self.headers = dict(headers or {})

    @classmethod
    def from_errors(cls, errors: Iterable[JsonapiError]) -> "Document":
        """
        The status of the first error is used as response status
        """
        errors = list(errors)
        headers: Dict[str, str] = {}
        for error in errors:
            for name, value in error.headers.items():
                headers.setdefault(name, value)
        status = errors[0].status if errors else HTTPStatus.BAD_REQUEST
        return cls({"errors": [error.serialize() for error in errors]}, status, headers)

    @classmethod
    def no_content(cls) -> "Document":
        return cls(None, HTTPStatus.NO_CONTENT)

    @property
    def is_error(self) -> bool:
        return self.body is not None and "errors" in self.body

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return self.body

    def __repr__(self) -> str:
        return f"<Document {self.status.value} {self.body!r}>"


class DocumentBuilder:
    """
    Builds the response documents for resources, collections and relationships
    """

    def __init__(self, registry: Registry, config: Optional[Config] = None) -> None:
        self.registry = registry
        self.config = config if config is not None else get_config()

    def build(
        self,
        primary: Any,
        descriptor: Optional[QueryDescriptor] = None,
        meta: Optional[Mapping] = None,
        links: Optional[Mapping] = None,
        many: Optional[bool] = None,
        linkage_only: bool = False,
        status: HTTPStatus = HTTPStatus.OK,
    ) -> Document:
        """
        :param primary: a resource, a sequence of resources or None
        :param descriptor: QueryDescriptor with the include paths and sparse fieldsets
        :param meta: meta contributions, merged into the top level "meta"
        :param links: top level links
        :param many: whether the primary data is a collection, by default derived from `primary`
        :param linkage_only: serialize the primary data as resource identifiers
        :return: Document
        """
        descriptor = descriptor if descriptor is not None else QueryDescriptor()
        if many is None:
            many = isinstance(primary, (list, tuple, ScopedResult))
        if many:
            resources = list(primary or [])
        else:
            resources = [] if primary is None else [primary]

        resolver = RelationshipResolver(self.registry, descriptor, self.config)
        try:
            resolver.resolve_all(resources, descriptor.include)
            objects = [resolver.resource_object(resource, linkage_only) for resource in resources]
            included = resolver.included_objects()
        except JsonapiException as exc:
            return Document.from_errors(exc.errors)

        result: Dict[str, Any] = {"data": objects if many else (objects[0] if objects else None)}
        if descriptor.include or included:
            result["included"] = included
        if meta:
            result["meta"] = dict(meta)
        if links:
            result["links"] = dict(links)
        return Document(result, status)

    def build_collection(
        self,
        resource_type: ResourceType,
        descriptor: Optional[QueryDescriptor] = None,
        meta: Optional[Mapping] = None,
        base_url: Optional[str] = None,
        args: Optional[Mapping] = None,
    ) -> Document:
        """
        Document for the (filtered, sorted and paginated) collection of `resource_type`
        """
        descriptor = descriptor if descriptor is not None else QueryDescriptor()
        if resource_type.collection is None:
            resdoc.log.warning(f"No collection configured for {resource_type.name}")
            return self.build([], descriptor, meta)
        try:
            scoped = apply(as_provider(resource_type.collection()), descriptor, self.config, base_url, args)
        except JsonapiException as exc:
            return Document.from_errors(exc.errors)
        return self.build(scoped.items, descriptor, dict(scoped.meta, **(meta or {})), links=scoped.links, many=True)

    def build_resource(self, resource_type: ResourceType, jsonapi_id: str, descriptor: Optional[QueryDescriptor] = None, meta: Optional[Mapping] = None) -> Document:
        """
        Document for the `resource_type` instance with id `jsonapi_id`
        """
        resource = resource_type.find(jsonapi_id)
        if resource is None:
            error = JsonapiError(
                controller="resources", action="show", code="not_found", t={"type": resource_type.name, "id": jsonapi_id}, config=self.config
            )
            return Document.from_errors([error.with_header(status=HTTPStatus.NOT_FOUND)])
        return self.build(resource, descriptor, meta)

    def build_relationship(self, resource: Any, name: str, descriptor: Optional[QueryDescriptor] = None, meta: Optional[Mapping] = None) -> Document:
        """
        http://jsonapi.org/format/#fetching-relationships

        The primary data is the resource linkage of the relationship,
        the "self" and "related" links are added to the top-level links
        """
        resolver = RelationshipResolver(self.registry, descriptor, self.config)
        try:
            resource_type = self.registry.type_of(resource)
            definition = lookup_definition(resource_type, name, self.config)
            related = resolver.related(resource, resource_type, definition)
        except JsonapiException as exc:
            return Document.from_errors(exc.errors)
        links = resource_type.relationship_links(resource, definition, self.config)
        return self.build(related, descriptor, meta, links=links, many=definition.is_to_many, linkage_only=True)

    def build_related(
        self,
        resource: Any,
        name: str,
        descriptor: Optional[QueryDescriptor] = None,
        member_id: Optional[str] = None,
        meta: Optional[Mapping] = None,
        base_url: Optional[str] = None,
        args: Optional[Mapping] = None,
    ) -> Document:
        """
        Document with the related resources of relationship `name`

        to-many collections are filtered, sorted and paginated,
        when `member_id` is given only that member of the relationship is returned
        """
        descriptor = descriptor if descriptor is not None else QueryDescriptor()
        try:
            resource_type = self.registry.type_of(resource)
            definition = lookup_definition(resource_type, name, self.config)
            related_url = resource_type.relationship_links(resource, definition, self.config).get("related")
            if not definition.is_to_many:
                related = definition.get(resource)
                if member_id is not None and (related is None or self.registry.type_of(related).get_id(related) != str(member_id)):
                    raise self._member_not_found(member_id)
                links = {"self": related_url} if related_url else {}
                if related is not None:
                    links["related"] = self.registry.type_of(related).url(related, self.config)
                return self.build(related, descriptor, meta, links=links, many=False)

            collection = resource_type.scope(name, definition.get(resource), resource)
            provider = as_provider(collection)
            if member_id is not None:
                member = find_member(provider, member_id, self.config)
                links = {"related": self.registry.type_of(member).url(member, self.config)}
                if related_url:
                    links["self"] = f"{related_url}/{member_id}"
                return self.build(member, descriptor, meta, links=links, many=False)

            scoped = apply(provider, descriptor, self.config, base_url, args)
        except JsonapiException as exc:
            return Document.from_errors(exc.errors)
        return self.build(scoped.items, descriptor, dict(scoped.meta, **(meta or {})), links=scoped.links, many=True)

    def _member_not_found(self, member_id: str) -> JsonapiError:
        return JsonapiError(field="id", code="not_found", t={"id": member_id}, pointer="", config=self.config).with_header(status=HTTPStatus.NOT_FOUND)
