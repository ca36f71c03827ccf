# Resource types
#
# Domain objects are exposed through a ResourceType registered for their class:
# the ResourceType knows the json:api type name, how to get the id and the attributes,
# the relationship definitions and a couple of capability tables:
# - scopes: relationship name -> function(collection, owner) narrowing a to-many collection
# - attribute_predicates: field name -> bool or function(name), marks attribute aliases
#
# pylint: disable=too-many-arguments,too-many-instance-attributes
import sqlalchemy
from sqlalchemy.orm.interfaces import MANYTOONE
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
import resdoc
from .config import Config
from .errors import UnregisteredResourceError

TO_ONE = "to-one"
TO_MANY = "to-many"


class RelationshipDefinition:
    """
    A named relationship of a resource type
    """

    def __init__(
        self,
        name: str,
        cardinality: str = TO_ONE,
        resolver: Optional[Callable[[Any], Any]] = None,
        target: Any = None,
        mutable: bool = True,
        self_link: bool = True,
        related_link: bool = True,
        attr: Optional[str] = None,
    ) -> None:
        """
        :param name: relationship name
        :param cardinality: TO_ONE or TO_MANY
        :param resolver: function(owner) returning the related resource(s), defaults to getattr(owner, attr)
        :param target: type name or class of the related resources
        :param mutable: whether the relationship can be changed through the api
        :param self_link: generate the relationship "self" link
        :param related_link: generate the "related" resource link
        :param attr: name of the owner attribute holding the relationship, defaults to `name`
        """
        if cardinality not in (TO_ONE, TO_MANY):
            raise ValueError(f"Invalid cardinality {cardinality!r} for relationship {name}")
        self.name = name
        self.cardinality = cardinality
        self.resolver = resolver
        self.target = target
        self.mutable = mutable
        self.self_link = self_link
        self.related_link = related_link
        self.attr = attr or name

    @property
    def is_to_many(self) -> bool:
        return self.cardinality == TO_MANY

    def get(self, owner: Any) -> Any:
        """
        :return: the related resource (to-one) or collection (to-many) of `owner`
        """
        if self.resolver is not None:
            return self.resolver(owner)
        return getattr(owner, self.attr, None)

    def assign(self, owner: Any, value: Any) -> None:
        """
        Replace the related resource (to-one) or all members (to-many)
        """
        if self.is_to_many:
            relation = getattr(owner, self.attr, None)
            if isinstance(relation, list):
                # (sqla InstrumentedList is a list subclass)
                relation[:] = list(value)
                return
            value = list(value)
        setattr(owner, self.attr, value)

    def append(self, owner: Any, members: Iterable[Any]) -> None:
        relation = getattr(owner, self.attr)
        for member in members:
            if member not in relation:
                relation.append(member)

    def remove(self, owner: Any, members: Iterable[Any]) -> None:
        relation = getattr(owner, self.attr)
        for member in members:
            if member in relation:
                relation.remove(member)
            else:
                resdoc.log.warning(f"Item {member} not in relationship {self.name}")

    def __repr__(self) -> str:
        return f"<RelationshipDefinition {self.name} ({self.cardinality})>"


class ResourceType:
    """
    json:api description of a domain class
    """

    def __init__(
        self,
        name: str,
        attributes: Union[Iterable[str], Callable[[Any], Mapping], None] = None,
        relationships: Optional[Iterable[RelationshipDefinition]] = None,
        id_getter: Optional[Callable[[Any], Any]] = None,
        finder: Optional[Callable[[str], Any]] = None,
        collection: Optional[Callable[[], Any]] = None,
        scopes: Optional[Dict[str, Callable[[Any, Any], Any]]] = None,
        attribute_predicates: Optional[Dict[str, Union[bool, Callable[[str], bool]]]] = None,
        url_for: Optional[Callable[[Any], str]] = None,
        commit: Optional[Callable[[], None]] = None,
        rollback: Optional[Callable[[], None]] = None,
        model_name: Optional[str] = None,
    ) -> None:
        """
        :param name: json:api type, eg. "comments"
        :param attributes: attribute names or function(resource) returning the attribute mapping
        :param relationships: RelationshipDefinitions
        :param id_getter: function(resource) returning the id, defaults to resource.id
        :param finder: function(id) returning the resource with that id or None
        :param collection: function() returning the collection of all resources (a provider, list or query)
        :param scopes: relationship name -> function(collection, owner) returning the narrowed collection
        :param attribute_predicates: field name -> bool or function(name) telling whether the field is an attribute
        :param url_for: function(resource) returning the canonical url of the resource
        :param commit: called after a relationship has been changed, eg. session.commit
        :param rollback: called when `commit` failed, eg. session.rollback
        :param model_name: name used in the error message keys, defaults to `name`
        """
        self.name = name
        self._attributes = attributes if callable(attributes) else list(attributes or [])
        self.relationships: Dict[str, RelationshipDefinition] = {rel.name: rel for rel in relationships or []}
        self.id_getter = id_getter
        self.finder = finder
        self.collection = collection
        self.scopes = dict(scopes or {})
        self.attribute_predicates = dict(attribute_predicates or {})
        self.url_for = url_for
        self.commit = commit
        self.rollback = rollback
        self.model_name = model_name or name

    def get_id(self, resource: Any) -> str:
        jsonapi_id = self.id_getter(resource) if self.id_getter else getattr(resource, "id")
        return str(jsonapi_id)

    @property
    def attribute_names(self) -> List[str]:
        return [] if callable(self._attributes) else list(self._attributes)

    def get_attributes(self, resource: Any, fields: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """
        :param fields: sparse fieldset, None means all attributes
        :return: ordered attribute dict
        """
        if callable(self._attributes):
            attributes = dict(self._attributes(resource))
        else:
            attributes = {attr_name: getattr(resource, attr_name, None) for attr_name in self._attributes}
        if fields is None:
            return attributes
        fields = set(fields)
        return {attr_name: val for attr_name, val in attributes.items() if attr_name in fields}

    def is_attribute(self, name: str) -> bool:
        """
        :return: True if `name` is an attribute or an attribute alias of this type
        """
        predicate = self.attribute_predicates.get(name)
        if predicate is not None:
            return bool(predicate(name)) if callable(predicate) else bool(predicate)
        return name in self.attribute_names

    def find(self, jsonapi_id: Any) -> Any:
        """
        :return: the resource with id `jsonapi_id` or None
        """
        if self.finder is None:
            resdoc.log.warning(f"No finder configured for {self.name}")
            return None
        return self.finder(jsonapi_id)

    def scope(self, rel_name: str, collection: Any, owner: Any) -> Any:
        """
        Narrow the to-many `collection` of `owner`, without scope the collection is returned as is
        """
        scope = self.scopes.get(rel_name)
        if scope is None:
            return collection
        return scope(collection, owner)

    def url(self, resource: Any, config: Config) -> str:
        if self.url_for is not None:
            return self.url_for(resource)
        return f"{config.url_prefix}/{self.name}/{self.get_id(resource)}"

    def relationship_links(self, resource: Any, definition: RelationshipDefinition, config: Config) -> Dict[str, str]:
        """
        :return: the "self" (relationship) and "related" (resource) links
        """
        url = self.url(resource, config)
        links = {}
        if definition.self_link:
            links["self"] = f"{url}/relationships/{definition.name}"
        if definition.related_link:
            links["related"] = f"{url}/{definition.name}"
        return links

    @classmethod
    def from_model(
        cls,
        model: Any,
        session: Any,
        name: Optional[str] = None,
        exclude_attrs: Iterable[str] = (),
        immutable: Iterable[str] = (),
        **kwargs: Any,
    ) -> "ResourceType":
        """
        Create the ResourceType of a SQLAlchemy mapped class
        - column attributes (except primary and foreign keys) become attributes
        - mapper relationships become relationship definitions, MANYTOONE relationships are to-one

        :param model: sqla mapped class
        :param session: sqla session used to look up instances
        :param name: json:api type, defaults to the table name
        :param exclude_attrs: attributes that should not be serialized
        :param immutable: names of the relationships that can't be changed through the api
        """
        mapper = sqlalchemy.inspect(model)
        exclude_attrs = set(exclude_attrs)
        immutable = set(immutable)
        primary_keys = [col.key for col in mapper.primary_key]
        pk_attr = mapper.get_property_by_column(mapper.primary_key[0]).key

        attributes = []
        for prop in mapper.column_attrs:
            if prop.key in exclude_attrs:
                continue
            if any(col.primary_key or col.foreign_keys for col in prop.columns):
                continue
            attributes.append(prop.key)

        relationships = []
        for rel in mapper.relationships:
            cardinality = TO_ONE if rel.direction == MANYTOONE or not rel.uselist else TO_MANY
            relationships.append(RelationshipDefinition(rel.key, cardinality, target=rel.mapper.class_, mutable=rel.key not in immutable))

        pk_type = mapper.primary_key[0].type
        try:
            pk_python_type = pk_type.python_type
        except NotImplementedError:
            pk_python_type = str

        def finder(jsonapi_id):
            try:
                jsonapi_id = pk_python_type(jsonapi_id)
            except (TypeError, ValueError):
                return None
            return session.get(model, jsonapi_id)

        def collection():
            return session.query(model)

        kwargs.setdefault("id_getter", lambda instance: getattr(instance, pk_attr))
        kwargs.setdefault("finder", finder if len(primary_keys) == 1 else None)
        kwargs.setdefault("collection", collection)
        kwargs.setdefault("commit", session.commit)
        kwargs.setdefault("rollback", session.rollback)
        kwargs.setdefault("model_name", model.__name__.lower())
        return cls(name or getattr(model, "__tablename__", model.__name__), attributes, relationships, **kwargs)

    def __repr__(self) -> str:
        return f"<ResourceType {self.name}>"


class Registry:
    """
    Maps the domain classes to their ResourceType
    Subclasses are serialized with the type of their closest registered parent
    """

    def __init__(self) -> None:
        self._by_class: Dict[type, ResourceType] = {}
        self._by_name: Dict[str, ResourceType] = {}

    def register(self, klass: type, resource_type: ResourceType) -> ResourceType:
        self._by_class[klass] = resource_type
        self._by_name[resource_type.name] = resource_type
        return resource_type

    def register_model(self, model: Any, session: Any, **kwargs: Any) -> ResourceType:
        """
        Register a SQLAlchemy mapped class, cfr. ResourceType.from_model
        """
        return self.register(model, ResourceType.from_model(model, session, **kwargs))

    def get(self, name: str) -> Optional[ResourceType]:
        return self._by_name.get(name)

    def type_for_class(self, klass: type) -> Optional[ResourceType]:
        for base in klass.__mro__:
            if base in self._by_class:
                return self._by_class[base]
        return None

    def type_of(self, resource: Any) -> ResourceType:
        """
        :return: the ResourceType of `resource`
        """
        result = self.type_for_class(type(resource))
        if result is None:
            raise UnregisteredResourceError(type(resource).__name__)
        return result

    def resolve(self, target: Any) -> Optional[ResourceType]:
        """
        :param target: type name or class
        """
        if target is None:
            return None
        if isinstance(target, str):
            return self.get(target)
        if isinstance(target, ResourceType):
            return target
        return self.type_for_class(target)

    def identifier(self, resource: Any) -> Dict[str, str]:
        """
        :return: resource identifier object (linkage)
        """
        resource_type = self.type_of(resource)
        return {"type": resource_type.name, "id": resource_type.get_id(resource)}

    def __iter__(self):
        return iter(self._by_name.values())

    def __contains__(self, name: str) -> bool:
        return name in self._by_name
