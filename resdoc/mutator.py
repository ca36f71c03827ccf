# Relationship Mutator
#
# Updating relationships (http://jsonapi.org/format/#crud-updating-relationships)
#
# relationships/:name endpoints:
# - GET    : the resource linkage of the relationship
# - PATCH  : replace the relationship, the "data" member contains
#            null to clear the relationship, a resource identifier (to-one)
#            or a list of resource identifiers (to-many, replaces every member)
# - POST   : add the members to a to-many relationship
# - DELETE : remove the members from a to-many relationship
#
# Successful updates result in a 204 No Content response,
# all payload errors are reported in one errors document.
#
from collections.abc import Mapping
from http import HTTPStatus
from typing import Any, List, Optional, Tuple
import resdoc
from .config import Config, get_config
from .document import Document, DocumentBuilder
from .errors import JsonapiError, JsonapiException, raise_errors
from .relationships import lookup_definition
from .request import QueryDescriptor
from .resource import Registry, RelationshipDefinition, ResourceType

REPLACE = "replace"
APPEND = "append"
REMOVE = "remove"


class RelationshipMutator:
    def __init__(self, registry: Registry, config: Optional[Config] = None) -> None:
        self.registry = registry
        self.config = config if config is not None else get_config()

    def get(self, resource: Any, name: str, descriptor: Optional[QueryDescriptor] = None, meta: Optional[Mapping] = None) -> Document:
        """
        :return: Document with the linkage of relationship `name`
        """
        return DocumentBuilder(self.registry, self.config).build_relationship(resource, name, descriptor, meta)

    def replace(self, resource: Any, name: str, payload: Any) -> Document:
        """
        Replace the to-one relationship or all members of a to-many relationship
        """
        try:
            resource_type, definition = self._definition(resource, name, REPLACE)
            data = self._data(payload, allow_null=True)
            previous = self._snapshot(resource, definition)
            if definition.is_to_many:
                members = [] if data is None else self.parse_targets(definition, data)
                definition.assign(resource, members)
            else:
                if isinstance(data, list):
                    raise self._invalid("data", t={"reason": "to-one relationships hold a single resource identifier"})
                member = None if data is None else self.parse_targets(definition, data)[0]
                definition.assign(resource, member)
            self._commit(resource, resource_type, definition, previous)
        except JsonapiException as exc:
            return Document.from_errors(exc.errors)
        return Document.no_content()

    def append(self, resource: Any, name: str, payload: Any) -> Document:
        """
        Add members to a to-many relationship, existing members are kept
        """
        try:
            resource_type, definition = self._definition(resource, name, APPEND, to_many=True)
            members = self.parse_targets(definition, self._data(payload))
            previous = self._snapshot(resource, definition)
            definition.append(resource, members)
            self._commit(resource, resource_type, definition, previous)
        except JsonapiException as exc:
            return Document.from_errors(exc.errors)
        return Document.no_content()

    def remove(self, resource: Any, name: str, payload: Any) -> Document:
        """
        Remove members from a to-many relationship
        """
        try:
            resource_type, definition = self._definition(resource, name, REMOVE, to_many=True)
            members = self.parse_targets(definition, self._data(payload))
            previous = self._snapshot(resource, definition)
            definition.remove(resource, members)
            self._commit(resource, resource_type, definition, previous)
        except JsonapiException as exc:
            return Document.from_errors(exc.errors)
        return Document.no_content()

    def parse_targets(self, definition: RelationshipDefinition, data: Any) -> List[Any]:
        """
        Validate the resource identifiers in `data` and look up the resources:
        - the identifiers must contain an "id" and a "type"
        - the type must match the relationship target
        - a resource with the specified id must exist

        :param data: a resource identifier or a list of resource identifiers
        :return: the resources
        """
        if isinstance(data, Mapping):
            items = [("data", data)]
        elif isinstance(data, list):
            items = [(f"data.{index}", item) for index, item in enumerate(data)]
        else:
            raise self._invalid("data")

        errors = []
        result = []
        for field, item in items:
            if not isinstance(item, Mapping):
                errors.append(self._invalid(field))
                continue
            target_type_name = item.get("type")
            target_id = item.get("id")
            item_errors = []
            if not target_type_name:
                item_errors.append(self._invalid(f"{field}.type"))
            if target_id is None or target_id == "":
                item_errors.append(self._invalid(f"{field}.id"))
            if item_errors:
                errors.extend(item_errors)
                continue

            target_type = self._target_type(definition, target_type_name)
            if target_type is None:
                errors.append(self._invalid(f"{field}.type", t={"type": target_type_name}))
                continue
            target = target_type.find(target_id)
            if target is None:
                resdoc.log.warning(f"{target_type_name} with id {target_id} not found")
                errors.append(self._unprocessable(field, "not_found", t={"type": target_type_name, "id": target_id}))
                continue
            result.append(target)

        raise_errors(errors)
        return result

    def _target_type(self, definition: RelationshipDefinition, type_name: str) -> Optional[ResourceType]:
        """
        :return: the ResourceType for `type_name` if it's a valid target of the relationship
        """
        target_type = self.registry.resolve(definition.target)
        if target_type is None:
            return self.registry.get(type_name)
        if target_type.name != type_name:
            resdoc.log.warning(f"Invalid type {type_name} != {target_type.name}")
            return None
        return target_type

    def _definition(self, resource: Any, name: str, action: str, to_many: bool = False) -> Tuple[ResourceType, RelationshipDefinition]:
        resource_type = self.registry.type_of(resource)
        definition = lookup_definition(resource_type, name, self.config)
        if not definition.mutable or (to_many and not definition.is_to_many):
            resdoc.log.warning(f"Relationship {resource_type.name}.{name} can't be changed ({action})")
            raise JsonapiError(
                controller="relationships", action=action, field=name, code="forbidden", pointer="", config=self.config
            ).with_header(status=HTTPStatus.FORBIDDEN)
        return resource_type, definition

    def _data(self, payload: Any, allow_null: bool = False) -> Any:
        """
        :return: the "data" member of the payload
        """
        if not isinstance(payload, Mapping) or "data" not in payload:
            raise self._invalid("data")
        data = payload["data"]
        if data is None and not allow_null:
            raise self._invalid("data")
        return data

    def _invalid(self, field: str, t: Optional[dict] = None) -> JsonapiError:
        return self._unprocessable(field, "invalid", t)

    def _unprocessable(self, field: str, code: str, t: Optional[dict] = None) -> JsonapiError:
        return JsonapiError(field=field, code=code, t=t, config=self.config).with_header(status=HTTPStatus.UNPROCESSABLE_ENTITY)

    @staticmethod
    def _snapshot(resource: Any, definition: RelationshipDefinition) -> Any:
        value = getattr(resource, definition.attr, None)
        return list(value or []) if definition.is_to_many else value

    def _commit(self, resource: Any, resource_type: ResourceType, definition: RelationshipDefinition, previous: Any) -> None:
        """
        Save the change, when saving fails the change is rolled back and reported as a conflict

        :param previous: the relationship value before the change, restored when no rollback is configured
        """
        if resource_type.commit is None:
            return
        try:
            resource_type.commit()
        except Exception as exc:
            resdoc.log.exception(f"Failed to save {resource_type.name}.{definition.name}: {exc}")
            if resource_type.rollback is not None:
                resource_type.rollback()
            else:
                definition.assign(resource, previous)
            raise JsonapiError(
                controller="relationships", action="commit", field=definition.name, code="conflict", pointer="", config=self.config
            ).with_header(status=HTTPStatus.CONFLICT)
