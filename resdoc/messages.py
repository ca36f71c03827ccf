"""
Message catalog lookups used to build the human readable error messages

A catalog maps dotted keys (eg. "resdoc.field.blank") to message templates.
Templates are interpolated with ``str.format_map``, for example:
    "{field_title} can't be blank"
"""
import abc
from collections.abc import Mapping
from typing import Any, Dict, Iterator, Optional, Tuple
import resdoc


DEFAULT_MESSAGES = {
    "invalid": "Invalid request",
    "not_found": "Not found",
    "forbidden": "Forbidden",
    "blank": "Can't be blank",
    "conflict": "Conflict",
    "internal_error": "Internal server error",
    "field": {
        "invalid": "{field_title} is invalid",
        "not_found": "{field_title} could not be found",
        "forbidden": "{field_title} cannot be changed",
        "blank": "{field_title} can't be blank",
    },
    "controllers": {
        "relationships": {
            "lookup": {"not_found": "Could not find relationship with name: '{name}'"},
            "replace": {"forbidden": "Relationship '{field}' cannot be changed"},
            "append": {"forbidden": "Cannot add members to the '{field}' relationship"},
            "remove": {"forbidden": "Cannot remove members from the '{field}' relationship"},
            "commit": {"conflict": "The '{field}' relationship could not be saved"},
        },
        "resources": {
            "show": {"not_found": "Could not find {type} with id: '{id}'"},
            "serialize": {"internal_error": "{class_name} is not a registered resource class"},
        },
    },
}


def _flatten(messages: Mapping, prefix: str = "") -> Iterator[Tuple[str, Any]]:
    for key, val in messages.items():
        key = f"{prefix}{key}"
        if isinstance(val, Mapping):
            yield from _flatten(val, key + ".")
        else:
            yield key, val


class MessageCatalog(abc.ABC):
    """
    Storage backend for translated messages, eg. a gettext or a database backed catalog
    """

    @abc.abstractmethod
    def lookup(self, key: str, variables: Mapping) -> Optional[str]:
        """
        :param key: dotted message key
        :param variables: interpolation variables
        :return: the interpolated message or None when the key is not set
        """


class DictCatalog(MessageCatalog):
    """
    Catalog backed by (nested) dictionaries, nested keys are joined with "."
    """

    def __init__(self, messages: Optional[Mapping] = None) -> None:
        self.messages: Dict[str, Any] = dict(_flatten(messages or {}))

    def update(self, messages: Mapping) -> "DictCatalog":
        """
        :return: a new catalog with `messages` added to the current ones
        """
        result = DictCatalog()
        result.messages = dict(self.messages, **dict(_flatten(messages)))
        return result

    def lookup(self, key: str, variables: Mapping) -> Optional[str]:
        template = self.messages.get(key)
        if template is None:
            return None
        # a template that references a missing variable raises KeyError,
        # the key is then considered unset (cfr. resolve())
        return str(template).format_map(variables)


def default_catalog(scope: str = "resdoc") -> DictCatalog:
    """
    :param scope: i18n scope the default messages are stored under
    :return: catalog with the default english messages
    """
    return DictCatalog({scope: DEFAULT_MESSAGES})


def resolve(catalog: Optional[MessageCatalog], scope_path: str, variables: Optional[Mapping] = None) -> Optional[str]:
    """
    Look up `scope_path` in the catalog, catalog failures are treated as a missing entry

    :param catalog: MessageCatalog
    :param scope_path: dotted message key
    :param variables: interpolation variables
    :return: message or None
    """
    if catalog is None:
        return None
    try:
        result = catalog.lookup(scope_path, variables or {})
    except Exception as exc:
        resdoc.log.debug(f"Message lookup failed for '{scope_path}': {exc!r}")
        return None
    return result or None
