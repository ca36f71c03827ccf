# flake8: noqa: F401
#
# The submodules access the logger as resdoc.log at call time,
# so it has to be imported first
#
from .resdoc_init import log, RESDOC
from .config import Config, load_config, get_config
from .messages import MessageCatalog, DictCatalog, default_catalog
from .errors import JsonapiError, JsonapiErrors, JsonapiException, UnregisteredResourceError
from .request import QueryDescriptor, PageNumber, LimitOffset, ResdocRequest, parse_query
from .resource import ResourceType, RelationshipDefinition, Registry, TO_ONE, TO_MANY
from .provider import ResourceProvider, ListProvider, QueryProvider, ProviderError
from .relationships import IncludedSet, RelationshipResolver
from .document import Document, DocumentBuilder
from .mutator import RelationshipMutator
from .json_encoder import ResdocJSONProvider
from .jsonapi import create_blueprint
from .__about__ import __version__, __description__

__all__ = (
    "__version__",
    "__description__",
    #
    "RESDOC",
    "log",
    # config:
    "Config",
    "load_config",
    "get_config",
    "MessageCatalog",
    "DictCatalog",
    "default_catalog",
    # errors:
    "JsonapiError",
    "JsonapiErrors",
    "JsonapiException",
    "UnregisteredResourceError",
    # request:
    "QueryDescriptor",
    "PageNumber",
    "LimitOffset",
    "ResdocRequest",
    "parse_query",
    # resources:
    "ResourceType",
    "RelationshipDefinition",
    "Registry",
    "TO_ONE",
    "TO_MANY",
    "ResourceProvider",
    "ListProvider",
    "QueryProvider",
    "ProviderError",
    # documents:
    "IncludedSet",
    "RelationshipResolver",
    "Document",
    "DocumentBuilder",
    "RelationshipMutator",
    "ResdocJSONProvider",
    "create_blueprint",
)
