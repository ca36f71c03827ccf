# Configuration settings should be set in app.config (RESDOC_* keys)
# or in the environment, app.config takes precedence.
# The configuration is an immutable value: it is read once per request
# and passed explicitly to the components that need it.
import os
from dataclasses import dataclass, field, replace as dataclass_replace
from collections.abc import Mapping
from typing import Any, Optional
from flask import current_app
import resdoc
from .messages import MessageCatalog, default_catalog


@dataclass(frozen=True)
class Config:
    """
    :param default_page_size: page size used when the client doesn't specify one
    :param max_page_size: upper bound for page[size] and limit
    :param optimize_relationships: only compute relationship data for included relationships
    :param i18n_scope: root key of the error messages in the message catalog
    :param url_prefix: prefix of the generated links
    :param message_catalog: MessageCatalog used to resolve error messages
    """

    default_page_size: int = 25
    max_page_size: int = 100
    optimize_relationships: bool = False
    i18n_scope: str = "resdoc"
    url_prefix: str = ""
    message_catalog: Optional[MessageCatalog] = field(default_factory=default_catalog, compare=False)

    def replace(self, **changes: Any) -> "Config":
        """
        :return: a new Config with `changes` applied
        """
        return dataclass_replace(self, **changes)


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


# option name => (app.config/environment key, conversion)
OPTIONS = {
    "default_page_size": ("RESDOC_DEFAULT_PAGE_SIZE", int),
    "max_page_size": ("RESDOC_MAX_PAGE_SIZE", int),
    "optimize_relationships": ("RESDOC_OPTIMIZE_RELATIONSHIPS", to_bool),
    "i18n_scope": ("RESDOC_I18N_SCOPE", str),
    "url_prefix": ("RESDOC_URL_PREFIX", str),
}


def load_config(app_config: Optional[Mapping] = None, **overrides: Any) -> Config:
    """
    Build the configuration from (in order of precedence):
    the keyword overrides, the app config, the environment and the Config defaults

    :param app_config: flask app.config or any mapping
    :return: Config
    """
    app_config = app_config or {}
    values = {}
    for option, (key, convert) in OPTIONS.items():
        if option in overrides:
            value = overrides[option]
        else:
            value = app_config.get(key, os.environ.get(key))
        if value is None:
            continue
        try:
            values[option] = convert(value)
        except ValueError:
            resdoc.log.warning(f"Invalid configuration value for {key}: {value!r}")

    catalog = overrides.get("message_catalog", app_config.get("RESDOC_MESSAGE_CATALOG"))
    if catalog is None:
        catalog = default_catalog(values.get("i18n_scope", Config.i18n_scope))
    values["message_catalog"] = catalog
    return Config(**values)


def get_config() -> Config:
    """
    :return: the configuration of the current app, or the defaults outside of an app context
    """
    try:
        extension = current_app.extensions.get("resdoc")
        app_config = current_app.config
    except RuntimeError:
        # working outside of application context
        return load_config()
    if extension is not None:
        return extension.config
    return load_config(app_config)

