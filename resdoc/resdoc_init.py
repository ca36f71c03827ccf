import logging
import os
import sys
from flask import Flask
import flask.app
from typing import Any, Callable, Dict, List, Optional
from .config import load_config
from .json_encoder import ResdocJSONProvider
from .jsonapi import create_blueprint
from .request import ResdocRequest
from .resource import Registry, ResourceType


class RESDOC:
    """This class configures the Flask application to serve the resources in a Registry
    :param app: a Flask application.
    :param registry: Registry with the exposed resource types
    :param url_prefix: URL prefix of the json:api endpoints
    :param kwargs: Config overrides, eg. default_page_size=10

    Configuration settings are read from the app.config RESDOC_* keys, the environment and the kwargs
    """

    def __init__(self, app: Optional[flask.app.Flask] = None, registry: Optional[Registry] = None, **kwargs: Any) -> None:
        """
        Constructor
        """
        self.app = app
        self.registry = registry if registry is not None else Registry()
        self.config = load_config()
        self.blueprint = None
        self._before_query: List[Callable[[Dict[str, Any], ResourceType], None]] = []
        if app is not None:
            self.init_app(app, **kwargs)

    def init_app(self, app: flask.app.Flask, url_prefix: Optional[str] = None, blueprint_name: str = "resdoc", **kwargs: Any) -> None:
        """
        API and application initialization
        """
        if not isinstance(app, Flask):  # pragma: no cover
            raise TypeError("'app' should be Flask.")

        self.app = app
        app.request_class = ResdocRequest
        app.json = ResdocJSONProvider(app)
        app.url_map.strict_slashes = False

        if app.config.get("DEBUG", False):
            log.setLevel(logging.DEBUG)

        if url_prefix is None:
            url_prefix = app.config.get("RESDOC_URL_PREFIX", os.environ.get("RESDOC_URL_PREFIX", ""))
        kwargs.setdefault("url_prefix", url_prefix)
        self.config = load_config(app.config, **kwargs)

        app.extensions["resdoc"] = self
        self.blueprint = create_blueprint(self.registry, self, name=blueprint_name, url_prefix=url_prefix)
        app.register_blueprint(self.blueprint)
        log.debug(f"Exposing {len(list(self.registry))} resource types on '{url_prefix or '/'}'")

    def before_query(self, func: Callable[[Dict[str, Any], ResourceType], None]) -> Callable:
        """
        Register a function that contributes to the top level "meta" of the documents,
        the function is called with the meta dict and the ResourceType of the primary data:

        @resdoc.before_query
        def add_version(meta, resource_type):
            meta["version"] = "1.0"
        """
        self._before_query.append(func)
        return func

    def contribute_meta(self, meta: Dict[str, Any], resource_type: ResourceType) -> Dict[str, Any]:
        for func in self._before_query:
            func(meta, resource_type)
        return meta

    @staticmethod
    def init_logging(loglevel: int = logging.WARNING) -> logging.Logger:
        """
        Specify the log format used in the webserver logs
        The webserver will catch stdout so we redirect eveything to sys.stderr
        """
        log = logging.getLogger(__package__)
        if log.level == logging.NOTSET:
            handler = logging.StreamHandler(sys.stderr)
            formatter = logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s")
            handler.setFormatter(formatter)
            log.setLevel(loglevel)
            log.addHandler(handler)
        return log


#
# logging initialization
#
try:
    DEBUG = os.getenv("DEBUG", logging.WARNING)
    LOGLEVEL = int(DEBUG)
except ValueError:  # pragma: no cover
    print(f'Invalid LogLevel in DEBUG Environment Variable! "{DEBUG}"')
    LOGLEVEL = logging.INFO

log = RESDOC.init_logging(LOGLEVEL)
