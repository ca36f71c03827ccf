import logging

import pytest
from flask import Flask

import resdoc
from resdoc import RESDOC, Config, DictCatalog, JsonapiError, Registry, get_config, load_config


def test_defaults(monkeypatch):
    for key in ("RESDOC_DEFAULT_PAGE_SIZE", "RESDOC_MAX_PAGE_SIZE", "RESDOC_OPTIMIZE_RELATIONSHIPS", "RESDOC_I18N_SCOPE", "RESDOC_URL_PREFIX"):
        monkeypatch.delenv(key, raising=False)
    config = get_config()
    assert config == Config()
    assert (config.default_page_size, config.max_page_size, config.optimize_relationships) == (25, 100, False)
    assert config.i18n_scope == "resdoc"


def test_environment(monkeypatch):
    monkeypatch.setenv("RESDOC_MAX_PAGE_SIZE", "10")
    monkeypatch.setenv("RESDOC_OPTIMIZE_RELATIONSHIPS", "true")
    config = load_config()
    assert config.max_page_size == 10
    assert config.optimize_relationships is True


def test_precedence(monkeypatch):
    monkeypatch.setenv("RESDOC_DEFAULT_PAGE_SIZE", "5")
    assert load_config({"RESDOC_DEFAULT_PAGE_SIZE": 7}).default_page_size == 7
    assert load_config({"RESDOC_DEFAULT_PAGE_SIZE": 7}, default_page_size=9).default_page_size == 9


def test_invalid_value(monkeypatch):
    monkeypatch.setenv("RESDOC_MAX_PAGE_SIZE", "lots")
    assert load_config().max_page_size == 100


def test_replace_returns_new_value():
    config = Config()
    changed = config.replace(optimize_relationships=True)
    assert changed.optimize_relationships
    assert not config.optimize_relationships


def test_i18n_scope_catalog():
    config = load_config({"RESDOC_I18N_SCOPE": "api"})
    error = JsonapiError(code="not_found", config=config)
    assert error.full_message == "Not found"


def test_custom_catalog():
    catalog = DictCatalog({"resdoc": {"invalid": "Nope"}})
    config = load_config({"RESDOC_MESSAGE_CATALOG": catalog})
    assert JsonapiError(config=config).full_message == "Nope"


def test_extension_config():
    app = Flask("resdoc_config_test")
    app.config["RESDOC_OPTIMIZE_RELATIONSHIPS"] = "1"
    extension = RESDOC(app, Registry(), max_page_size=50)
    assert app.extensions["resdoc"] is extension
    with app.app_context():
        config = get_config()
    assert config.optimize_relationships is True
    assert config.max_page_size == 50


def test_extension_requires_flask_app():
    with pytest.raises(TypeError):
        RESDOC(object())


def test_debug_app_lowers_loglevel():
    level = resdoc.log.level
    app = Flask("resdoc_debug_test")
    app.config["DEBUG"] = True
    try:
        RESDOC(app, Registry())
        assert resdoc.log.level == logging.DEBUG
    finally:
        resdoc.log.setLevel(level)


def test_meta_hooks():
    extension = RESDOC()
    extension.before_query(lambda meta, resource_type: meta.update(version="1.0"))
    assert extension.contribute_meta({}, None) == {"version": "1.0"}
