import dataclasses
from http import HTTPStatus

import pytest
from flask import Flask, request

from resdoc import JsonapiError, LimitOffset, PageNumber, QueryDescriptor, ResdocRequest, parse_query
from resdoc.request import ASC, DESC, parse_sort, split_csv


def test_defaults():
    descriptor = parse_query({})
    assert descriptor == QueryDescriptor()
    assert descriptor.page == PageNumber(size=None, number=1)
    assert parse_query(None) == QueryDescriptor()
    assert parse_query("include=posts") == QueryDescriptor()


def test_parse_query():
    descriptor = parse_query(
        {
            "fields[posts]": "title,body",
            "fields[users]": "",
            "include": "post.user, comments,comments",
            "filter[name]": "alice,bob",
            "sort": "-created,title",
            "page[size]": "10",
            "page[number]": "3",
        }
    )
    assert descriptor.fields == {"posts": frozenset({"title", "body"}), "users": frozenset()}
    assert descriptor.fields_for("posts") == {"title", "body"}
    assert descriptor.fields_for("comments") is None
    assert descriptor.include == ("post.user", "comments")
    assert descriptor.filter == {"name": "alice,bob"}
    assert descriptor.sort == (("created", DESC), ("title", ASC))
    assert descriptor.page == PageNumber(size=10, number=3)


def test_unparsable_fragments_use_defaults():
    descriptor = parse_query({"page[size]": "ten", "page[number]": "-2", "sort": ",-,", "include": ""})
    assert descriptor.page == PageNumber(size=None, number=1)
    assert descriptor.sort == ()
    assert descriptor.include == ()

    assert parse_query({"limit": "x", "offset": "y"}).page == PageNumber()


def test_limit_offset():
    assert parse_query({"limit": "1", "offset": "-1"}).page == LimitOffset(limit=1, offset=-1)
    assert parse_query({"page[limit]": "5"}).page == LimitOffset(limit=5, offset=0)
    assert parse_query({"offset": "10"}).page == LimitOffset(limit=None, offset=10)


def test_one_pagination_style():
    descriptor = parse_query({"page[size]": "5", "limit": "1", "offset": "3"})
    assert descriptor.page == PageNumber(size=5, number=1)


def test_descriptor_is_immutable():
    descriptor = parse_query({"include": "posts"})
    with pytest.raises(dataclasses.FrozenInstanceError):
        descriptor.include = ("comments",)


def test_helpers():
    assert split_csv("a, b,,a") == ("a", "b")
    assert split_csv(None) == ()
    assert parse_sort("-body") == (("body", DESC),)


@pytest.fixture
def app():
    app = Flask("resdoc_request_test")
    app.request_class = ResdocRequest
    return app


def test_request_descriptor(app):
    with app.test_request_context("/posts?include=user&sort=-title", content_type="application/vnd.api+json"):
        assert request.is_jsonapi
        assert request.query_descriptor.include == ("user",)
        assert request.query_descriptor.sort == (("title", DESC),)


def test_request_payload(app):
    with app.test_request_context("/posts", method="PATCH", data='{"data": null}', content_type="application/json"):
        assert request.get_jsonapi_payload() == {"data": None}

    with app.test_request_context("/posts", method="PATCH"):
        assert not request.is_jsonapi
        assert request.get_jsonapi_payload() == {}


@pytest.mark.parametrize("body", ["[1, 2]", "{invalid"])
def test_invalid_payload(app, body):
    with app.test_request_context("/posts", method="PATCH", data=body, content_type="application/json"):
        with pytest.raises(JsonapiError) as exc_info:
            request.get_jsonapi_payload()
        assert exc_info.value.status == HTTPStatus.BAD_REQUEST
        assert exc_info.value.code == "invalid"
