import datetime
import decimal
import json
import uuid

import pytest
from flask import Flask

from resdoc import Document, ResdocJSONProvider


@pytest.fixture
def provider():
    return ResdocJSONProvider(Flask("resdoc_json_test"))


@pytest.mark.parametrize(
    "value, expected",
    [
        (datetime.datetime(2020, 1, 2, 3, 4, 5), "2020-01-02 03:04:05"),
        (datetime.date(2020, 1, 2), "2020-01-02"),
        (datetime.time(3, 4), "03:04:00"),
        (datetime.timedelta(hours=1), "1:00:00"),
        (decimal.Decimal("1.5"), 1.5),
        (uuid.UUID("12345678-1234-5678-1234-567812345678"), "12345678-1234-5678-1234-567812345678"),
        ({"a"}, ["a"]),
        (b"\x01\x02", "0102"),
        (b"", ""),
    ],
)
def test_default(provider, value, expected):
    assert json.loads(provider.dumps({"value": value})) == {"value": expected}


def test_document(provider):
    assert json.loads(provider.dumps(Document({"data": None}))) == {"data": None}


def test_unsupported(provider):
    with pytest.raises(TypeError):
        provider.dumps(object())


def test_key_order(provider):
    assert provider.dumps({"type": "users", "id": "1"}) == '{"type": "users", "id": "1"}'
