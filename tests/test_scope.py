from http import HTTPStatus
from types import SimpleNamespace

import pytest

from resdoc import Config, JsonapiError, JsonapiErrors, ListProvider, ProviderError, parse_query
from resdoc.scope import apply, clamp, find_member, pagination_links, window
from resdoc.request import LimitOffset, PageNumber


def _items(count):
    return [SimpleNamespace(id=i, name=f"item{i}", group=i % 2) for i in range(1, count + 1)]


def _ids(result):
    return [item.id for item in result.items]


def test_clamp():
    assert clamp(None, 25, 100) == 25
    assert clamp(1000, 25, 100) == 100
    assert clamp(0, 25, 100) == 1
    assert clamp(-5, 25, 100) == 1


def test_default_page_size(config):
    result = apply(ListProvider(_items(30)), parse_query({}), config)
    assert len(result) == config.default_page_size
    assert result.meta == {"count": 25, "total": 30, "limit": 25}


def test_default_page_size_bounded_by_items(config):
    result = apply(ListProvider(_items(3)), parse_query({}), config)
    assert _ids(result) == [1, 2, 3]


def test_page_size_clamped(config):
    result = apply(ListProvider(_items(150)), parse_query({"page[size]": "1000"}), config)
    assert len(result) == config.max_page_size

    result = apply(ListProvider(_items(10)), parse_query({"page[size]": "0"}), config)
    assert _ids(result) == [1]


def test_page_number():
    config = Config(default_page_size=10)
    result = apply(ListProvider(_items(25)), parse_query({"page[number]": "3"}), config)
    assert _ids(result) == [21, 22, 23, 24, 25]
    assert result.offset == 20


@pytest.mark.parametrize(
    "limit, offset, expected",
    [
        (1, -1, [6]),
        (2, -3, [4, 5]),
        (5, -2, [5, 6]),
        (2, -10, [1, 2]),
        (2, 1, [2, 3]),
    ],
)
def test_limit_offset(config, limit, offset, expected):
    result = apply(ListProvider(_items(6)), parse_query({"limit": str(limit), "offset": str(offset)}), config)
    assert _ids(result) == expected


def test_negative_offset_after_sort(config):
    descriptor = parse_query({"limit": "1", "offset": "-1", "sort": "-id"})
    assert _ids(apply(ListProvider(_items(6)), descriptor, config)) == [1]


class _RecordingProvider(ListProvider):
    def __init__(self, items):
        super().__init__(items)
        self.calls = []

    def page(self, size, number):
        self.calls.append(("page", size, number))
        return super().page(size, number)

    def limit_offset(self, limit, offset):
        self.calls.append(("limit_offset", limit, offset))
        return super().limit_offset(limit, offset)


def test_provider_pagination_style(config):
    provider = _RecordingProvider(_items(6))
    result = apply(provider, parse_query({"page[size]": "3", "page[number]": "2"}), config)
    assert _ids(result) == [4, 5, 6]
    assert provider.calls[0] == ("page", 3, 2)

    provider = _RecordingProvider(_items(6))
    result = apply(provider, parse_query({"limit": "2", "offset": "-2"}), config)
    assert _ids(result) == [5, 6]
    assert provider.calls == [("limit_offset", 2, 4)]


class _FailingProvider(ListProvider):
    def count(self):
        raise ProviderError("count", "connection lost")


def test_provider_failure(config):
    with pytest.raises(JsonapiError) as exc_info:
        apply(_FailingProvider(_items(3)), parse_query({}), config)
    assert exc_info.value.status == HTTPStatus.BAD_REQUEST
    assert exc_info.value.serialize() == {"code": "invalid", "field": None, "message": "Invalid request"}


def test_window(config):
    assert window(LimitOffset(limit=1, offset=-1), 6, config) == (1, 5)
    assert window(PageNumber(size=10, number=2), 6, config) == (10, 10)


def test_sort_is_stable_and_ordered(config):
    result = apply(ListProvider(_items(6)), parse_query({"sort": "group,-id"}), config)
    assert _ids(result) == [6, 4, 2, 5, 3, 1]

    result = apply(ListProvider(_items(6)), parse_query({"sort": "-group"}), config)
    assert _ids(result) == [1, 3, 5, 2, 4, 6]


def test_sort_none_last(config):
    items = [SimpleNamespace(id=1, name=None), SimpleNamespace(id=2, name="b"), SimpleNamespace(id=3, name="a")]
    result = apply(ListProvider(items), parse_query({"sort": "name"}), config)
    assert _ids(result) == [3, 2, 1]


def test_filter(config):
    result = apply(ListProvider(_items(6)), parse_query({"filter[name]": "item2,item5"}), config)
    assert _ids(result) == [2, 5]
    assert result.total == 2

    result = apply(ListProvider(_items(6)), parse_query({"filter[group]": "0"}), config)
    assert _ids(result) == [2, 4, 6]


def test_unknown_filter_field(config):
    with pytest.raises(JsonapiError) as exc_info:
        apply(ListProvider(_items(3)), parse_query({"filter[nope]": "1"}), config)
    error = exc_info.value
    assert error.code == "invalid"
    assert error.field == "filter[nope]"
    assert error.status == HTTPStatus.BAD_REQUEST
    assert "source" not in error.serialize()


def test_all_invalid_arguments_are_reported(config):
    provider = ListProvider(_items(3), fields=["id", "name"])
    with pytest.raises(JsonapiErrors) as exc_info:
        apply(provider, parse_query({"filter[nope]": "1", "sort": "name,-unknown"}), config)
    assert [error.field for error in exc_info.value.errors] == ["filter[nope]", "sort"]


def test_pagination_links(config):
    args = {"page[size]": "2", "page[number]": "2", "sort": "id"}
    result = apply(ListProvider(_items(5)), parse_query(args), config, base_url="/api/items", args=args)
    links = result.links
    assert set(links) == {"self", "first", "last", "prev", "next"}
    assert links["first"] == "/api/items?sort=id&page%5Bnumber%5D=1&page%5Bsize%5D=2"
    assert links["last"] == "/api/items?sort=id&page%5Bnumber%5D=3&page%5Bsize%5D=2"
    assert links["next"].endswith("page%5Bnumber%5D=3&page%5Bsize%5D=2")


def test_limit_offset_links(config):
    args = {"limit": "2", "offset": "0"}
    links = apply(ListProvider(_items(3)), parse_query(args), config, base_url="/api/items", args=args).links
    assert links["next"] == "/api/items?limit=2&offset=2"
    assert "prev" not in links
    assert pagination_links("/x", {}, LimitOffset(1, 0), 1, 0, 0)["last"] == "/x?limit=1&offset=0"


def test_no_links_without_base_url(config):
    assert apply(ListProvider(_items(3)), parse_query({}), config).links == {}


def test_find_member(config):
    provider = ListProvider(_items(3))
    assert find_member(provider, "2", config).name == "item2"
    with pytest.raises(JsonapiError) as exc_info:
        find_member(provider, "99", config)
    assert exc_info.value.status == HTTPStatus.NOT_FOUND
    assert exc_info.value.code == "not_found"
