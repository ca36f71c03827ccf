"""
Query string parsing

http://jsonapi.org/format/#fetching

The shaping arguments of a request are parsed into an immutable QueryDescriptor:
- fields[type]=a,b (https://jsonapi.org/format/#fetching-sparse-fieldsets)
- include=post.user,comments (https://jsonapi.org/format/#fetching-includes)
- filter[attr]=value
- sort=-created,title
- page[size]/page[number] or limit/offset (page[limit]/page[offset] are accepted as well)

Parsing never fails: unparsable arguments are ignored and the defaults are used.
"""
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Tuple, Union
from flask import Request
from http import HTTPStatus
import resdoc
from .errors import JsonapiError

ASC = "asc"
DESC = "desc"

FIELDS_RE = re.compile(r"^fields\[([^\]]+)\]$")
FILTER_RE = re.compile(r"^filter\[([^\]]+)\]$")


@dataclass(frozen=True)
class PageNumber:
    """
    page[size] / page[number] pagination, size is None when the client didn't specify it
    """

    size: Optional[int] = None
    number: int = 1


@dataclass(frozen=True)
class LimitOffset:
    """
    limit / offset pagination, a negative offset counts from the end of the collection
    """

    limit: Optional[int] = None
    offset: int = 0


Page = Union[PageNumber, LimitOffset]


@dataclass(frozen=True)
class QueryDescriptor:
    fields: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    include: Tuple[str, ...] = ()
    filter: Dict[str, str] = field(default_factory=dict)
    sort: Tuple[Tuple[str, str], ...] = ()
    page: Page = field(default_factory=PageNumber)

    def fields_for(self, type_name: str) -> Optional[FrozenSet[str]]:
        """
        :return: the sparse fieldset for `type_name`, None means all attributes
        """
        return self.fields.get(type_name)


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def split_csv(value: Any) -> Tuple[str, ...]:
    """
    "a, b,,a" => ("a", "b"), duplicates are removed, the order is kept
    """
    if not isinstance(value, str):
        return ()
    result = []
    for item in value.split(","):
        item = item.strip()
        if item and item not in result:
            result.append(item)
    return tuple(result)


def parse_sort(value: Any) -> Tuple[Tuple[str, str], ...]:
    """
    "-body,title" => (("body", "desc"), ("title", "asc"))
    """
    result = []
    for sort_attr in split_csv(value):
        # The sort order for each sort field MUST be ascending unless it is prefixed
        # with a minus, in which case it MUST be descending.
        if sort_attr.startswith("-"):
            sort_attr, direction = sort_attr[1:].strip(), DESC
        else:
            direction = ASC
        if sort_attr:
            result.append((sort_attr, direction))
    return tuple(result)


def parse_page(args: Mapping) -> Page:
    """
    Only one pagination style is honored: page[size]/page[number] takes precedence over limit/offset
    """
    if "page[size]" in args or "page[number]" in args:
        size = _to_int(args.get("page[size]"))
        number = _to_int(args.get("page[number]"))
        return PageNumber(size=size, number=number if number and number > 0 else 1)

    limit = _to_int(args.get("limit", args.get("page[limit]")))
    offset = _to_int(args.get("offset", args.get("page[offset]")))
    if limit is None and offset is None:
        return PageNumber()
    return LimitOffset(limit=limit, offset=offset or 0)


def parse_query(raw_query: Optional[Mapping]) -> QueryDescriptor:
    """
    :param raw_query: the query string arguments (request.args or a dict)
    :return: QueryDescriptor
    """
    if not isinstance(raw_query, Mapping):
        return QueryDescriptor()

    fields = {}
    filters = {}
    for arg, val in raw_query.items():
        fields_attr = FIELDS_RE.match(arg)
        if fields_attr:
            fields[fields_attr.group(1)] = frozenset(split_csv(val))
            continue
        filter_attr = FILTER_RE.match(arg)
        if filter_attr and isinstance(val, str):
            filters[filter_attr.group(1)] = val

    return QueryDescriptor(
        fields=fields,
        include=split_csv(raw_query.get("include")),
        filter=filters,
        sort=parse_sort(raw_query.get("sort")),
        page=parse_page(raw_query),
    )


# pylint: disable=too-many-ancestors
class ResdocRequest(Request):
    """
    Parse the jsonapi-related request arguments:
    - header: Content-Type should be "application/vnd.api+json"
    - query args: fields[], include, filter[], sort, page[]
    - body: valid json
    """

    jsonapi_content_types = ["application/json", "application/vnd.api+json"]
    is_jsonapi = False  # indicates whether this is a jsonapi request

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.parse_content_type()
        self.query_descriptor = parse_query(self.args)

    def parse_content_type(self):
        """
        Check if the request content type is jsonapi
        """
        if not isinstance(self.content_type, str):
            return
        content_type = self.content_type.split(";")[0].strip()
        self.is_jsonapi = content_type in self.jsonapi_content_types

    def get_jsonapi_payload(self) -> Dict[str, Any]:
        """
        :return: jsonapi request payload, an empty dict when no body was sent
        """
        if not self.get_data(cache=True):
            return {}
        result = self.get_json(force=True, silent=True)
        if not isinstance(result, dict):
            resdoc.log.warning(f"Invalid JSON Payload: {result!r}")
            raise JsonapiError(code="invalid").with_header(status=HTTPStatus.BAD_REQUEST)
        return result
