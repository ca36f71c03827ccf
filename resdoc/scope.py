# Scope Builder: filter -> sort -> paginate
# - filtering (https://jsonapi.org/format/#fetching-filtering)
# - sorting (https://jsonapi.org/format/#fetching-sorting)
# - pagination (https://jsonapi.org/format/#fetching-pagination)
#
# The provider does the actual data access, the filters are passed on unchanged.
#
from http import HTTPStatus
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlencode
import resdoc
from .config import Config
from .errors import JsonapiError, raise_errors
from .provider import ProviderError, ResourceProvider
from .request import LimitOffset, QueryDescriptor

PAGE_ARGS = ("page[size]", "page[number]", "page[limit]", "page[offset]", "limit", "offset")


class ScopedResult:
    """
    The narrowed collection

    :param items: the resources in the requested window
    :param total: number of resources before pagination
    :param limit: effective window size
    :param offset: effective (non-negative) offset
    """

    def __init__(self, items: List[Any], total: int, limit: int, offset: int, page: Any, links: Optional[Dict[str, str]] = None) -> None:
        self.items = items
        self.total = total
        self.limit = limit
        self.offset = offset
        self.page = page
        self.links = links or {}

    @property
    def meta(self) -> Dict[str, int]:
        return {"count": len(self.items), "total": self.total, "limit": self.limit}

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


def clamp(value: Optional[int], default: int, maximum: int) -> int:
    """
    :return: `value` (or `default` when it's not set) clamped into [1, maximum]
    """
    if value is None:
        value = default
    return max(1, min(value, maximum))


def window(page: Any, total: int, config: Config) -> tuple:
    """
    Translate the requested page into a (limit, offset) window on a collection of `total` items

    A negative offset -k starts the window k items before the end of the collection
    """
    if isinstance(page, LimitOffset):
        limit = clamp(page.limit, config.default_page_size, config.max_page_size)
        offset = page.offset
        if offset < 0:
            offset = max(0, total + offset)
        return limit, offset

    size = clamp(page.size, config.default_page_size, config.max_page_size)
    number = max(1, page.number)
    return size, (number - 1) * size


def filter_and_sort(provider: ResourceProvider, descriptor: QueryDescriptor, config: Config) -> ResourceProvider:
    """
    Apply the filter[] and sort arguments, all invalid arguments are reported
    """
    errors = []
    for field, value in descriptor.filter.items():
        try:
            provider = provider.filter_by(field, value)
        except ProviderError as exc:
            resdoc.log.warning(f"Invalid filter {field}: {exc}")
            errors.append(invalid_parameter(f"filter[{field}]", config, value=value))

    for field, direction in descriptor.sort:
        try:
            provider = provider.order_by(field, direction)
        except ProviderError as exc:
            resdoc.log.warning(f"Invalid sort attribute {field}: {exc}")
            errors.append(invalid_parameter("sort", config, value=field))

    raise_errors(errors)
    return provider


def invalid_parameter(parameter: str, config: Config, **t: Any) -> JsonapiError:
    return JsonapiError(field=parameter, code="invalid", t=t, config=config).with_header(status=HTTPStatus.BAD_REQUEST)


def pagination_links(base_url: str, args: Mapping, page: Any, limit: int, offset: int, total: int) -> Dict[str, str]:
    """
    first, prev, self, next and last links, in the pagination style the client used
    """
    other_args = [(k, v) for k, v in args.items() if k not in PAGE_ARGS]

    def get_link(link_offset):
        if isinstance(page, LimitOffset):
            page_args = [("limit", limit), ("offset", link_offset)]
        else:
            page_args = [("page[number]", link_offset // limit + 1), ("page[size]", limit)]
        return f"{base_url}?{urlencode(other_args + page_args)}"

    last_offset = max(0, (total - 1) // limit * limit)
    links = {"self": get_link(offset), "first": get_link(0), "last": get_link(last_offset)}
    if offset > 0:
        links["prev"] = get_link(max(0, offset - limit))
    if offset + limit < total:
        links["next"] = get_link(offset + limit)
    return links


def apply(
    provider: ResourceProvider,
    descriptor: QueryDescriptor,
    config: Config,
    base_url: Optional[str] = None,
    args: Optional[Mapping] = None,
) -> ScopedResult:
    """
    :param provider: ResourceProvider
    :param descriptor: QueryDescriptor
    :param config: Config holding the page size limits
    :param base_url: url used to create the pagination links, no links are created if not set
    :param args: query arguments to keep in the pagination links
    :return: ScopedResult
    """
    provider = filter_and_sort(provider, descriptor, config)
    page = descriptor.page
    try:
        # the total is needed to translate negative offsets
        total = provider.count()
        limit, offset = window(page, total, config)
        if isinstance(page, LimitOffset):
            provider = provider.limit_offset(limit, offset)
        else:
            provider = provider.page(limit, offset // limit + 1)
        items = provider.all()
    except ProviderError as exc:
        resdoc.log.warning(f"Query failed: {exc}")
        # the failing query argument isn't known here
        raise JsonapiError(code="invalid", pointer="", config=config).with_header(status=HTTPStatus.BAD_REQUEST)

    links = None
    if base_url is not None:
        links = pagination_links(base_url, args or {}, page, limit, offset, total)
    return ScopedResult(items, total, limit, offset, page, links)


def find_member(provider: ResourceProvider, member_id: str, config: Config) -> Any:
    """
    :return: the member of the collection with id `member_id`
    """
    try:
        member = provider.filter_by("id", member_id).first()
    except ProviderError as exc:
        resdoc.log.warning(f"Member lookup failed: {exc}")
        member = None
    if member is None:
        raise JsonapiError(field="id", code="not_found", t={"id": member_id}, pointer="", config=config).with_header(
            status=HTTPStatus.NOT_FOUND
        )
    return member

