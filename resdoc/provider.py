"""
Resource providers: the collections the Scope Builder narrows

A provider never changes in place, every narrowing call returns a new provider:
    provider.filter_by("body", "hello").order_by("id", "desc").limit_offset(10, 0).all()

- ListProvider wraps an in-memory sequence
- QueryProvider wraps a SQLAlchemy query
"""
import abc
import sqlalchemy
import sqlalchemy.exc
from sqlalchemy.orm import Query
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple
from .request import DESC


class ProviderError(Exception):
    """
    Raised when the provider can't handle a field, eg. filtering on an unknown attribute
    """

    def __init__(self, field: str, message: str = "") -> None:
        super().__init__(message or f"Invalid field '{field}'")
        self.field = field


class ResourceProvider(abc.ABC):
    @abc.abstractmethod
    def filter_by(self, field: str, value: str) -> "ResourceProvider":
        """
        :return: provider holding the resources matching `value` for `field`
        """

    @abc.abstractmethod
    def order_by(self, field: str, direction: str) -> "ResourceProvider":
        """
        Successive calls add sort keys: the first call determines the primary sort key
        """

    @abc.abstractmethod
    def limit_offset(self, limit: int, offset: int) -> "ResourceProvider":
        pass

    @abc.abstractmethod
    def count(self) -> int:
        pass

    @abc.abstractmethod
    def all(self) -> List[Any]:
        pass

    def page(self, size: int, number: int) -> "ResourceProvider":
        """
        :param number: 1-indexed page number
        """
        return self.limit_offset(size, (number - 1) * size)

    def first(self) -> Optional[Any]:
        result = self.limit_offset(1, 0).all()
        return result[0] if result else None

    def __iter__(self) -> Iterator[Any]:
        return iter(self.all())


def _matches(item_val: Any, value: str) -> bool:
    # csv filter values match any of the values, cfr. sqla column.in_()
    candidates = value.split(",")
    return item_val in candidates or str(item_val) in candidates


def _sort_key(field: str):
    def key(item):
        val = getattr(item, field, None)
        # None values are sorted last
        return (val is None, val)

    return key


class ListProvider(ResourceProvider):
    """
    Provider for a sequence of objects, fields are looked up with getattr
    """

    def __init__(self, items: Iterable[Any], fields: Optional[Iterable[str]] = None, ordering: Sequence[Tuple[str, str]] = ()) -> None:
        """
        :param items: the resources
        :param fields: the names that can be used to filter and sort, by default any attribute of the items
        :param ordering: (field, direction) sort keys
        """
        self.items = list(items)
        self.fields = None if fields is None else set(fields)
        self.ordering = tuple(ordering)

    def _check_field(self, field: str) -> None:
        if self.fields is not None:
            if field not in self.fields:
                raise ProviderError(field)
        elif self.items and not all(hasattr(item, field) for item in self.items):
            raise ProviderError(field)

    def _copy(self, items: Iterable[Any], ordering: Sequence[Tuple[str, str]]) -> "ListProvider":
        return ListProvider(items, self.fields, ordering)

    def _ordered(self) -> List[Any]:
        items = list(self.items)
        # python sorts are stable: sort by the least significant key first
        for field, direction in reversed(self.ordering):
            try:
                items.sort(key=_sort_key(field), reverse=direction == DESC)
            except TypeError as exc:
                raise ProviderError(field, f"Can't sort on '{field}': {exc}")
        return items

    def filter_by(self, field: str, value: str) -> "ListProvider":
        self._check_field(field)
        items = [item for item in self.items if _matches(getattr(item, field, None), str(value))]
        return self._copy(items, self.ordering)

    def order_by(self, field: str, direction: str) -> "ListProvider":
        self._check_field(field)
        return self._copy(self.items, self.ordering + ((field, direction),))

    def limit_offset(self, limit: int, offset: int) -> "ListProvider":
        items = self._ordered()[offset : offset + limit]
        return self._copy(items, ())

    def count(self) -> int:
        return len(self.items)

    def all(self) -> List[Any]:
        return self._ordered()


class QueryProvider(ResourceProvider):
    """
    Provider for a SQLAlchemy query on a mapped class,
    filtering and sorting is allowed on the mapped columns ("id" is the first primary key)
    """

    def __init__(self, query: Any, model: Any) -> None:
        self.query = query
        self.model = model

    def _column(self, field: str) -> Any:
        mapper = sqlalchemy.inspect(self.model)
        if field == "id" and "id" not in mapper.column_attrs:
            return getattr(self.model, mapper.get_property_by_column(mapper.primary_key[0]).key)
        if field not in mapper.column_attrs:
            raise ProviderError(field)
        return getattr(self.model, field)

    def filter_by(self, field: str, value: str) -> "QueryProvider":
        column = self._column(field)
        values = str(value).split(",")
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            python_type = str
        if python_type in (int, float):
            try:
                values = [python_type(val) for val in values]
            except ValueError:
                raise ProviderError(field, f"Invalid value for '{field}': {value}")
        return QueryProvider(self.query.filter(column.in_(values)), self.model)

    def order_by(self, field: str, direction: str) -> "QueryProvider":
        column = self._column(field)
        column = column.desc() if direction == DESC else column.asc()
        return QueryProvider(self.query.order_by(column), self.model)

    def limit_offset(self, limit: int, offset: int) -> "QueryProvider":
        return QueryProvider(self.query.offset(offset).limit(limit), self.model)

    def count(self) -> int:
        try:
            return self.query.count()
        except sqlalchemy.exc.SQLAlchemyError as exc:
            raise ProviderError("count", str(exc))

    def all(self) -> List[Any]:
        try:
            return self.query.all()
        except sqlalchemy.exc.SQLAlchemyError as exc:
            raise ProviderError("query", str(exc))


def as_provider(collection: Any, model: Any = None) -> ResourceProvider:
    """
    :param collection: ResourceProvider, sqla query (eg. a lazy="dynamic" relationship) or iterable
    :param model: the mapped class of the query
    :return: ResourceProvider for the collection
    """
    if isinstance(collection, ResourceProvider):
        return collection
    if isinstance(collection, Query):
        if model is None:
            model = collection.column_descriptions[0]["entity"]
        return QueryProvider(collection, model)
    if collection is None:
        return ListProvider([])
    return ListProvider(collection)
