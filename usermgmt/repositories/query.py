"""
Filter, sort and paginate in-memory record sequences.

Every adapter runs its list operations through apply_query so the three
backends return identical pages for identical options.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Any, Generic, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from usermgmt.core.errors import ValidationError
from usermgmt.domain.validation import validate_query_options

T = TypeVar("T")

SortSpec = Union[Mapping[str, str], Sequence[Tuple[str, str]]]

_MISSING = object()


@dataclass
class QueryOptions:
    filter: Optional[Mapping[str, Any]] = None
    sort: Optional[SortSpec] = None
    limit: Optional[int] = None
    offset: int = 0

    @classmethod
    def coerce(cls, value: Union["QueryOptions", Mapping[str, Any], None]) -> "QueryOptions":
        """Accept None, QueryOptions or a plain mapping; raise ValidationError on bad shape."""
        if value is None:
            return cls()
        if isinstance(value, QueryOptions):
            raw = {"filter": value.filter, "sort": value.sort, "limit": value.limit, "offset": value.offset}
        else:
            raw = value
        errors = validate_query_options(raw)
        if errors:
            raise ValidationError(errors)
        return cls(
            filter=raw.get("filter"),
            sort=raw.get("sort"),
            limit=raw.get("limit"),
            offset=raw.get("offset") or 0,
        )

    @property
    def sort_keys(self) -> List[Tuple[str, str]]:
        if not self.sort:
            return []
        if isinstance(self.sort, Mapping):
            return list(self.sort.items())
        return [tuple(pair) for pair in self.sort]


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    total: int = 0


def _value(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name, _MISSING)
    return getattr(record, name, _MISSING)


def matches(record: Any, filter_: Optional[Mapping[str, Any]]) -> bool:
    if not filter_:
        return True
    for name, expected in filter_.items():
        actual = _value(record, name)
        if actual is _MISSING or actual != expected:
            return False
    return True


def _compare_values(a: Any, b: Any) -> int:
    if a is _MISSING or b is _MISSING or a is None or b is None:
        return 0
    try:
        if a < b:
            return -1
        if a > b:
            return 1
    except TypeError:
        # values of unrelated types have no natural order
        return 0
    return 0


def _comparator(keys: List[Tuple[str, str]]):
    def compare(left: Any, right: Any) -> int:
        for name, direction in keys:
            result = _compare_values(_value(left, name), _value(right, name))
            if result:
                return result if direction == "asc" else -result
        return 0

    return compare


def apply_query(records: Sequence[T], options: Union[QueryOptions, Mapping[str, Any], None] = None) -> Page[T]:
    """Filter, then sort, then paginate. ``total`` counts filter matches only."""
    opts = QueryOptions.coerce(options)
    items = [record for record in records if matches(record, opts.filter)]
    total = len(items)

    keys = opts.sort_keys
    if keys:
        items.sort(key=cmp_to_key(_comparator(keys)))

    offset = opts.offset or 0
    if opts.limit is not None:
        items = items[offset : offset + opts.limit]
    elif offset:
        items = items[offset:]
    return Page(items=items, total=total)
