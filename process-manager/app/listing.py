"""Filter, sort and paginate record lists.

Every list screen (clients, processes, actions, the task-like boards and the
formats view) runs the same three steps over the rows fetched from the data
store. Predicates and sort keys are small functions built here, so a screen
only states *what* to filter and sort by.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from app.records import PRIORITIES

Record = dict[str, Any]
Predicate = Callable[[Record], bool]
SortKey = Callable[[Record], Any]

_PRIORITY_RANK = {name: rank for rank, name in enumerate(PRIORITIES, start=1)}


@dataclass
class Page:
    items: list[Record] = field(default_factory=list)
    page: int = 1
    per_page: int = 10
    total: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.per_page) if self.per_page else 0

    @property
    def start(self) -> int:
        """1-based index of the first item shown (0 when empty)."""
        return (self.page - 1) * self.per_page + 1 if self.items else 0

    @property
    def end(self) -> int:
        return self.start + len(self.items) - 1 if self.items else 0

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": self.items,
            "page": self.page,
            "per_page": self.per_page,
            "total": self.total,
            "total_pages": self.total_pages,
        }


# ---------------------------------------------------------------------------
# Field access
# ---------------------------------------------------------------------------

def field_value(record: Record, dotted: str) -> Any:
    """Read ``"client.name"`` style paths through embedded relations."""
    value: Any = record
    for part in dotted.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def distinct_values(records: Iterable[Record], dotted: str) -> list[str]:
    """Sorted non-empty values of a field, e.g. the responsables on a board."""
    values = (field_value(r, dotted) for r in records)
    return sorted({str(v) for v in values if v})


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

def text_search(query: str | None, *dotted_fields: str) -> Predicate:
    """Case-insensitive substring match on any of the given fields.

    A blank query matches everything.
    """
    needle = (query or "").strip().lower()

    def predicate(record: Record) -> bool:
        if not needle:
            return True
        return any(
            needle in str(field_value(record, f) or "").lower() for f in dotted_fields
        )

    return predicate


def field_equals(dotted: str, value: str | None, wildcard: str = "all") -> Predicate:
    """Exact match on a field; *wildcard* (or an empty value) matches everything."""

    def predicate(record: Record) -> bool:
        if value in (None, "", wildcard):
            return True
        return field_value(record, dotted) == value

    return predicate


def all_of(*predicates: Predicate) -> Predicate:
    return lambda record: all(p(record) for p in predicates)


# ---------------------------------------------------------------------------
# Sort keys
# ---------------------------------------------------------------------------

def priority_rank(record: Record) -> int:
    """low=1, medium=2, high=3; unknown priorities sort first."""
    return _PRIORITY_RANK.get(record.get("priority") or "", 0)


def field_key(dotted: str) -> SortKey:
    """Sort by a field, keeping missing values together at the low end."""

    def key(record: Record) -> tuple[int, str]:
        value = field_value(record, dotted)
        if value is None or value == "":
            return (0, "")
        return (1, str(value).lower())

    return key


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def filter_records(records: Iterable[Record], predicate: Predicate | None) -> list[Record]:
    if predicate is None:
        return list(records)
    return [r for r in records if predicate(r)]


def sort_records(
    records: list[Record],
    key: SortKey | None,
    descending: bool = False,
) -> list[Record]:
    """Stable sort; with no key the input order is kept."""
    if key is None:
        return list(records)
    return sorted(records, key=key, reverse=descending)


def paginate(records: list[Record], page: int = 1, per_page: int = 10) -> Page:
    """Slice one page; out-of-range pages are clamped to the nearest valid page."""
    per_page = max(per_page, 1)
    total = len(records)
    last_page = max(math.ceil(total / per_page), 1)
    page = min(max(page, 1), last_page)
    start = (page - 1) * per_page
    return Page(
        items=records[start:start + per_page],
        page=page,
        per_page=per_page,
        total=total,
    )


def run_pipeline(
    records: Iterable[Record],
    predicate: Predicate | None = None,
    key: SortKey | None = None,
    descending: bool = False,
    page: int = 1,
    per_page: int | None = None,
) -> Page:
    """filter -> sort -> paginate. ``per_page=None`` returns everything on one page."""
    rows = sort_records(filter_records(records, predicate), key, descending)
    if per_page is None:
        return Page(items=rows, page=1, per_page=max(len(rows), 1), total=len(rows))
    return paginate(rows, page, per_page)
