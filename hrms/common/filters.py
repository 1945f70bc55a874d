"""Generic filtering, sorting, and search utilities."""

from __future__ import annotations

import operator
from typing import Any, Callable, Optional, Sequence

from sqlalchemy import Select, String, and_, cast, or_
from sqlalchemy.orm import InstrumentedAttribute

from hrms.common.exceptions import ValidationException


# ── Sorting ─────────────────────────────────────────────────────────

def apply_sorting(
    query: Select,
    model: Any,
    sort: Optional[str],
    *,
    default: Any = None,
) -> Select:
    """
    Parse a sort string like ``"-hire_date"`` and apply ORDER BY.

    * Leading ``-`` → DESC; otherwise ASC.
    * Unknown columns raise ``ValidationException``.
    * With no *sort*, *default* (a column expression) is used if given.
    """
    if not sort:
        return query.order_by(default) if default is not None else query

    descending = sort.startswith("-")
    col_name = sort.lstrip("-")

    col = _get_column(model, col_name)
    if col is None:
        raise ValidationException({"sort": [f"Unknown sort field '{col_name}'."]})
    return query.order_by(col.desc() if descending else col.asc())


# ── Generic filtering ──────────────────────────────────────────────

# Suffix on a filter key → comparison applied to the column
_RANGE_SUFFIXES = (
    ("__from", operator.ge),
    ("__to", operator.le),
)


def _split_filter_key(key: str) -> tuple[str, Callable[[Any, Any], Any]]:
    for suffix, compare in _RANGE_SUFFIXES:
        if key.endswith(suffix):
            return key.removesuffix(suffix), compare
    return key, operator.eq


def apply_filters(
    query: Select,
    model: Any,
    filters: dict[str, Any],
) -> Select:
    """
    AND together one condition per entry of *filters*.

    A bare column name matches by equality. ``<column>__from`` and
    ``<column>__to`` are inclusive lower and upper bounds, used for date
    windows such as ``start_date__from``.

    ``None`` values are skipped, as are names that are not mapped columns.
    """
    conditions = []
    for key, value in filters.items():
        if value is None:
            continue
        name, compare = _split_filter_key(key)
        col = _get_column(model, name)
        if col is not None:
            conditions.append(compare(col, value))

    return query.where(and_(*conditions)) if conditions else query


# ── Free-text search ────────────────────────────────────────────────

def apply_search(
    query: Select,
    model: Any,
    search: Optional[str],
    columns: Sequence[str],
) -> Select:
    """Match *search* case-insensitively as a substring of any of *columns*."""
    if not search or not search.strip():
        return query

    search = search.strip()
    like_conds = [
        cast(col, String).ilike(f"%{search}%")
        for col in (_get_column(model, name) for name in columns)
        if col is not None
    ]
    if not like_conds:
        return query
    return query.where(or_(*like_conds))


# ── Internal helper ─────────────────────────────────────────────────

def _get_column(model: Any, name: str) -> Optional[InstrumentedAttribute]:
    """Safely retrieve a mapped column attribute by name."""
    attr = getattr(model, name, None)
    return attr if isinstance(attr, InstrumentedAttribute) else None
