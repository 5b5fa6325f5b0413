"""Query-parameter filtering and sorting for request list endpoints."""

from __future__ import annotations

import operator
from typing import Any, Callable, Optional

from sqlalchemy import Select, and_
from sqlalchemy.orm import InstrumentedAttribute

# Key suffix → comparison; a key with no known suffix is an equality test
_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "__from": operator.ge,
    "__to": operator.le,
    "__ne": operator.ne,
    "__in": lambda col, value: col.in_(list(value)),
}


# ── Sorting ─────────────────────────────────────────────────────────

def apply_sorting(
    query: Select,
    model: Any,
    sort: Optional[str],
) -> Select:
    """
    Apply ORDER BY from a sort string such as ``"-start_date,created_at"``.

    * Keys are comma separated; a leading ``-`` means DESC.
    * Unknown columns are skipped (sort strings come from query params).
    """
    if not sort:
        return query

    clauses = []
    for key in sort.split(","):
        key = key.strip()
        col = _get_column(model, key.lstrip("-"))
        if col is None:
            continue
        clauses.append(col.desc() if key.startswith("-") else col.asc())
    return query.order_by(*clauses) if clauses else query


# ── Filtering ───────────────────────────────────────────────────────

def _split_key(key: str) -> tuple[str, Callable[[Any, Any], Any]]:
    for suffix, op in _OPERATORS.items():
        if key.endswith(suffix):
            return key.removesuffix(suffix), op
    return key, operator.eq


def apply_filters(
    query: Select,
    model: Any,
    filters: dict[str, Any],
) -> Select:
    """
    AND together one condition per ``filters`` entry.

    ``"start_date__from"`` → ``>=``, ``"__to"`` → ``<=``, ``"__ne"`` → ``!=``,
    ``"__in"`` → ``IN``. ``None`` values and unknown columns are skipped.
    """
    conditions = []
    for key, value in filters.items():
        if value is None:
            continue
        name, op = _split_key(key)
        col = _get_column(model, name)
        if col is not None:
            conditions.append(op(col, value))

    return query.where(and_(*conditions)) if conditions else query


def _get_column(model: Any, name: str) -> Optional[InstrumentedAttribute]:
    attr = getattr(model, name, None)
    return attr if isinstance(attr, InstrumentedAttribute) else None
