"""Filtering, whitelisted sorting, and free-text search utilities."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from sqlalchemy import Select, String, and_, cast, or_

from hr_leave.common.exceptions import ValidationException


# ── Sorting ─────────────────────────────────────────────────────────

def apply_sorting(
    query: Select,
    sort: Optional[str],
    allowed: Mapping[str, Any],
    *,
    default: str,
) -> Select:
    """
    Parse a sort string like ``"-start_date"`` and apply ORDER BY.

    * Leading ``-`` → DESC; otherwise ASC.
    * Only keys of *allowed* are accepted; each maps to a column
      expression, so the raw string never reaches the SQL.
    * Unknown fields raise ``ValidationException``.
    """
    sort = (sort or default).strip()
    descending = sort.startswith("-")
    field = sort.lstrip("-")

    col = allowed.get(field)
    if col is None:
        raise ValidationException(
            {"sort": [
                f"Unsupported sort field '{field}'. "
                f"Allowed: {', '.join(sorted(allowed))}."
            ]}
        )
    return query.order_by(col.desc() if descending else col.asc())


# ── Generic filtering ──────────────────────────────────────────────

def apply_filters(
    query: Select,
    columns: Mapping[str, Any],
    filters: Mapping[str, Any],
) -> Select:
    """
    Apply a dict of filter parameters to a SQLAlchemy ``Select``.

    *columns* maps each base filter name to a column expression.  Key
    suffixes determine the operator:

    ============  ==================
    Suffix        Operator
    ============  ==================
    (none)        ``==``
    ``__from``    ``>=``
    ``__to``      ``<=``
    ``__in``      ``IN (…)``
    ============  ==================

    ``None`` values are silently skipped; unknown names are ignored.
    """
    conditions: list = []

    for key, value in filters.items():
        if value is None:
            continue

        if key.endswith("__from"):
            col = columns.get(key.removesuffix("__from"))
            if col is not None:
                conditions.append(col >= value)

        elif key.endswith("__to"):
            col = columns.get(key.removesuffix("__to"))
            if col is not None:
                conditions.append(col <= value)

        elif key.endswith("__in"):
            col = columns.get(key.removesuffix("__in"))
            if col is not None:
                conditions.append(col.in_(value))

        else:
            col = columns.get(key)
            if col is not None:
                conditions.append(col == value)

    if conditions:
        query = query.where(and_(*conditions))

    return query


# ── Free-text search ────────────────────────────────────────────────

def apply_search(
    query: Select,
    search: Optional[str],
    columns: Sequence[Any],
) -> Select:
    """
    Case-insensitive substring match of *search* across *columns*
    (OR-combined).  Blank input leaves the query untouched.
    """
    if not search or not search.strip():
        return query

    pattern = f"%{search.strip()}%"
    return query.where(
        or_(*(cast(col, String).ilike(pattern) for col in columns))
    )
