"""
Table gateway over the Supabase (PostgREST) client.

Repositories express reads and conditional writes as a list of `Filter`s;
this module translates them into supabase-py query builder calls. The store
is only ever asked for equality/null filters, `IN` lists and a single sort
column.

Conditional updates (`update` with filters beyond the primary key) are the
compare-and-set primitive the services rely on: the returned row list is
empty when the precondition no longer holds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

import httpx
from postgrest.exceptions import APIError  # type: ignore[import-not-found]

from domain.errors import StoreError

logger = logging.getLogger(__name__)

# PostgREST caps responses (1000 rows by default on Supabase).
_PAGE_SIZE: int = 1000

EQ = "eq"
NEQ_OR_NULL = "neq_or_null"
IS_NULL = "is_null"
NOT_NULL = "not_null"
FALSE_OR_NULL = "false_or_null"
IN = "in"


@dataclass(frozen=True, slots=True)
class Filter:
    column: str
    op: str
    value: Any = None


def eq(column: str, value: Any) -> Filter:
    return Filter(column, EQ, value)


def neq_or_null(column: str, value: Any) -> Filter:
    """column IS NULL OR column <> value (plain neq would drop the NULLs)."""
    return Filter(column, NEQ_OR_NULL, value)


def is_null(column: str) -> Filter:
    return Filter(column, IS_NULL)


def not_null(column: str) -> Filter:
    return Filter(column, NOT_NULL)


def false_or_null(column: str) -> Filter:
    return Filter(column, FALSE_OR_NULL)


def in_(column: str, values: Sequence[Any]) -> Filter:
    return Filter(column, IN, list(values))


def _apply_filters(query: Any, filters: Sequence[Filter]) -> Any:
    for f in filters:
        if f.op == EQ:
            query = query.eq(f.column, f.value)
        elif f.op == NEQ_OR_NULL:
            query = query.or_(f"{f.column}.is.null,{f.column}.neq.{f.value}")
        elif f.op == IS_NULL:
            query = query.is_(f.column, "null")
        elif f.op == NOT_NULL:
            query = query.not_.is_(f.column, "null")
        elif f.op == FALSE_OR_NULL:
            query = query.or_(f"{f.column}.is.null,{f.column}.eq.false")
        elif f.op == IN:
            query = query.in_(f.column, f.value)
        else:
            raise ValueError(f"Unsupported filter operator: {f.op!r}")
    return query


def _execute(query: Any, action: str) -> List[Mapping[str, Any]]:
    try:
        response = query.execute()
    except (APIError, httpx.HTTPError) as exc:
        logger.error("Store call failed while trying to %s: %s", action, exc)
        raise StoreError(f"Failed to {action}: {exc}") from exc

    error = getattr(response, "error", None)
    if error:
        logger.error("Store returned an error while trying to %s: %s", action, error)
        raise StoreError(f"Failed to {action}: {error}")

    return list(getattr(response, "data", None) or [])


class SupabaseTable:
    """Thin gateway for one Supabase table."""

    def __init__(self, client: Any, name: str):
        self._client = client
        self.name = name

    def select(
        self,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Mapping[str, Any]]:
        """
        Fetch rows matching all filters.

        Without a limit, pages through the table so callers see every row.
        """

        rows: List[Mapping[str, Any]] = []
        start = 0
        while True:
            query = self._client.table(self.name).select("*")
            query = _apply_filters(query, filters)
            if order_by:
                query = query.order(order_by, desc=descending)

            if limit is not None:
                return _execute(query.limit(limit), f"select from {self.name}")

            page = _execute(query.range(start, start + _PAGE_SIZE - 1), f"select from {self.name}")
            rows.extend(page)
            if len(page) < _PAGE_SIZE:
                return rows
            start += _PAGE_SIZE

    def update(self, filters: Sequence[Filter], payload: Mapping[str, Any]) -> List[Mapping[str, Any]]:
        """Update rows matching all filters; returns the rows that were changed."""

        if not filters:
            raise ValueError("Refusing to update without filters")
        query = self._client.table(self.name).update(dict(payload))
        query = _apply_filters(query, filters)
        return _execute(query, f"update {self.name}")


__all__ = [
    "Filter",
    "SupabaseTable",
    "eq",
    "false_or_null",
    "in_",
    "is_null",
    "neq_or_null",
    "not_null",
]
