"""
Tests for `repositories/table.py` against a mocked supabase-py query builder.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from postgrest.exceptions import APIError

from domain.errors import StoreError
from repositories.table import SupabaseTable, eq, false_or_null, in_, is_null, neq_or_null, not_null


def _builder(*responses):
    query = MagicMock(name="query")
    for method in ("select", "update", "eq", "or_", "is_", "in_", "order", "limit", "range"):
        getattr(query, method).return_value = query
    query.not_.is_.return_value = query
    query.execute.side_effect = list(responses)

    client = MagicMock(name="client")
    client.table.return_value = query
    return client, query


def _response(rows, error=None):
    return SimpleNamespace(data=rows, error=error)


def test_filters_translate_to_postgrest_calls() -> None:
    """Verify each Filter maps onto the matching query builder call."""

    client, query = _builder(_response([{"id": "s1"}]))
    table = SupabaseTable(client, "sales")

    rows = table.select(
        [
            eq("needs_allocation", True),
            is_null("deleted_at"),
            not_null("external_invoice_id"),
            neq_or_null("invoice_status", "PAID"),
            false_or_null("dismissed"),
            in_("id", ["s1", "s2"]),
        ],
        order_by="sale_date",
        descending=True,
        limit=5,
    )

    assert rows == [{"id": "s1"}]
    client.table.assert_called_with("sales")
    query.eq.assert_called_once_with("needs_allocation", True)
    query.is_.assert_called_once_with("deleted_at", "null")
    query.not_.is_.assert_called_once_with("external_invoice_id", "null")
    query.or_.assert_any_call("invoice_status.is.null,invoice_status.neq.PAID")
    query.or_.assert_any_call("dismissed.is.null,dismissed.eq.false")
    query.in_.assert_called_once_with("id", ["s1", "s2"])
    query.order.assert_called_once_with("sale_date", desc=True)
    query.limit.assert_called_once_with(5)


def test_select_without_limit_pages_through_all_rows() -> None:
    """Verify unbounded reads keep fetching until a short page."""

    first_page = [{"id": f"s{i}"} for i in range(1000)]
    client, query = _builder(_response(first_page), _response([{"id": "last"}]))

    rows = SupabaseTable(client, "sales").select([is_null("deleted_at")])

    assert len(rows) == 1001
    assert query.range.call_args_list[0].args == (0, 999)
    assert query.range.call_args_list[1].args == (1000, 1999)


def test_conditional_update_returns_changed_rows() -> None:
    client, query = _builder(_response([]))

    changed = SupabaseTable(client, "sales").update(
        [eq("id", "s1"), is_null("shopper_id")], {"shopper_id": "shopper-1"}
    )

    assert changed == []
    query.update.assert_called_once_with({"shopper_id": "shopper-1"})


def test_update_without_filters_is_refused() -> None:
    client, _ = _builder()

    with pytest.raises(ValueError):
        SupabaseTable(client, "sales").update([], {"deleted_at": None})


def test_api_error_becomes_store_error() -> None:
    """Verify PostgREST failures surface as StoreError."""

    client, query = _builder()
    query.execute.side_effect = APIError({"message": "permission denied", "code": "42501"})

    with pytest.raises(StoreError):
        SupabaseTable(client, "sales").select(limit=1)


def test_error_on_response_becomes_store_error() -> None:
    client, _ = _builder(_response(None, error="relation does not exist"))

    with pytest.raises(StoreError):
        SupabaseTable(client, "sales").select(limit=1)


def test_transport_error_becomes_store_error() -> None:
    """Verify dropped connections and timeouts surface as StoreError, like PostgREST failures."""

    client, query = _builder()
    query.execute.side_effect = httpx.ConnectError("connection dropped")

    with pytest.raises(StoreError) as excinfo:
        SupabaseTable(client, "sales").update([eq("id", "s1")], {"external_invoice_id": "inv-1"})

    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
