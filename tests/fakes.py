"""
In-memory test doubles.

`InMemoryTable` stands in for `repositories.table.SupabaseTable`: it
evaluates the same `Filter`s over a list of dict rows, so repositories and
services run unchanged on top of it. Conditional updates behave like the
real store: rows that fail the filters are left alone and not returned.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from domain.errors import ExternalSystemError, NotFoundError, StoreError
from integrations.external_ledger import SERVICE_NAME, ExternalInvoice
from repositories.table import EQ, FALSE_OR_NULL, IN, IS_NULL, NEQ_OR_NULL, NOT_NULL, Filter

UpdatePredicate = Callable[[Sequence[Filter], Mapping[str, Any]], bool]


def _matches(row: Mapping[str, Any], f: Filter) -> bool:
    value = row.get(f.column)
    if f.op == EQ:
        return value == f.value
    if f.op == NEQ_OR_NULL:
        return value is None or value != f.value
    if f.op == IS_NULL:
        return value is None
    if f.op == NOT_NULL:
        return value is not None
    if f.op == FALSE_OR_NULL:
        return value is None or value is False
    if f.op == IN:
        return value in f.value
    raise ValueError(f"Unsupported filter operator: {f.op!r}")


class InMemoryTable:
    def __init__(self, name: str, rows: Optional[List[Dict[str, Any]]] = None):
        self.name = name
        self.rows: List[Dict[str, Any]] = [dict(row) for row in rows or []]
        self.update_calls: List[Dict[str, Any]] = []
        self._update_failures: List[UpdatePredicate] = []

    def fail_updates_when(self, predicate: UpdatePredicate) -> None:
        """Make matching `update` calls raise StoreError (store outage for that write)."""
        self._update_failures.append(predicate)

    def clear_failures(self) -> None:
        self._update_failures.clear()

    def row(self, row_id: str) -> Dict[str, Any]:
        for row in self.rows:
            if row["id"] == row_id:
                return row
        raise KeyError(row_id)

    def select(
        self,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Mapping[str, Any]]:
        found = [copy.deepcopy(row) for row in self.rows if all(_matches(row, f) for f in filters)]
        if order_by:
            found.sort(key=lambda row: (row.get(order_by) is not None, row.get(order_by) or ""), reverse=descending)
        if limit is not None:
            found = found[:limit]
        return found

    def update(self, filters: Sequence[Filter], payload: Mapping[str, Any]) -> List[Mapping[str, Any]]:
        if not filters:
            raise ValueError("Refusing to update without filters")
        self.update_calls.append(dict(payload))
        for predicate in self._update_failures:
            if predicate(filters, payload):
                raise StoreError(f"Failed to update {self.name}: simulated outage")

        changed = []
        for row in self.rows:
            if all(_matches(row, f) for f in filters):
                row.update(payload)
                changed.append(copy.deepcopy(row))
        return changed


def sale_row(sale_id: str, **overrides: Any) -> Dict[str, Any]:
    """A `sales` row as Supabase would return it."""

    row: Dict[str, Any] = {
        "id": sale_id,
        "source": "authored",
        "external_invoice_id": None,
        "external_invoice_number": None,
        "external_invoice_url": None,
        "invoice_status": None,
        "invoice_paid_date": None,
        "branding_theme": None,
        "buy_price": None,
        "sale_amount_ex_vat": None,
        "sale_amount_inc_vat": None,
        "shipping_cost": None,
        "card_fees": None,
        "direct_costs": None,
        "introducer_commission": None,
        "currency": "GBP",
        "gross_margin": None,
        "commissionable_margin": None,
        "commission_amount": None,
        "needs_allocation": False,
        "shopper_id": None,
        "buyer_id": None,
        "supplier_id": None,
        "dismissed": None,
        "dismissed_at": None,
        "dismissed_by": None,
        "status": "active",
        "deleted_at": None,
        "completed_at": None,
        "completed_by": None,
        "sale_reference": None,
        "sale_date": None,
    }
    row.update(overrides)
    return row


def import_row(import_id: str, invoice_id: str, invoice_number: str, **overrides: Any) -> Dict[str, Any]:
    values: Dict[str, Any] = {
        "source": "external_import",
        "external_invoice_id": invoice_id,
        "external_invoice_number": invoice_number,
        "external_invoice_url": f"https://ledger.example/invoices/{invoice_id}",
        "invoice_status": "AUTHORISED",
        "needs_allocation": True,
    }
    values.update(overrides)
    return sale_row(import_id, **values)


class FakeLedger:
    """Stands in for `ExternalLedgerClient`; statuses and failures are keyed by invoice id."""

    def __init__(self, statuses: Optional[Mapping[str, str]] = None):
        self.statuses: Dict[str, str] = dict(statuses or {})
        self.failures: Dict[str, Exception] = {}
        self.calls: List[str] = []

    def fail(self, invoice_id: str, message: str = "API error: 503") -> None:
        self.failures[invoice_id] = ExternalSystemError(SERVICE_NAME, message, {"invoice_id": invoice_id})

    def get_invoice(self, invoice_id: str) -> ExternalInvoice:
        self.calls.append(invoice_id)
        if invoice_id in self.failures:
            raise self.failures[invoice_id]
        if invoice_id not in self.statuses:
            raise NotFoundError("External invoice", {"invoice_id": invoice_id})
        return ExternalInvoice(
            invoice_id=invoice_id,
            invoice_number=None,
            status=self.statuses[invoice_id],
            amount_due=Decimal("0.00"),
            amount_paid=Decimal("0.00"),
            updated_at=None,
        )

    def close(self) -> None:
        pass


class FixedClock:
    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now
