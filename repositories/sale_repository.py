"""
Sale repository (persistence).

This module provides *only* persistence operations for the Sale domain
entity: reads, and writes guarded by store-side preconditions. It does not
decide business rules (which Sales may be linked, claimed or dismissed);
services do that and use the conditional writes here so that two racing
requests cannot both succeed.

Every conditional write returns the updated Sale, or None when the
precondition no longer held (the row changed under the caller).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from domain.sale import DEFAULT_CURRENCY, INVOICE_STATUS_PAID, Sale, SaleSource
from repositories.codec import parse_money, parse_utc_datetime, serialize
from repositories.table import (
    Filter,
    SupabaseTable,
    eq,
    false_or_null,
    in_,
    is_null,
    neq_or_null,
    not_null,
)

# Supabase table name for sales.
# Keep this aligned with db/migrations.
SALES_TABLE: str = "sales"

COMMERCIAL_FIELDS: tuple[str, ...] = (
    "buy_price",
    "sale_amount_ex_vat",
    "sale_amount_inc_vat",
    "shipping_cost",
    "card_fees",
    "direct_costs",
    "introducer_commission",
)

_MONEY_FIELDS: tuple[str, ...] = COMMERCIAL_FIELDS + (
    "gross_margin",
    "commissionable_margin",
    "commission_amount",
)

_TIMESTAMP_FIELDS: tuple[str, ...] = (
    "invoice_paid_date",
    "dismissed_at",
    "deleted_at",
    "completed_at",
    "sale_date",
)


def _row_to_sale(row: Mapping[str, Any]) -> Sale:
    """Convert a Supabase row into a Sale."""

    values: Dict[str, Any] = {
        "id": str(row["id"]),
        "source": SaleSource(str(row["source"])),
        "external_invoice_id": row.get("external_invoice_id"),
        "external_invoice_number": row.get("external_invoice_number"),
        "external_invoice_url": row.get("external_invoice_url"),
        "invoice_status": row.get("invoice_status"),
        "branding_theme": row.get("branding_theme"),
        "currency": row.get("currency") or DEFAULT_CURRENCY,
        "needs_allocation": bool(row.get("needs_allocation", False)),
        "shopper_id": row.get("shopper_id"),
        "buyer_id": row.get("buyer_id"),
        "supplier_id": row.get("supplier_id"),
        "dismissed": row.get("dismissed"),
        "dismissed_by": row.get("dismissed_by"),
        "status": row.get("status") or "active",
        "completed_by": row.get("completed_by"),
        "sale_reference": row.get("sale_reference"),
    }
    for field in _MONEY_FIELDS:
        values[field] = parse_money(row.get(field))
    for field in _TIMESTAMP_FIELDS:
        values[field] = parse_utc_datetime(row.get(field))
    return Sale(**values)


def _first(rows: Sequence[Mapping[str, Any]]) -> Optional[Sale]:
    if not rows:
        return None
    return _row_to_sale(rows[0])


@dataclass(frozen=True, slots=True)
class StoredSale:
    """
    An undecoded `sales` row.

    Batch jobs decode each row inside their per-row error handling, so one
    malformed row is reported against its id instead of aborting the scan.
    """

    id: str
    row: Mapping[str, Any]

    @property
    def reference(self) -> str:
        return str(self.row.get("sale_reference") or self.row.get("external_invoice_number") or self.id)

    def decode(self) -> Sale:
        return _row_to_sale(self.row)


def _stored(rows: Sequence[Mapping[str, Any]]) -> List[StoredSale]:
    return [StoredSale(id=str(row["id"]), row=row) for row in rows]


class SaleRepository:
    """Reads and guarded writes for the `sales` table."""

    def __init__(self, table: SupabaseTable):
        self._table = table

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, sale_id: str) -> Optional[Sale]:
        """Fetch one Sale by id, including soft-deleted rows."""

        return _first(self._table.select([eq("id", sale_id)], limit=1))

    def get_many(self, sale_ids: Sequence[str]) -> List[Sale]:
        """Fetch Sales by id in the order requested; unknown ids are dropped."""

        return [stored.decode() for stored in self.scan_many(sale_ids)]

    def scan_many(self, sale_ids: Sequence[str]) -> List[StoredSale]:
        if not sale_ids:
            return []
        by_id = {stored.id: stored for stored in _stored(self._table.select([in_("id", list(sale_ids))]))}
        return [by_id[sale_id] for sale_id in sale_ids if sale_id in by_id]

    def list_active_with_invoice(self, external_invoice_id: str) -> List[Sale]:
        """Non-deleted Sales carrying this external invoice id (at most one once migration 003 is applied)."""

        rows = self._table.select([eq("external_invoice_id", external_invoice_id), is_null("deleted_at")])
        return [_row_to_sale(row) for row in rows]

    def list_allocation_pool(self) -> List[Sale]:
        """Unclaimed, undismissed, active Sales awaiting allocation, newest first."""

        rows = self._table.select(
            [
                eq("needs_allocation", True),
                is_null("deleted_at"),
                is_null("shopper_id"),
                false_or_null("dismissed"),
            ],
            order_by="sale_date",
            descending=True,
        )
        return [_row_to_sale(row) for row in rows]

    def list_unpaid_linked(self) -> List[Sale]:
        """Active Sales linked to an external invoice that is not yet PAID."""

        return [stored.decode() for stored in self.scan_unpaid_linked()]

    def scan_unpaid_linked(self) -> List[StoredSale]:
        return _stored(
            self._table.select(
                [
                    is_null("deleted_at"),
                    neq_or_null("invoice_status", INVOICE_STATUS_PAID),
                    not_null("external_invoice_id"),
                ]
            )
        )

    def list_active(self) -> List[Sale]:
        """Every non-deleted Sale with status 'active'."""

        return [stored.decode() for stored in self.scan_active()]

    def scan_active(self) -> List[StoredSale]:
        return _stored(self._table.select([is_null("deleted_at"), eq("status", "active")]))

    # ------------------------------------------------------------------
    # Unconditional writes
    # ------------------------------------------------------------------

    def update_fields(self, sale_id: str, fields: Mapping[str, Any]) -> Optional[Sale]:
        return _first(self._table.update([eq("id", sale_id)], serialize(fields)))

    def update_margins(self, sale_id: str, gross_margin: Decimal, commissionable_margin: Decimal) -> Optional[Sale]:
        return self.update_fields(
            sale_id,
            {"gross_margin": gross_margin, "commissionable_margin": commissionable_margin},
        )

    def update_invoice_status(
        self, sale_id: str, invoice_status: str, invoice_paid_date: Optional[datetime]
    ) -> Optional[Sale]:
        return self.update_fields(
            sale_id,
            {"invoice_status": invoice_status, "invoice_paid_date": invoice_paid_date},
        )

    # ------------------------------------------------------------------
    # Conditional writes (compare-and-set)
    # ------------------------------------------------------------------

    def _update_where(self, sale_id: str, conditions: Sequence[Filter], fields: Mapping[str, Any]) -> Optional[Sale]:
        return _first(self._table.update([eq("id", sale_id), *conditions], serialize(fields)))

    def mark_dismissed(self, sale_id: str, *, dismissed_by: str, dismissed_at: datetime) -> Optional[Sale]:
        return self._update_where(
            sale_id,
            [eq("needs_allocation", True)],
            {"dismissed": True, "dismissed_at": dismissed_at, "dismissed_by": dismissed_by},
        )

    def clear_dismissed(self, sale_id: str) -> Optional[Sale]:
        return self._update_where(
            sale_id,
            [eq("dismissed", True)],
            {"dismissed": False, "dismissed_at": None, "dismissed_by": None},
        )

    def soft_delete(self, sale_id: str, *, deleted_at: datetime) -> Optional[Sale]:
        return self._update_where(sale_id, [is_null("deleted_at")], {"deleted_at": deleted_at})

    def restore(self, sale_id: str) -> Optional[Sale]:
        return self._update_where(sale_id, [not_null("deleted_at")], {"deleted_at": None})

    def retire_import(self, import_id: str, *, deleted_at: datetime) -> Optional[Sale]:
        """Soft-delete an import record unless it was already consumed."""

        return self._update_where(
            import_id,
            [eq("source", SaleSource.EXTERNAL_IMPORT.value), is_null("deleted_at")],
            {"deleted_at": deleted_at},
        )

    def unretire_import(self, import_id: str) -> Optional[Sale]:
        return self._update_where(
            import_id,
            [eq("source", SaleSource.EXTERNAL_IMPORT.value), not_null("deleted_at")],
            {"deleted_at": None},
        )

    def apply_external_link(self, sale_id: str, link_fields: Mapping[str, Any]) -> Optional[Sale]:
        return self._update_where(sale_id, [eq("source", SaleSource.AUTHORED.value)], link_fields)

    def assign_shopper(
        self,
        sale_id: str,
        shopper_id: str,
        *,
        commission_amount: Optional[Decimal] = None,
    ) -> Optional[Sale]:
        """Take a Sale out of the allocation pool, only if nobody else did first."""

        fields: Dict[str, Any] = {"shopper_id": shopper_id, "needs_allocation": False}
        if commission_amount is not None:
            fields["commission_amount"] = commission_amount
        return self._update_where(
            sale_id,
            [
                is_null("shopper_id"),
                eq("needs_allocation", True),
                is_null("deleted_at"),
                false_or_null("dismissed"),
            ],
            fields,
        )


__all__ = [
    "COMMERCIAL_FIELDS",
    "SALES_TABLE",
    "SaleRepository",
    "StoredSale",
]
