"""
Domain: Sale (the ledger entity).

A Sale is one real-world trade. It is either hand-authored in the back office
(`SaleSource.AUTHORED`) or created from the external accounting ledger
(`SaleSource.EXTERNAL_IMPORT`).

Invariants carried by this module:
- Soft delete only: a Sale is never physically removed. Its lifecycle is
  either `Active` or `Deleted(at)`.
- `gross_margin` / `commissionable_margin` are derived fields and are only
  written from `domain.economics.calculate_margins`.
- `dismissed` only makes sense while `needs_allocation` is set; dismissing
  does not soft-delete.

This module contains only pure domain entities: no I/O, no database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from .time import require_utc

INVOICE_STATUS_PAID = "PAID"
DEFAULT_CURRENCY = "GBP"


class SaleSource(str, Enum):
    AUTHORED = "authored"
    EXTERNAL_IMPORT = "external_import"


@dataclass(frozen=True, slots=True)
class Active:
    """Lifecycle state: the Sale appears in active views."""


@dataclass(frozen=True, slots=True)
class Deleted:
    """Lifecycle state: soft-deleted at `at`, still restorable."""

    at: datetime


Lifecycle = Union[Active, Deleted]


@dataclass(frozen=True, slots=True)
class Sale:
    """
    Immutable snapshot of a Sale row.

    State transitions are performed by the record store; services receive a
    fresh snapshot after every write.
    """

    id: str
    source: SaleSource

    # External ledger link
    external_invoice_id: Optional[str] = None
    external_invoice_number: Optional[str] = None
    external_invoice_url: Optional[str] = None
    invoice_status: Optional[str] = None
    invoice_paid_date: Optional[datetime] = None
    branding_theme: Optional[str] = None

    # Commercial fields (GBP by convention)
    buy_price: Optional[Decimal] = None
    sale_amount_ex_vat: Optional[Decimal] = None
    sale_amount_inc_vat: Optional[Decimal] = None
    shipping_cost: Optional[Decimal] = None
    card_fees: Optional[Decimal] = None
    direct_costs: Optional[Decimal] = None
    introducer_commission: Optional[Decimal] = None
    currency: str = DEFAULT_CURRENCY

    # Derived fields
    gross_margin: Optional[Decimal] = None
    commissionable_margin: Optional[Decimal] = None
    commission_amount: Optional[Decimal] = None

    # Allocation
    needs_allocation: bool = False
    shopper_id: Optional[str] = None
    buyer_id: Optional[str] = None
    supplier_id: Optional[str] = None
    dismissed: Optional[bool] = None
    dismissed_at: Optional[datetime] = None
    dismissed_by: Optional[str] = None

    # Lifecycle
    status: str = "active"
    deleted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None

    sale_reference: Optional[str] = None
    sale_date: Optional[datetime] = None

    def __post_init__(self) -> None:
        require_utc("invoice_paid_date", self.invoice_paid_date)
        require_utc("dismissed_at", self.dismissed_at)
        require_utc("deleted_at", self.deleted_at)
        require_utc("completed_at", self.completed_at)
        require_utc("sale_date", self.sale_date)

    @property
    def lifecycle(self) -> Lifecycle:
        if self.deleted_at is None:
            return Active()
        return Deleted(at=self.deleted_at)

    @property
    def is_deleted(self) -> bool:
        return isinstance(self.lifecycle, Deleted)

    @property
    def is_dismissed(self) -> bool:
        # NULL dismissed predates the column and means "not dismissed"
        return bool(self.dismissed)

    @property
    def is_paid(self) -> bool:
        return self.invoice_status == INVOICE_STATUS_PAID

    @property
    def display_reference(self) -> str:
        return self.sale_reference or self.external_invoice_number or self.id


__all__ = [
    "Active",
    "DEFAULT_CURRENCY",
    "Deleted",
    "INVOICE_STATUS_PAID",
    "Lifecycle",
    "Sale",
    "SaleSource",
]
