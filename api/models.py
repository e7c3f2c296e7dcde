"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Sale Models
# ============================================================================

class SaleSummary(BaseModel):
    """Sale row as shown in allocation lists."""
    id: str
    sale_reference: Optional[str] = None
    sale_date: Optional[datetime] = None
    external_invoice_number: Optional[str] = None
    invoice_status: Optional[str] = None
    sale_amount_inc_vat: Optional[Decimal] = None
    sale_amount_ex_vat: Optional[Decimal] = None
    gross_margin: Optional[Decimal] = None
    commissionable_margin: Optional[Decimal] = None
    buyer_id: Optional[str] = None
    buyer_name: str = "Unknown"
    buyer_has_owner: bool = False
    shopper_id: Optional[str] = None
    dismissed: bool = False

    @classmethod
    def from_pooled(cls, pooled) -> "SaleSummary":
        """Build from a `services.allocation_service.PooledSale`."""
        sale = pooled.sale
        return cls(
            id=sale.id,
            sale_reference=sale.sale_reference,
            sale_date=sale.sale_date,
            external_invoice_number=sale.external_invoice_number,
            invoice_status=sale.invoice_status,
            sale_amount_inc_vat=sale.sale_amount_inc_vat,
            sale_amount_ex_vat=sale.sale_amount_ex_vat,
            gross_margin=sale.gross_margin,
            commissionable_margin=sale.commissionable_margin,
            buyer_id=sale.buyer_id,
            buyer_name=pooled.buyer_name,
            buyer_has_owner=pooled.buyer_has_owner,
            shopper_id=sale.shopper_id,
            dismissed=sale.is_dismissed,
        )


class ClaimableSalesResponse(BaseModel):
    """Unallocated sales the caller may claim."""
    sales: List[SaleSummary]
    owner_id: Optional[str] = None  # caller's shopper id

    class Config:
        json_schema_extra = {
            "example": {
                "sales": [],
                "owner_id": "5b0d7c2e-40a1-4a55-9d0b-2f5f7c1f1a10"
            }
        }


class UnallocatedSalesResponse(BaseModel):
    """The whole allocation pool (admin view)."""
    sales: List[SaleSummary]
    total_count: int


class SaleActionResponse(BaseModel):
    """Result of a single-sale state change."""
    success: bool
    sale_id: str
    message: Optional[str] = None


class LinkExternalRequest(BaseModel):
    """Request to link an authored sale to an external import record."""
    external_import_id: str = Field(
        ...,
        min_length=1,
        description="Id of the external_import sale record to fuse into this sale"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "external_import_id": "c3f1e0b4-8a7d-4e57-9b0c-6a2d1f3e4b5a"
            }
        }


class LinkExternalResponse(BaseModel):
    success: bool
    sale_id: str
    external_invoice_number: Optional[str] = None


class AllocateRequest(BaseModel):
    """Request to allocate an unallocated sale to a shopper."""
    shopper_id: str = Field(..., min_length=1, description="Shopper receiving the sale")


class AllocateResponse(BaseModel):
    success: bool
    sale_id: str
    shopper_id: str
    commission_scheme: str
    gross_margin: Decimal
    commission_amount: Decimal


# ============================================================================
# Economics Models
# ============================================================================

class EconomicsUpdateRequest(BaseModel):
    """
    Commercial field edits. Only fields present in the body are changed;
    an explicit null clears the field.
    """
    buy_price: Optional[Decimal] = None
    sale_amount_ex_vat: Optional[Decimal] = None
    sale_amount_inc_vat: Optional[Decimal] = None
    shipping_cost: Optional[Decimal] = None
    card_fees: Optional[Decimal] = None
    direct_costs: Optional[Decimal] = None
    introducer_commission: Optional[Decimal] = None

    class Config:
        extra = "forbid"
        json_schema_extra = {
            "example": {
                "buy_price": "18000.00",
                "shipping_cost": "150.00"
            }
        }


class SaleEconomicsResponse(BaseModel):
    """Commercial and derived fields after an edit."""
    sale_id: str
    buy_price: Optional[Decimal] = None
    sale_amount_ex_vat: Optional[Decimal] = None
    sale_amount_inc_vat: Optional[Decimal] = None
    shipping_cost: Optional[Decimal] = None
    card_fees: Optional[Decimal] = None
    direct_costs: Optional[Decimal] = None
    introducer_commission: Optional[Decimal] = None
    gross_margin: Optional[Decimal] = None
    commissionable_margin: Optional[Decimal] = None


class MarginChangeModel(BaseModel):
    sale_id: str
    reference: str
    old_gross_margin: Optional[Decimal] = None
    new_gross_margin: Decimal
    old_commissionable_margin: Optional[Decimal] = None
    new_commissionable_margin: Decimal


class MarginFixResponse(MarginChangeModel):
    success: bool


class VatFixResponse(BaseModel):
    """A Sale's VAT split after re-deriving it from the branding theme."""
    success: bool
    sale_id: str
    reference: str
    branding_theme: str
    vat_rate: Decimal
    vat_amount: Decimal
    old_sale_amount_ex_vat: Optional[Decimal] = None
    new_sale_amount_ex_vat: Decimal
    old_sale_amount_inc_vat: Optional[Decimal] = None
    new_sale_amount_inc_vat: Decimal
    gross_margin: Decimal
    commissionable_margin: Decimal
    gross_margin_percent: Decimal


# ============================================================================
# Sync Models
# ============================================================================

class StatusSyncResponse(BaseModel):
    success: bool
    sale_id: str
    previous_status: Optional[str] = None
    current_status: str
    changed: bool


class PaymentSyncSummary(BaseModel):
    checked: int
    updated: int
    errors: int


class PaymentSyncError(BaseModel):
    sale_id: str
    invoice_number: Optional[str] = None
    error: str


class PaymentSyncResponse(BaseModel):
    """Payment status poll result. `success` stays true when items failed."""
    success: bool
    summary: PaymentSyncSummary
    errors: List[PaymentSyncError]
    duration_ms: int

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "summary": {"checked": 12, "updated": 3, "errors": 1},
                "errors": [
                    {
                        "sale_id": "9d1f...",
                        "invoice_number": "INV-3012",
                        "error": "External ledger error: API error: 503"
                    }
                ],
                "duration_ms": 2380
            }
        }


# ============================================================================
# Margin Recalculation Models
# ============================================================================

class MarginRecalculationRequest(BaseModel):
    dry_run: bool = Field(True, description="Report drift without writing")
    sale_ids: Optional[List[str]] = Field(
        None,
        description="Restrict to these sales; all active sales when omitted"
    )


class MarginRecalculationSummary(BaseModel):
    processed: int
    needs_update: int
    updated: int
    skipped: int
    errors: int


class MarginErrorDetail(BaseModel):
    sale_id: str
    reference: Optional[str] = None
    error: str


class MarginRecalculationResponse(BaseModel):
    success: bool
    dry_run: bool
    summary: MarginRecalculationSummary
    changes: List[MarginChangeModel]
    error_details: List[MarginErrorDetail]
    duration_ms: int


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    message: str
    context: Optional[Dict[str, Any]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "error": "VALIDATION_ERROR",
                "message": "This external invoice has already been linked or deleted",
                "context": {"import_id": "c3f1e0b4-8a7d-4e57-9b0c-6a2d1f3e4b5a"}
            }
        }
