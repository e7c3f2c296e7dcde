"""
Unallocated Sales API Endpoints.

Admin view of the allocation pool: list, dismiss, restore dismissed
invoices and allocate to a shopper.
"""

from fastapi import APIRouter, Depends

from api.dependencies import ServiceContainer, get_container, require
from api.models import (
    AllocateRequest,
    AllocateResponse,
    SaleActionResponse,
    SaleSummary,
    UnallocatedSalesResponse,
)
from domain.permissions import Capability
from integrations.identity import CallerIdentity

router = APIRouter()


@router.get(
    "/unallocated",
    response_model=UnallocatedSalesResponse,
    summary="List Unallocated Sales",
)
def list_unallocated_sales(
    identity: CallerIdentity = Depends(require(Capability.VIEW_UNALLOCATED)),
    container: ServiceContainer = Depends(get_container),
):
    """Every sale awaiting allocation, regardless of buyer ownership."""
    pool = container.allocation.list_unallocated()
    return UnallocatedSalesResponse(
        sales=[SaleSummary.from_pooled(item) for item in pool],
        total_count=len(pool),
    )


@router.post(
    "/unallocated/{sale_id}/dismiss",
    response_model=SaleActionResponse,
    summary="Dismiss Unallocated Invoice",
)
def dismiss_invoice(
    sale_id: str,
    identity: CallerIdentity = Depends(require(Capability.DISMISS_UNALLOCATED)),
    container: ServiceContainer = Depends(get_container),
):
    """
    Remove an invoice from the allocation pool without deleting it.

    Returns 400 when the sale is not awaiting allocation.
    """
    sale = container.allocation.dismiss(sale_id, identity.user_id)
    return SaleActionResponse(success=True, sale_id=sale.id, message="Invoice dismissed")


@router.post(
    "/unallocated/{sale_id}/restore",
    response_model=SaleActionResponse,
    summary="Restore Dismissed Invoice",
)
def restore_dismissed_invoice(
    sale_id: str,
    identity: CallerIdentity = Depends(require(Capability.RESTORE_DISMISSED)),
    container: ServiceContainer = Depends(get_container),
):
    """Put a dismissed invoice back in the allocation pool."""
    sale = container.allocation.restore_dismissed(sale_id)
    return SaleActionResponse(success=True, sale_id=sale.id, message="Invoice restored")


@router.post(
    "/unallocated/{sale_id}/allocate",
    response_model=AllocateResponse,
    summary="Allocate Sale to Shopper",
)
def allocate_sale(
    sale_id: str,
    request: AllocateRequest,
    identity: CallerIdentity = Depends(require(Capability.ALLOCATE_SALE)),
    container: ServiceContainer = Depends(get_container),
):
    """
    Assign an unallocated sale to a shopper.

    Commission is the shopper's scheme rate (founder 50%, senior 40%,
    standard 30%) of the gross margin.
    """
    outcome = container.allocation.allocate(sale_id, request.shopper_id, identity.user_id)
    return AllocateResponse(
        success=True,
        sale_id=outcome.sale.id,
        shopper_id=outcome.shopper.id,
        commission_scheme=outcome.shopper.scheme,
        gross_margin=outcome.gross_margin,
        commission_amount=outcome.commission_amount,
    )
