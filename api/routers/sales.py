"""
Sales API Endpoints.

Single-sale operations: claiming, linking to the external ledger, margin
and commercial edits, soft delete and restore.

Domain errors are not caught here; the application's exception handler
turns them into `ErrorResponse` bodies with the right status.
"""

from fastapi import APIRouter, Depends

from api.dependencies import ServiceContainer, get_container, require
from api.models import (
    ClaimableSalesResponse,
    EconomicsUpdateRequest,
    LinkExternalRequest,
    LinkExternalResponse,
    MarginFixResponse,
    SaleActionResponse,
    SaleEconomicsResponse,
    SaleSummary,
    StatusSyncResponse,
    VatFixResponse,
)
from domain.permissions import Capability
from integrations.identity import CallerIdentity

router = APIRouter()


@router.get(
    "/sales/claimable",
    response_model=ClaimableSalesResponse,
    summary="List Claimable Sales",
    description="Unallocated sales the caller's shopper may claim, newest first."
)
def list_claimable_sales(
    identity: CallerIdentity = Depends(require(Capability.VIEW_CLAIMABLE)),
    container: ServiceContainer = Depends(get_container),
):
    """
    List unallocated sales the caller may claim.

    Sales whose buyer belongs to a different shopper are left out. A caller
    without a shopper profile gets an empty list and a null `owner_id`.
    """
    result = container.allocation.list_claimable(identity.user_id, identity.full_name)
    return ClaimableSalesResponse(
        sales=[SaleSummary.from_pooled(item) for item in result.sales],
        owner_id=result.owner_id,
    )


@router.post(
    "/sales/{sale_id}/claim",
    response_model=SaleActionResponse,
    summary="Claim Sale",
)
def claim_sale(
    sale_id: str,
    identity: CallerIdentity = Depends(require(Capability.CLAIM_SALE)),
    container: ServiceContainer = Depends(get_container),
):
    """
    Claim an unallocated sale for the caller's shopper.

    Returns 409 when another shopper claimed it first and 403 when the
    buyer belongs to someone else.
    """
    sale = container.allocation.claim(sale_id, identity.user_id, identity.full_name)
    return SaleActionResponse(success=True, sale_id=sale.id, message="Sale claimed")


@router.post(
    "/sales/{sale_id}/link-external",
    response_model=LinkExternalResponse,
    summary="Link External Invoice",
)
def link_external_invoice(
    sale_id: str,
    request: LinkExternalRequest,
    identity: CallerIdentity = Depends(require(Capability.LINK_EXTERNAL_INVOICE)),
    container: ServiceContainer = Depends(get_container),
):
    """
    Fuse an authored sale with an external import record.

    The import is retired (soft-deleted) and its invoice identifiers and
    status are copied onto the sale. An import can only ever be linked once.

    **Example request:**
    ```json
    {"external_import_id": "c3f1e0b4-8a7d-4e57-9b0c-6a2d1f3e4b5a"}
    ```
    """
    result = container.reconciliation.link_external_invoice(sale_id, request.external_import_id)
    return LinkExternalResponse(
        success=True,
        sale_id=result.sale.id,
        external_invoice_number=result.external_invoice_number,
    )


@router.post(
    "/sales/{sale_id}/sync-status",
    response_model=StatusSyncResponse,
    summary="Sync Invoice Status",
)
def sync_sale_status(
    sale_id: str,
    identity: CallerIdentity = Depends(require(Capability.SYNC_PAYMENT_STATUS)),
    container: ServiceContainer = Depends(get_container),
):
    """Refresh one sale's invoice status from the external ledger."""
    result = container.reconciliation.sync_sale_status(sale_id)
    return StatusSyncResponse(
        success=True,
        sale_id=result.sale_id,
        previous_status=result.previous_status,
        current_status=result.current_status,
        changed=result.changed,
    )


@router.post(
    "/sales/{sale_id}/fix-margin",
    response_model=MarginFixResponse,
    summary="Fix Sale Margin",
)
def fix_sale_margin(
    sale_id: str,
    identity: CallerIdentity = Depends(require(Capability.FIX_SALE_MARGIN)),
    container: ServiceContainer = Depends(get_container),
):
    """Recalculate and store one sale's margins."""
    change = container.economics.fix_margin(sale_id)
    return MarginFixResponse(
        success=True,
        sale_id=change.sale_id,
        reference=change.reference,
        old_gross_margin=change.old_gross_margin,
        new_gross_margin=change.new_gross_margin,
        old_commissionable_margin=change.old_commissionable_margin,
        new_commissionable_margin=change.new_commissionable_margin,
    )


@router.post(
    "/sales/{sale_id}/fix-vat",
    response_model=VatFixResponse,
    summary="Fix Sale VAT",
    description="Re-derive the ex/inc-VAT split from the sale's branding theme and rewrite margins."
)
def fix_sale_vat(
    sale_id: str,
    identity: CallerIdentity = Depends(require(Capability.FIX_SALE_VAT)),
    container: ServiceContainer = Depends(get_container),
):
    fix = container.economics.fix_vat(sale_id)
    economics = fix.economics
    return VatFixResponse(
        success=True,
        sale_id=fix.sale_id,
        reference=fix.reference,
        branding_theme=fix.branding_theme,
        vat_rate=economics.vat_rate,
        vat_amount=economics.vat_amount,
        old_sale_amount_ex_vat=fix.old_sale_amount_ex_vat,
        new_sale_amount_ex_vat=economics.sale_amount_ex_vat,
        old_sale_amount_inc_vat=fix.old_sale_amount_inc_vat,
        new_sale_amount_inc_vat=economics.sale_amount_inc_vat,
        gross_margin=economics.gross_margin,
        commissionable_margin=economics.commissionable_margin,
        gross_margin_percent=economics.gross_margin_percent,
    )


@router.patch(
    "/sales/{sale_id}/economics",
    response_model=SaleEconomicsResponse,
    summary="Edit Commercial Fields",
)
def update_sale_economics(
    sale_id: str,
    request: EconomicsUpdateRequest,
    identity: CallerIdentity = Depends(require(Capability.EDIT_SALE_ECONOMICS)),
    container: ServiceContainer = Depends(get_container),
):
    """
    Edit buy price, sale amounts or cost fields.

    Gross and commissionable margin are recalculated and written together
    with the edited fields.
    """
    sale = container.economics.update_commercial_fields(sale_id, request.model_dump(exclude_unset=True))
    return SaleEconomicsResponse(
        sale_id=sale.id,
        buy_price=sale.buy_price,
        sale_amount_ex_vat=sale.sale_amount_ex_vat,
        sale_amount_inc_vat=sale.sale_amount_inc_vat,
        shipping_cost=sale.shipping_cost,
        card_fees=sale.card_fees,
        direct_costs=sale.direct_costs,
        introducer_commission=sale.introducer_commission,
        gross_margin=sale.gross_margin,
        commissionable_margin=sale.commissionable_margin,
    )


@router.post(
    "/sales/{sale_id}/delete",
    response_model=SaleActionResponse,
    summary="Soft Delete Sale",
)
def soft_delete_sale(
    sale_id: str,
    identity: CallerIdentity = Depends(require(Capability.SOFT_DELETE_SALE)),
    container: ServiceContainer = Depends(get_container),
):
    """Hide a sale from every active view. It can be restored later."""
    sale = container.allocation.soft_delete(sale_id, identity.user_id)
    return SaleActionResponse(success=True, sale_id=sale.id, message="Sale deleted")


@router.post(
    "/sales/{sale_id}/restore",
    response_model=SaleActionResponse,
    summary="Restore Deleted Sale",
)
def restore_sale(
    sale_id: str,
    identity: CallerIdentity = Depends(require(Capability.RESTORE_DELETED_SALE)),
    container: ServiceContainer = Depends(get_container),
):
    """Bring a soft-deleted sale back into active views."""
    sale = container.allocation.restore(sale_id)
    return SaleActionResponse(success=True, sale_id=sale.id, message="Sale restored")
