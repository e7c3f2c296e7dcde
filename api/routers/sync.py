"""
Sync API Endpoints.

Batch payment-status poll against the external ledger.
"""

from fastapi import APIRouter, Depends

from api.dependencies import ServiceContainer, get_container, require
from api.models import PaymentSyncError, PaymentSyncResponse, PaymentSyncSummary
from domain.permissions import Capability
from integrations.identity import CallerIdentity

router = APIRouter()


@router.post(
    "/sync/payment-status",
    response_model=PaymentSyncResponse,
    summary="Sync Payment Statuses",
    description="Re-read every active, unpaid, linked invoice from the external ledger."
)
def sync_payment_status(
    identity: CallerIdentity = Depends(require(Capability.SYNC_PAYMENT_STATUS)),
    container: ServiceContainer = Depends(get_container),
):
    """
    Poll the external ledger for payment status changes.

    Invoices are checked one at a time. A failure on one invoice is listed
    in `errors` and the rest are still checked, so the response is 200
    even when some (or all) invoices failed.
    """
    result = container.reconciliation.sync_payment_statuses()
    return PaymentSyncResponse(
        success=True,
        summary=PaymentSyncSummary(
            checked=result.checked,
            updated=result.updated,
            errors=len(result.errors),
        ),
        errors=[
            PaymentSyncError(sale_id=error.sale_id, invoice_number=error.reference, error=error.error)
            for error in result.errors
        ],
        duration_ms=result.duration_ms,
    )
