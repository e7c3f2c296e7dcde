"""
Margin Recalculation API Endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from api.dependencies import ServiceContainer, get_container, require
from api.models import (
    MarginChangeModel,
    MarginErrorDetail,
    MarginRecalculationRequest,
    MarginRecalculationResponse,
    MarginRecalculationSummary,
)
from domain.permissions import Capability
from integrations.identity import CallerIdentity

router = APIRouter()


@router.post(
    "/margins/recalculate",
    response_model=MarginRecalculationResponse,
    summary="Recalculate Margins",
)
def recalculate_margins(
    request: Optional[MarginRecalculationRequest] = None,
    identity: CallerIdentity = Depends(require(Capability.RECALCULATE_MARGINS)),
    container: ServiceContainer = Depends(get_container),
):
    """
    Find sales whose stored margins drifted from the current formula.

    Defaults to a dry run. With `"dry_run": false` only the sales listed in
    `changes` are written.

    **Example request:**
    ```json
    {"dry_run": false, "sale_ids": ["9d1f...", "a4c2..."]}
    ```
    """
    request = request or MarginRecalculationRequest()
    result = container.economics.recalculate_margins(dry_run=request.dry_run, sale_ids=request.sale_ids)
    return MarginRecalculationResponse(
        success=True,
        dry_run=result.dry_run,
        summary=MarginRecalculationSummary(
            processed=result.processed,
            needs_update=result.needs_update,
            updated=result.updated,
            skipped=result.skipped,
            errors=len(result.errors),
        ),
        changes=[
            MarginChangeModel(
                sale_id=change.sale_id,
                reference=change.reference,
                old_gross_margin=change.old_gross_margin,
                new_gross_margin=change.new_gross_margin,
                old_commissionable_margin=change.old_commissionable_margin,
                new_commissionable_margin=change.new_commissionable_margin,
            )
            for change in result.changes
        ],
        error_details=[
            MarginErrorDetail(sale_id=error.sale_id, reference=error.reference, error=error.error)
            for error in result.errors
        ],
        duration_ms=result.duration_ms,
    )
