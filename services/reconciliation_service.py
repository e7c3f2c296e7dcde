"""
External ledger reconciliation service.

Linking fuses an authored Sale with an external import record:

1) retire the import with a conditional soft-delete (the at-most-one-link
   guard: a second link of the same import finds nothing to retire);
2) copy the invoice identifiers and status onto the authored Sale;
3) if (2) fails, un-retire the import. If that also fails the ledger is
   half-linked and `LinkIntegrityError` names both records.

The payment-status poll walks every active, unpaid, linked Sale one at a
time, asks the external ledger for the invoice status and writes only
when it changed. One Sale's failure never stops the batch.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from domain.errors import LinkIntegrityError, NotFoundError, ValidationError
from domain.sale import INVOICE_STATUS_PAID, Sale, SaleSource
from domain.time import utc_now
from integrations.external_ledger import ExternalLedgerClient
from repositories.sale_repository import SaleRepository
from services.batch import BatchItemError

logger = logging.getLogger(__name__)

DEFAULT_SYNC_DELAY_SECONDS = 0.1


@dataclass(frozen=True, slots=True)
class LinkResult:
    sale: Sale
    import_id: str

    @property
    def external_invoice_number(self) -> Optional[str]:
        return self.sale.external_invoice_number


@dataclass(frozen=True, slots=True)
class StatusSyncResult:
    sale_id: str
    previous_status: Optional[str]
    current_status: str
    changed: bool


@dataclass(slots=True)
class PaymentSyncResult:
    checked: int = 0
    updated: int = 0
    errors: List[BatchItemError] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def partial_failure(self) -> bool:
        return bool(self.errors)


def paid_date_for_status(status: str, now: datetime) -> Optional[datetime]:
    """PAID stamps the time the change was observed; any other status clears it."""

    return now if status == INVOICE_STATUS_PAID else None


class ReconciliationService:
    def __init__(
        self,
        sales: SaleRepository,
        ledger: ExternalLedgerClient,
        *,
        delay_seconds: float = DEFAULT_SYNC_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._sales = sales
        self._ledger = ledger
        self._delay_seconds = delay_seconds
        self._sleep = sleep
        self._clock = clock

    # ------------------------------------------------------------------
    # Linking
    # ------------------------------------------------------------------

    def link_external_invoice(self, sale_id: str, import_id: str) -> LinkResult:
        """
        Link an authored Sale to an external import record.

        Raises:
            NotFoundError: either record does not exist
            ValidationError: wrong record sources, import already linked or deleted
            LinkIntegrityError: the link failed and the import could not be restored
        """

        if sale_id == import_id:
            raise ValidationError("A sale cannot be linked to itself", {"sale_id": sale_id})

        target = self._sales.get(sale_id)
        if target is None:
            raise NotFoundError("Sale", {"sale_id": sale_id})
        imported = self._sales.get(import_id)
        if imported is None:
            raise NotFoundError("External import", {"import_id": import_id})

        if target.source != SaleSource.AUTHORED:
            raise ValidationError(
                "Only authored sales can be linked to an external invoice",
                {"sale_id": sale_id, "source": target.source.value},
            )
        if imported.source != SaleSource.EXTERNAL_IMPORT:
            raise ValidationError(
                "Selected record is not an external import",
                {"import_id": import_id, "source": imported.source.value},
            )
        if imported.is_deleted:
            raise ValidationError(
                "This external invoice has already been linked or deleted", {"import_id": import_id}
            )

        retired = self._sales.retire_import(import_id, deleted_at=self._clock())
        if retired is None:
            logger.warning("Link of import %s to sale %s lost a race", import_id, sale_id)
            raise ValidationError(
                "This external invoice has already been linked or deleted", {"import_id": import_id}
            )

        link_fields = {
            "external_invoice_id": imported.external_invoice_id,
            "external_invoice_number": imported.external_invoice_number,
            "external_invoice_url": imported.external_invoice_url,
            "invoice_status": imported.invoice_status,
            "invoice_paid_date": imported.invoice_paid_date,
        }
        try:
            linked = self._sales.apply_external_link(sale_id, link_fields)
        except Exception as exc:
            # the import is already retired; undo before propagating
            self._undo_retire(sale_id, import_id, exc)
            raise
        if linked is None:
            failure = ValidationError(
                "Sale could not be linked; it is no longer an authored sale", {"sale_id": sale_id}
            )
            self._undo_retire(sale_id, import_id, failure)
            raise failure

        logger.info(
            "Linked sale %s to external invoice %s (import %s retired)",
            sale_id,
            imported.external_invoice_number,
            import_id,
        )
        return LinkResult(sale=linked, import_id=import_id)

    def _undo_retire(self, sale_id: str, import_id: str, cause: Exception) -> None:
        context = {"sale_id": sale_id, "import_id": import_id}
        try:
            restored = self._sales.unretire_import(import_id)
        except Exception as exc:
            logger.critical("Link rollback failed for import %s: %s", import_id, exc)
            raise LinkIntegrityError(
                "Link failed and the external import could not be restored", context
            ) from cause

        if restored is None:
            logger.critical("Link rollback found import %s no longer retired", import_id)
            raise LinkIntegrityError(
                "Link failed and the external import could not be restored", context
            ) from cause

        logger.warning("Link of import %s to sale %s failed; import restored", import_id, sale_id)

    # ------------------------------------------------------------------
    # Payment status
    # ------------------------------------------------------------------

    def _apply_status(self, sale: Sale, status: str) -> bool:
        if status == sale.invoice_status:
            return False
        if self._sales.update_invoice_status(sale.id, status, paid_date_for_status(status, self._clock())) is None:
            raise NotFoundError("Sale", {"sale_id": sale.id})
        logger.info(
            "Invoice %s status: %s -> %s", sale.external_invoice_number or sale.id, sale.invoice_status, status
        )
        return True

    def sync_sale_status(self, sale_id: str) -> StatusSyncResult:
        """Refresh one Sale's invoice status from the external ledger."""

        sale = self._sales.get(sale_id)
        if sale is None:
            raise NotFoundError("Sale", {"sale_id": sale_id})
        if not sale.external_invoice_id:
            raise ValidationError("Sale is not linked to an external invoice", {"sale_id": sale_id})

        invoice = self._ledger.get_invoice(sale.external_invoice_id)
        changed = self._apply_status(sale, invoice.status)
        return StatusSyncResult(
            sale_id=sale.id,
            previous_status=sale.invoice_status,
            current_status=invoice.status,
            changed=changed,
        )

    def sync_payment_statuses(self) -> PaymentSyncResult:
        """
        Poll the external ledger for every active, unpaid, linked Sale.

        Calls are made one at a time with a fixed pause between them (none
        after the last). Per-Sale failures are collected in the result.
        """

        started = time.monotonic()
        result = PaymentSyncResult()

        rows = self._sales.scan_unpaid_linked()
        logger.info("Starting payment status sync for %d invoices", len(rows))

        for index, stored in enumerate(rows):
            try:
                sale = stored.decode()
                invoice = self._ledger.get_invoice(sale.external_invoice_id or "")
                result.checked += 1
                if self._apply_status(sale, invoice.status):
                    result.updated += 1
            except Exception as exc:
                logger.exception("Payment status sync failed for sale %s", stored.id)
                result.errors.append(
                    BatchItemError.from_exception(
                        stored.id,
                        exc,
                        stored.row.get("external_invoice_number") or stored.row.get("external_invoice_id"),
                    )
                )

            if index < len(rows) - 1:
                self._sleep(self._delay_seconds)

        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Payment status sync complete: checked=%d updated=%d errors=%d",
            result.checked,
            result.updated,
            len(result.errors),
        )
        return result


__all__ = [
    "DEFAULT_SYNC_DELAY_SECONDS",
    "LinkResult",
    "PaymentSyncResult",
    "ReconciliationService",
    "StatusSyncResult",
    "paid_date_for_status",
]
