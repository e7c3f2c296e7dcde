"""
External ledger (accounting system) API client.

Only the invoice read used by reconciliation is implemented:

    GET {base_url}/Invoices/{invoice_id}
    -> {"Invoices": [{"InvoiceID", "InvoiceNumber", "Status",
                      "AmountDue", "AmountPaid", "UpdatedDateUTC"}]}

Credentials are opaque to this module. They come from an injected provider
so that whoever owns the OAuth refresh can hand over a fresh token per call.
Every request is bounded by a timeout; there are no retries here.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional

import httpx

from config import Settings
from domain import money
from domain.errors import ExternalSystemError, NotFoundError

logger = logging.getLogger(__name__)

SERVICE_NAME = "External ledger"

# e.g. "/Date(1700000000000+0000)/"
_MS_DATE = re.compile(r"^/Date\((-?\d+)([+-]\d{4})?\)/$")


@dataclass(frozen=True, slots=True)
class LedgerCredentials:
    access_token: str
    tenant_id: Optional[str] = None


CredentialsProvider = Callable[[], LedgerCredentials]


@dataclass(frozen=True, slots=True)
class ExternalInvoice:
    invoice_id: str
    invoice_number: Optional[str]
    status: str
    amount_due: Decimal
    amount_paid: Decimal
    updated_at: Optional[datetime]


def parse_ledger_date(value: Any) -> Optional[datetime]:
    """
    Parse a ledger timestamp.

    The API returns either ISO-8601 or the legacy `/Date(ms+zone)/` form; the
    milliseconds are already UTC, the zone suffix is informational.
    """

    if not value or not isinstance(value, str):
        return None

    match = _MS_DATE.match(value.strip())
    if match:
        millis = int(match.group(1))
        return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=millis)

    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable ledger timestamp: %r", value)
        return None
    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _invoice_from_payload(invoice_id: str, payload: Mapping[str, Any]) -> ExternalInvoice:
    invoices = payload.get("Invoices") or []
    if not invoices:
        raise NotFoundError("External invoice", {"invoice_id": invoice_id})

    raw = invoices[0]
    status = raw.get("Status")
    if not status:
        raise ExternalSystemError(SERVICE_NAME, "invoice response has no Status", {"invoice_id": invoice_id})

    return ExternalInvoice(
        invoice_id=str(raw.get("InvoiceID") or invoice_id),
        invoice_number=raw.get("InvoiceNumber"),
        status=str(status),
        amount_due=money.round_currency(raw.get("AmountDue")),
        amount_paid=money.round_currency(raw.get("AmountPaid")),
        updated_at=parse_ledger_date(raw.get("UpdatedDateUTC")),
    )


class ExternalLedgerClient:
    """Synchronous client for the external ledger's invoice endpoint."""

    def __init__(
        self,
        base_url: str,
        credentials: CredentialsProvider,
        *,
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._credentials = credentials
        self._http = http_client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._http.close()

    def _headers(self) -> dict[str, str]:
        credentials = self._credentials()
        headers = {
            "Authorization": f"Bearer {credentials.access_token}",
            "Accept": "application/json",
        }
        if credentials.tenant_id:
            headers["Xero-Tenant-Id"] = credentials.tenant_id
        return headers

    def get_invoice(self, invoice_id: str) -> ExternalInvoice:
        """
        Fetch the current state of one invoice.

        Raises:
            NotFoundError: the ledger has no such invoice
            ExternalSystemError: the call failed, timed out or returned garbage
        """

        url = f"{self._base_url}/Invoices/{invoice_id}"
        try:
            response = self._http.get(url, headers=self._headers())
        except httpx.TimeoutException as exc:
            raise ExternalSystemError(SERVICE_NAME, "request timed out", {"invoice_id": invoice_id}) from exc
        except httpx.HTTPError as exc:
            raise ExternalSystemError(SERVICE_NAME, f"request failed: {exc}", {"invoice_id": invoice_id}) from exc

        if response.status_code == 404:
            raise NotFoundError("External invoice", {"invoice_id": invoice_id})
        if response.is_error:
            logger.error(
                "Ledger API error for invoice %s: %s %s", invoice_id, response.status_code, response.text[:500]
            )
            raise ExternalSystemError(
                SERVICE_NAME,
                f"API error: {response.status_code}",
                {"invoice_id": invoice_id, "status_code": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ExternalSystemError(SERVICE_NAME, "response was not JSON", {"invoice_id": invoice_id}) from exc

        return _invoice_from_payload(invoice_id, payload)


def static_credentials(settings: Settings) -> CredentialsProvider:
    """Credentials provider backed by the configured access token."""

    def provide() -> LedgerCredentials:
        if not settings.ledger_access_token:
            raise ExternalSystemError(SERVICE_NAME, "LEDGER_ACCESS_TOKEN is not configured")
        return LedgerCredentials(
            access_token=settings.ledger_access_token,
            tenant_id=settings.ledger_tenant_id,
        )

    return provide


__all__ = [
    "CredentialsProvider",
    "ExternalInvoice",
    "ExternalLedgerClient",
    "LedgerCredentials",
    "SERVICE_NAME",
    "parse_ledger_date",
    "static_credentials",
]
