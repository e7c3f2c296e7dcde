"""
Tests for `integrations/external_ledger.py` using httpx.MockTransport.

Covers contract rules:
- GET {base}/Invoices/{id} with bearer token, tenant header and JSON accept.
- 404 or an empty Invoices list -> NotFoundError.
- Other error statuses, timeouts and transport errors -> ExternalSystemError.
- UpdatedDateUTC may be ISO-8601 or /Date(ms+zone)/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from config import Settings
from domain.errors import ExternalSystemError, NotFoundError
from integrations.external_ledger import (
    ExternalLedgerClient,
    LedgerCredentials,
    parse_ledger_date,
    static_credentials,
)

BASE_URL = "https://ledger.example/api.xro/2.0/"


def _client(handler) -> ExternalLedgerClient:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return ExternalLedgerClient(
        BASE_URL,
        lambda: LedgerCredentials(access_token="token-123", tenant_id="tenant-9"),
        http_client=http,
    )


def test_get_invoice_sends_credentials_and_parses_payload() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        return httpx.Response(
            200,
            json={
                "Invoices": [
                    {
                        "InvoiceID": "inv-1",
                        "InvoiceNumber": "INV-0042",
                        "Status": "PAID",
                        "AmountDue": 0,
                        "AmountPaid": 27600.0,
                        "UpdatedDateUTC": "/Date(1700000000000+0000)/",
                    }
                ]
            },
        )

    invoice = _client(handler).get_invoice("inv-1")

    assert seen["url"] == "https://ledger.example/api.xro/2.0/Invoices/inv-1"
    assert seen["headers"]["Authorization"] == "Bearer token-123"
    assert seen["headers"]["Xero-Tenant-Id"] == "tenant-9"
    assert seen["headers"]["Accept"] == "application/json"
    assert invoice.status == "PAID"
    assert invoice.invoice_number == "INV-0042"
    assert invoice.amount_paid == Decimal("27600.00")
    assert invoice.updated_at == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404, text="Not Found"),
        httpx.Response(200, json={"Invoices": []}),
    ],
)
def test_missing_invoice_is_not_found(response: httpx.Response) -> None:
    with pytest.raises(NotFoundError):
        _client(lambda request: response).get_invoice("inv-404")


def test_error_status_is_external_system_error() -> None:
    with pytest.raises(ExternalSystemError) as excinfo:
        _client(lambda request: httpx.Response(503, text="busy")).get_invoice("inv-1")

    assert excinfo.value.status_code == 502
    assert excinfo.value.context["status_code"] == 503
    assert excinfo.value.context["service"] == "External ledger"


def test_timeout_is_external_system_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ExternalSystemError, match="timed out"):
        _client(handler).get_invoice("inv-1")


def test_transport_error_is_external_system_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ExternalSystemError):
        _client(handler).get_invoice("inv-1")


def test_non_json_body_is_external_system_error() -> None:
    with pytest.raises(ExternalSystemError):
        _client(lambda request: httpx.Response(200, text="<html>")).get_invoice("inv-1")


def test_parse_ledger_date_formats() -> None:
    assert parse_ledger_date("2025-02-01T10:00:00") == datetime(2025, 2, 1, 10, 0, tzinfo=timezone.utc)
    assert parse_ledger_date("2025-02-01T10:00:00Z") == datetime(2025, 2, 1, 10, 0, tzinfo=timezone.utc)
    assert parse_ledger_date("/Date(0)/") == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert parse_ledger_date("yesterday") is None
    assert parse_ledger_date(None) is None


def test_static_credentials_require_a_token() -> None:
    settings = Settings(supabase_url="https://x.supabase.co", supabase_key="key")

    with pytest.raises(ExternalSystemError):
        static_credentials(settings)()

    configured = Settings(
        supabase_url="https://x.supabase.co",
        supabase_key="key",
        ledger_access_token="abc",
        ledger_tenant_id="t1",
    )
    assert static_credentials(configured)() == LedgerCredentials(access_token="abc", tenant_id="t1")
