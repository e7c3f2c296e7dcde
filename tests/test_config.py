"""
Tests for `config.py`.
"""

from __future__ import annotations

import pytest

from config import DEFAULT_LEDGER_API_BASE_URL, load_settings

REQUIRED = {"SUPABASE_URL": "https://project.supabase.co", "SUPABASE_KEY": "service-key"}


def test_defaults_for_optional_settings() -> None:
    settings = load_settings(REQUIRED)

    assert settings.supabase_url == "https://project.supabase.co"
    assert settings.ledger_api_base_url == DEFAULT_LEDGER_API_BASE_URL
    assert settings.ledger_access_token is None
    assert settings.ledger_timeout_seconds == 10.0
    assert settings.payment_sync_delay_seconds == 0.1
    assert settings.log_level == "INFO"


def test_optional_settings_are_read() -> None:
    settings = load_settings(
        {
            **REQUIRED,
            "LEDGER_API_BASE_URL": "https://ledger.example",
            "LEDGER_TENANT_ID": "tenant-9",
            "LEDGER_ACCESS_TOKEN": "token",
            "LEDGER_TIMEOUT_SECONDS": "2.5",
            "PAYMENT_SYNC_DELAY_SECONDS": "0",
            "LOG_LEVEL": "debug",
        }
    )

    assert settings.ledger_api_base_url == "https://ledger.example"
    assert settings.ledger_tenant_id == "tenant-9"
    assert settings.ledger_timeout_seconds == 2.5
    assert settings.payment_sync_delay_seconds == 0.0
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("missing", ["SUPABASE_URL", "SUPABASE_KEY"])
def test_missing_required_setting_raises(missing: str) -> None:
    env = {k: v for k, v in REQUIRED.items() if k != missing}

    with pytest.raises(RuntimeError, match=missing):
        load_settings(env)


def test_malformed_number_raises() -> None:
    with pytest.raises(RuntimeError, match="LEDGER_TIMEOUT_SECONDS"):
        load_settings({**REQUIRED, "LEDGER_TIMEOUT_SECONDS": "ten"})
