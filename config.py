"""
Application settings.

Settings are read from the environment once, at start-up, after loading the
project's `.env` file. Nothing else in the codebase reads `os.environ`.

Environment variables:
- SUPABASE_URL: Supabase project URL (required)
- SUPABASE_KEY: Supabase API key, server-side key only (required)
- LEDGER_API_BASE_URL: external ledger API root (default: Xero accounting API)
- LEDGER_TENANT_ID: tenant header sent with every ledger request
- LEDGER_ACCESS_TOKEN: bearer token for the ledger API
- LEDGER_TIMEOUT_SECONDS: per-request timeout (default 10)
- PAYMENT_SYNC_DELAY_SECONDS: pause between ledger calls in the payment sync (default 0.1)
- LOG_LEVEL: root log level (default INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

DEFAULT_LEDGER_API_BASE_URL = "https://api.xero.com/api.xro/2.0"

_ENV_PATH = Path(__file__).parent / ".env"


@dataclass(frozen=True, slots=True)
class Settings:
    supabase_url: str
    supabase_key: str
    ledger_api_base_url: str = DEFAULT_LEDGER_API_BASE_URL
    ledger_tenant_id: Optional[str] = None
    ledger_access_token: Optional[str] = None
    ledger_timeout_seconds: float = 10.0
    payment_sync_delay_seconds: float = 0.1
    log_level: str = "INFO"


def _require(env: Mapping[str, str], name: str, hint: str) -> str:
    value = env.get(name)
    if not value:
        raise RuntimeError(f"Missing environment variable: {name}. {hint}")
    return value


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be a number, got {raw!r}") from exc


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env: explicit mapping to read instead of os.environ (the .env file is
             only loaded when reading the real environment)

    Raises:
        RuntimeError: if a required variable is missing or malformed
    """

    if env is None:
        load_dotenv(dotenv_path=_ENV_PATH)
        env = os.environ

    return Settings(
        supabase_url=_require(env, "SUPABASE_URL", "Set SUPABASE_URL to your Supabase project URL."),
        supabase_key=_require(env, "SUPABASE_KEY", "Set SUPABASE_KEY to your Supabase API key."),
        ledger_api_base_url=env.get("LEDGER_API_BASE_URL") or DEFAULT_LEDGER_API_BASE_URL,
        ledger_tenant_id=env.get("LEDGER_TENANT_ID") or None,
        ledger_access_token=env.get("LEDGER_ACCESS_TOKEN") or None,
        ledger_timeout_seconds=_float(env, "LEDGER_TIMEOUT_SECONDS", 10.0),
        payment_sync_delay_seconds=_float(env, "PAYMENT_SYNC_DELAY_SECONDS", 0.1),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )


__all__ = ["DEFAULT_LEDGER_API_BASE_URL", "Settings", "load_settings"]
