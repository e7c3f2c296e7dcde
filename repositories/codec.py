"""
Row codec helpers shared by the repositories.

Supabase returns timestamps as ISO-8601 strings and numerics as numbers or
strings; the domain works in UTC datetimes and Decimals.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from domain import money
from domain.time import require_utc


def to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def parse_utc_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a Supabase timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    Naive values are taken to be UTC.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_money(value: Any) -> Optional[Decimal]:
    """NULL stays None; anything else is coerced (malformed values become 0)."""

    if value is None:
        return None
    return money.to_decimal(value)


def serialize(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert domain values (Decimal, datetime, enums) into JSON-safe column values."""

    out: Dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(value, datetime):
            out[key] = to_iso_utc(value, name=key)
        elif isinstance(value, Decimal):
            out[key] = str(value)
        elif isinstance(value, Enum):
            out[key] = value.value
        else:
            out[key] = value
    return out


__all__ = ["parse_money", "parse_utc_datetime", "serialize", "to_iso_utc"]
