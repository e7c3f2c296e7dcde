"""
Ledger clock and timestamp rules (pure).

Every timestamp stored on a Sale or Buyer (sale date, paid date, dismissal,
deletion) is UTC. Naive or offset timestamps are rejected at construction
so that comparisons and ISO serialization never mix zones.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def require_utc(field: str, value: Optional[datetime]) -> None:
    """Reject a non-UTC timestamp. Absent (None) timestamps are allowed."""

    if value is None:
        return
    offset = value.utcoffset()
    if offset is None:
        raise ValueError(f"{field}: naive datetime, expected UTC")
    if offset != timedelta(0):
        raise ValueError(f"{field}: offset {offset} is not UTC")


def utc_now() -> datetime:
    """Default clock for services; tests inject a fixed one instead."""

    return datetime.now(timezone.utc)


__all__ = ["require_utc", "utc_now"]
