"""
Domain: Buyer (the trading desk's client).

A Buyer may be owned by one Shopper. Ownership gates which unallocated
Sales a shopper is allowed to claim (see `domain.allocation`).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .time import require_utc


@dataclass(frozen=True, slots=True)
class Buyer:
    id: str
    name: Optional[str] = None
    owner_id: Optional[str] = None  # Shopper id
    owner_changed_at: Optional[datetime] = None
    owner_changed_by: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc("owner_changed_at", self.owner_changed_at)

    @property
    def has_owner(self) -> bool:
        return bool(self.owner_id)
