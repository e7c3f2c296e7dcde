"""
Domain: Shopper (salesperson earning commission on Sales).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class Shopper:
    id: str
    name: str
    auth_user_id: Optional[str] = None  # identity provider user id
    commission_scheme: Optional[str] = None  # founder, senior, standard

    @property
    def scheme(self) -> str:
        return (self.commission_scheme or "standard").lower()
