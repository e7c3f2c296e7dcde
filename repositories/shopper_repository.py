"""
Shopper repository.

Resolves the signed-in staff member to their Shopper record.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from domain.shopper import Shopper
from repositories.table import SupabaseTable, eq

SHOPPERS_TABLE: str = "shoppers"


def _row_to_shopper(row: Mapping[str, Any]) -> Shopper:
    return Shopper(
        id=str(row["id"]),
        name=str(row.get("name") or ""),
        auth_user_id=row.get("auth_user_id"),
        commission_scheme=row.get("commission_scheme"),
    )


class ShopperRepository:
    def __init__(self, table: SupabaseTable):
        self._table = table

    def get(self, shopper_id: str) -> Optional[Shopper]:
        rows = self._table.select([eq("id", shopper_id)], limit=1)
        return _row_to_shopper(rows[0]) if rows else None

    def find_for_user(self, auth_user_id: str, full_name: Optional[str] = None) -> Optional[Shopper]:
        """
        Find the Shopper for an identity.

        Prefers the identity provider's user id; falls back to an exact name
        match for shoppers created before user ids were recorded.
        """

        rows = self._table.select([eq("auth_user_id", auth_user_id)], limit=1)
        if rows:
            return _row_to_shopper(rows[0])
        if full_name:
            rows = self._table.select([eq("name", full_name)], limit=1)
            if rows:
                return _row_to_shopper(rows[0])
        return None


__all__ = ["SHOPPERS_TABLE", "ShopperRepository"]
