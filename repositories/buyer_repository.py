"""
Buyer repository.

Reads buyers for claimability checks and records ownership when a shopper
claims a Sale for a buyer nobody owns yet.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Sequence

from domain.buyer import Buyer
from repositories.codec import parse_utc_datetime, serialize
from repositories.table import SupabaseTable, eq, in_, is_null

BUYERS_TABLE: str = "buyers"


def _row_to_buyer(row: Mapping[str, Any]) -> Buyer:
    return Buyer(
        id=str(row["id"]),
        name=row.get("name"),
        owner_id=row.get("owner_id"),
        owner_changed_at=parse_utc_datetime(row.get("owner_changed_at")),
        owner_changed_by=row.get("owner_changed_by"),
    )


class BuyerRepository:
    def __init__(self, table: SupabaseTable):
        self._table = table

    def get(self, buyer_id: str) -> Optional[Buyer]:
        rows = self._table.select([eq("id", buyer_id)], limit=1)
        return _row_to_buyer(rows[0]) if rows else None

    def get_many(self, buyer_ids: Sequence[str]) -> Dict[str, Buyer]:
        """Buyers keyed by id; ids with no row are absent from the result."""

        unique_ids = sorted({buyer_id for buyer_id in buyer_ids if buyer_id})
        if not unique_ids:
            return {}
        rows = self._table.select([in_("id", unique_ids)])
        return {str(row["id"]): _row_to_buyer(row) for row in rows}

    def assign_owner_if_unowned(
        self, buyer_id: str, *, owner_id: str, changed_by: str, changed_at: datetime
    ) -> Optional[Buyer]:
        """Set the owner only while the buyer still has none; None if someone got there first."""

        rows = self._table.update(
            [eq("id", buyer_id), is_null("owner_id")],
            serialize(
                {
                    "owner_id": owner_id,
                    "owner_changed_at": changed_at,
                    "owner_changed_by": changed_by,
                }
            ),
        )
        return _row_to_buyer(rows[0]) if rows else None


__all__ = ["BUYERS_TABLE", "BuyerRepository"]
