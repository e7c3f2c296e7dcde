"""
Domain: Allocation pool and claimability rules.

A Sale is in the allocation pool iff:
- needs_allocation is TRUE
- deleted_at is NULL
- shopper_id is NULL
- dismissed is FALSE or NULL

A pooled Sale is claimable by a requesting shopper iff:
- it has no Buyer, or
- its Buyer has no owner, or
- its Buyer is owned by the requester.

Sales owned through another shopper's Buyer stay in the pool (admins still
see them) but are not offered to the requester.
"""

from __future__ import annotations

from typing import Optional

from .buyer import Buyer
from .sale import Sale


def is_in_allocation_pool(sale: Sale) -> bool:
    return (
        sale.needs_allocation
        and not sale.is_deleted
        and sale.shopper_id is None
        and not sale.is_dismissed
    )


def buyer_permits_claim(buyer: Optional[Buyer], shopper_id: str) -> bool:
    """Ownership half of the claim rule, shared by listing and claiming."""

    if buyer is None or not buyer.has_owner:
        return True
    return buyer.owner_id == shopper_id


def is_claimable_by(sale: Sale, buyer: Optional[Buyer], shopper_id: str) -> bool:
    """
    Decide whether `shopper_id` may claim `sale`.

    `buyer` must be the Sale's linked Buyer (or None when the Sale has none).
    """

    if not is_in_allocation_pool(sale):
        return False
    return buyer_permits_claim(buyer, shopper_id)


__all__ = [
    "buyer_permits_claim",
    "is_claimable_by",
    "is_in_allocation_pool",
]
