"""
Allocation & ownership service.

Handles:
- Listing unallocated Sales a shopper may claim (buyer ownership rules in
  `domain.allocation`)
- Claiming by a shopper, and allocation to a shopper by operations staff
- Dismissing unallocated invoices and restoring dismissed ones
- Soft delete and restore of Sales

Every state change is a conditional write in the repository, so a stale
request fails loudly instead of overwriting a change it never saw.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from domain.allocation import buyer_permits_claim, is_claimable_by, is_in_allocation_pool
from domain.buyer import Buyer
from domain.economics import commission_for_scheme
from domain.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from domain.sale import Sale
from domain.shopper import Shopper
from domain.time import utc_now
from repositories.buyer_repository import BuyerRepository
from repositories.sale_repository import SaleRepository
from repositories.shopper_repository import ShopperRepository
from services.economics_service import margins_for_sale

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PooledSale:
    """An unallocated Sale together with its Buyer (if any)."""

    sale: Sale
    buyer: Optional[Buyer]

    @property
    def buyer_name(self) -> str:
        return (self.buyer.name if self.buyer else None) or "Unknown"

    @property
    def buyer_has_owner(self) -> bool:
        return self.buyer is not None and self.buyer.has_owner


@dataclass(frozen=True, slots=True)
class ClaimableSales:
    sales: List[PooledSale]
    owner_id: Optional[str]  # the requester's shopper id, None without a shopper profile


@dataclass(frozen=True, slots=True)
class AllocationOutcome:
    sale: Sale
    shopper: Shopper
    gross_margin: Decimal
    commission_amount: Decimal


class AllocationService:
    def __init__(
        self,
        sales: SaleRepository,
        buyers: BuyerRepository,
        shoppers: ShopperRepository,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._sales = sales
        self._buyers = buyers
        self._shoppers = shoppers
        self._clock = clock

    def _require_sale(self, sale_id: str) -> Sale:
        sale = self._sales.get(sale_id)
        if sale is None:
            raise NotFoundError("Sale", {"sale_id": sale_id})
        return sale

    def _pool_with_buyers(self) -> List[PooledSale]:
        pool = self._sales.list_allocation_pool()
        buyers = self._buyers.get_many([sale.buyer_id for sale in pool if sale.buyer_id])
        return [PooledSale(sale=sale, buyer=buyers.get(sale.buyer_id or "")) for sale in pool]

    # ------------------------------------------------------------------
    # Claiming
    # ------------------------------------------------------------------

    def list_unallocated(self) -> List[PooledSale]:
        """The whole allocation pool, regardless of buyer ownership (admin view)."""

        return self._pool_with_buyers()

    def list_claimable(self, user_id: str, full_name: Optional[str] = None) -> ClaimableSales:
        """
        Unallocated Sales the requesting user's shopper may claim, newest first.

        A user without a shopper profile gets an empty list, not an error.
        """

        shopper = self._shoppers.find_for_user(user_id, full_name)
        if shopper is None:
            logger.warning("No shopper record found for user %s", user_id)
            return ClaimableSales(sales=[], owner_id=None)

        pool = self._pool_with_buyers()
        claimable = [item for item in pool if is_claimable_by(item.sale, item.buyer, shopper.id)]
        logger.info(
            "Claimable sales for shopper %s: %d of %d in pool", shopper.id, len(claimable), len(pool)
        )
        return ClaimableSales(sales=claimable, owner_id=shopper.id)

    def claim(self, sale_id: str, user_id: str, full_name: Optional[str] = None) -> Sale:
        """
        Assign an unallocated Sale to the requesting user's shopper.

        If the Sale's Buyer has no owner yet, the claimant becomes its owner.

        Raises:
            NotFoundError: the Sale does not exist
            ValidationError: no shopper profile, Sale deleted or not awaiting allocation
            UnauthorizedError: the Buyer belongs to another shopper
            ConflictError: another shopper claimed it first
        """

        shopper = self._shoppers.find_for_user(user_id, full_name)
        if shopper is None:
            raise ValidationError("No shopper profile found for your account", {"user_id": user_id})

        sale = self._require_sale(sale_id)
        if sale.is_deleted:
            raise ValidationError("Sale has been deleted", {"sale_id": sale_id})
        # checked before needs_allocation, which a claim clears
        if sale.shopper_id:
            raise ConflictError("This sale has already been claimed by another shopper", {"sale_id": sale_id})
        if not sale.needs_allocation:
            raise ValidationError("This sale does not need allocation", {"sale_id": sale_id})
        if sale.is_dismissed:
            raise ValidationError("This invoice has been dismissed", {"sale_id": sale_id})

        buyer = self._buyers.get(sale.buyer_id) if sale.buyer_id else None
        if not buyer_permits_claim(buyer, shopper.id):
            logger.warning(
                "Claim refused for sale %s: buyer %s owned by %s, requester %s",
                sale_id,
                sale.buyer_id,
                buyer.owner_id if buyer else None,
                shopper.id,
            )
            raise UnauthorizedError(
                "This buyer is assigned to a different shopper",
                {"sale_id": sale_id, "buyer_id": sale.buyer_id},
            )

        claimed = self._sales.assign_shopper(sale_id, shopper.id)
        if claimed is None:
            logger.warning("Claim of sale %s lost a race", sale_id)
            raise ConflictError("This sale was just claimed by someone else", {"sale_id": sale_id})

        if buyer is not None and not buyer.has_owner:
            owned = self._buyers.assign_owner_if_unowned(
                buyer.id, owner_id=shopper.id, changed_by=user_id, changed_at=self._clock()
            )
            if owned is None:
                logger.info("Buyer %s was given an owner concurrently; ownership left unchanged", buyer.id)

        logger.info("Sale %s claimed by shopper %s", sale_id, shopper.id)
        return claimed

    def allocate(self, sale_id: str, shopper_id: str, actor_id: str) -> AllocationOutcome:
        """
        Allocate an unallocated Sale to a shopper and record their commission.

        Commission is the shopper's scheme rate applied to gross margin.
        """

        sale = self._require_sale(sale_id)
        shopper = self._shoppers.get(shopper_id)
        if shopper is None:
            raise NotFoundError("Shopper", {"shopper_id": shopper_id})
        if not is_in_allocation_pool(sale):
            raise ValidationError("This invoice is not in the unallocated list", {"sale_id": sale_id})

        gross_margin = margins_for_sale(sale).gross_margin
        commission = commission_for_scheme(gross_margin, shopper.scheme)

        allocated = self._sales.assign_shopper(sale_id, shopper.id, commission_amount=commission)
        if allocated is None:
            raise ConflictError("This sale was allocated by someone else", {"sale_id": sale_id})

        logger.info(
            "Sale %s allocated to shopper %s by %s (scheme=%s, gross=%s, commission=%s)",
            sale_id,
            shopper.id,
            actor_id,
            shopper.scheme,
            gross_margin,
            commission,
        )
        return AllocationOutcome(
            sale=allocated, shopper=shopper, gross_margin=gross_margin, commission_amount=commission
        )

    # ------------------------------------------------------------------
    # Dismissal
    # ------------------------------------------------------------------

    def dismiss(self, sale_id: str, actor_id: str) -> Sale:
        """
        Hide an unallocated invoice from the allocation pool without deleting it.

        Raises:
            NotFoundError: the Sale does not exist
            ValidationError: the Sale is not (or no longer) awaiting allocation
        """

        sale = self._require_sale(sale_id)
        if not sale.needs_allocation or sale.is_deleted:
            raise ValidationError("This invoice is not in the unallocated list", {"sale_id": sale_id})
        if sale.is_dismissed:
            raise ValidationError("This invoice has already been dismissed", {"sale_id": sale_id})

        dismissed = self._sales.mark_dismissed(sale_id, dismissed_by=actor_id, dismissed_at=self._clock())
        if dismissed is None:
            raise ValidationError("This invoice is not in the unallocated list", {"sale_id": sale_id})

        logger.info("Invoice %s dismissed by %s", sale.external_invoice_number or sale_id, actor_id)
        return dismissed

    def restore_dismissed(self, sale_id: str) -> Sale:
        sale = self._require_sale(sale_id)
        if not sale.is_dismissed:
            raise ValidationError("This invoice is not dismissed", {"sale_id": sale_id})

        restored = self._sales.clear_dismissed(sale_id)
        if restored is None:
            raise ValidationError("This invoice is not dismissed", {"sale_id": sale_id})

        logger.info("Dismissed invoice %s restored", sale.external_invoice_number or sale_id)
        return restored

    # ------------------------------------------------------------------
    # Soft delete
    # ------------------------------------------------------------------

    def soft_delete(self, sale_id: str, actor_id: str) -> Sale:
        sale = self._require_sale(sale_id)
        if sale.is_deleted:
            raise ValidationError("Sale is already deleted", {"sale_id": sale_id})

        deleted = self._sales.soft_delete(sale_id, deleted_at=self._clock())
        if deleted is None:
            raise ValidationError("Sale is already deleted", {"sale_id": sale_id})

        logger.info("Sale %s soft-deleted by %s", sale_id, actor_id)
        return deleted

    def restore(self, sale_id: str) -> Sale:
        """
        Bring a soft-deleted Sale back into active views.

        Raises:
            NotFoundError: the Sale does not exist
            ValidationError: the Sale is not deleted, or its external invoice
                is now carried by another active Sale
        """

        sale = self._require_sale(sale_id)
        if not sale.is_deleted:
            logger.warning("Restore requested for sale %s which is not deleted", sale_id)
            raise ValidationError("Sale is not deleted", {"sale_id": sale_id})

        # a linked import shares its invoice id with the authored sale it was fused into
        if sale.external_invoice_id:
            holders = [
                other.id
                for other in self._sales.list_active_with_invoice(sale.external_invoice_id)
                if other.id != sale_id
            ]
            if holders:
                logger.warning(
                    "Restore of sale %s refused: invoice %s is linked to sale %s",
                    sale_id,
                    sale.external_invoice_id,
                    holders[0],
                )
                raise ValidationError(
                    f"External invoice already linked to sale {holders[0]}",
                    {"sale_id": sale_id, "linked_sale_id": holders[0]},
                )

        restored = self._sales.restore(sale_id)
        if restored is None:
            raise ValidationError("Sale is not deleted", {"sale_id": sale_id})

        logger.info("Sale %s restored", sale_id)
        return restored


__all__ = [
    "AllocationOutcome",
    "AllocationService",
    "ClaimableSales",
    "PooledSale",
]
