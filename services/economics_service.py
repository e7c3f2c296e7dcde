"""
Sale economics service.

Keeps the stored derived fields (`gross_margin`, `commissionable_margin`) in
step with the commercial fields:

- commercial edits recompute and write margins in the same update;
- `fix_margin` rewrites one Sale's margins;
- `fix_vat` re-derives the ex/inc-VAT split from the branding theme;
- `recalculate_margins` is the batch drift detector. It defaults to a dry
  run that only reports Sales whose stored margins disagree with a fresh
  calculation by more than a penny; write mode persists exactly those rows.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from domain import money
from domain.economics import (
    MarginInputs,
    MarginResult,
    SaleEconomics,
    calculate_margins,
    calculate_sale_economics,
    ex_vat_with_rate,
    find_branding_theme,
    inc_vat_with_rate,
)
from domain.errors import NotFoundError, ValidationError
from domain.sale import Sale
from repositories.sale_repository import COMMERCIAL_FIELDS, SaleRepository
from services.batch import BatchItemError

logger = logging.getLogger(__name__)


def margins_for_sale(sale: Sale) -> MarginResult:
    return calculate_margins(
        MarginInputs(
            sale_amount_ex_vat=sale.sale_amount_ex_vat,
            buy_price=sale.buy_price,
            shipping_cost=sale.shipping_cost,
            card_fees=sale.card_fees,
            direct_costs=sale.direct_costs,
            introducer_commission=sale.introducer_commission,
        )
    )


def margins_drifted(sale: Sale, fresh: MarginResult) -> bool:
    """Stored margins differ from freshly computed ones by more than 0.01 (NULL counts as 0)."""

    return money.differs_by_more_than(sale.gross_margin, fresh.gross_margin) or money.differs_by_more_than(
        sale.commissionable_margin, fresh.commissionable_margin
    )


@dataclass(frozen=True, slots=True)
class MarginChange:
    sale_id: str
    reference: str
    old_gross_margin: Optional[Decimal]
    new_gross_margin: Decimal
    old_commissionable_margin: Optional[Decimal]
    new_commissionable_margin: Decimal


@dataclass(frozen=True, slots=True)
class VatFix:
    sale_id: str
    reference: str
    branding_theme: str
    old_sale_amount_ex_vat: Optional[Decimal]
    old_sale_amount_inc_vat: Optional[Decimal]
    economics: SaleEconomics


@dataclass(slots=True)
class MarginRecalculationResult:
    dry_run: bool
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    changes: List[MarginChange] = field(default_factory=list)
    errors: List[BatchItemError] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def needs_update(self) -> int:
        return len(self.changes)

    @property
    def partial_failure(self) -> bool:
        return bool(self.errors)


class SaleEconomicsService:
    def __init__(self, sales: SaleRepository):
        self._sales = sales

    def update_commercial_fields(self, sale_id: str, changes: Mapping[str, Any]) -> Sale:
        """
        Apply edits to commercial fields and rewrite the derived margins with them.

        Editing `sale_amount_inc_vat` without `sale_amount_ex_vat` re-derives
        the ex-VAT amount from the Sale's branding theme.

        Raises:
            ValidationError: no changes, a non-commercial field, a deleted Sale,
                or an inc-VAT-only edit on a Sale with an unknown branding theme
            NotFoundError: the Sale does not exist
        """

        if not changes:
            raise ValidationError("No commercial fields supplied", {"sale_id": sale_id})
        unknown = sorted(set(changes) - set(COMMERCIAL_FIELDS))
        if unknown:
            raise ValidationError(
                "Only commercial fields can be edited here",
                {"sale_id": sale_id, "fields": unknown},
            )

        sale = self._sales.get(sale_id)
        if sale is None:
            raise NotFoundError("Sale", {"sale_id": sale_id})
        if sale.is_deleted:
            raise ValidationError("Sale has been deleted", {"sale_id": sale_id})

        merged: Dict[str, Any] = {name: getattr(sale, name) for name in COMMERCIAL_FIELDS}
        for name, value in changes.items():
            merged[name] = None if value is None else money.round_currency(value)

        written = set(changes)
        # an inc-VAT edit alone drags the ex-VAT amount along at the theme's rate
        inc_vat_only = "sale_amount_inc_vat" in changes and "sale_amount_ex_vat" not in changes
        if inc_vat_only and merged["sale_amount_inc_vat"] is not None:
            theme = find_branding_theme(sale.branding_theme)
            if theme is None:
                raise ValidationError(
                    "Unknown branding theme; supply sale_amount_ex_vat with the inc-VAT amount",
                    {"sale_id": sale_id, "branding_theme": sale.branding_theme},
                )
            merged["sale_amount_ex_vat"] = ex_vat_with_rate(merged["sale_amount_inc_vat"], theme.vat_rate)
            written.add("sale_amount_ex_vat")

        result = calculate_margins(MarginInputs.from_mapping(merged))
        payload: Dict[str, Any] = {name: merged[name] for name in written}
        payload["gross_margin"] = result.gross_margin
        payload["commissionable_margin"] = result.commissionable_margin

        updated = self._sales.update_fields(sale_id, payload)
        if updated is None:
            raise NotFoundError("Sale", {"sale_id": sale_id})

        logger.info(
            "Commercial fields updated for sale %s (%s); gross=%s commissionable=%s",
            sale_id,
            ", ".join(sorted(changes)),
            result.gross_margin,
            result.commissionable_margin,
        )
        return updated

    def fix_margin(self, sale_id: str) -> MarginChange:
        """Recalculate and write one Sale's margins, whether or not they drifted."""

        sale = self._sales.get(sale_id)
        if sale is None:
            raise NotFoundError("Sale", {"sale_id": sale_id})

        fresh = margins_for_sale(sale)
        if self._sales.update_margins(sale_id, fresh.gross_margin, fresh.commissionable_margin) is None:
            raise NotFoundError("Sale", {"sale_id": sale_id})

        logger.info(
            "Margins fixed for sale %s: gross %s -> %s, commissionable %s -> %s",
            sale_id,
            sale.gross_margin,
            fresh.gross_margin,
            sale.commissionable_margin,
            fresh.commissionable_margin,
        )
        return MarginChange(
            sale_id=sale.id,
            reference=sale.display_reference,
            old_gross_margin=sale.gross_margin,
            new_gross_margin=fresh.gross_margin,
            old_commissionable_margin=sale.commissionable_margin,
            new_commissionable_margin=fresh.commissionable_margin,
        )

    def fix_vat(self, sale_id: str) -> VatFix:
        """
        Re-derive a Sale's VAT split from its branding theme and rewrite margins.

        The inc-VAT total is taken as given (it is what the invoice was issued
        for) and the ex-VAT amount is recomputed from it. A Sale without an
        inc-VAT total gets one computed from its ex-VAT amount instead.

        Raises:
            NotFoundError: the Sale does not exist
            ValidationError: the Sale is deleted or its branding theme is unknown
        """

        sale = self._sales.get(sale_id)
        if sale is None:
            raise NotFoundError("Sale", {"sale_id": sale_id})
        if sale.is_deleted:
            raise ValidationError("Sale has been deleted", {"sale_id": sale_id})

        theme = find_branding_theme(sale.branding_theme)
        if theme is None:
            logger.warning("VAT fix refused for sale %s: unknown branding theme %r", sale_id, sale.branding_theme)
            raise ValidationError(
                "Unknown branding theme; cannot determine the VAT rate",
                {"sale_id": sale_id, "branding_theme": sale.branding_theme},
            )

        if sale.sale_amount_inc_vat is not None:
            inc_vat = money.round_currency(sale.sale_amount_inc_vat)
        else:
            inc_vat = inc_vat_with_rate(sale.sale_amount_ex_vat, theme.vat_rate)

        economics = calculate_sale_economics(
            sale_amount_inc_vat=inc_vat,
            buy_price=sale.buy_price,
            branding_theme=theme.theme_id,
            shipping_cost=sale.shipping_cost,
            card_fees=sale.card_fees,
            direct_costs=sale.direct_costs,
            introducer_commission=sale.introducer_commission,
        )
        updated = self._sales.update_fields(
            sale_id,
            {
                "sale_amount_ex_vat": economics.sale_amount_ex_vat,
                "sale_amount_inc_vat": economics.sale_amount_inc_vat,
                "gross_margin": economics.gross_margin,
                "commissionable_margin": economics.commissionable_margin,
            },
        )
        if updated is None:
            raise NotFoundError("Sale", {"sale_id": sale_id})

        logger.info(
            "VAT fixed for sale %s (%s): ex-VAT %s -> %s, inc-VAT %s -> %s",
            sale_id,
            theme.name,
            sale.sale_amount_ex_vat,
            economics.sale_amount_ex_vat,
            sale.sale_amount_inc_vat,
            economics.sale_amount_inc_vat,
        )
        return VatFix(
            sale_id=sale.id,
            reference=sale.display_reference,
            branding_theme=theme.name,
            old_sale_amount_ex_vat=sale.sale_amount_ex_vat,
            old_sale_amount_inc_vat=sale.sale_amount_inc_vat,
            economics=economics,
        )

    def recalculate_margins(
        self, *, dry_run: bool = True, sale_ids: Optional[Sequence[str]] = None
    ) -> MarginRecalculationResult:
        """
        Detect (and optionally fix) margin drift.

        Args:
            dry_run: report only; never writes. Defaults to True.
            sale_ids: explicit subset; unknown ids are skipped silently. When
                      empty or None, every active, non-deleted Sale is processed.

        Returns:
            MarginRecalculationResult. Per-row failures are listed in
            `errors` and never stop the batch.
        """

        started = time.monotonic()
        result = MarginRecalculationResult(dry_run=dry_run)

        rows = self._sales.scan_many(list(sale_ids)) if sale_ids else self._sales.scan_active()
        logger.info(
            "Starting margin recalculation: dry_run=%s scope=%s sales=%d",
            dry_run,
            "selected" if sale_ids else "all active",
            len(rows),
        )

        for stored in rows:
            result.processed += 1
            try:
                sale = stored.decode()
                fresh = margins_for_sale(sale)
                if not margins_drifted(sale, fresh):
                    result.skipped += 1
                    continue

                result.changes.append(
                    MarginChange(
                        sale_id=sale.id,
                        reference=sale.display_reference,
                        old_gross_margin=sale.gross_margin,
                        new_gross_margin=fresh.gross_margin,
                        old_commissionable_margin=sale.commissionable_margin,
                        new_commissionable_margin=fresh.commissionable_margin,
                    )
                )
                if dry_run:
                    continue

                if self._sales.update_margins(sale.id, fresh.gross_margin, fresh.commissionable_margin) is None:
                    raise NotFoundError("Sale", {"sale_id": sale.id})
                result.updated += 1
                logger.info(
                    "Updated margins for sale %s: gross %s -> %s, commissionable %s -> %s",
                    sale.id,
                    sale.gross_margin,
                    fresh.gross_margin,
                    sale.commissionable_margin,
                    fresh.commissionable_margin,
                )
            except Exception as exc:
                logger.exception("Margin recalculation failed for sale %s", stored.id)
                result.errors.append(BatchItemError.from_exception(stored.id, exc, stored.reference))

        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Margin recalculation complete: processed=%d needs_update=%d updated=%d skipped=%d errors=%d",
            result.processed,
            result.needs_update,
            result.updated,
            result.skipped,
            len(result.errors),
        )
        return result


__all__ = [
    "MarginChange",
    "MarginRecalculationResult",
    "VatFix",
    "SaleEconomicsService",
    "margins_drifted",
    "margins_for_sale",
]
