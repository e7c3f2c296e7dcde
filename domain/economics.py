"""
Domain: Sale economics (margins, VAT, commission).

Formulas:
- gross_margin = sale_amount_ex_vat - buy_price
  (buy price only; shipping and fees are NOT part of gross margin)
- commissionable_margin = gross_margin - (shipping_cost + card_fees
  + direct_costs + introducer_commission)

Every intermediate and final value passes through `domain.money`, so
identical inputs always produce identical outputs. Nothing in this module
raises on bad numeric input: missing or malformed amounts count as zero,
which is what manual data completion relies on.

VAT rates are never hard-coded per sale; they come from the branding theme
the external ledger invoice was issued under.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional

from . import money

logger = logging.getLogger(__name__)

STANDARD_VAT_RATE = Decimal("0.20")


@dataclass(frozen=True, slots=True)
class BrandingTheme:
    """External ledger invoice template and the VAT treatment it implies."""

    theme_id: str
    name: str
    account_code: str
    treatment: str
    vat_rate: Decimal


BRANDING_THEMES: Mapping[str, BrandingTheme] = {
    theme.theme_id: theme
    for theme in (
        BrandingTheme(
            theme_id="d68f1fb5-ab36-48f5-809d-2752a2a1d940",
            name="CN 20% VAT",
            account_code="425",
            treatment="UK Domestic Sale",
            vat_rate=Decimal("0.20"),
        ),
        BrandingTheme(
            theme_id="8173b901-4ea8-498b-a4ba-52a8446ec43f",
            name="CN Margin Scheme",
            account_code="424",
            treatment="VAT Margin Scheme",
            vat_rate=Decimal("0.00"),
        ),
        BrandingTheme(
            theme_id="82e46ce4-09cf-4764-8342-4f774cf4040e",
            name="CN Export Sales",
            account_code="423",
            treatment="Export Sale (Zero-Rated)",
            vat_rate=Decimal("0.00"),
        ),
    )
}

# Percentage of gross margin paid to the shopper, keyed by commission scheme.
COMMISSION_SCHEME_RATES: Mapping[str, Decimal] = {
    "founder": Decimal("50"),
    "senior": Decimal("40"),
    "standard": Decimal("30"),
}


def find_branding_theme(theme_id_or_name: Optional[str]) -> Optional[BrandingTheme]:
    """Look up a branding theme by ledger id, falling back to its display name."""

    if not theme_id_or_name:
        return None
    theme = BRANDING_THEMES.get(theme_id_or_name)
    if theme is not None:
        return theme
    for candidate in BRANDING_THEMES.values():
        if candidate.name == theme_id_or_name:
            return candidate
    return None


def vat_rate_for_branding_theme(theme_id_or_name: Optional[str]) -> Decimal:
    """
    Resolve the VAT rate for a branding theme.

    Unknown or missing themes fall back to the standard 20% rate (logged).
    """

    if not theme_id_or_name:
        logger.warning("No branding theme provided, defaulting to standard VAT rate")
        return STANDARD_VAT_RATE

    theme = find_branding_theme(theme_id_or_name)
    if theme is None:
        logger.warning("Unknown branding theme %r, defaulting to standard VAT rate", theme_id_or_name)
        return STANDARD_VAT_RATE
    return theme.vat_rate


def ex_vat_with_rate(amount_inc_vat: Any, vat_rate: Any) -> Decimal:
    """Strip VAT from an inc-VAT amount. Zero-rated amounts pass through unchanged."""

    amount = money.round_currency(amount_inc_vat)
    rate = money.to_decimal(vat_rate)
    if rate == 0:
        return amount
    return money.divide(amount, Decimal(1) + rate)


def inc_vat_with_rate(amount_ex_vat: Any, vat_rate: Any) -> Decimal:
    """Add VAT to an ex-VAT amount; the VAT itself is rounded before it is added."""

    amount = money.round_currency(amount_ex_vat)
    rate = money.to_decimal(vat_rate)
    if rate == 0:
        return amount
    return money.add(amount, money.multiply(amount, rate))


def margin_percent(margin: Any, sale_amount_ex_vat: Any) -> Decimal:
    """Margin as a percentage of the ex-VAT sale amount (0 when the sale is 0)."""

    sale = money.round_currency(sale_amount_ex_vat)
    if sale == 0:
        return money.ZERO
    return money.round_currency(money.round_currency(margin) / sale * 100)


@dataclass(frozen=True, slots=True)
class MarginInputs:
    sale_amount_ex_vat: Any = None
    buy_price: Any = None
    shipping_cost: Any = None
    card_fees: Any = None
    direct_costs: Any = None
    introducer_commission: Any = None

    @staticmethod
    def from_mapping(row: Mapping[str, Any]) -> "MarginInputs":
        """Build inputs from a Sale-shaped mapping; absent keys count as zero."""

        return MarginInputs(
            sale_amount_ex_vat=row.get("sale_amount_ex_vat"),
            buy_price=row.get("buy_price"),
            shipping_cost=row.get("shipping_cost"),
            card_fees=row.get("card_fees"),
            direct_costs=row.get("direct_costs"),
            introducer_commission=row.get("introducer_commission"),
        )


@dataclass(frozen=True, slots=True)
class MarginBreakdown:
    sale_amount_ex_vat: Decimal
    buy_price: Decimal
    shipping_cost: Decimal
    card_fees: Decimal
    direct_costs: Decimal
    introducer_commission: Decimal
    total_deductions: Decimal


@dataclass(frozen=True, slots=True)
class MarginResult:
    gross_margin: Decimal
    commissionable_margin: Decimal
    breakdown: MarginBreakdown


def calculate_margins(inputs: MarginInputs) -> MarginResult:
    """
    Calculate gross and commissionable margin.

    This is the only place margins are computed; every write of
    `gross_margin` / `commissionable_margin` must come from here.
    """

    sale_amount_ex_vat = money.round_currency(inputs.sale_amount_ex_vat)
    buy_price = money.round_currency(inputs.buy_price)
    shipping_cost = money.round_currency(inputs.shipping_cost)
    card_fees = money.round_currency(inputs.card_fees)
    direct_costs = money.round_currency(inputs.direct_costs)
    introducer_commission = money.round_currency(inputs.introducer_commission)

    gross_margin = money.subtract(sale_amount_ex_vat, buy_price)
    total_deductions = money.add(shipping_cost, card_fees, direct_costs, introducer_commission)
    commissionable_margin = money.subtract(gross_margin, total_deductions)

    return MarginResult(
        gross_margin=gross_margin,
        commissionable_margin=commissionable_margin,
        breakdown=MarginBreakdown(
            sale_amount_ex_vat=sale_amount_ex_vat,
            buy_price=buy_price,
            shipping_cost=shipping_cost,
            card_fees=card_fees,
            direct_costs=direct_costs,
            introducer_commission=introducer_commission,
            total_deductions=total_deductions,
        ),
    )


@dataclass(frozen=True, slots=True)
class SaleEconomics:
    sale_amount_inc_vat: Decimal
    sale_amount_ex_vat: Decimal
    vat_amount: Decimal
    vat_rate: Decimal
    buy_price: Decimal
    shipping_cost: Decimal
    card_fees: Decimal
    direct_costs: Decimal
    introducer_commission: Decimal
    gross_margin: Decimal
    commissionable_margin: Decimal
    gross_margin_percent: Decimal
    commissionable_margin_percent: Decimal


def calculate_sale_economics(
    *,
    sale_amount_inc_vat: Any,
    buy_price: Any,
    branding_theme: Optional[str] = None,
    shipping_cost: Any = None,
    card_fees: Any = None,
    direct_costs: Any = None,
    introducer_commission: Any = None,
) -> SaleEconomics:
    """Full economics for a sale priced inc-VAT under a given branding theme."""

    inc_vat = money.round_currency(sale_amount_inc_vat)
    vat_rate = vat_rate_for_branding_theme(branding_theme)
    ex_vat = ex_vat_with_rate(inc_vat, vat_rate)
    vat_amount = money.subtract(inc_vat, ex_vat)

    margins = calculate_margins(
        MarginInputs(
            sale_amount_ex_vat=ex_vat,
            buy_price=buy_price,
            shipping_cost=shipping_cost,
            card_fees=card_fees,
            direct_costs=direct_costs,
            introducer_commission=introducer_commission,
        )
    )

    if vat_rate == 0 and abs(vat_amount) > Decimal("0.01"):
        logger.error(
            "Zero-rated sale produced non-zero VAT: theme=%r vat_amount=%s", branding_theme, vat_amount
        )

    breakdown = margins.breakdown
    return SaleEconomics(
        sale_amount_inc_vat=inc_vat,
        sale_amount_ex_vat=ex_vat,
        vat_amount=vat_amount,
        vat_rate=vat_rate,
        buy_price=breakdown.buy_price,
        shipping_cost=breakdown.shipping_cost,
        card_fees=breakdown.card_fees,
        direct_costs=breakdown.direct_costs,
        introducer_commission=breakdown.introducer_commission,
        gross_margin=margins.gross_margin,
        commissionable_margin=margins.commissionable_margin,
        gross_margin_percent=margin_percent(margins.gross_margin, ex_vat),
        commissionable_margin_percent=margin_percent(margins.commissionable_margin, ex_vat),
    )


def commission_for_scheme(gross_margin: Any, scheme: Optional[str]) -> Decimal:
    """Shopper commission on gross margin; unknown or missing schemes use `standard`."""

    key = (scheme or "standard").strip().lower()
    rate = COMMISSION_SCHEME_RATES.get(key, COMMISSION_SCHEME_RATES["standard"])
    return money.percent_of(gross_margin, rate)


__all__ = [
    "BRANDING_THEMES",
    "BrandingTheme",
    "COMMISSION_SCHEME_RATES",
    "MarginBreakdown",
    "MarginInputs",
    "MarginResult",
    "SaleEconomics",
    "calculate_margins",
    "calculate_sale_economics",
    "commission_for_scheme",
    "ex_vat_with_rate",
    "find_branding_theme",
    "inc_vat_with_rate",
    "margin_percent",
    "vat_rate_for_branding_theme",
]
