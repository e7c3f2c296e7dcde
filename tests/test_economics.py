"""
Tests for `domain/economics.py`.

Covers contract rules:
- gross_margin = sale_amount_ex_vat - buy_price (buy price only).
- commissionable_margin = gross_margin - (shipping + card fees + direct
  costs + introducer commission).
- Missing or malformed inputs count as zero; output is deterministic.
- VAT comes from the branding theme; unknown themes use the standard rate.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from domain.economics import (
    MarginInputs,
    calculate_margins,
    calculate_sale_economics,
    commission_for_scheme,
    ex_vat_with_rate,
    find_branding_theme,
    margin_percent,
    vat_rate_for_branding_theme,
)

MARGIN_SCHEME_THEME = "8173b901-4ea8-498b-a4ba-52a8446ec43f"
STANDARD_THEME = "d68f1fb5-ab36-48f5-809d-2752a2a1d940"


def test_gross_margin_is_sale_minus_buy_price_only() -> None:
    """Verify shipping and fees do not reduce gross margin."""

    result = calculate_margins(
        MarginInputs(sale_amount_ex_vat="23000", buy_price="18000", shipping_cost="250", card_fees="90")
    )

    assert result.gross_margin == Decimal("5000.00")
    assert result.commissionable_margin == Decimal("4660.00")
    assert result.breakdown.total_deductions == Decimal("340.00")


def test_introducer_commission_reduces_commissionable_margin() -> None:
    """Verify 23000/18000 with a 400 introducer fee leaves 4600 commissionable."""

    result = calculate_margins(
        MarginInputs(sale_amount_ex_vat=23000, buy_price=18000, introducer_commission=400)
    )

    assert result.gross_margin == Decimal("5000.00")
    assert result.commissionable_margin == Decimal("4600.00")


def test_missing_and_malformed_inputs_count_as_zero() -> None:
    """Verify nulls and junk never raise."""

    result = calculate_margins(
        MarginInputs(sale_amount_ex_vat="1500", buy_price=None, shipping_cost="n/a", card_fees="")
    )

    assert result.gross_margin == Decimal("1500.00")
    assert result.commissionable_margin == Decimal("1500.00")


def test_margins_can_be_negative() -> None:
    """Verify loss-making sales produce negative margins."""

    result = calculate_margins(MarginInputs(sale_amount_ex_vat="900", buy_price="1000", direct_costs="50"))

    assert result.gross_margin == Decimal("-100.00")
    assert result.commissionable_margin == Decimal("-150.00")


def test_calculation_is_deterministic() -> None:
    """Verify identical inputs give identical outputs."""

    inputs = MarginInputs.from_mapping(
        {"sale_amount_ex_vat": "24999.999996", "buy_price": "0.333", "card_fees": "12.345"}
    )

    assert calculate_margins(inputs) == calculate_margins(inputs)
    assert calculate_margins(inputs).gross_margin == Decimal("24999.67")


def test_vat_rate_comes_from_branding_theme() -> None:
    """Verify VAT lookup by theme id and by theme name."""

    assert vat_rate_for_branding_theme(STANDARD_THEME) == Decimal("0.20")
    assert vat_rate_for_branding_theme(MARGIN_SCHEME_THEME) == Decimal("0.00")
    assert vat_rate_for_branding_theme("CN Export Sales") == Decimal("0.00")
    assert find_branding_theme("CN Export Sales").account_code == "423"


def test_unknown_branding_theme_defaults_to_standard_rate(caplog) -> None:
    """Verify unknown or missing themes fall back to 20% with a warning."""

    with caplog.at_level(logging.WARNING, logger="domain.economics"):
        assert vat_rate_for_branding_theme("no-such-theme") == Decimal("0.20")
        assert vat_rate_for_branding_theme(None) == Decimal("0.20")

    assert len(caplog.records) == 2


def test_ex_vat_with_rate() -> None:
    """Verify VAT is stripped at the given rate and zero-rated amounts pass through."""

    assert ex_vat_with_rate("1200", Decimal("0.20")) == Decimal("1000.00")
    assert ex_vat_with_rate("1200", 0) == Decimal("1200.00")


def test_sale_economics_for_standard_rated_sale() -> None:
    """Verify full economics from an inc-VAT price under the 20% theme."""

    economics = calculate_sale_economics(
        sale_amount_inc_vat="27600",
        buy_price="18000",
        branding_theme=STANDARD_THEME,
        introducer_commission="400",
    )

    assert economics.sale_amount_ex_vat == Decimal("23000.00")
    assert economics.vat_amount == Decimal("4600.00")
    assert economics.gross_margin == Decimal("5000.00")
    assert economics.commissionable_margin == Decimal("4600.00")
    assert economics.gross_margin_percent == Decimal("21.74")


def test_sale_economics_for_margin_scheme_sale_has_no_vat() -> None:
    """Verify zero-rated sales keep the full amount ex-VAT."""

    economics = calculate_sale_economics(
        sale_amount_inc_vat="10000", buy_price="8000", branding_theme=MARGIN_SCHEME_THEME
    )

    assert economics.sale_amount_ex_vat == Decimal("10000.00")
    assert economics.vat_amount == Decimal("0.00")
    assert economics.gross_margin_percent == Decimal("20.00")


def test_margin_percent_of_zero_sale_is_zero() -> None:
    assert margin_percent("100", 0) == Decimal("0.00")


def test_commission_for_scheme() -> None:
    """Verify scheme rates on gross margin; unknown schemes are standard."""

    assert commission_for_scheme("5000", "founder") == Decimal("2500.00")
    assert commission_for_scheme("5000", "Senior") == Decimal("2000.00")
    assert commission_for_scheme("5000", None) == Decimal("1500.00")
    assert commission_for_scheme("5000", "apprentice") == Decimal("1500.00")
