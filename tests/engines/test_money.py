"""
Tests for the Money Engine (billing_engines/money.py).

Covers:
- The discount/VAT law on a worked example
- Defensive coercion of malformed line data
- Unclamped discounts
- Rounding for storage
"""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from billing_engines.money import VAT_RATE, MoneyBreakdown, compute_totals
from billing_kernel.domain.documents import LineItem
from billing_kernel.domain.values import round_money


class TestMoneyLaw:
    """gross -> discount -> net -> VAT -> TTC."""

    def test_worked_example(self):
        totals = compute_totals([{"quantity": 3, "unit_price": 100}], 10)

        assert totals.gross_ht == Decimal("300")
        assert totals.discount_amount == Decimal("30")
        assert totals.net_ht == Decimal("270")
        assert totals.vat == Decimal("54")
        assert totals.ttc == Decimal("324")

    def test_multiple_lines_sum(self):
        totals = compute_totals(
            [
                {"quantity": 2, "unit_price": "12.50"},
                {"quantity": "1.5", "unit_price": 10},
            ],
            0,
        )
        assert totals.gross_ht == Decimal("40")
        assert totals.ttc == Decimal("48")

    def test_line_item_records_accepted(self):
        lines = [LineItem(line_uid="L1", quantity=Decimal("4"), unit_price=Decimal("25"))]
        assert compute_totals(lines, 0).gross_ht == Decimal("100")

    def test_vat_rate_is_twenty_percent(self):
        assert VAT_RATE == Decimal("0.20")

    @given(
        quantity=st.decimals(min_value=0, max_value=10000, places=3),
        unit_price=st.decimals(min_value=0, max_value=10000, places=2),
        discount=st.decimals(min_value=0, max_value=100, places=2),
    )
    @settings(max_examples=200)
    def test_law_holds(self, quantity, unit_price, discount):
        totals = compute_totals([{"quantity": quantity, "unit_price": unit_price}], discount)

        assert totals.gross_ht == quantity * unit_price
        assert totals.net_ht == totals.gross_ht - totals.discount_amount
        assert totals.vat == totals.net_ht * VAT_RATE
        assert totals.ttc == totals.net_ht + totals.vat


class TestMalformedInput:
    """Malformed line data counts as zero; nothing raises."""

    @pytest.mark.parametrize(
        "bad",
        [None, "", "abc", float("nan"), float("inf"), Decimal("NaN"), True, object()],
    )
    def test_bad_quantity_is_zero(self, bad):
        totals = compute_totals(
            [{"quantity": bad, "unit_price": 10}, {"quantity": 1, "unit_price": 5}], 0,
        )
        assert totals.gross_ht == Decimal("5")

    def test_missing_keys(self):
        assert compute_totals([{}], 0).gross_ht == Decimal("0")

    def test_no_lines(self):
        totals = compute_totals(None, 10)
        assert totals == MoneyBreakdown(
            gross_ht=Decimal("0"),
            discount_amount=Decimal("0"),
            net_ht=Decimal("0"),
            vat=Decimal("0"),
            ttc=Decimal("0"),
        )

    def test_bad_discount_is_zero(self):
        assert compute_totals([{"quantity": 1, "unit_price": 10}], "ten").net_ht == Decimal("10")

    def test_discount_is_not_clamped(self):
        totals = compute_totals([{"quantity": 1, "unit_price": 100}], 150)
        assert totals.net_ht == Decimal("-50")
        assert totals.vat == Decimal("-10")


class TestQuantized:
    """Rounding for storage."""

    def test_rounds_half_up_to_cents(self):
        totals = compute_totals([{"quantity": 1, "unit_price": "0.125"}], 0).quantized()
        assert totals.gross_ht == Decimal("0.13")
        assert totals.vat == Decimal("0.03")

    def test_as_columns(self):
        columns = compute_totals([{"quantity": 3, "unit_price": 100}], 10).as_columns()
        assert columns == {
            "total_ht_gross": Decimal("300.00"),
            "total_discount": Decimal("30.00"),
            "total_ht": Decimal("270.00"),
            "total_tva": Decimal("54.00"),
            "total_ttc": Decimal("324.00"),
        }

    def test_large_totals_quantize(self):
        totals = compute_totals([{"quantity": "1e20", "unit_price": "1e9"}], 0).quantized()
        assert totals.gross_ht == Decimal("1e29")
        assert totals.ttc == Decimal("1.2e29")
        assert totals.gross_ht.as_tuple().exponent == -2

    def test_round_money_keeps_half_up_beyond_default_precision(self):
        value = Decimal("12345678901234567890123456789.005")
        assert round_money(value) == Decimal("12345678901234567890123456789.01")
