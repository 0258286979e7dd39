"""
Money Engine - Document totals under the discount model.

Pure functions with no I/O.  Turns priced lines plus a document-level
discount percentage into the five totals every priced document stores:

    gross_ht         = sum(quantity * unit_price)
    discount_amount  = gross_ht * discount_percent / 100
    net_ht           = gross_ht - discount_amount
    vat              = net_ht * VAT_RATE
    ttc              = net_ht + vat

Line data is coerced, never validated: a missing, non-numeric, NaN or
infinite quantity or price counts as zero.  The discount is not clamped to
[0, 100]; out-of-range values propagate arithmetically.

VAT is a fixed 20% policy of this core, not a configurable rate.

Usage:
    from billing_engines.money import compute_totals

    totals = compute_totals([{"quantity": 3, "unit_price": 100}], 10)
    totals.net_ht       # Decimal("270")
    totals.quantized()  # rounded to cents for storage
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from billing_engines.tracer import traced_engine
from billing_kernel.domain.documents import LineItem
from billing_kernel.domain.values import ZERO, coerce_decimal, round_money

VAT_RATE = Decimal("0.20")

# Rate stored on invoice lines, in percent
VAT_RATE_PERCENT = VAT_RATE * 100

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class MoneyBreakdown:
    """Totals of one priced document.  Unrounded unless quantized()."""

    gross_ht: Decimal
    discount_amount: Decimal
    net_ht: Decimal
    vat: Decimal
    ttc: Decimal

    def quantized(self) -> MoneyBreakdown:
        """Round every total to cents (ROUND_HALF_UP)."""
        return MoneyBreakdown(
            gross_ht=round_money(self.gross_ht),
            discount_amount=round_money(self.discount_amount),
            net_ht=round_money(self.net_ht),
            vat=round_money(self.vat),
            ttc=round_money(self.ttc),
        )

    def as_columns(self) -> dict[str, Decimal]:
        """Stored-total column values, rounded."""
        q = self.quantized()
        return {
            "total_ht_gross": q.gross_ht,
            "total_discount": q.discount_amount,
            "total_ht": q.net_ht,
            "total_tva": q.vat,
            "total_ttc": q.ttc,
        }


def _line_values(line: Mapping[str, Any] | LineItem) -> tuple[Any, Any]:
    if isinstance(line, LineItem):
        return line.quantity, line.unit_price
    if isinstance(line, Mapping):
        return line.get("quantity"), line.get("unit_price")
    return None, None


def gross_of(lines: Iterable[Mapping[str, Any] | LineItem]) -> Decimal:
    """Sum of quantity x unit price over the lines."""
    total = ZERO
    for line in lines:
        quantity, unit_price = _line_values(line)
        total += coerce_decimal(quantity) * coerce_decimal(unit_price)
    return total


@traced_engine("money", "1.0", fingerprint_fields=("lines", "discount_percent"))
def compute_totals(
    lines: Iterable[Mapping[str, Any] | LineItem] | None,
    discount_percent: Any = 0,
) -> MoneyBreakdown:
    """
    Compute the totals of a priced document.

    Args:
        lines: Mappings with ``quantity``/``unit_price`` keys, or LineItem
            records.  None is treated as no lines.
        discount_percent: Document discount, expected in [0, 100].

    Returns:
        Unrounded MoneyBreakdown.  Never raises on malformed line data.
    """
    gross_ht = gross_of(lines or ())
    discount_amount = gross_ht * coerce_decimal(discount_percent) / _HUNDRED
    net_ht = gross_ht - discount_amount
    vat = net_ht * VAT_RATE
    return MoneyBreakdown(
        gross_ht=gross_ht,
        discount_amount=discount_amount,
        net_ht=net_ht,
        vat=vat,
        ttc=net_ht + vat,
    )
