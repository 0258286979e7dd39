"""
Module: billing_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines used by
    billing_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel domain/ and utils/.
    MUST NOT import billing_services or billing_config.

Invariants enforced:
    - Purity: engines never read the clock.  Years and dates are passed in.
    - Decimal-only arithmetic: amounts and quantities are Decimal.
    - Totality: engines never raise on their documented input domain.

Usage:
    from billing_engines import compute_totals, diff_items, next_number
"""

from billing_engines.diff import ChangeRecord, DiffResult, diff_items
from billing_engines.money import VAT_RATE, MoneyBreakdown, compute_totals
from billing_engines.numbering import next_counter, next_number
from billing_engines.tracer import traced_engine

__all__ = [
    "ChangeRecord",
    "DiffResult",
    "MoneyBreakdown",
    "VAT_RATE",
    "compute_totals",
    "diff_items",
    "next_counter",
    "next_number",
    "traced_engine",
]
