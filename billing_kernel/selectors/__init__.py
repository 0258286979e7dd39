"""Selectors for the billing kernel (read side)."""

from billing_kernel.selectors.lineage_selector import (
    Lineage,
    LineageSelector,
    SyncCheck,
)

__all__ = [
    "Lineage",
    "LineageSelector",
    "SyncCheck",
]
