"""Pure domain records for the billing kernel -- no I/O."""

from billing_kernel.domain.documents import (
    Document,
    DocumentKind,
    DocumentSpec,
    LineItem,
    spec_for,
)
from billing_kernel.domain.values import coerce_decimal

__all__ = [
    "Document",
    "DocumentKind",
    "DocumentSpec",
    "LineItem",
    "coerce_decimal",
    "spec_for",
]
