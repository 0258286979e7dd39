"""
Document and line-item records.

Responsibility:
    Explicit record types for the four document kinds and their lines, plus
    the static description of each kind (tables, item foreign key, native
    quantity field, lineage edges).  Everything above the store works with
    these records, never with raw rows.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Lineage edges (downstream column -> upstream kind):

    chained   purchase_orders.quote_id          -> quote
              delivery_notes.purchase_order_id  -> purchase_order
              invoices.delivery_note_id         -> delivery_note
    fanned    delivery_notes.quote_id           -> quote
              invoices.quote_id                 -> quote
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_kernel.exceptions import UnknownDocumentKindError


class DocumentKind(str, Enum):
    """The four document variants of the lineage chain."""

    QUOTE = "quote"
    PURCHASE_ORDER = "purchase_order"
    DELIVERY_NOTE = "delivery_note"
    INVOICE = "invoice"


class DocumentStatus(str, Enum):
    """Statuses this core writes.  Other transitions are driven externally."""

    DRAFT = "draft"
    PENDING = "pending"
    ACCEPTED = "accepted"


@dataclass(frozen=True)
class DocumentSpec:
    """Static storage and lineage description of one document kind."""

    kind: DocumentKind
    label: str
    table: str
    items_table: str
    item_foreign_key: str
    quantity_field: str
    priced: bool
    # (upstream kind, column on this table) for the chained topology
    chained_upstream: tuple[DocumentKind, str] | None = None
    # column pointing at the quote for the fanned topology
    fanned_upstream_column: str | None = None


_SPECS: dict[DocumentKind, DocumentSpec] = {
    DocumentKind.QUOTE: DocumentSpec(
        kind=DocumentKind.QUOTE,
        label="Quote",
        table="quotes",
        items_table="quote_items",
        item_foreign_key="quote_id",
        quantity_field="quantity",
        priced=True,
    ),
    DocumentKind.PURCHASE_ORDER: DocumentSpec(
        kind=DocumentKind.PURCHASE_ORDER,
        label="Purchase Order",
        table="purchase_orders",
        items_table="po_items",
        item_foreign_key="po_id",
        quantity_field="quantity",
        priced=True,
        # Both topologies derive the PO from the quote through the same edge
        chained_upstream=(DocumentKind.QUOTE, "quote_id"),
    ),
    DocumentKind.DELIVERY_NOTE: DocumentSpec(
        kind=DocumentKind.DELIVERY_NOTE,
        label="Delivery Note",
        table="delivery_notes",
        items_table="dn_items",
        item_foreign_key="dn_id",
        quantity_field="quantity_delivered",
        priced=False,
        chained_upstream=(DocumentKind.PURCHASE_ORDER, "purchase_order_id"),
        fanned_upstream_column="quote_id",
    ),
    DocumentKind.INVOICE: DocumentSpec(
        kind=DocumentKind.INVOICE,
        label="Invoice",
        table="invoices",
        items_table="invoice_items",
        item_foreign_key="invoice_id",
        quantity_field="quantity",
        priced=True,
        chained_upstream=(DocumentKind.DELIVERY_NOTE, "delivery_note_id"),
        fanned_upstream_column="quote_id",
    ),
}


def spec_for(kind: DocumentKind | str) -> DocumentSpec:
    """
    Look up the spec of a document kind.

    Raises:
        UnknownDocumentKindError: If ``kind`` names no document kind.
    """
    try:
        return _SPECS[DocumentKind(kind)]
    except ValueError:
        raise UnknownDocumentKindError(str(kind)) from None


def downstream_of(kind: DocumentKind | str) -> DocumentSpec | None:
    """Spec of the kind chained directly below ``kind``, if any."""
    kind = spec_for(kind).kind
    for spec in _SPECS.values():
        if spec.chained_upstream and spec.chained_upstream[0] is kind:
            return spec
    return None


@dataclass(frozen=True)
class LineItem:
    """
    Canonical line item, whatever the document kind.

    ``line_uid`` is the stable identity of a conceptual line across every
    document derived from the same source.  ``quantity`` is the canonical
    quantity (delivered quantity on a delivery note).  ``unit_price`` and
    ``total`` are None on kinds that carry no prices.
    """

    line_uid: str
    description: str = ""
    quantity: Decimal = Decimal("0")
    unit: str | None = None
    unit_price: Decimal | None = None
    total: Decimal | None = None


@dataclass(frozen=True)
class Document:
    """A document header with its normalized items."""

    kind: DocumentKind
    id: UUID
    number: str
    status: str
    date: date | None = None
    client_id: UUID | None = None
    workspace_id: UUID | None = None
    discount_percent: Decimal = Decimal("0")
    content_hash: str | None = None
    upstream_hash_at_sync: str | None = None
    upstream_id: UUID | None = None
    items: tuple[LineItem, ...] = field(default_factory=tuple)

    @property
    def spec(self) -> DocumentSpec:
        return spec_for(self.kind)
