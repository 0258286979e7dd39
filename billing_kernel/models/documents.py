"""
Module: billing_kernel.models.documents
Responsibility: ORM persistence for the four document kinds (Quote, Purchase
    Order, Delivery Note, Invoice) and their line items.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - At most one directly-derived document per source: every lineage
      foreign key carries a UNIQUE constraint.
    - line_uid is NOT NULL on every item table and unique per document;
      it is the join key for diffing.
    Lineage edges are nullable foreign keys on the downstream table with
    ON DELETE SET NULL, so deleting an upstream document never leaves a
    dangling edge.

Persisted lineage state:
    content_hash           -- fingerprint of this document's own items
    upstream_hash_at_sync  -- fingerprint of the upstream items at the last
                              copy or sync (downstream kinds only)

Stored totals (total_ht_gross .. total_ttc) are a cache re-derivable from the
items and discount_percent; they are never read back as a source of truth.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TimestampedBase, UUIDString

_MONEY = Numeric(38, 9)


class DocumentHeaderMixin:
    """Columns shared by every document header."""

    number: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")
    date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    client_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    workspace_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    discount_percent: Mapped[Decimal] = mapped_column(
        _MONEY, nullable=False, default=Decimal("0"),
    )
    content_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)


class PricedTotalsMixin:
    """Cached compute_totals output for priced documents."""

    total_ht_gross: Mapped[Decimal | None] = mapped_column(_MONEY, nullable=True)
    total_discount: Mapped[Decimal | None] = mapped_column(_MONEY, nullable=True)
    total_ht: Mapped[Decimal | None] = mapped_column(_MONEY, nullable=True)
    total_tva: Mapped[Decimal | None] = mapped_column(_MONEY, nullable=True)
    total_ttc: Mapped[Decimal | None] = mapped_column(_MONEY, nullable=True)


class LineItemMixin:
    """Columns shared by every item table."""

    line_uid: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str] = mapped_column(String(4000), nullable=False, default="")
    unit: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


# ---------------------------------------------------------------------------
# Quote
# ---------------------------------------------------------------------------


class Quote(DocumentHeaderMixin, PricedTotalsMixin, TimestampedBase):
    """Sales quote -- the root of every lineage chain."""

    __tablename__ = "quotes"

    __table_args__ = (
        Index("ix_quotes_workspace_number", "workspace_id", "number"),
    )

    valid_until: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    # Topology used when the quote was accepted ("chained" / "fanned")
    cascade_mode: Mapped[str | None] = mapped_column(String(20), nullable=True)

    items: Mapped[list[QuoteItem]] = relationship(
        back_populates="quote",
        order_by="QuoteItem.sort_order",
        cascade="all, delete-orphan",
    )


class QuoteItem(LineItemMixin, TimestampedBase):
    __tablename__ = "quote_items"

    __table_args__ = (
        UniqueConstraint("quote_id", "line_uid", name="uq_quote_items_line_uid"),
    )

    quote_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False,
    )
    quantity: Mapped[Decimal] = mapped_column(_MONEY, nullable=False, default=Decimal("0"))
    unit_price: Mapped[Decimal | None] = mapped_column(_MONEY, nullable=True)
    total: Mapped[Decimal | None] = mapped_column(_MONEY, nullable=True)

    quote: Mapped[Quote] = relationship(back_populates="items")


# ---------------------------------------------------------------------------
# Purchase Order
# ---------------------------------------------------------------------------


class PurchaseOrder(DocumentHeaderMixin, PricedTotalsMixin, TimestampedBase):
    """Purchase order derived from exactly one quote (both topologies)."""

    __tablename__ = "purchase_orders"

    quote_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("quotes.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    upstream_hash_at_sync: Mapped[str | None] = mapped_column(String(64), nullable=True)

    items: Mapped[list[PurchaseOrderItem]] = relationship(
        back_populates="purchase_order",
        order_by="PurchaseOrderItem.sort_order",
        cascade="all, delete-orphan",
    )


class PurchaseOrderItem(LineItemMixin, TimestampedBase):
    __tablename__ = "po_items"

    __table_args__ = (
        UniqueConstraint("po_id", "line_uid", name="uq_po_items_line_uid"),
    )

    po_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False,
    )
    quantity: Mapped[Decimal] = mapped_column(_MONEY, nullable=False, default=Decimal("0"))
    unit_price: Mapped[Decimal | None] = mapped_column(_MONEY, nullable=True)
    total: Mapped[Decimal | None] = mapped_column(_MONEY, nullable=True)

    purchase_order: Mapped[PurchaseOrder] = relationship(back_populates="items")


# ---------------------------------------------------------------------------
# Delivery Note
# ---------------------------------------------------------------------------


class DeliveryNote(DocumentHeaderMixin, TimestampedBase):
    """
    Delivery note.

    Chained topology: derived from a purchase order (purchase_order_id).
    Fanned topology: derived directly from the quote (quote_id).
    Delivery notes carry no prices.
    """

    __tablename__ = "delivery_notes"

    purchase_order_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_orders.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    quote_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("quotes.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    upstream_hash_at_sync: Mapped[str | None] = mapped_column(String(64), nullable=True)

    items: Mapped[list[DeliveryNoteItem]] = relationship(
        back_populates="delivery_note",
        order_by="DeliveryNoteItem.sort_order",
        cascade="all, delete-orphan",
    )


class DeliveryNoteItem(LineItemMixin, TimestampedBase):
    __tablename__ = "dn_items"

    __table_args__ = (
        UniqueConstraint("dn_id", "line_uid", name="uq_dn_items_line_uid"),
    )

    dn_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("delivery_notes.id", ondelete="CASCADE"), nullable=False,
    )
    quantity_delivered: Mapped[Decimal] = mapped_column(
        _MONEY, nullable=False, default=Decimal("0"),
    )

    delivery_note: Mapped[DeliveryNote] = relationship(back_populates="items")


# ---------------------------------------------------------------------------
# Invoice
# ---------------------------------------------------------------------------


class Invoice(DocumentHeaderMixin, PricedTotalsMixin, TimestampedBase):
    """
    Invoice.

    Chained topology: derived from a delivery note (delivery_note_id).
    Fanned topology: derived directly from the quote (quote_id).
    """

    __tablename__ = "invoices"

    delivery_note_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("delivery_notes.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    quote_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("quotes.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    due_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    upstream_hash_at_sync: Mapped[str | None] = mapped_column(String(64), nullable=True)

    items: Mapped[list[InvoiceItem]] = relationship(
        back_populates="invoice",
        order_by="InvoiceItem.sort_order",
        cascade="all, delete-orphan",
    )


class InvoiceItem(LineItemMixin, TimestampedBase):
    __tablename__ = "invoice_items"

    __table_args__ = (
        UniqueConstraint("invoice_id", "line_uid", name="uq_invoice_items_line_uid"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False,
    )
    quantity: Mapped[Decimal] = mapped_column(_MONEY, nullable=False, default=Decimal("0"))
    unit_price: Mapped[Decimal | None] = mapped_column(_MONEY, nullable=True)
    tva_rate: Mapped[Decimal | None] = mapped_column(_MONEY, nullable=True)
    total: Mapped[Decimal | None] = mapped_column(_MONEY, nullable=True)

    invoice: Mapped[Invoice] = relationship(back_populates="items")
