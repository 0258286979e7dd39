"""ORM models for billing documents and their line items."""

from billing_kernel.models.documents import (
    DeliveryNote,
    DeliveryNoteItem,
    Invoice,
    InvoiceItem,
    PurchaseOrder,
    PurchaseOrderItem,
    Quote,
    QuoteItem,
)

# Table name -> mapped model, the lookup used by the row-oriented store.
TABLE_MODELS = {
    model.__tablename__: model
    for model in (
        Quote,
        QuoteItem,
        PurchaseOrder,
        PurchaseOrderItem,
        DeliveryNote,
        DeliveryNoteItem,
        Invoice,
        InvoiceItem,
    )
}

__all__ = [
    "TABLE_MODELS",
    "DeliveryNote",
    "DeliveryNoteItem",
    "Invoice",
    "InvoiceItem",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "Quote",
    "QuoteItem",
]
