"""
Normalization adapter between native rows and canonical records.

Each document kind stores its lines under its own field names (a delivery
note has ``quantity_delivered``, an invoice ``quantity``; some legacy rows
carry ``quantity_billed``).  This module is the only place that knows
those names: rows are mapped to LineItem before they reach the diff or
money engines, and LineItems are mapped back to rows on the way out.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import UUID, uuid4

from billing_kernel.domain.documents import (
    Document,
    DocumentKind,
    LineItem,
    spec_for,
)
from billing_kernel.domain.values import coerce_decimal, optional_decimal

# Quantity field names tried in order, per kind
_QUANTITY_FALLBACKS: dict[DocumentKind, tuple[str, ...]] = {
    DocumentKind.QUOTE: ("quantity",),
    DocumentKind.PURCHASE_ORDER: ("quantity",),
    DocumentKind.DELIVERY_NOTE: ("quantity_delivered", "quantity"),
    DocumentKind.INVOICE: ("quantity", "quantity_billed", "quantity_delivered"),
}


def new_line_uid() -> str:
    """Mint a fresh line identity.  Only ever called when none exists."""
    return uuid4().hex


def first_present(row: Mapping[str, Any], names: tuple[str, ...]) -> Any:
    """Value of the first field in ``names`` that is present and not None."""
    for name in names:
        value = row.get(name)
        if value is not None:
            return value
    return None


def _field(item: Mapping[str, Any] | LineItem, name: str) -> Any:
    if isinstance(item, LineItem):
        return getattr(item, name, None)
    return item.get(name)


def normalize_item(kind: DocumentKind | str, row: Mapping[str, Any] | LineItem) -> LineItem:
    """Map a native item row of ``kind`` to a canonical LineItem."""
    if isinstance(row, LineItem):
        return row
    spec = spec_for(kind)
    line_uid = row.get("line_uid")
    return LineItem(
        line_uid=str(line_uid) if line_uid is not None else "",
        description=row.get("description") or "",
        quantity=coerce_decimal(first_present(row, _QUANTITY_FALLBACKS[spec.kind])),
        unit=row.get("unit") or None,
        unit_price=optional_decimal(row.get("unit_price")) if spec.priced else None,
        total=optional_decimal(row.get("total")) if spec.priced else None,
    )


def normalize_items(
    kind: DocumentKind | str,
    rows: list[Mapping[str, Any]] | tuple,
) -> tuple[LineItem, ...]:
    return tuple(normalize_item(kind, row) for row in rows)


def item_row(
    kind: DocumentKind | str,
    item: LineItem | Mapping[str, Any],
    parent_id: UUID,
    sort_order: int = 0,
    **extra: Any,
) -> dict[str, Any]:
    """
    Build the native item row of ``kind`` for a canonical item.

    A missing ``line_uid`` is synthesized here; an existing one is copied
    verbatim.  Priced kinds get ``total = quantity x unit_price`` unless the
    item already carries a total.
    """
    spec = spec_for(kind)
    line_uid = _field(item, "line_uid") or new_line_uid()
    row: dict[str, Any] = {
        spec.item_foreign_key: parent_id,
        "line_uid": str(line_uid),
        "description": _field(item, "description") or "",
        "unit": _field(item, "unit") or None,
        "sort_order": sort_order,
    }
    canonical = normalize_item(kind, item) if not isinstance(item, LineItem) else item
    row[spec.quantity_field] = canonical.quantity
    if spec.priced:
        unit_price = canonical.unit_price
        row["unit_price"] = unit_price
        total = canonical.total
        if total is None and unit_price is not None:
            total = canonical.quantity * unit_price
        row["total"] = total
    row.update(extra)
    return row


def upstream_id_of(kind: DocumentKind | str, record: Mapping[str, Any]) -> UUID | None:
    """Id the downstream row points at: the chained edge first, then fanned."""
    spec = spec_for(kind)
    if spec.chained_upstream is not None:
        value = record.get(spec.chained_upstream[1])
        if value is not None:
            return value
    if spec.fanned_upstream_column is not None:
        return record.get(spec.fanned_upstream_column)
    return None


def document_from_record(kind: DocumentKind | str, record: Mapping[str, Any]) -> Document:
    """Build a Document from a header row fetched with its items."""
    spec = spec_for(kind)
    return Document(
        kind=spec.kind,
        id=record["id"],
        number=record.get("number") or "",
        status=record.get("status") or "",
        date=record.get("date"),
        client_id=record.get("client_id"),
        workspace_id=record.get("workspace_id"),
        discount_percent=coerce_decimal(record.get("discount_percent")),
        content_hash=record.get("content_hash"),
        upstream_hash_at_sync=record.get("upstream_hash_at_sync"),
        upstream_id=upstream_id_of(spec.kind, record),
        items=normalize_items(spec.kind, record.get("items") or ()),
    )
