"""
Internal helpers shared by the services that write document items.

Every write of a document's items goes through ``write_items`` and every
header refresh through ``derived_columns``, so the stored totals and
``content_hash`` are always computed the same way (and always re-derivable
from the items, see compute_totals).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

from billing_engines.money import VAT_RATE_PERCENT, compute_totals
from billing_kernel.domain.documents import DocumentKind, LineItem, spec_for
from billing_kernel.domain.normalization import item_row, normalize_item
from billing_kernel.store import RecordStore
from billing_kernel.utils.hashing import fingerprint


def build_rows(
    kind: DocumentKind,
    items: Sequence[LineItem | Mapping[str, Any]],
    parent_id: UUID,
) -> list[dict[str, Any]]:
    """Native item rows for ``kind``; line_uids are synthesized only if absent."""
    extra: dict[str, Any] = {}
    if kind is DocumentKind.INVOICE:
        extra["tva_rate"] = VAT_RATE_PERCENT
    return [
        item_row(kind, item, parent_id, sort_order=index, **extra)
        for index, item in enumerate(items)
    ]


def write_items(
    store: RecordStore,
    kind: DocumentKind,
    parent_id: UUID,
    items: Sequence[LineItem | Mapping[str, Any]],
    *,
    replace: bool = False,
) -> tuple[LineItem, ...]:
    """
    Insert the items of one document and return them normalized.

    With ``replace=True`` the document's current items are deleted first
    (a full replace, not a delta).
    """
    spec = spec_for(kind)
    rows = build_rows(spec.kind, items, parent_id)
    if replace:
        store.delete_where(spec.items_table, {spec.item_foreign_key: parent_id})
    store.insert_many(spec.items_table, rows)
    return tuple(normalize_item(spec.kind, row) for row in rows)


def derived_columns(
    kind: DocumentKind,
    items: Sequence[LineItem],
    discount_percent: Any,
    *,
    sort_by_line_uid: bool = False,
) -> dict[str, Any]:
    """Header columns derived from the items: content_hash and, if priced, totals."""
    columns: dict[str, Any] = {
        "content_hash": fingerprint(list(items), sort_by_line_uid=sort_by_line_uid),
    }
    if spec_for(kind).priced:
        columns.update(compute_totals(items, discount_percent).as_columns())
    return columns
