"""
Module: billing_kernel.selectors.lineage_selector
Responsibility: Read-only navigation of the lineage graph and staleness
    checks between a downstream document and its immediate upstream.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - A downstream document is in sync with its upstream exactly when its
      stored ``upstream_hash_at_sync`` equals the fingerprint of the
      upstream's items today.  No other staleness signal exists.
    - Upstream resolution follows the chained edge first and falls back to
      the fanned ``quote_id`` edge.

Failure modes:
    - Returns None (or an empty list) when a document does not exist;
      never raises on absence of data.
    - UnknownDocumentKindError for a kind outside the four variants.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from billing_kernel.domain.documents import Document, DocumentKind, spec_for
from billing_kernel.domain.normalization import document_from_record
from billing_kernel.selectors.base import BaseSelector
from billing_kernel.store import RecordStore
from billing_kernel.utils.hashing import fingerprint


@dataclass(frozen=True)
class SyncCheck:
    """Staleness of one document relative to its immediate upstream."""

    document: Document
    upstream: Document | None
    expected: str | None
    actual: str | None

    @property
    def in_sync(self) -> bool:
        # A document without an upstream has nothing to go stale against.
        if self.upstream is None:
            return True
        return self.expected == self.actual


@dataclass(frozen=True)
class Lineage:
    """Every document derived from one quote, by kind."""

    quote: Document
    purchase_order: Document | None = None
    delivery_note: Document | None = None
    invoice: Document | None = None
    # Topology recorded on the quote when it was accepted
    mode: str | None = None

    def documents(self) -> list[Document]:
        return [
            doc
            for doc in (self.quote, self.purchase_order, self.delivery_note, self.invoice)
            if doc is not None
        ]


class LineageSelector(BaseSelector):
    """
    Selector for lineage queries.

    Contract:
        ``get_*`` methods return Document records with normalized items.
        ``sync_status`` fingerprints the upstream items the same way the
        orchestrator and the reconciler do, so a freshly copied or synced
        document always reports in sync.
    """

    def __init__(self, store: RecordStore, *, sort_by_line_uid: bool = False):
        super().__init__(store)
        self.sort_by_line_uid = sort_by_line_uid

    def items_fingerprint(self, document: Document) -> str:
        """Fingerprint of a document's own normalized items."""
        return fingerprint(list(document.items), sort_by_line_uid=self.sort_by_line_uid)

    def get_record(self, kind: DocumentKind | str, document_id: Any) -> dict | None:
        """Raw header row with its items, for callers that need native fields."""
        spec = spec_for(kind)
        return self.store.find_with_items(
            spec.table, document_id, spec.items_table, spec.item_foreign_key,
        )

    def get_document(self, kind: DocumentKind | str, document_id: Any) -> Document | None:
        record = self.get_record(kind, document_id)
        if record is None:
            return None
        return document_from_record(kind, record)

    def _find_by_edge(
        self,
        kind: DocumentKind,
        column: str,
        upstream_id: Any,
    ) -> Document | None:
        spec = spec_for(kind)
        row = self.store.find_one_where(spec.table, {column: upstream_id})
        if row is None:
            return None
        return self.get_document(kind, row["id"])

    def get_upstream(self, kind: DocumentKind | str, document_id: Any) -> Document | None:
        """
        Immediate upstream of a document.

        A chained delivery note points at its purchase order; a fanned one
        only carries ``quote_id``.  Quotes have no upstream.
        """
        spec = spec_for(kind)
        row = self.store.find_by_id(spec.table, document_id)
        if row is None:
            return None
        if spec.chained_upstream is not None:
            upstream_kind, column = spec.chained_upstream
            if row.get(column) is not None:
                return self.get_document(upstream_kind, row[column])
        if spec.fanned_upstream_column is not None:
            quote_id = row.get(spec.fanned_upstream_column)
            if quote_id is not None:
                return self.get_document(DocumentKind.QUOTE, quote_id)
        return None

    def get_downstream(self, kind: DocumentKind | str, document_id: Any) -> list[Document]:
        """Documents pointing at this one through any lineage edge."""
        spec = spec_for(kind)
        found: list[Document] = []
        for candidate in DocumentKind:
            candidate_spec = spec_for(candidate)
            columns = []
            if candidate_spec.chained_upstream and candidate_spec.chained_upstream[0] is spec.kind:
                columns.append(candidate_spec.chained_upstream[1])
            if spec.kind is DocumentKind.QUOTE and candidate_spec.fanned_upstream_column:
                columns.append(candidate_spec.fanned_upstream_column)
            for column in columns:
                doc = self._find_by_edge(candidate, column, document_id)
                if doc is not None and doc not in found:
                    found.append(doc)
        return found

    def sync_status(self, kind: DocumentKind | str, document_id: Any) -> SyncCheck | None:
        """Compare the stored upstream stamp with the upstream's items today."""
        document = self.get_document(kind, document_id)
        if document is None:
            return None
        upstream = self.get_upstream(kind, document_id)
        expected = self.items_fingerprint(upstream) if upstream is not None else None
        return SyncCheck(
            document=document,
            upstream=upstream,
            expected=expected,
            actual=document.upstream_hash_at_sync,
        )

    def lineage(self, quote_id: Any) -> Lineage | None:
        """
        Collect the documents derived from a quote.

        Chained edges are preferred; the fanned ``quote_id`` edge is used
        when a stage has no chained parent (fanned lineage, or a chained
        lineage that stopped early).
        """
        quote_row = self.store.find_by_id("quotes", quote_id)
        if quote_row is None:
            return None
        quote = self.get_document(DocumentKind.QUOTE, quote_id)
        purchase_order = self._find_by_edge(DocumentKind.PURCHASE_ORDER, "quote_id", quote.id)

        delivery_note = None
        if purchase_order is not None:
            delivery_note = self._find_by_edge(
                DocumentKind.DELIVERY_NOTE, "purchase_order_id", purchase_order.id,
            )
        if delivery_note is None:
            delivery_note = self._find_by_edge(DocumentKind.DELIVERY_NOTE, "quote_id", quote.id)

        invoice = None
        if delivery_note is not None:
            invoice = self._find_by_edge(
                DocumentKind.INVOICE, "delivery_note_id", delivery_note.id,
            )
        if invoice is None:
            invoice = self._find_by_edge(DocumentKind.INVOICE, "quote_id", quote.id)

        return Lineage(
            quote=quote,
            purchase_order=purchase_order,
            delivery_note=delivery_note,
            invoice=invoice,
            mode=quote_row.get("cascade_mode"),
        )
