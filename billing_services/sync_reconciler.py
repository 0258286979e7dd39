"""
SyncReconciler -- brings a stale downstream document back in line with
its upstream.

Responsibility:
    ``preview`` diffs a document against its immediate upstream (read-only).
    ``apply`` replaces ALL items of the downstream document with the
    upstream-derived set and refreshes ``upstream_hash_at_sync`` to the
    upstream's current fingerprint.  ``sync_with_upstream`` does both.

    The replace is destructive: edits made directly on the downstream
    document (a partially delivered quantity, a retyped description) are
    discarded.  Only unit prices survive on a priced downstream document
    whose upstream carries none (an invoice synced from its delivery note).

Outcomes (SyncStatus), never exceptions for store failures:
    synced             items replaced, stamp refreshed
    nothing_to_sync    the diff was empty
    conflicts_present  the diff carried conflicts (never produced today)
    not_found          the document or its upstream does not exist
    sync_failed        the store rejected the writes; nothing was changed
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID

from billing_engines.diff import DiffResult, diff_items
from billing_kernel.domain.documents import Document, DocumentKind, LineItem, spec_for
from billing_kernel.domain.values import ZERO
from billing_kernel.exceptions import LineageEdgeError, StoreWriteError
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.selectors.lineage_selector import LineageSelector
from billing_kernel.store import RecordStore
from billing_kernel.utils.hashing import fingerprint
from billing_services._item_writer import derived_columns, write_items

logger = get_logger("services.sync")


class SyncStatus(str, Enum):
    """Outcome of a reconciliation."""

    SYNCED = "synced"
    NOTHING_TO_SYNC = "nothing_to_sync"
    CONFLICTS_PRESENT = "conflicts_present"
    NOT_FOUND = "not_found"
    SYNC_FAILED = "sync_failed"


@dataclass(frozen=True)
class SyncResult:
    """Result of reconciling one downstream document."""

    status: SyncStatus
    kind: DocumentKind
    document_id: Any
    diff: DiffResult | None = None
    upstream_hash: str | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status in (SyncStatus.SYNCED, SyncStatus.NOTHING_TO_SYNC)


class SyncReconciler:
    """
    Applies upstream changes to a downstream document.

    Contract:
        With auto_commit=True a successful apply is committed and a failed
        one rolled back.  The delete, the re-insert and the header update
        are one atomic unit either way.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        sort_by_line_uid: bool = False,
        auto_commit: bool = True,
    ):
        self._store = store
        self._sort_by_line_uid = sort_by_line_uid
        self._auto_commit = auto_commit
        self._selector = LineageSelector(store, sort_by_line_uid=sort_by_line_uid)

    @classmethod
    def from_config(cls, store: RecordStore, config: Any, auto_commit: bool = True) -> SyncReconciler:
        return cls(
            store,
            sort_by_line_uid=config.fingerprint.sort_by_line_uid,
            auto_commit=auto_commit,
        )

    def preview(self, kind: DocumentKind | str, document_id: Any) -> DiffResult | None:
        """Diff a document against its upstream, or None if either is missing."""
        document = self._selector.get_document(kind, document_id)
        if document is None:
            return None
        upstream = self._selector.get_upstream(kind, document_id)
        if upstream is None:
            return None
        return diff_items(upstream.items, document.items)

    def sync_with_upstream(self, kind: DocumentKind | str, document_id: Any) -> SyncResult:
        """
        Diff against the upstream and apply the result in one call.

        Raises:
            LineageEdgeError: For a quote, which has no upstream.
        """
        spec = spec_for(kind)
        if spec.chained_upstream is None and spec.fanned_upstream_column is None:
            raise LineageEdgeError(spec.kind.value, "document kind has no upstream")
        diff = self.preview(spec.kind, document_id)
        if diff is None:
            return SyncResult(
                status=SyncStatus.NOT_FOUND,
                kind=spec.kind,
                document_id=document_id,
                message=f"{spec.label} {document_id} or its upstream not found",
            )
        return self.apply(diff, spec.kind, document_id)

    def _target_items(self, diff: DiffResult, kind: DocumentKind, current: Document) -> list[LineItem]:
        """The upstream-derived item set written to the downstream document."""
        spec = spec_for(kind)
        current_by_uid = {item.line_uid: item for item in current.items if item.line_uid}
        items: list[LineItem] = []
        for item in diff.upstream:
            unit_price = None
            if spec.priced:
                unit_price = item.unit_price
                if unit_price is None:
                    existing = current_by_uid.get(item.line_uid)
                    unit_price = existing.unit_price if existing is not None else None
                if unit_price is None:
                    unit_price = ZERO
            items.append(
                LineItem(
                    line_uid=item.line_uid,
                    description=item.description,
                    quantity=item.quantity,
                    unit=item.unit,
                    unit_price=unit_price,
                    total=item.quantity * unit_price if unit_price is not None else None,
                )
            )
        return items

    def apply(self, diff: DiffResult, kind: DocumentKind | str, document_id: Any) -> SyncResult:
        """
        Replace the downstream items with the upstream set the diff was built from.

        Refuses (without writing) when the diff has conflicts or is empty.
        """
        spec = spec_for(kind)
        if diff.has_conflicts:
            return SyncResult(
                status=SyncStatus.CONFLICTS_PRESENT,
                kind=spec.kind,
                document_id=document_id,
                diff=diff,
                message="Resolve conflicts before syncing",
            )
        if diff.is_empty:
            return SyncResult(
                status=SyncStatus.NOTHING_TO_SYNC,
                kind=spec.kind,
                document_id=document_id,
                diff=diff,
            )

        current = self._selector.get_document(spec.kind, document_id)
        if current is None:
            return SyncResult(
                status=SyncStatus.NOT_FOUND,
                kind=spec.kind,
                document_id=document_id,
                diff=diff,
                message=f"{spec.label} {document_id} not found",
            )

        upstream_hash = fingerprint(list(diff.upstream), sort_by_line_uid=self._sort_by_line_uid)
        with LogContext.bind(document_id=str(current.id)):
            try:
                with self._store.atomic():
                    written = write_items(
                        self._store,
                        spec.kind,
                        current.id,
                        self._target_items(diff, spec.kind, current),
                        replace=True,
                    )
                    patch = derived_columns(
                        spec.kind, written, current.discount_percent,
                        sort_by_line_uid=self._sort_by_line_uid,
                    )
                    patch["upstream_hash_at_sync"] = upstream_hash
                    self._store.update_where(spec.table, {"id": current.id}, patch)
            except StoreWriteError as exc:
                if self._auto_commit:
                    self._store.rollback()
                logger.error(
                    "sync_failed",
                    extra={"kind": spec.kind.value, "table": exc.table, "reason": exc.reason},
                )
                return SyncResult(
                    status=SyncStatus.SYNC_FAILED,
                    kind=spec.kind,
                    document_id=current.id,
                    diff=diff,
                    message=str(exc),
                )
            if self._auto_commit:
                self._store.commit()

            logger.info(
                "sync_applied",
                extra={
                    "kind": spec.kind.value,
                    "upstream_hash": upstream_hash,
                    **diff.summary(),
                },
            )
        return SyncResult(
            status=SyncStatus.SYNCED,
            kind=spec.kind,
            document_id=current.id,
            diff=diff,
            upstream_hash=upstream_hash,
        )


def stale_documents(selector: LineageSelector, quote_id: UUID) -> list[Document]:
    """Derived documents of a quote whose upstream changed since their last sync."""
    lineage = selector.lineage(quote_id)
    if lineage is None:
        return []
    stale = []
    for document in (lineage.purchase_order, lineage.delivery_note, lineage.invoice):
        if document is None:
            continue
        check = selector.sync_status(document.kind, document.id)
        if check is not None and not check.in_sync:
            stale.append(document)
    return stale
