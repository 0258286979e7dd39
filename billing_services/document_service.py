"""
DocumentService -- creation and edits of documents outside the cascade.

Responsibility:
    Create quotes, replace the items of any document, and move document
    statuses.  These are the edits that make downstream documents stale:
    every item write refreshes the document's own ``content_hash`` and
    stored totals, but never touches ``upstream_hash_at_sync``.

Failure modes:
    - DocumentNotFoundError for an unknown document id.
    - StoreWriteError propagates after rollback (when auto_commit=True).
      Unlike the cascade, these are plain CRUD calls and raise.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any
from uuid import UUID

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.documents import (
    Document,
    DocumentKind,
    DocumentStatus,
    LineItem,
    spec_for,
)
from billing_kernel.domain.values import coerce_decimal
from billing_kernel.exceptions import DocumentNotFoundError
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.selectors.lineage_selector import LineageSelector
from billing_kernel.store import RecordStore
from billing_services._item_writer import derived_columns, write_items

logger = get_logger("services.documents")


class DocumentService:
    """
    Document CRUD that keeps hashes and totals consistent with the items.

    Contract:
        Every method returns the Document as stored after the call.
        With auto_commit=True each call commits on success and rolls back
        on failure; otherwise the caller owns the transaction.
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock | None = None,
        *,
        sort_by_line_uid: bool = False,
        auto_commit: bool = True,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._sort_by_line_uid = sort_by_line_uid
        self._auto_commit = auto_commit
        self._selector = LineageSelector(store, sort_by_line_uid=sort_by_line_uid)

    def _finish(self) -> None:
        if self._auto_commit:
            self._store.commit()

    def _fail(self) -> None:
        if self._auto_commit:
            self._store.rollback()

    def _require(self, kind: DocumentKind | str, document_id: Any) -> dict:
        spec = spec_for(kind)
        record = self._store.find_by_id(spec.table, document_id)
        if record is None:
            raise DocumentNotFoundError(spec.kind.value, document_id)
        return record

    def create_quote(
        self,
        number: str,
        items: Sequence[LineItem | Mapping[str, Any]],
        *,
        client_id: UUID | None = None,
        workspace_id: UUID | None = None,
        discount_percent: Any = 0,
        quote_date: date | None = None,
        valid_until: date | None = None,
    ) -> Document:
        """
        Create a draft quote with its items.

        Items without a ``line_uid`` get a fresh one; this is where line
        identities are born.
        """
        discount = coerce_decimal(discount_percent)
        try:
            with self._store.atomic():
                header = self._store.insert(
                    "quotes",
                    {
                        "number": number,
                        "status": DocumentStatus.DRAFT.value,
                        "date": quote_date or self._clock.today(),
                        "valid_until": valid_until,
                        "client_id": client_id,
                        "workspace_id": workspace_id,
                        "discount_percent": discount,
                    },
                )
                written = write_items(self._store, DocumentKind.QUOTE, header["id"], items)
                self._store.update_where(
                    "quotes",
                    {"id": header["id"]},
                    derived_columns(
                        DocumentKind.QUOTE, written, discount,
                        sort_by_line_uid=self._sort_by_line_uid,
                    ),
                )
        except Exception:
            self._fail()
            raise
        self._finish()

        logger.info(
            "quote_created",
            extra={"quote_id": str(header["id"]), "number": number, "item_count": len(written)},
        )
        return self._selector.get_document(DocumentKind.QUOTE, header["id"])

    def replace_items(
        self,
        kind: DocumentKind | str,
        document_id: Any,
        items: Sequence[LineItem | Mapping[str, Any]],
        discount_percent: Any = None,
    ) -> Document:
        """
        Replace all items of a document.

        Existing ``line_uid`` values supplied by the caller are kept, so a
        line edited in place stays matched to its downstream copies.
        """
        spec = spec_for(kind)
        record = self._require(spec.kind, document_id)
        discount = (
            coerce_decimal(record.get("discount_percent"))
            if discount_percent is None
            else coerce_decimal(discount_percent)
        )

        with LogContext.bind(document_id=str(record["id"])):
            try:
                with self._store.atomic():
                    written = write_items(
                        self._store, spec.kind, record["id"], items, replace=True,
                    )
                    patch = derived_columns(
                        spec.kind, written, discount,
                        sort_by_line_uid=self._sort_by_line_uid,
                    )
                    patch["discount_percent"] = discount
                    self._store.update_where(spec.table, {"id": record["id"]}, patch)
            except Exception:
                self._fail()
                raise
            self._finish()

            logger.info(
                "document_items_replaced",
                extra={
                    "kind": spec.kind.value,
                    "item_count": len(written),
                    "content_hash": patch["content_hash"],
                },
            )
        return self._selector.get_document(spec.kind, record["id"])

    def update_status(
        self,
        kind: DocumentKind | str,
        document_id: Any,
        status: DocumentStatus | str,
    ) -> Document:
        """Set a document's status.  Transitions are not validated here."""
        spec = spec_for(kind)
        record = self._require(spec.kind, document_id)
        value = status.value if isinstance(status, DocumentStatus) else str(status)
        try:
            self._store.update_where(spec.table, {"id": record["id"]}, {"status": value})
        except Exception:
            self._fail()
            raise
        self._finish()

        logger.info(
            "document_status_updated",
            extra={
                "kind": spec.kind.value,
                "document_id": str(record["id"]),
                "from_status": record.get("status"),
                "to_status": value,
            },
        )
        return self._selector.get_document(spec.kind, record["id"])
