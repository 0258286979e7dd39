"""
LineageOrchestrator -- turns an accepted quote into its derived documents.

Responsibility:
    Run the document cascade for one quote, in one of two topologies:

        chained   Quote -> Purchase Order -> Delivery Note -> Invoice
                  Each stage copies the previous stage's items and stamps
                  the fingerprint of its immediate upstream.
        fanned    Quote -> {Invoice, Delivery Note, Purchase Order}
                  Every document is derived from the quote directly, totals
                  recomputed from the quote, each stamped with the quote's
                  fingerprint.

    ``line_uid`` is copied verbatim through every hop.

Saga, not transaction:
    Each stage (one document with its items) is written atomically and,
    with auto_commit=True, committed on its own.  A failing stage is rolled
    back alone; earlier stages stay committed.  There is no compensation.
    Every stage first looks for its existing output and skips itself when
    found, so re-running the cascade after a partial failure resumes at
    the first missing stage, and re-running a completed cascade inserts
    nothing.

    The quote moves to ``accepted`` in the same unit as the first document
    created for it, so it is accepted exactly once.

Outcomes (CascadeStatus), never exceptions:
    completed                 at least one document was created
    already_processed         every stage already had its output
    not_found                 the quote does not exist
    document_creation_failed  a stage failed; ``failed_stage`` names it and
                              ``created`` lists what this call did create

Concurrency:
    Two cascades for the same quote racing between the existence check and
    the insert are stopped only by the unique lineage foreign keys; the
    loser reports document_creation_failed.  Numbering in fanned mode can
    race (see DocumentNumberer).
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Any, Callable
from uuid import UUID, uuid4

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.documents import (
    Document,
    DocumentKind,
    DocumentStatus,
    LineItem,
    spec_for,
)
from billing_kernel.exceptions import StoreWriteError
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.selectors.lineage_selector import LineageSelector
from billing_kernel.store import RecordStore
from billing_kernel.utils.hashing import fingerprint
from billing_services._item_writer import derived_columns, write_items
from billing_services.numbering_service import DocumentNumberer, derived_number

logger = get_logger("services.lineage")


class CascadeMode(str, Enum):
    """Cascade topology."""

    CHAINED = "chained"
    FANNED = "fanned"


class CascadeStatus(str, Enum):
    """Outcome of a cascade run."""

    COMPLETED = "completed"
    ALREADY_PROCESSED = "already_processed"
    NOT_FOUND = "not_found"
    DOCUMENT_CREATION_FAILED = "document_creation_failed"


@dataclass(frozen=True)
class CascadeResult:
    """Result of a cascade run for one quote."""

    status: CascadeStatus
    mode: CascadeMode
    quote_id: Any
    purchase_order_id: UUID | None = None
    delivery_note_id: UUID | None = None
    invoice_id: UUID | None = None
    # Kinds created by this call, in creation order
    created: tuple[DocumentKind, ...] = ()
    failed_stage: DocumentKind | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status in (
            CascadeStatus.COMPLETED,
            CascadeStatus.ALREADY_PROCESSED,
        )

    @property
    def is_partial(self) -> bool:
        """A stage failed after earlier documents of the lineage exist."""
        return self.status == CascadeStatus.DOCUMENT_CREATION_FAILED and any(
            (self.purchase_order_id, self.delivery_note_id, self.invoice_id)
        )


class _StageFailed(Exception):
    """Internal: a stage's writes were rejected by the store."""

    def __init__(self, stage: DocumentKind, error: StoreWriteError):
        self.stage = stage
        self.error = error
        super().__init__(str(error))


class LineageOrchestrator:
    """
    Runs the document cascade for a quote.

    Contract:
        ``accept_and_cascade`` (chained), ``convert_quote_to_invoice``
        (fanned) and ``cascade`` (either, by mode) return a CascadeResult.
        Store failures become DOCUMENT_CREATION_FAILED; any other exception
        propagates after the failing stage has been rolled back.

    Usage:
        orchestrator = LineageOrchestrator.from_config(store, get_active_config())
        result = orchestrator.cascade(quote_id)
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock | None = None,
        *,
        mode: CascadeMode | str = CascadeMode.CHAINED,
        due_days: int = 30,
        prefixes: dict[str, str] | None = None,
        derived_prefixes: dict[str, str] | None = None,
        number_width: int = 4,
        sort_by_line_uid: bool = False,
        auto_commit: bool = True,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._mode = CascadeMode(mode)
        self._due_days = due_days
        self._prefixes = prefixes or {
            "purchase_order": "BC", "delivery_note": "BL", "invoice": "INV",
        }
        self._derived_prefixes = derived_prefixes or {
            "purchase_order": "PO", "delivery_note": "DN", "invoice": "INV",
        }
        self._sort_by_line_uid = sort_by_line_uid
        self._auto_commit = auto_commit
        self._selector = LineageSelector(store, sort_by_line_uid=sort_by_line_uid)
        self._numberer = DocumentNumberer(store, width=number_width)

    @classmethod
    def from_config(
        cls,
        store: RecordStore,
        config: Any,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ) -> LineageOrchestrator:
        """Build from a billing_config.BillingConfig."""
        return cls(
            store,
            clock,
            mode=config.cascade.mode,
            due_days=config.cascade.due_days,
            prefixes=dict(config.numbering.prefixes),
            derived_prefixes=dict(config.numbering.derived_prefixes),
            number_width=config.numbering.width,
            sort_by_line_uid=config.fingerprint.sort_by_line_uid,
            auto_commit=auto_commit,
        )

    # =========================================================================
    # Public operations
    # =========================================================================

    def cascade(self, quote_id: Any, mode: CascadeMode | str | None = None) -> CascadeResult:
        """Run the cascade in ``mode``, or in the configured mode."""
        resolved = CascadeMode(mode) if mode is not None else self._mode
        if resolved is CascadeMode.FANNED:
            return self.convert_quote_to_invoice(quote_id)
        return self.accept_and_cascade(quote_id)

    def accept_and_cascade(self, quote_id: Any) -> CascadeResult:
        """Chained cascade: Quote -> PO -> DN -> Invoice."""
        return self._run(quote_id, CascadeMode.CHAINED, self._chained_stages)

    def convert_quote_to_invoice(self, quote_id: Any) -> CascadeResult:
        """Fanned cascade: Invoice, DN and PO all derived from the quote."""
        return self._run(quote_id, CascadeMode.FANNED, self._fanned_stages)

    # =========================================================================
    # Saga driver
    # =========================================================================

    def _run(
        self,
        quote_id: Any,
        mode: CascadeMode,
        stages: Callable[[Document, dict[DocumentKind, UUID], list[DocumentKind]], None],
    ) -> CascadeResult:
        # A correlation id bound by the caller is kept.
        correlation_id = None if LogContext.get_all().get("correlation_id") else str(uuid4())
        with LogContext.bind(correlation_id=correlation_id, quote_id=str(quote_id)):
            logger.info("cascade_started", extra={"mode": mode.value})
            t0 = time.monotonic()

            quote_record = self._selector.get_record(DocumentKind.QUOTE, quote_id)
            if quote_record is None:
                logger.warning("cascade_quote_not_found", extra={"mode": mode.value})
                return CascadeResult(
                    status=CascadeStatus.NOT_FOUND,
                    mode=mode,
                    quote_id=quote_id,
                    message=f"Quote {quote_id} not found",
                )

            recorded = quote_record.get("cascade_mode")
            if recorded and recorded != mode.value:
                logger.info(
                    "cascade_mode_mismatch",
                    extra={"mode": mode.value, "recorded_mode": recorded},
                )
                return self._result(
                    CascadeStatus.ALREADY_PROCESSED,
                    mode,
                    quote_record["id"],
                    self._existing_outputs(quote_record["id"]),
                    message=f"Quote was already converted with the {recorded} topology",
                )

            quote = self._selector.get_document(DocumentKind.QUOTE, quote_record["id"])
            outputs: dict[DocumentKind, UUID] = {}
            created: list[DocumentKind] = []
            try:
                stages(quote, outputs, created)
            except _StageFailed as failure:
                if self._auto_commit:
                    self._store.rollback()
                logger.error(
                    "cascade_stage_failed",
                    extra={
                        "mode": mode.value,
                        "stage": failure.stage.value,
                        "table": failure.error.table,
                        "reason": failure.error.reason,
                        "created_kinds": [kind.value for kind in created],
                    },
                )
                label = spec_for(failure.stage).label
                earlier = ", ".join(spec_for(kind).label for kind in outputs) or "none"
                return self._result(
                    CascadeStatus.DOCUMENT_CREATION_FAILED,
                    mode,
                    quote.id,
                    outputs,
                    created=created,
                    failed_stage=failure.stage,
                    message=f"{label} creation failed; existing documents: {earlier}",
                )
            except Exception:
                if self._auto_commit:
                    self._store.rollback()
                logger.error("cascade_failed", extra={"mode": mode.value}, exc_info=True)
                raise

            status = CascadeStatus.COMPLETED if created else CascadeStatus.ALREADY_PROCESSED
            logger.info(
                "cascade_completed",
                extra={
                    "mode": mode.value,
                    "status": status.value,
                    "created_kinds": [kind.value for kind in created],
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return self._result(
                status,
                mode,
                quote.id,
                outputs,
                created=created,
                message=None if created else "All documents were already generated",
            )

    @staticmethod
    def _result(
        status: CascadeStatus,
        mode: CascadeMode,
        quote_id: Any,
        outputs: dict[DocumentKind, UUID],
        *,
        created: list[DocumentKind] | None = None,
        failed_stage: DocumentKind | None = None,
        message: str | None = None,
    ) -> CascadeResult:
        return CascadeResult(
            status=status,
            mode=mode,
            quote_id=quote_id,
            purchase_order_id=outputs.get(DocumentKind.PURCHASE_ORDER),
            delivery_note_id=outputs.get(DocumentKind.DELIVERY_NOTE),
            invoice_id=outputs.get(DocumentKind.INVOICE),
            created=tuple(created or ()),
            failed_stage=failed_stage,
            message=message,
        )

    def _existing_outputs(self, quote_id: UUID) -> dict[DocumentKind, UUID]:
        lineage = self._selector.lineage(quote_id)
        outputs: dict[DocumentKind, UUID] = {}
        if lineage is None:
            return outputs
        for doc in (lineage.purchase_order, lineage.delivery_note, lineage.invoice):
            if doc is not None:
                outputs[doc.kind] = doc.id
        return outputs

    def _stage(
        self,
        kind: DocumentKind,
        outputs: dict[DocumentKind, UUID],
        created: list[DocumentKind],
        existing: dict | None,
        create: Callable[[], UUID],
    ) -> UUID:
        """Reuse an existing stage output, or create it as one atomic unit."""
        if existing is not None:
            outputs[kind] = existing["id"]
            logger.debug("cascade_stage_skipped", extra={"stage": kind.value})
            return existing["id"]
        try:
            with self._store.atomic():
                document_id = create()
        except StoreWriteError as exc:
            raise _StageFailed(kind, exc) from exc
        if self._auto_commit:
            self._store.commit()
        outputs[kind] = document_id
        created.append(kind)
        logger.info(
            "cascade_stage_created",
            extra={"stage": kind.value, "document_id": str(document_id)},
        )
        return document_id

    def _accept_quote(self, quote: Document, mode: CascadeMode) -> None:
        """Mark the quote accepted; a no-op when it already is."""
        if quote.status == DocumentStatus.ACCEPTED.value:
            self._store.update_where("quotes", {"id": quote.id}, {"cascade_mode": mode.value})
            return
        self._store.update_where(
            "quotes",
            {"id": quote.id},
            {"status": DocumentStatus.ACCEPTED.value, "cascade_mode": mode.value},
        )
        logger.info("quote_accepted", extra={"mode": mode.value})

    def _ensure_accepted(self, quote: Document, mode: CascadeMode, stage: DocumentKind) -> None:
        """
        Accept a quote whose first document was created by an earlier run.

        A failed write is reported against ``stage``, the document that
        acceptance follows.
        """
        record = self._store.find_by_id("quotes", quote.id)
        if record is None:
            return
        if record.get("status") == DocumentStatus.ACCEPTED.value and record.get("cascade_mode"):
            return
        try:
            with self._store.atomic():
                self._accept_quote(quote, mode)
        except StoreWriteError as exc:
            raise _StageFailed(stage, exc) from exc
        if self._auto_commit:
            self._store.commit()

    def _insert_document(
        self,
        kind: DocumentKind,
        header: dict[str, Any],
        items: tuple[LineItem, ...] | list[LineItem],
        discount_percent: Any,
    ) -> tuple[UUID, tuple[LineItem, ...]]:
        spec = spec_for(kind)
        record = self._store.insert(spec.table, header)
        written = write_items(self._store, kind, record["id"], items)
        self._store.update_where(
            spec.table,
            {"id": record["id"]},
            derived_columns(
                kind, written, discount_percent, sort_by_line_uid=self._sort_by_line_uid,
            ),
        )
        return record["id"], written

    def _items_hash(self, items: tuple[LineItem, ...]) -> str:
        return fingerprint(list(items), sort_by_line_uid=self._sort_by_line_uid)

    def _header(self, quote: Document, number: str, status: DocumentStatus, **extra: Any) -> dict:
        header = {
            "number": number,
            "status": status.value,
            "date": self._clock.today(),
            "client_id": quote.client_id,
            "workspace_id": quote.workspace_id,
            "discount_percent": quote.discount_percent,
        }
        header.update(extra)
        return header

    def _due_date(self, start: date) -> date:
        return start + timedelta(days=self._due_days)

    # =========================================================================
    # Chained topology
    # =========================================================================

    def _chained_stages(
        self,
        quote: Document,
        outputs: dict[DocumentKind, UUID],
        created: list[DocumentKind],
    ) -> None:
        po_id = self._stage(
            DocumentKind.PURCHASE_ORDER,
            outputs,
            created,
            self._store.find_one_where("purchase_orders", {"quote_id": quote.id}),
            lambda: self._create_purchase_order(quote),
        )
        self._ensure_accepted(quote, CascadeMode.CHAINED, DocumentKind.PURCHASE_ORDER)
        purchase_order = self._selector.get_document(DocumentKind.PURCHASE_ORDER, po_id)

        dn_id = self._stage(
            DocumentKind.DELIVERY_NOTE,
            outputs,
            created,
            self._store.find_one_where("delivery_notes", {"purchase_order_id": po_id}),
            lambda: self._create_delivery_note(quote, purchase_order),
        )
        delivery_note = self._selector.get_document(DocumentKind.DELIVERY_NOTE, dn_id)

        self._stage(
            DocumentKind.INVOICE,
            outputs,
            created,
            self._store.find_one_where("invoices", {"delivery_note_id": dn_id}),
            lambda: self._create_chained_invoice(quote, purchase_order, delivery_note),
        )

    def _create_purchase_order(self, quote: Document) -> UUID:
        # Line items are copied verbatim, totals included.
        quote_hash = self._items_hash(quote.items)
        po_id, _ = self._insert_document(
            DocumentKind.PURCHASE_ORDER,
            self._header(
                quote,
                derived_number(self._derived_prefixes["purchase_order"], quote.number),
                DocumentStatus.DRAFT,
                quote_id=quote.id,
                upstream_hash_at_sync=quote_hash,
            ),
            quote.items,
            quote.discount_percent,
        )
        self._accept_quote(quote, CascadeMode.CHAINED)
        return po_id

    def _create_delivery_note(self, quote: Document, purchase_order: Document) -> UUID:
        # PO quantity becomes the delivered quantity; delivery notes carry no prices.
        items = tuple(
            LineItem(
                line_uid=item.line_uid,
                description=item.description,
                quantity=item.quantity,
                unit=item.unit,
            )
            for item in purchase_order.items
        )
        dn_id, _ = self._insert_document(
            DocumentKind.DELIVERY_NOTE,
            self._header(
                quote,
                derived_number(self._derived_prefixes["delivery_note"], quote.number),
                DocumentStatus.DRAFT,
                purchase_order_id=purchase_order.id,
                upstream_hash_at_sync=self._items_hash(purchase_order.items),
            ),
            items,
            purchase_order.discount_percent,
        )
        return dn_id

    def _create_chained_invoice(
        self,
        quote: Document,
        purchase_order: Document,
        delivery_note: Document,
    ) -> UUID:
        # Prices come from the PO line with the same line_uid, never by position.
        prices = {item.line_uid: item.unit_price for item in purchase_order.items}
        items = []
        for item in delivery_note.items:
            unit_price = prices.get(item.line_uid)
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
        invoice_date = self._clock.today()
        invoice_id, _ = self._insert_document(
            DocumentKind.INVOICE,
            self._header(
                quote,
                derived_number(self._derived_prefixes["invoice"], quote.number),
                DocumentStatus.DRAFT,
                delivery_note_id=delivery_note.id,
                due_date=self._due_date(invoice_date),
                upstream_hash_at_sync=(
                    delivery_note.content_hash
                    if delivery_note.content_hash is not None
                    else self._items_hash(delivery_note.items)
                ),
            ),
            tuple(items),
            purchase_order.discount_percent,
        )
        return invoice_id

    # =========================================================================
    # Fanned topology
    # =========================================================================

    def _fanned_stages(
        self,
        quote: Document,
        outputs: dict[DocumentKind, UUID],
        created: list[DocumentKind],
    ) -> None:
        quote_hash = self._items_hash(quote.items)
        year = self._clock.today().year

        self._stage(
            DocumentKind.INVOICE,
            outputs,
            created,
            self._store.find_one_where("invoices", {"quote_id": quote.id}),
            lambda: self._create_fanned(
                quote, DocumentKind.INVOICE, DocumentStatus.DRAFT, quote_hash, year,
                accept=True,
            ),
        )
        self._ensure_accepted(quote, CascadeMode.FANNED, DocumentKind.INVOICE)

        self._stage(
            DocumentKind.DELIVERY_NOTE,
            outputs,
            created,
            self._store.find_one_where("delivery_notes", {"quote_id": quote.id}),
            lambda: self._create_fanned(
                quote, DocumentKind.DELIVERY_NOTE, DocumentStatus.PENDING, quote_hash, year,
            ),
        )
        self._stage(
            DocumentKind.PURCHASE_ORDER,
            outputs,
            created,
            self._store.find_one_where("purchase_orders", {"quote_id": quote.id}),
            lambda: self._create_fanned(
                quote, DocumentKind.PURCHASE_ORDER, DocumentStatus.PENDING, quote_hash, year,
            ),
        )

    def _create_fanned(
        self,
        quote: Document,
        kind: DocumentKind,
        status: DocumentStatus,
        quote_hash: str,
        year: int,
        *,
        accept: bool = False,
    ) -> UUID:
        number = self._numberer.next_for(
            kind, self._prefixes[kind.value], year, workspace_id=quote.workspace_id,
        )
        extra: dict[str, Any] = {"quote_id": quote.id, "upstream_hash_at_sync": quote_hash}
        if kind is DocumentKind.INVOICE:
            extra["due_date"] = self._due_date(self._clock.today())

        # Totals are recomputed from the quote lines, not copied.
        items = tuple(
            LineItem(
                line_uid=item.line_uid,
                description=item.description,
                quantity=item.quantity,
                unit=item.unit,
                unit_price=item.unit_price,
                total=(
                    item.quantity * item.unit_price if item.unit_price is not None else None
                ),
            )
            for item in quote.items
        )
        document_id, _ = self._insert_document(
            kind,
            self._header(quote, number, status, **extra),
            items,
            quote.discount_percent,
        )
        if accept:
            self._accept_quote(quote, CascadeMode.FANNED)
        return document_id
