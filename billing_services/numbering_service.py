"""
DocumentNumberer -- store-backed wrapper around the numbering engine.

Reads the existing numbers of a document table in creation order and asks
billing_engines.numbering for the next one.

Concurrency:
    Read-then-insert with no lock.  Two cascades numbering the same
    (prefix, year) bucket at the same time can both get the same number.
    Callers needing unique numbers must serialize (one writer per
    workspace, or an advisory lock held until the insert commits).
"""

from __future__ import annotations

from typing import Any

from billing_engines.numbering import DEFAULT_WIDTH, next_number
from billing_kernel.domain.documents import DocumentKind, spec_for
from billing_kernel.logging_config import get_logger
from billing_kernel.store import RecordStore

logger = get_logger("services.numbering")


class DocumentNumberer:
    """Next ``{prefix}-{year}-{NNNN}`` number for a document kind."""

    def __init__(self, store: RecordStore, width: int = DEFAULT_WIDTH):
        self._store = store
        self._width = width

    def existing_numbers(
        self,
        kind: DocumentKind | str,
        workspace_id: Any = None,
    ) -> list[str]:
        """Numbers of ``kind`` in creation order, optionally per workspace."""
        spec = spec_for(kind)
        filters = {"workspace_id": workspace_id} if workspace_id is not None else {}
        rows = self._store.find_where(spec.table, filters, order_by=("created_at",))
        return [row["number"] for row in rows]

    def next_for(
        self,
        kind: DocumentKind | str,
        prefix: str,
        year: int,
        workspace_id: Any = None,
    ) -> str:
        number = next_number(
            self.existing_numbers(kind, workspace_id), prefix, year, width=self._width,
        )
        logger.debug(
            "document_number_assigned",
            extra={"kind": spec_for(kind).kind.value, "number": number},
        )
        return number


def derived_number(prefix: str, source_number: str) -> str:
    """Number of a document derived from another: ``PO-DEV-2025-0001``."""
    return f"{prefix}-{source_number}"
