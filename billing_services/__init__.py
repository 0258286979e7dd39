"""
billing_services -- Package init and public API.

Responsibility:
    Stateful orchestration that composes the pure engines (billing_engines/)
    with the record store.  This is the only layer that writes documents or
    reads the clock.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction (enforced by tests/architecture/test_kernel_boundary.py):
        billing_services/ -> billing_engines/  (allowed)
        billing_services/ -> billing_kernel/   (allowed)
        billing_engines/  -> billing_services/ (FORBIDDEN)
        billing_kernel/   -> billing_services/ (FORBIDDEN)
"""

from billing_services.document_service import DocumentService
from billing_services.lineage_orchestrator import (
    CascadeMode,
    CascadeResult,
    CascadeStatus,
    LineageOrchestrator,
)
from billing_services.numbering_service import DocumentNumberer
from billing_services.sync_reconciler import SyncReconciler, SyncResult, SyncStatus

__all__ = [
    "CascadeMode",
    "CascadeResult",
    "CascadeStatus",
    "DocumentNumberer",
    "DocumentService",
    "LineageOrchestrator",
    "SyncReconciler",
    "SyncResult",
    "SyncStatus",
]
