"""
Runtime wiring from configuration.

``init_runtime`` applies the logging and database sections of a
BillingConfig; the ``build_*`` factories are the production entrypoints
that construct services with every tunable (cascade mode, prefixes,
fingerprint ordering) taken from the same config.

Usage:
    config = init_runtime()
    with session_scope() as session:
        orchestrator = build_lineage_orchestrator(session, config)
        result = orchestrator.cascade(quote_id)
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from billing_config import BillingConfig, get_active_config
from billing_kernel.db.engine import init_engine_from_url
from billing_kernel.domain.clock import Clock
from billing_kernel.logging_config import configure_logging
from billing_kernel.store import SqlAlchemyStore
from billing_services.document_service import DocumentService
from billing_services.lineage_orchestrator import LineageOrchestrator
from billing_services.sync_reconciler import SyncReconciler


def init_runtime(config: BillingConfig | None = None) -> BillingConfig:
    """Configure logging and the database engine; returns the config used."""
    config = config or get_active_config()
    configure_logging(level=config.logging.level)
    init_engine_from_url(
        config.database.url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
    )
    return config


def build_lineage_orchestrator(
    session: Session,
    config: BillingConfig | None = None,
    clock: Clock | None = None,
) -> LineageOrchestrator:
    """Build a LineageOrchestrator over ``session`` from config."""
    return LineageOrchestrator.from_config(
        SqlAlchemyStore(session), config or get_active_config(), clock=clock,
    )


def build_sync_reconciler(
    session: Session,
    config: BillingConfig | None = None,
) -> SyncReconciler:
    return SyncReconciler.from_config(SqlAlchemyStore(session), config or get_active_config())


def build_document_service(
    session: Session,
    config: BillingConfig | None = None,
    clock: Clock | None = None,
) -> DocumentService:
    config = config or get_active_config()
    return DocumentService(
        SqlAlchemyStore(session),
        clock,
        sort_by_line_uid=config.fingerprint.sort_by_line_uid,
    )
