"""
Pytest fixtures for the billing lineage test suite.

Provides:
- An in-memory SQLite database per test (schema created from the models)
- A SqlAlchemyStore over a fresh session
- A DeterministicClock
- Services wired to the store and clock
- Captured structured logs
"""

import json
import logging
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

import billing_kernel.models  # noqa: F401  (registers tables)
from billing_kernel.db.base import Base
from billing_kernel.db.engine import enable_sqlite_savepoints
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from billing_kernel.selectors.lineage_selector import LineageSelector
from billing_kernel.store import SqlAlchemyStore
from billing_services.document_service import DocumentService
from billing_services.lineage_orchestrator import LineageOrchestrator
from billing_services.sync_reconciler import SyncReconciler


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.accept_and_cascade(quote.id)
            logs = captured_logs()
            assert any(r["message"] == "cascade_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every connection of one test."""
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(eng)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    sess = Session(engine, expire_on_commit=False)
    yield sess
    sess.close()


@pytest.fixture
def store(session):
    return SqlAlchemyStore(session)


@pytest.fixture
def clock():
    return DeterministicClock()


@pytest.fixture
def selector(store):
    return LineageSelector(store)


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def document_service(store, clock):
    return DocumentService(store, clock)


@pytest.fixture
def orchestrator(store, clock):
    return LineageOrchestrator(store, clock)


@pytest.fixture
def reconciler(store):
    return SyncReconciler(store)


# =============================================================================
# Data fixtures
# =============================================================================


@pytest.fixture
def make_quote(document_service):
    """
    Factory creating a draft quote.

    Usage::

        quote = make_quote([{"line_uid": "L1", "quantity": 2, "unit_price": 100}])
    """
    counter = {"n": 0}

    def _make(items=None, number=None, discount_percent=Decimal("0"), **kwargs):
        counter["n"] += 1
        if items is None:
            items = [
                {"line_uid": "L1", "description": "Widget", "quantity": 2, "unit_price": 100},
            ]
        return document_service.create_quote(
            number or f"DEV-2025-{counter['n']:04d}",
            items,
            discount_percent=discount_percent,
            **kwargs,
        )

    return _make
