"""
Record store -- the row-oriented persistence boundary of the lineage core.

Responsibility:
    Exposes the minimal repository contract every service in this project
    works through: rows are plain dicts addressed by table name and id.
    No service issues SQL or touches ORM objects directly.

Architecture position:
    Kernel -- imperative shell.  Imports db/ and models/.  Services and
    selectors receive a RecordStore by constructor injection; one store is
    built per request (or per process) around one Session.

Invariants enforced:
    - Every write runs inside a SAVEPOINT.  A failed statement rolls back to
      that savepoint only, so earlier writes in the same session survive
      (the cascade relies on this: no compensation of earlier stages).
    - Lookups by a malformed id return None rather than raising.

Failure modes:
    - UnknownTableError when a table name has no mapped model.
    - StoreWriteError wrapping any SQLAlchemyError raised by a write.

Concurrency:
    The store offers read-then-write sequences without optimistic locking.
    Two requests racing on the same document are not detected here.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from contextlib import AbstractContextManager, contextmanager
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import delete, inspect as sa_inspect, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from billing_kernel.db.base import Base
from billing_kernel.exceptions import StoreWriteError, UnknownTableError
from billing_kernel.logging_config import get_logger
from billing_kernel.models import TABLE_MODELS

logger = get_logger("store")

Record = dict[str, Any]


class RecordStore(Protocol):
    """Repository contract keyed by table name."""

    def find_by_id(self, table: str, record_id: Any) -> Record | None: ...

    def find_one_where(self, table: str, filters: Mapping[str, Any]) -> Record | None: ...

    def find_where(
        self,
        table: str,
        filters: Mapping[str, Any],
        order_by: Sequence[str] = (),
    ) -> list[Record]: ...

    def find_with_items(
        self,
        table: str,
        record_id: Any,
        items_table: str,
        foreign_key: str,
    ) -> Record | None: ...

    def insert(self, table: str, record: Mapping[str, Any]) -> Record: ...

    def insert_many(self, table: str, records: Sequence[Mapping[str, Any]]) -> list[Record]: ...

    def update_where(
        self,
        table: str,
        filters: Mapping[str, Any],
        patch: Mapping[str, Any],
    ) -> int: ...

    def delete_where(self, table: str, filters: Mapping[str, Any]) -> int: ...

    def atomic(self) -> AbstractContextManager[None]: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


def coerce_id(value: Any) -> UUID | None:
    """Return ``value`` as a UUID, or None if it is not one."""
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class SqlAlchemyStore:
    """
    RecordStore over a SQLAlchemy Session and the mapped billing models.

    Contract:
        Accepts a Session from the caller.  Writes flush inside savepoints;
        ``commit()``/``rollback()`` are exposed so a saga can close each of
        its stages explicitly.  Nothing else commits.

    Usage:
        with session_scope() as session:
            store = SqlAlchemyStore(session)
            quote = store.find_with_items("quotes", quote_id, "quote_items", "quote_id")
    """

    def __init__(
        self,
        session: Session,
        models: Mapping[str, type[Base]] | None = None,
    ):
        self.session = session
        self._models = dict(models if models is not None else TABLE_MODELS)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _model(self, table: str) -> type[Base]:
        try:
            return self._models[table]
        except KeyError:
            raise UnknownTableError(table) from None

    @staticmethod
    def _to_record(obj: Base) -> Record:
        mapper = sa_inspect(obj).mapper
        return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}

    @staticmethod
    def _where(model: type[Base], filters: Mapping[str, Any]) -> list:
        clauses = []
        for key, value in filters.items():
            column = getattr(model, key)
            clauses.append(column.is_(None) if value is None else column == value)
        return clauses

    @contextmanager
    def _write(self, table: str, operation: str) -> Iterator[None]:
        savepoint = self.session.begin_nested()
        try:
            yield
            self.session.flush()
        except SQLAlchemyError as exc:
            savepoint.rollback()
            logger.warning(
                "store_write_failed",
                extra={"table": table, "operation": operation, "error": type(exc).__name__},
            )
            raise StoreWriteError(table, operation, str(getattr(exc, "orig", None) or exc)) from exc
        except Exception:
            savepoint.rollback()
            raise
        savepoint.commit()

    # =========================================================================
    # Reads
    # =========================================================================

    def find_by_id(self, table: str, record_id: Any) -> Record | None:
        model = self._model(table)
        key = coerce_id(record_id)
        if key is None:
            return None
        obj = self.session.get(model, key)
        return self._to_record(obj) if obj is not None else None

    def find_one_where(self, table: str, filters: Mapping[str, Any]) -> Record | None:
        model = self._model(table)
        obj = self.session.scalars(
            select(model).where(*self._where(model, filters)).limit(1)
        ).first()
        return self._to_record(obj) if obj is not None else None

    def find_where(
        self,
        table: str,
        filters: Mapping[str, Any],
        order_by: Sequence[str] = (),
    ) -> list[Record]:
        model = self._model(table)
        stmt = select(model).where(*self._where(model, filters))
        if order_by:
            stmt = stmt.order_by(*(getattr(model, name) for name in order_by))
        return [self._to_record(obj) for obj in self.session.scalars(stmt)]

    def find_with_items(
        self,
        table: str,
        record_id: Any,
        items_table: str,
        foreign_key: str,
    ) -> Record | None:
        """Fetch a header row together with its child rows (sorted)."""
        header = self.find_by_id(table, record_id)
        if header is None:
            return None
        header["items"] = self.find_where(
            items_table,
            {foreign_key: header["id"]},
            order_by=("sort_order", "created_at"),
        )
        return header

    # =========================================================================
    # Writes
    # =========================================================================

    def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        model = self._model(table)
        with self._write(table, "insert"):
            obj = model(**record)
            self.session.add(obj)
        logger.debug("store_insert", extra={"table": table, "record_id": str(obj.id)})
        return self._to_record(obj)

    def insert_many(self, table: str, records: Sequence[Mapping[str, Any]]) -> list[Record]:
        model = self._model(table)
        if not records:
            return []
        with self._write(table, "insert_many"):
            objs = [model(**record) for record in records]
            self.session.add_all(objs)
        logger.debug("store_insert_many", extra={"table": table, "count": len(objs)})
        return [self._to_record(obj) for obj in objs]

    def update_where(
        self,
        table: str,
        filters: Mapping[str, Any],
        patch: Mapping[str, Any],
    ) -> int:
        model = self._model(table)
        with self._write(table, "update"):
            result = self.session.execute(
                update(model)
                .where(*self._where(model, filters))
                .values(**patch)
                .execution_options(synchronize_session="fetch")
            )
        return result.rowcount

    def delete_where(self, table: str, filters: Mapping[str, Any]) -> int:
        model = self._model(table)
        with self._write(table, "delete"):
            result = self.session.execute(
                delete(model)
                .where(*self._where(model, filters))
                .execution_options(synchronize_session="fetch")
            )
        return result.rowcount

    # =========================================================================
    # Transaction boundaries
    # =========================================================================

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """
        Group several writes into one unit.

        Runs the block inside a SAVEPOINT: on any exception every write of
        the block is undone and the exception propagates.  Nothing is
        committed; the outer transaction stays open.
        """
        savepoint = self.session.begin_nested()
        try:
            yield
            self.session.flush()
        except Exception:
            savepoint.rollback()
            raise
        savepoint.commit()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
