"""Database layer - engine, base classes and the session scope."""

from billing_kernel.db.base import Base, TimestampedBase, UUIDString
from billing_kernel.db.engine import create_tables, get_engine, get_session

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TimestampedBase",
    "UUIDString",
]
