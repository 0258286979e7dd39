"""
BillingConfig schema.

Frozen dataclasses the YAML configuration is parsed into.  Defaults here
are the values used when a key is absent from the YAML file.
"""

from __future__ import annotations

from dataclasses import dataclass, field

CASCADE_MODES = ("chained", "fanned")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _default_prefixes() -> dict[str, str]:
    return {"purchase_order": "BC", "delivery_note": "BL", "invoice": "INV"}


def _default_derived_prefixes() -> dict[str, str]:
    return {"purchase_order": "PO", "delivery_note": "DN", "invoice": "INV"}


@dataclass(frozen=True)
class CascadeConfig:
    """How a quote is turned into derived documents."""

    mode: str = "chained"
    due_days: int = 30


@dataclass(frozen=True)
class NumberingConfig:
    width: int = 4
    prefixes: dict[str, str] = field(default_factory=_default_prefixes)
    derived_prefixes: dict[str, str] = field(default_factory=_default_derived_prefixes)


@dataclass(frozen=True)
class FingerprintConfig:
    # Sort line items by line_uid before hashing (reorder-insensitive)
    sort_by_line_uid: bool = False


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///billing.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class BillingConfig:
    """
    The runtime configuration artifact.

    ``checksum`` is the SHA-256 of the canonical JSON of the parsed source
    (after environment overrides), for change detection in logs.
    """

    cascade: CascadeConfig = field(default_factory=CascadeConfig)
    numbering: NumberingConfig = field(default_factory=NumberingConfig)
    fingerprint: FingerprintConfig = field(default_factory=FingerprintConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""
