"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into the frozen
``billing_config.schema`` dataclasses.  Services never call this directly;
the runtime entry point is ``billing_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Invalid values raise ``ConfigError`` (a ``ValueError``) naming the field;
  nothing is silently replaced by a default.
* ``compute_checksum`` is deterministic for identical parsed data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import (
    CASCADE_MODES,
    LOG_LEVELS,
    BillingConfig,
    CascadeConfig,
    DatabaseConfig,
    FingerprintConfig,
    LoggingConfig,
    NumberingConfig,
)
from billing_kernel.exceptions import ConfigError
from billing_kernel.utils.hashing import hash_config

DATABASE_URL_ENV = "BILLING_DATABASE_URL"

_PREFIXED_KINDS = ("purchase_order", "delivery_note", "invoice")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError("<root>", f"expected a mapping, got {type(data).__name__}")
    return data


def apply_env_overrides(
    data: dict[str, Any],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    """Return a copy of ``data`` with environment overrides applied."""
    result = {key: (dict(value) if isinstance(value, dict) else value) for key, value in data.items()}
    url = environ.get(DATABASE_URL_ENV)
    if url:
        database = result.setdefault("database", {})
        if not isinstance(database, dict):
            raise ConfigError("database", "expected a mapping")
        database["url"] = url
    return result


def _section(data: Mapping[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(name, "expected a mapping")
    return section


def _int(section: Mapping[str, Any], key: str, default: int, field_name: str, minimum: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(field_name, f"expected an integer, got {value!r}")
    if value < minimum:
        raise ConfigError(field_name, f"must be >= {minimum}, got {value}")
    return value


def _bool(section: Mapping[str, Any], key: str, default: bool, field_name: str) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(field_name, f"expected a boolean, got {value!r}")
    return value


def _prefixes(
    section: Mapping[str, Any],
    key: str,
    default: dict[str, str],
) -> dict[str, str]:
    raw = section.get(key)
    if raw is None:
        return dict(default)
    if not isinstance(raw, dict):
        raise ConfigError(f"numbering.{key}", "expected a mapping")
    prefixes = dict(default)
    for kind, prefix in raw.items():
        if kind not in _PREFIXED_KINDS:
            raise ConfigError(f"numbering.{key}.{kind}", "unknown document kind")
        if not isinstance(prefix, str) or not prefix.strip() or "-" in prefix:
            raise ConfigError(
                f"numbering.{key}.{kind}",
                f"prefix must be a non-empty string without '-', got {prefix!r}",
            )
        prefixes[kind] = prefix.strip()
    return prefixes


def parse_cascade(data: Mapping[str, Any]) -> CascadeConfig:
    section = _section(data, "cascade")
    defaults = CascadeConfig()
    mode = section.get("mode", defaults.mode)
    if mode not in CASCADE_MODES:
        raise ConfigError("cascade.mode", f"must be one of {CASCADE_MODES}, got {mode!r}")
    return CascadeConfig(
        mode=mode,
        due_days=_int(section, "due_days", defaults.due_days, "cascade.due_days", 0),
    )


def parse_numbering(data: Mapping[str, Any]) -> NumberingConfig:
    section = _section(data, "numbering")
    defaults = NumberingConfig()
    return NumberingConfig(
        width=_int(section, "width", defaults.width, "numbering.width", 1),
        prefixes=_prefixes(section, "prefixes", defaults.prefixes),
        derived_prefixes=_prefixes(section, "derived_prefixes", defaults.derived_prefixes),
    )


def parse_fingerprint(data: Mapping[str, Any]) -> FingerprintConfig:
    section = _section(data, "fingerprint")
    return FingerprintConfig(
        sort_by_line_uid=_bool(
            section, "sort_by_line_uid", False, "fingerprint.sort_by_line_uid",
        ),
    )


def parse_database(data: Mapping[str, Any]) -> DatabaseConfig:
    section = _section(data, "database")
    defaults = DatabaseConfig()
    url = section.get("url", defaults.url)
    if not isinstance(url, str) or not url.strip():
        raise ConfigError("database.url", "must be a non-empty string")
    return DatabaseConfig(
        url=url.strip(),
        echo=_bool(section, "echo", defaults.echo, "database.echo"),
        pool_size=_int(section, "pool_size", defaults.pool_size, "database.pool_size", 1),
        max_overflow=_int(
            section, "max_overflow", defaults.max_overflow, "database.max_overflow", 0,
        ),
    )


def parse_logging(data: Mapping[str, Any]) -> LoggingConfig:
    section = _section(data, "logging")
    level = str(section.get("level", LoggingConfig().level)).upper()
    if level not in LOG_LEVELS:
        raise ConfigError("logging.level", f"must be one of {LOG_LEVELS}, got {level!r}")
    return LoggingConfig(level=level)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 checksum of the canonical JSON serialization of ``data``."""
    return hash_config(data)


def parse_config(data: Mapping[str, Any]) -> BillingConfig:
    """
    Parse a configuration mapping into a BillingConfig.

    Raises:
        ConfigError: on any invalid or mistyped value.
    """
    return BillingConfig(
        cascade=parse_cascade(data),
        numbering=parse_numbering(data),
        fingerprint=parse_fingerprint(data),
        database=parse_database(data),
        logging=parse_logging(data),
        checksum=compute_checksum(dict(data)),
    )
