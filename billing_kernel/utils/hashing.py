"""
Deterministic content fingerprints.

A fingerprint is the staleness key of the lineage chain: a downstream
document is in sync with its upstream exactly when the hash it stored at
its last copy equals the fingerprint of the upstream items today.

All fingerprints must be deterministic and reproducible:
- mapping keys are sorted recursively before serialization
- sequence order is significant (items are ordered business lines)
- Decimals are normalized, so 2 and 2.00 hash identically
"""

import dataclasses
import hashlib
import json
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

# Fingerprint of "nothing": None, [] and {} all map here.
EMPTY_FINGERPRINT = ""


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Unknown types fall back to ``str(obj)`` so that canonicalization never
    raises on a value it cannot name.
    """
    if isinstance(obj, Decimal):
        if not obj.is_finite():
            return str(obj)
        # Remove trailing zeros for consistency
        return str(obj.normalize())
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.hex()
    return str(obj)


def _key_order(key: Any) -> tuple[str, str, str]:
    return (str(key), type(key).__name__, repr(key))


def _canonical(obj: Any) -> Any:
    """
    Rebuild ``obj`` from JSON-native values only.

    Mapping keys become strings (ordered by their string form, with the
    original type breaking ties), tuples become lists, and sets are ordered
    by the canonical JSON of their members.
    """
    if obj is None or isinstance(obj, (str, bool, int, float)):
        return obj
    if isinstance(obj, Mapping):
        return {
            str(key): _canonical(value)
            for key, value in sorted(obj.items(), key=lambda kv: _key_order(kv[0]))
        }
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return _canonical(dataclasses.asdict(obj))
    if isinstance(obj, (list, tuple)):
        return [_canonical(value) for value in obj]
    if isinstance(obj, (set, frozenset)):
        members = [_canonical(value) for value in obj]
        return sorted(members, key=_dumps)
    return _json_serializer(obj)


def _dumps(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def canonicalize_json(data: Any) -> str:
    """
    Convert data to canonical JSON string.

    Produces a deterministic JSON representation:
    - Keys are sorted alphabetically (at every depth), whatever their type
    - No whitespace
    - Consistent handling of special types (Decimal, datetime, UUID)

    Args:
        data: Data to canonicalize.

    Returns:
        Canonical JSON string.
    """
    return _dumps(_canonical(data))


def _is_empty(data: Any) -> bool:
    if data is None:
        return True
    if isinstance(data, (list, tuple, Mapping)) and len(data) == 0:
        return True
    return False


def _line_uid_of(item: Any) -> str:
    if isinstance(item, Mapping):
        return str(item.get("line_uid") or "")
    return str(getattr(item, "line_uid", None) or "")


def fingerprint(data: Any, *, sort_by_line_uid: bool = False) -> str:
    """
    Compute the content fingerprint of a record or item collection.

    Args:
        data: Line items (records or mappings), a single record, or any
            acyclic nested structure of JSON-compatible values.
        sort_by_line_uid: When True and ``data`` is a sequence, items are
            ordered by ``line_uid`` before hashing so that a pure reorder
            does not change the fingerprint.

    Returns:
        Hex-encoded SHA-256 hash (64 characters), or EMPTY_FINGERPRINT for
        None and empty collections.
    """
    if _is_empty(data):
        return EMPTY_FINGERPRINT

    if sort_by_line_uid and isinstance(data, (list, tuple)):
        data = sorted(data, key=_line_uid_of)

    canonical = canonicalize_json(data)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_config(payload: dict) -> str:
    """
    Compute the checksum of a configuration payload.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    return hashlib.sha256(canonicalize_json(payload).encode("utf-8")).hexdigest()
