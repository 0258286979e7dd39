"""Utility modules for the billing kernel."""

from billing_kernel.utils.hashing import (
    EMPTY_FINGERPRINT,
    canonicalize_json,
    fingerprint,
    hash_config,
)

__all__ = [
    "EMPTY_FINGERPRINT",
    "canonicalize_json",
    "fingerprint",
    "hash_config",
]
