"""
Numbering Engine - Next human-readable document number.

Pure functions with no I/O.  Numbers have the form
``{prefix}-{year}-{NNNN}`` (zero-padded).  The next number in a
(prefix, year) bucket is one more than the suffix of the most recent
matching number, where "most recent" means last in creation order, not
lexicographic order.  A malformed suffix counts as no number at all, so
the bucket restarts at 1.

Concurrency:
    Two callers reading the same existing numbers produce the same next
    number.  Uniqueness under concurrency is the caller's job (a
    serializing transaction or an advisory lock around read and insert).

Usage:
    from billing_engines.numbering import next_number

    next_number(["INV-2025-0001", "INV-2025-0003"], "INV", 2025)
    # "INV-2025-0004"
"""

from __future__ import annotations

from collections.abc import Iterable

from billing_engines.tracer import traced_engine

DEFAULT_WIDTH = 4


def format_number(prefix: str, year: int, sequence: int, width: int = DEFAULT_WIDTH) -> str:
    return f"{prefix}-{year}-{sequence:0{width}d}"


def _parse_suffix(value: str) -> int | None:
    value = value.strip()
    if not value or not value.isdecimal():
        return None
    return int(value)


@traced_engine("numbering", "1.0", fingerprint_fields=("prefix", "year"))
def next_number(
    existing: Iterable[str | None],
    prefix: str,
    year: int,
    width: int = DEFAULT_WIDTH,
) -> str:
    """
    Next number for the (prefix, year) bucket.

    Args:
        existing: Existing numbers in creation order.  Entries from other
            buckets and None are ignored.
        prefix: Document prefix, e.g. "INV".
        year: Bucket year.
        width: Zero-padding width of the sequence.
    """
    bucket = f"{prefix}-{year}-"
    latest = None
    for number in existing:
        if number and number.startswith(bucket):
            latest = number

    sequence = 1
    if latest is not None:
        parsed = _parse_suffix(latest[len(bucket):])
        if parsed is not None:
            sequence = parsed + 1
    return format_number(prefix, year, sequence, width)


def next_counter(existing: Iterable[str | None]) -> str:
    """
    Next value of a bare incrementing counter.

    The most recent entry is incremented; a non-numeric or missing one
    restarts the counter at 1.
    """
    latest = None
    for number in existing:
        if number:
            latest = number
    parsed = _parse_suffix(latest) if latest is not None else None
    return str(parsed + 1 if parsed is not None else 1)
