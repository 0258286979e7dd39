"""
Diff Engine - Line-level comparison of an upstream and a downstream document.

Pure functions with no I/O.  Both sides are canonical LineItem records
(see billing_kernel.domain.normalization); lines are matched by
``line_uid`` and classified:

    added    upstream line with no downstream counterpart
    removed  downstream line with no upstream counterpart
    changed  matched line whose description, quantity or unit price differ

Unit prices are compared only when both sides carry one, so an unpriced
delivery note never reports a price change against a priced invoice.  This
departs from the simpler rule of comparing whenever the downstream line is
priced, with a missing upstream price read as zero: under that rule a sync
from a delivery note would reset every invoice price to zero.  An explicit
zero price is still a price and is compared.

Lines without a ``line_uid`` cannot be matched and are skipped on both
sides.  ``conflicts`` is always empty: two-way edits are not detected.

Usage:
    from billing_engines.diff import diff_items

    result = diff_items(upstream.items, downstream.items)
    if not result.is_empty:
        ...
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from billing_engines.tracer import traced_engine
from billing_kernel.domain.documents import LineItem

FIELD_DESCRIPTION = "description"
FIELD_QUANTITY = "quantity"
FIELD_UNIT_PRICE = "unit_price"


@dataclass(frozen=True)
class ChangeRecord:
    """A matched line whose content differs between the two sides."""

    current: LineItem
    proposed: LineItem
    changed_fields: tuple[str, ...]

    @property
    def line_uid(self) -> str:
        return self.proposed.line_uid


@dataclass(frozen=True)
class DiffResult:
    """
    Outcome of diffing two item sets.

    ``upstream`` keeps the full upstream item set the diff was computed
    from; reconciliation replaces the downstream items with it.
    """

    added: tuple[LineItem, ...] = ()
    removed: tuple[LineItem, ...] = ()
    changed: tuple[ChangeRecord, ...] = ()
    conflicts: tuple = ()
    upstream: tuple[LineItem, ...] = field(default=(), compare=False)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def summary(self) -> dict[str, int]:
        return {
            "added": len(self.added),
            "removed": len(self.removed),
            "changed": len(self.changed),
            "conflicts": len(self.conflicts),
        }


def changed_fields(current: LineItem, proposed: LineItem) -> tuple[str, ...]:
    """
    Names of the compared fields that differ, in a fixed order.

    ``unit_price`` is compared only when neither side is None; a missing
    price is not treated as zero.
    """
    fields: list[str] = []
    if (current.description or "") != (proposed.description or ""):
        fields.append(FIELD_DESCRIPTION)
    if current.quantity != proposed.quantity:
        fields.append(FIELD_QUANTITY)
    if (
        current.unit_price is not None
        and proposed.unit_price is not None
        and current.unit_price != proposed.unit_price
    ):
        fields.append(FIELD_UNIT_PRICE)
    return tuple(fields)


@traced_engine("diff", "1.0", fingerprint_fields=("upstream", "downstream"))
def diff_items(
    upstream: Iterable[LineItem],
    downstream: Iterable[LineItem],
) -> DiffResult:
    """
    Classify upstream and downstream lines as added, removed or changed.

    Output order follows the upstream for added and changed lines, and the
    downstream for removed lines.
    """
    upstream = tuple(upstream)
    remaining: dict[str, LineItem] = {}
    for item in downstream:
        if item.line_uid:
            remaining[item.line_uid] = item

    added: list[LineItem] = []
    changed: list[ChangeRecord] = []
    for item in upstream:
        if not item.line_uid:
            continue
        current = remaining.pop(item.line_uid, None)
        if current is None:
            added.append(item)
            continue
        fields = changed_fields(current, item)
        if fields:
            changed.append(ChangeRecord(current=current, proposed=item, changed_fields=fields))

    return DiffResult(
        added=tuple(added),
        removed=tuple(remaining.values()),
        changed=tuple(changed),
        upstream=upstream,
    )
