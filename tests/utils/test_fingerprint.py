"""
Tests for content fingerprints (billing_kernel/utils/hashing.py).

Covers:
- Key-order independence at every depth
- Sensitivity to quantity and unit price changes
- The empty sentinel for None and empty collections
- Order sensitivity of item lists, and the opt-in sort by line_uid
"""

from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from billing_kernel.domain.documents import LineItem
from billing_kernel.utils.hashing import EMPTY_FINGERPRINT, canonicalize_json, fingerprint

_amounts = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("100000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

_items = st.lists(
    st.fixed_dictionaries(
        {
            "line_uid": st.text(alphabet="abcdef0123456789", min_size=1, max_size=8),
            "description": st.text(max_size=20),
            "quantity": _amounts,
            "unit_price": _amounts,
        }
    ),
    min_size=1,
    max_size=6,
)


def _reverse_keys(value):
    """Same structure, mapping keys inserted in reverse order."""
    if isinstance(value, dict):
        return {key: _reverse_keys(value[key]) for key in reversed(list(value))}
    if isinstance(value, list):
        return [_reverse_keys(item) for item in value]
    return value


class TestFingerprintDeterminism:
    """Deep-equal inputs fingerprint identically."""

    def test_key_order_does_not_matter(self):
        assert fingerprint({"a": 1, "b": 2}) == fingerprint({"b": 2, "a": 1})

    def test_nested_key_order_does_not_matter(self):
        a = [{"line_uid": "L1", "meta": {"x": 1, "y": [1, {"p": 1, "q": 2}]}}]
        b = [{"meta": {"y": [1, {"q": 2, "p": 1}], "x": 1}, "line_uid": "L1"}]
        assert fingerprint(a) == fingerprint(b)

    @given(items=_items)
    @settings(max_examples=100)
    def test_key_insertion_order_never_matters(self, items):
        assert fingerprint(items) == fingerprint(_reverse_keys(items))

    def test_decimal_scale_is_normalized(self):
        a = [{"line_uid": "L1", "quantity": Decimal("2")}]
        b = [{"line_uid": "L1", "quantity": Decimal("2.000000000")}]
        assert fingerprint(a) == fingerprint(b)

    def test_line_item_records_hash_like_their_fields(self):
        item = LineItem(line_uid="L1", description="Widget", quantity=Decimal("2"))
        as_dict = {
            "line_uid": "L1",
            "description": "Widget",
            "quantity": Decimal("2"),
            "unit": None,
            "unit_price": None,
            "total": None,
        }
        assert fingerprint([item]) == fingerprint([as_dict])

    def test_digest_is_sha256_hex(self):
        digest = fingerprint([{"line_uid": "L1"}])
        assert len(digest) == 64
        int(digest, 16)

    def test_canonical_json_is_compact_and_sorted(self):
        assert canonicalize_json({"b": 1, "a": Decimal("1.50")}) == '{"a":"1.5","b":1}'


class TestFingerprintSensitivity:
    """Content changes change the fingerprint."""

    @given(items=_items, index=st.integers(min_value=0, max_value=5), delta=_amounts)
    @settings(max_examples=100)
    def test_quantity_change_changes_fingerprint(self, items, index, delta):
        index = index % len(items)
        changed = [dict(item) for item in items]
        changed[index]["quantity"] = items[index]["quantity"] + delta + Decimal("1")
        assert fingerprint(items) != fingerprint(changed)

    @given(items=_items, index=st.integers(min_value=0, max_value=5), delta=_amounts)
    @settings(max_examples=100)
    def test_unit_price_change_changes_fingerprint(self, items, index, delta):
        index = index % len(items)
        changed = [dict(item) for item in items]
        changed[index]["unit_price"] = items[index]["unit_price"] + delta + Decimal("0.01")
        assert fingerprint(items) != fingerprint(changed)

    def test_item_order_is_significant_by_default(self):
        a = [{"line_uid": "A", "quantity": 1}, {"line_uid": "B", "quantity": 2}]
        assert fingerprint(a) != fingerprint(list(reversed(a)))

    def test_sort_by_line_uid_ignores_reordering(self):
        a = [{"line_uid": "A", "quantity": 1}, {"line_uid": "B", "quantity": 2}]
        assert fingerprint(a, sort_by_line_uid=True) == fingerprint(
            list(reversed(a)), sort_by_line_uid=True
        )


class TestEmptySentinel:
    """None and empty collections hash to the empty sentinel."""

    def test_none(self):
        assert fingerprint(None) == EMPTY_FINGERPRINT

    def test_empty_list(self):
        assert fingerprint([]) == EMPTY_FINGERPRINT

    def test_empty_mapping(self):
        assert fingerprint({}) == EMPTY_FINGERPRINT

    def test_non_empty_is_not_sentinel(self):
        assert fingerprint([{}]) != EMPTY_FINGERPRINT


class _Opaque:
    def __str__(self):
        return "opaque"


class TestArbitraryInput:
    """Any acyclic value fingerprints without raising."""

    def test_mixed_key_types(self):
        data = {1: "a", "b": 2, None: 3}
        assert fingerprint(data) == fingerprint({"b": 2, None: 3, 1: "a"})
        nested = [{"line_uid": "L1", "meta": {1: "a", "b": 2}}]
        assert len(fingerprint(nested)) == 64

    def test_colliding_key_strings_are_deterministic(self):
        a = {1: "int", "1": "str"}
        b = {"1": "str", 1: "int"}
        assert fingerprint(a) == fingerprint(b)

    def test_tuple_keys(self):
        data = {("L1", 1): Decimal("2"), ("L0", 2): Decimal("3")}
        assert len(fingerprint(data)) == 64

    def test_unknown_object_falls_back_to_its_string(self):
        assert canonicalize_json({"x": _Opaque()}) == '{"x":"opaque"}'

    def test_set_members_are_ordered(self):
        assert fingerprint({"tags": {"b", "a", "c"}}) == fingerprint({"tags": {"c", "a", "b"}})

    def test_nested_sets_of_mixed_members(self):
        data = [{"tags": frozenset({1, "1", Decimal("2.0")})}]
        assert fingerprint(data) == fingerprint(data)
        assert fingerprint(data) != EMPTY_FINGERPRINT
