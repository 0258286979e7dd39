"""Tests for DocumentService (billing_services/document_service.py)."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines.money import compute_totals
from billing_kernel.domain.documents import DocumentKind, LineItem
from billing_kernel.exceptions import DocumentNotFoundError
from billing_kernel.utils.hashing import fingerprint


class TestCreateQuote:
    """Quotes are created as drafts with hashes and totals derived from their items."""

    def test_creates_draft_with_items(self, make_quote, clock):
        quote = make_quote(
            [
                {"line_uid": "L1", "description": "Widget", "quantity": 2, "unit_price": 100},
                {"line_uid": "L2", "description": "Setup", "quantity": 1, "unit_price": "50.00"},
            ]
        )
        assert quote.status == "draft"
        assert quote.date == date(2025, 1, 15) == clock.today()
        assert [item.line_uid for item in quote.items] == ["L1", "L2"]
        assert quote.items[0].total == Decimal("200")

    def test_content_hash_is_fingerprint_of_items(self, make_quote):
        quote = make_quote()
        assert quote.content_hash == fingerprint(list(quote.items))

    def test_line_uid_assigned_when_missing(self, make_quote):
        quote = make_quote([{"description": "No uid", "quantity": 1, "unit_price": 5}])
        assert len(quote.items[0].line_uid) == 32

    def test_totals_stored(self, make_quote, store):
        quote = make_quote([{"line_uid": "L1", "quantity": 3, "unit_price": 100}], discount_percent=10)
        row = store.find_by_id("quotes", quote.id)
        assert row["total_ht_gross"] == Decimal("300")
        assert row["total_discount"] == Decimal("30")
        assert row["total_ht"] == Decimal("270")
        assert row["total_tva"] == Decimal("54")
        assert row["total_ttc"] == Decimal("324")

    def test_very_large_amounts_are_stored(self, make_quote, store):
        quote = make_quote([{"line_uid": "L1", "quantity": "1e20", "unit_price": "1e9"}])
        row = store.find_by_id("quotes", quote.id)
        assert quote.content_hash
        assert row["total_ttc"] > row["total_ht"] > 0

    def test_logs_creation(self, make_quote, captured_logs):
        quote = make_quote()
        created = [r for r in captured_logs() if r["message"] == "quote_created"]
        assert created and created[0]["quote_id"] == str(quote.id)


class TestReplaceItems:
    """Item edits refresh the document's own hash and totals."""

    def test_replace_changes_hash_and_totals(self, make_quote, document_service, store):
        quote = make_quote()
        updated = document_service.replace_items(
            DocumentKind.QUOTE,
            quote.id,
            [LineItem(line_uid="L1", description="Widget", quantity=Decimal("5"), unit_price=Decimal("100"))],
        )
        assert updated.content_hash != quote.content_hash
        assert updated.content_hash == fingerprint(list(updated.items))
        row = store.find_by_id("quotes", quote.id)
        assert row["total_ht_gross"] == compute_totals(updated.items, 0).quantized().gross_ht

    def test_line_uid_preserved(self, make_quote, document_service):
        quote = make_quote()
        updated = document_service.replace_items(
            "quote", quote.id, [{"line_uid": "L1", "quantity": 9, "unit_price": 1}],
        )
        assert [item.line_uid for item in updated.items] == ["L1"]

    def test_discount_override(self, make_quote, document_service, store):
        quote = make_quote([{"line_uid": "L1", "quantity": 1, "unit_price": 100}])
        document_service.replace_items(
            "quote", quote.id, [{"line_uid": "L1", "quantity": 1, "unit_price": 100}], discount_percent=25,
        )
        assert store.find_by_id("quotes", quote.id)["total_ht"] == Decimal("75")

    def test_unknown_document(self, document_service):
        with pytest.raises(DocumentNotFoundError) as exc_info:
            document_service.replace_items("invoice", uuid4(), [])
        assert exc_info.value.code == "DOCUMENT_NOT_FOUND"


class TestUpdateStatus:

    def test_update_status(self, make_quote, document_service):
        quote = make_quote()
        assert document_service.update_status("quote", quote.id, "sent").status == "sent"

    def test_unknown_document(self, document_service):
        with pytest.raises(DocumentNotFoundError):
            document_service.update_status("quote", uuid4(), "sent")
