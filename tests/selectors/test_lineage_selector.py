"""
Tests for LineageSelector (billing_kernel/selectors/lineage_selector.py).

Navigation over both topologies and the staleness check.
"""

from uuid import uuid4

from billing_kernel.domain.documents import DocumentKind
from billing_kernel.selectors.lineage_selector import LineageSelector


class TestGetDocument:

    def test_normalizes_items(self, make_quote, orchestrator, selector):
        quote = make_quote()
        result = orchestrator.accept_and_cascade(quote.id)

        dn = selector.get_document("delivery_note", result.delivery_note_id)

        assert dn.kind is DocumentKind.DELIVERY_NOTE
        assert dn.upstream_id == result.purchase_order_id
        item = dn.items[0]
        assert (item.line_uid, item.quantity, item.unit_price) == ("L1", 2, None)

    def test_missing_document(self, selector):
        assert selector.get_document(DocumentKind.INVOICE, uuid4()) is None
        assert selector.get_document(DocumentKind.INVOICE, "not-a-uuid") is None


class TestNavigation:

    def test_chained_upstream(self, make_quote, orchestrator, selector):
        quote = make_quote()
        result = orchestrator.accept_and_cascade(quote.id)

        assert selector.get_upstream(DocumentKind.PURCHASE_ORDER, result.purchase_order_id).id == quote.id
        assert selector.get_upstream(DocumentKind.DELIVERY_NOTE, result.delivery_note_id).id == result.purchase_order_id
        assert selector.get_upstream(DocumentKind.INVOICE, result.invoice_id).id == result.delivery_note_id

    def test_fanned_upstream_is_quote(self, make_quote, orchestrator, selector):
        quote = make_quote()
        result = orchestrator.convert_quote_to_invoice(quote.id)

        assert selector.get_upstream(DocumentKind.DELIVERY_NOTE, result.delivery_note_id).id == quote.id
        assert selector.get_upstream(DocumentKind.INVOICE, result.invoice_id).id == quote.id

    def test_quote_has_no_upstream(self, make_quote, selector):
        quote = make_quote()
        assert selector.get_upstream(DocumentKind.QUOTE, quote.id) is None

    def test_chained_downstream(self, make_quote, orchestrator, selector):
        quote = make_quote()
        result = orchestrator.accept_and_cascade(quote.id)

        assert [d.id for d in selector.get_downstream(DocumentKind.QUOTE, quote.id)] == [
            result.purchase_order_id
        ]
        assert [d.id for d in selector.get_downstream(DocumentKind.PURCHASE_ORDER, result.purchase_order_id)] == [
            result.delivery_note_id
        ]
        assert selector.get_downstream(DocumentKind.INVOICE, result.invoice_id) == []

    def test_fanned_downstream(self, make_quote, orchestrator, selector):
        quote = make_quote()
        result = orchestrator.convert_quote_to_invoice(quote.id)

        kinds = {d.kind for d in selector.get_downstream(DocumentKind.QUOTE, quote.id)}
        assert kinds == {
            DocumentKind.PURCHASE_ORDER, DocumentKind.DELIVERY_NOTE, DocumentKind.INVOICE,
        }
        assert selector.get_downstream(DocumentKind.PURCHASE_ORDER, result.purchase_order_id) == []


class TestLineage:

    def test_chained_lineage(self, make_quote, orchestrator, selector):
        quote = make_quote()
        result = orchestrator.accept_and_cascade(quote.id)

        lineage = selector.lineage(quote.id)

        assert lineage.mode == "chained"
        assert [d.kind for d in lineage.documents()] == list(DocumentKind)
        assert lineage.invoice.id == result.invoice_id

    def test_quote_without_documents(self, make_quote, selector):
        quote = make_quote()
        lineage = selector.lineage(quote.id)
        assert lineage.documents() == [lineage.quote]
        assert lineage.mode is None

    def test_unknown_quote(self, selector):
        assert selector.lineage(uuid4()) is None


class TestSyncStatus:

    def test_fresh_copy_in_sync(self, make_quote, orchestrator, selector):
        quote = make_quote()
        result = orchestrator.accept_and_cascade(quote.id)

        check = selector.sync_status(DocumentKind.PURCHASE_ORDER, result.purchase_order_id)

        assert check.in_sync
        assert check.expected == check.actual

    def test_upstream_edit_makes_stale(self, make_quote, orchestrator, document_service, selector):
        quote = make_quote()
        result = orchestrator.accept_and_cascade(quote.id)

        document_service.replace_items(
            DocumentKind.QUOTE,
            quote.id,
            [{"line_uid": "L1", "description": "Widget", "quantity": 3, "unit_price": 100}],
        )

        check = selector.sync_status(DocumentKind.PURCHASE_ORDER, result.purchase_order_id)
        assert not check.in_sync
        assert check.upstream.id == quote.id

    def test_reorder_is_stale_by_default(self, make_quote, orchestrator, document_service, store):
        two_lines = [
            {"line_uid": "A", "description": "a", "quantity": 1, "unit_price": 1},
            {"line_uid": "B", "description": "b", "quantity": 1, "unit_price": 2},
        ]
        quote = make_quote(two_lines)
        result = orchestrator.accept_and_cascade(quote.id)
        document_service.replace_items(DocumentKind.QUOTE, quote.id, list(reversed(two_lines)))

        strict = LineageSelector(store)
        assert not strict.sync_status(DocumentKind.PURCHASE_ORDER, result.purchase_order_id).in_sync

    def test_quote_always_in_sync(self, make_quote, selector):
        quote = make_quote()
        check = selector.sync_status(DocumentKind.QUOTE, quote.id)
        assert check.in_sync
        assert check.upstream is None

    def test_missing_document(self, selector):
        assert selector.sync_status(DocumentKind.PURCHASE_ORDER, uuid4()) is None
