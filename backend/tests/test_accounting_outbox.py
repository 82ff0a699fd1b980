# Overview: Pytest coverage for the accounting posting outbox and the bundled ledger sink.

"""
Accounting Outbox Tests

Covers:
- Postings are written with the document and dispatched after commit
- A failing sink never undoes stock or document changes
- Retry bookkeeping (attempts, last_error, FAILED after max attempts)
- Deferred dispatch when ACCOUNTING_DISPATCH_ON_COMMIT is off
- A posting already settled by another drain is skipped
- Customer ledger and payables ageing from the ledger sink
"""

import pytest

from furnstock.models import LedgerEntry
from furnstock.services import accounting_service, purchase_service, sales_service, stock_service
from furnstock.services.accounting_service import LedgerAccountingSink, install_accounting_sink


@pytest.fixture
def invoiced_order(stocked):
    """Factory: confirmed order for 2 units, invoiced in full."""
    def _invoice():
        product = stocked("DIMS130", godown=10)
        sale = sales_service.create_quotation({
            "customer_name": "Anita Rao",
            "contact_id": "CUST-42",
            "items": [{"product_id": product.id, "qty": 2}],
        })
        sales_service.confirm_order(sale.id)
        result = sales_service.create_invoice(sale.id, [{"product_id": product.id, "qty": 2}])
        return product, result
    return _invoice


class TestFailingSink:

    def test_invoice_survives_sink_outage(self, db_session, invoiced_order, failing_sink):
        product, result = invoiced_order()

        assert result
        assert result.entity.status == "FULLY_BILLED"
        assert stock_service.get_stock_level(product.id, "BOOKED") == 0
        assert stock_service.get_stock_level(product.id, "GODOWN") == 8

        posting = accounting_service.list_postings()[0]
        assert posting.status == "PENDING"
        assert posting.attempts == 1
        assert posting.last_error.startswith("ConnectionError")
        assert db_session.query(LedgerEntry).count() == 0

    def test_posting_fails_after_max_attempts(self, db_session, invoiced_order, failing_sink):
        invoiced_order()

        accounting_service.dispatch_pending_postings()
        counts = accounting_service.dispatch_pending_postings()

        assert counts == {"dispatched": 0, "failed": 1}
        posting = accounting_service.list_postings()[0]
        assert posting.status == "FAILED"
        assert posting.attempts == 3
        assert accounting_service.dispatch_pending_postings() == {"dispatched": 0, "failed": 0}

    def test_retry_failed_after_recovery(self, app, db_session, invoiced_order, failing_sink):
        invoiced_order()
        accounting_service.dispatch_pending_postings()
        accounting_service.dispatch_pending_postings()

        install_accounting_sink(app, LedgerAccountingSink())
        counts = accounting_service.dispatch_pending_postings(retry_failed=True)

        assert counts == {"dispatched": 1, "failed": 0}
        posting = accounting_service.list_postings()[0]
        assert posting.status == "DISPATCHED"
        assert posting.last_error is None
        assert posting.dispatched_at is not None


class TestDeferredDispatch:

    def test_postings_wait_when_dispatch_on_commit_is_off(self, app, db_session, invoiced_order):
        app.config["ACCOUNTING_DISPATCH_ON_COMMIT"] = False

        invoiced_order()

        assert [p.status for p in accounting_service.list_postings()] == ["PENDING"]
        assert accounting_service.list_postings()[0].attempts == 0

        counts = accounting_service.dispatch_pending_postings()
        assert counts == {"dispatched": 1, "failed": 0}

    def test_dispatch_filters_by_company(self, app, db_session, invoiced_order, company_b):
        app.config["ACCOUNTING_DISPATCH_ON_COMMIT"] = False
        invoiced_order()

        assert accounting_service.dispatch_pending_postings(company_b.id) == {"dispatched": 0, "failed": 0}
        assert accounting_service.list_postings("PENDING")

    def test_settled_posting_is_not_dispatched_again(self, app, db_session, invoiced_order):
        app.config["ACCOUNTING_DISPATCH_ON_COMMIT"] = False
        invoiced_order()
        posting_id = accounting_service.list_postings()[0].id
        sink = accounting_service.get_accounting_sink()

        # Both drains listed the posting while it was still PENDING
        first = accounting_service._dispatch_one(sink, posting_id, 5)
        second = accounting_service._dispatch_one(sink, posting_id, 5)

        assert first is True
        assert second is None
        assert db_session.query(LedgerEntry).filter_by(entry_type="REVENUE").count() == 1
        assert accounting_service.list_postings()[0].attempts == 1

    def test_dispatched_posting_ignored_by_failed_retry(self, app, db_session, invoiced_order):
        invoiced_order()

        counts = accounting_service.dispatch_pending_postings(retry_failed=True)

        assert counts == {"dispatched": 0, "failed": 0}
        assert db_session.query(LedgerEntry).filter_by(entry_type="REVENUE").count() == 1


class TestLedgerSink:

    def test_customer_ledger_running_balance(self, db_session, invoiced_order):
        _, result = invoiced_order()
        sales_service.add_sale_payment(result.entity.id, 10_000, account_id="CASH")

        ledger = accounting_service.get_party_ledger("CUSTOMER", "CUST-42")

        assert [row["entry_type"] for row in ledger] == ["REVENUE", "CUSTOMER_PAYMENT"]
        assert [row["balance_cents"] for row in ledger] == [23_600, 13_600]

    def test_payables_ageing_per_supplier(self, db_session, supplier, make_product):
        chair = make_product("CH-100")
        purchase = purchase_service.create_rfq({
            "supplier_id": supplier.id,
            "items": [{"product_id": chair.id, "qty": 5}],
        })
        purchase_service.confirm_po(purchase.id)
        purchase_service.record_grn(purchase.id, [{"product_id": chair.id, "qty": 5}])
        purchase_service.create_vendor_bill(purchase.id, [{"product_id": chair.id, "qty": 5}])
        purchase_service.record_purchase_payment(purchase.id, 10_000)

        ageing = accounting_service.get_payables_ageing()

        assert len(ageing) == 1
        assert ageing[0]["party_id"] == str(supplier.id)
        assert ageing[0]["party_name"] == "Godrej Interio"
        assert ageing[0]["due_cents"] == 35_400 - 10_000
