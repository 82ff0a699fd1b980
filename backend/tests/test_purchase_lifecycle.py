# Overview: Pytest coverage for the RFQ -> PO -> GRN -> Bill purchase lifecycle.

"""
Purchase Lifecycle Tests

Covers:
- Document numbering (PUR / PO / GRN)
- Over-receipt and over-billing rejection with every offending line reported
- Status derivation from line quantities
- Stock increase on GRN, purchase-cost posting on bill
- Payments, supplier balance and ledger
- Historical purchase import
"""

import logging

import pytest

from furnstock.models import AccountingPosting, GRNRecord, VendorBillRecord, WarehouseStock
from furnstock.services import purchase_service, stock_service
from furnstock.services.catalog_service import find_product_by_model_no
from furnstock.services.purchase_service import PurchaseStateError
from furnstock.validation import ValidationError


@pytest.fixture
def chair(make_product):
    return make_product("CH-100", cost_cents=6_000, gst_rate_bps=1800)


@pytest.fixture
def po(scope, supplier, chair):
    """Confirmed PO: 10 chairs @ 60.00 + 18% GST."""
    purchase = purchase_service.create_rfq({
        "supplier_id": supplier.id,
        "items": [{"product_id": chair.id, "qty": 10}],
    })
    return purchase_service.confirm_po(purchase.id)


class TestRFQ:

    def test_create_rfq_numbers_and_totals(self, db_session, scope, supplier, chair):
        purchase = purchase_service.create_rfq({
            "supplier_id": supplier.id,
            "items": [{"product_id": chair.id, "qty": 10}],
            "business_date": "2025-05-10",
        })

        assert purchase.status == "RFQ"
        assert purchase.purchase_no == "PUR-0001"
        assert purchase.rfq_no == "PUR-0001"
        assert purchase.subtotal_cents == 60_000
        assert purchase.total_gst_cents == 10_800
        assert purchase.grand_total_cents == 70_800
        assert purchase.payment_status == "UNPAID"
        item = purchase.items[0]
        assert (item.ordered_qty, item.received_qty, item.billed_qty) == (10, 0, 0)

    def test_bad_lines_are_all_reported(self, db_session, scope, supplier, chair):
        with pytest.raises(ValidationError) as exc_info:
            purchase_service.create_rfq({
                "supplier_id": supplier.id,
                "items": [
                    {"product_id": 9999, "qty": 1},
                    {"product_id": chair.id, "qty": 0},
                ],
            })

        assert [row["line"] for row in exc_info.value.violations] == [0, 1]
        assert purchase_service.list_purchases() == []

    def test_update_only_in_rfq(self, db_session, scope, supplier, chair):
        purchase = purchase_service.create_rfq({
            "supplier_id": supplier.id,
            "items": [{"product_id": chair.id, "qty": 10}],
        })

        updated = purchase_service.update_purchase(purchase.id, {"items": [{"product_id": chair.id, "qty": 4}]})
        assert updated.grand_total_cents == 28_320

        purchase_service.confirm_po(purchase.id)
        with pytest.raises(PurchaseStateError):
            purchase_service.update_purchase(purchase.id, {"notes": "too late"})

    def test_confirm_po_derives_po_number(self, db_session, po):
        assert po.status == "PO"
        assert po.po_no == "PO-0001"


class TestGoodsReceipt:

    def test_over_receipt_rejected(self, db_session, po, chair):
        """Ordered 10: receiving 12 is rejected and received stays 0."""
        result = purchase_service.record_grn(po.id, [{"product_id": chair.id, "qty": 12}])

        assert not result
        assert result.violations[0]["reason"] == "over_receipt"
        assert result.violations[0]["remaining"] == 10
        assert purchase_service.get_purchase(po.id).items[0].received_qty == 0
        assert stock_service.get_stock_level(chair.id, "GODOWN") == 0
        assert db_session.query(GRNRecord).count() == 0

    def test_partial_receipt_then_bill_above_received_rejected(self, db_session, po, chair):
        """Receive 6 -> GRN_PARTIAL; billing 8 exceeds received and is rejected."""
        result = purchase_service.record_grn(po.id, [{"product_id": chair.id, "qty": 6}], reference="DC-55")

        assert result
        purchase = purchase_service.get_purchase(po.id)
        assert purchase.status == "GRN_PARTIAL"
        assert purchase.items[0].received_qty == 6
        assert stock_service.get_stock_level(chair.id, "GODOWN") == 6
        assert purchase.grn_history[0].grn_no == "GRN-0001"
        assert purchase.grn_history[0].reference == "DC-55"

        bill = purchase_service.create_vendor_bill(po.id, [{"product_id": chair.id, "qty": 8}])

        assert not bill
        assert [row["reason"] for row in bill.violations] == ["billing_unreceived"]
        assert purchase_service.get_purchase(po.id).items[0].billed_qty == 0
        assert db_session.query(VendorBillRecord).count() == 0

    def test_every_bad_line_reported(self, db_session, po, chair):
        result = purchase_service.record_grn(po.id, [
            {"product_id": chair.id, "qty": 12},
            {"product_id": 9999, "qty": 1},
            {"product_id": chair.id, "qty": 1},
            {"product_id": chair.id, "qty": "abc"},
        ])

        assert not result
        reasons = sorted(row["reason"] for row in result.violations)
        assert reasons == ["duplicate_line", "malformed", "over_receipt", "unknown_product"]

    def test_receipt_into_chosen_warehouse(self, db_session, po, chair):
        purchase_service.record_grn(po.id, [{"product_id": chair.id, "qty": 3}], warehouse="DISPLAY")

        assert stock_service.get_stock_level(chair.id, "DISPLAY") == 3

    def test_receipt_into_booked_rejected(self, db_session, po, chair):
        with pytest.raises(ValidationError):
            purchase_service.record_grn(po.id, [{"product_id": chair.id, "qty": 3}], warehouse="BOOKED")

    def test_grn_requires_po(self, db_session, scope, supplier, chair):
        purchase = purchase_service.create_rfq({
            "supplier_id": supplier.id,
            "items": [{"product_id": chair.id, "qty": 1}],
        })

        with pytest.raises(PurchaseStateError):
            purchase_service.record_grn(purchase.id, [{"product_id": chair.id, "qty": 1}])


class TestBillingAndPayments:

    def test_full_cycle_posts_cost_and_reaches_billed(self, db_session, po, chair, supplier, recording_sink):
        purchase_service.record_grn(po.id, [{"product_id": chair.id, "qty": 6}])
        purchase_service.record_grn(po.id, [{"product_id": chair.id, "qty": 4}])
        assert purchase_service.get_purchase(po.id).status == "GRN_COMPLETED"

        result = purchase_service.create_vendor_bill(po.id, [{"product_id": chair.id, "qty": 10}], bill_no="GI/2025/88")

        assert result
        purchase = purchase_service.get_purchase(po.id)
        assert purchase.status == "BILLED"
        assert stock_service.get_stock_level(chair.id, "GODOWN") == 10
        costs = recording_sink.named("record_purchase_cost")
        assert len(costs) == 1
        assert costs[0]["purchase_id"] == po.id
        assert costs[0]["bill_no"] == "GI/2025/88"
        assert costs[0]["amount_cents"] == 70_800
        assert costs[0]["tax_cents"] == 10_800
        assert db_session.query(AccountingPosting).filter_by(status="DISPATCHED").count() == 1
        assert purchase_service.get_supplier_balance(supplier.id) == 50_000 + 70_800

    def test_partial_bill_keeps_receipt_status(self, db_session, po, chair):
        purchase_service.record_grn(po.id, [{"product_id": chair.id, "qty": 6}])
        result = purchase_service.create_vendor_bill(po.id, [{"product_id": chair.id, "qty": 6}])

        assert result
        purchase = purchase_service.get_purchase(po.id)
        assert purchase.status == "GRN_PARTIAL"
        assert purchase.items[0].billed_qty == 6
        assert purchase.bill_history[0].bill_no == "BILL-0001"

    def test_payments_update_status(self, db_session, po, chair, supplier, recording_sink):
        purchase_service.record_purchase_payment(po.id, 30_000, account_id="BANK-1", reference="NEFT-1")
        assert purchase_service.get_purchase(po.id).payment_status == "PARTIAL"

        purchase_service.reconcile_vendor_advance(po.id, 40_800)
        purchase = purchase_service.get_purchase(po.id)
        assert purchase.amount_paid_cents == 70_800
        assert purchase.payment_status == "PAID"
        assert recording_sink.named("record_payment_against_bill")[0]["account_id"] == "BANK-1"
        assert recording_sink.named("reconcile_advance_to_bill")[0]["amount_cents"] == 40_800

    def test_overpayment_accepted_with_warning(self, db_session, po, caplog):
        with caplog.at_level(logging.WARNING):
            purchase = purchase_service.record_purchase_payment(po.id, 80_000)

        assert purchase.payment_status == "PAID"
        assert "overpaid" in caplog.text

    def test_supplier_ledger_running_balance(self, db_session, po, chair, supplier):
        purchase_service.record_grn(po.id, [{"product_id": chair.id, "qty": 10}])
        purchase_service.create_vendor_bill(po.id, [{"product_id": chair.id, "qty": 10}])
        purchase_service.record_purchase_payment(po.id, 30_000)

        ledger = purchase_service.get_supplier_ledger(supplier.id)

        assert ledger["opening_balance_cents"] == 50_000
        assert [entry["balance_cents"] for entry in ledger["entries"]] == [120_800, 90_800]
        assert ledger["closing_balance_cents"] == 90_800


class TestCancellation:

    def test_cancel_keeps_received_stock(self, db_session, po, chair):
        purchase_service.record_grn(po.id, [{"product_id": chair.id, "qty": 4}])

        purchase = purchase_service.cancel_purchase(po.id)

        assert purchase.status == "CANCELLED"
        assert stock_service.get_stock_level(chair.id, "GODOWN") == 4
        with pytest.raises(PurchaseStateError):
            purchase_service.record_grn(po.id, [{"product_id": chair.id, "qty": 1}])
        with pytest.raises(PurchaseStateError):
            purchase_service.cancel_purchase(po.id)

    def test_billed_cannot_be_cancelled(self, db_session, po, chair):
        purchase_service.record_grn(po.id, [{"product_id": chair.id, "qty": 10}])
        purchase_service.create_vendor_bill(po.id, [{"product_id": chair.id, "qty": 10}])

        with pytest.raises(PurchaseStateError):
            purchase_service.cancel_purchase(po.id)


class TestHistoricalImport:

    RECORDS = [{
        "purchase_no": "OLD-17",
        "supplier_name": "Godrej Interio",
        "date": "2023-04-01",
        "items": [{"model_no": "legacy-9", "name": "Teak bed", "qty": 2, "price": "15000.50", "gst_rate_bps": 1200}],
    }]

    def test_import_creates_billed_paid_history_without_side_effects(self, db_session, scope, supplier):
        imported = purchase_service.import_historical_purchases(self.RECORDS)

        purchase = imported[0]
        assert purchase.status == "BILLED"
        assert purchase.is_historical is True
        assert purchase.source == "migration"
        assert purchase.supplier_id == supplier.id
        assert purchase.grand_total_cents == 3_000_100 + 360_012
        assert purchase.payment_status == "PAID"
        item = purchase.items[0]
        assert (item.ordered_qty, item.received_qty, item.billed_qty) == (2, 2, 2)

        shadow = find_product_by_model_no("LEGACY-9")
        assert shadow.is_historical is True
        assert db_session.query(WarehouseStock).count() == 0
        assert db_session.query(AccountingPosting).count() == 0

    def test_duplicate_number_rejected(self, db_session, scope, supplier):
        purchase_service.import_historical_purchases(self.RECORDS)

        with pytest.raises(ValidationError):
            purchase_service.import_historical_purchases(self.RECORDS)

    def test_malformed_record_rejects_payload(self, db_session, scope):
        with pytest.raises(ValidationError) as exc_info:
            purchase_service.import_historical_purchases([
                {"supplier_name": "", "items": []},
                {"supplier_name": "X", "items": [{"model_no": "A", "qty": 1, "price": "1.005"}]},
            ])

        assert [row["row"] for row in exc_info.value.violations] == [0, 1]
        assert purchase_service.list_purchases() == []
