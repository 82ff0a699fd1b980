# Overview: Pytest coverage for the quotation -> order -> delivery -> invoice sales lifecycle.

"""
Sales Lifecycle Tests

Covers:
- Atomic reservation into BOOKED on order confirmation
- Delivery notes move no stock and may follow an invoice
- Invoicing deducts BOOKED, pro-rates line discounts and posts revenue
- Cancellation returns un-invoiced units to the order warehouse
- Sales log on quotation value changes
- Historical sales/order import
"""

import pytest

from furnstock.models import AccountingPosting, StockTransfer, WarehouseStock
from furnstock.services import sales_service, stock_service
from furnstock.services.sales_service import SalesStateError
from furnstock.validation import ValidationError


@pytest.fixture
def quote(scope):
    """Factory: quotation for one or more {product, qty} lines."""
    def _quote(*lines, warehouse="GODOWN", **header):
        data = {
            "customer_name": "Anita Rao",
            "contact_id": "CUST-42",
            "sales_person": "Michael",
            "warehouse": warehouse,
            "items": [{"product_id": product.id, "qty": qty} for product, qty in lines],
        }
        data.update(header)
        return sales_service.create_quotation(data)
    return _quote


def _order(quote, *lines, **header):
    sale = quote(*lines, **header)
    result = sales_service.confirm_order(sale.id)
    assert result
    return result.entity


class TestQuotation:

    def test_create_quotation_totals_and_log(self, db_session, stocked, quote):
        product = stocked("DIMS130", godown=50)

        sale = quote((product, 2))

        assert sale.status == "QUOTATION"
        assert sale.order_no == "QT-0001"
        assert sale.subtotal_cents == 20_000
        assert sale.total_gst_cents == 3_600
        assert sale.grand_total_cents == 23_600
        assert stock_service.get_stock_level(product.id, "GODOWN") == 50
        logs = sales_service.list_sales_logs()
        assert [(log.action, log.new_total_cents) for log in logs] == [("CREATED", 23_600)]

    def test_update_logs_value_change(self, db_session, stocked, quote):
        product = stocked("DIMS130", godown=50)
        sale = quote((product, 2))

        sales_service.update_quotation(sale.id, {"items": [{"product_id": product.id, "qty": 3}]})
        sales_service.update_quotation(sale.id, {"notes": "call before delivery"})

        logs = sales_service.list_sales_logs(sale.order_no)
        assert [log.action for log in logs] == ["CREATED", "UPDATED"]
        assert (logs[1].old_total_cents, logs[1].new_total_cents, logs[1].delta_cents) == (23_600, 35_400, 11_800)

    def test_mark_sent_then_no_resend(self, db_session, stocked, quote):
        product = stocked("DIMS130", godown=5)
        sale = quote((product, 1))

        assert sales_service.mark_quotation_sent(sale.id).status == "QUOTATION_SENT"
        with pytest.raises(SalesStateError):
            sales_service.mark_quotation_sent(sale.id)

    def test_quotation_cannot_reserve_from_booked(self, db_session, stocked, quote):
        product = stocked("DIMS130", booked=5)

        with pytest.raises(ValidationError):
            quote((product, 1), warehouse="BOOKED")

    def test_discount_above_line_value_rejected(self, db_session, stocked, scope):
        product = stocked("DIMS130", godown=5)

        with pytest.raises(ValidationError):
            sales_service.create_quotation({
                "customer_name": "Anita Rao",
                "items": [{"product_id": product.id, "qty": 1, "discount_cents": 10_001}],
            })


class TestReservation:

    def test_confirm_then_invoice(self, db_session, stocked, quote):
        """GODOWN=50, order 2: confirm -> 48/2 SALES_ORDER; invoice 2 -> BOOKED 0 FULLY_BILLED."""
        product = stocked("DIMS130", godown=50)
        sale = quote((product, 2))

        result = sales_service.confirm_order(sale.id)

        assert result
        assert result.entity.status == "SALES_ORDER"
        assert result.entity.so_no == "SO-0001"
        assert stock_service.get_stock_level(product.id, "GODOWN") == 48
        assert stock_service.get_stock_level(product.id, "BOOKED") == 2

        invoice = sales_service.create_invoice(sale.id, [{"product_id": product.id, "qty": 2}])

        assert invoice
        assert invoice.entity.status == "FULLY_BILLED"
        assert stock_service.get_stock_level(product.id, "BOOKED") == 0
        assert stock_service.get_stock_level(product.id, "GODOWN") == 48

    def test_reservation_is_all_or_nothing(self, db_session, stocked, quote):
        chair = stocked("CH-1", godown=5)
        table = stocked("TB-1", godown=0)
        sale = quote((chair, 2), (table, 1))

        result = sales_service.confirm_order(sale.id)

        assert not result
        assert [row["product_id"] for row in result.violations] == [table.id]
        assert stock_service.get_stock_level(chair.id, "GODOWN") == 5
        assert stock_service.get_stock_level(chair.id, "BOOKED") == 0
        assert db_session.query(StockTransfer).count() == 0
        assert sales_service.get_sale(sale.id).status == "QUOTATION"

    def test_untracked_products_are_not_reserved(self, db_session, make_product, quote):
        service = make_product("FIT-1", track_inventory=False, sales_price_cents=50_000)
        sale = quote((service, 1))

        assert sales_service.confirm_order(sale.id)
        assert db_session.query(WarehouseStock).count() == 0


class TestDelivery:

    def test_delivery_moves_no_stock(self, db_session, stocked, quote):
        product = stocked("DIMS130", godown=10)
        sale = _order(quote, (product, 2))

        first = sales_service.record_delivery(sale.id, [{"product_id": product.id, "qty": 1}])
        assert first
        assert first.entity.status == "PARTIALLY_DELIVERED"
        assert stock_service.get_stock_level(product.id, "BOOKED") == 2

        second = sales_service.record_delivery(sale.id, [{"product_id": product.id, "qty": 1}])
        assert second.entity.status == "FULLY_DELIVERED"
        numbers = [d.delivery_no for d in sales_service.get_sale(sale.id).delivery_history]
        assert numbers == ["DN-0001", "DN-0002"]

    def test_over_delivery_rejected(self, db_session, stocked, quote):
        product = stocked("DIMS130", godown=10)
        sale = _order(quote, (product, 2))

        result = sales_service.record_delivery(sale.id, [{"product_id": product.id, "qty": 3}])

        assert not result
        assert result.violations[0]["reason"] == "over_delivery"
        assert sales_service.get_sale(sale.id).items[0].delivered_qty == 0

    def test_billing_status_outranks_delivery(self, db_session, stocked, quote):
        product = stocked("DIMS130", godown=10)
        sale = _order(quote, (product, 4))

        sales_service.create_invoice(sale.id, [{"product_id": product.id, "qty": 1}])
        result = sales_service.record_delivery(sale.id, [{"product_id": product.id, "qty": 4}])

        assert result.entity.status == "PARTIALLY_BILLED"

    def test_delivery_after_full_invoice(self, db_session, stocked, quote):
        product = stocked("DIMS130", godown=10)
        sale = _order(quote, (product, 2))
        sales_service.create_invoice(sale.id, [{"product_id": product.id, "qty": 2}])

        result = sales_service.record_delivery(sale.id, [{"product_id": product.id, "qty": 2}])

        assert result
        assert result.entity.status == "FULLY_BILLED"
        assert result.entity.items[0].delivered_qty == 2
        assert [d.delivery_no for d in result.entity.delivery_history] == ["DN-0001"]

    def test_fully_delivered_order_rejects_more_units(self, db_session, stocked, quote):
        product = stocked("DIMS130", godown=10)
        sale = _order(quote, (product, 1))
        sales_service.record_delivery(sale.id, [{"product_id": product.id, "qty": 1}])

        result = sales_service.record_delivery(sale.id, [{"product_id": product.id, "qty": 1}])

        assert not result
        assert result.violations[0]["reason"] == "over_delivery"

    @pytest.mark.parametrize("warehouse", ["HISTORICAL", "ARCHIVE", "BASEMENT"])
    def test_delivery_from_frozen_or_unknown_warehouse_rejected(self, db_session, stocked, quote, warehouse):
        product = stocked("DIMS130", godown=10)
        sale = _order(quote, (product, 2))

        with pytest.raises(ValidationError):
            sales_service.record_delivery(sale.id, [{"product_id": product.id, "qty": 1}], warehouse)

        assert sales_service.get_sale(sale.id).items[0].delivered_qty == 0


class TestInvoicing:

    def test_over_invoicing_rejected(self, db_session, stocked, quote):
        product = stocked("DIMS130", godown=10)
        sale = _order(quote, (product, 2))

        result = sales_service.create_invoice(sale.id, [{"product_id": product.id, "qty": 3}])

        assert not result
        assert result.violations[0]["reason"] == "over_invoicing"
        assert stock_service.get_stock_level(product.id, "BOOKED") == 2
        assert db_session.query(AccountingPosting).count() == 0

    def test_missing_booked_stock_rejects_invoice(self, db_session, stocked, quote):
        product = stocked("DIMS130", godown=10)
        sale = _order(quote, (product, 2))
        stock_service.transfer_stock(product.id, "BOOKED", "GODOWN", 2)

        result = sales_service.create_invoice(sale.id, [{"product_id": product.id, "qty": 2}])

        assert not result
        assert result.violations[0]["reason"] == "insufficient_stock"
        assert sales_service.get_sale(sale.id).items[0].invoiced_qty == 0

    def test_revenue_posting_and_prorated_discount(self, db_session, stocked, quote, recording_sink):
        product = stocked("DIMS130", godown=10)
        sale = quote((product, 3))
        sales_service.update_quotation(sale.id, {
            "items": [{"product_id": product.id, "qty": 3, "discount_cents": 1_000}],
        })
        sales_service.confirm_order(sale.id)

        sales_service.create_invoice(sale.id, [{"product_id": product.id, "qty": 1}])
        sales_service.create_invoice(sale.id, [{"product_id": product.id, "qty": 2}])

        invoices = sales_service.get_sale(sale.id).invoices
        assert [inv.invoice_no for inv in invoices] == ["INV-0001", "INV-0002"]
        assert [inv.taxable_cents for inv in invoices] == [9_667, 19_333]
        assert [inv.tax_cents for inv in invoices] == [1_740, 3_480]
        assert sum(inv.taxable_cents for inv in invoices) == 30_000 - 1_000

        revenue = recording_sink.named("record_sales_revenue")
        assert [call["invoice_id"] for call in revenue] == ["INV-0001", "INV-0002"]
        assert revenue[0]["amount_cents"] == 9_667 + 1_740
        assert revenue[0]["contact_id"] == "CUST-42"
        assert revenue[0]["order_no"] == "QT-0001"

    def test_gst_disabled_line_has_no_tax(self, db_session, stocked, scope):
        product = stocked("DIMS130", godown=10)
        sale = sales_service.create_quotation({
            "customer_name": "Anita Rao",
            "items": [{"product_id": product.id, "qty": 1, "is_gst_enabled": False}],
        })

        assert sale.total_gst_cents == 0
        assert sale.grand_total_cents == 10_000


class TestCancellation:

    def test_cancel_returns_uninvoiced_units(self, db_session, stocked, quote):
        """Ordered 5, invoiced 2: cancel returns 3 from BOOKED to the order warehouse."""
        product = stocked("DIMS130", godown=5)
        sale = _order(quote, (product, 5))
        sales_service.create_invoice(sale.id, [{"product_id": product.id, "qty": 2}])
        assert stock_service.get_stock_level(product.id, "BOOKED") == 3

        result = sales_service.cancel_order(sale.id)

        assert result
        assert result.entity.status == "CANCELLED"
        assert stock_service.get_stock_level(product.id, "BOOKED") == 0
        assert stock_service.get_stock_level(product.id, "GODOWN") == 3
        assert sales_service.list_sales_logs(sale.order_no)[-1].action == "CANCELLED"

    def test_cancel_from_display_returns_to_display(self, db_session, stocked, quote):
        product = stocked("DIMS130", display=2)
        sale = _order(quote, (product, 2), warehouse="DISPLAY")

        sales_service.cancel_order(sale.id)

        assert stock_service.get_stock_level(product.id, "DISPLAY") == 2

    def test_quotation_and_fully_billed_cannot_be_cancelled(self, db_session, stocked, quote):
        product = stocked("DIMS130", godown=5)
        draft = quote((product, 1))
        with pytest.raises(SalesStateError):
            sales_service.cancel_order(draft.id)

        sale = _order(quote, (product, 1))
        sales_service.create_invoice(sale.id, [{"product_id": product.id, "qty": 1}])
        with pytest.raises(SalesStateError):
            sales_service.cancel_order(sale.id)


class TestPayments:

    def test_payment_and_advance_accumulate(self, db_session, stocked, quote, recording_sink):
        product = stocked("DIMS130", godown=5)
        sale = _order(quote, (product, 1))

        sales_service.add_sale_payment(sale.id, 10_000, account_id="CASH", reference="R-1")
        assert sales_service.get_sale(sale.id).payment_status == "PARTIAL"
        sales_service.reconcile_advance(sale.id, 1_800)

        sale = sales_service.get_sale(sale.id)
        assert sale.amount_paid_cents == 11_800
        assert sale.payment_status == "PAID"
        payment = recording_sink.named("record_payment_against_invoice")[0]
        assert payment["invoice_id"] == sale.order_no
        assert payment["customer_name"] == "Anita Rao"
        assert recording_sink.named("reconcile_advance_to_invoice")[0]["amount_cents"] == 1_800

    def test_cancelled_order_refuses_payment(self, db_session, stocked, quote):
        product = stocked("DIMS130", godown=5)
        sale = _order(quote, (product, 1))
        sales_service.cancel_order(sale.id)

        with pytest.raises(SalesStateError):
            sales_service.add_sale_payment(sale.id, 100)


class TestHistoricalImport:

    RECORDS = [{
        "order_no": "OLD-INV-1",
        "customer_name": "Mehta Traders",
        "date": "2022-11-05",
        "items": [{"model_no": "DIMS130", "name": "Side table", "qty": 2, "price": 600, "discount": "100"}],
    }]

    def test_import_sales_as_fully_billed(self, db_session, stocked, recording_sink):
        product = stocked("DIMS130", godown=7)

        sale = sales_service.import_historical_sales(self.RECORDS)[0]

        assert sale.status == "FULLY_BILLED"
        assert sale.is_historical is True
        assert sale.items[0].product_id == product.id
        assert sale.items[0].invoiced_qty == 2
        assert sale.grand_total_cents == 110_000
        assert sale.payment_status == "PAID"
        assert stock_service.get_stock_level(product.id, "GODOWN") == 7
        assert recording_sink.calls == []

    def test_import_orders_as_fully_delivered(self, db_session, scope):
        sale = sales_service.import_historical_orders(self.RECORDS)[0]

        assert sale.status == "FULLY_DELIVERED"
        assert sale.items[0].delivered_qty == 2
        assert sale.items[0].invoiced_qty == 0

    def test_payment_on_historical_order_posts_nothing(self, db_session, scope, recording_sink):
        sale = sales_service.import_historical_orders([dict(self.RECORDS[0], amount_paid_cents=0)])[0]

        sales_service.add_sale_payment(sale.id, 5_000)

        assert sales_service.get_sale(sale.id).amount_paid_cents == 5_000
        assert db_session.query(AccountingPosting).count() == 0
