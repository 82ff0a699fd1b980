# Overview: Pytest coverage for the per-warehouse stock ledger.

"""
Stock Ledger Tests

Covers:
- Non-negative quantities (short deducts change nothing)
- Atomic transfers with exactly one audit row
- All-or-nothing batch transfers and deductions
- Frozen HISTORICAL/ARCHIVE warehouses and historical products
- Total vs sellable stock
- Manual receipts/deliveries and opening stock import
"""

import pytest

from furnstock.models import StockTransfer, WarehouseStock
from furnstock.services import stock_service
from furnstock.services.catalog_service import add_historical_shadow_product
from furnstock.validation import InsufficientStockError, QuantityLine, ValidationError


class TestDeductAndIncrease:

    def test_short_deduct_is_rejected_and_changes_nothing(self, db_session, stocked):
        """GODOWN=45, BOOKED=5: deducting 10 from BOOKED fails, BOOKED stays 5."""
        product = stocked("P1", godown=45, booked=5)

        assert stock_service.deduct_stock(product.id, "BOOKED", 10) is False
        assert stock_service.get_stock_level(product.id, "BOOKED") == 5
        assert stock_service.get_stock_level(product.id, "GODOWN") == 45

    def test_deduct_exact_quantity_reaches_zero(self, db_session, stocked):
        product = stocked("P1", godown=3)

        assert stock_service.deduct_stock(product.id, "GODOWN", 3) is True
        assert stock_service.get_stock_level(product.id, "GODOWN") == 0

    def test_deduct_from_missing_row_fails(self, db_session, make_product):
        product = make_product("P1")

        assert stock_service.deduct_stock(product.id, "REPAIR", 1) is False
        assert db_session.query(WarehouseStock).count() == 0

    def test_increase_creates_row(self, db_session, make_product):
        product = make_product("P1")

        assert stock_service.increase_stock(product.id, "DISPLAY", 7) is True
        assert stock_service.get_product_stock(product.id)["DISPLAY"] == 7

    def test_frozen_warehouses_are_noops(self, db_session, stocked):
        """HISTORICAL and ARCHIVE are never mutated by ledger operations."""
        product = stocked("P1", godown=10)

        assert stock_service.increase_stock(product.id, "HISTORICAL", 5) is False
        assert stock_service.deduct_stock(product.id, "ARCHIVE", 1) is False
        assert stock_service.transfer_stock(product.id, "GODOWN", "ARCHIVE", 2) is False
        assert stock_service.get_stock_level(product.id, "HISTORICAL") == 0
        assert stock_service.get_stock_level(product.id, "GODOWN") == 10

    def test_no_company_scope_is_a_noop(self, app, db_session, company_a):
        assert stock_service.increase_stock(1, "GODOWN", 5) is False
        assert stock_service.deduct_stock(1, "GODOWN", 5) is False
        assert stock_service.transfer_stock(1, "GODOWN", "BOOKED", 5) is False

    def test_non_positive_quantity_rejected(self, db_session, make_product):
        product = make_product("P1")

        with pytest.raises(ValidationError):
            stock_service.increase_stock(product.id, "GODOWN", 0)
        with pytest.raises(ValidationError):
            stock_service.increase_stock(product.id, "GODOWN", "2.5")

    def test_unknown_warehouse_rejected(self, db_session, make_product):
        product = make_product("P1")

        with pytest.raises(ValidationError):
            stock_service.increase_stock(product.id, "BASEMENT", 1)

    def test_historical_product_holds_no_stock(self, db_session, scope):
        shadow = add_historical_shadow_product({"model_no": "OLD-1", "name": "Old Sofa"})

        assert stock_service.increase_stock(shadow.id, "GODOWN", 4) is False
        assert stock_service.get_total_stock(shadow.id) == 0


class TestTransfer:

    def test_transfer_moves_stock_and_appends_one_record(self, db_session, stocked):
        """GODOWN=45, BOOKED=5: moving 20 gives GODOWN=25, BOOKED=25 and one audit row."""
        product = stocked("P1", godown=45, booked=5)

        assert stock_service.transfer_stock(product.id, "GODOWN", "BOOKED", 20, reference="T-1") is True

        levels = stock_service.get_product_stock(product.id)
        assert levels["GODOWN"] == 25
        assert levels["BOOKED"] == 25
        transfers = db_session.query(StockTransfer).all()
        assert len(transfers) == 1
        assert transfers[0].quantity == 20
        assert transfers[0].reference == "T-1"
        assert transfers[0].performed_by == "tester"

    def test_failed_transfer_leaves_both_sides_unchanged(self, db_session, stocked):
        product = stocked("P1", godown=5, display=2)

        assert stock_service.transfer_stock(product.id, "GODOWN", "DISPLAY", 6) is False

        levels = stock_service.get_product_stock(product.id)
        assert levels["GODOWN"] == 5
        assert levels["DISPLAY"] == 2
        assert db_session.query(StockTransfer).count() == 0

    def test_transfer_preserves_sum(self, db_session, stocked):
        product = stocked("P1", godown=12, repair=3)
        before = stock_service.get_total_stock(product.id)

        stock_service.transfer_stock(product.id, "GODOWN", "REPAIR", 4)

        assert stock_service.get_total_stock(product.id) == before

    def test_same_warehouse_rejected(self, db_session, stocked):
        product = stocked("P1", godown=5)

        with pytest.raises(ValidationError):
            stock_service.transfer_stock(product.id, "GODOWN", "GODOWN", 1)


class TestBatchOperations:

    def test_batch_transfer_rejects_all_and_lists_every_short_line(self, db_session, stocked):
        chair = stocked("CH-1", godown=10)
        table = stocked("TB-1", godown=1)
        bed = stocked("BD-1", godown=0)

        with pytest.raises(InsufficientStockError) as exc_info:
            stock_service.transfer_stock_batch(
                [QuantityLine(chair.id, 4), QuantityLine(table.id, 2), QuantityLine(bed.id, 1)],
                "GODOWN",
                "BOOKED",
            )

        short = {row["product_id"] for row in exc_info.value.violations}
        assert short == {table.id, bed.id}
        assert stock_service.get_stock_level(chair.id, "GODOWN") == 10
        assert stock_service.get_stock_level(chair.id, "BOOKED") == 0
        assert db_session.query(StockTransfer).count() == 0

    def test_batch_transfer_aggregates_repeated_products(self, db_session, stocked):
        chair = stocked("CH-1", godown=5)

        with pytest.raises(InsufficientStockError):
            stock_service.transfer_stock_batch(
                [QuantityLine(chair.id, 3), QuantityLine(chair.id, 3)], "GODOWN", "BOOKED",
            )

        transfers = stock_service.transfer_stock_batch(
            [QuantityLine(chair.id, 2), QuantityLine(chair.id, 3)], "GODOWN", "BOOKED",
        )
        assert len(transfers) == 1
        assert stock_service.get_stock_level(chair.id, "BOOKED") == 5

    def test_batch_deduct_all_or_nothing(self, db_session, stocked):
        chair = stocked("CH-1", booked=3)
        table = stocked("TB-1", booked=1)

        with pytest.raises(InsufficientStockError):
            stock_service.deduct_stock_batch([QuantityLine(chair.id, 2), QuantityLine(table.id, 2)], "BOOKED")
        assert stock_service.get_stock_level(chair.id, "BOOKED") == 3

        stock_service.deduct_stock_batch([QuantityLine(chair.id, 2), QuantityLine(table.id, 1)], "BOOKED")
        assert stock_service.get_stock_level(chair.id, "BOOKED") == 1
        assert stock_service.get_stock_level(table.id, "BOOKED") == 0


class TestReads:

    def test_total_and_sellable(self, db_session, stocked):
        product = stocked("P1", godown=10, display=2, booked=3, repair=1)

        assert stock_service.get_total_stock(product.id) == 16
        assert stock_service.get_sellable_stock(product.id) == 12

    def test_reads_are_idempotent(self, db_session, stocked):
        product = stocked("P1", godown=10, booked=3)

        first = (stock_service.get_total_stock(product.id), stock_service.get_sellable_stock(product.id))
        second = (stock_service.get_total_stock(product.id), stock_service.get_sellable_stock(product.id))

        assert first == second == (13, 10)

    def test_product_stock_lists_every_warehouse(self, db_session, make_product):
        product = make_product("P1")

        levels = stock_service.get_product_stock(product.id)

        assert set(levels) == {"GODOWN", "DISPLAY", "BOOKED", "REPAIR", "HISTORICAL", "ARCHIVE"}
        assert all(qty == 0 for qty in levels.values())


class TestManualMovements:

    def test_manual_receipt_and_delivery(self, db_session, make_product):
        product = make_product("P1")

        receipt = stock_service.record_manual_receipt(product.id, "GODOWN", 5, reference="RET-9", party_name="Walk-in")
        assert receipt.type == "RECEIPT"
        assert stock_service.record_manual_delivery(product.id, "GODOWN", 2, reference="DEL-1") is True

        assert stock_service.get_stock_level(product.id, "GODOWN") == 3
        kinds = [row.type for row in stock_service.list_manual_transactions(product.id)]
        assert kinds == ["DELIVERY", "RECEIPT"]

    def test_short_manual_delivery_writes_nothing(self, db_session, stocked):
        product = stocked("P1", display=1)

        assert stock_service.record_manual_delivery(product.id, "DISPLAY", 2) is False
        assert stock_service.list_manual_transactions(product.id) == []
        assert stock_service.get_stock_level(product.id, "DISPLAY") == 1


class TestOpeningStock:

    def test_sets_absolute_quantities(self, db_session, stocked):
        product = stocked("P1", godown=99)

        count = stock_service.set_opening_stock([
            {"model_no": "p1", "godown": 10, "display": "2", "booked": None, "repair": 1},
        ])

        assert count == 1
        levels = stock_service.get_product_stock(product.id)
        assert (levels["GODOWN"], levels["DISPLAY"], levels["BOOKED"], levels["REPAIR"]) == (10, 2, 0, 1)

    def test_unknown_model_rejects_whole_import(self, db_session, stocked):
        product = stocked("P1", godown=4)

        with pytest.raises(ValidationError) as exc_info:
            stock_service.set_opening_stock([
                {"model_no": "P1", "godown": 10},
                {"model_no": "NOPE", "godown": 1},
            ])

        assert [row["model_no"] for row in exc_info.value.violations] == ["NOPE"]
        assert stock_service.get_stock_level(product.id, "GODOWN") == 4
