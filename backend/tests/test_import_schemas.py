# Overview: Pytest coverage for strict parsing of import payloads and caller-supplied lines.

import pytest

from furnstock.services.import_schemas import parse_historical_documents, parse_stock_rows
from furnstock.validation import (
    ValidationError,
    apply_rate_bps,
    coerce_int,
    parse_quantity_lines,
)


class TestCoercion:

    @pytest.mark.parametrize("value", [True, 1.0, "1.5", "1e3", "", None, "ten"])
    def test_coerce_int_rejects_non_integers(self, value):
        with pytest.raises(ValidationError):
            coerce_int(value, "qty")

    def test_coerce_int_accepts_padded_string(self):
        assert coerce_int(" 12 ", "qty") == 12

    @pytest.mark.parametrize("amount, rate, expected", [
        (60_000, 1800, 10_800),
        (9_667, 1800, 1_740),
        (25, 1800, 5),
        (10_000, 0, 0),
    ])
    def test_apply_rate_rounds_half_up(self, amount, rate, expected):
        assert apply_rate_bps(amount, rate) == expected


class TestQuantityLines:

    def test_collects_every_problem(self):
        lines, problems = parse_quantity_lines(
            [
                {"product_id": 1, "qty": 2},
                {"product_id": 1, "qty": 1},
                {"product_id": 7, "qty": 1},
                {"product_id": 2, "qty": -1},
                "not a line",
                {"product_id": 2, "qty": 0},
            ],
            known_product_ids=[1, 2],
        )

        assert [(line.product_id, line.qty) for line in lines] == [(1, 2)]
        assert [row["reason"] for row in problems] == ["duplicate_line", "unknown_product", "malformed", "malformed"]

    def test_not_a_list(self):
        with pytest.raises(ValidationError):
            parse_quantity_lines({"product_id": 1}, known_product_ids=[1])


class TestStockRows:

    def test_missing_columns_are_zero(self):
        rows = parse_stock_rows([{"model_no": " ch-1 ", "godown": "4"}])

        assert rows[0].model_no == "CH-1"
        assert rows[0].quantities == {"GODOWN": 4, "DISPLAY": 0, "BOOKED": 0, "REPAIR": 0}

    def test_bad_rows_reported_together(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_stock_rows([
                {"model_no": "A", "godown": -1},
                {"model_no": "a", "godown": 1},
                {"godown": 1},
                {"model_no": "B", "display": 2.5},
            ])

        assert [row["row"] for row in exc_info.value.violations] == [0, 1, 2, 3]


class TestHistoricalDocuments:

    def test_rupee_amounts_become_cents(self):
        docs = parse_historical_documents(
            [{
                "supplier_name": " Godrej Interio ",
                "date": "2023-04-01",
                "amount_paid": "1,000.50",
                "items": [{"model_no": "bd-1", "qty": "2", "price": "₹15,000.25", "gst_rate_bps": 1200}],
            }],
            party_field="supplier_name",
            number_field="purchase_no",
        )

        doc = docs[0]
        assert doc.party_name == "Godrej Interio"
        assert doc.number is None
        assert doc.warehouse == "HISTORICAL"
        assert doc.amount_paid_cents == 100_050
        line = doc.lines[0]
        assert (line.model_no, line.qty, line.price_cents) == ("BD-1", 2, 1_500_025)
        assert line.is_gst_enabled is True

    def test_cents_field_wins_over_rupees(self):
        docs = parse_historical_documents(
            [{"customer_name": "Mehta", "items": [{"model_no": "X", "qty": 1, "price_cents": 500, "price": "99"}]}],
            party_field="customer_name",
            number_field="order_no",
        )

        assert docs[0].lines[0].price_cents == 500

    @pytest.mark.parametrize("record", [
        {"customer_name": "Mehta", "items": [{"model_no": "X", "qty": 1, "price": "1.005"}]},
        {"customer_name": "Mehta", "items": [{"model_no": "X", "qty": 1, "price": 10, "discount": 11}]},
        {"customer_name": "Mehta", "date": "01/02/2023", "items": [{"model_no": "X", "qty": 1}]},
        {"customer_name": "Mehta", "warehouse": "BASEMENT", "items": [{"model_no": "X", "qty": 1}]},
        {"customer_name": "Mehta", "items": [{"model_no": "X", "qty": 1, "is_gst_enabled": "maybe"}]},
        {"customer_name": "", "items": [{"model_no": "X", "qty": 1}]},
    ])
    def test_malformed_record_rejected(self, record):
        with pytest.raises(ValidationError) as exc_info:
            parse_historical_documents([record], party_field="customer_name", number_field="order_no")

        assert exc_info.value.violations[0]["reason"] == "malformed"

    def test_repeated_number_rejected(self):
        record = {"order_no": "INV-9", "customer_name": "Mehta", "items": [{"model_no": "X", "qty": 1}]}

        with pytest.raises(ValidationError) as exc_info:
            parse_historical_documents([record, record], party_field="customer_name", number_field="order_no")

        assert [row["row"] for row in exc_info.value.violations] == [1]
