# Overview: Strict parsing of loosely-typed migration payloads and stock import rows.

"""
Every external row is parsed into a frozen intermediate record before any
entity is touched. Nothing is defaulted silently: a row with a bad field is
reported, and one bad row rejects the whole payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from ..models.inventory import (
    WAREHOUSE_BOOKED,
    WAREHOUSE_DISPLAY,
    WAREHOUSE_GODOWN,
    WAREHOUSE_HISTORICAL,
    WAREHOUSE_REPAIR,
    WAREHOUSES,
)
from ..time_utils import parse_business_date
from ..validation import (
    MAX_AMOUNT_CENTS,
    ValidationError,
    coerce_non_negative_int,
    coerce_positive_int,
    coerce_rate_bps,
    violation,
)


STOCK_COLUMNS = {
    "godown": WAREHOUSE_GODOWN,
    "display": WAREHOUSE_DISPLAY,
    "booked": WAREHOUSE_BOOKED,
    "repair": WAREHOUSE_REPAIR,
}


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def _to_cents(value: Any, field_name: str) -> int:
    """
    Money in rupees ("1,250.50", 1250.5) to integer cents.

    More than two decimal places is an error, not a rounding.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} must be an amount")
    text = str(value).strip().replace(",", "").replace("₹", "")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be an amount")
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be an amount")
    cents = amount * 100
    if cents != cents.to_integral_value():
        raise ValidationError(f"{field_name} has more than two decimal places")
    cents = int(cents)
    if cents < 0:
        raise ValidationError(f"{field_name} must be >= 0")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field_name} is too large")
    return cents


def _money(raw: dict, cents_key: str, amount_key: str, errors: list[str], *, default: int | None = 0) -> int | None:
    """Read `<x>_cents` (integer) or `<x>` (rupees); cents wins when both are present."""
    try:
        if raw.get(cents_key) not in (None, ""):
            cents = coerce_non_negative_int(raw.get(cents_key), cents_key)
            if cents > MAX_AMOUNT_CENTS:
                raise ValidationError(f"{cents_key} is too large")
            return cents
        if raw.get(amount_key) not in (None, ""):
            return _to_cents(raw.get(amount_key), amount_key)
    except ValidationError as exc:
        errors.append(str(exc))
        return None
    return default


def _flag(value: Any, field_name: str, errors: list[str], *, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"true", "yes", "1", "y"}:
        return True
    if text in {"false", "no", "0", "n"}:
        return False
    errors.append(f"{field_name} must be a boolean")
    return default


@dataclass(frozen=True)
class StockRow:
    row: int
    model_no: str
    quantities: dict


@dataclass(frozen=True)
class HistoricalLine:
    model_no: str
    name: str | None
    qty: int
    price_cents: int
    discount_cents: int
    gst_rate_bps: int
    is_gst_enabled: bool


@dataclass(frozen=True)
class HistoricalDocument:
    row: int
    number: str | None
    party_name: str
    contact_id: str | None
    sales_person: str | None
    business_date: date
    warehouse: str
    lines: tuple
    amount_paid_cents: int | None
    reference: str | None


def parse_stock_rows(rows: Any) -> list[StockRow]:
    """
    Parse opening-stock rows {model_no, godown, display, booked, repair}.

    Missing warehouse columns mean zero. Duplicate model numbers are an error.

    Raises:
        ValidationError: one violation per bad row
    """
    if not isinstance(rows, (list, tuple)):
        raise ValidationError("Stock rows must be a list")

    parsed: list[StockRow] = []
    problems: list[dict] = []
    seen: set[str] = set()

    for index, raw in enumerate(rows):
        if not isinstance(raw, dict):
            problems.append(violation("malformed", "Row must be an object", row=index))
            continue

        errors: list[str] = []
        model_no = _to_text(raw.get("model_no"))
        if not model_no:
            errors.append("model_no is required")
        else:
            model_no = model_no.upper()
            if model_no in seen:
                errors.append(f"model_no {model_no} appears more than once")
            seen.add(model_no)

        quantities = {}
        for column, warehouse in STOCK_COLUMNS.items():
            value = raw.get(column)
            if value is None or value == "":
                quantities[warehouse] = 0
                continue
            try:
                quantities[warehouse] = coerce_non_negative_int(value, column)
            except ValidationError as exc:
                errors.append(str(exc))

        if errors:
            problems.append(violation("malformed", "; ".join(errors), row=index, model_no=model_no))
            continue
        parsed.append(StockRow(row=index, model_no=model_no, quantities=quantities))

    if problems:
        raise ValidationError("Stock import rejected", violations=problems)
    return parsed


def _parse_line(raw: Any, index: int, errors: list[str]) -> HistoricalLine | None:
    prefix = f"items[{index}]"
    if not isinstance(raw, dict):
        errors.append(f"{prefix} must be an object")
        return None

    line_errors: list[str] = []
    model_no = _to_text(raw.get("model_no"))
    if not model_no:
        line_errors.append(f"{prefix}.model_no is required")

    qty = None
    try:
        qty = coerce_positive_int(raw.get("qty", raw.get("quantity")), f"{prefix}.qty")
    except ValidationError as exc:
        line_errors.append(str(exc))

    price_cents = _money(raw, "price_cents", "price", line_errors)
    discount_cents = _money(raw, "discount_cents", "discount", line_errors)

    gst_rate_bps = 0
    if raw.get("gst_rate_bps") not in (None, ""):
        try:
            gst_rate_bps = coerce_rate_bps(raw.get("gst_rate_bps"), f"{prefix}.gst_rate_bps")
        except ValidationError as exc:
            line_errors.append(str(exc))
    is_gst_enabled = _flag(raw.get("is_gst_enabled"), f"{prefix}.is_gst_enabled", line_errors, default=gst_rate_bps > 0)

    if qty is not None and price_cents is not None and discount_cents is not None:
        if discount_cents > qty * price_cents:
            line_errors.append(f"{prefix}.discount exceeds the line value")

    if line_errors:
        errors.extend(line_errors)
        return None

    return HistoricalLine(
        model_no=model_no.upper(),
        name=_to_text(raw.get("name")),
        qty=qty,
        price_cents=price_cents,
        discount_cents=discount_cents,
        gst_rate_bps=gst_rate_bps,
        is_gst_enabled=is_gst_enabled,
    )


def parse_historical_documents(records: Any, *, party_field: str, number_field: str) -> list[HistoricalDocument]:
    """
    Parse migrated purchase or sales documents.

    `party_field` names the counterparty column (supplier_name /
    customer_name); `number_field` the legacy document number column.

    Raises:
        ValidationError: one violation per bad record, listing all its errors
    """
    if not isinstance(records, (list, tuple)):
        raise ValidationError("Records must be a list")

    parsed: list[HistoricalDocument] = []
    problems: list[dict] = []
    seen_numbers: set[str] = set()

    for index, raw in enumerate(records):
        if not isinstance(raw, dict):
            problems.append(violation("malformed", "Record must be an object", row=index))
            continue

        errors: list[str] = []
        party_name = _to_text(raw.get(party_field))
        if not party_name:
            errors.append(f"{party_field} is required")

        number = _to_text(raw.get(number_field))
        if number:
            if number in seen_numbers:
                errors.append(f"{number_field} {number} appears more than once")
            seen_numbers.add(number)

        business_date = None
        try:
            business_date = parse_business_date(raw.get("business_date") or raw.get("date"))
        except ValueError:
            errors.append("business_date must be YYYY-MM-DD")

        warehouse = (_to_text(raw.get("warehouse")) or WAREHOUSE_HISTORICAL).upper()
        if warehouse not in WAREHOUSES:
            errors.append(f"warehouse {warehouse} is unknown")

        items = raw.get("items")
        lines: list[HistoricalLine] = []
        if not isinstance(items, list) or not items:
            errors.append("items must be a non-empty list")
        else:
            for line_index, raw_line in enumerate(items):
                line = _parse_line(raw_line, line_index, errors)
                if line is not None:
                    lines.append(line)

        amount_paid_cents = _money(raw, "amount_paid_cents", "amount_paid", errors, default=None)

        if errors:
            problems.append(violation("malformed", "; ".join(errors), row=index, number=number))
            continue

        parsed.append(HistoricalDocument(
            row=index,
            number=number,
            party_name=party_name,
            contact_id=_to_text(raw.get("contact_id")),
            sales_person=_to_text(raw.get("sales_person")),
            business_date=business_date,
            warehouse=warehouse,
            lines=tuple(lines),
            amount_paid_cents=amount_paid_cents,
            reference=_to_text(raw.get("reference")),
        ))

    if problems:
        raise ValidationError("Migration payload rejected", violations=problems)
    return parsed
