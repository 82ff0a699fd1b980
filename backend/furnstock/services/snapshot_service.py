# Overview: Full-state JSON snapshots of a company's purchases, sales and stock.

"""
Snapshot export / restore

Each export is a plain dict of to_dict() rows; products are referenced by
model_no so a snapshot restores into a database whose product ids differ.
A restore replaces the active company's rows of that kind in one
transaction. Suppliers are matched by name and keep their ids, so ledger
entries keyed by supplier id stay attached.

Files: <SNAPSHOT_DIR>/<COMPANY_CODE>.json holding
    {"company": code, "purchases": {...}, "sales": {...}, "stock": {...},
     "sequences": [...]}
"""

from __future__ import annotations

import json
import os

from flask import current_app

from ..extensions import db
from ..models import (
    Company,
    DeliveryRecord,
    DocumentSequence,
    GRNRecord,
    Product,
    PurchaseItem,
    PurchaseTransaction,
    SalesInvoice,
    SalesItem,
    SalesLog,
    SalesTransaction,
    StockTransfer,
    Supplier,
    VendorBillRecord,
    WarehouseStock,
)
from ..models.inventory import WAREHOUSES
from ..time_utils import parse_business_date, parse_iso_datetime
from ..validation import ValidationError, violation
from .concurrency import company_lock, run_with_retry
from .tenant_service import require_company_id


SNAPSHOT_VERSION = 1


# Counter name for each document prefix allocated by next_document_number
SEQUENCE_PREFIXES = {
    "PUR": "PURCHASE",
    "HPUR": "HPURCHASE",
    "GRN": "GRN",
    "BILL": "BILL",
    "QT": "QUOTATION",
    "HSO": "HSALE",
    "DN": "DELIVERY",
    "INV": "INVOICE",
}


def _model_numbers(company_id: int) -> dict[int, str]:
    rows = db.session.query(Product.id, Product.model_no).filter_by(company_id=company_id).all()
    return {product_id: model_no for product_id, model_no in rows}


def _product_ids(company_id: int) -> dict[str, int]:
    return {model_no: product_id for product_id, model_no in _model_numbers(company_id).items()}


def _resolve_products(company_id: int, rows, *, section: str) -> dict[str, int]:
    """model_no -> product id for every row, or ValidationError listing every unknown model."""
    known = _product_ids(company_id)
    problems = []
    for index, row in enumerate(rows):
        model_no = (row.get("model_no") or "").upper()
        if model_no not in known:
            problems.append(violation(
                "unknown_product", f"{section}[{index}]: model {model_no or '?'} not in catalog",
                row=index, model_no=model_no,
            ))
    if problems:
        raise ValidationError(f"Snapshot {section} rejected", violations=problems)
    return known


def _created_at(row: dict) -> dict:
    created = parse_iso_datetime(row.get("created_at"))
    return {"created_at": created} if created else {}


def _delete_all(model, company_id: int) -> None:
    for row in db.session.query(model).filter_by(company_id=company_id).all():
        db.session.delete(row)
    db.session.flush()


def _locked(company_id: int, op, *, commit: bool):
    with company_lock(company_id):
        if commit:
            return run_with_retry(op)
        return op()


# =============================================================================
# Purchases
# =============================================================================

def export_purchase_snapshot() -> dict:
    company_id = require_company_id()
    suppliers = db.session.query(Supplier).filter_by(company_id=company_id).order_by(Supplier.id).all()
    purchases = (
        db.session.query(PurchaseTransaction)
        .filter_by(company_id=company_id)
        .order_by(PurchaseTransaction.id)
        .all()
    )
    return {
        "suppliers": [supplier.to_dict() for supplier in suppliers],
        "purchases": [purchase.to_dict() for purchase in purchases],
    }


def restore_purchase_snapshot(snapshot: dict, *, commit: bool = True) -> int:
    """
    Replace the active company's suppliers and purchases.

    Returns:
        Number of purchases restored

    Raises:
        ValidationError: malformed snapshot or lines naming unknown models
    """
    company_id = require_company_id()
    suppliers = snapshot.get("suppliers") or []
    purchases = snapshot.get("purchases") or []
    if not isinstance(suppliers, list) or not isinstance(purchases, list):
        raise ValidationError("Purchase snapshot must hold suppliers and purchases lists")

    def _op() -> int:
        lines = [item for purchase in purchases for item in purchase.get("items") or []]
        products = _resolve_products(company_id, lines, section="purchase items")

        _delete_all(PurchaseTransaction, company_id)

        existing = {s.name: s for s in db.session.query(Supplier).filter_by(company_id=company_id).all()}
        supplier_ids: dict[int, int] = {}
        for row in suppliers:
            supplier = existing.pop(row["name"], None)
            if supplier is None:
                supplier = Supplier(company_id=company_id, name=row["name"], **_created_at(row))
                db.session.add(supplier)
            supplier.phone = row.get("phone")
            supplier.email = row.get("email")
            supplier.address = row.get("address")
            supplier.gst_no = row.get("gst_no")
            supplier.opening_balance_cents = row.get("opening_balance_cents") or 0
            db.session.flush()
            if row.get("id") is not None:
                supplier_ids[row["id"]] = supplier.id
        for stale in existing.values():
            db.session.delete(stale)

        for row in purchases:
            purchase = PurchaseTransaction(
                company_id=company_id,
                purchase_no=row["purchase_no"],
                rfq_no=row.get("rfq_no"),
                po_no=row.get("po_no"),
                supplier_id=supplier_ids.get(row.get("supplier_id")),
                supplier_name=row["supplier_name"],
                warehouse=row.get("warehouse") or "GODOWN",
                business_date=parse_business_date(row.get("business_date")),
                reference=row.get("reference"),
                notes=row.get("notes"),
                status=row["status"],
                subtotal_cents=row.get("subtotal_cents") or 0,
                total_gst_cents=row.get("total_gst_cents") or 0,
                grand_total_cents=row.get("grand_total_cents") or 0,
                amount_paid_cents=row.get("amount_paid_cents") or 0,
                payment_status=row.get("payment_status") or "UNPAID",
                is_historical=bool(row.get("is_historical")),
                source=row.get("source") or "live",
                performed_by=row.get("performed_by"),
                **_created_at(row),
            )
            for item in row.get("items") or []:
                purchase.items.append(PurchaseItem(
                    product_id=products[item["model_no"].upper()],
                    product_name=item["product_name"],
                    model_no=item["model_no"].upper(),
                    ordered_qty=item["ordered_qty"],
                    received_qty=item.get("received_qty") or 0,
                    billed_qty=item.get("billed_qty") or 0,
                    unit_price_cents=item.get("unit_price_cents") or 0,
                    gst_rate_bps=item.get("gst_rate_bps") or 0,
                    total_cents=item.get("total_cents") or 0,
                ))
            for grn in row.get("grn_history") or []:
                purchase.grn_history.append(GRNRecord(
                    company_id=company_id,
                    grn_no=grn["grn_no"],
                    business_date=parse_business_date(grn.get("business_date")),
                    reference=grn.get("reference"),
                    warehouse=grn["warehouse"],
                    items=grn.get("items") or [],
                    performed_by=grn.get("performed_by"),
                ))
            for bill in row.get("bill_history") or []:
                purchase.bill_history.append(VendorBillRecord(
                    company_id=company_id,
                    bill_no=bill["bill_no"],
                    business_date=parse_business_date(bill.get("business_date")),
                    amount_cents=bill["amount_cents"],
                    tax_cents=bill.get("tax_cents") or 0,
                    items=bill.get("items") or [],
                    performed_by=bill.get("performed_by"),
                ))
            db.session.add(purchase)

        if commit:
            db.session.commit()
        return len(purchases)

    return _locked(company_id, _op, commit=commit)


# =============================================================================
# Sales
# =============================================================================

def export_sales_snapshot() -> dict:
    company_id = require_company_id()
    sales = db.session.query(SalesTransaction).filter_by(company_id=company_id).order_by(SalesTransaction.id).all()
    logs = db.session.query(SalesLog).filter_by(company_id=company_id).order_by(SalesLog.id).all()
    return {
        "sales": [sale.to_dict() for sale in sales],
        "salesLogs": [log.to_dict() for log in logs],
    }


def restore_sales_snapshot(snapshot: dict, *, commit: bool = True) -> int:
    """Replace the active company's sales documents and sales log."""
    company_id = require_company_id()
    sales = snapshot.get("sales") or []
    logs = snapshot.get("salesLogs") or []
    if not isinstance(sales, list) or not isinstance(logs, list):
        raise ValidationError("Sales snapshot must hold sales and salesLogs lists")

    def _op() -> int:
        lines = [item for sale in sales for item in sale.get("items") or []]
        products = _resolve_products(company_id, lines, section="sales items")

        _delete_all(SalesTransaction, company_id)
        _delete_all(SalesLog, company_id)

        for row in sales:
            sale = SalesTransaction(
                company_id=company_id,
                order_no=row["order_no"],
                so_no=row.get("so_no"),
                contact_id=row.get("contact_id"),
                customer_name=row["customer_name"],
                sales_person=row.get("sales_person"),
                warehouse=row.get("warehouse") or "GODOWN",
                business_date=parse_business_date(row.get("business_date")),
                notes=row.get("notes"),
                status=row["status"],
                subtotal_cents=row.get("subtotal_cents") or 0,
                total_discount_cents=row.get("total_discount_cents") or 0,
                total_gst_cents=row.get("total_gst_cents") or 0,
                grand_total_cents=row.get("grand_total_cents") or 0,
                amount_paid_cents=row.get("amount_paid_cents") or 0,
                payment_status=row.get("payment_status") or "UNPAID",
                is_historical=bool(row.get("is_historical")),
                source=row.get("source") or "live",
                performed_by=row.get("performed_by"),
                **_created_at(row),
            )
            for item in row.get("items") or []:
                sale.items.append(SalesItem(
                    product_id=products[item["model_no"].upper()],
                    product_name=item["product_name"],
                    model_no=item["model_no"].upper(),
                    ordered_qty=item["ordered_qty"],
                    delivered_qty=item.get("delivered_qty") or 0,
                    invoiced_qty=item.get("invoiced_qty") or 0,
                    price_cents=item.get("price_cents") or 0,
                    discount_cents=item.get("discount_cents") or 0,
                    gst_rate_bps=item.get("gst_rate_bps") or 0,
                    is_gst_enabled=bool(item.get("is_gst_enabled")),
                    total_cents=item.get("total_cents") or 0,
                ))
            for delivery in row.get("delivery_history") or []:
                sale.delivery_history.append(DeliveryRecord(
                    company_id=company_id,
                    delivery_no=delivery["delivery_no"],
                    business_date=parse_business_date(delivery.get("business_date")),
                    warehouse=delivery["warehouse"],
                    items=delivery.get("items") or [],
                    performed_by=delivery.get("performed_by"),
                ))
            for invoice in row.get("invoices") or []:
                sale.invoices.append(SalesInvoice(
                    company_id=company_id,
                    invoice_no=invoice["invoice_no"],
                    business_date=parse_business_date(invoice.get("business_date")),
                    taxable_cents=invoice["taxable_cents"],
                    tax_cents=invoice.get("tax_cents") or 0,
                    total_cents=invoice["total_cents"],
                    items=invoice.get("items") or [],
                    performed_by=invoice.get("performed_by"),
                ))
            db.session.add(sale)

        for row in logs:
            occurred = parse_iso_datetime(row.get("occurred_at"))
            db.session.add(SalesLog(
                company_id=company_id,
                order_no=row["order_no"],
                customer_name=row.get("customer_name"),
                action=row["action"],
                old_total_cents=row.get("old_total_cents") or 0,
                new_total_cents=row.get("new_total_cents") or 0,
                delta_cents=row.get("delta_cents") or 0,
                performed_by=row.get("performed_by"),
                **({"occurred_at": occurred} if occurred else {}),
            ))

        if commit:
            db.session.commit()
        return len(sales)

    return _locked(company_id, _op, commit=commit)


# =============================================================================
# Stock
# =============================================================================

def export_stock_snapshot() -> dict:
    company_id = require_company_id()
    models = _model_numbers(company_id)
    stocks = db.session.query(WarehouseStock).filter_by(company_id=company_id).order_by(WarehouseStock.id).all()
    transfers = db.session.query(StockTransfer).filter_by(company_id=company_id).order_by(StockTransfer.id).all()

    stock_rows = []
    for stock in stocks:
        row = stock.to_dict()
        row["model_no"] = models.get(stock.product_id)
        stock_rows.append(row)
    transfer_rows = []
    for transfer in transfers:
        row = transfer.to_dict()
        row["model_no"] = models.get(transfer.product_id)
        transfer_rows.append(row)
    return {"stocks": stock_rows, "transfers": transfer_rows}


def restore_stock_snapshot(snapshot: dict, *, commit: bool = True) -> int:
    """
    Replace the active company's warehouse quantities and transfer history.

    Negative quantities and unknown warehouses are rejected before anything
    is written.
    """
    company_id = require_company_id()
    stocks = snapshot.get("stocks") or []
    transfers = snapshot.get("transfers") or []
    if not isinstance(stocks, list) or not isinstance(transfers, list):
        raise ValidationError("Stock snapshot must hold stocks and transfers lists")

    problems = []
    for index, row in enumerate(stocks):
        if row.get("warehouse") not in WAREHOUSES:
            problems.append(violation("malformed", f"stocks[{index}]: unknown warehouse", row=index))
        if not isinstance(row.get("quantity"), int) or row["quantity"] < 0:
            problems.append(violation("malformed", f"stocks[{index}]: quantity must be >= 0", row=index))
    if problems:
        raise ValidationError("Snapshot stocks rejected", violations=problems)

    def _op() -> int:
        products = _resolve_products(company_id, stocks + transfers, section="stock")

        _delete_all(WarehouseStock, company_id)
        _delete_all(StockTransfer, company_id)

        for row in stocks:
            db.session.add(WarehouseStock(
                company_id=company_id,
                product_id=products[row["model_no"].upper()],
                warehouse=row["warehouse"],
                quantity=row["quantity"],
            ))
        for row in transfers:
            occurred = parse_iso_datetime(row.get("occurred_at"))
            db.session.add(StockTransfer(
                company_id=company_id,
                product_id=products[row["model_no"].upper()],
                from_warehouse=row["from_warehouse"],
                to_warehouse=row["to_warehouse"],
                quantity=row["quantity"],
                business_date=parse_business_date(row.get("business_date")),
                reference=row.get("reference"),
                party_name=row.get("party_name"),
                sales_person=row.get("sales_person"),
                performed_by=row.get("performed_by"),
                **({"occurred_at": occurred} if occurred else {}),
            ))

        if commit:
            db.session.commit()
        return len(stocks)

    return _locked(company_id, _op, commit=commit)


# =============================================================================
# Document sequences
# =============================================================================

def export_sequence_snapshot() -> list[dict]:
    company_id = require_company_id()
    rows = (
        db.session.query(DocumentSequence)
        .filter_by(company_id=company_id)
        .order_by(DocumentSequence.document_type)
        .all()
    )
    return [{"document_type": row.document_type, "next_number": row.next_number} for row in rows]


def _highest_restored_numbers(company_id: int) -> dict[str, int]:
    """document_type -> highest number already used by a restored document."""
    columns = [
        PurchaseTransaction.purchase_no,
        GRNRecord.grn_no,
        VendorBillRecord.bill_no,
        SalesTransaction.order_no,
        DeliveryRecord.delivery_no,
        SalesInvoice.invoice_no,
    ]
    highest: dict[str, int] = {}
    for column in columns:
        numbers = db.session.query(column).filter(column.class_.company_id == company_id).all()
        for (number,) in numbers:
            prefix, _, digits = (number or "").partition("-")
            document_type = SEQUENCE_PREFIXES.get(prefix)
            if document_type and digits.isdigit():
                highest[document_type] = max(highest.get(document_type, 0), int(digits))
    return highest


def restore_sequences(exported=None, *, commit: bool = True) -> dict[str, int]:
    """
    Re-seed the active company's document counters after a restore.

    Each counter ends up past both the exported value and the highest number
    held by a restored document, so the next allocation never collides.

    Returns:
        {document_type: next_number}
    """
    company_id = require_company_id()
    exported = exported or []
    if not isinstance(exported, list):
        raise ValidationError("Snapshot sequences must be a list")

    def _op() -> dict[str, int]:
        db.session.flush()
        wanted = {
            document_type: number + 1
            for document_type, number in _highest_restored_numbers(company_id).items()
        }
        for row in exported:
            document_type = row.get("document_type")
            next_number = row.get("next_number")
            if not document_type or not isinstance(next_number, int) or isinstance(next_number, bool):
                raise ValidationError(f"Malformed sequence row: {row!r}")
            wanted[document_type] = max(wanted.get(document_type, 1), next_number)

        existing = {
            row.document_type: row
            for row in db.session.query(DocumentSequence).filter_by(company_id=company_id).all()
        }
        seeded = {}
        for document_type, next_number in wanted.items():
            sequence = existing.get(document_type)
            if sequence is None:
                sequence = DocumentSequence(company_id=company_id, document_type=document_type)
                sequence.next_number = next_number
                db.session.add(sequence)
            else:
                sequence.next_number = max(sequence.next_number, next_number)
            seeded[document_type] = sequence.next_number
        db.session.flush()

        if commit:
            db.session.commit()
        return seeded

    return _locked(company_id, _op, commit=commit)


# =============================================================================
# Files
# =============================================================================

def _snapshot_path(directory: str | None) -> str:
    company = db.session.get(Company, require_company_id())
    directory = directory or current_app.config.get("SNAPSHOT_DIR", "snapshots")
    return os.path.join(directory, f"{company.code}.json")


def save_snapshot(directory: str | None = None) -> str:
    """
    Write the active company's purchases, sales and stock to one JSON file.

    Returns:
        Path written
    """
    company_id = require_company_id()
    path = _snapshot_path(directory)
    payload = {
        "version": SNAPSHOT_VERSION,
        "company": db.session.get(Company, company_id).code,
        "purchases": export_purchase_snapshot(),
        "sales": export_sales_snapshot(),
        "stock": export_stock_snapshot(),
        "sequences": export_sequence_snapshot(),
    }
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, sort_keys=True)
    os.replace(tmp_path, path)
    current_app.logger.info("Snapshot for company %s written to %s", payload["company"], path)
    return path


def load_snapshot(directory: str | None = None) -> dict:
    """
    Restore the active company from its JSON file, all sections or none.

    Returns:
        {"purchases": n, "sales": m, "stocks": k}

    Raises:
        FileNotFoundError: no snapshot for this company
        ValidationError: snapshot belongs to another company or is malformed
    """
    company_id = require_company_id()
    path = _snapshot_path(directory)
    with open(path, encoding="utf-8") as fh:
        payload = json.load(fh)

    code = db.session.get(Company, company_id).code
    if payload.get("company") != code:
        raise ValidationError(f"Snapshot {path} belongs to company {payload.get('company')}, not {code}")

    def _op() -> dict:
        counts = {
            "purchases": restore_purchase_snapshot(payload.get("purchases") or {}, commit=False),
            "sales": restore_sales_snapshot(payload.get("sales") or {}, commit=False),
            "stocks": restore_stock_snapshot(payload.get("stock") or {}, commit=False),
        }
        restore_sequences(payload.get("sequences"), commit=False)
        db.session.commit()
        return counts

    counts = _locked(company_id, _op, commit=True)
    current_app.logger.info("Snapshot %s restored: %s", path, counts)
    return counts
