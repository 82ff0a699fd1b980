# Overview: Sales lifecycle engine (quotation -> order -> delivery -> invoice) with stock reservation.

"""
Sales Lifecycle Service

LIFECYCLE:
1. QUOTATION / QUOTATION_SENT: Document only, lines editable
2. SALES_ORDER: Confirmed; every ordered unit reserved from the order
   warehouse into BOOKED in one atomic transfer
3. PARTIALLY_DELIVERED / FULLY_DELIVERED: Delivery notes recorded (no stock
   movement)
4. PARTIALLY_BILLED / FULLY_BILLED: Invoices raised; invoiced units leave
   BOOKED
5. CANCELLED: Terminal; un-invoiced units return from BOOKED to the order
   warehouse

STOCK FLOW:
    order warehouse --confirm--> BOOKED --invoice--> (gone)
                    <--cancel---

Delivered but un-invoiced units stay in BOOKED until invoiced or cancelled.
Historical (migrated) orders never touch stock or accounting.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import DeliveryRecord, SalesInvoice, SalesItem, SalesLog, SalesTransaction
from ..models.inventory import SELLABLE_WAREHOUSES, WAREHOUSE_BOOKED, WAREHOUSE_GODOWN
from ..time_utils import parse_business_date
from ..validation import (
    InsufficientStockError,
    MissingContextError,
    OperationResult,
    QuantityLine,
    ValidationError,
    apply_rate_bps,
    coerce_amount_cents,
    coerce_int,
    coerce_positive_int,
    coerce_rate_bps,
    optional_text,
    parse_quantity_lines,
    require_text,
    violation,
)
from . import accounting_service, stock_service
from .catalog_service import add_historical_shadow_product, find_product_by_model_no, get_product
from .concurrency import company_lock, lock_for_update, run_with_retry
from .document_service import next_document_number, numeric_part
from .import_schemas import parse_historical_documents
from .tenant_service import get_actor_name, require_company_id, require_company_row


STATUS_QUOTATION = "QUOTATION"
STATUS_QUOTATION_SENT = "QUOTATION_SENT"
STATUS_SALES_ORDER = "SALES_ORDER"
STATUS_PARTIALLY_DELIVERED = "PARTIALLY_DELIVERED"
STATUS_FULLY_DELIVERED = "FULLY_DELIVERED"
STATUS_PARTIALLY_BILLED = "PARTIALLY_BILLED"
STATUS_FULLY_BILLED = "FULLY_BILLED"
STATUS_CANCELLED = "CANCELLED"

QUOTATION_STATES = {STATUS_QUOTATION, STATUS_QUOTATION_SENT}
# Delivery follows its own ceiling, so it may trail an invoice
DELIVERABLE_STATES = {
    STATUS_SALES_ORDER,
    STATUS_PARTIALLY_DELIVERED,
    STATUS_FULLY_DELIVERED,
    STATUS_PARTIALLY_BILLED,
    STATUS_FULLY_BILLED,
}
INVOICEABLE_STATES = {
    STATUS_SALES_ORDER,
    STATUS_PARTIALLY_DELIVERED,
    STATUS_FULLY_DELIVERED,
    STATUS_PARTIALLY_BILLED,
}
CANCELLABLE_STATES = INVOICEABLE_STATES

LOG_CREATED = "CREATED"
LOG_UPDATED = "UPDATED"
LOG_CANCELLED = "CANCELLED"

SOURCE_LIVE = "live"
SOURCE_MIGRATION = "migration"


class SalesNotFoundError(MissingContextError):
    """Raised when a sales document is not found in the active company."""
    pass


class SalesStateError(Exception):
    """Raised when an operation is invalid for the current sales status."""
    pass


# =============================================================================
# Helpers
# =============================================================================

def _get_sale_locked(company_id: int, sale_id: int) -> SalesTransaction:
    sale = lock_for_update(db.session.query(SalesTransaction).filter_by(id=sale_id)).first()
    if sale is None:
        raise SalesNotFoundError(f"Sales order {sale_id} not found")
    return require_company_row(sale, company_id, label="Sales order")


def _validate_order_warehouse(warehouse: str) -> str:
    if warehouse not in SELLABLE_WAREHOUSES:
        raise ValidationError(f"Orders can only reserve from: {', '.join(sorted(SELLABLE_WAREHOUSES))}")
    return warehouse


def _line_values(qty: int, price_cents: int, discount_cents: int, rate_bps: int, gst_enabled: bool) -> tuple[int, int]:
    """(taxable, tax) for a line. Discount is a whole-line amount."""
    taxable = qty * price_cents - discount_cents
    tax = apply_rate_bps(taxable, rate_bps) if gst_enabled else 0
    return taxable, tax


def _build_items(company_id: int, raw_items) -> list[SalesItem]:
    """
    Parse quotation lines, collecting every bad line before raising.

    Line: {product_id, qty, price_cents?, discount_cents?, gst_rate_bps?,
    is_gst_enabled?}; price and rate default to the product's.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    items: list[SalesItem] = []
    problems: list[dict] = []
    seen: set[int] = set()
    for index, raw in enumerate(raw_items):
        try:
            if not isinstance(raw, dict):
                raise ValidationError("Line must be an object")
            product = get_product(coerce_int(raw.get("product_id"), "product_id"), company_id=company_id)
            if product.is_historical:
                raise ValidationError(f"{product.model_no} is a historical product")
            if product.id in seen:
                raise ValidationError(f"{product.model_no} appears more than once")
            seen.add(product.id)
            qty = coerce_positive_int(raw.get("qty", raw.get("ordered_qty")), "qty")
            price = coerce_amount_cents(raw.get("price_cents", product.sales_price_cents), "price_cents")
            discount = coerce_amount_cents(raw.get("discount_cents", 0), "discount_cents")
            rate = coerce_rate_bps(raw.get("gst_rate_bps", product.gst_rate_bps), "gst_rate_bps")
            if discount > qty * price:
                raise ValidationError(f"{product.model_no}: discount exceeds the line value")
        except (ValidationError, MissingContextError) as exc:
            product_id = raw.get("product_id") if isinstance(raw, dict) else None
            problems.append(violation("invalid_line", str(exc), line=index, product_id=product_id))
            continue

        gst_enabled = bool(raw.get("is_gst_enabled", rate > 0))
        taxable, tax = _line_values(qty, price, discount, rate, gst_enabled)
        items.append(SalesItem(
            product_id=product.id,
            product_name=product.name,
            model_no=product.model_no,
            ordered_qty=qty,
            delivered_qty=0,
            invoiced_qty=0,
            price_cents=price,
            discount_cents=discount,
            gst_rate_bps=rate,
            is_gst_enabled=gst_enabled,
            total_cents=taxable + tax,
        ))

    if problems:
        raise ValidationError("Sales lines rejected", violations=problems)
    return items


def _recompute_totals(sale: SalesTransaction) -> None:
    subtotal = 0
    discount = 0
    gst = 0
    for item in sale.items:
        taxable, tax = _line_values(
            item.ordered_qty, item.price_cents, item.discount_cents, item.gst_rate_bps, item.is_gst_enabled,
        )
        subtotal += item.ordered_qty * item.price_cents
        discount += item.discount_cents
        gst += tax
    sale.subtotal_cents = subtotal
    sale.total_discount_cents = discount
    sale.total_gst_cents = gst
    sale.grand_total_cents = subtotal - discount + gst
    sale.payment_status = accounting_service.derive_payment_status(
        sale.amount_paid_cents or 0, sale.grand_total_cents,
    )


def _refresh_status(sale: SalesTransaction) -> None:
    """
    Billing progress outranks delivery progress.

    any invoiced   -> PARTIALLY_BILLED / FULLY_BILLED
    any delivered  -> PARTIALLY_DELIVERED / FULLY_DELIVERED
    """
    ordered = sum(item.ordered_qty for item in sale.items)
    delivered = sum(item.delivered_qty for item in sale.items)
    invoiced = sum(item.invoiced_qty for item in sale.items)

    if invoiced > 0:
        sale.status = STATUS_FULLY_BILLED if invoiced >= ordered else STATUS_PARTIALLY_BILLED
    elif delivered > 0:
        sale.status = STATUS_FULLY_DELIVERED if delivered >= ordered else STATUS_PARTIALLY_DELIVERED


def _log(sale: SalesTransaction, action: str, old_total: int, new_total: int) -> SalesLog:
    entry = SalesLog(
        company_id=sale.company_id,
        order_no=sale.order_no,
        customer_name=sale.customer_name,
        action=action,
        old_total_cents=old_total,
        new_total_cents=new_total,
        delta_cents=new_total - old_total,
        performed_by=get_actor_name(),
    )
    db.session.add(entry)
    return entry


def _reservable_lines(sale: SalesTransaction, qty_of) -> list[QuantityLine]:
    """Lines of tracked products with a positive quantity from `qty_of(item)`."""
    lines = []
    for item in sale.items:
        qty = qty_of(item)
        if qty > 0 and get_product(item.product_id, company_id=sale.company_id).track_inventory:
            lines.append(QuantityLine(product_id=item.product_id, qty=qty))
    return lines


def _reject(sale_id: int, action: str, violations: list[dict]) -> OperationResult:
    db.session.rollback()
    current_app.logger.warning(
        "%s rejected for sales order %s: %s violating line(s)", action, sale_id, len(violations),
    )
    return OperationResult.failure(violations)


# =============================================================================
# Quotations
# =============================================================================

def create_quotation(data: dict) -> SalesTransaction:
    """
    Create a quotation. No stock effect.

    Args:
        data: {customer_name, items, contact_id?, sales_person?, warehouse?,
               business_date?, notes?}

    Raises:
        MissingContextError: no active company
        ValidationError: bad header or lines (all bad lines listed)
    """
    company_id = require_company_id()
    customer_name = require_text(data.get("customer_name"), "customer_name")
    warehouse = _validate_order_warehouse(data.get("warehouse") or WAREHOUSE_GODOWN)
    try:
        business_date = parse_business_date(data.get("business_date"))
    except ValueError:
        raise ValidationError("business_date must be YYYY-MM-DD")

    def _op() -> SalesTransaction:
        items = _build_items(company_id, data.get("items"))
        sale = SalesTransaction(
            company_id=company_id,
            order_no=next_document_number(company_id=company_id, document_type="QUOTATION", prefix="QT"),
            contact_id=optional_text(data.get("contact_id"), max_length=64),
            customer_name=customer_name,
            sales_person=optional_text(data.get("sales_person"), max_length=120),
            warehouse=warehouse,
            business_date=business_date,
            notes=optional_text(data.get("notes"), max_length=2000),
            status=STATUS_QUOTATION,
            amount_paid_cents=0,
            is_historical=False,
            source=SOURCE_LIVE,
            performed_by=get_actor_name(),
        )
        sale.items = items
        _recompute_totals(sale)
        db.session.add(sale)
        _log(sale, LOG_CREATED, 0, sale.grand_total_cents)
        db.session.commit()
        return sale

    with company_lock(company_id):
        sale = run_with_retry(_op)
    current_app.logger.info("Quotation %s created for %s", sale.order_no, sale.customer_name)
    return sale


def update_quotation(sale_id: int, data: dict) -> SalesTransaction:
    """
    Edit a quotation's header and/or replace its lines.

    A change in grand total is written to the sales log.

    Raises:
        SalesStateError: document is past the quotation stage
    """
    company_id = require_company_id()

    def _op() -> SalesTransaction:
        sale = _get_sale_locked(company_id, sale_id)
        if sale.status not in QUOTATION_STATES:
            raise SalesStateError(f"Cannot edit {sale.status} document. Only quotations can be modified.")
        old_total = sale.grand_total_cents

        if "customer_name" in data:
            sale.customer_name = require_text(data["customer_name"], "customer_name")
        if "contact_id" in data:
            sale.contact_id = optional_text(data["contact_id"], max_length=64)
        if "sales_person" in data:
            sale.sales_person = optional_text(data["sales_person"], max_length=120)
        if "warehouse" in data:
            sale.warehouse = _validate_order_warehouse(data["warehouse"])
        if "business_date" in data:
            try:
                sale.business_date = parse_business_date(data["business_date"])
            except ValueError:
                raise ValidationError("business_date must be YYYY-MM-DD")
        if "notes" in data:
            sale.notes = optional_text(data["notes"], max_length=2000)
        if "items" in data:
            items = _build_items(company_id, data["items"])
            sale.items.clear()
            db.session.flush()
            sale.items.extend(items)

        _recompute_totals(sale)
        if sale.grand_total_cents != old_total:
            _log(sale, LOG_UPDATED, old_total, sale.grand_total_cents)
        db.session.commit()
        return sale

    with company_lock(company_id):
        return run_with_retry(_op)


def mark_quotation_sent(sale_id: int) -> SalesTransaction:
    company_id = require_company_id()

    def _op() -> SalesTransaction:
        sale = _get_sale_locked(company_id, sale_id)
        if sale.status != STATUS_QUOTATION:
            raise SalesStateError(f"Cannot mark {sale.status} document as sent")
        sale.status = STATUS_QUOTATION_SENT
        db.session.commit()
        return sale

    with company_lock(company_id):
        return run_with_retry(_op)


# =============================================================================
# Orders
# =============================================================================

def confirm_order(sale_id: int) -> OperationResult:
    """
    Quotation -> SALES_ORDER, reserving every ordered unit into BOOKED.

    The reservation is one multi-line transfer: if any line is short nothing
    is reserved, the status stays put and every short line is reported.

    Raises:
        SalesNotFoundError, SalesStateError
    """
    company_id = require_company_id()

    def _op() -> OperationResult:
        sale = _get_sale_locked(company_id, sale_id)
        if sale.status not in QUOTATION_STATES:
            raise SalesStateError(f"Cannot confirm {sale.status} document as an order")

        if not sale.is_historical:
            lines = _reservable_lines(sale, lambda item: item.ordered_qty)
            try:
                stock_service.transfer_stock_batch(
                    lines,
                    sale.warehouse,
                    WAREHOUSE_BOOKED,
                    party_name=sale.customer_name,
                    sales_person=sale.sales_person,
                    business_date=sale.business_date,
                    reference=sale.order_no,
                    commit=False,
                )
            except InsufficientStockError as exc:
                return _reject(sale_id, "Order confirmation", exc.violations)

        sale.so_no = f"SO-{numeric_part(sale.order_no)}"
        sale.status = STATUS_SALES_ORDER
        db.session.commit()
        return OperationResult.success(sale)

    with company_lock(company_id):
        result = run_with_retry(_op)
    if result:
        current_app.logger.info("Sales order %s confirmed", result.entity.so_no)
    return result


def record_delivery(
    sale_id: int,
    deliveries: list[dict],
    warehouse: str | None = None,
    *,
    business_date=None,
) -> OperationResult:
    """
    Record a delivery note, all lines or none. Moves no stock.

    Each line needs delivered + qty <= ordered.
    """
    company_id = require_company_id()

    def _op() -> OperationResult:
        sale = _get_sale_locked(company_id, sale_id)
        if sale.status not in DELIVERABLE_STATES:
            raise SalesStateError(f"Cannot record delivery on {sale.status} order")
        source = stock_service.validate_warehouse(warehouse or sale.warehouse)

        items = {item.product_id: item for item in sale.items}
        lines, problems = parse_quantity_lines(deliveries, known_product_ids=items.keys())
        for line in lines:
            item = items[line.product_id]
            if item.delivered_qty + line.qty > item.ordered_qty:
                problems.append(violation(
                    "over_delivery",
                    f"{item.model_no}: delivering {line.qty} would exceed ordered {item.ordered_qty} "
                    f"(already delivered {item.delivered_qty})",
                    product_id=item.product_id,
                    requested=line.qty,
                    ordered=item.ordered_qty,
                    delivered=item.delivered_qty,
                ))
        if problems:
            return _reject(sale_id, "Delivery", problems)

        delivered = []
        for line in lines:
            item = items[line.product_id]
            item.delivered_qty = item.delivered_qty + line.qty
            delivered.append({"product_id": item.product_id, "product_name": item.product_name, "qty": line.qty})

        db.session.add(DeliveryRecord(
            company_id=company_id,
            sale_id=sale.id,
            delivery_no=next_document_number(company_id=company_id, document_type="DELIVERY", prefix="DN"),
            business_date=parse_business_date(business_date),
            warehouse=source,
            items=delivered,
            performed_by=get_actor_name(),
        ))
        _refresh_status(sale)
        db.session.commit()
        return OperationResult.success(sale)

    with company_lock(company_id):
        result = run_with_retry(_op)
    if result:
        current_app.logger.info("Delivery recorded for sales order %s; status %s", sale_id, result.entity.status)
    return result


def _discount_share(item: SalesItem, qty: int) -> int:
    """
    Pro-rated slice of the whole-line discount for `qty` more units.

    Shares telescope, so invoicing every ordered unit uses exactly the line
    discount whatever the split.
    """
    before = item.discount_cents * item.invoiced_qty // item.ordered_qty
    after = item.discount_cents * (item.invoiced_qty + qty) // item.ordered_qty
    return after - before


def create_invoice(
    sale_id: int,
    items_to_invoice: list[dict],
    *,
    business_date=None,
) -> OperationResult:
    """
    Invoice ordered quantities, all lines or none.

    Each line needs invoiced + qty <= ordered. For live orders the invoiced
    units leave BOOKED in one atomic deduction and one revenue posting is
    queued under the generated invoice number.

    Returns:
        OperationResult; a shortage in BOOKED is reported like a ceiling
        violation and nothing changes
    """
    company_id = require_company_id()

    def _op() -> OperationResult:
        sale = _get_sale_locked(company_id, sale_id)
        if sale.status not in INVOICEABLE_STATES:
            raise SalesStateError(f"Cannot invoice {sale.status} order")

        items = {item.product_id: item for item in sale.items}
        lines, problems = parse_quantity_lines(items_to_invoice, known_product_ids=items.keys())
        for line in lines:
            item = items[line.product_id]
            if item.invoiced_qty + line.qty > item.ordered_qty:
                problems.append(violation(
                    "over_invoicing",
                    f"{item.model_no}: invoicing {line.qty} would exceed ordered {item.ordered_qty} "
                    f"(already invoiced {item.invoiced_qty})",
                    product_id=item.product_id,
                    requested=line.qty,
                    ordered=item.ordered_qty,
                    invoiced=item.invoiced_qty,
                ))
        if problems:
            return _reject(sale_id, "Invoice", problems)

        if not sale.is_historical:
            by_product = {line.product_id: line.qty for line in lines}
            try:
                stock_service.deduct_stock_batch(
                    _reservable_lines(sale, lambda item: by_product.get(item.product_id, 0)),
                    WAREHOUSE_BOOKED,
                    commit=False,
                )
            except InsufficientStockError as exc:
                return _reject(sale_id, "Invoice", exc.violations)

        taxable_total = 0
        tax_total = 0
        invoice_lines = []
        for line in lines:
            item = items[line.product_id]
            taxable, tax = _line_values(
                line.qty, item.price_cents, _discount_share(item, line.qty), item.gst_rate_bps, item.is_gst_enabled,
            )
            taxable_total += taxable
            tax_total += tax
            item.invoiced_qty = item.invoiced_qty + line.qty
            invoice_lines.append({
                "product_id": item.product_id,
                "product_name": item.product_name,
                "qty": line.qty,
                "taxable_cents": taxable,
                "tax_cents": tax,
            })

        invoice_no = next_document_number(company_id=company_id, document_type="INVOICE", prefix="INV")
        db.session.add(SalesInvoice(
            company_id=company_id,
            sale_id=sale.id,
            invoice_no=invoice_no,
            business_date=parse_business_date(business_date),
            taxable_cents=taxable_total,
            tax_cents=tax_total,
            total_cents=taxable_total + tax_total,
            items=invoice_lines,
            performed_by=get_actor_name(),
        ))
        if not sale.is_historical:
            accounting_service.enqueue_posting(
                company_id=company_id,
                kind=accounting_service.KIND_SALES_REVENUE,
                document_type="sale",
                document_id=sale.id,
                payload={
                    "invoice_id": invoice_no,
                    "order_no": sale.order_no,
                    "contact_id": sale.contact_id,
                    "customer_name": sale.customer_name,
                    "amount_cents": taxable_total + tax_total,
                    "tax_cents": tax_total,
                },
            )
        _refresh_status(sale)
        db.session.commit()
        return OperationResult.success(sale)

    with company_lock(company_id):
        result = run_with_retry(_op)
    if result:
        current_app.logger.info("Invoice raised for sales order %s; status %s", sale_id, result.entity.status)
        accounting_service.dispatch_after_commit(company_id)
    return result


def cancel_order(sale_id: int) -> OperationResult:
    """
    Cancel an order, returning every un-invoiced unit from BOOKED to the
    order warehouse in one atomic transfer.

    Returns:
        OperationResult; failure (nothing changed) when BOOKED no longer
        holds the units to return

    Raises:
        SalesStateError: quotation, fully billed or already cancelled
    """
    company_id = require_company_id()

    def _op() -> OperationResult:
        sale = _get_sale_locked(company_id, sale_id)
        if sale.status not in CANCELLABLE_STATES:
            raise SalesStateError(f"Cannot cancel {sale.status} document")

        if not sale.is_historical:
            lines = _reservable_lines(sale, lambda item: item.ordered_qty - item.invoiced_qty)
            try:
                stock_service.transfer_stock_batch(
                    lines,
                    WAREHOUSE_BOOKED,
                    sale.warehouse,
                    party_name=sale.customer_name,
                    sales_person=sale.sales_person,
                    reference=sale.order_no,
                    commit=False,
                )
            except InsufficientStockError as exc:
                return _reject(sale_id, "Cancellation", exc.violations)

        sale.status = STATUS_CANCELLED
        _log(sale, LOG_CANCELLED, sale.grand_total_cents, sale.grand_total_cents)
        db.session.commit()
        return OperationResult.success(sale)

    with company_lock(company_id):
        result = run_with_retry(_op)
    if result:
        current_app.logger.info("Sales order %s cancelled", result.entity.order_no)
    return result


# =============================================================================
# Payments
# =============================================================================

def _apply_payment(sale_id: int, amount_cents, *, kind: str, payload_extra: dict) -> SalesTransaction:
    company_id = require_company_id()
    amount = coerce_positive_int(amount_cents, "amount_cents")

    def _op() -> SalesTransaction:
        sale = _get_sale_locked(company_id, sale_id)
        if sale.status == STATUS_CANCELLED:
            raise SalesStateError("Cannot record payment on a cancelled order")

        if not sale.is_historical:
            payload = {"invoice_id": sale.order_no, "contact_id": sale.contact_id, "amount_cents": amount}
            if kind == accounting_service.KIND_INVOICE_PAYMENT:
                payload["customer_name"] = sale.customer_name
            payload.update(payload_extra)
            accounting_service.enqueue_posting(
                company_id=company_id,
                kind=kind,
                document_type="sale",
                document_id=sale.id,
                payload=payload,
            )
        sale.amount_paid_cents = (sale.amount_paid_cents or 0) + amount
        sale.payment_status = accounting_service.derive_payment_status(
            sale.amount_paid_cents, sale.grand_total_cents,
        )
        if sale.amount_paid_cents > sale.grand_total_cents:
            current_app.logger.warning(
                "Sales order %s overpaid: paid %s against total %s",
                sale.order_no, sale.amount_paid_cents, sale.grand_total_cents,
            )
        db.session.commit()
        return sale

    with company_lock(company_id):
        sale = run_with_retry(_op)
    accounting_service.dispatch_after_commit(company_id)
    return sale


def add_sale_payment(
    sale_id: int,
    amount_cents: int,
    account_id: str | None = None,
    reference: str | None = None,
) -> SalesTransaction:
    """Record a customer payment against the order."""
    return _apply_payment(
        sale_id,
        amount_cents,
        kind=accounting_service.KIND_INVOICE_PAYMENT,
        payload_extra={"account_id": account_id, "reference": reference},
    )


def reconcile_advance(sale_id: int, amount_cents: int) -> SalesTransaction:
    """Adjust a customer advance against the order."""
    return _apply_payment(
        sale_id,
        amount_cents,
        kind=accounting_service.KIND_INVOICE_ADVANCE,
        payload_extra={},
    )


# =============================================================================
# Reads
# =============================================================================

def get_sale(sale_id: int) -> SalesTransaction:
    company_id = require_company_id()
    sale = db.session.get(SalesTransaction, sale_id)
    if sale is None:
        raise SalesNotFoundError(f"Sales order {sale_id} not found")
    return require_company_row(sale, company_id, label="Sales order")


def list_sales(*, status: str | None = None, include_historical: bool = True) -> list[SalesTransaction]:
    company_id = require_company_id()
    query = db.session.query(SalesTransaction).filter_by(company_id=company_id)
    if status:
        query = query.filter_by(status=status)
    if not include_historical:
        query = query.filter(SalesTransaction.is_historical.is_(False))
    return query.order_by(SalesTransaction.id).all()


def list_sales_logs(order_no: str | None = None) -> list[SalesLog]:
    company_id = require_company_id()
    query = db.session.query(SalesLog).filter_by(company_id=company_id)
    if order_no:
        query = query.filter_by(order_no=order_no)
    return query.order_by(SalesLog.id).all()


# =============================================================================
# Migration
# =============================================================================

def _import_historical(records: list[dict], *, status: str) -> list[SalesTransaction]:
    company_id = require_company_id()
    documents = parse_historical_documents(records, party_field="customer_name", number_field="order_no")

    problems = []
    for doc in documents:
        models = [line.model_no for line in doc.lines]
        for model_no in sorted({m for m in models if models.count(m) > 1}):
            problems.append(violation("duplicate_line", f"{model_no} appears more than once", row=doc.row))
    if problems:
        raise ValidationError("Migration payload rejected", violations=problems)

    fully_billed = status == STATUS_FULLY_BILLED

    def _op() -> list[SalesTransaction]:
        duplicates = [
            violation("duplicate_number", f"Order {doc.number} already exists", row=doc.row, number=doc.number)
            for doc in documents
            if doc.number and db.session.query(SalesTransaction).filter_by(
                company_id=company_id, order_no=doc.number,
            ).first()
        ]
        if duplicates:
            raise ValidationError("Migration payload rejected", violations=duplicates)

        imported = []
        for doc in documents:
            sale = SalesTransaction(
                company_id=company_id,
                order_no=doc.number or next_document_number(
                    company_id=company_id, document_type="HSALE", prefix="HSO",
                ),
                contact_id=doc.contact_id,
                customer_name=doc.party_name,
                sales_person=doc.sales_person,
                warehouse=doc.warehouse,
                business_date=doc.business_date,
                notes=doc.reference,
                status=status,
                is_historical=True,
                source=SOURCE_MIGRATION,
                performed_by=get_actor_name(),
            )
            for line in doc.lines:
                product = find_product_by_model_no(line.model_no, company_id=company_id)
                if product is None:
                    product = add_historical_shadow_product(
                        {"model_no": line.model_no, "name": line.name or line.model_no},
                        commit=False,
                    )
                taxable, tax = _line_values(
                    line.qty, line.price_cents, line.discount_cents, line.gst_rate_bps, line.is_gst_enabled,
                )
                sale.items.append(SalesItem(
                    product_id=product.id,
                    product_name=line.name or product.name,
                    model_no=product.model_no,
                    ordered_qty=line.qty,
                    delivered_qty=line.qty,
                    invoiced_qty=line.qty if fully_billed else 0,
                    price_cents=line.price_cents,
                    discount_cents=line.discount_cents,
                    gst_rate_bps=line.gst_rate_bps,
                    is_gst_enabled=line.is_gst_enabled,
                    total_cents=taxable + tax,
                ))
            sale.amount_paid_cents = 0
            _recompute_totals(sale)
            sale.amount_paid_cents = (
                doc.amount_paid_cents if doc.amount_paid_cents is not None else sale.grand_total_cents
            )
            sale.payment_status = accounting_service.derive_payment_status(
                sale.amount_paid_cents, sale.grand_total_cents,
            )
            sale.so_no = sale.order_no
            db.session.add(sale)
            imported.append(sale)

        db.session.commit()
        return imported

    with company_lock(company_id):
        imported = run_with_retry(_op)
    current_app.logger.info(
        "Imported %s historical sales documents as %s for company %s", len(imported), status, company_id,
    )
    return imported


def import_historical_sales(records: list[dict]) -> list[SalesTransaction]:
    """
    Store migrated invoices as FULLY_BILLED, historical, paid in full unless
    `amount_paid` says otherwise. No stock or accounting effect.
    """
    return _import_historical(records, status=STATUS_FULLY_BILLED)


def import_historical_orders(records: list[dict]) -> list[SalesTransaction]:
    """Store migrated orders as FULLY_DELIVERED, historical records."""
    return _import_historical(records, status=STATUS_FULLY_DELIVERED)
