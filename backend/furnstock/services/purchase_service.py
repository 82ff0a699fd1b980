# Overview: Purchase lifecycle engine (RFQ -> PO -> GRN -> Bill) and supplier accounts.

"""
Purchase Lifecycle Service

LIFECYCLE:
1. RFQ: Created, lines editable
2. PO: Confirmed with the supplier, PO number assigned
3. GRN_PARTIAL / GRN_COMPLETED: Goods received into a warehouse
4. BILLED: Every ordered unit received and billed
5. CANCELLED: Terminal from any non-BILLED state; received stock stays put

LINE CEILINGS:
- received_qty <= ordered_qty
- billed_qty <= min(ordered_qty, received_qty)

GRN and bill batches are validated line by line before anything is applied.
A rejected batch returns every offending line and changes nothing.

DEPENDENCIES:
- stock_service (increase_stock) for receipts
- accounting_service (enqueue_posting) for bill and payment postings
Historical (migrated) purchases never touch either.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import GRNRecord, PurchaseItem, PurchaseTransaction, Supplier, VendorBillRecord
from ..models.inventory import WAREHOUSE_DISPLAY, WAREHOUSE_GODOWN, WAREHOUSE_REPAIR
from ..time_utils import parse_business_date
from ..validation import (
    MissingContextError,
    OperationResult,
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


STATUS_RFQ = "RFQ"
STATUS_PO = "PO"
STATUS_GRN_PARTIAL = "GRN_PARTIAL"
STATUS_GRN_COMPLETED = "GRN_COMPLETED"
STATUS_BILLED = "BILLED"
STATUS_CANCELLED = "CANCELLED"

RECEIVABLE_STATES = {STATUS_PO, STATUS_GRN_PARTIAL}
BILLABLE_STATES = {STATUS_PO, STATUS_GRN_PARTIAL, STATUS_GRN_COMPLETED}

# Goods arrive into live, non-reserved warehouses only
RECEIVING_WAREHOUSES = (WAREHOUSE_GODOWN, WAREHOUSE_DISPLAY, WAREHOUSE_REPAIR)

SOURCE_LIVE = "live"
SOURCE_MIGRATION = "migration"


class PurchaseNotFoundError(MissingContextError):
    """Raised when a purchase is not found in the active company."""
    pass


class SupplierNotFoundError(MissingContextError):
    """Raised when a supplier is not found in the active company."""
    pass


class PurchaseStateError(Exception):
    """Raised when an operation is invalid for the current purchase status."""
    pass


# =============================================================================
# Suppliers
# =============================================================================

def add_supplier(data: dict) -> Supplier:
    """
    Register a supplier for the active company.

    Raises:
        ValidationError: blank name, duplicate name, bad opening balance
    """
    company_id = require_company_id()
    name = require_text(data.get("name"), "name")
    if db.session.query(Supplier).filter_by(company_id=company_id, name=name).first():
        raise ValidationError(f"Supplier {name} already exists")

    supplier = Supplier(
        company_id=company_id,
        name=name,
        phone=optional_text(data.get("phone"), max_length=32),
        email=optional_text(data.get("email")),
        address=optional_text(data.get("address"), max_length=2000),
        gst_no=optional_text(data.get("gst_no"), max_length=32),
        opening_balance_cents=coerce_int(data.get("opening_balance_cents", 0), "opening_balance_cents"),
    )
    db.session.add(supplier)
    db.session.commit()
    return supplier


def get_supplier(supplier_id: int) -> Supplier:
    company_id = require_company_id()
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise SupplierNotFoundError(f"Supplier {supplier_id} not found")
    return require_company_row(supplier, company_id, label="Supplier")


def list_suppliers() -> list[Supplier]:
    company_id = require_company_id()
    return db.session.query(Supplier).filter_by(company_id=company_id).order_by(Supplier.name).all()


def get_supplier_balance(supplier_id: int) -> int:
    """Opening balance plus the outstanding payable reported by accounting."""
    supplier = get_supplier(supplier_id)
    due = 0
    for row in accounting_service.get_payables_ageing():
        if row["party_id"] == str(supplier.id):
            due = row["due_cents"]
            break
    return supplier.opening_balance_cents + due


def get_supplier_ledger(supplier_id: int) -> dict:
    """Supplier statement: opening balance, entries with running balance, closing balance."""
    supplier = get_supplier(supplier_id)
    entries = accounting_service.get_party_ledger(accounting_service.PARTY_SUPPLIER, supplier.id)
    opening = supplier.opening_balance_cents
    for entry in entries:
        entry["balance_cents"] += opening
    closing = entries[-1]["balance_cents"] if entries else opening
    return {
        "supplier": supplier.to_dict(),
        "opening_balance_cents": opening,
        "entries": entries,
        "closing_balance_cents": closing,
    }


# =============================================================================
# Helpers
# =============================================================================

def _get_purchase_locked(company_id: int, purchase_id: int) -> PurchaseTransaction:
    purchase = lock_for_update(db.session.query(PurchaseTransaction).filter_by(id=purchase_id)).first()
    if purchase is None:
        raise PurchaseNotFoundError(f"Purchase {purchase_id} not found")
    return require_company_row(purchase, company_id, label="Purchase")


def _validate_receiving_warehouse(warehouse: str) -> str:
    if warehouse not in RECEIVING_WAREHOUSES:
        raise ValidationError(
            f"Goods can only be received into: {', '.join(RECEIVING_WAREHOUSES)}"
        )
    return warehouse


def _build_items(company_id: int, raw_items) -> list[PurchaseItem]:
    """
    Parse RFQ lines. Every bad line is collected before raising.

    Line: {product_id, qty, unit_price_cents?, gst_rate_bps?}; price and rate
    default to the product's cost and GST rate.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    items: list[PurchaseItem] = []
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
            unit_price = coerce_amount_cents(raw.get("unit_price_cents", product.cost_cents), "unit_price_cents")
            rate = coerce_rate_bps(raw.get("gst_rate_bps", product.gst_rate_bps), "gst_rate_bps")
        except (ValidationError, MissingContextError) as exc:
            product_id = raw.get("product_id") if isinstance(raw, dict) else None
            problems.append(violation("invalid_line", str(exc), line=index, product_id=product_id))
            continue

        value = qty * unit_price
        items.append(PurchaseItem(
            product_id=product.id,
            product_name=product.name,
            model_no=product.model_no,
            ordered_qty=qty,
            received_qty=0,
            billed_qty=0,
            unit_price_cents=unit_price,
            gst_rate_bps=rate,
            total_cents=value + apply_rate_bps(value, rate),
        ))

    if problems:
        raise ValidationError("Purchase lines rejected", violations=problems)
    return items


def _recompute_totals(purchase: PurchaseTransaction) -> None:
    subtotal = 0
    gst = 0
    for item in purchase.items:
        value = item.ordered_qty * item.unit_price_cents
        subtotal += value
        gst += apply_rate_bps(value, item.gst_rate_bps)
    purchase.subtotal_cents = subtotal
    purchase.total_gst_cents = gst
    purchase.grand_total_cents = subtotal + gst
    purchase.payment_status = accounting_service.derive_payment_status(
        purchase.amount_paid_cents or 0, purchase.grand_total_cents,
    )


def _refresh_status(purchase: PurchaseTransaction) -> None:
    """
    Derive the receipt/billing status from aggregate line quantities.

    fully received and fully billed -> BILLED
    fully received                  -> GRN_COMPLETED
    partly received                 -> GRN_PARTIAL
    nothing received                -> unchanged
    """
    ordered = sum(item.ordered_qty for item in purchase.items)
    received = sum(item.received_qty for item in purchase.items)
    billed = sum(item.billed_qty for item in purchase.items)

    if received >= ordered and billed >= ordered:
        purchase.status = STATUS_BILLED
    elif received >= ordered:
        purchase.status = STATUS_GRN_COMPLETED
    elif received > 0:
        purchase.status = STATUS_GRN_PARTIAL


def _reject(purchase_id: int, action: str, violations: list[dict]) -> OperationResult:
    db.session.rollback()
    current_app.logger.warning(
        "%s rejected for purchase %s: %s violating line(s)", action, purchase_id, len(violations),
    )
    return OperationResult.failure(violations)


# =============================================================================
# Lifecycle
# =============================================================================

def create_rfq(data: dict) -> PurchaseTransaction:
    """
    Create a purchase in RFQ with zero received/billed quantities.

    Args:
        data: {supplier_id, items, warehouse?, business_date?, reference?, notes?}

    Returns:
        Created PurchaseTransaction

    Raises:
        MissingContextError: no active company
        SupplierNotFoundError: unknown supplier
        ValidationError: bad header or lines (all bad lines listed)
    """
    company_id = require_company_id()
    supplier = get_supplier(coerce_int(data.get("supplier_id"), "supplier_id"))
    warehouse = _validate_receiving_warehouse(data.get("warehouse") or WAREHOUSE_GODOWN)
    try:
        business_date = parse_business_date(data.get("business_date"))
    except ValueError:
        raise ValidationError("business_date must be YYYY-MM-DD")

    def _op() -> PurchaseTransaction:
        items = _build_items(company_id, data.get("items"))
        purchase_no = next_document_number(company_id=company_id, document_type="PURCHASE", prefix="PUR")
        purchase = PurchaseTransaction(
            company_id=company_id,
            purchase_no=purchase_no,
            rfq_no=purchase_no,
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            warehouse=warehouse,
            business_date=business_date,
            reference=optional_text(data.get("reference"), max_length=64),
            notes=optional_text(data.get("notes"), max_length=2000),
            status=STATUS_RFQ,
            amount_paid_cents=0,
            is_historical=False,
            source=SOURCE_LIVE,
            performed_by=get_actor_name(),
        )
        purchase.items = items
        _recompute_totals(purchase)
        db.session.add(purchase)
        db.session.commit()
        return purchase

    with company_lock(company_id):
        purchase = run_with_retry(_op)
    current_app.logger.info("RFQ %s created for supplier %s", purchase.purchase_no, purchase.supplier_name)
    return purchase


def update_purchase(purchase_id: int, data: dict) -> PurchaseTransaction:
    """
    Edit an RFQ's header and/or replace its lines.

    Raises:
        PurchaseStateError: purchase is past RFQ
    """
    company_id = require_company_id()

    def _op() -> PurchaseTransaction:
        purchase = _get_purchase_locked(company_id, purchase_id)
        if purchase.status != STATUS_RFQ:
            raise PurchaseStateError(
                f"Cannot edit {purchase.status} purchase. Only RFQ purchases can be modified."
            )

        if "supplier_id" in data:
            supplier = get_supplier(coerce_int(data["supplier_id"], "supplier_id"))
            purchase.supplier_id = supplier.id
            purchase.supplier_name = supplier.name
        if "warehouse" in data:
            purchase.warehouse = _validate_receiving_warehouse(data["warehouse"])
        if "business_date" in data:
            try:
                purchase.business_date = parse_business_date(data["business_date"])
            except ValueError:
                raise ValidationError("business_date must be YYYY-MM-DD")
        if "reference" in data:
            purchase.reference = optional_text(data["reference"], max_length=64)
        if "notes" in data:
            purchase.notes = optional_text(data["notes"], max_length=2000)
        if "items" in data:
            items = _build_items(company_id, data["items"])
            # Flush removals first so a re-added product does not hit the unique line key
            purchase.items.clear()
            db.session.flush()
            purchase.items.extend(items)

        _recompute_totals(purchase)
        db.session.commit()
        return purchase

    with company_lock(company_id):
        return run_with_retry(_op)


def confirm_po(purchase_id: int) -> PurchaseTransaction:
    """
    RFQ -> PO. The PO number reuses the purchase number's sequence
    (PUR-0007 -> PO-0007).
    """
    company_id = require_company_id()

    def _op() -> PurchaseTransaction:
        purchase = _get_purchase_locked(company_id, purchase_id)
        if purchase.status != STATUS_RFQ:
            raise PurchaseStateError(f"Cannot confirm {purchase.status} purchase as PO")
        purchase.po_no = f"PO-{numeric_part(purchase.purchase_no)}"
        purchase.status = STATUS_PO
        db.session.commit()
        return purchase

    with company_lock(company_id):
        purchase = run_with_retry(_op)
    current_app.logger.info("Purchase %s confirmed as %s", purchase.purchase_no, purchase.po_no)
    return purchase


def record_grn(
    purchase_id: int,
    deliveries: list[dict],
    reference: str | None = None,
    warehouse: str | None = None,
    *,
    business_date=None,
) -> OperationResult:
    """
    Receive goods against a PO, all lines or none.

    Args:
        purchase_id: Purchase to receive against
        deliveries: [{product_id, qty}]; zero lines are ignored
        reference: Supplier challan / delivery note number
        warehouse: Destination (defaults to the purchase's warehouse)

    Returns:
        OperationResult; on failure `violations` lists every bad line and no
        stock moved

    Raises:
        PurchaseNotFoundError, PurchaseStateError
    """
    company_id = require_company_id()

    def _op() -> OperationResult:
        purchase = _get_purchase_locked(company_id, purchase_id)
        if purchase.status not in RECEIVABLE_STATES:
            raise PurchaseStateError(f"Cannot receive goods on {purchase.status} purchase")
        destination = _validate_receiving_warehouse(warehouse or purchase.warehouse)

        items = {item.product_id: item for item in purchase.items}
        lines, problems = parse_quantity_lines(deliveries, known_product_ids=items.keys())
        for line in lines:
            item = items[line.product_id]
            if item.received_qty + line.qty > item.ordered_qty:
                problems.append(violation(
                    "over_receipt",
                    f"{item.model_no}: receiving {line.qty} would exceed ordered {item.ordered_qty} "
                    f"(already received {item.received_qty})",
                    product_id=item.product_id,
                    requested=line.qty,
                    ordered=item.ordered_qty,
                    received=item.received_qty,
                    remaining=item.ordered_qty - item.received_qty,
                ))
        if problems:
            return _reject(purchase_id, "GRN", problems)

        grn_items = []
        for line in lines:
            item = items[line.product_id]
            if not purchase.is_historical and get_product(item.product_id, company_id=company_id).track_inventory:
                stock_service.increase_stock(item.product_id, destination, line.qty, commit=False)
            item.received_qty = item.received_qty + line.qty
            grn_items.append({"product_id": item.product_id, "product_name": item.product_name, "qty": line.qty})

        db.session.add(GRNRecord(
            company_id=company_id,
            purchase_id=purchase.id,
            grn_no=next_document_number(company_id=company_id, document_type="GRN", prefix="GRN"),
            business_date=parse_business_date(business_date),
            reference=optional_text(reference, max_length=64),
            warehouse=destination,
            items=grn_items,
            performed_by=get_actor_name(),
        ))
        _refresh_status(purchase)
        db.session.commit()
        return OperationResult.success(purchase)

    with company_lock(company_id):
        result = run_with_retry(_op)
    if result:
        current_app.logger.info("GRN recorded for purchase %s; status %s", purchase_id, result.entity.status)
    return result


def create_vendor_bill(
    purchase_id: int,
    billed_items: list[dict],
    bill_no: str | None = None,
    *,
    business_date=None,
) -> OperationResult:
    """
    Bill received quantities, all lines or none.

    Each line needs billed + qty <= ordered and billed + qty <= received.
    On success the bill amount (GST included) is queued as a purchase-cost
    posting keyed by the purchase id.
    """
    company_id = require_company_id()

    def _op() -> OperationResult:
        purchase = _get_purchase_locked(company_id, purchase_id)
        if purchase.status not in BILLABLE_STATES:
            raise PurchaseStateError(f"Cannot bill {purchase.status} purchase")

        items = {item.product_id: item for item in purchase.items}
        lines, problems = parse_quantity_lines(billed_items, known_product_ids=items.keys())
        for line in lines:
            item = items[line.product_id]
            if item.billed_qty + line.qty > item.ordered_qty:
                problems.append(violation(
                    "over_billing",
                    f"{item.model_no}: billing {line.qty} would exceed ordered {item.ordered_qty} "
                    f"(already billed {item.billed_qty})",
                    product_id=item.product_id,
                    requested=line.qty,
                    ordered=item.ordered_qty,
                    billed=item.billed_qty,
                ))
            if item.billed_qty + line.qty > item.received_qty:
                problems.append(violation(
                    "billing_unreceived",
                    f"{item.model_no}: billing {line.qty} would exceed received {item.received_qty} "
                    f"(already billed {item.billed_qty})",
                    product_id=item.product_id,
                    requested=line.qty,
                    received=item.received_qty,
                    billed=item.billed_qty,
                ))
        if problems:
            return _reject(purchase_id, "Vendor bill", problems)

        amount = 0
        tax = 0
        bill_lines = []
        for line in lines:
            item = items[line.product_id]
            value = line.qty * item.unit_price_cents
            line_tax = apply_rate_bps(value, item.gst_rate_bps)
            amount += value + line_tax
            tax += line_tax
            item.billed_qty = item.billed_qty + line.qty
            bill_lines.append({
                "product_id": item.product_id,
                "product_name": item.product_name,
                "qty": line.qty,
                "amount_cents": value + line_tax,
            })

        number = optional_text(bill_no, max_length=64) or next_document_number(
            company_id=company_id, document_type="BILL", prefix="BILL",
        )
        db.session.add(VendorBillRecord(
            company_id=company_id,
            purchase_id=purchase.id,
            bill_no=number,
            business_date=parse_business_date(business_date),
            amount_cents=amount,
            tax_cents=tax,
            items=bill_lines,
            performed_by=get_actor_name(),
        ))
        if not purchase.is_historical:
            accounting_service.enqueue_posting(
                company_id=company_id,
                kind=accounting_service.KIND_PURCHASE_COST,
                document_type="purchase",
                document_id=purchase.id,
                payload={
                    "purchase_id": purchase.id,
                    "bill_no": number,
                    "contact_id": purchase.supplier_id,
                    "party_name": purchase.supplier_name,
                    "amount_cents": amount,
                    "tax_cents": tax,
                },
            )
        _refresh_status(purchase)
        db.session.commit()
        return OperationResult.success(purchase)

    with company_lock(company_id):
        result = run_with_retry(_op)
    if result:
        current_app.logger.info("Vendor bill recorded for purchase %s; status %s", purchase_id, result.entity.status)
        accounting_service.dispatch_after_commit(company_id)
    return result


def _apply_payment(purchase_id: int, amount_cents, *, kind: str, payload_extra: dict) -> PurchaseTransaction:
    company_id = require_company_id()
    amount = coerce_positive_int(amount_cents, "amount_cents")

    def _op() -> PurchaseTransaction:
        purchase = _get_purchase_locked(company_id, purchase_id)
        if purchase.status == STATUS_CANCELLED:
            raise PurchaseStateError("Cannot record payment on a cancelled purchase")

        if not purchase.is_historical:
            payload = {"bill_id": purchase.id, "contact_id": purchase.supplier_id, "amount_cents": amount}
            payload.update(payload_extra)
            accounting_service.enqueue_posting(
                company_id=company_id,
                kind=kind,
                document_type="purchase",
                document_id=purchase.id,
                payload=payload,
            )
        purchase.amount_paid_cents = (purchase.amount_paid_cents or 0) + amount
        purchase.payment_status = accounting_service.derive_payment_status(
            purchase.amount_paid_cents, purchase.grand_total_cents,
        )
        if purchase.amount_paid_cents > purchase.grand_total_cents:
            current_app.logger.warning(
                "Purchase %s overpaid: paid %s against total %s",
                purchase.purchase_no, purchase.amount_paid_cents, purchase.grand_total_cents,
            )
        db.session.commit()
        return purchase

    with company_lock(company_id):
        purchase = run_with_retry(_op)
    accounting_service.dispatch_after_commit(company_id)
    return purchase


def record_purchase_payment(
    purchase_id: int,
    amount_cents: int,
    account_id: str | None = None,
    reference: str | None = None,
) -> PurchaseTransaction:
    """Pay the supplier against this purchase and update payment status."""
    return _apply_payment(
        purchase_id,
        amount_cents,
        kind=accounting_service.KIND_BILL_PAYMENT,
        payload_extra={"account_id": account_id, "reference": reference},
    )


def reconcile_vendor_advance(purchase_id: int, amount_cents: int) -> PurchaseTransaction:
    """Adjust an advance already paid to the supplier against this purchase."""
    return _apply_payment(
        purchase_id,
        amount_cents,
        kind=accounting_service.KIND_BILL_ADVANCE,
        payload_extra={},
    )


def cancel_purchase(purchase_id: int) -> PurchaseTransaction:
    """
    Freeze a purchase as CANCELLED. Stock already received is not reversed.

    Raises:
        PurchaseStateError: purchase is BILLED or already CANCELLED
    """
    company_id = require_company_id()

    def _op() -> PurchaseTransaction:
        purchase = _get_purchase_locked(company_id, purchase_id)
        if purchase.status in {STATUS_BILLED, STATUS_CANCELLED}:
            raise PurchaseStateError(f"Cannot cancel {purchase.status} purchase")
        purchase.status = STATUS_CANCELLED
        db.session.commit()
        return purchase

    with company_lock(company_id):
        purchase = run_with_retry(_op)
    current_app.logger.info("Purchase %s cancelled", purchase.purchase_no)
    return purchase


# =============================================================================
# Reads
# =============================================================================

def get_purchase(purchase_id: int) -> PurchaseTransaction:
    company_id = require_company_id()
    purchase = db.session.get(PurchaseTransaction, purchase_id)
    if purchase is None:
        raise PurchaseNotFoundError(f"Purchase {purchase_id} not found")
    return require_company_row(purchase, company_id, label="Purchase")


def list_purchases(*, status: str | None = None, include_historical: bool = True) -> list[PurchaseTransaction]:
    company_id = require_company_id()
    query = db.session.query(PurchaseTransaction).filter_by(company_id=company_id)
    if status:
        query = query.filter_by(status=status)
    if not include_historical:
        query = query.filter(PurchaseTransaction.is_historical.is_(False))
    return query.order_by(PurchaseTransaction.id).all()


# =============================================================================
# Migration
# =============================================================================

def import_historical_purchases(records: list[dict]) -> list[PurchaseTransaction]:
    """
    Store migrated purchases as BILLED, historical records.

    Unknown model numbers become shadow products. No stock moves and nothing
    is posted to accounting.

    Raises:
        ValidationError: malformed payload or a purchase number already in use;
            nothing is imported
    """
    company_id = require_company_id()
    documents = parse_historical_documents(records, party_field="supplier_name", number_field="purchase_no")

    problems = []
    for doc in documents:
        models = [line.model_no for line in doc.lines]
        for model_no in sorted({m for m in models if models.count(m) > 1}):
            problems.append(violation(
                "duplicate_line", f"{model_no} appears more than once", row=doc.row,
            ))
        for line in doc.lines:
            if line.discount_cents:
                problems.append(violation(
                    "malformed", f"{line.model_no}: purchase lines carry no discount", row=doc.row,
                ))
    if problems:
        raise ValidationError("Migration payload rejected", violations=problems)

    def _op() -> list[PurchaseTransaction]:
        duplicates = [
            violation("duplicate_number", f"Purchase {doc.number} already exists", row=doc.row, number=doc.number)
            for doc in documents
            if doc.number and db.session.query(PurchaseTransaction).filter_by(
                company_id=company_id, purchase_no=doc.number,
            ).first()
        ]
        if duplicates:
            raise ValidationError("Migration payload rejected", violations=duplicates)

        imported = []
        for doc in documents:
            supplier = db.session.query(Supplier).filter_by(company_id=company_id, name=doc.party_name).first()
            number = doc.number or next_document_number(
                company_id=company_id, document_type="HPURCHASE", prefix="HPUR",
            )
            purchase = PurchaseTransaction(
                company_id=company_id,
                purchase_no=number,
                rfq_no=number,
                po_no=number,
                supplier_id=supplier.id if supplier else None,
                supplier_name=doc.party_name,
                warehouse=doc.warehouse,
                business_date=doc.business_date,
                reference=doc.reference,
                status=STATUS_BILLED,
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
                value = line.qty * line.price_cents
                purchase.items.append(PurchaseItem(
                    product_id=product.id,
                    product_name=line.name or product.name,
                    model_no=product.model_no,
                    ordered_qty=line.qty,
                    received_qty=line.qty,
                    billed_qty=line.qty,
                    unit_price_cents=line.price_cents,
                    gst_rate_bps=line.gst_rate_bps,
                    total_cents=value + apply_rate_bps(value, line.gst_rate_bps),
                ))
            purchase.amount_paid_cents = 0
            _recompute_totals(purchase)
            purchase.amount_paid_cents = (
                doc.amount_paid_cents if doc.amount_paid_cents is not None else purchase.grand_total_cents
            )
            purchase.payment_status = accounting_service.derive_payment_status(
                purchase.amount_paid_cents, purchase.grand_total_cents,
            )
            db.session.add(purchase)
            imported.append(purchase)

        db.session.commit()
        return imported

    with company_lock(company_id):
        imported = run_with_retry(_op)
    current_app.logger.info("Imported %s historical purchases for company %s", len(imported), company_id)
    return imported
