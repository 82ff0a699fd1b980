# Overview: Per-product, per-warehouse stock ledger; the only writer of WarehouseStock rows.

"""
Stock Ledger Invariants (authoritative)

Quantities:
- WarehouseStock.quantity >= 0 after every operation. A deduct that would go
  negative changes nothing and reports failure.
- HISTORICAL and ARCHIVE rows are frozen: ledger operations never touch them
  and totals never count them.
- Historical (shadow) products hold no live stock.

Atomicity:
- transfer = deduct(source) + increase(destination) inside one company_lock
  critical section and one DB transaction. Exactly one StockTransfer row is
  appended per successful transfer.
- Batch operations validate every line against the same locked snapshot
  before applying any line (InsufficientStockError lists every short line).

Composition:
- Public functions take commit=True. Lifecycle services pass commit=False to
  fold ledger changes into their own transaction; they already hold the
  company lock.
"""

from __future__ import annotations

from typing import Iterable

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import ManualTransaction, Product, StockTransfer, WarehouseStock
from ..models.inventory import (
    FROZEN_WAREHOUSES,
    SELLABLE_WAREHOUSES,
    WAREHOUSE_BOOKED,
    WAREHOUSE_DISPLAY,
    WAREHOUSE_GODOWN,
    WAREHOUSE_REPAIR,
    WAREHOUSES,
)
from ..time_utils import parse_business_date
from ..validation import (
    InsufficientStockError,
    QuantityLine,
    ValidationError,
    coerce_positive_int,
    violation,
)
from .catalog_service import find_product_by_model_no, get_product
from .concurrency import company_lock, lock_for_update, run_with_retry
from .import_schemas import parse_stock_rows
from .tenant_service import get_active_company_id, get_actor_name, require_company_id


MANUAL_RECEIPT = "RECEIPT"
MANUAL_DELIVERY = "DELIVERY"

# Warehouses an opening-stock import may set
IMPORTABLE_WAREHOUSES = (WAREHOUSE_GODOWN, WAREHOUSE_DISPLAY, WAREHOUSE_BOOKED, WAREHOUSE_REPAIR)


def validate_warehouse(warehouse: str, *, allow_frozen: bool = False) -> str:
    if warehouse not in WAREHOUSES:
        raise ValidationError(f"Unknown warehouse {warehouse!r}. Must be one of: {', '.join(WAREHOUSES)}")
    if not allow_frozen and warehouse in FROZEN_WAREHOUSES:
        raise ValidationError(f"Warehouse {warehouse} does not accept stock movements")
    return warehouse


def _locked(company_id: int, op, *, commit: bool):
    with company_lock(company_id):
        if commit:
            return run_with_retry(op)
        return op()


def _stock_row(company_id: int, product_id: int, warehouse: str, *, create: bool = False) -> WarehouseStock | None:
    row = lock_for_update(
        db.session.query(WarehouseStock).filter_by(
            company_id=company_id,
            product_id=product_id,
            warehouse=warehouse,
        )
    ).first()
    if row is None and create:
        row = WarehouseStock(company_id=company_id, product_id=product_id, warehouse=warehouse, quantity=0)
        db.session.add(row)
        db.session.flush()
    return row


def _current_quantity(company_id: int, product_id: int, warehouse: str) -> int:
    row = _stock_row(company_id, product_id, warehouse)
    return row.quantity if row else 0


def _increase_inner(company_id: int, product: Product, warehouse: str, qty: int) -> bool:
    if warehouse in FROZEN_WAREHOUSES or product.is_historical:
        return False
    row = _stock_row(company_id, product.id, warehouse, create=True)
    row.quantity = row.quantity + qty
    db.session.flush()
    return True


def _deduct_inner(company_id: int, product: Product, warehouse: str, qty: int) -> bool:
    if warehouse in FROZEN_WAREHOUSES or product.is_historical:
        return False
    row = _stock_row(company_id, product.id, warehouse)
    if row is None or row.quantity < qty:
        return False
    row.quantity = row.quantity - qty
    db.session.flush()
    return True


def _append_transfer(
    company_id: int,
    product_id: int,
    from_warehouse: str,
    to_warehouse: str,
    qty: int,
    *,
    business_date,
    reference: str | None,
    party_name: str | None,
    sales_person: str | None,
) -> StockTransfer:
    transfer = StockTransfer(
        company_id=company_id,
        product_id=product_id,
        from_warehouse=from_warehouse,
        to_warehouse=to_warehouse,
        quantity=qty,
        business_date=parse_business_date(business_date),
        reference=reference,
        party_name=party_name,
        sales_person=sales_person,
        performed_by=get_actor_name(),
    )
    db.session.add(transfer)
    db.session.flush()
    return transfer


# =============================================================================
# Single-line ledger operations
# =============================================================================

def increase_stock(product_id: int, warehouse: str, qty: int, *, commit: bool = True) -> bool:
    """
    Add `qty` to (product, warehouse), creating the row if absent.

    No-op (returns False) when there is no active company, the warehouse is
    HISTORICAL/ARCHIVE, or the product is a historical shadow.

    Raises:
        ValidationError: unknown warehouse or non-positive qty
        ProductNotFoundError / TenantAccessError: product not in the company
    """
    company_id = get_active_company_id()
    if company_id is None or warehouse in FROZEN_WAREHOUSES:
        return False
    validate_warehouse(warehouse)
    qty = coerce_positive_int(qty, "qty")

    def _op() -> bool:
        product = get_product(product_id, company_id=company_id)
        applied = _increase_inner(company_id, product, warehouse, qty)
        if commit:
            db.session.commit()
        return applied

    return _locked(company_id, _op, commit=commit)


def deduct_stock(product_id: int, warehouse: str, qty: int, *, commit: bool = True) -> bool:
    """
    Subtract `qty` from (product, warehouse) if at least `qty` is on hand.

    Returns False and changes nothing when stock is short, the warehouse is
    frozen, or there is no active company.
    """
    company_id = get_active_company_id()
    if company_id is None or warehouse in FROZEN_WAREHOUSES:
        return False
    validate_warehouse(warehouse)
    qty = coerce_positive_int(qty, "qty")

    def _op() -> bool:
        product = get_product(product_id, company_id=company_id)
        applied = _deduct_inner(company_id, product, warehouse, qty)
        if commit:
            if applied:
                db.session.commit()
            else:
                db.session.rollback()
        return applied

    return _locked(company_id, _op, commit=commit)


def transfer_stock(
    product_id: int,
    from_warehouse: str,
    to_warehouse: str,
    qty: int,
    *,
    party_name: str | None = None,
    sales_person: str | None = None,
    business_date=None,
    reference: str | None = None,
    commit: bool = True,
) -> bool:
    """
    Move `qty` units between two warehouses as one atomic unit.

    On success appends exactly one StockTransfer. On a short source nothing
    changes and False is returned.
    """
    company_id = get_active_company_id()
    if company_id is None:
        return False
    if from_warehouse in FROZEN_WAREHOUSES or to_warehouse in FROZEN_WAREHOUSES:
        return False
    validate_warehouse(from_warehouse)
    validate_warehouse(to_warehouse)
    if from_warehouse == to_warehouse:
        raise ValidationError("Source and destination warehouse must differ")
    qty = coerce_positive_int(qty, "qty")

    def _op() -> bool:
        product = get_product(product_id, company_id=company_id)
        if not _deduct_inner(company_id, product, from_warehouse, qty):
            if commit:
                db.session.rollback()
            return False
        _increase_inner(company_id, product, to_warehouse, qty)
        _append_transfer(
            company_id, product.id, from_warehouse, to_warehouse, qty,
            business_date=business_date,
            reference=reference,
            party_name=party_name,
            sales_person=sales_person,
        )
        if commit:
            db.session.commit()
        return True

    return _locked(company_id, _op, commit=commit)


# =============================================================================
# Multi-line (all-or-nothing) operations
# =============================================================================

def _aggregate(lines: Iterable[QuantityLine]) -> dict[int, int]:
    totals: dict[int, int] = {}
    for line in lines:
        qty = coerce_positive_int(line.qty, "qty")
        totals[line.product_id] = totals.get(line.product_id, 0) + qty
    return totals


def _check_available(company_id: int, totals: dict[int, int], warehouse: str) -> dict[int, Product]:
    """Validate every product against the locked snapshot before anything is applied."""
    products: dict[int, Product] = {}
    shortages: list[dict] = []
    for product_id, qty in totals.items():
        product = get_product(product_id, company_id=company_id)
        products[product_id] = product
        if product.is_historical:
            shortages.append(violation(
                "historical_product",
                f"{product.model_no} is a historical product and holds no stock",
                product_id=product_id,
                model_no=product.model_no,
            ))
            continue
        available = _current_quantity(company_id, product_id, warehouse)
        if available < qty:
            shortages.append(violation(
                "insufficient_stock",
                f"{product.model_no}: requested {qty} from {warehouse}, available {available}",
                product_id=product_id,
                model_no=product.model_no,
                warehouse=warehouse,
                requested=qty,
                available=available,
            ))
    if shortages:
        raise InsufficientStockError(f"Insufficient stock in {warehouse}", violations=shortages)
    return products


def transfer_stock_batch(
    lines: list[QuantityLine],
    from_warehouse: str,
    to_warehouse: str,
    *,
    party_name: str | None = None,
    sales_person: str | None = None,
    business_date=None,
    reference: str | None = None,
    commit: bool = True,
) -> list[StockTransfer]:
    """
    Transfer several products between two warehouses, all or nothing.

    Quantities for the same product are summed before checking.

    Raises:
        InsufficientStockError: with every short line; nothing was changed
        MissingContextError: no active company
    """
    company_id = require_company_id()
    validate_warehouse(from_warehouse)
    validate_warehouse(to_warehouse)
    if from_warehouse == to_warehouse:
        raise ValidationError("Source and destination warehouse must differ")
    totals = _aggregate(lines)
    if not totals:
        return []

    def _op() -> list[StockTransfer]:
        products = _check_available(company_id, totals, from_warehouse)
        transfers = []
        for product_id, qty in totals.items():
            product = products[product_id]
            _deduct_inner(company_id, product, from_warehouse, qty)
            _increase_inner(company_id, product, to_warehouse, qty)
            transfers.append(_append_transfer(
                company_id, product_id, from_warehouse, to_warehouse, qty,
                business_date=business_date,
                reference=reference,
                party_name=party_name,
                sales_person=sales_person,
            ))
        if commit:
            db.session.commit()
        return transfers

    return _locked(company_id, _op, commit=commit)


def deduct_stock_batch(
    lines: list[QuantityLine],
    warehouse: str,
    *,
    commit: bool = True,
) -> None:
    """
    Deduct several products from one warehouse, all or nothing.

    Raises:
        InsufficientStockError: with every short line; nothing was changed
    """
    company_id = require_company_id()
    validate_warehouse(warehouse)
    totals = _aggregate(lines)
    if not totals:
        return

    def _op() -> None:
        products = _check_available(company_id, totals, warehouse)
        for product_id, qty in totals.items():
            _deduct_inner(company_id, products[product_id], warehouse, qty)
        if commit:
            db.session.commit()

    _locked(company_id, _op, commit=commit)


# =============================================================================
# Reads
# =============================================================================

def get_product_stock(product_id: int) -> dict[str, int]:
    """Quantity per warehouse (every warehouse present, zero when no row)."""
    company_id = require_company_id()
    get_product(product_id, company_id=company_id)
    levels = {warehouse: 0 for warehouse in WAREHOUSES}
    rows = db.session.query(WarehouseStock).filter_by(company_id=company_id, product_id=product_id).all()
    for row in rows:
        levels[row.warehouse] = row.quantity
    return levels


def get_stock_level(product_id: int, warehouse: str) -> int:
    company_id = require_company_id()
    validate_warehouse(warehouse, allow_frozen=True)
    get_product(product_id, company_id=company_id)
    row = db.session.query(WarehouseStock).filter_by(
        company_id=company_id,
        product_id=product_id,
        warehouse=warehouse,
    ).first()
    return row.quantity if row else 0


def _sum_quantity(product_id: int, warehouses) -> int:
    company_id = require_company_id()
    product = get_product(product_id, company_id=company_id)
    if product.is_historical:
        return 0
    total = (
        db.session.query(func.coalesce(func.sum(WarehouseStock.quantity), 0))
        .filter(
            WarehouseStock.company_id == company_id,
            WarehouseStock.product_id == product_id,
            WarehouseStock.warehouse.in_(list(warehouses)),
        )
        .scalar()
    )
    return int(total or 0)


def get_total_stock(product_id: int) -> int:
    """All live warehouses (HISTORICAL/ARCHIVE excluded)."""
    return _sum_quantity(product_id, [w for w in WAREHOUSES if w not in FROZEN_WAREHOUSES])


def get_sellable_stock(product_id: int) -> int:
    """GODOWN + DISPLAY only. BOOKED and REPAIR stock is not for sale."""
    return _sum_quantity(product_id, SELLABLE_WAREHOUSES)


def list_transfers(product_id: int | None = None) -> list[StockTransfer]:
    company_id = require_company_id()
    query = db.session.query(StockTransfer).filter_by(company_id=company_id)
    if product_id is not None:
        query = query.filter_by(product_id=product_id)
    return query.order_by(StockTransfer.id.desc()).all()


def list_manual_transactions(product_id: int | None = None) -> list[ManualTransaction]:
    company_id = require_company_id()
    query = db.session.query(ManualTransaction).filter_by(company_id=company_id)
    if product_id is not None:
        query = query.filter_by(product_id=product_id)
    return query.order_by(ManualTransaction.id.desc()).all()


# =============================================================================
# Out-of-workflow movements
# =============================================================================

def _manual_row(company_id: int, product_id: int, kind: str, warehouse: str, qty: int, **details) -> ManualTransaction:
    row = ManualTransaction(
        company_id=company_id,
        product_id=product_id,
        type=kind,
        warehouse=warehouse,
        quantity=qty,
        business_date=parse_business_date(details.get("business_date")),
        reference=details.get("reference"),
        party_name=details.get("party_name"),
        sales_person=details.get("sales_person"),
        performed_by=get_actor_name(),
    )
    db.session.add(row)
    db.session.flush()
    return row


def record_manual_receipt(
    product_id: int,
    warehouse: str,
    qty: int,
    *,
    reference: str | None = None,
    business_date=None,
    party_name: str | None = None,
    sales_person: str | None = None,
) -> ManualTransaction:
    """
    Receive stock outside the purchase workflow (returns, found stock).

    Raises:
        MissingContextError: no active company
        ValidationError: frozen warehouse, historical product or bad qty
    """
    company_id = require_company_id()
    validate_warehouse(warehouse)
    qty = coerce_positive_int(qty, "qty")

    def _op() -> ManualTransaction:
        product = get_product(product_id, company_id=company_id)
        if not _increase_inner(company_id, product, warehouse, qty):
            raise ValidationError(f"{product.model_no} is a historical product and cannot receive stock")
        row = _manual_row(
            company_id, product.id, MANUAL_RECEIPT, warehouse, qty,
            reference=reference, business_date=business_date,
            party_name=party_name, sales_person=sales_person,
        )
        db.session.commit()
        return row

    return _locked(company_id, _op, commit=True)


def record_manual_delivery(
    product_id: int,
    warehouse: str,
    qty: int,
    *,
    reference: str | None = None,
    business_date=None,
    party_name: str | None = None,
    sales_person: str | None = None,
) -> bool:
    """
    Deliver stock outside the sales workflow. Returns False (and writes no
    audit row) when the warehouse is short.
    """
    company_id = require_company_id()
    validate_warehouse(warehouse)
    qty = coerce_positive_int(qty, "qty")

    def _op() -> bool:
        product = get_product(product_id, company_id=company_id)
        if not _deduct_inner(company_id, product, warehouse, qty):
            db.session.rollback()
            current_app.logger.warning(
                "Manual delivery of %s x%s from %s rejected: insufficient stock",
                product.model_no, qty, warehouse,
            )
            return False
        _manual_row(
            company_id, product.id, MANUAL_DELIVERY, warehouse, qty,
            reference=reference, business_date=business_date,
            party_name=party_name, sales_person=sales_person,
        )
        db.session.commit()
        return True

    return _locked(company_id, _op, commit=True)


def set_opening_stock(rows: list[dict]) -> int:
    """
    Bulk stock import: set absolute GODOWN/DISPLAY/BOOKED/REPAIR quantities
    per model number.

    Every row is parsed and resolved before any quantity is written; one bad
    row rejects the whole import.

    Returns:
        Number of products updated

    Raises:
        ValidationError: with one violation per bad row
    """
    company_id = require_company_id()
    parsed = parse_stock_rows(rows)

    def _op() -> int:
        resolved = []
        problems = []
        for entry in parsed:
            product = find_product_by_model_no(entry.model_no, company_id=company_id)
            if product is None:
                problems.append(violation(
                    "unknown_product", f"Model {entry.model_no} not found",
                    row=entry.row, model_no=entry.model_no,
                ))
            elif product.is_historical:
                problems.append(violation(
                    "historical_product", f"Model {entry.model_no} is historical",
                    row=entry.row, model_no=entry.model_no,
                ))
            else:
                resolved.append((product, entry))
        if problems:
            raise ValidationError("Stock import rejected", violations=problems)

        for product, entry in resolved:
            for warehouse in IMPORTABLE_WAREHOUSES:
                quantity = entry.quantities[warehouse]
                row = _stock_row(company_id, product.id, warehouse, create=quantity > 0)
                if row is not None:
                    row.quantity = quantity
        db.session.commit()
        current_app.logger.info("Opening stock imported for %s products (company %s)", len(resolved), company_id)
        return len(resolved)

    return _locked(company_id, _op, commit=True)
