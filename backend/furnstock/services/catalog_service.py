# Overview: Product catalog for the active company, including historical shadow products.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product
from ..validation import (
    MissingContextError,
    ValidationError,
    coerce_amount_cents,
    coerce_rate_bps,
    optional_text,
    require_text,
)
from .tenant_service import require_company_id, require_company_row


class ProductNotFoundError(MissingContextError):
    """Raised when a product id is unknown in the active company."""
    pass


def normalize_model_no(value) -> str:
    return require_text(value, "model_no", max_length=64).upper()


def get_product(product_id: int, *, company_id: int | None = None) -> Product:
    """
    Fetch a product of the active company.

    Raises:
        ProductNotFoundError: unknown id
        TenantAccessError: product belongs to another company
    """
    company_id = company_id or require_company_id()
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found")
    return require_company_row(product, company_id, label="Product")


def find_product_by_model_no(model_no: str, *, company_id: int | None = None) -> Product | None:
    company_id = company_id or require_company_id()
    return (
        db.session.query(Product)
        .filter_by(company_id=company_id, model_no=normalize_model_no(model_no))
        .first()
    )


def _build_product(company_id: int, data: dict, *, is_historical: bool) -> Product:
    model_no = normalize_model_no(data.get("model_no"))
    if find_product_by_model_no(model_no, company_id=company_id):
        raise ValidationError(f"Model {model_no} already exists")

    return Product(
        company_id=company_id,
        model_no=model_no,
        name=require_text(data.get("name") or model_no, "name"),
        brand=optional_text(data.get("brand"), max_length=120),
        category=optional_text(data.get("category"), max_length=120),
        unit=optional_text(data.get("unit"), max_length=16) or "PCS",
        sales_price_cents=coerce_amount_cents(data.get("sales_price_cents", 0), "sales_price_cents"),
        cost_cents=coerce_amount_cents(data.get("cost_cents", 0), "cost_cents"),
        gst_rate_bps=coerce_rate_bps(data.get("gst_rate_bps", 1800), "gst_rate_bps"),
        track_inventory=bool(data.get("track_inventory", True)),
        is_historical=is_historical,
    )


def add_product(data: dict) -> Product:
    """
    Add a live catalog product.

    Raises:
        ValidationError: malformed fields or duplicate model number
        MissingContextError: no active company
    """
    company_id = require_company_id()
    product = _build_product(company_id, data, is_historical=False)
    db.session.add(product)
    db.session.commit()
    return product


def add_historical_shadow_product(data: dict, *, commit: bool = True) -> Product:
    """
    Add a shadow product for a legacy model that no longer sells.

    Shadow products never hold stock and are hidden from list_products().
    """
    company_id = require_company_id()
    product = _build_product(company_id, data, is_historical=True)
    product.track_inventory = False
    db.session.add(product)
    db.session.flush()
    current_app.logger.info("Shadow product %s created for company %s", product.model_no, company_id)
    if commit:
        db.session.commit()
    return product


def list_products(*, include_historical: bool = False) -> list[Product]:
    company_id = require_company_id()
    query = db.session.query(Product).filter_by(company_id=company_id)
    if not include_historical:
        query = query.filter(Product.is_historical.is_(False))
    return query.order_by(Product.model_no).all()
