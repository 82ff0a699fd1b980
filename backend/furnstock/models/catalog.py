from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Furniture model master data.

    MODEL NUMBER:
    model_no is unique within a company and stored upper-case.

    HISTORICAL:
    is_historical marks shadow products created while migrating legacy
    documents. They stay visible on old documents but are excluded from the
    live catalog and from every stock total.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("company_id", "model_no", name="uq_products_company_model"),
        db.Index("ix_products_company_historical", "company_id", "is_historical"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    model_no = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(120), nullable=True)
    category = db.Column(db.String(120), nullable=True)
    unit = db.Column(db.String(16), nullable=False, default="PCS")

    sales_price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)
    gst_rate_bps = db.Column(db.Integer, nullable=False, default=1800)

    track_inventory = db.Column(db.Boolean, nullable=False, default=True)
    is_historical = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    company = db.relationship("Company", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} model_no={self.model_no!r} company_id={self.company_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "model_no": self.model_no,
            "name": self.name,
            "brand": self.brand,
            "category": self.category,
            "unit": self.unit,
            "sales_price_cents": self.sales_price_cents,
            "cost_cents": self.cost_cents,
            "gst_rate_bps": self.gst_rate_bps,
            "track_inventory": self.track_inventory,
            "is_historical": self.is_historical,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    """Company-scoped vendor that purchase documents are raised against."""
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("company_id", "name", name="uq_suppliers_company_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    gst_no = db.Column(db.String(32), nullable=True)

    # Payable carried over from before the books moved here
    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "gst_no": self.gst_no,
            "opening_balance_cents": self.opening_balance_cents,
            "created_at": to_utc_z(self.created_at),
        }
