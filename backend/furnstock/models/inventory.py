from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


WAREHOUSE_GODOWN = "GODOWN"
WAREHOUSE_DISPLAY = "DISPLAY"
WAREHOUSE_BOOKED = "BOOKED"
WAREHOUSE_REPAIR = "REPAIR"
WAREHOUSE_HISTORICAL = "HISTORICAL"
WAREHOUSE_ARCHIVE = "ARCHIVE"

WAREHOUSES = (
    WAREHOUSE_GODOWN,
    WAREHOUSE_DISPLAY,
    WAREHOUSE_BOOKED,
    WAREHOUSE_REPAIR,
    WAREHOUSE_HISTORICAL,
    WAREHOUSE_ARCHIVE,
)
# Never touched by ledger operations, never counted
FROZEN_WAREHOUSES = frozenset({WAREHOUSE_HISTORICAL, WAREHOUSE_ARCHIVE})
SELLABLE_WAREHOUSES = frozenset({WAREHOUSE_GODOWN, WAREHOUSE_DISPLAY})


class WarehouseStock(db.Model):
    """
    Current quantity of one product in one warehouse.

    INVARIANT: quantity >= 0 (enforced by stock_service and a CHECK constraint).
    """
    __tablename__ = "warehouse_stocks"
    __table_args__ = (
        db.UniqueConstraint("company_id", "product_id", "warehouse", name="uq_stock_company_product_wh"),
        db.CheckConstraint("quantity >= 0", name="ck_stock_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("stocks", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<WarehouseStock product_id={self.product_id} {self.warehouse}={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "product_id": self.product_id,
            "warehouse": self.warehouse,
            "quantity": self.quantity,
            "updated_at": to_utc_z(self.updated_at),
        }


class StockTransfer(db.Model):
    """Append-only audit row written once per successful transfer."""
    __tablename__ = "stock_transfers"
    __table_args__ = (
        db.Index("ix_stock_transfers_company_product", "company_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    from_warehouse = db.Column(db.String(16), nullable=False)
    to_warehouse = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    business_date = db.Column(db.Date, nullable=False)
    reference = db.Column(db.String(64), nullable=True)
    party_name = db.Column(db.String(255), nullable=True)
    sales_person = db.Column(db.String(120), nullable=True)
    performed_by = db.Column(db.String(120), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "product_id": self.product_id,
            "from_warehouse": self.from_warehouse,
            "to_warehouse": self.to_warehouse,
            "quantity": self.quantity,
            "business_date": to_iso_date(self.business_date),
            "reference": self.reference,
            "party_name": self.party_name,
            "sales_person": self.sales_person,
            "performed_by": self.performed_by,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class ManualTransaction(db.Model):
    """Out-of-workflow receipt or delivery posted straight against the ledger."""
    __tablename__ = "manual_transactions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False)  # RECEIPT, DELIVERY
    warehouse = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    business_date = db.Column(db.Date, nullable=False)
    reference = db.Column(db.String(64), nullable=True)
    party_name = db.Column(db.String(255), nullable=True)
    sales_person = db.Column(db.String(120), nullable=True)
    performed_by = db.Column(db.String(120), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "product_id": self.product_id,
            "type": self.type,
            "warehouse": self.warehouse,
            "quantity": self.quantity,
            "business_date": to_iso_date(self.business_date),
            "reference": self.reference,
            "party_name": self.party_name,
            "sales_person": self.sales_person,
            "performed_by": self.performed_by,
            "occurred_at": to_utc_z(self.occurred_at),
        }
