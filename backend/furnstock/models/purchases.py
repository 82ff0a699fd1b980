from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


class PurchaseTransaction(db.Model):
    """
    Purchase document (RFQ -> PO -> GRN -> Bill).

    Line quantities live on PurchaseItem; GRN and bill history are append-only
    child rows. Status is recomputed from aggregate line quantities after every
    receipt or bill.
    """
    __tablename__ = "purchase_transactions"
    __table_args__ = (
        db.UniqueConstraint("company_id", "purchase_no", name="uq_purchases_company_no"),
        db.Index("ix_purchases_company_status", "company_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    purchase_no = db.Column(db.String(64), nullable=False)
    rfq_no = db.Column(db.String(64), nullable=True)
    po_no = db.Column(db.String(64), nullable=True)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    supplier_name = db.Column(db.String(255), nullable=False)

    # Default GRN destination
    warehouse = db.Column(db.String(16), nullable=False, default="GODOWN")
    business_date = db.Column(db.Date, nullable=False)
    reference = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="RFQ", index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    total_gst_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default="UNPAID")

    is_historical = db.Column(db.Boolean, nullable=False, default=False)
    source = db.Column(db.String(16), nullable=False, default="live")  # live, migration
    performed_by = db.Column(db.String(120), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))
    items = db.relationship(
        "PurchaseItem",
        backref="purchase",
        order_by="PurchaseItem.id",
        cascade="all, delete-orphan",
    )
    grn_history = db.relationship(
        "GRNRecord",
        backref="purchase",
        order_by="GRNRecord.id",
        cascade="all, delete-orphan",
    )
    bill_history = db.relationship(
        "VendorBillRecord",
        backref="purchase",
        order_by="VendorBillRecord.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PurchaseTransaction id={self.id} no={self.purchase_no!r} status={self.status}>"

    def to_dict(self, include_children: bool = True) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "purchase_no": self.purchase_no,
            "rfq_no": self.rfq_no,
            "po_no": self.po_no,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "warehouse": self.warehouse,
            "business_date": to_iso_date(self.business_date),
            "reference": self.reference,
            "notes": self.notes,
            "status": self.status,
            "subtotal_cents": self.subtotal_cents,
            "total_gst_cents": self.total_gst_cents,
            "grand_total_cents": self.grand_total_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "payment_status": self.payment_status,
            "is_historical": self.is_historical,
            "source": self.source,
            "performed_by": self.performed_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_children:
            data["items"] = [item.to_dict() for item in self.items]
            data["grn_history"] = [grn.to_dict() for grn in self.grn_history]
            data["bill_history"] = [bill.to_dict() for bill in self.bill_history]
        return data


class PurchaseItem(db.Model):
    """
    One ordered product on a purchase.

    INVARIANTS: received_qty <= ordered_qty; billed_qty <= min(ordered_qty, received_qty).
    """
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.UniqueConstraint("purchase_id", "product_id", name="uq_purchase_items_product"),
        db.CheckConstraint("received_qty <= ordered_qty", name="ck_purchase_items_received"),
        db.CheckConstraint("billed_qty <= received_qty", name="ck_purchase_items_billed"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchase_transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    model_no = db.Column(db.String(64), nullable=True)

    ordered_qty = db.Column(db.Integer, nullable=False)
    received_qty = db.Column(db.Integer, nullable=False, default=0)
    billed_qty = db.Column(db.Integer, nullable=False, default=0)

    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    gst_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "model_no": self.model_no,
            "ordered_qty": self.ordered_qty,
            "received_qty": self.received_qty,
            "billed_qty": self.billed_qty,
            "unit_price_cents": self.unit_price_cents,
            "gst_rate_bps": self.gst_rate_bps,
            "total_cents": self.total_cents,
        }


class GRNRecord(db.Model):
    """Goods receipt note. Append-only."""
    __tablename__ = "grn_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchase_transactions.id"), nullable=False, index=True)

    grn_no = db.Column(db.String(64), nullable=False)
    business_date = db.Column(db.Date, nullable=False)
    reference = db.Column(db.String(64), nullable=True)
    warehouse = db.Column(db.String(16), nullable=False)
    # [{product_id, product_name, qty}]
    items = db.Column(db.JSON, nullable=False, default=list)
    performed_by = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "grn_no": self.grn_no,
            "business_date": to_iso_date(self.business_date),
            "reference": self.reference,
            "warehouse": self.warehouse,
            "items": list(self.items or []),
            "performed_by": self.performed_by,
            "created_at": to_utc_z(self.created_at),
        }


class VendorBillRecord(db.Model):
    """Vendor bill raised against received quantities. Append-only."""
    __tablename__ = "vendor_bill_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchase_transactions.id"), nullable=False, index=True)

    bill_no = db.Column(db.String(64), nullable=False)
    business_date = db.Column(db.Date, nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    # [{product_id, product_name, qty, amount_cents}]
    items = db.Column(db.JSON, nullable=False, default=list)
    performed_by = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_no": self.bill_no,
            "business_date": to_iso_date(self.business_date),
            "amount_cents": self.amount_cents,
            "tax_cents": self.tax_cents,
            "items": list(self.items or []),
            "performed_by": self.performed_by,
            "created_at": to_utc_z(self.created_at),
        }
