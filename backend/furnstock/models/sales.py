from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


class SalesTransaction(db.Model):
    """
    Sales document (Quotation -> Order -> Delivery -> Invoice).

    WHY: Confirming the order reserves stock into BOOKED; invoicing consumes
    BOOKED; cancelling returns what was never invoiced. Delivery is a
    paperwork step only.
    """
    __tablename__ = "sales_transactions"
    __table_args__ = (
        db.UniqueConstraint("company_id", "order_no", name="uq_sales_company_order_no"),
        db.Index("ix_sales_company_status", "company_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    order_no = db.Column(db.String(64), nullable=False)
    so_no = db.Column(db.String(64), nullable=True)

    # Counterparty resolved by the contact collaborator
    contact_id = db.Column(db.String(64), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    sales_person = db.Column(db.String(120), nullable=True)

    # Reservation source and cancellation destination
    warehouse = db.Column(db.String(16), nullable=False, default="GODOWN")
    business_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(24), nullable=False, default="QUOTATION", index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    total_discount_cents = db.Column(db.Integer, nullable=False, default=0)
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

    items = db.relationship(
        "SalesItem",
        backref="sale",
        order_by="SalesItem.id",
        cascade="all, delete-orphan",
    )
    delivery_history = db.relationship(
        "DeliveryRecord",
        backref="sale",
        order_by="DeliveryRecord.id",
        cascade="all, delete-orphan",
    )
    invoices = db.relationship(
        "SalesInvoice",
        backref="sale",
        order_by="SalesInvoice.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<SalesTransaction id={self.id} no={self.order_no!r} status={self.status}>"

    def to_dict(self, include_children: bool = True) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "order_no": self.order_no,
            "so_no": self.so_no,
            "contact_id": self.contact_id,
            "customer_name": self.customer_name,
            "sales_person": self.sales_person,
            "warehouse": self.warehouse,
            "business_date": to_iso_date(self.business_date),
            "notes": self.notes,
            "status": self.status,
            "subtotal_cents": self.subtotal_cents,
            "total_discount_cents": self.total_discount_cents,
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
            data["delivery_history"] = [d.to_dict() for d in self.delivery_history]
            data["invoices"] = [inv.to_dict() for inv in self.invoices]
        return data


class SalesItem(db.Model):
    """
    One ordered product on a sale.

    INVARIANTS: invoiced_qty <= ordered_qty; delivered_qty <= ordered_qty.
    discount_cents is a whole-line amount, pro-rated when part of the line is
    invoiced.
    """
    __tablename__ = "sales_items"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "product_id", name="uq_sales_items_product"),
        db.CheckConstraint("invoiced_qty <= ordered_qty", name="ck_sales_items_invoiced"),
        db.CheckConstraint("delivered_qty <= ordered_qty", name="ck_sales_items_delivered"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales_transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    model_no = db.Column(db.String(64), nullable=True)

    ordered_qty = db.Column(db.Integer, nullable=False)
    delivered_qty = db.Column(db.Integer, nullable=False, default=0)
    invoiced_qty = db.Column(db.Integer, nullable=False, default=0)

    price_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    gst_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    is_gst_enabled = db.Column(db.Boolean, nullable=False, default=True)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "model_no": self.model_no,
            "ordered_qty": self.ordered_qty,
            "delivered_qty": self.delivered_qty,
            "invoiced_qty": self.invoiced_qty,
            "price_cents": self.price_cents,
            "discount_cents": self.discount_cents,
            "gst_rate_bps": self.gst_rate_bps,
            "is_gst_enabled": self.is_gst_enabled,
            "total_cents": self.total_cents,
        }


class DeliveryRecord(db.Model):
    """Delivery note. Append-only; moves no stock."""
    __tablename__ = "delivery_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales_transactions.id"), nullable=False, index=True)

    delivery_no = db.Column(db.String(64), nullable=False)
    business_date = db.Column(db.Date, nullable=False)
    warehouse = db.Column(db.String(16), nullable=False)
    items = db.Column(db.JSON, nullable=False, default=list)
    performed_by = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "delivery_no": self.delivery_no,
            "business_date": to_iso_date(self.business_date),
            "warehouse": self.warehouse,
            "items": list(self.items or []),
            "performed_by": self.performed_by,
            "created_at": to_utc_z(self.created_at),
        }


class SalesInvoice(db.Model):
    """Invoice raised against ordered quantities. Append-only."""
    __tablename__ = "sales_invoices"
    __table_args__ = (
        db.UniqueConstraint("company_id", "invoice_no", name="uq_sales_invoices_company_no"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales_transactions.id"), nullable=False, index=True)

    invoice_no = db.Column(db.String(64), nullable=False)
    business_date = db.Column(db.Date, nullable=False)
    taxable_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)
    # [{product_id, qty, taxable_cents, tax_cents}]
    items = db.Column(db.JSON, nullable=False, default=list)
    performed_by = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_no": self.invoice_no,
            "business_date": to_iso_date(self.business_date),
            "taxable_cents": self.taxable_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "items": list(self.items or []),
            "performed_by": self.performed_by,
            "created_at": to_utc_z(self.created_at),
        }


class SalesLog(db.Model):
    """Audit trail of value changes on sales documents."""
    __tablename__ = "sales_logs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    order_no = db.Column(db.String(64), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    action = db.Column(db.String(32), nullable=False)  # CREATED, UPDATED, CANCELLED
    old_total_cents = db.Column(db.Integer, nullable=False, default=0)
    new_total_cents = db.Column(db.Integer, nullable=False, default=0)
    delta_cents = db.Column(db.Integer, nullable=False, default=0)
    performed_by = db.Column(db.String(120), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_no": self.order_no,
            "customer_name": self.customer_name,
            "action": self.action,
            "old_total_cents": self.old_total_cents,
            "new_total_cents": self.new_total_cents,
            "delta_cents": self.delta_cents,
            "performed_by": self.performed_by,
            "occurred_at": to_utc_z(self.occurred_at),
        }
