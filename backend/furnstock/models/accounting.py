from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class AccountingPosting(db.Model):
    """
    Outbox row for one call to the accounting sink.

    Written in the same transaction as the stock/document change it describes;
    dispatched only after that transaction commits.
    """
    __tablename__ = "accounting_postings"
    __table_args__ = (
        db.Index("ix_postings_company_status", "company_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    kind = db.Column(db.String(48), nullable=False)
    document_type = db.Column(db.String(16), nullable=False)  # purchase, sale
    document_id = db.Column(db.Integer, nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)

    status = db.Column(db.String(16), nullable=False, default="PENDING")  # PENDING, DISPATCHED, FAILED
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    dispatched_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<AccountingPosting id={self.id} kind={self.kind} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "kind": self.kind,
            "document_type": self.document_type,
            "document_id": self.document_id,
            "payload": dict(self.payload or {}),
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "created_at": to_utc_z(self.created_at),
            "dispatched_at": to_utc_z(self.dispatched_at),
        }


class LedgerEntry(db.Model):
    """
    Party ledger row written by LedgerAccountingSink.

    Supplier balance = credit - debit; customer balance = debit - credit.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        db.Index("ix_ledger_company_party", "company_id", "party_type", "party_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    party_type = db.Column(db.String(16), nullable=False)  # SUPPLIER, CUSTOMER
    party_id = db.Column(db.String(64), nullable=True)
    party_name = db.Column(db.String(255), nullable=True)

    entry_type = db.Column(db.String(32), nullable=False)
    debit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)

    account_id = db.Column(db.String(64), nullable=True)
    transaction_id = db.Column(db.String(64), nullable=True, index=True)
    reference = db.Column(db.String(128), nullable=True)
    description = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "party_type": self.party_type,
            "party_id": self.party_id,
            "party_name": self.party_name,
            "entry_type": self.entry_type,
            "debit_cents": self.debit_cents,
            "credit_cents": self.credit_cents,
            "tax_cents": self.tax_cents,
            "account_id": self.account_id,
            "transaction_id": self.transaction_id,
            "reference": self.reference,
            "description": self.description,
            "occurred_at": to_utc_z(self.occurred_at),
        }
