# Overview: Accounting port, its bundled ledger implementation, and the posting outbox.

"""
Accounting Outbox

WHY: Stock and document changes must never depend on the accounting
collaborator being up. Lifecycle services call enqueue_posting() inside their
own transaction; the posting is handed to the AccountingSink only after that
transaction commits, outside the company lock.

LIFECYCLE of an AccountingPosting:
1. PENDING: written with the stock/document change
2. DISPATCHED: the sink accepted it
3. FAILED: the sink raised ACCOUNTING_MAX_ATTEMPTS times; parked for
   `flask accounting dispatch --retry-failed`

A failing sink leaves stock and documents untouched.
"""

from __future__ import annotations

from typing import Protocol

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import AccountingPosting, LedgerEntry
from ..time_utils import to_utc_z, utcnow
from .concurrency import dispatch_lock, lock_for_update
from .tenant_service import company_scope, require_company_id


POSTING_PENDING = "PENDING"
POSTING_DISPATCHED = "DISPATCHED"
POSTING_FAILED = "FAILED"

KIND_PURCHASE_COST = "purchase_cost"
KIND_SALES_REVENUE = "sales_revenue"
KIND_BILL_PAYMENT = "bill_payment"
KIND_INVOICE_PAYMENT = "invoice_payment"
KIND_BILL_ADVANCE = "bill_advance"
KIND_INVOICE_ADVANCE = "invoice_advance"

# Posting kind -> AccountingSink method
SINK_METHODS = {
    KIND_PURCHASE_COST: "record_purchase_cost",
    KIND_SALES_REVENUE: "record_sales_revenue",
    KIND_BILL_PAYMENT: "record_payment_against_bill",
    KIND_INVOICE_PAYMENT: "record_payment_against_invoice",
    KIND_BILL_ADVANCE: "reconcile_advance_to_bill",
    KIND_INVOICE_ADVANCE: "reconcile_advance_to_invoice",
}

PAYMENT_STATUS_UNPAID = "UNPAID"
PAYMENT_STATUS_PARTIAL = "PARTIAL"
PAYMENT_STATUS_PAID = "PAID"

PARTY_SUPPLIER = "SUPPLIER"
PARTY_CUSTOMER = "CUSTOMER"

ENTRY_REVENUE = "REVENUE"
ENTRY_COST = "COST"
ENTRY_CUSTOMER_PAYMENT = "CUSTOMER_PAYMENT"
ENTRY_VENDOR_PAYMENT = "VENDOR_PAYMENT"
ENTRY_CUSTOMER_ADVANCE = "CUSTOMER_ADVANCE"
ENTRY_VENDOR_ADVANCE = "VENDOR_ADVANCE"


class AccountingSink(Protocol):
    """What the lifecycle engines need from accounting. Called within company_scope."""

    def record_purchase_cost(self, *, purchase_id, bill_no, contact_id, party_name, amount_cents, tax_cents): ...

    def record_sales_revenue(self, *, invoice_id, order_no, contact_id, customer_name, amount_cents, tax_cents): ...

    def record_payment_against_bill(self, *, bill_id, contact_id, amount_cents, account_id, reference): ...

    def record_payment_against_invoice(self, *, invoice_id, contact_id, customer_name, amount_cents, account_id, reference): ...

    def reconcile_advance_to_bill(self, *, bill_id, contact_id, amount_cents): ...

    def reconcile_advance_to_invoice(self, *, invoice_id, contact_id, amount_cents): ...

    def get_payables_ageing(self) -> list[dict]: ...

    def get_party_ledger(self, party_type: str, party_id) -> list[dict]: ...


class LedgerAccountingSink:
    """
    Default sink: writes party ledger rows in the local database.

    Suppliers carry credit on cost and debit on payment; customers the
    reverse. Rows are flushed, the dispatcher commits.
    """

    def _entry(self, *, party_type, party_id, entry_type, debit_cents=0, credit_cents=0, **fields) -> LedgerEntry:
        entry = LedgerEntry(
            company_id=require_company_id(),
            party_type=party_type,
            party_id=str(party_id) if party_id is not None else None,
            entry_type=entry_type,
            debit_cents=debit_cents,
            credit_cents=credit_cents,
            **fields,
        )
        db.session.add(entry)
        db.session.flush()
        return entry

    def record_purchase_cost(self, *, purchase_id, bill_no, contact_id, party_name, amount_cents, tax_cents):
        return self._entry(
            party_type=PARTY_SUPPLIER,
            party_id=contact_id,
            party_name=party_name,
            entry_type=ENTRY_COST,
            credit_cents=amount_cents,
            tax_cents=tax_cents,
            transaction_id=str(purchase_id),
            reference=bill_no,
            description=f"Vendor bill {bill_no}",
        )

    def record_sales_revenue(self, *, invoice_id, order_no, contact_id, customer_name, amount_cents, tax_cents):
        return self._entry(
            party_type=PARTY_CUSTOMER,
            party_id=contact_id,
            party_name=customer_name,
            entry_type=ENTRY_REVENUE,
            debit_cents=amount_cents,
            tax_cents=tax_cents,
            transaction_id=str(invoice_id),
            reference=order_no,
            description=f"Invoice {invoice_id}",
        )

    def record_payment_against_bill(self, *, bill_id, contact_id, amount_cents, account_id, reference):
        return self._entry(
            party_type=PARTY_SUPPLIER,
            party_id=contact_id,
            entry_type=ENTRY_VENDOR_PAYMENT,
            debit_cents=amount_cents,
            account_id=account_id,
            transaction_id=str(bill_id),
            reference=reference,
            description="Payment against bill",
        )

    def record_payment_against_invoice(self, *, invoice_id, contact_id, customer_name, amount_cents, account_id, reference):
        return self._entry(
            party_type=PARTY_CUSTOMER,
            party_id=contact_id,
            party_name=customer_name,
            entry_type=ENTRY_CUSTOMER_PAYMENT,
            credit_cents=amount_cents,
            account_id=account_id,
            transaction_id=str(invoice_id),
            reference=reference,
            description="Payment against invoice",
        )

    def reconcile_advance_to_bill(self, *, bill_id, contact_id, amount_cents):
        return self._entry(
            party_type=PARTY_SUPPLIER,
            party_id=contact_id,
            entry_type=ENTRY_VENDOR_ADVANCE,
            debit_cents=amount_cents,
            transaction_id=str(bill_id),
            description="Advance adjusted against bill",
        )

    def reconcile_advance_to_invoice(self, *, invoice_id, contact_id, amount_cents):
        return self._entry(
            party_type=PARTY_CUSTOMER,
            party_id=contact_id,
            entry_type=ENTRY_CUSTOMER_ADVANCE,
            credit_cents=amount_cents,
            transaction_id=str(invoice_id),
            description="Advance adjusted against invoice",
        )

    def get_payables_ageing(self) -> list[dict]:
        """Outstanding payable per supplier: credit - debit."""
        company_id = require_company_id()
        rows = (
            db.session.query(
                LedgerEntry.party_id,
                func.max(LedgerEntry.party_name),
                func.coalesce(func.sum(LedgerEntry.credit_cents), 0),
                func.coalesce(func.sum(LedgerEntry.debit_cents), 0),
                func.max(LedgerEntry.occurred_at),
            )
            .filter(
                LedgerEntry.company_id == company_id,
                LedgerEntry.party_type == PARTY_SUPPLIER,
            )
            .group_by(LedgerEntry.party_id)
            .order_by(LedgerEntry.party_id)
            .all()
        )
        return [
            {
                "party_id": party_id,
                "party_name": party_name,
                "due_cents": int(credit) - int(debit),
                "last_entry_at": to_utc_z(last_at),
            }
            for party_id, party_name, credit, debit, last_at in rows
        ]

    def get_party_ledger(self, party_type: str, party_id) -> list[dict]:
        """Entries oldest first with a running balance in the party's natural sign."""
        company_id = require_company_id()
        entries = (
            db.session.query(LedgerEntry)
            .filter_by(company_id=company_id, party_type=party_type, party_id=str(party_id))
            .order_by(LedgerEntry.id)
            .all()
        )
        balance = 0
        rows = []
        for entry in entries:
            if party_type == PARTY_SUPPLIER:
                balance += entry.credit_cents - entry.debit_cents
            else:
                balance += entry.debit_cents - entry.credit_cents
            row = entry.to_dict()
            row["balance_cents"] = balance
            rows.append(row)
        return rows


def install_accounting_sink(app, sink: AccountingSink) -> None:
    app.extensions["accounting_sink"] = sink


def get_accounting_sink() -> AccountingSink:
    sink = current_app.extensions.get("accounting_sink")
    if sink is None:
        raise RuntimeError("No accounting sink installed")
    return sink


def enqueue_posting(
    *,
    company_id: int,
    kind: str,
    document_type: str,
    document_id: int,
    payload: dict,
) -> AccountingPosting:
    """Queue a sink call in the caller's transaction (flush only)."""
    if kind not in SINK_METHODS:
        raise ValueError(f"Unknown posting kind {kind}")
    posting = AccountingPosting(
        company_id=company_id,
        kind=kind,
        document_type=document_type,
        document_id=document_id,
        payload=payload,
        status=POSTING_PENDING,
        attempts=0,
    )
    db.session.add(posting)
    db.session.flush()
    return posting


def _claim_posting(posting_id: int, statuses) -> AccountingPosting | None:
    """Re-read the posting under a row lock; None once another dispatcher has settled it."""
    posting = (
        lock_for_update(db.session.query(AccountingPosting).filter_by(id=posting_id))
        .populate_existing()
        .first()
    )
    if posting is None or posting.status not in statuses:
        db.session.rollback()
        return None
    return posting


def _dispatch_one(sink: AccountingSink, posting_id: int, max_attempts: int, statuses=(POSTING_PENDING,)) -> bool | None:
    """
    Hand one posting to the sink.

    Returns:
        True when dispatched, False when the sink failed, None when the
        posting was no longer waiting in one of `statuses`
    """
    company_id = db.session.query(AccountingPosting.company_id).filter_by(id=posting_id).scalar()
    if company_id is None:
        return None
    with dispatch_lock(company_id), company_scope(company_id):
        posting = _claim_posting(posting_id, statuses)
        if posting is None:
            return None
        try:
            getattr(sink, SINK_METHODS[posting.kind])(**posting.payload)
            posting.attempts = posting.attempts + 1
            posting.status = POSTING_DISPATCHED
            posting.dispatched_at = utcnow()
            posting.last_error = None
            db.session.commit()
            return True
        except Exception as exc:
            db.session.rollback()
            current_app.logger.exception("Accounting posting %s failed", posting_id)
            posting = _claim_posting(posting_id, statuses)
            if posting is None:
                return None
            posting.attempts = posting.attempts + 1
            posting.last_error = f"{type(exc).__name__}: {exc}"[:2000]
            if posting.attempts >= max_attempts:
                posting.status = POSTING_FAILED
            db.session.commit()
            return False


def dispatch_pending_postings(company_id: int | None = None, *, retry_failed: bool = False) -> dict:
    """
    Hand queued postings to the accounting sink, oldest first.

    Runs outside the company write lock. Each posting is re-checked under
    dispatch_lock and commits on its own, so a posting another dispatcher
    already settled is skipped and one failure never undoes the others.

    Returns:
        {"dispatched": n, "failed": m}
    """
    sink = get_accounting_sink()
    max_attempts = current_app.config.get("ACCOUNTING_MAX_ATTEMPTS", 5)

    statuses = [POSTING_PENDING]
    if retry_failed:
        statuses.append(POSTING_FAILED)
    query = db.session.query(AccountingPosting.id).filter(AccountingPosting.status.in_(statuses))
    if company_id is not None:
        query = query.filter(AccountingPosting.company_id == company_id)
    posting_ids = [row[0] for row in query.order_by(AccountingPosting.id).all()]

    counts = {"dispatched": 0, "failed": 0}
    for posting_id in posting_ids:
        outcome = _dispatch_one(sink, posting_id, max_attempts, statuses)
        if outcome is True:
            counts["dispatched"] += 1
        elif outcome is False:
            counts["failed"] += 1
    return counts


def dispatch_after_commit(company_id: int) -> None:
    """Drain the company's queue right after a committed mutation, when enabled."""
    if current_app.config.get("ACCOUNTING_DISPATCH_ON_COMMIT", True):
        dispatch_pending_postings(company_id)


def list_postings(status: str | None = None) -> list[AccountingPosting]:
    company_id = require_company_id()
    query = db.session.query(AccountingPosting).filter_by(company_id=company_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(AccountingPosting.id).all()


def get_payables_ageing() -> list[dict]:
    require_company_id()
    return get_accounting_sink().get_payables_ageing()


def get_party_ledger(party_type: str, party_id) -> list[dict]:
    require_company_id()
    return get_accounting_sink().get_party_ledger(party_type, party_id)


def derive_payment_status(amount_paid_cents: int, grand_total_cents: int) -> str:
    """UNPAID until money arrives, PAID once it covers the grand total."""
    if amount_paid_cents <= 0:
        return PAYMENT_STATUS_UNPAID
    if amount_paid_cents >= grand_total_cents:
        return PAYMENT_STATUS_PAID
    return PAYMENT_STATUS_PARTIAL
