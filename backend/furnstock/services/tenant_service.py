"""
Company Scope Service

WHY: Every read and write in this core is filtered or stamped by the active
company. The scope is established once per unit of work (request, CLI
command, test) and stored on Flask's `g`.

INVARIANTS:
1. No mutation runs without an active company (MissingContextError)
2. A row belonging to another company is reported as not found
   (TenantAccessError) and the attempt is logged
3. Inactive companies cannot be scoped

USAGE:
    with company_scope(company.id, actor="store-manager"):
        purchase_service.create_rfq(...)
"""

from __future__ import annotations

from contextlib import contextmanager

from flask import current_app, g

from ..extensions import db
from ..models import Company
from ..validation import MissingContextError, ValidationError, require_text


DEFAULT_ACTOR = "system"

_MISSING = object()


class TenantAccessError(MissingContextError):
    """Raised when a row of another company is addressed."""
    pass


def get_active_company_id() -> int | None:
    """Active company id, or None outside any company_scope."""
    return getattr(g, "company_id", None)


def require_company_id() -> int:
    """
    Active company id for a mutation.

    Raises:
        MissingContextError: if no scope is active
    """
    company_id = get_active_company_id()
    if company_id is None:
        raise MissingContextError("No active company scope")
    return company_id


def get_actor_name() -> str:
    return getattr(g, "actor", None) or DEFAULT_ACTOR


@contextmanager
def company_scope(company_id: int, actor: str | None = None):
    """
    Establish the active company (and optionally the acting user name) for
    the enclosed block. Nested scopes restore the outer one on exit.

    Raises:
        MissingContextError: if the company does not exist
        TenantAccessError: if the company is inactive
    """
    company = db.session.get(Company, company_id)
    if company is None:
        raise MissingContextError(f"Company {company_id} not found")
    if not company.is_active:
        raise TenantAccessError(f"Company {company.code} is inactive")

    previous_company = getattr(g, "company_id", _MISSING)
    previous_actor = getattr(g, "actor", _MISSING)
    g.company_id = company.id
    if actor is not None:
        g.actor = actor
    try:
        yield company
    finally:
        _restore(g, "company_id", previous_company)
        _restore(g, "actor", previous_actor)


def _restore(namespace, name: str, value) -> None:
    if value is _MISSING:
        namespace.pop(name, None)
    else:
        setattr(namespace, name, value)


def require_company_row(row, company_id: int, *, label: str):
    """
    Confirm a fetched row belongs to `company_id`.

    Don't reveal that the row exists in another company.
    """
    if row.company_id != company_id:
        current_app.logger.warning(
            "Cross-company access denied: %s %s belongs to company %s, not %s",
            label, row.id, row.company_id, company_id,
        )
        raise TenantAccessError(f"{label} not found")
    return row


def create_company(*, name: str, code: str, gst_no: str | None = None) -> Company:
    """
    Create a tenant.

    Raises:
        ValidationError: on blank fields or a duplicate code
    """
    name = require_text(name, "name")
    code = require_text(code, "code", max_length=32).upper()

    if db.session.query(Company).filter_by(code=code).first():
        raise ValidationError(f"Company code {code} already exists")

    company = Company(name=name, code=code, gst_no=gst_no, is_active=True)
    db.session.add(company)
    db.session.commit()
    current_app.logger.info("Company %s created (id=%s)", code, company.id)
    return company


def get_company_by_code(code: str) -> Company:
    company = db.session.query(Company).filter_by(code=(code or "").strip().upper()).first()
    if company is None:
        raise MissingContextError(f"Company {code} not found")
    return company


def list_companies() -> list[Company]:
    return db.session.query(Company).order_by(Company.id).all()
