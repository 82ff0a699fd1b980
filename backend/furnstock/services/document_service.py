# Overview: Per-company document number allocation.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def numeric_part(document_no: str) -> str:
    """'PUR-0007' -> '0007'. Used to derive sibling references (PO-0007)."""
    if not document_no or "-" not in document_no:
        raise DocumentSequenceError(f"Malformed document number: {document_no!r}")
    return document_no.split("-", 1)[1]


def next_document_number(
    *,
    company_id: int,
    document_type: str,
    prefix: str,
    pad: int = 4,
) -> str:
    """
    Allocate the next document number for a company/type inside the caller's
    transaction.

    The counter row is bumped with a single UPDATE so concurrent writers
    serialize on it; the first allocation inserts the row.
    """
    if not company_id:
        raise DocumentSequenceError("company_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.company_id == company_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_number(company_id, document_type) - 1
    else:
        # Writers of one company are serialized by company_lock, so the first
        # allocation cannot race another insert of the same row.
        db.session.add(DocumentSequence(company_id=company_id, document_type=document_type, next_number=2))
        db.session.flush()
        next_num = 1

    return f"{prefix}-{next_num:0{pad}d}"


def _current_number(company_id: int, document_type: str) -> int:
    db.session.flush()
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(company_id=company_id, document_type=document_type)
        .scalar()
    )
