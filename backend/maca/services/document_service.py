# Overview: Document number allocation backed by the document_sequences counter table.

from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from ..time_utils import date_stamp
from .warehouse_service import warehouse_code

GLOBAL_SCOPE = "GLOBAL"

DOC_SALE = "SALE"
DOC_INVOICE_PAYMENT = "INVOICE_PAYMENT"


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_document_number(*, scope: str, document_type: str, period: str) -> int:
    """
    Atomically allocate the next number for (scope, document_type, period).

    Runs inside the caller's transaction: the number is only consumed if
    the caller commits. The first allocation for a key inserts the counter
    row inside a SAVEPOINT; if a concurrent writer inserted it first the
    unique constraint fires and we fall back to the increment.
    """
    if not scope:
        raise DocumentSequenceError("scope is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    key = dict(scope=scope, document_type=document_type, period=period)

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.scope == scope,
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    def _read_allocated() -> int:
        current = db.session.query(DocumentSequence.next_number).filter_by(**key).scalar()
        return current - 1

    result = db.session.execute(stmt)
    if result.rowcount:
        return _read_allocated()

    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(next_number=2, **key))
        return 1
    except IntegrityError:
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise DocumentSequenceError(f"Could not allocate {document_type} number for {scope}/{period}")
        return _read_allocated()


def next_sale_number(warehouse: str, day: date | None = None) -> str:
    """VEN-{warehouse code}-{YYYYMMDD}-{00001}, sequence per warehouse per day."""
    stamp = date_stamp(day)
    seq = next_document_number(scope=warehouse, document_type=DOC_SALE, period=stamp)
    return f"VEN-{warehouse_code(warehouse)}-{stamp}-{seq:05d}"


def next_invoice_payment_number(day: date | None = None) -> str:
    """PAG-{YYYYMMDD}-{0001}, one sequence per day shared by all warehouses."""
    stamp = date_stamp(day)
    seq = next_document_number(scope=GLOBAL_SCOPE, document_type=DOC_INVOICE_PAYMENT, period=stamp)
    return f"PAG-{stamp}-{seq:04d}"
