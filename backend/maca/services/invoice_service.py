"""
Invoice Service - accounts payable and payment reconciliation

WHY: paid_amount and balance are always derived from InvoicePayment rows,
so the only stored state that can go stale is Invoice.status. Every path
that changes payments, totals or dates re-derives it through
classify_invoice.

INVARIANTS:
1. balance = total - sum(payments) after every add_payment
2. A payment never exceeds the remaining balance
3. total is frozen once the invoice has a payment
4. An invoice with payments cannot be cancelled
5. Concurrent writers on one invoice are serialized by version_id; the
   loser gets ConflictError and nothing is written
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import and_, func, update

from ..extensions import db
from ..models import Invoice, InvoicePayment
from ..models.enums import InvoiceStatus, PaymentMethod
from ..pagination import paginate
from ..time_utils import parse_iso_date, utc_today, utcnow
from ..validation import (
    ZERO,
    ModelValidationPolicy,
    ValidationError,
    to_money,
    validate_payload,
)
from .concurrency import run_in_transaction
from .document_service import next_invoice_payment_number
from .provider_service import get_provider
from .status_service import classify_invoice

logger = logging.getLogger(__name__)

INVOICE_POLICY = ModelValidationPolicy(
    writable_fields={
        "invoice_number", "provider_id", "invoice_date", "due_date",
        "subtotal", "tax", "discount", "total", "notes",
    },
    required_on_create={"invoice_number", "provider_id", "invoice_date", "subtotal", "total"},
)

# provider_id is fixed after creation
UPDATABLE_FIELDS = INVOICE_POLICY.writable_fields - {"provider_id"}

PAYMENT_METHODS = {PaymentMethod.CASH.value, PaymentMethod.CARD.value, PaymentMethod.TRANSFER.value}


class InvoiceError(Exception):
    """Raised for invoice operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvoiceNotFoundError(InvoiceError):
    pass


class OverpaymentError(InvoiceError):
    pass


class ImmutableTotalError(InvoiceError):
    pass


class HasPaymentsError(InvoiceError):
    pass


class InvoiceCancelledError(InvoiceError):
    pass


class DuplicateInvoiceNumberError(InvoiceError):
    pass


def _check_unique_number(warehouse: str, invoice_number: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Invoice).filter(
        Invoice.warehouse == warehouse,
        Invoice.invoice_number == invoice_number,
    )
    if exclude_id is not None:
        query = query.filter(Invoice.id != exclude_id)
    if query.first():
        raise DuplicateInvoiceNumberError(
            f"Invoice number {invoice_number} already exists",
            details={"invoice_number": invoice_number},
        )


def _check_dates(invoice_date: date, due_date: date) -> None:
    if due_date < invoice_date:
        raise ValidationError(
            "due_date cannot be before invoice_date",
            details={"invoice_date": invoice_date.isoformat(), "due_date": due_date.isoformat()},
        )


def _derive_status(invoice: Invoice, today: date) -> InvoiceStatus:
    return classify_invoice(invoice.paid_amount, invoice.balance, invoice.due_date, today)


def get_invoice(invoice_id: int, warehouse: str) -> Invoice:
    invoice = db.session.query(Invoice).filter_by(id=invoice_id, warehouse=warehouse).first()
    if not invoice:
        raise InvoiceNotFoundError(f"Invoice {invoice_id} not found", details={"invoice_id": invoice_id})
    return invoice


def get_invoice_by_number(invoice_number: str, warehouse: str) -> Invoice:
    invoice = db.session.query(Invoice).filter_by(invoice_number=invoice_number, warehouse=warehouse).first()
    if not invoice:
        raise InvoiceNotFoundError(
            f"Invoice {invoice_number} not found",
            details={"invoice_number": invoice_number},
        )
    return invoice


def create_invoice(warehouse: str, data: dict, *, user_id: int | None = None, today: date | None = None) -> Invoice:
    """
    Register a provider invoice.

    due_date defaults to invoice_date + provider.payment_days (0 when the
    provider has none). The initial status is classified with nothing paid,
    so an invoice entered after its due date starts OVERDUE.

    Raises:
        ValidationError: missing or malformed fields
        ProviderNotFoundError: provider not in this warehouse
        DuplicateInvoiceNumberError: number already used in this warehouse
    """
    patch = validate_payload(model=Invoice, payload=data, policy=INVOICE_POLICY, partial=False)
    patch.setdefault("tax", ZERO)
    patch.setdefault("discount", ZERO)
    if patch["total"] == 0:
        raise ValidationError("total must be greater than 0")
    today = today or utc_today()

    def _op():
        provider = get_provider(patch["provider_id"], warehouse)
        _check_unique_number(warehouse, patch["invoice_number"])

        if patch.get("due_date") is None:
            patch["due_date"] = patch["invoice_date"] + timedelta(days=provider.payment_days or 0)
        _check_dates(patch["invoice_date"], patch["due_date"])

        invoice = Invoice(warehouse=warehouse, user_id=user_id, updated_at=utcnow(), **patch)
        invoice.status = classify_invoice(ZERO, invoice.total, invoice.due_date, today).value
        db.session.add(invoice)
        db.session.flush()
        return invoice

    invoice = run_in_transaction(_op)
    logger.info("Invoice %s registered in %s: total %s, due %s", invoice.invoice_number, warehouse, invoice.total, invoice.due_date)
    return invoice


def add_payment(
    *,
    invoice_id: int,
    warehouse: str,
    payment_date,
    amount,
    payment_method: str,
    reference: str | None = None,
    notes: str | None = None,
    user_id: int | None = None,
    today: date | None = None,
) -> tuple[InvoicePayment, Invoice]:
    """
    Record a payment against an invoice and re-derive its status.

    Returns:
        (payment, invoice) with invoice.status already updated

    Raises:
        InvoiceNotFoundError: invoice not in this warehouse
        InvoiceCancelledError: invoice was cancelled
        ValidationError: non-positive amount, bad date or method
        OverpaymentError: amount above the remaining balance
        ConflictError: another payment landed on the invoice concurrently
    """
    amount = to_money(amount, "amount", allow_zero=False)
    method = str(payment_method or "").strip().upper()
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {payment_method!r}",
            details={"allowed": sorted(PAYMENT_METHODS)},
        )
    try:
        paid_on = parse_iso_date(payment_date) or utc_today()
    except ValueError:
        raise ValidationError("payment_date must be an ISO-8601 date")
    today = today or utc_today()

    def _op():
        invoice = get_invoice(invoice_id, warehouse)
        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise InvoiceCancelledError(
                f"Invoice {invoice.invoice_number} is cancelled",
                details={"invoice_id": invoice.id},
            )

        paid = invoice.paid_amount
        balance = Decimal(invoice.total) - paid
        if amount > balance:
            raise OverpaymentError(
                f"Payment of {amount} exceeds the remaining balance of {balance}",
                details={"amount": str(amount), "balance": str(balance), "invoice_id": invoice.id},
            )

        payment = InvoicePayment(
            invoice_id=invoice.id,
            payment_number=next_invoice_payment_number(),
            payment_date=paid_on,
            amount=amount,
            payment_method=method,
            reference=reference,
            notes=notes,
            user_id=user_id,
        )
        db.session.add(payment)

        new_paid = paid + amount
        new_balance = Decimal(invoice.total) - new_paid
        invoice.status = classify_invoice(new_paid, new_balance, invoice.due_date, today).value
        # Always dirty the row so version_id is checked and bumped.
        invoice.updated_at = utcnow()
        db.session.flush()
        return payment, invoice

    payment, invoice = run_in_transaction(_op)
    logger.info(
        "Payment %s of %s applied to invoice %s (status %s, balance %s)",
        payment.payment_number, payment.amount, invoice.invoice_number, invoice.status, invoice.balance,
    )
    return payment, invoice


def update_invoice(invoice_id: int, warehouse: str, data: dict, *, today: date | None = None) -> Invoice:
    """
    Edit an invoice.

    total cannot change once a payment exists; every other field stays
    editable. Status is re-derived unless the invoice is CANCELLED.
    """
    if data and "provider_id" in data:
        raise ValidationError("provider_id cannot be changed")
    patch = validate_payload(model=Invoice, payload=data, policy=INVOICE_POLICY, partial=True)
    patch = {k: v for k, v in patch.items() if k in UPDATABLE_FIELDS}
    for key in ("invoice_number", "invoice_date", "due_date", "subtotal", "total"):
        if key in patch and patch[key] is None:
            raise ValidationError(f"{key} cannot be null")
    today = today or utc_today()

    def _op():
        invoice = get_invoice(invoice_id, warehouse)

        if "total" in patch and patch["total"] != Decimal(invoice.total):
            if invoice.payments:
                raise ImmutableTotalError(
                    "The total of an invoice with payments cannot be changed",
                    details={
                        "invoice_id": invoice.id,
                        "total": str(invoice.total),
                        "requested_total": str(patch["total"]),
                    },
                )
            if patch["total"] == 0:
                raise ValidationError("total must be greater than 0")

        if "invoice_number" in patch and patch["invoice_number"] != invoice.invoice_number:
            _check_unique_number(warehouse, patch["invoice_number"], exclude_id=invoice.id)

        _check_dates(patch.get("invoice_date", invoice.invoice_date), patch.get("due_date", invoice.due_date))

        for key, value in patch.items():
            setattr(invoice, key, value)

        if invoice.status != InvoiceStatus.CANCELLED.value:
            invoice.status = _derive_status(invoice, today).value
        invoice.updated_at = utcnow()
        db.session.flush()
        return invoice

    return run_in_transaction(_op)


def cancel_invoice(invoice_id: int, warehouse: str) -> Invoice:
    """Cancel an invoice that has no payments. Cancelling twice is rejected."""
    def _op():
        invoice = get_invoice(invoice_id, warehouse)
        if invoice.payments:
            raise HasPaymentsError(
                "An invoice with payments cannot be cancelled",
                details={"invoice_id": invoice.id, "payments": len(invoice.payments)},
            )
        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise InvoiceCancelledError(
                f"Invoice {invoice.invoice_number} is already cancelled",
                details={"invoice_id": invoice.id},
            )
        invoice.status = InvoiceStatus.CANCELLED.value
        invoice.updated_at = utcnow()
        return invoice

    invoice = run_in_transaction(_op)
    logger.info("Invoice %s cancelled in %s", invoice.invoice_number, warehouse)
    return invoice


def list_invoices(
    warehouse: str,
    *,
    status: str | None = None,
    provider_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
    page: int | None = None,
    per_page: int | None = None,
    today: date | None = None,
) -> dict:
    """
    Invoices by due date, soonest first. start/end bound invoice_date
    (inclusive calendar days).

    The status filter matches the status as of `today`, so a PENDING row
    past its due date is listed under OVERDUE before mark_overdue_invoices
    has rewritten it.
    """
    today = today or utc_today()
    query = db.session.query(Invoice).filter(Invoice.warehouse == warehouse)
    if status:
        query = query.filter(_status_clause(_parse_status(status), today))
    if provider_id is not None:
        query = query.filter(Invoice.provider_id == provider_id)
    if start:
        query = query.filter(Invoice.invoice_date >= start)
    if end:
        query = query.filter(Invoice.invoice_date <= end)
    query = query.order_by(Invoice.due_date.asc(), Invoice.id.asc())
    return paginate(query, page, per_page, lambda i: i.to_dict(today))


def _parse_status(status: str) -> InvoiceStatus:
    try:
        return InvoiceStatus(str(status).upper())
    except ValueError:
        raise ValidationError(f"Invalid invoice status: {status!r}")


def _status_clause(status: InvoiceStatus, today: date):
    """SQL condition for invoices whose status as of `today` is `status`."""
    unpaid = (InvoiceStatus.PENDING.value, InvoiceStatus.OVERDUE.value)
    if status is InvoiceStatus.OVERDUE:
        return and_(Invoice.status.in_(unpaid), Invoice.due_date < today)
    if status is InvoiceStatus.PENDING:
        return and_(Invoice.status.in_(unpaid), Invoice.due_date >= today)
    return Invoice.status == status.value


def list_overdue_invoices(warehouse: str, today: date | None = None) -> list[Invoice]:
    """Open invoices whose due date has passed, oldest due date first."""
    today = today or utc_today()
    open_statuses = (InvoiceStatus.PENDING.value, InvoiceStatus.PARTIAL.value, InvoiceStatus.OVERDUE.value)
    return (
        db.session.query(Invoice)
        .filter(
            Invoice.warehouse == warehouse,
            Invoice.status.in_(open_statuses),
            Invoice.due_date < today,
        )
        .order_by(Invoice.due_date.asc(), Invoice.id.asc())
        .all()
    )


def mark_overdue_invoices(warehouse: str | None = None, today: date | None = None) -> int:
    """
    Move PENDING invoices past their due date to OVERDUE.

    PARTIAL invoices are left alone; the classifier never reports a paid-into
    invoice as OVERDUE. Returns the number of invoices updated.
    """
    today = today or utc_today()

    def _op():
        stmt = (
            update(Invoice)
            .where(
                Invoice.status == InvoiceStatus.PENDING.value,
                Invoice.due_date < today,
            )
            .values(
                status=InvoiceStatus.OVERDUE.value,
                version_id=Invoice.version_id + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if warehouse:
            stmt = stmt.where(Invoice.warehouse == warehouse)
        return db.session.execute(stmt).rowcount

    count = run_in_transaction(_op)
    if count:
        logger.info("Marked %d invoice(s) overdue (warehouse=%s, today=%s)", count, warehouse or "*", today)
    return count


def total_pending_balance(warehouse: str) -> Decimal:
    """Sum of balances of every open (not PAID, not CANCELLED) invoice."""
    open_statuses = (InvoiceStatus.PENDING.value, InvoiceStatus.PARTIAL.value, InvoiceStatus.OVERDUE.value)
    totals = (
        db.session.query(func.coalesce(func.sum(Invoice.total), 0))
        .filter(Invoice.warehouse == warehouse, Invoice.status.in_(open_statuses))
        .scalar()
    )
    paid = (
        db.session.query(func.coalesce(func.sum(InvoicePayment.amount), 0))
        .join(Invoice, Invoice.id == InvoicePayment.invoice_id)
        .filter(Invoice.warehouse == warehouse, Invoice.status.in_(open_statuses))
        .scalar()
    )
    return to_money(Decimal(str(totals)) - Decimal(str(paid)), "balance")


def total_by_status(warehouse: str, status: str, today: date | None = None) -> Decimal:
    """Sum of invoice totals (not balances) whose status as of `today` is `status`."""
    clause = _status_clause(_parse_status(status), today or utc_today())
    total = (
        db.session.query(func.coalesce(func.sum(Invoice.total), 0))
        .filter(Invoice.warehouse == warehouse, clause)
        .scalar()
    )
    return to_money(Decimal(str(total)), "total")
