from __future__ import annotations

from datetime import date
from decimal import Decimal

from ..extensions import db
from maca.time_utils import to_iso_date, to_utc_z, utc_today
from maca.validation import money_str
from .enums import InvoiceStatus


class Provider(db.Model):
    """
    Supplier master data.

    WAREHOUSE SCOPING: providers belong to one warehouse; the tax document
    (NIT/CC) is unique within the warehouse.
    """
    __tablename__ = "providers"
    __table_args__ = (
        db.UniqueConstraint("warehouse", "document", name="uq_providers_warehouse_document"),
        db.Index("ix_providers_warehouse_name", "warehouse", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warehouse = db.Column(db.String(64), nullable=False, index=True)

    document = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    business_name = db.Column(db.String(255), nullable=True)
    contact_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    mobile = db.Column(db.String(64), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(128), nullable=True)
    country = db.Column(db.String(128), nullable=True)

    # e.g. "30 dias"; payment_days drives the default invoice due date
    payment_terms = db.Column(db.String(128), nullable=True)
    payment_days = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "document": self.document}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "warehouse": self.warehouse,
            "document": self.document,
            "name": self.name,
            "business_name": self.business_name,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "mobile": self.mobile,
            "address": self.address,
            "city": self.city,
            "country": self.country,
            "payment_terms": self.payment_terms,
            "payment_days": self.payment_days,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Invoice(db.Model):
    """
    Accounts-payable invoice from a provider.

    paid_amount and balance are never stored; they are derived from the
    payment rows so they cannot drift from them. status is stored and is
    re-derived by the status classifier whenever a payment is added or the
    invoice is edited.

    version_id guards concurrent payment reconciliation: two writers that
    both read the same invoice cannot both commit.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("warehouse", "invoice_number", name="uq_invoices_warehouse_number"),
        db.Index("ix_invoices_warehouse_status_due", "warehouse", "status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warehouse = db.Column(db.String(64), nullable=False, index=True)

    invoice_number = db.Column(db.String(64), nullable=False)
    provider_id = db.Column(db.Integer, db.ForeignKey("providers.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    invoice_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False, index=True)

    subtotal = db.Column(db.Numeric(14, 2), nullable=False)
    tax = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(14, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=InvoiceStatus.PENDING.value, index=True)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    provider = db.relationship("Provider", backref=db.backref("invoices", lazy=True))
    user = db.relationship("User")
    payments = db.relationship(
        "InvoicePayment",
        backref="invoice",
        lazy=True,
        order_by="InvoicePayment.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def paid_amount(self) -> Decimal:
        return sum((p.amount for p in self.payments), start=Decimal("0.00"))

    @property
    def balance(self) -> Decimal:
        return Decimal(self.total) - self.paid_amount

    def current_status(self, today: date | None = None) -> str:
        """
        Status as of `today`. The stored value is only rewritten on writes,
        so an unpaid invoice that has since passed its due date reads as OVERDUE.
        """
        if self.status == InvoiceStatus.CANCELLED.value:
            return self.status
        from maca.services.status_service import classify_invoice

        return classify_invoice(self.paid_amount, self.balance, self.due_date, today or utc_today()).value

    def to_dict(self, today: date | None = None) -> dict:
        return {
            "id": self.id,
            "warehouse": self.warehouse,
            "invoice_number": self.invoice_number,
            "provider_id": self.provider_id,
            "provider": self.provider.to_summary() if self.provider else None,
            "user_id": self.user_id,
            "invoice_date": to_iso_date(self.invoice_date),
            "due_date": to_iso_date(self.due_date),
            "subtotal": money_str(self.subtotal),
            "tax": money_str(self.tax),
            "discount": money_str(self.discount),
            "total": money_str(self.total),
            "paid_amount": money_str(self.paid_amount),
            "balance": money_str(self.balance),
            "status": self.current_status(today),
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "payments": [p.to_dict() for p in self.payments],
        }


class InvoicePayment(db.Model):
    """Payment made against an invoice. Immutable once written."""
    __tablename__ = "invoice_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    # e.g. "PAG-20261019-0001", sequence shared by all warehouses
    payment_number = db.Column(db.String(32), nullable=False, unique=True)

    payment_date = db.Column(db.Date, nullable=False)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "payment_number": self.payment_number,
            "payment_date": to_iso_date(self.payment_date),
            "amount": money_str(self.amount),
            "payment_method": self.payment_method,
            "reference": self.reference,
            "notes": self.notes,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
