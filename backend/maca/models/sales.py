from __future__ import annotations

from ..extensions import db
from maca.time_utils import to_utc_z
from maca.validation import money_str
from .enums import PaymentMethod, SaleStatus


class Sale(db.Model):
    """
    Completed point-of-sale transaction.

    WHY no draft state: the sale, its items, its payments and the stock
    decrements are written in one transaction, so a Sale row only exists
    once everything has been validated. The only later change is the
    terminal COMPLETED -> CANCELLED transition.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("warehouse", "sale_number", name="uq_sales_warehouse_number"),
        db.Index("ix_sales_warehouse_status_created", "warehouse", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warehouse = db.Column(db.String(64), nullable=False, index=True)

    # Human-readable number, e.g. "VEN-SF-20261019-00001"
    sale_number = db.Column(db.String(64), nullable=False, index=True)

    # Operator who rang up the sale
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)

    subtotal = db.Column(db.Numeric(14, 2), nullable=False)
    discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(14, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=SaleStatus.COMPLETED.value, index=True)
    notes = db.Column(db.Text, nullable=True)

    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", foreign_keys=[user_id])
    items = db.relationship("SaleItem", backref="sale", lazy=True, order_by="SaleItem.id")
    payments = db.relationship("SalePayment", backref="sale", lazy=True, order_by="SalePayment.id")

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def paid_amount(self):
        return sum((p.amount for p in self.payments), start=0)

    @property
    def is_mixed_payment(self) -> bool:
        return len(self.payments) > 1

    @property
    def payment_method(self) -> str | None:
        """The single tender method, or MIXED when several rows settle the sale."""
        if self.is_mixed_payment:
            return PaymentMethod.MIXED.value
        return self.payments[0].payment_method if self.payments else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "warehouse": self.warehouse,
            "sale_number": self.sale_number,
            "user_id": self.user_id,
            "user_name": (self.user.username or self.user.full_name) if self.user else None,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount),
            "tax": money_str(self.tax),
            "total": money_str(self.total),
            "paid_amount": money_str(self.paid_amount),
            "status": self.status,
            "notes": self.notes,
            "total_items": self.total_items,
            "is_mixed_payment": self.is_mixed_payment,
            "payment_method": self.payment_method,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "cancelled_by_user_id": self.cancelled_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "items": [item.to_dict() for item in self.items],
            "payments": [payment.to_dict() for payment in self.payments],
        }


class SaleItem(db.Model):
    """Line of a sale. unit_price is a snapshot of Product.sale_price at sale time."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    size = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    subtotal = db.Column(db.Numeric(14, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "product_code": self.product.code if self.product else None,
            "size": self.size,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "subtotal": money_str(self.subtotal),
        }


class SalePayment(db.Model):
    """
    Tender applied to a sale. A sale settled with more than one row is a
    mixed payment. Immutable once written.
    """
    __tablename__ = "sale_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    payment_method = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "payment_method": self.payment_method,
            "amount": money_str(self.amount),
            "reference": self.reference,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
