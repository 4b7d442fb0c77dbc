"""
Sales Service - sale transaction builder and cancellation

WHY: A sale is written once, already COMPLETED. Everything it touches
(sale row, items, payments, stock decrements, the sale number) goes into
one transaction so a failed validation or a lost stock race leaves no
trace behind.

INVARIANTS:
1. Unit prices come from Product.sale_price, never from the request
2. Requested quantities are checked per stock row after aggregation
3. Stock is decremented last, through conditional UPDATEs
4. Cancellation is rejected for an already CANCELLED sale
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import func, or_, update

from ..extensions import db
from ..models import Product, ProductStock, Sale, SaleItem, SalePayment
from ..models.enums import PaymentMethod, SaleStatus
from ..pagination import paginate
from ..time_utils import utcnow
from ..validation import ZERO, ValidationError, to_money, to_quantity
from .concurrency import run_in_transaction
from .document_service import next_sale_number
from .products_service import ProductNotFoundError
from .status_service import can_cancel_sale
from .stock_service import decrement_stock, increment_stock

logger = logging.getLogger(__name__)

# Methods a single payment row may carry. MIXED only describes a sale
# settled with several rows.
TENDER_METHODS = {PaymentMethod.CASH.value, PaymentMethod.CARD.value, PaymentMethod.TRANSFER.value}


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class EmptyOrderError(SaleError):
    pass


class InactiveProductError(SaleError):
    pass


class NoStockEntryError(SaleError):
    pass


class InsufficientStockError(SaleError):
    pass


class NoPaymentMethodError(SaleError):
    pass


class InsufficientPaymentError(SaleError):
    pass


class SaleNotFoundError(SaleError):
    pass


class AlreadyCancelledError(SaleError):
    pass


@dataclass(frozen=True)
class _RequestedItem:
    product_id: int
    size: str
    quantity: int


@dataclass(frozen=True)
class _Tender:
    payment_method: str
    amount: Decimal
    reference: str | None = None
    notes: str | None = None


def _parse_items(items) -> list[_RequestedItem]:
    if not items:
        raise EmptyOrderError("The sale must contain at least one item")
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    parsed = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError("each item must be an object", details={"index": index})
        product_id = to_quantity(raw.get("product_id"), f"items[{index}].product_id")
        size = str(raw.get("size") or "").strip()
        if not size:
            raise ValidationError(f"items[{index}].size is required", details={"index": index})
        quantity = to_quantity(raw.get("quantity"), f"items[{index}].quantity")
        parsed.append(_RequestedItem(product_id=product_id, size=size, quantity=quantity))
    return parsed


def _parse_payments(payments) -> list[_Tender]:
    if payments is None:
        return []
    if not isinstance(payments, list):
        raise ValidationError("payments must be a list")

    parsed = []
    for index, raw in enumerate(payments):
        if not isinstance(raw, dict):
            raise ValidationError("each payment must be an object", details={"index": index})
        method = _normalize_method(raw.get("payment_method") or raw.get("method"))
        amount = to_money(raw.get("amount"), f"payments[{index}].amount", allow_zero=False)
        parsed.append(_Tender(
            payment_method=method,
            amount=amount,
            reference=raw.get("reference") or raw.get("reference_number"),
            notes=raw.get("notes"),
        ))
    return parsed


def _normalize_method(method) -> str:
    value = str(method or "").strip().upper()
    if value not in TENDER_METHODS:
        raise ValidationError(
            f"Invalid payment method: {method!r}",
            details={"allowed": sorted(TENDER_METHODS)},
        )
    return value


def _resolve_stock(item: _RequestedItem, warehouse: str) -> tuple[Product, ProductStock]:
    product = db.session.query(Product).filter_by(id=item.product_id, warehouse=warehouse).first()
    if not product:
        raise ProductNotFoundError(
            f"Product {item.product_id} not found",
            details={"product_id": item.product_id, "warehouse": warehouse},
        )
    if not product.is_active:
        raise InactiveProductError(
            f"Product {product.name} is not active",
            details={"product_id": product.id, "code": product.code},
        )
    stock = db.session.query(ProductStock).filter_by(product_id=product.id, size=item.size).first()
    if not stock:
        raise NoStockEntryError(
            f"Product {product.name} has no stock entry for size {item.size}",
            details={"product_id": product.id, "size": item.size},
        )
    return product, stock


def create_sale(
    *,
    warehouse: str,
    user_id: int,
    items,
    payments=None,
    payment_method: str | None = None,
    discount=0,
    tax=0,
    customer_name: str | None = None,
    customer_email: str | None = None,
    customer_phone: str | None = None,
    notes: str | None = None,
) -> Sale:
    """
    Validate and record a completed sale.

    Raises:
        EmptyOrderError, ProductNotFoundError, InactiveProductError,
        NoStockEntryError, InsufficientStockError: item problems
        NoPaymentMethodError, InsufficientPaymentError: payment problems
        ValidationError: malformed quantities, amounts or methods
        ConflictError: a stock row changed before the decrement landed
    """
    requested = _parse_items(items)
    tenders = _parse_payments(payments)
    discount = to_money(discount or 0, "discount")
    tax = to_money(tax or 0, "tax")

    def _op():
        lines = []
        per_stock: dict[int, int] = {}
        stocks: dict[int, tuple[Product, ProductStock]] = {}

        for item in requested:
            product, stock = _resolve_stock(item, warehouse)
            lines.append((item, product))
            per_stock[stock.id] = per_stock.get(stock.id, 0) + item.quantity
            stocks[stock.id] = (product, stock)

        for stock_id, quantity in per_stock.items():
            product, stock = stocks[stock_id]
            if quantity > stock.available_quantity:
                raise InsufficientStockError(
                    f"Insufficient stock for {product.name} size {stock.size}: "
                    f"available {stock.available_quantity}, requested {quantity}",
                    details={
                        "product_id": product.id,
                        "product_name": product.name,
                        "size": stock.size,
                        "available": stock.available_quantity,
                        "requested": quantity,
                    },
                )

        subtotal = sum((Decimal(product.sale_price) * item.quantity for item, product in lines), start=ZERO)
        if discount > subtotal + tax:
            raise ValidationError(
                "discount cannot exceed subtotal plus tax",
                details={"subtotal": str(subtotal), "discount": str(discount), "tax": str(tax)},
            )
        total = subtotal - discount + tax

        tenders_for_sale = tenders
        if not tenders_for_sale and payment_method:
            tenders_for_sale = [_Tender(payment_method=_normalize_method(payment_method), amount=total)]
        if not tenders_for_sale:
            raise NoPaymentMethodError("At least one payment is required")

        paid = sum((t.amount for t in tenders_for_sale), start=ZERO)
        if paid < total:
            raise InsufficientPaymentError(
                f"Payments ({paid}) do not cover the sale total ({total})",
                details={"total": str(total), "paid": str(paid), "missing": str(total - paid)},
            )

        sale = Sale(
            warehouse=warehouse,
            sale_number=next_sale_number(warehouse),
            user_id=user_id,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            subtotal=subtotal,
            discount=discount,
            tax=tax,
            total=total,
            status=SaleStatus.COMPLETED.value,
            notes=notes,
        )
        db.session.add(sale)
        db.session.flush()

        for item, product in lines:
            unit_price = Decimal(product.sale_price)
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=product.id,
                size=item.size,
                quantity=item.quantity,
                unit_price=unit_price,
                subtotal=unit_price * item.quantity,
            ))

        for tender in tenders_for_sale:
            db.session.add(SalePayment(
                sale_id=sale.id,
                payment_method=tender.payment_method,
                amount=tender.amount,
                reference=tender.reference,
                notes=tender.notes,
            ))
        db.session.flush()

        for stock_id, quantity in per_stock.items():
            decrement_stock(stock_id, quantity)

        return sale

    sale = run_in_transaction(_op)
    logger.info("Sale %s recorded in %s: total %s", sale.sale_number, warehouse, sale.total)
    return sale


def cancel_sale(sale_id: int, warehouse: str, user_id: int | None = None) -> Sale:
    """
    Cancel a completed sale and put its units back on the shelf.

    The status flip is a conditional UPDATE on status = COMPLETED, so two
    concurrent cancels cannot both restock. Payments are left as they are.
    """
    def _op():
        sale = get_sale(sale_id, warehouse)
        if not can_cancel_sale(sale.status):
            raise AlreadyCancelledError(
                f"Sale {sale.sale_number} is already cancelled",
                details={"sale_id": sale.id, "status": sale.status},
            )

        now = utcnow()
        result = db.session.execute(
            update(Sale)
            .where(Sale.id == sale.id, Sale.status == SaleStatus.COMPLETED.value)
            .values(
                status=SaleStatus.CANCELLED.value,
                cancelled_at=now,
                cancelled_by_user_id=user_id,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise AlreadyCancelledError(
                f"Sale {sale.sale_number} is already cancelled",
                details={"sale_id": sale.id},
            )

        for item in sale.items:
            if not increment_stock(item.product_id, item.size, item.quantity):
                logger.warning(
                    "Restock skipped for sale %s: product %s size %s no longer has a stock row (%s units)",
                    sale.sale_number, item.product_id, item.size, item.quantity,
                )
        return sale

    sale = run_in_transaction(_op)
    logger.info("Sale %s cancelled in %s", sale.sale_number, warehouse)
    return sale


def get_sale(sale_id: int, warehouse: str) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id, warehouse=warehouse).first()
    if not sale:
        raise SaleNotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def get_sale_by_number(sale_number: str, warehouse: str) -> Sale:
    sale = db.session.query(Sale).filter_by(sale_number=sale_number, warehouse=warehouse).first()
    if not sale:
        raise SaleNotFoundError(f"Sale {sale_number} not found", details={"sale_number": sale_number})
    return sale


def _day_bounds(start: date | None, end: date | None) -> tuple[datetime | None, datetime | None]:
    start_at = datetime.combine(start, time.min) if start else None
    end_before = datetime.combine(end + timedelta(days=1), time.min) if end else None
    return start_at, end_before


def _sales_query(warehouse: str, start: date | None, end: date | None):
    query = db.session.query(Sale).filter(Sale.warehouse == warehouse)
    start_at, end_before = _day_bounds(start, end)
    if start_at:
        query = query.filter(Sale.created_at >= start_at)
    if end_before:
        query = query.filter(Sale.created_at < end_before)
    return query


def list_sales(
    warehouse: str,
    *,
    start: date | None = None,
    end: date | None = None,
    status: str | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Newest first. start/end are inclusive calendar days."""
    query = _sales_query(warehouse, start, end)
    if status:
        try:
            status = SaleStatus(status.upper()).value
        except ValueError:
            raise ValidationError(f"Invalid sale status: {status!r}")
        query = query.filter(Sale.status == status)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            Sale.sale_number.ilike(term),
            Sale.customer_name.ilike(term),
            Sale.customer_email.ilike(term),
            Sale.customer_phone.ilike(term),
        ))
    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
    return paginate(query, page, per_page, lambda s: s.to_dict())


def sales_total(warehouse: str, start: date | None = None, end: date | None = None) -> dict:
    """Count and revenue of COMPLETED sales in the range."""
    query = _sales_query(warehouse, start, end).filter(Sale.status == SaleStatus.COMPLETED.value)
    count, total = query.with_entities(func.count(Sale.id), func.coalesce(func.sum(Sale.total), 0)).one()
    return {"count": count, "total": to_money(total, "total")}
