# Overview: Pure status derivation for invoices and sales.

from __future__ import annotations

from datetime import date
from decimal import Decimal

from ..models.enums import InvoiceStatus, SaleStatus


def classify_invoice(paid_amount: Decimal, balance: Decimal, due_date: date, today: date) -> InvoiceStatus:
    """
    Derive an invoice status from its payment position.

    Order matters and is fixed:
    1. balance == 0           -> PAID (even when past due)
    2. paid_amount > 0        -> PARTIAL (even when past due)
    3. today > due_date       -> OVERDUE (only invoices with no payments)
    4. otherwise              -> PENDING

    CANCELLED is never derived here; it is only set by cancel_invoice.
    """
    if balance == 0:
        return InvoiceStatus.PAID
    if paid_amount > 0:
        return InvoiceStatus.PARTIAL
    if today > due_date:
        return InvoiceStatus.OVERDUE
    return InvoiceStatus.PENDING


def can_cancel_sale(status: str) -> bool:
    """Only COMPLETED sales can move to CANCELLED; CANCELLED is terminal."""
    return SaleStatus(status) is SaleStatus.COMPLETED
