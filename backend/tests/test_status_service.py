# Overview: Pytest coverage for invoice status classification.

from datetime import date, timedelta
from decimal import Decimal

import pytest

from maca.models import InvoiceStatus, SaleStatus
from maca.services.status_service import classify_invoice, can_cancel_sale

TODAY = date(2026, 10, 19)
YESTERDAY = TODAY - timedelta(days=1)
TOMORROW = TODAY + timedelta(days=1)


class TestClassifyInvoice:

    def test_paid_when_balance_zero(self):
        assert classify_invoice(Decimal("500000"), Decimal("0"), TOMORROW, TODAY) is InvoiceStatus.PAID

    def test_paid_wins_over_overdue(self):
        assert classify_invoice(Decimal("500000"), Decimal("0"), YESTERDAY, TODAY) is InvoiceStatus.PAID

    def test_partial_when_something_paid(self):
        assert classify_invoice(Decimal("200000"), Decimal("300000"), TOMORROW, TODAY) is InvoiceStatus.PARTIAL

    def test_partial_wins_over_overdue(self):
        assert classify_invoice(Decimal("1"), Decimal("499999"), YESTERDAY, TODAY) is InvoiceStatus.PARTIAL

    def test_overdue_only_without_payments(self):
        assert classify_invoice(Decimal("0"), Decimal("500000"), YESTERDAY, TODAY) is InvoiceStatus.OVERDUE

    def test_due_today_is_not_overdue(self):
        assert classify_invoice(Decimal("0"), Decimal("500000"), TODAY, TODAY) is InvoiceStatus.PENDING

    def test_pending(self):
        assert classify_invoice(Decimal("0"), Decimal("500000"), TOMORROW, TODAY) is InvoiceStatus.PENDING

    @pytest.mark.parametrize("paid", ["0", "0.01", "250000"])
    @pytest.mark.parametrize("balance", ["0", "0.01", "250000"])
    @pytest.mark.parametrize("due", [YESTERDAY, TODAY, TOMORROW])
    def test_always_one_open_or_paid_status(self, paid, balance, due):
        status = classify_invoice(Decimal(paid), Decimal(balance), due, TODAY)
        assert status in {
            InvoiceStatus.PENDING, InvoiceStatus.PARTIAL, InvoiceStatus.PAID, InvoiceStatus.OVERDUE,
        }
        if Decimal(balance) == 0:
            assert status is InvoiceStatus.PAID
        elif Decimal(paid) > 0:
            assert status is InvoiceStatus.PARTIAL


class TestCanCancelSale:

    def test_completed_can_be_cancelled(self):
        assert can_cancel_sale(SaleStatus.COMPLETED.value) is True

    def test_cancelled_is_terminal(self):
        assert can_cancel_sale(SaleStatus.CANCELLED.value) is False
