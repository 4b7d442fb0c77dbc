# Overview: Pytest coverage for sale creation and cancellation.

"""
Sales Service Tests

Covers:
1. Basic sale, split payment, synthesized single payment
2. Every validation failure leaves no sale rows and no stock change
3. Stock conservation across create + cancel
4. Cancellation guards and restock of deleted stock rows
5. Per-warehouse, per-day sale numbering
"""

from decimal import Decimal

import pytest
from sqlalchemy import update

from maca.models import (
    DocumentSequence, ProductStock, Sale, SaleItem, SalePayment, SaleStatus,
)
from maca.services import sales_service
from maca.services.sales_service import (
    AlreadyCancelledError,
    EmptyOrderError,
    InactiveProductError,
    InsufficientPaymentError,
    InsufficientStockError,
    NoPaymentMethodError,
    NoStockEntryError,
    SaleNotFoundError,
    cancel_sale,
    create_sale,
    get_sale_by_number,
    list_sales,
    sales_total,
)
from maca.services.products_service import ProductNotFoundError
from maca.time_utils import date_stamp, utc_today
from maca.validation import ConflictError, ValidationError

from conftest import SAN_FRANCISCO, CENTRO


def _qty(db_session, product_id, size):
    return db_session.query(ProductStock.quantity).filter_by(product_id=product_id, size=size).scalar()


def _sell(user, product, quantity=3, size="42", payments=None, warehouse=SAN_FRANCISCO, **kwargs):
    if payments is None:
        payments = [{"payment_method": "CASH", "amount": str(100000 * quantity)}]
    return create_sale(
        warehouse=warehouse,
        user_id=user.id,
        items=[{"product_id": product.id, "size": size, "quantity": quantity}],
        payments=payments,
        **kwargs,
    )


def _assert_nothing_written(db_session, product_id, expected_42=10):
    assert db_session.query(Sale).count() == 0
    assert db_session.query(SaleItem).count() == 0
    assert db_session.query(SalePayment).count() == 0
    assert db_session.query(DocumentSequence).count() == 0
    assert _qty(db_session, product_id, "42") == expected_42


class TestCreateSale:

    def test_basic_sale(self, db_session, admin_user, product):
        sale = _sell(admin_user, product, quantity=3)

        assert sale.status == SaleStatus.COMPLETED.value
        assert sale.subtotal == Decimal("300000.00")
        assert sale.total == Decimal("300000.00")
        assert sale.total_items == 3
        assert sale.is_mixed_payment is False
        assert _qty(db_session, product.id, "42") == 7

        item = sale.items[0]
        assert item.unit_price == Decimal("100000.00")
        assert item.subtotal == Decimal("300000.00")

    def test_split_payment(self, db_session, admin_user, product):
        sale = _sell(admin_user, product, quantity=1, payments=[
            {"payment_method": "CASH", "amount": 60000},
            {"payment_method": "CARD", "amount": 40000, "reference": "VOUCHER-9"},
        ])

        assert sale.is_mixed_payment is True
        assert len(sale.payments) == 2
        assert sale.paid_amount == Decimal("100000.00")
        assert {p.payment_method for p in sale.payments} == {"CASH", "CARD"}

        data = sale.to_dict()
        assert data["is_mixed_payment"] is True
        assert data["total"] == "100000.00"

    def test_single_payment_method_pays_the_total(self, db_session, admin_user, product):
        sale = create_sale(
            warehouse=SAN_FRANCISCO,
            user_id=admin_user.id,
            items=[{"product_id": product.id, "size": "42", "quantity": 2}],
            payment_method="card",
        )

        assert len(sale.payments) == 1
        assert sale.payments[0].payment_method == "CARD"
        assert sale.payments[0].amount == Decimal("200000.00")

    def test_overpayment_is_accepted(self, db_session, admin_user, product):
        sale = _sell(admin_user, product, quantity=1, payments=[{"payment_method": "CASH", "amount": 150000}])

        assert sale.total == Decimal("100000.00")
        assert sale.paid_amount == Decimal("150000.00")

    def test_discount_and_tax(self, db_session, admin_user, product):
        sale = _sell(
            admin_user, product, quantity=2,
            payments=[{"payment_method": "TRANSFER", "amount": "190000"}],
            discount="20000", tax=10000,
        )

        assert sale.subtotal == Decimal("200000.00")
        assert sale.discount == Decimal("20000.00")
        assert sale.tax == Decimal("10000.00")
        assert sale.total == Decimal("190000.00")

    def test_unit_price_comes_from_product(self, db_session, admin_user, product):
        sale = create_sale(
            warehouse=SAN_FRANCISCO,
            user_id=admin_user.id,
            items=[{"product_id": product.id, "size": "42", "quantity": 1, "unit_price": "1.00"}],
            payment_method="CASH",
        )

        assert sale.items[0].unit_price == Decimal("100000.00")
        assert sale.total == Decimal("100000.00")

    def test_customer_fields_are_stored(self, db_session, admin_user, product):
        sale = _sell(
            admin_user, product, quantity=1,
            customer_name="Laura Gomez", customer_phone="3001234567", notes="Cambio de talla",
        )

        assert sale.customer_name == "Laura Gomez"
        assert sale.customer_phone == "3001234567"
        assert sale.notes == "Cambio de talla"


class TestCreateSaleFailures:
    """Each failure is a distinct error and nothing is written."""

    def test_empty_order(self, db_session, admin_user, product):
        with pytest.raises(EmptyOrderError):
            create_sale(warehouse=SAN_FRANCISCO, user_id=admin_user.id, items=[], payment_method="CASH")
        _assert_nothing_written(db_session, product.id)

    def test_unknown_product(self, db_session, admin_user, product):
        with pytest.raises(ProductNotFoundError):
            create_sale(
                warehouse=SAN_FRANCISCO,
                user_id=admin_user.id,
                items=[{"product_id": 99999, "size": "42", "quantity": 1}],
                payment_method="CASH",
            )
        _assert_nothing_written(db_session, product.id)

    def test_product_from_other_warehouse(self, db_session, admin_user, product, centro_product):
        with pytest.raises(ProductNotFoundError):
            _sell(admin_user, centro_product, quantity=1)
        _assert_nothing_written(db_session, product.id)
        assert _qty(db_session, centro_product.id, "42") == 5

    def test_inactive_product(self, db_session, admin_user, product):
        product.is_active = False
        db_session.commit()

        with pytest.raises(InactiveProductError):
            _sell(admin_user, product, quantity=1)
        _assert_nothing_written(db_session, product.id)

    def test_no_stock_entry_for_size(self, db_session, admin_user, product):
        with pytest.raises(NoStockEntryError) as exc_info:
            _sell(admin_user, product, quantity=1, size="39")
        assert exc_info.value.details["size"] == "39"
        _assert_nothing_written(db_session, product.id)

    def test_insufficient_stock(self, db_session, admin_user, product):
        with pytest.raises(InsufficientStockError) as exc_info:
            _sell(admin_user, product, quantity=11)

        details = exc_info.value.details
        assert details["product_id"] == product.id
        assert details["size"] == "42"
        assert details["available"] == 10
        assert details["requested"] == 11
        _assert_nothing_written(db_session, product.id)

    def test_quantities_are_aggregated_per_size(self, db_session, admin_user, product):
        with pytest.raises(InsufficientStockError) as exc_info:
            create_sale(
                warehouse=SAN_FRANCISCO,
                user_id=admin_user.id,
                items=[
                    {"product_id": product.id, "size": "42", "quantity": 6},
                    {"product_id": product.id, "size": "42", "quantity": 5},
                ],
                payment_method="CASH",
            )
        assert exc_info.value.details["requested"] == 11
        _assert_nothing_written(db_session, product.id)

    def test_reserved_units_are_not_available(self, db_session, admin_user, product):
        stock = db_session.query(ProductStock).filter_by(product_id=product.id, size="42").one()
        stock.reserved_quantity = 8
        db_session.commit()

        with pytest.raises(InsufficientStockError) as exc_info:
            _sell(admin_user, product, quantity=3)
        assert exc_info.value.details["available"] == 2
        _assert_nothing_written(db_session, product.id)

    def test_no_payment(self, db_session, admin_user, product):
        with pytest.raises(NoPaymentMethodError):
            _sell(admin_user, product, quantity=1, payments=[])
        _assert_nothing_written(db_session, product.id)

    def test_insufficient_payment(self, db_session, admin_user, product):
        with pytest.raises(InsufficientPaymentError) as exc_info:
            _sell(admin_user, product, quantity=1, payments=[
                {"payment_method": "CASH", "amount": 60000},
                {"payment_method": "CARD", "amount": 39999.99},
            ])
        assert exc_info.value.details["missing"] == "0.01"
        _assert_nothing_written(db_session, product.id)

    @pytest.mark.parametrize("items", [
        [{"size": "42", "quantity": 1}],
        [{"product_id": 1, "quantity": 1}],
        [{"product_id": 1, "size": "42", "quantity": 0}],
        [{"product_id": 1, "size": "42", "quantity": 1.5}],
    ])
    def test_malformed_items(self, db_session, admin_user, product, items):
        with pytest.raises(ValidationError):
            create_sale(warehouse=SAN_FRANCISCO, user_id=admin_user.id, items=items, payment_method="CASH")
        _assert_nothing_written(db_session, product.id)

    @pytest.mark.parametrize("payment", [
        {"payment_method": "CHEQUE", "amount": 100000},
        {"payment_method": "CASH", "amount": 0},
        {"payment_method": "CASH", "amount": -5},
        {"payment_method": "CASH", "amount": "abc"},
    ])
    def test_malformed_payments(self, db_session, admin_user, product, payment):
        with pytest.raises(ValidationError):
            _sell(admin_user, product, quantity=1, payments=[payment])
        _assert_nothing_written(db_session, product.id)

    def test_discount_above_total(self, db_session, admin_user, product):
        with pytest.raises(ValidationError):
            _sell(admin_user, product, quantity=1, discount=150000)
        _assert_nothing_written(db_session, product.id)

    def test_stock_race_rolls_back_whole_sale(self, db_session, admin_user, product, monkeypatch):
        real_decrement = sales_service.decrement_stock

        def racing_decrement(stock_id, quantity):
            # Another sale empties the row between validation and decrement.
            db_session.execute(update(ProductStock).where(ProductStock.id == stock_id).values(quantity=0))
            real_decrement(stock_id, quantity)

        monkeypatch.setattr(sales_service, "decrement_stock", racing_decrement)

        with pytest.raises(ConflictError):
            _sell(admin_user, product, quantity=3)
        _assert_nothing_written(db_session, product.id)


class TestSaleNumbering:

    def test_sequence_per_warehouse_per_day(self, db_session, admin_user, product, centro_product):
        stamp = date_stamp()
        first = _sell(admin_user, product, quantity=1)
        second = _sell(admin_user, product, quantity=1)
        centro = create_sale(
            warehouse=CENTRO,
            user_id=admin_user.id,
            items=[{"product_id": centro_product.id, "size": "42", "quantity": 1}],
            payment_method="CASH",
        )

        assert first.sale_number == f"VEN-SF-{stamp}-00001"
        assert second.sale_number == f"VEN-SF-{stamp}-00002"
        assert centro.sale_number == f"VEN-CEN-{stamp}-00001"

    def test_failed_sale_does_not_consume_a_number(self, db_session, admin_user, product, monkeypatch):
        def always_conflict(stock_id, quantity):
            raise ConflictError("stock changed")

        monkeypatch.setattr(sales_service, "decrement_stock", always_conflict)
        with pytest.raises(ConflictError):
            _sell(admin_user, product, quantity=1)
        monkeypatch.undo()

        sale = _sell(admin_user, product, quantity=1)
        assert sale.sale_number.endswith("-00001")


class TestCancelSale:

    def test_cancel_restores_stock(self, db_session, admin_user, product):
        sale = _sell(admin_user, product, quantity=3)
        assert _qty(db_session, product.id, "42") == 7

        cancelled = cancel_sale(sale.id, SAN_FRANCISCO, user_id=admin_user.id)

        assert cancelled.status == SaleStatus.CANCELLED.value
        assert cancelled.cancelled_by_user_id == admin_user.id
        assert cancelled.cancelled_at is not None
        assert _qty(db_session, product.id, "42") == 10

    def test_second_cancel_is_rejected(self, db_session, admin_user, product):
        sale = _sell(admin_user, product, quantity=3)
        cancel_sale(sale.id, SAN_FRANCISCO)

        with pytest.raises(AlreadyCancelledError):
            cancel_sale(sale.id, SAN_FRANCISCO)
        assert _qty(db_session, product.id, "42") == 10

    def test_payments_are_kept(self, db_session, admin_user, product):
        sale = _sell(admin_user, product, quantity=1)
        cancel_sale(sale.id, SAN_FRANCISCO)
        assert db_session.query(SalePayment).filter_by(sale_id=sale.id).count() == 1

    def test_stock_conservation_over_many_pairs(self, db_session, admin_user, product):
        for quantity in (1, 4, 2, 10):
            sale = create_sale(
                warehouse=SAN_FRANCISCO,
                user_id=admin_user.id,
                items=[
                    {"product_id": product.id, "size": "42", "quantity": quantity},
                    {"product_id": product.id, "size": "40", "quantity": 1},
                ],
                payment_method="CASH",
            )
            cancel_sale(sale.id, SAN_FRANCISCO)
            assert _qty(db_session, product.id, "42") == 10
            assert _qty(db_session, product.id, "40") == 2

    def test_sale_from_other_warehouse_is_not_found(self, db_session, admin_user, product):
        sale = _sell(admin_user, product, quantity=1)

        with pytest.raises(SaleNotFoundError):
            cancel_sale(sale.id, CENTRO)
        assert _qty(db_session, product.id, "42") == 9

    def test_missing_stock_row_is_skipped(self, db_session, admin_user, product, caplog):
        sale = create_sale(
            warehouse=SAN_FRANCISCO,
            user_id=admin_user.id,
            items=[
                {"product_id": product.id, "size": "42", "quantity": 2},
                {"product_id": product.id, "size": "40", "quantity": 1},
            ],
            payment_method="CASH",
        )
        stock_40 = db_session.query(ProductStock).filter_by(product_id=product.id, size="40").one()
        db_session.delete(stock_40)
        db_session.commit()

        with caplog.at_level("WARNING", logger="maca.services.sales_service"):
            cancelled = cancel_sale(sale.id, SAN_FRANCISCO)

        assert cancelled.status == SaleStatus.CANCELLED.value
        assert _qty(db_session, product.id, "42") == 10
        assert _qty(db_session, product.id, "40") is None
        assert "Restock skipped" in caplog.text


class TestSaleQueries:

    def test_get_by_number(self, db_session, admin_user, product):
        sale = _sell(admin_user, product, quantity=1)
        assert get_sale_by_number(sale.sale_number, SAN_FRANCISCO).id == sale.id
        with pytest.raises(SaleNotFoundError):
            get_sale_by_number(sale.sale_number, CENTRO)

    def test_totals_exclude_cancelled(self, db_session, admin_user, product):
        _sell(admin_user, product, quantity=1)
        second = _sell(admin_user, product, quantity=2)
        cancel_sale(second.id, SAN_FRANCISCO)

        totals = sales_total(SAN_FRANCISCO, utc_today(), utc_today())
        assert totals["count"] == 1
        assert totals["total"] == Decimal("100000.00")
        assert sales_total(CENTRO)["count"] == 0

    def test_list_paginates_and_filters(self, db_session, admin_user, product):
        first = _sell(admin_user, product, quantity=1, customer_name="Laura Gomez")
        _sell(admin_user, product, quantity=1)

        page = list_sales(SAN_FRANCISCO, page=1, per_page=1)
        assert page["count"] == 1
        assert page["pagination"]["total"] == 2
        assert page["pagination"]["has_next"] is True

        found = list_sales(SAN_FRANCISCO, search="laura")
        assert [s["id"] for s in found["items"]] == [first.id]

        assert list_sales(SAN_FRANCISCO, status="cancelled")["count"] == 0
        assert list_sales(CENTRO)["count"] == 0

    def test_invalid_status_filter(self, db_session):
        with pytest.raises(ValidationError):
            list_sales(SAN_FRANCISCO, status="PENDING")
