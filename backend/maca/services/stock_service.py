# Overview: Stock ledger reads and atomic quantity changes for product sizes.

"""
Stock Ledger

INVARIANTS:
- ProductStock.quantity never goes below zero.
- Sale paths change quantity only through the two statements below, each a
  single conditional UPDATE whose affected-row count is checked. The
  availability check and the write cannot be separated by another writer.
- None of these helpers commit; they run inside the caller's transaction.
"""

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import ProductStock
from ..validation import ConflictError


def get_stock(product_id: int, size: str) -> ProductStock | None:
    return db.session.query(ProductStock).filter_by(product_id=product_id, size=size).first()


def decrement_stock(stock_id: int, quantity: int) -> None:
    """
    Take `quantity` units off a stock row if that many are available.

    Raises ConflictError when the row no longer has enough available units
    (another sale got there first) or disappeared. The caller's transaction
    must then be rolled back.
    """
    stmt = (
        update(ProductStock)
        .where(
            ProductStock.id == stock_id,
            ProductStock.quantity - ProductStock.reserved_quantity >= quantity,
        )
        .values(quantity=ProductStock.quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise ConflictError(
            "Stock changed while the sale was being recorded",
            details={"stock_id": stock_id, "requested_quantity": quantity},
        )


def increment_stock(product_id: int, size: str, quantity: int) -> bool:
    """
    Put `quantity` units back on the (product, size) row.

    Returns False when no such row exists any more; nothing is recreated.
    """
    stmt = (
        update(ProductStock)
        .where(ProductStock.product_id == product_id, ProductStock.size == size)
        .values(quantity=ProductStock.quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    return result.rowcount > 0
