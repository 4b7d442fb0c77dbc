# backend/maca/services/products_service.py
"""
Products Service

WAREHOUSE SCOPING: every lookup filters on the caller's warehouse. A
product id from the other warehouse behaves exactly like a missing one.

Stock sizes are managed together with the product: create_product seeds
the size rows, update_product reconciles them against the submitted list.
"""
from __future__ import annotations

import logging

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Product, ProductStock
from ..pagination import paginate
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    to_quantity,
    validate_payload,
)
from .concurrency import run_in_transaction

logger = logging.getLogger(__name__)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "code", "name", "description", "brand", "category", "material", "color",
        "purchase_price", "sale_price", "min_stock", "is_active",
    },
    required_on_create={"code", "name", "purchase_price", "sale_price"},
)


class ProductError(Exception):
    """Base class for product errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ProductNotFoundError(ProductError):
    """Raised when a product does not exist in the caller's warehouse."""


class DuplicateProductCodeError(ProductError):
    """Raised when a product code is already used in the warehouse."""


def _normalize_stocks(stocks) -> dict[str, int]:
    """Validate a [{size, quantity}] payload into an ordered size -> quantity map."""
    if stocks is None:
        return {}
    if not isinstance(stocks, list):
        raise ValidationError("stocks must be a list")

    sizes: dict[str, int] = {}
    for entry in stocks:
        if not isinstance(entry, dict):
            raise ValidationError("each stock entry must be an object")
        size = str(entry.get("size") or "").strip()
        if not size:
            raise ValidationError("stock size is required")
        if size in sizes:
            raise ValidationError(f"duplicate size {size!r}", details={"size": size})
        sizes[size] = to_quantity(entry.get("quantity", 0), f"quantity for size {size}", minimum=0)
    return sizes


def _check_unique_code(warehouse: str, code: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product).filter(Product.warehouse == warehouse, Product.code == code)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise DuplicateProductCodeError(
            f"Product code '{code}' already exists in this warehouse",
            details={"code": code, "warehouse": warehouse},
        )


def get_product(product_id: int, warehouse: str) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, warehouse=warehouse).first()
    if not product:
        raise ProductNotFoundError(
            f"Product {product_id} not found in this warehouse",
            details={"product_id": product_id, "warehouse": warehouse},
        )
    return product


def create_product(warehouse: str, data: dict) -> Product:
    """
    Create a product and its size rows in one transaction.

    Raises:
        ValidationError: bad or missing fields
        DuplicateProductCodeError: code already used in the warehouse
    """
    patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=False)
    sizes = _normalize_stocks(data.get("stocks"))

    def _op():
        _check_unique_code(warehouse, patch["code"])
        product = Product(warehouse=warehouse, **patch)
        for size, quantity in sizes.items():
            product.stocks.append(ProductStock(size=size, quantity=quantity, reserved_quantity=0))
        db.session.add(product)
        db.session.flush()
        return product

    product = run_in_transaction(_op)
    logger.info("Product %s (%s) created in %s with %d sizes", product.id, product.code, warehouse, len(sizes))
    return product


def update_product(product_id: int, warehouse: str, data: dict) -> Product:
    """
    Update product fields and, when "stocks" is present, reconcile sizes:
    listed sizes are set to the given quantity (created if new), omitted
    sizes are removed unless they hold reserved units.
    """
    patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=True)
    sizes = _normalize_stocks(data.get("stocks")) if "stocks" in data else None

    def _op():
        product = get_product(product_id, warehouse)

        if "code" in patch and patch["code"] != product.code:
            _check_unique_code(warehouse, patch["code"], exclude_id=product.id)

        for key, value in patch.items():
            setattr(product, key, value)

        if sizes is not None:
            existing = {s.size: s for s in product.stocks}
            for size, quantity in sizes.items():
                if size in existing:
                    existing[size].quantity = quantity
                else:
                    product.stocks.append(ProductStock(size=size, quantity=quantity, reserved_quantity=0))
            for size, stock in existing.items():
                if size not in sizes and stock.reserved_quantity == 0:
                    product.stocks.remove(stock)

        db.session.flush()
        return product

    return run_in_transaction(_op)


def set_product_active(product_id: int, warehouse: str, active: bool) -> Product:
    """Soft delete / restore. Inactive products cannot be sold."""
    def _op():
        product = get_product(product_id, warehouse)
        product.is_active = active
        return product

    return run_in_transaction(_op)


def list_products(
    warehouse: str,
    *,
    search: str | None = None,
    active_only: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Product).filter(Product.warehouse == warehouse)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            Product.code.ilike(term),
            Product.name.ilike(term),
            Product.brand.ilike(term),
            Product.category.ilike(term),
        ))
    query = query.order_by(Product.name.asc(), Product.id.asc())
    return paginate(query, page, per_page, lambda p: p.to_dict())


def list_low_stock_products(warehouse: str) -> list[Product]:
    """Active products whose stock across all sizes is at or below min_stock."""
    total = func.coalesce(func.sum(ProductStock.quantity), 0)
    rows = (
        db.session.query(Product)
        .outerjoin(ProductStock, ProductStock.product_id == Product.id)
        .filter(Product.warehouse == warehouse, Product.is_active.is_(True))
        .group_by(Product.id)
        .having(total <= Product.min_stock)
        .order_by(total.asc(), Product.name.asc())
        .all()
    )
    return rows


# Facet name -> Product column offered as a filter list in the catalog.
PRODUCT_FACETS = {
    "categories": Product.category,
    "brands": Product.brand,
    "materials": Product.material,
    "colors": Product.color,
}


def list_product_facet(warehouse: str, facet: str) -> list[str]:
    """Distinct non-empty values of one facet among active products, sorted."""
    column = PRODUCT_FACETS.get(facet)
    if column is None:
        raise ValidationError(f"Unknown facet: {facet!r}", details={"allowed": sorted(PRODUCT_FACETS)})
    rows = (
        db.session.query(column)
        .filter(
            Product.warehouse == warehouse,
            Product.is_active.is_(True),
            column.isnot(None),
            column != "",
        )
        .distinct()
        .order_by(column.asc())
        .all()
    )
    return [value for (value,) in rows]
