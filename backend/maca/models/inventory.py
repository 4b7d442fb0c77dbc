from __future__ import annotations

from ..extensions import db
from maca.time_utils import to_utc_z
from maca.validation import money_str


class Product(db.Model):
    """
    Footwear catalog entry.

    WAREHOUSE SCOPING: every product belongs to exactly one warehouse and
    its code is unique within that warehouse only. The same model can be
    registered in both warehouses under the same code.

    Sizes and quantities live in ProductStock rows, one per size.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("warehouse", "code", name="uq_products_warehouse_code"),
        db.Index("ix_products_warehouse_name", "warehouse", "name"),
        db.Index("ix_products_warehouse_active", "warehouse", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warehouse = db.Column(db.String(64), nullable=False, index=True)

    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Free-text attributes
    brand = db.Column(db.String(128), nullable=True)
    category = db.Column(db.String(128), nullable=True)
    material = db.Column(db.String(128), nullable=True)
    color = db.Column(db.String(64), nullable=True)

    purchase_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    sale_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    # Low-stock threshold across all sizes
    min_stock = db.Column(db.Integer, nullable=False, default=5)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    stocks = db.relationship(
        "ProductStock",
        backref="product",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProductStock.size",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} name={self.name!r} warehouse={self.warehouse!r}>"

    @property
    def total_stock(self) -> int:
        return sum(s.quantity for s in self.stocks)

    def to_dict(self, include_stocks: bool = True) -> dict:
        data = {
            "id": self.id,
            "warehouse": self.warehouse,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "brand": self.brand,
            "category": self.category,
            "material": self.material,
            "color": self.color,
            "purchase_price": money_str(self.purchase_price),
            "sale_price": money_str(self.sale_price),
            "min_stock": self.min_stock,
            "is_active": self.is_active,
            "total_stock": self.total_stock,
            "is_low_stock": self.total_stock <= self.min_stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_stocks:
            data["stocks"] = [s.to_dict() for s in self.stocks]
        return data


class ProductStock(db.Model):
    """
    Stock ledger row: on-hand units of one product in one size.

    INVARIANT: quantity >= 0. Sales decrement through a conditional UPDATE
    (see services/stock_service.py) so the check and the write are a single
    statement; the ORM never writes quantity directly on the sale path.

    reserved_quantity is carried for a reservation workflow that does not
    exist yet; it is always 0 today but still subtracted from availability.
    """
    __tablename__ = "product_stocks"
    __table_args__ = (
        db.UniqueConstraint("product_id", "size", name="uq_product_stocks_product_size"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    size = db.Column(db.String(16), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    reserved_quantity = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def available_quantity(self) -> int:
        return self.quantity - self.reserved_quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "size": self.size,
            "quantity": self.quantity,
            "reserved_quantity": self.reserved_quantity,
            "available_quantity": self.available_quantity,
        }
