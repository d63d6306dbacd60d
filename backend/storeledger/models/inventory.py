from __future__ import annotations

from ..extensions import db
from storeledger.time_utils import to_utc_z

class Product(db.Model):
    """
    Catalog entry: a stock item or a service.

    STOCK DESIGN DECISION:
    stock_quantity is a mutable column, not a derived ledger sum.
    - Only meaningful when track_stock is true; services ignore it otherwise
    - Never goes below zero (CHECK constraint backs the service-level checks)
    - Sales decrement it, returns and adjustments change it; catalog edits cannot

    SKU / BARCODE:
    Both are advisory lookup aids and deliberately not unique.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("low_stock_limit >= 0", name="ck_products_low_stock_non_negative"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_track_active", "track_stock", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True, index=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_cents = db.Column(db.Integer, nullable=True)

    sku = db.Column(db.String(64), nullable=True, index=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)

    track_stock = db.Column(db.Boolean, nullable=False, default=False)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_limit = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_quantity} tracked={self.track_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "sku": self.sku,
            "barcode": self.barcode,
            "track_stock": self.track_stock,
            "stock_quantity": self.stock_quantity if self.track_stock else None,
            "low_stock_limit": self.low_stock_limit,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
