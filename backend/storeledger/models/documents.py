from __future__ import annotations

from ..extensions import db
from storeledger.time_utils import to_utc_z, to_iso_date


class Return(db.Model):
    """
    Sale return document.

    WHY: Reverses some quantity of an earlier sale without touching the sale
    itself. The original sale total stays as recorded.

    DESIGN PRINCIPLES:
    - Returns reference the original Sale, items reference original SaleItems
    - Sum of returned quantities per SaleItem never exceeds the quantity sold
    - restock records whether this return put stock back (per return, not per item)
    - Create-only: there is no update path
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.Index("ix_returns_sale_created", "sale_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Reference to original sale
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    return_date = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    refund_method = db.Column(db.String(16), nullable=False)
    refund_cents = db.Column(db.Integer, nullable=False)

    # Return reason (customer explanation)
    reason = db.Column(db.Text, nullable=True)
    note = db.Column(db.Text, nullable=True)

    restock = db.Column(db.Boolean, nullable=False, default=False)

    sale = db.relationship("Sale", backref=db.backref("returns", lazy=True))
    items = db.relationship(
        "ReturnItem",
        back_populates="return_doc",
        cascade="all, delete-orphan",
        order_by="ReturnItem.id",
        lazy=True,
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_id": self.sale_id,
            "return_date": to_iso_date(self.return_date),
            "created_at": to_utc_z(self.created_at),
            "refund_method": self.refund_method,
            "refund_cents": self.refund_cents,
            "reason": self.reason,
            "note": self.note,
            "restock": self.restock,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ReturnItem(db.Model):
    """Individual line on a return, pointing back at the sale line it reverses."""
    __tablename__ = "return_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_return_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id", ondelete="CASCADE"), nullable=False, index=True)

    # Reference to original sale line being returned
    sale_item_id = db.Column(db.Integer, db.ForeignKey("sale_items.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    item_name = db.Column(db.String(255), nullable=False)

    # Quantity being returned (must be <= remaining returnable quantity)
    quantity = db.Column(db.Integer, nullable=False)

    # Original unit price from sale (for refund calculation)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    note = db.Column(db.String(255), nullable=True)

    return_doc = db.relationship("Return", back_populates="items")
    sale_item = db.relationship("SaleItem", backref=db.backref("return_items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "sale_item_id": self.sale_item_id,
            "product_id": self.product_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "note": self.note,
        }


class StockAdjustment(db.Model):
    """
    Manual stock correction (count, damage, delivery outside purchasing).

    IMMUTABLE: an adjustment and its items are the audit trail. They are
    created in one transaction and never edited.
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    adjustment_date = db.Column(db.Date, nullable=False, index=True)
    reason = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "StockAdjustmentItem",
        back_populates="adjustment",
        cascade="all, delete-orphan",
        order_by="StockAdjustmentItem.id",
        lazy=True,
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "adjustment_date": to_iso_date(self.adjustment_date),
            "reason": self.reason,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "item_count": len(self.items),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class StockAdjustmentItem(db.Model):
    """One product's before/after on a stock adjustment."""
    __tablename__ = "stock_adjustment_items"
    __table_args__ = (
        db.CheckConstraint("new_stock >= 0", name="ck_adjustment_items_new_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    adjustment_id = db.Column(
        db.Integer, db.ForeignKey("stock_adjustments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    item_name = db.Column(db.String(255), nullable=False)

    mode = db.Column(db.String(8), nullable=False)  # set, add, remove
    quantity = db.Column(db.Integer, nullable=False)

    previous_stock = db.Column(db.Integer, nullable=False)
    quantity_change = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    note = db.Column(db.String(255), nullable=True)

    adjustment = db.relationship("StockAdjustment", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "adjustment_id": self.adjustment_id,
            "product_id": self.product_id,
            "item_name": self.item_name,
            "mode": self.mode,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "quantity_change": self.quantity_change,
            "new_stock": self.new_stock,
            "note": self.note,
        }
