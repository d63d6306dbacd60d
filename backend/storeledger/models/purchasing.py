from __future__ import annotations

from ..extensions import db
from storeledger.time_utils import to_utc_z, to_iso_date


class Supplier(db.Model):
    """Who goods are bought from. Optional on a purchase."""
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class Purchase(db.Model):
    """
    Stock-in document.

    WHY: Goods bought from a supplier raise stock for tracked products and
    leave a record of what was paid for them.

    PAYMENT:
    - paid_cents is recorded once, at creation (pay now, pay partial, pay later)
    - payment_status is derived: unpaid, partial or paid
    - total_cents is frozen at creation
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_date", "purchase_date", "id"),
        db.CheckConstraint("paid_cents >= 0 AND paid_cents <= total_cents", name="ck_purchases_paid_within_total"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True)
    # Snapshot so history still reads correctly after the supplier is removed
    supplier_name = db.Column(db.String(255), nullable=True)

    purchase_date = db.Column(db.Date, nullable=False)
    reference = db.Column(db.String(64), nullable=True)  # invoice / delivery note number
    notes = db.Column(db.Text, nullable=True)

    total_cents = db.Column(db.Integer, nullable=False)
    paid_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_method = db.Column(db.String(16), nullable=True)
    payment_note = db.Column(db.String(255), nullable=True)

    # Whether creating this purchase raised stock (tracked lines only)
    update_stock = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))
    items = db.relationship(
        "PurchaseItem",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseItem.id",
        lazy=True,
    )

    @property
    def payment_status(self) -> str:
        if self.paid_cents >= self.total_cents:
            return "paid"
        if self.paid_cents > 0:
            return "partial"
        return "unpaid"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "purchase_date": to_iso_date(self.purchase_date),
            "reference": self.reference,
            "notes": self.notes,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "balance_due_cents": self.total_cents - self.paid_cents,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "payment_note": self.payment_note,
            "update_stock": self.update_stock,
            "created_at": to_utc_z(self.created_at),
            "item_count": len(self.items),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseItem(db.Model):
    """One bought line. Name and cost are frozen at purchase time."""
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_items_quantity_positive"),
        db.CheckConstraint("unit_cost_cents > 0", name="ck_purchase_items_unit_cost_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True)

    # Null for free-text lines and for products deleted since
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    item_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    # True when this line actually incremented stock; deleting the purchase
    # takes back exactly these quantities
    stock_applied = db.Column(db.Boolean, nullable=False, default=False)

    purchase = db.relationship("Purchase", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "product_id": self.product_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
            "stock_applied": self.stock_applied,
        }
