from __future__ import annotations

from ..extensions import db
from storeledger.time_utils import to_utc_z

class Sale(db.Model):
    """
    Sale document.

    WHY: total_cents is frozen at creation. Returns never rewrite the sale;
    they are separate Return documents referencing it.

    PAYMENT TRACKING:
    - paid / paid_at are stamped once, when payments first cover the total
    - amount paid and balance due are always recomputed from Payment rows
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_created", "created_at"),
        db.Index("ix_sales_paid_created", "paid", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Null customer_id = walk-in
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    # Snapshot so the sale still reads correctly after the customer is edited/removed
    customer_name = db.Column(db.String(255), nullable=True)

    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    total_cents = db.Column(db.Integer, nullable=False)

    paid = db.Column(db.Boolean, nullable=False, default=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
        lazy=True,
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
            "total_cents": self.total_cents,
            "paid": self.paid,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data

class SaleItem(db.Model):
    """
    Line item on a sale.

    item_name and unit_price_cents are frozen copies; product_id is nulled if
    the product is later deleted.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    item_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }

class Payment(db.Model):
    """
    Payment recorded against a sale.

    WHY: Split and partial payments. One sale can have any number of payments
    over time; their sum may never exceed the sale total.

    METHODS:
    - cash, card, mobile, bank, other

    IMMUTABLE: Payments are never updated or voided. There is no negative
    payment; corrections are further forward payments.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        db.Index("ix_payments_sale_paid_at", "sale_id", "paid_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(16), nullable=False, index=True)
    note = db.Column(db.String(255), nullable=True)

    # When the customer paid (may be back-dated by the caller)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True, order_by="Payment.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "note": self.note,
            "paid_at": to_utc_z(self.paid_at),
            "created_at": to_utc_z(self.created_at),
        }
