"""
Sale Ledger

WHY: A sale and the stock it consumes are one atomic fact. Either every
tracked line is decremented and the sale is written, or nothing happens.

FLOW:
1. Shape-check the request (EmptyOrder / InvalidQuantity / InvalidAmount)
2. Inside exclusive_scope(): resolve products, compute the total,
   reserve_and_decrement() each line, write sale + items
3. Any failure rolls the whole transaction back; decrements made for
   earlier lines disappear with it
"""

from __future__ import annotations

from datetime import date, datetime, time

from flask import current_app

from ..extensions import db
from ..errors import EmptyOrder, NotFound, SaleHasDependents, ValidationError
from ..models import Sale, SaleItem, Payment, Return
from ..time_utils import utcnow
from ..validation import coerce_int, optional_text, require_positive_quantity, require_amount_cents
from . import catalog_service, customer_service
from .concurrency import exclusive_scope, lock_for_update


def _normalize_items(items) -> list[dict]:
    if not items:
        raise EmptyOrder("Sale must contain at least one item")
    if not isinstance(items, (list, tuple)):
        raise ValidationError("items must be a list")

    lines = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {index + 1} is not an object", details={"index": index})

        product_id = raw.get("product_id")
        if product_id is not None:
            product_id = coerce_int(product_id, "product_id")
        details = {"index": index, "product_id": product_id}

        quantity = require_positive_quantity(raw.get("quantity"), details=details)

        unit_price_cents = raw.get("unit_price_cents")
        if unit_price_cents is not None:
            unit_price_cents = require_amount_cents(
                unit_price_cents, "unit_price_cents", allow_zero=True, details=details
            )

        name = optional_text(raw.get("name"), "name", max_length=255)
        if product_id is None and (name is None or unit_price_cents is None):
            raise ValidationError(
                f"Item {index + 1}: items without a product need a name and unit_price_cents",
                details=details,
            )

        lines.append({
            "index": index,
            "product_id": product_id,
            "name": name,
            "quantity": quantity,
            "unit_price_cents": unit_price_cents,
        })
    return lines


def create_sale(
    items,
    customer_id: int | None = None,
    customer_name: str | None = None,
    note: str | None = None,
) -> Sale:
    """
    Create a sale and take its stock.

    Args:
        items: [{product_id?, name?, quantity, unit_price_cents?}]
            name / unit_price_cents default to the product's current values.
        customer_id: Customer reference (None = walk-in)
        customer_name: Free-text name; defaults to the customer's name

    Returns:
        The persisted Sale (items loaded)

    Raises:
        EmptyOrder, InvalidQuantity, InvalidAmount, NotFound, InsufficientStock
    """
    lines = _normalize_items(items)
    customer_name = optional_text(customer_name, "customer_name", max_length=255)
    note = optional_text(note, "note", max_length=255)

    with exclusive_scope():
        if customer_id is not None:
            customer = customer_service.get_customer(customer_id)
            customer_name = customer_name or customer.name

        # Resolve snapshots and total before touching stock
        total_cents = 0
        for line in lines:
            if line["product_id"] is not None:
                try:
                    product = catalog_service.get_product(line["product_id"], lock=True)
                except NotFound as exc:
                    exc.details["index"] = line["index"]
                    raise
                line["name"] = line["name"] or product.name
                if line["unit_price_cents"] is None:
                    line["unit_price_cents"] = product.price_cents
            line["line_total_cents"] = line["quantity"] * line["unit_price_cents"]
            total_cents += line["line_total_cents"]

        for line in lines:
            if line["product_id"] is not None:
                catalog_service.reserve_and_decrement(
                    line["product_id"],
                    line["quantity"],
                    details={"index": line["index"]},
                )

        now = utcnow()
        sale = Sale(
            customer_id=customer_id,
            customer_name=customer_name,
            note=note,
            created_at=now,
            total_cents=total_cents,
            # Nothing to collect on a zero-total sale
            paid=total_cents == 0,
            paid_at=now if total_cents == 0 else None,
        )
        sale.items = [
            SaleItem(
                product_id=line["product_id"],
                item_name=line["name"],
                quantity=line["quantity"],
                unit_price_cents=line["unit_price_cents"],
                line_total_cents=line["line_total_cents"],
            )
            for line in lines
        ]
        db.session.add(sale)
        db.session.flush()

    current_app.logger.info("Sale %s created: %d item(s), total_cents=%d", sale.id, len(lines), total_cents)
    return sale


def _load_sale(sale_id: int, *, lock: bool = False) -> Sale:
    query = db.session.query(Sale).filter_by(id=sale_id)
    if lock:
        query = lock_for_update(query)
    sale = query.first()
    if sale is None:
        raise NotFound(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def get_sale(sale_id: int) -> Sale:
    """Sale with its items (use sale.items)."""
    return _load_sale(sale_id)


def _as_range_start(value):
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    return value


def _as_range_end(value):
    # A bare date means "through the end of that day"
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.max)
    return value


def list_sales(
    *,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
    customer_id: int | None = None,
    paid: bool | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Sale]:
    """Sales newest first, optionally filtered by date range, customer and paid flag."""
    query = db.session.query(Sale)
    if start is not None:
        query = query.filter(Sale.created_at >= _as_range_start(start))
    if end is not None:
        query = query.filter(Sale.created_at <= _as_range_end(end))
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if paid is not None:
        query = query.filter(Sale.paid.is_(paid))
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).offset(offset).limit(limit).all()


def delete_sale(sale_id: int, cascade: bool = False) -> None:
    """
    Delete a sale.

    Blocked with SaleHasDependents while payments or returns reference it,
    unless cascade=True. Deletion is an administrative correction, not a
    return: stock is never restored.
    """
    with exclusive_scope():
        sale = _load_sale(sale_id, lock=True)

        payment_count = db.session.query(Payment).filter_by(sale_id=sale.id).count()
        return_count = db.session.query(Return).filter_by(sale_id=sale.id).count()

        if (payment_count or return_count) and not cascade:
            raise SaleHasDependents(
                f"Sale {sale.id} has {payment_count} payment(s) and {return_count} return(s)",
                details={"sale_id": sale.id, "payments": payment_count, "returns": return_count},
            )

        if cascade:
            for return_doc in db.session.query(Return).filter_by(sale_id=sale.id).all():
                db.session.delete(return_doc)
            db.session.query(Payment).filter_by(sale_id=sale.id).delete(synchronize_session="fetch")
            db.session.flush()

        db.session.delete(sale)

    current_app.logger.info(
        "Sale %s deleted (cascade=%s, payments=%d, returns=%d)", sale_id, cascade, payment_count, return_count
    )
