"""
Return/Refund Engine

WHY: Customers bring items back. A return reverses some quantity of an
earlier sale line, computes the refund and optionally puts the stock back.

DESIGN PRINCIPLES:
- Returns reference the original Sale; ReturnItems reference the original SaleItem
- remaining = sold - already returned, checked for every line before anything is written
- The original sale is never modified
- Refund defaults to sum(quantity * original unit price); callers may lower it
- Stock restoration is optional and recorded on the return (restock flag)
- All-or-nothing: one bad line means no stock moves and no return is recorded
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import EmptyOrder, InvalidAmount, NotFound, OverReturn, ValidationError
from ..models import Return, ReturnItem
from ..time_utils import utcnow, parse_iso_date
from ..validation import coerce_int, optional_text, require_positive_quantity, require_amount_cents
from . import catalog_service
from .concurrency import exclusive_scope
from .payment_service import normalize_method
from .sales_service import _load_sale


def _returned_by_sale_item(sale_id: int) -> dict[int, int]:
    rows = db.session.query(
        ReturnItem.sale_item_id,
        func.coalesce(func.sum(ReturnItem.quantity), 0),
    ).join(Return, Return.id == ReturnItem.return_id).filter(
        Return.sale_id == sale_id
    ).group_by(ReturnItem.sale_item_id).all()
    return {sale_item_id: int(qty) for sale_item_id, qty in rows}


def get_returnable_items(sale_id: int) -> list[dict]:
    """
    What can still be returned from a sale, per original line.

    Returns:
        [{sale_item_id, product_id, name, unit_price_cents,
          sold_qty, returned_qty, remaining_qty}]
    """
    sale = _load_sale(sale_id)
    returned = _returned_by_sale_item(sale.id)

    rows = []
    for item in sale.items:
        returned_qty = returned.get(item.id, 0)
        rows.append({
            "sale_item_id": item.id,
            "product_id": item.product_id,
            "name": item.item_name,
            "unit_price_cents": item.unit_price_cents,
            "sold_qty": item.quantity,
            "returned_qty": returned_qty,
            "remaining_qty": item.quantity - returned_qty,
        })
    return rows


def _normalize_items(items) -> list[dict]:
    if not items:
        raise EmptyOrder("Return must contain at least one item")
    if not isinstance(items, (list, tuple)):
        raise ValidationError("items must be a list")

    lines = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {index + 1} is not an object", details={"index": index})
        if raw.get("sale_item_id") is None:
            raise ValidationError(f"Item {index + 1}: sale_item_id is required", details={"index": index})
        sale_item_id = coerce_int(raw.get("sale_item_id"), "sale_item_id")
        details = {"index": index, "sale_item_id": sale_item_id}
        lines.append({
            "index": index,
            "sale_item_id": sale_item_id,
            "quantity": require_positive_quantity(raw.get("quantity"), details=details),
            "note": optional_text(raw.get("note"), "note", max_length=255),
        })
    return lines


def create_return(
    sale_id: int,
    items,
    refund_method: str | None = None,
    refund_cents: int | None = None,
    restock: bool = False,
    reason: str | None = None,
    note: str | None = None,
    return_date=None,
) -> Return:
    """
    Record a return against a sale.

    Args:
        sale_id: Original sale
        items: [{sale_item_id, quantity, note?}]
        refund_method: cash, card, mobile, bank, other (default from config)
        refund_cents: Explicit refund; defaults to the value of returned goods
        restock: Put returned quantities back into stock
        return_date: Date of the return (defaults to today)

    Returns:
        The persisted Return (items loaded)

    Raises:
        NotFound, EmptyOrder, InvalidQuantity, InvalidAmount, OverReturn
    """
    lines = _normalize_items(items)
    refund_method = normalize_method(
        refund_method or current_app.config.get("DEFAULT_REFUND_METHOD", "cash"),
        field="refund_method",
    )
    if refund_cents is not None:
        refund_cents = require_amount_cents(refund_cents, "refund_cents", allow_zero=True, details={"sale_id": sale_id})
    try:
        return_day = parse_iso_date(return_date)
    except ValueError as exc:
        raise ValidationError("return_date must be an ISO-8601 date", details={"field": "return_date"}) from exc
    reason = optional_text(reason, "reason")
    note = optional_text(note, "note")

    with exclusive_scope():
        sale = _load_sale(sale_id, lock=True)
        sale_items = {item.id: item for item in sale.items}
        returned = _returned_by_sale_item(sale.id)

        # Validate every line before touching stock. Repeated lines for the
        # same sale item draw down the same remaining quantity.
        requested: dict[int, int] = {}
        for line in lines:
            sale_item = sale_items.get(line["sale_item_id"])
            if sale_item is None:
                raise NotFound(
                    f"Sale item {line['sale_item_id']} is not part of sale {sale.id}",
                    details={"index": line["index"], "sale_item_id": line["sale_item_id"], "sale_id": sale.id},
                )
            already = returned.get(sale_item.id, 0) + requested.get(sale_item.id, 0)
            remaining = sale_item.quantity - already
            if line["quantity"] > remaining:
                raise OverReturn(
                    f"Cannot return {line['quantity']} of {sale_item.item_name}: "
                    f"sold {sale_item.quantity}, already returned {returned.get(sale_item.id, 0)}, "
                    f"remaining {remaining}",
                    details={
                        "index": line["index"],
                        "sale_item_id": sale_item.id,
                        "requested_quantity": line["quantity"],
                        "remaining_qty": remaining,
                    },
                )
            requested[sale_item.id] = requested.get(sale_item.id, 0) + line["quantity"]
            line["sale_item"] = sale_item

        computed_refund = sum(line["quantity"] * line["sale_item"].unit_price_cents for line in lines)
        if refund_cents is None:
            refund_cents = computed_refund
        elif refund_cents > computed_refund:
            raise InvalidAmount(
                f"Refund of {refund_cents} exceeds the value of returned items ({computed_refund})",
                details={"refund_cents": refund_cents, "computed_refund_cents": computed_refund},
            )

        if restock:
            for line in lines:
                product_id = line["sale_item"].product_id
                # Product deleted since the sale: nothing to restock
                if product_id is not None:
                    catalog_service.increment(product_id, line["quantity"])

        now = utcnow()
        return_doc = Return(
            sale_id=sale.id,
            return_date=return_day or now.date(),
            created_at=now,
            refund_method=refund_method,
            refund_cents=refund_cents,
            reason=reason,
            note=note,
            restock=bool(restock),
        )
        return_doc.items = [
            ReturnItem(
                sale_item_id=line["sale_item"].id,
                product_id=line["sale_item"].product_id,
                item_name=line["sale_item"].item_name,
                quantity=line["quantity"],
                unit_price_cents=line["sale_item"].unit_price_cents,
                line_total_cents=line["quantity"] * line["sale_item"].unit_price_cents,
                note=line["note"],
            )
            for line in lines
        ]
        db.session.add(return_doc)
        db.session.flush()

    current_app.logger.info(
        "Return %s recorded on sale %s: refund_cents=%d restock=%s", return_doc.id, sale_id, refund_cents, restock
    )
    return return_doc


# =============================================================================
# QUERIES
# =============================================================================

def get_returns(limit: int | None = None, sale_id: int | None = None) -> list[dict]:
    """Return summaries newest first."""
    query = db.session.query(Return)
    if sale_id is not None:
        query = query.filter(Return.sale_id == sale_id)
    query = query.order_by(Return.created_at.desc(), Return.id.desc())
    if limit is not None:
        query = query.limit(limit)

    summaries = []
    for return_doc in query.all():
        data = return_doc.to_dict()
        data["item_count"] = len(return_doc.items)
        data["quantity_total"] = sum(item.quantity for item in return_doc.items)
        summaries.append(data)
    return summaries


def get_return_details(return_id: int) -> Return:
    return_doc = db.session.query(Return).filter_by(id=return_id).first()
    if return_doc is None:
        raise NotFound(f"Return {return_id} not found", details={"return_id": return_id})
    return return_doc
