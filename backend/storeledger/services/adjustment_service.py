# Overview: Service-layer operations for stock adjustments; manual corrections with a before/after trail.

"""
Stock Adjustment Engine

WHY: Physical reality drifts from the system (counts, breakage, deliveries
booked outside a sale). An adjustment corrects stock for one or more products
in a single atomic step and records what each product was before and after.

MODES:
- set:    stock becomes quantity (0 allowed)
- add:    stock += quantity (quantity > 0)
- remove: stock -= quantity (quantity > 0)

Several items may name the same product; they apply in order against the
running value. Every resulting quantity is validated before the first write.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import EmptyOrder, InvalidQuantity, NegativeStock, NotFound, ValidationError
from ..models import StockAdjustment, StockAdjustmentItem
from ..time_utils import utcnow, parse_iso_date
from ..validation import coerce_int, optional_text, require_positive_quantity
from . import catalog_service
from .concurrency import exclusive_scope


MODE_SET = "set"
MODE_ADD = "add"
MODE_REMOVE = "remove"

VALID_MODES = [MODE_SET, MODE_ADD, MODE_REMOVE]


def _normalize_items(items) -> list[dict]:
    if not items:
        raise EmptyOrder("Adjustment must contain at least one item")
    if not isinstance(items, (list, tuple)):
        raise ValidationError("items must be a list")

    lines = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {index + 1} is not an object", details={"index": index})
        if raw.get("product_id") is None:
            raise ValidationError(f"Item {index + 1}: product_id is required", details={"index": index})

        product_id = coerce_int(raw.get("product_id"), "product_id")
        details = {"index": index, "product_id": product_id}

        mode = raw.get("mode")
        mode = mode.strip().lower() if isinstance(mode, str) else ""
        if mode not in VALID_MODES:
            raise ValidationError(
                f"Item {index + 1}: mode must be one of {VALID_MODES}",
                details={**details, "mode": raw.get("mode")},
            )

        if mode == MODE_SET:
            # set accepts zero; a negative target is a stock violation, not a bad quantity
            try:
                quantity = coerce_int(raw.get("quantity"), "quantity")
            except ValidationError as exc:
                raise InvalidQuantity(str(exc), details=details) from exc
            if quantity < 0:
                raise NegativeStock(
                    f"Item {index + 1}: stock cannot be set below zero",
                    details={**details, "new_stock": quantity},
                )
        else:
            quantity = require_positive_quantity(raw.get("quantity"), details=details)

        lines.append({
            "index": index,
            "product_id": product_id,
            "mode": mode,
            "quantity": quantity,
            "note": optional_text(raw.get("note"), "note", max_length=255),
        })
    return lines


def apply_adjustment(
    items,
    adjustment_date=None,
    reason: str | None = None,
    notes: str | None = None,
) -> StockAdjustment:
    """
    Apply a multi-item stock adjustment.

    Args:
        items: [{product_id, mode, quantity, note?}]
        adjustment_date: Business date (defaults to today)
        reason: Short label (count, damage, delivery...)
        notes: Free text

    Returns:
        The persisted StockAdjustment (items loaded)

    Raises:
        EmptyOrder, InvalidQuantity, ValidationError, NotFound, NegativeStock
    """
    lines = _normalize_items(items)
    try:
        day = parse_iso_date(adjustment_date)
    except ValueError as exc:
        raise ValidationError(
            "adjustment_date must be an ISO-8601 date", details={"field": "adjustment_date"}
        ) from exc
    reason = optional_text(reason, "reason", max_length=255)
    notes = optional_text(notes, "notes")

    with exclusive_scope():
        running: dict[int, int] = {}
        names: dict[int, str] = {}

        # Pass 1: simulate every line; nothing is written until all are valid
        for line in lines:
            product_id = line["product_id"]
            if product_id not in running:
                try:
                    product = catalog_service.get_product(product_id, lock=True)
                except NotFound as exc:
                    exc.details["index"] = line["index"]
                    raise
                if not product.track_stock:
                    raise ValidationError(
                        f"{product.name} does not track stock",
                        details={"index": line["index"], "product_id": product_id},
                    )
                running[product_id] = product.stock_quantity
                names[product_id] = product.name

            previous = running[product_id]
            if line["mode"] == MODE_SET:
                new_stock = line["quantity"]
            elif line["mode"] == MODE_ADD:
                new_stock = previous + line["quantity"]
            else:
                new_stock = previous - line["quantity"]

            if new_stock < 0:
                raise NegativeStock(
                    f"Removing {line['quantity']} of {names[product_id]} would leave {new_stock} in stock",
                    details={
                        "index": line["index"],
                        "product_id": product_id,
                        "previous_stock": previous,
                        "new_stock": new_stock,
                    },
                )

            line["previous_stock"] = previous
            line["new_stock"] = new_stock
            running[product_id] = new_stock

        # Pass 2: write final quantities
        for product_id, quantity in running.items():
            catalog_service.set_quantity(product_id, quantity)

        adjustment = StockAdjustment(
            adjustment_date=day or utcnow().date(),
            reason=reason,
            notes=notes,
            created_at=utcnow(),
        )
        adjustment.items = [
            StockAdjustmentItem(
                product_id=line["product_id"],
                item_name=names[line["product_id"]],
                mode=line["mode"],
                quantity=line["quantity"],
                previous_stock=line["previous_stock"],
                quantity_change=line["new_stock"] - line["previous_stock"],
                new_stock=line["new_stock"],
                note=line["note"],
            )
            for line in lines
        ]
        db.session.add(adjustment)
        db.session.flush()

    current_app.logger.info("Stock adjustment %s applied: %d item(s)", adjustment.id, len(lines))
    return adjustment


def list_adjustments(limit: int | None = None) -> list[StockAdjustment]:
    query = db.session.query(StockAdjustment).order_by(
        StockAdjustment.adjustment_date.desc(), StockAdjustment.id.desc()
    )
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def get_adjustment_details(adjustment_id: int) -> StockAdjustment:
    adjustment = db.session.query(StockAdjustment).filter_by(id=adjustment_id).first()
    if adjustment is None:
        raise NotFound(f"Adjustment {adjustment_id} not found", details={"adjustment_id": adjustment_id})
    return adjustment
