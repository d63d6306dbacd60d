# Overview: Service-layer operations for purchases; stock-in from suppliers with payment status.

"""
Purchase (Stock-In) Engine

WHY: Goods bought from a supplier are the normal way stock goes up. A
purchase records what was bought, what it cost and how much of it was paid,
and raises stock for tracked products in the same atomic step.

PAYMENT MODES:
- pay_later:   nothing paid yet (no method)
- pay_now:     the full total is paid
- pay_partial: 0 < amount <= total is paid

STOCK:
- update_stock=True increments tracked products by each line's quantity
- Untracked products, free-text lines and update_stock=False leave stock alone
- Deleting a purchase takes back exactly what it added (rollback_stock=True)
  and fails with InsufficientStock if those units were already sold
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import String, cast, or_

from ..extensions import db
from ..errors import EmptyOrder, NotFound, OverPayment, ValidationError
from ..models import Purchase, PurchaseItem
from ..time_utils import utcnow, parse_iso_date
from ..validation import coerce_int, optional_text, require_amount_cents, require_positive_quantity
from . import catalog_service, supplier_service
from .concurrency import exclusive_scope, lock_for_update
from .payment_service import normalize_method


MODE_PAY_NOW = "pay_now"
MODE_PAY_LATER = "pay_later"
MODE_PAY_PARTIAL = "pay_partial"

VALID_PAYMENT_MODES = [MODE_PAY_NOW, MODE_PAY_LATER, MODE_PAY_PARTIAL]


def _normalize_items(items) -> list[dict]:
    if not items:
        raise EmptyOrder("Purchase must contain at least one item")
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

        name = optional_text(raw.get("item_name"), "item_name", max_length=255)
        if product_id is None and name is None:
            raise ValidationError(
                f"Item {index + 1}: items without a product need an item_name", details=details
            )

        quantity = require_positive_quantity(raw.get("quantity"), details=details)
        unit_cost_cents = require_amount_cents(
            raw.get("unit_cost_cents"), "unit_cost_cents", allow_zero=False, details=details
        )

        lines.append({
            "index": index,
            "product_id": product_id,
            "name": name,
            "quantity": quantity,
            "unit_cost_cents": unit_cost_cents,
            "line_total_cents": quantity * unit_cost_cents,
        })
    return lines


def _resolve_payment(mode, amount_cents, method, total_cents: int) -> tuple[int, str | None]:
    """(paid_cents, method) for a payment mode against the purchase total."""
    if mode is None:
        mode = MODE_PAY_LATER
    if not isinstance(mode, str) or mode.strip().lower() not in VALID_PAYMENT_MODES:
        raise ValidationError(
            f"payment_mode must be one of {VALID_PAYMENT_MODES}",
            details={"field": "payment_mode", "value": mode},
        )
    mode = mode.strip().lower()

    if mode == MODE_PAY_LATER:
        return 0, None

    method = normalize_method(method or "cash", field="payment_method")
    if mode == MODE_PAY_NOW:
        return total_cents, method

    paid = require_amount_cents(
        amount_cents, "payment_amount_cents", allow_zero=False, details={"field": "payment_amount_cents"}
    )
    if paid > total_cents:
        raise OverPayment(
            f"Payment of {paid} exceeds purchase total of {total_cents}",
            details={"payment_amount_cents": paid, "total_cents": total_cents},
        )
    return paid, method


def add_purchase(
    items,
    supplier_id: int | None = None,
    purchase_date=None,
    reference: str | None = None,
    notes: str | None = None,
    payment_mode: str = MODE_PAY_LATER,
    payment_amount_cents: int | None = None,
    payment_method: str | None = None,
    payment_note: str | None = None,
    update_stock: bool = True,
) -> Purchase:
    """
    Record a purchase and raise stock for its tracked lines.

    Args:
        items: [{product_id?, item_name?, quantity, unit_cost_cents}]
            item_name defaults to the product's current name.
        supplier_id: Supplier reference (None = unnamed supplier)
        purchase_date: Business date (defaults to today)
        payment_mode: pay_later, pay_now or pay_partial
        payment_amount_cents: Amount paid, pay_partial only
        payment_method: cash, card, mobile, bank, other (default cash)
        update_stock: Increment stock for tracked products

    Returns:
        The persisted Purchase (items loaded)

    Raises:
        EmptyOrder, InvalidQuantity, InvalidAmount, ValidationError, NotFound, OverPayment
    """
    lines = _normalize_items(items)
    total_cents = sum(line["line_total_cents"] for line in lines)
    paid_cents, method = _resolve_payment(payment_mode, payment_amount_cents, payment_method, total_cents)

    if supplier_id is not None:
        supplier_id = coerce_int(supplier_id, "supplier_id")
    try:
        day = parse_iso_date(purchase_date)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            "purchase_date must be an ISO-8601 date", details={"field": "purchase_date"}
        ) from exc
    reference = optional_text(reference, "reference", max_length=64)
    notes = optional_text(notes, "notes")
    payment_note = optional_text(payment_note, "payment_note", max_length=255)

    with exclusive_scope():
        supplier_name = None
        if supplier_id is not None:
            supplier_name = supplier_service.get_supplier(supplier_id).name

        for line in lines:
            line["stock_applied"] = False
            if line["product_id"] is None:
                continue
            try:
                product = catalog_service.get_product(line["product_id"], lock=True)
            except NotFound as exc:
                exc.details["index"] = line["index"]
                raise
            line["name"] = line["name"] or product.name

        if update_stock:
            for line in lines:
                if line["product_id"] is not None:
                    new_stock = catalog_service.increment(line["product_id"], line["quantity"])
                    line["stock_applied"] = new_stock is not None

        purchase = Purchase(
            supplier_id=supplier_id,
            supplier_name=supplier_name,
            purchase_date=day or utcnow().date(),
            reference=reference,
            notes=notes,
            total_cents=total_cents,
            paid_cents=paid_cents,
            payment_method=method,
            payment_note=payment_note,
            update_stock=bool(update_stock),
            created_at=utcnow(),
        )
        purchase.items = [
            PurchaseItem(
                product_id=line["product_id"],
                item_name=line["name"],
                quantity=line["quantity"],
                unit_cost_cents=line["unit_cost_cents"],
                line_total_cents=line["line_total_cents"],
                stock_applied=line["stock_applied"],
            )
            for line in lines
        ]
        db.session.add(purchase)
        db.session.flush()

    current_app.logger.info(
        "Purchase %s recorded: %d item(s), total_cents=%d, paid_cents=%d, update_stock=%s",
        purchase.id, len(lines), total_cents, paid_cents, update_stock,
    )
    return purchase


def _load_purchase(purchase_id: int, *, lock: bool = False) -> Purchase:
    query = db.session.query(Purchase).filter_by(id=purchase_id)
    if lock:
        query = lock_for_update(query)
    purchase = query.first()
    if purchase is None:
        raise NotFound(f"Purchase {purchase_id} not found", details={"purchase_id": purchase_id})
    return purchase


def get_purchase_details(purchase_id: int) -> Purchase:
    """Purchase with its items (use purchase.items)."""
    return _load_purchase(purchase_id)


def get_purchases(search: str | None = None, limit: int | None = None) -> list[Purchase]:
    """Purchases newest first; search matches date, supplier, reference and notes."""
    query = db.session.query(Purchase)
    if isinstance(search, str) and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            cast(Purchase.purchase_date, String).ilike(pattern),
            Purchase.supplier_name.ilike(pattern),
            Purchase.reference.ilike(pattern),
            Purchase.notes.ilike(pattern),
        ))
    query = query.order_by(Purchase.purchase_date.desc(), Purchase.id.desc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def delete_purchase(purchase_id: int, rollback_stock: bool = True) -> None:
    """
    Delete a purchase.

    With rollback_stock, every line that raised stock takes its quantity
    back. If any of those units are already gone the whole delete fails with
    InsufficientStock and nothing changes.
    """
    with exclusive_scope():
        purchase = _load_purchase(purchase_id, lock=True)

        taken_back = 0
        if rollback_stock:
            for index, item in enumerate(purchase.items):
                # Product deleted since the purchase: nothing to take back
                if not item.stock_applied or item.product_id is None:
                    continue
                catalog_service.reserve_and_decrement(
                    item.product_id,
                    item.quantity,
                    details={"purchase_id": purchase.id, "index": index},
                )
                taken_back += 1

        db.session.delete(purchase)

    current_app.logger.info(
        "Purchase %s deleted (rollback_stock=%s, lines rolled back=%d)", purchase_id, rollback_stock, taken_back
    )
