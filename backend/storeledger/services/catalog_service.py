# Overview: Service-layer operations for the catalog; owns every write to Product.stock_quantity.

"""
Catalog Store

Stock invariants (authoritative):
- stock_quantity >= 0 for every product, always.
- Products with track_stock = False ignore quantities entirely: decrement and
  increment are no-op successes for them.
- reserve_and_decrement() is the only stock-reducing entry point for sales.
- set_quantity() exists for the Stock Adjustment Engine only.
- Catalog edits (update_product) can never touch stock_quantity.

The stock primitives do not commit. They run inside the caller's
exclusive_scope() so a failing multi-item operation discards every change.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..errors import NotFound, InsufficientStock, NegativeStock, InvalidQuantity
from ..models import Product, SaleItem, ReturnItem, StockAdjustmentItem, PurchaseItem
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_product
from .concurrency import exclusive_scope, lock_for_update


SEVERITY_OUT = "OUT"
SEVERITY_CRITICAL = "CRITICAL"
SEVERITY_LOW = "LOW"

_SEVERITY_RANK = {SEVERITY_OUT: 0, SEVERITY_CRITICAL: 1, SEVERITY_LOW: 2}


PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "category", "price_cents", "cost_cents", "sku", "barcode",
        "track_stock", "stock_quantity", "low_stock_limit", "is_active",
    },
    required_on_create={"name", "price_cents"},
)

# Opening stock is set at creation; afterwards only sales, returns and
# adjustments move it.
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "category", "price_cents", "cost_cents", "sku", "barcode",
        "track_stock", "low_stock_limit", "is_active",
    },
)


def _load_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFound(f"Product {product_id} not found", details={"product_id": product_id})
    return product


# =============================================================================
# STOCK PRIMITIVES
# =============================================================================

def get_stock(product_id: int) -> int:
    """Current quantity of a product."""
    return _load_product(product_id).stock_quantity


def reserve_and_decrement(product_id: int, quantity: int, *, details: dict | None = None) -> int | None:
    """
    Decrement stock for a sale line.

    Returns the new quantity, or None for non-tracked products.
    `details` is merged into the InsufficientStock payload so the caller can
    name the offending line.

    Raises:
        NotFound, InvalidQuantity, InsufficientStock
    """
    if quantity <= 0:
        raise InvalidQuantity("quantity must be greater than 0", details={"product_id": product_id})

    product = _load_product(product_id, lock=True)
    if not product.track_stock:
        return None

    if quantity > product.stock_quantity:
        payload = {
            "product_id": product.id,
            "product_name": product.name,
            "requested_quantity": quantity,
            "available": product.stock_quantity,
        }
        payload.update(details or {})
        raise InsufficientStock(
            f"Insufficient stock for {product.name}: requested {quantity}, available {product.stock_quantity}",
            details=payload,
        )

    product.stock_quantity -= quantity
    db.session.flush()
    return product.stock_quantity


def increment(product_id: int, quantity: int) -> int | None:
    """Put stock back (returns). No-op for non-tracked products."""
    if quantity <= 0:
        raise InvalidQuantity("quantity must be greater than 0", details={"product_id": product_id})

    product = _load_product(product_id, lock=True)
    if not product.track_stock:
        return None

    product.stock_quantity += quantity
    db.session.flush()
    return product.stock_quantity


def set_quantity(product_id: int, quantity: int) -> int:
    """Overwrite stock. Reserved for the Stock Adjustment Engine."""
    if quantity < 0:
        raise NegativeStock(
            f"Stock for product {product_id} cannot be set below zero",
            details={"product_id": product_id, "new_stock": quantity},
        )

    product = _load_product(product_id, lock=True)
    product.stock_quantity = quantity
    db.session.flush()
    return product.stock_quantity


# =============================================================================
# CATALOG MANAGEMENT
# =============================================================================

def get_product(product_id: int, *, lock: bool = False) -> Product:
    """Catalog entry. Pass lock=True for reads that validate a write."""
    return _load_product(product_id, lock=lock)


def list_products(
    *,
    include_inactive: bool = False,
    category: str | None = None,
    search: str | None = None,
    tracked_only: bool = False,
) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    if tracked_only:
        query = query.filter(Product.track_stock.is_(True))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Product.name.ilike(pattern),
            Product.sku.ilike(pattern),
            Product.barcode.ilike(pattern),
        ))
    return query.order_by(Product.name, Product.id).all()


def create_product(payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
    enforce_rules_product(patch)

    if patch.get("track_stock") and patch.get("low_stock_limit") is None:
        patch["low_stock_limit"] = current_app.config.get("DEFAULT_LOW_STOCK_LIMIT", 0)

    with exclusive_scope():
        product = Product(**patch)
        db.session.add(product)
        db.session.flush()

    current_app.logger.info("Product %s created (%s)", product.id, product.name)
    return product


def update_product(product_id: int, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    enforce_rules_product(patch)

    with exclusive_scope():
        product = _load_product(product_id, lock=True)
        for key, value in patch.items():
            setattr(product, key, value)

    return product


def delete_product(product_id: int) -> None:
    """
    Delete a catalog entry.

    Historical sale/return/adjustment/purchase lines keep their frozen name and price;
    only their product reference is cleared.
    """
    with exclusive_scope():
        product = _load_product(product_id, lock=True)
        for model in (SaleItem, ReturnItem, StockAdjustmentItem, PurchaseItem):
            db.session.query(model).filter(model.product_id == product.id).update(
                {model.product_id: None}, synchronize_session="fetch"
            )
        db.session.delete(product)

    current_app.logger.info("Product %s deleted", product_id)


# =============================================================================
# LOW-STOCK MONITOR
# =============================================================================

def classify_stock(quantity: int, limit: int) -> str | None:
    """Severity tier for a tracked product, or None when above its limit."""
    if quantity > limit:
        return None
    if quantity == 0:
        return SEVERITY_OUT
    # quantity <= limit / 2 without float rounding
    if quantity * 2 <= limit:
        return SEVERITY_CRITICAL
    return SEVERITY_LOW


def get_low_stock_items() -> list[dict]:
    """
    Tracked, active products at or below their low-stock limit.

    Pure read; safe to poll. Most severe first, then lowest quantity.
    """
    products = db.session.query(Product).filter(
        Product.track_stock.is_(True),
        Product.is_active.is_(True),
        Product.stock_quantity <= Product.low_stock_limit,
    ).all()

    rows = []
    for product in products:
        severity = classify_stock(product.stock_quantity, product.low_stock_limit)
        if severity is None:
            continue
        rows.append({
            "product_id": product.id,
            "name": product.name,
            "stock_quantity": product.stock_quantity,
            "low_stock_limit": product.low_stock_limit,
            "severity": severity,
        })

    rows.sort(key=lambda r: (_SEVERITY_RANK[r["severity"]], r["stock_quantity"], r["name"]))
    return rows
