# Overview: Named-command endpoint; the desktop UI calls operations by name with a JSON payload.

# backend/storeledger/routes/commands.py
"""
Command boundary.

POST /api/commands/<name> with a JSON object body. The body's keys are the
operation's arguments. Responds {"result": ...} on success or the usual
{"error", "code", "details"} body on failure.

Every command maps onto the same service functions the REST routes use.
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError, NotFound, ValidationError
from ..services import (
    adjustment_service,
    catalog_service,
    customer_service,
    payment_service,
    purchase_service,
    return_service,
    sales_service,
    supplier_service,
)
from ..time_utils import parse_iso_datetime, parse_iso_date
from ..validation import coerce_int, parse_bool


commands_bp = Blueprint("commands", __name__, url_prefix="/api/commands")


def _require_int(payload: dict, field: str) -> int:
    if payload.get(field) is None:
        raise ValidationError(f"{field} required", details={"field": field})
    return coerce_int(payload[field], field)


def _optional_int(payload: dict, field: str):
    if payload.get(field) is None:
        return None
    return coerce_int(payload[field], field)


def _optional_when(payload: dict, field: str):
    raw = payload.get(field)
    if not raw:
        return None
    try:
        if len(str(raw).strip()) == 10:
            return parse_iso_date(raw)
        return parse_iso_datetime(raw)
    except ValueError as exc:
        raise ValidationError(f"{field} must be an ISO-8601 date or datetime", details={"field": field}) from exc


def _sale_with_balance(sale, include_items: bool = False) -> dict:
    data = sale.to_dict(include_items=include_items)
    data.update(payment_service.summarize_balance(sale))
    return data


# ── Catalog ───────────────────────────────────────────────────

def _get_stock(p):
    return catalog_service.get_stock(_require_int(p, "product_id"))


def _get_products(p):
    products = catalog_service.list_products(
        include_inactive=parse_bool(p.get("include_inactive", False)),
        category=p.get("category"),
        search=p.get("search"),
        tracked_only=parse_bool(p.get("tracked_only", False)),
    )
    return [product.to_dict() for product in products]


def _add_product(p):
    return catalog_service.create_product(p.get("product") or {}).to_dict()


def _update_product(p):
    return catalog_service.update_product(_require_int(p, "product_id"), p.get("changes") or {}).to_dict()


def _delete_product(p):
    product_id = _require_int(p, "product_id")
    catalog_service.delete_product(product_id)
    return {"deleted": True, "product_id": product_id}


def _get_low_stock_items(p):
    return catalog_service.get_low_stock_items()


# ── Customers ─────────────────────────────────────────────────

def _add_customer(p):
    return customer_service.create_customer(p.get("customer") or {}).to_dict()


def _get_customers(p):
    return [c.to_dict() for c in customer_service.list_customers(search=p.get("search"))]


# ── Sales ─────────────────────────────────────────────────────

def _create_sale(p):
    sale = sales_service.create_sale(
        p.get("items"),
        customer_id=_optional_int(p, "customer_id"),
        customer_name=p.get("customer_name"),
        note=p.get("note"),
    )
    return _sale_with_balance(sale, include_items=True)


def _get_sale_details(p):
    return _sale_with_balance(sales_service.get_sale(_require_int(p, "sale_id")), include_items=True)


def _get_sales(p):
    paid = p.get("paid")
    sales = sales_service.list_sales(
        start=_optional_when(p, "start"),
        end=_optional_when(p, "end"),
        customer_id=_optional_int(p, "customer_id"),
        paid=parse_bool(paid) if paid is not None else None,
        limit=_optional_int(p, "limit") or 100,
        offset=_optional_int(p, "offset") or 0,
    )
    return [_sale_with_balance(sale) for sale in sales]


def _delete_sale(p):
    sale_id = _require_int(p, "sale_id")
    sales_service.delete_sale(sale_id, cascade=parse_bool(p.get("cascade", False)))
    return {"deleted": True, "sale_id": sale_id}


# ── Payments ──────────────────────────────────────────────────

def _add_sale_payment(p):
    try:
        paid_at = parse_iso_datetime(p.get("paid_at"))
    except (TypeError, ValueError, AttributeError) as exc:
        raise ValidationError("paid_at must be an ISO-8601 datetime", details={"field": "paid_at"}) from exc
    return payment_service.add_payment(
        _require_int(p, "sale_id"),
        p.get("amount_cents"),
        p.get("method"),
        note=p.get("note"),
        paid_at=paid_at,
    )


def _get_sale_payment_summary(p):
    return payment_service.get_payment_summary(_require_int(p, "sale_id"))


def _get_sale_payments(p):
    return [payment.to_dict() for payment in payment_service.get_sale_payments(_require_int(p, "sale_id"))]


# ── Returns ───────────────────────────────────────────────────

def _get_returnable_items(p):
    return return_service.get_returnable_items(_require_int(p, "sale_id"))


def _create_return(p):
    return_doc = return_service.create_return(
        _require_int(p, "sale_id"),
        p.get("items"),
        refund_method=p.get("refund_method"),
        refund_cents=p.get("refund_cents"),
        restock=parse_bool(p.get("restock", False)),
        reason=p.get("reason"),
        note=p.get("note"),
        return_date=p.get("return_date"),
    )
    return return_doc.to_dict(include_items=True)


def _get_returns(p):
    return return_service.get_returns(limit=_optional_int(p, "limit"), sale_id=_optional_int(p, "sale_id"))


def _get_return_details(p):
    return return_service.get_return_details(_require_int(p, "return_id")).to_dict(include_items=True)


# ── Stock adjustments ─────────────────────────────────────────

def _add_stock_adjustment(p):
    adjustment = adjustment_service.apply_adjustment(
        p.get("items"),
        adjustment_date=p.get("adjustment_date"),
        reason=p.get("reason"),
        notes=p.get("notes"),
    )
    return adjustment.to_dict(include_items=True)


def _get_stock_adjustments(p):
    return [a.to_dict() for a in adjustment_service.list_adjustments(limit=_optional_int(p, "limit"))]


def _get_stock_adjustment_details(p):
    adjustment = adjustment_service.get_adjustment_details(_require_int(p, "adjustment_id"))
    return adjustment.to_dict(include_items=True)


# ── Purchases ─────────────────────────────────────────────────

def _add_purchase(p):
    purchase = purchase_service.add_purchase(
        p.get("items"),
        supplier_id=_optional_int(p, "supplier_id"),
        purchase_date=p.get("purchase_date"),
        reference=p.get("reference"),
        notes=p.get("notes"),
        payment_mode=p.get("payment_mode"),
        payment_amount_cents=p.get("payment_amount_cents"),
        payment_method=p.get("payment_method"),
        payment_note=p.get("payment_note"),
        update_stock=parse_bool(p.get("update_stock", True)),
    )
    return purchase.to_dict(include_items=True)


def _get_purchases(p):
    purchases = purchase_service.get_purchases(search=p.get("search"), limit=_optional_int(p, "limit"))
    return [purchase.to_dict() for purchase in purchases]


def _get_purchase_details(p):
    return purchase_service.get_purchase_details(_require_int(p, "purchase_id")).to_dict(include_items=True)


def _delete_purchase(p):
    purchase_id = _require_int(p, "purchase_id")
    purchase_service.delete_purchase(purchase_id, rollback_stock=parse_bool(p.get("rollback_stock", True)))
    return {"deleted": True, "purchase_id": purchase_id}


def _add_supplier(p):
    return supplier_service.create_supplier(p.get("supplier") or {}).to_dict()


def _get_suppliers(p):
    return [s.to_dict() for s in supplier_service.list_suppliers(search=p.get("search"))]


# ── Registry ──────────────────────────────────────────────────

COMMAND_REGISTRY = {
    "get_stock": _get_stock,
    "get_products": _get_products,
    "add_product": _add_product,
    "update_product": _update_product,
    "delete_product": _delete_product,
    "get_low_stock_items": _get_low_stock_items,
    "add_customer": _add_customer,
    "get_customers": _get_customers,
    "create_sale": _create_sale,
    "get_sale_details": _get_sale_details,
    "get_sales": _get_sales,
    "delete_sale": _delete_sale,
    "add_sale_payment": _add_sale_payment,
    "get_sale_payment_summary": _get_sale_payment_summary,
    "get_sale_payments": _get_sale_payments,
    "get_returnable_items": _get_returnable_items,
    "create_return": _create_return,
    "get_returns": _get_returns,
    "get_return_details": _get_return_details,
    "add_stock_adjustment": _add_stock_adjustment,
    "get_stock_adjustments": _get_stock_adjustments,
    "get_stock_adjustment_details": _get_stock_adjustment_details,
    "add_purchase": _add_purchase,
    "get_purchases": _get_purchases,
    "get_purchase_details": _get_purchase_details,
    "delete_purchase": _delete_purchase,
    "add_supplier": _add_supplier,
    "get_suppliers": _get_suppliers,
}


def dispatch(name: str, payload: dict):
    """Run a named command. Raises NotFound for an unknown name."""
    handler = COMMAND_REGISTRY.get(name)
    if handler is None:
        raise NotFound(
            f"Unknown command '{name}'",
            details={"command": name, "available": sorted(COMMAND_REGISTRY)},
        )
    if not isinstance(payload, dict):
        raise ValidationError("Command payload must be a JSON object")
    return handler(payload)


@commands_bp.post("/<name>")
def run_command_route(name: str):
    try:
        payload = request.get_json(silent=True)
        result = dispatch(name, payload if payload is not None else {})
        return jsonify({"result": result}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Command %s failed", name)
        return jsonify({"error": "Internal server error"}), 500
