# Overview: Flask API routes for purchases (stock-in); parses input and returns JSON responses.

# backend/storeledger/routes/purchases.py
"""
Purchase API Routes

DESIGN:
- One request records the whole purchase (validate all lines, then write)
- update_stock (default true) raises stock for tracked products
- Deleting rolls stock back by default (?rollback_stock=false to keep it)
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError
from ..services import purchase_service
from ..validation import parse_bool


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("/")
def add_purchase_route():
    """
    Record a purchase.

    Request body:
    {
        "items": [{"product_id": 1, "item_name": "..." (optional), "quantity": 12, "unit_cost_cents": 450}],
        "supplier_id": 2,  (optional)
        "purchase_date": "2024-05-01",  (optional, default today)
        "reference": "INV-0042",  (optional)
        "notes": "...",  (optional)
        "payment_mode": "pay_now|pay_later|pay_partial",  (optional, default pay_later)
        "payment_amount_cents": 2000,  (pay_partial only)
        "payment_method": "cash",  (optional)
        "payment_note": "...",  (optional)
        "update_stock": true  (optional, default true)
    }

    Returns:
        201: Purchase recorded
        400: Invalid input
        404: Unknown product or supplier
        409: OverPayment (nothing was changed)
    """
    try:
        data = request.get_json(silent=True) or {}
        purchase = purchase_service.add_purchase(
            data.get("items"),
            supplier_id=data.get("supplier_id"),
            purchase_date=data.get("purchase_date"),
            reference=data.get("reference"),
            notes=data.get("notes"),
            payment_mode=data.get("payment_mode"),
            payment_amount_cents=data.get("payment_amount_cents"),
            payment_method=data.get("payment_method"),
            payment_note=data.get("payment_note"),
            update_stock=parse_bool(data.get("update_stock", True)),
        )
        return jsonify({"purchase": purchase.to_dict(include_items=True)}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("/")
def list_purchases_route():
    """
    Query params:
    - search: matches date, supplier name, reference, notes (optional)
    - limit: int (optional)
    """
    purchases = purchase_service.get_purchases(
        search=request.args.get("search"),
        limit=request.args.get("limit", type=int),
    )
    return jsonify({"items": [p.to_dict() for p in purchases]}), 200


@purchases_bp.get("/<int:purchase_id>")
def get_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.get_purchase_details(purchase_id)
        return jsonify({"purchase": purchase.to_dict(include_items=True)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@purchases_bp.delete("/<int:purchase_id>")
def delete_purchase_route(purchase_id: int):
    try:
        rollback_stock = parse_bool(request.args.get("rollback_stock", "true"))
        purchase_service.delete_purchase(purchase_id, rollback_stock=rollback_stock)
        return jsonify({"deleted": True, "purchase_id": purchase_id}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete purchase %s", purchase_id)
        return jsonify({"error": "Internal server error"}), 500
