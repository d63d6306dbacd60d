# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/storeledger/routes/returns.py
"""
Return Processing API Routes

DESIGN:
- Returns reference the original sale and its sale items
- One request records the whole return (validate all lines, then write)
- Optional restock puts returned quantities back into stock
- Refund defaults to the value of returned goods
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError, ValidationError
from ..services import return_service
from ..validation import coerce_int, parse_bool


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.get("/sales/<int:sale_id>/returnable")
def returnable_items_route(sale_id: int):
    """Per sale item: sold, already returned and remaining quantities."""
    try:
        return jsonify({"items": return_service.get_returnable_items(sale_id)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@returns_bp.post("/")
def create_return_route():
    """
    Record a return.

    Request body:
    {
        "sale_id": 123,
        "items": [{"sale_item_id": 456, "quantity": 1, "note": "..." (optional)}],
        "restock": true,  (optional, default false)
        "refund_cents": 500,  (optional, default: value of returned items)
        "refund_method": "cash",  (optional)
        "reason": "...",  (optional)
        "note": "...",  (optional)
        "return_date": "2024-05-01"  (optional)
    }

    Returns:
        201: Return recorded
        400: Invalid input
        404: Unknown sale or sale item
        409: OverReturn (nothing was changed)
    """
    try:
        data = request.get_json(silent=True) or {}

        if data.get("sale_id") is None:
            raise ValidationError("sale_id required", details={"field": "sale_id"})
        sale_id = coerce_int(data.get("sale_id"), "sale_id")

        return_doc = return_service.create_return(
            sale_id,
            data.get("items"),
            refund_method=data.get("refund_method"),
            refund_cents=data.get("refund_cents"),
            restock=parse_bool(data.get("restock", False)),
            reason=data.get("reason"),
            note=data.get("note"),
            return_date=data.get("return_date"),
        )
        return jsonify({"return": return_doc.to_dict(include_items=True)}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/")
def list_returns_route():
    """
    Query params:
    - sale_id: int (optional)
    - limit: int (optional)
    """
    returns = return_service.get_returns(
        limit=request.args.get("limit", type=int),
        sale_id=request.args.get("sale_id", type=int),
    )
    return jsonify({"items": returns}), 200


@returns_bp.get("/<int:return_id>")
def get_return_route(return_id: int):
    try:
        return_doc = return_service.get_return_details(return_id)
        return jsonify({"return": return_doc.to_dict(include_items=True)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
