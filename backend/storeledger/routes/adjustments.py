# Overview: Flask API routes for stock adjustments; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError
from ..services import adjustment_service


adjustments_bp = Blueprint("stock_adjustments", __name__, url_prefix="/api/stock-adjustments")


@adjustments_bp.post("/")
def apply_adjustment_route():
    """
    Apply a stock adjustment.

    Request body:
    {
        "items": [{"product_id": 1, "mode": "set|add|remove", "quantity": 10, "note": "..."}],
        "adjustment_date": "2024-05-01",  (optional)
        "reason": "count",  (optional)
        "notes": "..."  (optional)
    }

    Returns:
        201: Adjustment applied
        400: Invalid input / untracked product
        404: Unknown product
        409: NegativeStock (nothing was changed)
    """
    try:
        data = request.get_json(silent=True) or {}
        adjustment = adjustment_service.apply_adjustment(
            data.get("items"),
            adjustment_date=data.get("adjustment_date"),
            reason=data.get("reason"),
            notes=data.get("notes"),
        )
        return jsonify({"adjustment": adjustment.to_dict(include_items=True)}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to apply stock adjustment")
        return jsonify({"error": "Internal server error"}), 500


@adjustments_bp.get("/")
def list_adjustments_route():
    adjustments = adjustment_service.list_adjustments(limit=request.args.get("limit", type=int))
    return jsonify({"items": [a.to_dict() for a in adjustments]}), 200


@adjustments_bp.get("/<int:adjustment_id>")
def get_adjustment_route(adjustment_id: int):
    try:
        adjustment = adjustment_service.get_adjustment_details(adjustment_id)
        return jsonify({"adjustment": adjustment.to_dict(include_items=True)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
