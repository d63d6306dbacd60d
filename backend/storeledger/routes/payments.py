# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/storeledger/routes/payments.py
"""
Payment Ledger API Routes

DESIGN:
- Add payments to sales (split and partial payments)
- No change calculation: a payment may not exceed the balance due
- Payment summary is derived from payment rows on every request
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError, ValidationError
from ..services import payment_service
from ..time_utils import parse_iso_datetime
from ..validation import coerce_int


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("/")
def add_payment_route():
    """
    Add a payment to a sale.

    Request body:
    {
        "sale_id": 123,
        "amount_cents": 10000,
        "method": "cash",
        "note": "...",  (optional)
        "paid_at": "2024-05-01T10:00:00Z"  (optional)
    }

    Returns:
        201: Payment recorded; body is the updated payment summary
        400: Invalid input
        404: Unknown sale
        409: OverPayment
    """
    try:
        data = request.get_json(silent=True) or {}

        if data.get("sale_id") is None:
            raise ValidationError("sale_id required", details={"field": "sale_id"})
        sale_id = coerce_int(data.get("sale_id"), "sale_id")

        try:
            paid_at = parse_iso_datetime(data.get("paid_at"))
        except (TypeError, ValueError, AttributeError) as exc:
            raise ValidationError("paid_at must be an ISO-8601 datetime", details={"field": "paid_at"}) from exc

        summary = payment_service.add_payment(
            sale_id,
            data.get("amount_cents"),
            data.get("method"),
            note=data.get("note"),
            paid_at=paid_at,
        )
        return jsonify({"summary": summary}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/sales/<int:sale_id>")
def get_payment_summary_route(sale_id: int):
    try:
        return jsonify({"summary": payment_service.get_payment_summary(sale_id)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
