# Overview: Flask API routes for customers; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError
from ..services import customer_service

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
def list_customers_route():
    limit = request.args.get("limit", 100, type=int)
    customers = customer_service.list_customers(search=request.args.get("search"), limit=limit)
    return jsonify({"items": [c.to_dict() for c in customers]}), 200


@customers_bp.post("")
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.create_customer(payload)
        return jsonify({"customer": customer.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
        return jsonify({"customer": customer.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
