# Overview: Flask API routes for suppliers; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError
from ..services import supplier_service

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
def list_suppliers_route():
    limit = request.args.get("limit", 100, type=int)
    suppliers = supplier_service.list_suppliers(search=request.args.get("search"), limit=limit)
    return jsonify({"items": [s.to_dict() for s in suppliers]}), 200


@suppliers_bp.post("")
def create_supplier_route():
    payload = request.get_json(silent=True) or {}
    try:
        supplier = supplier_service.create_supplier(payload)
        return jsonify({"supplier": supplier.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500
