# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/storeledger/routes/products.py
"""
Catalog routes.

Stock quantity is read-only here except for the opening quantity on create;
it changes through sales, returns and stock adjustments.
"""
from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError
from ..services import catalog_service
from ..validation import parse_bool

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    Query params:
    - include_inactive: bool (default false)
    - category: str
    - search: matches name, sku or barcode
    - tracked_only: bool (default false)
    """
    products = catalog_service.list_products(
        include_inactive=parse_bool(request.args.get("include_inactive", "false")),
        category=request.args.get("category"),
        search=request.args.get("search"),
        tracked_only=parse_bool(request.args.get("tracked_only", "false")),
    )
    return jsonify({"items": [p.to_dict() for p in products]}), 200


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        product = catalog_service.create_product(payload)
        return jsonify({"product": product.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/low-stock")
def low_stock_route():
    """Tracked products at or below their limit, most severe first."""
    return jsonify({"items": catalog_service.get_low_stock_items()}), 200


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.get("/<int:product_id>/stock")
def get_stock_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
        return jsonify({
            "product_id": product.id,
            "track_stock": product.track_stock,
            "stock_quantity": catalog_service.get_stock(product_id),
            "low_stock_limit": product.low_stock_limit,
        }), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.patch("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        product = catalog_service.update_product(product_id, payload)
        return jsonify({"product": product.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    """
    Delete a product.

    Historical sale, return and adjustment lines keep their name and price.
    """
    try:
        catalog_service.delete_product(product_id)
        return jsonify({"deleted": True, "product_id": product_id}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
