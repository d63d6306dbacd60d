# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/storeledger/routes/sales.py
"""Sale Ledger API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError, ValidationError
from ..services import sales_service, payment_service
from ..time_utils import parse_iso_datetime, parse_iso_date
from ..validation import coerce_int, parse_bool


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _parse_range_arg(name: str):
    """'YYYY-MM-DD' stays a date (whole day); anything longer is a datetime."""
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        if len(raw.strip()) == 10:
            return parse_iso_date(raw)
        return parse_iso_datetime(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime", details={"field": name}) from exc


def _sale_payload(sale) -> dict:
    data = sale.to_dict(include_items=True)
    data.update(payment_service.summarize_balance(sale))
    return data


@sales_bp.post("/")
def create_sale_route():
    """
    Create a sale and decrement stock for every tracked line.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2, "unit_price_cents": 350 (optional)}],
        "customer_id": 3,  (optional)
        "customer_name": "Walk-in",  (optional)
        "note": "..."  (optional)
    }

    Returns:
        201: Sale created
        400: EmptyOrder / InvalidQuantity / InvalidAmount
        404: Unknown product or customer
        409: InsufficientStock (nothing was changed)
    """
    try:
        data = request.get_json(silent=True) or {}
        customer_id = data.get("customer_id")
        if customer_id is not None:
            customer_id = coerce_int(customer_id, "customer_id")

        sale = sales_service.create_sale(
            data.get("items"),
            customer_id=customer_id,
            customer_name=data.get("customer_name"),
            note=data.get("note"),
        )
        return jsonify({"sale": _sale_payload(sale)}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/")
def list_sales_route():
    """
    Query params:
    - start, end: ISO date or datetime (a bare end date includes the whole day)
    - customer_id: int
    - paid: bool
    - limit (default 100), offset (default 0)
    """
    try:
        paid = request.args.get("paid")
        sales = sales_service.list_sales(
            start=_parse_range_arg("start"),
            end=_parse_range_arg("end"),
            customer_id=request.args.get("customer_id", type=int),
            paid=parse_bool(paid) if paid is not None else None,
            limit=request.args.get("limit", 100, type=int),
            offset=request.args.get("offset", 0, type=int),
        )
        items = []
        for sale in sales:
            data = sale.to_dict()
            data.update(payment_service.summarize_balance(sale))
            items.append(data)
        return jsonify({"items": items}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": _sale_payload(sale)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.delete("/<int:sale_id>")
def delete_sale_route(sale_id: int):
    """
    Delete a sale.

    ?cascade=true also deletes its payments and returns. Stock is not restored.

    Returns:
        200: Deleted
        404: Unknown sale
        409: SaleHasDependents (without cascade)
    """
    try:
        cascade = parse_bool(request.args.get("cascade", "false"))
        sales_service.delete_sale(sale_id, cascade=cascade)
        return jsonify({"deleted": True, "sale_id": sale_id}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
