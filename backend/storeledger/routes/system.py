# backend/storeledger/routes/system.py
"""
System health endpoint.

Reports database connectivity and the size of each ledger table, which is
enough to tell a fresh install from a broken one.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Product, Sale, Payment, Return, StockAdjustment
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        counts = {
            "products": db.session.query(Product).count(),
            "sales": db.session.query(Sale).count(),
            "payments": db.session.query(Payment).count(),
            "returns": db.session.query(Return).count(),
            "stock_adjustments": db.session.query(StockAdjustment).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": counts,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: Database reachable
    - 503: Database unreachable
    """
    database_health = check_database_health()
    http_status = 200 if database_health["status"] == "healthy" else 503

    response = {
        "status": database_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database_health,
        },
    }
    return response, http_status
