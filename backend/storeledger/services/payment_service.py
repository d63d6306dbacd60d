# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Ledger

WHY: Sales are settled by any number of payments over time (deposits,
split tender, pay-later tabs).

DESIGN PRINCIPLES:
- Payments are separate from sales (many-to-one relationship)
- Sum of payments never exceeds the sale total (no over-tender, no change)
- Payments are immutable: no void, no negative amounts
- Balance is derived from Payment rows on every read, never cached
- paid / paid_at on the sale are stamped exactly once, on the payment that
  settles the balance
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import OverPayment, ValidationError
from ..models import Sale, Payment
from ..time_utils import utcnow, to_utc_z
from ..validation import optional_text, require_amount_cents
from .concurrency import exclusive_scope
from .sales_service import _load_sale


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_MOBILE = "mobile"
METHOD_BANK = "bank"
METHOD_OTHER = "other"

VALID_METHODS = [
    METHOD_CASH,
    METHOD_CARD,
    METHOD_MOBILE,
    METHOD_BANK,
    METHOD_OTHER,
]


def normalize_method(method: str | None, field: str = "method") -> str:
    if method is not None and not isinstance(method, str):
        raise ValidationError(
            f"Invalid {field}: must be a string, one of {VALID_METHODS}",
            details={"field": field, "value": method},
        )
    value = (method or "").strip().lower()
    if value not in VALID_METHODS:
        raise ValidationError(
            f"Invalid {field}: {method}. Must be one of {VALID_METHODS}",
            details={"field": field, "value": method},
        )
    return value


def _amount_paid(sale_id: int) -> int:
    total = db.session.query(
        func.coalesce(func.sum(Payment.amount_cents), 0)
    ).filter(Payment.sale_id == sale_id).scalar()
    return int(total or 0)


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def add_payment(
    sale_id: int,
    amount_cents: int,
    method: str,
    note: str | None = None,
    paid_at: datetime | None = None,
) -> dict:
    """
    Record a payment against a sale.

    Args:
        sale_id: Sale being paid
        amount_cents: Amount received (> 0)
        method: cash, card, mobile, bank, other
        note: Free text (reference number, who paid...)
        paid_at: When the money was received (defaults to now)

    Returns:
        The updated payment summary (see get_payment_summary)

    Raises:
        NotFound, InvalidAmount, ValidationError, OverPayment
    """
    amount_cents = require_amount_cents(amount_cents, "amount_cents", allow_zero=False, details={"sale_id": sale_id})
    method = normalize_method(method)
    note = optional_text(note, "note", max_length=255)

    with exclusive_scope():
        sale = _load_sale(sale_id, lock=True)

        already_paid = _amount_paid(sale.id)
        balance_due = sale.total_cents - already_paid

        if amount_cents > balance_due:
            raise OverPayment(
                f"Payment of {amount_cents} exceeds balance due of {max(balance_due, 0)} on sale {sale.id}",
                details={
                    "sale_id": sale.id,
                    "amount_cents": amount_cents,
                    "amount_paid_cents": already_paid,
                    "balance_due_cents": max(balance_due, 0),
                },
            )

        now = utcnow()
        payment = Payment(
            sale_id=sale.id,
            amount_cents=amount_cents,
            method=method,
            note=note,
            paid_at=paid_at or now,
            created_at=now,
        )
        db.session.add(payment)
        db.session.flush()

        if already_paid + amount_cents >= sale.total_cents and not sale.paid:
            sale.paid = True
            sale.paid_at = now

    current_app.logger.info("Payment recorded on sale %s: %d via %s", sale_id, amount_cents, method)
    return get_payment_summary(sale_id)


# =============================================================================
# QUERIES
# =============================================================================

def get_sale_payments(sale_id: int) -> list[Payment]:
    """Payments for a sale, oldest first."""
    _load_sale(sale_id)
    return db.session.query(Payment).filter_by(sale_id=sale_id).order_by(Payment.paid_at, Payment.id).all()


def summarize_balance(sale: Sale) -> dict:
    """Totals only (no payment list); used for sale listings."""
    amount_paid = _amount_paid(sale.id)
    balance_due = sale.total_cents - amount_paid
    return {
        "total_amount_cents": sale.total_cents,
        "amount_paid_cents": amount_paid,
        "balance_due_cents": balance_due,
        "paid": balance_due <= 0,
        "paid_at": to_utc_z(sale.paid_at) if sale.paid_at else None,
    }


def get_payment_summary(sale_id: int) -> dict:
    """
    Balance summary for a sale.

    Returns:
        - total_amount_cents: Sale total
        - amount_paid_cents: Sum of payments
        - balance_due_cents: total - paid
        - paid: balance_due <= 0
        - paid_at: When the sale was settled, if it has been
        - payments: Payment records, oldest first
    """
    sale = _load_sale(sale_id)
    summary = {"sale_id": sale.id}
    summary.update(summarize_balance(sale))
    summary["payments"] = [p.to_dict() for p in get_sale_payments(sale.id)]
    return summary
