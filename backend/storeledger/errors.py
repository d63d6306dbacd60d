# Overview: Typed failures raised by the ledger services and mapped to JSON by the routes.

"""
Ledger error taxonomy.

Every service raises a LedgerError subclass instead of returning sentinel
values. `code` is the stable kind name the UI maps to a human message;
`details` addresses the offending item (product_id, sale_item_id, index...).
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all ledger failures."""
    code = "LedgerError"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "code": self.code,
            "details": self.details,
        }


class NotFound(LedgerError):
    """Unknown product / customer / sale / sale item / return / adjustment id."""
    code = "NotFound"
    status_code = 404


class ValidationError(LedgerError):
    """400-level input problem."""
    code = "ValidationError"


class EmptyOrder(ValidationError):
    code = "EmptyOrder"


class InvalidQuantity(ValidationError):
    code = "InvalidQuantity"


class InvalidAmount(ValidationError):
    code = "InvalidAmount"


class InsufficientStock(LedgerError):
    """A decrement would take a tracked product below zero."""
    code = "InsufficientStock"
    status_code = 409


class NegativeStock(LedgerError):
    """A stock adjustment would leave a product below zero."""
    code = "NegativeStock"
    status_code = 409


class OverPayment(LedgerError):
    code = "OverPayment"
    status_code = 409


class OverReturn(LedgerError):
    code = "OverReturn"
    status_code = 409


class SaleHasDependents(LedgerError):
    """Sale deletion blocked by recorded payments or returns."""
    code = "SaleHasDependents"
    status_code = 409


class StorageError(LedgerError):
    """The database failed while a write scope was open; nothing was committed."""
    code = "StorageError"
    status_code = 503
