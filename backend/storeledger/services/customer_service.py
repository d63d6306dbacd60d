# Overview: Service-layer operations for customers and guests a sale can reference.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..errors import NotFound
from ..models import Customer
from ..validation import ModelValidationPolicy, validate_payload
from .concurrency import exclusive_scope


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email"},
    required_on_create={"name"},
)


def create_customer(payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    with exclusive_scope():
        customer = Customer(**patch)
        db.session.add(customer)
        db.session.flush()
    return customer


def get_customer(customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if customer is None:
        raise NotFound(f"Customer {customer_id} not found", details={"customer_id": customer_id})
    return customer


def list_customers(search: str | None = None, limit: int = 100) -> list[Customer]:
    query = db.session.query(Customer)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Customer.name.ilike(pattern), Customer.phone.ilike(pattern)))
    return query.order_by(Customer.name, Customer.id).limit(limit).all()
