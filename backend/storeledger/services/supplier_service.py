# Overview: Service-layer operations for suppliers a purchase can name.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..errors import NotFound
from ..models import Supplier
from ..validation import ModelValidationPolicy, validate_payload
from .concurrency import exclusive_scope


SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "notes"},
    required_on_create={"name"},
)


def create_supplier(payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    with exclusive_scope():
        supplier = Supplier(**patch)
        db.session.add(supplier)
        db.session.flush()
    return supplier


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.query(Supplier).filter_by(id=supplier_id).first()
    if supplier is None:
        raise NotFound(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})
    return supplier


def list_suppliers(search: str | None = None, limit: int = 100) -> list[Supplier]:
    query = db.session.query(Supplier)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Supplier.name.ilike(pattern), Supplier.phone.ilike(pattern)))
    return query.order_by(Supplier.name, Supplier.id).limit(limit).all()
