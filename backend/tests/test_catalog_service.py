"""
Catalog Store and Low-Stock Monitor tests.

Verifies:
- Stock primitives never take a tracked product below zero
- Non-tracked products ignore quantity changes
- Catalog edits cannot touch stock_quantity
- Deleting a product keeps historical line items readable
- Severity tiers and ordering of the low-stock report
"""

import pytest

from storeledger.errors import (
    InsufficientStock,
    InvalidQuantity,
    NegativeStock,
    NotFound,
    ValidationError,
)
from storeledger.models import SaleItem
from storeledger.services import catalog_service, sales_service


# =============================================================================
# STOCK PRIMITIVES
# =============================================================================


class TestStockPrimitives:

    def test_get_stock(self, product_a):
        assert catalog_service.get_stock(product_a.id) == 10

    def test_get_stock_unknown_product(self, db_session):
        with pytest.raises(NotFound) as exc:
            catalog_service.get_stock(9999)
        assert exc.value.details["product_id"] == 9999

    def test_reserve_and_decrement(self, db_session, product_a):
        assert catalog_service.reserve_and_decrement(product_a.id, 4) == 6
        db_session.commit()
        assert catalog_service.get_stock(product_a.id) == 6

    def test_reserve_exact_stock_reaches_zero(self, db_session, product_a):
        assert catalog_service.reserve_and_decrement(product_a.id, 10) == 0

    def test_reserve_more_than_available(self, db_session, product_a):
        with pytest.raises(InsufficientStock) as exc:
            catalog_service.reserve_and_decrement(product_a.id, 11)
        details = exc.value.details
        assert details["product_id"] == product_a.id
        assert details["requested_quantity"] == 11
        assert details["available"] == 10
        db_session.rollback()
        assert catalog_service.get_stock(product_a.id) == 10

    def test_reserve_untracked_is_noop(self, db_session, service_item):
        assert catalog_service.reserve_and_decrement(service_item.id, 50) is None
        assert catalog_service.increment(service_item.id, 50) is None
        assert catalog_service.get_stock(service_item.id) == 0

    def test_non_positive_quantities_rejected(self, db_session, product_a):
        with pytest.raises(InvalidQuantity):
            catalog_service.reserve_and_decrement(product_a.id, 0)
        with pytest.raises(InvalidQuantity):
            catalog_service.increment(product_a.id, -1)

    def test_increment(self, db_session, product_a):
        assert catalog_service.increment(product_a.id, 5) == 15

    def test_set_quantity(self, db_session, product_a):
        assert catalog_service.set_quantity(product_a.id, 0) == 0
        assert catalog_service.set_quantity(product_a.id, 42) == 42

    def test_set_quantity_negative(self, db_session, product_a):
        with pytest.raises(NegativeStock):
            catalog_service.set_quantity(product_a.id, -1)
        assert catalog_service.get_stock(product_a.id) == 10


# =============================================================================
# CATALOG MANAGEMENT
# =============================================================================


class TestCatalogManagement:

    def test_create_product_applies_default_low_stock_limit(self, db_session):
        product = catalog_service.create_product({
            "name": "Tea",
            "price_cents": 250,
            "track_stock": True,
            "stock_quantity": 30,
        })
        assert product.id is not None
        assert product.low_stock_limit == 5
        assert catalog_service.get_stock(product.id) == 30

    def test_create_product_requires_name_and_price(self, db_session):
        with pytest.raises(ValidationError) as exc:
            catalog_service.create_product({"name": "No price"})
        assert exc.value.details["fields"] == ["price_cents"]

    def test_create_product_rejects_negative_stock(self, db_session):
        with pytest.raises(InvalidQuantity):
            catalog_service.create_product({"name": "Bad", "price_cents": 1, "stock_quantity": -3})

    def test_create_product_rejects_unknown_field(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_product({"name": "X", "price_cents": 1, "colour": "red"})

    def test_create_product_rejects_timestamps(self, db_session):
        with pytest.raises(ValidationError) as exc:
            catalog_service.create_product({"name": "X", "price_cents": 1, "created_at": "2024-01-01T00:00:00Z"})
        assert exc.value.details["field"] == "created_at"

    def test_update_cannot_write_stock(self, db_session, product_a):
        with pytest.raises(ValidationError) as exc:
            catalog_service.update_product(product_a.id, {"stock_quantity": 500})
        assert exc.value.details["field"] == "stock_quantity"
        assert catalog_service.get_stock(product_a.id) == 10

    def test_update_product(self, db_session, product_a):
        product = catalog_service.update_product(product_a.id, {"price_cents": 1250, "category": "Tools"})
        assert product.price_cents == 1250
        assert product.category == "Tools"

    def test_list_products_filters(self, db_session, make_product):
        make_product(name="Apple Juice", category="Drinks")
        make_product(name="Orange Juice", category="Drinks", is_active=False)
        make_product(name="Hammer", category="Tools", sku="HAM-1")

        names = [p.name for p in catalog_service.list_products()]
        assert names == ["Apple Juice", "Hammer"]

        names = [p.name for p in catalog_service.list_products(include_inactive=True, category="Drinks")]
        assert names == ["Apple Juice", "Orange Juice"]

        names = [p.name for p in catalog_service.list_products(search="ham-")]
        assert names == ["Hammer"]

    def test_delete_product_keeps_sale_history(self, db_session, product_a):
        sale = sales_service.create_sale([{"product_id": product_a.id, "quantity": 2}])
        product_id = product_a.id

        catalog_service.delete_product(product_id)

        with pytest.raises(NotFound):
            catalog_service.get_product(product_id)

        item = db_session.query(SaleItem).filter_by(sale_id=sale.id).one()
        assert item.product_id is None
        assert item.item_name == "Product A"
        assert item.unit_price_cents == 1000


# =============================================================================
# LOW-STOCK MONITOR
# =============================================================================


class TestLowStock:

    @pytest.mark.parametrize(
        "quantity,limit,expected",
        [
            (0, 5, "OUT"),
            (0, 0, "OUT"),
            (1, 5, "CRITICAL"),
            (2, 5, "CRITICAL"),
            (3, 5, "LOW"),
            (5, 5, "LOW"),
            (2, 4, "CRITICAL"),
            (6, 5, None),
        ],
    )
    def test_classify_stock(self, quantity, limit, expected):
        assert catalog_service.classify_stock(quantity, limit) == expected

    def test_report_contents_and_order(self, db_session, make_product):
        make_product(name="Plenty", stock=50, low_stock_limit=5)
        make_product(name="Low", stock=4, low_stock_limit=5)
        make_product(name="Empty", stock=0, low_stock_limit=5)
        make_product(name="Critical", stock=1, low_stock_limit=10)
        make_product(name="Service", stock=0, track_stock=False, low_stock_limit=5)
        make_product(name="Retired", stock=0, low_stock_limit=5, is_active=False)

        rows = catalog_service.get_low_stock_items()

        assert [(r["name"], r["severity"]) for r in rows] == [
            ("Empty", "OUT"),
            ("Critical", "CRITICAL"),
            ("Low", "LOW"),
        ]
        assert set(rows[0]) == {"product_id", "name", "stock_quantity", "low_stock_limit", "severity"}

    def test_report_is_read_only(self, db_session, make_product):
        product = make_product(name="Low", stock=1, low_stock_limit=5)
        first = catalog_service.get_low_stock_items()
        second = catalog_service.get_low_stock_items()
        assert first == second
        assert catalog_service.get_stock(product.id) == 1
