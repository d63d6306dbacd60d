"""
Sale Ledger tests.

Verifies:
- Sales decrement stock for every tracked line, all or nothing
- Totals are frozen at creation
- Validation failures leave stock and the sales table untouched
- Deletion is blocked by payments/returns unless cascaded
"""

from datetime import timedelta

import pytest

from storeledger.errors import (
    EmptyOrder,
    InsufficientStock,
    InvalidAmount,
    InvalidQuantity,
    NotFound,
    SaleHasDependents,
    ValidationError,
)
from storeledger.models import Sale, SaleItem, Payment, Return
from storeledger.services import catalog_service, payment_service, return_service, sales_service
from storeledger.time_utils import utcnow


# =============================================================================
# SALE CREATION
# =============================================================================


class TestCreateSale:

    def test_sale_decrements_stock(self, db_session, make_product):
        """Stock 10, limit 5; selling 3 leaves 7 and no low-stock alert."""
        product = make_product(name="P", stock=10, low_stock_limit=5)

        sale = sales_service.create_sale([{"product_id": product.id, "quantity": 3}])

        assert sale.id is not None
        assert catalog_service.get_stock(product.id) == 7
        assert product.id not in [row["product_id"] for row in catalog_service.get_low_stock_items()]

    def test_insufficient_stock_leaves_stock_unchanged(self, db_session, make_product):
        product = make_product(name="P", stock=10, low_stock_limit=5)
        sales_service.create_sale([{"product_id": product.id, "quantity": 3}])

        with pytest.raises(InsufficientStock) as exc:
            sales_service.create_sale([{"product_id": product.id, "quantity": 10}])

        assert exc.value.details["product_id"] == product.id
        assert catalog_service.get_stock(product.id) == 7
        assert db_session.query(Sale).count() == 1

    def test_failure_on_later_line_rolls_back_earlier_lines(self, db_session, product_a, product_b):
        with pytest.raises(InsufficientStock) as exc:
            sales_service.create_sale([
                {"product_id": product_a.id, "quantity": 4},
                {"product_id": product_b.id, "quantity": 6},
            ])

        assert exc.value.details["index"] == 1
        assert exc.value.details["product_id"] == product_b.id
        assert catalog_service.get_stock(product_a.id) == 10
        assert catalog_service.get_stock(product_b.id) == 5
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0

    def test_repeated_product_lines_draw_from_same_stock(self, db_session, product_b):
        with pytest.raises(InsufficientStock):
            sales_service.create_sale([
                {"product_id": product_b.id, "quantity": 3},
                {"product_id": product_b.id, "quantity": 3},
            ])
        assert catalog_service.get_stock(product_b.id) == 5

    def test_total_and_snapshots(self, db_session, product_a, product_b):
        sale = sales_service.create_sale([
            {"product_id": product_a.id, "quantity": 2},
            {"product_id": product_b.id, "quantity": 1, "unit_price_cents": 1500},
        ])

        assert sale.total_cents == 2 * 1000 + 1500
        assert [(i.item_name, i.unit_price_cents, i.line_total_cents) for i in sale.items] == [
            ("Product A", 1000, 2000),
            ("Product B", 1500, 1500),
        ]
        assert sale.paid is False
        assert sale.paid_at is None

    def test_price_change_does_not_alter_sale(self, db_session, product_a):
        sale = sales_service.create_sale([{"product_id": product_a.id, "quantity": 1}])
        catalog_service.update_product(product_a.id, {"price_cents": 9999, "name": "Renamed"})

        reloaded = sales_service.get_sale(sale.id)
        assert reloaded.total_cents == 1000
        assert reloaded.items[0].item_name == "Product A"
        assert reloaded.items[0].unit_price_cents == 1000

    def test_untracked_lines_do_not_touch_stock(self, db_session, service_item):
        sale = sales_service.create_sale([{"product_id": service_item.id, "quantity": 7}])
        assert sale.total_cents == 2100
        assert catalog_service.get_stock(service_item.id) == 0

    def test_free_text_line(self, db_session):
        sale = sales_service.create_sale([{"name": "Delivery", "quantity": 1, "unit_price_cents": 500}])
        assert sale.items[0].product_id is None
        assert sale.total_cents == 500

    def test_free_text_line_needs_price(self, db_session):
        with pytest.raises(ValidationError):
            sales_service.create_sale([{"name": "Delivery", "quantity": 1}])

    def test_zero_total_sale_is_paid(self, db_session, product_a):
        sale = sales_service.create_sale([{"product_id": product_a.id, "quantity": 1, "unit_price_cents": 0}])
        assert sale.total_cents == 0
        assert sale.paid is True
        assert sale.paid_at is not None

    def test_customer_snapshot(self, db_session, product_a, customer):
        sale = sales_service.create_sale([{"product_id": product_a.id, "quantity": 1}], customer_id=customer.id)
        assert sale.customer_id == customer.id
        assert sale.customer_name == "Jane Guest"

    def test_unknown_customer(self, db_session, product_a):
        with pytest.raises(NotFound):
            sales_service.create_sale([{"product_id": product_a.id, "quantity": 1}], customer_id=404)
        assert catalog_service.get_stock(product_a.id) == 10


class TestCreateSaleValidation:

    @pytest.mark.parametrize("items", [None, []])
    def test_empty_order(self, db_session, items):
        with pytest.raises(EmptyOrder):
            sales_service.create_sale(items)

    @pytest.mark.parametrize("quantity", [0, -2, 1.5, "abc", None, True])
    def test_invalid_quantity(self, db_session, product_a, quantity):
        with pytest.raises(InvalidQuantity):
            sales_service.create_sale([{"product_id": product_a.id, "quantity": quantity}])
        assert catalog_service.get_stock(product_a.id) == 10

    def test_negative_price(self, db_session, product_a):
        with pytest.raises(InvalidAmount):
            sales_service.create_sale([{"product_id": product_a.id, "quantity": 1, "unit_price_cents": -1}])

    @pytest.mark.parametrize("field", ["note", "customer_name"])
    def test_non_string_text_rejected_before_stock_moves(self, db_session, product_a, field):
        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale([{"product_id": product_a.id, "quantity": 1}], **{field: 123})
        assert exc.value.details["field"] == field
        assert catalog_service.get_stock(product_a.id) == 10
        assert db_session.query(Sale).count() == 0

    def test_non_string_line_name(self, db_session):
        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale([{"name": 7, "quantity": 1, "unit_price_cents": 100}])
        assert exc.value.details["field"] == "name"

    def test_text_is_stripped(self, db_session, product_a):
        sale = sales_service.create_sale([{"product_id": product_a.id, "quantity": 1}], customer_name="  Walk In ", note="   ")
        assert sale.customer_name == "Walk In"
        assert sale.note is None

    def test_unknown_product_rejects_whole_sale(self, db_session, product_a):
        with pytest.raises(NotFound) as exc:
            sales_service.create_sale([
                {"product_id": product_a.id, "quantity": 1},
                {"product_id": 9999, "quantity": 1},
            ])
        assert exc.value.details["index"] == 1
        assert catalog_service.get_stock(product_a.id) == 10
        assert db_session.query(Sale).count() == 0


# =============================================================================
# QUERIES
# =============================================================================


class TestListSales:

    def test_newest_first_with_pagination(self, db_session, product_a):
        ids = [sales_service.create_sale([{"product_id": product_a.id, "quantity": 1}]).id for _ in range(3)]
        listed = [s.id for s in sales_service.list_sales()]
        assert listed == list(reversed(ids))
        assert [s.id for s in sales_service.list_sales(limit=1, offset=1)] == [ids[1]]

    def test_filters(self, db_session, product_a, customer):
        mine = sales_service.create_sale([{"product_id": product_a.id, "quantity": 1}], customer_id=customer.id)
        other = sales_service.create_sale([{"product_id": product_a.id, "quantity": 1}])
        payment_service.add_payment(other.id, 1000, "cash")

        assert [s.id for s in sales_service.list_sales(customer_id=customer.id)] == [mine.id]
        assert [s.id for s in sales_service.list_sales(paid=True)] == [other.id]
        assert [s.id for s in sales_service.list_sales(paid=False)] == [mine.id]

    def test_date_range(self, db_session, product_a):
        sale = sales_service.create_sale([{"product_id": product_a.id, "quantity": 1}])
        today = utcnow().date()

        assert [s.id for s in sales_service.list_sales(start=today, end=today)] == [sale.id]
        assert sales_service.list_sales(end=today - timedelta(days=1)) == []
        assert sales_service.list_sales(start=today + timedelta(days=1)) == []

    def test_get_sale_unknown(self, db_session):
        with pytest.raises(NotFound):
            sales_service.get_sale(1234)


# =============================================================================
# DELETION
# =============================================================================


class TestDeleteSale:

    def test_delete_without_dependents(self, db_session, product_a):
        sale = sales_service.create_sale([{"product_id": product_a.id, "quantity": 2}])
        sales_service.delete_sale(sale.id)

        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        # Deletion is a correction, not a return
        assert catalog_service.get_stock(product_a.id) == 8

    def test_blocked_by_payments_and_returns(self, db_session, product_a):
        sale = sales_service.create_sale([{"product_id": product_a.id, "quantity": 2}])
        payment_service.add_payment(sale.id, 500, "cash")
        return_service.create_return(sale.id, [{"sale_item_id": sale.items[0].id, "quantity": 1}])

        with pytest.raises(SaleHasDependents) as exc:
            sales_service.delete_sale(sale.id)

        assert exc.value.details == {"sale_id": sale.id, "payments": 1, "returns": 1}
        assert db_session.query(Sale).count() == 1

    def test_cascade_removes_dependents(self, db_session, product_a):
        sale = sales_service.create_sale([{"product_id": product_a.id, "quantity": 2}])
        payment_service.add_payment(sale.id, 500, "cash")
        return_service.create_return(sale.id, [{"sale_item_id": sale.items[0].id, "quantity": 1}], restock=True)

        sales_service.delete_sale(sale.id, cascade=True)

        assert db_session.query(Sale).count() == 0
        assert db_session.query(Payment).count() == 0
        assert db_session.query(Return).count() == 0
        assert catalog_service.get_stock(product_a.id) == 9

    def test_delete_unknown(self, db_session):
        with pytest.raises(NotFound):
            sales_service.delete_sale(77)
