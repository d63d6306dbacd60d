"""
Purchase (stock-in) tests.

Verifies:
- A purchase raises stock for tracked products only, and only with update_stock
- Payment mode decides paid_cents and payment_status
- A rejected purchase changes neither stock nor the purchases table
- Deleting a purchase takes back exactly the stock it added, or nothing
"""

from datetime import date

import pytest

from storeledger.errors import EmptyOrder, InsufficientStock, InvalidAmount, InvalidQuantity, NotFound, OverPayment, ValidationError
from storeledger.models import Purchase, PurchaseItem
from storeledger.services import catalog_service, purchase_service, sales_service, supplier_service


@pytest.fixture
def supplier(db_session):
    return supplier_service.create_supplier({"name": "Acme Wholesale", "phone": "555-0199"})


# =============================================================================
# RECORDING PURCHASES
# =============================================================================

class TestAddPurchase:

    def test_raises_tracked_stock(self, db_session, product_a, product_b, supplier):
        purchase = purchase_service.add_purchase(
            [
                {"product_id": product_a.id, "quantity": 12, "unit_cost_cents": 450},
                {"product_id": product_b.id, "quantity": 3, "unit_cost_cents": 900},
            ],
            supplier_id=supplier.id,
            purchase_date="2024-05-01",
            reference="INV-0042",
        )

        assert catalog_service.get_stock(product_a.id) == 22
        assert catalog_service.get_stock(product_b.id) == 8
        assert purchase.total_cents == 12 * 450 + 3 * 900
        assert purchase.supplier_name == "Acme Wholesale"
        assert purchase.purchase_date == date(2024, 5, 1)
        assert [i.item_name for i in purchase.items] == ["Product A", "Product B"]
        assert all(i.stock_applied for i in purchase.items)

    def test_untracked_and_free_text_lines_leave_stock_alone(self, db_session, service_item):
        purchase = purchase_service.add_purchase([
            {"product_id": service_item.id, "quantity": 4, "unit_cost_cents": 50},
            {"item_name": "Shelf brackets", "quantity": 2, "unit_cost_cents": 700},
        ])
        assert catalog_service.get_stock(service_item.id) == 0
        assert [i.stock_applied for i in purchase.items] == [False, False]
        assert purchase.items[1].product_id is None

    def test_update_stock_false(self, db_session, product_a):
        purchase = purchase_service.add_purchase(
            [{"product_id": product_a.id, "quantity": 5, "unit_cost_cents": 100}], update_stock=False
        )
        assert catalog_service.get_stock(product_a.id) == 10
        assert purchase.update_stock is False
        assert purchase.items[0].stock_applied is False

    def test_defaults(self, db_session, product_a):
        purchase = purchase_service.add_purchase([{"product_id": product_a.id, "quantity": 1, "unit_cost_cents": 100}])
        assert purchase.purchase_date is not None
        assert purchase.supplier_id is None
        assert purchase.paid_cents == 0
        assert purchase.payment_method is None
        assert purchase.payment_status == "unpaid"

    def test_pay_now_pays_total(self, db_session, product_a):
        purchase = purchase_service.add_purchase(
            [{"product_id": product_a.id, "quantity": 2, "unit_cost_cents": 500}],
            payment_mode="pay_now",
            payment_method="Bank",
        )
        assert purchase.paid_cents == 1000
        assert purchase.payment_method == "bank"
        assert purchase.to_dict()["payment_status"] == "paid"
        assert purchase.to_dict()["balance_due_cents"] == 0

    def test_pay_partial(self, db_session, product_a):
        purchase = purchase_service.add_purchase(
            [{"product_id": product_a.id, "quantity": 2, "unit_cost_cents": 500}],
            payment_mode="pay_partial",
            payment_amount_cents=300,
            payment_note="deposit",
        )
        assert purchase.paid_cents == 300
        assert purchase.payment_method == "cash"
        assert purchase.payment_status == "partial"
        assert purchase.to_dict()["balance_due_cents"] == 700

    def test_pay_partial_above_total_is_rejected(self, db_session, product_a):
        with pytest.raises(OverPayment):
            purchase_service.add_purchase(
                [{"product_id": product_a.id, "quantity": 2, "unit_cost_cents": 500}],
                payment_mode="pay_partial",
                payment_amount_cents=1001,
            )
        assert catalog_service.get_stock(product_a.id) == 10
        assert db_session.query(Purchase).count() == 0

    @pytest.mark.parametrize("amount", [None, 0, -5, "lots"])
    def test_pay_partial_needs_positive_amount(self, db_session, product_a, amount):
        with pytest.raises(InvalidAmount):
            purchase_service.add_purchase(
                [{"product_id": product_a.id, "quantity": 1, "unit_cost_cents": 500}],
                payment_mode="pay_partial",
                payment_amount_cents=amount,
            )

    def test_unknown_product_rejects_whole_purchase(self, db_session, product_a):
        with pytest.raises(NotFound) as exc:
            purchase_service.add_purchase([
                {"product_id": product_a.id, "quantity": 1, "unit_cost_cents": 100},
                {"product_id": 9999, "quantity": 1, "unit_cost_cents": 100},
            ])
        assert exc.value.details["index"] == 1
        assert catalog_service.get_stock(product_a.id) == 10
        assert db_session.query(Purchase).count() == 0

    def test_unknown_supplier(self, db_session, product_a):
        with pytest.raises(NotFound):
            purchase_service.add_purchase(
                [{"product_id": product_a.id, "quantity": 1, "unit_cost_cents": 100}], supplier_id=404
            )
        assert catalog_service.get_stock(product_a.id) == 10


class TestAddPurchaseValidation:

    @pytest.mark.parametrize("items", [None, []])
    def test_empty(self, db_session, items):
        with pytest.raises(EmptyOrder):
            purchase_service.add_purchase(items)

    @pytest.mark.parametrize("quantity", [0, -1, 2.5, "x"])
    def test_invalid_quantity(self, db_session, product_a, quantity):
        with pytest.raises(InvalidQuantity):
            purchase_service.add_purchase([{"product_id": product_a.id, "quantity": quantity, "unit_cost_cents": 100}])

    @pytest.mark.parametrize("cost", [None, 0, -100])
    def test_unit_cost_must_be_positive(self, db_session, product_a, cost):
        with pytest.raises(InvalidAmount):
            purchase_service.add_purchase([{"product_id": product_a.id, "quantity": 1, "unit_cost_cents": cost}])

    def test_free_text_line_needs_name(self, db_session):
        with pytest.raises(ValidationError):
            purchase_service.add_purchase([{"quantity": 1, "unit_cost_cents": 100}])

    def test_unknown_payment_mode(self, db_session, product_a):
        with pytest.raises(ValidationError) as exc:
            purchase_service.add_purchase(
                [{"product_id": product_a.id, "quantity": 1, "unit_cost_cents": 100}], payment_mode="barter"
            )
        assert exc.value.details["field"] == "payment_mode"

    def test_invalid_payment_method(self, db_session, product_a):
        with pytest.raises(ValidationError) as exc:
            purchase_service.add_purchase(
                [{"product_id": product_a.id, "quantity": 1, "unit_cost_cents": 100}],
                payment_mode="pay_now",
                payment_method="iou",
            )
        assert exc.value.details["field"] == "payment_method"

    def test_bad_date(self, db_session, product_a):
        with pytest.raises(ValidationError):
            purchase_service.add_purchase(
                [{"product_id": product_a.id, "quantity": 1, "unit_cost_cents": 100}], purchase_date="05/01/2024"
            )

    def test_non_string_reference(self, db_session, product_a):
        with pytest.raises(ValidationError) as exc:
            purchase_service.add_purchase(
                [{"product_id": product_a.id, "quantity": 1, "unit_cost_cents": 100}], reference=42
            )
        assert exc.value.details["field"] == "reference"
        assert catalog_service.get_stock(product_a.id) == 10


# =============================================================================
# DELETING PURCHASES
# =============================================================================

class TestDeletePurchase:

    def test_rollback_takes_back_added_stock(self, db_session, product_a, service_item):
        purchase = purchase_service.add_purchase([
            {"product_id": product_a.id, "quantity": 6, "unit_cost_cents": 100},
            {"product_id": service_item.id, "quantity": 6, "unit_cost_cents": 100},
        ])
        assert catalog_service.get_stock(product_a.id) == 16

        purchase_service.delete_purchase(purchase.id)

        assert catalog_service.get_stock(product_a.id) == 10
        assert db_session.query(Purchase).count() == 0
        assert db_session.query(PurchaseItem).count() == 0

    def test_without_rollback_keeps_stock(self, db_session, product_a):
        purchase = purchase_service.add_purchase([{"product_id": product_a.id, "quantity": 6, "unit_cost_cents": 100}])
        purchase_service.delete_purchase(purchase.id, rollback_stock=False)
        assert catalog_service.get_stock(product_a.id) == 16

    def test_purchase_without_stock_update_rolls_back_nothing(self, db_session, product_a):
        purchase = purchase_service.add_purchase(
            [{"product_id": product_a.id, "quantity": 6, "unit_cost_cents": 100}], update_stock=False
        )
        purchase_service.delete_purchase(purchase.id)
        assert catalog_service.get_stock(product_a.id) == 10

    def test_rollback_blocked_when_stock_already_sold(self, db_session, make_product):
        product = make_product(name="Flour", stock=0)
        purchase = purchase_service.add_purchase([{"product_id": product.id, "quantity": 5, "unit_cost_cents": 100}])
        sales_service.create_sale([{"product_id": product.id, "quantity": 4}])

        with pytest.raises(InsufficientStock) as exc:
            purchase_service.delete_purchase(purchase.id)

        assert exc.value.details["purchase_id"] == purchase.id
        assert catalog_service.get_stock(product.id) == 1
        assert db_session.query(Purchase).count() == 1

    def test_deleted_product_is_skipped(self, db_session, product_a):
        purchase = purchase_service.add_purchase([{"product_id": product_a.id, "quantity": 2, "unit_cost_cents": 100}])
        catalog_service.delete_product(product_a.id)

        assert purchase_service.get_purchase_details(purchase.id).items[0].product_id is None
        purchase_service.delete_purchase(purchase.id)
        assert db_session.query(Purchase).count() == 0

    def test_delete_unknown(self, db_session):
        with pytest.raises(NotFound):
            purchase_service.delete_purchase(12345)


# =============================================================================
# QUERIES
# =============================================================================

class TestPurchaseQueries:

    def test_newest_first_and_search(self, db_session, product_a, supplier):
        older = purchase_service.add_purchase(
            [{"product_id": product_a.id, "quantity": 1, "unit_cost_cents": 100}],
            purchase_date="2024-01-10",
            notes="January restock",
        )
        newer = purchase_service.add_purchase(
            [{"product_id": product_a.id, "quantity": 1, "unit_cost_cents": 100}],
            supplier_id=supplier.id,
            purchase_date="2024-03-02",
            reference="PO-77",
        )

        assert [p.id for p in purchase_service.get_purchases()] == [newer.id, older.id]
        assert [p.id for p in purchase_service.get_purchases(limit=1)] == [newer.id]
        assert [p.id for p in purchase_service.get_purchases(search="acme")] == [newer.id]
        assert [p.id for p in purchase_service.get_purchases(search="po-77")] == [newer.id]
        assert [p.id for p in purchase_service.get_purchases(search="january")] == [older.id]
        assert [p.id for p in purchase_service.get_purchases(search="2024-01")] == [older.id]

    def test_details(self, db_session, product_a):
        purchase = purchase_service.add_purchase([{"product_id": product_a.id, "quantity": 3, "unit_cost_cents": 250}])
        data = purchase_service.get_purchase_details(purchase.id).to_dict(include_items=True)
        assert data["item_count"] == 1
        assert data["items"][0]["line_total_cents"] == 750

    def test_details_unknown(self, db_session):
        with pytest.raises(NotFound):
            purchase_service.get_purchase_details(999)


class TestSuppliers:

    def test_create_and_search(self, db_session, supplier):
        supplier_service.create_supplier({"name": "Beta Foods"})
        assert [s.name for s in supplier_service.list_suppliers()] == ["Acme Wholesale", "Beta Foods"]
        assert [s.name for s in supplier_service.list_suppliers(search="0199")] == ["Acme Wholesale"]

    def test_name_required(self, db_session):
        with pytest.raises(ValidationError):
            supplier_service.create_supplier({"phone": "555"})

    def test_supplier_name_is_snapshotted(self, db_session, product_a, supplier):
        purchase = purchase_service.add_purchase(
            [{"product_id": product_a.id, "quantity": 1, "unit_cost_cents": 100}], supplier_id=supplier.id
        )
        assert purchase.to_dict()["supplier_name"] == "Acme Wholesale"
