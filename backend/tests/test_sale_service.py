from datetime import timedelta
from decimal import Decimal

import pytest

from arcadepos.errors import (
    DiscountNotApplicableError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from arcadepos.models.fields import AppliedDiscount
from arcadepos.models.sales import SALE_STATUS_CANCELLED, SALE_STATUS_PENDING
from arcadepos.money import Money
from arcadepos.services import inventory_service, sale_service, session_service


def assert_totals_consistent(sale):
    sale_discount = sale.sale_discount.amount if sale.sale_discount else Money.zero()
    assert sale.totals == sale.subtotal_before_discount - sale.total_item_discounts - sale_discount
    assert sale.subtotal_before_discount == sum((i.subtotal for i in sale.items), Money.zero())


class TestDeriveTotals:
    def test_no_lines(self):
        derived = sale_service.derive_totals([], None)
        assert derived.totals == Money.zero()
        assert derived.sale_discount is None

    def test_sale_discount_amount_is_rederived(self):
        stale = AppliedDiscount(1, "Loyalty 5", Decimal("5"), Money("99", 99))
        derived = sale_service.derive_totals(
            [(Money("3.00", 270000), Money("0.30", 27000)), (Money("2.00", 180000), None)],
            stale,
        )
        assert derived.subtotal_before_discount == Money("5.00", 450000)
        assert derived.total_item_discounts == Money("0.30", 27000)
        # 5% of the 4.70 / 423000 running total
        assert derived.sale_discount.amount == Money("0.24", 21150)
        assert derived.totals == Money("4.46", 401850)


class TestCreateSale:
    def test_product_lines_and_sale_discount(self, db_session, cashier_id, cola, chips, cola_discount, sale_discount):
        sale = sale_service.create_sale(
            cashier_id,
            [
                {"product_id": cola.id, "quantity": 2, "discount_id": cola_discount.id},
                {"product_id": chips.id, "quantity": 1},
            ],
            sale_discount_id=sale_discount.id,
        )

        assert sale.status == SALE_STATUS_PENDING
        cola_line, chips_line = sale.items
        assert cola_line.subtotal == Money("3.00", 270000)
        assert cola_line.discount.amount == Money("0.60", 54000)
        assert cola_line.final_amount == Money("2.40", 216000)
        assert chips_line.final_amount == Money("2.00", 180000)

        assert sale.subtotal_before_discount == Money("5.00", 450000)
        assert sale.total_item_discounts == Money("0.60", 54000)
        assert sale.sale_discount.amount == Money("0.22", 19800)
        assert sale.totals == Money("4.18", 376200)
        assert_totals_consistent(sale)

        assert inventory_service.get_product(cola.id).quantity_on_hand == 8
        assert inventory_service.get_product(chips.id).quantity_on_hand == 4

    def test_category_discount_on_product_line(self, db_session, cashier_id, cola, drinks_discount):
        sale = sale_service.create_sale(cashier_id, [{"product_id": cola.id, "discount_id": drinks_discount.id}])
        assert sale.items[0].final_amount == Money("0.75", 67500)

    def test_discount_for_other_product_rolls_back(self, db_session, cashier_id, cola, chips, cola_discount):
        with pytest.raises(DiscountNotApplicableError):
            sale_service.create_sale(cashier_id, [
                {"product_id": cola.id, "quantity": 1},
                {"product_id": chips.id, "quantity": 1, "discount_id": cola_discount.id},
            ])
        assert inventory_service.get_product(cola.id).quantity_on_hand == 10
        assert sale_service.list_sales()["total"] == 0

    def test_session_discount_cannot_be_a_sale_discount(self, db_session, cashier_id, cola, session_discount):
        with pytest.raises(DiscountNotApplicableError):
            sale_service.create_sale(cashier_id, [{"product_id": cola.id}], sale_discount_id=session_discount.id)

    def test_insufficient_stock(self, db_session, cashier_id, chips):
        with pytest.raises(InsufficientStockError) as exc:
            sale_service.create_sale(cashier_id, [{"product_id": chips.id, "quantity": 6}])
        assert exc.value.details["on_hand"] == 5

    def test_requires_items(self, db_session, cashier_id):
        with pytest.raises(ValidationError):
            sale_service.create_sale(cashier_id, [])

    def test_bad_quantity(self, db_session, cashier_id, cola):
        with pytest.raises(ValidationError):
            sale_service.create_sale(cashier_id, [{"product_id": cola.id, "quantity": 0}])

    def test_missing_customer(self, db_session, cashier_id, cola):
        with pytest.raises(NotFoundError):
            sale_service.create_sale(cashier_id, [{"product_id": cola.id}], customer_id=404)

    def test_zero_discount_id_is_looked_up(self, db_session, cashier_id, cola):
        with pytest.raises(NotFoundError):
            sale_service.create_sale(cashier_id, [{"product_id": cola.id, "discount_id": 0}])
        with pytest.raises(NotFoundError):
            sale_service.create_sale(cashier_id, [{"product_id": cola.id}], sale_discount_id=0)
        assert inventory_service.get_product(cola.id).quantity_on_hand == 10
        assert sale_service.list_sales()["total"] == 0


class TestUpdateSale:
    def test_items_replace_product_lines_and_move_stock(self, db_session, cashier_id, cola, chips):
        sale = sale_service.create_sale(cashier_id, [{"product_id": cola.id, "quantity": 2}])

        sale = sale_service.update_sale(sale.id, cashier_id, items=[{"product_id": chips.id, "quantity": 3}])

        assert [i.product_sku for i in sale.items] == ["CHIPS-L"]
        assert sale.totals == Money("6.00", 540000)
        assert inventory_service.get_product(cola.id).quantity_on_hand == 10
        assert inventory_service.get_product(chips.id).quantity_on_hand == 2

    def test_items_keep_session_lines(self, db_session, pc, cashier_id, cola, t0):
        session = session_service.start_session(pc.id, cashier_id, now=t0)
        sale = sale_service.update_sale(session.sale_id, cashier_id, items=[{"product_id": cola.id}])
        assert [i.is_session_item for i in sale.items] == [True, False]

    def test_sale_discount_follows_running_total(self, db_session, pc, cashier_id, cola, sale_discount, t0):
        session = session_service.start_session(pc.id, cashier_id, now=t0)
        sale_service.add_item(session.sale_id, cola.id, quantity=2, now=t0)
        sale = sale_service.update_sale(session.sale_id, cashier_id, sale_discount_id=sale_discount.id, now=t0)
        assert sale.sale_discount.amount == Money("0.15", 13500)

        session_service.end_session(session.id, cashier_id, now=t0 + timedelta(minutes=90))

        sale = sale_service.get_sale(session.sale_id)
        assert sale.subtotal_before_discount == Money("6.00", 540000)
        assert sale.sale_discount.amount == Money("0.30", 27000)
        assert sale.totals == Money("5.70", 513000)
        assert_totals_consistent(sale)

    def test_clear_sale_discount(self, db_session, cashier_id, cola, sale_discount):
        sale = sale_service.create_sale(cashier_id, [{"product_id": cola.id}], sale_discount_id=sale_discount.id)
        sale = sale_service.update_sale(sale.id, cashier_id, clear_sale_discount=True)
        assert sale.sale_discount is None
        assert sale.totals == Money("1.50", 135000)

    def test_set_and_clear_together_is_rejected(self, db_session, cashier_id, cola, sale_discount):
        sale = sale_service.create_sale(cashier_id, [{"product_id": cola.id}])
        with pytest.raises(ValidationError):
            sale_service.update_sale(sale.id, cashier_id, sale_discount_id=sale_discount.id, clear_sale_discount=True)

    def test_session_discount_on_completed_session(self, db_session, pc, cashier_id, session_discount, t0):
        session = session_service.start_session(pc.id, cashier_id, now=t0)
        session_service.end_session(session.id, cashier_id, now=t0 + timedelta(minutes=90))
        sku = f"SESSION-{session.session_number}"

        sale = sale_service.update_sale(
            session.sale_id, cashier_id,
            session_discounts=[{"product_sku": sku, "discount_id": session_discount.id}],
            now=t0,
        )
        assert sale.items[0].discount.amount == Money("0.30", 27000)
        assert sale.totals == Money("2.70", 243000)
        assert session_service.get_session(session.id).final_amount == Money("2.70", 243000)

        sale = sale_service.update_sale(session.sale_id, cashier_id, session_discounts=[{"product_sku": sku}])
        assert sale.totals == Money("3.00", 270000)
        assert session_service.get_session(session.id).discount is None

    def test_session_discount_on_active_session_rejected(self, db_session, pc, cashier_id, session_discount, t0):
        session = session_service.start_session(pc.id, cashier_id, now=t0)
        with pytest.raises(InvalidStateError):
            sale_service.update_sale(
                session.sale_id, cashier_id,
                session_discounts=[{"product_sku": f"SESSION-{session.session_number}", "discount_id": session_discount.id}],
            )

    def test_session_discount_needs_session_sku(self, db_session, cashier_id, cola, session_discount):
        sale = sale_service.create_sale(cashier_id, [{"product_id": cola.id}])
        with pytest.raises(ValidationError):
            sale_service.update_sale(
                sale.id, cashier_id,
                session_discounts=[{"product_sku": "COLA-330", "discount_id": session_discount.id}],
            )

    def test_cancelled_sale_cannot_change(self, db_session, cashier_id, cola):
        sale = sale_service.create_sale(cashier_id, [{"product_id": cola.id}])
        sale_service.cancel_sale(sale.id, cashier_id)
        with pytest.raises(InvalidStateError):
            sale_service.add_item(sale.id, cola.id)


class TestCancelSale:
    def test_cancel_restocks(self, db_session, cashier_id, cola):
        sale = sale_service.create_sale(cashier_id, [{"product_id": cola.id, "quantity": 4}])
        sale = sale_service.cancel_sale(sale.id, cashier_id)
        assert sale.status == SALE_STATUS_CANCELLED
        assert inventory_service.get_product(cola.id).quantity_on_hand == 10

        with pytest.raises(InvalidStateError):
            sale_service.cancel_sale(sale.id, cashier_id)

    def test_refused_while_session_active(self, db_session, pc, cashier_id, t0):
        session = session_service.start_session(pc.id, cashier_id, now=t0)
        with pytest.raises(InvalidStateError):
            sale_service.cancel_sale(session.sale_id, cashier_id)
        assert sale_service.get_sale(session.sale_id).status == SALE_STATUS_PENDING


class TestSaleQueries:
    def test_get_by_invoice(self, db_session, cashier_id, cola):
        sale = sale_service.create_sale(cashier_id, [{"product_id": cola.id}])
        assert sale_service.get_sale_by_invoice(sale.invoice_number).id == sale.id
        with pytest.raises(NotFoundError):
            sale_service.get_sale_by_invoice("19990101-0001")

    def test_list_by_status(self, db_session, cashier_id, cola, chips):
        first = sale_service.create_sale(cashier_id, [{"product_id": cola.id}])
        sale_service.create_sale(cashier_id, [{"product_id": chips.id}])
        sale_service.cancel_sale(first.id, cashier_id)

        pending = sale_service.list_sales(status=SALE_STATUS_PENDING)
        assert pending["total"] == 1
        assert "items" not in pending["sales"][0]
        assert sale_service.list_sales(cashier_user_id=cashier_id)["total"] == 2

    def test_list_rejects_empty_page(self, db_session, cashier_id, cola):
        sale_service.create_sale(cashier_id, [{"product_id": cola.id}])
        with pytest.raises(ValidationError):
            sale_service.list_sales(limit=0)
        with pytest.raises(ValidationError):
            sale_service.list_sales(page=-1)

    def test_today_summary(self, db_session, cashier_id, cola, chips):
        first = sale_service.create_sale(cashier_id, [{"product_id": cola.id}])
        sale_service.create_sale(cashier_id, [{"product_id": chips.id}])
        sale_service.cancel_sale(first.id, cashier_id)

        summary = sale_service.today_summary()
        assert summary["total_sales"] == 1
        assert summary["pending_sales"] == 1
        assert summary["paid_sales"] == 0
        assert summary["total_revenue"] == {"usd": 0.0, "lbp": 0}
