from datetime import timedelta
from decimal import Decimal

import pytest

from arcadepos.errors import InsufficientFundsError, InvalidStateError, ValidationError
from arcadepos.models.pcs import PC_STATUS_AVAILABLE, PC_STATUS_OCCUPIED
from arcadepos.models.sales import SALE_STATUS_PAID, SALE_STATUS_PENDING
from arcadepos.models.sessions import (
    SESSION_PAYMENT_PAID,
    SESSION_PAYMENT_UNPAID,
    SESSION_STATUS_ACTIVE,
    SESSION_STATUS_COMPLETED,
)
from arcadepos.money import Money
from arcadepos.services import (
    customer_service,
    notification_service,
    payment_service,
    pc_service,
    sale_service,
    session_service,
)


@pytest.fixture
def ended_session(db_session, pc, cashier_id, session_discount, t0):
    """90 minutes at 2 USD/h with 10% off: final 2.70 USD / 243000 LBP."""
    session = session_service.start_session(pc.id, cashier_id, now=t0)
    return session_service.end_session(
        session.id, cashier_id, discount_id=session_discount.id, now=t0 + timedelta(minutes=90)
    )


class TestPaySale:
    def test_exact_lbp_amount(self, ended_session, cashier_id, t0):
        sale = payment_service.pay_sale(
            ended_session.sale_id, cashier_id, "CASH", "LBP", 243000, now=t0 + timedelta(minutes=95)
        )

        assert sale.status == SALE_STATUS_PAID
        assert sale.payment_method == "CASH"
        assert sale.payment_currency == "LBP"
        assert sale.amount_paid == Money("2.70", 243000)
        assert sale.paid_at == t0 + timedelta(minutes=95)
        assert payment_service.change_due(sale) == Decimal("0")
        assert session_service.get_session(ended_session.id).payment_status == SESSION_PAYMENT_PAID

    def test_one_pound_short_is_refused(self, ended_session, cashier_id):
        with pytest.raises(InsufficientFundsError) as exc:
            payment_service.pay_sale(ended_session.sale_id, cashier_id, "CASH", "LBP", 242999)

        assert exc.value.details["amount_due"] == "243000"
        sale = sale_service.get_sale(ended_session.sale_id)
        assert sale.status == SALE_STATUS_PENDING
        assert session_service.get_session(ended_session.id).payment_status == SESSION_PAYMENT_UNPAID

    def test_usd_with_change(self, ended_session, cashier_id):
        sale = payment_service.pay_sale(ended_session.sale_id, cashier_id, "card", "usd", "5")
        assert sale.payment_method == "CARD"
        assert sale.amount_paid == Money("5.00", 450000)
        assert payment_service.change_due(sale) == Decimal("2.30")

    def test_cannot_pay_twice(self, ended_session, cashier_id):
        payment_service.pay_sale(ended_session.sale_id, cashier_id, "CASH", "USD", "2.70")
        with pytest.raises(InvalidStateError):
            payment_service.pay_sale(ended_session.sale_id, cashier_id, "CASH", "USD", "2.70")

    def test_cannot_pay_cancelled_sale(self, db_session, cashier_id, cola):
        sale = sale_service.create_sale(cashier_id, [{"product_id": cola.id}])
        sale_service.cancel_sale(sale.id, cashier_id)
        with pytest.raises(InvalidStateError):
            payment_service.pay_sale(sale.id, cashier_id, "CASH", "USD", "10")

    def test_invalid_method_or_currency(self, ended_session, cashier_id):
        with pytest.raises(ValidationError):
            payment_service.pay_sale(ended_session.sale_id, cashier_id, "CRYPTO", "USD", "10")
        with pytest.raises(ValidationError):
            payment_service.pay_sale(ended_session.sale_id, cashier_id, "CASH", "EUR", "10")
        with pytest.raises(ValidationError):
            payment_service.pay_sale(ended_session.sale_id, cashier_id, "CASH", "USD", "-1")

    @pytest.mark.parametrize("amount", ["NaN", "Infinity"])
    def test_non_finite_amount_is_refused(self, ended_session, cashier_id, amount):
        with pytest.raises(ValidationError):
            payment_service.pay_sale(ended_session.sale_id, cashier_id, "CASH", "USD", amount)
        assert sale_service.get_sale(ended_session.sale_id).status == SALE_STATUS_PENDING

    def test_records_customer_purchase(self, db_session, pc, customer, cashier_id, t0):
        session = session_service.start_session(pc.id, cashier_id, customer_id=customer.id, now=t0)
        session_service.end_session(session.id, cashier_id, now=t0 + timedelta(minutes=60))

        payment_service.pay_sale(session.sale_id, cashier_id, "CASH", "USD", "2")

        stats = customer_service.get_customer(customer.id)
        assert stats.total_visits == 1
        assert stats.total_spent_usd_cents == 200


class TestPaymentFinalizesSessions:
    def test_active_session_is_ended_and_pc_freed(self, db_session, pc, cashier_id, cola, t0):
        session = session_service.start_session(pc.id, cashier_id, now=t0)
        sale_service.add_item(session.sale_id, cola.id, now=t0)

        sale = payment_service.pay_sale(
            session.sale_id, cashier_id, "CASH", "LBP", 405000, now=t0 + timedelta(minutes=90)
        )

        assert sale.totals == Money("4.50", 405000)
        ended = session_service.get_session(session.id)
        assert ended.status == SESSION_STATUS_COMPLETED
        assert ended.duration_minutes == 90
        assert ended.total_cost == Money("3.00", 270000)
        assert ended.discount is None
        assert ended.payment_status == SESSION_PAYMENT_PAID
        assert pc_service.get_pc(pc.id).status == PC_STATUS_AVAILABLE

    def test_failed_payment_leaves_session_running(self, db_session, pc, cashier_id, t0):
        session = session_service.start_session(pc.id, cashier_id, now=t0)

        with pytest.raises(InsufficientFundsError):
            payment_service.pay_sale(session.sale_id, cashier_id, "CASH", "USD", "1", now=t0 + timedelta(minutes=90))

        still = session_service.get_session(session.id)
        assert still.status == SESSION_STATUS_ACTIVE
        assert still.total_cost == Money.zero()
        assert pc_service.get_pc(pc.id).status == PC_STATUS_OCCUPIED
        assert sale_service.get_sale(session.sale_id).totals == Money.zero()

    def test_lock_sent_for_forced_sessions(self, app, db_session, pc, cashier_id, t0):
        session = session_service.start_session(pc.id, cashier_id, now=t0)
        events = []
        notification_service.register_notifier(app, lambda event, payload: events.append((event, payload)))
        try:
            payment_service.pay_sale(session.sale_id, cashier_id, "CASH", "USD", "1", now=t0 + timedelta(minutes=30))
        finally:
            app.extensions.pop(notification_service.EXTENSION_KEY, None)

        assert events == [(notification_service.EVENT_PC_LOCK, {
            "pc_id": pc.id,
            "session_number": session.session_number,
            "reason": "payment",
        })]

    def test_cancelled_sessions_are_not_charged(self, db_session, pc, second_pc, cashier_id, t0):
        first = session_service.start_session(pc.id, cashier_id, now=t0)
        second = session_service.start_session(second_pc.id, cashier_id, existing_sale_id=first.sale_id, now=t0)
        session_service.cancel_session(second.id, cashier_id, now=t0 + timedelta(minutes=10))

        sale = payment_service.pay_sale(first.sale_id, cashier_id, "CASH", "USD", "1", now=t0 + timedelta(minutes=30))
        assert sale.totals == Money("1.00", 90000)
        assert len(sale.items) == 1
