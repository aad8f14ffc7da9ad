from datetime import timedelta

import pytest

from arcadepos.errors import InvalidStateError, NotFoundError
from arcadepos.money import Money
from arcadepos.services import payment_service, projection_service, sale_service, session_service


class TestProjectSessionCost:
    def test_running_cost(self, db_session, pc, cashier_id, t0):
        session = session_service.start_session(pc.id, cashier_id, now=t0)
        quote = projection_service.project_session_cost(session.id, now=t0 + timedelta(minutes=90))

        assert quote["session_number"] == session.session_number
        assert quote["duration"] == 90
        assert quote["cost"] == {"usd": 3.0, "lbp": 270000}
        assert quote["hourly_rate"] == {"usd": 2.0, "lbp": 180000}
        assert quote["as_of"] == "2026-03-14T19:30:00Z"

    def test_partial_minute_is_billed(self, db_session, pc, cashier_id, t0):
        session = session_service.start_session(pc.id, cashier_id, now=t0)
        quote = projection_service.project_session_cost(session.id, now=t0 + timedelta(seconds=30))
        assert quote["duration"] == 1
        assert quote["cost"] == {"usd": 0.03, "lbp": 3000}

    def test_idempotent_and_read_only(self, db_session, pc, cashier_id, t0):
        session = session_service.start_session(pc.id, cashier_id, now=t0)
        when = t0 + timedelta(minutes=42)

        first = projection_service.project_session_cost(session.id, now=when)
        second = projection_service.project_session_cost(session.id, now=when)

        assert first == second
        assert session_service.get_session(session.id).total_cost == Money.zero()

    def test_only_active_sessions(self, db_session, pc, cashier_id, t0):
        session = session_service.start_session(pc.id, cashier_id, now=t0)
        session_service.end_session(session.id, cashier_id, now=t0 + timedelta(minutes=10))
        with pytest.raises(InvalidStateError):
            projection_service.project_session_cost(session.id, now=t0 + timedelta(minutes=20))

    def test_missing_session(self, db_session):
        with pytest.raises(NotFoundError):
            projection_service.project_session_cost(999)


class TestProjectSaleCost:
    def test_includes_running_sessions_and_sale_discount(self, db_session, pc, cashier_id, cola, sale_discount, t0):
        session = session_service.start_session(pc.id, cashier_id, now=t0)
        sale_service.add_item(session.sale_id, cola.id, quantity=2, now=t0)
        sale_service.update_sale(session.sale_id, cashier_id, sale_discount_id=sale_discount.id, now=t0)

        quote = projection_service.project_sale_cost(session.sale_id, now=t0 + timedelta(minutes=90))

        assert quote["has_active_sessions"] is True
        assert quote["subtotal_before_discount"] == {"usd": 6.0, "lbp": 540000}
        assert quote["sale_discount"]["amount"] == {"usd": 0.3, "lbp": 27000}
        assert quote["current_totals"] == {"usd": 5.7, "lbp": 513000}
        assert quote["per_session"] == [{
            "session_id": session.id,
            "session_number": session.session_number,
            "pc_id": pc.id,
            "duration": 90,
            "cost": {"usd": 3.0, "lbp": 270000},
        }]

        # Stored totals still only cover the cola
        assert sale_service.get_sale(session.sale_id).totals == Money("2.85", 256500)

    def test_no_active_sessions_equals_stored_totals(self, db_session, cashier_id, cola, cola_discount):
        sale = sale_service.create_sale(cashier_id, [{"product_id": cola.id, "quantity": 3, "discount_id": cola_discount.id}])
        quote = projection_service.project_sale_cost(sale.id)

        assert quote["has_active_sessions"] is False
        assert quote["per_session"] == []
        assert quote["current_totals"] == sale.totals.to_dict()

    def test_quote_matches_payment_charge(self, db_session, pc, second_pc, cashier_id, cola, session_discount, t0):
        first = session_service.start_session(pc.id, cashier_id, now=t0)
        second = session_service.start_session(second_pc.id, cashier_id, existing_sale_id=first.sale_id, now=t0)
        sale_service.add_item(first.sale_id, cola.id, now=t0)
        session_service.end_session(first.id, cashier_id, discount_id=session_discount.id, now=t0 + timedelta(minutes=45))

        when = t0 + timedelta(minutes=77, seconds=10)
        quote = projection_service.project_sale_cost(first.sale_id, now=when)

        paid = payment_service.pay_sale(
            first.sale_id, cashier_id, "CASH", "LBP", quote["current_totals"]["lbp"], now=when
        )
        assert paid.totals.to_dict() == quote["current_totals"]
        assert session_service.get_session(second.id).duration_minutes == 78
