from datetime import date

import pytest

from arcadepos.errors import ConflictError, ValidationError
from arcadepos.extensions import db
from arcadepos.models import DocumentSequence, Sale
from arcadepos.models.documents import SEQUENCE_INVOICE, SEQUENCE_SESSION
from arcadepos.services import sequence_service
from arcadepos.services.concurrency import run_atomic


class TestSequenceNumbers:
    def test_format(self):
        assert sequence_service.format_sequence_number(date(2026, 3, 4), 7) == "20260304-0007"

    def test_first_number_of_day_is_one_then_increments(self, db_session):
        day = date(2026, 3, 14)
        first = sequence_service.next_sequence_number(SEQUENCE_SESSION, day=day)
        second = sequence_service.next_sequence_number(SEQUENCE_SESSION, day=day)
        db.session.commit()
        assert first == "20260314-0001"
        assert second == "20260314-0002"

    def test_counter_resets_each_day(self, db_session):
        sequence_service.next_sequence_number(SEQUENCE_INVOICE, day=date(2026, 3, 14))
        sequence_service.next_sequence_number(SEQUENCE_INVOICE, day=date(2026, 3, 14))
        nxt = sequence_service.next_sequence_number(SEQUENCE_INVOICE, day=date(2026, 3, 15))
        assert nxt == "20260315-0001"

    def test_kinds_are_independent(self, db_session):
        day = date(2026, 3, 14)
        sequence_service.next_sequence_number(SEQUENCE_SESSION, day=day)
        assert sequence_service.next_sequence_number(SEQUENCE_INVOICE, day=day) == "20260314-0001"

    def test_unknown_kind(self, db_session):
        with pytest.raises(ValidationError):
            sequence_service.next_sequence_number("RECEIPT")


class TestAllocateNumber:
    def _existing_sale(self, invoice_number):
        sale = Sale(invoice_number=invoice_number, cashier_user_id=1)
        db.session.add(sale)
        db.session.commit()

    def test_collision_is_retried_once(self, db_session):
        day = date(2026, 3, 14)
        self._existing_sale("20260314-0001")

        number = sequence_service.allocate_number(SEQUENCE_INVOICE, day=day)
        assert number == "20260314-0002"

    def test_second_collision_is_a_conflict(self, db_session):
        day = date(2026, 3, 14)
        self._existing_sale("20260314-0001")
        self._existing_sale("20260314-0002")

        with pytest.raises(ConflictError) as exc:
            sequence_service.allocate_number(SEQUENCE_INVOICE, day=day)
        assert exc.value.details["attempted"] == ["20260314-0001", "20260314-0002"]


class TestWithinUnitOfWork:
    def test_first_numbers_of_both_kinds_in_one_transaction(self, db_session):
        day = date(2026, 3, 14)

        def _op():
            return (
                sequence_service.next_sequence_number(SEQUENCE_SESSION, day=day),
                sequence_service.next_sequence_number(SEQUENCE_INVOICE, day=day),
            )

        assert run_atomic(_op) == ("20260314-0001", "20260314-0001")
        counters = {row.sequence_type: row.next_number for row in db.session.query(DocumentSequence).all()}
        assert counters == {SEQUENCE_SESSION: 2, SEQUENCE_INVOICE: 2}

    def test_lost_insert_race_keeps_staged_changes(self, db_session, monkeypatch):
        day = date(2026, 3, 14)
        # Another writer already opened today's invoice counter
        sequence_service.next_sequence_number(SEQUENCE_INVOICE, day=day)
        db.session.commit()

        real_bump = sequence_service._bump_counter
        seen = []

        def bump_before_other_insert_visible(kind, on_day):
            seen.append(kind)
            if kind == SEQUENCE_INVOICE and seen.count(SEQUENCE_INVOICE) == 1:
                return None
            return real_bump(kind, on_day)

        monkeypatch.setattr(sequence_service, "_bump_counter", bump_before_other_insert_visible)

        def _op():
            session_number = sequence_service.next_sequence_number(SEQUENCE_SESSION, day=day)
            db.session.add(Sale(invoice_number="20260314-9999", cashier_user_id=1))
            invoice_number = sequence_service.next_sequence_number(SEQUENCE_INVOICE, day=day)
            return session_number, invoice_number

        assert run_atomic(_op) == ("20260314-0001", "20260314-0002")
        assert db.session.query(Sale).filter_by(invoice_number="20260314-9999").count() == 1
        assert sequence_service.next_sequence_number(SEQUENCE_SESSION, day=day) == "20260314-0002"
