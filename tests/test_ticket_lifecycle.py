"""Unit tests for check-in, check-out and receipts."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from decimal import Decimal
from unittest.mock import patch
from app.exceptions import (
    AlreadyPaid,
    SlotNotFound,
    SlotUnavailable,
    StorageError,
    TicketNotFound,
    TicketNotSettled,
    ValidationError,
)
from app.models.driver import Driver
from app.models.payment import Payment
from app.models.slot import Slot
from app.models.ticket import Ticket
from app.models.vehicle import Vehicle
from conftest import CASHIER_ID, OTHER_CASHIER_ID, make_driver, make_settled_ticket, make_vehicle


def assert_slot_matches_open_tickets(db):
    """A slot is occupied exactly when it has one pending ticket."""
    db.expire_all()
    for slot in db.query(Slot).all():
        open_count = db.query(Ticket).filter(
            Ticket.slot_id == slot.id, Ticket.payment_status == "pending"
        ).count()
        if slot.status == "occupied":
            assert open_count == 1, slot.slot_number
        else:
            assert open_count == 0, slot.slot_number


class TestCheckIn:
    def test_check_in_occupies_slot(self, db, lifecycle, audit, clock):
        ticket = lifecycle.check_in(1, make_vehicle(), make_driver(), cashier_id=CASHIER_ID, notes="front gate")

        assert ticket.ticket_number.startswith("TKT-")
        assert ticket.payment_status == "pending"
        assert ticket.check_in_time == clock()
        assert ticket.check_out_time is None
        assert ticket.notes == "front gate"
        assert db.get(Slot, 1).status == "occupied"
        assert audit.actions() == ["CHECK_IN"]
        assert audit.events[0].after["license_plate"] == "ABC-1234"
        assert_slot_matches_open_tickets(db)

    def test_plate_is_normalised(self, lifecycle):
        ticket = lifecycle.check_in(1, make_vehicle(plate=" abc-1234 "), make_driver(), cashier_id=CASHIER_ID)
        assert ticket.vehicle.license_plate == "ABC-1234"

    def test_ticket_numbers_are_unique(self, lifecycle):
        a = lifecycle.check_in(1, make_vehicle("AAA-1"), make_driver("A"), cashier_id=CASHIER_ID)
        b = lifecycle.check_in(2, make_vehicle("BBB-2"), make_driver("B"), cashier_id=CASHIER_ID)
        assert a.ticket_number != b.ticket_number

    def test_occupied_slot_rejected(self, db, lifecycle, audit):
        lifecycle.check_in(1, make_vehicle("AAA-1"), make_driver(), cashier_id=CASHIER_ID)
        with pytest.raises(SlotUnavailable):
            lifecycle.check_in(1, make_vehicle("BBB-2"), make_driver("Other"), cashier_id=CASHIER_ID)
        assert db.query(Ticket).count() == 1
        assert audit.actions() == ["CHECK_IN"]

    def test_unknown_slot_rejected(self, db, lifecycle):
        with pytest.raises(SlotNotFound):
            lifecycle.check_in(99, make_vehicle(), make_driver(), cashier_id=CASHIER_ID)
        assert db.query(Vehicle).count() == 0

    def test_missing_fields_listed(self, lifecycle):
        with pytest.raises(ValidationError) as exc:
            lifecycle.check_in(None, make_vehicle(plate="   "), make_driver(name="  "), cashier_id=None)
        assert exc.value.details["missing"] == ["slot_id", "license_plate", "driver_name", "cashier_id"]

    def test_failure_after_reserve_frees_slot(self, db, lifecycle, audit):
        with patch("app.services.ticket_lifecycle.upsert_driver", side_effect=RuntimeError("directory down")):
            with pytest.raises(RuntimeError):
                lifecycle.check_in(1, make_vehicle(), make_driver(), cashier_id=CASHIER_ID)

        db.expire_all()
        assert db.get(Slot, 1).status == "vacant"
        assert db.query(Ticket).count() == 0
        assert db.query(Vehicle).count() == 0
        assert audit.events == []

    def test_returning_vehicle_and_driver_reused(self, db, lifecycle, clock):
        first = lifecycle.check_in(1, make_vehicle(color="white"), make_driver(), cashier_id=CASHIER_ID)
        clock.advance(hours=2)
        lifecycle.check_out(first.id, "cash", cashier_id=CASHIER_ID)

        clock.advance(hours=1)
        second = lifecycle.check_in(2, make_vehicle(color="red"), make_driver(), cashier_id=CASHIER_ID)

        assert second.vehicle_id == first.vehicle_id
        assert second.driver_id == first.driver_id
        assert db.query(Vehicle).count() == 1
        assert db.query(Driver).count() == 1
        assert db.get(Vehicle, second.vehicle_id).color == "red"


class TestCheckOut:
    def test_end_to_end(self, db, lifecycle, audit, clock):
        ticket = lifecycle.check_in(1, make_vehicle(), make_driver(), cashier_id=CASHIER_ID)
        clock.advance(hours=1, minutes=12)

        receipt = lifecycle.check_out(ticket.id, "cash", cashier_id=CASHIER_ID)

        assert receipt.amount == Decimal("10.00")
        assert receipt.duration_hours == Decimal("1.20")
        assert receipt.slot_number == "A01"
        assert receipt.license_plate == "ABC-1234"
        assert receipt.driver_name == "Jane Doe"
        assert receipt.payment_method == "cash"
        assert receipt.receipt_number.startswith("RCP-")
        assert receipt.cashier_name == "Cashier One"
        assert receipt.recovered is False

        db.expire_all()
        stored = db.get(Ticket, ticket.id)
        assert stored.payment_status == "paid"
        assert stored.check_out_time == clock()
        assert stored.total_amount == Decimal("10.00")
        assert db.get(Slot, 1).status == "vacant"
        assert db.query(Payment).filter(Payment.ticket_id == ticket.id).count() == 1
        assert audit.actions() == ["CHECK_IN", "CHECK_OUT"]
        assert_slot_matches_open_tickets(db)

    def test_immediate_checkout_charges_minimum(self, lifecycle):
        ticket = lifecycle.check_in(3, make_vehicle(), make_driver(), cashier_id=CASHIER_ID)
        receipt = lifecycle.check_out(ticket.id, "card", reference_number="AUTH-9", cashier_id=CASHIER_ID)
        assert receipt.amount == Decimal("8.00")
        assert receipt.reference_number == "AUTH-9"

    def test_unknown_ticket(self, lifecycle):
        with pytest.raises(TicketNotFound):
            lifecycle.check_out(12345, "cash")

    def test_second_checkout_rejected(self, db, lifecycle, audit, clock):
        ticket = lifecycle.check_in(1, make_vehicle(), make_driver(), cashier_id=CASHIER_ID)
        clock.advance(minutes=30)
        lifecycle.check_out(ticket.id, "mfs", cashier_id=CASHIER_ID)

        with pytest.raises(AlreadyPaid):
            lifecycle.check_out(ticket.id, "cash", cashier_id=CASHIER_ID)
        assert db.query(Payment).count() == 1
        assert audit.actions().count("CHECK_OUT") == 1

    def test_invalid_method_changes_nothing(self, db, lifecycle):
        ticket = lifecycle.check_in(1, make_vehicle(), make_driver(), cashier_id=CASHIER_ID)
        with pytest.raises(ValidationError):
            lifecycle.check_out(ticket.id, "bitcoin")
        db.expire_all()
        assert db.get(Ticket, ticket.id).payment_status == "pending"
        assert db.get(Slot, 1).status == "occupied"

    def test_payment_failure_rolls_back_everything(self, db, lifecycle, audit, clock):
        ticket = lifecycle.check_in(1, make_vehicle(), make_driver(), cashier_id=CASHIER_ID)
        # A stray row for the same ticket makes the payment insert violate the unique key
        db.add(Payment(ticket_id=ticket.id, amount=Decimal("1.00"), payment_method="cash",
                       cashier_id=CASHIER_ID, receipt_number="RCP-STRAY", payment_date=clock()))
        db.commit()

        clock.advance(hours=2)
        with pytest.raises(StorageError):
            lifecycle.check_out(ticket.id, "cash", cashier_id=CASHIER_ID)

        db.expire_all()
        stored = db.get(Ticket, ticket.id)
        assert stored.payment_status == "pending"
        assert stored.check_out_time is None
        assert db.get(Slot, 1).status == "occupied"
        assert audit.actions() == ["CHECK_IN"]

    def test_payment_attributed_to_collecting_cashier(self, db, lifecycle):
        ticket = lifecycle.check_in(1, make_vehicle(), make_driver(), cashier_id=CASHIER_ID)
        lifecycle.check_out(ticket.id, "cash", cashier_id=OTHER_CASHIER_ID)
        assert db.query(Payment).one().cashier_id == OTHER_CASHIER_ID

    def test_audit_events_use_injected_clock(self, lifecycle, audit, clock):
        ticket = lifecycle.check_in(1, make_vehicle(), make_driver(), cashier_id=CASHIER_ID)
        clock.advance(hours=2)
        lifecycle.check_out(ticket.id, "cash", cashier_id=CASHIER_ID)

        check_in_event, check_out_event = audit.events
        assert check_in_event.timestamp == ticket.check_in_time
        assert check_out_event.timestamp == clock()

    def test_audit_failure_does_not_undo_checkout(self, db, lifecycle, audit):
        ticket = lifecycle.check_in(1, make_vehicle(), make_driver(), cashier_id=CASHIER_ID)
        with patch.object(audit, "emit", side_effect=RuntimeError("sink offline")):
            receipt = lifecycle.check_out(ticket.id, "cash", cashier_id=CASHIER_ID)
        assert receipt.amount == Decimal("5.00")
        db.expire_all()
        assert db.get(Ticket, ticket.id).payment_status == "paid"


class TestReads:
    def test_open_ticket_has_live_estimate(self, lifecycle, clock):
        ticket = lifecycle.check_in(1, make_vehicle(), make_driver(), cashier_id=CASHIER_ID)
        clock.advance(hours=2, minutes=30)

        view = lifecycle.get_ticket(ticket.id)

        assert view.payment_status == "pending"
        assert view.elapsed_hours == Decimal("2.50")
        assert view.estimated_amount == Decimal("15.00")
        assert view.total_amount is None
        assert view.slot_number == "A01"
        assert view.driver_phone == "555-0100"

    def test_settled_ticket_shows_final_figures(self, lifecycle, clock):
        ticket = lifecycle.check_in(1, make_vehicle(), make_driver(), cashier_id=CASHIER_ID)
        clock.advance(hours=3)
        lifecycle.check_out(ticket.id, "cash", cashier_id=CASHIER_ID)
        clock.advance(hours=5)

        view = lifecycle.get_ticket(ticket.id)
        assert view.estimated_amount == Decimal("15.00")
        assert view.elapsed_hours == Decimal("3.00")

    def test_get_unknown_ticket(self, lifecycle):
        with pytest.raises(TicketNotFound):
            lifecycle.get_ticket(404)

    def test_search_by_plate_and_number(self, lifecycle, clock):
        a = lifecycle.check_in(1, make_vehicle("DHA-1001"), make_driver("A"), cashier_id=CASHIER_ID)
        clock.advance(minutes=5)
        b = lifecycle.check_in(2, make_vehicle("DHA-2002"), make_driver("B"), cashier_id=CASHIER_ID)
        clock.advance(minutes=5)
        lifecycle.check_in(3, make_vehicle("CTG-3003"), make_driver("C"), cashier_id=CASHIER_ID)

        assert [t.id for t in lifecycle.search_tickets("dha")] == [b.id, a.id]
        assert [t.id for t in lifecycle.search_tickets(a.ticket_number[-8:].lower())] == [a.id]
        assert lifecycle.search_tickets("%") == []

    def test_blank_search_lists_pending(self, lifecycle, clock):
        a = lifecycle.check_in(1, make_vehicle("AAA-1"), make_driver("A"), cashier_id=CASHIER_ID)
        clock.advance(minutes=10)
        b = lifecycle.check_in(2, make_vehicle("BBB-2"), make_driver("B"), cashier_id=CASHIER_ID)
        lifecycle.check_out(a.id, "cash", cashier_id=CASHIER_ID)

        assert [t.id for t in lifecycle.search_tickets("  ")] == [b.id]

    def test_blank_search_respects_limit(self, lifecycle, clock):
        first = lifecycle.check_in(1, make_vehicle("AAA-1"), make_driver("A"), cashier_id=CASHIER_ID)
        for slot_id, plate in ((2, "BBB-2"), (3, "CCC-3")):
            clock.advance(minutes=5)
            lifecycle.check_in(slot_id, make_vehicle(plate), make_driver(plate), cashier_id=CASHIER_ID)

        assert [t.id for t in lifecycle.search_tickets("", limit=1)] == [first.id]
        assert len(lifecycle.search_tickets(None, limit=2)) == 2


class TestReceipt:
    def test_receipt_for_settled_ticket(self, lifecycle, clock):
        ticket = lifecycle.check_in(1, make_vehicle(), make_driver(), cashier_id=CASHIER_ID)
        clock.advance(hours=1)
        issued = lifecycle.check_out(ticket.id, "cash", cashier_id=CASHIER_ID)

        again = lifecycle.receipt(ticket.id, actor_id=CASHIER_ID)
        assert again.receipt_number == issued.receipt_number
        assert again.amount == Decimal("5.00")

    def test_receipt_for_pending_ticket(self, lifecycle):
        ticket = lifecycle.check_in(1, make_vehicle(), make_driver(), cashier_id=CASHIER_ID)
        with pytest.raises(TicketNotSettled):
            lifecycle.receipt(ticket.id, actor_id=CASHIER_ID)

    def test_receipt_recovers_missing_payment(self, db, lifecycle, audit, clock):
        ticket = make_settled_ticket(
            db, check_in=clock(), check_out=clock(), total_amount=Decimal("12.50"),
        )

        receipt = lifecycle.receipt(ticket.id, actor_id=CASHIER_ID)

        assert receipt.amount == Decimal("12.50")
        assert receipt.recovered is True
        assert receipt.reference_number == "RECOVERY"
        assert audit.actions() == ["RECOVER_PAYMENT"]

        lifecycle.receipt(ticket.id, actor_id=CASHIER_ID)
        assert db.query(Payment).filter(Payment.ticket_id == ticket.id).count() == 1
        assert audit.actions() == ["RECOVER_PAYMENT"]
