"""Shared fixtures: in-memory database, frozen clock, recording audit sink, components."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.database import build_session_factory, create_tables
from app.models.driver import Driver
from app.models.payment import Payment
from app.models.slot import Slot
from app.models.ticket import Ticket
from app.models.user import User
from app.models.vehicle import Vehicle
from app.schemas.directory import DriverIn, VehicleIn
from app.services.payment_ledger import PaymentLedger
from app.services.shift_account import ShiftAccount
from app.services.slot_registry import SlotRegistry
from app.services.ticket_lifecycle import TicketLifecycle

CASHIER_ID = 1
OTHER_CASHIER_ID = 2
ADMIN_ID = 3

# id, slot_number, hourly_rate
SLOTS = [(1, "A01", "5.00"), (2, "A02", "5.00"), (3, "V01", "8.00")]


class FrozenClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingAuditSink:
    def __init__(self):
        self.events = []

    def emit(self, event):
        self.events.append(event)

    def actions(self):
        return [e.action for e in self.events]


def seed_reference_data(session, now: datetime):
    session.add_all([
        User(id=CASHIER_ID, username="cashier1", full_name="Cashier One", role="cashier", is_active=True),
        User(id=OTHER_CASHIER_ID, username="cashier2", full_name="Cashier Two", role="cashier", is_active=True),
        User(id=ADMIN_ID, username="admin", full_name="Admin", role="admin", is_active=True),
    ])
    for slot_id, number, rate in SLOTS:
        session.add(Slot(id=slot_id, slot_number=number, slot_name=f"Slot {number}", status="vacant",
                         slot_type="standard", hourly_rate=Decimal(rate), daily_rate=Decimal("50.00"),
                         created_at=now, updated_at=now))
    session.commit()


def make_vehicle(plate="ABC-1234", **kwargs) -> VehicleIn:
    fields = {"make": "Toyota", "model": "Corolla", "color": "white"}
    fields.update(kwargs)
    return VehicleIn(license_plate=plate, **fields)


def make_driver(name="Jane Doe", **kwargs) -> DriverIn:
    fields = {"phone": "555-0100"}
    fields.update(kwargs)
    return DriverIn(full_name=name, **fields)


def make_settled_ticket(session, *, slot_id=1, cashier_id=CASHIER_ID, check_in=None, check_out=None,
                        total_amount=None, plate="PAID-001", with_payment=False, payment_date=None,
                        payment_cashier_id=None):
    """Insert a paid ticket directly, optionally without its payment row."""
    vehicle = Vehicle(license_plate=plate)
    driver = Driver(full_name=f"Driver {plate}")
    session.add_all([vehicle, driver])
    session.flush()
    ticket = Ticket(
        ticket_number=f"TKT-{plate}",
        slot_id=slot_id,
        vehicle_id=vehicle.id,
        driver_id=driver.id,
        cashier_id=cashier_id,
        check_in_time=check_in,
        check_out_time=check_out,
        total_amount=total_amount,
        payment_status="paid",
    )
    session.add(ticket)
    session.flush()
    if with_payment:
        session.add(Payment(
            ticket_id=ticket.id,
            amount=total_amount,
            payment_method="cash",
            cashier_id=payment_cashier_id or cashier_id,
            receipt_number=f"RCP-{plate}",
            payment_date=payment_date or check_out,
        ))
    session.commit()
    return ticket


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 2, 9, 0, 0))


@pytest.fixture
def audit():
    return RecordingAuditSink()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine, clock):
    session = build_session_factory(engine)()
    seed_reference_data(session, clock())
    yield session
    session.close()


@pytest.fixture
def slots(db, audit, clock):
    return SlotRegistry(db, audit, clock=clock)


@pytest.fixture
def ledger(db, audit, clock):
    return PaymentLedger(db, audit, clock=clock)


@pytest.fixture
def lifecycle(db, slots, ledger, audit, clock):
    return TicketLifecycle(db, slots, ledger, audit, clock=clock)


@pytest.fixture
def shifts(db, ledger, audit, clock):
    return ShiftAccount(db, ledger, audit, clock=clock)
