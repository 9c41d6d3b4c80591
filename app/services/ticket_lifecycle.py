# app/services/ticket_lifecycle.py
"""
Ticket lifecycle: check-in and check-out.

States:
  OPEN      check_in_time set, check_out_time NULL, payment_status=pending
  SETTLED   check_out_time set, payment_status=paid, exactly one payment row
  CANCELLED reserved terminal status (reachable from OPEN only, unused)

How it works:
  - check_in reserves the slot, upserts vehicle + driver and inserts the ticket
    in one unit of work. If anything fails the rollback also undoes the
    reservation, so a slot is never left occupied without a ticket.
  - check_out prices the stay, then in one unit of work settles the ticket
    (guarded on payment_status=pending), writes the payment and frees the
    slot. Either all three writes land or none do.
  - receipt() repairs a paid ticket whose payment row is missing by running
    PaymentLedger.recover_missing_payment.
Audit events are emitted after the commit and can never undo it.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import unit_of_work
from app.exceptions import (
    AlreadyPaid,
    PaymentAlreadyExists,
    PaymentRecordMissing,
    StorageError,
    TicketNotFound,
    TicketNotSettled,
    ValidationError,
)
from app.models.enums import PaymentStatus
from app.models.payment import Payment
from app.models.ticket import Ticket
from app.models.vehicle import Vehicle
from app.schemas.directory import DriverIn, VehicleIn
from app.services.audit_sink import AuditEvent, AuditSink, CHECK_IN, CHECK_OUT, emit_safely
from app.services.directory_service import upsert_driver, upsert_vehicle
from app.services.payment_ledger import (
    CENT,
    PaymentLedger,
    compute_amount,
    elapsed_hours,
    parse_payment_method,
)
from app.services.slot_registry import SlotRegistry
from app.utils.clock import Clock, utcnow
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Receipt:
    ticket_id: int
    ticket_number: str
    slot_number: str
    slot_name: Optional[str]
    license_plate: str
    make: Optional[str]
    model: Optional[str]
    color: Optional[str]
    driver_name: str
    check_in_time: datetime
    check_out_time: Optional[datetime]
    duration_hours: Optional[Decimal]
    amount: Decimal
    payment_method: str
    reference_number: Optional[str]
    receipt_number: str
    payment_date: datetime
    cashier_name: Optional[str]
    recovered: bool = False


@dataclass
class TicketView:
    id: int
    ticket_number: str
    payment_status: str
    slot_id: int
    slot_number: str
    slot_name: Optional[str]
    hourly_rate: Decimal
    license_plate: str
    make: Optional[str]
    model: Optional[str]
    color: Optional[str]
    driver_name: str
    driver_phone: Optional[str]
    cashier_id: int
    check_in_time: datetime
    check_out_time: Optional[datetime]
    duration_hours: Optional[Decimal]
    total_amount: Optional[Decimal]
    # Live figures for an OPEN ticket, the settled ones otherwise
    elapsed_hours: Decimal
    estimated_amount: Decimal


def _hours(value: float) -> Decimal:
    return Decimal(str(max(0.0, value))).quantize(CENT)


class TicketLifecycle:
    def __init__(self, db: Session, slots: SlotRegistry, ledger: PaymentLedger,
                 audit: AuditSink, clock: Clock = utcnow):
        self.db = db
        self.slots = slots
        self.ledger = ledger
        self.audit = audit
        self.clock = clock

    @staticmethod
    def new_ticket_number() -> str:
        return f"{settings.TICKET_PREFIX}-{uuid.uuid4().hex.upper()}"

    def _load(self, ticket_id: int) -> Ticket:
        ticket = self.db.get(Ticket, ticket_id)
        if ticket is None:
            raise TicketNotFound(
                "The requested parking ticket does not exist.", details={"ticket_id": ticket_id}
            )
        return ticket

    # ── Check-in ─────────────────────────────────────────────────────────────

    @staticmethod
    def _validate_check_in(slot_id, vehicle: VehicleIn, driver: DriverIn, cashier_id):
        missing = []
        if not slot_id:
            missing.append("slot_id")
        if vehicle is None or not (vehicle.license_plate or "").strip():
            missing.append("license_plate")
        if driver is None or not (driver.full_name or "").strip():
            missing.append("driver_name")
        if not cashier_id:
            missing.append("cashier_id")
        if missing:
            raise ValidationError("Required fields are missing", details={"missing": missing})

    def check_in(self, slot_id: int, vehicle: VehicleIn, driver: DriverIn,
                 cashier_id: int, notes: Optional[str] = None) -> Ticket:
        self._validate_check_in(slot_id, vehicle, driver, cashier_id)
        now = self.clock()

        try:
            with unit_of_work(self.db):
                slot = self.slots.reserve(slot_id)
                v = upsert_vehicle(self.db, vehicle, now)
                d = upsert_driver(self.db, driver, now)
                ticket = Ticket(
                    ticket_number=self.new_ticket_number(),
                    slot_id=slot.id,
                    vehicle_id=v.id,
                    driver_id=d.id,
                    cashier_id=cashier_id,
                    check_in_time=now,
                    payment_status=PaymentStatus.PENDING.value,
                    notes=notes,
                    created_at=now,
                    updated_at=now,
                )
                self.db.add(ticket)
                self.db.flush()
        except IntegrityError as exc:
            logger.error(f"[CHECK_IN] Ticket insert failed for slot {slot_id}: {exc}", exc_info=True)
            raise StorageError("Failed to create parking ticket") from exc

        logger.info(
            f"[CHECK_IN] {ticket.ticket_number} | Slot={slot.slot_number} | "
            f"Plate={vehicle.license_plate} | Cashier={cashier_id}"
        )
        emit_safely(self.audit, AuditEvent(
            timestamp=now,
            actor_id=cashier_id,
            action=CHECK_IN,
            entity_type="parking_tickets",
            entity_id=ticket.id,
            before=None,
            after={
                "ticket_number": ticket.ticket_number,
                "slot_id": slot.id,
                "slot_number": slot.slot_number,
                "license_plate": vehicle.license_plate,
                "driver_name": driver.full_name,
            },
        ))
        return ticket

    # ── Check-out ────────────────────────────────────────────────────────────

    def check_out(self, ticket_id: int, payment_method: str,
                  reference_number: Optional[str] = None, notes: Optional[str] = None,
                  cashier_id: Optional[int] = None) -> Receipt:
        method = parse_payment_method(payment_method)
        ticket = self._load(ticket_id)
        if ticket.payment_status != PaymentStatus.PENDING.value:
            raise AlreadyPaid(
                f"Ticket {ticket.ticket_number} is already {ticket.payment_status}",
                details={"ticket_id": ticket_id, "payment_status": ticket.payment_status},
            )

        slot = self.slots.get(ticket.slot_id)
        now = self.clock()
        duration = _hours(elapsed_hours(ticket.check_in_time, now))
        amount = compute_amount(ticket.check_in_time, now, slot.hourly_rate)
        collector = cashier_id or ticket.cashier_id

        try:
            with unit_of_work(self.db):
                settled = (
                    self.db.query(Ticket)
                    .filter(Ticket.id == ticket_id, Ticket.payment_status == PaymentStatus.PENDING.value)
                    .update(
                        {
                            Ticket.check_out_time: now,
                            Ticket.duration_hours: duration,
                            Ticket.total_amount: amount,
                            Ticket.payment_status: PaymentStatus.PAID.value,
                            Ticket.updated_at: now,
                        },
                        synchronize_session="fetch",
                    )
                )
                if settled != 1:
                    raise AlreadyPaid(
                        f"Ticket {ticket.ticket_number} was checked out by another session",
                        details={"ticket_id": ticket_id},
                    )
                payment = self.ledger.record_payment(
                    ticket_id=ticket_id,
                    amount=amount,
                    method=method.value,
                    reference_number=reference_number,
                    cashier_id=collector,
                    notes=notes,
                )
                self.slots.release(ticket.slot_id)
        except IntegrityError as exc:
            logger.error(f"[CHECK_OUT] Payment insert failed for ticket {ticket_id}: {exc}", exc_info=True)
            raise StorageError("Failed to create payment record; the check-out was not saved") from exc

        logger.info(
            f"[CHECK_OUT] {ticket.ticket_number} | Slot={slot.slot_number} | "
            f"{duration}h → {amount} ({method.value}) | Receipt={payment.receipt_number}"
        )
        emit_safely(self.audit, AuditEvent(
            timestamp=now,
            actor_id=collector,
            action=CHECK_OUT,
            entity_type="parking_tickets",
            entity_id=ticket_id,
            before={"payment_status": PaymentStatus.PENDING.value, "check_out_time": None},
            after={
                "payment_status": PaymentStatus.PAID.value,
                "check_out_time": now,
                "duration_hours": duration,
                "total_amount": amount,
                "payment_method": method.value,
                "receipt_number": payment.receipt_number,
            },
        ))
        return self._build_receipt(ticket, payment)

    # ── Reads ────────────────────────────────────────────────────────────────

    def _build_receipt(self, ticket: Ticket, payment: Payment) -> Receipt:
        slot, vehicle, driver, cashier = ticket.slot, ticket.vehicle, ticket.driver, ticket.cashier
        return Receipt(
            ticket_id=ticket.id,
            ticket_number=ticket.ticket_number,
            slot_number=slot.slot_number,
            slot_name=slot.slot_name,
            license_plate=vehicle.license_plate,
            make=vehicle.make,
            model=vehicle.model,
            color=vehicle.color,
            driver_name=driver.full_name,
            check_in_time=ticket.check_in_time,
            check_out_time=ticket.check_out_time,
            duration_hours=ticket.duration_hours,
            amount=payment.amount,
            payment_method=payment.payment_method,
            reference_number=payment.reference_number,
            receipt_number=payment.receipt_number,
            payment_date=payment.payment_date,
            cashier_name=cashier.full_name if cashier else None,
            recovered=bool(payment.recovered),
        )

    def get_ticket(self, ticket_id: int) -> TicketView:
        ticket = self._load(ticket_id)
        slot, vehicle, driver = ticket.slot, ticket.vehicle, ticket.driver

        if ticket.check_out_time is None:
            now = self.clock()
            live_hours = _hours(elapsed_hours(ticket.check_in_time, now))
            estimate = compute_amount(ticket.check_in_time, now, slot.hourly_rate)
        else:
            live_hours = ticket.duration_hours
            estimate = ticket.total_amount

        return TicketView(
            id=ticket.id,
            ticket_number=ticket.ticket_number,
            payment_status=ticket.payment_status,
            slot_id=slot.id,
            slot_number=slot.slot_number,
            slot_name=slot.slot_name,
            hourly_rate=slot.hourly_rate,
            license_plate=vehicle.license_plate,
            make=vehicle.make,
            model=vehicle.model,
            color=vehicle.color,
            driver_name=driver.full_name,
            driver_phone=driver.phone,
            cashier_id=ticket.cashier_id,
            check_in_time=ticket.check_in_time,
            check_out_time=ticket.check_out_time,
            duration_hours=ticket.duration_hours,
            total_amount=ticket.total_amount,
            elapsed_hours=live_hours,
            estimated_amount=estimate,
        )

    def list_pending(self, limit: int = 100) -> list[Ticket]:
        """Tickets awaiting check-out, longest-parked first."""
        return (
            self.db.query(Ticket)
            .filter(Ticket.payment_status == PaymentStatus.PENDING.value)
            .order_by(Ticket.check_in_time.asc())
            .limit(limit)
            .all()
        )

    def search_tickets(self, query: Optional[str], limit: int = 10) -> list[Ticket]:
        """Partial, case-insensitive match on ticket number or license plate, newest first."""
        term = (query or "").strip()
        if not term:
            return self.list_pending(limit=limit)
        needle = term.lower()
        return (
            self.db.query(Ticket)
            .join(Vehicle, Ticket.vehicle_id == Vehicle.id)
            .filter(or_(
                func.lower(Ticket.ticket_number).contains(needle, autoescape=True),
                func.lower(Vehicle.license_plate).contains(needle, autoescape=True),
            ))
            .order_by(Ticket.check_in_time.desc())
            .limit(limit)
            .all()
        )

    def receipt(self, ticket_id: int, actor_id: int) -> Receipt:
        """Receipt for a settled ticket, recovering its payment row if it went missing."""
        ticket = self._load(ticket_id)
        if ticket.payment_status != PaymentStatus.PAID.value:
            raise TicketNotSettled(
                "This ticket has not been paid yet. Please process payment first.",
                details={"ticket_id": ticket_id, "payment_status": ticket.payment_status},
            )
        try:
            payment = self.ledger.get_for_ticket(ticket_id)
        except PaymentRecordMissing:
            logger.warning(f"[RECEIPT] Ticket {ticket.ticket_number} is paid but has no payment row; recovering")
            try:
                payment = self.ledger.recover_missing_payment(ticket_id, actor_id)
            except PaymentAlreadyExists:
                payment = self.ledger.get_for_ticket(ticket_id)
        return self._build_receipt(ticket, payment)
