# app/services/shift_account.py
"""
Cashier shifts and cash-drawer reconciliation.

One open shift per cashier per calendar day. open() checks first and the
partial unique index on shifts settles any race; close() is a conditional
update on status='open', so two concurrent closes cannot both apply.
On close: total_collected comes from PaymentLedger and
variance = closing_amount - total_collected.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database import unit_of_work
from app.exceptions import NoOpenShift, ShiftAlreadyOpen, ValidationError
from app.models.enums import PaymentStatus, ShiftStatus
from app.models.payment import Payment
from app.models.shift import Shift
from app.models.ticket import Ticket
from app.services.audit_sink import AuditEvent, AuditSink, CLOSE_SHIFT, OPEN_SHIFT, emit_safely
from app.services.payment_ledger import CENT, PaymentLedger
from app.utils.clock import Clock, day_bounds, utcnow
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ShiftSummary:
    cashier_id: int
    date: date
    tickets_today: int
    paid_today: int
    pending_today: int
    total_collected: Decimal
    shift: Optional[Shift] = None


def _money(value, field: str) -> Decimal:
    try:
        amount = Decimal(str(value if value is not None else 0)).quantize(CENT)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", details={field: value})
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative", details={field: str(amount)})
    return amount


class ShiftAccount:
    def __init__(self, db: Session, ledger: PaymentLedger, audit: AuditSink, clock: Clock = utcnow):
        self.db = db
        self.ledger = ledger
        self.audit = audit
        self.clock = clock

    def today(self) -> date:
        return self.clock().date()

    def current(self, cashier_id: int) -> Optional[Shift]:
        """Today's open shift for the cashier, if any."""
        return (
            self.db.query(Shift)
            .filter(
                Shift.cashier_id == cashier_id,
                Shift.shift_date == self.today(),
                Shift.status == ShiftStatus.OPEN.value,
            )
            .order_by(Shift.open_time.desc())
            .first()
        )

    def open(self, cashier_id: int, opening_amount=0, notes: Optional[str] = None) -> Shift:
        amount = _money(opening_amount, "opening_amount")
        if self.current(cashier_id) is not None:
            raise ShiftAlreadyOpen(
                "A shift is already open for today", details={"cashier_id": cashier_id}
            )

        now = self.clock()
        shift = Shift(
            cashier_id=cashier_id,
            shift_date=now.date(),
            open_time=now,
            opening_amount=amount,
            closing_amount=Decimal("0.00"),
            total_collected=Decimal("0.00"),
            variance=Decimal("0.00"),
            status=ShiftStatus.OPEN.value,
            notes=notes,
        )
        try:
            with unit_of_work(self.db):
                self.db.add(shift)
        except IntegrityError:
            raise ShiftAlreadyOpen(
                "A shift is already open for today", details={"cashier_id": cashier_id}
            )

        logger.info(f"[SHIFT] Opened #{shift.id} for cashier {cashier_id} with {amount}")
        emit_safely(self.audit, AuditEvent(
            timestamp=now,
            actor_id=cashier_id,
            action=OPEN_SHIFT,
            entity_type="shifts",
            entity_id=shift.id,
            before=None,
            after={"shift_date": shift.shift_date, "opening_amount": amount, "notes": notes},
        ))
        return shift

    def close(self, cashier_id: int, closing_amount=0, notes: Optional[str] = None) -> Shift:
        amount = _money(closing_amount, "closing_amount")
        shift = self.current(cashier_id)
        if shift is None:
            raise NoOpenShift("No open shift found", details={"cashier_id": cashier_id})

        now = self.clock()
        collected = self.ledger.total_collected(cashier_id, shift.shift_date)
        variance = amount - collected
        merged_notes = "\n".join(n for n in (shift.notes, notes) if n) or None

        with unit_of_work(self.db):
            closed = (
                self.db.query(Shift)
                .filter(Shift.id == shift.id, Shift.status == ShiftStatus.OPEN.value)
                .update(
                    {
                        Shift.close_time: now,
                        Shift.closing_amount: amount,
                        Shift.total_collected: collected,
                        Shift.variance: variance,
                        Shift.status: ShiftStatus.CLOSED.value,
                        Shift.notes: merged_notes,
                    },
                    synchronize_session="fetch",
                )
            )
            if closed != 1:
                raise NoOpenShift("Shift was closed by another session", details={"shift_id": shift.id})

        logger.info(
            f"[SHIFT] Closed #{shift.id} for cashier {cashier_id}: "
            f"declared={amount} collected={collected} variance={variance}"
        )
        emit_safely(self.audit, AuditEvent(
            timestamp=now,
            actor_id=cashier_id,
            action=CLOSE_SHIFT,
            entity_type="shifts",
            entity_id=shift.id,
            before={"status": ShiftStatus.OPEN.value},
            after={
                "status": ShiftStatus.CLOSED.value,
                "closing_amount": amount,
                "total_collected": collected,
                "variance": variance,
            },
        ))
        return shift

    def summary(self, cashier_id: int) -> ShiftSummary:
        """Today's activity for tickets this cashier checked in. Read-only."""
        today = self.today()
        start, end = day_bounds(today)
        total, paid, pending, collected = (
            self.db.query(
                func.count(Ticket.id),
                func.coalesce(func.sum(case((Ticket.payment_status == PaymentStatus.PAID.value, 1), else_=0)), 0),
                func.coalesce(func.sum(case((Ticket.payment_status == PaymentStatus.PENDING.value, 1), else_=0)), 0),
                func.coalesce(func.sum(Payment.amount), 0),
            )
            .select_from(Ticket)
            .outerjoin(Payment, Payment.ticket_id == Ticket.id)
            .filter(
                Ticket.cashier_id == cashier_id,
                Ticket.check_in_time >= start,
                Ticket.check_in_time < end,
            )
            .one()
        )
        return ShiftSummary(
            cashier_id=cashier_id,
            date=today,
            tickets_today=int(total or 0),
            paid_today=int(paid or 0),
            pending_today=int(pending or 0),
            total_collected=Decimal(str(collected or 0)).quantize(CENT),
            shift=self.current(cashier_id),
        )
