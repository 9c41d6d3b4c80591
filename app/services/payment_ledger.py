# app/services/payment_ledger.py
"""
Payment records, billing arithmetic and missing-payment recovery.

Billing rule: every started hour is billed at the slot's hourly rate, with a
minimum of MINIMUM_BILLABLE_HOURS (1) even for an immediate check-out.

record_payment() only flushes: check-out calls it inside its own unit of work
so the payment row commits or rolls back together with the ticket update.
recover_missing_payment() is a standalone repair and commits itself. The
unique constraint on payments.ticket_id turns a concurrent duplicate insert
into PaymentAlreadyExists instead of a second row.
"""

import math
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import unit_of_work
from app.exceptions import (
    PaymentAlreadyExists,
    PaymentRecordMissing,
    RecoveryFailed,
    TicketNotFound,
    TicketNotSettled,
    ValidationError,
)
from app.models.enums import PaymentMethod, PaymentStatus
from app.models.payment import Payment
from app.models.slot import Slot
from app.models.ticket import Ticket
from app.services.audit_sink import AuditEvent, AuditSink, RECOVER_PAYMENT, emit_safely
from app.utils.clock import Clock, day_bounds, utcnow
from app.utils.logger import get_logger

logger = get_logger(__name__)

CENT = Decimal("0.01")


def elapsed_hours(start: datetime, end: datetime) -> float:
    """Fractional hours between two timestamps."""
    return (end - start).total_seconds() / 3600


def billable_hours(duration_hours: float, minimum: int = None) -> int:
    """Round any partial hour up; never bill less than the minimum."""
    if minimum is None:
        minimum = settings.MINIMUM_BILLABLE_HOURS
    return max(minimum, math.ceil(duration_hours))


def compute_amount(check_in: datetime, check_out: datetime, hourly_rate) -> Decimal:
    hours = billable_hours(elapsed_hours(check_in, check_out))
    rate = hourly_rate if isinstance(hourly_rate, Decimal) else Decimal(str(hourly_rate))
    return (hours * rate).quantize(CENT)


def parse_payment_method(method: str) -> PaymentMethod:
    try:
        return PaymentMethod((method or "").strip().lower())
    except ValueError:
        raise ValidationError(
            f"Unsupported payment method '{method}'",
            details={"allowed": [m.value for m in PaymentMethod]},
        )


class PaymentLedger:
    def __init__(self, db: Session, audit: AuditSink, clock: Clock = utcnow):
        self.db = db
        self.audit = audit
        self.clock = clock

    @staticmethod
    def new_receipt_number() -> str:
        return f"{settings.RECEIPT_PREFIX}-{uuid.uuid4().hex.upper()}"

    def record_payment(self, ticket_id: int, amount: Decimal, method: str,
                       reference_number: Optional[str], cashier_id: int,
                       notes: Optional[str] = None, recovered: bool = False) -> Payment:
        """Add one payment row with a fresh receipt number. Flushes, does not commit."""
        payment = Payment(
            ticket_id=ticket_id,
            amount=amount,
            payment_method=parse_payment_method(method).value,
            reference_number=reference_number,
            cashier_id=cashier_id,
            receipt_number=self.new_receipt_number(),
            payment_date=self.clock(),
            notes=notes,
            recovered=recovered,
        )
        self.db.add(payment)
        self.db.flush()
        return payment

    def find_for_ticket(self, ticket_id: int) -> Optional[Payment]:
        return self.db.query(Payment).filter(Payment.ticket_id == ticket_id).first()

    def get_for_ticket(self, ticket_id: int) -> Payment:
        payment = self.find_for_ticket(ticket_id)
        if payment is None:
            raise PaymentRecordMissing(
                f"No payment record for ticket {ticket_id}", details={"ticket_id": ticket_id}
            )
        return payment

    def total_collected(self, cashier_id: int, on_date: date) -> Decimal:
        """
        Sum of payments dated on_date for tickets checked in by cashier_id.
        Attribution follows the ticket's cashier, not the payment's.
        """
        start, end = day_bounds(on_date)
        total = (
            self.db.query(func.coalesce(func.sum(Payment.amount), 0))
            .join(Ticket, Payment.ticket_id == Ticket.id)
            .filter(
                Ticket.cashier_id == cashier_id,
                Payment.payment_date >= start,
                Payment.payment_date < end,
            )
            .scalar()
        )
        return Decimal(str(total)).quantize(CENT)

    def _recovery_amount(self, ticket: Ticket) -> Decimal:
        if ticket.total_amount and Decimal(ticket.total_amount) > 0:
            return Decimal(ticket.total_amount).quantize(CENT)

        slot = self.db.get(Slot, ticket.slot_id)
        if slot is None or not slot.hourly_rate or not ticket.check_in_time or not ticket.check_out_time:
            logger.error(
                f"[RECOVERY] Cannot rebuild payment for ticket {ticket.ticket_number}: "
                f"rate={getattr(slot, 'hourly_rate', None)} in={ticket.check_in_time} out={ticket.check_out_time}"
            )
            raise RecoveryFailed(
                "Payment record not found and could not be recovered. "
                "Please contact the system administrator.",
                details={"ticket_id": ticket.id},
            )
        return compute_amount(ticket.check_in_time, ticket.check_out_time, slot.hourly_rate)

    def recover_missing_payment(self, ticket_id: int, actor_id: int) -> Payment:
        """
        Rebuild the payment row of a ticket marked paid whose payment was never
        written. Raises PaymentAlreadyExists if a row is (or concurrently becomes)
        present, so running it twice leaves exactly one row.
        """
        ticket = self.db.get(Ticket, ticket_id)
        if ticket is None:
            raise TicketNotFound(f"Ticket {ticket_id} not found", details={"ticket_id": ticket_id})
        if ticket.payment_status != PaymentStatus.PAID.value:
            raise TicketNotSettled(
                f"Ticket {ticket.ticket_number} has not been paid yet. Please process payment first.",
                details={"ticket_id": ticket_id, "payment_status": ticket.payment_status},
            )
        if self.find_for_ticket(ticket_id) is not None:
            raise PaymentAlreadyExists(
                f"Ticket {ticket.ticket_number} already has a payment record",
                details={"ticket_id": ticket_id},
            )

        amount = self._recovery_amount(ticket)
        try:
            with unit_of_work(self.db):
                payment = self.record_payment(
                    ticket_id=ticket_id,
                    amount=amount,
                    method=settings.RECOVERY_PAYMENT_METHOD,
                    reference_number=settings.RECOVERY_REFERENCE,
                    cashier_id=actor_id,
                    notes="Payment record recovered automatically",
                    recovered=True,
                )
        except IntegrityError:
            logger.info(f"[RECOVERY] Ticket {ticket_id} payment was written concurrently; nothing to do")
            raise PaymentAlreadyExists(
                f"Ticket {ticket_id} already has a payment record",
                details={"ticket_id": ticket_id},
            )

        logger.warning(
            f"[RECOVERY] Recreated payment {payment.receipt_number} for ticket "
            f"{ticket.ticket_number}: {amount}"
        )
        emit_safely(self.audit, AuditEvent(
            timestamp=self.clock(),
            actor_id=actor_id,
            action=RECOVER_PAYMENT,
            entity_type="payments",
            entity_id=payment.id,
            before=None,
            after={
                "ticket_id": ticket_id,
                "amount": amount,
                "receipt_number": payment.receipt_number,
                "recovered": True,
            },
        ))
        return payment
