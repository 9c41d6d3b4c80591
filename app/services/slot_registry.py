# app/services/slot_registry.py
"""
Slot occupancy state.

Every status transition is a single conditional UPDATE, so the check and the
change happen in one statement: two sessions racing to reserve the same slot
cannot both see it vacant. reserve() and release() join the caller's unit of
work; set_status() is an administrative action and commits on its own.
"""

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.database import unit_of_work
from app.exceptions import SlotNotFound, SlotUnavailable, ValidationError
from app.models.enums import SlotStatus
from app.models.slot import Slot
from app.models.ticket import Ticket
from app.services.audit_sink import AuditEvent, AuditSink, UPDATE_SLOT_STATUS, emit_safely
from app.utils.clock import Clock, utcnow
from app.utils.logger import get_logger

logger = get_logger(__name__)


class SlotRegistry:
    def __init__(self, db: Session, audit: AuditSink, clock: Clock = utcnow):
        self.db = db
        self.audit = audit
        self.clock = clock

    def get(self, slot_id: int) -> Slot:
        slot = self.db.get(Slot, slot_id)
        if slot is None:
            raise SlotNotFound(f"Slot {slot_id} does not exist", details={"slot_id": slot_id})
        return slot

    def list_slots(self, status: str = None) -> list[Slot]:
        q = self.db.query(Slot)
        if status:
            q = q.filter(Slot.status == status)
        return q.order_by(Slot.slot_number).all()

    def occupancy_counts(self) -> dict[str, int]:
        """Number of slots per status; statuses with no slots report 0."""
        rows = self.db.query(Slot.status, func.count(Slot.id)).group_by(Slot.status).all()
        counts = {s.value: 0 for s in SlotStatus}
        counts.update({status: count for status, count in rows})
        return counts

    def reserve(self, slot_id: int) -> Slot:
        """vacant → occupied, or fail. Does not commit."""
        changed = (
            self.db.query(Slot)
            .filter(Slot.id == slot_id, Slot.status == SlotStatus.VACANT.value)
            .update(
                {Slot.status: SlotStatus.OCCUPIED.value, Slot.updated_at: self.clock()},
                synchronize_session="fetch",
            )
        )
        slot = self.get(slot_id)
        if changed != 1:
            logger.info(f"[SLOT] Reserve refused for {slot.slot_number}: status={slot.status}")
            raise SlotUnavailable(
                f"Slot {slot.slot_number} is no longer available",
                details={"slot_id": slot_id, "status": slot.status},
            )
        return slot

    def release(self, slot_id: int) -> None:
        """occupied → vacant. Releasing a slot that is not occupied is a no-op. Does not commit."""
        changed = (
            self.db.query(Slot)
            .filter(Slot.id == slot_id, Slot.status == SlotStatus.OCCUPIED.value)
            .update(
                {Slot.status: SlotStatus.VACANT.value, Slot.updated_at: self.clock()},
                synchronize_session="fetch",
            )
        )
        if not changed:
            logger.debug(f"[SLOT] Release of slot {slot_id} was a no-op")

    def has_open_ticket(self, slot_id: int) -> bool:
        return (
            self.db.query(Ticket.id)
            .filter(Ticket.slot_id == slot_id, Ticket.check_out_time.is_(None))
            .first()
            is not None
        )

    def set_status(self, slot_id: int, status: str, actor_id: int = None) -> Slot:
        """
        Administrative override (reserved, out of service, back to vacant).
        Occupancy stays owned by the ticket lifecycle: 'occupied' cannot be set
        by hand, and a slot holding an open ticket cannot be changed.
        """
        try:
            new_status = SlotStatus(status)
        except ValueError:
            raise ValidationError(
                f"Invalid slot status '{status}'",
                details={"allowed": [s.value for s in SlotStatus]},
            )
        if new_status is SlotStatus.OCCUPIED:
            raise ValidationError("Slots become occupied only through check-in")

        slot = self.get(slot_id)
        if self.has_open_ticket(slot_id):
            raise SlotUnavailable(
                f"Slot {slot.slot_number} has a vehicle checked in; check it out first",
                details={"slot_id": slot_id},
            )

        before = {"status": slot.status}
        with unit_of_work(self.db):
            changed = (
                self.db.query(Slot)
                .filter(Slot.id == slot_id, Slot.status == slot.status)
                .update(
                    {Slot.status: new_status.value, Slot.updated_at: self.clock()},
                    synchronize_session="fetch",
                )
            )
            if changed != 1:
                raise SlotUnavailable(
                    f"Slot {slot.slot_number} changed while updating; reload and retry",
                    details={"slot_id": slot_id},
                )

        logger.info(f"[SLOT] {slot.slot_number}: {before['status']} → {new_status.value}")
        emit_safely(self.audit, AuditEvent(
            timestamp=self.clock(),
            actor_id=actor_id,
            action=UPDATE_SLOT_STATUS,
            entity_type="parking_slots",
            entity_id=slot_id,
            before=before,
            after={"status": new_status.value},
        ))
        return slot
