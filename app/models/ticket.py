# app/models/ticket.py
"""
Parking tickets table — one row per vehicle stay.
Created OPEN by check-in (payment_status=pending, check_out_time NULL) and
settled exactly once by check-out. Never deleted by the engine.
"""

from sqlalchemy import Column, Integer, String, DateTime, Numeric, Text, ForeignKey
from sqlalchemy.orm import relationship
from app.database import Base


class Ticket(Base):
    __tablename__ = "parking_tickets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_number = Column(String(40), unique=True, nullable=False, index=True)
    slot_id = Column(Integer, ForeignKey("parking_slots.id"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    cashier_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    check_in_time = Column(DateTime, nullable=False, index=True)
    check_out_time = Column(DateTime)
    duration_hours = Column(Numeric(8, 2))
    total_amount = Column(Numeric(10, 2))
    payment_status = Column(String(20), default="pending", nullable=False, index=True)
    notes = Column(Text)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    slot = relationship("Slot")
    vehicle = relationship("Vehicle")
    driver = relationship("Driver")
    cashier = relationship("User")

    def __repr__(self):
        return f"<Ticket {self.ticket_number} slot={self.slot_id} status={self.payment_status}>"
