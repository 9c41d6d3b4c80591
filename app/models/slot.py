# app/models/slot.py
"""
Parking slots table.
Occupancy status is mutated only by SlotRegistry: a slot is 'occupied' exactly
while one ticket referencing it has no check_out_time.
"""

from sqlalchemy import Column, Integer, String, DateTime, Numeric
from app.database import Base


class Slot(Base):
    __tablename__ = "parking_slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slot_number = Column(String(10), unique=True, nullable=False, index=True)
    slot_name = Column(String(50))
    status = Column(String(20), default="vacant", nullable=False, index=True)
    slot_type = Column(String(20), default="standard", nullable=False)
    hourly_rate = Column(Numeric(10, 2), default=5, nullable=False)
    daily_rate = Column(Numeric(10, 2), default=50, nullable=False)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<Slot {self.slot_number} status={self.status} rate={self.hourly_rate}>"
