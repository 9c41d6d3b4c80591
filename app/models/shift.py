# app/models/shift.py
"""
Cashier shifts table.
The partial unique index allows at most one open shift per cashier per day,
enforced by the database so two concurrent opens cannot both succeed.
"""

from sqlalchemy import Column, Date, Integer, String, DateTime, Numeric, Text, ForeignKey, Index, text
from app.database import Base


class Shift(Base):
    __tablename__ = "shifts"
    __table_args__ = (
        Index(
            "uq_shifts_one_open_per_day",
            "cashier_id", "shift_date",
            unique=True,
            sqlite_where=text("status = 'open'"),
            postgresql_where=text("status = 'open'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    cashier_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    shift_date = Column(Date, nullable=False)
    open_time = Column(DateTime, nullable=False)
    close_time = Column(DateTime)
    opening_amount = Column(Numeric(10, 2), default=0, nullable=False)
    closing_amount = Column(Numeric(10, 2), default=0, nullable=False)
    total_collected = Column(Numeric(10, 2), default=0, nullable=False)
    variance = Column(Numeric(10, 2), default=0, nullable=False)
    status = Column(String(10), default="open", nullable=False)
    notes = Column(Text)

    def __repr__(self):
        return f"<Shift {self.id} cashier={self.cashier_id} date={self.shift_date} status={self.status}>"
