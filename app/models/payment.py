# app/models/payment.py
"""
Payments table — exactly one row per paid ticket.
The unique constraint on ticket_id is what makes settlement and recovery
safe against duplicate inserts. Rows are immutable once written.
"""

from sqlalchemy import Boolean, Column, Integer, String, DateTime, Numeric, Text, ForeignKey
from sqlalchemy.orm import relationship
from app.database import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_id = Column(Integer, ForeignKey("parking_tickets.id"), unique=True, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(10), nullable=False)   # cash | mfs | card
    reference_number = Column(String(100))
    cashier_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    receipt_number = Column(String(40), unique=True, nullable=False)
    payment_date = Column(DateTime, nullable=False, index=True)
    notes = Column(Text)
    recovered = Column(Boolean, default=False, nullable=False)

    ticket = relationship("Ticket")

    def __repr__(self):
        return f"<Payment {self.receipt_number} ticket={self.ticket_id} amount={self.amount}>"
