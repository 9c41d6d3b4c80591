# app/models/driver.py
"""Drivers table. Natural key: id_number when given, otherwise name + phone."""

from sqlalchemy import Column, Integer, String, DateTime, Text
from app.database import Base


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(100), nullable=False)
    phone = Column(String(20))
    email = Column(String(100))
    id_number = Column(String(50), index=True)
    license_number = Column(String(50))
    address = Column(Text)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<Driver {self.id} name={self.full_name}>"
