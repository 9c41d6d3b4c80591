# app/models/vehicle.py
"""
Vehicles table, keyed naturally by license plate.
Upserted on every check-in by directory_service.
"""

from sqlalchemy import Column, Integer, String, DateTime
from app.database import Base


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    license_plate = Column(String(20), unique=True, nullable=False, index=True)
    make = Column(String(50))
    model = Column(String(50))
    color = Column(String(30))
    year = Column(Integer)
    owner_name = Column(String(100))
    owner_phone = Column(String(20))
    owner_email = Column(String(100))
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<Vehicle {self.license_plate} {self.make or ''} {self.model or ''}>"
