# app/services/directory_service.py
"""
Vehicle and driver directory helpers.
Used by ticket_lifecycle during check-in. Both upserts flush but never commit:
they join the caller's unit of work.
search_vehicles() and search_drivers() back the check-in form autocomplete.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.models.driver import Driver
from app.models.vehicle import Vehicle
from app.schemas.directory import DriverIn, VehicleIn
from app.utils.logger import get_logger

logger = get_logger(__name__)

_VEHICLE_FIELDS = ("make", "model", "color", "year", "owner_name", "owner_phone", "owner_email")
_DRIVER_FIELDS = ("phone", "email", "id_number", "license_number", "address")
MIN_SEARCH_LENGTH = 2


def lookup_vehicle_by_plate(db: Session, license_plate: str) -> Optional[Vehicle]:
    """Find a vehicle by plate number. Returns None if not found."""
    return db.query(Vehicle).filter(Vehicle.license_plate == license_plate.strip().upper()).first()


def upsert_vehicle(db: Session, data: VehicleIn, now: datetime) -> Vehicle:
    """Insert or refresh a vehicle by license plate. Blank fields keep stored values."""
    vehicle = lookup_vehicle_by_plate(db, data.license_plate)
    if vehicle is None:
        vehicle = Vehicle(license_plate=data.license_plate, created_at=now)
        db.add(vehicle)
        logger.info(f"[DIRECTORY] New vehicle {data.license_plate}")
    for name in _VEHICLE_FIELDS:
        value = getattr(data, name)
        if value is not None:
            setattr(vehicle, name, value)
    vehicle.updated_at = now
    db.flush()
    return vehicle


def lookup_driver(db: Session, data: DriverIn) -> Optional[Driver]:
    q = db.query(Driver)
    if data.id_number:
        return q.filter(Driver.id_number == data.id_number).first()
    q = q.filter(Driver.full_name == data.full_name.strip())
    if data.phone:
        q = q.filter(Driver.phone == data.phone)
    else:
        q = q.filter(Driver.phone.is_(None))
    return q.first()


def upsert_driver(db: Session, data: DriverIn, now: datetime) -> Driver:
    """Insert or refresh a driver by identity number, else by name and phone."""
    driver = lookup_driver(db, data)
    if driver is None:
        driver = Driver(created_at=now)
        db.add(driver)
    driver.full_name = data.full_name.strip()
    for name in _DRIVER_FIELDS:
        value = getattr(data, name)
        if value is not None:
            setattr(driver, name, value)
    driver.updated_at = now
    db.flush()
    return driver


def _like(column, needle: str):
    return func.lower(column).contains(needle, autoescape=True)


def search_vehicles(db: Session, query: Optional[str], limit: int = 10) -> list[Vehicle]:
    """Autocomplete for check-in: plate, owner name or owner phone. Needs 2+ characters."""
    needle = (query or "").strip().lower()
    if len(needle) < MIN_SEARCH_LENGTH:
        return []
    return (
        db.query(Vehicle)
        .filter(or_(_like(Vehicle.license_plate, needle),
                    _like(Vehicle.owner_name, needle),
                    _like(Vehicle.owner_phone, needle)))
        .order_by(Vehicle.created_at.desc(), Vehicle.id.desc())
        .limit(limit)
        .all()
    )


def search_drivers(db: Session, query: Optional[str], limit: int = 10) -> list[Driver]:
    """Autocomplete for check-in: name, phone, id number or licence number."""
    needle = (query or "").strip().lower()
    if len(needle) < MIN_SEARCH_LENGTH:
        return []
    return (
        db.query(Driver)
        .filter(or_(_like(Driver.full_name, needle),
                    _like(Driver.phone, needle),
                    _like(Driver.id_number, needle),
                    _like(Driver.license_number, needle)))
        .order_by(Driver.created_at.desc(), Driver.id.desc())
        .limit(limit)
        .all()
    )
