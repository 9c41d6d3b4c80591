"""Vehicle and driver lookups for the check-in form."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import require_operator
from app.models.user import User
from app.schemas.directory import DriverOut, VehicleOut
from app.services.directory_service import search_drivers, search_vehicles

router = APIRouter()


@router.get("/vehicles/search", response_model=list[VehicleOut], summary="Autocomplete known vehicles")
def vehicle_search(
    q: Optional[str] = None,
    limit: int = Query(10, ge=1, le=50),
    user: User = Depends(require_operator),
    db: Session = Depends(get_db),
):
    return search_vehicles(db, q, limit=limit)


@router.get("/drivers/search", response_model=list[DriverOut], summary="Autocomplete known drivers")
def driver_search(
    q: Optional[str] = None,
    limit: int = Query(10, ge=1, le=50),
    user: User = Depends(require_operator),
    db: Session = Depends(get_db),
):
    return search_drivers(db, q, limit=limit)
