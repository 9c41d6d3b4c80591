from pydantic import BaseModel, Field, field_validator
from typing import Optional


class VehicleIn(BaseModel):
    license_plate: str = Field(..., min_length=1, max_length=20)
    make: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None
    year: Optional[int] = None
    owner_name: Optional[str] = None
    owner_phone: Optional[str] = None
    owner_email: Optional[str] = None

    @field_validator("license_plate")
    @classmethod
    def normalise_plate(cls, v: str) -> str:
        return v.strip().upper()


class DriverIn(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = None
    email: Optional[str] = None
    id_number: Optional[str] = None
    license_number: Optional[str] = None
    address: Optional[str] = None


class VehicleOut(BaseModel):
    id: int
    license_plate: str
    make: Optional[str]
    model: Optional[str]
    color: Optional[str]
    year: Optional[int]
    owner_name: Optional[str]
    owner_phone: Optional[str]

    class Config:
        from_attributes = True


class DriverOut(BaseModel):
    id: int
    full_name: str
    phone: Optional[str]
    email: Optional[str]
    id_number: Optional[str]
    license_number: Optional[str]

    class Config:
        from_attributes = True
