from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from app.schemas.directory import DriverIn, VehicleIn


class CheckInRequest(BaseModel):
    slot_id: int
    vehicle: VehicleIn
    driver: DriverIn
    notes: Optional[str] = None


class CheckOutRequest(BaseModel):
    payment_method: str = Field(..., description="cash | mfs | card")
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class TicketOut(BaseModel):
    id: int
    ticket_number: str
    slot_id: int
    vehicle_id: int
    driver_id: int
    cashier_id: int
    check_in_time: datetime
    check_out_time: Optional[datetime]
    duration_hours: Optional[Decimal]
    total_amount: Optional[Decimal]
    payment_status: str

    class Config:
        from_attributes = True


class TicketViewOut(BaseModel):
    id: int
    ticket_number: str
    payment_status: str
    slot_id: int
    slot_number: str
    slot_name: Optional[str]
    hourly_rate: Decimal
    license_plate: str
    make: Optional[str]
    model: Optional[str]
    color: Optional[str]
    driver_name: str
    driver_phone: Optional[str]
    cashier_id: int
    check_in_time: datetime
    check_out_time: Optional[datetime]
    duration_hours: Optional[Decimal]
    total_amount: Optional[Decimal]
    elapsed_hours: Optional[Decimal]
    estimated_amount: Optional[Decimal]

    class Config:
        from_attributes = True


class ReceiptOut(BaseModel):
    ticket_id: int
    ticket_number: str
    slot_number: str
    slot_name: Optional[str]
    license_plate: str
    make: Optional[str]
    model: Optional[str]
    color: Optional[str]
    driver_name: str
    check_in_time: datetime
    check_out_time: Optional[datetime]
    duration_hours: Optional[Decimal]
    amount: Decimal
    payment_method: str
    reference_number: Optional[str]
    receipt_number: str
    payment_date: datetime
    cashier_name: Optional[str]
    recovered: bool

    class Config:
        from_attributes = True
