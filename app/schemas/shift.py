from pydantic import BaseModel
from datetime import date, datetime
from decimal import Decimal
from typing import Optional


class ShiftOpenRequest(BaseModel):
    opening_amount: Decimal = Decimal("0")
    notes: Optional[str] = None


class ShiftCloseRequest(BaseModel):
    closing_amount: Decimal = Decimal("0")
    notes: Optional[str] = None


class ShiftOut(BaseModel):
    id: int
    cashier_id: int
    shift_date: date
    open_time: datetime
    close_time: Optional[datetime]
    opening_amount: Decimal
    closing_amount: Decimal
    total_collected: Decimal
    variance: Decimal
    status: str
    notes: Optional[str]

    class Config:
        from_attributes = True


class ShiftSummaryOut(BaseModel):
    cashier_id: int
    date: date
    tickets_today: int
    paid_today: int
    pending_today: int
    total_collected: Decimal
    shift: Optional[ShiftOut] = None

    class Config:
        from_attributes = True
