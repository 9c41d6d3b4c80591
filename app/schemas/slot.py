from pydantic import BaseModel
from decimal import Decimal
from typing import Optional


class SlotOut(BaseModel):
    id: int
    slot_number: str
    slot_name: Optional[str]
    status: str
    slot_type: str
    hourly_rate: Decimal
    daily_rate: Decimal

    class Config:
        from_attributes = True


class SlotStatusUpdate(BaseModel):
    status: str    # vacant | reserved | out_of_service
