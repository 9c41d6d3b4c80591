from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from typing import Optional


class PaymentOut(BaseModel):
    id: int
    ticket_id: int
    amount: Decimal
    payment_method: str
    reference_number: Optional[str]
    cashier_id: int
    receipt_number: str
    payment_date: datetime
    recovered: bool

    class Config:
        from_attributes = True
