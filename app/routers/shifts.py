"""Cashier shift endpoints: open, close, today's summary."""

from fastapi import APIRouter, Depends, status

from app.dependencies import get_shift_account, require_cashier
from app.models.user import User
from app.schemas.shift import ShiftCloseRequest, ShiftOpenRequest, ShiftOut, ShiftSummaryOut
from app.services.shift_account import ShiftAccount

router = APIRouter()


@router.post("/shifts/open", response_model=ShiftOut, status_code=status.HTTP_201_CREATED,
             summary="Open today's shift")
def open_shift(
    body: ShiftOpenRequest,
    user: User = Depends(require_cashier),
    shifts: ShiftAccount = Depends(get_shift_account),
):
    return shifts.open(user.id, body.opening_amount, body.notes)


@router.post("/shifts/close", response_model=ShiftOut, summary="Close and reconcile today's shift")
def close_shift(
    body: ShiftCloseRequest,
    user: User = Depends(require_cashier),
    shifts: ShiftAccount = Depends(get_shift_account),
):
    return shifts.close(user.id, body.closing_amount, body.notes)


@router.get("/shifts/summary", response_model=ShiftSummaryOut, summary="Today's tickets and collections")
def shift_summary(
    user: User = Depends(require_cashier),
    shifts: ShiftAccount = Depends(get_shift_account),
):
    return ShiftSummaryOut.model_validate(shifts.summary(user.id))
