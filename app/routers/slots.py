"""Slot occupancy — read endpoints + administrative status override."""

from typing import Optional

from fastapi import APIRouter, Depends

from app.dependencies import get_slot_registry, require_admin, require_operator
from app.models.user import User
from app.schemas.slot import SlotOut, SlotStatusUpdate
from app.services.slot_registry import SlotRegistry

router = APIRouter()


@router.get("/slots", response_model=list[SlotOut], summary="All slots — filterable by status")
def list_slots(
    status: Optional[str] = None,
    user: User = Depends(require_operator),
    slots: SlotRegistry = Depends(get_slot_registry),
):
    return slots.list_slots(status)


@router.get("/slots/stats", summary="Slot count per status")
def slot_stats(
    user: User = Depends(require_operator),
    slots: SlotRegistry = Depends(get_slot_registry),
):
    counts = slots.occupancy_counts()
    return {"total": sum(counts.values()), **counts}


@router.put("/slots/{slot_id}/status", response_model=SlotOut, summary="Set slot status (admin)")
def set_slot_status(
    slot_id: int,
    body: SlotStatusUpdate,
    user: User = Depends(require_admin),
    slots: SlotRegistry = Depends(get_slot_registry),
):
    """Reserve a slot, take it out of service or return it to vacant. Occupied slots are locked."""
    return slots.set_status(slot_id, body.status, actor_id=user.id)
