"""Ticket lifecycle endpoints: check-in, check-out, lookup, receipt, payment recovery."""

from typing import Optional

from fastapi import APIRouter, Depends, status

from app.dependencies import get_payment_ledger, get_ticket_lifecycle, require_operator
from app.models.user import User
from app.schemas.payment import PaymentOut
from app.schemas.ticket import CheckInRequest, CheckOutRequest, ReceiptOut, TicketOut, TicketViewOut
from app.services.payment_ledger import PaymentLedger
from app.services.ticket_lifecycle import TicketLifecycle

router = APIRouter()


@router.post("/tickets", response_model=TicketOut, status_code=status.HTTP_201_CREATED,
             summary="Check a vehicle in to a vacant slot")
def check_in(
    body: CheckInRequest,
    user: User = Depends(require_operator),
    lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle),
):
    return lifecycle.check_in(body.slot_id, body.vehicle, body.driver, cashier_id=user.id, notes=body.notes)


@router.get("/tickets", response_model=list[TicketOut], summary="Search by ticket number or plate")
def search_tickets(
    search: Optional[str] = None,
    limit: int = 10,
    user: User = Depends(require_operator),
    lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle),
):
    """Partial match on ticket number or license plate. Without a query, lists pending tickets."""
    return lifecycle.search_tickets(search, limit=limit)


@router.get("/tickets/{ticket_id}", response_model=TicketViewOut, summary="Ticket details with live estimate")
def get_ticket(
    ticket_id: int,
    user: User = Depends(require_operator),
    lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle),
):
    return TicketViewOut.model_validate(lifecycle.get_ticket(ticket_id))


@router.post("/tickets/{ticket_id}/checkout", response_model=ReceiptOut, summary="Settle and check out")
def check_out(
    ticket_id: int,
    body: CheckOutRequest,
    user: User = Depends(require_operator),
    lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle),
):
    receipt = lifecycle.check_out(
        ticket_id,
        payment_method=body.payment_method,
        reference_number=body.reference_number,
        notes=body.notes,
        cashier_id=user.id,
    )
    return ReceiptOut.model_validate(receipt)


@router.get("/tickets/{ticket_id}/receipt", response_model=ReceiptOut, summary="Receipt of a settled ticket")
def get_receipt(
    ticket_id: int,
    user: User = Depends(require_operator),
    lifecycle: TicketLifecycle = Depends(get_ticket_lifecycle),
):
    """Recovers the payment record automatically if the ticket is paid but has none."""
    return ReceiptOut.model_validate(lifecycle.receipt(ticket_id, actor_id=user.id))


@router.post("/tickets/{ticket_id}/recover-payment", response_model=PaymentOut,
             status_code=status.HTTP_201_CREATED, summary="Rebuild a missing payment record")
def recover_payment(
    ticket_id: int,
    user: User = Depends(require_operator),
    ledger: PaymentLedger = Depends(get_payment_ledger),
):
    return ledger.recover_missing_payment(ticket_id, actor_id=user.id)
