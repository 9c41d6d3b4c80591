"""
FastAPI dependencies: caller identity and the per-request component graph.
Every component of one request shares the request's Session, the app's audit
sink and the app's clock.
"""

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.enums import UserRole
from app.models.user import User
from app.services.payment_ledger import PaymentLedger
from app.services.shift_account import ShiftAccount
from app.services.slot_registry import SlotRegistry
from app.services.ticket_lifecycle import TicketLifecycle


def get_current_user(
    x_user_id: int = Header(None, description="Operator id issued by the identity provider"),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the operator making the request. Authentication happens upstream."""
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    user = db.get(User, x_user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown or inactive user")
    return user


def require_role(*roles: UserRole):
    allowed = {r.value for r in roles}

    def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{' or '.join(sorted(allowed))} access required",
            )
        return user

    return _check


require_cashier = require_role(UserRole.CASHIER)
require_operator = require_role(UserRole.CASHIER, UserRole.ADMIN)
require_admin = require_role(UserRole.ADMIN)


def get_slot_registry(request: Request, db: Session = Depends(get_db)) -> SlotRegistry:
    return SlotRegistry(db, request.app.state.audit_sink, clock=request.app.state.clock)


def get_payment_ledger(request: Request, db: Session = Depends(get_db)) -> PaymentLedger:
    return PaymentLedger(db, request.app.state.audit_sink, clock=request.app.state.clock)


def get_ticket_lifecycle(
    request: Request,
    db: Session = Depends(get_db),
    slots: SlotRegistry = Depends(get_slot_registry),
    ledger: PaymentLedger = Depends(get_payment_ledger),
) -> TicketLifecycle:
    return TicketLifecycle(db, slots, ledger, request.app.state.audit_sink, clock=request.app.state.clock)


def get_shift_account(
    request: Request,
    db: Session = Depends(get_db),
    ledger: PaymentLedger = Depends(get_payment_ledger),
) -> ShiftAccount:
    return ShiftAccount(db, ledger, request.app.state.audit_sink, clock=request.app.state.clock)
