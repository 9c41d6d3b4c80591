# app/models/enums.py
"""
Status vocabularies stored as plain strings in the database.
str-based so that a value read back from a String column compares equal.
"""

from enum import Enum


class SlotStatus(str, Enum):
    VACANT = "vacant"
    OCCUPIED = "occupied"
    RESERVED = "reserved"
    OUT_OF_SERVICE = "out_of_service"


class SlotType(str, Enum):
    STANDARD = "standard"
    DISABLED = "disabled"
    VIP = "vip"


class PaymentStatus(str, Enum):
    PENDING = "pending"      # ticket OPEN
    PAID = "paid"            # ticket SETTLED
    CANCELLED = "cancelled"  # terminal, reachable from OPEN only; no operation sets it yet


class PaymentMethod(str, Enum):
    CASH = "cash"
    MFS = "mfs"              # mobile financial service
    CARD = "card"


class ShiftStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class UserRole(str, Enum):
    ADMIN = "admin"
    CASHIER = "cashier"
