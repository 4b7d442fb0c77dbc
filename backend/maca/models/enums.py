from __future__ import annotations

import enum


class SaleStatus(str, enum.Enum):
    # Sales are created already completed; there is no draft state.
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class InvoiceStatus(str, enum.Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    MIXED = "MIXED"


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    SELLER = "SELLER"


class EmployeeStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    VACATION = "VACATION"
    SUSPENDED = "SUSPENDED"


def enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]
