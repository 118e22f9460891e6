"""Pydantic schemas package"""

from qred.schemas.debt import (
    DebtCreate,
    DebtResponse,
    DebtSummary,
    DebtUpdate,
    PaymentCreate,
    PaymentReceipt,
    PaymentResponse,
    ReconciliationResponse,
)
from qred.schemas.user import LinkResult, User, UserMe, UserUpdate

__all__ = [
    # User schemas
    "User",
    "UserMe",
    "UserUpdate",
    "LinkResult",
    # Debt schemas
    "DebtCreate",
    "DebtUpdate",
    "DebtResponse",
    "DebtSummary",
    "PaymentCreate",
    "PaymentResponse",
    "PaymentReceipt",
    "ReconciliationResponse",
]
