"""Database models package"""

from qred.models.base import Base, BaseModel
from qred.models.debt import (
    Debt,
    DebtStatus,
    DisplayStatus,
    Payment,
    PaymentStatus,
)
from qred.models.user import User

__all__ = [
    "Base",
    "BaseModel",
    "User",
    "Debt",
    "DebtStatus",
    "DisplayStatus",
    "Payment",
    "PaymentStatus",
]
