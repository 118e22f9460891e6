"""Business logic services package"""

from qred.services import ledger
from qred.services.debt import DebtService
from qred.services.ledger import DebtRole, Reconciliation, Summary
from qred.services.user import UserService

__all__ = [
    "ledger",
    "DebtRole",
    "Reconciliation",
    "Summary",
    "DebtService",
    "UserService",
]
