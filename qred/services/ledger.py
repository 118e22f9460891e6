"""
Debt ledger engine.

Pure functions over debts and payments: terms at creation, payment checks
and application, display status, dashboard summaries and reconciliation.
Nothing in this module touches the database; ``DebtService`` feeds it
fresh rows and persists what it returns.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from qred.core.config import settings
from qred.core.exceptions import AuthorizationError, InvalidStateError, ValidationError
from qred.models.debt import Debt, DebtStatus, DisplayStatus, Payment, PaymentStatus
from qred.utils.validation import format_currency, quantize_money

ZERO = Decimal("0.00")


class DebtRole(str, PyEnum):
    """The acting user's side of a debt."""

    LENDING = "lending"
    OWING = "owing"


class DebtTerms(NamedTuple):
    """Monetary terms fixed when a debt is created."""

    principal_amount: Decimal
    interest_rate: Decimal
    calculated_interest: Decimal
    total_amount: Decimal


@dataclass(frozen=True)
class Summary:
    """Dashboard totals for one user."""

    total_lending: Decimal
    lending_count: int
    total_owing: Decimal
    owing_count: int
    active_count: int
    paid_count: int
    overdue_debts: List[Debt] = field(default_factory=list)
    recent_debts: List[Debt] = field(default_factory=list)

    @property
    def overdue_count(self) -> int:
        return len(self.overdue_debts)


@dataclass(frozen=True)
class Reconciliation:
    """Stored balance of a debt checked against its payment rows."""

    debt_id: str
    total_amount: Decimal
    successful_payments_total: Decimal
    successful_payments_count: int
    expected_balance: Decimal
    outstanding_balance: Decimal
    balance_consistent: bool
    status_consistent: bool

    @property
    def consistent(self) -> bool:
        return self.balance_consistent and self.status_consistent


def local_today() -> date:
    """Today's date in the ledger's configured timezone."""
    return datetime.now(ZoneInfo(settings.timezone)).date()


def compute_terms(principal: Decimal, interest_rate: Decimal) -> DebtTerms:
    """
    Compute the fixed terms of a new debt.

    Interest is simple and applied once: ``principal * rate / 100`` rounded
    to the minor unit. ``total_amount`` is also the opening balance.
    """
    calculated_interest = quantize_money(principal * interest_rate / Decimal(100))
    return DebtTerms(
        principal_amount=quantize_money(principal),
        interest_rate=interest_rate,
        calculated_interest=calculated_interest,
        total_amount=quantize_money(principal) + calculated_interest,
    )


def generate_reference() -> str:
    """Reference for a manually recorded payment."""
    return f"manual_{uuid.uuid4().hex}"


def check_payment(debt: Debt, acting_user_id: str, amount: Decimal) -> None:
    """
    Raise if ``acting_user_id`` may not pay ``amount`` against ``debt`` now.

    Checks run in order: lender only, pending debts only, then the amount
    must be positive and no larger than the outstanding balance.
    """
    if debt.lender_id != acting_user_id:
        raise AuthorizationError("Only the lender can record a payment")
    if debt.status != DebtStatus.PENDING:
        raise InvalidStateError("Cannot pay a settled debt")
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero", field="amount")
    if amount > debt.outstanding_balance:
        raise ValidationError(
            "Payment cannot exceed the outstanding balance of "
            f"{format_currency(debt.outstanding_balance)}",
            field="amount",
        )


def apply_payment(balance: Decimal, amount: Decimal) -> Tuple[Decimal, bool]:
    """Return the balance after ``amount`` and whether the debt is now settled."""
    new_balance = balance - amount
    if new_balance < 0:
        raise ValidationError("Payment cannot exceed the outstanding balance", field="amount")
    return new_balance, new_balance == 0


def derive_display_status(debt: Debt, as_of: date) -> DisplayStatus:
    """PAID when settled, OVERDUE when pending past its due date, else PENDING."""
    if debt.status == DebtStatus.PAID:
        return DisplayStatus.PAID
    if debt.due_date < as_of:
        return DisplayStatus.OVERDUE
    return DisplayStatus.PENDING


def days_until_due(debt: Debt, as_of: date) -> int:
    """Days left before the due date; negative once it has passed."""
    return (debt.due_date - as_of).days


def days_overdue(debt: Debt, as_of: date) -> int:
    """Days since the due date for an overdue debt, otherwise 0."""
    if derive_display_status(debt, as_of) != DisplayStatus.OVERDUE:
        return 0
    return (as_of - debt.due_date).days


def role_for(debt: Debt, user_id: str) -> Optional[DebtRole]:
    """
    The user's side of ``debt``, or None when they are not a party.

    External debts are recorded by the party who owes an outside lender, so
    their recorder is on the owing side.
    """
    if debt.lender_id == user_id:
        return DebtRole.OWING if debt.is_external else DebtRole.LENDING
    if debt.debtor_id is not None and debt.debtor_id == user_id:
        return DebtRole.OWING
    return None


def is_party(debt: Debt, user_id: str) -> bool:
    return role_for(debt, user_id) is not None


def _instant(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; all stored times are UTC.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def sort_recent(debts: Iterable[Debt]) -> List[Debt]:
    """Newest first; equal creation times fall back to id order."""
    by_id = sorted(debts, key=lambda d: d.id)
    return sorted(by_id, key=lambda d: _instant(d.created_at), reverse=True)


def summarize(
    debts: Iterable[Debt],
    user_id: str,
    as_of: date,
    recent_limit: int = 5,
) -> Summary:
    """
    Fold debts into the dashboard summary for ``user_id``.

    Debts where the user is not a party are ignored. Input order does not
    affect the result.
    """
    unique = {debt.id: debt for debt in debts}
    lending: List[Debt] = []
    owing: List[Debt] = []
    for debt in unique.values():
        role = role_for(debt, user_id)
        if role == DebtRole.LENDING:
            lending.append(debt)
        elif role == DebtRole.OWING:
            owing.append(debt)

    involved = sort_recent(lending + owing)
    overdue = [
        d for d in involved if derive_display_status(d, as_of) == DisplayStatus.OVERDUE
    ]

    return Summary(
        total_lending=sum((d.outstanding_balance for d in lending), ZERO),
        lending_count=len(lending),
        total_owing=sum((d.outstanding_balance for d in owing), ZERO),
        owing_count=len(owing),
        active_count=sum(1 for d in involved if d.status == DebtStatus.PENDING),
        paid_count=sum(1 for d in involved if d.status == DebtStatus.PAID),
        overdue_debts=overdue,
        recent_debts=involved[:recent_limit],
    )


def matches_query(debt: Debt, query: str) -> bool:
    """Case-insensitive search over the debt's descriptive fields."""
    needle = query.strip().lower()
    if not needle:
        return True
    haystack = (
        debt.debtor_name,
        debt.debtor_phone_number,
        debt.external_lender_name,
        debt.notes,
    )
    return any(needle in value.lower() for value in haystack if value)


def successful_total(payments: Iterable[Payment]) -> Decimal:
    return sum(
        (p.amount for p in payments if p.status == PaymentStatus.SUCCESSFUL), ZERO
    )


def payment_history(
    debt: Debt, payments: Sequence[Payment]
) -> List[Tuple[Payment, Decimal]]:
    """Pair each payment with the balance left after it, oldest first."""
    running = debt.total_amount
    history = []
    for payment in sorted(payments, key=lambda p: (_instant(p.paid_at), p.id)):
        if payment.status == PaymentStatus.SUCCESSFUL:
            running -= payment.amount
        history.append((payment, running))
    return history


def reconcile(debt: Debt, payments: Sequence[Payment]) -> Reconciliation:
    """Compare the stored balance and status with what the payments imply."""
    paid_total = successful_total(payments)
    expected = debt.total_amount - paid_total
    settled = debt.status == DebtStatus.PAID
    return Reconciliation(
        debt_id=debt.id,
        total_amount=debt.total_amount,
        successful_payments_total=paid_total,
        successful_payments_count=sum(
            1 for p in payments if p.status == PaymentStatus.SUCCESSFUL
        ),
        expected_balance=expected,
        outstanding_balance=debt.outstanding_balance,
        balance_consistent=expected == debt.outstanding_balance,
        status_consistent=(
            settled == (debt.outstanding_balance == 0)
            and settled == (debt.paid_at is not None)
        ),
    )
