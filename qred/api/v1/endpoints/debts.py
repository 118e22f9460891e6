"""
Debt ledger API endpoints.
"""

from datetime import date
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from qred.api.dependencies import get_current_active_user, get_db
from qred.core.config import settings
from qred.core.exceptions import TransientError
from qred.core.retry import retry_async
from qred.models.debt import Debt, DisplayStatus
from qred.models.user import User
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
from qred.services import ledger
from qred.services.debt import DebtService
from qred.services.ledger import DebtRole

router = APIRouter()

T = TypeVar("T")


async def _read(db: AsyncSession, operation: Callable[..., Awaitable[T]], *args: Any) -> T:
    """Run a read-only service call, retrying transient store failures with backoff."""

    async def attempt() -> T:
        try:
            return await operation(*args)
        except TransientError:
            await db.rollback()
            raise

    return await retry_async(
        attempt,
        retry_on=(TransientError,),
        attempts=settings.transient_retry_attempts,
        base_delay=settings.transient_retry_base_delay,
    )


def _to_response(debt: Debt, as_of: date) -> DebtResponse:
    response = DebtResponse.model_validate(debt)
    response.display_status = ledger.derive_display_status(debt, as_of)
    response.amount_paid = debt.total_amount - debt.outstanding_balance
    response.days_until_due = ledger.days_until_due(debt, as_of)
    return response


@router.get("/summary", response_model=DebtSummary)
async def get_debt_summary(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> DebtSummary:
    """Dashboard totals, overdue debts and the most recent debts."""
    user_id = current_user.id
    as_of = ledger.local_today()
    service = DebtService(db)
    summary = await _read(db, service.get_summary, user_id, as_of)

    return DebtSummary(
        total_lending=summary.total_lending,
        lending_count=summary.lending_count,
        total_owing=summary.total_owing,
        owing_count=summary.owing_count,
        active_count=summary.active_count,
        paid_count=summary.paid_count,
        overdue_count=summary.overdue_count,
        overdue_debts=[_to_response(d, as_of) for d in summary.overdue_debts],
        recent_debts=[_to_response(d, as_of) for d in summary.recent_debts],
    )


@router.get("/", response_model=List[DebtResponse])
async def list_debts(
    role: Optional[str] = Query(
        None, pattern="(?i)^(lending|owing|all)$", description="lending, owing or all"
    ),
    display_status: Optional[str] = Query(
        None,
        alias="status",
        pattern="(?i)^(pending|overdue|paid)$",
        description="pending, overdue or paid",
    ),
    q: Optional[str] = Query(None, max_length=100, description="Search name, phone or notes"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> List[DebtResponse]:
    """Get the current user's debts, newest first."""
    user_id = current_user.id
    as_of = ledger.local_today()
    role_filter = None if role is None or role.lower() == "all" else DebtRole(role.lower())
    status_filter = DisplayStatus(display_status.upper()) if display_status else None

    service = DebtService(db)
    debts = await _read(
        db, service.list_debts, user_id, role_filter, status_filter, q, as_of
    )
    return [_to_response(debt, as_of) for debt in debts]


@router.post("/", response_model=DebtResponse, status_code=status.HTTP_201_CREATED)
async def create_debt(
    debt_in: DebtCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> DebtResponse:
    """Record a new debt with the current user as lender."""
    user_id = current_user.id
    as_of = ledger.local_today()
    service = DebtService(db)
    debt = await service.create_debt(user_id, debt_in, today=as_of)
    return _to_response(debt, as_of)


@router.get("/{debt_id}", response_model=DebtResponse)
async def get_debt(
    debt_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> DebtResponse:
    """Get a debt the current user is a party to."""
    user_id = current_user.id
    service = DebtService(db)
    debt = await _read(db, service.get_debt, debt_id, user_id)
    return _to_response(debt, ledger.local_today())


@router.patch("/{debt_id}", response_model=DebtResponse)
async def update_debt(
    debt_id: str,
    debt_update: DebtUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> DebtResponse:
    """Edit the descriptive fields of a pending debt."""
    user_id = current_user.id
    as_of = ledger.local_today()
    service = DebtService(db)
    debt = await service.update_debt(debt_id, user_id, debt_update, today=as_of)
    return _to_response(debt, as_of)


@router.delete("/{debt_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_debt(
    debt_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Response:
    """Delete a debt that has no recorded payments."""
    user_id = current_user.id
    service = DebtService(db)
    await service.delete_debt(debt_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{debt_id}/payments",
    response_model=PaymentReceipt,
    status_code=status.HTTP_201_CREATED,
)
async def record_payment(
    debt_id: str,
    payment_in: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> PaymentReceipt:
    """Record a payment received by the lender."""
    user_id = current_user.id
    service = DebtService(db)
    debt, payment = await service.record_payment(debt_id, user_id, payment_in)

    payment_response = PaymentResponse.model_validate(payment)
    payment_response.balance_after_payment = debt.outstanding_balance
    return PaymentReceipt(
        debt=_to_response(debt, ledger.local_today()),
        payment=payment_response,
    )


@router.get("/{debt_id}/payments", response_model=List[PaymentResponse])
async def get_payment_history(
    debt_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> List[PaymentResponse]:
    """Payments of a debt, oldest first, with the balance after each."""
    user_id = current_user.id
    service = DebtService(db)
    history = await _read(db, service.get_payment_history, debt_id, user_id)

    responses = []
    for payment, balance in history:
        response = PaymentResponse.model_validate(payment)
        response.balance_after_payment = balance
        responses.append(response)
    return responses


@router.get("/{debt_id}/reconciliation", response_model=ReconciliationResponse)
async def reconcile_debt(
    debt_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ReconciliationResponse:
    """Compare the stored balance with the debt's payment records."""
    user_id = current_user.id
    service = DebtService(db)
    report = await _read(db, service.reconcile_debt, debt_id, user_id)
    return ReconciliationResponse.model_validate(report)
