"""
Debt ledger service: debt creation, payment recording and reporting.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from qred.core.config import settings
from qred.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from qred.core.logging import LogContext, get_logger
from qred.core.retry import retry_async
from qred.models.base import utcnow
from qred.models.debt import (
    MANUAL_GATEWAY,
    Debt,
    DebtStatus,
    DisplayStatus,
    Payment,
    PaymentStatus,
)
from qred.repositories.debt_repo import DebtRepository
from qred.repositories.user_repo import UserRepository
from qred.schemas.debt import DebtCreate, DebtUpdate, PaymentCreate
from qred.services import ledger
from qred.services.ledger import DebtRole, Reconciliation, Summary
from qred.utils.validation import (
    normalize_phone_number,
    parse_amount,
    parse_interest_rate,
    validate_due_date,
    validate_interest_rate,
    validate_principal,
)

logger = get_logger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    """Strip text input; blank becomes None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


class DebtService:
    """Service for managing debts and payments."""

    def __init__(self, db: AsyncSession):
        """Initialize the debt service."""
        self.db = db
        self.debts = DebtRepository(db)
        self.users = UserRepository(db)

    async def create_debt(
        self,
        lender_id: str,
        debt_data: DebtCreate,
        today: Optional[date] = None,
    ) -> Debt:
        """
        Create a new debt recorded by ``lender_id``.

        Interest is computed once from the principal and rate and the opening
        balance equals the total. The debt is committed before returning; if
        the commit outcome is unknown a ``TransientError`` propagates and the
        caller should re-query instead of retrying blindly.
        """
        today = today or ledger.local_today()

        principal = validate_principal(parse_amount(debt_data.principal, field="principal"))
        interest_rate = validate_interest_rate(parse_interest_rate(debt_data.interest_rate))
        validate_due_date(debt_data.due_date, today)
        debtor_id, phone_number, external_lender_name = await self._resolve_counterparty(
            lender_id, debt_data
        )

        terms = ledger.compute_terms(principal, interest_rate)
        debt = Debt(
            lender_id=lender_id,
            debtor_id=debtor_id,
            debtor_phone_number=phone_number,
            debtor_name=_clean(debt_data.debtor_name),
            is_external=debt_data.is_external,
            external_lender_name=external_lender_name,
            principal_amount=terms.principal_amount,
            interest_rate=terms.interest_rate,
            calculated_interest=terms.calculated_interest,
            total_amount=terms.total_amount,
            outstanding_balance=terms.total_amount,
            status=DebtStatus.PENDING,
            due_date=debt_data.due_date,
            notes=_clean(debt_data.notes),
            version=1,
        )

        try:
            await self.debts.add(debt)
            await self.debts.commit()
        except LedgerError:
            await self.debts.rollback()
            raise

        logger.info(
            "debt_created",
            debt_id=debt.id,
            lender_id=lender_id,
            debtor_id=debtor_id,
            is_external=debt.is_external,
            total_amount=debt.total_amount,
        )
        return debt

    async def _resolve_counterparty(
        self, lender_id: str, debt_data: DebtCreate
    ) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        """Return (debtor_id, canonical phone, external lender name) for a new debt."""
        raw_phone = _clean(debt_data.debtor_phone_number)
        phone_number = (
            normalize_phone_number(raw_phone, field="debtor_phone_number")
            if raw_phone
            else None
        )
        external_lender_name = _clean(debt_data.external_lender_name)

        if debt_data.is_external:
            if not external_lender_name:
                raise ValidationError(
                    "External lender name is required for external debts",
                    field="external_lender_name",
                )
            return None, phone_number, external_lender_name

        if external_lender_name:
            raise ValidationError(
                "External lender name only applies to external debts",
                field="external_lender_name",
            )

        debtor_id = _clean(debt_data.debtor_id)
        if debtor_id:
            try:
                debtor = await self.users.get_user(debtor_id)
            except NotFoundError:
                raise ValidationError("Debtor does not exist", field="debtor_id")
            if phone_number is None:
                phone_number = debtor.phone_number
            elif debtor.phone_number and debtor.phone_number != phone_number:
                raise ValidationError(
                    "Phone number does not belong to the selected debtor",
                    field="debtor_phone_number",
                )
        elif phone_number:
            debtor = await self.users.find_by_phone(phone_number)
            debtor_id = debtor.id if debtor else None
        else:
            raise ValidationError(
                "Debtor phone number is required", field="debtor_phone_number"
            )

        if debtor_id == lender_id:
            raise ValidationError(
                "You cannot record a debt against yourself",
                field="debtor_phone_number",
            )
        return debtor_id, phone_number, None

    async def get_debt(self, debt_id: str, user_id: str) -> Debt:
        """Get a debt the user is a party to."""
        debt = await self.debts.get_debt(debt_id)
        if not ledger.is_party(debt, user_id):
            raise AuthorizationError("You do not have access to this debt")
        return debt

    async def list_debts(
        self,
        user_id: str,
        role: Optional[DebtRole] = None,
        display_status: Optional[DisplayStatus] = None,
        query: Optional[str] = None,
        as_of: Optional[date] = None,
    ) -> List[Debt]:
        """List the user's debts, newest first, with optional filters and search."""
        as_of = as_of or ledger.local_today()
        debts = await self.debts.query_debts(party_id=user_id)

        if role is not None:
            debts = [d for d in debts if ledger.role_for(d, user_id) == role]
        if display_status is not None:
            debts = [
                d for d in debts
                if ledger.derive_display_status(d, as_of) == display_status
            ]
        if query:
            debts = [d for d in debts if ledger.matches_query(d, query)]

        return ledger.sort_recent(debts)

    async def update_debt(
        self,
        debt_id: str,
        user_id: str,
        debt_update: DebtUpdate,
        today: Optional[date] = None,
    ) -> Debt:
        """Edit descriptive fields of a pending debt. Terms never change."""
        debt = await self.debts.get_debt(debt_id)
        if debt.lender_id != user_id:
            raise AuthorizationError("Only the lender can edit this debt")
        if debt.status != DebtStatus.PENDING:
            raise InvalidStateError("A settled debt cannot be edited")

        changes = debt_update.model_dump(exclude_unset=True)
        fields = {}

        if "due_date" in changes:
            if changes["due_date"] is None:
                raise ValidationError("Due date is required", field="due_date")
            fields["due_date"] = validate_due_date(
                changes["due_date"], today or ledger.local_today()
            )
        if "notes" in changes:
            fields["notes"] = _clean(changes["notes"])
        if "debtor_name" in changes:
            fields["debtor_name"] = _clean(changes["debtor_name"])
        if "external_lender_name" in changes:
            if not debt.is_external:
                raise ValidationError(
                    "External lender name only applies to external debts",
                    field="external_lender_name",
                )
            name = _clean(changes["external_lender_name"])
            if not name:
                raise ValidationError(
                    "External lender name is required for external debts",
                    field="external_lender_name",
                )
            fields["external_lender_name"] = name
        if "debtor_phone_number" in changes:
            fields.update(await self._phone_change(debt, changes["debtor_phone_number"]))

        try:
            await self.debts.update_fields(debt, **fields)
            await self.debts.commit()
        except LedgerError:
            await self.debts.rollback()
            raise

        logger.info("debt_updated", debt_id=debt_id, fields=sorted(fields))
        return debt

    async def _phone_change(self, debt: Debt, raw_phone: Optional[str]) -> dict:
        phone = _clean(raw_phone)
        if phone is None:
            if not debt.is_external and debt.debtor_id is None:
                raise ValidationError(
                    "Debtor phone number is required", field="debtor_phone_number"
                )
            return {"debtor_phone_number": None}

        phone_number = normalize_phone_number(phone, field="debtor_phone_number")
        if phone_number == debt.debtor_phone_number or debt.is_external:
            return {"debtor_phone_number": phone_number}

        debtor = await self.users.find_by_phone(phone_number)
        if debtor is not None and debtor.id == debt.lender_id:
            raise ValidationError(
                "You cannot record a debt against yourself",
                field="debtor_phone_number",
            )
        return {
            "debtor_phone_number": phone_number,
            "debtor_id": debtor.id if debtor else None,
        }

    async def delete_debt(self, debt_id: str, user_id: str) -> None:
        """
        Delete a debt that has no successful payments.

        The delete is conditional on the version read before the payment
        count, so a payment recorded in between forces a fresh check.
        """
        with LogContext(debt_id=debt_id):
            await retry_async(
                self._attempt_delete,
                debt_id,
                user_id,
                retry_on=(ConflictError,),
                attempts=settings.payment_conflict_retries,
            )

        logger.info("debt_deleted", debt_id=debt_id, lender_id=user_id)

    async def _attempt_delete(self, debt_id: str, user_id: str) -> None:
        debt = await self.debts.get_debt(debt_id)
        if debt.lender_id != user_id:
            raise AuthorizationError("Only the lender can delete this debt")
        expected_version = debt.version
        if await self.debts.count_successful_payments(debt_id) > 0:
            raise InvalidStateError("A debt with recorded payments cannot be deleted")

        try:
            await self.debts.delete_debt(debt_id, expected_version=expected_version)
            await self.debts.commit()
        except LedgerError:
            await self.debts.rollback()
            raise

    async def record_payment(
        self,
        debt_id: str,
        user_id: str,
        payment_data: PaymentCreate,
    ) -> Tuple[Debt, Payment]:
        """
        Record a successful payment and reduce the debt's balance.

        The balance is re-read on every attempt and written with a
        conditional update; if another payment lands in between, the attempt
        is rolled back and retried from the fresh balance, up to
        ``settings.payment_conflict_retries`` times.

        Returns:
            Tuple of (updated debt, created payment)
        """
        amount = parse_amount(payment_data.amount, field="amount")

        with LogContext(debt_id=debt_id):
            payment = await retry_async(
                self._attempt_payment,
                debt_id,
                user_id,
                amount,
                payment_data,
                retry_on=(ConflictError,),
                attempts=settings.payment_conflict_retries,
            )
            debt = await self.debts.get_debt(debt_id)
        return debt, payment

    async def _attempt_payment(
        self,
        debt_id: str,
        user_id: str,
        amount: Decimal,
        payment_data: PaymentCreate,
    ) -> Payment:
        debt = await self.debts.get_debt(debt_id)
        ledger.check_payment(debt, user_id, amount)
        new_balance, settled = ledger.apply_payment(debt.outstanding_balance, amount)

        reference = _clean(payment_data.reference)
        if reference and await self.debts.payment_reference_exists(reference):
            raise ConflictError(f"A payment with reference {reference} already exists")

        now = utcnow()
        payment = Payment(
            debt_id=debt.id,
            amount=amount,
            reference=reference or ledger.generate_reference(),
            gateway=_clean(payment_data.gateway) or MANUAL_GATEWAY,
            status=PaymentStatus.SUCCESSFUL,
            notes=_clean(payment_data.notes),
            paid_at=now,
            recorded_by=user_id,
        )

        try:
            await self.debts.update_balance(
                debt.id,
                expected_version=debt.version,
                outstanding_balance=new_balance,
                status=DebtStatus.PAID if settled else DebtStatus.PENDING,
                paid_at=now if settled else None,
            )
            await self.debts.add(payment)
            await self.debts.commit()
        except LedgerError as e:
            await self.debts.rollback()
            if isinstance(e, ConflictError):
                logger.info("payment_conflict_retry", user_id=user_id, error=e.message)
            raise

        logger.info(
            "payment_recorded",
            payment_id=payment.id,
            amount=amount,
            outstanding_balance=new_balance,
            settled=settled,
            recorded_by=user_id,
        )
        return payment

    async def get_payment_history(
        self, debt_id: str, user_id: str
    ) -> List[Tuple[Payment, Decimal]]:
        """Payments of a debt with the balance left after each."""
        debt = await self.get_debt(debt_id, user_id)
        payments = await self.debts.list_payments(debt_id)
        return ledger.payment_history(debt, payments)

    async def get_summary(self, user_id: str, as_of: Optional[date] = None) -> Summary:
        """Dashboard summary over every debt the user is a party to."""
        debts = await self.debts.query_debts(party_id=user_id)
        return ledger.summarize(
            debts,
            user_id,
            as_of or ledger.local_today(),
            recent_limit=settings.recent_debts_limit,
        )

    async def reconcile_debt(self, debt_id: str, user_id: str) -> Reconciliation:
        """Check the stored balance of a debt against its payment rows."""
        debt = await self.get_debt(debt_id, user_id)
        payments = await self.debts.list_payments(debt_id)
        report = ledger.reconcile(debt, payments)
        if not report.consistent:
            logger.warning(
                "debt_out_of_balance",
                debt_id=debt_id,
                expected_balance=report.expected_balance,
                outstanding_balance=report.outstanding_balance,
                status=debt.status.value,
            )
        return report

    async def link_debts_to_user(self, user_id: str) -> int:
        """Attach debts recorded against the user's phone number to the user."""
        user = await self.users.get_user(user_id)
        if not user.phone_number:
            return 0

        try:
            linked = await self.debts.link_unlinked_debts(user.id, user.phone_number)
            await self.debts.commit()
        except LedgerError:
            await self.debts.rollback()
            raise

        if linked:
            logger.info("debts_linked", user_id=user_id, linked_debts=linked)
        return linked
