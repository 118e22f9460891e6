"""
DebtRepository - persistence for debts and payments.

All reads return fresh rows (identity-map values are overwritten), and
balance changes go through a conditional update keyed on the debt's
``version`` so that two writers working from the same snapshot cannot both
succeed.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional, TypeVar

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from qred.core.exceptions import ConflictError, NotFoundError
from qred.models.base import BaseModel
from qred.models.debt import Debt, DebtStatus, Payment, PaymentStatus
from qred.repositories.base import translate_db_errors

ModelT = TypeVar("ModelT", bound=BaseModel)


class DebtRepository:
    """Repository for debts and their payments."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, entity: ModelT) -> ModelT:
        """Insert a new row and flush so its id and defaults are populated."""
        with translate_db_errors(f"save {type(entity).__name__.lower()}"):
            self.db.add(entity)
            await self.db.flush()
        return entity

    async def get_debt(self, debt_id: str) -> Debt:
        """Read the current committed state of a debt."""
        with translate_db_errors("load debt"):
            result = await self.db.execute(
                select(Debt)
                .where(Debt.id == debt_id)
                .execution_options(populate_existing=True)
            )
            debt = result.scalar_one_or_none()
        if debt is None:
            raise NotFoundError("Debt not found")
        return debt

    async def query_debts(
        self,
        party_id: Optional[str] = None,
        lender_id: Optional[str] = None,
        status: Optional[DebtStatus] = None,
    ) -> List[Debt]:
        """
        Query debts, newest first.

        Args:
            party_id: Debts where this user is the lender or the debtor
            lender_id: Debts recorded by this user
            status: Persisted status filter
        """
        query = select(Debt)
        if party_id is not None:
            query = query.where(
                or_(Debt.lender_id == party_id, Debt.debtor_id == party_id)
            )
        if lender_id is not None:
            query = query.where(Debt.lender_id == lender_id)
        if status is not None:
            query = query.where(Debt.status == status)
        query = query.order_by(Debt.created_at.desc(), Debt.id).execution_options(
            populate_existing=True
        )

        with translate_db_errors("list debts"):
            result = await self.db.execute(query)
            return list(result.scalars().all())

    async def update_balance(
        self,
        debt_id: str,
        expected_version: int,
        outstanding_balance: Decimal,
        status: DebtStatus,
        paid_at: Optional[datetime],
    ) -> None:
        """
        Write a new balance only if the debt is still at ``expected_version``.

        Raises:
            ConflictError: If another writer changed the debt since it was read.
        """
        stmt = (
            update(Debt)
            .where(Debt.id == debt_id, Debt.version == expected_version)
            .values(
                outstanding_balance=outstanding_balance,
                status=status,
                paid_at=paid_at,
                version=Debt.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        with translate_db_errors("update debt balance"):
            result = await self.db.execute(stmt)
        if result.rowcount != 1:
            raise ConflictError("The debt balance changed while recording this payment")

    async def update_fields(self, debt: Debt, **fields) -> Debt:
        """Update descriptive (non-monetary) fields of a debt."""
        for name, value in fields.items():
            setattr(debt, name, value)
        with translate_db_errors("update debt"):
            await self.db.flush()
        return debt

    async def delete_debt(self, debt_id: str, expected_version: int) -> None:
        """
        Delete a debt and its payment rows if it is still at ``expected_version``.

        Raises:
            ConflictError: If the debt changed or vanished since it was read.
        """
        stmt = (
            delete(Debt)
            .where(Debt.id == debt_id, Debt.version == expected_version)
            .execution_options(synchronize_session=False)
        )
        with translate_db_errors("delete debt"):
            result = await self.db.execute(stmt)
        if result.rowcount != 1:
            raise ConflictError("The debt changed while deleting it")
        with translate_db_errors("delete debt payments"):
            await self.db.execute(
                delete(Payment)
                .where(Payment.debt_id == debt_id)
                .execution_options(synchronize_session=False)
            )

    async def list_payments(self, debt_id: str) -> List[Payment]:
        """Payments of a debt in settlement order."""
        with translate_db_errors("list payments"):
            result = await self.db.execute(
                select(Payment)
                .where(Payment.debt_id == debt_id)
                .order_by(Payment.paid_at, Payment.id)
            )
            return list(result.scalars().all())

    async def count_successful_payments(self, debt_id: str) -> int:
        with translate_db_errors("count payments"):
            result = await self.db.execute(
                select(func.count(Payment.id)).where(
                    Payment.debt_id == debt_id,
                    Payment.status == PaymentStatus.SUCCESSFUL,
                )
            )
            return result.scalar_one()

    async def payment_reference_exists(self, reference: str) -> bool:
        with translate_db_errors("check payment reference"):
            result = await self.db.execute(
                select(Payment.id).where(Payment.reference == reference)
            )
            return result.first() is not None

    async def link_unlinked_debts(self, user_id: str, phone_number: str) -> int:
        """Attach debts recorded against ``phone_number`` to the user who owns it."""
        stmt = (
            update(Debt)
            .where(
                Debt.debtor_phone_number == phone_number,
                Debt.debtor_id.is_(None),
                Debt.is_external.is_(False),
                Debt.lender_id != user_id,
            )
            .values(debtor_id=user_id)
            .execution_options(synchronize_session=False)
        )
        with translate_db_errors("link debts"):
            result = await self.db.execute(stmt)
        return result.rowcount

    async def commit(self) -> None:
        with translate_db_errors("commit"):
            await self.db.commit()

    async def rollback(self) -> None:
        with translate_db_errors("rollback"):
            await self.db.rollback()
