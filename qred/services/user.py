"""
User profile service.
"""

from typing import Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from qred.core.exceptions import ConflictError, LedgerError, ValidationError
from qred.core.logging import get_logger
from qred.models.user import User
from qred.repositories.debt_repo import DebtRepository
from qred.repositories.user_repo import UserRepository
from qred.schemas.user import UserUpdate
from qred.utils.validation import normalize_phone_number

logger = get_logger(__name__)


class UserService:
    """Service for the current user's profile."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserRepository(db)
        self.debts = DebtRepository(db)

    async def get_user(self, user_id: str) -> User:
        return await self.users.get_user(user_id)

    async def update_profile(self, user_id: str, user_update: UserUpdate) -> Tuple[User, int]:
        """
        Update name, email or phone number.

        Setting a phone number links every unclaimed debt recorded against
        it in the same transaction.

        Returns:
            Tuple of (updated user, number of debts linked)
        """
        user = await self.users.get_user(user_id)
        changes = user_update.model_dump(exclude_unset=True)
        fields = {}

        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not name:
                raise ValidationError("Name is required", field="name")
            fields["name"] = name

        if "email" in changes:
            email = changes["email"]
            if email is not None:
                email = str(email).lower()
                existing = await self.users.find_by_email(email)
                if existing is not None and existing.id != user_id:
                    raise ConflictError("Email is already in use", field="email")
            fields["email"] = email

        phone_changed = False
        if "phone_number" in changes:
            raw = (changes["phone_number"] or "").strip()
            phone_number = normalize_phone_number(raw, field="phone_number") if raw else None
            if phone_number is not None:
                existing = await self.users.find_by_phone(phone_number)
                if existing is not None and existing.id != user_id:
                    raise ConflictError(
                        "Phone number is already in use", field="phone_number"
                    )
            phone_changed = phone_number != user.phone_number
            fields["phone_number"] = phone_number

        linked = 0
        try:
            await self.users.update_fields(user, **fields)
            if phone_changed and user.phone_number:
                linked = await self.debts.link_unlinked_debts(user_id, user.phone_number)
            await self.debts.commit()
        except LedgerError:
            await self.debts.rollback()
            raise

        logger.info(
            "profile_updated",
            user_id=user_id,
            fields=sorted(fields),
            linked_debts=linked,
        )
        return user, linked
