from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from qred.core.exceptions import NotFoundError
from qred.models.user import User
from qred.repositories.base import translate_db_errors


class UserRepository:
    """Repository for users (the identity side of the ledger)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: str) -> User:
        with translate_db_errors("load user"):
            user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def find_by_phone(self, phone_number: str) -> Optional[User]:
        """Look up a user by canonical phone number."""
        with translate_db_errors("find user"):
            result = await self.db.execute(
                select(User).where(User.phone_number == phone_number)
            )
            return result.scalar_one_or_none()

    async def find_by_email(self, email: str) -> Optional[User]:
        with translate_db_errors("find user"):
            result = await self.db.execute(select(User).where(User.email == email))
            return result.scalar_one_or_none()

    async def update_fields(self, user: User, **fields) -> User:
        for name, value in fields.items():
            setattr(user, name, value)
        with translate_db_errors("update user"):
            await self.db.flush()
        return user
