"""
Current user endpoints.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from qred.api.dependencies import get_current_active_user, get_db
from qred.models.user import User
from qred.schemas.user import LinkResult, User as UserSchema, UserMe, UserUpdate
from qred.services.debt import DebtService
from qred.services.user import UserService

router = APIRouter()


@router.get("/me", response_model=UserSchema)
async def read_user_me(
    current_user: User = Depends(get_current_active_user),
) -> Any:
    """
    Get current user.
    """
    return current_user


@router.patch("/me", response_model=UserMe)
async def update_user_me(
    *,
    db: AsyncSession = Depends(get_db),
    user_in: UserUpdate,
    current_user: User = Depends(get_current_active_user),
) -> Any:
    """
    Update current user. Adding a phone number claims debts recorded against it.
    """
    user_id = current_user.id
    service = UserService(db)
    user, linked = await service.update_profile(user_id, user_in)

    response = UserMe.model_validate(user)
    response.linked_debts = linked
    return response


@router.post("/me/link-debts", response_model=LinkResult)
async def link_debts(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Any:
    """
    Attach debts recorded against the current user's phone number.
    """
    user_id = current_user.id
    service = DebtService(db)
    linked = await service.link_debts_to_user(user_id)
    return LinkResult(linked_debts=linked)
