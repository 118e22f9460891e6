"""
User schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserUpdate(BaseModel):
    """Profile fields the user may change."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(None, max_length=32)


class User(BaseModel):
    """User response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    is_active: bool
    created_at: datetime


class UserMe(User):
    """Current user with the number of debts linked by this request."""

    linked_debts: int = 0


class LinkResult(BaseModel):
    """Outcome of linking unclaimed debts to the current user."""

    linked_debts: int
