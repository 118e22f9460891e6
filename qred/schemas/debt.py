"""
Debt and payment schemas for API requests and responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from qred.core.config import settings
from qred.models.debt import DebtStatus, DisplayStatus, PaymentStatus


def _amount_as_text(value: Any) -> Any:
    # Amounts arrive as form text; JSON numbers are accepted and parsed the same way.
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return str(value)
    return value


class DebtCreate(BaseModel):
    """Schema for creating a new debt from raw form input."""

    debtor_phone_number: Optional[str] = Field(None, max_length=32)
    debtor_id: Optional[str] = Field(None, max_length=36)
    debtor_name: Optional[str] = Field(None, max_length=255)
    principal: str = Field(..., description="Amount lent, e.g. '50,000' or '50000.00'")
    interest_rate: Optional[str] = Field(None, description="Percentage from 0 to 100")
    due_date: date
    notes: Optional[str] = Field(None, max_length=settings.max_notes_length)
    is_external: bool = Field(False, description="Counterparty is not a registered user")
    external_lender_name: Optional[str] = Field(None, max_length=255)

    @field_validator("principal", "interest_rate", mode="before")
    @classmethod
    def coerce_amounts(cls, v: Any) -> Any:
        return _amount_as_text(v)


class DebtUpdate(BaseModel):
    """Editable, non-monetary fields of a pending debt."""

    debtor_name: Optional[str] = Field(None, max_length=255)
    debtor_phone_number: Optional[str] = Field(None, max_length=32)
    external_lender_name: Optional[str] = Field(None, max_length=255)
    due_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=settings.max_notes_length)


class DebtResponse(BaseModel):
    """Schema for debt response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    lender_id: str
    debtor_id: Optional[str] = None
    debtor_phone_number: Optional[str] = None
    debtor_name: Optional[str] = None
    is_external: bool
    external_lender_name: Optional[str] = None
    principal_amount: Decimal
    interest_rate: Decimal
    calculated_interest: Decimal
    total_amount: Decimal
    outstanding_balance: Decimal
    due_date: date
    status: DebtStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    paid_at: Optional[datetime] = None

    # Calculated fields
    display_status: Optional[DisplayStatus] = Field(None, description="PENDING, OVERDUE or PAID as of today")
    amount_paid: Optional[Decimal] = Field(None, description="Total paid so far")
    days_until_due: Optional[int] = Field(None, description="Negative once the due date has passed")


class PaymentCreate(BaseModel):
    """Schema for recording a payment against a debt."""

    amount: str = Field(..., description="Amount received, e.g. '20,000'")
    notes: Optional[str] = Field(None, max_length=settings.max_notes_length)
    reference: Optional[str] = Field(
        None,
        min_length=1,
        max_length=100,
        description="Gateway reference; generated for manual payments when omitted",
    )
    gateway: Optional[str] = Field(None, min_length=1, max_length=50)

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Any:
        return _amount_as_text(v)


class PaymentResponse(BaseModel):
    """Schema for payment response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    debt_id: str
    amount: Decimal
    reference: str
    gateway: str
    status: PaymentStatus
    notes: Optional[str] = None
    paid_at: datetime
    recorded_by: Optional[str] = None
    created_at: datetime

    balance_after_payment: Optional[Decimal] = Field(None, description="Debt balance after this payment")


class PaymentReceipt(BaseModel):
    """The updated debt together with the payment just recorded."""

    debt: DebtResponse
    payment: PaymentResponse


class DebtSummary(BaseModel):
    """Dashboard totals for the current user."""

    total_lending: Decimal = Field(..., description="Outstanding balance owed to the user")
    lending_count: int
    total_owing: Decimal = Field(..., description="Outstanding balance the user owes")
    owing_count: int
    active_count: int = Field(..., description="Debts still pending")
    paid_count: int
    overdue_count: int
    overdue_debts: List[DebtResponse]
    recent_debts: List[DebtResponse]


class ReconciliationResponse(BaseModel):
    """Stored balance compared with the balance implied by payments."""

    model_config = ConfigDict(from_attributes=True)

    debt_id: str
    total_amount: Decimal
    successful_payments_total: Decimal
    successful_payments_count: int
    expected_balance: Decimal
    outstanding_balance: Decimal
    balance_consistent: bool
    status_consistent: bool
    consistent: bool
