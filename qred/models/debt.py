"""
Debt and payment models.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from qred.models.base import BaseModel

MONEY = Numeric(14, 2)

MANUAL_GATEWAY = "manual"


class DebtStatus(str, PyEnum):
    """Persisted debt status. The only transition is PENDING -> PAID."""

    PENDING = "PENDING"
    PAID = "PAID"


class DisplayStatus(str, PyEnum):
    """Status shown to users, derived on every read and never stored."""

    PENDING = "PENDING"
    OVERDUE = "OVERDUE"
    PAID = "PAID"


class PaymentStatus(str, PyEnum):
    """Settlement state of a payment. Only SUCCESSFUL payments reduce a balance."""

    PENDING = "PENDING"
    SUCCESSFUL = "SUCCESSFUL"
    FAILED = "FAILED"


class Debt(BaseModel):
    """A lending agreement between a lender and a counterparty."""

    __tablename__ = "debts"
    __table_args__ = (
        CheckConstraint("principal_amount > 0", name="ck_debts_principal_positive"),
        CheckConstraint(
            "interest_rate >= 0 AND interest_rate <= 100",
            name="ck_debts_interest_rate_range",
        ),
        CheckConstraint(
            "outstanding_balance >= 0 AND outstanding_balance <= total_amount",
            name="ck_debts_balance_range",
        ),
    )

    # Parties
    lender_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    debtor_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    debtor_phone_number: Mapped[Optional[str]] = mapped_column(
        String(20), nullable=True, index=True
    )
    debtor_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_external: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    external_lender_name: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )

    # Terms, fixed at creation
    principal_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    interest_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Simple interest percentage applied once at creation",
    )
    calculated_interest: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    # Mutable ledger state
    outstanding_balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[DebtStatus] = mapped_column(
        Enum(DebtStatus),
        nullable=False,
        default=DebtStatus.PENDING,
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Bumped on every balance change; guards conditional updates",
    )

    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    payments = relationship(
        "Payment",
        back_populates="debt",
        lazy="raise",
        passive_deletes=True,
        order_by="Payment.paid_at",
    )

    def __repr__(self) -> str:
        """String representation of the debt."""
        return (
            f"<Debt(id={self.id}, balance={self.outstanding_balance}, "
            f"status={self.status})>"
        )


class Payment(BaseModel):
    """A settlement event against a debt."""

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
    )

    debt_id: Mapped[str] = mapped_column(
        ForeignKey("debts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    reference: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    gateway: Mapped[str] = mapped_column(
        String(50), nullable=False, default=MANUAL_GATEWAY
    )
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus),
        nullable=False,
        default=PaymentStatus.SUCCESSFUL,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    recorded_by: Mapped[Optional[str]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    debt = relationship("Debt", back_populates="payments", lazy="raise")

    def __repr__(self) -> str:
        """String representation of the payment."""
        return f"<Payment(id={self.id}, debt_id={self.debt_id}, amount={self.amount})>"
