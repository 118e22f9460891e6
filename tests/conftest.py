"""
Global test fixtures and configuration.
"""

import os

# Settings are read at import time; point them at a throwaway store first.
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from qred.core.database import get_db
from qred.core.security import create_access_token
from qred.main import app
from qred.models import Base, Debt, DebtStatus, User
from qred.services.ledger import compute_terms

DEBTOR_PHONE = "+2348012345678"


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on a fresh in-memory database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client bound to the test database."""

    async def _get_test_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_test_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _create_user(db: AsyncSession, **fields) -> User:
    user = User(**fields)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """The lender in most scenarios."""
    return await _create_user(
        db_session,
        name="Ada Lender",
        email="ada@example.com",
        phone_number="+2348098765432",
    )


@pytest_asyncio.fixture
async def debtor_user(db_session: AsyncSession) -> User:
    """A registered debtor."""
    return await _create_user(
        db_session,
        name="Bayo Debtor",
        email="bayo@example.com",
        phone_number=DEBTOR_PHONE,
    )


@pytest_asyncio.fixture
async def stranger_user(db_session: AsyncSession) -> User:
    """A user who is party to nothing."""
    return await _create_user(
        db_session,
        name="Chidi Stranger",
        phone_number="+2347011112222",
    )


def _headers_for(user: User) -> dict:
    access_token = create_access_token(subject=user.id)
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Create authentication headers for the lender."""
    return _headers_for(test_user)


@pytest.fixture
def debtor_auth_headers(debtor_user: User) -> dict:
    return _headers_for(debtor_user)


@pytest.fixture
def stranger_auth_headers(stranger_user: User) -> dict:
    return _headers_for(stranger_user)


@pytest.fixture
def make_debt(db_session: AsyncSession) -> Callable:
    """Insert a debt row directly, bypassing creation-time date checks."""

    async def _make_debt(
        lender: User,
        debtor: User = None,
        principal: str = "50000",
        interest_rate: str = "0",
        due_date: date = None,
        **fields,
    ) -> Debt:
        terms = compute_terms(Decimal(principal), Decimal(interest_rate))
        values = dict(
            lender_id=lender.id,
            debtor_id=debtor.id if debtor else None,
            debtor_phone_number=debtor.phone_number if debtor else DEBTOR_PHONE,
            debtor_name=debtor.name if debtor else "Bayo Debtor",
            principal_amount=terms.principal_amount,
            interest_rate=terms.interest_rate,
            calculated_interest=terms.calculated_interest,
            total_amount=terms.total_amount,
            outstanding_balance=terms.total_amount,
            status=DebtStatus.PENDING,
            due_date=due_date or date.today() + timedelta(days=30),
        )
        values.update(fields)
        debt = Debt(**values)
        db_session.add(debt)
        await db_session.commit()
        await db_session.refresh(debt)
        return debt

    return _make_debt
