"""
Tests for debt ledger endpoints.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from qred.core.config import settings
from qred.models.user import User
from qred.services.ledger import local_today


def new_debt_payload(**overrides) -> dict:
    payload = {
        "debtor_phone_number": "08012345678",
        "debtor_name": "Bayo",
        "principal": "100,000",
        "interest_rate": "8",
        "due_date": (local_today() + timedelta(days=14)).isoformat(),
        "notes": "Shop restock",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_debt(
    client: AsyncClient,
    test_user: User,
    debtor_user: User,
    auth_headers: dict,
) -> None:
    """Test creating a new debt."""
    response = await client.post(
        "/api/v1/debts/",
        json=new_debt_payload(),
        headers=auth_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["lender_id"] == test_user.id
    assert data["debtor_id"] == debtor_user.id
    assert data["debtor_phone_number"] == "+2348012345678"
    assert Decimal(data["calculated_interest"]) == Decimal("8000.00")
    assert Decimal(data["total_amount"]) == Decimal("108000.00")
    assert Decimal(data["outstanding_balance"]) == Decimal("108000.00")
    assert Decimal(data["amount_paid"]) == Decimal("0")
    assert data["status"] == "PENDING"
    assert data["display_status"] == "PENDING"
    assert data["days_until_due"] == 14


@pytest.mark.asyncio
async def test_create_debt_accepts_numeric_amounts(
    client: AsyncClient, auth_headers: dict
) -> None:
    response = await client.post(
        "/api/v1/debts/",
        json=new_debt_payload(principal=2500.5, interest_rate=None),
        headers=auth_headers,
    )

    assert response.status_code == 201
    assert Decimal(response.json()["total_amount"]) == Decimal("2500.50")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"principal": "12.345"}, "principal"),
        ({"principal": "1" * 30}, "principal"),
        ({"interest_rate": "150"}, "interest_rate"),
        ({"due_date": "2020-01-01"}, "due_date"),
        ({"debtor_phone_number": "555-0100"}, "debtor_phone_number"),
    ],
)
async def test_create_debt_validation(
    client: AsyncClient, auth_headers: dict, overrides, field
) -> None:
    response = await client.post(
        "/api/v1/debts/",
        json=new_debt_payload(**overrides),
        headers=auth_headers,
    )

    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "validation_error"
    assert data["field"] == field


@pytest.mark.asyncio
async def test_requires_authentication(client: AsyncClient) -> None:
    response = await client.get("/api/v1/debts/")
    assert response.status_code == 401

    response = await client.get(
        "/api/v1/debts/", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_record_payments_until_settled(
    client: AsyncClient,
    test_user: User,
    debtor_user: User,
    auth_headers: dict,
    debtor_auth_headers: dict,
    make_debt,
) -> None:
    debt = await make_debt(test_user, debtor_user, principal="50000")
    url = f"/api/v1/debts/{debt.id}/payments"

    response = await client.post(url, json={"amount": "20,000"}, headers=auth_headers)
    assert response.status_code == 201
    receipt = response.json()
    assert Decimal(receipt["debt"]["outstanding_balance"]) == Decimal("30000.00")
    assert Decimal(receipt["debt"]["amount_paid"]) == Decimal("20000.00")
    assert Decimal(receipt["payment"]["balance_after_payment"]) == Decimal("30000.00")
    assert receipt["payment"]["gateway"] == "manual"

    response = await client.post(url, json={"amount": "30001"}, headers=auth_headers)
    assert response.status_code == 422
    assert response.json()["field"] == "amount"

    response = await client.post(url, json={"amount": "9" * 40}, headers=auth_headers)
    assert response.status_code == 422
    assert response.json()["field"] == "amount"

    response = await client.post(url, json={"amount": "100"}, headers=debtor_auth_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "authorization_error"

    response = await client.post(url, json={"amount": 30000}, headers=auth_headers)
    assert response.status_code == 201
    settled = response.json()["debt"]
    assert settled["status"] == "PAID"
    assert settled["display_status"] == "PAID"
    assert settled["paid_at"] is not None

    response = await client.post(url, json={"amount": "1"}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_state_error"

    response = await client.get(url, headers=debtor_auth_headers)
    assert response.status_code == 200
    history = response.json()
    assert [Decimal(p["balance_after_payment"]) for p in history] == [
        Decimal("30000.00"),
        Decimal("0.00"),
    ]

    response = await client.get(
        f"/api/v1/debts/{debt.id}/reconciliation", headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["consistent"] is True


@pytest.mark.asyncio
async def test_duplicate_reference_conflicts(
    client: AsyncClient,
    test_user: User,
    debtor_user: User,
    auth_headers: dict,
    make_debt,
) -> None:
    debt = await make_debt(test_user, debtor_user)
    url = f"/api/v1/debts/{debt.id}/payments"
    body = {"amount": "100", "reference": "psk_abc", "gateway": "paystack"}

    first = await client.post(url, json=body, headers=auth_headers)
    second = await client.post(url, json=body, headers=auth_headers)

    assert first.status_code == 201
    assert first.json()["payment"]["reference"] == "psk_abc"
    assert second.status_code == 409
    assert second.json()["error"] == "conflict_error"


@pytest.mark.asyncio
async def test_get_debt_visibility(
    client: AsyncClient,
    test_user: User,
    debtor_user: User,
    auth_headers: dict,
    debtor_auth_headers: dict,
    stranger_auth_headers: dict,
    make_debt,
) -> None:
    debt = await make_debt(test_user, debtor_user)
    url = f"/api/v1/debts/{debt.id}"

    assert (await client.get(url, headers=auth_headers)).status_code == 200
    assert (await client.get(url, headers=debtor_auth_headers)).status_code == 200
    assert (await client.get(url, headers=stranger_auth_headers)).status_code == 403

    response = await client.get("/api/v1/debts/does-not-exist", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "not_found_error"


@pytest.mark.asyncio
async def test_list_and_summary(
    client: AsyncClient,
    test_user: User,
    debtor_user: User,
    auth_headers: dict,
    make_debt,
) -> None:
    current = await make_debt(test_user, debtor_user, principal="50000")
    late = await make_debt(
        test_user,
        debtor_user,
        principal="10000",
        due_date=date.today() - timedelta(days=5),
    )
    owed = await make_debt(debtor_user, test_user, principal="7000", notes="fuel")

    response = await client.get("/api/v1/debts/", headers=auth_headers)
    assert response.status_code == 200
    assert {d["id"] for d in response.json()} == {current.id, late.id, owed.id}

    response = await client.get(
        "/api/v1/debts/", params={"status": "OVERDUE"}, headers=auth_headers
    )
    overdue = response.json()
    assert [d["id"] for d in overdue] == [late.id]
    assert overdue[0]["days_until_due"] < 0

    response = await client.get(
        "/api/v1/debts/", params={"role": "owing", "q": "FUEL"}, headers=auth_headers
    )
    assert [d["id"] for d in response.json()] == [owed.id]

    response = await client.get(
        "/api/v1/debts/", params={"role": "all", "status": "pending"}, headers=auth_headers
    )
    assert {d["id"] for d in response.json()} == {current.id, owed.id}

    response = await client.get(
        "/api/v1/debts/", params={"role": "borrowing"}, headers=auth_headers
    )
    assert response.status_code == 422

    response = await client.get("/api/v1/debts/summary", headers=auth_headers)
    assert response.status_code == 200
    summary = response.json()
    assert Decimal(summary["total_lending"]) == Decimal("60000.00")
    assert summary["lending_count"] == 2
    assert Decimal(summary["total_owing"]) == Decimal("7000.00")
    assert summary["owing_count"] == 1
    assert summary["active_count"] == 3
    assert summary["overdue_count"] == 1
    assert [d["id"] for d in summary["overdue_debts"]] == [late.id]
    assert len(summary["recent_debts"]) == 3


@pytest.mark.asyncio
async def test_update_and_delete_debt(
    client: AsyncClient,
    test_user: User,
    debtor_user: User,
    auth_headers: dict,
    debtor_auth_headers: dict,
    make_debt,
) -> None:
    debt = await make_debt(test_user, debtor_user)
    url = f"/api/v1/debts/{debt.id}"

    response = await client.patch(url, json={"notes": "Rent top-up"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["notes"] == "Rent top-up"

    response = await client.patch(url, json={"notes": "mine"}, headers=debtor_auth_headers)
    assert response.status_code == 403

    limit = settings.max_notes_length
    response = await client.patch(url, json={"notes": "n" * limit}, headers=auth_headers)
    assert response.status_code == 200
    response = await client.patch(
        url, json={"notes": "n" * (limit + 1)}, headers=auth_headers
    )
    assert response.status_code == 422
    response = await client.post(
        f"{url}/payments",
        json={"amount": "1", "notes": "n" * (limit + 1)},
        headers=auth_headers,
    )
    assert response.status_code == 422

    response = await client.delete(url, headers=auth_headers)
    assert response.status_code == 204

    response = await client.get(url, headers=auth_headers)
    assert response.status_code == 404
