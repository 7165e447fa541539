"""Tests for wallets and the ledger."""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from medix.core.exceptions import BadRequestException, InsufficientFundsException
from medix.schemas.wallets import WalletTransactionType
from medix.services.wallet_service import WalletService

BOOKING_URL = "/api/v1/appointments/appointment-Booking"


@pytest.mark.asyncio
async def test_open_wallet_is_idempotent(
    client: AsyncClient,
    patient_headers: dict,
) -> None:
    missing = await client.get("/api/v1/wallets/me", headers=patient_headers)
    assert missing.status_code == 404

    first = await client.post("/api/v1/wallets/me", headers=patient_headers)
    second = await client.post("/api/v1/wallets/me", headers=patient_headers)

    assert first.status_code == 201
    assert first.json()["balance"] == 0
    assert first.json()["currency"] == "VND"
    assert second.json()["id"] == first.json()["id"]


@pytest.mark.asyncio
async def test_transactions_after_booking(
    client: AsyncClient,
    patient_headers: dict,
    wallet: dict,
    monday_schedule: dict,
    booking_payload,
) -> None:
    await client.post(BOOKING_URL, json=booking_payload((10, 0), (11, 0)), headers=patient_headers)

    wallet_response = await client.get("/api/v1/wallets/me", headers=patient_headers)
    assert wallet_response.json()["balance"] == 300000.0

    response = await client.get("/api/v1/wallets/me/transactions", headers=patient_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["transaction_type_code"] == "AppointmentPayment"
    assert data["items"][0]["balance_after"] == 300000.0


@pytest.mark.asyncio
async def test_debit_and_credit(db_session, wallet: dict) -> None:
    service = WalletService(db_session)

    debit = await service.debit_wallet(wallet["id"], Decimal("120000"))
    credit = await service.credit_wallet(
        wallet["id"], Decimal("20000"), WalletTransactionType.DEPOSIT, description="Top up"
    )
    await db_session.commit()

    assert Decimal(str(debit["balance_after"])) == Decimal("380000")
    assert Decimal(str(credit["balance_before"])) == Decimal("380000")
    assert Decimal(str(credit["balance_after"])) == Decimal("400000")

    items, total = await service.list_transactions(wallet["id"], page=1, page_size=10)
    assert total == 2
    assert {item["transaction_type_code"] for item in items} == {"AppointmentPayment", "Deposit"}


@pytest.mark.asyncio
async def test_debit_never_goes_negative(db_session, wallet: dict) -> None:
    service = WalletService(db_session)

    with pytest.raises(InsufficientFundsException):
        await service.debit_wallet(wallet["id"], Decimal("500000.01"))

    with pytest.raises(BadRequestException):
        await service.debit_wallet(wallet["id"], Decimal("0"))

    await db_session.rollback()
    record = await service.get_wallet_by_user_id(wallet["user_id"])
    assert Decimal(str(record["balance"])) == Decimal("500000")
