"""Tests for idempotent order, payment and fixed-account storage."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from app.models.enums import ChannelArchetype
from app.models.payment import FixedAccount, PaymentResult
from app.models.records import OrderRecord, PaymentRecord
from app.storage.repository import (
    claim_order_notification,
    find_fixed_account,
    find_payment_for_order,
    stored_result,
    upsert_fixed_account,
    upsert_order,
    upsert_payment,
)
from conftest import NOW


def order(external_id: str, created_at=NOW, email: str = "budi@example.com", amount: int = 50_000) -> OrderRecord:
    return OrderRecord(
        external_id=external_id,
        customer_email=email,
        amount=amount,
        payment_method="qris",
        created_at=created_at,
    )


def result(payment_id: str = "pr_1", status: str = "PENDING") -> PaymentResult:
    return PaymentResult(
        id=payment_id,
        external_id="ord-1",
        amount=50_000,
        currency="IDR",
        status=status,
        channel_id="qris",
        archetype=ChannelArchetype.WALLET_OR_QR,
        expiry_time=NOW + timedelta(hours=24),
        qr_payload="00020101",
    )


async def count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestUpsertOrder:
    @pytest.mark.asyncio
    async def test_insert(self, db_session):
        record, created = await upsert_order(db_session, order("ord-1"))
        assert created
        assert record.status == "pending"
        assert record.id

    @pytest.mark.asyncio
    async def test_same_external_id_returns_existing(self, db_session):
        first, _ = await upsert_order(db_session, order("ord-1"))
        again, created = await upsert_order(db_session, order("ord-1", created_at=NOW + timedelta(hours=1), email="x@y.z"))
        assert not created
        assert again.id == first.id
        assert await count(db_session, OrderRecord) == 1

    @pytest.mark.asyncio
    async def test_same_email_and_amount_within_window(self, db_session):
        first, _ = await upsert_order(db_session, order("ord-1"))
        again, created = await upsert_order(db_session, order("ord-2", created_at=NOW + timedelta(seconds=90)))
        assert not created
        assert again.id == first.id

    @pytest.mark.asyncio
    async def test_outside_window_creates_new(self, db_session):
        await upsert_order(db_session, order("ord-1"))
        _, created = await upsert_order(db_session, order("ord-2", created_at=NOW + timedelta(minutes=3)))
        assert created
        assert await count(db_session, OrderRecord) == 2

    @pytest.mark.asyncio
    async def test_different_amount_creates_new(self, db_session):
        await upsert_order(db_session, order("ord-1"))
        _, created = await upsert_order(db_session, order("ord-2", amount=60_000, created_at=NOW + timedelta(seconds=10)))
        assert created

    @pytest.mark.asyncio
    async def test_window_match_can_be_skipped(self, db_session):
        await upsert_order(db_session, order("ord-1"))
        record, created = await upsert_order(
            db_session, order("ord-2", created_at=NOW + timedelta(seconds=30)), match_recent=False
        )
        assert created
        assert record.external_id == "ord-2"
        assert await count(db_session, OrderRecord) == 2


class TestClaimNotification:
    @pytest.mark.asyncio
    async def test_claimed_once(self, db_session):
        record, _ = await upsert_order(db_session, order("ord-1"))
        assert await claim_order_notification(db_session, record.id, NOW)
        assert not await claim_order_notification(db_session, record.id, NOW + timedelta(seconds=5))

    @pytest.mark.asyncio
    async def test_unknown_order_is_not_claimed(self, db_session):
        assert not await claim_order_notification(db_session, "missing", NOW)


class TestUpsertPayment:
    @pytest.mark.asyncio
    async def test_overwrites_on_same_upstream_id(self, db_session):
        await upsert_payment(db_session, result(status="PENDING"), {"id": "pr_1"})
        await upsert_payment(db_session, result(status="SUCCEEDED"), {"id": "pr_1", "status": "SUCCEEDED"})

        assert await count(db_session, PaymentRecord) == 1
        record = await find_payment_for_order(db_session, "ord-1", "qris")
        assert record.status == "SUCCEEDED"
        assert record.payment_method == "qris"

    @pytest.mark.asyncio
    async def test_stored_result_round_trip(self, db_session):
        original = result()
        record = await upsert_payment(db_session, original)
        assert stored_result(record) == original

    @pytest.mark.asyncio
    async def test_find_for_order_is_channel_specific(self, db_session):
        await upsert_payment(db_session, result())
        assert await find_payment_for_order(db_session, "ord-1", "bca") is None


class TestFixedAccount:
    @pytest.mark.asyncio
    async def test_upsert_marks_binding(self, db_session):
        account = FixedAccount("va_1", "BRI", "8808123", "Budi Santoso", 100_000)
        await upsert_fixed_account(db_session, account, "ord-1", bound=False)
        await upsert_fixed_account(db_session, account, "ord-1", bound=True)

        stored = await find_fixed_account(db_session, "ord-1")
        assert stored.gateway_account_id == "va_1"
        assert stored.bound == 1
