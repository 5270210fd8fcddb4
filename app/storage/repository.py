"""
Idempotent persistence for orders, payments and fixed accounts.

Order creation is deduplicated twice:
  1. by external id (unique constraint, the hard guarantee)
  2. by customer email + amount within a short look-back window, which
     catches double-clicked "pay" buttons that arrive with fresh external ids

The window check is read-then-write and therefore best-effort: two requests
landing at the same instant can both pass it. The unique constraint on
external_id still holds in that case.

Payments are upserted on the upstream payment id, so normalizing the same
attempt twice (e.g. after a caller-side retry) overwrites instead of
duplicating. Every database error is wrapped in PersistenceFailed after
rolling the session back, so the caller can keep using it.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.engine.errors import PersistenceFailed
from app.models.payment import FixedAccount, PaymentResult
from app.models.records import FixedAccountRecord, OrderRecord, PaymentRecord

logger = logging.getLogger("payment_router.storage")

DUPLICATE_WINDOW = timedelta(minutes=2)


async def _find_order_by_external_id(session: AsyncSession, external_id: str) -> Optional[OrderRecord]:
    result = await session.execute(select(OrderRecord).where(OrderRecord.external_id == external_id))
    return result.scalars().first()


async def _find_recent_duplicate(
    session: AsyncSession,
    customer_email: str,
    amount: int,
    since: datetime,
) -> Optional[OrderRecord]:
    result = await session.execute(
        select(OrderRecord)
        .where(
            OrderRecord.customer_email == customer_email,
            OrderRecord.amount == amount,
            OrderRecord.created_at >= since,
        )
        .order_by(OrderRecord.created_at.desc())
        .limit(1)
    )
    return result.scalars().first()


async def upsert_order(
    session: AsyncSession,
    order: OrderRecord,
    window: timedelta = DUPLICATE_WINDOW,
    match_recent: bool = True,
) -> tuple[OrderRecord, bool]:
    """
    Insert ``order`` unless the same attempt is already recorded.

    ``order.created_at`` must be set; the look-back window is measured from it.
    With ``match_recent=False`` only the external id is matched.

    Returns:
        (order, created). ``created`` is False when an existing order was
        returned unchanged.

    Raises:
        PersistenceFailed: On any database error.
    """
    try:
        existing = await _find_order_by_external_id(session, order.external_id)
        if existing is None and match_recent and order.customer_email:
            existing = await _find_recent_duplicate(
                session, order.customer_email, order.amount, order.created_at - window
            )
        if existing is not None:
            logger.info(
                "Duplicate order for %s: reusing %s (external_id=%s)",
                order.external_id,
                existing.id,
                existing.external_id,
            )
            return existing, False

        session.add(order)
        await session.commit()
        logger.info("Order %s created for %s", order.id, order.external_id)
        return order, True

    except IntegrityError as e:
        # Lost the race on external_id: the other writer's row is the order.
        await session.rollback()
        try:
            winner = await _find_order_by_external_id(session, order.external_id)
        except SQLAlchemyError as inner:
            await session.rollback()
            raise PersistenceFailed("upsert_order", inner) from inner
        if winner is None:
            raise PersistenceFailed("upsert_order", e) from e
        return winner, False

    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceFailed("upsert_order", e) from e


async def claim_order_notification(session: AsyncSession, order_id: str, when: datetime) -> bool:
    """
    Mark an order as notified, once.

    A conditional UPDATE, so of several attempts racing for the same order
    exactly one gets True.

    Raises:
        PersistenceFailed: On any database error.
    """
    try:
        result = await session.execute(
            update(OrderRecord)
            .where(OrderRecord.id == order_id, OrderRecord.notified_at.is_(None))
            .values(notified_at=when)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        return result.rowcount == 1
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceFailed("claim_order_notification", e) from e


def _payment_columns(result: PaymentResult, raw: Optional[dict[str, Any]]) -> dict[str, Any]:
    return {
        "external_id": result.external_id,
        "payment_method": result.channel_id,
        "archetype": result.archetype.value,
        "amount": result.amount,
        "currency": result.currency,
        "status": result.status,
        "expiry_date": result.expiry_time,
        "payment_data": json.dumps(result.to_dict()),
        "raw_response": json.dumps(raw) if raw is not None else None,
    }


async def upsert_payment(
    session: AsyncSession,
    result: PaymentResult,
    raw: Optional[dict[str, Any]] = None,
) -> PaymentRecord:
    """
    Store the canonical result keyed by its upstream id, overwriting any previous row.

    Raises:
        PersistenceFailed: On any database error.
    """
    columns = _payment_columns(result, raw)
    try:
        record = await session.get(PaymentRecord, result.id)
        if record is None:
            record = PaymentRecord(id=result.id, **columns)
            session.add(record)
        else:
            for name, value in columns.items():
                setattr(record, name, value)
        await session.commit()
        return record
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceFailed("upsert_payment", e) from e


async def upsert_fixed_account(
    session: AsyncSession,
    account: FixedAccount,
    external_id: str,
    bound: bool = False,
) -> FixedAccountRecord:
    """
    Record a gateway fixed account for reconciliation, keyed by external id.

    Raises:
        PersistenceFailed: On any database error.
    """
    columns = {
        "gateway_account_id": account.gateway_account_id,
        "bank_code": account.bank_code,
        "account_number": account.account_number,
        "account_holder_name": account.account_holder_name,
        "expected_amount": account.expected_amount,
        "expiration_time": account.expiration_time,
        "bound": 1 if bound else 0,
    }
    try:
        record = await session.get(FixedAccountRecord, external_id)
        if record is None:
            record = FixedAccountRecord(external_id=external_id, **columns)
            session.add(record)
        else:
            for name, value in columns.items():
                setattr(record, name, value)
        await session.commit()
        return record
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceFailed("upsert_fixed_account", e) from e


async def find_payment(session: AsyncSession, payment_id: str) -> Optional[PaymentRecord]:
    return await session.get(PaymentRecord, payment_id)


async def find_payment_for_order(
    session: AsyncSession,
    external_id: str,
    channel_id: str,
) -> Optional[PaymentRecord]:
    """Most recent stored payment for an order's external id on the given channel."""
    result = await session.execute(
        select(PaymentRecord)
        .where(PaymentRecord.external_id == external_id, PaymentRecord.payment_method == channel_id)
        .order_by(PaymentRecord.created_at.desc())
        .limit(1)
    )
    return result.scalars().first()


async def find_fixed_account(session: AsyncSession, external_id: str) -> Optional[FixedAccountRecord]:
    return await session.get(FixedAccountRecord, external_id)


def stored_result(record: PaymentRecord) -> PaymentResult:
    """Rebuild the canonical result persisted in ``payment_data``."""
    return PaymentResult.from_dict(json.loads(record.payment_data))
