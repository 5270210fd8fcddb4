"""Request-scoped wiring of the shared gateway client, registry and dispatcher."""

from datetime import timedelta

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.channels.registry import ChannelRegistry
from app.config import settings
from app.database import get_session
from app.engine.orchestrator import PaymentEngine


def get_registry(request: Request) -> ChannelRegistry:
    return request.app.state.registry


async def get_engine(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> PaymentEngine:
    state = request.app.state
    return PaymentEngine(
        registry=state.registry,
        client=state.gateway,
        session=session,
        dispatcher=state.dispatcher,
        callback_url=settings.payment_webhook_url,
        expiry_hours=settings.payment_expiry_hours,
        duplicate_window=timedelta(seconds=settings.duplicate_order_window_seconds),
    )
