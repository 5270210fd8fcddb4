"""
Payment Router — channel routing and settlement normalization API.

Resolves a storefront payment method to a gateway channel, runs the
archetype-specific request sequence (bank transfer, wallet/QR,
over-the-counter), and returns one canonical payment record persisted
exactly once per order.

Start the server:
    uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from app.api.channels import router as channels_router
from app.api.errors import register_exception_handlers
from app.api.health import router as health_router
from app.api.payments import router as payments_router
from app.channels.catalog import build_registry
from app.config import settings
from app.database import dispose_db, init_db
from app.gateway.client import GatewayClient
from app.notifications.base import LogNotifier, WebhookNotifier
from app.notifications.dispatcher import NotificationDispatcher

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger("payment_router")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the process-wide gateway client, registry and dispatcher."""
    await init_db()

    http = httpx.AsyncClient(timeout=settings.gateway_timeout_seconds)
    app.state.gateway = GatewayClient(http, settings.gateway_secret_key, settings.gateway_base_url)
    app.state.registry = build_registry(disabled=settings.disabled_channels)

    if settings.notification_webhook_url:
        notifier = WebhookNotifier(http, settings.notification_webhook_url)
    else:
        notifier = LogNotifier()
    app.state.dispatcher = NotificationDispatcher(notifier)

    if not app.state.gateway.configured:
        logger.warning("No gateway secret key configured; payment creation will fail")
    logger.info("%d payment channels active", len(app.state.registry.list_active()))

    yield

    await app.state.dispatcher.drain()
    await http.aclose()
    await dispose_db()


app = FastAPI(
    title="Payment Router",
    description=(
        "Routes storefront payment methods to gateway channels, binds bank "
        "transfers to fixed accounts, and normalizes every upstream response "
        "shape into one canonical, idempotently stored payment record."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

app.include_router(health_router)
app.include_router(payments_router, prefix="/api")
app.include_router(channels_router, prefix="/api")
