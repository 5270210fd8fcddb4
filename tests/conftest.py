"""Shared test fixtures."""

import json
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.channels.catalog import build_registry
from app.engine.orchestrator import PaymentEngine
from app.gateway.client import GatewayClient
from app.models.payment import Customer, PaymentRequest
from app.models.records import Base
from app.notifications.base import Notifier, OrderNotification
from app.notifications.dispatcher import NotificationDispatcher

NOW = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
GATEWAY_URL = "https://gateway.test"
SECRET_KEY = "xnd_development_test"


class FakeGateway:
    """
    Scripted gateway behind httpx.MockTransport.

    Replies are queued per path; the last reply for a path repeats. Every
    request is recorded for assertions.
    """

    def __init__(self):
        self.routes: dict[str, list[tuple[Any, Any]]] = {}
        self.calls: list[httpx.Request] = []

    def reply(self, path: str, status: int = 200, body: Optional[dict] = None) -> None:
        self.routes.setdefault(path, []).append((status, body if body is not None else {}))

    def fail(self, path: str, exc_type: type[httpx.TransportError] = httpx.ConnectError) -> None:
        self.routes.setdefault(path, []).append((exc_type, None))

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [c for c in self.calls if c.url.path == path]

    @staticmethod
    def body(call: httpx.Request) -> dict:
        return json.loads(call.content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        queue = self.routes.get(request.url.path)
        if not queue:
            return httpx.Response(404, json={"error_code": "NOT_FOUND", "message": "No such route"})
        status, body = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(status, type) and issubclass(status, Exception):
            raise status("connection refused", request=request)
        return httpx.Response(status, json=body)


class RecordingNotifier(Notifier):
    def __init__(self, fail: bool = False):
        self.received: list[OrderNotification] = []
        self.fail = fail

    @property
    def name(self) -> str:
        return "recording"

    async def notify(self, notification: OrderNotification) -> None:
        if self.fail:
            raise RuntimeError("chat service down")
        self.received.append(notification)


def make_request(channel_id: str = "qris", amount: int = 50_000, external_id: str = "ord-1", **kwargs) -> PaymentRequest:
    kwargs.setdefault("customer", Customer(name="Budi Santoso", email="budi@example.com", phone="+628123456789"))
    return PaymentRequest(amount=amount, channel_id=channel_id, external_id=external_id, **kwargs)


@pytest_asyncio.fixture
async def db_session():
    """Create a fresh in-memory database for each test."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest_asyncio.fixture
async def gateway_client(gateway: FakeGateway):
    async with httpx.AsyncClient(transport=httpx.MockTransport(gateway.handler)) as http:
        yield GatewayClient(http, SECRET_KEY, GATEWAY_URL)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier: RecordingNotifier):
    return NotificationDispatcher(notifier)


@pytest.fixture
def engine(registry, gateway_client, db_session, dispatcher):
    return PaymentEngine(
        registry=registry,
        client=gateway_client,
        session=db_session,
        dispatcher=dispatcher,
        callback_url="https://shop.test/api/xendit/webhook",
        clock=lambda: NOW,
    )
