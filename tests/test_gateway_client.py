"""Tests for the gateway HTTP client."""

import base64

import httpx
import pytest

from app.engine.errors import GatewayNotConfigured, GatewayRejected, GatewayUnreachable
from app.gateway.base import FIXED_ACCOUNT_ENDPOINT, PAYMENT_REQUEST_ENDPOINT, PAYMENT_REQUEST_V3_ENDPOINT
from app.gateway.client import GatewayClient
from conftest import SECRET_KEY


@pytest.mark.asyncio
async def test_headers(gateway, gateway_client):
    gateway.reply("/payment_requests", body={"id": "pr_1"})

    body = await gateway_client.send(PAYMENT_REQUEST_ENDPOINT, {"amount": 1}, "ord-1")

    assert body == {"id": "pr_1"}
    call = gateway.calls[0]
    expected = base64.b64encode(f"{SECRET_KEY}:".encode()).decode()
    assert call.headers["Authorization"] == f"Basic {expected}"
    assert call.headers["api-version"] == "2022-07-31"
    assert call.headers["X-IDEMPOTENCY-KEY"] == "ord-1"
    assert str(call.url) == "https://gateway.test/payment_requests"


@pytest.mark.asyncio
async def test_each_endpoint_sends_its_own_api_version(gateway, gateway_client):
    gateway.reply("/virtual_accounts", body={"id": "va_1"})
    gateway.reply("/v3/payment_requests", body={"payment_request_id": "pr_2"})

    await gateway_client.send(FIXED_ACCOUNT_ENDPOINT, {}, "ord-1")
    await gateway_client.send(PAYMENT_REQUEST_V3_ENDPOINT, {}, "ord-1")

    assert gateway.calls[0].headers["api-version"] == FIXED_ACCOUNT_ENDPOINT.api_version
    assert gateway.calls[1].headers["api-version"] == PAYMENT_REQUEST_V3_ENDPOINT.api_version
    assert FIXED_ACCOUNT_ENDPOINT.api_version != PAYMENT_REQUEST_V3_ENDPOINT.api_version


@pytest.mark.asyncio
async def test_rejection_keeps_status_and_body(gateway, gateway_client):
    error = {"error_code": "CHANNEL_NOT_ACTIVATED", "message": "Channel not activated"}
    gateway.reply("/payment_requests", status=403, body=error)

    with pytest.raises(GatewayRejected) as exc:
        await gateway_client.send(PAYMENT_REQUEST_ENDPOINT, {}, "ord-1")

    assert exc.value.status == 403
    assert exc.value.body == error
    assert exc.value.error_code == "CHANNEL_NOT_ACTIVATED"


@pytest.mark.asyncio
async def test_transport_failure(gateway, gateway_client):
    gateway.fail("/payment_requests", httpx.ConnectTimeout)

    with pytest.raises(GatewayUnreachable):
        await gateway_client.send(PAYMENT_REQUEST_ENDPOINT, {}, "ord-1")


@pytest.mark.asyncio
async def test_missing_secret_key_sends_nothing(gateway):
    async with httpx.AsyncClient(transport=httpx.MockTransport(gateway.handler)) as http:
        client = GatewayClient(http, None, "https://gateway.test")
        assert not client.configured
        with pytest.raises(GatewayNotConfigured):
            await client.send(PAYMENT_REQUEST_ENDPOINT, {}, "ord-1")

    assert gateway.calls == []
