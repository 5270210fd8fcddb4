"""Tests for the fixed-account + invoice binding sequence."""

import pytest

from app.engine.binder import VirtualAccountBinder, validate_transition
from app.engine.errors import GatewayRejected
from app.gateway.payloads import build_payload
from app.models.enums import BinderState
from conftest import NOW, make_request

ACCOUNT = {"id": "va_1", "account_number": "8808123", "bank_code": "BRI", "name": "Budi Santoso", "expected_amount": 100_000}
INVOICE = {"id": "inv_1", "status": "PENDING", "amount": 100_000, "invoice_url": "https://checkout.test/inv_1"}


def bri_plan(registry):
    return build_payload(registry.resolve("bri"), make_request("bri", 100_000), NOW)


@pytest.mark.asyncio
async def test_bound(registry, gateway, gateway_client):
    gateway.reply("/virtual_accounts", body=ACCOUNT)
    gateway.reply("/v2/invoices", body=INVOICE)

    outcome = await VirtualAccountBinder(gateway_client).bind(bri_plan(registry), "ord-1")

    assert outcome.bound
    assert outcome.history == [
        BinderState.CREATING_ACCOUNT,
        BinderState.ACCOUNT_CREATED,
        BinderState.BINDING_INVOICE,
        BinderState.BOUND,
    ]
    assert outcome.fixed_account.account_number == "8808123"
    assert outcome.invoice_response == INVOICE

    invoice_call = gateway.calls_to("/v2/invoices")[0]
    assert gateway.body(invoice_call)["callback_virtual_account_id"] == "va_1"
    # account first, invoice second
    assert [c.url.path for c in gateway.calls] == ["/virtual_accounts", "/v2/invoices"]


@pytest.mark.asyncio
async def test_account_rejected_no_invoice(registry, gateway, gateway_client):
    error = {"error_code": "API_VALIDATION_ERROR", "message": "description is not allowed"}
    gateway.reply("/virtual_accounts", status=400, body=error)

    outcome = await VirtualAccountBinder(gateway_client).bind(bri_plan(registry), "ord-1")

    assert outcome.failed
    assert isinstance(outcome.error, GatewayRejected)
    assert outcome.error.body == error
    assert outcome.fixed_account is None
    assert gateway.calls_to("/v2/invoices") == []


@pytest.mark.asyncio
async def test_account_without_id_fails(registry, gateway, gateway_client):
    gateway.reply("/virtual_accounts", body={"account_number": "8808123"})

    outcome = await VirtualAccountBinder(gateway_client).bind(bri_plan(registry), "ord-1")

    assert outcome.failed
    assert outcome.error.status == 502
    assert gateway.calls_to("/v2/invoices") == []


@pytest.mark.asyncio
async def test_invoice_failure_keeps_unbound_account(registry, gateway, gateway_client):
    gateway.reply("/virtual_accounts", body=ACCOUNT)
    gateway.reply("/v2/invoices", status=500, body={"error_code": "SERVER_ERROR", "message": "boom"})

    outcome = await VirtualAccountBinder(gateway_client).bind(bri_plan(registry), "ord-1")

    assert outcome.failed
    assert outcome.history[-2:] == [BinderState.BINDING_INVOICE, BinderState.FAILED]
    assert outcome.fixed_account.gateway_account_id == "va_1"
    assert outcome.error.status == 500


def test_illegal_transitions():
    with pytest.raises(ValueError):
        validate_transition(BinderState.CREATING_ACCOUNT, BinderState.BOUND)
    with pytest.raises(ValueError):
        validate_transition(BinderState.BOUND, BinderState.FAILED)
    validate_transition(BinderState.BINDING_INVOICE, BinderState.FAILED)
