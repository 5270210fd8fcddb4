"""
Per-archetype request payload construction.

Pure functions: given a channel, a request and the request time, produce the
exact JSON bodies to send. Every payload carries an explicit expiry of
requested_at + 24h; that value is the single source of truth for the
requested expiry and the normalizer's last-resort fallback.

Archetypes:
  - BANK_TRANSFER     → fixed account (closed amount) + invoice bound to it
  - WALLET_OR_QR      → payment request, automatic capture, callback URL
  - OVER_THE_COUNTER  → payment request on the v3 surface (flat shape)
  - OTHER             → same shape as WALLET_OR_QR
"""

import re
from datetime import datetime, timedelta
from typing import Any, Optional

from app.channels.registry import PaymentChannel
from app.gateway.base import (
    FIXED_ACCOUNT_ENDPOINT,
    INVOICE_ENDPOINT,
    PAYMENT_REQUEST_ENDPOINT,
    PAYMENT_REQUEST_V3_ENDPOINT,
    GatewayPayload,
    PayloadPlan,
)
from app.models.enums import ChannelArchetype, OrderType
from app.models.payment import PaymentRequest, format_timestamp

DEFAULT_EXPIRY_HOURS = 24
COUNTRY = "ID"

# Account creation fails outright when these banks receive a description.
NO_DESCRIPTION_BANK_CODES = frozenset({"BRI", "BSI", "BJB"})

# Wallet/QR channels served as QR codes rather than e-wallet redirects.
QR_CHANNEL_CODES = frozenset({"QRIS"})

_BANK_WORDS = re.compile(r"bank|bni|bri|mandiri|bca|bsi|cimb|permata|institution", re.IGNORECASE)


def sanitize_holder_name(name: Optional[str]) -> str:
    """Account holder names may not contain bank names; fall back to 'Customer'."""
    cleaned = " ".join(_BANK_WORDS.sub("", name or "").split())
    return cleaned or "Customer"


def requested_expiry(requested_at: datetime, hours: int = DEFAULT_EXPIRY_HOURS) -> datetime:
    return requested_at + timedelta(hours=hours)


def order_metadata(channel: PaymentChannel, request: PaymentRequest, expires_at: datetime) -> dict[str, Any]:
    """Metadata echoed back by the gateway; used for reconciliation and as a normalizer fallback."""
    order = request.order
    return {
        "client_external_id": request.external_id,
        "payment_method": channel.id,
        "amount": request.amount,
        "currency": request.currency,
        "customer_name": request.customer.name or None,
        "customer_email": request.customer.email,
        "customer_phone": request.customer.phone,
        "product_id": order.product_id if order else None,
        "order_type": (order.order_type if order else OrderType.PURCHASE).value,
        "rental_duration": order.rental_duration if order else None,
        "user_id": order.user_id if order else None,
        "expires_at": format_timestamp(expires_at),
    }


def _customer_body(request: PaymentRequest) -> dict[str, Any]:
    customer = {
        "given_names": request.customer.name or None,
        "email": request.customer.email,
        "mobile_number": request.customer.phone,
    }
    return {k: v for k, v in customer.items() if v}


def _fixed_account_body(channel: PaymentChannel, request: PaymentRequest, expires_at: datetime) -> dict[str, Any]:
    body: dict[str, Any] = {
        "external_id": request.external_id,
        "bank_code": channel.gateway_channel_code,
        "name": sanitize_holder_name(request.customer.name),
        "is_closed": True,
        "expected_amount": request.amount,
        "expiration_date": format_timestamp(expires_at),
    }
    if channel.gateway_channel_code.upper() not in NO_DESCRIPTION_BANK_CODES:
        body["description"] = request.effective_description
    return body


def _invoice_body(
    channel: PaymentChannel,
    request: PaymentRequest,
    expires_at: datetime,
    metadata: dict[str, Any],
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "external_id": request.external_id,
        "amount": request.amount,
        "currency": request.currency,
        "description": request.effective_description,
        "payment_methods": [channel.gateway_channel_code],
        "expiry_date": format_timestamp(expires_at),
        "metadata": metadata,
    }
    if request.customer.email:
        body["payer_email"] = request.customer.email
    customer = _customer_body(request)
    if customer:
        body["customer"] = customer
    if request.success_url:
        body["success_redirect_url"] = request.success_url
    if request.failure_url:
        body["failure_redirect_url"] = request.failure_url
    return body


def _wallet_body(
    channel: PaymentChannel,
    request: PaymentRequest,
    expires_at: datetime,
    metadata: dict[str, Any],
    callback_url: Optional[str],
) -> dict[str, Any]:
    code = channel.gateway_channel_code
    channel_properties: dict[str, Any] = {"expires_at": format_timestamp(expires_at)}

    if code.upper() in QR_CHANNEL_CODES:
        method_type = "QR_CODE"
        method_key = "qr_code"
    else:
        method_type = "EWALLET"
        method_key = "ewallet"
        if request.success_url:
            channel_properties["success_return_url"] = request.success_url
        if request.failure_url:
            channel_properties["failure_return_url"] = request.failure_url

    body: dict[str, Any] = {
        "reference_id": request.external_id,
        "amount": request.amount,
        "currency": request.currency,
        "country": COUNTRY,
        "capture_method": "AUTOMATIC",
        "payment_method": {
            "type": method_type,
            "reusability": "ONE_TIME_USE",
            method_key: {
                "channel_code": code,
                "channel_properties": channel_properties,
            },
        },
        "description": request.effective_description,
        "metadata": metadata,
    }
    if callback_url:
        body["callback_url"] = callback_url
    customer = _customer_body(request)
    if customer:
        body["customer"] = {"type": "INDIVIDUAL", "reference_id": request.external_id, "individual_detail": customer}
    return body


def _over_the_counter_body(
    channel: PaymentChannel,
    request: PaymentRequest,
    expires_at: datetime,
    metadata: dict[str, Any],
    callback_url: Optional[str],
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "reference_id": request.external_id,
        "type": "PAY",
        "country": COUNTRY,
        "currency": request.currency,
        "request_amount": request.amount,
        "capture_method": "AUTOMATIC",
        "channel_code": channel.gateway_channel_code,
        "channel_properties": {
            "payer_name": sanitize_holder_name(request.customer.name),
            "expires_at": format_timestamp(expires_at),
        },
        "description": request.effective_description,
        "metadata": metadata,
    }
    if callback_url:
        body["callback_url"] = callback_url
    return body


def build_payload(
    channel: PaymentChannel,
    request: PaymentRequest,
    requested_at: datetime,
    callback_url: Optional[str] = None,
    expiry_hours: int = DEFAULT_EXPIRY_HOURS,
) -> PayloadPlan:
    """
    Build the gateway payload(s) for one attempt.

    Args:
        channel: Resolved, active channel.
        request: The caller's payment request.
        requested_at: Request time; the requested expiry derives from it.
        callback_url: Webhook URL the gateway notifies on status changes.
        expiry_hours: Requested lifetime of the payment.

    Returns:
        PayloadPlan with one payload, or two for bank transfers.
    """
    expires_at = requested_expiry(requested_at, expiry_hours)
    metadata = order_metadata(channel, request, expires_at)
    archetype = channel.archetype

    if archetype == ChannelArchetype.BANK_TRANSFER:
        return PayloadPlan(
            archetype=archetype,
            requested_at=requested_at,
            requested_expiry=expires_at,
            account=GatewayPayload(FIXED_ACCOUNT_ENDPOINT, _fixed_account_body(channel, request, expires_at)),
            request=GatewayPayload(INVOICE_ENDPOINT, _invoice_body(channel, request, expires_at, metadata)),
        )

    if archetype == ChannelArchetype.OVER_THE_COUNTER:
        body = _over_the_counter_body(channel, request, expires_at, metadata, callback_url)
        endpoint = PAYMENT_REQUEST_V3_ENDPOINT
    else:
        # WALLET_OR_QR, and OTHER degrading to the same shape
        body = _wallet_body(channel, request, expires_at, metadata, callback_url)
        endpoint = PAYMENT_REQUEST_ENDPOINT

    return PayloadPlan(
        archetype=archetype,
        requested_at=requested_at,
        requested_expiry=expires_at,
        request=GatewayPayload(endpoint, body),
    )


def bind_invoice(invoice: GatewayPayload, gateway_account_id: str) -> GatewayPayload:
    """Copy of an invoice payload bound to a freshly created fixed account."""
    body = dict(invoice.body)
    body["callback_virtual_account_id"] = gateway_account_id
    return GatewayPayload(invoice.endpoint, body)
