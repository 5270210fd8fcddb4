"""
Normalize raw gateway responses into one canonical PaymentResult.

Each archetype's response shape gets its own decoder with its own field
table, so "where does this archetype keep its id" is a lookup rather than a
branch at the call site:

  - BANK_TRANSFER     invoice response + the bound FixedAccount
  - WALLET_OR_QR      payment request with an ``actions`` array
  - OVER_THE_COUNTER  v3 payment request (payment code in actions/properties)
  - OTHER             decoded like WALLET_OR_QR

Expiry is resolved by a prioritized list of accessors (top level, first
action, echoed metadata) over twelve known field names, falling back to the
requested expiry. The search always produces a value.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from app.models.enums import ChannelArchetype
from app.models.payment import FixedAccount, PaymentRequest, PaymentResult

EXPIRY_FIELDS = (
    "expires_at",
    "expiry_date",
    "expiration_date",
    "expiry_time",
    "expiration_time",
    "expired_at",
    "expire_at",
    "expire_time",
    "expiry",
    "expiration",
    "valid_until",
    "due_date",
)

REDIRECT_ACTIONS = {"REDIRECT_CUSTOMER", "AUTH", "DEEPLINK"}
PRESENT_ACTIONS = {"PRESENT_TO_CUSTOMER", "QR_CODE"}

Accessor = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True)
class FieldTable:
    """Where one archetype's response keeps the common fields, in priority order."""

    id: tuple[str, ...]
    status: tuple[str, ...]
    amount: tuple[str, ...]
    currency: tuple[str, ...] = ("currency",)


FIELD_TABLES: dict[ChannelArchetype, FieldTable] = {
    ChannelArchetype.BANK_TRANSFER: FieldTable(id=("id",), status=("status",), amount=("amount",)),
    ChannelArchetype.WALLET_OR_QR: FieldTable(id=("id",), status=("status",), amount=("amount", "request_amount")),
    ChannelArchetype.OVER_THE_COUNTER: FieldTable(
        id=("payment_request_id", "id"),
        status=("status",),
        amount=("request_amount", "amount"),
    ),
    ChannelArchetype.OTHER: FieldTable(id=("id",), status=("status",), amount=("amount", "request_amount")),
}


@dataclass(frozen=True)
class NormalizationContext:
    """Caller-side facts the normalizer trusts over any gateway echo."""

    request: PaymentRequest
    channel_id: str
    requested_at: datetime
    requested_expiry: datetime


# ─── Field helpers ─────────────────────────────────────────────────────


def _first(raw: dict[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        value = raw.get(name)
        if value not in (None, ""):
            return value
    return None


def _dig(raw: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(raw, dict):
            return None
        raw = raw.get(key)
    return raw


def _first_action(raw: dict[str, Any]) -> Optional[dict[str, Any]]:
    actions = raw.get("actions")
    if isinstance(actions, list) and actions and isinstance(actions[0], dict):
        return actions[0]
    return None


def _metadata(raw: dict[str, Any]) -> dict[str, Any]:
    metadata = raw.get("metadata")
    return metadata if isinstance(metadata, dict) else {}


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


# ─── Expiry resolution ─────────────────────────────────────────────────


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 strings and epoch seconds/milliseconds; None when unusable."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 1e12 else value
        try:
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _field_accessor(source: Callable[[dict[str, Any]], Any], name: str) -> Accessor:
    def access(raw: dict[str, Any]) -> Any:
        container = source(raw)
        return container.get(name) if isinstance(container, dict) else None

    return access


def _top_level(raw: dict[str, Any]) -> dict[str, Any]:
    return raw


EXPIRY_ACCESSORS: tuple[Accessor, ...] = tuple(
    _field_accessor(source, name)
    for source in (_top_level, _first_action, _metadata)
    for name in EXPIRY_FIELDS
)


def resolve_expiry(raw: dict[str, Any], requested_at: datetime, fallback: datetime) -> datetime:
    """
    First usable expiry found by EXPIRY_ACCESSORS, else ``fallback``.

    Values that do not parse, or that lie before the request time, are
    skipped rather than returned.
    """
    floor = parse_timestamp(requested_at)
    for accessor in EXPIRY_ACCESSORS:
        candidate = parse_timestamp(accessor(raw))
        if candidate is not None and candidate >= floor:
            return candidate
    return fallback


# ─── Archetype decoders ────────────────────────────────────────────────


def _base_fields(archetype: ChannelArchetype, raw: dict[str, Any], context: NormalizationContext) -> dict[str, Any]:
    table = FIELD_TABLES[archetype]
    metadata = _metadata(raw)
    payment_id = _first(raw, table.id)
    if payment_id is None:
        raise ValueError(f"Gateway response carries no payment id ({archetype.value})")

    amount = _as_int(_first(raw, table.amount))
    if amount is None:
        amount = _as_int(metadata.get("amount"))
    currency = _first(raw, table.currency) or metadata.get("currency") or context.request.currency
    status = str(_first(raw, table.status) or "PENDING").upper()

    return {
        "id": str(payment_id),
        "external_id": context.request.external_id,
        "amount": amount if amount is not None else context.request.amount,
        "currency": currency,
        "status": status,
        "channel_id": context.channel_id,
        "archetype": archetype,
        "expiry_time": resolve_expiry(raw, context.requested_at, context.requested_expiry),
    }


def _decode_bank_transfer(raw: dict[str, Any], fixed_account: Optional[FixedAccount]) -> dict[str, Any]:
    fields = {
        "account_number": raw.get("account_number"),
        "bank_code": raw.get("bank_code"),
        "account_holder_name": raw.get("name") or raw.get("account_holder_name"),
        "redirect_url": raw.get("invoice_url"),
    }
    if fixed_account is not None:
        fields["account_number"] = fixed_account.account_number or fields["account_number"]
        fields["bank_code"] = fixed_account.bank_code or fields["bank_code"]
        fields["account_holder_name"] = fixed_account.account_holder_name or fields["account_holder_name"]
    return fields


def _decode_wallet(raw: dict[str, Any], fixed_account: Optional[FixedAccount]) -> dict[str, Any]:
    action = _first_action(raw)
    if action is not None:
        kind = str(action.get("type") or action.get("action") or "").upper()
        target = action.get("url") or action.get("value")
        if kind in REDIRECT_ACTIONS:
            return {"redirect_url": target}
        if kind in PRESENT_ACTIONS:
            return {"qr_payload": action.get("value") or target}
        return {}

    qr_string = _dig(raw, "payment_method", "qr_code", "channel_properties", "qr_string") or raw.get("qr_string")
    return {"qr_payload": qr_string} if qr_string else {}


def _decode_over_the_counter(raw: dict[str, Any], fixed_account: Optional[FixedAccount]) -> dict[str, Any]:
    actions = raw.get("actions") if isinstance(raw.get("actions"), list) else []
    for action in actions:
        if isinstance(action, dict) and str(action.get("descriptor", "")).upper() == "PAYMENT_CODE":
            return {"retail_payment_code": action.get("value")}

    code = (
        _dig(raw, "channel_properties", "payment_code")
        or _dig(raw, "payment_method", "over_the_counter", "channel_properties", "payment_code")
        or raw.get("payment_code")
    )
    return {"retail_payment_code": code} if code else {}


DECODERS: dict[ChannelArchetype, Callable[[dict[str, Any], Optional[FixedAccount]], dict[str, Any]]] = {
    ChannelArchetype.BANK_TRANSFER: _decode_bank_transfer,
    ChannelArchetype.WALLET_OR_QR: _decode_wallet,
    ChannelArchetype.OVER_THE_COUNTER: _decode_over_the_counter,
    ChannelArchetype.OTHER: _decode_wallet,
}


def normalize(
    archetype: ChannelArchetype,
    raw: dict[str, Any],
    context: NormalizationContext,
    fixed_account: Optional[FixedAccount] = None,
) -> PaymentResult:
    """
    Build the canonical PaymentResult for one gateway response.

    Raises:
        ValueError: The response has no payment id at all.
    """
    fields = _base_fields(archetype, raw, context)
    fields.update(DECODERS[archetype](raw, fixed_account))
    return PaymentResult(**fields)
