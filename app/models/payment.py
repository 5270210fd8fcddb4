"""
Domain objects passed between the engine's components.

PaymentRequest is what the caller asked for, FixedAccount is the transient
bank-transfer account, and PaymentResult is the canonical, archetype-neutral
outcome of one payment attempt.
"""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Optional

from app.models.enums import ChannelArchetype, OrderType


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as UTC ISO-8601 with millisecond precision and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Customer:
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class OrderDetails:
    """Optional storefront context attached to a payment request."""

    product_id: Optional[str] = None
    order_type: OrderType = OrderType.PURCHASE
    rental_duration: Optional[str] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class PaymentRequest:
    """
    Input to the engine.

    external_id is stable across retries of the same logical attempt and is
    forwarded upstream as the idempotency key.
    """

    amount: int  # minor currency unit
    channel_id: str
    external_id: str
    currency: str = "IDR"
    customer: Customer = field(default_factory=Customer)
    description: Optional[str] = None
    success_url: Optional[str] = None
    failure_url: Optional[str] = None
    order: Optional[OrderDetails] = None

    @property
    def effective_description(self) -> str:
        return self.description or f"Payment for {self.external_id}"


@dataclass(frozen=True)
class FixedAccount:
    """A gateway account number bound to one attempt's exact amount."""

    gateway_account_id: str
    bank_code: Optional[str]
    account_number: Optional[str]
    account_holder_name: Optional[str]
    expected_amount: int
    expiration_time: Optional[datetime] = None


@dataclass(frozen=True)
class PaymentResult:
    """
    Canonical payment record.

    Built once by the normalizer and persisted verbatim. expiry_time is
    always populated; the archetype-specific fields are None when absent.
    """

    id: str
    external_id: str
    amount: int
    currency: str
    status: str
    channel_id: str
    archetype: ChannelArchetype
    expiry_time: datetime
    account_number: Optional[str] = None
    bank_code: Optional[str] = None
    account_holder_name: Optional[str] = None
    qr_payload: Optional[str] = None
    redirect_url: Optional[str] = None
    retail_payment_code: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Serializable form used for storage."""
        data = asdict(self)
        data["archetype"] = self.archetype.value
        data["expiry_time"] = format_timestamp(self.expiry_time)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaymentResult":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["archetype"] = ChannelArchetype(values["archetype"])
        values["expiry_time"] = datetime.fromisoformat(values["expiry_time"].replace("Z", "+00:00"))
        return cls(**values)

    def to_response(self) -> dict[str, Any]:
        """
        Outbound API shape.

        Bank transfers expose the account details plus the invoice URL;
        other archetypes expose exactly the field their upstream shape
        produced (qr_string, redirect_url or payment_code).
        """
        body: dict[str, Any] = {
            "id": self.id,
            "external_id": self.external_id,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status,
            "payment_method": self.channel_id,
            "expiry_date": format_timestamp(self.expiry_time),
        }
        if self.archetype == ChannelArchetype.BANK_TRANSFER:
            body["virtual_account_number"] = self.account_number
            body["account_number"] = self.account_number
            body["bank_code"] = self.bank_code
            body["account_holder_name"] = self.account_holder_name
            body["invoice_url"] = self.redirect_url
        else:
            body["qr_string"] = self.qr_payload
            body["redirect_url"] = self.redirect_url
            body["payment_code"] = self.retail_payment_code
        return {k: v for k, v in body.items() if v is not None}
