"""Enumerations for the payment routing domain model."""

from enum import Enum


class ChannelArchetype(str, Enum):
    """Structurally distinct upstream API shapes a channel can map to."""

    BANK_TRANSFER = "bank_transfer"
    WALLET_OR_QR = "wallet_or_qr"
    OVER_THE_COUNTER = "over_the_counter"
    OTHER = "other"


class BinderState(str, Enum):
    """Lifecycle states of the fixed-account + invoice binding sequence."""

    CREATING_ACCOUNT = "creating_account"
    ACCOUNT_CREATED = "account_created"
    BINDING_INVOICE = "binding_invoice"
    BOUND = "bound"
    FAILED = "failed"


class OrderStatus(str, Enum):
    """Order states written by this service. Settlement updates happen elsewhere."""

    PENDING = "pending"


class OrderType(str, Enum):
    PURCHASE = "purchase"
    RENTAL = "rental"
