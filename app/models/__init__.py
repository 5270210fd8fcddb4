from app.models.enums import BinderState, ChannelArchetype, OrderStatus, OrderType
from app.models.payment import (
    Customer,
    FixedAccount,
    OrderDetails,
    PaymentRequest,
    PaymentResult,
    format_timestamp,
)
from app.models.records import AuditLog, Base, FixedAccountRecord, OrderRecord, PaymentRecord

__all__ = [
    "Base",
    "OrderRecord",
    "PaymentRecord",
    "FixedAccountRecord",
    "AuditLog",
    "ChannelArchetype",
    "BinderState",
    "OrderStatus",
    "OrderType",
    "Customer",
    "OrderDetails",
    "PaymentRequest",
    "FixedAccount",
    "PaymentResult",
    "format_timestamp",
]
