"""
Error taxonomy surfaced by the payment engine.

Client-input errors (InvalidRequest, InvalidChannel, ChannelInactive,
AmountOutOfRange) are
raised before any network call. Gateway errors keep the upstream status and
body for support triage. PersistenceFailed and NotificationFailed never fail
an attempt: the engine records and logs them, the caller still gets the
gateway's result.
"""

from typing import Any, Optional


class EngineError(Exception):
    """Base class for all engine errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(EngineError):
    """The request is missing a required field or carries an unusable value."""

    status_code = 400

    def __init__(self, message: str, reason: str = "invalid_request"):
        super().__init__(message)
        self.reason = reason


class InvalidChannel(EngineError):
    """The requested payment method id is not in the registry."""

    status_code = 400

    def __init__(self, channel_id: str):
        super().__init__(f"Unknown payment method: {channel_id}")
        self.channel_id = channel_id


class ChannelInactive(EngineError):
    """The payment method exists but is currently deactivated."""

    status_code = 400

    def __init__(self, channel_id: str):
        super().__init__(f"Payment method is not active: {channel_id}")
        self.channel_id = channel_id


class AmountOutOfRange(EngineError):
    """The amount falls outside the channel's [min, max] range."""

    status_code = 400

    def __init__(self, channel_id: str, amount: int, min_amount: int, max_amount: int):
        super().__init__(
            f"Amount {amount} is outside the allowed range for {channel_id} "
            f"({min_amount} - {max_amount})"
        )
        self.channel_id = channel_id
        self.amount = amount
        self.min_amount = min_amount
        self.max_amount = max_amount


class GatewayNotConfigured(EngineError):
    """No gateway secret key is configured."""

    def __init__(self, message: str = "Payment gateway not configured"):
        super().__init__(message)


class GatewayRejected(EngineError):
    """The gateway answered with an error status (or an unusable 2xx)."""

    def __init__(self, status: int, body: Optional[dict[str, Any]], message: Optional[str] = None):
        body = body or {}
        super().__init__(message or body.get("message") or f"Gateway rejected request ({status})")
        self.status = status
        self.body = body

    @property
    def error_code(self) -> Optional[str]:
        return self.body.get("error_code")


class GatewayUnreachable(EngineError):
    """No response from the gateway (connect failure or timeout)."""

    def __init__(self, message: str):
        super().__init__(message)


class PersistenceFailed(EngineError):
    """Local bookkeeping failed after (or around) a successful gateway call."""

    def __init__(self, operation: str, cause: Exception):
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


class NotificationFailed(EngineError):
    """A fire-and-forget notification could not be delivered."""

    def __init__(self, kind: str, cause: Exception):
        super().__init__(f"{kind} notification failed: {cause}")
        self.kind = kind
        self.cause = cause


UNAVAILABLE_CHANNEL_CODES = {
    "CHANNEL_NOT_ACTIVATED",
    "CHANNEL_CODE_NOT_SUPPORTED",
    "CHANNEL_NOT_FOUND",
    "NOT_FOUND",
    "DATA_NOT_FOUND",
}

GATEWAY_ERROR_MESSAGES: dict[str, str] = {
    "API_VALIDATION_ERROR": "The payment request was rejected, please check the submitted details",
    "DUPLICATE_ERROR": "A payment for this order already exists",
    "DUPLICATE_PAYMENT_REQUEST_ERROR": "A payment for this order already exists",
    "INVALID_API_KEY": "Payment gateway is not configured correctly",
    "REQUEST_FORBIDDEN_ERROR": "Payment gateway is not configured correctly",
    "MAXIMUM_TRANSFER_LIMIT_ERROR": "Amount exceeds the limit of this payment method",
    "MINIMUM_TRANSFER_LIMIT_ERROR": "Amount is below the minimum of this payment method",
}


def is_channel_unavailable(error: GatewayRejected) -> bool:
    return (error.error_code or "").upper() in UNAVAILABLE_CHANNEL_CODES


def describe_gateway_error(error: GatewayRejected) -> str:
    """Best-effort human-readable message for a gateway rejection."""
    if is_channel_unavailable(error):
        return "Payment method currently unavailable, please try an alternative"
    code = (error.error_code or "").upper()
    return GATEWAY_ERROR_MESSAGES.get(code) or error.message
