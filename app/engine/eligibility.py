"""
Payment request checks with categorized rejection reasons.

Before touching the datastore or the gateway, we verify:
  1. An external id is present (it doubles as the idempotency key)
  2. A payment method was selected
  3. Amount is a positive whole number of minor units
  4. Currency is one the storefront settles in

Channel existence, activation and amount range are checked afterwards by
the channel registry.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.models.payment import PaymentRequest

SUPPORTED_CURRENCIES = {"IDR"}


class RejectReason(str, Enum):
    MISSING_EXTERNAL_ID = "missing_external_id"
    MISSING_PAYMENT_METHOD = "missing_payment_method"
    INVALID_AMOUNT = "invalid_amount"
    UNSUPPORTED_CURRENCY = "unsupported_currency"


@dataclass
class EligibilityResult:
    """Result of a request check."""

    eligible: bool
    reason: Optional[RejectReason] = None
    message: str = ""


def check_request(request: PaymentRequest) -> EligibilityResult:
    if not request.external_id or not request.external_id.strip():
        return EligibilityResult(
            eligible=False,
            reason=RejectReason.MISSING_EXTERNAL_ID,
            message="external_id is required",
        )

    if not request.channel_id or not request.channel_id.strip():
        return EligibilityResult(
            eligible=False,
            reason=RejectReason.MISSING_PAYMENT_METHOD,
            message="Payment method is required",
        )

    # bool is an int subclass
    if isinstance(request.amount, bool) or not isinstance(request.amount, int) or request.amount <= 0:
        return EligibilityResult(
            eligible=False,
            reason=RejectReason.INVALID_AMOUNT,
            message=f"Invalid amount: {request.amount}",
        )

    if (request.currency or "").upper() not in SUPPORTED_CURRENCIES:
        return EligibilityResult(
            eligible=False,
            reason=RejectReason.UNSUPPORTED_CURRENCY,
            message=f"Unsupported currency: {request.currency}",
        )

    return EligibilityResult(eligible=True)
