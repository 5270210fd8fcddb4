"""
Fixed-account + invoice binding for bank transfers.

State machine:

    CREATING_ACCOUNT → ACCOUNT_CREATED → BINDING_INVOICE → BOUND
           │                                  │
           └──────────────► FAILED ◄──────────┘

The invoice is only submitted once the account call returned a 2xx with a
non-empty account id, and the two calls are strictly sequential (the second
needs the first's output). A created-but-unbound account is live at the
gateway, so it is returned with the failure for reconciliation.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from app.engine.errors import EngineError, GatewayRejected
from app.gateway.base import PayloadPlan
from app.gateway.client import GatewayClient
from app.gateway.payloads import bind_invoice
from app.models.enums import BinderState
from app.models.payment import FixedAccount

logger = logging.getLogger("payment_router.binder")

ALLOWED_TRANSITIONS: dict[BinderState, set[BinderState]] = {
    BinderState.CREATING_ACCOUNT: {BinderState.ACCOUNT_CREATED, BinderState.FAILED},
    BinderState.ACCOUNT_CREATED: {BinderState.BINDING_INVOICE},
    BinderState.BINDING_INVOICE: {BinderState.BOUND, BinderState.FAILED},
    BinderState.BOUND: set(),
    BinderState.FAILED: set(),
}


def validate_transition(current: BinderState, new: BinderState) -> None:
    """Raise when a transition is not allowed by the state machine."""
    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ValueError(f"Invalid binder transition: {current.value} -> {new.value}")


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def fixed_account_from_response(raw: dict[str, Any], bank_code: str, expected_amount: int) -> FixedAccount:
    """Build the FixedAccount from an account-creation response."""
    return FixedAccount(
        gateway_account_id=str(raw["id"]),
        bank_code=raw.get("bank_code") or bank_code,
        account_number=raw.get("account_number"),
        account_holder_name=raw.get("name"),
        expected_amount=int(raw.get("expected_amount") or expected_amount),
        expiration_time=_parse_datetime(raw.get("expiration_date")),
    )


@dataclass
class BindingOutcome:
    """Result of one binding sequence, successful or not."""

    state: BinderState = BinderState.CREATING_ACCOUNT
    history: list[BinderState] = field(default_factory=lambda: [BinderState.CREATING_ACCOUNT])
    fixed_account: Optional[FixedAccount] = None
    invoice_response: Optional[dict[str, Any]] = None
    error: Optional[EngineError] = None

    @property
    def bound(self) -> bool:
        return self.state == BinderState.BOUND

    @property
    def failed(self) -> bool:
        return self.state == BinderState.FAILED

    def advance(self, new: BinderState) -> None:
        validate_transition(self.state, new)
        self.state = new
        self.history.append(new)


class VirtualAccountBinder:
    """Runs the two-call bank-transfer sequence against the gateway."""

    def __init__(self, client: GatewayClient):
        self._client = client

    async def bind(self, plan: PayloadPlan, idempotency_key: str) -> BindingOutcome:
        """
        Create the fixed account, then the invoice bound to it.

        Never raises gateway errors: they are captured on the outcome so the
        caller can persist a live account before surfacing the failure.
        """
        if plan.account is None:
            raise ValueError("Payload plan has no fixed-account step")

        outcome = BindingOutcome()
        account_body = plan.account.body

        try:
            raw_account = await self._client.send(plan.account.endpoint, account_body, idempotency_key)
        except EngineError as e:
            logger.warning("Fixed account creation failed for %s: %s", idempotency_key, e)
            outcome.error = e
            outcome.advance(BinderState.FAILED)
            return outcome

        if not raw_account.get("id"):
            # A 2xx without an account id cannot be bound to anything.
            outcome.error = GatewayRejected(502, raw_account, "Gateway returned no fixed account id")
            outcome.advance(BinderState.FAILED)
            return outcome

        outcome.fixed_account = fixed_account_from_response(
            raw_account,
            bank_code=account_body.get("bank_code", ""),
            expected_amount=account_body.get("expected_amount", 0),
        )
        outcome.advance(BinderState.ACCOUNT_CREATED)
        logger.info(
            "Fixed account %s created for %s (%s)",
            outcome.fixed_account.gateway_account_id,
            idempotency_key,
            outcome.fixed_account.bank_code,
        )

        outcome.advance(BinderState.BINDING_INVOICE)
        invoice = bind_invoice(plan.request, outcome.fixed_account.gateway_account_id)
        try:
            outcome.invoice_response = await self._client.send(invoice.endpoint, invoice.body, idempotency_key)
        except EngineError as e:
            logger.warning(
                "Invoice binding failed for %s, account %s left unbound: %s",
                idempotency_key,
                outcome.fixed_account.gateway_account_id,
                e,
            )
            outcome.error = e
            outcome.advance(BinderState.FAILED)
            return outcome

        outcome.advance(BinderState.BOUND)
        return outcome
