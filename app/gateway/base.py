"""
Upstream gateway request shapes.

The gateway exposes three REST surfaces the engine talks to: fixed-account
creation, invoices, and the generic payment request (in two API versions).
Each one requires its own api-version header value.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from app.models.enums import ChannelArchetype


@dataclass(frozen=True)
class GatewayEndpoint:
    """A gateway REST endpoint and the api-version header it expects."""

    name: str
    path: str
    api_version: str


FIXED_ACCOUNT_ENDPOINT = GatewayEndpoint("fixed_account", "/virtual_accounts", "2020-10-31")
INVOICE_ENDPOINT = GatewayEndpoint("invoice", "/v2/invoices", "2021-10-01")
PAYMENT_REQUEST_ENDPOINT = GatewayEndpoint("payment_request", "/payment_requests", "2022-07-31")
PAYMENT_REQUEST_V3_ENDPOINT = GatewayEndpoint("payment_request_v3", "/v3/payment_requests", "2024-11-11")


@dataclass(frozen=True)
class GatewayPayload:
    """A JSON body bound for one endpoint."""

    endpoint: GatewayEndpoint
    body: dict[str, Any]


@dataclass(frozen=True)
class PayloadPlan:
    """
    Everything the engine needs to submit one attempt.

    ``request`` is the call whose response gets normalized. For bank
    transfers ``account`` is the fixed-account call that must succeed first;
    its id is bound into ``request`` before submission.
    """

    archetype: ChannelArchetype
    requested_at: datetime
    requested_expiry: datetime
    request: GatewayPayload
    account: Optional[GatewayPayload] = None

    @property
    def requires_binding(self) -> bool:
        return self.account is not None
