"""
Payment engine: one payment attempt end to end.

The flow for each attempt:

  1. Request checks and channel resolution (no I/O before these pass)
  2. Order recording (deduplicated by external id and a short window)
  3. Payload construction for the channel's archetype
  4. Gateway execution (bank transfers: fixed account, then bound invoice)
  5. Normalization into one canonical PaymentResult
  6. Payment persistence (upsert on the upstream id)
  7. New-order notification, once per order, fire-and-forget

Idempotency guarantees:
  - external_id is forwarded upstream as the idempotency key
  - one order per external_id (unique constraint)
  - a repeated attempt whose payment is already stored is answered from
    storage without calling the gateway

Persistence failures after a successful gateway call are collected on the
outcome and never fail the attempt: the customer still gets their payment
instructions.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit.logger import log_event
from app.channels.registry import ChannelRegistry, PaymentChannel
from app.engine.binder import VirtualAccountBinder
from app.engine.eligibility import check_request
from app.engine.errors import (
    EngineError,
    GatewayNotConfigured,
    GatewayRejected,
    InvalidRequest,
    PersistenceFailed,
)
from app.engine.normalizer import NormalizationContext, normalize
from app.gateway.base import PayloadPlan
from app.gateway.client import GatewayClient
from app.gateway.payloads import DEFAULT_EXPIRY_HOURS, build_payload
from app.models.enums import OrderStatus, OrderType
from app.models.payment import FixedAccount, PaymentRequest, PaymentResult
from app.models.records import OrderRecord
from app.notifications.base import OrderNotification
from app.notifications.dispatcher import NotificationDispatcher
from app.storage.repository import (
    DUPLICATE_WINDOW,
    claim_order_notification,
    find_payment_for_order,
    stored_result,
    upsert_fixed_account,
    upsert_order,
    upsert_payment,
)

logger = logging.getLogger("payment_router.engine")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PaymentOutcome:
    """What one create_payment call produced."""

    result: PaymentResult
    order: Optional[OrderRecord] = None
    replayed: bool = False
    persistence_errors: list[PersistenceFailed] = field(default_factory=list)


class PaymentEngine:
    """
    Runs payment attempts against one database session.

    The registry and the gateway client are shared for the process lifetime;
    the engine itself is cheap and built per request.
    """

    def __init__(
        self,
        registry: ChannelRegistry,
        client: GatewayClient,
        session: AsyncSession,
        dispatcher: Optional[NotificationDispatcher] = None,
        callback_url: Optional[str] = None,
        expiry_hours: int = DEFAULT_EXPIRY_HOURS,
        duplicate_window: timedelta = DUPLICATE_WINDOW,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._registry = registry
        self._client = client
        self._session = session
        self._dispatcher = dispatcher
        self._callback_url = callback_url
        self._expiry_hours = expiry_hours
        self._duplicate_window = duplicate_window
        self._clock = clock
        self._binder = VirtualAccountBinder(client)

    async def create_payment(self, request: PaymentRequest) -> PaymentOutcome:
        """
        Create (or replay) the payment for one attempt.

        Raises:
            InvalidRequest, InvalidChannel, ChannelInactive, AmountOutOfRange:
                Client errors, raised before any I/O.
            GatewayNotConfigured: No gateway secret key.
            GatewayRejected: The gateway refused the request (or returned
                an unusable body).
            GatewayUnreachable: No response from the gateway.
        """
        check = check_request(request)
        if not check.eligible:
            raise InvalidRequest(check.message, check.reason.value if check.reason else "invalid_request")

        channel = self._registry.require(request.channel_id, request.amount)
        if not self._client.configured:
            raise GatewayNotConfigured()

        requested_at = self._clock()
        errors: list[PersistenceFailed] = []

        log_event(self._session, "channel_resolved", external_id=request.external_id, details={
            "channel": channel.id,
            "archetype": channel.archetype.value,
            "gateway_channel_code": channel.gateway_channel_code,
            "amount": request.amount,
        })

        order, created = await self._record_order(request, channel, requested_at, errors)
        # A later rollback expires the ORM instance; keep its keys as plain values.
        order_id = order.id if order is not None else None
        order_external_id = order.external_id if order is not None else None

        if order is not None and not created:
            replay = await self._stored_payment(order_external_id, channel, errors)
            if replay is not None:
                log_event(self._session, "payment_replayed", external_id=request.external_id, payment_id=replay.id)
                await self._flush_audit(errors)
                logger.info("Replaying stored payment %s for %s", replay.id, request.external_id)
                return PaymentOutcome(result=replay, order=order, replayed=True, persistence_errors=errors)

            if order_external_id != request.external_id:
                # Recent order of the same customer, nothing to replay on this
                # channel: the payment gets an order under its own external id.
                logger.info(
                    "Order %s matched %s by customer and amount only, recording a separate order",
                    order_external_id,
                    request.external_id,
                )
                order, created = await self._record_order(request, channel, requested_at, errors, match_recent=False)
                order_id = order.id if order is not None else None

        plan = build_payload(
            channel,
            request,
            requested_at,
            callback_url=self._callback_url,
            expiry_hours=self._expiry_hours,
        )

        if plan.requires_binding:
            raw, fixed_account = await self._bind(plan, request, errors)
        else:
            raw = await self._send(plan, request)
            fixed_account = None

        result = self._normalize(plan, raw, request, channel, fixed_account)

        try:
            await upsert_payment(self._session, result, raw)
        except PersistenceFailed as e:
            logger.error("Payment %s for %s not stored: %s", result.id, request.external_id, e)
            errors.append(e)

        log_event(self._session, "payment_created", external_id=request.external_id, payment_id=result.id, details={
            "channel": channel.id,
            "status": result.status,
            "expiry": result.expiry_time,
        })
        await self._flush_audit(errors)

        if order_id is not None:
            await self._notify_once(order_id, request, result, errors)

        logger.info(
            "Payment %s created for %s via %s (%s)",
            result.id,
            request.external_id,
            channel.id,
            channel.archetype.value,
        )
        return PaymentOutcome(result=result, order=order, persistence_errors=errors)

    # ─── Steps ─────────────────────────────────────────────────────────

    async def _record_order(
        self,
        request: PaymentRequest,
        channel: PaymentChannel,
        requested_at: datetime,
        errors: list[PersistenceFailed],
        match_recent: bool = True,
    ) -> tuple[Optional[OrderRecord], bool]:
        details = request.order
        record = OrderRecord(
            external_id=request.external_id,
            customer_name=request.customer.name or None,
            customer_email=request.customer.email,
            customer_phone=request.customer.phone,
            amount=request.amount,
            product_id=details.product_id if details else None,
            order_type=(details.order_type if details else OrderType.PURCHASE).value,
            rental_duration=details.rental_duration if details else None,
            user_id=details.user_id if details else None,
            payment_method=channel.id,
            status=OrderStatus.PENDING.value,
            created_at=requested_at,
        )
        try:
            return await upsert_order(self._session, record, self._duplicate_window, match_recent=match_recent)
        except PersistenceFailed as e:
            logger.error("Order for %s not recorded: %s", request.external_id, e)
            errors.append(e)
            return None, False

    async def _stored_payment(
        self,
        external_id: str,
        channel: PaymentChannel,
        errors: list[PersistenceFailed],
    ) -> Optional[PaymentResult]:
        try:
            record = await find_payment_for_order(self._session, external_id, channel.id)
        except SQLAlchemyError as e:
            await self._session.rollback()
            errors.append(PersistenceFailed("find_payment_for_order", e))
            return None
        return stored_result(record) if record is not None else None

    async def _send(self, plan: PayloadPlan, request: PaymentRequest) -> dict[str, Any]:
        endpoint = plan.request.endpoint
        try:
            return await self._client.send(endpoint, plan.request.body, request.external_id)
        except EngineError as e:
            log_event(self._session, "gateway_failed", external_id=request.external_id, details={
                "endpoint": endpoint.name,
                "error": e.message,
                "status": getattr(e, "status", None),
                "body": getattr(e, "body", None),
            })
            await self._flush_audit([])
            raise

    async def _bind(
        self,
        plan: PayloadPlan,
        request: PaymentRequest,
        errors: list[PersistenceFailed],
    ) -> tuple[dict[str, Any], Optional[FixedAccount]]:
        outcome = await self._binder.bind(plan, request.external_id)

        if outcome.fixed_account is not None:
            log_event(self._session, "fixed_account_created", external_id=request.external_id, details={
                "gateway_account_id": outcome.fixed_account.gateway_account_id,
                "bank_code": outcome.fixed_account.bank_code,
                "bound": outcome.bound,
            })
            try:
                await upsert_fixed_account(self._session, outcome.fixed_account, request.external_id, bound=outcome.bound)
            except PersistenceFailed as e:
                logger.error("Fixed account for %s not stored: %s", request.external_id, e)
                errors.append(e)

        if outcome.failed:
            log_event(self._session, "binding_failed", external_id=request.external_id, details={
                "states": [s.value for s in outcome.history],
                "error": outcome.error.message if outcome.error else None,
                "body": getattr(outcome.error, "body", None),
            })
            await self._flush_audit([])
            raise outcome.error or GatewayRejected(502, None, "Fixed account binding failed")

        return outcome.invoice_response or {}, outcome.fixed_account

    def _normalize(
        self,
        plan: PayloadPlan,
        raw: dict[str, Any],
        request: PaymentRequest,
        channel: PaymentChannel,
        fixed_account: Optional[FixedAccount],
    ) -> PaymentResult:
        context = NormalizationContext(
            request=request,
            channel_id=channel.id,
            requested_at=plan.requested_at,
            requested_expiry=plan.requested_expiry,
        )
        try:
            return normalize(plan.archetype, raw, context, fixed_account)
        except ValueError as e:
            raise GatewayRejected(502, raw, str(e)) from e

    async def _notify_once(
        self,
        order_id: str,
        request: PaymentRequest,
        result: PaymentResult,
        errors: list[PersistenceFailed],
    ) -> None:
        if self._dispatcher is None:
            return
        try:
            claimed = await claim_order_notification(self._session, order_id, self._clock())
        except PersistenceFailed as e:
            logger.error("Notification for order %s not claimed: %s", order_id, e)
            errors.append(e)
            return
        if not claimed:
            return
        details = request.order
        self._dispatcher.dispatch(OrderNotification(
            order_id=order_id,
            external_id=request.external_id,
            customer_name=request.customer.name,
            amount=request.amount,
            payment_method=result.channel_id,
            order_type=(details.order_type if details else OrderType.PURCHASE).value,
            product_id=details.product_id if details else None,
            customer_phone=request.customer.phone,
            payment_id=result.id,
        ))

    async def _flush_audit(self, errors: list[PersistenceFailed]) -> None:
        try:
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            logger.error("Audit entries not stored: %s", e)
            errors.append(PersistenceFailed("audit_log", e))
