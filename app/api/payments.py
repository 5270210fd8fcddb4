"""
Payment endpoints.

POST /payments            — Create a payment for an order on one channel.
GET  /payments/{id}       — Stored canonical payment.
GET  /payments/{id}/trace — Payment plus its full audit trail.
"""

import json
from dataclasses import replace
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_engine
from app.config import settings
from app.database import get_session
from app.engine.orchestrator import PaymentEngine
from app.engine.retry import with_retry
from app.models.enums import ChannelArchetype, OrderType
from app.models.payment import Customer, OrderDetails, PaymentRequest, PaymentResult
from app.models.records import AuditLog, PaymentRecord
from app.storage.repository import find_fixed_account, find_payment, stored_result

router = APIRouter(prefix="/payments", tags=["payments"])


class CustomerIn(BaseModel):
    given_names: Optional[str] = None
    email: Optional[str] = None
    mobile_number: Optional[str] = None


class OrderIn(BaseModel):
    product_id: Optional[str] = None
    order_type: OrderType = OrderType.PURCHASE
    rental_duration: Optional[str] = None
    user_id: Optional[str] = None


class CreatePaymentBody(BaseModel):
    amount: int = Field(gt=0, description="Amount in minor currency units")
    currency: str = "IDR"
    payment_method_id: str = Field(min_length=1)
    external_id: str = Field(min_length=1)
    customer: CustomerIn = Field(default_factory=CustomerIn)
    description: Optional[str] = None
    success_redirect_url: Optional[str] = None
    failure_redirect_url: Optional[str] = None
    order: Optional[OrderIn] = None

    def to_request(self) -> PaymentRequest:
        return PaymentRequest(
            amount=self.amount,
            channel_id=self.payment_method_id,
            external_id=self.external_id,
            currency=self.currency.upper(),
            customer=Customer(
                name=self.customer.given_names or "",
                email=self.customer.email,
                phone=self.customer.mobile_number,
            ),
            description=self.description,
            success_url=self.success_redirect_url,
            failure_url=self.failure_redirect_url,
            order=OrderDetails(**self.order.model_dump()) if self.order else None,
        )


class PaymentResponse(BaseModel):
    id: str
    external_id: str
    amount: int
    currency: str
    status: str
    payment_method: str
    expiry_date: str
    virtual_account_number: Optional[str] = None
    account_number: Optional[str] = None
    bank_code: Optional[str] = None
    account_holder_name: Optional[str] = None
    invoice_url: Optional[str] = None
    qr_string: Optional[str] = None
    redirect_url: Optional[str] = None
    payment_code: Optional[str] = None


class AuditEntry(BaseModel):
    id: int
    action: str
    details: Optional[dict] = None
    timestamp: Optional[str]


class PaymentTrace(BaseModel):
    payment: PaymentResponse
    audit_trail: list[AuditEntry]


async def _load_result(session: AsyncSession, payment_id: str) -> tuple[PaymentRecord, PaymentResult]:
    record = await find_payment(session, payment_id)
    if not record:
        raise HTTPException(status_code=404, detail=f"Payment not found: {payment_id}")

    result = stored_result(record)
    if result.archetype == ChannelArchetype.BANK_TRANSFER and not result.account_number:
        # Older rows may lack account details; the fixed account still has them.
        account = await find_fixed_account(session, record.external_id)
        if account is not None:
            result = replace(
                result,
                account_number=account.account_number,
                bank_code=result.bank_code or account.bank_code,
                account_holder_name=result.account_holder_name or account.account_holder_name,
            )
    return record, result


@router.post("", response_model=PaymentResponse, response_model_exclude_none=True)
async def create_payment(body: CreatePaymentBody, engine: PaymentEngine = Depends(get_engine)):
    """
    Create a payment on the selected channel.

    Idempotent per external_id: repeating the call returns the stored
    payment instead of creating a second one upstream.
    """
    outcome = await with_retry(
        engine.create_payment,
        body.to_request(),
        max_retries=settings.gateway_transport_retries,
        base_delay=settings.gateway_retry_delay_seconds,
    )
    return outcome.result.to_response()


@router.get("/{payment_id}", response_model=PaymentResponse, response_model_exclude_none=True)
async def get_payment(payment_id: str, session: AsyncSession = Depends(get_session)):
    _, result = await _load_result(session, payment_id)
    return result.to_response()


@router.get("/{payment_id}/trace", response_model=PaymentTrace, response_model_exclude_none=True)
async def get_payment_trace(payment_id: str, session: AsyncSession = Depends(get_session)):
    """
    Full audit trail for a payment.

    Includes every entry for the attempt's external id, so steps logged
    before the upstream id was known (channel resolution, fixed account
    creation) show up too.
    """
    record, result = await _load_result(session, payment_id)

    logs = (await session.execute(
        select(AuditLog)
        .where(or_(AuditLog.payment_id == payment_id, AuditLog.external_id == record.external_id))
        .order_by(AuditLog.timestamp.asc(), AuditLog.id.asc())
    )).scalars().all()

    audit_trail = []
    for log in logs:
        details = None
        if log.details:
            try:
                details = json.loads(log.details)
            except (json.JSONDecodeError, TypeError):
                details = {"raw": log.details}

        audit_trail.append(AuditEntry(
            id=log.id,
            action=log.action,
            details=details,
            timestamp=log.timestamp.isoformat() if log.timestamp else None,
        ))

    return PaymentTrace(payment=PaymentResponse(**result.to_response()), audit_trail=audit_trail)
