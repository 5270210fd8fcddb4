"""SQLAlchemy models for orders, payments and fixed accounts."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class OrderRecord(Base):
    """
    A storefront order awaiting payment.

    Created before the gateway call so notifications can reference it. The
    unique constraint on external_id is the hard duplicate guard; the
    email/amount/created_at index backs the short look-back window.
    """

    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_email_amount_created", "customer_email", "amount", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    external_id = Column(String(100), nullable=False, unique=True)
    customer_name = Column(String(200), nullable=True)
    customer_email = Column(String(200), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    amount = Column(Integer, nullable=False)
    product_id = Column(String(36), nullable=True)
    order_type = Column(String(20), nullable=False, default="purchase")
    rental_duration = Column(String(50), nullable=True)
    user_id = Column(String(36), nullable=True)
    payment_method = Column(String(30), nullable=True)  # internal channel id
    status = Column(String(20), nullable=False, default="pending")
    notified_at = Column(DateTime(timezone=True), nullable=True)  # set once the new-order notification is sent
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class PaymentRecord(Base):
    """
    Canonical payment result, keyed by the upstream payment id.

    payment_data holds the normalized result verbatim (JSON); raw_response
    keeps the gateway body for support triage.
    """

    __tablename__ = "payments"

    id = Column(String(100), primary_key=True)  # upstream id
    external_id = Column(String(100), nullable=False, index=True)
    payment_method = Column(String(30), nullable=False)  # internal channel id, never the gateway echo
    archetype = Column(String(30), nullable=False)
    amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="IDR")
    status = Column(String(30), nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=False)
    payment_data = Column(Text, nullable=False)
    raw_response = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class FixedAccountRecord(Base):
    """Gateway-side fixed account created for one bank-transfer attempt."""

    __tablename__ = "fixed_accounts"

    external_id = Column(String(100), primary_key=True)
    gateway_account_id = Column(String(100), nullable=False)
    bank_code = Column(String(30), nullable=True)
    account_number = Column(String(50), nullable=True)
    account_holder_name = Column(String(200), nullable=True)
    expected_amount = Column(Integer, nullable=False)
    expiration_time = Column(DateTime(timezone=True), nullable=True)
    bound = Column(Integer, default=0)  # 1 once an invoice references the account
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class AuditLog(Base):
    """
    Append-only trail of engine events.

    Every routing decision, gateway call and failure gets an entry keyed by
    the caller's external id (and the upstream payment id once known).
    """

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(100), nullable=True, index=True)
    payment_id = Column(String(100), nullable=True, index=True)
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=_utcnow)
