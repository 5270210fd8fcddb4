"""
Append-only audit trail for payment attempts.

Every engine step gets an audit log entry with:
  - External ID (the caller's attempt key)
  - Payment ID (the upstream id, once known)
  - Action (what happened)
  - Details (channel, gateway status, error bodies)
  - Timestamp (UTC)

Entries are added to the caller's session and land with the next commit;
they are never modified or deleted.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.records import AuditLog

logger = logging.getLogger("payment_router.audit")


def log_event(
    session: AsyncSession,
    action: str,
    external_id: Optional[str] = None,
    payment_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> AuditLog:
    """
    Create an audit log entry.

    Args:
        session: Database session.
        action: What happened (e.g. "channel_resolved", "fixed_account_created", "payment_created").
        external_id: The caller's attempt key.
        payment_id: The upstream payment id this event relates to.
        details: Arbitrary context (serialized to JSON).

    Returns:
        The pending AuditLog record.
    """
    entry = AuditLog(
        external_id=external_id,
        payment_id=payment_id,
        action=action,
        details=json.dumps(details, default=str) if details else None,
        timestamp=datetime.now(timezone.utc),
    )
    session.add(entry)
    logger.info(
        "AUDIT | attempt=%s payment=%s action=%s | %s",
        external_id or "-",
        payment_id or "-",
        action,
        json.dumps(details, default=str)[:200] if details else "",
    )
    return entry
