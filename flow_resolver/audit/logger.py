"""
Immutable audit trail for resolution decisions.

Every decision and reported outcome gets an append-only entry with:
  - User ID (whose payment)
  - Intent ID (the caller's correlation key)
  - Action (what happened)
  - Details (chosen rail, top-up, reason codes, explanation)
  - Timestamp (UTC)

These records are never modified or deleted.
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from flow_resolver.models.records import AuditLog

logger = logging.getLogger("flow_resolver.audit")


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


def to_json(details: dict[str, Any]) -> str:
    return json.dumps(details, default=_json_default)


async def log_event(
    session: AsyncSession,
    action: str,
    user_id: Optional[str] = None,
    intent_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> AuditLog:
    """
    Create an immutable audit log entry.

    Args:
        session: Database session.
        action: What happened (e.g. "payment_resolved", "payment_recorded").
        user_id: Whose payment this is.
        intent_id: The caller's correlation id for the payment.
        details: Arbitrary context (serialized to JSON).

    Returns:
        The created AuditLog record.
    """
    payload = to_json(details) if details else None
    entry = AuditLog(
        user_id=user_id,
        intent_id=intent_id,
        action=action,
        details=payload,
        timestamp=datetime.now(timezone.utc),
    )
    session.add(entry)
    logger.info(
        "AUDIT | user=%s intent=%s action=%s | %s",
        user_id or "-",
        intent_id or "-",
        action,
        payload[:200] if payload else "",
    )
    return entry
