"""
Security audit events.

Each event is a discrete, named record on the ``audit`` logger with a handful of
masked fields, so an external collector can parse it without free-text scraping.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from mailcount.utils.masking import mask_email, mask_value

audit_logger = logging.getLogger("audit")


class AuditEvent(str, Enum):
    CREDENTIALS_UPLOADED = "CREDENTIALS_UPLOADED"
    CREDENTIALS_CLEARED = "CREDENTIALS_CLEARED"
    TOKEN_STORED = "TOKEN_STORED"
    TOKEN_CLEARED = "TOKEN_CLEARED"
    TOKEN_CORRUPTED = "TOKEN_CORRUPTED"
    AUTHORIZATION_STARTED = "AUTHORIZATION_STARTED"
    AUTHORIZATION_COMPLETED = "AUTHORIZATION_COMPLETED"
    AUTHORIZATION_FAILED = "AUTHORIZATION_FAILED"
    REFRESH_ATTEMPTED = "REFRESH_ATTEMPTED"
    REFRESH_FAILED = "REFRESH_FAILED"
    AGGREGATION_CANCELLED = "AGGREGATION_CANCELLED"
    PROVIDER_FAULT = "PROVIDER_FAULT"
    API_ACCESS = "API_ACCESS"


_WARNING_EVENTS = {
    AuditEvent.TOKEN_CORRUPTED,
    AuditEvent.AUTHORIZATION_FAILED,
    AuditEvent.REFRESH_FAILED,
}


def audit(
    event: AuditEvent,
    *,
    outcome: str = "success",
    identity: Optional[str] = None,
    email: Optional[str] = None,
    level: Optional[int] = None,
    **fields: Any,
) -> None:
    """Emit one audit event with masked identity and email fields."""
    if level is None:
        if event is AuditEvent.PROVIDER_FAULT:
            level = logging.ERROR
        elif event in _WARNING_EVENTS:
            level = logging.WARNING
        else:
            level = logging.INFO

    parts = [
        event.value,
        f"timestamp={datetime.now(timezone.utc).isoformat(timespec='seconds')}",
        f"outcome={outcome}",
    ]
    if identity is not None:
        parts.append(f"identity={mask_value(identity)}")
    if email is not None:
        parts.append(f"email={mask_email(email)}")
    parts.extend(f"{key}={value}" for key, value in sorted(fields.items()))
    audit_logger.log(level, " | ".join(parts))


__all__ = ["AuditEvent", "audit", "audit_logger"]
