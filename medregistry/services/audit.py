"""Audit event stream – the output port every successful state change writes to."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from medregistry.models.registry import AuditLog

logger = logging.getLogger(__name__)


def log_action(
    db: Session,
    *,
    actor: str,
    action: str,
    resource_type: str,
    resource_id: str,
    detail: dict[str, Any] | None = None,
) -> AuditLog:
    """Append an audit event. It commits with the operation that emitted it."""
    entry = AuditLog(
        actor=actor,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        detail=detail,
    )
    db.add(entry)
    db.flush()
    logger.info("AUDIT: %s %s %s/%s", actor, action, resource_type, resource_id)
    return entry
