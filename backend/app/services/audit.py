from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.models.activity_log import ActivityLog
from app.models.user import User

logger = logging.getLogger(__name__)


def log_activity(
    db: Session,
    *,
    user: User | None,
    action: str,
    entity_type: str,
    entity_id: str,
    details: dict | None = None,
) -> None:
    """Stage an audit row; it commits or rolls back together with the scheduling write."""
    db.add(
        ActivityLog(
            user_id=user.id if user is not None else None,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details or {},
        )
    )
    logger.debug(
        "AUDIT STAGED | action=%s | entity=%s:%s | user_id=%s",
        action,
        entity_type,
        entity_id,
        user.id if user is not None else None,
    )
