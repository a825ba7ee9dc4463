from __future__ import annotations

from sqlalchemy.orm import Session

from timetabler.models.activity_log import TIMETABLE_ENTITY, ActivityLog
from timetabler.models.user import User


def log_activity(
    db: Session,
    *,
    user: User | None,
    action: str,
    entity_id: str | None = None,
    entity_type: str = TIMETABLE_ENTITY,
    details: dict | None = None,
) -> ActivityLog:
    """Stage an audit row; it is committed with the caller's change or not at all."""
    record = ActivityLog(
        user_id=user.id if user is not None else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    db.add(record)
    return record
