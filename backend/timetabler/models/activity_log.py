import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from timetabler.db.base import Base

TIMETABLE_ENTITY = "timetable"

# Actions recorded against a timetable; status changes append the new status.
TIMETABLE_CREATED = "timetable.create"
TIMETABLE_DELETED = "timetable.delete"
TIMETABLE_SLOTS_GENERATED = "timetable.generate"
TIMETABLE_STATUS_PREFIX = "timetable.status."


def status_action(status: str) -> str:
    return f"{TIMETABLE_STATUS_PREFIX}{status}"


class ActivityLog(Base):
    """One audited change, kept after the timetable itself is deleted."""

    __tablename__ = "activity_logs"
    __table_args__ = (Index("ix_activity_logs_entity", "entity_type", "entity_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, default=TIMETABLE_ENTITY)
    entity_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
