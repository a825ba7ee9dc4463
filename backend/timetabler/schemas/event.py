from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

TimetableEventName = Literal[
    "timetable.created",
    "timetable.slots_generated",
    "timetable.status_changed",
    "timetable.deleted",
    "timetable.edit_requested",
    "timetable.view_requested",
]

# Events a connected client may raise for its own session.
CLIENT_EVENTS = {"timetable.edit_requested", "timetable.view_requested"}


class TimetableEvent(BaseModel):
    event: TimetableEventName
    timetable_id: str = Field(min_length=1, max_length=36)
    payload: dict = Field(default_factory=dict)
    emitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
