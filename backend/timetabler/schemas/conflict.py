from pydantic import BaseModel
from typing import Literal, List

class ConflictDetail(BaseModel):
    id: str
    conflict_type: Literal[
        "faculty_conflict",
        "classroom_conflict",
        "batch_conflict",
        "classroom_type",
    ]
    description: str
    severity: Literal["hard", "soft"]
    affected_slots: List[str]  # List of timetable slot IDs involved

class ResolutionAction(BaseModel):
    action_type: Literal["move_slot", "change_classroom", "change_faculty"]
    description: str
    target_slot_id: str
    parameters: dict  # e.g. {"classroom_id": "r1"}

class ConflictReport(BaseModel):
    timetable_id: str | None = None
    conflicts: List[ConflictDetail]
    suggested_resolutions: List[ResolutionAction]
