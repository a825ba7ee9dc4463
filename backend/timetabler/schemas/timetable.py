from __future__ import annotations

import re
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from timetabler.models.timetable import SlotType, TimetableStatus

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
ACADEMIC_YEAR_PATTERN = re.compile(r"^(\d{4})-(\d{2}|\d{4})$")


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


class TimetableCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    batch_id: str = Field(min_length=1, max_length=36)
    academic_year: str = Field(min_length=1, max_length=20)
    semester: int = Field(ge=1, le=8)
    auto_generate: bool = True

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("Name is required")
        return name

    @field_validator("academic_year")
    @classmethod
    def validate_academic_year(cls, value: str) -> str:
        academic_year = value.strip()
        match = ACADEMIC_YEAR_PATTERN.match(academic_year)
        if match is None:
            raise ValueError("Academic year must look like 2025-26 or 2025-2026")
        start, end = match.groups()
        expected_end = str(int(start) + 1)
        if end != expected_end and end != expected_end[-2:]:
            raise ValueError("Academic year must span two consecutive years")
        return academic_year


class BatchSummary(BaseModel):
    id: str
    name: str
    department: str
    year: int
    semester: int
    section: str

    model_config = ConfigDict(from_attributes=True)


class TimetableOut(BaseModel):
    id: str
    name: str
    batch_id: str
    academic_year: str
    semester: int
    status: TimetableStatus
    created_by: str
    approved_by: str | None = None
    published_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    batch: BatchSummary | None = None

    model_config = ConfigDict(from_attributes=True)


class TimetableCreateResponse(BaseModel):
    timetable: TimetableOut
    slots_created: int = 0
    generation_error: str | None = None


class StatusTransitionRequest(BaseModel):
    status: TimetableStatus


class TimetableSlotOut(BaseModel):
    id: str
    timetable_id: str
    day_of_week: int
    start_time: str
    end_time: str
    subject_id: str
    faculty_id: str
    classroom_id: str
    type: SlotType
    subject_name: str | None = None
    subject_code: str | None = None
    faculty_name: str | None = None
    classroom_name: str | None = None
    building: str | None = None


class SkippedCellOut(BaseModel):
    day_of_week: int
    window_index: int
    start_time: str
    reason: Literal["blocked", "batch_busy", "no_faculty", "no_classroom"]


class FacultyWorkload(BaseModel):
    faculty_id: str
    faculty_name: str | None = None
    assigned_hours: float
    max_hours_per_week: int
    over_limit: bool


class WorkloadReport(BaseModel):
    timetable_id: str
    academic_year: str
    semester: int
    faculty: list[FacultyWorkload]


class GenerateSlotsResponse(BaseModel):
    timetable_id: str
    slots_created: int
    skipped_cells: list[SkippedCellOut] = Field(default_factory=list)
    workload_warnings: list[FacultyWorkload] = Field(default_factory=list)


class GridRow(BaseModel):
    start_time: str
    end_time: str
    is_break: bool = False
    label: str | None = None
    # One entry per grid day, None for an empty cell.
    cells: list[TimetableSlotOut | None] = Field(default_factory=list)


class TimetableGridOut(BaseModel):
    timetable_id: str
    days: list[int]
    day_names: list[str]
    rows: list[GridRow]
