from __future__ import annotations

from pydantic import BaseModel, ConfigDict, model_validator

# Index is the day_of_week used by timetable slots (0 = Sunday).
WEEKDAY_NAMES = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)


class PeriodAvailability(BaseModel):
    model_config = ConfigDict(extra="forbid")

    morning: bool = False
    afternoon: bool = False
    evening: bool = False


class AvailabilityMap(BaseModel):
    """Weekly teaching windows of one faculty member.

    A weekday that is missing from the map has no availability record and is
    treated as unavailable.
    """

    model_config = ConfigDict(extra="forbid")

    sunday: PeriodAvailability | None = None
    monday: PeriodAvailability | None = None
    tuesday: PeriodAvailability | None = None
    wednesday: PeriodAvailability | None = None
    thursday: PeriodAvailability | None = None
    friday: PeriodAvailability | None = None
    saturday: PeriodAvailability | None = None

    @model_validator(mode="before")
    @classmethod
    def normalize_day_keys(cls, value):
        if isinstance(value, dict):
            return {str(key).strip().lower(): periods for key, periods in value.items()}
        return value

    def for_day(self, day_of_week: int) -> PeriodAvailability | None:
        if day_of_week < 0 or day_of_week >= len(WEEKDAY_NAMES):
            return None
        return getattr(self, WEEKDAY_NAMES[day_of_week])

