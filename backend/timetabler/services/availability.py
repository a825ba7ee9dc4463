from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum

from pydantic import ValidationError

from timetabler.models.faculty import Faculty
from timetabler.schemas.faculty import AvailabilityMap
from timetabler.schemas.timetable import parse_time_to_minutes

logger = logging.getLogger(__name__)

# Buckets are half-open: [start, end).
AFTERNOON_STARTS_AT = 12 * 60
EVENING_STARTS_AT = 17 * 60


class Period(str, Enum):
    morning = "morning"
    afternoon = "afternoon"
    evening = "evening"


def period_for(start_time: str) -> Period:
    minutes = parse_time_to_minutes(start_time)
    if minutes < AFTERNOON_STARTS_AT:
        return Period.morning
    if minutes < EVENING_STARTS_AT:
        return Period.afternoon
    return Period.evening


class AvailabilityModel:
    """Answers whether a faculty member may teach at a given slot.

    Faculty without a usable availability record are never available.
    """

    def __init__(self, faculty: Iterable[Faculty] = ()) -> None:
        self._maps: dict[str, AvailabilityMap] = {}
        for member in faculty:
            self.add(member.id, member.availability)

    def add(self, faculty_id: str, availability: dict | AvailabilityMap | None) -> None:
        if availability is None:
            return
        try:
            self._maps[faculty_id] = AvailabilityMap.model_validate(availability)
        except ValidationError:
            logger.warning("Ignoring malformed availability for faculty %s", faculty_id, exc_info=True)

    def is_available(self, faculty_id: str, day_of_week: int, start_time: str) -> bool:
        availability = self._maps.get(faculty_id)
        if availability is None:
            return False
        periods = availability.for_day(day_of_week)
        if periods is None:
            return False
        return bool(getattr(periods, period_for(start_time).value))
