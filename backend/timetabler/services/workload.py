from __future__ import annotations

import logging
from collections import defaultdict

from timetabler.models.faculty import Faculty
from timetabler.models.timetable import Timetable, TimetableSlot
from timetabler.schemas.timetable import FacultyWorkload, parse_time_to_minutes
from timetabler.services.catalog import ResourceCatalog

logger = logging.getLogger(__name__)


def slot_hours(slot: TimetableSlot) -> float:
    return (parse_time_to_minutes(slot.end_time) - parse_time_to_minutes(slot.start_time)) / 60


def faculty_workload(catalog: ResourceCatalog, timetable: Timetable) -> list[FacultyWorkload]:
    """Weekly hours of every faculty member teaching in ``timetable``.

    Hours are summed over all timetables of the same academic term. The limit
    is advisory: exceeding it is reported, never enforced.
    """
    own_slots = catalog.list_committed_slots(timetable.id)
    members: dict[str, Faculty] = {slot.faculty_id: slot.faculty for slot in own_slots}
    hours: dict[str, float] = defaultdict(float)
    for slot in own_slots:
        hours[slot.faculty_id] += slot_hours(slot)
    for booking in catalog.list_term_bookings(timetable):
        if booking.slot.faculty_id in members:
            hours[booking.slot.faculty_id] += slot_hours(booking.slot)

    report: list[FacultyWorkload] = []
    for faculty_id in sorted(members, key=lambda key: members[key].employee_id):
        member = members[faculty_id]
        assigned = hours[faculty_id]
        over_limit = assigned > member.max_hours_per_week
        if over_limit:
            logger.warning(
                "FACULTY WORKLOAD OVER LIMIT | faculty_id=%s | assigned_hours=%s | max_hours=%s | timetable_id=%s",
                faculty_id,
                assigned,
                member.max_hours_per_week,
                timetable.id,
            )
        report.append(
            FacultyWorkload(
                faculty_id=faculty_id,
                faculty_name=member.user.full_name if member.user is not None else None,
                assigned_hours=assigned,
                max_hours_per_week=member.max_hours_per_week,
                over_limit=over_limit,
            )
        )
    return report
