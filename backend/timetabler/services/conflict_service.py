from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from typing import List

from timetabler.models.classroom import ClassroomType
from timetabler.models.timetable import SlotType, TimetableSlot
from timetabler.schemas.conflict import ConflictDetail, ConflictReport, ResolutionAction
from timetabler.schemas.timetable import parse_time_to_minutes
from timetabler.services.catalog import TermBooking

Cell = tuple[int, str]


class ConflictTracker:
    """Occupancy of faculty, classrooms and batches during one generation run.

    Seed it only from committed slots; candidates become visible to later
    cells of the same run through ``commit``.
    """

    def __init__(self) -> None:
        self._faculty: dict[Cell, set[str]] = defaultdict(set)
        self._classrooms: dict[Cell, set[str]] = defaultdict(set)
        self._batches: dict[Cell, set[str]] = defaultdict(set)

    @classmethod
    def seeded(
        cls,
        batch_id: str,
        committed: Iterable[TimetableSlot] = (),
        term_bookings: Iterable[TermBooking] = (),
    ) -> "ConflictTracker":
        tracker = cls()
        for slot in committed:
            tracker.commit(slot.day_of_week, slot.start_time, slot.faculty_id, slot.classroom_id, batch_id)
        for booking in term_bookings:
            slot = booking.slot
            tracker.commit(slot.day_of_week, slot.start_time, slot.faculty_id, slot.classroom_id, booking.batch_id)
        return tracker

    def faculty_busy(self, faculty_id: str, day_of_week: int, start_time: str) -> bool:
        return faculty_id in self._faculty.get((day_of_week, start_time), ())

    def classroom_busy(self, classroom_id: str, day_of_week: int, start_time: str) -> bool:
        return classroom_id in self._classrooms.get((day_of_week, start_time), ())

    def batch_busy(self, batch_id: str, day_of_week: int, start_time: str) -> bool:
        return batch_id in self._batches.get((day_of_week, start_time), ())

    def conflicts(
        self,
        day_of_week: int,
        start_time: str,
        faculty_id: str,
        classroom_id: str,
        batch_id: str,
    ) -> list[str]:
        clashes: list[str] = []
        if self.faculty_busy(faculty_id, day_of_week, start_time):
            clashes.append("faculty")
        if self.classroom_busy(classroom_id, day_of_week, start_time):
            clashes.append("classroom")
        if self.batch_busy(batch_id, day_of_week, start_time):
            clashes.append("batch")
        return clashes

    def commit(
        self,
        day_of_week: int,
        start_time: str,
        faculty_id: str,
        classroom_id: str,
        batch_id: str,
    ) -> None:
        cell = (day_of_week, start_time)
        self._faculty[cell].add(faculty_id)
        self._classrooms[cell].add(classroom_id)
        self._batches[cell].add(batch_id)


class ConflictService:
    """Audits committed slots for double bookings and room misuse."""

    def __init__(self, slots: Iterable[TimetableSlot], batch_by_timetable: Mapping[str, str]):
        self.slots: List[TimetableSlot] = list(slots)
        self.batch_by_timetable = batch_by_timetable

    def detect_conflicts(self, timetable_id: str | None = None) -> ConflictReport:
        conflicts: List[ConflictDetail] = []

        slots_by_day = defaultdict(list)
        for slot in self.slots:
            slots_by_day[slot.day_of_week].append(slot)

        for day, day_slots in sorted(slots_by_day.items()):
            n = len(day_slots)
            for i in range(n):
                s1 = day_slots[i]
                start1, end1 = parse_time_to_minutes(s1.start_time), parse_time_to_minutes(s1.end_time)

                classroom = s1.classroom
                if s1.type == SlotType.lab and classroom is not None and classroom.type != ClassroomType.lab:
                    conflicts.append(ConflictDetail(
                        id=f"type-{s1.id}",
                        conflict_type="classroom_type",
                        description=f"Lab session in non-lab classroom {classroom.name}",
                        severity="soft",
                        affected_slots=[s1.id],
                    ))

                for j in range(i + 1, n):
                    s2 = day_slots[j]
                    start2, end2 = parse_time_to_minutes(s2.start_time), parse_time_to_minutes(s2.end_time)

                    if max(start1, start2) >= min(end1, end2):
                        continue
                    if s1.classroom_id == s2.classroom_id:
                        name = s1.classroom.name if s1.classroom is not None else s1.classroom_id
                        conflicts.append(ConflictDetail(
                            id=f"classroom-{s1.id}-{s2.id}",
                            conflict_type="classroom_conflict",
                            description=f"Classroom overlap in {name} on day {day} at {s1.start_time}",
                            severity="hard",
                            affected_slots=[s1.id, s2.id],
                        ))
                    if s1.faculty_id == s2.faculty_id:
                        conflicts.append(ConflictDetail(
                            id=f"faculty-{s1.id}-{s2.id}",
                            conflict_type="faculty_conflict",
                            description=f"Faculty overlap for {s1.faculty_id} on day {day} at {s1.start_time}",
                            severity="hard",
                            affected_slots=[s1.id, s2.id],
                        ))
                    batch1 = self.batch_by_timetable.get(s1.timetable_id)
                    batch2 = self.batch_by_timetable.get(s2.timetable_id)
                    if batch1 is not None and batch1 == batch2:
                        conflicts.append(ConflictDetail(
                            id=f"batch-{s1.id}-{s2.id}",
                            conflict_type="batch_conflict",
                            description=f"Batch overlap on day {day} at {s1.start_time}",
                            severity="hard",
                            affected_slots=[s1.id, s2.id],
                        ))

        resolutions: List[ResolutionAction] = []
        for conflict in conflicts:
            resolutions.extend(self.generate_resolutions(conflict))
        return ConflictReport(timetable_id=timetable_id, conflicts=conflicts, suggested_resolutions=resolutions)

    def generate_resolutions(self, conflict: ConflictDetail) -> List[ResolutionAction]:
        resolutions = []
        if conflict.conflict_type in ("classroom_conflict", "classroom_type"):
            resolutions.append(ResolutionAction(
                action_type="change_classroom",
                description="Find a free classroom of the right type",
                target_slot_id=conflict.affected_slots[-1],
                parameters={},
            ))
        if conflict.conflict_type == "faculty_conflict":
            resolutions.append(ResolutionAction(
                action_type="change_faculty",
                description="Assign another faculty member from the department",
                target_slot_id=conflict.affected_slots[-1],
                parameters={},
            ))
        if conflict.conflict_type == "batch_conflict":
            resolutions.append(ResolutionAction(
                action_type="move_slot",
                description="Move to a different time slot",
                target_slot_id=conflict.affected_slots[-1],
                parameters={},
            ))
        return resolutions
