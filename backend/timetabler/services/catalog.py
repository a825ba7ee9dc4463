from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from timetabler.core.exceptions import EmptyResourcePool, ResourceNotFoundError
from timetabler.models.batch import Batch
from timetabler.models.classroom import Classroom, ClassroomType
from timetabler.models.faculty import Faculty
from timetabler.models.subject import Subject
from timetabler.models.timetable import Timetable, TimetableSlot

SCHEDULABLE_CLASSROOM_TYPES = frozenset({ClassroomType.lecture, ClassroomType.lab})


@dataclass(frozen=True)
class ResourcePools:
    subjects: Sequence[Subject]
    faculty: Sequence[Faculty]
    classrooms: Sequence[Classroom]


@dataclass(frozen=True)
class TermBooking:
    """A committed slot of another timetable that shares the academic term."""

    slot: TimetableSlot
    batch_id: str


class ResourceCatalog:
    """Read access to schedulable resources plus the atomic slot write."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_timetable(self, timetable_id: str) -> Timetable:
        timetable = self.db.get(Timetable, timetable_id)
        if timetable is None:
            raise ResourceNotFoundError("Timetable", timetable_id)
        return timetable

    def get_batch(self, batch_id: str) -> Batch:
        batch = self.db.get(Batch, batch_id)
        if batch is None:
            raise ResourceNotFoundError("Batch", batch_id)
        return batch

    def list_subjects(self, department: str, limit: int | None = None) -> list[Subject]:
        query = select(Subject).where(Subject.department == department).order_by(Subject.code)
        if limit is not None:
            query = query.limit(limit)
        return list(self.db.execute(query).scalars())

    def list_faculty(self, department: str) -> list[Faculty]:
        query = select(Faculty).where(Faculty.department == department).order_by(Faculty.employee_id)
        return list(self.db.execute(query).unique().scalars())

    def list_classrooms(self, kinds: Iterable[ClassroomType] = SCHEDULABLE_CLASSROOM_TYPES) -> list[Classroom]:
        query = select(Classroom).where(Classroom.type.in_(list(kinds))).order_by(Classroom.name)
        return list(self.db.execute(query).scalars())

    def load_pools(self, department: str, subject_limit: int | None = None) -> ResourcePools:
        subjects = self.list_subjects(department, limit=subject_limit)
        if not subjects:
            raise EmptyResourcePool("subjects", department)
        faculty = self.list_faculty(department)
        if not faculty:
            raise EmptyResourcePool("faculty", department)
        classrooms = self.list_classrooms(SCHEDULABLE_CLASSROOM_TYPES)
        if not classrooms:
            raise EmptyResourcePool("classrooms", department)
        return ResourcePools(subjects=subjects, faculty=faculty, classrooms=classrooms)

    def list_committed_slots(self, timetable_id: str) -> list[TimetableSlot]:
        query = (
            select(TimetableSlot)
            .where(TimetableSlot.timetable_id == timetable_id)
            .order_by(TimetableSlot.day_of_week, TimetableSlot.start_time)
        )
        return list(self.db.execute(query).unique().scalars())

    def list_term_bookings(self, timetable: Timetable) -> list[TermBooking]:
        query = (
            select(TimetableSlot, Timetable.batch_id)
            .join(Timetable, TimetableSlot.timetable_id == Timetable.id)
            .where(
                Timetable.id != timetable.id,
                Timetable.academic_year == timetable.academic_year,
                Timetable.semester == timetable.semester,
            )
            .order_by(TimetableSlot.day_of_week, TimetableSlot.start_time)
        )
        return [TermBooking(slot=slot, batch_id=batch_id) for slot, batch_id in self.db.execute(query).unique()]

    def insert_slots(self, timetable_id: str, slots: Sequence[TimetableSlot]) -> None:
        for slot in slots:
            slot.timetable_id = timetable_id
        self.db.add_all(slots)
        self.db.flush()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
