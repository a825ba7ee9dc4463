"""Automatic slot generation for a single timetable.

Cells of the weekly template are visited in day-major order. Each cell picks
its subject, faculty member and classroom by round-robin index:

* subject   = subjects[i % len(subjects)]
* faculty   = faculty[i % len(faculty)]
* classroom = classrooms[(i + day) % len(classrooms)]

where ``i`` is the window index within the day. When the chosen faculty member
is unavailable or already booked, the faculty index advances through one full
cycle of the pool; classrooms do the same. Lab subjects walk the lab rooms
first, with the same index, and fall back to the whole classroom pool when
every lab room is taken. A cell with no usable faculty or
classroom, a busy batch, or a blocked free period is skipped, never an error.

All slots of a run are written in one transaction.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from time import perf_counter
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError

from timetabler.core.config import get_settings
from timetabler.core.exceptions import PersistenceFailure, SchedulerError
from timetabler.models.classroom import ClassroomType
from timetabler.models.subject import Subject, SubjectType
from timetabler.models.timetable import SlotType, Timetable, TimetableSlot, TimetableStatus
from timetabler.services.availability import AvailabilityModel
from timetabler.services.catalog import ResourceCatalog, ResourcePools
from timetabler.services.conflict_service import ConflictTracker
from timetabler.services.slot_template import SlotTemplate, TemplateCell

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BLOCKED_CELLS = frozenset({(1, 3), (3, 4)})


@dataclass(frozen=True)
class GenerationPolicy:
    subject_limit: int = 6
    blocked_cells: frozenset[tuple[int, int]] = DEFAULT_BLOCKED_CELLS

    @classmethod
    def from_settings(cls, settings) -> "GenerationPolicy":
        return cls(
            subject_limit=settings.generation_subject_limit,
            blocked_cells=frozenset(tuple(cell) for cell in settings.generation_blocked_cells),
        )

    def is_blocked(self, cell: TemplateCell) -> bool:
        return (cell.day_of_week, cell.window.index) in self.blocked_cells


@dataclass(frozen=True)
class SkippedCell:
    day_of_week: int
    window_index: int
    start_time: str
    reason: str


@dataclass
class GenerationResult:
    timetable_id: str
    slots: list[TimetableSlot] = field(default_factory=list)
    skipped: list[SkippedCell] = field(default_factory=list)

    @property
    def slots_created(self) -> int:
        return len(self.slots)


def slot_type_for(subject: Subject) -> SlotType:
    return SlotType.lab if subject.type == SubjectType.lab else SlotType.lecture


def pick_round_robin(pool: Sequence[T], start: int, accept: Callable[[T], bool]) -> T | None:
    """First acceptable member at or after ``start``, wrapping once around the pool."""
    size = len(pool)
    for offset in range(size):
        candidate = pool[(start + offset) % size]
        if accept(candidate):
            return candidate
    return None


class SlotGenerator:
    def __init__(
        self,
        catalog: ResourceCatalog,
        *,
        template: SlotTemplate | None = None,
        policy: GenerationPolicy | None = None,
    ) -> None:
        settings = get_settings()
        self.catalog = catalog
        self.template = template or SlotTemplate.from_settings(settings)
        self.policy = policy or GenerationPolicy.from_settings(settings)

    def plan(
        self,
        timetable_id: str,
        batch_id: str,
        pools: ResourcePools,
        tracker: ConflictTracker,
        availability: AvailabilityModel,
    ) -> GenerationResult:
        """Assign every template cell without touching the store."""
        result = GenerationResult(timetable_id=timetable_id)
        subjects, faculty, classrooms = pools.subjects, pools.faculty, pools.classrooms
        lab_rooms = [room for room in classrooms if room.type == ClassroomType.lab]

        for cell in self.template.cells():
            day, window = cell.day_of_week, cell.window
            start = window.start_time

            if self.policy.is_blocked(cell):
                result.skipped.append(SkippedCell(day, window.index, start, "blocked"))
                continue
            if tracker.batch_busy(batch_id, day, start):
                result.skipped.append(SkippedCell(day, window.index, start, "batch_busy"))
                continue

            subject = subjects[window.index % len(subjects)]
            member = pick_round_robin(
                faculty,
                window.index,
                lambda candidate: availability.is_available(candidate.id, day, start)
                and not tracker.faculty_busy(candidate.id, day, start),
            )
            if member is None:
                result.skipped.append(SkippedCell(day, window.index, start, "no_faculty"))
                continue
            rooms = lab_rooms if subject.type == SubjectType.lab and lab_rooms else classrooms
            classroom = pick_round_robin(
                rooms,
                window.index + day,
                lambda candidate: not tracker.classroom_busy(candidate.id, day, start),
            )
            if classroom is None and rooms is not classrooms:
                classroom = pick_round_robin(
                    classrooms,
                    window.index + day,
                    lambda candidate: not tracker.classroom_busy(candidate.id, day, start),
                )
            if classroom is None:
                result.skipped.append(SkippedCell(day, window.index, start, "no_classroom"))
                continue

            tracker.commit(day, start, member.id, classroom.id, batch_id)
            result.slots.append(
                TimetableSlot(
                    timetable_id=timetable_id,
                    day_of_week=day,
                    start_time=start,
                    end_time=window.end_time,
                    subject_id=subject.id,
                    faculty_id=member.id,
                    classroom_id=classroom.id,
                    type=slot_type_for(subject),
                )
            )

        for skipped in result.skipped:
            logger.debug(
                "SLOT SKIPPED | timetable_id=%s | day=%s | window=%s | reason=%s",
                timetable_id,
                skipped.day_of_week,
                skipped.window_index,
                skipped.reason,
            )
        return result

    def generate(self, timetable_id: str, batch_id: str, department: str) -> GenerationResult:
        started = perf_counter()
        logger.info(
            "SLOT GENERATION START | timetable_id=%s | batch_id=%s | department=%s",
            timetable_id,
            batch_id,
            department,
        )
        timetable = self.catalog.get_timetable(timetable_id)
        self.catalog.get_batch(batch_id)
        if batch_id != timetable.batch_id:
            raise SchedulerError(
                "Batch does not belong to this timetable",
                details={"timetable_id": timetable_id, "batch_id": batch_id, "expected_batch_id": timetable.batch_id},
            )
        self._ensure_draft(timetable)
        batch_id = timetable.batch_id

        pools = self.catalog.load_pools(department, subject_limit=self.policy.subject_limit)
        # Committed slots are filed under the timetable's own batch, never a caller's.
        tracker = ConflictTracker.seeded(
            batch_id,
            committed=self.catalog.list_committed_slots(timetable_id),
            term_bookings=self.catalog.list_term_bookings(timetable),
        )
        availability = AvailabilityModel(pools.faculty)
        result = self.plan(timetable_id, batch_id, pools, tracker, availability)

        try:
            if result.slots:
                self.catalog.insert_slots(timetable_id, result.slots)
            self.catalog.commit()
        except PersistenceFailure:
            self.catalog.rollback()
            logger.exception("SLOT GENERATION FAILED | timetable_id=%s", timetable_id)
            raise
        except SQLAlchemyError as exc:
            self.catalog.rollback()
            logger.exception("SLOT GENERATION FAILED | timetable_id=%s", timetable_id)
            raise PersistenceFailure(
                "Generated slots could not be saved; no slots were created",
                details={"timetable_id": timetable_id, "attempted": result.slots_created},
            ) from exc

        logger.info(
            "SLOT GENERATION COMPLETE | timetable_id=%s | slots_created=%s | skipped=%s | cells=%s | wall_ms=%s",
            timetable_id,
            result.slots_created,
            len(result.skipped),
            len(self.template),
            int((perf_counter() - started) * 1000),
        )
        return result

    @staticmethod
    def _ensure_draft(timetable: Timetable) -> None:
        if timetable.status != TimetableStatus.draft:
            raise SchedulerError(
                "Slots can only be generated for draft timetables",
                details={"timetable_id": timetable.id, "status": timetable.status.value},
            )


def generate_slots(
    catalog: ResourceCatalog,
    timetable_id: str,
    batch_id: str,
    department: str,
    *,
    template: SlotTemplate | None = None,
    policy: GenerationPolicy | None = None,
) -> int:
    """Generate and persist slots for a timetable, returning how many were created."""
    generator = SlotGenerator(catalog, template=template, policy=policy)
    return generator.generate(timetable_id, batch_id, department).slots_created
