"""Timetable lifecycle: creation, review workflow and deletion.

Status moves only along these edges::

    draft -> under_review -> approved -> published
                  |
                  +-> draft   (rejected)
"""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Session

from timetabler.core.exceptions import InvalidStateTransition, ResourceNotFoundError
from timetabler.models.batch import Batch
from timetabler.models.timetable import Timetable, TimetableStatus
from timetabler.schemas.timetable import TimetableCreate

ALLOWED_TRANSITIONS: dict[TimetableStatus, frozenset[TimetableStatus]] = {
    TimetableStatus.draft: frozenset({TimetableStatus.under_review}),
    TimetableStatus.under_review: frozenset({TimetableStatus.approved, TimetableStatus.draft}),
    TimetableStatus.approved: frozenset({TimetableStatus.published}),
    TimetableStatus.published: frozenset(),
}

REVIEW_DECISIONS = frozenset({TimetableStatus.approved, TimetableStatus.draft, TimetableStatus.published})


def can_transition(current: TimetableStatus, target: TimetableStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def get_timetable(db: Session, timetable_id: str) -> Timetable:
    timetable = db.get(Timetable, timetable_id)
    if timetable is None:
        raise ResourceNotFoundError("Timetable", timetable_id)
    return timetable


def create_timetable(db: Session, payload: TimetableCreate, *, created_by: str) -> Timetable:
    if db.get(Batch, payload.batch_id) is None:
        raise ResourceNotFoundError("Batch", payload.batch_id)
    timetable = Timetable(
        name=payload.name,
        batch_id=payload.batch_id,
        academic_year=payload.academic_year,
        semester=payload.semester,
        status=TimetableStatus.draft,
        created_by=created_by,
    )
    db.add(timetable)
    db.flush()
    return timetable


def transition_status(
    db: Session,
    timetable_id: str,
    new_status: TimetableStatus,
    actor_id: str,
) -> Timetable:
    timetable = get_timetable(db, timetable_id)
    current = timetable.status
    if not can_transition(current, new_status):
        allowed = sorted(item.value for item in ALLOWED_TRANSITIONS.get(current, frozenset()))
        raise InvalidStateTransition(current.value, new_status.value, allowed)

    if new_status == TimetableStatus.approved:
        timetable.approved_by = actor_id
    elif new_status == TimetableStatus.draft:
        timetable.approved_by = None
    elif new_status == TimetableStatus.published:
        timetable.published_at = datetime.now(timezone.utc)
    timetable.status = new_status
    db.flush()
    return timetable


def delete_timetable(db: Session, timetable_id: str) -> None:
    timetable = get_timetable(db, timetable_id)
    db.delete(timetable)
    db.flush()
