from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from timetabler.api.deps import (
    ensure_reviewer,
    ensure_timetable_editor,
    get_catalog,
    get_current_user,
    get_db,
    require_roles,
    user_for_token,
    websocket_token,
)
from timetabler.core.config import get_settings
from timetabler.core.exceptions import AppError
from timetabler.models.activity_log import (
    TIMETABLE_CREATED,
    TIMETABLE_DELETED,
    TIMETABLE_SLOTS_GENERATED,
    status_action,
)
from timetabler.models.timetable import Timetable, TimetableSlot
from timetabler.models.user import User, UserRole
from timetabler.schemas.conflict import ConflictReport
from timetabler.schemas.event import CLIENT_EVENTS, TimetableEvent
from timetabler.schemas.faculty import WEEKDAY_NAMES
from timetabler.schemas.timetable import (
    GenerateSlotsResponse,
    GridRow,
    SkippedCellOut,
    StatusTransitionRequest,
    TimetableCreate,
    TimetableCreateResponse,
    TimetableGridOut,
    TimetableOut,
    TimetableSlotOut,
    WorkloadReport,
)
from timetabler.services.audit import log_activity
from timetabler.services.catalog import ResourceCatalog
from timetabler.services.conflict_service import ConflictService
from timetabler.services.event_hub import publish_from_sync, timetable_event_hub
from timetabler.services.slot_generator import GenerationResult, SlotGenerator
from timetabler.services.slot_template import BreakWindow, SlotTemplate
from timetabler.services.timetable_workflow import (
    REVIEW_DECISIONS,
    create_timetable,
    delete_timetable,
    get_timetable,
    transition_status,
)
from timetabler.services.workload import faculty_workload

logger = logging.getLogger(__name__)

router = APIRouter()


def _slot_out(slot: TimetableSlot) -> TimetableSlotOut:
    subject = slot.subject
    faculty = slot.faculty
    classroom = slot.classroom
    return TimetableSlotOut(
        id=slot.id,
        timetable_id=slot.timetable_id,
        day_of_week=slot.day_of_week,
        start_time=slot.start_time,
        end_time=slot.end_time,
        subject_id=slot.subject_id,
        faculty_id=slot.faculty_id,
        classroom_id=slot.classroom_id,
        type=slot.type,
        subject_name=subject.name if subject is not None else None,
        subject_code=subject.code if subject is not None else None,
        faculty_name=faculty.user.full_name if faculty is not None and faculty.user is not None else None,
        classroom_name=classroom.name if classroom is not None else None,
        building=classroom.building if classroom is not None else None,
    )


def _run_generation(catalog: ResourceCatalog, timetable: Timetable) -> GenerationResult:
    return SlotGenerator(catalog).generate(timetable.id, timetable.batch_id, timetable.batch.department)


@router.get("/", response_model=list[TimetableOut])
def list_timetables(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[TimetableOut]:
    query = select(Timetable).order_by(Timetable.created_at.desc(), Timetable.name)
    return list(db.execute(query).scalars())


@router.post("/", response_model=TimetableCreateResponse, status_code=status.HTTP_201_CREATED)
def create_timetable_route(
    payload: TimetableCreate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.faculty)),
    db: Session = Depends(get_db),
    catalog: ResourceCatalog = Depends(get_catalog),
) -> TimetableCreateResponse:
    timetable = create_timetable(db, payload, created_by=current_user.id)
    log_activity(
        db,
        user=current_user,
        action=TIMETABLE_CREATED,
        entity_id=timetable.id,
        details={"batch_id": payload.batch_id, "academic_year": payload.academic_year, "semester": payload.semester},
    )
    db.commit()
    db.refresh(timetable)
    publish_from_sync(current_user.id, TimetableEvent(event="timetable.created", timetable_id=timetable.id))

    slots_created = 0
    generation_error: str | None = None
    if payload.auto_generate:
        # The timetable stays saved even when generation fails; the caller reports it.
        try:
            result = _run_generation(catalog, timetable)
            slots_created = result.slots_created
        except AppError as exc:
            generation_error = exc.message
            logger.warning(
                "TIMETABLE CREATED WITHOUT SLOTS | timetable_id=%s | reason=%s",
                timetable.id,
                exc.message,
            )
        db.refresh(timetable)

    return TimetableCreateResponse(
        timetable=TimetableOut.model_validate(timetable),
        slots_created=slots_created,
        generation_error=generation_error,
    )


@router.websocket("/events/ws")
async def timetable_events_websocket(
    websocket: WebSocket,
    db: Session = Depends(get_db),
) -> None:
    user = user_for_token(db, websocket_token(websocket))
    if user is None or not user.is_active:
        await websocket.close(code=1008)
        return

    await timetable_event_hub.connect(user.id, websocket)
    try:
        await websocket.send_json({"event": "connected", "user_id": user.id})
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "ping":
                await websocket.send_json({"event": "pong"})
                continue
            try:
                event = TimetableEvent.model_validate_json(message)
            except ValidationError:
                await websocket.send_json({"event": "error", "detail": "Invalid timetable event"})
                continue
            if event.event not in CLIENT_EVENTS:
                await websocket.send_json({"event": "error", "detail": f"Clients cannot emit {event.event}"})
                continue
            await timetable_event_hub.publish(user.id, event)
    except WebSocketDisconnect:
        pass
    finally:
        await timetable_event_hub.disconnect(user.id, websocket)


@router.get("/{timetable_id}", response_model=TimetableOut)
def read_timetable(
    timetable_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TimetableOut:
    return get_timetable(db, timetable_id)


@router.delete("/{timetable_id}")
def delete_timetable_route(
    timetable_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    timetable = get_timetable(db, timetable_id)
    ensure_timetable_editor(current_user, timetable)
    log_activity(
        db,
        user=current_user,
        action=TIMETABLE_DELETED,
        entity_id=timetable_id,
        details={"status": timetable.status.value, "name": timetable.name},
    )
    delete_timetable(db, timetable_id)
    db.commit()
    publish_from_sync(current_user.id, TimetableEvent(event="timetable.deleted", timetable_id=timetable_id))
    return {"success": True}


@router.get("/{timetable_id}/slots", response_model=list[TimetableSlotOut])
def list_timetable_slots(
    timetable_id: str,
    current_user: User = Depends(get_current_user),
    catalog: ResourceCatalog = Depends(get_catalog),
) -> list[TimetableSlotOut]:
    catalog.get_timetable(timetable_id)
    return [_slot_out(slot) for slot in catalog.list_committed_slots(timetable_id)]


@router.get("/{timetable_id}/grid", response_model=TimetableGridOut)
def read_timetable_grid(
    timetable_id: str,
    current_user: User = Depends(get_current_user),
    catalog: ResourceCatalog = Depends(get_catalog),
) -> TimetableGridOut:
    catalog.get_timetable(timetable_id)
    template = SlotTemplate.from_settings(get_settings())
    by_cell = {(slot.day_of_week, slot.start_time): slot for slot in catalog.list_committed_slots(timetable_id)}

    rows: list[GridRow] = []
    for row in template.rows():
        if isinstance(row, BreakWindow):
            rows.append(GridRow(start_time=row.start_time, end_time=row.end_time, is_break=True, label=row.label))
            continue
        cells = []
        for day in template.weekdays:
            slot = by_cell.get((day, row.start_time))
            cells.append(_slot_out(slot) if slot is not None else None)
        rows.append(GridRow(start_time=row.start_time, end_time=row.end_time, cells=cells))

    return TimetableGridOut(
        timetable_id=timetable_id,
        days=list(template.weekdays),
        day_names=[WEEKDAY_NAMES[day].title() for day in template.weekdays],
        rows=rows,
    )


@router.get("/{timetable_id}/conflicts", response_model=ConflictReport)
def read_timetable_conflicts(
    timetable_id: str,
    current_user: User = Depends(get_current_user),
    catalog: ResourceCatalog = Depends(get_catalog),
) -> ConflictReport:
    timetable = catalog.get_timetable(timetable_id)
    own_slots = catalog.list_committed_slots(timetable_id)
    bookings = catalog.list_term_bookings(timetable)
    batch_by_timetable = {timetable.id: timetable.batch_id}
    batch_by_timetable.update({booking.slot.timetable_id: booking.batch_id for booking in bookings})

    service = ConflictService([*own_slots, *(booking.slot for booking in bookings)], batch_by_timetable)
    report = service.detect_conflicts(timetable_id)
    own_ids = {slot.id for slot in own_slots}
    conflicts = [item for item in report.conflicts if own_ids.intersection(item.affected_slots)]
    resolutions = [item for item in report.suggested_resolutions if item.target_slot_id in own_ids]
    return ConflictReport(timetable_id=timetable_id, conflicts=conflicts, suggested_resolutions=resolutions)


@router.get("/{timetable_id}/workload", response_model=WorkloadReport)
def read_timetable_workload(
    timetable_id: str,
    current_user: User = Depends(get_current_user),
    catalog: ResourceCatalog = Depends(get_catalog),
) -> WorkloadReport:
    timetable = catalog.get_timetable(timetable_id)
    return WorkloadReport(
        timetable_id=timetable.id,
        academic_year=timetable.academic_year,
        semester=timetable.semester,
        faculty=faculty_workload(catalog, timetable),
    )


@router.post("/{timetable_id}/generate", response_model=GenerateSlotsResponse)
def generate_timetable_slots(
    timetable_id: str,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.faculty)),
    db: Session = Depends(get_db),
    catalog: ResourceCatalog = Depends(get_catalog),
) -> GenerateSlotsResponse:
    timetable = catalog.get_timetable(timetable_id)
    ensure_timetable_editor(current_user, timetable)

    result = _run_generation(catalog, timetable)
    log_activity(
        db,
        user=current_user,
        action=TIMETABLE_SLOTS_GENERATED,
        entity_id=timetable_id,
        details={"slots_created": result.slots_created, "skipped": len(result.skipped)},
    )
    db.commit()
    publish_from_sync(
        current_user.id,
        TimetableEvent(
            event="timetable.slots_generated",
            timetable_id=timetable_id,
            payload={"slots_created": result.slots_created},
        ),
    )

    timetable = catalog.get_timetable(timetable_id)
    warnings = [item for item in faculty_workload(catalog, timetable) if item.over_limit]
    return GenerateSlotsResponse(
        timetable_id=timetable_id,
        slots_created=result.slots_created,
        skipped_cells=[SkippedCellOut(**asdict(item)) for item in result.skipped],
        workload_warnings=warnings,
    )


@router.post("/{timetable_id}/status", response_model=TimetableOut)
def change_timetable_status(
    timetable_id: str,
    payload: StatusTransitionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TimetableOut:
    timetable = get_timetable(db, timetable_id)
    if payload.status in REVIEW_DECISIONS:
        ensure_reviewer(current_user)
    else:
        ensure_timetable_editor(current_user, timetable)

    previous = timetable.status
    timetable = transition_status(db, timetable_id, payload.status, current_user.id)
    log_activity(
        db,
        user=current_user,
        action=status_action(payload.status.value),
        entity_id=timetable_id,
        details={"from_status": previous.value, "to_status": payload.status.value},
    )
    db.commit()
    db.refresh(timetable)
    publish_from_sync(
        current_user.id,
        TimetableEvent(
            event="timetable.status_changed",
            timetable_id=timetable_id,
            payload={"from_status": previous.value, "to_status": payload.status.value},
        ),
    )
    return timetable
