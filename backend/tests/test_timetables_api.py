from sqlalchemy import func, select

from timetabler.api.routes import timetables as timetable_routes
from timetabler.core.config import Settings
from timetabler.models.activity_log import ActivityLog
from timetabler.models.timetable import SlotType, TimetableSlot
from timetabler.models.user import UserRole
from timetabler.services import slot_generator


def create_timetable(client, headers, batch_id, **overrides):
    payload = {
        "name": "CS 3A Odd Semester",
        "batch_id": batch_id,
        "academic_year": "2025-26",
        "semester": 5,
    }
    payload.update(overrides)
    return client.post("/api/timetables/", json=payload, headers=headers)


def test_create_generates_slots(client, seed_department, make_user, auth_headers):
    dept = seed_department()
    admin = make_user(UserRole.admin)

    response = create_timetable(client, auth_headers(admin), dept.batch.id)

    assert response.status_code == 201
    body = response.json()
    assert body["slots_created"] == 28
    assert body["generation_error"] is None
    assert body["timetable"]["status"] == "draft"
    assert body["timetable"]["created_by"] == admin.id
    assert body["timetable"]["batch"]["name"] == "CS-3A"

    slots = client.get(f"/api/timetables/{body['timetable']['id']}/slots", headers=auth_headers(admin))
    assert slots.status_code == 200
    assert len(slots.json()) == 28
    first = slots.json()[0]
    assert (first["day_of_week"], first["start_time"], first["end_time"]) == (1, "09:00", "10:00")
    assert first["subject_code"] == "CS000"
    assert first["classroom_name"] == "CS-ROOM001"
    assert first["faculty_name"] == "CS Lecturer 0"


def test_create_keeps_timetable_when_generation_fails(client, seed_department, make_user, auth_headers):
    dept = seed_department(faculty=0)
    admin = make_user(UserRole.admin)

    response = create_timetable(client, auth_headers(admin), dept.batch.id)

    assert response.status_code == 201
    body = response.json()
    assert body["slots_created"] == 0
    assert body["generation_error"] == "No faculty found for this department"

    timetable_id = body["timetable"]["id"]
    fetched = client.get(f"/api/timetables/{timetable_id}", headers=auth_headers(admin))
    assert fetched.status_code == 200
    assert fetched.json()["status"] == "draft"


def test_create_without_generation(client, seed_department, make_user, auth_headers):
    dept = seed_department()
    admin = make_user(UserRole.admin)

    response = create_timetable(client, auth_headers(admin), dept.batch.id, auto_generate=False)

    assert response.status_code == 201
    assert response.json()["slots_created"] == 0
    timetable_id = response.json()["timetable"]["id"]
    assert client.get(f"/api/timetables/{timetable_id}/slots", headers=auth_headers(admin)).json() == []


def test_create_validation_and_access(client, seed_department, make_user, auth_headers):
    dept = seed_department()
    admin = make_user(UserRole.admin)
    student = make_user(UserRole.student)

    missing_batch = create_timetable(client, auth_headers(admin), "missing")
    assert missing_batch.status_code == 404
    assert missing_batch.json()["message"] == "Batch with id missing not found"

    bad_year = create_timetable(client, auth_headers(admin), dept.batch.id, academic_year="2025-27")
    assert bad_year.status_code == 422

    assert create_timetable(client, auth_headers(student), dept.batch.id).status_code == 403
    assert create_timetable(client, {}, dept.batch.id).status_code in {401, 403}
    assert client.get("/api/timetables/", headers={"Authorization": "Bearer not-a-token"}).status_code == 401


def test_list_and_read(client, seed_department, make_user, auth_headers):
    dept = seed_department()
    admin = make_user(UserRole.admin)
    student = make_user(UserRole.student)
    created = create_timetable(client, auth_headers(admin), dept.batch.id, auto_generate=False).json()

    listing = client.get("/api/timetables/", headers=auth_headers(student))
    assert listing.status_code == 200
    assert [item["id"] for item in listing.json()] == [created["timetable"]["id"]]

    missing = client.get("/api/timetables/missing", headers=auth_headers(student))
    assert missing.status_code == 404
    assert missing.json()["message"] == "Timetable with id missing not found"


def test_grid_layout(client, seed_department, make_user, auth_headers):
    dept = seed_department()
    admin = make_user(UserRole.admin)
    timetable_id = create_timetable(client, auth_headers(admin), dept.batch.id).json()["timetable"]["id"]

    response = client.get(f"/api/timetables/{timetable_id}/grid", headers=auth_headers(admin))

    assert response.status_code == 200
    grid = response.json()
    assert grid["days"] == [1, 2, 3, 4, 5]
    assert grid["day_names"] == ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
    rows = grid["rows"]
    assert len(rows) == 8
    assert [row["label"] for row in rows if row["is_break"]] == ["Break", "Lunch Break"]
    by_start = {row["start_time"]: row for row in rows}
    assert by_start["12:30"]["cells"][0] is None
    assert by_start["14:30"]["cells"][2] is None
    assert by_start["09:00"]["cells"][0]["subject_code"] == "CS000"
    assert all(len(row["cells"]) == 5 for row in rows if not row["is_break"])


def test_grid_follows_configured_weekdays(client, monkeypatch, seed_department, make_user, auth_headers):
    settings = Settings(_env_file=None, generation_weekdays=[1, 2])
    monkeypatch.setattr(timetable_routes, "get_settings", lambda: settings)
    monkeypatch.setattr(slot_generator, "get_settings", lambda: settings)
    dept = seed_department()
    admin = make_user(UserRole.admin)

    created = create_timetable(client, auth_headers(admin), dept.batch.id).json()
    assert created["slots_created"] == 11

    grid = client.get(f"/api/timetables/{created['timetable']['id']}/grid", headers=auth_headers(admin)).json()

    assert grid["days"] == [1, 2]
    assert grid["day_names"] == ["Monday", "Tuesday"]
    teaching_rows = [row for row in grid["rows"] if not row["is_break"]]
    assert all(len(row["cells"]) == 2 for row in teaching_rows)
    filled = sum(cell is not None for row in teaching_rows for cell in row["cells"])
    assert filled == 11


def test_generate_route_is_idempotent(client, seed_department, make_user, auth_headers):
    dept = seed_department()
    owner = make_user(UserRole.faculty)
    headers = auth_headers(owner)
    timetable_id = create_timetable(client, headers, dept.batch.id, auto_generate=False).json()["timetable"]["id"]

    first = client.post(f"/api/timetables/{timetable_id}/generate", headers=headers)
    assert first.status_code == 200
    assert first.json()["slots_created"] == 28
    reasons = [item["reason"] for item in first.json()["skipped_cells"]]
    assert reasons == ["blocked", "blocked"]

    second = client.post(f"/api/timetables/{timetable_id}/generate", headers=headers)
    assert second.status_code == 200
    assert second.json()["slots_created"] == 0
    assert len(client.get(f"/api/timetables/{timetable_id}/slots", headers=headers).json()) == 28


def test_generate_requires_editor(client, seed_department, make_user, auth_headers):
    dept = seed_department()
    owner = make_user(UserRole.faculty)
    other = make_user(UserRole.faculty)
    student = make_user(UserRole.student)
    timetable_id = create_timetable(
        client, auth_headers(owner), dept.batch.id, auto_generate=False
    ).json()["timetable"]["id"]

    assert client.post(f"/api/timetables/{timetable_id}/generate", headers=auth_headers(other)).status_code == 403
    assert client.post(f"/api/timetables/{timetable_id}/generate", headers=auth_headers(student)).status_code == 403
    missing = client.post("/api/timetables/missing/generate", headers=auth_headers(owner))
    assert missing.status_code == 404


def test_generate_reports_empty_pool(client, seed_department, make_user, auth_headers):
    dept = seed_department(classrooms=0)
    admin = make_user(UserRole.admin)
    timetable_id = create_timetable(
        client, auth_headers(admin), dept.batch.id, auto_generate=False
    ).json()["timetable"]["id"]

    response = client.post(f"/api/timetables/{timetable_id}/generate", headers=auth_headers(admin))

    assert response.status_code == 404
    assert response.json() == {
        "message": "No classrooms available",
        "details": {"pool": "classrooms", "department": "Computer Science"},
    }


def test_status_workflow(client, seed_department, make_user, auth_headers):
    dept = seed_department()
    owner = make_user(UserRole.faculty)
    admin = make_user(UserRole.admin)
    timetable_id = create_timetable(client, auth_headers(owner), dept.batch.id).json()["timetable"]["id"]
    status_url = f"/api/timetables/{timetable_id}/status"

    skipped = client.post(status_url, json={"status": "published"}, headers=auth_headers(admin))
    assert skipped.status_code == 409
    assert skipped.json()["details"] == {"from_status": "draft", "to_status": "published", "allowed": ["under_review"]}

    submitted = client.post(status_url, json={"status": "under_review"}, headers=auth_headers(owner))
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "under_review"

    assert client.post(status_url, json={"status": "approved"}, headers=auth_headers(owner)).status_code == 403

    approved = client.post(status_url, json={"status": "approved"}, headers=auth_headers(admin))
    assert approved.status_code == 200
    assert approved.json()["approved_by"] == admin.id

    assert client.post(status_url, json={"status": "draft"}, headers=auth_headers(admin)).status_code == 409

    published = client.post(status_url, json={"status": "published"}, headers=auth_headers(admin))
    assert published.status_code == 200
    assert published.json()["status"] == "published"
    assert published.json()["published_at"] is not None

    regenerate = client.post(f"/api/timetables/{timetable_id}/generate", headers=auth_headers(admin))
    assert regenerate.status_code == 400
    assert regenerate.json()["message"] == "Slots can only be generated for draft timetables"

    assert client.post(status_url, json={"status": "archived"}, headers=auth_headers(admin)).status_code == 422


def test_review_rejection_returns_to_draft(client, seed_department, make_user, auth_headers):
    dept = seed_department()
    owner = make_user(UserRole.faculty)
    admin = make_user(UserRole.admin)
    timetable_id = create_timetable(client, auth_headers(owner), dept.batch.id).json()["timetable"]["id"]
    status_url = f"/api/timetables/{timetable_id}/status"

    client.post(status_url, json={"status": "under_review"}, headers=auth_headers(owner))
    rejected = client.post(status_url, json={"status": "draft"}, headers=auth_headers(admin))

    assert rejected.status_code == 200
    assert rejected.json()["status"] == "draft"
    assert rejected.json()["approved_by"] is None


def test_delete_cascades_slots(client, db_session, seed_department, make_user, auth_headers):
    dept = seed_department()
    owner = make_user(UserRole.faculty)
    other = make_user(UserRole.faculty)
    timetable_id = create_timetable(client, auth_headers(owner), dept.batch.id).json()["timetable"]["id"]

    forbidden = client.delete(f"/api/timetables/{timetable_id}", headers=auth_headers(other))
    assert forbidden.status_code == 403

    deleted = client.delete(f"/api/timetables/{timetable_id}", headers=auth_headers(owner))
    assert deleted.status_code == 200
    assert deleted.json() == {"success": True}

    assert client.get(f"/api/timetables/{timetable_id}", headers=auth_headers(owner)).status_code == 404
    remaining = db_session.execute(
        select(func.count()).select_from(TimetableSlot).where(TimetableSlot.timetable_id == timetable_id)
    ).scalar_one()
    assert remaining == 0


def test_conflicts_against_same_term_timetables(
    client, db_session, seed_department, make_user, make_timetable, auth_headers
):
    dept = seed_department()
    other_batch = seed_department(prefix="CSB", subjects=0, faculty=0, classrooms=0).batch
    admin = make_user(UserRole.admin)
    timetable_id = create_timetable(client, auth_headers(admin), dept.batch.id).json()["timetable"]["id"]

    clean = client.get(f"/api/timetables/{timetable_id}/conflicts", headers=auth_headers(admin))
    assert clean.status_code == 200
    assert clean.json()["conflicts"] == []

    booked = client.get(f"/api/timetables/{timetable_id}/slots", headers=auth_headers(admin)).json()[0]
    manual = make_timetable(other_batch, name="Manual")
    db_session.add(
        TimetableSlot(
            timetable_id=manual.id,
            day_of_week=booked["day_of_week"],
            start_time=booked["start_time"],
            end_time=booked["end_time"],
            subject_id=booked["subject_id"],
            faculty_id=booked["faculty_id"],
            classroom_id=booked["classroom_id"],
            type=SlotType.lecture,
        )
    )
    db_session.commit()

    report = client.get(f"/api/timetables/{timetable_id}/conflicts", headers=auth_headers(admin)).json()

    assert report["timetable_id"] == timetable_id
    assert sorted(item["conflict_type"] for item in report["conflicts"]) == ["classroom_conflict", "faculty_conflict"]
    assert all(booked["id"] in item["affected_slots"] for item in report["conflicts"])


def test_workload_warnings(client, seed_department, make_user, auth_headers):
    dept = seed_department(faculty=1, max_hours_per_week=10)
    admin = make_user(UserRole.admin)
    timetable_id = create_timetable(
        client, auth_headers(admin), dept.batch.id, auto_generate=False
    ).json()["timetable"]["id"]

    generated = client.post(f"/api/timetables/{timetable_id}/generate", headers=auth_headers(admin)).json()

    assert generated["slots_created"] == 28
    [warning] = generated["workload_warnings"]
    assert warning["faculty_id"] == dept.faculty[0].id
    assert warning["assigned_hours"] == 28.0
    assert warning["over_limit"] is True

    report = client.get(f"/api/timetables/{timetable_id}/workload", headers=auth_headers(admin)).json()
    assert report["academic_year"] == "2025-26"
    assert [item["faculty_name"] for item in report["faculty"]] == ["CS Lecturer 0"]


def test_mutations_are_audited(client, db_session, seed_department, make_user, auth_headers):
    dept = seed_department()
    admin = make_user(UserRole.admin)
    timetable_id = create_timetable(
        client, auth_headers(admin), dept.batch.id, auto_generate=False
    ).json()["timetable"]["id"]
    client.post(f"/api/timetables/{timetable_id}/generate", headers=auth_headers(admin))
    client.post(f"/api/timetables/{timetable_id}/status", json={"status": "under_review"}, headers=auth_headers(admin))
    client.delete(f"/api/timetables/{timetable_id}", headers=auth_headers(admin))

    rows = db_session.execute(
        select(ActivityLog).where(ActivityLog.entity_type == "timetable", ActivityLog.entity_id == timetable_id)
    ).scalars().all()

    assert sorted(row.action for row in rows) == [
        "timetable.create",
        "timetable.delete",
        "timetable.generate",
        "timetable.status.under_review",
    ]
    assert {row.user_id for row in rows} == {admin.id}
