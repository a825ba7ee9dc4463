import os

# Settings are cached on first import; point them at SQLite before the app loads.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import timetabler.models  # noqa: F401
from timetabler.api.deps import get_db
from timetabler.core.security import create_access_token
from timetabler.db.base import Base
from timetabler.main import app
from timetabler.models.batch import Batch
from timetabler.models.classroom import Classroom, ClassroomType
from timetabler.models.faculty import Faculty
from timetabler.models.subject import Subject, SubjectType
from timetabler.models.timetable import Timetable, TimetableStatus
from timetabler.models.user import User, UserRole

WORKING_WEEK = {
    day: {"morning": True, "afternoon": True, "evening": False}
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
}


@pytest.fixture()
def engine():
    # One in-memory database shared by the test session and the app.
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session):
    counter = {"value": 0}

    def _make_user(role: UserRole = UserRole.admin, full_name: str | None = None, department: str | None = None) -> User:
        counter["value"] += 1
        number = counter["value"]
        user = User(
            full_name=full_name or f"{role.value.title()} User {number}",
            email=f"{role.value}{number}@example.com",
            role=role,
            department=department,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture()
def auth_headers():
    def _auth_headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _auth_headers


@pytest.fixture()
def seed_department(db_session, make_user):
    """Create a department's batch and resource pools, committed and ordered."""

    def _seed(
        department: str = "Computer Science",
        *,
        prefix: str = "CS",
        subjects: int = 6,
        faculty: int = 6,
        classrooms: int = 6,
        lab_subjects: tuple[int, ...] = (),
        availability: dict | None = None,
        max_hours_per_week: int = 20,
        batch_name: str | None = None,
    ) -> SimpleNamespace:
        batch = Batch(
            name=batch_name or f"{prefix}-3A",
            department=department,
            year=3,
            semester=5,
            section="A",
            strength=60,
        )
        db_session.add(batch)

        subject_rows = []
        for number in range(subjects):
            subject_rows.append(
                Subject(
                    name=f"{department} Subject {number}",
                    code=f"{prefix}{number:03d}",
                    department=department,
                    credits=3,
                    type=SubjectType.lab if number in lab_subjects else SubjectType.core,
                )
            )
        db_session.add_all(subject_rows)

        faculty_rows = []
        for number in range(faculty):
            user = make_user(UserRole.faculty, full_name=f"{prefix} Lecturer {number}", department=department)
            faculty_rows.append(
                Faculty(
                    user_id=user.id,
                    employee_id=f"{prefix}-EMP{number:03d}",
                    department=department,
                    specialization=[],
                    max_hours_per_week=max_hours_per_week,
                    availability=WORKING_WEEK if availability is None else availability,
                )
            )
        db_session.add_all(faculty_rows)

        classroom_rows = []
        for number in range(classrooms):
            classroom_rows.append(
                Classroom(
                    name=f"{prefix}-ROOM{number:03d}",
                    building="Main Block",
                    capacity=60,
                    type=ClassroomType.lecture,
                    equipment=[],
                )
            )
        db_session.add_all(classroom_rows)
        db_session.commit()

        return SimpleNamespace(
            department=department,
            batch=batch,
            subjects=subject_rows,
            faculty=faculty_rows,
            classrooms=classroom_rows,
        )

    return _seed


@pytest.fixture()
def make_timetable(db_session, make_user):
    def _make_timetable(
        batch: Batch,
        *,
        created_by: User | None = None,
        academic_year: str = "2025-26",
        semester: int = 5,
        status: TimetableStatus = TimetableStatus.draft,
        name: str = "CS 3A Timetable",
    ) -> Timetable:
        creator = created_by or make_user(UserRole.admin)
        timetable = Timetable(
            name=name,
            batch_id=batch.id,
            academic_year=academic_year,
            semester=semester,
            status=status,
            created_by=creator.id,
        )
        db_session.add(timetable)
        db_session.commit()
        return timetable

    return _make_timetable
