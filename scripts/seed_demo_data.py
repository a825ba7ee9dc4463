"""Seed a demo department for the timetable generator.

Run:
  PYTHONPATH=backend python scripts/seed_demo_data.py
"""

from __future__ import annotations

import os

from sqlalchemy import select

from timetabler.core.security import create_access_token
from timetabler.db.bootstrap import ensure_schema
from timetabler.db.session import SessionLocal
from timetabler.models.batch import Batch
from timetabler.models.classroom import Classroom, ClassroomType
from timetabler.models.faculty import Faculty
from timetabler.models.subject import Subject, SubjectType
from timetabler.models.user import User, UserRole

DEPARTMENT = os.getenv("SEED_DEPARTMENT", "Computer Science").strip() or "Computer Science"
MOCK_EMAIL_DOMAIN = os.getenv("SEED_MOCK_EMAIL_DOMAIN", "university.edu").strip().lower() or "university.edu"

DEFAULT_AVAILABILITY = {
    "monday": {"morning": True, "afternoon": True, "evening": False},
    "tuesday": {"morning": True, "afternoon": True, "evening": False},
    "wednesday": {"morning": True, "afternoon": True, "evening": False},
    "thursday": {"morning": True, "afternoon": True, "evening": False},
    "friday": {"morning": True, "afternoon": True, "evening": False},
    "saturday": {"morning": False, "afternoon": False, "evening": False},
}

SUBJECTS = [
    ("CS201", "Data Structures", SubjectType.core, 4),
    ("CS202", "Database Systems", SubjectType.core, 4),
    ("CS203", "Operating Systems", SubjectType.core, 4),
    ("CS204", "Software Engineering", SubjectType.core, 3),
    ("CS205", "Machine Learning", SubjectType.elective, 3),
    ("CS206", "Data Structures Lab", SubjectType.lab, 2),
]

FACULTY = [
    ("EMP001", "Dr. Ada Smith", ["Algorithms"]),
    ("EMP002", "Prof. Alan Johnson", ["Databases"]),
    ("EMP003", "Dr. Grace Brown", ["Systems"]),
    ("EMP004", "Dr. Linus Davis", ["Software Engineering", "Machine Learning"]),
]

CLASSROOMS = [
    ("CS-101", "Main Block", 60, ClassroomType.lecture, ["projector"]),
    ("CS-102", "Main Block", 60, ClassroomType.lecture, ["projector"]),
    ("CS-103", "Main Block", 80, ClassroomType.lecture, ["projector", "smart board"]),
    ("CS-LAB1", "Lab Block", 40, ClassroomType.lab, ["computers"]),
]


def _get_or_create_user(db, *, full_name: str, email: str, role: UserRole) -> User:
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user is None:
        user = User(full_name=full_name, email=email, role=role, department=DEPARTMENT)
        db.add(user)
        db.flush()
    return user


def seed() -> None:
    ensure_schema()
    with SessionLocal() as db:
        admin = _get_or_create_user(
            db,
            full_name="Timetable Admin",
            email=f"admin@{MOCK_EMAIL_DOMAIN}",
            role=UserRole.admin,
        )

        for code, name, subject_type, credits in SUBJECTS:
            if db.execute(select(Subject).where(Subject.code == code)).scalar_one_or_none() is None:
                db.add(Subject(code=code, name=name, type=subject_type, credits=credits, department=DEPARTMENT))

        for employee_id, full_name, specialization in FACULTY:
            if db.execute(select(Faculty).where(Faculty.employee_id == employee_id)).scalar_one_or_none() is not None:
                continue
            user = _get_or_create_user(
                db,
                full_name=full_name,
                email=f"{employee_id.lower()}@{MOCK_EMAIL_DOMAIN}",
                role=UserRole.faculty,
            )
            db.add(
                Faculty(
                    user_id=user.id,
                    employee_id=employee_id,
                    department=DEPARTMENT,
                    specialization=specialization,
                    max_hours_per_week=16,
                    availability=DEFAULT_AVAILABILITY,
                )
            )

        for name, building, capacity, classroom_type, equipment in CLASSROOMS:
            if db.execute(select(Classroom).where(Classroom.name == name)).scalar_one_or_none() is None:
                db.add(
                    Classroom(
                        name=name,
                        building=building,
                        capacity=capacity,
                        type=classroom_type,
                        equipment=equipment,
                    )
                )

        batch = db.execute(
            select(Batch).where(Batch.department == DEPARTMENT, Batch.name == "CS-3A")
        ).scalar_one_or_none()
        if batch is None:
            db.add(Batch(name="CS-3A", department=DEPARTMENT, year=3, semester=5, section="A", strength=60))

        db.commit()
        print(f"Seeded department {DEPARTMENT!r}")
        print(f"Admin bearer token: {create_access_token(admin.id)}")


if __name__ == "__main__":
    seed()
