from __future__ import annotations

import logging

from sqlalchemy import Connection, Engine, inspect

import timetabler.models  # noqa: F401
from timetabler.db.base import Base
from timetabler.db.session import engine as default_engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "email", "role"},
    "batches": {"id", "department", "semester"},
    "subjects": {"id", "code", "department", "type"},
    "faculty": {"id", "employee_id", "department", "availability", "max_hours_per_week"},
    "classrooms": {"id", "name", "type"},
    "timetables": {"id", "batch_id", "status", "approved_by", "published_at"},
    "timetable_slots": {"id", "timetable_id", "day_of_week", "start_time", "faculty_id", "classroom_id"},
}


def schema_report(connection: Connection) -> tuple[list[str], dict[str, list[str]]]:
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables = sorted(name for name in REQUIRED_COLUMNS if name not in table_names)
    missing_columns: dict[str, list[str]] = {}
    for table_name, required in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        missing = sorted(required - existing)
        if missing:
            missing_columns[table_name] = missing
    return missing_tables, missing_columns


def ensure_schema(bind: Engine | None = None) -> None:
    bind = bind if bind is not None else default_engine
    try:
        with bind.begin() as connection:
            # Development databases get missing tables; columns are left to alembic.
            Base.metadata.create_all(bind=connection)
            missing_tables, missing_columns = schema_report(connection)
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Schema bootstrap failed")
        raise RuntimeError("Schema bootstrap failed") from exc

    if missing_tables:
        raise RuntimeError(f"Missing required tables: {', '.join(missing_tables)}")
    if missing_columns:
        flattened = [f"{table}.{column}" for table, columns in missing_columns.items() for column in columns]
        raise RuntimeError(f"Missing required columns: {', '.join(flattened)}")
