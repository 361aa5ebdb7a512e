from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from tutordesk.db.base import Base

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "teachers": {"id", "name", "restriction", "status"},
    "students": {"id", "name", "status"},
    "course_arrangement": {
        "id",
        "teacher_id",
        "student_id",
        "arr_date",
        "start_time",
        "end_time",
        "status",
        "transport_fee",
        "other_fee",
    },
    "teacher_daily_availability": {"teacher_id", "date", "morning_available", "afternoon_available", "evening_available"},
    "student_daily_availability": {"student_id", "date", "morning_available", "afternoon_available", "evening_available"},
}


def missing_columns(engine: Engine) -> dict[str, set[str]]:
    inspector = inspect(engine)
    table_names = set(inspector.get_table_names())
    missing: dict[str, set[str]] = {}
    for table_name, required in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            missing[table_name] = set(required)
            continue
        present = {item["name"] for item in inspector.get_columns(table_name)}
        absent = required - present
        if absent:
            missing[table_name] = absent
    return missing


def init_schema(engine: Engine | None = None) -> None:
    if engine is None:
        from tutordesk.db.session import engine as default_engine

        engine = default_engine

    import tutordesk.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    missing = missing_columns(engine)
    for table_name, columns in missing.items():
        logger.warning("Table %s is missing column(s): %s", table_name, ", ".join(sorted(columns)))
