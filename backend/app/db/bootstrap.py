from __future__ import annotations

import logging

from sqlalchemy import inspect, text

import app.models  # noqa: F401
from app.db.base import Base
from app.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "centers": {"id", "timezone", "is_active"},
    "classes": {
        "id",
        "center_id",
        "teacher_id",
        "duration",
        "status",
        "start_date",
        "end_date",
        "status_changed_at",
        "deleted_at",
    },
    "groups": {"id", "class_id", "deleted_at"},
    "schedule_items": {"id", "group_id", "day", "start_minute"},
    "group_students": {"id", "group_id", "class_id", "student_id", "left_at"},
}


def _ensure_classes_status_changed_at_column() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "classes" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("classes")}
        if "status_changed_at" in column_names:
            return

        if connection.dialect.name == "postgresql":
            connection.execute(text("ALTER TABLE classes ADD COLUMN status_changed_at TIMESTAMP WITH TIME ZONE"))
        else:
            connection.execute(text("ALTER TABLE classes ADD COLUMN status_changed_at DATETIME"))
        # Legacy rows keep their grace period anchored to the last update.
        connection.execute(text("UPDATE classes SET status_changed_at = updated_at WHERE status_changed_at IS NULL"))
        logger.info("Added classes.status_changed_at column")


def _ensure_centers_timezone_column() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "centers" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("centers")}
        if "timezone" in column_names:
            return
        connection.execute(text("ALTER TABLE centers ADD COLUMN timezone VARCHAR(64)"))
        logger.info("Added centers.timezone column")


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        _ensure_centers_timezone_column()
        _ensure_classes_status_changed_at_column()
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
