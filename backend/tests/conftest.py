import os
from datetime import datetime, timezone

# The app module builds its engine and settings at import time.
os.environ["DATABASE_URL"] = "sqlite+pysqlite://"
os.environ["CLASS_STATUS_JOB_ENABLED"] = "false"
os.environ.setdefault("ENVIRONMENT", "test")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_db  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models.academic_class import AcademicClass, ClassStatus  # noqa: E402
from app.models.center import Center  # noqa: E402
from app.models.group import Group, GroupStudent  # noqa: E402
from app.models.schedule_item import DayOfWeek, ScheduleItem  # noqa: E402
from app.models.user_profile import ProfileType, UserProfile  # noqa: E402
from app.schemas.schedule import parse_time_to_minutes  # noqa: E402
from app.services.events import CLASS_STATUS_CHANGED, SCHEDULE_CONFLICT_ADVISORY, event_bus  # noqa: E402


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs to leave transaction control to SQLAlchemy for SAVEPOINT to work.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection):
        connection.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def published():
    """Events delivered on the process-wide bus during the test."""
    received = []
    event_bus.subscribe(CLASS_STATUS_CHANGED, received.append)
    event_bus.subscribe(SCHEDULE_CONFLICT_ADVISORY, received.append)
    yield received
    event_bus.clear()


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
    event_bus.clear()


class Seed:
    def __init__(self, db):
        self.db = db

    def center(self, name="Downtown", tz="UTC", is_active=True) -> Center:
        center = Center(name=name, timezone=tz, is_active=is_active)
        self.db.add(center)
        self.db.commit()
        return center

    def profile(self, center, name, profile_type=ProfileType.student) -> UserProfile:
        profile = UserProfile(center_id=center.id, name=name, profile_type=profile_type)
        self.db.add(profile)
        self.db.commit()
        return profile

    def teacher(self, center, name="Teacher") -> UserProfile:
        return self.profile(center, name, ProfileType.teacher)

    def academic_class(
        self,
        center,
        teacher,
        *,
        duration=60,
        status=ClassStatus.NOT_STARTED,
        start_date=datetime(2026, 9, 1, 9, 0),
        end_date=None,
        status_changed_at=None,
        name="Algebra",
    ) -> AcademicClass:
        record = AcademicClass(
            center_id=center.id,
            name=name,
            teacher_id=teacher.id,
            duration=duration,
            status=status,
            start_date=start_date,
            end_date=end_date,
            status_changed_at=status_changed_at or datetime.now(timezone.utc),
        )
        self.db.add(record)
        self.db.commit()
        return record

    def group(self, academic_class, slots=(), students=(), name="Group A") -> Group:
        """Commit a group directly, bypassing conflict checks.

        ``slots`` are ``(day, "HH:MM")`` pairs.
        """
        group = Group(class_id=academic_class.id, center_id=academic_class.center_id, name=name)
        self.db.add(group)
        self.db.flush()
        for day, start in slots:
            self.db.add(
                ScheduleItem(
                    group_id=group.id,
                    class_id=academic_class.id,
                    day=DayOfWeek(day),
                    start_minute=parse_time_to_minutes(start),
                )
            )
        for student in students:
            self.db.add(
                GroupStudent(
                    group_id=group.id,
                    class_id=academic_class.id,
                    student_id=student.id,
                    joined_at=datetime.now(timezone.utc),
                )
            )
        self.db.commit()
        return group


@pytest.fixture()
def seed(db_session):
    return Seed(db_session)
