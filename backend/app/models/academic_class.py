import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class ClassStatus(str, Enum):
    PENDING_TEACHER_APPROVAL = "PENDING_TEACHER_APPROVAL"
    NOT_STARTED = "NOT_STARTED"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    FINISHED = "FINISHED"
    CANCELED = "CANCELED"


MIN_CLASS_DURATION = 10
MAX_CLASS_DURATION = 24 * 60


class AcademicClass(Base):
    __tablename__ = "classes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    center_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    teacher_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    # Minutes; every schedule item of the class inherits it.
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[ClassStatus] = mapped_column(
        SAEnum(ClassStatus, name="class_status"),
        nullable=False,
        default=ClassStatus.PENDING_TEACHER_APPROVAL,
        index=True,
    )
    # Center-local wall clock, compared against the center's local "now".
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    status_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
