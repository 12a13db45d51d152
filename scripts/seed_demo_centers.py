"""Seed two demo centers with classes, groups and weekly schedules.

Run:
  PYTHONPATH=backend python scripts/seed_demo_centers.py
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import select

from app.core.exceptions import ScheduleConflictError
from app.db.bootstrap import ensure_runtime_schema_compatibility
from app.db.session import SessionLocal
from app.models.academic_class import AcademicClass, ClassStatus
from app.models.center import Center
from app.models.user_profile import ProfileType, UserProfile
from app.services.schedule_mutation import ScheduleMutationService

DEMO_CENTERS = {
    "Nile Learning Center": "Africa/Cairo",
    "Shibuya Study House": "Asia/Tokyo",
}
STUDENT_NAMES = ["Amal", "Bassem", "Chika", "Daichi"]


def _upsert_center(session, name: str, tz: str) -> Center:
    center = session.execute(select(Center).where(Center.name == name)).scalar_one_or_none()
    if center is None:
        center = Center(name=name, timezone=tz)
        session.add(center)
    else:
        center.timezone = tz
        center.is_active = True
    session.commit()
    return center


def _upsert_profile(session, center: Center, name: str, profile_type: ProfileType) -> UserProfile:
    profile = session.execute(
        select(UserProfile).where(UserProfile.center_id == center.id, UserProfile.name == name)
    ).scalar_one_or_none()
    if profile is None:
        profile = UserProfile(center_id=center.id, name=name, profile_type=profile_type)
        session.add(profile)
        session.commit()
    return profile


def _upsert_class(session, center: Center, teacher: UserProfile, name: str, duration: int) -> AcademicClass:
    record = session.execute(
        select(AcademicClass).where(AcademicClass.center_id == center.id, AcademicClass.name == name)
    ).scalar_one_or_none()
    if record is None:
        today = datetime.now().replace(hour=9, minute=0, second=0, microsecond=0)
        record = AcademicClass(
            center_id=center.id,
            name=name,
            teacher_id=teacher.id,
            duration=duration,
            status=ClassStatus.NOT_STARTED,
            start_date=today + timedelta(days=1),
            end_date=today + timedelta(days=90),
        )
        session.add(record)
        session.commit()
    return record


def _seed_center(session, name: str, tz: str) -> None:
    center = _upsert_center(session, name, tz)
    teacher = _upsert_profile(session, center, f"{name} Teacher", ProfileType.teacher)
    students = [_upsert_profile(session, center, student, ProfileType.student) for student in STUDENT_NAMES]
    math = _upsert_class(session, center, teacher, "Mathematics", 60)
    reading = _upsert_class(session, center, teacher, "Reading Club", 45)

    service = ScheduleMutationService(session)
    plans = [
        (math, "Math A", [{"day": "Mon", "startTime": "17:00"}, {"day": "Wed", "startTime": "17:00"}], students[:2]),
        (reading, "Reading A", [{"day": "Mon", "startTime": "18:00"}], students[2:]),
        # Same teacher on Monday 17:30 is always refused.
        (reading, "Reading B", [{"day": "Mon", "startTime": "17:30"}], []),
    ]
    for academic_class, group_name, items, members in plans:
        try:
            service.create_group(
                class_id=academic_class.id,
                name=group_name,
                schedule_items=items,
                student_ids=[student.id for student in members],
            )
        except ScheduleConflictError as exc:
            print(f"  ! {group_name}: {exc.message}")
        else:
            print(f"  + {group_name} ({len(items)} slot(s), {len(members)} student(s))")


def main() -> None:
    ensure_runtime_schema_compatibility()
    with SessionLocal() as session:
        for name, tz in DEMO_CENTERS.items():
            print(f"\n{name} [{tz}]")
            _seed_center(session, name, tz)
    print("\nDemo centers ready.")


if __name__ == "__main__":
    main()
