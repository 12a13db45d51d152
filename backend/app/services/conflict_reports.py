from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Literal

from app.models.schedule_item import DAY_ORDER, DayOfWeek
from app.schemas.schedule import ConflictEntry, ConflictReport
from app.services.schedule_validation import format_time_range

SubjectType = Literal["teacher", "student"]


@dataclass(frozen=True)
class OverlapMatch:
    """A committed slot that overlaps at least one candidate slot."""

    subject_id: str
    group_id: str
    day: DayOfWeek
    start_minute: int
    duration: int


def build_conflict_report(
    *,
    subject_id: str,
    subject_type: SubjectType,
    matches: Iterable[OverlapMatch],
    subject_name: str | None = None,
) -> ConflictReport | None:
    ordered = sorted(
        matches,
        key=lambda match: (DAY_ORDER[match.day], match.start_minute, match.duration),
    )
    seen: set[tuple[DayOfWeek, str]] = set()
    entries: list[ConflictEntry] = []
    for match in ordered:
        time_range = format_time_range(match.start_minute, match.duration)
        key = (match.day, time_range)
        if key in seen:
            continue
        seen.add(key)
        entries.append(ConflictEntry(day=match.day, time_range=time_range))

    if not entries:
        return None
    return ConflictReport(
        subject_id=subject_id,
        subject_name=subject_name,
        subject_type=subject_type,
        conflicts=entries,
    )


def build_reports_by_subject(
    *,
    subject_type: SubjectType,
    matches: Iterable[OverlapMatch],
    names: Mapping[str, str] | None = None,
    subject_order: Iterable[str] | None = None,
) -> list[ConflictReport]:
    """One report per subject with at least one match.

    Reports follow ``subject_order`` when given, otherwise first-seen order.
    """
    names = names or {}
    by_subject: dict[str, list[OverlapMatch]] = defaultdict(list)
    for match in matches:
        by_subject[match.subject_id].append(match)

    order = list(dict.fromkeys(subject_order)) if subject_order is not None else list(by_subject)
    reports: list[ConflictReport] = []
    for subject_id in order:
        report = build_conflict_report(
            subject_id=subject_id,
            subject_type=subject_type,
            matches=by_subject.get(subject_id, ()),
            subject_name=names.get(subject_id),
        )
        if report is not None:
            reports.append(report)
    return reports


def serialize_reports(reports: Iterable[ConflictReport]) -> list[dict]:
    return [report.model_dump(mode="json", by_alias=True) for report in reports]


def describe_reports(reports: Iterable[ConflictReport]) -> str:
    parts: list[str] = []
    for report in reports:
        label = report.subject_name or report.subject_id
        slots = ", ".join(f"{entry.day.value} {entry.time_range}" for entry in report.conflicts)
        parts.append(f"{label} ({slots})")
    return "; ".join(parts)
