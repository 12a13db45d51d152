from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

from app.core.exceptions import ScheduleValidationError
from app.models.schedule_item import DAY_ORDER, DayOfWeek
from app.schemas.schedule import minutes_to_hhmm, parse_time_to_minutes

MINUTES_PER_DAY = 24 * 60


class SlotCandidate(NamedTuple):
    day: DayOfWeek
    start_minute: int

    @property
    def start_time(self) -> str:
        return minutes_to_hhmm(self.start_minute)


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    # Half-open: [start, end) touching at a boundary is not an overlap.
    return start_a < end_b and start_b < end_a


def week_offset(day: DayOfWeek, minute: int) -> int:
    """Position of ``minute`` on ``day`` in a Monday-anchored reference week."""
    return DAY_ORDER[day] * MINUTES_PER_DAY + minute


def format_time_range(start_minute: int, duration: int) -> str:
    return f"{minutes_to_hhmm(start_minute)}-{minutes_to_hhmm(start_minute + duration)}"


def _raw_fields(item: Any) -> tuple[Any, Any]:
    if isinstance(item, SlotCandidate):
        return item.day, item.start_minute
    if isinstance(item, Mapping):
        return item.get("day"), item.get("startTime", item.get("start_time"))
    return getattr(item, "day", None), getattr(item, "start_time", None)


def normalize_schedule_items(items: Iterable[Any]) -> list[SlotCandidate]:
    normalized: list[SlotCandidate] = []
    for index, item in enumerate(items):
        raw_day, raw_start = _raw_fields(item)
        try:
            day = DayOfWeek(raw_day)
        except ValueError as exc:
            raise ScheduleValidationError(
                f"Invalid day: {raw_day}",
                details={"index": index, "day": str(raw_day)},
            ) from exc

        if isinstance(raw_start, int) and not isinstance(raw_start, bool):
            if not 0 <= raw_start < MINUTES_PER_DAY:
                raise ScheduleValidationError(
                    "Start time must be within the day",
                    details={"index": index, "startMinute": raw_start},
                )
            start_minute = raw_start
        else:
            try:
                start_minute = parse_time_to_minutes(raw_start)
            except ValueError as exc:
                raise ScheduleValidationError(
                    "Start time must be in HH:mm format",
                    details={"index": index, "startTime": str(raw_start)},
                ) from exc
        normalized.append(SlotCandidate(day=day, start_minute=start_minute))
    return normalized


def validate_duration(duration: Any) -> int:
    if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
        raise ScheduleValidationError(
            "Duration must be a positive number of minutes",
            details={"duration": duration},
        )
    return duration


def validate_schedule(items: Iterable[Any], duration: int) -> list[SlotCandidate]:
    """Check a submitted set of weekly slots and return them normalized.

    Structure (day enum, ``HH:mm`` times, positive duration) is checked before
    any overlap test. Every item must end by midnight of its own day, and no
    two items may overlap on the shared weekly timeline.
    """
    candidates = normalize_schedule_items(items)
    if not candidates:
        raise ScheduleValidationError("Schedule items are required")
    duration = validate_duration(duration)

    for index, candidate in enumerate(candidates):
        if candidate.start_minute + duration > MINUTES_PER_DAY:
            raise ScheduleValidationError(
                "Schedule item end time exceeds 24:00",
                details={
                    "index": index,
                    "day": candidate.day.value,
                    "timeRange": format_time_range(candidate.start_minute, duration),
                },
            )

    by_day: dict[DayOfWeek, list[SlotCandidate]] = defaultdict(list)
    for candidate in candidates:
        by_day[candidate.day].append(candidate)

    for day in sorted(by_day, key=DAY_ORDER.__getitem__):
        # Every slot shares one duration, so only neighbours can overlap.
        ordered = sorted(by_day[day], key=lambda slot: slot.start_minute)
        for previous, current in zip(ordered, ordered[1:]):
            previous_start = week_offset(day, previous.start_minute)
            current_start = week_offset(day, current.start_minute)
            if intervals_overlap(
                previous_start,
                previous_start + duration,
                current_start,
                current_start + duration,
            ):
                raise ScheduleValidationError(
                    f"Overlapping time slots on {day.value}",
                    details={
                        "day": day.value,
                        "timeRanges": [
                            format_time_range(previous.start_minute, duration),
                            format_time_range(current.start_minute, duration),
                        ],
                    },
                )
    return candidates
