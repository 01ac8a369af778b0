"""
Slot Generation

Enumerates bookable start times for one practitioner on one day, stepping
through the working-hours window at a fixed granularity and skipping every
candidate that overlaps an existing booking.
"""

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any

from app.scheduling.conflicts import find_overlapping
from app.scheduling.interval import Interval
from app.schemas.appointments import Slot, parse_time

SLOT_STEP_MINUTES = 15


@dataclass(frozen=True)
class WorkingHours:
    """Daily window in which appointments may be placed."""

    start: time
    end: time

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError("Working hours end must be after start")

    @classmethod
    def parse(cls, start: str, end: str) -> "WorkingHours":
        """Build from ``HH:MM`` strings."""
        return cls(start=parse_time(start), end=parse_time(end))

    def bounds(self, day: date) -> tuple[datetime, datetime]:
        """Window start and end as timestamps on ``day``."""
        return datetime.combine(day, self.start), datetime.combine(day, self.end)


def iter_available_slots(
    day: date,
    duration_minutes: int,
    working_hours: WorkingHours,
    bookings: Sequence[Mapping[str, Any]],
    step_minutes: int = SLOT_STEP_MINUTES,
) -> Iterator[Slot]:
    """
    Yield free slots in chronological order.

    A candidate ``[t, t + duration)`` is considered for every ``t`` from the
    window start in ``step_minutes`` increments, as long as it ends no later
    than the window end. The generator only reads its arguments, so calling it
    again restarts the enumeration.

    Args:
        day: Target calendar day
        duration_minutes: Desired appointment length
        working_hours: Daily window
        bookings: Live appointments of the practitioner around that day
        step_minutes: Granularity of candidate start times

    Yields:
        Slot for each non-conflicting candidate
    """
    window_start, window_end = working_hours.bounds(day)
    step = timedelta(minutes=step_minutes)

    current = window_start
    while True:
        candidate = Interval(current, duration_minutes)
        if candidate.end > window_end:
            break

        if not find_overlapping(candidate, bookings):
            yield Slot(
                time=current.strftime("%H:%M"),
                duration_minutes=duration_minutes,
                available=True,
            )

        current += step
