"""Half-open time intervals occupied by appointments."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

DEFAULT_DURATION_MINUTES = 60
MAX_DURATION_MINUTES = 480


@dataclass(frozen=True)
class Interval:
    """``[start, start + duration_minutes)``."""

    start: datetime
    duration_minutes: int

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    def overlaps(self, other: "Interval") -> bool:
        """Back-to-back intervals do not overlap."""
        return self.start < other.end and self.end > other.start

    @classmethod
    def of(cls, appointment: Mapping[str, Any]) -> "Interval":
        """Interval of a stored appointment row."""
        return cls(
            start=appointment["scheduled_start"],
            duration_minutes=appointment.get("duration_minutes") or DEFAULT_DURATION_MINUTES,
        )
