"""Quiet hours: a daily window during which voice output is suppressed."""

import re
from dataclasses import dataclass
from datetime import datetime, time
from typing import TYPE_CHECKING, Optional, Union

from thinkback.errors import ValidationError

if TYPE_CHECKING:
    from thinkback.models.settings import Settings

_CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")

MINUTES_PER_DAY = 24 * 60


def parse_clock(value: str) -> int:
    """Convert an "HH:MM" string to minutes since midnight.

    Args:
        value: Wall-clock time, 24-hour, e.g. "23:00"

    Returns:
        Minutes since midnight (0-1439)

    Raises:
        ValidationError: If the string is not a valid 24-hour time
    """
    match = _CLOCK_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Invalid time {value!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValidationError(f"Invalid time {value!r}, expected HH:MM")
    return hours * 60 + minutes


def minutes_of_day(moment: Union[datetime, time]) -> int:
    return moment.hour * 60 + moment.minute


def is_within_window(start: int, end: int, now: int) -> bool:
    """Check whether `now` lies in the daily window [start, end).

    A window whose start is not before its end crosses midnight. When
    start equals end the window covers the whole day.
    """
    if start < end:
        return start <= now < end
    return now >= start or now < end


@dataclass(frozen=True)
class QuietWindow:
    """A configured quiet-hours window."""

    enabled: bool
    start: str
    end: str

    def __post_init__(self) -> None:
        # Fail fast on malformed bounds
        parse_clock(self.start)
        parse_clock(self.end)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "QuietWindow":
        return cls(
            enabled=settings.quiet_hours_enabled,
            start=settings.quiet_hours_start,
            end=settings.quiet_hours_end,
        )

    @property
    def crosses_midnight(self) -> bool:
        return parse_clock(self.start) >= parse_clock(self.end)

    def is_active(self, now: Optional[Union[datetime, time]] = None) -> bool:
        """Return True if quiet hours are in effect at `now` (default: local now)."""
        if not self.enabled:
            return False
        if now is None:
            now = datetime.now()
        return is_within_window(
            parse_clock(self.start), parse_clock(self.end), minutes_of_day(now)
        )


def is_quiet_hours_active(
    settings: "Settings", now: Optional[Union[datetime, time]] = None
) -> bool:
    """Check quiet hours for a settings record."""
    return QuietWindow.from_settings(settings).is_active(now)
