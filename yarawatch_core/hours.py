"""Daily preferred scan window, possibly wrapping past midnight."""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def _parse_time(text: str) -> time:
    m = _TIME_RE.match(text.strip())
    if not m:
        raise ValueError(f"not a time of day: {text!r}")
    hour, minute, second = int(m.group(1)), int(m.group(2)), int(m.group(3) or 0)
    # time() rejects out-of-range fields
    return time(hour, minute, second)


@dataclass(frozen=True)
class PreferredHours:
    """
    Window [start, end) in local wall-clock time.

    start > end wraps past midnight (19:00-09:00). start == end means the
    whole day.
    """

    start: time
    end: time

    @classmethod
    def parse(cls, text: str) -> "PreferredHours":
        parts = text.split("-")
        if len(parts) != 2:
            raise ValueError(f"expected 'START-END', got {text!r}")
        return cls(_parse_time(parts[0]), _parse_time(parts[1]))

    def __str__(self) -> str:
        return f"{self.start.isoformat()}-{self.end.isoformat()}"

    @property
    def wraps(self) -> bool:
        return self.start > self.end

    def contains(self, t: time) -> bool:
        if self.start == self.end:
            return True
        if self.wraps:
            return t >= self.start or t < self.end
        return self.start <= t < self.end

    def _at(self, dt: datetime, t: time) -> datetime:
        return dt.replace(hour=t.hour, minute=t.minute, second=t.second, microsecond=0)

    def occurrence_start(self, now: datetime) -> datetime:
        """Start of the window occurrence that contains *now*, or the most recent one."""
        start_today = self._at(now, self.start)
        if now >= start_today:
            return start_today
        return start_today - timedelta(days=1)

    def until_next_start(self, now: datetime) -> timedelta:
        if self.contains(now.time()):
            return timedelta(0)
        start_today = self._at(now, self.start)
        if now < start_today:
            return start_today - now
        return start_today + timedelta(days=1) - now

    def until_next_end(self, now: datetime) -> timedelta:
        end_today = self._at(now, self.end)
        if now < end_today:
            return end_today - now
        return end_today + timedelta(days=1) - now
