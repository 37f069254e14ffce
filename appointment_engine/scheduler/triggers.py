"""When scheduled jobs fire."""

from datetime import datetime, timedelta


class IntervalTrigger:
    """Fire right away, then every `seconds` after the previous fire time."""

    def __init__(self, seconds: float):
        if seconds <= 0:
            raise ValueError("interval must be positive")
        self.interval = timedelta(seconds=seconds)

    def next_fire_time(self, previous: datetime | None, now: datetime) -> datetime:
        if previous is None:
            return now
        return max(previous + self.interval, now)

    def __repr__(self) -> str:
        return f"IntervalTrigger(every {self.interval})"


class CronTrigger:
    """Fire at a fixed wall-clock time every day, or on one weekday (Monday=0)."""

    def __init__(self, hour: int, minute: int = 0, weekday: int | None = None):
        if not 0 <= hour <= 23 or not 0 <= minute <= 59:
            raise ValueError(f"invalid time of day {hour:02d}:{minute:02d}")
        if weekday is not None and not 0 <= weekday <= 6:
            raise ValueError(f"invalid weekday {weekday}")
        self.hour = hour
        self.minute = minute
        self.weekday = weekday

    def next_fire_time(self, previous: datetime | None, now: datetime) -> datetime:
        """First matching time strictly after both `now` and `previous`."""
        after = max(now, previous) if previous is not None else now
        candidate = after.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= after:
            candidate += timedelta(days=1)
        if self.weekday is not None:
            candidate += timedelta(days=(self.weekday - candidate.weekday()) % 7)
        return candidate

    def __repr__(self) -> str:
        day = "daily" if self.weekday is None else f"weekday {self.weekday}"
        return f"CronTrigger({day} at {self.hour:02d}:{self.minute:02d})"
