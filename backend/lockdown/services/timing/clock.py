from datetime import datetime, timedelta, timezone
import threading


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on reload)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def elapsed_seconds(started_at: datetime, now: datetime) -> int:
    """Whole seconds between two server timestamps, never negative."""
    if started_at is None:
        return 0
    delta = as_utc(now) - as_utc(started_at)
    return max(0, int(delta.total_seconds()))


class SystemClock:
    """The only time source the engine trusts."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """Clock that only moves when told to; used to simulate elapsed time."""

    def __init__(self, start: datetime = None):
        self._now = as_utc(start) if start else datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> datetime:
        with self._lock:
            self._now = self._now + timedelta(seconds=seconds)
            return self._now
