"""
Clock and calendar capabilities.

All statistics and state transitions take "now" from an injected clock and
civil boundaries (day, week, month, hour-of-day) from a StatsCalendar, so
results are deterministic given those two inputs.
"""

import calendar as _calendar
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional, Protocol

from feedstats.constants import TIME_OF_DAY_BOUNDARIES
from feedstats.models import TimeOfDaySlot


class NowProvider(Protocol):
    """Anything that can report the current instant."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock. Naive local time unless a tzinfo is given."""

    def __init__(self, tz: Optional[tzinfo] = None):
        self.tz = tz

    def now(self) -> datetime:
        return datetime.now(self.tz)


class FixedClock:
    """Clock frozen at a given instant; advance it explicitly in tests."""

    def __init__(self, instant: datetime):
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def advance(self, seconds: float) -> datetime:
        self.instant = self.instant + timedelta(seconds=seconds)
        return self.instant

    def set(self, instant: datetime) -> datetime:
        self.instant = instant
        return self.instant


class StatsCalendar:
    """
    Civil-calendar arithmetic.

    With tz=None datetimes are used as given (naive or aware). With a tzinfo,
    every instant is first converted into that zone, so day boundaries and
    hours follow the local wall clock.

    Args:
        tz: Zone used for civil boundaries.
        first_weekday: 0=Monday ... 6=Sunday.
    """

    def __init__(self, tz: Optional[tzinfo] = None, first_weekday: int = 0):
        self.tz = tz
        self.first_weekday = first_weekday % 7

    def local(self, instant: datetime) -> datetime:
        if self.tz is None or instant.tzinfo is None:
            return instant
        return instant.astimezone(self.tz)

    # ------------------------------------------------------------------
    # Boundaries
    # ------------------------------------------------------------------

    def start_of_day(self, instant: datetime) -> datetime:
        return self.local(instant).replace(hour=0, minute=0, second=0, microsecond=0)

    def start_of_week(self, instant: datetime) -> datetime:
        day = self.start_of_day(instant)
        offset = (day.weekday() - self.first_weekday) % 7
        return day - timedelta(days=offset)

    def start_of_month(self, instant: datetime) -> datetime:
        return self.start_of_day(instant).replace(day=1)

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def add_seconds(self, instant: datetime, seconds: float) -> datetime:
        # Elapsed-time arithmetic: go through UTC so DST shifts are honoured
        if instant.tzinfo is None:
            return instant + timedelta(seconds=seconds)
        shifted = instant.astimezone(timezone.utc) + timedelta(seconds=seconds)
        return shifted.astimezone(instant.tzinfo)

    def add_hours(self, instant: datetime, hours: float) -> datetime:
        return self.add_seconds(instant, hours * 3600)

    def add_days(self, instant: datetime, days: int) -> datetime:
        # Wall-clock arithmetic in the local zone keeps midnight at midnight
        return self.local(instant) + timedelta(days=days)

    def add_weeks(self, instant: datetime, weeks: int) -> datetime:
        return self.add_days(instant, 7 * weeks)

    def add_months(self, instant: datetime, months: int) -> datetime:
        local = self.local(instant)
        index = local.year * 12 + (local.month - 1) + months
        year, month = divmod(index, 12)
        month += 1
        day = min(local.day, _calendar.monthrange(year, month)[1])
        return local.replace(year=year, month=month, day=day)

    def components_between(self, unit: str, start: datetime, end: datetime) -> int:
        """
        Whole units elapsed from start to end (truncated toward zero).

        Args:
            unit: 'hour', 'day', 'week' or 'month'

        Returns:
            Signed integer count
        """
        if unit == 'hour':
            return int((end - start).total_seconds() / 3600)

        a = self.local(start)
        b = self.local(end)
        sign = 1
        if b < a:
            a, b = b, a
            sign = -1

        if unit in ('day', 'week'):
            days = (b.date() - a.date()).days
            if days > 0 and b.time() < a.time():
                days -= 1
            return sign * (days if unit == 'day' else days // 7)

        if unit == 'month':
            months = (b.year - a.year) * 12 + (b.month - a.month)
            if months > 0 and (b.day, b.time()) < (a.day, a.time()):
                months -= 1
            return sign * months

        raise ValueError(f"Unsupported calendar unit: {unit}")

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    def hour_of_day(self, instant: datetime) -> int:
        return self.local(instant).hour

    def is_same_day(self, a: datetime, b: datetime) -> bool:
        return self.local(a).date() == self.local(b).date()

    def time_of_day_slot(self, instant: datetime) -> TimeOfDaySlot:
        return TimeOfDaySlot.for_hour(self.hour_of_day(instant))

    def slot_start(self, day_start: datetime, slot: TimeOfDaySlot) -> datetime:
        """Instant at which a time-of-day slot begins on the given civil day."""
        hour = TIME_OF_DAY_BOUNDARIES[f"{slot.value}_start"]
        return self.add_hours(day_start, hour)


@dataclass
class StatsEnvironment:
    """Clock and calendar shared by the statistics services."""

    clock: NowProvider = field(default_factory=SystemClock)
    calendar: StatsCalendar = field(default_factory=StatsCalendar)

    def resolve_now(self, now: Optional[datetime] = None) -> datetime:
        return now if now is not None else self.clock.now()
