"""
Date window resolution (civil days, weeks, months and rolling hours).

Every helper returns a start bound that is <= its end bound. Negative
counts are clamped, never rejected. "end_exclusive" bounds are not part of
the window.
"""

from datetime import datetime
from typing import Optional, Tuple

from ..clock import StatsEnvironment
from ..models import TimeWindow


class WindowingService:
    """Resolves logical windows against the injected clock and calendar."""

    def __init__(self, env: Optional[StatsEnvironment] = None):
        self.env = env or StatsEnvironment()

    @property
    def calendar(self):
        return self.env.calendar

    def day_window(self, now: Optional[datetime] = None, days_back: int = 1) -> Tuple[datetime, datetime]:
        """
        Closed window over the last `days_back` civil days up to now.

        Returns:
            (start_of_day - (n-1) days, now)
        """
        anchor = self.env.resolve_now(now)
        day0 = self.calendar.start_of_day(anchor)
        start = self.calendar.add_days(day0, -max(0, days_back - 1))
        return start, anchor

    def day_start_end_exclusive(self, now: Optional[datetime] = None,
                                days_back: int = 1) -> Tuple[datetime, datetime]:
        """
        Last `days_back` civil days including today; 1 means today only.

        Returns:
            (start, end_exclusive) where end_exclusive is the start of tomorrow
        """
        anchor = self.env.resolve_now(now)
        day0 = self.calendar.start_of_day(anchor)
        start = self.calendar.add_days(day0, -max(0, days_back - 1))
        end_exclusive = self.calendar.add_days(day0, 1)
        return start, end_exclusive

    def rolling_start_end(self, now: Optional[datetime] = None,
                          hours_back: int = 24) -> Tuple[datetime, datetime]:
        """Rolling window of the last `hours_back` hours ending at now."""
        anchor = self.env.resolve_now(now)
        start = self.calendar.add_hours(anchor, -max(0, hours_back))
        return start, anchor

    def resolve_start_end(self, now: Optional[datetime] = None,
                          window: Optional[TimeWindow] = None) -> Tuple[datetime, datetime]:
        """Resolve a TimeWindow to (start, end_exclusive)."""
        window = window or TimeWindow.days(1)
        if window.is_days:
            return self.day_start_end_exclusive(now, window.count)
        return self.rolling_start_end(now, window.count)

    def week_start_end_exclusive(self, now: Optional[datetime] = None,
                                 weeks_back: int = 1) -> Tuple[datetime, datetime]:
        """
        Whole weeks ending with the week that contains now.

        Weeks start on the calendar's first weekday (Monday by default).
        """
        anchor = self.env.resolve_now(now)
        week_start = self.calendar.start_of_week(anchor)
        start = self.calendar.add_weeks(week_start, -max(0, weeks_back - 1))
        end_exclusive = self.calendar.add_weeks(week_start, 1)
        return start, end_exclusive

    def month_start_end_exclusive(self, now: Optional[datetime] = None,
                                  months_back: int = 1) -> Tuple[datetime, datetime]:
        """Whole months ending with the month that contains now."""
        anchor = self.env.resolve_now(now)
        month_start = self.calendar.start_of_month(anchor)
        start = self.calendar.add_months(month_start, -max(0, months_back - 1))
        end_exclusive = self.calendar.add_months(month_start, 1)
        return start, end_exclusive

    def previous_day_range(self, current_start: datetime, days: int) -> Tuple[datetime, datetime]:
        """
        Closed range of `days` civil days ending one second before current_start.
        Used by trend comparisons.
        """
        start_prev = self.calendar.add_days(current_start, -days)
        end_prev = self.calendar.add_seconds(current_start, -1)
        return start_prev, end_prev

    def previous_rolling_range(self, current_start: datetime, hours: int) -> Tuple[datetime, datetime]:
        """Closed rolling range of `hours` ending one second before current_start."""
        start_prev = self.calendar.add_hours(current_start, -max(0, hours))
        end_prev = self.calendar.add_seconds(current_start, -1)
        return start_prev, end_prev

    def trend_ranges(self, now: Optional[datetime],
                     window: TimeWindow) -> Optional[Tuple[Tuple[datetime, datetime], Tuple[datetime, datetime]]]:
        """
        Closed (current, previous) ranges for trend comparisons.

        Current is [window start, now]; previous has the same length and ends
        one second before the current start. None when the window count < 1.
        """
        if window.count < 1:
            return None
        anchor = self.env.resolve_now(now)
        if window.is_days:
            start_current = self.day_start_end_exclusive(anchor, window.count)[0]
            previous = self.previous_day_range(start_current, window.count)
        else:
            start_current = self.rolling_start_end(anchor, window.count)[0]
            previous = self.previous_rolling_range(start_current, window.count)
        return (start_current, anchor), previous
