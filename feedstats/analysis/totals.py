"""
Total time spent feeding per day, week and month.

Feeding time is taken from breast units (or the envelope of unit-less
sessions), split at civil-day boundaries and clipped to the window.
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ..models import (
    DailyDurationPoint,
    DailyTotalTrend,
    FeedingLogEntry,
    MonthlyDurationPoint,
    Scenario,
    TimeWindow,
    WeeklyDurationPoint,
    WindowTrend,
)
from .averaging import StatsServiceBase, mean


class TotalsService(StatsServiceBase):
    """Contiguous duration totals."""

    def _accumulate_by_day(self, totals: Dict[datetime, float], seg_start: datetime, seg_end: datetime,
                           window_start: datetime, window_end: datetime):
        cursor = max(seg_start, window_start)
        hard_end = min(seg_end, window_end)
        while cursor < hard_end:
            day = self.calendar.start_of_day(cursor)
            chunk_end = min(hard_end, self.calendar.add_days(day, 1))
            dt = (chunk_end - cursor).total_seconds()
            if dt > 0:
                totals[day] = totals.get(day, 0.0) + dt
            cursor = chunk_end

    def _daily_totals(self, feeds: Sequence[FeedingLogEntry], start: datetime, end_exclusive: datetime,
                      scenario: Scenario) -> List[DailyDurationPoint]:
        """Daily series over [start_of_day(start), start_of_day(end_exclusive))."""
        start = self.calendar.start_of_day(start)
        scoped = self.scenarios.filter_by_scenario(
            [f for f in feeds if f.is_completed and f.start_time < end_exclusive and f.end_time >= start],
            scenario,
        )

        totals: Dict[datetime, float] = {}
        for entry in scoped:
            if entry.breast_units:
                for unit in entry.breast_units:
                    self._accumulate_by_day(totals, unit.start_time, unit.end_time, start, end_exclusive)
            else:
                self._accumulate_by_day(totals, entry.start_time, entry.end_time, start, end_exclusive)

        days = max(0, self.calendar.components_between(
            'day', start, self.calendar.start_of_day(end_exclusive)))
        points = []
        for i in range(days):
            day = self.calendar.add_days(start, i)
            points.append(DailyDurationPoint(date=day, total=totals.get(day, 0.0)))
        return points

    def daily_total_duration_series(self,
                                    feeds: Sequence[FeedingLogEntry],
                                    window: TimeWindow,
                                    scenario: Scenario = Scenario.ALL,
                                    now: Optional[datetime] = None) -> List[DailyDurationPoint]:
        start, end_exclusive = self.windowing.resolve_start_end(now, window)
        return self._daily_totals(feeds, start, end_exclusive, scenario)

    def daily_total_trend(self,
                          feeds: Sequence[FeedingLogEntry],
                          window: TimeWindow,
                          scenario: Scenario = Scenario.ALL,
                          now: Optional[datetime] = None) -> DailyTotalTrend:
        """Average per day of the window against the same window anchored one day earlier."""
        anchor = self.env.resolve_now(now)
        current = self.daily_total_duration_series(feeds, window, scenario, anchor)
        previous_now = self.calendar.add_days(self.calendar.start_of_day(anchor), -1)
        previous = self.daily_total_duration_series(feeds, window, scenario, previous_now)
        return DailyTotalTrend(
            current_avg_per_day=mean([p.total for p in current]),
            previous_avg_per_day=mean([p.total for p in previous]),
        )

    def weekly_total_duration_series(self,
                                     feeds: Sequence[FeedingLogEntry],
                                     weeks_back: int,
                                     scenario: Scenario = Scenario.ALL,
                                     now: Optional[datetime] = None) -> List[WeeklyDurationPoint]:
        """
        Weekly totals for `weeks_back` whole weeks ending with the current week.

        Raises:
            ValueError: weeks_back < 1
        """
        if weeks_back < 1:
            raise ValueError(f"weeks_back must be >= 1, got {weeks_back}")

        start, end_exclusive = self.windowing.week_start_end_exclusive(now, weeks_back)
        totals: Dict[datetime, float] = {}
        for point in self._daily_totals(feeds, start, end_exclusive, scenario):
            week = self.calendar.start_of_week(point.date)
            totals[week] = totals.get(week, 0.0) + point.total

        points = []
        for i in range(weeks_back):
            week = self.calendar.add_weeks(start, i)
            points.append(WeeklyDurationPoint(week_start=week, total=totals.get(week, 0.0)))
        return points

    def monthly_total_duration_series(self,
                                      feeds: Sequence[FeedingLogEntry],
                                      months_back: int,
                                      scenario: Scenario = Scenario.ALL,
                                      now: Optional[datetime] = None) -> List[MonthlyDurationPoint]:
        """
        Monthly totals for `months_back` whole months ending with the current month.

        Raises:
            ValueError: months_back < 1
        """
        if months_back < 1:
            raise ValueError(f"months_back must be >= 1, got {months_back}")

        start, end_exclusive = self.windowing.month_start_end_exclusive(now, months_back)
        totals: Dict[datetime, float] = {}
        for point in self._daily_totals(feeds, start, end_exclusive, scenario):
            month = self.calendar.start_of_month(point.date)
            totals[month] = totals.get(month, 0.0) + point.total

        points = []
        for i in range(months_back):
            month = self.calendar.add_months(start, i)
            points.append(MonthlyDurationPoint(month_start=month, total=totals.get(month, 0.0)))
        return points

    def window_trend(self, current: Sequence[float], previous: Sequence[float]) -> WindowTrend:
        return WindowTrend(current_avg=mean(current), previous_avg=mean(previous))
