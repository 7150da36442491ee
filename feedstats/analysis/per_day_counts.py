"""
Per-day feed counts: contiguous zero-filled series, summary and trend.
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..models import (
    Breast,
    FeedingLogEntry,
    FeedsPerDayGrouping,
    FeedsPerDayPoint,
    FeedsPerDaySummary,
    FeedsPerDayTrend,
    Scenario,
    TimeWindow,
)
from .averaging import StatsServiceBase


class PerDayCountsService(StatsServiceBase):
    """Counts completed feeds per civil day."""

    def _day_count(self, start: datetime, end: datetime) -> int:
        """Whole civil days between the start-of-day of both bounds."""
        days = self.calendar.components_between(
            'day', self.calendar.start_of_day(start), self.calendar.start_of_day(end)
        )
        return max(0, days)

    def _series(self, subset: Sequence[FeedingLogEntry], start: datetime, days: int) -> List[FeedsPerDayPoint]:
        counts: Dict[datetime, int] = {}
        for entry in subset:
            day = self.calendar.start_of_day(entry.start_time)
            counts[day] = counts.get(day, 0) + 1
        points = []
        for i in range(days):
            day = self.calendar.add_days(start, i)
            points.append(FeedsPerDayPoint(date=day, count=counts.get(day, 0)))
        return points

    def feeds_per_day_series(self,
                             feeds: Sequence[FeedingLogEntry],
                             window: TimeWindow,
                             scenario: Scenario = Scenario.ALL,
                             grouping: FeedsPerDayGrouping = FeedsPerDayGrouping.ALL,
                             now: Optional[datetime] = None
                             ) -> Tuple[List[FeedsPerDayPoint], Optional[List[FeedsPerDayPoint]],
                                        Optional[List[FeedsPerDayPoint]]]:
        """
        Contiguous per-day counts, zero-filled.

        The series covers every civil day from start_of_day(window start) up
        to (not including) start_of_day(window end).

        Returns:
            (overall, left, right); left and right are None unless grouping is BREAST
        """
        resolved_start, end_exclusive = self.windowing.resolve_start_end(now, window)
        start = self.calendar.start_of_day(resolved_start)
        days = self._day_count(start, end_exclusive)

        scoped = self.scoped(feeds, start, end_exclusive, scenario, end_inclusive=False)

        if grouping is FeedsPerDayGrouping.BREAST:
            left = self._series([f for f in scoped if f.breast is Breast.LEFT], start, days)
            right = self._series([f for f in scoped if f.breast is Breast.RIGHT], start, days)
            overall = [
                FeedsPerDayPoint(date=l.date, count=l.count + r.count)
                for l, r in zip(left, right)
            ]
            return overall, left, right

        return self._series(scoped, start, days), None, None

    def feeds_per_day_summary(self, points: Sequence[FeedsPerDayPoint]) -> FeedsPerDaySummary:
        if not points:
            return FeedsPerDaySummary(average=0.0, median=0.0, min=0, max=0, samples=0)
        counts = np.array([p.count for p in points])
        return FeedsPerDaySummary(
            average=float(counts.mean()),
            median=float(np.median(counts)),
            min=int(counts.min()),
            max=int(counts.max()),
            samples=len(points),
        )

    def _average_per_day(self, feeds: Sequence[FeedingLogEntry], start: datetime, end: datetime,
                         scenario: Scenario) -> float:
        days = self._day_count(start, end)
        if days <= 0:
            return 0.0
        scoped = self.scoped(feeds, start, end, scenario, end_inclusive=False)
        first_day = self.calendar.start_of_day(start)
        last_day = self.calendar.add_days(first_day, days)
        counted = [f for f in scoped if first_day <= f.start_time < last_day]
        return len(counted) / days

    def feeds_per_day_trend(self,
                            feeds: Sequence[FeedingLogEntry],
                            window: TimeWindow,
                            scenario: Scenario = Scenario.ALL,
                            now: Optional[datetime] = None) -> FeedsPerDayTrend:
        """Average feeds/day against the span of equal day count right before it."""
        resolved_start, end_exclusive = self.windowing.resolve_start_end(now, window)
        cur_start = self.calendar.start_of_day(resolved_start)
        days = self._day_count(cur_start, end_exclusive)
        prev_start = self.calendar.add_days(cur_start, -days)

        return FeedsPerDayTrend(
            current_avg=self._average_per_day(feeds, cur_start, end_exclusive, scenario),
            previous_avg=self._average_per_day(feeds, prev_start, cur_start, scenario),
        )
