"""
Start-to-start interval statistics.

Pairs are consecutive completed feeds (after scenario filtering) sorted by
start time. Night and time-of-day figures only use pairs that fall on the
same civil day.
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from ..models import (
    TIME_OF_DAY_DISPLAY_ORDER,
    AverageIntervalGrouping,
    FeedingLogEntry,
    IntervalGroupedAverage,
    IntervalTrend,
    OutlierPolicy,
    Scenario,
    TimeOfDayBucket,
    TimeOfDaySlot,
    TimeWindow,
)
from .averaging import StatsServiceBase, mean

Pair = Tuple[FeedingLogEntry, FeedingLogEntry]


def _gap(pair: Pair) -> Optional[float]:
    dt = (pair[1].start_time - pair[0].start_time).total_seconds()
    return dt if dt > 0 else None


class IntervalStatsService(StatsServiceBase):
    """Average intervals between feed starts."""

    def start_to_start_intervals(self, ordered: Sequence[FeedingLogEntry]) -> List[float]:
        """
        Gaps between consecutive starts of an ascending list.
        Non-positive gaps are skipped.
        """
        gaps = [_gap((ordered[i - 1], ordered[i])) for i in range(1, len(ordered))]
        return [g for g in gaps if g is not None]

    def _policy(self, exclude_outliers: bool) -> OutlierPolicy:
        return OutlierPolicy.EXCLUDE_IQR if exclude_outliers else OutlierPolicy.INCLUDE_ALL

    def _pairs_between(self, feeds: Sequence[FeedingLogEntry], start: datetime, end: datetime,
                       scenario: Scenario) -> List[Pair]:
        scoped = sorted(self.scoped(feeds, start, end, scenario), key=lambda f: f.start_time)
        return [(scoped[i - 1], scoped[i]) for i in range(1, len(scoped))]

    def scoped_pairs(self, feeds: Sequence[FeedingLogEntry], window: TimeWindow, scenario: Scenario,
                     now: Optional[datetime] = None) -> List[Pair]:
        """Consecutive pairs of completed, scenario-filtered feeds starting in [start, end_exclusive]."""
        start, end = self.windowing.resolve_start_end(now, window)
        start, end = min(start, end), max(start, end)
        return self._pairs_between(feeds, start, end, scenario)

    def _average_for_pairs(self, pairs: Sequence[Pair], scenario: Scenario, exclude_outliers: bool) -> float:
        if scenario is Scenario.NIGHT:
            pairs = [
                (prev, curr) for prev, curr in pairs
                if self.calendar.is_same_day(prev.start_time, curr.start_time)
                and self.calendar.time_of_day_slot(prev.start_time) is TimeOfDaySlot.NIGHT
                and self.calendar.time_of_day_slot(curr.start_time) is TimeOfDaySlot.NIGHT
            ]
        values = [g for g in map(_gap, pairs) if g is not None]
        return mean(self.clean(values, self._policy(exclude_outliers)))

    def _reduce_buckets(self, buckets: Dict, order: Sequence, label_of,
                        exclude_outliers: bool) -> List[IntervalGroupedAverage]:
        groups = []
        for key in order:
            if key not in buckets:
                continue
            kept = self.clean(buckets[key], self._policy(exclude_outliers))
            if kept:
                groups.append(IntervalGroupedAverage(label=label_of(key), average=mean(kept), count=len(kept)))
        return groups

    def _group_by_breast(self, pairs: Sequence[Pair], exclude_outliers: bool) -> List[IntervalGroupedAverage]:
        buckets: Dict[str, List[float]] = {}
        for pair in pairs:
            dt = _gap(pair)
            if dt is not None:
                buckets.setdefault(pair[1].breast.label, []).append(dt)
        return self._reduce_buckets(buckets, sorted(buckets), lambda label: label, exclude_outliers)

    def _group_by_time_of_day(self, pairs: Sequence[Pair], exclude_outliers: bool) -> List[IntervalGroupedAverage]:
        # Strict pairing: same civil day and same slot
        buckets: Dict[TimeOfDaySlot, List[float]] = {}
        for prev, curr in pairs:
            if not self.calendar.is_same_day(prev.start_time, curr.start_time):
                continue
            slot = self.calendar.time_of_day_slot(curr.start_time)
            if self.calendar.time_of_day_slot(prev.start_time) is not slot:
                continue
            dt = _gap((prev, curr))
            if dt is not None:
                buckets.setdefault(slot, []).append(dt)
        return self._reduce_buckets(buckets, TIME_OF_DAY_DISPLAY_ORDER, lambda s: s.label, exclude_outliers)

    def _group_by_current_slot(self, pairs: Sequence[Pair], scenario: Scenario,
                               exclude_outliers: bool) -> List[IntervalGroupedAverage]:
        # Looser pairing: same civil day, attributed to the current feed's slot
        buckets: Dict[TimeOfDaySlot, List[float]] = {}
        for prev, curr in pairs:
            if not self.calendar.is_same_day(prev.start_time, curr.start_time):
                continue
            dt = _gap((prev, curr))
            if dt is not None:
                buckets.setdefault(self.scenarios.scenario_slot(curr, scenario), []).append(dt)
        return self._reduce_buckets(buckets, TIME_OF_DAY_DISPLAY_ORDER, lambda s: s.label, exclude_outliers)

    def average_intervals(self,
                          feeds: Sequence[FeedingLogEntry],
                          window: TimeWindow,
                          scenario: Scenario = Scenario.ALL,
                          grouping: AverageIntervalGrouping = AverageIntervalGrouping.NONE,
                          exclude_outliers: bool = True,
                          now: Optional[datetime] = None) -> Tuple[float, List[IntervalGroupedAverage]]:
        """
        Average start-to-start intervals over a window.

        Args:
            feeds: All entries; only completed feeds count
            window: Days or rolling hours
            scenario: ALL, DAY or NIGHT; NIGHT keeps only same-day night pairs for the overall figure
            grouping: NONE, BREAST (current feed's side) or TIME_OF_DAY (same day, same slot)
            exclude_outliers: Drop IQR outliers per group before averaging
            now: Reference time

        Returns:
            (overall average, grouped averages)
        """
        pairs = self.scoped_pairs(feeds, window, scenario, now)
        if not pairs:
            return 0.0, []

        overall = self._average_for_pairs(pairs, scenario, exclude_outliers)

        if grouping is AverageIntervalGrouping.BREAST:
            return overall, self._group_by_breast(pairs, exclude_outliers)
        if grouping is AverageIntervalGrouping.TIME_OF_DAY:
            return overall, self._group_by_time_of_day(pairs, exclude_outliers)
        return overall, []

    def average_intervals_time_of_day_buckets(self,
                                              feeds: Sequence[FeedingLogEntry],
                                              window: TimeWindow,
                                              scenario: Scenario = Scenario.ALL,
                                              exclude_outliers: bool = True,
                                              now: Optional[datetime] = None) -> Tuple[float, List[TimeOfDayBucket]]:
        pairs = self.scoped_pairs(feeds, window, scenario, now)
        if not pairs:
            return 0.0, []

        overall = self._average_for_pairs(pairs, scenario, exclude_outliers)
        by_label = {slot.label: slot for slot in TimeOfDaySlot}
        buckets = [
            TimeOfDayBucket(slot=by_label[g.label], label=g.label, total=g.average, session_count=g.count)
            for g in self._group_by_current_slot(pairs, scenario, exclude_outliers)
        ]
        return overall, buckets

    def average_interval_trend(self,
                               feeds: Sequence[FeedingLogEntry],
                               window: TimeWindow,
                               scenario: Scenario = Scenario.ALL,
                               exclude_outliers: bool = True,
                               now: Optional[datetime] = None) -> IntervalTrend:
        """Current vs previous window, re-pairing feeds inside each range."""
        ranges = self.windowing.trend_ranges(now, window)
        if ranges is None:
            return IntervalTrend(0.0, 0.0)
        (cur_start, cur_end), (prev_start, prev_end) = ranges

        def average_in(start: datetime, end: datetime) -> float:
            pairs = self._pairs_between(feeds, start, end, scenario)
            if not pairs:
                return 0.0
            return self._average_for_pairs(pairs, scenario, exclude_outliers)

        return IntervalTrend(
            current_avg=average_in(cur_start, cur_end),
            previous_avg=average_in(prev_start, prev_end),
        )
