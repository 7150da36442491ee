"""
Duration Statistics Module

Average feeding durations (overall, per breast, per time-of-day slot),
duration trend, stability, longest feed and rule-based tips.
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..constants import TIP_TEXTS, TIP_THRESHOLDS
from ..models import (
    TIME_OF_DAY_DISPLAY_ORDER,
    AverageDurationGrouping,
    AverageDurationTip,
    DurationMilestone,
    DurationTrend,
    FeedingLogEntry,
    GroupedAverage,
    OutlierPolicy,
    Scenario,
    TimeOfDayBucket,
    TimeOfDaySlot,
    TimeWindow,
)
from .averaging import StatsServiceBase, mean


class DurationStatsService(StatsServiceBase):
    """Duration averages and related figures over a resolved window."""

    def windowed_feeds(self, feeds: Sequence[FeedingLogEntry], window: TimeWindow,
                       now: Optional[datetime] = None) -> List[FeedingLogEntry]:
        """Completed feeds whose start lies in [window start, now]."""
        anchor = self.env.resolve_now(now)
        start, _ = self.windowing.resolve_start_end(anchor, window)
        return self.completed_between(feeds, start, anchor)

    def _samples(self, entries: Sequence[FeedingLogEntry], anchor: datetime) -> Tuple[List[float], List[float]]:
        # Unit-less sessions (legacy envelopes) do not contribute duration samples
        with_units = [e for e in entries if e.breast_units]
        values = [e.total_duration for e in with_units]
        ages = [(anchor - e.start_time).total_seconds() for e in with_units]
        return values, ages

    def average_durations(self,
                          feeds: Sequence[FeedingLogEntry],
                          window: TimeWindow,
                          grouping: AverageDurationGrouping = AverageDurationGrouping.NONE,
                          outlier_policy: OutlierPolicy = OutlierPolicy.EXCLUDE_IQR,
                          scenario: Scenario = Scenario.ALL,
                          recency_half_life_hours: Optional[float] = None,
                          now: Optional[datetime] = None) -> Tuple[float, List[GroupedAverage]]:
        """
        Average feeding durations over a window, with optional grouping.

        Args:
            feeds: All entries; only completed feeds with breast units count
            window: Days or rolling hours
            grouping: NONE, BREAST or TIME_OF_DAY
            outlier_policy: Applied independently to the overall sample and each group
            scenario: Affects time-of-day slotting (late evening counts as night under NIGHT)
            recency_half_life_hours: Optional half-life for recency weighting
            now: Reference time

        Returns:
            (overall average, grouped averages)
        """
        if not feeds:
            return 0.0, []

        anchor = self.env.resolve_now(now)
        windowed = self.windowed_feeds(feeds, window, anchor)
        values, ages = self._samples(windowed, anchor)
        overall, _ = self.policy_mean(values, ages, outlier_policy, recency_half_life_hours)

        if grouping is AverageDurationGrouping.BREAST:
            groups = self._breast_groups(windowed, anchor, outlier_policy, recency_half_life_hours)
        elif grouping is AverageDurationGrouping.TIME_OF_DAY:
            groups = self._time_of_day_groups(windowed, anchor, scenario, outlier_policy,
                                              recency_half_life_hours)
        else:
            groups = []

        return overall, groups

    def average_duration_time_of_day_buckets(self,
                                             feeds: Sequence[FeedingLogEntry],
                                             window: TimeWindow,
                                             outlier_policy: OutlierPolicy = OutlierPolicy.EXCLUDE_IQR,
                                             scenario: Scenario = Scenario.ALL,
                                             now: Optional[datetime] = None) -> Tuple[float, List[TimeOfDayBucket]]:
        """Same as TIME_OF_DAY grouping, shaped as buckets whose total is the group average."""
        overall, groups = self.average_durations(
            feeds, window, AverageDurationGrouping.TIME_OF_DAY, outlier_policy, scenario, now=now
        )
        by_label = {slot.label: slot for slot in TimeOfDaySlot}
        buckets = [
            TimeOfDayBucket(slot=by_label[g.label], label=g.label, total=g.average, session_count=g.count)
            for g in groups
        ]
        return overall, buckets

    def _breast_groups(self, entries: Sequence[FeedingLogEntry], anchor: datetime,
                       policy: OutlierPolicy, half_life: Optional[float]) -> List[GroupedAverage]:
        grouped: Dict[str, List[FeedingLogEntry]] = {}
        for entry in entries:
            grouped.setdefault(entry.breast.label, []).append(entry)

        groups = []
        for label in sorted(grouped):
            values, ages = self._samples(grouped[label], anchor)
            average, count = self.policy_mean(values, ages, policy, half_life)
            if count:
                groups.append(GroupedAverage(label=label, average=average, count=count))
        return groups

    def _time_of_day_groups(self, entries: Sequence[FeedingLogEntry], anchor: datetime, scenario: Scenario,
                            policy: OutlierPolicy, half_life: Optional[float]) -> List[GroupedAverage]:
        grouped: Dict[TimeOfDaySlot, List[FeedingLogEntry]] = {}
        for entry in entries:
            grouped.setdefault(self.scenarios.scenario_slot(entry, scenario), []).append(entry)

        groups = []
        for slot in TIME_OF_DAY_DISPLAY_ORDER:
            if slot not in grouped:
                continue
            values, ages = self._samples(grouped[slot], anchor)
            average, count = self.policy_mean(values, ages, policy, half_life)
            if count:
                groups.append(GroupedAverage(label=slot.label, average=average, count=count))
        return groups

    def duration_trend(self, feeds: Sequence[FeedingLogEntry], window: TimeWindow,
                       now: Optional[datetime] = None) -> DurationTrend:
        """
        Mean duration of the current window against the equally long window
        before it. A window count < 1 yields zeros.
        """
        ranges = self.windowing.trend_ranges(now, window)
        if ranges is None:
            return DurationTrend(0.0, 0.0)
        (cur_start, cur_end), (prev_start, prev_end) = ranges

        def average_in(start: datetime, end: datetime) -> float:
            return mean([f.effective_duration for f in self.completed_between(feeds, start, end)])

        return DurationTrend(
            current_avg=average_in(cur_start, cur_end),
            previous_avg=average_in(prev_start, prev_end),
        )

    def duration_stability(self, feeds: Sequence[FeedingLogEntry], window: TimeWindow,
                           now: Optional[datetime] = None) -> float:
        """Sample coefficient of variation (ddof=1); 0 with < 2 samples or a non-positive mean."""
        values = [f.effective_duration for f in self.windowed_feeds(feeds, window, now)]
        if len(values) < 2:
            return 0.0
        avg = float(np.mean(values))
        if avg <= 0:
            return 0.0
        return float(np.std(values, ddof=1)) / avg

    def longest_feed(self, feeds: Sequence[FeedingLogEntry], window: TimeWindow,
                     now: Optional[datetime] = None) -> Optional[DurationMilestone]:
        candidates = self.windowed_feeds(feeds, window, now)
        if not candidates:
            return None
        best = max(candidates, key=lambda f: f.effective_duration)
        return DurationMilestone(
            title="Longest feed",
            value=best.effective_duration,
            date=best.start_time,
            breast=best.breast,
        )

    def average_duration_tips(self, trend: DurationTrend, stability_cv: float,
                              scenario: Scenario, sample_count: int) -> List[AverageDurationTip]:
        """
        Rule-based tips, at most two.

        Too few samples short-circuits to the single 'few' tip.
        """
        thresholds = {key: self.config.get(key, default) for key, default in TIP_THRESHOLDS.items()}

        if sample_count < thresholds['min_samples']:
            return [AverageDurationTip('few', TIP_TEXTS['few'])]

        tips = []
        if trend.percent > thresholds['trend_percent']:
            tips.append(AverageDurationTip('up', TIP_TEXTS['up']))
        elif trend.percent < -thresholds['trend_percent']:
            tips.append(AverageDurationTip('down', TIP_TEXTS['down']))
        if stability_cv > thresholds['variable_cv']:
            tips.append(AverageDurationTip('variable', TIP_TEXTS['variable']))
        if scenario is Scenario.NIGHT:
            tips.append(AverageDurationTip('night', TIP_TEXTS['night']))
        return tips[:thresholds['max_tips']]
