"""
Feeding Statistics Facade

Single entry point over the statistics services. Resolves the UI-style
(days_back, rolling_hours_back) pair into a TimeWindow and delegates, so
every screen gets the same semantics.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..clock import StatsEnvironment
from ..constants import STATISTICS_DEFAULTS
from ..models import (
    AverageDurationGrouping,
    AverageDurationTip,
    AverageIntervalGrouping,
    DailyDurationPoint,
    DailyTotalTrend,
    DurationMilestone,
    DurationTrend,
    FeedingLogEntry,
    FeedingLogEntryStatsData,
    FeedingStats,
    FeedsPerDayGrouping,
    FeedsPerDayPoint,
    FeedsPerDaySummary,
    FeedsPerDayTrend,
    GroupedAverage,
    IntervalTrend,
    MonthlyDurationPoint,
    NextFeedEstimate,
    OutlierPolicy,
    PacingComparison,
    Scenario,
    TimeOfDayBucket,
    TimeWindow,
    TodayFeedingSummary,
    WeeklyDurationPoint,
    WindowTrend,
)
from ..utils import stats_logger
from .duration_stats import DurationStatsService
from .feeding_style import FeedingStyleService
from .interval_stats import IntervalStatsService
from .per_day_counts import PerDayCountsService
from .projection import ProjectionService
from .summary_stats import SummaryStatsService
from .today_stats import TodayStatsService
from .totals import TotalsService

logger = logging.getLogger(__name__)


def service_config(config: Optional[Dict[str, Any]], *sections: str) -> Dict[str, Any]:
    """
    Flatten the named config sections into one service config dict,
    carrying the feature manager along.
    """
    config = config or {}
    flat: Dict[str, Any] = {}
    for section in sections:
        flat.update(config.get(section, {}))
    if config.get('feature_manager') is not None:
        flat['feature_manager'] = config['feature_manager']
    return flat


class FeedingStatsService:
    """High-level statistics surface used by the CLI and report export."""

    def __init__(self, env: Optional[StatsEnvironment] = None, config: Optional[Dict[str, Any]] = None):
        self.env = env or StatsEnvironment()
        self.config = config or {}
        self.defaults = {**STATISTICS_DEFAULTS, **self.config.get('statistics', {})}

        shared = service_config(self.config, 'outliers', 'tips')
        self.durations = DurationStatsService(self.env, shared)
        self.intervals = IntervalStatsService(self.env, shared)
        self.per_day = PerDayCountsService(self.env, shared)
        self.totals = TotalsService(self.env, shared)
        self.today = TodayStatsService(self.env, shared)
        self.summary = SummaryStatsService(self.env, shared)
        self.projection = ProjectionService(self.env, shared)
        self.style_config = service_config(self.config, 'feeding_style')

    @staticmethod
    def resolved_window(days_back: int, rolling_hours_back: Optional[int] = None) -> TimeWindow:
        if rolling_hours_back is not None:
            return TimeWindow.hours(rolling_hours_back)
        return TimeWindow.days(days_back)

    # ------------------------------------------------------------------
    # Summary and projection
    # ------------------------------------------------------------------

    def compute_stats(self, feeds: Sequence[FeedingLogEntry], age_days: Optional[int] = None) -> FeedingStats:
        return self.summary.compute_stats(feeds, age_days)

    def estimate_next_feed(self, feeds: Sequence[FeedingLogEntry], age_days: Optional[int] = None,
                           now: Optional[datetime] = None) -> Optional[NextFeedEstimate]:
        return self.projection.estimate_next_feed(feeds, age_days, now)

    # ------------------------------------------------------------------
    # Durations
    # ------------------------------------------------------------------

    def filter_by_scenario(self, feeds: Sequence[FeedingLogEntry], scenario: Scenario) -> List[FeedingLogEntry]:
        return self.durations.scenarios.filter_by_scenario(list(feeds), scenario)

    def average_durations(self, feeds: Sequence[FeedingLogEntry], days_back: int,
                          grouping: AverageDurationGrouping = AverageDurationGrouping.NONE,
                          outlier_policy: OutlierPolicy = OutlierPolicy.EXCLUDE_IQR,
                          scenario: Scenario = Scenario.ALL,
                          rolling_hours_back: Optional[int] = None,
                          recency_half_life_hours: Optional[float] = None,
                          now: Optional[datetime] = None) -> Tuple[float, List[GroupedAverage]]:
        window = self.resolved_window(days_back, rolling_hours_back)
        return self.durations.average_durations(feeds, window, grouping, outlier_policy, scenario,
                                                recency_half_life_hours, now)

    def average_duration_time_of_day_buckets(self, feeds: Sequence[FeedingLogEntry], days_back: int,
                                             outlier_policy: OutlierPolicy = OutlierPolicy.EXCLUDE_IQR,
                                             scenario: Scenario = Scenario.ALL,
                                             rolling_hours_back: Optional[int] = None,
                                             now: Optional[datetime] = None) -> Tuple[float, List[TimeOfDayBucket]]:
        window = self.resolved_window(days_back, rolling_hours_back)
        return self.durations.average_duration_time_of_day_buckets(feeds, window, outlier_policy, scenario, now)

    def duration_trend(self, feeds: Sequence[FeedingLogEntry], days_back: int,
                       rolling_hours_back: Optional[int] = None,
                       now: Optional[datetime] = None) -> DurationTrend:
        return self.durations.duration_trend(feeds, self.resolved_window(days_back, rolling_hours_back), now)

    def duration_stability(self, feeds: Sequence[FeedingLogEntry], days_back: int,
                           rolling_hours_back: Optional[int] = None,
                           now: Optional[datetime] = None) -> float:
        return self.durations.duration_stability(feeds, self.resolved_window(days_back, rolling_hours_back), now)

    def longest_feed(self, feeds: Sequence[FeedingLogEntry], days_back: int,
                     rolling_hours_back: Optional[int] = None,
                     now: Optional[datetime] = None) -> Optional[DurationMilestone]:
        return self.durations.longest_feed(feeds, self.resolved_window(days_back, rolling_hours_back), now)

    def average_duration_tips(self, trend: DurationTrend, stability_cv: float, scenario: Scenario,
                              sample_count: int) -> List[AverageDurationTip]:
        return self.durations.average_duration_tips(trend, stability_cv, scenario, sample_count)

    # ------------------------------------------------------------------
    # Intervals
    # ------------------------------------------------------------------

    def start_to_start_intervals(self, ordered: Sequence[FeedingLogEntry]) -> List[float]:
        return self.intervals.start_to_start_intervals(ordered)

    def average_intervals(self, feeds: Sequence[FeedingLogEntry], days_back: int,
                          scenario: Scenario = Scenario.ALL,
                          grouping: AverageIntervalGrouping = AverageIntervalGrouping.NONE,
                          exclude_outliers: bool = True,
                          rolling_hours_back: Optional[int] = None,
                          now: Optional[datetime] = None) -> Tuple[float, List[GroupedAverage]]:
        window = self.resolved_window(days_back, rolling_hours_back)
        return self.intervals.average_intervals(feeds, window, scenario, grouping, exclude_outliers, now)

    def average_intervals_time_of_day_buckets(self, feeds: Sequence[FeedingLogEntry], days_back: int,
                                              scenario: Scenario = Scenario.ALL,
                                              exclude_outliers: bool = True,
                                              rolling_hours_back: Optional[int] = None,
                                              now: Optional[datetime] = None) -> Tuple[float, List[TimeOfDayBucket]]:
        window = self.resolved_window(days_back, rolling_hours_back)
        return self.intervals.average_intervals_time_of_day_buckets(feeds, window, scenario, exclude_outliers, now)

    def average_interval_trend(self, feeds: Sequence[FeedingLogEntry], days_back: int,
                               scenario: Scenario = Scenario.ALL,
                               exclude_outliers: bool = True,
                               rolling_hours_back: Optional[int] = None,
                               now: Optional[datetime] = None) -> IntervalTrend:
        window = self.resolved_window(days_back, rolling_hours_back)
        return self.intervals.average_interval_trend(feeds, window, scenario, exclude_outliers, now)

    def day_start_end_exclusive(self, now: Optional[datetime] = None, days_back: int = 1) -> Tuple[datetime, datetime]:
        return self.intervals.windowing.day_start_end_exclusive(now, days_back)

    # ------------------------------------------------------------------
    # Per-day counts and totals
    # ------------------------------------------------------------------

    def feeds_per_day_series(self, feeds: Sequence[FeedingLogEntry], days_back: int,
                             scenario: Scenario = Scenario.ALL,
                             grouping: FeedsPerDayGrouping = FeedsPerDayGrouping.ALL,
                             rolling_hours_back: Optional[int] = None,
                             now: Optional[datetime] = None):
        window = self.resolved_window(days_back, rolling_hours_back)
        return self.per_day.feeds_per_day_series(feeds, window, scenario, grouping, now)

    def feeds_per_day_summary(self, points: Sequence[FeedsPerDayPoint]) -> FeedsPerDaySummary:
        return self.per_day.feeds_per_day_summary(points)

    def feeds_per_day_trend(self, feeds: Sequence[FeedingLogEntry], days_back: int,
                            scenario: Scenario = Scenario.ALL,
                            rolling_hours_back: Optional[int] = None,
                            now: Optional[datetime] = None) -> FeedsPerDayTrend:
        window = self.resolved_window(days_back, rolling_hours_back)
        return self.per_day.feeds_per_day_trend(feeds, window, scenario, now)

    def daily_total_duration_series(self, feeds: Sequence[FeedingLogEntry], days_back: int,
                                    scenario: Scenario = Scenario.ALL,
                                    rolling_hours_back: Optional[int] = None,
                                    now: Optional[datetime] = None) -> List[DailyDurationPoint]:
        window = self.resolved_window(days_back, rolling_hours_back)
        return self.totals.daily_total_duration_series(feeds, window, scenario, now)

    def daily_total_trend(self, feeds: Sequence[FeedingLogEntry], days_back: int,
                          scenario: Scenario = Scenario.ALL,
                          rolling_hours_back: Optional[int] = None,
                          now: Optional[datetime] = None) -> DailyTotalTrend:
        window = self.resolved_window(days_back, rolling_hours_back)
        return self.totals.daily_total_trend(feeds, window, scenario, now)

    def weekly_total_duration_series(self, feeds: Sequence[FeedingLogEntry], weeks_back: int,
                                     scenario: Scenario = Scenario.ALL,
                                     now: Optional[datetime] = None) -> List[WeeklyDurationPoint]:
        return self.totals.weekly_total_duration_series(feeds, weeks_back, scenario, now)

    def monthly_total_duration_series(self, feeds: Sequence[FeedingLogEntry], months_back: int,
                                      scenario: Scenario = Scenario.ALL,
                                      now: Optional[datetime] = None) -> List[MonthlyDurationPoint]:
        return self.totals.monthly_total_duration_series(feeds, months_back, scenario, now)

    def window_trend(self, current: Sequence[float], previous: Sequence[float]) -> WindowTrend:
        return self.totals.window_trend(current, previous)

    # ------------------------------------------------------------------
    # Today
    # ------------------------------------------------------------------

    def time_spent_feeding_today(self, feeds: Sequence[FeedingLogEntry],
                                 active_feed: Optional[FeedingLogEntry] = None,
                                 now: Optional[datetime] = None) -> TodayFeedingSummary:
        return self.today.time_spent_feeding_today(feeds, active_feed, now)

    def today_time_of_day_breakdown(self, feeds: Sequence[FeedingLogEntry],
                                    active_feed: Optional[FeedingLogEntry] = None,
                                    now: Optional[datetime] = None) -> List[TimeOfDayBucket]:
        return self.today.today_time_of_day_breakdown(feeds, active_feed, now)

    def pacing_comparison_last_days(self, feeds: Sequence[FeedingLogEntry],
                                    active_feed: Optional[FeedingLogEntry] = None,
                                    days: int = 7,
                                    now: Optional[datetime] = None) -> PacingComparison:
        return self.today.pacing_comparison_last_days(feeds, active_feed, days, now)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def feeding_styles(self, feeds: Sequence[FeedingLogEntry]) -> List[FeedingLogEntryStatsData]:
        return FeedingStyleService(feeds, self.style_config).feeds_with_types()

    # ------------------------------------------------------------------
    # Report
    # ------------------------------------------------------------------

    def build_report(self, feeds: Sequence[FeedingLogEntry],
                     days_back: Optional[int] = None,
                     rolling_hours_back: Optional[int] = None,
                     scenario: Scenario = Scenario.ALL,
                     age_days: Optional[int] = None,
                     active_feed: Optional[FeedingLogEntry] = None,
                     weeks_back: int = 4,
                     months_back: int = 3,
                     now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Run every statistic once with the configured defaults.

        Returns:
            Dict of result objects keyed by figure name
        """
        anchor = self.env.resolve_now(now)
        days_back = days_back if days_back is not None else self.defaults['days_back']
        if rolling_hours_back is None:
            rolling_hours_back = self.defaults.get('rolling_hours_back')
        exclude = self.defaults['exclude_outliers']
        policy = OutlierPolicy.EXCLUDE_IQR if exclude else OutlierPolicy.INCLUDE_ALL
        half_life = self.defaults.get('recency_half_life_hours')

        overall_duration, by_breast = self.average_durations(
            feeds, days_back, AverageDurationGrouping.BREAST, policy, scenario,
            rolling_hours_back, half_life, anchor)
        _, by_slot = self.average_durations(
            feeds, days_back, AverageDurationGrouping.TIME_OF_DAY, policy, scenario,
            rolling_hours_back, half_life, anchor)
        trend = self.duration_trend(feeds, days_back, rolling_hours_back, anchor)
        stability = self.duration_stability(feeds, days_back, rolling_hours_back, anchor)
        window = self.resolved_window(days_back, rolling_hours_back)
        sample_count = len(self.durations.windowed_feeds(feeds, window, anchor))

        overall_interval, interval_groups = self.average_intervals(
            feeds, days_back, scenario, AverageIntervalGrouping.BREAST, exclude, rolling_hours_back, anchor)

        per_day, _, _ = self.feeds_per_day_series(feeds, days_back, scenario, now=anchor,
                                                  rolling_hours_back=rolling_hours_back)

        report = {
            'now': anchor,
            'window': window,
            'scenario': scenario,
            'summary': self.compute_stats(feeds, age_days),
            'next_feed': self.estimate_next_feed(feeds, age_days, anchor),
            'average_duration': overall_duration,
            'duration_by_breast': by_breast,
            'duration_by_time_of_day': by_slot,
            'duration_trend': trend,
            'duration_stability': stability,
            'longest_feed': self.longest_feed(feeds, days_back, rolling_hours_back, anchor),
            'tips': self.average_duration_tips(trend, stability, scenario, sample_count),
            'average_interval': overall_interval,
            'interval_by_breast': interval_groups,
            'interval_trend': self.average_interval_trend(feeds, days_back, scenario, exclude,
                                                          rolling_hours_back, anchor),
            'feeds_per_day': per_day,
            'feeds_per_day_summary': self.feeds_per_day_summary(per_day),
            'feeds_per_day_trend': self.feeds_per_day_trend(feeds, days_back, scenario,
                                                            rolling_hours_back, anchor),
            'daily_totals': self.daily_total_duration_series(feeds, days_back, scenario,
                                                             rolling_hours_back, anchor),
            'daily_total_trend': self.daily_total_trend(feeds, days_back, scenario,
                                                        rolling_hours_back, anchor),
            'weekly_totals': self.weekly_total_duration_series(feeds, weeks_back, scenario, anchor),
            'monthly_totals': self.monthly_total_duration_series(feeds, months_back, scenario, anchor),
            'today': self.time_spent_feeding_today(feeds, active_feed, anchor),
            'today_breakdown': self.today_time_of_day_breakdown(feeds, active_feed, anchor),
            'pacing': self.pacing_comparison_last_days(feeds, active_feed, self.defaults['pacing_days'], anchor),
            'feeding_styles': self.feeding_styles(feeds),
        }

        logger.debug(f"Built report over {len(feeds)} sessions ({window.count} {window.kind})")
        stats_logger.metric("sessions_analyzed", len(feeds), scenario=scenario.value)
        return report
