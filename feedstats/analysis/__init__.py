"""Feeding statistics services"""

from .duration_stats import DurationStatsService
from .interval_stats import IntervalStatsService
from .per_day_counts import PerDayCountsService
from .totals import TotalsService
from .today_stats import TodayStatsService
from .summary_stats import SummaryStatsService
from .projection import ProjectionService
from .feeding_style import FeedingStyleService
from .statistics import FeedingStatsService
from .csv_generator import ReportGenerator

__all__ = [
    'DurationStatsService',
    'IntervalStatsService',
    'PerDayCountsService',
    'TotalsService',
    'TodayStatsService',
    'SummaryStatsService',
    'ProjectionService',
    'FeedingStyleService',
    'FeedingStatsService',
    'ReportGenerator'
]
