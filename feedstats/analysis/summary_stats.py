"""
Overall summary: total and average duration, average start-to-start interval
with age-aware winsorization.
"""

from typing import Optional, Sequence

from ..constants import OUTLIER_DEFAULTS
from ..feature_manager import feature_enabled
from ..models import FeedingLogEntry, FeedingStats
from ..utils import stats_logger
from .averaging import StatsServiceBase, mean


class SummaryStatsService(StatsServiceBase):
    """Summary statistics across all completed feeds."""

    def compute_stats(self, feeds: Sequence[FeedingLogEntry], age_days: Optional[int] = None) -> FeedingStats:
        """
        Compute totals and averages over all completed feeds.

        Args:
            feeds: All entries; only completed feeds count
            age_days: Infant age for age-aware interval caps (None = widest cap)

        Returns:
            FeedingStats; outlier_count is the number of capped intervals
        """
        if not feeds:
            return FeedingStats.empty()

        completed = [f for f in feeds if f.is_completed]
        total_duration = sum(f.effective_duration for f in completed)
        average_duration = total_duration / len(completed) if completed else 0.0

        ordered = sorted(completed, key=lambda f: f.start_time)
        raw_intervals = [
            max(0.0, (ordered[i].start_time - ordered[i - 1].start_time).total_seconds())
            for i in range(1, len(ordered))
        ]

        if not raw_intervals:
            return FeedingStats(total_duration, average_duration, 0.0, 0, 0)

        min_intervals = self.config.get('min_intervals_for_winsor', OUTLIER_DEFAULTS['min_intervals_for_winsor'])
        if len(raw_intervals) < min_intervals or not feature_enabled(self.config, 'outlier_winsorization'):
            return FeedingStats(total_duration, average_duration, mean(raw_intervals), len(raw_intervals), 0)

        processed, capped = self.outliers.winsorize_intervals(raw_intervals, age_days)
        if processed:
            average_interval = mean(processed)
        else:
            # Everything dropped; fall back to the raw mean
            average_interval = mean(raw_intervals)
            stats_logger.warning("Winsorization dropped every interval",
                                 interval_count=len(raw_intervals), age_days=age_days)

        return FeedingStats(
            total_duration=total_duration,
            average_duration=average_duration,
            average_interval=average_interval,
            interval_count=len(raw_intervals),
            outlier_count=capped,
        )
