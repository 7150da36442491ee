"""
Next-feed projection from the summary interval.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..clock import StatsEnvironment
from ..models import FeedingLogEntry, NextFeedEstimate
from .summary_stats import SummaryStatsService


class ProjectionService:
    def __init__(self, env: Optional[StatsEnvironment] = None, config: Optional[Dict[str, Any]] = None):
        self.env = env or StatsEnvironment()
        self.summary = SummaryStatsService(self.env, config)

    def estimate_next_feed(self, feeds: Sequence[FeedingLogEntry], age_days: Optional[int] = None,
                           now: Optional[datetime] = None) -> Optional[NextFeedEstimate]:
        """
        Start of the latest completed feed plus the average interval.

        Returns None without a completed feed or a positive average interval.
        `now` is accepted for signature symmetry; the estimate does not depend on it.
        """
        completed = [f for f in feeds if f.is_completed]
        if not completed:
            return None
        last = max(completed, key=lambda f: f.start_time)

        stats = self.summary.compute_stats(feeds, age_days)
        if stats.average_interval <= 0:
            return None

        return NextFeedEstimate(
            next_feed_time=self.env.calendar.add_seconds(last.start_time, stats.average_interval),
            interval=stats.average_interval,
        )
