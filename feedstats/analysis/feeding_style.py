"""
Feeding Style Classification

Labels each session as snack, cluster or normal:
- Cluster: runs of >= 3 consecutive feeds whose start-to-start gap is short
- Snack: short duration, or a short gap before it
- Normal: everything else

Cutoffs are trimmed 25th percentiles of the user's own history once there
are enough samples, otherwise fixed floors.
"""

import math
from typing import Any, Dict, List, Optional, Sequence, Set

from ..constants import FEEDING_STYLE_DEFAULTS
from ..feature_manager import feature_enabled
from ..models import FeedingEntryType, FeedingLogEntry, FeedingLogEntryStatsData


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


class FeedingStyleService:
    """Stateless classifier over a snapshot of the session history."""

    def __init__(self, feeds: Sequence[FeedingLogEntry], config: Optional[Dict[str, Any]] = None):
        """
        Args:
            feeds: Sessions in any order (kept newest first internally)
            config: Tunables overriding FEEDING_STYLE_DEFAULTS, plus an optional feature_manager
        """
        self.config = config or {}
        self.feeds = sorted(feeds, key=lambda f: f.start_time, reverse=True)

        self.min_sample = self.config.get('min_sample', FEEDING_STYLE_DEFAULTS['min_sample'])
        self.trim_lower = self.config.get('trim_lower', FEEDING_STYLE_DEFAULTS['trim_lower'])
        self.trim_upper = self.config.get('trim_upper', FEEDING_STYLE_DEFAULTS['trim_upper'])
        self.p_cutoff = self.config.get('percentile_cutoff', FEEDING_STYLE_DEFAULTS['percentile_cutoff'])
        self.cluster_gap_floor = self.config.get('cluster_gap_floor', FEEDING_STYLE_DEFAULTS['cluster_gap_floor'])
        self.cluster_min_count = self.config.get('cluster_min_count', FEEDING_STYLE_DEFAULTS['cluster_min_count'])
        self.cluster_min_sample = self.config.get('cluster_min_sample', FEEDING_STYLE_DEFAULTS['cluster_min_sample'])
        self.snack_duration_floor = self.config.get('snack_duration_floor',
                                                    FEEDING_STYLE_DEFAULTS['snack_duration_floor'])
        self.boundary_tolerance = self.config.get('boundary_tolerance', FEEDING_STYLE_DEFAULTS['boundary_tolerance'])

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    def feeds_with_types(self) -> List[FeedingLogEntryStatsData]:
        if not self.feeds:
            return []
        if not feature_enabled(self.config, 'style_classification'):
            return [FeedingLogEntryStatsData(entry=e, type=FeedingEntryType.NORMAL) for e in self.feeds]

        prev_gaps = self.compute_prev_gaps()
        durations = [f.effective_duration for f in self.feeds]
        gap_values = [g for g in prev_gaps if g is not None]

        duration_cut = self.snack_duration_cutoff(durations)
        gap_cut = self.snack_gap_cutoff(gap_values)
        cluster_cut = min(self.cluster_gap_floor, gap_cut)
        gaps_sufficient = len(gap_values) >= self.min_sample

        in_cluster = self.cluster_membership(prev_gaps, cluster_cut)

        return [
            FeedingLogEntryStatsData(
                entry=entry,
                type=self.classify(i, prev_gaps, i in in_cluster, duration_cut, gap_cut, gaps_sufficient),
            )
            for i, entry in enumerate(self.feeds)
        ]

    def type_for(self, entry: FeedingLogEntry) -> FeedingEntryType:
        for item in self.feeds_with_types():
            if item.id == entry.id:
                return item.type
        return FeedingEntryType.NORMAL

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def compute_prev_gaps(self) -> List[Optional[float]]:
        """Seconds since the next-older feed's start; None for the oldest."""
        gaps: List[Optional[float]] = [None] * len(self.feeds)
        for i in range(len(self.feeds) - 1):
            gaps[i] = (self.feeds[i].start_time - self.feeds[i + 1].start_time).total_seconds()
        return gaps

    def snack_duration_cutoff(self, durations: Sequence[float]) -> float:
        if durations and len(durations) >= self.min_sample:
            return self.percentile_trimmed(durations, self.p_cutoff)
        return self.snack_duration_floor

    def snack_gap_cutoff(self, gaps: Sequence[float]) -> float:
        if gaps and len(gaps) >= self.min_sample:
            return self.percentile_trimmed(gaps, self.p_cutoff)
        return self.cluster_gap_floor

    def percentile_trimmed(self, values: Sequence[float], p: float) -> float:
        """
        Percentile of the sample after trimming the outer tails.

        With fewer than 3 values returns the minimum (or the duration floor
        when empty).
        """
        if len(values) < 3:
            return min(values) if values else self.snack_duration_floor

        ordered = sorted(values)
        n = len(ordered)
        lo = int(n * self.trim_lower)
        hi = int(n * self.trim_upper)
        clipped = ordered[max(0, lo):max(lo + 1, min(n, hi))]
        if not clipped:
            return ordered[n // 4]
        idx = max(0, min(len(clipped) - 1, _round_half_up(p * (len(clipped) - 1))))
        return clipped[idx]

    def cluster_membership(self, prev_gaps: Sequence[Optional[float]], max_gap: float) -> Set[int]:
        """Indices of feeds inside runs of >= cluster_min_count closely spaced feeds."""
        result: Set[int] = set()
        if len(self.feeds) < self.cluster_min_sample or not feature_enabled(self.config, 'cluster_detection'):
            return result

        run_start = None
        run_end = None

        def commit():
            if run_start is not None and run_end - run_start + 1 >= self.cluster_min_count:
                result.update(range(run_start, run_end + 1))

        for i in range(len(self.feeds) - 1):
            gap = prev_gaps[i] if prev_gaps[i] is not None else math.inf
            if gap <= max_gap:
                if run_start is None:
                    run_start = i
                run_end = i + 1
            else:
                commit()
                run_start = run_end = None
        commit()
        return result

    def classify(self, i: int, prev_gaps: Sequence[Optional[float]], in_cluster: bool,
                 duration_cut: float, gap_cut: float, gaps_sufficient: bool) -> FeedingEntryType:
        if in_cluster:
            return FeedingEntryType.CLUSTER

        duration = self.feeds[i].effective_duration
        if duration < duration_cut:
            return FeedingEntryType.SNACK

        # Boundary protection: at the cutoff (within tolerance) the gap rule may not flip it
        if abs(duration - duration_cut) <= self.boundary_tolerance:
            return FeedingEntryType.NORMAL

        gap = prev_gaps[i]
        if gap is not None and gap < gap_cut:
            if gaps_sufficient:
                return FeedingEntryType.SNACK
            # Sparse data: only when the next-older gap is itself wide, so tight runs do not chain
            next_older = prev_gaps[i + 1] if i + 1 < len(prev_gaps) else None
            if (next_older if next_older is not None else math.inf) >= gap_cut:
                return FeedingEntryType.SNACK

        return FeedingEntryType.NORMAL
