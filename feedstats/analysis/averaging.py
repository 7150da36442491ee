"""
Shared plumbing for the statistics services: completed-feed scoping,
outlier policy and (optionally recency-weighted) means.
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..clock import StatsEnvironment
from ..feature_manager import feature_enabled
from ..models import FeedingLogEntry, OutlierPolicy, Scenario
from ..processing.outlier_detection import OutlierService
from ..processing.scenario_filter import ScenarioFilterService
from ..processing.windowing import WindowingService


def recency_weight(age_seconds: float, half_life_hours: float) -> float:
    """exp(-age / tau) with tau = half_life * 3600 / ln 2, so weight halves every half-life."""
    tau = half_life_hours * 3600.0 / math.log(2)
    return math.exp(-age_seconds / tau)


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0 for an empty sample."""
    if len(values) == 0:
        return 0.0
    return float(np.mean(values))


def weighted_mean(values: Sequence[float], ages: Sequence[float],
                  half_life_hours: Optional[float]) -> float:
    """
    Recency-weighted mean.

    Falls back to the plain mean when no half-life is given or it is <= 0.
    """
    if len(values) == 0:
        return 0.0
    if half_life_hours is None or half_life_hours <= 0:
        return mean(values)
    weights = [recency_weight(max(0.0, age), half_life_hours) for age in ages]
    if sum(weights) <= 0:
        return mean(values)
    return float(np.average(values, weights=weights))


class StatsServiceBase:
    """Collaborators and helpers shared by the statistics services."""

    def __init__(self, env: Optional[StatsEnvironment] = None, config: Optional[Dict[str, Any]] = None):
        self.env = env or StatsEnvironment()
        self.config = config or {}
        self.windowing = WindowingService(self.env)
        self.scenarios = ScenarioFilterService(self.env, self.config)
        self.outliers = OutlierService(self.env, self.config)

    @property
    def calendar(self):
        return self.env.calendar

    def completed_between(self, feeds: Sequence[FeedingLogEntry], start: datetime, end: datetime,
                          end_inclusive: bool = True) -> List[FeedingLogEntry]:
        """Completed feeds whose start lies in [start, end] (or [start, end))."""
        if end_inclusive:
            return [f for f in feeds if f.is_completed and start <= f.start_time <= end]
        return [f for f in feeds if f.is_completed and start <= f.start_time < end]

    def scoped(self, feeds: Sequence[FeedingLogEntry], start: datetime, end: datetime,
               scenario: Scenario, end_inclusive: bool = True) -> List[FeedingLogEntry]:
        return self.scenarios.filter_by_scenario(
            self.completed_between(feeds, start, end, end_inclusive), scenario
        )

    def clean(self, values: Sequence[float], policy: OutlierPolicy) -> List[float]:
        if policy is OutlierPolicy.EXCLUDE_IQR:
            return self.outliers.exclude_iqr(values)
        return list(values)

    def half_life(self, half_life_hours: Optional[float]) -> Optional[float]:
        if not feature_enabled(self.config, 'recency_weighting'):
            return None
        return half_life_hours

    def policy_mean(self, values: Sequence[float], ages: Sequence[float], policy: OutlierPolicy,
                    half_life_hours: Optional[float] = None) -> Tuple[float, int]:
        """
        Apply the outlier policy, then reduce.

        Ages are masked together with the values so weights stay aligned.

        Returns:
            (mean, kept_count)
        """
        if policy is OutlierPolicy.EXCLUDE_IQR:
            mask = self.outliers.iqr_mask(values)
        else:
            mask = [True] * len(values)
        kept = [v for v, keep in zip(values, mask) if keep]
        kept_ages = [a for a, keep in zip(ages, mask) if keep]
        return weighted_mean(kept, kept_ages, self.half_life(half_life_hours)), len(kept)
