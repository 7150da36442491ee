"""
Outlier handling for feeding samples

Implements the two policies used by the statistics services:
- IQR exclusion: drop samples outside [Q1 - k*IQR, Q3 + k*IQR]
- Winsorization: cap inter-feed intervals at an age-aware upper bound and
  drop implausibly short ones

Quartiles use linear interpolation between closest ranks (position p*(n-1)),
which is numpy's default percentile method.
"""

import numpy as np
from datetime import datetime
from typing import List, Dict, Any, Optional, Sequence, Tuple

from ..clock import StatsEnvironment
from ..constants import AGE_AWARE_CAPS, AGE_AWARE_CAPS_BY_MONTH, DEFAULT_AGE_CAP_SECONDS, OUTLIER_DEFAULTS
from ..feature_manager import feature_enabled
from ..models import WinsorizedSample


class OutlierService:
    """
    Statistical outlier handling for duration and interval samples.
    Stateless apart from its configuration.
    """

    def __init__(self, env: Optional[StatsEnvironment] = None, config: Optional[Dict[str, Any]] = None):
        """
        Initialize outlier service with configuration.

        Args:
            env: Clock and calendar (used by the birth-date cap)
            config: Configuration dict with thresholds and an optional feature_manager
        """
        self.env = env or StatsEnvironment()
        self.config = config or {}

        # Default thresholds (can be overridden by config)
        self.iqr_multiplier = self.config.get('iqr_multiplier', OUTLIER_DEFAULTS['iqr_multiplier'])
        self.min_samples_for_iqr = self.config.get('min_samples_for_iqr', OUTLIER_DEFAULTS['min_samples_for_iqr'])
        self.hard_lower = self.config.get('winsor_hard_lower', OUTLIER_DEFAULTS['winsor_hard_lower'])
        self.epsilon = self.config.get('winsor_epsilon', OUTLIER_DEFAULTS['winsor_epsilon'])

    @staticmethod
    def percentile(values: Sequence[float], p: float) -> float:
        """
        Linear-interpolated percentile.

        Args:
            values: Non-empty samples (any order)
            p: Fraction in [0, 1]

        Returns:
            Interpolated value at position p*(n-1) of the sorted samples
        """
        return float(np.percentile(np.asarray(values, dtype=float), p * 100.0))

    def quartiles(self, values: Sequence[float]) -> Tuple[float, float]:
        q1, q3 = np.percentile(np.asarray(values, dtype=float), [25.0, 75.0])
        return float(q1), float(q3)

    def iqr_bounds(self, values: Sequence[float]) -> Tuple[float, float]:
        q1, q3 = self.quartiles(values)
        iqr = q3 - q1
        return q1 - self.iqr_multiplier * iqr, q3 + self.iqr_multiplier * iqr

    def iqr_mask(self, values: Sequence[float]) -> List[bool]:
        """
        Keep-mask for IQR exclusion, aligned with the input.

        All True when fewer than `min_samples_for_iqr` samples (spread cannot
        be estimated) or when IQR exclusion is switched off.
        """
        if len(values) < self.min_samples_for_iqr or not feature_enabled(self.config, 'outlier_iqr'):
            return [True] * len(values)

        low, high = self.iqr_bounds(values)
        return [low <= v <= high for v in values]

    def exclude_iqr(self, values: Sequence[float]) -> List[float]:
        """
        Drop IQR outliers, preserving the relative order of kept samples.

        Args:
            values: Samples in caller order

        Returns:
            Subset of values within [Q1 - k*IQR, Q3 + k*IQR]
        """
        mask = self.iqr_mask(values)
        return [v for v, keep in zip(values, mask) if keep]

    def winsorize_intervals(self, intervals: Sequence[float], age_days: Optional[int]) -> WinsorizedSample:
        """
        Winsorize inter-feed intervals with age-aware caps.

        Bounds are max(Q1 - 1.5*IQR, hard floor) and min(Q3 + 1.5*IQR, age cap).
        Values more than epsilon below the lower bound are dropped; values more
        than epsilon above the upper bound are replaced by the upper bound.

        Args:
            intervals: Interval samples in seconds
            age_days: Infant age in days, or None if unknown

        Returns:
            WinsorizedSample(values, capped) where capped counts only the values
            replaced by the upper bound (dropped values are not counted)
        """
        if len(intervals) == 0:
            return WinsorizedSample([], 0)

        q1, q3 = self.quartiles(intervals)
        iqr = q3 - q1
        lower_bound = max(q1 - self.iqr_multiplier * iqr, self.hard_lower)
        upper_bound = min(q3 + self.iqr_multiplier * iqr, self.age_aware_upper_bound(age_days))

        if lower_bound > upper_bound:
            return WinsorizedSample([], len(intervals))

        kept = []
        capped = 0
        for v in intervals:
            if v < lower_bound - self.epsilon:
                continue
            if v > upper_bound + self.epsilon:
                kept.append(upper_bound)
                capped += 1
            else:
                kept.append(v)

        return WinsorizedSample(kept, capped)

    def age_aware_upper_bound(self, age_days: Optional[int]) -> float:
        """Longest plausible interval (seconds) for an infant of the given age."""
        if age_days is None:
            return DEFAULT_AGE_CAP_SECONDS
        for cap in AGE_AWARE_CAPS:
            if cap.applies_to(age_days):
                return cap.cap_seconds
        return DEFAULT_AGE_CAP_SECONDS

    def age_aware_upper_bound_for_birth_date(self, birth_date: datetime,
                                             now: Optional[datetime] = None) -> float:
        """Same caps, keyed on whole calendar months since birth."""
        anchor = self.env.resolve_now(now)
        months = self.env.calendar.components_between('month', birth_date, anchor)
        for max_months, cap_seconds in AGE_AWARE_CAPS_BY_MONTH:
            if months < max_months:
                return cap_seconds
        return DEFAULT_AGE_CAP_SECONDS

    def get_config(self) -> Dict[str, Any]:
        """Current thresholds."""
        return {
            'iqr_multiplier': self.iqr_multiplier,
            'min_samples_for_iqr': self.min_samples_for_iqr,
            'winsor_hard_lower': self.hard_lower,
            'winsor_epsilon': self.epsilon
        }
