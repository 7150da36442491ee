"""
Constants for the feeding statistics engine.
Default tunables for outlier handling, scenarios and feed classification.
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class AgeCap:
    """Upper bound for plausible inter-feed intervals at a given infant age."""

    max_age_days: Optional[int]
    cap_seconds: float

    def applies_to(self, age_days: int) -> bool:
        return self.max_age_days is None or age_days < self.max_age_days

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return {
            'max_age_days': self.max_age_days,
            'cap_seconds': self.cap_seconds
        }


SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

# IQR outlier exclusion and winsorization
OUTLIER_DEFAULTS = {
    'iqr_multiplier': 1.5,
    'min_samples_for_iqr': 4,
    'winsor_hard_lower': 120.0,  # seconds, intervals under 2 minutes are dropped
    'winsor_epsilon': 0.5,  # seconds
    'min_intervals_for_winsor': 4
}

# Age-aware caps, checked in order; the last one has no upper age
AGE_AWARE_CAPS = [
    AgeCap(max_age_days=28, cap_seconds=6 * SECONDS_PER_HOUR),
    AgeCap(max_age_days=90, cap_seconds=8 * SECONDS_PER_HOUR),
    AgeCap(max_age_days=182, cap_seconds=10 * SECONDS_PER_HOUR),
    AgeCap(max_age_days=None, cap_seconds=12 * SECONDS_PER_HOUR),
]
DEFAULT_AGE_CAP_SECONDS = 12 * SECONDS_PER_HOUR

# Same caps keyed on whole months since birth
AGE_AWARE_CAPS_BY_MONTH = [
    (1, 6 * SECONDS_PER_HOUR),
    (3, 8 * SECONDS_PER_HOUR),
    (6, 10 * SECONDS_PER_HOUR),
]

# Scenario and time-of-day boundaries (hours, local calendar)
SCENARIO_HOURS = {
    'day_first_hour': 6,
    'day_last_hour': 21,  # inclusive
    'night_remap_hour': 22  # evening hours >= this count as night under the night scenario
}

TIME_OF_DAY_BOUNDARIES = {
    'night_start': 0,
    'morning_start': 6,
    'afternoon_start': 12,
    'evening_start': 18
}

# Feed classification (snack / cluster / normal)
FEEDING_STYLE_DEFAULTS = {
    'min_sample': 20,
    'trim_lower': 0.05,
    'trim_upper': 0.95,
    'percentile_cutoff': 0.25,
    'cluster_gap_floor': 120 * 60.0,  # seconds
    'cluster_min_count': 3,
    'cluster_min_sample': 4,
    'snack_duration_floor': 10 * 60.0,  # seconds
    'boundary_tolerance': 1.0  # seconds
}

# Contextual tips
TIP_THRESHOLDS = {
    'min_samples': 3,
    'trend_percent': 8.0,
    'variable_cv': 0.35,
    'max_tips': 2
}

TIP_TEXTS = {
    'few': "Not enough recent feeds to show reliable patterns yet.",
    'up': "Feeds are getting longer. Babies sometimes take their time during growth phases.",
    'down': "Slightly shorter feeds lately. Many babies get more efficient as they grow.",
    'variable': "Durations are quite variable, which is common during routine changes.",
    'night': "Night feeds often trend shorter as settling improves."
}

# Statistics defaults used when no profile overrides them
STATISTICS_DEFAULTS = {
    'days_back': 7,
    'rolling_hours_back': None,
    'exclude_outliers': True,
    'recency_half_life_hours': None,
    'pacing_days': 7,
    'first_weekday': 0  # Monday
}

# Preference defaults
PREFERENCE_DEFAULTS = {
    'baby_name': "",
    'birth_weight': 3.2,  # kg
    'birth_height': 50.0,  # cm
    'allow_broadcasting': False,
    'device_name': ""
}
