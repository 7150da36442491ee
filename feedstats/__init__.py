"""
Breastfeeding Statistics Package
"""

# Statistics
from .analysis.statistics import FeedingStatsService
from .analysis.feeding_style import FeedingStyleService
from .analysis.csv_generator import ReportGenerator

# Active feed session
from .processing.state_machine import (
    ActiveBreastingFeedState,
    ActiveFeedSession,
    BreastFeedingState,
)

# Preferences
from .database.preferences_store import (
    Preferences,
    PreferencesStore
)

# Clock and calendar
from .clock import (
    FixedClock,
    StatsCalendar,
    StatsEnvironment,
    SystemClock
)

# Models
from .models import (
    ActiveFeedState,
    Breast,
    BreastUnit,
    FeedingCue,
    FeedingEntryType,
    FeedingLogEntry,
    OutlierPolicy,
    PeerSyncConfiguration,
    Scenario,
    TimeWindow
)

# Codec
from .codec import (
    decode_entries,
    decode_entry,
    encode_entry
)

# Configuration
from .config_loader import ConfigLoader, load_config
from .feature_manager import FeatureManager

# Utilities
from .utils import (
    StructuredLogger,
    PerformanceTimer,
    stats_logger,
    state_logger,
    preferences_logger
)

__version__ = "1.0.0"

__all__ = [
    'FeedingStatsService',
    'FeedingStyleService',
    'ReportGenerator',
    'ActiveBreastingFeedState',
    'ActiveFeedSession',
    'BreastFeedingState',
    'Preferences',
    'PreferencesStore',
    'FixedClock',
    'StatsCalendar',
    'StatsEnvironment',
    'SystemClock',
    'ActiveFeedState',
    'Breast',
    'BreastUnit',
    'FeedingCue',
    'FeedingEntryType',
    'FeedingLogEntry',
    'OutlierPolicy',
    'PeerSyncConfiguration',
    'Scenario',
    'TimeWindow',
    'decode_entries',
    'decode_entry',
    'encode_entry',
    'ConfigLoader',
    'load_config',
    'FeatureManager',
    'StructuredLogger',
    'PerformanceTimer',
    'stats_logger',
    'state_logger',
    'preferences_logger',
]
