"""
Domain models for the feeding log and the value types returned by the
statistics services.
"""

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, NamedTuple, Optional, Tuple

from feedstats.constants import TIME_OF_DAY_BOUNDARIES
from feedstats.exceptions import DecodeError


# ============================================================================
# Sides, cues and sessions
# ============================================================================

class Breast(Enum):
    LEFT = "left"
    RIGHT = "right"

    @property
    def opposite(self) -> "Breast":
        return Breast.RIGHT if self is Breast.LEFT else Breast.LEFT

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, raw) -> "Breast":
        """Case-insensitive parse of 'left'/'right'."""
        if isinstance(raw, Breast):
            return raw
        if not isinstance(raw, str):
            raise DecodeError(f"Invalid breast value: {raw!r}")
        try:
            return cls(raw.strip().lower())
        except ValueError:
            raise DecodeError(f"Invalid breast value: {raw!r}") from None


class FeedingCue(Enum):
    ROOTING = "Rooting"
    SUCKING_FISTS = "Sucking fists"
    CRYING = "Crying"
    HEAD_TURNING = "Head turning"
    HAND_TO_MOUTH = "Hand to mouth"


@dataclass(frozen=True)
class BreastUnit:
    """One contiguous feeding segment on one side."""

    breast: Breast
    start_time: datetime
    end_time: datetime
    duration: float

    @classmethod
    def between(cls, breast: Breast, start_time: datetime, end_time: datetime) -> "BreastUnit":
        return cls(
            breast=breast,
            start_time=start_time,
            end_time=end_time,
            duration=(end_time - start_time).total_seconds()
        )


@dataclass(frozen=True)
class FeedingLogEntry:
    """
    One breastfeeding session, possibly made of several breast units.

    Entries are immutable; transitions produce new copies via `with_changes`.
    `end_time=None` means the session is still open.
    """

    id: uuid.UUID
    start_time: datetime
    breast: Breast
    end_time: Optional[datetime] = None
    cues: FrozenSet[FeedingCue] = frozenset()
    breast_units: Tuple[BreastUnit, ...] = ()
    created_at: Optional[datetime] = None
    last_updated_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, 'cues', frozenset(self.cues))
        object.__setattr__(self, 'breast_units', tuple(self.breast_units))
        if self.created_at is None:
            object.__setattr__(self, 'created_at', self.start_time)
        if self.last_updated_at is None:
            object.__setattr__(self, 'last_updated_at', self.end_time or self.start_time)

    @property
    def is_completed(self) -> bool:
        return self.end_time is not None

    @property
    def effective_duration(self) -> float:
        """
        Seconds actually spent feeding.

        Sum of breast units when any exist, else the envelope of a completed
        session, else 0. Live elapsed time of an open session is the state
        machine's concern, not this property's.
        """
        if self.breast_units:
            return sum(unit.duration for unit in self.breast_units)
        if self.end_time is None:
            return 0.0
        return max(0.0, (self.end_time - self.start_time).total_seconds())

    @property
    def total_duration(self) -> float:
        return sum(unit.duration for unit in self.breast_units)

    def elapsed_time(self, now: datetime) -> float:
        return (now - self.start_time).total_seconds()

    def with_changes(self, **changes) -> "FeedingLogEntry":
        return replace(self, **changes)


# ============================================================================
# Windows, slots and options
# ============================================================================

@dataclass(frozen=True)
class TimeWindow:
    """Either N civil days including today, or a rolling N-hour window."""

    kind: str
    count: int

    DAYS = "days"
    HOURS = "hours"

    @classmethod
    def days(cls, n: int) -> "TimeWindow":
        return cls(cls.DAYS, int(n))

    @classmethod
    def hours(cls, n: int) -> "TimeWindow":
        return cls(cls.HOURS, int(n))

    @property
    def is_days(self) -> bool:
        return self.kind == self.DAYS


class TimeOfDaySlot(Enum):
    NIGHT = "night"
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def for_hour(cls, hour: int) -> "TimeOfDaySlot":
        if hour < TIME_OF_DAY_BOUNDARIES['morning_start']:
            return cls.NIGHT
        if hour < TIME_OF_DAY_BOUNDARIES['afternoon_start']:
            return cls.MORNING
        if hour < TIME_OF_DAY_BOUNDARIES['evening_start']:
            return cls.AFTERNOON
        return cls.EVENING


TIME_OF_DAY_DISPLAY_ORDER = [
    TimeOfDaySlot.MORNING,
    TimeOfDaySlot.AFTERNOON,
    TimeOfDaySlot.EVENING,
    TimeOfDaySlot.NIGHT,
]


class Scenario(Enum):
    ALL = "all"
    DAY = "day"
    NIGHT = "night"


class OutlierPolicy(Enum):
    INCLUDE_ALL = "include_all"
    EXCLUDE_IQR = "exclude_iqr"


class AverageDurationGrouping(Enum):
    NONE = "none"
    BREAST = "breast"
    TIME_OF_DAY = "time_of_day"


class AverageIntervalGrouping(Enum):
    NONE = "none"
    BREAST = "breast"
    TIME_OF_DAY = "time_of_day"


class FeedsPerDayGrouping(Enum):
    ALL = "all"
    BREAST = "breast"


class FeedingEntryType(Enum):
    SNACK = "snack"
    CLUSTER = "cluster"
    NORMAL = "normal"


class TrendGranularity(Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class HistoryWindow(Enum):
    LAST_3D = 3
    LAST_7D = 7
    LAST_14D = 14
    LAST_21D = 21

    @classmethod
    def from_days(cls, days: Optional[int]) -> "HistoryWindow":
        for window in cls:
            if window.value == days:
                return window
        return cls.LAST_7D


class FeedsPerDayPeriodOption(Enum):
    LAST_24H = "last24h"
    LAST_3D = "last3d"
    LAST_7D = "last7d"
    LAST_14D = "last14d"
    LAST_21D = "last21d"

    @property
    def window(self) -> Tuple[int, Optional[int]]:
        """(days_back, rolling_hours_back)"""
        return {
            FeedsPerDayPeriodOption.LAST_24H: (1, 24),
            FeedsPerDayPeriodOption.LAST_3D: (3, None),
            FeedsPerDayPeriodOption.LAST_7D: (7, None),
            FeedsPerDayPeriodOption.LAST_14D: (14, None),
            FeedsPerDayPeriodOption.LAST_21D: (21, None),
        }[self]

    @property
    def time_window(self) -> TimeWindow:
        days_back, hours_back = self.window
        if hours_back is not None:
            return TimeWindow.hours(hours_back)
        return TimeWindow.days(days_back)


class AverageDurationPeriod(Enum):
    LAST_24H = 1
    LAST_3D = 3
    LAST_7D = 7
    LAST_14D = 14
    CUSTOM = 0


@dataclass
class AverageDurationConfig:
    """User-selected settings of the average duration card."""

    period: AverageDurationPeriod = AverageDurationPeriod.LAST_7D
    custom_days: int = 7
    grouping: AverageDurationGrouping = AverageDurationGrouping.NONE
    exclude_outliers: bool = True

    def __post_init__(self):
        self.custom_days = max(1, self.custom_days)

    @property
    def outlier_policy(self) -> OutlierPolicy:
        return OutlierPolicy.EXCLUDE_IQR if self.exclude_outliers else OutlierPolicy.INCLUDE_ALL

    def time_window(self) -> TimeWindow:
        if self.period is AverageDurationPeriod.CUSTOM:
            return TimeWindow.days(self.custom_days)
        if self.period is AverageDurationPeriod.LAST_24H:
            return TimeWindow.hours(24)
        return TimeWindow.days(self.period.value)


# ============================================================================
# Result value types
# ============================================================================

@dataclass(frozen=True)
class GroupedAverage:
    label: str
    average: float
    count: int


IntervalGroupedAverage = GroupedAverage


@dataclass(frozen=True)
class TimeOfDayBucket:
    slot: TimeOfDaySlot
    label: str
    total: float
    session_count: int


@dataclass(frozen=True)
class AverageTrend:
    """Mean of the current window against the window right before it."""

    current_avg: float
    previous_avg: float

    @property
    def delta(self) -> float:
        return self.current_avg - self.previous_avg

    @property
    def percent(self) -> float:
        if self.previous_avg <= 0:
            return 0.0
        return self.delta / self.previous_avg * 100.0


class DurationTrend(AverageTrend):
    pass


class IntervalTrend(AverageTrend):
    pass


class FeedsPerDayTrend(AverageTrend):
    pass


class WindowTrend(AverageTrend):
    pass


@dataclass(frozen=True)
class DailyTotalTrend:
    current_avg_per_day: float
    previous_avg_per_day: float

    @property
    def delta(self) -> float:
        return self.current_avg_per_day - self.previous_avg_per_day

    @property
    def percent(self) -> float:
        if self.previous_avg_per_day <= 0:
            return 0.0
        return self.delta / self.previous_avg_per_day * 100.0


@dataclass(frozen=True)
class FeedsPerDayPoint:
    date: datetime  # start of day
    count: int


@dataclass(frozen=True)
class FeedsPerDaySummary:
    average: float
    median: float
    min: int
    max: int
    samples: int  # days in window


@dataclass(frozen=True)
class DailyDurationPoint:
    date: datetime  # start of day
    total: float


@dataclass(frozen=True)
class WeeklyDurationPoint:
    week_start: datetime
    total: float


@dataclass(frozen=True)
class MonthlyDurationPoint:
    month_start: datetime
    total: float


@dataclass(frozen=True)
class TodayFeedingSummary:
    total: float
    left_total: float
    right_total: float
    completed_count: int
    active_elapsed: float
    has_active: bool


@dataclass(frozen=True)
class PacingComparison:
    cumulative_today: float
    historical_mean: float
    delta: float  # cumulative_today - historical_mean
    percent: float  # delta / historical_mean * 100, or 0 if mean == 0
    sample_days: int


@dataclass(frozen=True)
class FeedingStats:
    total_duration: float
    average_duration: float
    average_interval: float
    interval_count: int
    outlier_count: int

    @classmethod
    def empty(cls) -> "FeedingStats":
        return cls(0.0, 0.0, 0.0, 0, 0)


@dataclass(frozen=True)
class NextFeedEstimate:
    next_feed_time: datetime
    interval: float


@dataclass(frozen=True)
class DurationMilestone:
    title: str
    value: float
    date: datetime
    breast: Breast


@dataclass(frozen=True)
class AverageDurationTip:
    id: str
    text: str


@dataclass(frozen=True)
class FeedingLogEntryStatsData:
    entry: FeedingLogEntry
    type: FeedingEntryType

    @property
    def id(self) -> uuid.UUID:
        return self.entry.id


class WinsorizedSample(NamedTuple):
    values: List[float]
    capped: int


# ============================================================================
# Persisted snapshots and sync settings
# ============================================================================

@dataclass
class ActiveFeedState:
    """Snapshot of the in-progress session, persisted between launches."""

    feed: FeedingLogEntry
    last_updated_at: datetime
    active_segment_start: Optional[datetime] = None
    active_segment_breast: Optional[Breast] = None


class PeerSyncCapability(Enum):
    SEND = "send"
    RECEIVE = "receive"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class PeerSyncConfiguration:
    is_enabled: bool = True
    can_send: bool = True
    can_receive: bool = True
    can_create: bool = True
    can_update: bool = True
    can_delete: bool = True

    @property
    def allows_mutations(self) -> bool:
        return self.can_create or self.can_update or self.can_delete

    def allows(self, capability: PeerSyncCapability) -> bool:
        return self.is_enabled and getattr(self, f"can_{capability.value}")


@dataclass
class FeedTimerState:
    """Timer-screen helper: most recent completed feed and the gap before it."""

    current_feed: Optional[FeedingLogEntry] = None
    gap_since_last: Optional[float] = None

    def most_recent_feed(self, feeds: List[FeedingLogEntry]) -> Optional[FeedingLogEntry]:
        if self.current_feed is not None and self.current_feed.is_completed:
            return self.current_feed
        completed = [f for f in feeds if f.is_completed]
        if not completed:
            return None
        return max(completed, key=lambda f: f.start_time)

    def recompute_gap_since_last(self, feeds: List[FeedingLogEntry]) -> Optional[float]:
        """Gap between the newest completed start and the previous completed end."""
        completed = sorted((f for f in feeds if f.is_completed),
                           key=lambda f: f.start_time, reverse=True)
        if len(completed) < 2:
            self.gap_since_last = None
        else:
            gap = (completed[0].start_time - completed[1].end_time).total_seconds()
            self.gap_since_last = max(0.0, gap)
        return self.gap_since_last

