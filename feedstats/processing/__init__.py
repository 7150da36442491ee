"""Windowing, scenario filtering, outlier handling and the active feed state machine."""

from .outlier_detection import OutlierService
from .scenario_filter import ScenarioFilterService
from .state_machine import (
    ActiveBreastingFeedState,
    ActiveFeedSession,
    BreastFeedingState,
    BreastInfo,
    FeedHistory,
)
from .windowing import WindowingService

__all__ = [
    'OutlierService',
    'ScenarioFilterService',
    'WindowingService',
    'ActiveBreastingFeedState',
    'ActiveFeedSession',
    'BreastFeedingState',
    'BreastInfo',
    'FeedHistory',
]
