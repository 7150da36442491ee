"""
Scenario filter: split sessions into day and night subsets by start hour.
"""

from typing import Any, Dict, List, Optional

from ..clock import StatsEnvironment
from ..constants import SCENARIO_HOURS
from ..feature_manager import feature_enabled
from ..models import FeedingLogEntry, Scenario, TimeOfDaySlot


class ScenarioFilterService:
    """Hour-of-day filter applied before any grouping or averaging."""

    def __init__(self, env: Optional[StatsEnvironment] = None, config: Optional[Dict[str, Any]] = None):
        self.env = env or StatsEnvironment()
        self.config = config or {}
        self.day_first_hour = self.config.get('day_first_hour', SCENARIO_HOURS['day_first_hour'])
        self.day_last_hour = self.config.get('day_last_hour', SCENARIO_HOURS['day_last_hour'])
        self.night_remap_hour = self.config.get('night_remap_hour', SCENARIO_HOURS['night_remap_hour'])

    def is_daytime(self, entry: FeedingLogEntry) -> bool:
        hour = self.env.calendar.hour_of_day(entry.start_time)
        return self.day_first_hour <= hour <= self.day_last_hour

    def filter_by_scenario(self, feeds: List[FeedingLogEntry], scenario: Scenario) -> List[FeedingLogEntry]:
        """
        Args:
            feeds: Sessions in any order (order is preserved)
            scenario: ALL returns the input, DAY keeps start hours in
                [6, 21], NIGHT keeps the complement

        Returns:
            Filtered sessions
        """
        if scenario is Scenario.DAY:
            return [f for f in feeds if self.is_daytime(f)]
        if scenario is Scenario.NIGHT:
            return [f for f in feeds if not self.is_daytime(f)]
        return list(feeds)

    def scenario_slot(self, entry: FeedingLogEntry, scenario: Scenario) -> TimeOfDaySlot:
        """
        Time-of-day slot of a session's start; under NIGHT, late-evening
        starts (hour >= 22) count as night.
        """
        slot = self.env.calendar.time_of_day_slot(entry.start_time)
        if (scenario is Scenario.NIGHT and slot is TimeOfDaySlot.EVENING
                and feature_enabled(self.config, 'night_remap')):
            if self.env.calendar.hour_of_day(entry.start_time) >= self.night_remap_hour:
                return TimeOfDaySlot.NIGHT
        return slot
