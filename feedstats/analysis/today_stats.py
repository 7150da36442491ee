"""
Today's feeding time: summary by side, time-of-day breakdown and pacing
against the same clock time on previous days.
"""

from datetime import datetime
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from ..models import (
    TIME_OF_DAY_DISPLAY_ORDER,
    Breast,
    FeedingLogEntry,
    PacingComparison,
    TimeOfDayBucket,
    TimeOfDaySlot,
    TodayFeedingSummary,
)
from .averaging import StatsServiceBase, mean


def _overlap(start: datetime, end: datetime, lower: datetime, upper: datetime) -> float:
    """Seconds of [start, end] inside the closed range [lower, upper]."""
    return max(0.0, (min(end, upper) - max(start, lower)).total_seconds())


def _clip(start: datetime, end: datetime, lower: datetime, upper: datetime) -> Optional[Tuple[datetime, datetime]]:
    s = max(start, lower)
    e = min(end, upper)
    return (s, e) if e > s else None


class TodayStatsService(StatsServiceBase):
    """Figures anchored on the current civil day."""

    def _segments(self, entry: FeedingLogEntry) -> Iterator[Tuple[Breast, datetime, datetime]]:
        """Units of a completed entry, or its envelope when it has none."""
        if entry.breast_units:
            for unit in entry.breast_units:
                yield unit.breast, unit.start_time, unit.end_time
        elif entry.end_time is not None:
            yield entry.breast, entry.start_time, entry.end_time

    def time_spent_feeding_today(self, feeds: Sequence[FeedingLogEntry],
                                 active_feed: Optional[FeedingLogEntry] = None,
                                 now: Optional[datetime] = None) -> TodayFeedingSummary:
        """
        Time spent feeding in [start of today, now].

        Completed feeds contribute their clipped units (or envelope). An open
        active feed adds its closed units; with no units yet, its envelope up
        to now counts as active elapsed time.
        """
        anchor = self.env.resolve_now(now)
        day_start = self.calendar.start_of_day(anchor)
        sides = {Breast.LEFT: 0.0, Breast.RIGHT: 0.0}
        completed_count = 0
        active_elapsed = 0.0

        for entry in feeds:
            if not entry.is_completed:
                continue
            contributed = False
            for side, start, end in self._segments(entry):
                d = _overlap(start, end, day_start, anchor)
                if d > 0:
                    sides[side] += d
                    contributed = True
            if contributed:
                completed_count += 1

        if active_feed is not None and not active_feed.is_completed:
            if active_feed.breast_units:
                # Running segment start is unknown here; only closed units count
                for unit in active_feed.breast_units:
                    sides[unit.breast] += _overlap(unit.start_time, unit.end_time, day_start, anchor)
            else:
                d = _overlap(active_feed.start_time, anchor, day_start, anchor)
                if d > 0:
                    sides[active_feed.breast] += d
                    active_elapsed = d

        return TodayFeedingSummary(
            total=sides[Breast.LEFT] + sides[Breast.RIGHT],
            left_total=sides[Breast.LEFT],
            right_total=sides[Breast.RIGHT],
            completed_count=completed_count,
            active_elapsed=active_elapsed,
            has_active=active_feed is not None and not active_feed.is_completed and active_elapsed > 0,
        )

    def _slot_ranges(self, day_start: datetime, now: datetime) -> Dict[TimeOfDaySlot, Tuple[datetime, datetime]]:
        d6 = self.calendar.slot_start(day_start, TimeOfDaySlot.MORNING)
        d12 = self.calendar.slot_start(day_start, TimeOfDaySlot.AFTERNOON)
        d18 = self.calendar.slot_start(day_start, TimeOfDaySlot.EVENING)
        return {
            TimeOfDaySlot.MORNING: (d6, max(d6, min(d12, now))),
            TimeOfDaySlot.AFTERNOON: (d12, max(d12, min(d18, now))),
            TimeOfDaySlot.EVENING: (d18, max(d18, now)),
            TimeOfDaySlot.NIGHT: (day_start, min(d6, now)),
        }

    def today_time_of_day_breakdown(self, feeds: Sequence[FeedingLogEntry],
                                    active_feed: Optional[FeedingLogEntry] = None,
                                    now: Optional[datetime] = None) -> List[TimeOfDayBucket]:
        """Four buckets (Morning, Afternoon, Evening, Night); each slot overlap bumps its count."""
        anchor = self.env.resolve_now(now)
        day_start = self.calendar.start_of_day(anchor)
        ranges = self._slot_ranges(day_start, anchor)
        totals = {slot: 0.0 for slot in TimeOfDaySlot}
        counts = {slot: 0 for slot in TimeOfDaySlot}

        def add_interval(start: datetime, end: datetime):
            for slot, (lower, upper) in ranges.items():
                d = _overlap(start, end, lower, upper)
                if d > 0:
                    totals[slot] += d
                    counts[slot] += 1

        intervals = []
        for entry in feeds:
            if entry.is_completed:
                intervals.extend((s, e) for _, s, e in self._segments(entry))

        if active_feed is not None and not active_feed.is_completed:
            if active_feed.breast_units:
                intervals.extend((u.start_time, u.end_time) for u in active_feed.breast_units)
            else:
                intervals.append((active_feed.start_time, anchor))

        for start, end in intervals:
            clipped = _clip(start, end, day_start, anchor)
            if clipped is not None:
                add_interval(*clipped)

        return [
            TimeOfDayBucket(slot=slot, label=slot.label, total=totals[slot], session_count=counts[slot])
            for slot in TIME_OF_DAY_DISPLAY_ORDER
        ]

    def pacing_comparison_last_days(self, feeds: Sequence[FeedingLogEntry],
                                    active_feed: Optional[FeedingLogEntry] = None,
                                    days: int = 7,
                                    now: Optional[datetime] = None) -> PacingComparison:
        """
        Today's cumulative time against the mean cumulative time reached by
        the same clock time on each of the previous `days` days.
        """
        anchor = self.env.resolve_now(now)
        day_start = self.calendar.start_of_day(anchor)
        seconds_since_start = (anchor - day_start).total_seconds()
        today = self.time_spent_feeding_today(feeds, active_feed, anchor).total

        totals = []
        for i in range(1, max(1, days) + 1):
            prev_start = self.calendar.add_days(day_start, -i)
            prev_cutoff = self.calendar.add_seconds(prev_start, seconds_since_start)
            total = 0.0
            for entry in feeds:
                if entry.is_completed:
                    for _, start, end in self._segments(entry):
                        total += _overlap(start, end, prev_start, prev_cutoff)
            totals.append(total)

        historical = mean(totals)
        delta = today - historical
        return PacingComparison(
            cumulative_today=today,
            historical_mean=historical,
            delta=delta,
            percent=delta / historical * 100.0 if historical > 0 else 0.0,
            sample_days=len(totals),
        )
