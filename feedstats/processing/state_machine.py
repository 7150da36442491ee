"""
Active feeding session state machine.

Entries are immutable: every transition returns a new FeedingLogEntry. The
state's `last_updated_at` is the instant of the most recent transition and
doubles as the start of the next breast unit to be closed.

All time comes from the injected clock at the moment of the call.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from ..clock import NowProvider
from ..exceptions import InvariantViolationError, StateValidationError
from ..models import ActiveFeedState, Breast, BreastUnit, FeedingLogEntry
from ..utils import state_logger

logger = logging.getLogger(__name__)


class BreastFeedingState(Enum):
    NONE = "none"
    READY = "ready"
    FEEDING = "feeding"
    PAUSED = "paused"
    COMPLETED = "completed"

    @property
    def is_active(self) -> bool:
        return self in (BreastFeedingState.FEEDING, BreastFeedingState.PAUSED)


@dataclass(frozen=True)
class BreastInfo:
    current: Breast
    last: Optional[Breast] = None


@dataclass(frozen=True)
class FeedHistory:
    """Session being tracked plus the completed session before it."""

    current: FeedingLogEntry
    last: Optional[FeedingLogEntry] = None


@dataclass(frozen=True)
class ActiveBreastingFeedState:
    """
    Tagged state of the active session.

    Every status other than READY and NONE carries a FeedHistory; building
    one without it raises StateValidationError.
    """

    status: BreastFeedingState
    breast_info: Optional[BreastInfo]
    history: Optional[FeedHistory]
    last_updated_at: datetime

    def __post_init__(self):
        if self.status not in (BreastFeedingState.READY, BreastFeedingState.NONE) and self.history is None:
            raise StateValidationError(f"State '{self.status.value}' requires a feed history")

    @classmethod
    def none(cls, clock: NowProvider) -> "ActiveBreastingFeedState":
        return cls(BreastFeedingState.NONE, None, None, clock.now())

    @classmethod
    def ready(cls, side: Breast, clock: NowProvider) -> "ActiveBreastingFeedState":
        return cls(BreastFeedingState.READY, BreastInfo(side), None, clock.now())

    @classmethod
    def feeding(cls, entry: FeedingLogEntry, side: Breast,
                last: Optional[FeedingLogEntry], clock: NowProvider) -> "ActiveBreastingFeedState":
        return cls(
            status=BreastFeedingState.FEEDING,
            breast_info=BreastInfo(side),
            history=FeedHistory(current=entry, last=last),
            last_updated_at=clock.now(),
        )

    def paused_state(self, clock: NowProvider,
                     entry: Optional[FeedingLogEntry] = None) -> "ActiveBreastingFeedState":
        return replace(
            self,
            status=BreastFeedingState.PAUSED,
            history=self._history_with(entry),
            last_updated_at=clock.now(),
        )

    def resumed_state(self, side: Breast, clock: NowProvider,
                      entry: Optional[FeedingLogEntry] = None) -> "ActiveBreastingFeedState":
        previous_side = self.breast_info.current if self.breast_info else None
        return replace(
            self,
            status=BreastFeedingState.FEEDING,
            breast_info=BreastInfo(current=side, last=previous_side),
            history=self._history_with(entry),
            last_updated_at=clock.now(),
        )

    def completed_state(self, entry: FeedingLogEntry, clock: NowProvider) -> "ActiveBreastingFeedState":
        last = self.history.last if self.history else None
        return replace(
            self,
            status=BreastFeedingState.COMPLETED,
            history=FeedHistory(current=entry, last=last),
            last_updated_at=clock.now(),
        )

    def _history_with(self, entry: Optional[FeedingLogEntry]) -> Optional[FeedHistory]:
        if entry is None or self.history is None:
            return self.history
        return replace(self.history, current=entry)


# ============================================================================
# Entry transitions
# ============================================================================

def _require_matching_history(entry: FeedingLogEntry, state: ActiveBreastingFeedState, operation: str):
    if state.history is None or state.history.current.id != entry.id:
        tracked = state.history.current.id if state.history else None
        raise InvariantViolationError(
            f"{operation}: state tracks feed {tracked}, got feed {entry.id}"
        )


def start(side: Breast, clock: NowProvider) -> FeedingLogEntry:
    """New open session with no units."""
    now = clock.now()
    return FeedingLogEntry(
        id=uuid.uuid4(),
        start_time=now,
        end_time=None,
        cues=frozenset(),
        breast=side,
        breast_units=(),
        created_at=now,
        last_updated_at=now,
    )


def _close_unit(entry: FeedingLogEntry, state: ActiveBreastingFeedState, now: datetime) -> FeedingLogEntry:
    side = state.breast_info.current if state.breast_info else entry.breast
    unit = BreastUnit.between(side, state.last_updated_at, now)
    return entry.with_changes(
        breast=side,
        end_time=now,
        last_updated_at=now,
        breast_units=entry.breast_units + (unit,),
    )


def pause(entry: FeedingLogEntry, state: ActiveBreastingFeedState, clock: NowProvider) -> FeedingLogEntry:
    """
    Close the running segment.

    Appends a unit spanning [state.last_updated_at, now] on the state's
    current side and marks the entry provisionally ended at now. The
    session start time is left untouched.

    Raises:
        InvariantViolationError: state does not track this entry
    """
    _require_matching_history(entry, state, "pause")
    return _close_unit(entry, state, clock.now())


def resume(entry: FeedingLogEntry, state: ActiveBreastingFeedState, clock: NowProvider) -> FeedingLogEntry:
    """
    Reopen a paused entry. No unit is appended; the caller's next state
    records where the next unit starts.

    Raises:
        InvariantViolationError: state is not paused or does not track this entry
    """
    if state.status is not BreastFeedingState.PAUSED:
        raise InvariantViolationError(f"resume: expected a paused state, got '{state.status.value}'")
    _require_matching_history(entry, state, "resume")
    return entry.with_changes(end_time=None, last_updated_at=clock.now())


def restart(entry: FeedingLogEntry, side: Breast, clock: NowProvider) -> FeedingLogEntry:
    """Reopen an entry on a (possibly different) side without closing a unit."""
    return entry.with_changes(end_time=None, breast=side, last_updated_at=clock.now())


def stop(entry: FeedingLogEntry, state: ActiveBreastingFeedState, clock: NowProvider) -> FeedingLogEntry:
    """
    Close the final segment and end the session.

    Raises:
        InvariantViolationError: state does not track this entry
    """
    _require_matching_history(entry, state, "stop")
    return _close_unit(entry, state, clock.now())


# ============================================================================
# Single-owner holder
# ============================================================================

class ActiveFeedSession:
    """
    Pairs the current entry with its state and applies transitions in order.

    Not thread-safe; the owner serialises calls.
    """

    def __init__(self, clock: NowProvider, previous_feed: Optional[FeedingLogEntry] = None,
                 on_change: Optional[Callable[[Optional[ActiveFeedState]], None]] = None):
        self.clock = clock
        self.previous_feed = previous_feed
        self.on_change = on_change
        self.entry: Optional[FeedingLogEntry] = None
        self.state = ActiveBreastingFeedState.none(clock)

    @property
    def status(self) -> BreastFeedingState:
        return self.state.status

    @property
    def is_active(self) -> bool:
        return self.state.status.is_active

    def _transition(self, name: str, entry: FeedingLogEntry, state: ActiveBreastingFeedState):
        self.entry = entry
        self.state = state
        state_logger.info(
            f"Feed {name}",
            feed_id=str(entry.id),
            status=state.status.value,
            units=len(entry.breast_units),
        )
        logger.debug(f"{name}: feed {entry.id} -> {state.status.value}")
        if self.on_change is not None:
            self.on_change(self.snapshot())

    def _require_status(self, operation: str, *allowed: BreastFeedingState):
        if self.state.status not in allowed or self.entry is None:
            raise InvariantViolationError(
                f"{operation}: not allowed while '{self.state.status.value}'"
            )

    def start(self, side: Breast) -> FeedingLogEntry:
        if self.state.status.is_active:
            raise InvariantViolationError("start: a feed is already in progress")
        entry = start(side, self.clock)
        self._transition("started", entry,
                         ActiveBreastingFeedState.feeding(entry, side, self.previous_feed, self.clock))
        return entry

    def pause(self) -> FeedingLogEntry:
        self._require_status("pause", BreastFeedingState.FEEDING)
        entry = pause(self.entry, self.state, self.clock)
        self._transition("paused", entry, self.state.paused_state(self.clock, entry))
        return entry

    def resume(self, side: Optional[Breast] = None) -> FeedingLogEntry:
        self._require_status("resume", BreastFeedingState.PAUSED)
        side = side or self.state.breast_info.current
        entry = resume(self.entry, self.state, self.clock)
        self._transition("resumed", entry, self.state.resumed_state(side, self.clock, entry))
        return entry

    def switch_side(self, side: Breast) -> FeedingLogEntry:
        """
        Continue on another side.

        While feeding, the running segment is closed first (pause + resume).
        While paused, the entry is restarted on the new side.
        """
        self._require_status("switch_side", BreastFeedingState.FEEDING, BreastFeedingState.PAUSED)
        if self.state.status is BreastFeedingState.FEEDING:
            self.pause()
            return self.resume(side)
        entry = restart(self.entry, side, self.clock)
        self._transition("restarted", entry, self.state.resumed_state(side, self.clock, entry))
        return entry

    def stop(self) -> FeedingLogEntry:
        """
        End the session at now.

        A paused session gets no new unit; the pause time is not counted.
        """
        self._require_status("stop", BreastFeedingState.FEEDING, BreastFeedingState.PAUSED)
        if self.state.status is BreastFeedingState.FEEDING:
            entry = stop(self.entry, self.state, self.clock)
        else:
            now = self.clock.now()
            entry = self.entry.with_changes(end_time=now, last_updated_at=now)
        completed = self.state.completed_state(entry, self.clock)
        self.entry = entry
        self.state = completed
        self.previous_feed = entry
        state_logger.info("Feed stopped", feed_id=str(entry.id),
                          units=len(entry.breast_units), duration=entry.effective_duration)
        if self.on_change is not None:
            self.on_change(None)
        return entry

    def elapsed(self, now: Optional[datetime] = None) -> float:
        """Closed-unit time plus the running segment, if any."""
        if self.entry is None:
            return 0.0
        now = now or self.clock.now()
        total = self.entry.total_duration
        if self.state.status is BreastFeedingState.FEEDING:
            total += max(0.0, (now - self.state.last_updated_at).total_seconds())
        return total

    def snapshot(self) -> Optional[ActiveFeedState]:
        """Persistable snapshot, or None when nothing is in progress."""
        if self.entry is None or not self.state.status.is_active:
            return None
        feeding = self.state.status is BreastFeedingState.FEEDING
        return ActiveFeedState(
            feed=self.entry,
            last_updated_at=self.state.last_updated_at,
            active_segment_start=self.state.last_updated_at if feeding else None,
            active_segment_breast=self.state.breast_info.current if feeding else None,
        )

    @classmethod
    def restore(cls, snapshot: ActiveFeedState, clock: NowProvider,
                previous_feed: Optional[FeedingLogEntry] = None) -> "ActiveFeedSession":
        """Rebuild a holder from a persisted snapshot."""
        session = cls(clock, previous_feed=previous_feed)
        feeding = snapshot.active_segment_start is not None
        side = snapshot.active_segment_breast or snapshot.feed.breast
        session.entry = snapshot.feed
        session.state = ActiveBreastingFeedState(
            status=BreastFeedingState.FEEDING if feeding else BreastFeedingState.PAUSED,
            breast_info=BreastInfo(side),
            history=FeedHistory(current=snapshot.feed, last=previous_feed),
            last_updated_at=snapshot.active_segment_start or snapshot.last_updated_at,
        )
        logger.info(f"Restored active feed {snapshot.feed.id} ({session.state.status.value})")
        return session
