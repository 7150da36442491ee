"""
Tests for the active feeding session state machine.
"""

import pytest
from datetime import timedelta

from feedstats.exceptions import InvariantViolationError, StateValidationError
from feedstats.models import Breast
from feedstats.processing import state_machine
from feedstats.processing.state_machine import (
    ActiveBreastingFeedState,
    ActiveFeedSession,
    BreastFeedingState,
    FeedHistory,
)


@pytest.fixture
def session(fixed_clock):
    return ActiveFeedSession(fixed_clock)


class TestStateConstruction:
    """Tagged states and their invariants."""

    def test_ready_and_none_need_no_history(self, fixed_clock):
        assert ActiveBreastingFeedState.ready(Breast.LEFT, fixed_clock).history is None
        assert ActiveBreastingFeedState.none(fixed_clock).status is BreastFeedingState.NONE

    @pytest.mark.parametrize("status", [
        BreastFeedingState.FEEDING,
        BreastFeedingState.PAUSED,
        BreastFeedingState.COMPLETED,
    ])
    def test_active_states_require_history(self, fixed_clock, status):
        with pytest.raises(StateValidationError):
            ActiveBreastingFeedState(status, None, None, fixed_clock.now())

    def test_is_active(self):
        assert BreastFeedingState.FEEDING.is_active
        assert BreastFeedingState.PAUSED.is_active
        assert not BreastFeedingState.COMPLETED.is_active
        assert not BreastFeedingState.READY.is_active


class TestEntryTransitions:
    """Pure transitions over immutable entries."""

    def test_start_opens_entry(self, fixed_clock):
        entry = state_machine.start(Breast.RIGHT, fixed_clock)

        assert entry.start_time == fixed_clock.now()
        assert entry.end_time is None
        assert entry.breast is Breast.RIGHT
        assert entry.breast_units == ()

    def test_pause_appends_unit_from_last_update(self, fixed_clock):
        entry = state_machine.start(Breast.LEFT, fixed_clock)
        state = ActiveBreastingFeedState.feeding(entry, Breast.LEFT, None, fixed_clock)
        fixed_clock.advance(300)

        paused = state_machine.pause(entry, state, fixed_clock)

        assert len(paused.breast_units) == 1
        assert paused.breast_units[0].duration == pytest.approx(300.0)
        assert paused.end_time == fixed_clock.now()
        assert paused.start_time == entry.start_time
        # the original is untouched
        assert entry.breast_units == ()

    @pytest.mark.critical
    def test_mismatched_history_is_rejected(self, fixed_clock):
        entry = state_machine.start(Breast.LEFT, fixed_clock)
        other = state_machine.start(Breast.LEFT, fixed_clock)
        state = ActiveBreastingFeedState.feeding(other, Breast.LEFT, None, fixed_clock)

        with pytest.raises(InvariantViolationError):
            state_machine.pause(entry, state, fixed_clock)
        with pytest.raises(InvariantViolationError):
            state_machine.stop(entry, state, fixed_clock)

    def test_resume_requires_paused_state(self, fixed_clock):
        entry = state_machine.start(Breast.LEFT, fixed_clock)
        state = ActiveBreastingFeedState.feeding(entry, Breast.LEFT, None, fixed_clock)

        with pytest.raises(InvariantViolationError):
            state_machine.resume(entry, state, fixed_clock)

    def test_resume_reopens_without_unit(self, fixed_clock):
        entry = state_machine.start(Breast.LEFT, fixed_clock)
        state = ActiveBreastingFeedState.feeding(entry, Breast.LEFT, None, fixed_clock)
        fixed_clock.advance(60)
        paused = state_machine.pause(entry, state, fixed_clock)
        paused_state = state.paused_state(fixed_clock, paused)
        fixed_clock.advance(30)

        resumed = state_machine.resume(paused, paused_state, fixed_clock)

        assert resumed.end_time is None
        assert len(resumed.breast_units) == 1
        assert resumed.last_updated_at == fixed_clock.now()

    def test_restart_switches_side(self, fixed_clock):
        entry = state_machine.start(Breast.LEFT, fixed_clock)
        restarted = state_machine.restart(entry, Breast.RIGHT, fixed_clock)

        assert restarted.breast is Breast.RIGHT
        assert restarted.end_time is None

    def test_completed_state_keeps_last_feed(self, fixed_clock, make_feed, base_timestamp):
        previous = make_feed(base_timestamp - timedelta(hours=3))
        entry = state_machine.start(Breast.LEFT, fixed_clock)
        state = ActiveBreastingFeedState.feeding(entry, Breast.LEFT, previous, fixed_clock)

        completed = state.completed_state(entry, fixed_clock)

        assert completed.status is BreastFeedingState.COMPLETED
        assert completed.history == FeedHistory(current=entry, last=previous)


class TestActiveFeedSession:
    """Single-owner holder over the transitions."""

    @pytest.mark.e2e
    @pytest.mark.critical
    def test_pause_resume_stop(self, session, fixed_clock, base_timestamp):
        """Start, feed 120 s, pause 60 s, feed 120 s, stop: two units and 240 s."""
        session.start(Breast.LEFT)
        fixed_clock.advance(120)
        session.pause()
        fixed_clock.advance(60)
        session.resume()
        fixed_clock.advance(120)
        entry = session.stop()

        assert len(entry.breast_units) == 2
        assert entry.effective_duration == pytest.approx(240.0)
        assert entry.start_time == base_timestamp
        assert entry.end_time == base_timestamp + timedelta(seconds=300)
        assert session.status is BreastFeedingState.COMPLETED
        assert session.previous_feed is entry

    def test_switch_side_while_feeding(self, session, fixed_clock):
        session.start(Breast.LEFT)
        fixed_clock.advance(200)
        session.switch_side(Breast.RIGHT)
        fixed_clock.advance(100)
        entry = session.stop()

        assert [u.breast for u in entry.breast_units] == [Breast.LEFT, Breast.RIGHT]
        assert [u.duration for u in entry.breast_units] == [200.0, 100.0]
        assert entry.breast is Breast.RIGHT

    def test_switch_side_while_paused(self, session, fixed_clock):
        session.start(Breast.LEFT)
        fixed_clock.advance(60)
        session.pause()
        fixed_clock.advance(30)
        session.switch_side(Breast.RIGHT)

        assert session.status is BreastFeedingState.FEEDING
        assert session.state.breast_info.current is Breast.RIGHT
        assert session.state.breast_info.last is Breast.LEFT

    def test_stop_while_paused_adds_no_unit(self, session, fixed_clock):
        session.start(Breast.LEFT)
        fixed_clock.advance(90)
        session.pause()
        fixed_clock.advance(600)
        entry = session.stop()

        assert len(entry.breast_units) == 1
        assert entry.effective_duration == pytest.approx(90.0)
        assert entry.end_time == fixed_clock.now()
        assert entry.last_updated_at == fixed_clock.now()

    def test_elapsed_counts_running_segment(self, session, fixed_clock):
        session.start(Breast.LEFT)
        fixed_clock.advance(100)
        session.pause()
        fixed_clock.advance(50)
        assert session.elapsed() == pytest.approx(100.0)

        session.resume()
        fixed_clock.advance(25)
        assert session.elapsed() == pytest.approx(125.0)

    def test_invalid_transitions(self, session):
        with pytest.raises(InvariantViolationError):
            session.pause()
        session.start(Breast.LEFT)
        with pytest.raises(InvariantViolationError):
            session.resume()
        with pytest.raises(InvariantViolationError):
            session.start(Breast.RIGHT)

    def test_change_callback(self, fixed_clock):
        snapshots = []
        session = ActiveFeedSession(fixed_clock, on_change=snapshots.append)
        session.start(Breast.LEFT)
        fixed_clock.advance(30)
        session.pause()
        session.stop()

        assert snapshots[0].active_segment_start == snapshots[0].feed.start_time
        assert snapshots[1].active_segment_start is None
        assert snapshots[-1] is None


class TestSnapshotRestore:
    """Persisted snapshots rebuild an equivalent session."""

    def test_restore_feeding_session(self, session, fixed_clock):
        session.start(Breast.LEFT)
        fixed_clock.advance(120)
        session.switch_side(Breast.RIGHT)
        fixed_clock.advance(60)
        snapshot = session.snapshot()

        restored = ActiveFeedSession.restore(snapshot, fixed_clock)
        fixed_clock.advance(60)
        entry = restored.stop()

        assert restored.status is BreastFeedingState.COMPLETED
        assert [u.breast for u in entry.breast_units] == [Breast.LEFT, Breast.RIGHT]
        assert entry.effective_duration == pytest.approx(240.0)

    def test_restore_paused_session(self, session, fixed_clock):
        session.start(Breast.LEFT)
        fixed_clock.advance(120)
        session.pause()

        restored = ActiveFeedSession.restore(session.snapshot(), fixed_clock)

        assert restored.status is BreastFeedingState.PAUSED
        assert restored.elapsed() == pytest.approx(120.0)

    def test_no_snapshot_when_idle(self, session):
        assert session.snapshot() is None
