"""
Tests for versioned decode/encode of stored records.
"""

import uuid

import pytest
from datetime import datetime, timezone

from feedstats.codec import (
    decode_active_feed_state,
    decode_entries,
    decode_entry,
    decode_peer_sync,
    encode_active_feed_state,
    encode_entry,
    encode_peer_sync,
    parse_timestamp,
)
from feedstats.exceptions import DecodeError
from feedstats.models import (
    ActiveFeedState,
    Breast,
    FeedingCue,
    PeerSyncCapability,
    PeerSyncConfiguration,
)


@pytest.fixture
def current_record():
    """Schema-2 record with two units."""
    return {
        'schemaVersion': 2,
        'id': '6f1c8f3e-2b8a-4c7e-9d52-0a5b7c1e2f34',
        'startTime': '2024-01-01T08:00:00',
        'endTime': '2024-01-01T08:12:00',
        'breast': 'right',
        'cues': ['Rooting', 'Crying'],
        'createdAt': '2024-01-01T08:00:00',
        'lastUpdatedAt': '2024-01-01T08:12:00',
        'breastUnits': [
            {'breast': 'left', 'startTime': '2024-01-01T08:00:00',
             'endTime': '2024-01-01T08:05:00', 'duration': 300},
            {'breast': 'right', 'startTime': '2024-01-01T08:07:00',
             'endTime': '2024-01-01T08:12:00'},
        ],
    }


@pytest.fixture
def legacy_record():
    """Schema-1 envelope without units, cues or bookkeeping timestamps."""
    return {
        'schemaVersion': 1,
        'id': 'b0d7a3b2-5c1e-4f4a-8e0f-3a2d1c4b5e6f',
        'startTime': '2024-01-01T10:00:00',
        'endTime': '2024-01-01T10:20:00',
        'breast': 'Left',
    }


class TestTimestamps:
    """Accepted timestamp encodings."""

    def test_iso_string(self):
        assert parse_timestamp('2024-01-01T08:00:00') == datetime(2024, 1, 1, 8)

    def test_epoch_seconds_decode_as_utc(self):
        """Epoch numbers become aware UTC instants."""
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_datetime_marker(self):
        """The {'_type': 'datetime'} marker written by json default=str round-trips."""
        assert parse_timestamp({'_type': 'datetime', 'data': '2024-01-01T08:00:00'}) == datetime(2024, 1, 1, 8)

    @pytest.mark.parametrize("bad", ['yesterday', True, None, [2024]])
    def test_rejects_garbage(self, bad):
        with pytest.raises(DecodeError):
            parse_timestamp(bad)


class TestEntryDecode:
    """Canonical FeedingLogEntry from stored records."""

    def test_current_schema(self, current_record):
        entry = decode_entry(current_record)

        assert entry.id == uuid.UUID(current_record['id'])
        assert entry.breast is Breast.RIGHT
        assert entry.cues == frozenset({FeedingCue.ROOTING, FeedingCue.CRYING})
        assert len(entry.breast_units) == 2
        assert entry.breast_units[1].duration == pytest.approx(300.0)
        assert entry.effective_duration == pytest.approx(600.0)

    def test_legacy_envelope_gets_one_unit(self, legacy_record):
        """A completed legacy envelope becomes one unit spanning start to end."""
        entry = decode_entry(legacy_record)

        assert entry.breast is Breast.LEFT
        assert entry.cues == frozenset()
        assert entry.created_at == entry.start_time
        assert entry.last_updated_at == entry.end_time
        assert len(entry.breast_units) == 1
        assert entry.breast_units[0].duration == pytest.approx(1200.0)

    def test_open_legacy_envelope_has_no_units(self, legacy_record):
        del legacy_record['endTime']
        entry = decode_entry(legacy_record)

        assert not entry.is_completed
        assert entry.breast_units == ()
        assert entry.last_updated_at == entry.start_time

    def test_explicit_empty_units_are_kept(self, current_record):
        """A current-schema record with an empty unit list stays unit-less."""
        current_record['breastUnits'] = []
        entry = decode_entry(current_record)

        assert entry.breast_units == ()
        assert entry.effective_duration == pytest.approx(720.0)

    @pytest.mark.parametrize("field", ['id', 'startTime', 'breast'])
    def test_missing_required_field(self, current_record, field):
        del current_record[field]
        with pytest.raises(DecodeError):
            decode_entry(current_record)

    def test_unknown_cue_is_rejected(self, current_record):
        current_record['cues'] = ['Yawning']
        with pytest.raises(DecodeError):
            decode_entry(current_record)

    def test_newer_schema_is_rejected(self, current_record):
        current_record['schemaVersion'] = 3
        with pytest.raises(DecodeError):
            decode_entry(current_record)

    def test_batch_skips_bad_records(self, current_record, legacy_record):
        """decode_entries drops undecodable records and keeps the rest."""
        entries = decode_entries([current_record, {'id': 'nope'}, legacy_record])
        assert len(entries) == 2


class TestEntryEncode:
    """Encoded records decode back to the same entry."""

    def test_encode_then_decode(self, current_record):
        entry = decode_entry(current_record)
        assert decode_entry(encode_entry(entry)) == entry

    def test_open_entry_has_no_end_time(self, legacy_record):
        del legacy_record['endTime']
        payload = encode_entry(decode_entry(legacy_record))

        assert 'endTime' not in payload
        assert payload['schemaVersion'] == 2


class TestSnapshotsAndSync:
    """Active feed snapshot and peer sync settings."""

    def test_active_feed_state(self, current_record):
        entry = decode_entry(current_record)
        state = ActiveFeedState(
            feed=entry,
            last_updated_at=datetime(2024, 1, 1, 8, 12),
            active_segment_start=datetime(2024, 1, 1, 8, 12),
            active_segment_breast=Breast.LEFT,
        )
        restored = decode_active_feed_state(encode_active_feed_state(state))

        assert restored == state

    def test_active_feed_state_requires_feed(self):
        with pytest.raises(DecodeError):
            decode_active_feed_state({'lastUpdatedAt': '2024-01-01T08:00:00'})

    def test_peer_sync_defaults_missing_flags(self):
        """Absent flags keep their default (enabled) value."""
        config = decode_peer_sync({'canDelete': False})

        assert config.is_enabled
        assert not config.can_delete
        assert config.allows_mutations

    def test_peer_sync_rejects_non_boolean(self):
        with pytest.raises(DecodeError):
            decode_peer_sync({'canSend': 'yes'})

    def test_peer_sync_capabilities(self):
        config = PeerSyncConfiguration(can_create=False, can_update=False, can_delete=False)

        assert not config.allows_mutations
        assert config.allows(PeerSyncCapability.SEND)
        assert not PeerSyncConfiguration(is_enabled=False).allows(PeerSyncCapability.SEND)
        assert encode_peer_sync(config)['canCreate'] is False
