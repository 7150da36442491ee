"""
Versioned decode/encode of stored records.

Records are JSON-shaped dicts with camelCase keys. Older records may lack
fields that were added later; the fallbacks below turn every accepted record
into one canonical FeedingLogEntry.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from feedstats.exceptions import DecodeError
from feedstats.models import (
    ActiveFeedState,
    Breast,
    BreastUnit,
    FeedingCue,
    FeedingLogEntry,
    PeerSyncConfiguration,
)

logger = logging.getLogger(__name__)

# 1: envelope only (no breastUnits); 2: unit-based sessions
LEGACY_SCHEMA_VERSION = 1
CURRENT_SCHEMA_VERSION = 2


# ============================================================================
# Scalars
# ============================================================================

def parse_timestamp(value: Any) -> datetime:
    """Accept ISO-8601 strings, epoch seconds, datetimes or {'_type': 'datetime'} markers."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, dict) and value.get('_type') == 'datetime':
        value = value.get('data')
    if isinstance(value, bool):
        raise DecodeError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            raise DecodeError(f"Invalid timestamp: {value!r}") from None
    raise DecodeError(f"Invalid timestamp: {value!r}")


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _require(payload: Dict[str, Any], key: str) -> Any:
    if payload.get(key) is None:
        raise DecodeError(f"Missing required field '{key}'")
    return payload[key]


def _parse_uuid(value: Any) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise DecodeError(f"Invalid id: {value!r}") from None


def _parse_cue(value: Any) -> FeedingCue:
    try:
        return FeedingCue(value)
    except ValueError:
        raise DecodeError(f"Unknown feeding cue: {value!r}") from None


# ============================================================================
# Session entries
# ============================================================================

def decode_unit(payload: Dict[str, Any]) -> BreastUnit:
    if not isinstance(payload, dict):
        raise DecodeError(f"Breast unit must be an object, got {type(payload).__name__}")
    breast = Breast.parse(_require(payload, 'breast'))
    start = parse_timestamp(_require(payload, 'startTime'))
    end = parse_timestamp(_require(payload, 'endTime'))
    duration = payload.get('duration')
    if duration is None:
        return BreastUnit.between(breast, start, end)
    return BreastUnit(breast=breast, start_time=start, end_time=end, duration=float(duration))


def encode_unit(unit: BreastUnit) -> Dict[str, Any]:
    return {
        'breast': unit.breast.value,
        'duration': unit.duration,
        'startTime': format_timestamp(unit.start_time),
        'endTime': format_timestamp(unit.end_time),
    }


def decode_entry(payload: Dict[str, Any]) -> FeedingLogEntry:
    """
    Decode one stored session into a canonical entry.

    Fallbacks:
        cues            -> empty set
        createdAt       -> startTime
        lastUpdatedAt   -> endTime, then startTime
        breastUnits     -> one unit spanning the envelope when completed, else none

    Raises:
        DecodeError: required fields missing or malformed, or a schema newer
            than this decoder understands
    """
    if not isinstance(payload, dict):
        raise DecodeError(f"Entry must be an object, got {type(payload).__name__}")

    version = payload.get('schemaVersion', CURRENT_SCHEMA_VERSION)
    if not isinstance(version, int) or version > CURRENT_SCHEMA_VERSION:
        raise DecodeError(f"Unsupported schema version: {version!r}")

    entry_id = _parse_uuid(_require(payload, 'id'))
    start = parse_timestamp(_require(payload, 'startTime'))
    end = parse_timestamp(payload['endTime']) if payload.get('endTime') is not None else None
    breast = Breast.parse(_require(payload, 'breast'))
    cues = frozenset(_parse_cue(c) for c in (payload.get('cues') or []))

    created = payload.get('createdAt')
    created_at = parse_timestamp(created) if created is not None else start

    updated = payload.get('lastUpdatedAt')
    if updated is not None:
        last_updated_at = parse_timestamp(updated)
    else:
        last_updated_at = end if end is not None else start

    raw_units = payload.get('breastUnits') if version >= CURRENT_SCHEMA_VERSION else None
    if raw_units is not None:
        if not isinstance(raw_units, list):
            raise DecodeError("breastUnits must be a list")
        units = tuple(decode_unit(u) for u in raw_units)
    elif end is not None:
        units = (BreastUnit.between(breast, start, end),)
    else:
        units = ()

    return FeedingLogEntry(
        id=entry_id,
        start_time=start,
        end_time=end,
        cues=cues,
        breast=breast,
        breast_units=units,
        created_at=created_at,
        last_updated_at=last_updated_at,
    )


def encode_entry(entry: FeedingLogEntry) -> Dict[str, Any]:
    payload = {
        'schemaVersion': CURRENT_SCHEMA_VERSION,
        'id': str(entry.id),
        'startTime': format_timestamp(entry.start_time),
        'cues': sorted(c.value for c in entry.cues),
        'breast': entry.breast.value,
        'createdAt': format_timestamp(entry.created_at),
        'lastUpdatedAt': format_timestamp(entry.last_updated_at),
        'breastUnits': [encode_unit(u) for u in entry.breast_units],
    }
    if entry.end_time is not None:
        payload['endTime'] = format_timestamp(entry.end_time)
    return payload


def decode_entries(records: Iterable[Dict[str, Any]]) -> List[FeedingLogEntry]:
    """Decode a batch, skipping (and logging) records that cannot be decoded."""
    entries = []
    for index, record in enumerate(records):
        try:
            entries.append(decode_entry(record))
        except DecodeError as e:
            logger.warning(f"Skipping session record {index}: {e}")
    return entries


# ============================================================================
# Active feed snapshot and sync settings
# ============================================================================

def decode_active_feed_state(payload: Dict[str, Any]) -> ActiveFeedState:
    if not isinstance(payload, dict):
        raise DecodeError("Active feed snapshot must be an object")
    feed = decode_entry(_require(payload, 'feed'))
    segment_start = payload.get('activeSegmentStart')
    segment_breast = payload.get('activeSegmentBreast')
    return ActiveFeedState(
        feed=feed,
        last_updated_at=parse_timestamp(_require(payload, 'lastUpdatedAt')),
        active_segment_start=parse_timestamp(segment_start) if segment_start is not None else None,
        active_segment_breast=Breast.parse(segment_breast) if segment_breast is not None else None,
    )


def encode_active_feed_state(state: ActiveFeedState) -> Dict[str, Any]:
    return {
        'feed': encode_entry(state.feed),
        'activeSegmentStart': format_timestamp(state.active_segment_start),
        'activeSegmentBreast': state.active_segment_breast.value if state.active_segment_breast else None,
        'lastUpdatedAt': format_timestamp(state.last_updated_at),
    }


_PEER_SYNC_KEYS = {
    'isEnabled': 'is_enabled',
    'canSend': 'can_send',
    'canReceive': 'can_receive',
    'canCreate': 'can_create',
    'canUpdate': 'can_update',
    'canDelete': 'can_delete',
}


def decode_peer_sync(payload: Dict[str, Any]) -> PeerSyncConfiguration:
    if not isinstance(payload, dict):
        raise DecodeError("Peer sync configuration must be an object")
    values = {}
    for key, attr in _PEER_SYNC_KEYS.items():
        if key in payload:
            if not isinstance(payload[key], bool):
                raise DecodeError(f"Peer sync flag '{key}' must be a boolean")
            values[attr] = payload[key]
    return PeerSyncConfiguration(**values)


def encode_peer_sync(config: PeerSyncConfiguration) -> Dict[str, Any]:
    return {key: getattr(config, attr) for key, attr in _PEER_SYNC_KEYS.items()}
