"""
Preferences store backed by a JSON file.

Holds the user's profile values, peer sync settings and the in-progress
feed snapshot. Every change is written through to disk and published to
observers as (key, old, new).
"""

import json
import logging
import math
import os
from contextlib import contextmanager
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..clock import NowProvider, SystemClock
from ..codec import (
    decode_active_feed_state,
    decode_peer_sync,
    encode_active_feed_state,
    encode_peer_sync,
    parse_timestamp,
)
from ..constants import PREFERENCE_DEFAULTS
from ..exceptions import DecodeError, PreferencesEncodeError
from ..feature_manager import feature_enabled
from ..models import ActiveFeedState, PeerSyncConfiguration
from ..utils import preferences_logger

logger = logging.getLogger(__name__)

Observer = Callable[[str, Any, Any], None]


@dataclass
class Preferences:
    baby_name: str = PREFERENCE_DEFAULTS['baby_name']
    due_date: datetime = field(default_factory=datetime.now)
    birth_date: datetime = field(default_factory=datetime.now)
    birth_weight: float = PREFERENCE_DEFAULTS['birth_weight']
    birth_height: float = PREFERENCE_DEFAULTS['birth_height']
    allow_broadcasting: bool = PREFERENCE_DEFAULTS['allow_broadcasting']
    device_name: str = PREFERENCE_DEFAULTS['device_name']
    peer_sync: PeerSyncConfiguration = field(default_factory=PeerSyncConfiguration)
    active_feed: Optional[ActiveFeedState] = None

    @classmethod
    def defaults(cls, now: datetime) -> 'Preferences':
        return cls(due_date=now, birth_date=now)

    def age_days(self, now: datetime) -> int:
        """Whole days since birth, never negative."""
        return max(0, int((now - self.birth_date).total_seconds() // 86400))


# ============================================================================
# Per-key codecs
# ============================================================================

def _encode_str(value: Any) -> str:
    if not isinstance(value, str):
        raise PreferencesEncodeError(f"Expected a string, got {type(value).__name__}")
    return value


def _decode_str(value: Any) -> str:
    if not isinstance(value, str):
        raise DecodeError(f"Expected a string, got {value!r}")
    return value


def _encode_date(value: Any) -> float:
    if not isinstance(value, datetime):
        raise PreferencesEncodeError(f"Expected a datetime, got {type(value).__name__}")
    return value.timestamp()


def _encode_number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise PreferencesEncodeError(f"Expected a finite number, got {value!r}")
    return float(value)


def _decode_number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"Expected a number, got {value!r}")
    return float(value)


def _encode_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise PreferencesEncodeError(f"Expected a boolean, got {value!r}")
    return value


def _decode_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise DecodeError(f"Expected a boolean, got {value!r}")
    return value


def _encode_peer_sync(value: Any) -> Dict[str, Any]:
    if not isinstance(value, PeerSyncConfiguration):
        raise PreferencesEncodeError(f"Expected PeerSyncConfiguration, got {type(value).__name__}")
    return encode_peer_sync(value)


def _encode_active_feed(value: Any) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    if not isinstance(value, ActiveFeedState):
        raise PreferencesEncodeError(f"Expected ActiveFeedState, got {type(value).__name__}")
    return encode_active_feed_state(value)


def _decode_active_feed(value: Any) -> Optional[ActiveFeedState]:
    return None if value is None else decode_active_feed_state(value)


# attribute -> (stored key, encoder, decoder)
FIELD_CODECS: Dict[str, Tuple[str, Callable[[Any], Any], Callable[[Any], Any]]] = {
    'baby_name': ('babyName', _encode_str, _decode_str),
    'due_date': ('dueDate', _encode_date, parse_timestamp),
    'birth_date': ('birthDate', _encode_date, parse_timestamp),
    'birth_weight': ('birthWeight', _encode_number, _decode_number),
    'birth_height': ('birthHeight', _encode_number, _decode_number),
    'allow_broadcasting': ('allowBroadcasting', _encode_bool, _decode_bool),
    'device_name': ('deviceName', _encode_str, _decode_str),
    'peer_sync': ('peerSync', _encode_peer_sync, decode_peer_sync),
    'active_feed': ('activeFeed', _encode_active_feed, _decode_active_feed),
}


class PreferencesStore:
    """
    Observable preferences with write-through JSON persistence.

    With storage_path=None, or with the preferences_persistence feature
    disabled, the store keeps everything in memory.
    """

    def __init__(self, storage_path: Optional[Path] = None, clock: Optional[NowProvider] = None,
                 config: Optional[Dict[str, Any]] = None):
        self.clock = clock or SystemClock()
        self.config = config or {}
        self.storage_path = Path(storage_path) if storage_path else None
        if self.storage_path and not feature_enabled(self.config, 'preferences_persistence'):
            logger.info("Preferences persistence disabled; keeping preferences in memory")
            self.storage_path = None

        self.preferences = Preferences.defaults(self.clock.now())
        self._stored: Dict[str, Any] = {}
        self._observers: List[Observer] = []
        self._transaction_active = False

        if self.storage_path and self.storage_path.exists():
            self._load_from_disk()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load_from_disk(self):
        try:
            with open(self.storage_path, 'r') as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read preferences from {self.storage_path}: {e}")
            preferences_logger.warning("Preferences file unreadable, using defaults",
                                       path=str(self.storage_path), error=str(e))
            return

        if not isinstance(raw, dict):
            logger.warning(f"Preferences file {self.storage_path} is not an object, using defaults")
            return

        for attr, (key, _, decoder) in FIELD_CODECS.items():
            if key not in raw:
                continue
            try:
                value = decoder(raw[key])
            except DecodeError as e:
                logger.warning(f"Ignoring stored preference '{key}': {e}")
                preferences_logger.warning("Stored preference invalid, using default",
                                           key=key, error=str(e))
                continue
            if isinstance(value, datetime):
                value = self._match_clock(value)
            setattr(self.preferences, attr, value)
            self._stored[key] = raw[key]

        # Stores written before peer sync existed inherit the broadcast opt-out
        if 'peerSync' not in raw and raw.get('allowBroadcasting') is False:
            self.preferences.peer_sync = PeerSyncConfiguration(is_enabled=False, can_send=False)
            self._stored['peerSync'] = encode_peer_sync(self.preferences.peer_sync)

        logger.debug(f"Loaded preferences from {self.storage_path}")

    def _match_clock(self, value: datetime) -> datetime:
        """Epoch dates decode as UTC; a naive clock gets them back as naive local time."""
        if value.tzinfo is not None and self.clock.now().tzinfo is None:
            return value.astimezone().replace(tzinfo=None)
        return value

    @property
    def has_birth_date(self) -> bool:
        """True once a birth date has been loaded or set, rather than defaulted."""
        return 'birthDate' in self._stored

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self):
        """Restores the in-memory preferences if the block raises."""
        if self._transaction_active:
            yield
            return

        self._transaction_active = True
        backup = replace(self.preferences)
        stored_backup = dict(self._stored)
        try:
            yield
        except Exception as e:
            logger.error(f"Transaction failed, rolling back: {e}")
            self.preferences = backup
            self._stored = stored_backup
            raise
        finally:
            self._transaction_active = False

    def _save_to_disk(self):
        if not self.storage_path:
            return
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.storage_path.with_suffix(self.storage_path.suffix + '.tmp')
        try:
            with open(temp_path, 'w') as f:
                json.dump(self._stored, f, indent=2, default=str)
            os.replace(temp_path, self.storage_path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update(self, **changes) -> Dict[str, Any]:
        """
        Set one or more preferences.

        Values that cannot be encoded are rejected and logged; the old value
        stays in place. Returns the changes that were applied.

        Raises:
            KeyError: for a name that is not a preference
        """
        applied = {}
        for attr, value in changes.items():
            if attr not in FIELD_CODECS:
                raise KeyError(f"Unknown preference '{attr}'")
            key, encoder, _ = FIELD_CODECS[attr]

            try:
                encoded = encoder(value)
            except PreferencesEncodeError as e:
                logger.error(f"Rejected value for '{attr}': {e}")
                preferences_logger.error("Preference encode failed, keeping previous value",
                                         key=attr, error=str(e))
                continue

            old = getattr(self.preferences, attr)
            try:
                with self.transaction():
                    setattr(self.preferences, attr, value)
                    self._stored[key] = encoded
                    self._save_to_disk()
            except OSError as e:
                preferences_logger.error("Preference write failed, keeping previous value",
                                         key=attr, error=str(e))
                continue

            applied[attr] = value
            self._notify(attr, old, value)
        return applied

    def reset_all(self):
        """Restore every profile value to its default; peer sync and the active feed are kept."""
        defaults = Preferences.defaults(self.clock.now())
        self.update(**{
            attr: getattr(defaults, attr)
            for attr in ('baby_name', 'due_date', 'birth_date', 'birth_weight',
                         'birth_height', 'allow_broadcasting', 'device_name')
        })

    def save_active_feed(self, state: ActiveFeedState):
        self.update(active_feed=state)

    def clear_active_feed(self):
        self.update(active_feed=None)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """Register callback(key, old, new); returns a function that unregisters it."""
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _notify(self, key: str, old: Any, new: Any):
        for callback in list(self._observers):
            callback(key, old, new)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self.preferences, f.name) for f in fields(Preferences)}
