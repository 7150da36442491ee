"""Preferences persistence"""

from .preferences_store import Preferences, PreferencesStore

__all__ = ['Preferences', 'PreferencesStore']
