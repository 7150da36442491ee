"""
Custom exceptions for the feeding statistics engine.

Statistics never raise for thin data; these exceptions cover contract
violations in the session state machine and bad records at the edges.
"""


class FeedStatsError(Exception):
    """Base class for errors raised by feedstats."""
    pass


class InvariantViolationError(AssertionError):
    """
    Raised when a session transition is applied to the wrong entry.

    The active state's history must reference the entry being paused,
    resumed or stopped. A mismatch is a programming error in the caller,
    so this derives from AssertionError and is not meant to be caught.
    """
    pass


class StateValidationError(FeedStatsError):
    """
    Raised when an active feed state is constructed in an invalid shape.

    Every state other than ready/none must carry a feed history.
    """
    pass


class DecodeError(FeedStatsError, ValueError):
    """Raised when a stored record cannot be turned into a canonical model."""
    pass


class PreferencesEncodeError(FeedStatsError):
    """
    Raised when a preference value cannot be serialized.

    The preferences store catches this and keeps the previous value.
    """
    pass


class ConfigurationError(FeedStatsError):
    """Raised when a configuration file is unreadable or inconsistent."""
    pass
