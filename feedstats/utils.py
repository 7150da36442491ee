"""
Utility functions for the feeding statistics engine.
Structured event logging, display formatting and config validation.
"""

import json
import sys
import time
from datetime import datetime
from typing import Any, Dict, Optional
from enum import Enum


# ============================================================================
# Logging Utilities
# ============================================================================

class LogLevel(Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"
    METRIC = "METRIC"


class StructuredLogger:
    """
    JSON-lines event log for one component (statistics, active_feed, preferences).

    Errors and warnings go to stderr, metrics to stdout. Info events are only
    written when the logger is verbose.
    """

    def __init__(self, component: str, enabled: bool = True, verbose: bool = False):
        self.component = component
        self.enabled = enabled
        self.verbose = verbose

    def _emit(self, level: LogLevel, event: str, fields: Dict[str, Any]):
        if not self.enabled:
            return
        if level is LogLevel.INFO and not self.verbose:
            return

        record = {
            "ts": datetime.now().isoformat(timespec="milliseconds"),
            "level": level.value,
            "component": self.component,
            "event": event,
        }
        record.update(fields)

        stream = sys.stdout if level is LogLevel.METRIC else sys.stderr
        print(json.dumps(record, default=str), file=stream)

    def error(self, event: str, **fields):
        self._emit(LogLevel.ERROR, event, fields)

    def warning(self, event: str, **fields):
        self._emit(LogLevel.WARNING, event, fields)

    def info(self, event: str, **fields):
        self._emit(LogLevel.INFO, event, fields)

    def metric(self, name: str, value: float, **tags):
        self._emit(LogLevel.METRIC, "metric", {"metric": name, "value": value, "tags": tags})


class PerformanceTimer:
    """Times a block and reports `<operation>_duration_ms` as a metric on exit."""

    def __init__(self, logger: StructuredLogger, operation: str, **tags):
        self.logger = logger
        self.operation = operation
        self.tags = tags
        self.elapsed_ms: Optional[float] = None
        self._started = None

    def __enter__(self):
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.perf_counter() - self._started) * 1000.0
        self.logger.metric(f"{self.operation}_duration_ms", round(self.elapsed_ms, 3),
                           failed=exc_type is not None, **self.tags)


# Global logger instances
stats_logger = StructuredLogger("statistics")
state_logger = StructuredLogger("active_feed")
preferences_logger = StructuredLogger("preferences")


def set_structured_logging(enabled: bool, verbose: bool = False):
    """Switch all module-level structured loggers on or off."""
    for logger in (stats_logger, state_logger, preferences_logger):
        logger.enabled = enabled
        logger.verbose = verbose


# ============================================================================
# Display formatting
# ============================================================================

def format_clock_time(ts: Optional[datetime]) -> str:
    """'Mon 2024-01-01 12:00'; aware values are shown in the local zone."""
    if ts is None:
        return "-"
    if ts.tzinfo is not None:
        ts = ts.astimezone()
    return ts.strftime("%a %Y-%m-%d %H:%M")


def format_duration(seconds: Optional[float]) -> str:
    """Format a duration in seconds as 'Hh MMm SSs' / 'MMm SSs'."""
    if seconds is None:
        return "-"
    total = int(round(max(0.0, seconds)))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    return f"{minutes}m {secs:02d}s"


# ============================================================================
# Configuration validation
# ============================================================================

def validate_config(config: Dict) -> tuple[bool, list[str]]:
    """
    Validate configuration structure and values.

    Returns:
        tuple: (is_valid, list_of_errors)
    """
    errors = []

    for section in ['statistics', 'outliers', 'feeding_style']:
        if section not in config:
            errors.append(f"Missing required section: [{section}]")

    if 'statistics' in config:
        stats = config['statistics']
        days = stats.get('days_back', 1)
        if not isinstance(days, int) or days < 1:
            errors.append(f"Invalid days_back: {days} (must be an integer >= 1)")
        half_life = stats.get('recency_half_life_hours')
        if half_life is not None and half_life < 0:
            errors.append(f"Invalid recency_half_life_hours: {half_life} (must be >= 0)")
        first_weekday = stats.get('first_weekday', 0)
        if not (0 <= first_weekday <= 6):
            errors.append(f"Invalid first_weekday: {first_weekday} (must be 0-6, Monday=0)")

    if 'outliers' in config:
        outliers = config['outliers']
        multiplier = outliers.get('iqr_multiplier', 1.5)
        if multiplier <= 0:
            errors.append(f"Invalid iqr_multiplier: {multiplier} (must be positive)")
        if outliers.get('min_samples_for_iqr', 4) < 1:
            errors.append("Invalid min_samples_for_iqr: must be >= 1")

    if 'feeding_style' in config:
        style = config['feeding_style']
        lower = style.get('trim_lower', 0.05)
        upper = style.get('trim_upper', 0.95)
        if not (0 <= lower < upper <= 1):
            errors.append(f"Invalid trim range: [{lower}, {upper}]")
        p = style.get('percentile_cutoff', 0.25)
        if not (0 <= p <= 1):
            errors.append(f"Invalid percentile_cutoff: {p} (must be between 0 and 1)")

    return len(errors) == 0, errors


# ============================================================================
# Export all utilities
# ============================================================================

__all__ = [
    # Logging
    'LogLevel',
    'StructuredLogger',
    'PerformanceTimer',
    'stats_logger',
    'state_logger',
    'preferences_logger',
    'set_structured_logging',

    # Configuration validation
    'validate_config',

    # Display
    'format_clock_time',
    'format_duration',
]
