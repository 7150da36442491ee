"""
Shared test configuration and fixtures for all tests.
Provides common test fixtures and marker definitions for the entire test suite.
"""

import uuid

import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock

from feedstats.clock import FixedClock, StatsCalendar, StatsEnvironment
from feedstats.models import Breast, BreastUnit, FeedingLogEntry


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================

def pytest_configure(config):
    """Register custom markers for test categorization."""
    # Test speed markers
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "fast: marks tests as fast-running unit tests"
    )

    # Test type markers
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "e2e: marks tests as end-to-end tests"
    )

    # Priority markers
    config.addinivalue_line(
        "markers", "critical: marks tests as critical for correctness"
    )
    config.addinivalue_line(
        "markers", "smoke: marks tests as smoke tests for basic functionality"
    )


# =============================================================================
# COMMON FIXTURES
# =============================================================================

@pytest.fixture
def base_timestamp():
    """Provide a consistent base timestamp for all tests (a Monday, noon)."""
    return datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
def fixed_clock(base_timestamp):
    """Clock frozen at the base timestamp."""
    return FixedClock(base_timestamp)


@pytest.fixture
def calendar():
    """Naive calendar with Monday-first weeks."""
    return StatsCalendar(first_weekday=0)


@pytest.fixture
def env(fixed_clock, calendar):
    """Statistics environment over the fixed clock."""
    return StatsEnvironment(clock=fixed_clock, calendar=calendar)


@pytest.fixture
def mock_feature_manager():
    """Mock FeatureManager for testing feature flags."""
    manager = MagicMock()
    manager.is_enabled.return_value = True  # Default all features to enabled
    return manager


# =============================================================================
# TEST DATA GENERATORS
# =============================================================================

@pytest.fixture
def make_feed():
    """
    Factory for completed sessions.

    make_feed(start, seconds) builds one unit on `breast`; pass units=[(breast, offset, seconds), ...]
    for multi-unit sessions, or units=[] for a unit-less envelope of `seconds`.
    """
    def build(start, seconds=600, breast=Breast.LEFT, units=None, completed=True):
        if units is None:
            unit_specs = [(breast, 0, seconds)]
        else:
            unit_specs = units

        breast_units = tuple(
            BreastUnit.between(side, start + timedelta(seconds=offset),
                               start + timedelta(seconds=offset + length))
            for side, offset, length in unit_specs
        )
        if breast_units:
            end = breast_units[-1].end_time
        else:
            end = start + timedelta(seconds=seconds)

        return FeedingLogEntry(
            id=uuid.uuid4(),
            start_time=start,
            breast=breast_units[-1].breast if breast_units else breast,
            end_time=end if completed else None,
            breast_units=breast_units if completed else (),
        )

    return build


@pytest.fixture
def daily_feeds(base_timestamp, make_feed):
    """Three feeds per day over the week before the base timestamp, alternating sides."""
    day0 = base_timestamp.replace(hour=0)
    feeds = []
    for day in range(7):
        for i, hour in enumerate((2, 9, 16)):
            start = day0 - timedelta(days=day) + timedelta(hours=hour)
            if start > base_timestamp:
                continue
            side = Breast.LEFT if (day + i) % 2 == 0 else Breast.RIGHT
            feeds.append(make_feed(start, 600 + 60 * i, breast=side))
    return feeds
