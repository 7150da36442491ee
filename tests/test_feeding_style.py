"""
Tests for snack / cluster / normal classification.
"""

import pytest
from datetime import datetime, timedelta

from feedstats.analysis.feeding_style import FeedingStyleService
from feedstats.models import FeedingEntryType

SNACK = FeedingEntryType.SNACK
CLUSTER = FeedingEntryType.CLUSTER
NORMAL = FeedingEntryType.NORMAL


def types_of(feeds, config=None):
    return [item.type for item in FeedingStyleService(feeds, config).feeds_with_types()]


@pytest.fixture
def evening_cluster(make_feed):
    """A morning feed then three hourly feeds from 15:00, all 15 minutes long."""
    return [make_feed(datetime(2024, 1, 1, h), 900) for h in (9, 15, 16, 17)]


class TestClassification:
    """Labels with sparse data, where fixed floors apply."""

    def test_empty(self):
        assert FeedingStyleService([]).feeds_with_types() == []

    def test_results_are_newest_first(self, make_feed):
        feeds = [make_feed(datetime(2024, 1, 1, h), 900) for h in (9, 13, 17)]
        items = FeedingStyleService(feeds).feeds_with_types()

        assert [item.entry.start_time.hour for item in items] == [17, 13, 9]

    def test_short_duration_is_snack(self, make_feed):
        feeds = [
            make_feed(datetime(2024, 1, 1, 9), 900),
            make_feed(datetime(2024, 1, 1, 13), 300),
            make_feed(datetime(2024, 1, 1, 17), 900),
        ]
        assert types_of(feeds) == [NORMAL, SNACK, NORMAL]

    @pytest.mark.critical
    def test_cluster_run(self, evening_cluster):
        assert types_of(evening_cluster) == [CLUSTER, CLUSTER, CLUSTER, NORMAL]

    def test_cluster_needs_enough_sessions(self, evening_cluster):
        assert CLUSTER not in types_of(evening_cluster, {'cluster_min_sample': 5})

    def test_short_gap_does_not_chain(self, evening_cluster):
        """With clusters off only the first feed of the tight run is a snack."""
        assert types_of(evening_cluster, {'cluster_min_sample': 99}) == [NORMAL, SNACK, NORMAL, NORMAL]

    def test_boundary_tolerance(self, make_feed):
        """A duration within a second of the cutoff stays normal despite a short gap."""
        feeds = [
            make_feed(datetime(2024, 1, 1, 9), 900),
            make_feed(datetime(2024, 1, 1, 9, 30), 600.5),
        ]
        assert types_of(feeds) == [NORMAL, NORMAL]

    def test_type_for(self, make_feed):
        feeds = [make_feed(datetime(2024, 1, 1, 9), 900), make_feed(datetime(2024, 1, 1, 13), 300)]
        service = FeedingStyleService(feeds)

        assert service.type_for(feeds[1]) is SNACK
        assert service.type_for(make_feed(datetime(2024, 1, 2, 9))) is NORMAL


class TestToggles:
    """Feature switches for classification."""

    def test_classification_off(self, evening_cluster, mock_feature_manager):
        mock_feature_manager.is_enabled.return_value = False
        assert types_of(evening_cluster, {'feature_manager': mock_feature_manager}) == [NORMAL] * 4

    def test_cluster_detection_off(self, evening_cluster, mock_feature_manager):
        mock_feature_manager.is_enabled.side_effect = lambda name: name != 'cluster_detection'
        labels = types_of(evening_cluster, {'feature_manager': mock_feature_manager})

        assert labels == [NORMAL, SNACK, NORMAL, NORMAL]


class TestPercentileTrimmed:
    """Trimmed percentile used for personal cutoffs."""

    @pytest.fixture
    def service(self):
        return FeedingStyleService([])

    def test_small_samples(self, service):
        assert service.percentile_trimmed([4.0, 2.0], 0.25) == 2.0
        assert service.percentile_trimmed([], 0.25) == service.snack_duration_floor

    def test_index_rounds_half_up(self, service):
        assert service.percentile_trimmed([5.0, 1.0, 3.0], 0.5) == 3.0

    def test_tails_trimmed(self, service):
        values = [float(v) for v in range(1, 21)]
        assert service.percentile_trimmed(values, 0.25) == 6.0

    def test_personal_cutoff_with_enough_samples(self, make_feed):
        feeds = [make_feed(datetime(2024, 1, 1, h), 600 + 60 * h) for h in range(4)]
        service = FeedingStyleService(feeds, {'min_sample': 3})

        assert service.snack_duration_cutoff([f.effective_duration for f in feeds]) == pytest.approx(660.0)


class TestPersonalCutoffs:
    """Labels once there are enough samples for personal percentiles."""

    @pytest.fixture
    def steady_history(self, make_feed):
        """
        22 feeds four hours apart, except two back-to-back 2.5 h gaps near the end.

        Every feed lasts 20 minutes except the one closing the second short
        gap, which lasts 25 minutes, so only the gap rule can label it.
        """
        gaps = [4.0] * 18 + [2.5, 2.5, 4.0]
        start = datetime(2024, 1, 1)
        feeds = [make_feed(start, 1200)]
        for i, hours in enumerate(gaps, start=1):
            start = start + timedelta(hours=hours)
            feeds.append(make_feed(start, 1500 if i == 20 else 1200))
        return feeds

    def test_short_gap_is_snack_without_chain_check(self, steady_history):
        """With plenty of gaps a short gap alone marks a snack, even after another short gap."""
        labels = types_of(steady_history)

        assert labels[1] is SNACK
        assert labels.count(SNACK) == 1
        assert CLUSTER not in labels
