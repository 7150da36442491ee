"""
Tests for duration statistics: averages, groupings, trend, stability, tips.
"""

import pytest
from datetime import datetime, timedelta

from feedstats.analysis.averaging import mean, recency_weight, weighted_mean
from feedstats.analysis.duration_stats import DurationStatsService
from feedstats.models import (
    AverageDurationGrouping,
    Breast,
    DurationTrend,
    OutlierPolicy,
    Scenario,
    TimeOfDaySlot,
    TimeWindow,
)

EVENING = datetime(2024, 1, 1, 22, 0)


@pytest.fixture
def service(env):
    return DurationStatsService(env)


class TestAveraging:
    """Mean helpers shared by the services."""

    def test_mean_of_empty_is_zero(self):
        assert mean([]) == 0.0

    def test_recency_weight_halves_each_half_life(self):
        assert recency_weight(0, 24) == pytest.approx(1.0)
        assert recency_weight(24 * 3600, 24) == pytest.approx(0.5)
        assert recency_weight(48 * 3600, 24) == pytest.approx(0.25)

    def test_weighted_mean(self):
        assert weighted_mean([100, 300], [0, 24 * 3600], 24) == pytest.approx(250 / 1.5)

    @pytest.mark.parametrize("half_life", [None, 0, -3])
    def test_weighted_mean_without_half_life(self, half_life):
        assert weighted_mean([100, 300], [0, 24 * 3600], half_life) == pytest.approx(200.0)


class TestAverageDurations:
    """Overall and grouped duration averages."""

    @pytest.mark.e2e
    @pytest.mark.critical
    def test_time_of_day_grouping(self, service, make_feed):
        """A 120 s morning feed and a 300 s evening feed give two groups in display order."""
        feeds = [
            make_feed(datetime(2024, 1, 1, 19, 0), 300),
            make_feed(datetime(2024, 1, 1, 8, 0), 120),
        ]
        overall, groups = service.average_durations(
            feeds, TimeWindow.days(1), AverageDurationGrouping.TIME_OF_DAY, now=EVENING)

        assert overall == pytest.approx(210.0)
        assert [(g.label, g.average, g.count) for g in groups] == [
            ("Morning", pytest.approx(120.0), 1),
            ("Evening", pytest.approx(300.0), 1),
        ]

    @pytest.mark.e2e
    @pytest.mark.critical
    def test_iqr_drops_outlier_in_group(self, service, make_feed):
        """Durations [10, 11, 12, 1000] on one side: the group keeps three near 11."""
        feeds = [
            make_feed(datetime(2024, 1, 1, 8 + i, 0), seconds, breast=Breast.LEFT)
            for i, seconds in enumerate([10, 11, 12, 1000])
        ]
        overall, groups = service.average_durations(
            feeds, TimeWindow.days(1), AverageDurationGrouping.BREAST, OutlierPolicy.EXCLUDE_IQR, now=EVENING)

        assert len(groups) == 1
        assert groups[0].label == "Left"
        assert groups[0].count == 3
        assert 9 < groups[0].average < 13
        assert overall == pytest.approx(11.0)

    def test_include_all_keeps_outlier(self, service, make_feed):
        feeds = [make_feed(datetime(2024, 1, 1, 8 + i, 0), s) for i, s in enumerate([10, 11, 12, 1000])]
        overall, _ = service.average_durations(
            feeds, TimeWindow.days(1), outlier_policy=OutlierPolicy.INCLUDE_ALL, now=EVENING)

        assert overall == pytest.approx(258.25)

    def test_breast_groups_sorted_by_label(self, service, make_feed):
        feeds = [
            make_feed(datetime(2024, 1, 1, 9), 400, breast=Breast.RIGHT),
            make_feed(datetime(2024, 1, 1, 10), 200, breast=Breast.LEFT),
        ]
        _, groups = service.average_durations(feeds, TimeWindow.days(1), AverageDurationGrouping.BREAST,
                                              now=EVENING)

        assert [g.label for g in groups] == ["Left", "Right"]

    def test_unit_less_sessions_do_not_count(self, service, make_feed):
        feeds = [
            make_feed(datetime(2024, 1, 1, 9), 400),
            make_feed(datetime(2024, 1, 1, 10), 9000, units=[]),
        ]
        overall, _ = service.average_durations(feeds, TimeWindow.days(1), now=EVENING)

        assert overall == pytest.approx(400.0)

    def test_open_and_out_of_window_sessions_ignored(self, service, make_feed):
        feeds = [
            make_feed(datetime(2024, 1, 1, 9), 400),
            make_feed(datetime(2024, 1, 1, 21), 600, completed=False),
            make_feed(datetime(2023, 12, 31, 9), 900),
        ]
        overall, _ = service.average_durations(feeds, TimeWindow.days(1), now=EVENING)

        assert overall == pytest.approx(400.0)

    def test_empty_input(self, service):
        assert service.average_durations([], TimeWindow.days(7)) == (0.0, [])

    def test_recency_weighting(self, service, make_feed):
        feeds = [
            make_feed(EVENING, 100),
            make_feed(EVENING - timedelta(hours=24), 300),
        ]
        overall, _ = service.average_durations(
            feeds, TimeWindow.days(2), outlier_policy=OutlierPolicy.INCLUDE_ALL,
            recency_half_life_hours=24, now=EVENING)

        assert overall == pytest.approx(250 / 1.5)

    def test_recency_toggle_off(self, env, make_feed, mock_feature_manager):
        mock_feature_manager.is_enabled.side_effect = lambda name: name != 'recency_weighting'
        service = DurationStatsService(env, {'feature_manager': mock_feature_manager})
        feeds = [make_feed(EVENING, 100), make_feed(EVENING - timedelta(hours=24), 300)]

        overall, _ = service.average_durations(
            feeds, TimeWindow.days(2), outlier_policy=OutlierPolicy.INCLUDE_ALL,
            recency_half_life_hours=24, now=EVENING)

        assert overall == pytest.approx(200.0)

    def test_night_scenario_remaps_late_evening(self, service, make_feed):
        feeds = [make_feed(datetime(2024, 1, 1, 21, 30), 300)]
        now = datetime(2024, 1, 1, 23, 0)
        feeds.append(make_feed(datetime(2024, 1, 1, 22, 30), 200))

        _, groups = service.average_durations(feeds, TimeWindow.days(1), AverageDurationGrouping.TIME_OF_DAY,
                                              scenario=Scenario.NIGHT, now=now)

        assert [(g.label, g.count) for g in groups] == [("Evening", 1), ("Night", 1)]

    def test_time_of_day_buckets(self, service, make_feed):
        feeds = [make_feed(datetime(2024, 1, 1, 13), 500)]
        overall, buckets = service.average_duration_time_of_day_buckets(feeds, TimeWindow.days(1), now=EVENING)

        assert overall == pytest.approx(500.0)
        assert buckets[0].slot is TimeOfDaySlot.AFTERNOON
        assert buckets[0].total == pytest.approx(500.0)
        assert buckets[0].session_count == 1


class TestTrendAndStability:
    """Window-over-window trend, coefficient of variation and longest feed."""

    def test_duration_trend(self, service, make_feed):
        feeds = [
            make_feed(datetime(2024, 1, 1, 9), 600),
            make_feed(datetime(2023, 12, 31, 9), 400),
        ]
        trend = service.duration_trend(feeds, TimeWindow.days(1), now=EVENING)

        assert trend.current_avg == pytest.approx(600.0)
        assert trend.previous_avg == pytest.approx(400.0)
        assert trend.percent == pytest.approx(50.0)

    def test_trend_without_previous_data(self, service, make_feed):
        trend = service.duration_trend([make_feed(datetime(2024, 1, 1, 9), 600)], TimeWindow.days(1), now=EVENING)

        assert trend.previous_avg == 0.0
        assert trend.percent == 0.0

    def test_stability(self, service, make_feed):
        feeds = [make_feed(datetime(2024, 1, 1, 9), 100), make_feed(datetime(2024, 1, 1, 12), 300)]
        cv = service.duration_stability(feeds, TimeWindow.days(1), now=EVENING)

        assert cv == pytest.approx(2 ** 0.5 / 2)

    def test_stability_needs_two_samples(self, service, make_feed):
        assert service.duration_stability([make_feed(datetime(2024, 1, 1, 9), 100)],
                                          TimeWindow.days(1), now=EVENING) == 0.0

    def test_longest_feed(self, service, make_feed):
        feeds = [
            make_feed(datetime(2024, 1, 1, 9), 100),
            make_feed(datetime(2024, 1, 1, 12), 700, breast=Breast.RIGHT),
        ]
        milestone = service.longest_feed(feeds, TimeWindow.days(1), now=EVENING)

        assert milestone.value == pytest.approx(700.0)
        assert milestone.breast is Breast.RIGHT
        assert milestone.date == datetime(2024, 1, 1, 12)

    def test_longest_feed_empty(self, service):
        assert service.longest_feed([], TimeWindow.days(1), now=EVENING) is None


class TestTips:
    """Rule-based tips, capped at two."""

    def test_few_samples(self, service):
        tips = service.average_duration_tips(DurationTrend(500, 100), 0.9, Scenario.NIGHT, 2)
        assert [t.id for t in tips] == ['few']

    def test_up_and_variable(self, service):
        tips = service.average_duration_tips(DurationTrend(110, 100), 0.5, Scenario.ALL, 10)
        assert [t.id for t in tips] == ['up', 'variable']

    def test_capped_at_two(self, service):
        tips = service.average_duration_tips(DurationTrend(80, 100), 0.5, Scenario.NIGHT, 10)
        assert [t.id for t in tips] == ['down', 'variable']

    def test_night_only(self, service):
        tips = service.average_duration_tips(DurationTrend(100, 100), 0.1, Scenario.NIGHT, 10)
        assert [t.id for t in tips] == ['night']

    def test_threshold_override(self, env):
        service = DurationStatsService(env, {'trend_percent': 20.0})
        tips = service.average_duration_tips(DurationTrend(110, 100), 0.1, Scenario.ALL, 10)
        assert tips == []
