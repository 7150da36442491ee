"""
Integration tests for the statistics facade and CSV export.
"""

import pandas as pd
import pytest
from datetime import datetime

from feedstats.analysis.csv_generator import ReportGenerator
from feedstats.analysis.statistics import FeedingStatsService, service_config
from feedstats.config_loader import ConfigLoader, default_config
from feedstats.models import Scenario, TimeWindow

REPORT_KEYS = {
    'now', 'window', 'scenario', 'summary', 'next_feed', 'average_duration', 'duration_by_breast',
    'duration_by_time_of_day', 'duration_trend', 'duration_stability', 'longest_feed', 'tips',
    'average_interval', 'interval_by_breast', 'interval_trend', 'feeds_per_day', 'feeds_per_day_summary',
    'feeds_per_day_trend', 'daily_totals', 'daily_total_trend', 'weekly_totals', 'monthly_totals',
    'today', 'today_breakdown', 'pacing', 'feeding_styles',
}


@pytest.fixture
def service(env):
    return FeedingStatsService(env, default_config())


@pytest.fixture
def report(service, daily_feeds):
    return service.build_report(daily_feeds)


class TestFacade:
    """Window resolution and config plumbing."""

    def test_resolved_window(self):
        assert FeedingStatsService.resolved_window(7) == TimeWindow.days(7)
        assert FeedingStatsService.resolved_window(7, 6) == TimeWindow.hours(6)

    def test_service_config_flattens_sections(self):
        config = ConfigLoader.from_dict({"tips": {"trend_percent": 20.0}})
        flat = service_config(config, 'outliers', 'tips')

        assert flat['trend_percent'] == 20.0
        assert flat['iqr_multiplier'] == 1.5
        assert flat['feature_manager'] is config['feature_manager']

    def test_overrides_reach_services(self, env):
        config = ConfigLoader.from_dict({"outliers": {"iqr_multiplier": 3.0}})
        service = FeedingStatsService(env, config)

        assert service.durations.outliers.iqr_multiplier == 3.0
        assert service.summary.outliers.iqr_multiplier == 3.0

    def test_delegates_with_days_back(self, service, daily_feeds, base_timestamp):
        overall, _ = service.average_durations(daily_feeds, 1, now=base_timestamp)
        assert overall == pytest.approx(630.0)


class TestBuildReport:
    """One pass over every statistic."""

    @pytest.mark.integration
    def test_keys(self, report):
        assert set(report) == REPORT_KEYS

    @pytest.mark.integration
    def test_uses_profile_window(self, report, base_timestamp):
        assert report['now'] == base_timestamp
        assert report['window'] == TimeWindow.days(7)
        assert report['scenario'] is Scenario.ALL

    def test_figures(self, report):
        assert report['summary'].interval_count == 19
        assert report['summary'].total_duration == pytest.approx(6 * 1980 + 1260)
        assert [p.count for p in report['feeds_per_day']] == [3, 3, 3, 3, 3, 3, 2]
        assert report['today'].completed_count == 2
        assert len(report['feeding_styles']) == 20

    def test_rolling_window(self, service, daily_feeds):
        report = service.build_report(daily_feeds, rolling_hours_back=12)
        assert report['window'] == TimeWindow.hours(12)

    def test_responsive_profile(self, env, daily_feeds):
        service = FeedingStatsService(env, ConfigLoader.from_dict({"profile": "responsive"}))
        report = service.build_report(daily_feeds)

        assert report['window'] == TimeWindow.days(3)
        assert len(report['feeds_per_day']) == 3

    def test_empty_history(self, service):
        report = service.build_report([])

        assert report['next_feed'] is None
        assert report['longest_feed'] is None
        assert report['average_duration'] == 0.0


class TestReportGenerator:
    """CSV export of a built report."""

    @pytest.mark.integration
    def test_generate_all_csvs(self, report, tmp_path):
        files = ReportGenerator(tmp_path / "out").generate_all_csvs(report)

        assert set(files) == {'feeds_per_day', 'daily_totals', 'weekly_totals',
                              'monthly_totals', 'feeding_styles', 'summary'}
        assert all(path.exists() for path in files.values())

    def test_daily_totals_csv(self, report, tmp_path):
        files = ReportGenerator(tmp_path).generate_all_csvs(report)
        df = pd.read_csv(files['daily_totals'])

        assert list(df.columns) == ['date', 'total_seconds', 'total_minutes']
        assert len(df) == 7
        assert df['total_minutes'].iloc[-1] == pytest.approx(21.0)

    def test_feeding_styles_oldest_first(self, report, tmp_path):
        files = ReportGenerator(tmp_path).generate_all_csvs(report)
        df = pd.read_csv(files['feeding_styles'], parse_dates=['start_time'])

        assert df['start_time'].is_monotonic_increasing
        assert df['start_time'].iloc[0] == datetime(2023, 12, 26, 2)

    def test_summary_csv(self, report, tmp_path):
        df = ReportGenerator(tmp_path).summary_frame(report)
        metrics = dict(zip(df['metric'], df['value']))

        assert metrics['interval_count'] == 19
