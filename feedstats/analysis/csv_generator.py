"""
CSV Report Module

Writes the series and summary figures of a statistics report to CSV files.
"""

from pathlib import Path
from typing import Any, Dict
import pandas as pd
import logging


class ReportGenerator:
    """Generates CSV files for a report built by FeedingStatsService.build_report"""

    def __init__(self, output_dir: Path):
        """
        Initialize report generator

        Args:
            output_dir: Directory for CSV output files
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger(__name__)

    def generate_all_csvs(self, report: Dict[str, Any]) -> Dict[str, Path]:
        """
        Generate all CSV output files

        Args:
            report: Result dict of FeedingStatsService.build_report

        Returns:
            Dictionary mapping file type to file path
        """
        files = {}

        files['feeds_per_day'] = self._write(
            self.feeds_per_day_frame(report['feeds_per_day']), 'feeds_per_day.csv')
        files['daily_totals'] = self._write(
            self.daily_totals_frame(report['daily_totals']), 'daily_totals.csv')
        files['weekly_totals'] = self._write(
            self.weekly_totals_frame(report['weekly_totals']), 'weekly_totals.csv')
        files['monthly_totals'] = self._write(
            self.monthly_totals_frame(report['monthly_totals']), 'monthly_totals.csv')
        files['feeding_styles'] = self._write(
            self.feeding_styles_frame(report['feeding_styles']), 'feeding_styles.csv')
        files['summary'] = self._write(self.summary_frame(report), 'summary.csv')

        self.logger.info(f"Generated {len(files)} CSV files in {self.output_dir}")
        return files

    def _write(self, df: pd.DataFrame, filename: str) -> Path:
        output_path = self.output_dir / filename
        df.to_csv(output_path, index=False)
        self.logger.debug(f"Saved {filename}: {len(df)} rows")
        return output_path

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    @staticmethod
    def feeds_per_day_frame(points) -> pd.DataFrame:
        return pd.DataFrame(
            [{'date': p.date, 'count': p.count} for p in points],
            columns=['date', 'count'],
        )

    @staticmethod
    def daily_totals_frame(points) -> pd.DataFrame:
        df = pd.DataFrame(
            [{'date': p.date, 'total_seconds': p.total} for p in points],
            columns=['date', 'total_seconds'],
        )
        df['total_minutes'] = (df['total_seconds'] / 60.0).round(1)
        return df

    @staticmethod
    def weekly_totals_frame(points) -> pd.DataFrame:
        df = pd.DataFrame(
            [{'week_start': p.week_start, 'total_seconds': p.total} for p in points],
            columns=['week_start', 'total_seconds'],
        )
        df['total_hours'] = (df['total_seconds'] / 3600.0).round(2)
        return df

    @staticmethod
    def monthly_totals_frame(points) -> pd.DataFrame:
        df = pd.DataFrame(
            [{'month_start': p.month_start, 'total_seconds': p.total} for p in points],
            columns=['month_start', 'total_seconds'],
        )
        df['total_hours'] = (df['total_seconds'] / 3600.0).round(2)
        return df

    @staticmethod
    def feeding_styles_frame(items) -> pd.DataFrame:
        rows = [
            {
                'id': str(item.id),
                'start_time': item.entry.start_time,
                'end_time': item.entry.end_time,
                'breast': item.entry.breast.value,
                'duration_seconds': item.entry.effective_duration,
                'units': len(item.entry.breast_units),
                'type': item.type.value,
            }
            for item in items
        ]
        df = pd.DataFrame(rows, columns=['id', 'start_time', 'end_time', 'breast',
                                         'duration_seconds', 'units', 'type'])
        # Oldest first reads naturally in a spreadsheet
        return df.sort_values('start_time').reset_index(drop=True)

    @staticmethod
    def summary_frame(report: Dict[str, Any]) -> pd.DataFrame:
        summary = report['summary']
        next_feed = report.get('next_feed')
        per_day = report['feeds_per_day_summary']
        rows = [
            ('total_duration_seconds', summary.total_duration),
            ('average_duration_seconds', summary.average_duration),
            ('average_interval_seconds', summary.average_interval),
            ('interval_count', summary.interval_count),
            ('capped_interval_count', summary.outlier_count),
            ('window_average_duration_seconds', report['average_duration']),
            ('window_average_interval_seconds', report['average_interval']),
            ('duration_trend_percent', report['duration_trend'].percent),
            ('duration_stability_cv', report['duration_stability']),
            ('feeds_per_day_average', per_day.average),
            ('feeds_per_day_median', per_day.median),
            ('today_total_seconds', report['today'].total),
            ('pacing_percent', report['pacing'].percent),
            ('next_feed_time', next_feed.next_feed_time if next_feed else None),
        ]
        return pd.DataFrame(rows, columns=['metric', 'value'])
