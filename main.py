#!/usr/bin/env python3
"""
Breastfeeding Statistics Report
Loads logged sessions from JSON, runs every statistic and prints a summary
"""

import argparse
import dataclasses
import json
import logging
import sys
import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from feedstats.analysis.csv_generator import ReportGenerator
from feedstats.analysis.statistics import FeedingStatsService
from feedstats.clock import FixedClock, StatsCalendar, StatsEnvironment, SystemClock
from feedstats.codec import decode_entries, parse_timestamp
from feedstats.config_loader import load_config_or_default
from feedstats.database.preferences_store import PreferencesStore
from feedstats.exceptions import ConfigurationError, DecodeError
from feedstats.feature_manager import feature_enabled
from feedstats.models import FeedingLogEntry, Scenario
from feedstats.utils import (
    PerformanceTimer,
    format_clock_time,
    format_duration,
    set_structured_logging,
    stats_logger,
    validate_config,
)

logger = logging.getLogger(__name__)


def load_sessions(path: str) -> List[FeedingLogEntry]:
    """Read a JSON array of session records; undecodable records are skipped."""
    with open(path) as f:
        records = json.load(f)
    if not isinstance(records, list):
        raise DecodeError(f"{path} must contain a JSON array of sessions")
    return decode_entries(records)


def build_environment(config: Dict[str, Any], feeds: List[FeedingLogEntry],
                      now: Optional[datetime] = None) -> StatsEnvironment:
    """Fixed clock for --now, else the wall clock in whatever zone the sessions use."""
    first_weekday = config.get("statistics", {}).get("first_weekday", 0)
    aware = now.tzinfo is not None if now is not None else any(f.start_time.tzinfo for f in feeds)
    tz = datetime.now().astimezone().tzinfo if aware else None
    clock = FixedClock(now) if now is not None else SystemClock(tz)
    return StatsEnvironment(clock=clock, calendar=StatsCalendar(tz=tz, first_weekday=first_weekday))


def _json_default(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, uuid.UUID):
        return str(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def report_to_dict(report: Dict[str, Any]) -> Dict[str, Any]:
    """Plain dict view of a report; trend objects also carry delta and percent."""
    def convert(value):
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            result = {f.name: convert(getattr(value, f.name)) for f in dataclasses.fields(value)}
            for prop in ("delta", "percent"):
                if hasattr(type(value), prop) and prop not in result:
                    result[prop] = getattr(value, prop)
            return result
        if isinstance(value, (list, tuple)):
            return [convert(v) for v in value]
        if isinstance(value, dict):
            return {k: convert(v) for k, v in value.items()}
        return value

    return convert(report)


def render_text(report: Dict[str, Any]) -> str:
    """Human-readable summary of the headline figures."""
    summary = report["summary"]
    window = report["window"]
    lines = [
        "=" * 60,
        f"Feeding statistics ({window.count} {window.kind}, scenario: {report['scenario'].value})",
        f"As of {format_clock_time(report['now'])}",
        "=" * 60,
        f"Total feeding time:       {format_duration(summary.total_duration)}",
        f"Average feed (all):       {format_duration(summary.average_duration)}",
        f"Average interval (all):   {format_duration(summary.average_interval)}"
        f"  ({summary.interval_count} intervals, {summary.outlier_count} capped)",
    ]

    next_feed = report["next_feed"]
    if next_feed:
        lines.append(f"Next feed expected:       {format_clock_time(next_feed.next_feed_time)}")

    lines += [
        "",
        f"Average duration:         {format_duration(report['average_duration'])}",
    ]
    for group in report["duration_by_breast"] + report["duration_by_time_of_day"]:
        lines.append(f"  {group.label:<22}  {format_duration(group.average)}  (n={group.count})")

    trend = report["duration_trend"]
    lines += [
        f"Duration trend:           {trend.percent:+.1f}%",
        f"Duration stability (CV):  {report['duration_stability']:.2f}",
        f"Average interval:         {format_duration(report['average_interval'])}",
    ]
    for group in report["interval_by_breast"]:
        lines.append(f"  {group.label:<22}  {format_duration(group.average)}  (n={group.count})")

    longest = report["longest_feed"]
    if longest:
        lines.append(f"Longest feed:             {format_duration(longest.value)}"
                     f" on {format_clock_time(longest.date)} ({longest.breast.label})")

    per_day = report["feeds_per_day_summary"]
    lines += [
        f"Feeds per day:            {per_day.average:.1f} avg, {per_day.median:.1f} median,"
        f" {per_day.min}-{per_day.max} over {per_day.samples} days",
        "",
        f"Today:                    {format_duration(report['today'].total)}"
        f" (L {format_duration(report['today'].left_total)},"
        f" R {format_duration(report['today'].right_total)})",
        f"Pacing vs last days:      {report['pacing'].percent:+.1f}%",
    ]

    if report["tips"]:
        lines.append("")
        lines += [f"* {tip.text}" for tip in report["tips"]]

    return "\n".join(lines)


def run(args: argparse.Namespace) -> int:
    try:
        config = load_config_or_default(args.config)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    # Validate configuration
    is_valid, errors = validate_config(config)
    if not is_valid:
        print("Configuration validation failed:", file=sys.stderr)
        for error in errors:
            print(f"  - {error}", file=sys.stderr)
        return 1

    log_config = config.get("logging", {})
    logging.basicConfig(level=getattr(logging, str(log_config.get("level", "WARNING")).upper(), logging.WARNING))
    # Metrics go to stdout and would corrupt JSON output
    set_structured_logging(bool(log_config.get("structured", True)) and not args.json,
                           verbose=bool(log_config.get("verbose", False)))

    sessions_file = args.sessions or config.get("data", {}).get("sessions_file")
    if not sessions_file or not Path(sessions_file).exists():
        print(f"Error: Sessions file {sessions_file} not found", file=sys.stderr)
        return 1

    try:
        feeds = load_sessions(sessions_file)
        now = parse_timestamp(args.now) if args.now else None
    except (DecodeError, json.JSONDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    env = build_environment(config, feeds, now)

    # Preferences supply the infant's age and any in-progress feed
    age_days = args.age_days
    active_feed = None
    preferences_path = args.preferences or config.get("preferences", {}).get("storage_path")
    if preferences_path and Path(preferences_path).exists():
        store = PreferencesStore(preferences_path, clock=env.clock, config=config)
        if age_days is None and store.has_birth_date:
            age_days = store.preferences.age_days(env.resolve_now())
        if store.preferences.active_feed is not None:
            active_feed = store.preferences.active_feed.feed

    service = FeedingStatsService(env, config)
    with PerformanceTimer(stats_logger, "build_report"):
        report = service.build_report(
            feeds,
            days_back=args.days,
            rolling_hours_back=args.hours,
            scenario=Scenario(args.scenario),
            age_days=age_days,
            active_feed=active_feed,
        )

    if args.export_dir:
        if feature_enabled(config, "report_export"):
            files = ReportGenerator(Path(args.export_dir)).generate_all_csvs(report)
            logger.info(f"Exported {len(files)} CSV files to {args.export_dir}")
        else:
            logger.warning("Report export is disabled; skipping CSV export")

    if args.json:
        print(json.dumps(report_to_dict(report), indent=2, default=_json_default))
    else:
        print(render_text(report))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Breastfeeding statistics report"
    )
    parser.add_argument("--sessions", help="JSON file with an array of session records")
    parser.add_argument("--config", default="config.toml", help="Configuration file")
    parser.add_argument("--preferences", help="Preferences JSON file (birth date, active feed)")
    parser.add_argument("--days", type=int, help="Days back, including today")
    parser.add_argument("--hours", type=int, help="Rolling window in hours (overrides --days)")
    parser.add_argument("--scenario", choices=[s.value for s in Scenario], default=Scenario.ALL.value,
                        help="Restrict to day or night feeds")
    parser.add_argument("--age-days", type=int, help="Infant age in days for interval caps")
    parser.add_argument("--now", help="Evaluate as of this ISO timestamp")
    parser.add_argument("--export-dir", help="Write CSV files to this directory")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
