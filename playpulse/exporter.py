import csv
import io
import math
from datetime import datetime
from typing import Iterable, Optional

from .models import AnalyticsSummary, PlayEvent, TopItem, YearlyReport

EVENT_HEADERS = [
    "Title",
    "Type",
    "Date",
    "Duration (minutes)",
    "User",
    "Player",
    "Show/Series",
    "Season",
]


def _date(value: Optional[datetime]) -> str:
    return value.date().isoformat() if value else ""


def _minutes(value: Optional[float]) -> str:
    if value is None or not math.isfinite(value):
        return "0"
    return f"{value:g}"


def _write(rows: Iterable[list]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def events_to_csv(events: Iterable[PlayEvent]) -> str:
    """Flat CSV of play events, one row per event."""
    rows: list[list] = [EVENT_HEADERS]
    for event in events:
        rows.append(
            [
                event.title,
                event.media_kind.value,
                _date(event.timestamp),
                _minutes(event.duration_minutes),
                event.user or "",
                event.player or "",
                event.series_title or "",
                event.season_title or "",
            ]
        )
    return _write(rows)


def _top_rows(title: str, items: list[TopItem]) -> list[list]:
    rows: list[list] = [[title], ["Name", "Plays", "Total Duration (minutes)", "Last Watched"]]
    for item in items:
        rows.append(
            [item.name, item.count, round(item.total_duration_minutes), _date(item.last_watched)]
        )
    rows.append([])
    return rows


def summary_to_csv(summary: AnalyticsSummary, limit: int = 20) -> str:
    """Sectioned CSV of summary totals, top lists and distributions."""
    rows: list[list] = [
        ["PlayPulse Analytics Summary"],
        [],
        ["Total Plays", summary.total_plays],
        ["Total Duration (hours)", summary.total_duration_hours],
        [],
    ]
    rows.extend(_top_rows("Top Movies", summary.top_movies[:limit]))
    rows.extend(_top_rows("Top Shows", summary.top_shows[:limit]))
    rows.append(["Plays by Hour"])
    rows.append(["Hour", "Count"])
    rows.extend([bucket.hour, bucket.count] for bucket in summary.plays_by_hour)
    rows.append([])
    rows.append(["Plays by Day of Week"])
    rows.append(["Day", "Count"])
    rows.extend([bucket.day, bucket.count] for bucket in summary.plays_by_day_of_week)
    return _write(rows)


def yearly_report_to_csv(report: YearlyReport) -> str:
    rows: list[list] = [
        [f"PlayPulse Yearly Report - {report.year}"],
        [],
        ["Total Hours", report.total_hours],
        ["Total Plays", report.total_plays],
        ["Active Days", report.active_days],
        ["Longest Streak", f"{report.longest_streak} days"],
        ["Busiest Month", report.busiest_month],
        [],
        ["Monthly Breakdown"],
        ["Month", "Total Hours", "Top Item", "Top Item Type", "Play Count", "Binge Score"],
    ]
    for month in report.monthly_breakdown:
        rows.append(
            [
                month.month_name,
                month.total_hours,
                month.top_item,
                month.top_item_type.value,
                month.play_count,
                month.binge_score,
            ]
        )
    rows.append([])
    rows.append(["Daily Activity"])
    rows.append(["Date", "Count"])
    rows.extend([day.date, day.count] for day in report.daily_activity)
    return _write(rows)
