"""Aggregation engine: summaries, yearly reports and heatmaps over play events.

Every function here is a pure pass over its input. Nothing is cached and no
input or output is retained after a call returns.

Ranking ties (equal play counts in top lists, equal counts for a month's top
item, equal hours for the busiest month) keep first-seen order: accumulators
are insertion-ordered dicts and Python's sort is stable, so among equal counts
the key encountered first in the input wins.
"""

import calendar
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional

from .models import (
    AnalyticsSummary,
    DailyActivity,
    DayCount,
    HeatmapPoint,
    HourCount,
    KindCount,
    MediaKind,
    MonthCount,
    MonthlyReport,
    PlayEvent,
    TopItem,
    UserComparison,
    YearlyReport,
)

TOP_ITEMS_LIMIT = 50
MAX_BINGE_SCORE = 10.0
UNKNOWN_SHOW = "Unknown Show"
NO_TOP_ITEM = "None"
NO_BUSIEST_MONTH = "N/A"
DAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


@dataclass
class _Tally:
    name: str
    count: int = 0
    minutes: float = 0.0
    last_watched: Optional[datetime] = None

    def add(self, minutes: float, timestamp: Optional[datetime]) -> None:
        self.count += 1
        self.minutes += minutes
        if timestamp is not None and (
            self.last_watched is None or timestamp > self.last_watched
        ):
            self.last_watched = timestamp

    def to_top_item(self) -> TopItem:
        return TopItem(
            name=self.name,
            count=self.count,
            total_duration_minutes=self.minutes,
            last_watched=self.last_watched,
        )


@dataclass
class _ViewerTally:
    plays: int = 0
    minutes: float = 0.0
    movies: int = 0
    episodes: int = 0
    last_watched: Optional[datetime] = None
    titles: dict[str, int] = field(default_factory=dict)


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def _duration(event: PlayEvent) -> float:
    """Usable watch minutes; missing, NaN, infinite or negative count as 0."""
    value = event.duration_minutes
    if value is None or not math.isfinite(value) or value < 0:
        return 0.0
    return value


def _whole_hours(minutes: float) -> int:
    hours = _round_half_up(minutes / 60)
    if not math.isfinite(hours):
        return 0
    return int(hours)


def _weekday(timestamp: datetime) -> int:
    """Day of week with 0 = Sunday."""
    return timestamp.isoweekday() % 7


def _month_key(year: int, month: int) -> str:
    return f"{year}-{month:02d}"


def _ranked(counts: dict[str, int]) -> list[tuple[str, int]]:
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)


def resolve_grouping_key(event: PlayEvent) -> Optional[str]:
    """Map an event to the identity it is ranked under.

    Episodes group under their show: series title, then season title, then
    the episode's own title. Movies, tracks and unknown kinds group under
    their own title. Returns None when there is nothing to group by.

    The same resolver keys top lists, monthly top items and per-user top
    titles, so an episode without a series title falls back to its season
    title everywhere.
    """
    if event.media_kind is MediaKind.EPISODE:
        return event.series_title or event.season_title or event.title or UNKNOWN_SHOW
    return event.title or None


def compute_summary(
    events: Iterable[PlayEvent], limit: int = TOP_ITEMS_LIMIT
) -> AnalyticsSummary:
    """Compute totals, top lists and time distributions.

    Events without a timestamp still count towards the totals, the media
    kind distribution and the top lists, but not towards hour, day or month
    buckets.
    """
    total_plays = 0
    total_minutes = 0.0
    movies: dict[str, _Tally] = {}
    shows: dict[str, _Tally] = {}
    hours = [0] * 24
    days = [0] * 7
    months: dict[str, int] = {}
    kinds = {kind: 0 for kind in MediaKind}

    for event in events:
        minutes = _duration(event)
        total_plays += 1
        total_minutes += minutes
        kinds[event.media_kind] += 1

        key = resolve_grouping_key(event)
        if event.media_kind is MediaKind.MOVIE and key:
            movies.setdefault(key, _Tally(key)).add(minutes, event.timestamp)
        elif event.media_kind is MediaKind.EPISODE:
            shows.setdefault(key, _Tally(key)).add(minutes, event.timestamp)

        timestamp = event.timestamp
        if timestamp is None:
            continue
        hours[timestamp.hour] += 1
        days[_weekday(timestamp)] += 1
        month = _month_key(timestamp.year, timestamp.month)
        months[month] = months.get(month, 0) + 1

    def top(tallies: dict[str, _Tally]) -> list[TopItem]:
        ranked = sorted(tallies.values(), key=lambda t: t.count, reverse=True)
        return [tally.to_top_item() for tally in ranked[:limit]]

    return AnalyticsSummary(
        total_plays=total_plays,
        total_duration_hours=_whole_hours(total_minutes),
        top_movies=top(movies),
        top_shows=top(shows),
        plays_by_hour=[HourCount(hour=hour, count=count) for hour, count in enumerate(hours)],
        plays_by_day_of_week=[
            DayCount(day=label, count=count) for label, count in zip(DAY_LABELS, days)
        ],
        plays_by_month=[
            MonthCount(month=month, count=months[month]) for month in sorted(months)
        ],
        media_type_distribution=[
            KindCount(name=kind.value, value=count) for kind, count in kinds.items() if count > 0
        ],
    )


def binge_score(episodes: int, active_days: int) -> float:
    """Episodes per active day, capped at 10 and rounded to one decimal."""
    if active_days <= 0:
        return 0.0
    return min(MAX_BINGE_SCORE, _round_half_up(episodes / active_days, 1))


def longest_streak(days: Iterable[date]) -> int:
    """Length of the longest run of consecutive calendar days."""
    longest = 0
    current = 0
    previous: Optional[date] = None
    for day in sorted(set(days)):
        if previous is not None and (day - previous).days == 1:
            current += 1
        else:
            current = 1
        longest = max(longest, current)
        previous = day
    return longest


def _build_monthly_report(year: int, month: int, items: list[PlayEvent]) -> MonthlyReport:
    counts: dict[str, int] = {}
    kinds: dict[str, MediaKind] = {}
    active_days: set[date] = set()
    episodes = 0
    minutes = 0.0

    for event in items:
        minutes += _duration(event)
        active_days.add(event.timestamp.date())
        if event.media_kind is MediaKind.EPISODE:
            episodes += 1
        key = resolve_grouping_key(event)
        if key:
            counts[key] = counts.get(key, 0) + 1
            kinds.setdefault(key, event.media_kind)

    ranked = _ranked(counts)
    top_item = ranked[0][0] if ranked else NO_TOP_ITEM

    return MonthlyReport(
        month_key=_month_key(year, month),
        month_name=calendar.month_name[month],
        year=year,
        total_hours=_whole_hours(minutes),
        top_item=top_item,
        top_item_type=kinds.get(top_item, MediaKind.UNKNOWN),
        play_count=len(items),
        binge_score=binge_score(episodes, len(active_days)),
    )


def _build_yearly_report(year: int, items: list[PlayEvent]) -> YearlyReport:
    grid = [[0] * 24 for _ in range(7)]
    daily: dict[date, int] = {}
    months: dict[int, list[PlayEvent]] = {}
    minutes = 0.0

    for event in items:
        timestamp = event.timestamp
        grid[_weekday(timestamp)][timestamp.hour] += 1
        day = timestamp.date()
        daily[day] = daily.get(day, 0) + 1
        months.setdefault(timestamp.month, []).append(event)
        minutes += _duration(event)

    monthly = [_build_monthly_report(year, month, months[month]) for month in sorted(months)]
    # max() keeps the first of equal values, so ties go to the earliest month
    busiest = max(monthly, key=lambda report: report.total_hours, default=None)

    return YearlyReport(
        year=year,
        total_hours=_whole_hours(minutes),
        total_plays=len(items),
        active_days=len(daily),
        longest_streak=longest_streak(daily),
        busiest_month=busiest.month_name if busiest else NO_BUSIEST_MONTH,
        monthly_breakdown=monthly,
        heatmap_data=[
            HeatmapPoint(day=day, hour=hour, value=grid[day][hour])
            for day in range(7)
            for hour in range(24)
        ],
        daily_activity=[
            DailyActivity(date=day.isoformat(), count=daily[day]) for day in sorted(daily)
        ],
    )


def compute_yearly_reports(events: Iterable[PlayEvent]) -> list[YearlyReport]:
    """Build one report per calendar year present, newest year first.

    Events without a timestamp belong to no year and are ignored entirely.
    """
    by_year: dict[int, list[PlayEvent]] = {}
    for event in events:
        if event.timestamp is None:
            continue
        by_year.setdefault(event.timestamp.year, []).append(event)

    reports = [_build_yearly_report(year, items) for year, items in by_year.items()]
    reports.sort(key=lambda report: report.year, reverse=True)
    return reports


def generate_month_heatmap(
    events: Iterable[PlayEvent], year: int, month_index: int
) -> list[HeatmapPoint]:
    """Dense day-of-month x hour grid for one month (``month_index`` 0 = January).

    Returns an empty list when ``month_index`` is outside 0-11.
    """
    if not 0 <= month_index <= 11:
        return []
    month = month_index + 1

    grid: dict[tuple[int, int], int] = {}
    for event in events:
        timestamp = event.timestamp
        if timestamp is None or timestamp.year != year or timestamp.month != month:
            continue
        cell = (timestamp.day, timestamp.hour)
        grid[cell] = grid.get(cell, 0) + 1

    days_in_month = calendar.monthrange(year, month)[1]
    return [
        HeatmapPoint(day=day, hour=hour, value=grid.get((day, hour), 0))
        for day in range(1, days_in_month + 1)
        for hour in range(24)
    ]


def filter_events(
    events: Iterable[PlayEvent],
    user: Optional[str] = None,
    media_kind: Optional[MediaKind] = None,
) -> list[PlayEvent]:
    """Keep events for one viewer and/or one media kind."""
    return [
        event
        for event in events
        if (user is None or event.user_label == user)
        and (media_kind is None or event.media_kind is media_kind)
    ]


def list_users(events: Iterable[PlayEvent]) -> list[str]:
    return sorted({event.user_label for event in events})


def compute_user_comparisons(events: Iterable[PlayEvent]) -> list[UserComparison]:
    """Per-viewer totals, most active viewer first."""
    viewers: dict[str, _ViewerTally] = {}
    for event in events:
        tally = viewers.setdefault(event.user_label, _ViewerTally())
        tally.plays += 1
        tally.minutes += _duration(event)
        if event.media_kind is MediaKind.MOVIE:
            tally.movies += 1
        elif event.media_kind is MediaKind.EPISODE:
            tally.episodes += 1
        timestamp = event.timestamp
        if timestamp is not None and (
            tally.last_watched is None or timestamp > tally.last_watched
        ):
            tally.last_watched = timestamp
        key = resolve_grouping_key(event)
        if key:
            tally.titles[key] = tally.titles.get(key, 0) + 1

    ranked = sorted(viewers.items(), key=lambda item: item[1].plays, reverse=True)
    comparisons = []
    for user, tally in ranked:
        titles = _ranked(tally.titles)
        comparisons.append(
            UserComparison(
                user=user,
                plays=tally.plays,
                duration_hours=_round_half_up(tally.minutes / 60, 1),
                movies=tally.movies,
                episodes=tally.episodes,
                top_title=titles[0][0] if titles else None,
                last_watched=tally.last_watched,
            )
        )
    return comparisons
