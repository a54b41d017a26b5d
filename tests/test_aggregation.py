import math
from datetime import datetime, timedelta, timezone

from playpulse.aggregation import (
    compute_summary,
    compute_user_comparisons,
    compute_yearly_reports,
    filter_events,
    list_users,
    resolve_grouping_key,
)
from playpulse.models import DEFAULT_USER_LABEL, DayCount, MediaKind, MonthCount, PlayEvent


def _movie(title: str, timestamp=None, duration=120, user=None) -> PlayEvent:
    return PlayEvent(
        title=title,
        timestamp=timestamp,
        duration_minutes=duration,
        media_kind=MediaKind.MOVIE,
        user=user,
    )


def _episode(series: str, timestamp=None, duration=30, user=None, **kwargs) -> PlayEvent:
    return PlayEvent(
        title=kwargs.pop("title", "Episode 1"),
        series_title=series,
        timestamp=timestamp,
        duration_minutes=duration,
        media_kind=MediaKind.EPISODE,
        user=user,
        **kwargs,
    )


def test_single_movie_summary():
    played_at = datetime(2024, 3, 1, 20, 15)
    summary = compute_summary([_movie("Dune", played_at, duration=120)])

    assert summary.total_plays == 1
    assert summary.total_duration_hours == 2
    assert [(m.name, m.count, m.total_duration_minutes) for m in summary.top_movies] == [
        ("Dune", 1, 120)
    ]
    assert summary.top_movies[0].last_watched == played_at
    assert summary.top_shows == []
    assert [(k.name, k.value) for k in summary.media_type_distribution] == [("movie", 1)]
    assert summary.plays_by_hour[20].count == 1
    assert summary.plays_by_day_of_week[5] == DayCount(day="Fri", count=1)
    assert summary.plays_by_month == [MonthCount(month="2024-03", count=1)]


def test_empty_summary():
    summary = compute_summary([])

    assert summary.total_plays == 0
    assert summary.total_duration_hours == 0
    assert summary.top_movies == []
    assert summary.top_shows == []
    assert len(summary.plays_by_hour) == 24
    assert all(bucket.count == 0 for bucket in summary.plays_by_hour)
    assert [bucket.day for bucket in summary.plays_by_day_of_week] == [
        "Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"
    ]
    assert summary.plays_by_month == []
    assert summary.media_type_distribution == []


def test_missing_duration_still_counts():
    played_at = datetime(2024, 5, 6, 21, 0)
    events = [
        _episode("Severance", played_at, duration=math.nan),
        _episode("Severance", played_at, duration=None),
    ]
    summary = compute_summary(events)

    assert summary.total_plays == 2
    assert summary.total_duration_hours == 0
    assert summary.plays_by_hour[21].count == 2
    assert summary.top_shows[0].count == 2
    assert summary.top_shows[0].total_duration_minutes == 0


def test_undated_event_counts_in_totals_only():
    events = [_movie("Heat", None, duration=60), _movie("Heat", datetime(2024, 1, 2, 9), 60)]
    summary = compute_summary(events)

    assert summary.total_plays == 2
    assert summary.total_duration_hours == 2
    assert sum(bucket.count for bucket in summary.plays_by_hour) == 1
    assert sum(bucket.count for bucket in summary.plays_by_day_of_week) == 1
    assert summary.plays_by_month == [MonthCount(month="2024-01", count=1)]
    assert summary.top_movies[0].count == 2
    assert summary.top_movies[0].last_watched == datetime(2024, 1, 2, 9)


def test_duration_hours_clamp_and_round_half_up():
    events = [_movie("A", duration=90), _movie("B", duration=-30), _movie("C", duration=60)]
    # 150 minutes is 2.5 hours, which rounds up
    assert compute_summary(events).total_duration_hours == 3


def test_top_lists_are_bounded_and_ranked():
    events = [_movie(f"Movie {i}") for i in range(60)]
    events += [_movie("Favorite") for _ in range(3)]
    events += [_episode(f"Show {i}") for i in range(55)]

    summary = compute_summary(events)

    assert len(summary.top_movies) == 50
    assert len(summary.top_shows) == 50
    assert summary.top_movies[0].name == "Favorite"
    assert summary.top_movies[0].count == 3


def test_top_list_ties_keep_first_seen_order():
    titles = ["Zodiac", "Alien", "Alien", "Zodiac", "Brazil"]
    events = [_movie(title) for title in titles]
    names = [item.name for item in compute_summary(events).top_movies]
    assert names == ["Zodiac", "Alien", "Brazil"]


def test_media_distribution_skips_empty_kinds():
    events = [
        _movie("Heat"),
        PlayEvent(title="Song", media_kind=MediaKind.TRACK),
        PlayEvent(title="Clip"),
    ]
    summary = compute_summary(events)

    assert [(k.name, k.value) for k in summary.media_type_distribution] == [
        ("movie", 1),
        ("track", 1),
        ("unknown", 1),
    ]
    assert [item.name for item in summary.top_movies] == ["Heat"]
    assert summary.top_shows == []


def test_months_are_sparse_and_sorted():
    events = [
        _movie("A", datetime(2024, 11, 1, 10)),
        _movie("B", datetime(2023, 2, 1, 10)),
        _movie("C", datetime(2024, 11, 20, 10)),
    ]
    assert compute_summary(events).plays_by_month == [
        MonthCount(month="2023-02", count=1),
        MonthCount(month="2024-11", count=2),
    ]


def test_summary_is_idempotent():
    start = datetime(2024, 1, 1, 18)
    events = [_episode("Andor", start + timedelta(hours=i * 7)) for i in range(40)]
    events += [_movie("Dune", start + timedelta(days=i)) for i in range(10)]
    assert compute_summary(events) == compute_summary(events)


def test_resolve_grouping_key_fallbacks():
    assert resolve_grouping_key(_episode("Severance")) == "Severance"
    assert resolve_grouping_key(_episode(None, season_title="Season 2")) == "Season 2"
    assert resolve_grouping_key(_episode(None, title="Pilot")) == "Pilot"
    assert resolve_grouping_key(_episode(None, title="")) == "Unknown Show"
    assert resolve_grouping_key(_movie("Heat")) == "Heat"
    assert resolve_grouping_key(_movie("")) is None
    assert resolve_grouping_key(PlayEvent(title="Song", media_kind=MediaKind.TRACK)) == "Song"


def test_filter_events_by_user_and_kind():
    events = [
        _movie("Heat", user="alice"),
        _episode("Andor", user="alice"),
        _movie("Dune", user="bob"),
        _movie("Alien"),
    ]

    assert [e.title for e in filter_events(events, user="alice")] == ["Heat", "Episode 1"]
    assert [e.title for e in filter_events(events, media_kind=MediaKind.MOVIE)] == [
        "Heat",
        "Dune",
        "Alien",
    ]
    assert [e.title for e in filter_events(events, user=DEFAULT_USER_LABEL)] == ["Alien"]
    assert filter_events(events, user="alice", media_kind=MediaKind.EPISODE)[0].series_title == (
        "Andor"
    )
    assert list_users(events) == ["Server Owner", "alice", "bob"]


def test_user_comparisons():
    events = [
        _movie("Heat", datetime(2024, 1, 1, 20), duration=90, user="alice"),
        _episode("Andor", datetime(2024, 1, 2, 21), duration=45, user="alice"),
        _episode("Andor", datetime(2024, 1, 3, 21), duration=45, user="alice"),
        _movie("Dune", datetime(2024, 1, 4, 20), duration=150, user="bob"),
    ]
    comparisons = compute_user_comparisons(events)

    assert [c.user for c in comparisons] == ["alice", "bob"]
    alice = comparisons[0]
    assert alice.plays == 3
    assert alice.duration_hours == 3.0
    assert alice.movies == 1
    assert alice.episodes == 2
    assert alice.top_title == "Andor"
    assert alice.last_watched == datetime(2024, 1, 3, 21)
    assert comparisons[1].duration_hours == 2.5


def test_aware_timestamps_are_bucketed_in_local_time():
    naive = datetime(2024, 1, 1, 20)
    aware = PlayEvent(title="Heat", timestamp="2024-01-02T20:00:00Z", media_kind=MediaKind.MOVIE)
    local = datetime(2024, 1, 2, 20, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    events = [_movie("Heat", naive, user="alice"), aware]

    assert aware.timestamp == local
    assert aware.timestamp.tzinfo is None

    summary = compute_summary(events)
    (heat,) = summary.top_movies
    assert heat.count == 2
    assert heat.last_watched == max(naive, local)
    assert summary.plays_by_hour[local.hour].count == (2 if local.hour == naive.hour else 1)

    (report,) = compute_yearly_reports(events)
    assert report.total_plays == 2
    assert local.date().isoformat() in [day.date for day in report.daily_activity]
    assert [user.plays for user in compute_user_comparisons(events)] == [1, 1]
