import random
from datetime import datetime, timedelta

from playpulse.aggregation import compute_summary, compute_yearly_reports, generate_month_heatmap
from playpulse.models import MediaKind
from playpulse.sample_data import SAMPLE_MOVIE_TITLES, SAMPLE_SHOW_TITLES, generate_sample_events

NOW = datetime(2025, 6, 30, 12, 0)


def test_sample_events_shape():
    events = generate_sample_events(rng=random.Random(42), now=NOW)

    assert len(events) == 800
    timestamps = [event.timestamp for event in events]
    assert timestamps == sorted(timestamps)
    assert min(timestamps) >= NOW - timedelta(days=401)
    assert max(timestamps) <= NOW
    assert {event.media_kind for event in events} == {MediaKind.MOVIE, MediaKind.EPISODE}
    for event in events:
        assert event.title
        assert event.duration_minutes > 0
        if event.media_kind is MediaKind.EPISODE:
            assert event.series_title in SAMPLE_SHOW_TITLES
        else:
            assert event.title in SAMPLE_MOVIE_TITLES


def test_sample_events_favor_evenings():
    events = generate_sample_events(rng=random.Random(1), now=NOW)
    evening = sum(1 for event in events if event.timestamp.hour >= 18)
    assert evening / len(events) > 0.6


def test_sample_events_reproducible_with_seed():
    first = generate_sample_events(count=50, rng=random.Random(3), now=NOW)
    second = generate_sample_events(count=50, rng=random.Random(3), now=NOW)
    assert first == second


def test_sample_pools_are_injectable():
    events = generate_sample_events(
        count=20,
        span_days=10,
        rng=random.Random(5),
        now=NOW,
        movie_titles=["Heat"],
        show_titles=["Andor"],
        users=["Solo"],
    )

    assert {event.user for event in events} == {"Solo"}
    assert {event.title for event in events if event.media_kind is MediaKind.MOVIE} <= {"Heat"}
    assert {e.series_title for e in events if e.media_kind is MediaKind.EPISODE} <= {"Andor"}


def test_sample_events_feed_the_engine():
    events = generate_sample_events(rng=random.Random(11), now=NOW)

    summary = compute_summary(events)
    assert summary.total_plays == 800
    assert summary.top_movies and summary.top_shows

    reports = compute_yearly_reports(events)
    assert reports
    latest = events[-1].timestamp
    points = generate_month_heatmap(events, latest.year, latest.month - 1)
    assert sum(point.value for point in points) >= 1


def test_sample_events_never_after_now():
    # early morning leaves most evening hours of the current day in the future
    now = datetime(2025, 6, 30, 1, 0)
    events = generate_sample_events(count=400, span_days=1, rng=random.Random(7), now=now)
    assert all(event.timestamp <= now for event in events)
