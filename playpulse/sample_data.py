import random
from datetime import datetime, timedelta
from typing import Optional, Sequence

from .models import MediaKind, PlayEvent

SAMPLE_MOVIE_TITLES = (
    "Inception",
    "The Matrix",
    "Interstellar",
    "Dune",
    "The Batman",
    "Spider-Man: Across the Spider-Verse",
    "Oppenheimer",
    "Barbie",
    "Blade Runner 2049",
    "The Grand Budapest Hotel",
)

SAMPLE_SHOW_TITLES = (
    "Breaking Bad",
    "Succession",
    "The Bear",
    "Severance",
    "The Office",
    "Game of Thrones",
    "Stranger Things",
    "Better Call Saul",
    "The Mandalorian",
    "Andor",
)

SAMPLE_USERS = ("Admin", "Partner", "Kids", "Guest")
SAMPLE_PLAYERS = ("Living Room TV", "Bedroom TV", "Phone", "Web")

MOVIE_SHARE = 0.6
EVENING_SHARE = 0.7
EVENING_START_HOUR = 18


def generate_sample_events(
    count: int = 800,
    span_days: int = 400,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
    movie_titles: Sequence[str] = SAMPLE_MOVIE_TITLES,
    show_titles: Sequence[str] = SAMPLE_SHOW_TITLES,
    users: Sequence[str] = SAMPLE_USERS,
) -> list[PlayEvent]:
    """Build a synthetic play history for demos and tests.

    Plays are spread over the ``span_days`` before ``now``, most of them in
    the evening, and returned oldest first. Pass a seeded ``rng`` for a
    reproducible set.
    """
    rng = rng or random.Random()
    now = now or datetime.now()
    events = []

    for _ in range(count):
        played_at = now - timedelta(seconds=rng.random() * span_days * 86400)
        if rng.random() < EVENING_SHARE:
            hour = rng.randrange(EVENING_START_HOUR, 24)
        else:
            hour = rng.randrange(24)
        played_at = min(played_at.replace(hour=hour), now)
        user = rng.choice(users)
        player = rng.choice(SAMPLE_PLAYERS)

        if rng.random() < MOVIE_SHARE:
            events.append(
                PlayEvent(
                    title=rng.choice(movie_titles),
                    timestamp=played_at,
                    duration_minutes=90 + rng.random() * 60,
                    media_kind=MediaKind.MOVIE,
                    user=user,
                    player=player,
                )
            )
        else:
            events.append(
                PlayEvent(
                    title=f"Episode {rng.randint(1, 10)}",
                    series_title=rng.choice(show_titles),
                    season_title=f"Season {rng.randint(1, 3)}",
                    timestamp=played_at,
                    duration_minutes=20 + rng.random() * 40,
                    media_kind=MediaKind.EPISODE,
                    user=user,
                    player=player,
                )
            )

    events.sort(key=lambda event: event.timestamp)
    return events
