from .models import AnalyticsSummary, DayCount, HourCount, ImprovementIdea

MOVIE_HEAVY_SHARE = 0.6


def build_improvement_ideas(summary: AnalyticsSummary) -> list[ImprovementIdea]:
    """Suggest dashboard improvements from the shape of a summary."""
    if summary.total_plays == 0:
        return [
            ImprovementIdea(
                title="No data yet",
                description="Connect Plex or import a CSV to unlock analytics and recommendations.",
                action="Connect your server or upload history to generate insights.",
            )
        ]

    # Strict comparison keeps the earliest bucket on ties.
    busiest_hour = HourCount(hour=0, count=0)
    for bucket in summary.plays_by_hour:
        if bucket.count > busiest_hour.count:
            busiest_hour = bucket
    busiest_day = DayCount(day="Sun", count=0)
    for bucket in summary.plays_by_day_of_week:
        if bucket.count > busiest_day.count:
            busiest_day = bucket

    ideas = [
        ImprovementIdea(
            title="Sharpen the user filter",
            description=(
                "Request history for every account so each viewer shows up in the "
                "user filter, not only the server owner."
            ),
            action="Fetch history for all accounts and list every viewer name in filters.",
        ),
        ImprovementIdea(
            title="Highlight peak engagement",
            description=(
                f"Your busiest time is around {busiest_hour.hour}:00 on {busiest_day.day}. "
                "Call this out so habits are easy to spot."
            ),
            action="Mark peak viewing times on the hourly and weekly charts.",
        ),
    ]

    movies = next(
        (kind.value for kind in summary.media_type_distribution if kind.name == "movie"), 0
    )
    if movies > summary.total_plays * MOVIE_HEAVY_SHARE:
        ideas.append(
            ImprovementIdea(
                title="Balance movie vs. TV analytics",
                description=(
                    "Movies dominate your history, so runtime and franchise breakdowns "
                    "help more than per-episode stats."
                ),
                action="Group movies by franchise with total hours and last watch.",
            )
        )
    else:
        ideas.append(
            ImprovementIdea(
                title="Lean into binge tracking",
                description=(
                    "TV makes up a big slice of your viewing. Streaks and per-show "
                    "session lengths surface binge behavior."
                ),
                action="Track streaks and episodes per session for the top shows this month.",
            )
        )

    top_movies = summary.top_movies[:2]
    if top_movies:
        names = " & ".join(movie.name for movie in top_movies)
        ideas.append(
            ImprovementIdea(
                title="Surface rewatch champions",
                description=f"Titles like {names} are repeat favorites.",
                action="Add quick filters for top titles and expose the rewatch count in exports.",
            )
        )

    ideas.append(
        ImprovementIdea(
            title="Export with context",
            description="CSV exports are more useful with viewer and device columns.",
            action="Include viewer name and player device in event exports.",
        )
    )
    return ideas
