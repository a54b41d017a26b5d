from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

DEFAULT_USER_LABEL = "Server Owner"


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to local wall-clock time without tzinfo."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class MediaKind(str, Enum):
    MOVIE = "movie"
    EPISODE = "episode"
    TRACK = "track"
    UNKNOWN = "unknown"


class PlayEvent(BaseModel):
    """One logged playback, as produced by the normalizer."""

    model_config = ConfigDict(frozen=True)

    title: str
    series_title: Optional[str] = None
    season_title: Optional[str] = None
    timestamp: Optional[datetime] = None
    duration_minutes: Optional[float] = None
    media_kind: MediaKind = MediaKind.UNKNOWN
    user: Optional[str] = None
    player: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def local_timestamp(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(value) if value is not None else None

    @property
    def user_label(self) -> str:
        return self.user or DEFAULT_USER_LABEL


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)


class TopItem(_Snapshot):
    """Aggregated movie or show ranking entry."""

    name: str
    count: int
    total_duration_minutes: float
    last_watched: Optional[datetime] = None


class HourCount(_Snapshot):
    hour: int
    count: int


class DayCount(_Snapshot):
    day: str
    count: int


class MonthCount(_Snapshot):
    month: str
    count: int


class KindCount(_Snapshot):
    name: str
    value: int


class AnalyticsSummary(_Snapshot):
    """Global summary over a set of play events."""

    total_plays: int
    total_duration_hours: int
    top_movies: list[TopItem]
    top_shows: list[TopItem]
    plays_by_hour: list[HourCount]
    plays_by_day_of_week: list[DayCount]
    plays_by_month: list[MonthCount]
    media_type_distribution: list[KindCount]


class HeatmapPoint(_Snapshot):
    """Play count for one (day, hour) cell.

    ``day`` is 0-6 (Sun-Sat) in weekly heatmaps and the day of month in
    month heatmaps.
    """

    day: int
    hour: int
    value: int


class DailyActivity(_Snapshot):
    date: str
    count: int


class MonthlyReport(_Snapshot):
    month_key: str
    month_name: str
    year: int
    total_hours: int
    top_item: str
    top_item_type: MediaKind
    play_count: int
    binge_score: float


class YearlyReport(_Snapshot):
    year: int
    total_hours: int
    total_plays: int
    active_days: int
    longest_streak: int
    busiest_month: str
    monthly_breakdown: list[MonthlyReport]
    heatmap_data: list[HeatmapPoint]
    daily_activity: list[DailyActivity]


class UserComparison(_Snapshot):
    """Per-viewer totals."""

    user: str
    plays: int
    duration_hours: float
    movies: int
    episodes: int
    top_title: Optional[str] = None
    last_watched: Optional[datetime] = None


class ImprovementIdea(_Snapshot):
    title: str
    description: str
    action: str
