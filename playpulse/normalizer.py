import csv
import io
import json
import logging
import math
import xml.etree.ElementTree as ElementTree
from datetime import datetime
from typing import Any, Optional

from .models import DEFAULT_USER_LABEL, MediaKind, PlayEvent, to_local_naive

logger = logging.getLogger(__name__)

# Runtime assumed when the server reports no duration.
DEFAULT_RUNTIME_MINUTES = {
    MediaKind.MOVIE: 120,
    MediaKind.EPISODE: 30,
    MediaKind.TRACK: 3,
    MediaKind.UNKNOWN: 0,
}

_PLEX_KINDS = {
    "movie": MediaKind.MOVIE,
    "episode": MediaKind.EPISODE,
    "track": MediaKind.TRACK,
}


class HistoryParseError(ValueError):
    """Raised when a history document cannot be turned into play events."""


def _round_minutes(value: float) -> int:
    return int(math.floor(value + 0.5))


def _from_unix(value: Any) -> Optional[datetime]:
    """Convert unix seconds to a local naive datetime, None when unusable."""
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(seconds) or seconds <= 0:
        return None
    try:
        return datetime.fromtimestamp(seconds)
    except (OverflowError, OSError, ValueError):
        return None


def parse_plex_history(text: str) -> list[PlayEvent]:
    """Parse a Plex ``/status/sessions/history/all`` response (JSON or XML)."""
    stripped = text.strip()
    if stripped.startswith("<"):
        entries = _plex_xml_entries(stripped)
    else:
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise HistoryParseError("Invalid response format from server.") from e
        if not isinstance(data, dict):
            raise HistoryParseError("Plex response is not a MediaContainer document.")
        container = data.get("MediaContainer") or {}
        entries = container.get("Metadata") or []

    return [_plex_entry_to_event(entry) for entry in entries]


def _plex_xml_entries(text: str) -> list[dict]:
    try:
        root = ElementTree.fromstring(text)
    except ElementTree.ParseError as e:
        raise HistoryParseError(f"Invalid XML from server: {e}") from e

    entries = []
    for tag in ("Video", "Track"):
        for node in root.iter(tag):
            viewed_at = node.get("viewedAt") or "0"
            if viewed_at == "0":
                continue
            entries.append(
                {
                    "title": node.get("title") or "Unknown",
                    "grandparentTitle": node.get("grandparentTitle"),
                    "parentTitle": node.get("parentTitle"),
                    "type": node.get("type") or "unknown",
                    "viewedAt": viewed_at,
                    "duration": node.get("duration"),
                    "User": {"title": node.get("user")},
                }
            )
    return entries


def _plex_entry_to_event(entry: dict) -> PlayEvent:
    kind = _PLEX_KINDS.get(entry.get("type"), MediaKind.UNKNOWN)

    try:
        duration_ms = float(entry.get("duration") or 0)
    except (TypeError, ValueError):
        duration_ms = 0.0
    if not math.isfinite(duration_ms) or duration_ms <= 0:
        duration_minutes = DEFAULT_RUNTIME_MINUTES[kind]
    else:
        duration_minutes = _round_minutes(duration_ms / 60000)

    user = (entry.get("User") or {}).get("title") or (entry.get("Account") or {}).get("title")
    player = (entry.get("Player") or {}).get("title")

    return PlayEvent(
        title=entry.get("title") or "Unknown",
        series_title=entry.get("grandparentTitle") or None,
        season_title=entry.get("parentTitle") or None,
        timestamp=_from_unix(entry.get("viewedAt")),
        duration_minutes=duration_minutes,
        media_kind=kind,
        user=user or DEFAULT_USER_LABEL,
        player=player or None,
    )


def _find_column(
    headers: list[str], includes: tuple[str, ...], excludes: tuple[str, ...] = ()
) -> Optional[int]:
    for idx, header in enumerate(headers):
        if any(word in header for word in excludes):
            continue
        if any(word in header for word in includes):
            return idx
    return None


def _parse_csv_date(value: str) -> Optional[datetime]:
    value = value.strip()
    if not value:
        return None
    try:
        return _from_unix(float(value))
    except ValueError:
        pass
    try:
        return to_local_naive(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in ("%Y-%m-%d %H:%M:%S", "%m/%d/%Y %H:%M", "%m/%d/%Y"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def _parse_csv_duration(value: str) -> int:
    """Duration in minutes; large values are taken as milliseconds or seconds."""
    try:
        duration = float(value)
    except ValueError:
        return 0
    if not math.isfinite(duration) or duration < 0:
        return 0
    if duration > 10000:
        duration = duration / 60000
    elif duration > 300:
        duration = duration / 60
    return _round_minutes(duration)


def _parse_csv_kind(value: str) -> MediaKind:
    value = value.lower()
    if "movie" in value:
        return MediaKind.MOVIE
    if "episode" in value or "show" in value:
        return MediaKind.EPISODE
    if "track" in value:
        return MediaKind.TRACK
    return MediaKind.UNKNOWN


def parse_history_csv(text: str) -> list[PlayEvent]:
    """Parse an exported play history CSV.

    Columns are located by case-insensitive name matching, so exports from
    different tools work as long as they carry a title and a date column.
    """
    rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
    if len(rows) < 2:
        raise HistoryParseError("File appears empty")

    headers = [header.strip().lower() for header in rows[0]]
    title_idx = _find_column(
        headers,
        ("title", "name"),
        ("grandparent", "parent", "show", "series", "season", "user", "friendly", "player"),
    )
    date_idx = _find_column(headers, ("date", "started", "viewed"))
    duration_idx = _find_column(headers, ("duration",))
    type_idx = _find_column(headers, ("type",))
    show_idx = _find_column(headers, ("grandparent", "show", "series"))
    season_idx = _find_column(headers, ("season", "parent"), ("grandparent",))
    user_idx = _find_column(headers, ("user", "friendly name", "friendly_name"))
    player_idx = _find_column(headers, ("player", "device"))

    if title_idx is None or date_idx is None:
        raise HistoryParseError("Could not find required columns: 'Title' and 'Date'")

    def cell(row: list[str], idx: Optional[int]) -> str:
        return row[idx].strip() if idx is not None else ""

    events = []
    skipped = 0
    for row in rows[1:]:
        if len(row) < len(headers):
            skipped += 1
            continue

        title = cell(row, title_idx)
        timestamp = _parse_csv_date(cell(row, date_idx))
        if not title or timestamp is None:
            skipped += 1
            continue

        show = cell(row, show_idx)
        duration = _parse_csv_duration(cell(row, duration_idx)) if duration_idx is not None else 0
        if type_idx is not None:
            kind = _parse_csv_kind(cell(row, type_idx))
        else:
            kind = MediaKind.EPISODE if show else MediaKind.MOVIE

        events.append(
            PlayEvent(
                title=title,
                series_title=show or None,
                season_title=cell(row, season_idx) or None,
                timestamp=timestamp,
                duration_minutes=duration,
                media_kind=kind,
                user=cell(row, user_idx) or None,
                player=cell(row, player_idx) or None,
            )
        )

    if skipped:
        logger.warning(f"Skipped {skipped} CSV row(s) without a usable title or date")
    if not events:
        raise HistoryParseError("No valid watch history found in rows.")
    return events
