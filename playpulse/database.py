import hashlib
import math
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

import aiosqlite

from .config import settings
from .models import DEFAULT_USER_LABEL, MediaKind, PlayEvent


class Database:
    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or settings.database_path_resolved
        self._connection: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        """Connect to the database and create tables if needed."""
        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row
        await self._create_tables()

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if not self._connection:
            raise RuntimeError("Database not connected")
        return self._connection

    def _build_filter_clause(
        self,
        user: Optional[str],
        media_kind: Optional[MediaKind],
    ) -> tuple[str, list[str]]:
        clauses = []
        params: list[str] = []
        if user:
            clauses.append("COALESCE(user_name, ?) = ?")
            params.extend([DEFAULT_USER_LABEL, user])
        if media_kind:
            clauses.append("media_kind = ?")
            params.append(media_kind.value)
        if not clauses:
            return "", []
        return " WHERE " + " AND ".join(clauses), params

    async def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS play_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_key TEXT UNIQUE,
                title TEXT NOT NULL,
                series_title TEXT,
                season_title TEXT,
                played_at TIMESTAMP,
                duration_minutes REAL,
                media_kind TEXT NOT NULL DEFAULT 'unknown',
                user_name TEXT,
                player TEXT,
                source TEXT,
                imported_at TIMESTAMP
            )
        """)
        await self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_events_played ON play_events(played_at)"
        )
        await self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_events_user ON play_events(user_name)"
        )
        await self.conn.commit()

    @staticmethod
    def event_key(event: PlayEvent) -> Optional[str]:
        """Stable fingerprint used to skip re-imported plays.

        Undated plays get no key, so identical ones are all kept.
        """
        if event.timestamp is None:
            return None
        fingerprint = "|".join(
            [
                event.title,
                event.series_title or "",
                event.season_title or "",
                event.timestamp.isoformat(),
                event.media_kind.value,
                event.user or "",
            ]
        )
        return hashlib.sha1(fingerprint.encode("utf-8")).hexdigest()

    async def add_events(self, events: Iterable[PlayEvent], source: str = "manual") -> int:
        """Store play events, skipping ones already imported. Returns rows added."""
        now = datetime.now().isoformat()
        rows = []
        for event in events:
            duration = event.duration_minutes
            if duration is not None and not math.isfinite(duration):
                duration = None
            rows.append(
                (
                    self.event_key(event),
                    event.title,
                    event.series_title,
                    event.season_title,
                    event.timestamp.isoformat() if event.timestamp else None,
                    duration,
                    event.media_kind.value,
                    event.user,
                    event.player,
                    source,
                    now,
                )
            )
        if not rows:
            return 0
        cursor = await self.conn.executemany(
            """
            INSERT INTO play_events (event_key, title, series_title, season_title, played_at,
                                     duration_minutes, media_kind, user_name, player, source,
                                     imported_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(event_key) DO NOTHING
            """,
            rows,
        )
        await self.conn.commit()
        return cursor.rowcount

    async def get_events(
        self,
        user: Optional[str] = None,
        media_kind: Optional[MediaKind] = None,
    ) -> list[PlayEvent]:
        """Get stored play events, oldest first and undated last."""
        filters, params = self._build_filter_clause(user, media_kind)
        cursor = await self.conn.execute(
            f"""
            SELECT * FROM play_events{filters}
            ORDER BY played_at IS NULL, played_at, id
            """,
            params,
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def count_events(self) -> int:
        cursor = await self.conn.execute("SELECT COUNT(*) as count FROM play_events")
        row = await cursor.fetchone()
        return row["count"]

    async def get_users(self) -> list[str]:
        """Get distinct viewer labels."""
        cursor = await self.conn.execute(
            """
            SELECT DISTINCT COALESCE(user_name, ?) as user_label
            FROM play_events
            ORDER BY user_label
            """,
            (DEFAULT_USER_LABEL,),
        )
        rows = await cursor.fetchall()
        return [row["user_label"] for row in rows]

    async def get_last_import_at(self) -> Optional[datetime]:
        cursor = await self.conn.execute(
            "SELECT MAX(imported_at) as imported_at FROM play_events"
        )
        row = await cursor.fetchone()
        if row and row["imported_at"]:
            return datetime.fromisoformat(row["imported_at"])
        return None

    async def clear_events(self) -> int:
        """Delete all stored play events."""
        cursor = await self.conn.execute("DELETE FROM play_events")
        await self.conn.commit()
        return cursor.rowcount

    def _row_to_event(self, row: aiosqlite.Row) -> PlayEvent:
        """Convert a database row to a PlayEvent model."""
        return PlayEvent(
            title=row["title"],
            series_title=row["series_title"],
            season_title=row["season_title"],
            timestamp=(datetime.fromisoformat(row["played_at"]) if row["played_at"] else None),
            duration_minutes=row["duration_minutes"],
            media_kind=row["media_kind"] or MediaKind.UNKNOWN,
            user=row["user_name"],
            player=row["player"],
        )


# Global database instance
db = Database()
