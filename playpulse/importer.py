import logging
from pathlib import Path

import httpx

from .config import settings
from .database import db
from .normalizer import HistoryParseError, parse_history_csv, parse_plex_history
from .sample_data import generate_sample_events

logger = logging.getLogger(__name__)


class PlexHistoryImporter:
    """Import play history from a Plex server's history endpoint."""

    def __init__(self):
        self.history_url = settings.plex_history_url
        self.token = settings.plex_token

    async def import_history(self, limit: int = 5000) -> int:
        """Import up to ``limit`` of the most recent plays."""
        logger.info(f"Importing up to {limit} plays from Plex...")

        async with httpx.AsyncClient() as client:
            response = await client.get(
                self.history_url,
                params={
                    "sort": "viewedAt:desc",
                    "limit": limit,
                    "X-Plex-Token": self.token,
                },
                headers={"Accept": "application/json"},
                timeout=60.0,
            )

            if response.status_code == 401:
                logger.error("Plex rejected the token (401)")
                return 0
            if response.status_code != 200:
                logger.error(f"Failed to query Plex history: {response.status_code}")
                return 0

            text = response.text

        try:
            events = parse_plex_history(text)
        except HistoryParseError as e:
            logger.error(f"Could not parse Plex history: {e}")
            return 0

        if not events:
            logger.info("No playback data found to import")
            return 0

        imported = await db.add_events(events, source="plex")
        logger.info(f"Import complete: {imported} imported, {len(events) - imported} skipped")
        return imported


async def import_csv_file(path: Path) -> int:
    """Store the plays from an exported history CSV."""
    events = parse_history_csv(path.read_text(encoding="utf-8-sig"))
    imported = await db.add_events(events, source="csv")
    logger.info(f"Imported {imported} of {len(events)} plays from {path.name}")
    return imported


async def import_sample_data() -> int:
    """Store a generated demo history."""
    events = generate_sample_events(
        count=settings.sample_event_count, span_days=settings.sample_span_days
    )
    return await db.add_events(events, source="demo")


async def run_import(limit: int = 5000) -> int:
    """Run the Plex import process."""
    await db.connect()
    try:
        importer = PlexHistoryImporter()
        return await importer.import_history(limit=limit)
    finally:
        await db.close()
