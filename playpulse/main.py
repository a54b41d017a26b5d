import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

import uvicorn

from .aggregation import compute_summary, compute_yearly_reports
from .config import settings
from .database import db
from .models import MediaKind
from .normalizer import HistoryParseError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class PlayPulseServer:
    def __init__(self):
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Start the PlayPulse dashboard."""
        logger.info("Starting PlayPulse...")

        await db.connect()
        logger.info(f"Connected to database: {settings.database_path}")

        loop = asyncio.get_event_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: asyncio.create_task(self.shutdown()))

        web_task = asyncio.create_task(self._run_web_server())
        logger.info(f"Dashboard available at http://localhost:{settings.dashboard_port}")

        await self._shutdown_event.wait()

        web_task.cancel()
        try:
            await web_task
        except asyncio.CancelledError:
            pass

        await db.close()
        logger.info("PlayPulse stopped")

    async def shutdown(self) -> None:
        """Signal shutdown."""
        logger.info("Shutting down...")
        self._shutdown_event.set()

    async def _run_web_server(self) -> None:
        """Run the FastAPI web server."""
        from dashboard.app import app

        config = uvicorn.Config(
            app,
            host="0.0.0.0",
            port=settings.dashboard_port,
            log_level="info",
        )
        server = uvicorn.Server(config)
        try:
            await server.serve()
        except asyncio.CancelledError:
            pass


async def _with_db(action):
    await db.connect()
    try:
        return await action()
    finally:
        await db.close()


async def print_summary(user: Optional[str], media_kind: Optional[MediaKind], year: Optional[int]):
    """Print the summary, or one yearly report, as JSON."""
    events = await db.get_events(user=user, media_kind=media_kind)
    if year is None:
        payload = compute_summary(events).model_dump(mode="json")
    else:
        reports = {report.year: report for report in compute_yearly_reports(events)}
        if year not in reports:
            logger.error(f"No plays recorded in {year}")
            return 1
        payload = reports[year].model_dump(mode="json")
    print(json.dumps(payload, indent=2))
    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="PlayPulse - media play history analytics")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    import_parser = subparsers.add_parser("import", help="Import play history from Plex")
    import_parser.add_argument(
        "--limit",
        type=int,
        default=settings.history_limit,
        help=f"Maximum number of plays to fetch (default: {settings.history_limit})",
    )

    csv_parser = subparsers.add_parser("import-csv", help="Import an exported history CSV")
    csv_parser.add_argument("path", type=Path, help="CSV file to import")

    subparsers.add_parser("demo", help="Load generated demo history")

    summary_parser = subparsers.add_parser("summary", help="Print analytics as JSON")
    summary_parser.add_argument("--user", help="Only include this viewer")
    summary_parser.add_argument(
        "--media-kind",
        choices=[kind.value for kind in MediaKind],
        help="Only include this media kind",
    )
    summary_parser.add_argument("--year", type=int, help="Print the report for this year")

    args = parser.parse_args()

    if args.command == "import":
        if not settings.plex_token:
            logger.error("PLEX_TOKEN is not set. Please set it in .env file.")
            sys.exit(1)

        from .importer import run_import

        count = asyncio.run(run_import(limit=args.limit))
        logger.info(f"Imported {count} plays")
    elif args.command == "import-csv":
        from .importer import import_csv_file

        try:
            count = asyncio.run(_with_db(lambda: import_csv_file(args.path)))
        except (OSError, HistoryParseError) as e:
            logger.error(f"CSV import failed: {e}")
            sys.exit(1)
        logger.info(f"Imported {count} plays")
    elif args.command == "demo":
        from .importer import import_sample_data

        count = asyncio.run(_with_db(import_sample_data))
        logger.info(f"Loaded {count} demo plays")
    elif args.command == "summary":
        media_kind = MediaKind(args.media_kind) if args.media_kind else None
        code = asyncio.run(
            _with_db(lambda: print_summary(args.user, media_kind, args.year))
        )
        sys.exit(code)
    else:
        server = PlayPulseServer()
        asyncio.run(server.start())


if __name__ == "__main__":
    main()
