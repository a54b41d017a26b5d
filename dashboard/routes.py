from typing import Optional

from fastapi import APIRouter, HTTPException, Path, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, Gauge, generate_latest

from playpulse.aggregation import (
    compute_summary,
    compute_user_comparisons,
    compute_yearly_reports,
    generate_month_heatmap,
)
from playpulse.config import settings
from playpulse.database import db
from playpulse.exporter import events_to_csv, summary_to_csv, yearly_report_to_csv
from playpulse.insights import build_improvement_ideas
from playpulse.models import MediaKind, PlayEvent, YearlyReport
from playpulse.normalizer import HistoryParseError, parse_history_csv
from playpulse.sample_data import generate_sample_events

router = APIRouter()

STORED_EVENTS = Gauge("playpulse_stored_events", "Play events in the history store")
LAST_IMPORT = Gauge("playpulse_last_import_timestamp", "Last history import unix timestamp")


def _normalize_filter(value: str | None) -> str | None:
    if not value or value == "all":
        return None
    return value


def _media_kind_filter(value: str | None) -> MediaKind | None:
    value = _normalize_filter(value)
    if value is None:
        return None
    try:
        return MediaKind(value)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown media kind: {value}")


async def _filtered_events(request: Request) -> list[PlayEvent]:
    user = _normalize_filter(request.query_params.get("user"))
    media_kind = _media_kind_filter(request.query_params.get("media_kind"))
    return await db.get_events(user=user, media_kind=media_kind)


def _find_report(reports: list[YearlyReport], year: int) -> Optional[YearlyReport]:
    return next((report for report in reports if report.year == year), None)


def _csv_response(content: str) -> PlainTextResponse:
    return PlainTextResponse(content, media_type="text/csv")


@router.get("/api/summary")
async def summary(request: Request):
    """Global summary for the selected filters."""
    events = await _filtered_events(request)
    return compute_summary(events)


@router.get("/api/reports")
async def reports(request: Request):
    """Yearly reports, newest year first."""
    events = await _filtered_events(request)
    return compute_yearly_reports(events)


@router.get("/api/reports/{year}")
async def yearly_report(request: Request, year: int):
    events = await _filtered_events(request)
    report = _find_report(compute_yearly_reports(events), year)
    if report is None:
        raise HTTPException(status_code=404, detail=f"No plays recorded in {year}")
    return report


@router.get("/api/reports/{year}/months/{month}/heatmap")
async def month_heatmap(request: Request, year: int, month: int = Path(ge=1, le=12)):
    """Day-of-month x hour heatmap; ``month`` is 1-12."""
    events = await _filtered_events(request)
    return generate_month_heatmap(events, year, month - 1)


@router.get("/api/users")
async def users(request: Request):
    """Per-viewer comparison."""
    events = await _filtered_events(request)
    return compute_user_comparisons(events)


@router.get("/api/filters")
async def filters():
    """Available filter values."""
    return {
        "users": await db.get_users(),
        "media_kinds": [kind.value for kind in MediaKind],
    }


@router.get("/api/insights")
async def insights(request: Request):
    events = await _filtered_events(request)
    return build_improvement_ideas(compute_summary(events))


@router.get("/api/export/events.csv")
async def export_events(request: Request):
    events = await _filtered_events(request)
    return _csv_response(events_to_csv(events))


@router.get("/api/export/summary.csv")
async def export_summary(request: Request):
    events = await _filtered_events(request)
    return _csv_response(summary_to_csv(compute_summary(events)))


@router.get("/api/export/reports/{year}.csv")
async def export_report(request: Request, year: int):
    events = await _filtered_events(request)
    report = _find_report(compute_yearly_reports(events), year)
    if report is None:
        raise HTTPException(status_code=404, detail=f"No plays recorded in {year}")
    return _csv_response(yearly_report_to_csv(report))


@router.post("/api/import/csv")
async def import_csv(request: Request):
    """Import a history CSV sent as the request body."""
    body = await request.body()
    try:
        events = parse_history_csv(body.decode("utf-8-sig"))
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV must be UTF-8 encoded")
    except HistoryParseError as e:
        raise HTTPException(status_code=400, detail=str(e))
    imported = await db.add_events(events, source="csv")
    return {"parsed": len(events), "imported": imported}


@router.post("/api/import/demo")
async def import_demo():
    """Load a generated demo history."""
    events = generate_sample_events(
        count=settings.sample_event_count, span_days=settings.sample_span_days
    )
    imported = await db.add_events(events, source="demo")
    return {"parsed": len(events), "imported": imported}


@router.delete("/api/events")
async def clear_events():
    deleted = await db.clear_events()
    return {"deleted": deleted}


@router.get("/health")
async def health():
    """Basic health check."""
    try:
        _ = db.conn
        db_connected = True
    except RuntimeError:
        db_connected = False
    return {
        "status": "ok",
        "db_connected": db_connected,
        "events": await db.count_events() if db_connected else 0,
    }


@router.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    STORED_EVENTS.set(await db.count_events())
    last_import = await db.get_last_import_at()
    LAST_IMPORT.set(last_import.timestamp() if last_import else 0)

    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)
