"""
Fixture REST endpoints.

GET /fixtures/date/{date}          3-day window around a date, de-duplicated
GET /fixtures/live                 current live fixtures
GET /fixtures/league/{league_id}   one league's season fixtures
GET /fixtures/{fixture_id}         single fixture

List endpoints return a JSON array and report cache state in headers:
X-Cache-Status (fresh|miss|stale|empty), X-Cache-Age (seconds) and a weak ETag.
"""
from __future__ import annotations

import hashlib
import json
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse

from shared.config import get_settings
from shared.models.domain import ClassificationResult, Fixture
from shared.utils.dates import parse_date, resolve_timezone
from shared.utils.logging import get_logger
from shared.utils.time_classifier import classify_all

from api.dependencies import get_fixture_service, get_reconciler
from ingest.service import FixtureResult, FixtureService
from scheduler.reconciler import LiveReconciler

logger = get_logger(__name__)
router = APIRouter(prefix="/fixtures", tags=["fixtures"])


def _compute_etag(content: str | bytes) -> str:
    """Compute a weak ETag from content."""
    if isinstance(content, str):
        content = content.encode()
    digest = hashlib.md5(content).hexdigest()[:16]
    return f'W/"{digest}"'


def _fixture_json(
    fixture: Fixture,
    classification: Optional[ClassificationResult] = None,
    reconciler: Optional[LiveReconciler] = None,
) -> dict[str, Any]:
    body = fixture.model_dump(mode="json")
    if classification is not None:
        body["classification"] = classification.model_dump(mode="json")
    if reconciler is not None and fixture.status.code.is_live:
        shown = reconciler.display_elapsed(fixture.id)
        if shown is not None:
            body["display_elapsed"] = shown
    return body


def _list_response(
    request: Request,
    result: FixtureResult,
    items: list[dict[str, Any]],
    now: datetime,
) -> Response:
    payload_json = json.dumps(items, sort_keys=True, default=str)
    etag = _compute_etag(payload_json)
    headers = {"ETag": etag, "X-Cache-Status": result.status.value}
    age = result.age_seconds(now)
    if age is not None:
        headers["X-Cache-Age"] = str(int(age))
    if request.headers.get("if-none-match") == etag:
        return Response(status_code=304, headers=headers)
    return Response(content=payload_json, media_type="application/json", headers=headers)


@router.get("/date/{date}")
async def get_fixtures_by_date(
    request: Request,
    date: str,
    include_all: bool = Query(True, alias="all", description="false keeps only popular leagues"),
    with_classification: bool = Query(False, alias="classify"),
    reference_date: Optional[str] = Query(None, description="YYYY-MM-DD; defaults to {date}"),
    tz: Optional[str] = Query(None, description="IANA timezone of the viewer"),
    window_hours: Optional[float] = Query(None, gt=0, le=72),
    strict: bool = Query(False, description="only fixtures whose local kickoff date is {date}"),
    service: FixtureService = Depends(get_fixture_service),
    reconciler: Optional[LiveReconciler] = Depends(get_reconciler),
) -> Response:
    """
    De-duplicated fixtures for [date-1, date, date+1].

    Invalid dates answer 400. Upstream failures are absorbed: the response
    is fresh, stale or empty, as reported by X-Cache-Status.
    """
    target = parse_date(date)
    reference = parse_date(reference_date) if reference_date else target
    zone = resolve_timezone(tz)
    settings = get_settings()

    result = await service.get_fixtures_for_date(target, include_all=include_all)
    fixtures = result.fixtures
    if strict:
        fixtures = [f for f in fixtures if f.kickoff_time.astimezone(zone).date() == target]

    if not with_classification:
        items = [_fixture_json(f, reconciler=reconciler) for f in fixtures]
    else:
        classified = classify_all(
            fixtures,
            reference,
            now=service.now(),
            window_hours=window_hours or settings.active_window_hours,
            match_minutes=settings.match_duration_minutes,
            tz=zone,
        )
        items = [_fixture_json(c.fixture, c.classification, reconciler) for c in classified]
    return _list_response(request, result, items, service.now())


@router.get("/live")
async def get_live_fixtures(
    request: Request,
    service: FixtureService = Depends(get_fixture_service),
    reconciler: Optional[LiveReconciler] = Depends(get_reconciler),
) -> Response:
    result = await service.get_live()
    items = [_fixture_json(f, reconciler=reconciler) for f in result.fixtures]
    return _list_response(request, result, items, service.now())


@router.get("/league/{league_id}")
async def get_league_fixtures(
    request: Request,
    league_id: int,
    season: Optional[int] = Query(None, ge=1900, le=2100),
    service: FixtureService = Depends(get_fixture_service),
) -> Response:
    result = await service.get_fixtures_for_league(league_id, season)
    return _list_response(request, result, [_fixture_json(f) for f in result.fixtures], service.now())


@router.get("/{fixture_id}")
async def get_fixture(
    fixture_id: int,
    service: FixtureService = Depends(get_fixture_service),
    reconciler: Optional[LiveReconciler] = Depends(get_reconciler),
) -> JSONResponse:
    fixture = await service.get_fixture(fixture_id)
    if fixture is None:
        raise HTTPException(status_code=404, detail=f"Fixture {fixture_id} not found")
    return JSONResponse(_fixture_json(fixture, reconciler=reconciler))
