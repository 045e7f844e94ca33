"""
Scoreboard REST endpoints.

GET /api/scores                     Every game today, sorted, plus stats.
GET /api/scores/live                Live games only.
GET /api/scores/conference/{conf}   Games involving a conference.
GET /api/teams                      Team reference directory.
GET /api/status                     Aggregator health and per-source state.
"""
from __future__ import annotations

import hashlib
import json
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Request, Response

from builder.facade import QueryFacade
from scheduler.service import AggregatorService
from shared.config import Settings, get_settings
from shared.models.domain import Game

from api.dependencies import get_facade, get_service

router = APIRouter(prefix="/api", tags=["scores"])


def _games(games: list[Game]) -> list[dict[str, Any]]:
    return [g.model_dump(mode="json") for g in games]


@router.get("/scores")
async def get_scores(
    request: Request,
    response: Response,
    facade: QueryFacade = Depends(get_facade),
    settings: Settings = Depends(get_settings),
) -> Any:
    """
    Full scoreboard for today.

    Supports ETag-based conditional requests; the tag changes whenever the
    snapshot contents do.
    """
    games = facade.get_games()
    payload = {
        "date": datetime.now(ZoneInfo(settings.timezone)).date().isoformat(),
        "count": len(games),
        "games": _games(games),
        "stats": facade.get_stats().to_payload(),
    }

    # Stats carry timestamps that move on every rebuild; tag the games only
    etag = _compute_etag(json.dumps(payload["games"], sort_keys=True))
    if request.headers.get("if-none-match") == etag:
        return Response(status_code=304, headers={"ETag": etag})
    response.headers["ETag"] = etag
    response.headers["Cache-Control"] = "public, max-age=2"
    return payload


@router.get("/scores/live")
async def get_live_scores(facade: QueryFacade = Depends(get_facade)) -> dict[str, Any]:
    games = facade.get_live_games()
    return {"count": len(games), "games": _games(games)}


@router.get("/scores/conference/{conference}")
async def get_conference_scores(
    conference: str,
    facade: QueryFacade = Depends(get_facade),
) -> dict[str, Any]:
    games = facade.get_games_by_conference(conference)
    return {"conference": conference, "count": len(games), "games": _games(games)}


@router.get("/teams")
async def list_teams(service: AggregatorService = Depends(get_service)) -> dict[str, Any]:
    teams = [t.to_dict() for t in service.directory.teams]
    return {"count": len(teams), "teams": teams}


@router.get("/status")
async def get_status(service: AggregatorService = Depends(get_service)) -> dict[str, Any]:
    """Operational view: scoreboard stats plus adapter, circuit and supervisor state."""
    return {
        "status": "ok" if service.running else "stopped",
        "uptime_s": service.uptime_s,
        "games": service.facade.get_stats().to_payload(),
        "sources": service.sources_status(),
    }


def _compute_etag(content: str | bytes) -> str:
    """Compute a weak ETag from content."""
    if isinstance(content, str):
        content = content.encode()
    digest = hashlib.md5(content).hexdigest()[:16]
    return f'W/"{digest}"'
