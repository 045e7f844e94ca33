"""
ESPN college baseball scoreboard adapter.

Single JSON feed covering the whole D1 slate. Feeds the live layer with
in-progress and finished games; pre-game events are left to the schedule.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

from ingest.normalization.parsing import (
    clean_text,
    parse_datetime,
    parse_inning,
    safe_int,
)
from ingest.providers.base import FetchFailure, SourceAdapter
from shared.models.domain import Game, PlayerRef, Runners, Situation, TeamSide
from shared.models.enums import GameStatus, InningHalf, Layer, SourceName

ESPN_SCOREBOARD_URL = (
    "https://site.api.espn.com/apis/site/v2/sports/baseball/college-baseball/scoreboard"
)
# groups=50 is Division I; limit covers the busiest weekend slates
SCOREBOARD_PARAMS = {"limit": "200", "groups": "50"}

_CANCELLED_TYPES = {"STATUS_CANCELED", "STATUS_POSTPONED", "STATUS_FORFEIT"}


def _espn_status(comp: dict[str, Any]) -> GameStatus:
    status_type = (comp.get("status") or {}).get("type") or {}
    if status_type.get("name") in _CANCELLED_TYPES:
        return GameStatus.CANCELLED
    state = status_type.get("state", "")
    if state == "in":
        return GameStatus.LIVE
    if state == "post":
        return GameStatus.FINAL
    return GameStatus.SCHEDULED


def _stat(competitor: dict[str, Any], name: str) -> Optional[int]:
    for stat in competitor.get("statistics") or []:
        if stat.get("name") == name:
            return safe_int(stat.get("displayValue"))
    return None


def _record(competitor: dict[str, Any]) -> Optional[str]:
    for rec in competitor.get("records") or []:
        if rec.get("type") in ("total", "overall"):
            return rec.get("summary") or None
    return None


def _player(raw: Optional[dict[str, Any]]) -> Optional[PlayerRef]:
    if not raw:
        return None
    athlete = raw.get("athlete") or {}
    name = athlete.get("displayName") or raw.get("displayName")
    if not name:
        return None
    return PlayerRef(
        name=name,
        number=clean_text(athlete.get("jersey")),
        pitch_count=safe_int(raw.get("pitchCount")),
        average=clean_text(raw.get("average")),
    )


class ESPNAdapter(SourceAdapter):
    """ESPN scoreboard connector."""

    name = SourceName.ESPN.value
    layer = Layer.LIVE

    def _scoreboard_date(self) -> str:
        return datetime.now(ZoneInfo(self._settings.timezone)).strftime("%Y%m%d")

    async def fetch(self, target: str) -> Any:
        params = {"dates": self._scoreboard_date(), **SCOREBOARD_PARAMS}
        data = await self._http.get_json(ESPN_SCOREBOARD_URL, params=params)
        if not isinstance(data, dict):
            raise FetchFailure("scoreboard payload is not an object")
        return data

    def normalize(self, payload: Any, endpoint: str) -> list[Game]:
        return self._normalize_each(payload.get("events") or [], self._parse_event)

    # ── Parsing helpers ─────────────────────────────────────────────────

    def _parse_event(self, event: dict[str, Any]) -> Optional[Game]:
        comp = (event.get("competitions") or [None])[0]
        if not comp:
            return None
        status = _espn_status(comp)
        if status not in (GameStatus.LIVE, GameStatus.FINAL):
            return None

        competitors = comp.get("competitors") or []
        home_raw = next((c for c in competitors if c.get("homeAway") == "home"), None)
        away_raw = next((c for c in competitors if c.get("homeAway") == "away"), None)
        if not home_raw or not away_raw:
            return None

        detail = ((comp.get("status") or {}).get("type") or {}).get("detail", "")
        situation = None
        if status == GameStatus.LIVE:
            inning, half = parse_inning(detail)
            sit = comp.get("situation") or {}
            situation = Situation(
                inning=inning or safe_int((comp.get("status") or {}).get("period")) or 0,
                half=half or InningHalf.TOP,
                outs=safe_int(sit.get("outs")) or 0,
                balls=safe_int(sit.get("balls")) or 0,
                strikes=safe_int(sit.get("strikes")) or 0,
                runners=Runners(
                    first=bool(sit.get("onFirst")),
                    second=bool(sit.get("onSecond")),
                    third=bool(sit.get("onThird")),
                ),
                pitcher=_player(sit.get("pitcher")),
                batter=_player(sit.get("batter")),
            )

        venue = comp.get("venue") or {}
        start_time = parse_datetime(event.get("date"))
        return Game(
            id=f"espn-{event['id']}",
            source=self.name,
            status=status,
            start_time=start_time,
            start_label=self._start_label(start_time),
            venue=venue.get("fullName") or (venue.get("address") or {}).get("city"),
            neutral_site=bool(comp.get("neutralSite")),
            conference_game=bool(comp.get("conferenceCompetition")),
            home=self._side(home_raw),
            away=self._side(away_raw),
            situation=situation,
            updated_at=self._now(),
        )

    def _side(self, competitor: dict[str, Any]) -> TeamSide:
        team = competitor.get("team") or {}
        rank = safe_int((competitor.get("curatedRank") or {}).get("current"))
        return self._team(
            team.get("displayName") or team.get("location") or team.get("name"),
            abbreviation=team.get("abbreviation"),
            rank=rank if rank is not None and 1 <= rank <= 25 else None,
            record=_record(competitor),
            score=safe_int(competitor.get("score")),
            hits=_stat(competitor, "hits"),
            errors=_stat(competitor, "errors"),
            line_score=[safe_int(ls.get("value")) for ls in competitor.get("linescores") or []],
            logo_url=team.get("logo"),
        )

    def _start_label(self, start_time: Optional[datetime]) -> Optional[str]:
        if start_time is None:
            return None
        local = start_time.astimezone(ZoneInfo(self._settings.timezone))
        return local.strftime("%I:%M %p").lstrip("0") + f" {local.tzname()}"
