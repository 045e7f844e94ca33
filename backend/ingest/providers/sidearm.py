"""
Sidearm Sports aggregation API adapter (schedule layer).

One request returns every event across all Sidearm-hosted schools for the
day window; only baseball is kept. The feed carries no scores, just the
slate with venues, logos and media links.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

from ingest.normalization.parsing import clean_text, parse_datetime
from ingest.providers.base import FetchFailure, SourceAdapter
from shared.models.domain import Game
from shared.models.enums import GameStatus, Layer, SourceName

SIDEARM_GAMES_URL = "https://aggregation-service.sidearmsports.com/services/games.ashx"


def day_window(day: date) -> tuple[str, str]:
    """Sidearm's 'day' runs from 09:00Z to 08:59:59.999Z the next morning."""
    start = datetime.combine(day, time(9, 0), tzinfo=timezone.utc)
    end = start + timedelta(days=1) - timedelta(milliseconds=1)
    fmt = "%Y-%m-%dT%H:%M:%S.%f"
    return start.strftime(fmt)[:-3] + "Z", end.strftime(fmt)[:-3] + "Z"


def _is_baseball(entry: dict[str, Any]) -> bool:
    sport = entry.get("sport") or {}
    return sport.get("abbrev") == "BB" or sport.get("shortname") == "baseball"


class SidearmScheduleAdapter(SourceAdapter):
    """Sidearm aggregation-service connector."""

    name = SourceName.SIDEARM.value
    layer = Layer.SCHEDULE

    def _today(self) -> date:
        return datetime.now(ZoneInfo(self._settings.timezone)).date()

    async def fetch(self, target: str) -> Any:
        start, end = day_window(self._today())
        data = await self._http.get_json(
            SIDEARM_GAMES_URL,
            params={"livestats": "1", "start_date": start, "end_date": end},
        )
        if not isinstance(data, dict):
            raise FetchFailure("games payload is not an object")
        if data.get("error"):
            raise FetchFailure(f"sidearm api error: {data['error']}")
        return data

    def normalize(self, payload: Any, endpoint: str) -> list[Game]:
        return self._normalize_each(payload.get("data") or [], self._parse_entry)

    def _parse_entry(self, entry: dict[str, Any]) -> Optional[Game]:
        if not _is_baseball(entry):
            return None

        if entry.get("sidearmstats_active"):
            status = GameStatus.LIVE
        elif entry.get("status") == "C":
            status = GameStatus.FINAL
        else:
            status = GameStatus.SCHEDULED

        home = entry.get("home_team") or {}
        away = entry.get("away_team") or {}
        date_info = entry.get("date_info") or {}
        location = entry.get("location") or {}
        media = entry.get("media") or {}

        return Game(
            id=f"sidearm-{entry['id']}",
            source=self.name,
            status=status,
            start_time=parse_datetime(date_info.get("datetime_utc")),
            start_label=clean_text(date_info.get("time")),
            venue=clean_text(location.get("facility")),
            neutral_site=location.get("han") == "N",
            conference_game=bool(entry.get("conference_game")),
            home=self._team(
                home.get("name"),
                conference=(home.get("conference") or {}).get("name"),
                logo_url=home.get("logo"),
            ),
            away=self._team(
                away.get("name"),
                conference=(away.get("conference") or {}).get("name"),
                logo_url=away.get("logo"),
            ),
            livestats_url=media.get("livestats") or None,
            video_url=media.get("video") or None,
            updated_at=self._now(),
        )
