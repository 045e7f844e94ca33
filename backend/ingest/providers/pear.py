"""
PEAR ratings schedule adapter (alternate schedule layer).

The endpoint returns a window of games around today; entries are filtered
to today's date. Completed games carry a ``"Winner 7-3"`` score string,
which is mapped back onto home/away by name.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

from ingest.normalization.parsing import clean_text
from ingest.providers.base import FetchFailure, SourceAdapter
from shared.models.domain import Game
from shared.models.enums import GameStatus, Layer, SourceName
from shared.teams import normalize_name

PEAR_SCHEDULE_URL = "https://pearatings.com/api/cbase/schedule/today"

_SCORE_RE = re.compile(r"(\d+)\s*-\s*(\d+)\s*$")
_TIME_FORMATS = ("%I:%M %p", "%I:%M%p", "%H:%M")


def _net_rank(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None


def parse_score(
    score: Optional[str], home_name: str, away_name: str
) -> tuple[GameStatus, Optional[int], Optional[int]]:
    """Return (status, home_score, away_score) from a PEAR score string."""
    if not score or score.strip().upper() == "SCH":
        return GameStatus.SCHEDULED, None, None
    match = _SCORE_RE.search(score)
    if not match:
        return GameStatus.SCHEDULED, None, None

    high, low = int(match.group(1)), int(match.group(2))
    if high == 0 and low == 0:
        return GameStatus.CANCELLED, None, None

    winner = normalize_name(score[: match.start()])
    home, away = normalize_name(home_name), normalize_name(away_name)
    if winner and away and (winner in away or away in winner) and not (
        home and (winner in home or home in winner)
    ):
        return GameStatus.FINAL, low, high
    return GameStatus.FINAL, high, low


class PearScheduleAdapter(SourceAdapter):
    """PEAR ratings connector."""

    name = SourceName.PEAR.value
    layer = Layer.SCHEDULE

    def _today(self) -> date:
        return datetime.now(ZoneInfo(self._settings.timezone)).date()

    async def fetch(self, target: str) -> Any:
        data = await self._http.get_json(
            PEAR_SCHEDULE_URL, params={"season": str(self._today().year)}
        )
        if not isinstance(data, dict):
            raise FetchFailure("schedule payload is not an object")
        return data

    def normalize(self, payload: Any, endpoint: str) -> list[Game]:
        today = self._today().isoformat()
        entries = [g for g in payload.get("games") or [] if g.get("Date") == today]
        return self._normalize_each(entries, self._parse_entry)

    def _parse_entry(self, entry: dict[str, Any]) -> Optional[Game]:
        home_name = clean_text(entry.get("home_team")) or ""
        away_name = clean_text(entry.get("away_team")) or ""
        status, home_score, away_score = parse_score(entry.get("score"), home_name, away_name)

        home = self._team(
            home_name,
            conference=entry.get("home_conference") or None,
            rank=_net_rank(entry.get("home_net")),
            score=home_score,
        )
        away = self._team(
            away_name,
            conference=entry.get("away_conference") or None,
            rank=_net_rank(entry.get("away_net")),
            score=away_score,
        )
        key = "-".join(
            (side.abbreviation or side.name).replace(" ", "") for side in (away, home)
        )
        prob = entry.get("home_win_prob")

        return Game(
            id=f"pear-{entry['Date']}-{key}",
            source=self.name,
            status=status,
            start_time=self._start_time(entry["Date"], entry.get("Time")),
            start_label=clean_text(entry.get("Time")),
            neutral_site=entry.get("Location") == "Neutral",
            conference_game=bool(entry.get("is_conference_game")),
            home=home,
            away=away,
            pregame_home_win_prob=float(prob) if prob not in (None, "") else None,
            updated_at=self._now(),
        )

    def _start_time(self, day: str, label: Optional[str]) -> Optional[datetime]:
        if not label:
            return None
        text = label.upper().replace("ET", "").strip()
        for fmt in _TIME_FORMATS:
            try:
                parsed = datetime.strptime(f"{day} {text}", f"%Y-%m-%d {fmt}")
            except ValueError:
                continue
            return parsed.replace(tzinfo=ZoneInfo(self._settings.timezone))
        return None
