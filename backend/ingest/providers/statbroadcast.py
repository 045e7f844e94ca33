"""
StatBroadcast landing-page adapter (live layer, two-tier).

Each school (gid) has a server-rendered events page whose "week at a glance"
table lists results such as ``Kentucky 3, UNC Greensboro 0 - T3rd``. The
visitor is always listed first. Pages are scraped with BeautifulSoup and the
score lines matched with regular expressions.
"""
from __future__ import annotations

import re
from typing import Any, Iterator, Optional

from bs4 import BeautifulSoup

from ingest.normalization.parsing import parse_inning
from ingest.providers.base import SourceAdapter
from shared.models.domain import Game, Situation
from shared.models.enums import GameStatus, InningHalf, Layer, SourceName

STATBROADCAST_EVENTS_URL = "https://www.statbroadcast.com/events/statbroadcast.php"

_BASEBALL_RE = re.compile(r"\bBASE\b|baseball", re.IGNORECASE)
_SCORE_LINE_RE = re.compile(
    r"(?P<away>[A-Za-z#0-9][A-Za-z0-9\s.&'()/-]*?)\s+(?P<away_score>\d+)\s*,\s*"
    r"(?P<home>[A-Za-z#0-9][A-Za-z0-9\s.&'()/-]*?)\s+(?P<home_score>\d+)\s*-\s*(?P<status>[^|]+)"
)
_RANK_PREFIX_RE = re.compile(r"^#\s*(\d{1,2})\s+")
_EVENT_ID_RE = re.compile(r"broadcast/\?id=(\d+)")
_FINAL_RE = re.compile(r"\bFINAL\b", re.IGNORECASE)
_SKIP_RE = re.compile(r"pregame|ppd|postponed|delayed|cancel", re.IGNORECASE)
_IN_PROGRESS_RE = re.compile(r"in\s+progress", re.IGNORECASE)


def _split_rank(raw: str) -> tuple[str, Optional[int]]:
    name = raw.strip()
    match = _RANK_PREFIX_RE.match(name)
    if match:
        return name[match.end():].strip(), int(match.group(1))
    return name, None


def iter_score_rows(html: str) -> Iterator[tuple[re.Match[str], Optional[str]]]:
    """Yield (score match, broadcast event id) for every baseball score line on the page."""
    soup = BeautifulSoup(html, "html.parser")
    rows = soup.find_all("tr")
    if rows:
        for row in rows:
            text = row.get_text(" | ", strip=True)
            if not _BASEBALL_RE.search(text):
                continue
            event_id = None
            for link in row.find_all("a", href=True):
                found = _EVENT_ID_RE.search(link["href"])
                if found:
                    event_id = found.group(1)
                    break
            for cell in row.find_all(["td", "th"]):
                match = _SCORE_LINE_RE.search(cell.get_text(" ", strip=True))
                if match:
                    yield match, event_id
                    break
        return

    # Pages without a results table: fall back to text lines near a baseball marker
    lines = [line.strip() for line in soup.get_text("\n").splitlines() if line.strip()]
    for idx, line in enumerate(lines):
        match = _SCORE_LINE_RE.search(line)
        if not match:
            continue
        context = " ".join(lines[max(0, idx - 2): idx + 3])
        if _BASEBALL_RE.search(context):
            found = _EVENT_ID_RE.search(context)
            yield match, found.group(1) if found else None


def parse_status(text: str) -> tuple[Optional[GameStatus], Optional[Situation]]:
    """Map a status fragment (``FINAL``, ``B5th -- In Progress``) to status and situation."""
    if _FINAL_RE.search(text):
        return GameStatus.FINAL, None
    if _SKIP_RE.search(text):
        return None, None
    inning, half = parse_inning(text)
    if inning is None and not _IN_PROGRESS_RE.search(text):
        return None, None
    return GameStatus.LIVE, Situation(inning=inning or 0, half=half or InningHalf.TOP)


class StatBroadcastAdapter(SourceAdapter):
    """StatBroadcast events-page scraper; one endpoint per school gid."""

    name = SourceName.STATBROADCAST.value
    layer = Layer.LIVE
    two_tier = True

    def endpoints(self) -> list[str]:
        configured = [*self._settings.statbroadcast_gids, *self._directory.statbroadcast_gids()]
        return list(dict.fromkeys(configured))

    async def fetch(self, target: str) -> Any:
        return await self._http.get_text(
            STATBROADCAST_EVENTS_URL,
            params={"gid": target},
            extra_headers={"Accept": "text/html"},
            timeout_s=self._settings.discovery_request_timeout_s,
        )

    def normalize(self, payload: Any, endpoint: str) -> list[Game]:
        return self._normalize_each(
            iter_score_rows(payload),
            lambda row: self._parse_row(row[0], row[1], endpoint),
        )

    def _parse_row(self, match: re.Match[str], event_id: Optional[str], gid: str) -> Optional[Game]:
        status, situation = parse_status(match.group("status"))
        if status is None:
            return None
        away_name, away_rank = _split_rank(match.group("away"))
        home_name, home_rank = _split_rank(match.group("home"))
        away = self._team(away_name, rank=away_rank, score=int(match.group("away_score")))
        home = self._team(home_name, rank=home_rank, score=int(match.group("home_score")))

        if event_id:
            game_id = f"sb-{event_id}"
            livestats = f"https://stats.statbroadcast.com/broadcast/?id={event_id}"
        else:
            key = "-".join((s.abbreviation or s.name).replace(" ", "") for s in (away, home))
            game_id = f"sb-{gid}-{key}"
            livestats = None

        return Game(
            id=game_id,
            source=self.name,
            status=status,
            home=home,
            away=away,
            situation=situation,
            livestats_url=livestats,
            updated_at=self._now(),
        )
