"""
Sidearm live stats adapter (live layer, two-tier with identifier discovery).

Schools are addressed by their athletics host name, but the live feed at
``sidearmstats.com/{abbrev}/baseball/game.json`` is keyed by Sidearm's
client abbreviation, which has to be discovered per school.
"""
from __future__ import annotations

import math
import re
from typing import Any, Optional

from ingest.normalization.parsing import clean_text, safe_int
from ingest.providers.base import IdentifierStrategy, ParseFailure, SourceAdapter
from shared.models.domain import Game, PlayerRef, Runners, Situation
from shared.models.enums import GameStatus, InningHalf, Layer, SourceName

SIDEARM_STATS_URL = "https://sidearmstats.com/{abbrev}/baseball/game.json"

# (display name, athletics host, known client abbreviation)
SIDEARM_SCHOOLS: tuple[tuple[str, str, Optional[str]], ...] = (
    ("Akron", "gozips.com", None),
    ("Alabama A&M", "aamusports.com", None),
    ("Albany", "ualbanysports.com", None),
    ("Alcorn State", "alcornsports.com", None),
    ("Arkansas-Pine Bluff", "uapblionsroar.com", None),
    ("Army", "goarmywestpoint.com", None),
    ("Bellarmine", "athletics.bellarmine.edu", None),
    ("Bethune-Cookman", "bcuathletics.com", None),
    ("Binghamton", "binghamtonbearcats.com", None),
    ("Bowling Green", "bgsufalcons.com", None),
    ("Brown", "brownbears.com", None),
    ("Bryant", "bryantbulldogs.com", None),
    ("Bucknell", "bucknellbison.com", None),
    ("Cal State Fullerton", "fullertontitans.com", None),
    ("Cal State Northridge", "gomatadors.com", None),
    ("Canisius", "gogriffs.com", None),
    ("Central Arkansas", "ucasports.com", None),
    ("Central Michigan", "cmuchippewas.com", None),
    ("Charleston Southern", "csusports.com", None),
    ("Coppin State", "coppinstatesports.com", None),
    ("Cornell", "cornellbigred.com", None),
    ("Dartmouth", "dartmouthsports.com", None),
    ("Davidson", "davidsonwildcats.com", None),
    ("Delaware State", "dsuhornets.com", None),
    ("Eastern Illinois", "eiupanthers.com", None),
    ("Fairleigh Dickinson", "fduknights.com", None),
    ("Florida A&M", "famuathletics.com", None),
    ("Fordham", "fordhamsports.com", None),
    ("George Washington", "gwsports.com", None),
    ("Grambling State", "gsutigers.com", None),
    ("Harvard", "gocrimson.com", None),
    ("High Point", "highpointpanthers.com", None),
    ("Holy Cross", "goholycross.com", None),
    ("Iona", "ionagaels.com", None),
    ("Jacksonville", "judolphins.com", None),
    ("Kent State", "kentstatesports.com", None),
    ("La Salle", "goexplorers.com", "lasalle"),
    ("Lafayette", "goleopards.com", None),
    ("Le Moyne", "lemoynedolphins.com", None),
    ("Lehigh", "lehighsports.com", None),
    ("Lindenwood", "lindenwoodlions.com", None),
    ("Long Island", "liuathletics.com", None),
    ("Longwood", "longwoodlancers.com", "longwood"),
    ("Loyola-Marymount", "lmulions.com", None),
    ("Maine", "goblackbears.com", None),
    ("Manhattan", "gojaspers.com", None),
    ("Maryland Eastern Shore", "umeshawksports.com", None),
    ("Mercyhurst", "hurstathletics.com", None),
    ("Merrimack", "merrimackathletics.com", None),
    ("Miami (OH)", "miamiredhawks.com", None),
    ("Mississippi Valley State", "mvsusports.com", None),
    ("Mount Saint Mary's", "mountathletics.com", "msmary"),
    ("New Haven", "newhavenchargers.com", None),
    ("Niagara", "purpleeagles.com", None),
    ("NJIT", "njithighlanders.com", None),
    ("Norfolk State", "nsuspartans.com", None),
    ("Northern Colorado", "uncbears.com", None),
    ("Northern Illinois", "niuhuskies.com", None),
    ("Northern Kentucky", "nkunorse.com", None),
    ("Omaha", "omavs.com", None),
    ("Oral Roberts", "oruathletics.com", None),
    ("Pacific", "pacifictigers.com", None),
    ("Princeton", "goprincetontigers.com", None),
    ("Quinnipiac", "gobobcats.com", None),
    ("Radford", "radfordathletics.com", None),
    ("Rider", "gobroncs.com", None),
    ("Sacred Heart", "sacredheartpioneers.com", None),
    ("Saint Bonaventure", "gobonnies.com", None),
    ("Saint Joseph's", "sjuhawks.com", None),
    ("Saint Peter's", "saintpeterspeacocks.com", None),
    ("Saint Thomas", "ustcelts.com", None),
    ("Siena", "sienasaints.com", None),
    ("South Carolina Upstate", "upstatespartans.com", None),
    ("Southeast Missouri", "semoredhawks.com", None),
    ("Southern", "gojagsports.com", None),
    ("Southern Indiana", "usiscreamingeagles.com", None),
    ("Stonehill", "stonehillskyhawks.com", None),
    ("Tennessee-Martin", "utmsports.com", None),
    ("Texas Southern", "tsusports.com", None),
    ("The Citadel", "citadelsports.com", None),
    ("Toledo", "utrockets.com", None),
    ("UC Irvine", "ucirvinesports.com", None),
    ("UC Riverside", "gohighlanders.com", "ucr"),
    ("UMass-Lowell", "goriverhawks.com", None),
    ("UMBC", "umbcretrievers.com", None),
    ("UNC Asheville", "uncabulldogs.com", "uncash"),
    ("Utah Tech", "utahtechtrailblazers.com", None),
    ("VMI", "vmikeydets.com", None),
    ("Wagner", "wagnerathletics.com", None),
    ("West Georgia", "uwgathletics.com", None),
    ("Western Illinois", "goleathernecks.com", None),
    ("Wofford", "woffordterriers.com", None),
    ("Wright State", "wsuraiders.com", None),
    ("Yale", "yalebulldogs.com", None),
    ("Youngstown State", "ysusports.com", None),
)


def host_stem(host: str) -> str:
    return re.sub(r"\.(com|edu)$", "", host)


def client_abbrev(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    game = payload.get("Game") or {}
    abbrev = game.get("ClientAbbrev")
    return str(abbrev) if abbrev else None


def _person(raw: Optional[dict[str, Any]], **extra: Any) -> Optional[PlayerRef]:
    if not raw:
        return None
    name = " ".join(p for p in (raw.get("FirstName"), raw.get("LastName")) if p)
    if not name:
        return None
    return PlayerRef(name=name, number=clean_text(raw.get("UniformNumber")), **extra)


class SidearmLiveAdapter(SourceAdapter):
    """Sidearm live-stats connector; endpoints are school hosts, targets are abbreviations."""

    name = SourceName.SIDEARM_LIVE.value
    layer = Layer.LIVE
    two_tier = True
    needs_identifier = True

    def endpoints(self) -> list[str]:
        return [host for _, host, _ in SIDEARM_SCHOOLS]

    def known_identifiers(self) -> dict[str, str]:
        return {host: abbrev for _, host, abbrev in SIDEARM_SCHOOLS if abbrev}

    def identifier_strategies(self, endpoint: str) -> list[IdentifierStrategy]:
        async def livestats_api() -> Optional[str]:
            return client_abbrev(await self._probe(f"https://{endpoint}/api/livestats/baseball"))

        async def stats_host_guess() -> Optional[str]:
            url = SIDEARM_STATS_URL.format(abbrev=host_stem(endpoint))
            return client_abbrev(await self._probe(url))

        return [
            IdentifierStrategy("livestats_api", livestats_api),
            IdentifierStrategy("stats_host_guess", stats_host_guess),
        ]

    async def _probe(self, url: str) -> Any:
        return await self._http.get_json(url, timeout_s=self._settings.discovery_request_timeout_s)

    async def fetch(self, target: str) -> Any:
        return await self._http.get_json(
            SIDEARM_STATS_URL.format(abbrev=target),
            params={"detail": "full"},
            extra_headers={"Accept": "application/json, text/plain, */*"},
            timeout_s=self._settings.discovery_request_timeout_s,
        )

    def normalize(self, payload: Any, endpoint: str) -> list[Game]:
        if not isinstance(payload, dict):
            raise ParseFailure("game.json payload is not an object")
        return self._normalize_each([payload], lambda p: self._parse_game(p, endpoint))

    def _parse_game(self, payload: dict[str, Any], endpoint: str) -> Optional[Game]:
        game = payload.get("Game")
        if not game or game.get("Type") != "BaseballSoftballGame":
            return None
        sport = game.get("GlobalSportShortname")
        if sport and sport != "baseball":
            return None

        if game.get("IsComplete"):
            status = GameStatus.FINAL
        elif game.get("HasStarted"):
            status = GameStatus.LIVE
        else:
            return None

        home = game.get("HomeTeam") or {}
        away = game.get("VisitingTeam") or {}
        sit = payload.get("Situation") or {}
        abbrev = game.get("ClientAbbrev") or host_stem(endpoint)

        situation = None
        if status == GameStatus.LIVE:
            raw_inning = sit.get("Inning")
            inning = int(math.floor(float(raw_inning))) if raw_inning else safe_int(game.get("Period")) or 1
            situation = Situation(
                inning=inning,
                half=InningHalf.BOTTOM if sit.get("BattingTeam") == "HomeTeam" else InningHalf.TOP,
                outs=safe_int(sit.get("Outs")) or 0,
                balls=safe_int(sit.get("Balls")) or 0,
                strikes=safe_int(sit.get("Strikes")) or 0,
                runners=Runners(
                    first=sit.get("OnFirst") is not None,
                    second=sit.get("OnSecond") is not None,
                    third=sit.get("OnThird") is not None,
                ),
                pitcher=_person(
                    sit.get("Pitcher"),
                    hand=clean_text(sit.get("PitcherHandedness")),
                    pitch_count=safe_int(sit.get("PitcherPitchCount")),
                ),
                batter=_person(sit.get("Batter"), hand=clean_text(sit.get("BatterHandedness"))),
            )

        return Game(
            id=f"sidearm-live-{abbrev}",
            source=self.name,
            status=status,
            home=self._team(
                home.get("Name"),
                score=safe_int(home.get("Score")),
                line_score=[safe_int(v) for v in home.get("PeriodScores") or []],
            ),
            away=self._team(
                away.get("Name"),
                score=safe_int(away.get("Score")),
                line_score=[safe_int(v) for v in away.get("PeriodScores") or []],
            ),
            situation=situation,
            updated_at=self._now(),
        )
