"""
Pure merge of the schedule layer and the live layers into one ordered game list.

Nothing here touches shared state: the same layers always produce the same
output, which is what lets the store rebuild from scratch on every change.
"""
from __future__ import annotations

import copy
import math
from typing import Any, Iterable, NamedTuple, Optional, Sequence

from builder.resolver import EntityResolver, Resolution
from shared.models.domain import Game, ResolutionStats, TeamSide, WinProbability
from shared.models.enums import GameStatus
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# Live value wins when present
GAME_LIVE_FIELDS = (
    "situation",
    "venue",
    "start_time",
    "start_label",
    "livestats_url",
    "video_url",
)
SIDE_LIVE_FIELDS = (
    "score",
    "hits",
    "errors",
    "line_score",
    "rank",
    "record",
    "logo_url",
)
# Schedule value wins; live only fills gaps
SIDE_IDENTITY_FIELDS = ("name", "abbreviation", "conference")

STATUS_PRIORITY: dict[GameStatus, int] = {
    GameStatus.LIVE: 0,
    GameStatus.SCHEDULED: 1,
    GameStatus.FINAL: 2,
    GameStatus.CANCELLED: 3,
}


class MergeResult(NamedTuple):
    games: list[Game]
    resolution: ResolutionStats


def is_present(value: Any) -> bool:
    """Null, empty strings and empty sequences count as absent."""
    if value is None:
        return False
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) > 0
    return True


# ── Overlay ─────────────────────────────────────────────────────────────

class _Overlay:
    """Applies one live record onto a copied base game, recording field provenance."""

    def __init__(self, base: Game, overlay: Game, fill_only: bool) -> None:
        self.merged = base.model_copy(deep=True)
        self.source = overlay.source
        self.fill_only = fill_only

    def take(self, target: Any, attr: str, value: Any, path: str, identity: bool = False) -> None:
        if not is_present(value):
            return
        if (self.fill_only or identity) and is_present(getattr(target, attr)):
            return
        setattr(target, attr, copy.deepcopy(value))
        self.merged.field_sources[path] = self.source

    def side(self, target: TeamSide, incoming: TeamSide, prefix: str) -> None:
        for attr in SIDE_LIVE_FIELDS:
            self.take(target, attr, getattr(incoming, attr), f"{prefix}.{attr}")
        for attr in SIDE_IDENTITY_FIELDS:
            self.take(target, attr, getattr(incoming, attr), f"{prefix}.{attr}", identity=True)


def overlay_game(base: Game, overlay: Game, swapped: bool = False, fill_only: bool = False) -> Game:
    """
    Merge ``overlay`` onto a copy of ``base``.

    Args:
        base: The schedule (or previously merged) record. Never mutated.
        overlay: The live record being applied.
        swapped: The overlay reports home/away reversed relative to ``base``.
        fill_only: Only populate fields ``base`` leaves empty. Used when a
            higher-priority live source already claimed the entry.
    """
    op = _Overlay(base, overlay, fill_only)
    merged = op.merged

    if not fill_only and overlay.status != merged.status:
        merged.status = overlay.status
        merged.field_sources["status"] = overlay.source

    for attr in GAME_LIVE_FIELDS:
        op.take(merged, attr, getattr(overlay, attr), attr)

    prob = overlay.pregame_home_win_prob
    if prob is not None and swapped:
        prob = 1.0 - prob
    op.take(merged, "pregame_home_win_prob", prob, "pregame_home_win_prob")

    if overlay.neutral_site and not merged.neutral_site:
        merged.neutral_site = True
    if overlay.conference_game and not merged.conference_game:
        merged.conference_game = True

    home, away = (overlay.away, overlay.home) if swapped else (overlay.home, overlay.away)
    op.side(merged.home, home, "home")
    op.side(merged.away, away, "away")

    if overlay.updated_at and (merged.updated_at is None or overlay.updated_at > merged.updated_at):
        merged.updated_at = overlay.updated_at
    return merged


# ── Win probability ─────────────────────────────────────────────────────

def _half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def win_probability(game: Game) -> Optional[WinProbability]:
    """Simple lead-times-leverage model; pregame odds come from the schedule provider."""
    home, away = game.home.score, game.away.score
    if game.status == GameStatus.CANCELLED:
        return None
    if game.status == GameStatus.FINAL:
        if home is None or away is None or home == away:
            return WinProbability(home=50, away=50)
        return WinProbability(home=100 if home > away else 0, away=100 if away > home else 0)
    if game.status == GameStatus.SCHEDULED:
        if game.pregame_home_win_prob is None:
            return WinProbability()
        home_pct = _half_up(min(max(game.pregame_home_win_prob, 0.0), 1.0) * 100)
        return WinProbability(home=home_pct, away=100 - home_pct)

    inning = game.situation.inning if game.situation else 0
    diff = (home or 0) - (away or 0)
    leverage = diff * (0.5 + min(inning / 9, 1.0) * 0.5) * 12
    home_pct = _half_up(min(99.0, max(1.0, 50 + leverage)))
    return WinProbability(home=home_pct, away=100 - home_pct)


# ── Ordering ────────────────────────────────────────────────────────────

def sort_key(game: Game) -> tuple[int, int, int, float]:
    priority = STATUS_PRIORITY[game.status]
    if game.status == GameStatus.LIVE:
        inning, half = game.situation.progress if game.situation else (0, 0)
        return (priority, -inning, -half, 0.0)
    if game.status == GameStatus.SCHEDULED:
        if game.start_time is None:
            return (priority, 1, 0, 0.0)
        return (priority, 0, 0, game.start_time.timestamp())
    return (priority, 0, 0, 0.0)


def sort_games(games: Iterable[Game]) -> list[Game]:
    """Live (furthest along first), scheduled (earliest first), final, cancelled. Stable."""
    return sorted(games, key=sort_key)


# ── Rebuild ─────────────────────────────────────────────────────────────

def order_live_sources(sources: Iterable[str], priority: Sequence[str]) -> list[str]:
    """Configured priority first, any other source after it in name order."""
    present = set(sources)
    ordered = [s for s in priority if s in present]
    ordered.extend(sorted(present.difference(ordered)))
    return ordered


def _finalize(game: Game) -> Game:
    if game.status != GameStatus.LIVE and game.situation is not None:
        game.situation = None
    game.win_probability = win_probability(game)
    return game


def build_games(
    schedule: Iterable[Game],
    live_layers: dict[str, Sequence[Game]],
    resolver: EntityResolver,
    priority: Sequence[str] = (),
) -> MergeResult:
    """
    Merge layers into a sorted list of games.

    Overlays resolve first against entries no live source has claimed yet,
    so doubleheaders and repeated matchups pair off one-to-one. An overlay
    that only matches an already claimed entry contributes fill-only data.
    """
    result: dict[str, Game] = {}
    for game in schedule:
        result[game.id] = game.model_copy(deep=True)
    claimed: set[str] = set()
    stats = ResolutionStats()

    for source in order_live_sources(live_layers.keys(), priority):
        for record in live_layers[source]:
            unclaimed = [g for gid, g in result.items() if gid not in claimed]
            res: Optional[Resolution] = resolver.resolve(
                record.home.name, record.away.name, unclaimed
            )
            if res is None and claimed:
                res = resolver.resolve(
                    record.home.name,
                    record.away.name,
                    [result[gid] for gid in claimed],
                )

            if res is None:
                stats.unresolved += 1
                if record.id in result:
                    result[record.id] = overlay_game(result[record.id], record, fill_only=True)
                else:
                    result[record.id] = record.model_copy(deep=True)
                claimed.add(record.id)
                continue

            stats.resolved += 1
            if res.ambiguous:
                stats.ambiguous += 1
                logger.debug(
                    "overlay_resolution_ambiguous",
                    source=source,
                    overlay_id=record.id,
                    chosen=res.game.id,
                    method=res.method,
                )
            target_id = res.game.id
            result[target_id] = overlay_game(
                result[target_id],
                record,
                swapped=res.swapped,
                fill_only=target_id in claimed,
            )
            claimed.add(target_id)

    games = sort_games(_finalize(g) for g in result.values())
    return MergeResult(games, stats)
