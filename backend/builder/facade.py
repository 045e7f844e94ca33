"""
Read-only query facade over the latest store snapshot.

Every operation reads ``store.snapshot`` exactly once, so a call never mixes
two rebuilds.
"""
from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from builder.store import GameStore
from shared.models.domain import Game, ScoreboardStats
from shared.models.enums import GameStatus
from shared.teams import normalize_name

if TYPE_CHECKING:
    from ingest.providers.base import SourceAdapter
    from scheduler.supervisor import BaseSupervisor


def conference_matches(tag: str, conference: Optional[str]) -> bool:
    """Exact or substring match in either direction, case-insensitive."""
    norm_tag, norm_conf = normalize_name(tag), normalize_name(conference)
    if not norm_tag or not norm_conf:
        return False
    return norm_tag == norm_conf or norm_tag in norm_conf or norm_conf in norm_tag


class QueryFacade:
    def __init__(
        self,
        store: GameStore,
        adapters: Sequence["SourceAdapter"] = (),
        supervisors: Sequence["BaseSupervisor"] = (),
    ) -> None:
        self._store = store
        self._adapters = list(adapters)
        self._supervisors = list(supervisors)

    def get_games(self) -> list[Game]:
        return list(self._store.snapshot.games)

    def get_live_games(self) -> list[Game]:
        return [g for g in self._store.snapshot.games if g.is_live]

    def get_games_by_conference(self, tag: str) -> list[Game]:
        return [
            g
            for g in self._store.snapshot.games
            if any(conference_matches(tag, conf) for conf in g.conferences)
        ]

    def get_stats(self) -> ScoreboardStats:
        snapshot = self._store.snapshot
        by_status = Counter(g.status for g in snapshot.games)
        return ScoreboardStats(
            total=len(snapshot.games),
            live=by_status[GameStatus.LIVE],
            final=by_status[GameStatus.FINAL],
            scheduled=by_status[GameStatus.SCHEDULED],
            cancelled=by_status[GameStatus.CANCELLED],
            per_source_counts=self._store.layer_counts(),
            games_by_source=dict(Counter(g.source for g in snapshot.games)),
            last_refresh=self._store.last_refresh(),
            error_counters=self._error_counters(self._adapters),
            active_endpoints={s.source: len(s.active_set) for s in self._supervisors},
            resolution=snapshot.resolution,
            snapshot_version=snapshot.version,
            built_at=snapshot.built_at,
        )

    @staticmethod
    def _error_counters(adapters: Iterable["SourceAdapter"]) -> dict[str, dict[str, int]]:
        return {
            adapter.name: {
                "requests": adapter.stats.requests,
                "errors": adapter.stats.errors,
                "parse_errors": adapter.stats.parse_errors,
            }
            for adapter in adapters
        }
