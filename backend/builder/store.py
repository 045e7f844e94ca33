"""
Game store: layer holder and snapshot owner.

Supervisors replace whole layers; the rebuild trigger is the only writer of
the snapshot. Readers grab ``store.snapshot`` once and work on that immutable
object, so they never see a half-merged state.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from builder.merge import build_games
from builder.resolver import EntityResolver
from shared.models.domain import Game, ResolutionStats
from shared.models.enums import GameStatus, Layer
from shared.utils.logging import get_logger
from shared.utils.metrics import (
    LAYER_RECORDS,
    REBUILD_DURATION,
    RESOLUTIONS,
    SNAPSHOT_GAMES,
    STORE_REBUILDS,
    track_latency,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class Snapshot:
    games: tuple[Game, ...] = ()
    version: int = 0
    built_at: Optional[datetime] = None
    resolution: ResolutionStats = field(default_factory=ResolutionStats)

    def count(self, status: GameStatus) -> int:
        return sum(1 for g in self.games if g.status == status)


class GameStore:
    """
    Holds the schedule layer and one live layer per source.

    Args:
        resolver: Entity resolver used during rebuilds.
        live_priority: Live sources in overlay order; earlier sources claim
            an entry, later ones only fill its gaps.
    """

    def __init__(
        self,
        resolver: EntityResolver | None = None,
        live_priority: Sequence[str] = (),
    ) -> None:
        self._resolver = resolver or EntityResolver()
        self._live_priority = tuple(live_priority)
        self._schedule_source: Optional[str] = None
        self._schedule: dict[str, Game] = {}
        self._live: dict[str, dict[str, Game]] = {}
        self._last_refresh: dict[str, datetime] = {}
        self._snapshot = Snapshot()
        self._changed = asyncio.Event()

    # ── Layer writes ────────────────────────────────────────────────────

    def replace_schedule(self, source: str, games: Iterable[Game]) -> None:
        self._schedule_source = source
        self._schedule = {g.id: g for g in games}
        self._mark(Layer.SCHEDULE, source, len(self._schedule))

    def replace_live(self, source: str, games: Iterable[Game]) -> None:
        self._live[source] = {g.id: g for g in games}
        self._mark(Layer.LIVE, source, len(self._live[source]))

    def replace_layer(self, layer: Layer, source: str, games: Iterable[Game]) -> None:
        if layer == Layer.SCHEDULE:
            self.replace_schedule(source, games)
        else:
            self.replace_live(source, games)

    def _mark(self, layer: Layer, source: str, count: int) -> None:
        self._last_refresh[source] = datetime.now(timezone.utc)
        LAYER_RECORDS.labels(layer=layer.value, provider=source).set(count)
        self._changed.set()

    # ── Rebuild ─────────────────────────────────────────────────────────

    def rebuild(self) -> Snapshot:
        """Recompute the snapshot from the current layers and swap it in."""
        live_layers = {source: list(layer.values()) for source, layer in self._live.items()}
        with track_latency(REBUILD_DURATION):
            merged = build_games(
                self._schedule.values(),
                live_layers,
                self._resolver,
                self._live_priority,
            )
        snapshot = Snapshot(
            games=tuple(merged.games),
            version=self._snapshot.version + 1,
            built_at=datetime.now(timezone.utc),
            resolution=merged.resolution,
        )
        self._snapshot = snapshot

        STORE_REBUILDS.inc()
        RESOLUTIONS.labels(outcome="resolved").inc(merged.resolution.resolved)
        RESOLUTIONS.labels(outcome="unresolved").inc(merged.resolution.unresolved)
        RESOLUTIONS.labels(outcome="ambiguous").inc(merged.resolution.ambiguous)
        for status in GameStatus:
            SNAPSHOT_GAMES.labels(status=status.value).set(snapshot.count(status))
        logger.debug(
            "snapshot_rebuilt",
            version=snapshot.version,
            games=len(snapshot.games),
            resolved=merged.resolution.resolved,
            unresolved=merged.resolution.unresolved,
        )
        return snapshot

    # ── Reads ───────────────────────────────────────────────────────────

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def changed(self) -> asyncio.Event:
        return self._changed

    @property
    def schedule_source(self) -> Optional[str]:
        return self._schedule_source

    def layer_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        if self._schedule_source is not None:
            counts[self._schedule_source] = len(self._schedule)
        for source, layer in self._live.items():
            counts[source] = len(layer)
        return counts

    def last_refresh(self) -> dict[str, datetime]:
        return dict(self._last_refresh)


class RebuildTrigger:
    """
    Background task that rebuilds the store whenever a layer changes.

    Being a single task, it serializes rebuilds; replacements that land while
    a rebuild is pending coalesce into the next one, which always reads the
    latest layers.
    """

    def __init__(self, store: GameStore, debounce_s: float = 0.25) -> None:
        self._store = store
        self._debounce_s = debounce_s
        self.rebuilds = 0
        self.last_rebuild_ms: Optional[float] = None

    async def run(self, shutdown: asyncio.Event) -> None:
        logger.info("rebuild_trigger_started")
        changed = self._store.changed
        while not shutdown.is_set():
            try:
                try:
                    await asyncio.wait_for(changed.wait(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                if self._debounce_s > 0:
                    await asyncio.sleep(self._debounce_s)
                changed.clear()
                self.rebuild_now()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error("rebuild_failed", error=str(exc), exc_info=True)
                await asyncio.sleep(1.0)
        logger.info("rebuild_trigger_stopped")

    def rebuild_now(self) -> Snapshot:
        start = time.perf_counter()
        snapshot = self._store.rebuild()
        self.rebuilds += 1
        self.last_rebuild_ms = round((time.perf_counter() - start) * 1000, 2)
        return snapshot
