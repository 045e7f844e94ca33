"""
Aggregator service for DiamondView.
Owns the game store, the source adapters and one supervisor per adapter,
plus the rebuild trigger. A single shutdown event stops every loop.

Runs embedded in the API process (see api.app) or headless via ``main``.
"""
from __future__ import annotations

import asyncio
import signal
import time
from typing import Any, Optional, Sequence

from builder.facade import QueryFacade
from builder.store import GameStore, RebuildTrigger
from ingest.providers.base import SourceAdapter
from ingest.providers.registry import build_adapters
from scheduler.supervisor import BaseSupervisor, FeedPoller, PollerSupervisor
from shared.config import Settings, get_settings
from shared.models.enums import Layer
from shared.teams import TeamDirectory
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import SERVICE_INFO, start_metrics_server

logger = get_logger(__name__)


class AggregatorService:
    """
    Lifecycle:
    1. ``start`` opens adapter HTTP clients and spawns supervisor and trigger tasks
    2. supervisors publish layers; the trigger rebuilds the snapshot
    3. ``stop`` signals shutdown, cancels tasks (abandoning in-flight requests)
       and closes the clients
    """

    def __init__(
        self,
        store: GameStore,
        adapters: Sequence[SourceAdapter],
        settings: Settings | None = None,
        directory: TeamDirectory | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.store = store
        self.adapters = list(adapters)
        self.directory = directory or TeamDirectory()
        self.supervisors: list[BaseSupervisor] = [self._supervisor_for(a) for a in self.adapters]
        self.trigger = RebuildTrigger(store, self._settings.rebuild_debounce_s)
        self.facade = QueryFacade(store, self.adapters, self.supervisors)
        self._shutdown = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []
        self.started_at: Optional[float] = None

    def _supervisor_for(self, adapter: SourceAdapter) -> BaseSupervisor:
        if adapter.two_tier:
            return PollerSupervisor(adapter, self.store, self._settings)
        interval = (
            self._settings.schedule_refresh_interval_s
            if adapter.layer == Layer.SCHEDULE
            else self._settings.live_feed_interval_s
        )
        return FeedPoller(adapter, self.store, interval, self._settings)

    @property
    def running(self) -> bool:
        return bool(self._tasks) and not self._shutdown.is_set()

    @property
    def uptime_s(self) -> float:
        return round(time.monotonic() - self.started_at, 1) if self.started_at else 0.0

    async def start(self) -> None:
        if self._tasks:
            return
        for adapter in self.adapters:
            await adapter.start()
        self.started_at = time.monotonic()
        for supervisor in self.supervisors:
            self._tasks.append(
                asyncio.create_task(supervisor.run(self._shutdown), name=f"supervisor:{supervisor.source}")
            )
        self._tasks.append(asyncio.create_task(self.trigger.run(self._shutdown), name="rebuild-trigger"))
        schedule = [a.name for a in self.adapters if a.layer == Layer.SCHEDULE]
        live = [a.name for a in self.adapters if a.layer == Layer.LIVE]
        SERVICE_INFO.info({"schedule_source": ",".join(schedule), "live_sources": ",".join(live)})
        logger.info("aggregator_started", schedule=schedule, live=live)

    def request_shutdown(self) -> None:
        logger.info("aggregator_shutdown_requested")
        self._shutdown.set()

    async def wait_closed(self) -> None:
        await self._shutdown.wait()

    async def stop(self) -> None:
        self._shutdown.set()
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        for adapter in self.adapters:
            try:
                await adapter.close()
            except Exception as exc:
                logger.warning("adapter_close_failed", provider=adapter.name, error=str(exc))
        logger.info("aggregator_stopped")

    def sources_status(self) -> dict[str, Any]:
        """Per-source operational view for the status endpoint."""
        out: dict[str, Any] = {}
        for supervisor in self.supervisors:
            adapter = supervisor.adapter
            out[adapter.name] = {
                "layer": adapter.layer.value,
                "adapter": adapter.stats.model_dump(mode="json"),
                "supervisor": supervisor.status().model_dump(mode="json"),
                "circuit": adapter.breaker.stats if adapter.breaker else None,
            }
        return out


def build_service(settings: Settings | None = None) -> AggregatorService:
    """Wire store, adapters and supervisors from settings."""
    settings = settings or get_settings()
    directory = TeamDirectory.load(settings.team_directory_path)
    adapters = build_adapters(settings, directory)
    store = GameStore(live_priority=settings.live_source_priority)
    return AggregatorService(store, adapters.all, settings, directory)


async def main() -> None:
    """Headless aggregator entrypoint (no HTTP API)."""
    settings = get_settings()
    setup_logging("aggregator")
    start_metrics_server()

    service = build_service(settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, service.request_shutdown)

    await service.start()
    try:
        await service.wait_closed()
    finally:
        await service.stop()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
