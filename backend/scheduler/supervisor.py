"""
Poller supervisors: drive source adapters and publish their records into the store.

Two flavours:
- FeedPoller: single-endpoint feeds (schedule APIs, the ESPN scoreboard),
  refreshed on a fixed cadence with backoff while the feed keeps failing.
- PollerSupervisor: multi-endpoint scrapers. A slow discovery scan sweeps the
  whole endpoint universe in small batches; a fast loop polls only the
  endpoints currently showing a live game (the active set).
"""
from __future__ import annotations

import abc
import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from builder.store import GameStore
from ingest.providers.base import PollResult, SourceAdapter
from scheduler.discovery import IdentifierCache
from scheduler.engine.polling import PollingCadence
from shared.config import Settings, get_settings
from shared.models.domain import SupervisorStatus
from shared.models.enums import SupervisorState
from shared.utils.logging import get_logger
from shared.utils.metrics import ACTIVE_ENDPOINTS, DISCOVERY_DURATION, track_latency

logger = get_logger(__name__)


async def sleep_or_shutdown(delay_s: float, shutdown: asyncio.Event) -> bool:
    """Sleep up to ``delay_s``; True when shutdown was requested meanwhile."""
    try:
        await asyncio.wait_for(shutdown.wait(), timeout=delay_s)
        return True
    except asyncio.TimeoutError:
        return False


class BaseSupervisor(abc.ABC):
    def __init__(
        self,
        adapter: SourceAdapter,
        store: GameStore,
        settings: Settings | None = None,
    ) -> None:
        self.adapter = adapter
        self._store = store
        self._settings = settings or get_settings()
        self.state = SupervisorState.IDLE
        self.last_poll_at: Optional[datetime] = None
        self.last_discovery_at: Optional[datetime] = None

    @property
    def source(self) -> str:
        return self.adapter.name

    @property
    def active_set(self) -> frozenset[str]:
        return frozenset()

    def publish(self) -> None:
        self._store.replace_layer(self.adapter.layer, self.adapter.name, self.adapter.get_current())

    def status(self) -> SupervisorStatus:
        return SupervisorStatus(
            source=self.source,
            state=self.state,
            active_endpoints=sorted(self.active_set),
            universe_size=len(self.adapter.endpoints()),
            last_discovery_at=self.last_discovery_at,
            last_poll_at=self.last_poll_at,
        )

    @abc.abstractmethod
    async def run(self, shutdown: asyncio.Event) -> None:
        """Run until ``shutdown`` is set."""

    async def _loop(
        self,
        loop_name: str,
        step: Callable[[], Awaitable[object]],
        next_delay: Callable[[], float],
        shutdown: asyncio.Event,
    ) -> None:
        """Sleep, step, repeat. Step errors are logged and never end the loop."""
        while not shutdown.is_set():
            if await sleep_or_shutdown(next_delay(), shutdown):
                break
            try:
                await step()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error(
                    "supervisor_step_error",
                    provider=self.source,
                    loop=loop_name,
                    error=str(exc),
                    exc_info=True,
                )


class FeedPoller(BaseSupervisor):
    """Periodic refresh of a single-endpoint adapter."""

    def __init__(
        self,
        adapter: SourceAdapter,
        store: GameStore,
        interval_s: float,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(adapter, store, settings)
        self._cadence = PollingCadence(interval_s, self._settings, min_interval_s=1.0)
        self.consecutive_failures = 0

    async def refresh(self) -> PollResult:
        result = await self.adapter.poll(self.adapter.name)
        self.last_poll_at = datetime.now(timezone.utc)
        if result.ok:
            self.consecutive_failures = 0
            self.publish()
            self.state = SupervisorState.ACTIVE_POLLING if result.has_live else SupervisorState.IDLE
        else:
            self.consecutive_failures += 1
            logger.warning(
                "feed_refresh_failed",
                provider=self.source,
                failures=self.consecutive_failures,
                error=result.error,
            )
        return result

    async def run(self, shutdown: asyncio.Event) -> None:
        logger.info("feed_poller_started", provider=self.source, interval_s=self._cadence.base_interval_s)
        try:
            await self.refresh()
        except Exception as exc:
            logger.error("supervisor_step_error", provider=self.source, loop="feed", error=str(exc))
        await self._loop(
            "feed",
            self.refresh,
            lambda: self._cadence.next_interval(self.consecutive_failures),
            shutdown,
        )
        logger.info("feed_poller_stopped", provider=self.source)


class PollerSupervisor(BaseSupervisor):
    """
    Two-tier supervisor for multi-endpoint adapters.

    Active-set rules:
    - discovery: a live result adds the endpoint, a successful result without
      a live game removes it, a failure leaves membership unchanged
    - active poll: any result without a live game evicts at once, failures
      included; only a later discovery scan can add the endpoint back
    """

    def __init__(
        self,
        adapter: SourceAdapter,
        store: GameStore,
        settings: Settings | None = None,
        poll_interval_s: float | None = None,
        discovery_interval_s: float | None = None,
    ) -> None:
        super().__init__(adapter, store, settings)
        s = self._settings
        self._active: dict[str, None] = {}
        self._failures: dict[str, int] = {}
        self._identifiers = IdentifierCache(adapter.name, adapter.known_identifiers())
        self._batch_size = s.discovery_batch_size
        self._batch_pause_s = s.discovery_batch_pause_s
        self._evict_after = s.identifier_evict_after_failures
        self._poll_cadence = PollingCadence(
            poll_interval_s or s.active_poll_interval_s, s, min_interval_s=1.0
        )
        self._discovery_cadence = PollingCadence(
            discovery_interval_s or s.discovery_interval_s, s, min_interval_s=1.0
        )

    @property
    def active_set(self) -> frozenset[str]:
        return frozenset(self._active)

    @property
    def identifiers(self) -> IdentifierCache:
        return self._identifiers

    def status(self) -> SupervisorStatus:
        status = super().status()
        status.identifiers_cached = len(self._identifiers)
        return status

    # ── Single endpoint ─────────────────────────────────────────────────

    async def _poll_endpoint(self, endpoint: str) -> tuple[Optional[PollResult], bool]:
        """
        Poll one endpoint.

        Returns the poll result (None when no identifier could be discovered)
        and whether the endpoint's cached records were dropped.
        """
        target = None
        if self.adapter.needs_identifier:
            target = await self._identifiers.resolve(
                endpoint, self.adapter.identifier_strategies(endpoint)
            )
            if target is None:
                return None, False

        result = await self.adapter.poll(endpoint, target)
        if result.ok:
            self._failures.pop(endpoint, None)
            return result, False

        failures = self._failures.get(endpoint, 0) + 1
        self._failures[endpoint] = failures
        if failures >= self._evict_after:
            # The identifier may have gone stale; drop it and the records it produced
            self._identifiers.evict(endpoint)
            self.adapter.forget(endpoint)
            self._failures.pop(endpoint, None)
            logger.info("endpoint_reset", provider=self.source, endpoint=endpoint, failures=failures)
            return result, True
        return result, False

    def _apply(self, endpoint: str, result: Optional[PollResult], evict_on_failure: bool) -> bool:
        if result is None or not result.ok:
            if evict_on_failure:
                self._active.pop(endpoint, None)
            return False
        if result.has_live:
            self._active[endpoint] = None
        else:
            self._active.pop(endpoint, None)
        return True

    async def _poll_many(self, endpoints: list[str], evict_on_failure: bool = False) -> bool:
        """Poll endpoints concurrently. True when the adapter cache changed."""
        results = await asyncio.gather(
            *(self._poll_endpoint(ep) for ep in endpoints), return_exceptions=True
        )
        changed = False
        for endpoint, outcome in zip(endpoints, results):
            if isinstance(outcome, BaseException):
                logger.error(
                    "endpoint_poll_error", provider=self.source, endpoint=endpoint, error=str(outcome)
                )
                if evict_on_failure:
                    self._active.pop(endpoint, None)
                continue
            result, forgotten = outcome
            applied = self._apply(endpoint, result, evict_on_failure)
            changed = changed or applied or forgotten
        return changed

    def _settle(self) -> None:
        self.state = SupervisorState.ACTIVE_POLLING if self._active else SupervisorState.IDLE
        ACTIVE_ENDPOINTS.labels(provider=self.source).set(len(self._active))

    # ── Tiers ───────────────────────────────────────────────────────────

    async def discovery_scan(self) -> int:
        """Sweep the whole universe in bounded batches. Returns the active-set size."""
        self.state = SupervisorState.DISCOVERING
        endpoints = self.adapter.endpoints()
        start = time.perf_counter()
        changed = False
        with track_latency(DISCOVERY_DURATION, provider=self.source):
            for offset in range(0, len(endpoints), self._batch_size):
                if offset and self._batch_pause_s > 0:
                    await asyncio.sleep(self._batch_pause_s)
                batch = endpoints[offset: offset + self._batch_size]
                changed = await self._poll_many(batch) or changed

        self.last_discovery_at = datetime.now(timezone.utc)
        if changed:
            self.publish()
        self._settle()
        logger.info(
            "discovery_scan_complete",
            provider=self.source,
            universe=len(endpoints),
            active=len(self._active),
            identifiers=len(self._identifiers),
            elapsed_s=round(time.perf_counter() - start, 2),
        )
        return len(self._active)

    async def poll_active(self) -> int:
        """Poll the active set concurrently, evicting every endpoint that did not report a live game."""
        endpoints = list(self._active)
        if endpoints:
            if await self._poll_many(endpoints, evict_on_failure=True):
                self.publish()
            self.last_poll_at = datetime.now(timezone.utc)
        self._settle()
        return len(self._active)

    async def run(self, shutdown: asyncio.Event) -> None:
        logger.info(
            "poller_supervisor_started",
            provider=self.source,
            universe=len(self.adapter.endpoints()),
        )
        try:
            await self.discovery_scan()
        except Exception as exc:
            logger.error("supervisor_step_error", provider=self.source, loop="discovery", error=str(exc))
        await asyncio.gather(
            self._loop("discovery", self.discovery_scan, self._discovery_cadence.next_interval, shutdown),
            self._loop("active_poll", self.poll_active, self._poll_cadence.next_interval, shutdown),
        )
        logger.info("poller_supervisor_stopped", provider=self.source)
