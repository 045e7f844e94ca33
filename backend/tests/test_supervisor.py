"""
Unit tests for the poller supervisors, identifier discovery and polling cadence.

Adapters are scripted in-process: each endpoint maps to a status (one game),
None (nothing to report) or an exception (fetch failure).
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest

from builder.store import GameStore
from ingest.providers.base import IdentifierStrategy, SourceAdapter
from scheduler.discovery import IdentifierCache
from scheduler.engine.polling import PollingCadence
from scheduler.supervisor import FeedPoller, PollerSupervisor, sleep_or_shutdown
from shared.models.domain import Game
from shared.models.enums import GameStatus, Layer, SupervisorState
from shared.utils.http_client import ProviderHTTPClient


class ScriptedAdapter(SourceAdapter):
    name = "scripted"
    layer = Layer.LIVE
    two_tier = True

    def __init__(self, universe: list[str], responses: dict[str, Any], make_game, settings) -> None:
        super().__init__(ProviderHTTPClient(self.name), settings=settings)
        self.universe = universe
        self.responses = responses
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._make_game = make_game

    def endpoints(self) -> list[str]:
        return list(self.universe)

    async def fetch(self, target: str) -> Any:
        self.calls.append(target)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
        finally:
            self.in_flight -= 1
        response = self.responses.get(target)
        if isinstance(response, Exception):
            raise response
        return response

    def normalize(self, payload: Any, endpoint: str) -> list[Game]:
        if payload is None:
            return []
        inning = 4 if payload == GameStatus.LIVE else None
        return [
            self._make_game(
                f"{self.name}-{endpoint}", f"Home {endpoint}", f"Away {endpoint}",
                source=self.name, status=payload, inning=inning,
            )
        ]


class IdentifiedAdapter(ScriptedAdapter):
    name = "identified"
    needs_identifier = True

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.probes: list[str] = []
        self.lookup_hits = True

    def identifier_strategies(self, endpoint: str) -> list[IdentifierStrategy]:
        async def probe() -> Optional[str]:
            self.probes.append(endpoint)
            return f"id-{endpoint}" if self.lookup_hits else None

        return [IdentifierStrategy("lookup", probe)]


@pytest.fixture
def store() -> GameStore:
    return GameStore()


# ── Discovery ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_discovery_adds_live_endpoints_and_publishes(store, make_game, settings) -> None:
    adapter = ScriptedAdapter(
        ["a", "b", "c"],
        {"a": GameStatus.LIVE, "b": GameStatus.FINAL, "c": None},
        make_game, settings,
    )
    supervisor = PollerSupervisor(adapter, store, settings)

    active = await supervisor.discovery_scan()

    assert active == 1
    assert supervisor.active_set == frozenset({"a"})
    assert supervisor.state == SupervisorState.ACTIVE_POLLING
    assert store.layer_counts() == {"scripted": 2}
    assert supervisor.last_discovery_at is not None


@pytest.mark.asyncio
async def test_discovery_runs_in_bounded_batches(store, make_game, settings) -> None:
    universe = [f"s{i}" for i in range(5)]
    adapter = ScriptedAdapter(universe, {}, make_game, settings)
    supervisor = PollerSupervisor(adapter, store, settings)

    await supervisor.discovery_scan()

    assert sorted(adapter.calls) == universe
    assert adapter.max_in_flight == settings.discovery_batch_size
    assert supervisor.state == SupervisorState.IDLE


@pytest.mark.asyncio
async def test_failed_discovery_poll_keeps_membership(store, make_game, settings) -> None:
    responses: dict[str, Any] = {"a": GameStatus.LIVE}
    adapter = ScriptedAdapter(["a"], responses, make_game, settings)
    supervisor = PollerSupervisor(adapter, store, settings)
    await supervisor.discovery_scan()

    responses["a"] = ConnectionError("boom")
    await supervisor.discovery_scan()

    assert supervisor.active_set == frozenset({"a"})
    # Last good record is still served
    assert [g.id for g in adapter.get_current()] == ["scripted-a"]


@pytest.mark.asyncio
async def test_discovery_success_without_live_game_removes(store, make_game, settings) -> None:
    responses: dict[str, Any] = {"a": GameStatus.LIVE}
    adapter = ScriptedAdapter(["a"], responses, make_game, settings)
    supervisor = PollerSupervisor(adapter, store, settings)
    await supervisor.discovery_scan()

    responses["a"] = None
    await supervisor.discovery_scan()

    assert supervisor.active_set == frozenset()
    assert adapter.get_current() == []


# ── Active polling ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_active_poll_evicts_on_first_non_live_result(store, make_game, settings) -> None:
    responses: dict[str, Any] = {"a": GameStatus.LIVE, "b": GameStatus.LIVE}
    adapter = ScriptedAdapter(["a", "b"], responses, make_game, settings)
    supervisor = PollerSupervisor(adapter, store, settings)
    await supervisor.discovery_scan()
    assert supervisor.active_set == frozenset({"a", "b"})

    responses["a"] = GameStatus.FINAL
    adapter.calls.clear()
    remaining = await supervisor.poll_active()

    assert remaining == 1
    assert supervisor.active_set == frozenset({"b"})
    assert sorted(adapter.calls) == ["a", "b"]
    final = [g for g in adapter.get_current() if g.id == "scripted-a"]
    assert final and final[0].status == GameStatus.FINAL


@pytest.mark.asyncio
async def test_active_poll_only_touches_active_set(store, make_game, settings) -> None:
    adapter = ScriptedAdapter(["a", "b"], {"a": GameStatus.LIVE}, make_game, settings)
    supervisor = PollerSupervisor(adapter, store, settings)
    await supervisor.discovery_scan()

    adapter.calls.clear()
    await supervisor.poll_active()

    assert adapter.calls == ["a"]
    assert supervisor.last_poll_at is not None


@pytest.mark.asyncio
async def test_active_poll_failure_evicts(store, make_game, settings) -> None:
    responses: dict[str, Any] = {"a": GameStatus.LIVE}
    adapter = ScriptedAdapter(["a"], responses, make_game, settings)
    supervisor = PollerSupervisor(adapter, store, settings)
    await supervisor.discovery_scan()

    responses["a"] = TimeoutError("slow")
    adapter.calls.clear()
    for _ in range(5):
        await supervisor.poll_active()

    assert supervisor.active_set == frozenset()
    assert supervisor.state == SupervisorState.IDLE
    assert adapter.calls == ["a"]
    assert adapter.stats.errors == 1


@pytest.mark.asyncio
async def test_active_poll_evicts_when_identifier_is_lost(store, make_game, settings) -> None:
    adapter = IdentifiedAdapter(["a"], {"id-a": GameStatus.LIVE}, make_game, settings)
    supervisor = PollerSupervisor(adapter, store, settings)
    await supervisor.discovery_scan()
    assert supervisor.active_set == frozenset({"a"})

    supervisor.identifiers.evict("a")
    adapter.lookup_hits = False
    for _ in range(5):
        await supervisor.poll_active()

    assert supervisor.active_set == frozenset()
    assert adapter.probes == ["a", "a"]


@pytest.mark.asyncio
async def test_evicted_endpoint_returns_through_discovery(store, make_game, settings) -> None:
    responses: dict[str, Any] = {"a": GameStatus.LIVE}
    adapter = ScriptedAdapter(["a"], responses, make_game, settings)
    supervisor = PollerSupervisor(adapter, store, settings)
    await supervisor.discovery_scan()

    responses["a"] = ConnectionError("blip")
    await supervisor.poll_active()
    assert supervisor.active_set == frozenset()

    responses["a"] = GameStatus.LIVE
    await supervisor.discovery_scan()
    assert supervisor.active_set == frozenset({"a"})


@pytest.mark.asyncio
async def test_repeated_failures_reset_identifier_and_records(store, make_game, settings) -> None:
    responses: dict[str, Any] = {"id-a": GameStatus.LIVE}
    adapter = IdentifiedAdapter(["a"], responses, make_game, settings)
    supervisor = PollerSupervisor(adapter, store, settings)
    await supervisor.discovery_scan()
    assert "a" in supervisor.identifiers
    assert adapter.calls == ["id-a"]
    assert [(g.id, g.status) for g in store.rebuild().games] == [("identified-a", GameStatus.LIVE)]

    responses["id-a"] = ConnectionError("gone")
    for _ in range(settings.identifier_evict_after_failures):
        await supervisor.discovery_scan()

    assert "a" not in supervisor.identifiers
    assert adapter.get_current() == []
    # The forgotten game is published even though every poll failed
    assert store.layer_counts() == {"identified": 0}
    assert store.rebuild().games == ()
    # Discovery failures leave membership alone
    assert supervisor.active_set == frozenset({"a"})

    responses["id-a"] = GameStatus.FINAL
    await supervisor.poll_active()
    assert adapter.probes == ["a", "a"]
    assert supervisor.active_set == frozenset()


@pytest.mark.asyncio
async def test_status_reports_supervisor_view(store, make_game, settings) -> None:
    adapter = IdentifiedAdapter(["a", "b"], {"id-a": GameStatus.LIVE}, make_game, settings)
    supervisor = PollerSupervisor(adapter, store, settings)
    await supervisor.discovery_scan()

    status = supervisor.status()
    assert status.source == "identified"
    assert status.state == SupervisorState.ACTIVE_POLLING
    assert status.active_endpoints == ["a"]
    assert status.universe_size == 2
    assert status.identifiers_cached == 2


# ── Identifier cache ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_identifier_cache_keeps_first_success() -> None:
    miss = AsyncMock(return_value=None)
    hit = AsyncMock(return_value="ucr")
    never = AsyncMock(return_value="other")
    strategies = [
        IdentifierStrategy("api", miss),
        IdentifierStrategy("guess", hit),
        IdentifierStrategy("fallback", never),
    ]
    cache = IdentifierCache("sidearm_live")

    assert await cache.resolve("ucr.edu", strategies) == "ucr"
    assert await cache.resolve("ucr.edu", strategies) == "ucr"

    miss.assert_awaited_once()
    hit.assert_awaited_once()
    never.assert_not_awaited()


@pytest.mark.asyncio
async def test_identifier_probe_errors_fall_through() -> None:
    broken = AsyncMock(side_effect=ConnectionError("dns"))
    hit = AsyncMock(return_value="lasalle")
    cache = IdentifierCache("sidearm_live")
    result = await cache.resolve(
        "goexplorers.com",
        [IdentifierStrategy("api", broken), IdentifierStrategy("guess", hit)],
    )
    assert result == "lasalle"


@pytest.mark.asyncio
async def test_identifier_cache_miss_returns_none() -> None:
    cache = IdentifierCache("sidearm_live")
    assert await cache.resolve("x.edu", [IdentifierStrategy("api", AsyncMock(return_value=None))]) is None
    assert len(cache) == 0


def test_seeded_identifiers_survive_eviction() -> None:
    cache = IdentifierCache("sidearm_live", {"longwoodlancers.com": "longwood"})
    assert cache.evict("longwoodlancers.com") is False
    assert cache.get("longwoodlancers.com") == "longwood"
    assert cache.evict("unknown.edu") is False


# ── FeedPoller ──────────────────────────────────────────────────────────

class FeedAdapter(ScriptedAdapter):
    name = "feed"
    two_tier = False

    def endpoints(self) -> list[str]:
        return [self.name]


@pytest.mark.asyncio
async def test_feed_poller_publishes_only_on_success(store, make_game, settings) -> None:
    responses: dict[str, Any] = {"feed": GameStatus.LIVE}
    adapter = FeedAdapter(["feed"], responses, make_game, settings)
    poller = FeedPoller(adapter, store, 30.0, settings)

    result = await poller.refresh()
    assert result.ok and result.has_live
    assert store.layer_counts() == {"feed": 1}
    refreshed_at = store.last_refresh()["feed"]

    responses["feed"] = ConnectionError("down")
    result = await poller.refresh()
    assert not result.ok
    assert poller.consecutive_failures == 1
    assert store.last_refresh()["feed"] == refreshed_at
    assert [g.id for g in adapter.get_current()] == ["feed-feed"]


@pytest.mark.asyncio
async def test_feed_poller_run_stops_on_shutdown(store, make_game, settings) -> None:
    adapter = FeedAdapter(["feed"], {"feed": GameStatus.FINAL}, make_game, settings)
    poller = FeedPoller(adapter, store, 30.0, settings)
    shutdown = asyncio.Event()
    shutdown.set()

    await asyncio.wait_for(poller.run(shutdown), timeout=1.0)

    assert adapter.calls == ["feed"]
    assert poller.state == SupervisorState.IDLE


@pytest.mark.asyncio
async def test_sleep_or_shutdown() -> None:
    shutdown = asyncio.Event()
    assert await sleep_or_shutdown(0.01, shutdown) is False
    shutdown.set()
    assert await sleep_or_shutdown(5.0, shutdown) is True


# ── PollingCadence ──────────────────────────────────────────────────────

class TestPollingCadence:

    def test_base_interval_without_failures(self, settings) -> None:
        assert PollingCadence(10.0, settings).next_interval() == 10.0

    def test_backoff_doubles_per_failure(self, settings) -> None:
        cadence = PollingCadence(10.0, settings)
        assert cadence.next_interval(1) == 20.0
        assert cadence.next_interval(2) == 40.0

    def test_backoff_is_capped(self, settings) -> None:
        cadence = PollingCadence(10.0, settings, max_backoff_s=60.0)
        assert cadence.next_interval(10) == 60.0

    def test_min_interval(self, settings) -> None:
        assert PollingCadence(0.1, settings, min_interval_s=1.0).next_interval() == 1.0

    def test_jitter_stays_in_bounds(self, settings) -> None:
        cadence = PollingCadence(10.0, settings, jitter_factor=0.2)
        for _ in range(50):
            assert 8.0 <= cadence.next_interval() <= 12.0
