"""
Adapter registry: maps source names to connector classes and builds
the configured schedule and live adapters with their HTTP clients.
"""
from __future__ import annotations

from typing import NamedTuple

from ingest.providers.base import SourceAdapter
from ingest.providers.espn import ESPNAdapter
from ingest.providers.pear import PearScheduleAdapter
from ingest.providers.sidearm import SidearmScheduleAdapter
from ingest.providers.sidearm_live import SidearmLiveAdapter
from ingest.providers.statbroadcast import StatBroadcastAdapter
from shared.config import Settings, get_settings
from shared.models.enums import Layer
from shared.teams import TeamDirectory
from shared.utils.circuit_breaker import CircuitBreaker
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

logger = get_logger(__name__)

ADAPTERS: dict[str, type[SourceAdapter]] = {
    cls.name: cls
    for cls in (
        SidearmScheduleAdapter,
        PearScheduleAdapter,
        ESPNAdapter,
        StatBroadcastAdapter,
        SidearmLiveAdapter,
    )
}


class AdapterSet(NamedTuple):
    schedule: SourceAdapter
    live: list[SourceAdapter]

    @property
    def all(self) -> list[SourceAdapter]:
        return [self.schedule, *self.live]


def build_adapter(
    name: str,
    settings: Settings | None = None,
    directory: TeamDirectory | None = None,
) -> SourceAdapter:
    settings = settings or get_settings()
    try:
        cls = ADAPTERS[name]
    except KeyError:
        raise ValueError(f"Unknown source adapter '{name}'. Known: {sorted(ADAPTERS)}") from None

    http = ProviderHTTPClient(
        provider_name=name,
        timeout_s=settings.provider_request_timeout_s,
        # Discovery sweeps hit many hosts; a retry per miss doubles the load
        max_retries=1 if cls.two_tier else settings.provider_max_retries,
    )
    breaker = None
    if not cls.two_tier:
        breaker = CircuitBreaker(
            name,
            failure_threshold=settings.circuit_failure_threshold,
            recovery_timeout_s=settings.circuit_recovery_timeout_s,
        )
    return cls(http, settings=settings, directory=directory, breaker=breaker)


def build_adapters(
    settings: Settings | None = None,
    directory: TeamDirectory | None = None,
) -> AdapterSet:
    """Build the schedule adapter and every configured live adapter."""
    settings = settings or get_settings()
    schedule = build_adapter(settings.schedule_source, settings, directory)
    if schedule.layer != Layer.SCHEDULE:
        raise ValueError(f"'{settings.schedule_source}' does not provide a schedule layer")

    live: list[SourceAdapter] = []
    for name in dict.fromkeys(settings.live_sources):
        adapter = build_adapter(name, settings, directory)
        if adapter.layer != Layer.LIVE:
            logger.warning("live_source_skipped", source=name, reason="not a live adapter")
            continue
        live.append(adapter)

    logger.info(
        "adapters_built",
        schedule=schedule.name,
        live=[a.name for a in live],
    )
    return AdapterSet(schedule=schedule, live=live)
