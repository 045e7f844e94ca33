"""
Endpoint identifier discovery for adapters without static addressing.

Strategies are tried in order; the first one that yields an identifier is
cached for the life of the process. Entries are only dropped through
``evict``, which the supervisor calls after repeated poll failures.
"""
from __future__ import annotations

from typing import Mapping, Optional, Sequence

from ingest.providers.base import IdentifierStrategy
from shared.utils.logging import get_logger
from shared.utils.metrics import IDENTIFIER_DISCOVERIES

logger = get_logger(__name__)


class IdentifierCache:
    def __init__(self, provider: str, seed: Mapping[str, str] | None = None) -> None:
        self._provider = provider
        self._cache: dict[str, str] = dict(seed or {})
        self._seeded = frozenset(self._cache)

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, endpoint: object) -> bool:
        return endpoint in self._cache

    def get(self, endpoint: str) -> Optional[str]:
        return self._cache.get(endpoint)

    async def resolve(
        self, endpoint: str, strategies: Sequence[IdentifierStrategy]
    ) -> Optional[str]:
        cached = self._cache.get(endpoint)
        if cached:
            return cached

        for strategy in strategies:
            try:
                identifier = await strategy.probe()
            except Exception as exc:
                logger.debug(
                    "identifier_probe_failed",
                    provider=self._provider,
                    endpoint=endpoint,
                    strategy=strategy.name,
                    error=str(exc),
                )
                continue
            if identifier:
                self._cache[endpoint] = identifier
                IDENTIFIER_DISCOVERIES.labels(provider=self._provider, outcome="found").inc()
                logger.info(
                    "identifier_discovered",
                    provider=self._provider,
                    endpoint=endpoint,
                    identifier=identifier,
                    strategy=strategy.name,
                )
                return identifier

        IDENTIFIER_DISCOVERIES.labels(provider=self._provider, outcome="miss").inc()
        return None

    def evict(self, endpoint: str) -> bool:
        """Forget a discovered identifier. Seeded identifiers are permanent."""
        if endpoint in self._seeded or endpoint not in self._cache:
            return False
        del self._cache[endpoint]
        logger.info("identifier_evicted", provider=self._provider, endpoint=endpoint)
        return True
