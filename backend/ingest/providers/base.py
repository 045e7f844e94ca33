"""
Abstract base class for all source adapters.
Defines the contract between a provider connector and the aggregation core:
``poll`` never raises, ``get_current`` returns the last good records.
"""
from __future__ import annotations

import abc
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Optional

from shared.config import Settings, get_settings
from shared.models.domain import AdapterStats, Game, TeamSide
from shared.models.enums import GameStatus, Layer
from shared.teams import TeamDirectory
from shared.utils.circuit_breaker import CircuitBreaker
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger
from shared.utils.metrics import ADAPTER_FAILURES

logger = get_logger(__name__)


class FetchFailure(Exception):
    """The provider could not be reached or answered with an error payload."""


class ParseFailure(Exception):
    """A payload, or one entry in it, does not have the expected shape."""


# Per-entry problems that mean "skip this record", not "the payload is broken"
ENTRY_ERRORS: tuple[type[Exception], ...] = (ParseFailure, KeyError, TypeError, ValueError, AttributeError)


@dataclass
class PollResult:
    ok: bool
    records: list[Game] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def has_live(self) -> bool:
        return any(r.status == GameStatus.LIVE for r in self.records)


@dataclass(frozen=True)
class IdentifierStrategy:
    """One way of discovering an endpoint's provider identifier; ``probe`` returns None on a miss."""
    name: str
    probe: Callable[[], Awaitable[Optional[str]]]


class SourceAdapter(abc.ABC):
    """
    Base class for source adapters.

    Subclasses implement ``fetch`` (network) and ``normalize`` (payload to
    Games). The base class owns error accounting and the per-endpoint cache
    that backs ``get_current``.

    Single-feed adapters expose one endpoint named after the adapter.
    Two-tier adapters override ``endpoints`` with their full universe and are
    driven by discovery scans plus active-set polling.
    """

    name: str = "base"
    layer: Layer = Layer.LIVE
    two_tier: bool = False
    needs_identifier: bool = False

    def __init__(
        self,
        http_client: ProviderHTTPClient,
        settings: Settings | None = None,
        directory: TeamDirectory | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self._http = http_client
        self._settings = settings or get_settings()
        self._directory = directory or TeamDirectory()
        self._breaker = breaker
        self._cache: dict[str, list[Game]] = {}
        self._stats = AdapterStats()

    # ── Lifecycle ───────────────────────────────────────────────────────

    async def start(self) -> None:
        """Initialize the adapter HTTP client."""
        await self._http.start()

    async def close(self) -> None:
        """Shutdown the adapter HTTP client."""
        await self._http.close()

    # ── Addressing ──────────────────────────────────────────────────────

    def endpoints(self) -> list[str]:
        return [self.name]

    def identifier_strategies(self, endpoint: str) -> list[IdentifierStrategy]:
        return []

    def known_identifiers(self) -> dict[str, str]:
        return {}

    # ── Provider specifics ──────────────────────────────────────────────

    @abc.abstractmethod
    async def fetch(self, target: str) -> Any:
        """Fetch a raw payload for ``target``. May raise anything."""

    @abc.abstractmethod
    def normalize(self, payload: Any, endpoint: str) -> list[Game]:
        """Map a payload to canonical Games, skipping entries that do not apply."""

    # ── Core contract ───────────────────────────────────────────────────

    async def poll(self, endpoint: str, target: Optional[str] = None) -> PollResult:
        """
        Fetch and normalize one endpoint. Never raises.

        On failure the endpoint's previous records stay cached; on success
        they are replaced (or dropped when the endpoint reports nothing).
        """
        self._stats.requests += 1
        try:
            if self._breaker is not None:
                payload = await self._breaker.call(self.fetch, target or endpoint)
            else:
                payload = await self.fetch(target or endpoint)
        except Exception as exc:
            return self._fail("fetch", endpoint, exc)

        try:
            records = self.normalize(payload, endpoint)
        except Exception as exc:
            self._stats.parse_errors += 1
            return self._fail("parse", endpoint, exc)

        if records:
            self._cache[endpoint] = records
        else:
            self._cache.pop(endpoint, None)
        self._stats.last_success_at = datetime.now(timezone.utc)
        self._stats.records = sum(len(v) for v in self._cache.values())
        return PollResult(ok=True, records=records)

    def get_current(self) -> list[Game]:
        """Last successfully fetched records across all endpoints."""
        return [game for records in self._cache.values() for game in records]

    def forget(self, endpoint: str) -> None:
        self._cache.pop(endpoint, None)

    @property
    def stats(self) -> AdapterStats:
        return self._stats

    @property
    def breaker(self) -> Optional[CircuitBreaker]:
        return self._breaker

    # ── Helpers for subclasses ──────────────────────────────────────────

    def _fail(self, kind: str, endpoint: str, exc: Exception) -> PollResult:
        self._stats.errors += 1
        self._stats.last_error_at = datetime.now(timezone.utc)
        self._stats.last_error = f"{type(exc).__name__}: {exc}"
        ADAPTER_FAILURES.labels(provider=self.name, kind=kind).inc()
        logger.debug(
            "adapter_poll_failed",
            provider=self.name,
            endpoint=endpoint,
            kind=kind,
            error=self._stats.last_error,
        )
        return PollResult(ok=False, error=self._stats.last_error)

    def _normalize_each(
        self,
        entries: Iterable[Any],
        parse_one: Callable[[Any], Optional[Game]],
    ) -> list[Game]:
        """Apply ``parse_one`` to every entry; None rejects, entry errors skip and count."""
        games: list[Game] = []
        seen: set[str] = set()
        for entry in entries:
            try:
                game = parse_one(entry)
            except ENTRY_ERRORS as exc:
                self._stats.parse_errors += 1
                ADAPTER_FAILURES.labels(provider=self.name, kind="entry").inc()
                logger.debug("adapter_entry_skipped", provider=self.name, error=str(exc))
                continue
            if game is None or game.id in seen:
                continue
            seen.add(game.id)
            games.append(game)
        return games

    def _team(
        self,
        raw_name: Optional[str],
        abbreviation: Optional[str] = None,
        conference: Optional[str] = None,
        **fields: Any,
    ) -> TeamSide:
        """Build a TeamSide, canonicalizing through the team directory when possible."""
        name = (raw_name or "").strip()
        if not name:
            raise ParseFailure("team name missing")
        info = self._directory.find(name) or (
            self._directory.find(abbreviation) if abbreviation else None
        )
        if info is not None:
            return TeamSide(
                name=info.name,
                abbreviation=info.abbreviation or abbreviation,
                conference=info.conference or conference,
                **fields,
            )
        return TeamSide(name=name, abbreviation=abbreviation, conference=conference, **fields)

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)
