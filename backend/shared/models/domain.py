"""
Pydantic v2 domain models shared across the DiamondView services.
These are the canonical records every source adapter normalizes into,
and the shapes the API serializes.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import GameStatus, InningHalf, SupervisorState


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ── Game situation ──────────────────────────────────────────────────────
class PlayerRef(DomainModel):
    name: str
    number: Optional[str] = None
    hand: Optional[str] = None
    pitch_count: Optional[int] = None
    average: Optional[str] = None


class Runners(DomainModel):
    first: bool = False
    second: bool = False
    third: bool = False


class Situation(DomainModel):
    """In-game state. Only carried while a game is live."""
    inning: int = 0
    half: InningHalf = InningHalf.TOP
    outs: int = 0
    balls: int = 0
    strikes: int = 0
    runners: Runners = Field(default_factory=Runners)
    pitcher: Optional[PlayerRef] = None
    batter: Optional[PlayerRef] = None

    @property
    def progress(self) -> tuple[int, int]:
        return (self.inning, self.half.rank)


# ── Teams and games ─────────────────────────────────────────────────────
class TeamSide(DomainModel):
    name: str
    abbreviation: Optional[str] = None
    conference: Optional[str] = None
    rank: Optional[int] = None
    record: Optional[str] = None
    score: Optional[int] = None
    hits: Optional[int] = None
    errors: Optional[int] = None
    line_score: list[Optional[int]] = Field(default_factory=list)
    logo_url: Optional[str] = None


class WinProbability(DomainModel):
    home: int = 50
    away: int = 50


class Game(DomainModel):
    """A single game as seen by one provider, or the merged view of it."""
    id: str
    source: str
    status: GameStatus = GameStatus.SCHEDULED
    start_time: Optional[datetime] = None
    start_label: Optional[str] = None
    venue: Optional[str] = None
    neutral_site: bool = False
    conference_game: bool = False
    home: TeamSide
    away: TeamSide
    situation: Optional[Situation] = None
    livestats_url: Optional[str] = None
    video_url: Optional[str] = None
    pregame_home_win_prob: Optional[float] = None
    win_probability: Optional[WinProbability] = None
    updated_at: Optional[datetime] = None
    field_sources: dict[str, str] = Field(default_factory=dict)

    @property
    def is_live(self) -> bool:
        return self.status == GameStatus.LIVE

    @property
    def conferences(self) -> list[str]:
        return [c for c in (self.home.conference, self.away.conference) if c]


# ── Operational stats ───────────────────────────────────────────────────
class AdapterStats(DomainModel):
    """Counters kept by every source adapter."""
    requests: int = 0
    errors: int = 0
    parse_errors: int = 0
    records: int = 0
    last_success_at: Optional[datetime] = None
    last_error_at: Optional[datetime] = None
    last_error: Optional[str] = None


class SupervisorStatus(DomainModel):
    source: str
    state: SupervisorState
    active_endpoints: list[str] = Field(default_factory=list)
    universe_size: int = 0
    identifiers_cached: int = 0
    last_discovery_at: Optional[datetime] = None
    last_poll_at: Optional[datetime] = None


class ResolutionStats(DomainModel):
    resolved: int = 0
    unresolved: int = 0
    ambiguous: int = 0


class ScoreboardStats(DomainModel):
    total: int = 0
    live: int = 0
    final: int = 0
    scheduled: int = 0
    cancelled: int = 0
    per_source_counts: dict[str, int] = Field(default_factory=dict)
    games_by_source: dict[str, int] = Field(default_factory=dict)
    last_refresh: dict[str, Optional[datetime]] = Field(default_factory=dict)
    error_counters: dict[str, dict[str, int]] = Field(default_factory=dict)
    active_endpoints: dict[str, int] = Field(default_factory=dict)
    resolution: ResolutionStats = Field(default_factory=ResolutionStats)
    snapshot_version: int = 0
    built_at: Optional[datetime] = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
