"""Shared fixtures: settings without jitter or pauses, and a Game factory."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional

import pytest

from shared.config import Settings
from shared.models.domain import Game, Situation, TeamSide
from shared.models.enums import GameStatus, InningHalf


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        metrics_enabled=False,
        scheduler_jitter_factor=0.0,
        discovery_batch_pause_s=0.0,
        discovery_batch_size=2,
        identifier_evict_after_failures=3,
        rebuild_debounce_s=0.0,
    )


GameFactory = Callable[..., Game]


@pytest.fixture
def make_game() -> GameFactory:
    def _make(
        game_id: str,
        home: str,
        away: str,
        source: str = "sidearm",
        status: GameStatus = GameStatus.SCHEDULED,
        home_score: Optional[int] = None,
        away_score: Optional[int] = None,
        inning: Optional[int] = None,
        half: InningHalf = InningHalf.TOP,
        start_hour: Optional[int] = None,
        home_conf: Optional[str] = None,
        away_conf: Optional[str] = None,
        **fields: Any,
    ) -> Game:
        situation = Situation(inning=inning, half=half) if inning is not None else None
        start = (
            datetime(2026, 4, 18, start_hour, 0, tzinfo=timezone.utc)
            if start_hour is not None
            else None
        )
        return Game(
            id=game_id,
            source=source,
            status=status,
            start_time=start,
            home=TeamSide(name=home, score=home_score, conference=home_conf),
            away=TeamSide(name=away, score=away_score, conference=away_conf),
            situation=situation,
            **fields,
        )

    return _make
