"""Query facade: live filter, conference matching and scoreboard stats."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from builder.facade import QueryFacade, conference_matches
from builder.store import GameStore
from shared.models.domain import AdapterStats
from shared.models.enums import GameStatus


@pytest.mark.parametrize(
    "tag,conference,expected",
    [
        ("SEC", "SEC", True),
        ("sec", "SEC", True),
        ("Big 12", "Big 12 Conference", True),
        ("Atlantic Coast Conference", "Atlantic Coast", True),
        ("ACC", "SEC", False),
        ("ACC", None, False),
        ("", "SEC", False),
    ],
)
def test_conference_matches(tag: str, conference, expected: bool) -> None:
    assert conference_matches(tag, conference) is expected


@pytest.fixture
def store(make_game) -> GameStore:
    store = GameStore()
    store.replace_schedule("sidearm", [
        make_game("s1", "Florida", "Georgia", start_hour=17, home_conf="SEC", away_conf="SEC"),
        make_game("s2", "Duke", "Wake Forest", start_hour=16, home_conf="ACC", away_conf="ACC"),
        make_game("s3", "Rice", "Houston", status=GameStatus.FINAL, home_score=3, away_score=2,
                  home_conf="American Athletic", away_conf="Big 12"),
    ])
    store.replace_live("statbroadcast", [
        make_game("sb-9", "Oregon", "UCLA", source="statbroadcast", status=GameStatus.LIVE, inning=3,
                  home_conf="Big Ten"),
    ])
    store.rebuild()
    return store


def test_get_games_returns_snapshot_order(store: GameStore) -> None:
    facade = QueryFacade(store)
    assert [g.id for g in facade.get_games()] == ["sb-9", "s2", "s1", "s3"]


def test_get_live_games(store: GameStore) -> None:
    facade = QueryFacade(store)
    assert [g.id for g in facade.get_live_games()] == ["sb-9"]


def test_get_games_by_conference_checks_both_sides(store: GameStore) -> None:
    facade = QueryFacade(store)
    assert [g.id for g in facade.get_games_by_conference("big 12")] == ["s3"]
    assert [g.id for g in facade.get_games_by_conference("Big Ten")] == ["sb-9"]
    assert facade.get_games_by_conference("Pac-12") == []


def test_get_stats(store: GameStore) -> None:
    adapter = MagicMock()
    adapter.name = "statbroadcast"
    adapter.stats = AdapterStats(requests=12, errors=2, parse_errors=1)
    supervisor = MagicMock()
    supervisor.source = "statbroadcast"
    supervisor.active_set = frozenset({"gid-a", "gid-b"})

    stats = QueryFacade(store, [adapter], [supervisor]).get_stats()

    assert stats.total == 4
    assert (stats.live, stats.final, stats.scheduled, stats.cancelled) == (1, 1, 2, 0)
    assert stats.per_source_counts == {"sidearm": 3, "statbroadcast": 1}
    assert stats.games_by_source == {"sidearm": 3, "statbroadcast": 1}
    assert stats.error_counters["statbroadcast"] == {"requests": 12, "errors": 2, "parse_errors": 1}
    assert stats.active_endpoints == {"statbroadcast": 2}
    assert stats.resolution.unresolved == 1
    assert stats.snapshot_version == 1
    assert set(stats.last_refresh) == {"sidearm", "statbroadcast"}


def test_reads_see_latest_snapshot(store: GameStore, make_game) -> None:
    facade = QueryFacade(store)
    store.replace_live("statbroadcast", [])
    assert len(facade.get_live_games()) == 1
    store.rebuild()
    assert facade.get_live_games() == []
