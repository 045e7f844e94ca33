"""
Static team reference directory.

Loaded from an optional JSON file (``DV_TEAM_DIRECTORY_PATH``) holding a list of
objects with ``name``, ``abbreviation``, ``conference``, ``aliases`` and
``statbroadcast_gid``. Adapters use it to canonicalize provider team names and
fill conference tags; an empty directory is valid and leaves names as reported.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

from shared.utils.logging import get_logger

logger = get_logger(__name__)


def normalize_name(name: Optional[str]) -> str:
    """Casefold, trim and collapse internal whitespace."""
    if not name:
        return ""
    return " ".join(name.casefold().split())


@dataclass(frozen=True)
class TeamInfo:
    name: str
    abbreviation: Optional[str] = None
    conference: Optional[str] = None
    aliases: tuple[str, ...] = field(default_factory=tuple)
    statbroadcast_gid: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "TeamInfo":
        return cls(
            name=str(raw["name"]),
            abbreviation=raw.get("abbreviation") or None,
            conference=raw.get("conference") or None,
            aliases=tuple(raw.get("aliases") or ()),
            statbroadcast_gid=raw.get("statbroadcast_gid") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "abbreviation": self.abbreviation,
            "conference": self.conference,
            "aliases": list(self.aliases),
            "statbroadcast_gid": self.statbroadcast_gid,
        }


class TeamDirectory:
    """Case-insensitive lookup over known teams by name, alias or abbreviation."""

    def __init__(self, teams: Iterable[TeamInfo] = ()) -> None:
        self._teams: list[TeamInfo] = list(teams)
        self._index: dict[str, TeamInfo] = {}
        for team in self._teams:
            for key in (team.name, team.abbreviation, *team.aliases):
                norm = normalize_name(key)
                # First entry wins so later aliases cannot shadow a canonical name
                if norm and norm not in self._index:
                    self._index[norm] = team

    @classmethod
    def from_file(cls, path: str | Path) -> "TeamDirectory":
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        teams = [TeamInfo.from_dict(entry) for entry in raw]
        logger.info("team_directory_loaded", path=str(path), teams=len(teams))
        return cls(teams)

    @classmethod
    def load(cls, path: Optional[str]) -> "TeamDirectory":
        """Load from ``path`` when given; a missing or unreadable file yields an empty directory."""
        if not path:
            return cls()
        try:
            return cls.from_file(path)
        except (OSError, ValueError, KeyError) as exc:
            logger.warning("team_directory_unavailable", path=path, error=str(exc))
            return cls()

    def __len__(self) -> int:
        return len(self._teams)

    @property
    def teams(self) -> list[TeamInfo]:
        return list(self._teams)

    def find(self, name: Optional[str]) -> Optional[TeamInfo]:
        return self._index.get(normalize_name(name))

    def statbroadcast_gids(self) -> list[str]:
        return [t.statbroadcast_gid for t in self._teams if t.statbroadcast_gid]
