"""
Entity resolver: matches a live overlay to its schedule record by team names.

Providers share no game identifier, so matching is purely name based:

1. exact normalized (home, away) pair, either orientation
2. substring containment on both sides at once, either orientation

The first candidate satisfying the earliest pass wins. There is no scoring,
so short overlapping names ("Miami" vs "Miami (OH)") can match the wrong
game; such cases are flagged as ambiguous, never raised.
"""
from __future__ import annotations

from typing import Callable, Iterable, NamedTuple, Optional

from shared.models.domain import Game
from shared.teams import normalize_name


class Resolution(NamedTuple):
    game: Game
    swapped: bool
    method: str
    ambiguous: bool = False


def _exact(a: str, b: str) -> bool:
    return a == b


def _contains(a: str, b: str) -> bool:
    return a in b or b in a


class EntityResolver:
    """Stateless; safe to share between rebuilds."""

    PASSES: tuple[tuple[str, Callable[[str, str], bool]], ...] = (
        ("exact", _exact),
        ("contains", _contains),
    )

    def resolve(
        self,
        home: Optional[str],
        away: Optional[str],
        candidates: Iterable[Game],
    ) -> Optional[Resolution]:
        h, a = normalize_name(home), normalize_name(away)
        if not h or not a:
            return None

        keyed = [
            (game, normalize_name(game.home.name), normalize_name(game.away.name))
            for game in candidates
        ]
        keyed = [(g, ch, ca) for g, ch, ca in keyed if ch and ca]

        for method, same in self.PASSES:
            first: Optional[Resolution] = None
            matches = 0
            for game, ch, ca in keyed:
                if same(h, ch) and same(a, ca):
                    swapped = False
                elif same(h, ca) and same(a, ch):
                    swapped = True
                else:
                    continue
                matches += 1
                if first is None:
                    first = Resolution(game, swapped, method)
                elif matches > 1:
                    break
            if first is not None:
                return first._replace(ambiguous=matches > 1)
        return None
