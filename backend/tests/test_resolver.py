"""Entity resolver: name matching between live overlays and schedule records."""
from __future__ import annotations

from builder.resolver import EntityResolver


class TestEntityResolver:

    def setup_method(self) -> None:
        self.resolver = EntityResolver()

    def test_exact_match(self, make_game) -> None:
        game = make_game("s1", "Florida", "Georgia")
        res = self.resolver.resolve("Florida", "Georgia", [game])
        assert res is not None
        assert res.game.id == "s1"
        assert res.swapped is False
        assert res.method == "exact"

    def test_match_is_case_and_space_insensitive(self, make_game) -> None:
        game = make_game("s1", "Texas  A&M", "LSU")
        res = self.resolver.resolve("texas a&m", "lsu", [game])
        assert res is not None and res.game.id == "s1"

    def test_swapped_orientation(self, make_game) -> None:
        game = make_game("s1", "Florida", "Georgia")
        res = self.resolver.resolve("Georgia", "Florida", [game])
        assert res is not None
        assert res.game.id == "s1"
        assert res.swapped is True

    def test_substring_match(self, make_game) -> None:
        game = make_game("s1", "Arkansas Razorbacks", "Missouri Tigers")
        res = self.resolver.resolve("Arkansas", "Missouri", [game])
        assert res is not None
        assert res.game.id == "s1"
        assert res.method == "contains"

    def test_substring_requires_both_sides(self, make_game) -> None:
        game = make_game("s1", "Arkansas Razorbacks", "Missouri Tigers")
        assert self.resolver.resolve("Arkansas", "Ole Miss", [game]) is None

    def test_exact_pass_beats_earlier_substring_candidate(self, make_game) -> None:
        loose = make_game("s1", "Miami (OH)", "Kent State")
        exact = make_game("s2", "Miami", "Kent State")
        res = self.resolver.resolve("Miami", "Kent State", [loose, exact])
        assert res is not None
        assert res.game.id == "s2"
        assert res.ambiguous is False

    def test_multiple_matches_are_flagged_ambiguous(self, make_game) -> None:
        first = make_game("s1", "Miami (OH)", "Kent State")
        second = make_game("s2", "Miami (FL)", "Kent State Golden Flashes")
        res = self.resolver.resolve("Miami", "Kent State", [first, second])
        assert res is not None
        assert res.game.id == "s1"
        assert res.ambiguous is True

    def test_empty_names_never_match(self, make_game) -> None:
        game = make_game("s1", "Florida", "Georgia")
        assert self.resolver.resolve("", "Georgia", [game]) is None
        assert self.resolver.resolve("Florida", None, [game]) is None

    def test_no_candidates(self) -> None:
        assert self.resolver.resolve("Florida", "Georgia", []) is None
