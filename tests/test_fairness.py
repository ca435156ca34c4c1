"""Tests for fairness-constrained player selection."""
from __future__ import annotations

import random

import pytest

from cuescore.core.fairness import priority_order, select_players
from cuescore.models.piece import PerformerState


def _roster(n: int) -> list[PerformerState]:
    return [PerformerState() for _ in range(n)]


class TestPriorityOrder:

    def test_least_played_first(self) -> None:
        roster = _roster(4)
        roster[0].play_count = 5
        roster[1].play_count = 1
        roster[2].play_count = 3
        roster[3].play_count = 0
        assert priority_order(roster, random.Random(0)) == [3, 1, 2, 0]

    def test_longest_rest_breaks_ties(self) -> None:
        roster = _roster(3)
        roster[0].rest_streak = 1
        roster[1].rest_streak = 4
        roster[2].rest_streak = 2
        assert priority_order(roster, random.Random(0)) == [1, 2, 0]


class TestMinimumSize:

    def test_large_ensemble_never_solos(self) -> None:
        selected = select_players(_roster(8), 1, 0.5, 0.5, random.Random(0))
        assert len(selected) == 2

    def test_small_ensemble_may_solo(self) -> None:
        selected = select_players(_roster(4), 1, 0.5, 0.5, random.Random(0))
        assert len(selected) == 1

    def test_duo_may_solo(self) -> None:
        selected = select_players(_roster(2), 1, 0.9, 0.5, random.Random(0))
        assert len(selected) == 1

    def test_duo_plays_both_for_target_two(self) -> None:
        assert select_players(_roster(2), 2, 0.6, 0.5, random.Random(0)) == {0, 1}

    def test_zero_target_still_sounds(self) -> None:
        selected = select_players(_roster(6), 0, 0.5, 0.3, random.Random(0))
        assert len(selected) >= 1

    @pytest.mark.parametrize("n", [1, 2, 3, 5, 8, 13])
    @pytest.mark.parametrize("target", [1, 2, 3, 5, 8, 13])
    def test_never_exceeds_ensemble(self, n: int, target: int) -> None:
        selected = select_players(_roster(n), min(target, n), 0.5, 0.5, random.Random(n))
        assert 1 <= len(selected) <= n
        assert selected <= set(range(n))


class TestStreakCaps:

    def test_play_cap_skips_streaking_performers(self) -> None:
        roster = _roster(6)
        for i in (0, 1):
            roster[i].play_streak = 3
            roster[i].rest_streak = 0
        for i in range(2, 6):
            roster[i].play_count = 2
        selected = select_players(roster, 2, 0.9, 0.5, random.Random(0))
        assert selected.isdisjoint({0, 1})
        assert len(selected) == 2

    def test_play_cap_off_in_middle_band(self) -> None:
        roster = _roster(6)
        for i in (0, 1):
            roster[i].play_streak = 3
            roster[i].rest_streak = 0
        for i in range(2, 6):
            roster[i].play_count = 2
        assert select_players(roster, 2, 0.5, 0.5, random.Random(0)) == {0, 1}

    def test_rest_cap_forces_long_resters_in(self) -> None:
        roster = _roster(8)
        for i in (5, 6, 7):
            roster[i].rest_streak = 5
            roster[i].play_count = 10
        selected = select_players(roster, 2, 0.2, 0.5, random.Random(0))
        assert {5, 6, 7} <= selected

    def test_rest_cap_off_in_middle_band(self) -> None:
        roster = _roster(8)
        for i in (5, 6, 7):
            roster[i].rest_streak = 5
            roster[i].play_count = 10
        selected = select_players(roster, 2, 0.5, 0.5, random.Random(0))
        assert selected.isdisjoint({5, 6, 7})
        assert len(selected) == 2

    def test_trim_drops_most_played_first(self) -> None:
        roster = _roster(6)
        roster[1].play_count = 1
        for i in (2, 3, 4):
            roster[i].play_count = 2
        roster[5].play_count = 5
        roster[5].rest_streak = 4
        selected = select_players(roster, 2, 0.2, 0.5, random.Random(0))
        assert selected == {0, 5}


class TestLongRunFairness:

    def test_play_counts_even_out(self) -> None:
        rng = random.Random(3)
        roster = _roster(6)
        for _ in range(120):
            chosen = select_players(roster, 3, 0.5, 0.5, rng)
            for i, performer in enumerate(roster):
                if i in chosen:
                    performer.play_count += 1
                    performer.play_streak += 1
                    performer.rest_streak = 0
                else:
                    performer.rest_streak += 1
                    performer.play_streak = 0
        counts = [p.play_count for p in roster]
        assert max(counts) - min(counts) <= 1
