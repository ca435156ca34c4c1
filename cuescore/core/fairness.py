"""
Fairness-constrained player selection.

Given every performer's play/rest history and a target ensemble size, pick
who plays this round. Performers who have played least and waited longest
go first. Two streak caps shape the result depending on contrast:

    contrast > play_cap_contrast  — performers at the play-streak cap sit out
    contrast < rest_cap_contrast  — performers at the rest-streak cap must play
    in between                    — neither cap; the target size alone decides

Selection never mutates ``PerformerState``; the engine's commit step does.
"""

from __future__ import annotations

import logging
import random
from typing import Sequence

from cuescore.config import DEFAULT_TUNING, EngineTuning
from cuescore.models.piece import PerformerState

logger = logging.getLogger(__name__)


def priority_order(performers: Sequence[PerformerState], rng: random.Random) -> list[int]:
    """Performer indices, most owed a cue first (random among equals)."""
    return sorted(
        range(len(performers)),
        key=lambda i: (performers[i].play_count, -performers[i].rest_streak, rng.random()),
    )


def select_players(
    performers: Sequence[PerformerState],
    target: int,
    contrast: float,
    activity: float,
    rng: random.Random | None = None,
    tuning: EngineTuning = DEFAULT_TUNING,
) -> set[int]:
    """Indices of the performers who play this round.

    The result has at least one member when ``activity > 0``, never exceeds
    the ensemble, and holds at least two performers unless a solo is
    permitted (target 1 in an ensemble of at most ``tuning.small_ensemble``).
    """
    rng = rng or random
    n = len(performers)
    use_play_cap = contrast > tuning.play_cap_contrast
    use_rest_cap = contrast < tuning.rest_cap_contrast

    order = priority_order(performers, rng)
    selected: set[int] = set()

    # 1. Fill up to the target in priority order, skipping play-capped performers.
    for i in order:
        if len(selected) >= target:
            break
        if use_play_cap and performers[i].play_streak >= tuning.max_play_streak:
            continue
        selected.add(i)

    # 2. Performers who have rested too long play regardless of the target.
    if use_rest_cap:
        for i in range(n):
            if performers[i].rest_streak >= tuning.max_rest_streak:
                selected.add(i)

    # 3. Minimum ensemble: solos only for small groups asking for one.
    min_size = 1 if (n <= tuning.small_ensemble and target == 1) else 2
    if len(selected) < min_size:
        for i in order:
            if len(selected) >= min_size:
                break
            selected.add(i)

    # 4. Trim back to the target, most-played first.
    if len(selected) > target:
        removable = [
            i for i in selected
            if not (use_rest_cap and performers[i].rest_streak >= tuning.max_rest_streak)
        ]
        removable.sort(key=lambda i: (-performers[i].play_count, -performers[i].play_streak, rng.random()))
        floor = 1 if (n == 2 and target == 1) else 2
        for i in removable:
            if len(selected) <= target or len(selected) <= floor:
                break
            selected.discard(i)

    # 5. Never leave an active moment silent.
    if not selected and activity > 0 and order:
        selected.add(order[0])

    logger.debug(
        f"Selected {len(selected)}/{n} (target={target}, contrast={contrast:.2f}, "
        f"play_cap={use_play_cap}, rest_cap={use_rest_cap})"
    )
    return selected
