"""Dynamics table and per-performer dynamic selection.

All computations are pure math over the shared table; the only state is the
``random.Random`` the caller passes in.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass

from cuescore.models.piece import average_interval


@dataclass(frozen=True)
class DynamicLevel:
    """One step of the dynamics table: a printed mark and its loudness in [0, 1]."""

    mark: str
    loudness: float


DYNAMICS: tuple[DynamicLevel, ...] = (
    DynamicLevel("ppp", 0.0),
    DynamicLevel("pp", 0.14),
    DynamicLevel("p", 0.28),
    DynamicLevel("mp", 0.42),
    DynamicLevel("mf", 0.57),
    DynamicLevel("f", 0.71),
    DynamicLevel("ff", 0.85),
    DynamicLevel("fff", 1.0),
)

MARKS: tuple[str, ...] = tuple(level.mark for level in DYNAMICS)


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def _fract(x: float) -> float:
    return x - math.floor(x)


def personal_offset(performer_index: int, activity: float) -> float:
    """Small deterministic loudness bias for one performer in one round.

    Hash-style noise in [-0.05, 0.05) so performers sharing the same activity
    still drift apart a little.
    """
    noise = _fract(math.sin(performer_index * 12.9898 + activity * 78.233) * 43758.5453)
    return (noise - 0.5) * 0.1


def dynamic_sigma(activity: float, num_players: int, interval_range: tuple[float, float]) -> float:
    """Spread of the loudness sample.

    Shrinks for larger ensembles. The interval factor
    ``clamp01(1.2 - avg_interval / 180)`` stays at 1 up to a 36 s average
    interval and narrows the spread for slower pieces beyond that.
    """
    base_sigma = 0.18 + 0.1 * activity
    interval_factor = clamp01(1.2 - average_interval(interval_range) / 180)
    if num_players <= 3:
        size_factor = 1.0
    elif num_players <= 6:
        size_factor = 0.7
    else:
        size_factor = 0.4
    return base_sigma * size_factor * interval_factor


def nearest_level(x: float, dyn_min_idx: int, dyn_max_idx: int) -> int:
    """Index of the table entry within [dyn_min_idx, dyn_max_idx] closest to ``x``."""
    best_idx = dyn_min_idx
    best_d = math.inf
    for i in range(dyn_min_idx, dyn_max_idx + 1):
        d = abs(DYNAMICS[i].loudness - x)
        if d < best_d:
            best_d = d
            best_idx = i
    return best_idx


def pick_dynamics(
    activity: float,
    dyn_min_idx: int,
    dyn_max_idx: int,
    num_players: int,
    performer_index: int,
    interval_range: tuple[float, float],
    rng: random.Random | None = None,
) -> DynamicLevel:
    """Choose a dynamic mark for one playing performer.

    Samples loudness around ``activity`` (plus the performer's personal
    offset), maps it into the configured sub-range of the table and snaps it
    to the nearest allowed entry. The result index is always inside
    ``[dyn_min_idx, dyn_max_idx]``.
    """
    rng = rng or random
    r_min = DYNAMICS[dyn_min_idx].loudness
    r_max = DYNAMICS[dyn_max_idx].loudness
    sigma = dynamic_sigma(activity, num_players, interval_range)
    mu = activity + personal_offset(performer_index, activity)
    x_raw = clamp01(rng.gauss(mu, sigma)) if sigma > 0 else clamp01(mu)
    x = r_min + (r_max - r_min) * x_raw
    return DYNAMICS[nearest_level(x, dyn_min_idx, dyn_max_idx)]
