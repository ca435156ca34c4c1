"""
Ensemble sizing: how many performers play in a round.

The decision is a small tree of regimes; small ensembles at high contrast are
checked before the regular tutti roll. Each regime either claims the round
(returning a size) or passes:

    TUTTI        — everyone plays (always for a single performer)
    SOLO         — one performer (small groups and duos at high contrast)
    SMALL_GROUP  — fixed weighted sizes for 3..5 performers at high contrast
    DUO          — both performers of a two-person ensemble
    BELL         — skewed bell curve over [2, N-1] at high contrast
    BLEND        — bell curve blended with the activity-driven size
    ACTIVITY     — size follows the activity curve at low contrast

Sizes are always clamped to [1, N]. Contrast at (or near) zero never reaches
this module; the cue generator treats it as unconditional tutti.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from enum import Enum

from cuescore.config import DEFAULT_TUNING, EngineTuning

logger = logging.getLogger(__name__)


class SizingRegime(str, Enum):
    """Which branch of the decision tree produced an ensemble size."""

    TUTTI = "tutti"
    SOLO = "solo"
    SMALL_GROUP = "small_group"
    DUO = "duo"
    BELL = "bell"
    BLEND = "blend"
    ACTIVITY = "activity"


@dataclass(frozen=True)
class EnsembleDecision:
    """Result of one sizing decision."""

    regime: SizingRegime
    size: int


# Weighted sizes for small groups at high contrast once tutti and solo failed.
SMALL_GROUP_SIZES: dict[int, tuple[tuple[int, float], ...]] = {
    3: ((2, 1.0),),
    4: ((2, 0.6), (3, 0.4)),
    5: ((2, 0.5), (3, 0.3), (4, 0.2)),
}


def small_group_tutti_probability(contrast: float) -> float:
    """0.115 at contrast 0.7 down to 0.10 at contrast 1.0."""
    return 0.1 + (1.0 - contrast) * 0.05


def small_group_solo_probability(contrast: float, bell_contrast: float = 0.7) -> float:
    """0 at the bell threshold rising to 0.3 at contrast 1.0."""
    t = max(0.0, (contrast - bell_contrast) / (1.0 - bell_contrast))
    return math.pow(t, 1.2) * 0.3


def duo_solo_probability(contrast: float, bell_contrast: float = 0.7) -> float:
    """Rarer than the small-group curve until contrast approaches 1.0."""
    t = max(0.0, (contrast - bell_contrast) / (1.0 - bell_contrast))
    return math.pow(t, 1.5) * 0.3


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def bell_weights(num_players: int, peak_position: float, std_dev: float, skew: float) -> list[float]:
    """Unnormalized weights for sizes 2..N-1.

    Sizes sit at ``x = (size - 2) / (N - 2)``. ``peak_position`` is a
    fraction of that range and ``std_dev`` is scaled by its length, so the
    curve stays broad and the exponential ``skew`` towards smaller sizes
    does most of the shaping.
    """
    max_size = num_players - 1
    size_range = max_size - 1
    if size_range <= 0:
        return []
    peak = 2 + _round_half_up(peak_position * size_range)
    x_peak = (peak - 2) / size_range
    spread = std_dev * size_range
    weights = []
    for size in range(2, max_size + 1):
        x = (size - 2) / size_range
        distance = (x - x_peak) / spread
        weights.append(math.exp(-0.5 * distance * distance) * math.exp(-skew * x))
    return weights


def sample_weighted(weights: list[float], rng: random.Random, offset: int = 0) -> int | None:
    """Inverse-CDF sample over max-normalized weights; returns ``offset + index``."""
    if not weights:
        return None
    max_weight = max(weights)
    if max_weight <= 0:
        return None
    cumulative = 0.0
    cdf = []
    for w in weights:
        cumulative += w / max_weight
        cdf.append(cumulative)
    r = rng.random() * cumulative
    for i, c in enumerate(cdf):
        if r <= c:
            return offset + i
    return offset + len(weights) - 1


def activity_size(num_players: int, activity: float, contrast: float) -> int:
    """Ensemble size driven by the activity curve, clamped to [2, N-1]."""
    min_frac = max(0.25, 0.33 + 0.17 * contrast)
    max_frac = max(0.4, 0.5 + 0.25 * contrast)
    min_size = max(2, round(num_players * min_frac))
    max_size = max(min_size, round(num_players * max_frac))
    size = round(min_size + (max_size - min_size) * math.pow(max(0.0, activity), 0.85))
    return max(2, min(num_players - 1, size))


def _clamp_size(size: int, num_players: int) -> int:
    return max(1, min(num_players, size))


def decide_ensemble(
    num_players: int,
    activity: float,
    contrast: float,
    rng: random.Random | None = None,
    tuning: EngineTuning = DEFAULT_TUNING,
) -> EnsembleDecision:
    """Walk the regime tree and return the claiming regime and its size."""
    rng = rng or random
    n = num_players
    high = contrast >= tuning.bell_contrast

    if n <= 1:
        return EnsembleDecision(SizingRegime.TUTTI, _clamp_size(n, n))

    # ── Small-group exception ────────────────────────────────────────────
    if n <= tuning.small_ensemble and high:
        if rng.random() < small_group_tutti_probability(contrast):
            return EnsembleDecision(SizingRegime.TUTTI, n)
        if rng.random() < small_group_solo_probability(contrast, tuning.bell_contrast):
            return EnsembleDecision(SizingRegime.SOLO, 1)
        sizes = SMALL_GROUP_SIZES.get(n)
        if sizes is not None:
            idx = sample_weighted([w for _, w in sizes], rng)
            return EnsembleDecision(SizingRegime.SMALL_GROUP, _clamp_size(sizes[idx or 0][0], n))
        # Duos carry on to the regular tutti roll and the duo branch.

    # ── Tutti ────────────────────────────────────────────────────────────
    if rng.random() < 1.0 - contrast:
        return EnsembleDecision(SizingRegime.TUTTI, n)

    # ── Duo ──────────────────────────────────────────────────────────────
    if n == 2:
        if high and rng.random() < duo_solo_probability(contrast, tuning.bell_contrast):
            return EnsembleDecision(SizingRegime.SOLO, 1)
        return EnsembleDecision(SizingRegime.DUO, 2)

    # ── Bell ─────────────────────────────────────────────────────────────
    if high:
        span = 1.0 - tuning.bell_contrast
        peak_position = 0.25 + (1.0 - contrast) / span * 0.15
        std_dev = 0.15 + (1.0 - contrast) * 0.05
        weights = bell_weights(n, peak_position, std_dev, skew=contrast * 0.5)
        size = sample_weighted(weights, rng, offset=2)
        return EnsembleDecision(SizingRegime.BELL, _clamp_size(size if size is not None else n - 1, n))

    by_activity = activity_size(n, activity, contrast)

    # ── Blend ────────────────────────────────────────────────────────────
    if contrast >= tuning.blend_contrast:
        span = tuning.bell_contrast - tuning.blend_contrast
        peak_position = 0.4 + (tuning.bell_contrast - contrast) / span * 0.25
        weights = bell_weights(n, peak_position, 0.12, skew=contrast * 0.3)
        bell = sample_weighted(weights, rng, offset=2)
        if bell is None:
            bell = n - 1
        blend = (contrast - tuning.blend_contrast) / span
        size = round(blend * bell + (1 - blend) * by_activity)
        return EnsembleDecision(SizingRegime.BLEND, _clamp_size(max(2, min(n - 1, size)), n))

    # ── Activity only ────────────────────────────────────────────────────
    return EnsembleDecision(SizingRegime.ACTIVITY, _clamp_size(by_activity, n))


def ensemble_size(
    num_players: int,
    activity: float,
    contrast: float,
    rng: random.Random | None = None,
    tuning: EngineTuning = DEFAULT_TUNING,
) -> int:
    """Target number of performers for one round, in [1, num_players]."""
    return decide_ensemble(num_players, activity, contrast, rng, tuning).size
