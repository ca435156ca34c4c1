"""
Activity curves: the macro intensity of a piece over time.

``activity()`` evaluates the deterministic shapes as a pure function of the
elapsed fraction. ``ActivityCurve`` wraps one shape for one piece and owns
the step table the ``random`` shape draws from, so two pieces never share a
table and a new piece always starts from a fresh one.

Shapes (x is the elapsed fraction in [0, 1]):
    traditional — eased rise, dip, surge, plateau and fall
    arch        — sin(pi x)
    swell       — x^0.9
    wave        — 0.2 + 0.8 (0.5 + 0.5 sin(2 pi cycles x)), cycles from duration
    plateau     — ease in over [0, 0.3], hold, ease out over [0.7, 1]
    random      — one uniform draw per expected prompt, held per bucket
Unknown shapes evaluate to 0.5.
"""

from __future__ import annotations

import logging
import math
import random
from typing import Union

from cuescore.core.dynamics import DYNAMICS, clamp01
from cuescore.models.piece import ArcShape, average_interval

logger = logging.getLogger(__name__)

ShapeLike = Union[ArcShape, str]

NEUTRAL_ACTIVITY = 0.5

# (x, value) breakpoints of the traditional shape; eased between neighbours.
_TRADITIONAL_POINTS: tuple[tuple[float, float], ...] = (
    (0.0, 0.2),
    (0.1, 0.4),
    (0.3, 0.7),
    (0.5, 0.3),
    (0.7, 1.0),
    (0.9, 0.5),
    (1.0, 0.3),
)


def ease_in_out_sine(x: float) -> float:
    return -(math.cos(math.pi * x) - 1) / 2


def wave_cycles(duration_min: float) -> int:
    """Number of full waves in a piece of the given length."""
    if duration_min <= 5:
        return 2
    if duration_min <= 10:
        return 3
    if duration_min <= 20:
        return 4
    if duration_min <= 40:
        return 6
    return 8


def random_table_steps(duration_min: float, interval_range: tuple[float, float]) -> int:
    """Size of the random shape's step table: one step per expected prompt, at least 4."""
    return max(4, round(duration_min * 60 / average_interval(interval_range)))


def _traditional(x: float) -> float:
    for (x0, y0), (x1, y1) in zip(_TRADITIONAL_POINTS, _TRADITIONAL_POINTS[1:]):
        if x < x1:
            return y0 + (y1 - y0) * ease_in_out_sine((x - x0) / (x1 - x0))
    return _TRADITIONAL_POINTS[-1][1]


def _plateau(x: float) -> float:
    if x < 0.3:
        return ease_in_out_sine(x / 0.3)
    if x < 0.7:
        return 1.0
    return ease_in_out_sine((1 - x) / 0.3)


def _shape_name(shape: ShapeLike) -> str:
    return shape.value if isinstance(shape, ArcShape) else str(shape)


def activity(x: float, shape: ShapeLike, duration_min: float) -> float:
    """Activity in [0, 1] at elapsed fraction ``x`` for a deterministic shape.

    Raises ValueError for ``random``, whose values live in an
    ``ActivityCurve``'s per-piece table.
    """
    x = clamp01(x)
    name = _shape_name(shape)
    if name == ArcShape.TRADITIONAL.value:
        return _traditional(x)
    if name == ArcShape.ARCH.value:
        return math.sin(math.pi * x)
    if name == ArcShape.SWELL.value:
        return x ** 0.9
    if name == ArcShape.WAVE.value:
        w = 0.5 + 0.5 * math.sin(2 * math.pi * wave_cycles(duration_min) * x)
        return 0.2 + 0.8 * w
    if name == ArcShape.PLATEAU.value:
        return _plateau(x)
    if name == ArcShape.RANDOM.value:
        raise ValueError("the random shape needs an ActivityCurve (it owns the step table)")
    return NEUTRAL_ACTIVITY


class ActivityCurve:
    """The activity shape of one piece.

    Deterministic shapes delegate to ``activity()``. The ``random`` shape
    draws its step table lazily from ``rng`` and keeps it until
    ``reset_cache()``; the table is sized from ``interval_range`` so there is
    roughly one step per prompt.
    """

    def __init__(
        self,
        shape: ShapeLike,
        duration_min: float,
        interval_range: tuple[float, float] = (10.0, 30.0),
        rng: random.Random | None = None,
    ) -> None:
        self.shape = _shape_name(shape)
        self.duration_min = duration_min
        self.interval_range = interval_range
        self._rng = rng or random.Random()
        # Step tables keyed by length; the piece's own table is never redrawn
        # by a preview that sizes it from another interval range.
        self._tables: dict[int, list[float]] = {}
        self._phase = self._rng.random() * math.tau

    @property
    def is_random(self) -> bool:
        return self.shape == ArcShape.RANDOM.value

    def reset_cache(self) -> None:
        """Discard the random step tables; the next lookup draws new ones."""
        self._tables.clear()
        self._phase = self._rng.random() * math.tau

    def _random_table(self, interval_range: tuple[float, float]) -> list[float]:
        steps = random_table_steps(self.duration_min, interval_range)
        table = self._tables.get(steps)
        if table is None:
            table = [self._rng.random() for _ in range(steps)]
            self._tables[steps] = table
            logger.debug(f"Random activity table drawn: {steps} steps")
        return table

    def _lookup(self, x: float, interval_range: tuple[float, float]) -> float:
        table = self._random_table(interval_range)
        segment = 1 / len(table)
        return table[min(len(table) - 1, math.floor(clamp01(x) / segment))]

    def value(self, x: float) -> float:
        """Activity at elapsed fraction ``x``."""
        if self.is_random:
            return self._lookup(x, self.interval_range)
        return activity(x, self.shape, self.duration_min)

    def at(self, now: float, start: float, end: float) -> float:
        """Activity at absolute time ``now`` for a piece running ``start``..``end``.

        Times before ``start`` (the pre-roll) evaluate as x = 0, times after
        ``end`` as x = 1.
        """
        if end <= start:
            return self.value(1.0)
        return self.value((now - start) / (end - start))

    def preview(self, x: float, interval_range: tuple[float, float] | None = None) -> float:
        """Normalized preview value; ``interval_range`` only sizes the random table."""
        if self.is_random:
            return self._lookup(x, interval_range or self.interval_range)
        return activity(x, self.shape, self.duration_min)

    def preview_series(
        self,
        contrast: float,
        dyn_range_idx: tuple[int, int] = (0, len(DYNAMICS) - 1),
        samples: int = 300,
        interval_range: tuple[float, float] | None = None,
    ) -> list[tuple[float, float]]:
        """Sparkline points ``(x, loudness)`` for the settings screen.

        Non-random shapes are stretched around 0.5 as contrast grows, then a
        contrast-scaled micro-modulation is layered on top and the result is
        mapped into the chosen dynamic range. Values are limited to
        [-0.5, 1.5] so extreme settings stay drawable.
        """
        dyn_min = DYNAMICS[dyn_range_idx[0]].loudness
        dyn_max = DYNAMICS[dyn_range_idx[1]].loudness
        stretch = 1.0 if self.is_random else 0.5 + 0.7 * contrast

        micro_freq = 5 + 30 * contrast
        micro_amp = 0.03 * contrast + 0.12 * contrast * contrast
        wander_freq = 0.5 + 2.0 * contrast
        chaos_freq = 2 + 10 * contrast
        chaos_strength = 0.2 * contrast

        points: list[tuple[float, float]] = []
        for i in range(samples + 1):
            x = i / samples
            y_norm = self.preview(x, interval_range)
            if not self.is_random:
                y_norm = 0.5 + (y_norm - 0.5) * stretch

            wander = 0.5 + 0.5 * math.sin(x * math.tau * wander_freq + self._phase)
            irregular = chaos_strength * math.sin(x * math.tau * chaos_freq + self._phase * 0.7)
            local_amp = micro_amp * (0.6 + 0.8 * wander + irregular)
            y_norm += math.sin(x * math.pi * micro_freq) * local_amp

            y = dyn_min + (dyn_max - dyn_min) * y_norm
            points.append((x, max(-0.5, min(1.5, y))))
        return points
