"""Tests for activity curves and the settings-screen preview."""
from __future__ import annotations

import math
import random

import pytest

from cuescore.core.activity import (
    NEUTRAL_ACTIVITY,
    ActivityCurve,
    activity,
    random_table_steps,
    wave_cycles,
)
from cuescore.models.piece import ArcShape

DETERMINISTIC = [s for s in ArcShape if s is not ArcShape.RANDOM]


class TestDeterministicShapes:

    @pytest.mark.parametrize("x", [0.0, 0.1, 0.25, 0.5, 0.77, 1.0])
    def test_arch_is_sine(self, x: float) -> None:
        assert activity(x, ArcShape.ARCH, 8) == math.sin(math.pi * x)

    @pytest.mark.parametrize("shape", DETERMINISTIC)
    def test_values_stay_in_unit_interval(self, shape: ArcShape) -> None:
        for i in range(101):
            assert 0.0 <= activity(i / 100, shape, 8) <= 1.0

    def test_swell_rises(self) -> None:
        assert activity(0.0, ArcShape.SWELL, 8) == 0.0
        assert activity(1.0, ArcShape.SWELL, 8) == 1.0
        assert activity(0.3, ArcShape.SWELL, 8) < activity(0.6, ArcShape.SWELL, 8)

    def test_traditional_breakpoints(self) -> None:
        assert activity(0.0, ArcShape.TRADITIONAL, 8) == pytest.approx(0.2)
        assert activity(0.5, ArcShape.TRADITIONAL, 8) == pytest.approx(0.3)
        assert activity(0.7, ArcShape.TRADITIONAL, 8) == pytest.approx(1.0)
        assert activity(1.0, ArcShape.TRADITIONAL, 8) == pytest.approx(0.3)

    def test_plateau_holds_in_the_middle(self) -> None:
        assert activity(0.0, ArcShape.PLATEAU, 8) == pytest.approx(0.0)
        assert activity(0.3, ArcShape.PLATEAU, 8) == 1.0
        assert activity(0.5, ArcShape.PLATEAU, 8) == 1.0
        assert activity(1.0, ArcShape.PLATEAU, 8) == pytest.approx(0.0)

    def test_wave_range(self) -> None:
        values = [activity(i / 400, ArcShape.WAVE, 8) for i in range(401)]
        assert min(values) == pytest.approx(0.2, abs=1e-3)
        assert max(values) == pytest.approx(1.0, abs=1e-3)

    @pytest.mark.parametrize(
        "duration,cycles",
        [(3, 2), (5, 2), (8, 3), (10, 3), (15, 4), (30, 6), (60, 8)],
    )
    def test_wave_cycles(self, duration: float, cycles: int) -> None:
        assert wave_cycles(duration) == cycles

    def test_x_is_clamped(self) -> None:
        assert activity(-0.5, ArcShape.SWELL, 8) == 0.0
        assert activity(1.5, ArcShape.SWELL, 8) == 1.0

    def test_unknown_shape_is_neutral(self) -> None:
        assert activity(0.3, "zigzag", 8) == NEUTRAL_ACTIVITY

    def test_random_needs_a_curve(self) -> None:
        with pytest.raises(ValueError):
            activity(0.5, ArcShape.RANDOM, 8)


class TestRandomShape:

    def test_table_size_follows_expected_prompts(self) -> None:
        assert random_table_steps(8, (10, 30)) == 24
        assert random_table_steps(0.5, (10, 30)) == 4

    def test_values_stable_within_a_piece(self) -> None:
        curve = ActivityCurve(ArcShape.RANDOM, 8, (10, 30), rng=random.Random(7))
        first = [curve.value(i / 50) for i in range(51)]
        second = [curve.value(i / 50) for i in range(51)]
        assert first == second
        assert all(0.0 <= v < 1.0 for v in first)

    def test_values_piecewise_constant(self) -> None:
        curve = ActivityCurve(ArcShape.RANDOM, 8, (10, 30), rng=random.Random(7))
        # 24 steps: x in the same bucket maps to the same value.
        assert curve.value(0.001) == curve.value(0.04)

    def test_reset_cache_draws_a_new_table(self) -> None:
        curve = ActivityCurve(ArcShape.RANDOM, 8, (10, 30), rng=random.Random(7))
        before = [curve.value(i / 24) for i in range(24)]
        curve.reset_cache()
        after = [curve.value(i / 24) for i in range(24)]
        assert before != after

    def test_preview_with_other_range_keeps_piece_table(self) -> None:
        curve = ActivityCurve(ArcShape.RANDOM, 8, (10, 30), rng=random.Random(7))
        before = [curve.value(i / 24) for i in range(24)]
        # 8 steps instead of 24.
        curve.preview(0.5, (40, 80))
        curve.preview_series(0.5, interval_range=(40, 80), samples=20)
        assert [curve.value(i / 24) for i in range(24)] == before

    def test_preview_with_piece_range_matches_runtime(self) -> None:
        curve = ActivityCurve(ArcShape.RANDOM, 8, (10, 30), rng=random.Random(7))
        assert [curve.preview(i / 24) for i in range(24)] == [curve.value(i / 24) for i in range(24)]

    def test_two_curves_do_not_share_a_table(self) -> None:
        a = ActivityCurve(ArcShape.RANDOM, 8, (10, 30), rng=random.Random(1))
        b = ActivityCurve(ArcShape.RANDOM, 8, (10, 30), rng=random.Random(2))
        assert [a.value(i / 24) for i in range(24)] != [b.value(i / 24) for i in range(24)]


class TestCurveTiming:

    def test_at_maps_absolute_time(self) -> None:
        curve = ActivityCurve(ArcShape.SWELL, 1)
        assert curve.at(100.0, 100.0, 160.0) == 0.0
        assert curve.at(160.0, 100.0, 160.0) == 1.0

    def test_preroll_reads_as_start(self) -> None:
        curve = ActivityCurve(ArcShape.SWELL, 1)
        assert curve.at(95.0, 100.0, 160.0) == 0.0

    def test_degenerate_span_reads_as_end(self) -> None:
        curve = ActivityCurve(ArcShape.SWELL, 1)
        assert curve.at(100.0, 100.0, 100.0) == 1.0


class TestPreviewSeries:

    def test_length_and_x_values(self) -> None:
        curve = ActivityCurve(ArcShape.ARCH, 8, rng=random.Random(3))
        points = curve.preview_series(0.5, samples=300)
        assert len(points) == 301
        assert points[0][0] == 0.0
        assert points[-1][0] == 1.0

    @pytest.mark.parametrize("shape", list(ArcShape))
    @pytest.mark.parametrize("contrast", [0.0, 0.5, 1.0])
    def test_values_are_bounded(self, shape: ArcShape, contrast: float) -> None:
        curve = ActivityCurve(shape, 8, rng=random.Random(3))
        for _, y in curve.preview_series(contrast, samples=120):
            assert -0.5 <= y <= 1.5

    def test_zero_contrast_compresses_toward_middle(self) -> None:
        curve = ActivityCurve(ArcShape.ARCH, 8, rng=random.Random(3))
        ys = [y for _, y in curve.preview_series(0.0, samples=100)]
        # Stretch 0.5 with no modulation: arch spans 0.25..0.75.
        assert min(ys) == pytest.approx(0.25, abs=1e-9)
        assert max(ys) == pytest.approx(0.75, abs=1e-3)

    def test_dynamic_range_maps_the_output(self) -> None:
        curve = ActivityCurve(ArcShape.ARCH, 8, rng=random.Random(3))
        ys = [y for _, y in curve.preview_series(0.0, dyn_range_idx=(2, 2), samples=50)]
        assert all(y == pytest.approx(0.28) for y in ys)
