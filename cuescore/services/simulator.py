"""Performance Simulator — run whole pieces offline and measure them.

Provides:

- ``PerformanceSimulator.simulate`` — async: runs a ``ScoreEngine`` on a
  ``ScaledClock`` so an 8-minute piece plays in seconds of real time. A
  safety timeout finalizes the result if the piece never ends.

- ``PerformanceSimulator.run`` — the same piece on a ``VirtualClock``,
  finishing as fast as the engine's callbacks run.

- ``SimulationResult`` / ``SimulationStats`` — named result types: committed
  prompts, per-performer totals and dynamic histograms, fairness and
  interval statistics.

- ``generate_report`` — JSON-ready summary with a per-prompt timeline.

Only ``RenderCommit`` frames at or after musical time zero count as prompts;
countdown ticks and the pre-roll are not prompts. The engine is always
closed when a simulation finishes, times out or fails, so no accelerated
timer outlives its run.
"""
from __future__ import annotations

import asyncio
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Callable, Optional

from cuescore.config import EngineTuning, get_settings
from cuescore.core.clock import Clock, ScaledClock, VirtualClock
from cuescore.core.dynamics import MARKS
from cuescore.core.engine import ScoreEngine
from cuescore.core.events import EngineEvent, PieceEnded, RenderCommit
from cuescore.core.state_machine import is_running
from cuescore.models.piece import PieceSettings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Named result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PromptRecord:
    """One committed prompt as observed by the simulator."""

    prompt_index: int
    elapsed_seconds: float
    interval_since_last: float
    playing_count: int
    players: tuple[tuple[int, str, float], ...]

    @property
    def dynamics(self) -> list[str]:
        return [mark for _, mark, _ in self.players]


@dataclass
class PlayerStats:
    """Totals for one performer across all committed prompts."""

    total_plays: int = 0
    total_rests: int = 0
    dynamics: dict[str, int] = field(default_factory=dict)

    @property
    def play_percentage(self) -> float:
        total = self.total_plays + self.total_rests
        return self.total_plays / total * 100 if total else 0.0


@dataclass(frozen=True)
class FairnessStats:
    min_plays: int = 0
    max_plays: int = 0
    variance: float = 0.0
    std_dev: float = 0.0
    coefficient: float = 0.0


@dataclass(frozen=True)
class IntervalStats:
    mean: float = 0.0
    min: float = 0.0
    max: float = 0.0
    all: tuple[float, ...] = ()


@dataclass(frozen=True)
class SimulationStats:
    total_prompts: int
    player_stats: tuple[PlayerStats, ...]
    fairness: FairnessStats
    intervals: IntervalStats
    dynamic_distribution: dict[str, int]


@dataclass(frozen=True)
class SimulationResult:
    """Outcome of one simulated piece.

    ``timed_out`` is True when the safety limit finalized the run before the
    engine emitted ``PieceEnded``.
    """

    settings: PieceSettings
    events: tuple[PromptRecord, ...]
    stats: SimulationStats
    timed_out: bool = False

    @property
    def duration(self) -> float:
        return self.settings.duration_min


# ---------------------------------------------------------------------------
# Statistics helpers
# ---------------------------------------------------------------------------


def variance(values: list[int] | list[float]) -> float:
    """Population variance; 0 for an empty list."""
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def coefficient_of_variation(values: list[int] | list[float]) -> float:
    """Standard deviation over mean; 0 when the mean is 0."""
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    if mean == 0:
        return 0.0
    return math.sqrt(variance(values)) / mean


def fairness_stats(play_counts: list[int]) -> FairnessStats:
    if not play_counts or not any(play_counts):
        return FairnessStats()
    var = variance(play_counts)
    return FairnessStats(
        min_plays=min(play_counts),
        max_plays=max(play_counts),
        variance=var,
        std_dev=math.sqrt(var),
        coefficient=coefficient_of_variation(play_counts),
    )


def interval_stats(intervals: list[float]) -> IntervalStats:
    if not intervals:
        return IntervalStats()
    return IntervalStats(
        mean=sum(intervals) / len(intervals),
        min=min(intervals),
        max=max(intervals),
        all=tuple(intervals),
    )


# ---------------------------------------------------------------------------
# Simulator
# ---------------------------------------------------------------------------


class PerformanceSimulator:
    """Runs one piece under an accelerated or virtual clock and aggregates stats.

    Args:
        settings: The piece to simulate.
        acceleration: Clock multiplier for ``simulate()``; defaults to
            ``tuning.sim_acceleration``.
        tuning: Engine design constants; defaults to ``settings.tuning``.
        rng: Random source handed to the engine (seed it for repeatable runs).
    """

    def __init__(
        self,
        settings: PieceSettings,
        acceleration: Optional[float] = None,
        tuning: Optional[EngineTuning] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings
        self.tuning = tuning or get_settings().tuning
        self.acceleration = acceleration or self.tuning.sim_acceleration
        self._rng = rng or random.Random()
        self._reset()

    def _reset(self) -> None:
        self._prompts: list[PromptRecord] = []
        self._intervals: list[float] = []
        self._last_elapsed = 0.0
        self._player_stats = [PlayerStats() for _ in range(self.settings.num_players)]
        self._ended = False

    def _make_engine(self, clock: Clock, on_end: Optional[Callable[[], None]] = None) -> ScoreEngine:
        engine: ScoreEngine

        def sink(event: EngineEvent) -> None:
            self._record(event, engine.piece_start_time)
            if on_end is not None and isinstance(event, PieceEnded):
                on_end()

        engine = ScoreEngine(sink=sink, clock=clock, rng=self._rng, tuning=self.tuning)
        return engine

    def _record(self, event: EngineEvent, piece_start_time: float) -> None:
        if isinstance(event, PieceEnded):
            self._ended = True
            return
        if not isinstance(event, RenderCommit):
            return
        elapsed = round(event.timestamp - piece_start_time, 3)
        if elapsed < 0:
            return

        index = len(self._prompts)
        gap = elapsed - self._last_elapsed
        self._last_elapsed = elapsed
        if index > 0:
            self._intervals.append(gap)

        players = tuple(
            (i, cue.mark or "unknown", cue.loudness or 0.0)
            for i, cue in enumerate(event.cues)
            if cue.is_play
        )
        self._prompts.append(PromptRecord(
            prompt_index=index,
            elapsed_seconds=elapsed,
            interval_since_last=gap if index > 0 else 0.0,
            playing_count=len(players),
            players=players,
        ))
        for i, cue in enumerate(event.cues):
            if i >= len(self._player_stats):
                continue
            stat = self._player_stats[i]
            if cue.is_play:
                stat.total_plays += 1
                mark = cue.mark or "unknown"
                stat.dynamics[mark] = stat.dynamics.get(mark, 0) + 1
            else:
                stat.total_rests += 1

    def _finalize(self, timed_out: bool) -> SimulationResult:
        totals: dict[str, int] = {}
        for stat in self._player_stats:
            for mark, count in stat.dynamics.items():
                totals[mark] = totals.get(mark, 0) + count
        # Softest to loudest; marks outside the table go last.
        distribution = dict(
            sorted(totals.items(), key=lambda kv: MARKS.index(kv[0]) if kv[0] in MARKS else len(MARKS))
        )
        stats = SimulationStats(
            total_prompts=len(self._prompts),
            player_stats=tuple(self._player_stats),
            fairness=fairness_stats([s.total_plays for s in self._player_stats]),
            intervals=interval_stats(self._intervals),
            dynamic_distribution=distribution,
        )
        logger.info(
            f"Simulation finished: {stats.total_prompts} prompts, "
            f"CV={stats.fairness.coefficient:.3f}, mean interval={stats.intervals.mean:.1f}s"
            + (" (timed out)" if timed_out else "")
        )
        return SimulationResult(self.settings, tuple(self._prompts), stats, timed_out)

    def _simulated_span(self) -> float:
        """Simulated seconds a piece can take, start to final commit."""
        t = self.tuning
        return t.preroll_secs + self.settings.duration_secs + self.settings.interval[1] + 2 * t.countdown_secs

    async def simulate(self) -> SimulationResult:
        """Run the piece on a ScaledClock on the running event loop."""
        self._reset()
        loop = asyncio.get_running_loop()
        done: asyncio.Future[None] = loop.create_future()

        def resolve() -> None:
            if not done.done():
                done.set_result(None)

        engine = self._make_engine(ScaledClock(self.acceleration), on_end=resolve)
        timeout = self.settings.duration_secs / self.acceleration + self.tuning.sim_safety_buffer_secs
        timed_out = False
        try:
            engine.start_piece(self.settings)
            try:
                await asyncio.wait_for(done, timeout=timeout)
            except asyncio.TimeoutError:
                timed_out = True
                logger.warning(f"Simulation exceeded {timeout:.1f}s real time; finalizing early")
        finally:
            engine.close()
        return self._finalize(timed_out)

    def run(self) -> SimulationResult:
        """Run the piece on a VirtualClock; returns as soon as the piece ends."""
        self._reset()
        clock = VirtualClock()
        engine = self._make_engine(clock)
        try:
            engine.start_piece(self.settings)
            clock.run_until_idle(limit=clock.now() + self._simulated_span())
            timed_out = is_running(engine.state) or not self._ended
            if timed_out:
                logger.warning("Virtual simulation stopped before the piece ended")
        finally:
            engine.close()
        return self._finalize(timed_out)


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


def _format_time(elapsed: float) -> str:
    elapsed = max(0.0, elapsed)
    return f"{int(elapsed // 60)}:{int(elapsed % 60):02d}"


def generate_report(result: SimulationResult) -> dict[str, object]:
    """JSON-ready report: summary, fairness, intervals, per-player breakdown, timeline."""
    stats = result.stats
    return {
        "summary": {
            "totalPrompts": stats.total_prompts,
            "duration": result.duration,
            "players": result.settings.num_players,
            "timedOut": result.timed_out,
        },
        "fairness": {
            "minPlays": stats.fairness.min_plays,
            "maxPlays": stats.fairness.max_plays,
            "variance": stats.fairness.variance,
            "stdDev": stats.fairness.std_dev,
            "coefficient": stats.fairness.coefficient,
        },
        "intervalStats": {
            "mean": stats.intervals.mean,
            "min": stats.intervals.min,
            "max": stats.intervals.max,
            "all": list(stats.intervals.all),
        },
        "dynamicDistribution": dict(stats.dynamic_distribution),
        "playerBreakdown": [
            {
                "playerIndex": i,
                "totalPlays": s.total_plays,
                "totalRests": s.total_rests,
                "playPercentage": s.play_percentage,
                "dynamics": dict(s.dynamics),
            }
            for i, s in enumerate(stats.player_stats)
        ],
        "timeline": [
            {
                "time": _format_time(e.elapsed_seconds),
                "elapsedSeconds": e.elapsed_seconds,
                "interval": f"{e.interval_since_last:.1f}s" if e.interval_since_last > 0 else "—",
                "playing": e.playing_count,
                "dynamics": ", ".join(e.dynamics) or "—",
            }
            for e in result.events
        ],
    }
