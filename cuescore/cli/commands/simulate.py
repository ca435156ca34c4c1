"""cuescore simulate — play a whole piece offline and print its statistics.

Flag summary
------------
- ``--duration / -d``        — piece length in minutes.
- ``--players / -n``         — ensemble size.
- ``--contrast / -c``        — 0 (always tutti) .. 1 (sparse, volatile).
- ``--arc``                  — activity shape.
- ``--min-interval`` / ``--max-interval`` — prompt interval range (seconds).
- ``--dyn-min`` / ``--dyn-max`` — allowed dynamics table indices (0=ppp .. 7=fff).
- ``--seed``                 — seed the random source for a repeatable run.
- ``--realtime/--virtual``   — run on the accelerated wall clock or the
                               instant virtual clock (default).
- ``--acceleration``         — clock multiplier for ``--realtime``.
- ``--json``                 — print the full report as JSON.
"""
from __future__ import annotations

import asyncio
import json
import logging
import random
from typing import Optional

import typer
from pydantic import ValidationError

from cuescore.cli.errors import ExitCode
from cuescore.models.piece import ArcShape, PieceSettings
from cuescore.services.simulator import PerformanceSimulator, SimulationResult, generate_report

logger = logging.getLogger(__name__)

app = typer.Typer()


def build_settings(
    *,
    duration: float,
    players: int,
    contrast: float,
    arc: ArcShape,
    min_interval: float,
    max_interval: float,
    dyn_min: int,
    dyn_max: int,
) -> PieceSettings:
    """Validate CLI flags into ``PieceSettings``; exits with USER_ERROR on bad input."""
    try:
        return PieceSettings(
            duration_min=duration,
            interval=(min_interval, max_interval),
            dyn_range_idx=(dyn_min, dyn_max),
            contrast=contrast,
            arc=arc,
            num_players=players,
        )
    except ValidationError as exc:
        for err in exc.errors():
            typer.echo(f"❌ {err['msg']}")
        raise typer.Exit(code=ExitCode.USER_ERROR)


def _render_table(result: SimulationResult) -> None:
    stats = result.stats
    s = result.settings
    typer.echo(
        f"Piece: {s.duration_min:g} min, {s.num_players} players, arc={s.arc.value}, "
        f"contrast={s.contrast:.2f}, interval={s.interval[0]:g}-{s.interval[1]:g}s"
    )
    typer.echo(f"Prompts: {stats.total_prompts}" + ("  (timed out)" if result.timed_out else ""))
    f = stats.fairness
    typer.echo(
        f"Fairness: plays {f.min_plays}-{f.max_plays}, variance {f.variance:.2f}, CV {f.coefficient:.3f}"
    )
    iv = stats.intervals
    typer.echo(f"Intervals: mean {iv.mean:.1f}s, min {iv.min:.1f}s, max {iv.max:.1f}s")
    typer.echo("")
    typer.echo("Player  Plays  Rests  Play%")
    for i, p in enumerate(stats.player_stats):
        typer.echo(f"{i:>6}  {p.total_plays:>5}  {p.total_rests:>5}  {p.play_percentage:>5.1f}")
    if stats.dynamic_distribution:
        typer.echo("")
        typer.echo(
            "Dynamics: "
            + ", ".join(f"{mark}={count}" for mark, count in stats.dynamic_distribution.items())
        )


@app.callback(invoke_without_command=True)
def simulate(
    ctx: typer.Context,
    duration: float = typer.Option(8.0, "--duration", "-d", help="Piece length in minutes."),
    players: int = typer.Option(8, "--players", "-n", help="Number of performers."),
    contrast: float = typer.Option(0.5, "--contrast", "-c", help="0 = always tutti, 1 = sparse and volatile."),
    arc: ArcShape = typer.Option(ArcShape.ARCH, "--arc", help="Activity shape over the piece."),
    min_interval: float = typer.Option(10.0, "--min-interval", help="Shortest gap between prompts (s)."),
    max_interval: float = typer.Option(30.0, "--max-interval", help="Longest gap between prompts (s)."),
    dyn_min: int = typer.Option(0, "--dyn-min", help="Softest allowed dynamic (0=ppp)."),
    dyn_max: int = typer.Option(7, "--dyn-max", help="Loudest allowed dynamic (7=fff)."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for a repeatable run."),
    realtime: bool = typer.Option(
        False, "--realtime/--virtual", help="Run on the accelerated wall clock or the instant virtual clock."
    ),
    acceleration: Optional[float] = typer.Option(
        None, "--acceleration", help="Clock multiplier for --realtime (default from settings)."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the full report as JSON."),
) -> None:
    """Simulate a piece and report fairness, interval and dynamics statistics."""
    piece = build_settings(
        duration=duration,
        players=players,
        contrast=contrast,
        arc=arc,
        min_interval=min_interval,
        max_interval=max_interval,
        dyn_min=dyn_min,
        dyn_max=dyn_max,
    )
    rng = random.Random(seed) if seed is not None else None
    simulator = PerformanceSimulator(piece, acceleration=acceleration, rng=rng)

    try:
        result = asyncio.run(simulator.simulate()) if realtime else simulator.run()
    except Exception as exc:
        typer.echo(f"cuescore simulate failed: {exc}")
        logger.error("cuescore simulate error: %s", exc, exc_info=True)
        raise typer.Exit(code=ExitCode.INTERNAL_ERROR)

    if as_json:
        typer.echo(json.dumps(generate_report(result), indent=2))
    else:
        _render_table(result)
