"""cuescore preview — print the activity sparkline for a set of piece settings."""
from __future__ import annotations

import json
import random
from typing import Optional

import typer

from cuescore.cli.commands.simulate import build_settings
from cuescore.core.activity import ActivityCurve
from cuescore.models.piece import ArcShape

app = typer.Typer()

_BARS = "▁▂▃▄▅▆▇█"


def sparkline(values: list[float]) -> str:
    """Render values (expected roughly in [0, 1]) as block characters."""
    top = len(_BARS) - 1
    return "".join(_BARS[max(0, min(top, round(v * top)))] for v in values)


@app.callback(invoke_without_command=True)
def preview(
    ctx: typer.Context,
    arc: ArcShape = typer.Option(ArcShape.ARCH, "--arc", help="Activity shape."),
    duration: float = typer.Option(8.0, "--duration", "-d", help="Piece length in minutes."),
    contrast: float = typer.Option(0.5, "--contrast", "-c", help="Contrast (stretches the curve)."),
    min_interval: float = typer.Option(10.0, "--min-interval", help="Shortest gap between prompts (s)."),
    max_interval: float = typer.Option(30.0, "--max-interval", help="Longest gap between prompts (s)."),
    dyn_min: int = typer.Option(0, "--dyn-min", help="Softest allowed dynamic (0=ppp)."),
    dyn_max: int = typer.Option(7, "--dyn-max", help="Loudest allowed dynamic (7=fff)."),
    width: int = typer.Option(60, "--width", "-w", min=2, help="Number of sparkline samples."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for the random shape and modulation."),
    as_json: bool = typer.Option(False, "--json", help="Print (x, loudness) points as JSON."),
) -> None:
    """Show the macro shape a piece with these settings would follow."""
    piece = build_settings(
        duration=duration,
        players=1,
        contrast=contrast,
        arc=arc,
        min_interval=min_interval,
        max_interval=max_interval,
        dyn_min=dyn_min,
        dyn_max=dyn_max,
    )
    curve = ActivityCurve(piece.arc, piece.duration_min, piece.interval, rng=random.Random(seed))
    points = curve.preview_series(piece.contrast, piece.dyn_range_idx, samples=width - 1)

    if as_json:
        typer.echo(json.dumps([{"x": x, "y": y} for x, y in points]))
        return
    typer.echo(f"{piece.arc.value} ({piece.duration_min:g} min, contrast {piece.contrast:.2f})")
    typer.echo(sparkline([y for _, y in points]))
