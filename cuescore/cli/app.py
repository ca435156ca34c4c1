"""CueScore CLI — Typer application root.

Entry point for the ``cuescore`` console script. Registers the ``simulate``
and ``preview`` subcommands and configures logging.
"""
from __future__ import annotations

import logging

import typer

from cuescore.cli.commands import preview, simulate
from cuescore.config import settings

cli = typer.Typer(
    name="cuescore",
    help="CueScore — generative cue scheduling for group improvisation.",
    no_args_is_help=True,
)


@cli.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log per-round engine decisions."),
) -> None:
    """Configure logging before any subcommand runs."""
    if verbose or settings.debug:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(settings.log_level.upper())
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


cli.add_typer(simulate.app, name="simulate", help="Simulate a piece and print its statistics.")
cli.add_typer(preview.app, name="preview", help="Print the activity sparkline for piece settings.")


if __name__ == "__main__":
    cli()
