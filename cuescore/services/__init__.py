"""Services built on top of the core engine."""
from __future__ import annotations

from cuescore.services.simulator import (
    PerformanceSimulator,
    SimulationResult,
    generate_report,
)

__all__ = [
    "PerformanceSimulator",
    "SimulationResult",
    "generate_report",
]
