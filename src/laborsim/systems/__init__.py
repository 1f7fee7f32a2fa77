"""Vectorised per-agent systems: population draws, Newton hours, participation."""

from laborsim.systems.newton import (
    DomainProjectionEvent,
    NewtonHoursSolver,
    SolverReport,
    StoppingPolicy,
    foc_residual,
    initial_hours_guess,
    relative_foc_residual,
    solve_hours,
)
from laborsim.systems.participation import resolve_participation
from laborsim.systems.population import draw_disutility_weights, generate_population

__all__ = [
    "DomainProjectionEvent",
    "NewtonHoursSolver",
    "SolverReport",
    "StoppingPolicy",
    "draw_disutility_weights",
    "foc_residual",
    "generate_population",
    "initial_hours_guess",
    "relative_foc_residual",
    "resolve_participation",
    "solve_hours",
]
