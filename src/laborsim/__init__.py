"""
laborsim - Vectorised labor-supply cross-section simulator
==========================================================

laborsim simulates populations of agents who choose hours of work and
consumption to maximise the separable utility

    u(c, h) = c^(1+η)/(1+η) − β·h^(1+γ)/(1+γ)

subject to a linear, possibly taxed, budget constraint, and who decide
whether to work at all. The generated datasets have controlled
statistical properties and are meant for studying estimator bias under
preference heterogeneity and selection.

Quick Start
-----------
Simulate the default regime:

>>> import laborsim as ls
>>> sim = ls.Simulation.init(seed=42)
>>> cs = sim.simulate()[0]
>>> print(f"Participation: {cs.outcome.participation_rate:.2%}")

Several tax regimes, heterogeneous disutility weights:

>>> sim = ls.Simulation.init(n_agents=5000, heterogeneous_beta=True, seed=1)
>>> sections = sim.simulate(
...     regimes=[
...         {"wage_return": 0.5, "rho": 1.0, "r": 0.0},
...         {"wage_return": 0.5, "rho": 0.7, "r": -0.2, "label": "reform"},
...     ]
... )

Custom configuration via YAML file:

>>> sim = ls.Simulation.init(config="my_config.yml", seed=42)
>>> df = sim.run()  # one row per (agent, regime), needs pandas

Key Concepts
------------
**Newton hours solver**
  Every agent's interior hours solve w·(w·h + R)^η = β·h^γ. A vectorised
  Newton iteration projects the iterate back into the feasible region
  (w·h + R > 0, h >= ε) after every update.

**Participation**
  Agents compare the utility of working the interior hours with the
  utility of not working; non-participants are observed at (h, c) = (0, μ).

**Stage pipeline**
  Each regime runs the same ordered stages: draw_population,
  draw_disutility_weights, solve_interior_hours, resolve_participation.

**Deterministic RNG**
  Each regime draws from its own SeedSequence child: identical seeds give
  identical datasets, serially or across processes.

Public API
----------
Simulation
    Cross-section simulator facade.
CrossSection
    One simulated regime (population, outcome, solver diagnostics).
solve_hours, resolve_participation, generate_population
    The underlying vectorised systems.
stage, Stage, Pipeline
    Define and compose custom stages.
ConfigurationError, NumericalError
    Error kinds.

Notes
-----
- Configuration precedence: defaults.yml → user config → kwargs
- Pipeline stages execute in explicit order (no dependency resolution)
"""

from __future__ import annotations

__version__: str = "0.1.0"

from typing import TypeAlias

import numpy as np

# Type alias for RNG (must be before Simulation import)
Rng: TypeAlias = np.random.Generator

from . import logging  # noqa: E402 (circular‑safe)


def make_rng(seed: int | None = None) -> Rng:
    """Create a new random number generator.

    Parameters
    ----------
    seed : int | None
        Seed for reproducibility. If `None`, uses a random seed.

    Examples
    --------
    >>> import laborsim as ls
    >>> rng = ls.make_rng(42)
    >>> pop = ls.generate_population(100, rng, wage_return=0.5)
    """
    return np.random.default_rng(seed)


from .agents import Outcome, Population  # noqa: E402
from .config import (  # noqa: E402
    Config,
    PopulationConfig,
    PreferenceConfig,
    Regime,
    SolverConfig,
    TaxConfig,
)
from .core import (  # noqa: E402
    Pipeline,
    RegimeRun,
    Stage,
    get_stage,
    list_stages,
    stage,
)
from .errors import ConfigurationError, NumericalError  # noqa: E402
from .results import (  # noqa: E402
    CrossSection,
    save_dataset,
    stack_columns,
    stack_cross_sections,
)
from .simulation import Simulation  # noqa: E402  (circular‑safe)
from .systems import (  # noqa: E402
    NewtonHoursSolver,
    SolverReport,
    StoppingPolicy,
    draw_disutility_weights,
    generate_population,
    resolve_participation,
    solve_hours,
)

__all__ = [
    "Simulation",
    "__version__",
    # Results
    "CrossSection",
    "save_dataset",
    "stack_columns",
    "stack_cross_sections",
    # Configuration
    "Config",
    "PopulationConfig",
    "PreferenceConfig",
    "Regime",
    "SolverConfig",
    "TaxConfig",
    # Agents
    "Outcome",
    "Population",
    # Systems
    "NewtonHoursSolver",
    "SolverReport",
    "StoppingPolicy",
    "draw_disutility_weights",
    "generate_population",
    "resolve_participation",
    "solve_hours",
    # Stages
    "Pipeline",
    "RegimeRun",
    "Stage",
    "get_stage",
    "list_stages",
    "stage",
    # Errors
    "ConfigurationError",
    "NumericalError",
    # Utilities
    "Rng",
    "make_rng",
    "logging",
]
