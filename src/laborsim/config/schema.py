"""
Configuration dataclasses for simulation parameters.

This module defines the immutable parameter bundles shared read-only by
every agent of a simulated cross-section. Instances are created by
Simulation.init() after merging defaults, user config and kwargs, and
after ConfigValidator accepted the merged dictionary.

Design Notes
------------
- Immutable (frozen=True) to prevent accidental modification
- Memory-efficient (slots=True)
- Simple dataclasses, no validation logic - validation happens in
  ConfigValidator
- The disutility weight ``beta`` is always a scalar here; per-agent
  weights are drawn into the Population when ``heterogeneous_beta`` is set

See Also
--------
ConfigValidator : Centralized validation for configuration parameters
laborsim.simulation.Simulation.init : Creates Config from merged parameters
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True, frozen=True)
class PreferenceConfig:
    """
    Parameters of the separable utility function.

        u(c, h) = c^(1+η)/(1+η) − β·h^(1+γ)/(1+γ)

    Parameters
    ----------
    eta : float
        Curvature of consumption utility η (strictly negative).
    gamma : float
        Curvature of the disutility of hours γ (strictly positive).
    beta : float
        Disutility weight β (strictly positive). Used for every agent unless
        ``heterogeneous_beta`` is set.
    beta0 : float
        Fixed cost of working β0 (non-negative), paid only when hours > 0.
    heterogeneous_beta : bool
        Draw an agent-specific disutility weight β_i instead of using ``beta``.
    """

    eta: float
    gamma: float
    beta: float = 1.0
    beta0: float = 0.0
    heterogeneous_beta: bool = False


@dataclass(slots=True, frozen=True)
class TaxConfig:
    """
    Linear tax schedule applied to the budget constraint.

    Parameters
    ----------
    rho : float
        Marginal retention rate ρ: the net wage is ``rho * exp(log_wage)``.
    r : float
        Lump-sum tax (positive) or transfer (negative) paid by workers.
    """

    rho: float = 1.0
    r: float = 0.0


@dataclass(slots=True, frozen=True)
class Regime:
    """
    One (wage-return, tax regime) configuration of the data generating process.

    Parameters
    ----------
    wage_return : float
        Loading of log-wage on the covariate X.
    tax : TaxConfig
        Tax schedule in force.
    income_return : float or None
        Loading of log non-labor income on X. ``None`` uses the population
        default.
    label : str or None
        Free-form name carried into the output dataset.
    """

    wage_return: float
    tax: TaxConfig = field(default_factory=TaxConfig)
    income_return: float | None = None
    label: str | None = None

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> Regime:
        """Build a Regime from a flat ``{wage_return, rho, r, ...}`` mapping."""
        return cls(
            wage_return=float(data["wage_return"]),
            tax=TaxConfig(rho=float(data.get("rho", 1.0)), r=float(data.get("r", 0.0))),
            income_return=(
                None
                if data.get("income_return") is None
                else float(data["income_return"])
            ),
            label=data.get("label"),
        )


@dataclass(slots=True, frozen=True)
class PopulationConfig:
    """
    Parameters of the exogenous covariate / wage / income draws.

    Parameters
    ----------
    income_return : float
        Default loading of log non-labor income on X.
    wage_noise_scale : float
        Standard deviation of the log-wage noise.
    income_noise_scale : float
        Standard deviation of the log non-labor income noise.
    beta_return : float
        Loading of log β_i on X (heterogeneous preferences only).
    beta_noise_scale : float
        Standard deviation of the log β_i noise.
    """

    income_return: float = 0.3
    wage_noise_scale: float = 0.5
    income_noise_scale: float = 0.5
    beta_return: float = 0.5
    beta_noise_scale: float = 0.5


@dataclass(slots=True, frozen=True)
class SolverConfig:
    """
    Newton solver settings.

    Parameters
    ----------
    max_iter : int
        Number of Newton updates (fixed-count mode) or the iteration cap
        (tolerance mode).
    tol : float or None
        Relative FOC residual at which an agent stops iterating. ``None``
        selects the fixed-count mode.
    eps : float
        Interior offset used by the boundary projections.
    residual_tol : float
        Diagnostic threshold; agents finishing above it are reported as not
        converged and logged at WARNING level.
    on_error : str
        ``"raise"`` aborts on a NumericalError, ``"flag"`` marks the failing
        agents as unresolved and carries on.
    record_projections : bool
        Keep a DomainProjectionEvent for every iteration that projected at
        least one agent.
    """

    max_iter: int = 30
    tol: float | None = None
    eps: float = 1.0e-8
    residual_tol: float = 1.0e-8
    on_error: str = "raise"
    record_projections: bool = False


@dataclass(slots=True, frozen=True)
class Config:
    """
    Complete immutable configuration of a simulation.

    Parameters
    ----------
    n_agents : int
        Agents drawn per regime.
    preferences : PreferenceConfig
        Utility parameters, shared by all regimes.
    population : PopulationConfig
        Covariate / wage / income draw parameters.
    regimes : tuple of Regime
        Regimes simulated by default.
    solver : SolverConfig
        Newton solver settings.
    participation : bool
        Resolve the extensive margin. When False every agent works.
    n_workers : int
        Processes used to shard regimes (1 = serial).
    """

    n_agents: int
    preferences: PreferenceConfig
    population: PopulationConfig
    regimes: tuple[Regime, ...]
    solver: SolverConfig
    participation: bool = True
    n_workers: int = 1
