"""
Agent state containers.

Agents are stored as parallel NumPy arrays, one index per agent, the way
every stage and system of the package consumes them. Both containers are
frozen: stages build new instances (``dataclasses.replace``) rather than
writing into shared storage, which keeps per-regime work free of shared
mutable state.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from laborsim.config.schema import PreferenceConfig, TaxConfig
from laborsim.typing import Bool1D, Float1D, FloatOrArray, Int1D


@dataclass(slots=True, frozen=True)
class Population:
    """
    Exogenous agent attributes of one simulated cross-section.

    Attributes
    ----------
    agent_id : Int1D
        Agent identifiers (0..n-1 within the regime).
    covariate : Float1D
        Exogenous covariate X ~ N(0, 1).
    log_wage : Float1D
        Pre-tax log-wage.
    mu : Float1D
        Non-labor income μ (strictly positive).
    beta_i : Float1D or None
        Agent-specific disutility weight, ``None`` for homogeneous preferences.
    """

    agent_id: Int1D
    covariate: Float1D
    log_wage: Float1D
    mu: Float1D
    beta_i: Float1D | None = None

    def __post_init__(self) -> None:
        n = self.agent_id.shape[0]
        for name in ("covariate", "log_wage", "mu"):
            arr = getattr(self, name)
            if arr.shape != (n,):
                raise ValueError(
                    f"Population.{name} must have shape ({n},), got {arr.shape}"
                )
        if self.beta_i is not None and self.beta_i.shape != (n,):
            raise ValueError(
                f"Population.beta_i must have shape ({n},), got {self.beta_i.shape}"
            )

    @property
    def n_agents(self) -> int:
        return int(self.agent_id.shape[0])

    @property
    def heterogeneous(self) -> bool:
        return self.beta_i is not None

    def net_wage(self, tax: TaxConfig) -> Float1D:
        """After-tax wage ``rho * exp(log_wage)``."""
        return tax.rho * np.exp(self.log_wage)

    def adjusted_income(self, tax: TaxConfig, prefs: PreferenceConfig) -> Float1D:
        """Non-labor income net of the lump-sum tax and fixed cost, R = μ − r − β0."""
        return self.mu - tax.r - prefs.beta0

    def disutility_weight(self, prefs: PreferenceConfig) -> FloatOrArray:
        """Per-agent β_i when drawn, otherwise the scalar β broadcast to everyone."""
        if self.beta_i is not None:
            return self.beta_i
        return prefs.beta


@dataclass(slots=True, frozen=True)
class Outcome:
    """
    Observed choices of one cross-section.

    Attributes
    ----------
    hours_interior : Float1D
        Interior-solution hours returned by the Newton solver (> 0).
    hours : Float1D
        Observed hours: interior hours for participants, 0 otherwise.
    consumption : Float1D
        Observed consumption: ``wage*h + R`` for participants, μ otherwise.
    u1 : Float1D
        Utility when working the interior hours.
    u0 : Float1D
        Utility when not working.
    participates : Bool1D
        Participation flag p1 = u1 > u0.
    resolved : Bool1D
        False for agents the solver flagged as numerically unresolved.
    """

    hours_interior: Float1D
    hours: Float1D
    consumption: Float1D
    u1: Float1D
    u0: Float1D
    participates: Bool1D
    resolved: Bool1D

    @property
    def n_agents(self) -> int:
        return int(self.hours.shape[0])

    @property
    def participation_rate(self) -> float:
        if self.n_agents == 0:
            return 0.0
        return float(self.participates.mean())


__all__ = ["Population", "Outcome"]
