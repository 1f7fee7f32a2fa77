# src/laborsim/systems/participation.py
"""
Extensive-margin participation.

Rule
----
    c1 = wage·h + μ − r − β0
    u1 = c1^(1+η)/(1+η) − β·h^(1+γ)/(1+γ)
    u0 = μ^(1+η)/(1+η)
    p1 = u1 > u0

Observed (h, c) is (h, c1) for participants and (0, μ) otherwise. The
fixed cost β0 and the lump-sum tax r only bind when working.
"""

from __future__ import annotations

import logging

import numpy as np

from laborsim.agents import Outcome
from laborsim.config.schema import PreferenceConfig, TaxConfig
from laborsim.errors import ConfigurationError
from laborsim.logging import getLogger
from laborsim.typing import Bool1D, Float1D, FloatOrArray

log = getLogger(__name__)


def consumption_utility(c: Float1D, eta: float) -> Float1D:
    """``c^(1+η)/(1+η)``."""
    return c ** (1.0 + eta) / (1.0 + eta)


def hours_disutility(h: Float1D, gamma: float, beta: FloatOrArray) -> Float1D:
    """``β·h^(1+γ)/(1+γ)``."""
    return beta * h ** (1.0 + gamma) / (1.0 + gamma)


def resolve_participation(
    h_interior: Float1D,
    wage: Float1D,
    mu: Float1D,
    *,
    tax: TaxConfig,
    prefs: PreferenceConfig,
    beta: FloatOrArray,
    extensive_margin: bool = True,
    resolved: Bool1D | None = None,
) -> Outcome:
    """
    Compare working the interior hours with not working at all.

    Parameters
    ----------
    h_interior : Float1D
        Interior hours from the Newton solver.
    wage : Float1D
        Net wage (tax regime already folded in).
    mu : Float1D
        Non-labor income.
    tax : TaxConfig
        Only the lump-sum ``r`` is used here.
    prefs : PreferenceConfig
        η, γ and the fixed cost β0.
    beta : float or Float1D
        Disutility weight (scalar or per agent).
    extensive_margin : bool
        When False everyone works the interior hours (intensive margin only).
    resolved : Bool1D, optional
        Agents the solver could not resolve get NaN outcomes and p1 = False.

    Returns
    -------
    Outcome
        Observed hours, consumption, utilities and participation.
    """
    if prefs.eta == -1.0:
        # log utility, outside the power family
        raise ConfigurationError("eta must differ from -1")

    n = h_interior.shape[0]
    if resolved is None:
        resolved = np.ones(n, dtype=np.bool_)

    c1 = wage * h_interior + mu - tax.r - prefs.beta0
    with np.errstate(invalid="ignore"):
        u1 = consumption_utility(c1, prefs.eta) - hours_disutility(
            h_interior, prefs.gamma, beta
        )
    u0 = consumption_utility(mu, prefs.eta)

    if extensive_margin:
        participates = (u1 > u0) & resolved
    else:
        participates = resolved.copy()

    hours = np.where(participates, h_interior, 0.0)
    consumption = np.where(participates, c1, mu)

    hours = np.where(resolved, hours, np.nan)
    consumption = np.where(resolved, consumption, np.nan)
    u1 = np.where(resolved, u1, np.nan)

    if log.isEnabledFor(logging.DEBUG):
        log.debug(
            "resolve_participation: n=%d  working=%d  rate=%.3f  "
            "avg_h|work=%.3f  unresolved=%d",
            n,
            int(participates.sum()),
            float(participates.mean()) if n else 0.0,
            float(hours[participates].mean()) if participates.any() else 0.0,
            int((~resolved).sum()),
        )

    return Outcome(
        hours_interior=h_interior,
        hours=hours,
        consumption=consumption,
        u1=u1,
        u0=u0,
        participates=participates,
        resolved=resolved,
    )


__all__ = ["consumption_utility", "hours_disutility", "resolve_participation"]
