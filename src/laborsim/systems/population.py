# src/laborsim/systems/population.py
"""
Exogenous population draws.

Rule
----
    X          ~ N(0, 1)
    log_wage   = wage_return·X + σ_w·ε_w
    μ          = exp(income_return·X + σ_μ·ε_μ)       (> 0 by construction)
    β_i        = exp(beta_return·X + σ_β·ε_β)         (heterogeneous only)

ε_w, ε_μ, ε_β are independent standard normal draws, one per agent and
channel. Draws are taken in a fixed order (X, ε_w, ε_μ, then ε_β), so a
seeded generator reproduces the population exactly.
"""

from __future__ import annotations

import logging
from dataclasses import replace

import numpy as np
from numpy.random import Generator, default_rng

from laborsim.agents import Population
from laborsim.logging import getLogger

log = getLogger(__name__)


def _as_rng(rng: Generator | int | np.random.SeedSequence | None) -> Generator:
    if isinstance(rng, Generator):
        return rng
    return default_rng(rng)


def generate_population(
    n: int,
    rng: Generator | int | np.random.SeedSequence | None,
    *,
    wage_return: float,
    income_return: float = 0.3,
    wage_noise_scale: float = 0.5,
    income_noise_scale: float = 0.5,
    heterogeneous: bool = False,
    beta_return: float = 0.5,
    beta_noise_scale: float = 0.5,
) -> Population:
    """
    Draw ``n`` agents.

    Parameters
    ----------
    n : int
        Number of agents.
    rng : Generator, int, SeedSequence or None
        Random source. An int or SeedSequence seeds a fresh generator, so the
        result is a deterministic function of the seed.
    wage_return : float
        Loading of log-wage on X.
    income_return : float
        Loading of log non-labor income on X.
    wage_noise_scale, income_noise_scale : float
        Standard deviations of the log-wage and log-income noise.
    heterogeneous : bool
        Also draw agent-specific disutility weights β_i.
    beta_return, beta_noise_scale : float
        Loading on X and noise scale of log β_i.

    Returns
    -------
    Population
    """
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    gen = _as_rng(rng)

    covariate = gen.standard_normal(n)
    wage_noise = gen.standard_normal(n)
    income_noise = gen.standard_normal(n)

    pop = Population(
        agent_id=np.arange(n, dtype=np.int64),
        covariate=covariate,
        log_wage=wage_return * covariate + wage_noise_scale * wage_noise,
        mu=np.exp(income_return * covariate + income_noise_scale * income_noise),
    )

    if log.isEnabledFor(logging.DEBUG):
        log.debug(
            "generate_population: n=%d  wage_return=%.3f  income_return=%.3f  "
            "avg_lw=%.3f  avg_mu=%.3f",
            n,
            wage_return,
            income_return,
            float(pop.log_wage.mean()),
            float(pop.mu.mean()),
        )

    if heterogeneous:
        pop = draw_disutility_weights(
            pop, gen, beta_return=beta_return, beta_noise_scale=beta_noise_scale
        )
    return pop


def draw_disutility_weights(
    pop: Population,
    rng: Generator | int | np.random.SeedSequence | None,
    *,
    beta_return: float = 0.5,
    beta_noise_scale: float = 0.5,
) -> Population:
    """
    Return a copy of ``pop`` with agent-specific disutility weights.

        β_i = exp(beta_return·X + σ_β·ε)

    The input population is left untouched.
    """
    gen = _as_rng(rng)
    noise = gen.standard_normal(pop.n_agents)
    beta_i = np.exp(beta_return * pop.covariate + beta_noise_scale * noise)

    log.debug(
        "draw_disutility_weights: n=%d  avg_log_beta=%.3f  sd_log_beta=%.3f",
        pop.n_agents,
        float(np.log(beta_i).mean()),
        float(np.log(beta_i).std()),
    )
    return replace(pop, beta_i=beta_i)


__all__ = ["draw_disutility_weights", "generate_population"]
