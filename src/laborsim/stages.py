"""
Built-in pipeline stages.

Each stage wraps one system function and stores its (new) result on the
RegimeRun. Stages draw randomness only from ``run.rng``, the generator
scoped to the regime being processed.
"""

from __future__ import annotations

import logging

import numpy as np

from laborsim.core.decorators import stage
from laborsim.core.stage import RegimeRun
from laborsim.systems.newton import NewtonHoursSolver, initial_hours_guess
from laborsim.systems.participation import resolve_participation
from laborsim.systems.population import draw_disutility_weights, generate_population


def _require(run: RegimeRun, attr: str, stage_name: str):
    value = getattr(run, attr)
    if value is None:
        raise RuntimeError(
            f"Stage '{stage_name}' needs '{attr}'; check the pipeline order"
        )
    return value


@stage
class DrawPopulation:
    """
    Draw the covariate, log-wage and non-labor income of every agent.

    Rule
    ----
        X ~ N(0,1),  lw = a·X + σ_w·ε_w,  μ = exp(b·X + σ_μ·ε_μ)
    """

    def execute(self, run: RegimeRun) -> None:
        pc = run.config.population
        run.population = generate_population(
            run.n_agents,
            run.rng,
            wage_return=run.regime.wage_return,
            income_return=run.income_return,
            wage_noise_scale=pc.wage_noise_scale,
            income_noise_scale=pc.income_noise_scale,
        )
        self.get_logger().debug(
            "regime %d: drew %d agents", run.regime_id, run.n_agents
        )


@stage
class DrawDisutilityWeights:
    """Draw agent-specific disutility weights β_i = exp(0.5·X + σ_β·ε_β)."""

    def execute(self, run: RegimeRun) -> None:
        pc = run.config.population
        pop = _require(run, "population", self.name)
        run.population = draw_disutility_weights(
            pop,
            run.rng,
            beta_return=pc.beta_return,
            beta_noise_scale=pc.beta_noise_scale,
        )


@stage
class SolveInteriorHours:
    """
    Solve the interior FOC for every agent with the configured Newton solver.

    Rule
    ----
        h0 = max(−μ + r + β0, 0)/w + 1
        w·(w·h + R)^η = β·h^γ,   w = ρ·exp(lw),   R = μ − r − β0
    """

    def execute(self, run: RegimeRun) -> None:
        logger = self.get_logger()
        prefs = run.config.preferences
        tax = run.regime.tax
        pop = _require(run, "population", self.name)

        wage = pop.net_wage(tax)
        h0 = initial_hours_guess(pop.mu, wage, r=tax.r, beta0=prefs.beta0)
        solver = NewtonHoursSolver.from_config(run.config.solver)
        run.hours_interior, run.solver_report = solver.solve(
            h0,
            wage,
            pop.adjusted_income(tax, prefs),
            eta=prefs.eta,
            gamma=prefs.gamma,
            beta=pop.disutility_weight(prefs),
        )

        report = run.solver_report
        logger.info(
            "regime %d: hours solved in %d iteration(s), %d agent(s) projected, "
            "max |FOC residual| %.2e",
            run.regime_id,
            report.n_iter,
            report.n_projected,
            report.max_abs_residual,
        )
        if report.n_projected > 0.5 * report.n_agents:
            logger.warning(
                "regime %d: %d of %d agents needed a boundary projection; "
                "the initial guess may be poor for this parameter range",
                run.regime_id,
                report.n_projected,
                report.n_agents,
            )


@stage
class ResolveParticipation:
    """
    Compare working the interior hours with not working.

    Rule
    ----
        p1 = u(w·h + R, h) > u(μ, 0);   observed (h, c) = (h, w·h + R) or (0, μ)
    """

    def execute(self, run: RegimeRun) -> None:
        logger = self.get_logger()
        pop = _require(run, "population", self.name)
        h = _require(run, "hours_interior", self.name)
        report = _require(run, "solver_report", self.name)

        run.outcome = resolve_participation(
            h,
            pop.net_wage(run.regime.tax),
            pop.mu,
            tax=run.regime.tax,
            prefs=run.config.preferences,
            beta=pop.disutility_weight(run.config.preferences),
            extensive_margin=True,
            resolved=~report.unresolved,
        )
        if logger.isEnabledFor(logging.INFO):
            logger.info(
                "regime %d: participation rate %.3f (%d of %d)",
                run.regime_id,
                run.outcome.participation_rate,
                int(np.count_nonzero(run.outcome.participates)),
                run.outcome.n_agents,
            )


__all__ = [
    "DrawDisutilityWeights",
    "DrawPopulation",
    "ResolveParticipation",
    "SolveInteriorHours",
]
