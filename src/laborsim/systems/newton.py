# src/laborsim/systems/newton.py
"""
Interior hours via damped Newton iteration with boundary projection.

The interior first-order condition of

    max_h  (wage·h + R)^(1+η)/(1+η) − β·h^(1+γ)/(1+γ)

is

    f(h) = wage·(wage·h + R)^η − β·h^γ = 0
    f'(h) = η·wage²·(wage·h + R)^(η−1) − γ·β·h^(γ−1)

The power terms are undefined outside the feasible cone ``wage·h + R > 0``,
so every Newton update is followed by two projections, in order:

    1. wage·h + R <= 0  →  h = (−R + ε·max(1, |R|)) / wage
    2. h < ε            →  h = ε

All agents are solved at once with vectorised NumPy operations. The solver
is a pure function of its inputs: agent arrays are never written to and no
state survives the call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from laborsim.config.schema import SolverConfig
from laborsim.errors import ConfigurationError, NumericalError
from laborsim.logging import DEEP_DEBUG, getLogger
from laborsim.typing import Bool1D, Float1D, FloatOrArray, Int1D

log = getLogger(__name__)

DEFAULT_MAX_ITER = 30
DEFAULT_EPS = 1.0e-8


@dataclass(slots=True, frozen=True)
class StoppingPolicy:
    """
    When the Newton iteration stops.

    ``tol=None`` (default) is the fixed-count mode: every agent receives
    exactly ``max_iter`` updates, which reproduces reference datasets bit for
    bit. With ``tol`` set, an agent stops as soon as its relative FOC residual
    is ``<= tol``; the loop ends when every agent stopped or after
    ``max_iter`` updates.
    """

    max_iter: int = DEFAULT_MAX_ITER
    tol: float | None = None

    @property
    def fixed(self) -> bool:
        return self.tol is None

    @classmethod
    def fixed_count(cls, max_iter: int = DEFAULT_MAX_ITER) -> StoppingPolicy:
        return cls(max_iter=max_iter, tol=None)

    @classmethod
    def tolerance(cls, tol: float = 1.0e-12, max_iter: int = 200) -> StoppingPolicy:
        return cls(max_iter=max_iter, tol=tol)


@dataclass(slots=True, frozen=True)
class DomainProjectionEvent:
    """
    Diagnostic record of one boundary projection sweep.

    Not an error: frequent projections only hint that the initial guess
    heuristic is poor for the parameter range.

    Attributes
    ----------
    iteration : int
        Newton iteration (1-based, 0 for the initial guess).
    kind : str
        ``"feasibility"`` (wage·h + R <= 0) or ``"floor"`` (h < ε).
    n_agents : int
        Number of agents projected in this sweep.
    """

    iteration: int
    kind: str
    n_agents: int


@dataclass(slots=True)
class SolverReport:
    """
    Convergence diagnostics of one ``solve_hours`` call.

    Attributes
    ----------
    n_iter : int
        Newton updates performed (the largest count over agents).
    feasibility_projections : Int1D
        Per-agent count of feasibility projections.
    floor_projections : Int1D
        Per-agent count of floor projections.
    residual : Float1D
        Final relative FOC residual ``f(h) / (wage·c^η)``; NaN if unresolved.
    converged : Bool1D
        ``|residual| <= residual_tol`` for resolved agents.
    unresolved : Bool1D
        Agents flagged by a NumericalError under the ``"flag"`` policy.
    events : list of DomainProjectionEvent
        Only filled when projections are recorded.
    """

    n_iter: int
    feasibility_projections: Int1D
    floor_projections: Int1D
    residual: Float1D
    converged: Bool1D
    unresolved: Bool1D
    events: list[DomainProjectionEvent] = field(default_factory=list)

    @property
    def n_agents(self) -> int:
        return int(self.residual.shape[0])

    @property
    def n_projected(self) -> int:
        """Agents projected at least once."""
        touched = (self.feasibility_projections > 0) | (self.floor_projections > 0)
        return int(touched.sum())

    @property
    def n_not_converged(self) -> int:
        return int((~self.converged & ~self.unresolved).sum())

    @property
    def max_abs_residual(self) -> float:
        finite = self.residual[np.isfinite(self.residual)]
        return float(np.abs(finite).max()) if finite.size else 0.0


def foc_residual(
    h: Float1D,
    wage: FloatOrArray,
    R: FloatOrArray,
    *,
    eta: float,
    gamma: float,
    beta: FloatOrArray,
) -> Float1D:
    """Absolute FOC residual ``wage·(wage·h+R)^η − β·h^γ``."""
    c = wage * h + R
    return wage * c**eta - beta * h**gamma


def relative_foc_residual(
    h: Float1D,
    wage: FloatOrArray,
    R: FloatOrArray,
    *,
    eta: float,
    gamma: float,
    beta: FloatOrArray,
) -> Float1D:
    """
    Scale-free FOC residual ``1 − β·h^γ / (wage·c^η)``.

    Equals ``f(h) / (wage·c^η)``: the relative gap between the marginal
    disutility of hours and the marginal utility of the hour's earnings.
    """
    c = wage * h + R
    with np.errstate(all="ignore"):
        return 1.0 - beta * h**gamma / (wage * c**eta)


def interior_offset(wage: FloatOrArray, R: FloatOrArray, eps: float) -> Float1D:
    """
    Hours placing consumption just inside the feasible region (wage·h + R > 0).

    Returns ``(−R + ε·max(1, |R|)) / wage`` rather than the textbook
    ``−R/wage + ε``. The offset scales with ``|R|`` so that ``wage·h + R``
    stays strictly positive after rounding when ``|R|`` is large or ``wage``
    is small. Iterates therefore differ in the last bits from the
    ``−R/wage + ε`` reset whenever this projection fires; fixed points are
    unchanged.
    """
    return (-R + eps * np.maximum(1.0, np.abs(R))) / wage


def _check_inputs(
    h0: Float1D,
    wage: Float1D,
    beta: Float1D,
    eta: float,
    gamma: float,
    on_error: str,
) -> None:
    if not eta < 0.0:
        raise ConfigurationError(f"eta must be < 0, got {eta}")
    if not gamma > 0.0:
        raise ConfigurationError(f"gamma must be > 0, got {gamma}")
    if not np.all(wage > 0.0):
        n_bad = int((~(wage > 0.0)).sum())
        raise ConfigurationError(f"wage must be > 0 for every agent ({n_bad} invalid)")
    if not np.all(beta > 0.0):
        n_bad = int((~(beta > 0.0)).sum())
        raise ConfigurationError(f"beta must be > 0 for every agent ({n_bad} invalid)")
    if not np.all(h0 > 0.0):
        n_bad = int((~(h0 > 0.0)).sum())
        raise ConfigurationError(
            f"initial hours guess must be > 0 for every agent ({n_bad} invalid)"
        )
    if on_error not in ("raise", "flag"):
        raise ConfigurationError(
            f"on_error must be 'raise' or 'flag', got {on_error!r}"
        )


def _project(
    h: Float1D,
    wage: Float1D,
    R: Float1D,
    eps: float,
) -> tuple[Float1D, Bool1D, Bool1D]:
    """Apply the feasibility then the floor projection; return masks of who moved."""
    infeasible = wage * h + R <= 0.0
    h = np.where(infeasible, interior_offset(wage, R, eps), h)
    below = h < eps
    h = np.where(below, eps, h)
    return h, infeasible, below


def solve_hours(
    h0: FloatOrArray,
    wage: FloatOrArray,
    R: FloatOrArray,
    *,
    eta: float,
    gamma: float,
    beta: FloatOrArray,
    policy: StoppingPolicy | None = None,
    eps: float = DEFAULT_EPS,
    residual_tol: float = 1.0e-8,
    on_error: str = "raise",
    record_projections: bool = False,
) -> tuple[Float1D, SolverReport]:
    """
    Solve the interior FOC for every agent.

    Parameters
    ----------
    h0 : float or Float1D
        Initial hours guess (> 0).
    wage : float or Float1D
        Net wage (> 0). A tax regime is folded in by the caller.
    R : float or Float1D
        Adjusted non-labor income μ − r − β0 (signed).
    eta, gamma : float
        Curvatures of consumption utility (< 0) and hours disutility (> 0).
    beta : float or Float1D
        Disutility weight, scalar or per agent (> 0).
    policy : StoppingPolicy, optional
        Fixed 30-update mode when omitted.
    eps : float
        Interior offset used by the projections; also the hours floor.
    residual_tol : float
        Diagnostic threshold for ``SolverReport.converged``.
    on_error : {"raise", "flag"}
        What to do when an agent's iterate or derivative stops being finite
        (or the derivative is zero).
    record_projections : bool
        Keep one DomainProjectionEvent per projection sweep.

    Returns
    -------
    hours : Float1D
        Interior hours, ``>= eps`` and with ``wage·h + R > 0``. Flagged
        (unresolved) agents keep their last feasible iterate.
    report : SolverReport
        Convergence diagnostics.

    Raises
    ------
    ConfigurationError
        Invalid parameters (checked before iterating).
    NumericalError
        Non-finite or zero derivative under ``on_error="raise"``.
    """
    policy = policy or StoppingPolicy()

    h, w, r, b = np.broadcast_arrays(
        np.atleast_1d(np.asarray(h0, dtype=np.float64)),
        np.atleast_1d(np.asarray(wage, dtype=np.float64)),
        np.atleast_1d(np.asarray(R, dtype=np.float64)),
        np.atleast_1d(np.asarray(beta, dtype=np.float64)),
    )
    _check_inputs(h, w, b, eta, gamma, on_error)

    n = h.shape[0]
    feas_count = np.zeros(n, dtype=np.int64)
    floor_count = np.zeros(n, dtype=np.int64)
    unresolved = np.zeros(n, dtype=np.bool_)
    active = np.ones(n, dtype=np.bool_)
    events: list[DomainProjectionEvent] = []

    def _record(iteration: int, ids: np.ndarray, infeasible: Bool1D, below: Bool1D):
        feas_count[ids[infeasible]] += 1
        floor_count[ids[below]] += 1
        if record_projections:
            if infeasible.any():
                events.append(
                    DomainProjectionEvent(
                        iteration, "feasibility", int(infeasible.sum())
                    )
                )
            if below.any():
                events.append(
                    DomainProjectionEvent(iteration, "floor", int(below.sum()))
                )

    all_ids = np.arange(n)
    h, infeasible, below = _project(h.copy(), w, r, eps)
    _record(0, all_ids, infeasible, below)

    log.debug(
        "solve_hours: n=%d  eta=%.3f  gamma=%.3f  max_iter=%d  tol=%s",
        n,
        eta,
        gamma,
        policy.max_iter,
        policy.tol,
    )

    n_iter = 0
    with np.errstate(all="ignore"):
        for it in range(1, policy.max_iter + 1):
            if not policy.fixed:
                res = relative_foc_residual(h, w, r, eta=eta, gamma=gamma, beta=b)
                active &= ~(np.abs(res) <= policy.tol)
            if not active.any():
                break

            ids = all_ids[active]
            hi, wi, ri, bi = h[ids], w[ids], r[ids], b[ids]
            c = wi * hi + ri
            f = wi * c**eta - bi * hi**gamma
            fp = eta * wi**2 * c ** (eta - 1.0) - gamma * bi * hi ** (gamma - 1.0)

            bad = ~np.isfinite(f) | ~np.isfinite(fp) | (fp == 0.0)
            if bad.any():
                bad_ids = ids[bad]
                if on_error == "raise":
                    raise NumericalError(
                        f"Newton derivative degenerate for {bad_ids.size} agent(s) "
                        f"at iteration {it} (first ids: {bad_ids[:5].tolist()})",
                        agent_ids=bad_ids,
                        iteration=it,
                    )
                log.warning(
                    "  %d agent(s) flagged unresolved at iteration %d",
                    bad_ids.size,
                    it,
                )
                unresolved[bad_ids] = True
                active[bad_ids] = False
                keep = ~bad
                ids, hi, wi, ri, f, fp = (
                    ids[keep],
                    hi[keep],
                    wi[keep],
                    ri[keep],
                    f[keep],
                    fp[keep],
                )

            h_new, infeasible, below = _project(hi - f / fp, wi, ri, eps)
            _record(it, ids, infeasible, below)
            h[ids] = h_new
            n_iter = it

            if log.isEnabledFor(DEEP_DEBUG):
                log.deep(
                    "  iter %d: active=%d  feasibility=%d  floor=%d  max|f|=%.3e",
                    it,
                    ids.size,
                    int(infeasible.sum()),
                    int(below.sum()),
                    float(np.abs(f).max()) if f.size else 0.0,
                )

        residual = relative_foc_residual(h, w, r, eta=eta, gamma=gamma, beta=b)

    residual = np.where(unresolved, np.nan, residual)
    converged = (np.abs(residual) <= residual_tol) & ~unresolved

    report = SolverReport(
        n_iter=n_iter,
        feasibility_projections=feas_count,
        floor_projections=floor_count,
        residual=residual,
        converged=converged,
        unresolved=unresolved,
        events=events,
    )

    if report.n_not_converged:
        log.warning(
            "  %d of %d agent(s) above the FOC residual tolerance %.1e "
            "after %d iteration(s) (max |residual| = %.3e)",
            report.n_not_converged,
            n,
            residual_tol,
            n_iter,
            report.max_abs_residual,
        )
    if log.isEnabledFor(logging.DEBUG):
        log.debug(
            "  solve_hours done: iterations=%d  projected=%d  max|residual|=%.3e",
            n_iter,
            report.n_projected,
            report.max_abs_residual,
        )
    return h, report


@dataclass(slots=True, frozen=True)
class NewtonHoursSolver:
    """
    Configured Newton solver.

    Thin immutable wrapper binding solver settings so stages can call
    ``solver.solve(h0, wage, R, eta=..., gamma=..., beta=...)``.
    """

    policy: StoppingPolicy = field(default_factory=StoppingPolicy)
    eps: float = DEFAULT_EPS
    residual_tol: float = 1.0e-8
    on_error: str = "raise"
    record_projections: bool = False

    @classmethod
    def from_config(cls, cfg: SolverConfig) -> NewtonHoursSolver:
        return cls(
            policy=StoppingPolicy(max_iter=cfg.max_iter, tol=cfg.tol),
            eps=cfg.eps,
            residual_tol=cfg.residual_tol,
            on_error=cfg.on_error,
            record_projections=cfg.record_projections,
        )

    def solve(
        self,
        h0: FloatOrArray,
        wage: FloatOrArray,
        R: FloatOrArray,
        *,
        eta: float,
        gamma: float,
        beta: FloatOrArray,
    ) -> tuple[Float1D, SolverReport]:
        return solve_hours(
            h0,
            wage,
            R,
            eta=eta,
            gamma=gamma,
            beta=beta,
            policy=self.policy,
            eps=self.eps,
            residual_tol=self.residual_tol,
            on_error=self.on_error,
            record_projections=self.record_projections,
        )


def initial_hours_guess(
    mu: FloatOrArray,
    wage: FloatOrArray,
    *,
    r: float,
    beta0: float,
) -> Float1D:
    """
    Strictly positive, feasible starting point ``max(−μ + r + β0, 0)/wage + 1``.
    """
    return np.maximum(-np.asarray(mu) + r + beta0, 0.0) / wage + 1.0


__all__ = [
    "DomainProjectionEvent",
    "NewtonHoursSolver",
    "SolverReport",
    "StoppingPolicy",
    "foc_residual",
    "initial_hours_guess",
    "interior_offset",
    "relative_foc_residual",
    "solve_hours",
]
