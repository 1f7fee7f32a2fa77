"""
Simulated cross-sections and dataset export.

This module provides the CrossSection container returned by
Simulation.simulate() (one per regime) and helpers that stack several
cross-sections into one dataset with one row per (agent, regime).

Note: pandas is an optional dependency. It is only required for DataFrame
export (CrossSection.to_dataframe, stack_cross_sections, CSV output).
Install with: pip install laborsim[pandas] or pip install pandas
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
from numpy.typing import NDArray

from laborsim.agents import Outcome, Population
from laborsim.config.schema import Regime
from laborsim.logging import getLogger
from laborsim.systems.newton import SolverReport

if TYPE_CHECKING:  # pragma: no cover
    from pandas import DataFrame

log = getLogger(__name__)

#: Column order of the exported dataset. ``beta_i`` is only present for
#: heterogeneous preferences.
COLUMNS: tuple[str, ...] = (
    "agent_id",
    "regime_id",
    "regime_label",
    "wage_return",
    "income_return",
    "rho",
    "r",
    "x",
    "log_wage",
    "net_wage",
    "mu",
    "beta_i",
    "h_interior",
    "h",
    "c",
    "u1",
    "u0",
    "p1",
    "resolved",
)


def _import_pandas() -> Any:
    """
    Lazily import pandas with helpful error message if not installed.

    Raises
    ------
    ImportError
        If pandas is not installed.
    """
    try:
        import pandas as pd

        return pd
    except ImportError:  # pragma: no cover
        raise ImportError(
            "pandas is required for DataFrame export. "
            "Install it with: pip install pandas"
        ) from None


@dataclass(slots=True, frozen=True)
class CrossSection:
    """
    One simulated cross-section: the agents of a single regime and their
    observed choices.

    Attributes
    ----------
    regime_id : int
        Position of the regime in the simulated list.
    regime : Regime
        Wage-return and tax parameters the agents faced.
    income_return : float
        Loading of log non-labor income on X actually used.
    population : Population
        Exogenous attributes.
    outcome : Outcome
        Interior hours, observed hours and consumption, utilities, p1.
    solver_report : SolverReport
        Newton diagnostics for this regime.

    Examples
    --------
    >>> sim = Simulation.init(n_agents=100, seed=1)
    >>> cs = sim.simulate()[0]
    >>> cs.outcome.participation_rate  # doctest: +SKIP
    0.93
    >>> df = cs.to_dataframe()  # doctest: +SKIP
    """

    regime_id: int
    regime: Regime
    income_return: float
    population: Population
    outcome: Outcome
    solver_report: SolverReport

    @property
    def n_agents(self) -> int:
        return self.population.n_agents

    @property
    def label(self) -> str:
        if self.regime.label is not None:
            return self.regime.label
        return f"regime_{self.regime_id}"

    def columns(self) -> dict[str, NDArray[Any]]:
        """
        Column arrays of this cross-section in export order.

        Returns
        -------
        dict[str, ndarray]
            One array of length ``n_agents`` per column.
        """
        n = self.n_agents
        pop = self.population
        out = self.outcome
        tax = self.regime.tax

        cols: dict[str, NDArray[Any]] = {
            "agent_id": pop.agent_id,
            "regime_id": np.full(n, self.regime_id, dtype=np.int64),
            "regime_label": np.full(n, self.label),
            "wage_return": np.full(n, self.regime.wage_return),
            "income_return": np.full(n, self.income_return),
            "rho": np.full(n, tax.rho),
            "r": np.full(n, tax.r),
            "x": pop.covariate,
            "log_wage": pop.log_wage,
            "net_wage": pop.net_wage(tax),
            "mu": pop.mu,
        }
        if pop.beta_i is not None:
            cols["beta_i"] = pop.beta_i
        cols.update(
            h_interior=out.hours_interior,
            h=out.hours,
            c=out.consumption,
            u1=out.u1,
            u0=out.u0,
            p1=out.participates,
            resolved=out.resolved,
        )
        return cols

    def to_dataframe(self) -> DataFrame:
        """
        Export this cross-section as a pandas DataFrame.

        Raises
        ------
        ImportError
            If pandas is not installed.
        """
        pd = _import_pandas()
        return pd.DataFrame(self.columns())

    @property
    def summary(self) -> dict[str, float]:
        """Headline statistics used by logging and the CLI."""
        out = self.outcome
        workers = out.participates
        return {
            "n_agents": float(self.n_agents),
            "participation_rate": out.participation_rate,
            "mean_hours_workers": (
                float(out.hours[workers].mean()) if workers.any() else float("nan")
            ),
            "n_projected": float(self.solver_report.n_projected),
            "n_not_converged": float(self.solver_report.n_not_converged),
            "max_abs_residual": self.solver_report.max_abs_residual,
        }

    def __repr__(self) -> str:
        return (
            f"CrossSection(regime_id={self.regime_id}, label={self.label!r}, "
            f"n_agents={self.n_agents}, "
            f"participation_rate={self.outcome.participation_rate:.3f})"
        )


def stack_columns(sections: Sequence[CrossSection]) -> dict[str, NDArray[Any]]:
    """
    Concatenate the columns of several cross-sections, in regime order.

    ``beta_i`` is kept when at least one section carries it; sections
    without per-agent weights contribute NaN.
    """
    if not sections:
        raise ValueError("stack_columns() needs at least one CrossSection")

    per_section = [cs.columns() for cs in sections]
    keep_beta = any("beta_i" in cols for cols in per_section)
    names = [c for c in COLUMNS if c != "beta_i" or keep_beta]

    stacked: dict[str, NDArray[Any]] = {}
    for name in names:
        parts = [
            cols[name] if name in cols else np.full(cs.n_agents, np.nan)
            for cs, cols in zip(sections, per_section)
        ]
        stacked[name] = np.concatenate(parts)
    return stacked


def stack_cross_sections(sections: Sequence[CrossSection]) -> DataFrame:
    """
    Stack cross-sections into one DataFrame, one row per (agent, regime).

    Raises
    ------
    ImportError
        If pandas is not installed.
    """
    pd = _import_pandas()
    return pd.DataFrame(stack_columns(sections))


def save_dataset(sections: Sequence[CrossSection], path: str | Path) -> Path:
    """
    Write the stacked dataset to ``.csv`` (pandas) or ``.npz`` (NumPy).

    Raises
    ------
    ValueError
        If the file extension is not supported.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        stack_cross_sections(sections).to_csv(path, index=False)
    elif suffix == ".npz":
        np.savez(path, **stack_columns(sections))
    else:
        raise ValueError(
            f"Unsupported output format '{path.suffix}'. Use .csv or .npz"
        )
    log.info(
        "Wrote %d rows from %d regime(s) to %s",
        sum(cs.n_agents for cs in sections),
        len(sections),
        path,
    )
    return path


__all__ = [
    "COLUMNS",
    "CrossSection",
    "save_dataset",
    "stack_columns",
    "stack_cross_sections",
]
