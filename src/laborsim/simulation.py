# src/laborsim/simulation.py
from __future__ import annotations

import copy
from collections.abc import Iterable, Sequence
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Mapping

# noinspection PyPackageRequirements
import yaml

# noinspection PyPackageRequirements
from numpy.random import SeedSequence, default_rng

import laborsim.stages  # noqa: F401 - needed to register stages
from laborsim import logging as _logging
from laborsim.config import (
    Config,
    ConfigValidator,
    PopulationConfig,
    PreferenceConfig,
    Regime,
    SolverConfig,
)
from laborsim.core.pipeline import Pipeline, create_default_pipeline
from laborsim.core.stage import RegimeRun
from laborsim.errors import ConfigurationError, NumericalError
from laborsim.logging import getLogger
from laborsim.results import CrossSection, stack_columns, stack_cross_sections
from laborsim.systems.participation import resolve_participation

if TYPE_CHECKING:  # pragma: no cover
    from pandas import DataFrame

__all__ = ["Simulation"]

log = getLogger(__name__)


# helpers
# ---------------------------------------------------------------------------
def _read_yaml(obj: str | Path | Mapping[str, Any] | None) -> Dict[str, Any]:
    """Return a plain dict – {} if *obj* is None."""
    if obj is None:
        return {}
    if isinstance(obj, Mapping):
        return copy.deepcopy(dict(obj))
    p = Path(obj)
    with p.open("rt", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"config root must be mapping, got {type(data)!r}")
    return dict(data)


def _package_defaults() -> Dict[str, Any]:
    """Load laborsim/defaults.yml"""
    txt = resources.files("laborsim").joinpath("defaults.yml").read_text()
    return yaml.safe_load(txt) or {}


def _nest_flat_keys(overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Move flat section parameters (``eta=-2.0``, ``tol=1e-10``) into their
    section, so ``Simulation.init(beta0=0.0)`` works like
    ``Simulation.init(preferences={"beta0": 0.0})``.
    """
    nested: Dict[str, Any] = {}
    for key, val in overrides.items():
        section = next(
            (
                s
                for s, keys in ConfigValidator.SECTION_KEYS.items()
                if key in keys and key not in ConfigValidator.TOP_LEVEL_KEYS
            ),
            None,
        )
        if section is None:
            nested[key] = val
        else:
            nested.setdefault(section, {})[key] = val
    return nested


def _merge(base: Dict[str, Any], update: Mapping[str, Any]) -> None:
    """Merge *update* into *base*; mapping sections merge key by key."""
    for key, val in update.items():
        if isinstance(val, Mapping) and isinstance(base.get(key), dict):
            base[key] = {**base[key], **val}
        else:
            base[key] = val


def _build_config(cfg: Dict[str, Any]) -> Config:
    """Turn the validated dictionary into immutable config objects."""
    solver = dict(cfg.get("solver", {}))
    return Config(
        n_agents=int(cfg["n_agents"]),
        preferences=PreferenceConfig(**cfg["preferences"]),
        population=PopulationConfig(**cfg.get("population", {})),
        regimes=tuple(Regime.from_mapping(r) for r in cfg["regimes"]),
        solver=SolverConfig(**solver),
        participation=bool(cfg.get("participation", True)),
        n_workers=int(cfg.get("n_workers", 1)),
    )


def _build_pipeline(config: Config, pipeline_path: str | Path | None) -> Pipeline:
    if pipeline_path is not None:
        return Pipeline.from_yaml(pipeline_path)

    pipeline = create_default_pipeline()
    if not config.preferences.heterogeneous_beta:
        pipeline.remove("draw_disutility_weights")
    if not config.participation:
        pipeline.remove("resolve_participation")
    return pipeline


def _regime_mapping(r: Regime) -> Dict[str, Any]:
    return {
        "wage_return": r.wage_return,
        "rho": r.tax.rho,
        "r": r.tax.r,
        "income_return": r.income_return,
        "label": r.label,
    }


def _coerce_regimes(regimes: Iterable[Regime | Mapping[str, Any]]) -> list[Regime]:
    regimes = list(regimes)
    if not regimes:
        raise ConfigurationError("simulate() needs at least one regime")
    ConfigValidator.validate_regimes(
        [_regime_mapping(r) if isinstance(r, Regime) else dict(r) for r in regimes]
    )
    return [
        r if isinstance(r, Regime) else Regime.from_mapping(dict(r)) for r in regimes
    ]


def _run_regime(
    regime_id: int,
    regime: Regime,
    config: Config,
    seed_seq: SeedSequence,
    n_agents: int,
    pipeline: Pipeline,
    log_config: Dict[str, Any],
) -> CrossSection:
    """
    Simulate one regime from its own seed sub-stream.

    Worker function for parallel execution. Must be module-level
    for ProcessPoolExecutor pickling.
    """
    _logging.configure(log_config)

    run = RegimeRun(
        regime_id=regime_id,
        regime=regime,
        config=config,
        rng=default_rng(seed_seq),
        n_agents=n_agents,
    )
    try:
        pipeline.execute(run)
    except NumericalError as exc:
        exc.regime_id = regime_id
        log.error(
            "regime %d: Newton iteration failed at iteration %s for %d agent(s)",
            regime_id,
            exc.iteration,
            len(exc.agent_ids),
        )
        raise

    if run.population is None or run.hours_interior is None:
        raise RuntimeError(
            f"Pipeline {pipeline.stage_names} did not produce a population "
            "and interior hours"
        )
    assert run.solver_report is not None

    outcome = run.outcome
    if outcome is None:
        # Extensive margin disabled: everyone works the interior hours
        prefs = config.preferences
        outcome = resolve_participation(
            run.hours_interior,
            run.population.net_wage(regime.tax),
            run.population.mu,
            tax=regime.tax,
            prefs=prefs,
            beta=run.population.disutility_weight(prefs),
            extensive_margin=False,
            resolved=~run.solver_report.unresolved,
        )

    return CrossSection(
        regime_id=regime_id,
        regime=regime,
        income_return=run.income_return,
        population=run.population,
        outcome=outcome,
        solver_report=run.solver_report,
    )


# Simulation
# ---------------------------------------------------------------------
@dataclass(slots=True)
class Simulation:
    """
    Cross-section simulator.

    Generates one population per regime, solves every agent's interior
    hours with the Newton solver, resolves participation and returns the
    tagged cross-sections. Regimes are independent: each draws from its
    own ``SeedSequence`` child, so results do not depend on the order or
    process in which regimes are run.

    Attributes
    ----------
    config : Config
        Immutable configuration.
    pipeline : Pipeline
        Stage order applied to every regime. May be modified before
        calling simulate().
    seed : int or None
        Root seed of the regime sub-streams.

    Examples
    --------
    >>> sim = Simulation.init(n_agents=500, seed=42)
    >>> sections = sim.simulate(
    ...     regimes=[{"wage_return": 0.5}, {"wage_return": 0.5, "rho": 0.7}]
    ... )
    >>> [cs.regime.tax.rho for cs in sections]
    [1.0, 0.7]
    """

    config: Config
    pipeline: Pipeline
    seed: int | None = None
    log_config: Dict[str, Any] = field(default_factory=dict)

    # Constructor
    # ---------------------------------------------------------------------
    @classmethod
    def init(
        cls,
        config: str | Path | Mapping[str, Any] | None = None,
        **overrides: Any,  # anything here wins last
    ) -> Simulation:
        """
        Build a Simulation.

        Order of precedence (later overrides earlier):

            1. package defaults  (laborsim/defaults.yml)
            2. *config*  (Path / str / Mapping / None)
            3. explicit keyword arguments (**overrides)

        Section parameters may be given flat (``eta=-2.0``) or nested
        (``preferences={"eta": -2.0}``).

        Raises
        ------
        ConfigurationError
            If any parameter is invalid. Nothing is drawn in that case.
        """
        cfg_dict = cls.merged_config(config, **overrides)

        ConfigValidator.validate_config(cfg_dict)

        pipeline_path = cfg_dict.get("pipeline_path")
        if pipeline_path is not None:
            ConfigValidator.validate_pipeline_path(pipeline_path)
            ConfigValidator.validate_pipeline_yaml(pipeline_path)

        cfg = _build_config(cfg_dict)
        pipeline = _build_pipeline(cfg, pipeline_path)
        if pipeline_path is not None:
            ConfigValidator.validate_pipeline_stages(
                pipeline.stage_names,
                heterogeneous_beta=cfg.preferences.heterogeneous_beta,
                participation=cfg.participation,
            )

        log_config = dict(cfg_dict.get("logging", {}))
        _logging.configure(log_config)

        sim = cls(
            config=cfg,
            pipeline=pipeline,
            seed=cfg_dict.get("seed"),
            log_config=log_config,
        )
        log.debug(
            "Simulation initialised: %d agent(s) x %d regime(s), stages %s",
            cfg.n_agents,
            len(cfg.regimes),
            sim.pipeline.stage_names,
        )
        return sim

    @staticmethod
    def merged_config(
        config: str | Path | Mapping[str, Any] | None = None,
        **overrides: Any,
    ) -> Dict[str, Any]:
        """Return the merged (not yet validated) configuration dictionary."""
        cfg_dict: Dict[str, Any] = _package_defaults()
        _merge(cfg_dict, _nest_flat_keys(_read_yaml(config)))
        _merge(cfg_dict, _nest_flat_keys(overrides))
        return cfg_dict

    # public API
    # ---------------------------------------------------------------------
    def simulate(
        self,
        regimes: Sequence[Regime | Mapping[str, Any]] | None = None,
        n_per_regime: int | None = None,
        seed: int | None = None,
    ) -> list[CrossSection]:
        """
        Simulate one cross-section per regime.

        Parameters
        ----------
        regimes : sequence of Regime or mapping, optional
            Regimes to simulate (defaults to the configured ones). Mappings
            use the flat ``{wage_return, rho, r, income_return, label}`` form.
        n_per_regime : int, optional
            Agents per regime (defaults to ``config.n_agents``).
        seed : int, optional
            Root seed (defaults to the configured one).

        Returns
        -------
        list[CrossSection]
            One entry per regime, in the order given.

        Raises
        ------
        ConfigurationError
            If a regime or ``n_per_regime`` is invalid.
        NumericalError
            If the solver fails and ``solver.on_error`` is ``"raise"``.
        """
        regime_list = (
            list(self.config.regimes) if regimes is None else _coerce_regimes(regimes)
        )
        n_agents = self.config.n_agents if n_per_regime is None else n_per_regime
        if isinstance(n_agents, bool) or not isinstance(n_agents, int) or n_agents < 1:
            raise ConfigurationError(
                f"n_per_regime must be a positive int, got {n_agents!r}"
            )
        root_seed = self.seed if seed is None else seed

        children = SeedSequence(root_seed).spawn(len(regime_list))
        n_workers = min(self.config.n_workers, len(regime_list))
        log.info(
            "Simulating %d regime(s) x %d agent(s) with %d worker(s)",
            len(regime_list),
            n_agents,
            n_workers,
        )

        jobs = [
            (i, regime, self.config, child, n_agents, self.pipeline, self.log_config)
            for i, (regime, child) in enumerate(zip(regime_list, children))
        ]

        if n_workers > 1:
            with ProcessPoolExecutor(max_workers=n_workers) as executor:
                futures = [executor.submit(_run_regime, *job) for job in jobs]
                sections = [f.result() for f in futures]
        else:
            sections = [_run_regime(*job) for job in jobs]

        for cs in sections:
            log.debug("%r", cs)
        return sections

    def run(
        self,
        regimes: Sequence[Regime | Mapping[str, Any]] | None = None,
        n_per_regime: int | None = None,
        seed: int | None = None,
    ) -> DataFrame:
        """
        Simulate and stack all regimes into one DataFrame.

        Requires pandas; use ``simulate()`` with ``stack_columns()`` for a
        NumPy-only dataset.
        """
        return stack_cross_sections(self.simulate(regimes, n_per_regime, seed))

    def run_arrays(
        self,
        regimes: Sequence[Regime | Mapping[str, Any]] | None = None,
        n_per_regime: int | None = None,
        seed: int | None = None,
    ) -> dict[str, Any]:
        """Like run() but returns the stacked columns as NumPy arrays."""
        return stack_columns(self.simulate(regimes, n_per_regime, seed))

    def __repr__(self) -> str:
        return (
            f"Simulation(n_agents={self.config.n_agents}, "
            f"n_regimes={len(self.config.regimes)}, seed={self.seed}, "
            f"stages={self.pipeline.stage_names})"
        )
