"""Stage base class and the per-regime context stages operate on."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from numpy.random import Generator

if TYPE_CHECKING:
    from laborsim.agents import Outcome, Population
    from laborsim.config.schema import Config, Regime
    from laborsim.systems.newton import SolverReport
    from laborsim.typing import Float1D


def _camel_to_snake(name: str) -> str:
    """Convert CamelCase to snake_case."""
    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


@dataclass(slots=True)
class RegimeRun:
    """
    Working state of one regime while the pipeline runs.

    Each regime gets its own RegimeRun and its own random generator, so
    regimes never share mutable state and can be processed in any order
    or in separate processes.

    Attributes
    ----------
    regime_id : int
        Position of the regime in the simulated list.
    regime : Regime
        Wage-return and tax parameters.
    config : Config
        Full immutable configuration.
    rng : Generator
        Regime-scoped random generator.
    n_agents : int
        Agents to draw.
    population, hours_interior, solver_report, outcome
        Filled in by the stages, in pipeline order.
    """

    regime_id: int
    regime: Regime
    config: Config
    rng: Generator
    n_agents: int
    population: Population | None = None
    hours_interior: Float1D | None = None
    solver_report: SolverReport | None = None
    outcome: Outcome | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    @property
    def income_return(self) -> float:
        if self.regime.income_return is not None:
            return self.regime.income_return
        return self.config.population.income_return


@dataclass(slots=True)
class Stage(ABC):
    """
    Base class for all pipeline stages.

    A Stage encapsulates one pure transformation of the regime state: it
    reads what earlier stages stored on the RegimeRun and stores a new
    object (population, hours, outcome) in its place. Stages are executed
    by the Pipeline in the exact order specified.

    Notes
    -----
    Stages are registered automatically via __init_subclass__ under their
    snake_case class name (or the ``name`` given to the decorator).
    """

    name: ClassVar[str] = ""

    def __init_subclass__(cls, name: str = "", **kwargs: Any) -> None:
        super(Stage, cls).__init_subclass__(**kwargs)

        # @dataclass(slots=True) re-creates the class and triggers this hook
        # a second time without the custom name; the copied class dict keeps it
        if name != "":
            cls.name = name
        elif "name" not in cls.__dict__:
            cls.name = _camel_to_snake(cls.__name__)

        from laborsim.core.registry import _STAGE_REGISTRY

        _STAGE_REGISTRY[cls.name] = cls

    def get_logger(self) -> logging.Logger:
        """
        Get logger for this stage with per-stage log level applied.

        Logger name format: 'laborsim.stages.{stage_name}'.
        """
        return logging.getLogger(f"laborsim.stages.{self.name}")

    @abstractmethod
    def execute(self, run: RegimeRun) -> None:
        """
        Execute the stage's logic on one regime.

        Parameters
        ----------
        run : RegimeRun
            Regime state; the stage replaces (never mutates) the objects
            it produces.
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
