"""Error kinds raised by laborsim."""

from __future__ import annotations

from collections.abc import Sequence


class ConfigurationError(ValueError):
    """
    Invalid preference, tax, population or solver parameters.

    Raised before any random draw or solver iteration, so no partial
    dataset is ever produced from a bad configuration. Subclasses
    ``ValueError`` so callers catching the generic error keep working.
    """


class NumericalError(ArithmeticError):
    """
    The Newton iteration produced a non-finite value or a zero derivative.

    Parameters
    ----------
    message : str
        Human readable description.
    agent_ids : sequence of int, optional
        Indices (within the regime population) of the failing agents.
    iteration : int, optional
        Newton iteration (1-based) at which the failure was detected.
    regime_id : int, optional
        Regime being simulated; filled in by the simulator.
    """

    def __init__(
        self,
        message: str,
        *,
        agent_ids: Sequence[int] = (),
        iteration: int | None = None,
        regime_id: int | None = None,
    ) -> None:
        super().__init__(message)
        self.agent_ids = tuple(int(i) for i in agent_ids)
        self.iteration = iteration
        self.regime_id = regime_id


__all__ = ["ConfigurationError", "NumericalError"]
