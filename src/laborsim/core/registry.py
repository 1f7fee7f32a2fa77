"""Registry of pipeline stages."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from laborsim.core.stage import Stage

# Global registry storage
_STAGE_REGISTRY: dict[str, type[Stage]] = {}


def get_stage(name: str) -> type[Stage]:
    """
    Retrieve a stage class from the registry by name.

    Parameters
    ----------
    name : str
        Name of the stage to retrieve.

    Returns
    -------
    type[Stage]
        The registered stage class.

    Raises
    ------
    KeyError
        If the stage name is not found in the registry.
    """
    if name not in _STAGE_REGISTRY:
        available = ", ".join(sorted(_STAGE_REGISTRY.keys()))
        raise KeyError(
            f"Stage '{name}' not found in registry. Available stages: {available}"
        )
    return _STAGE_REGISTRY[name]


def list_stages() -> list[str]:
    """Return sorted list of all registered stage names."""
    return sorted(_STAGE_REGISTRY.keys())


def clear_registry() -> None:
    """
    Clear all registrations (useful for testing).

    WARNING: This is a destructive operation. Only use in test teardown.
    """
    _STAGE_REGISTRY.clear()
