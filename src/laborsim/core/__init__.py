"""Stage pipeline infrastructure for laborsim."""

from typing import Any, Callable

from laborsim.core.decorators import stage as stage_decorator
from laborsim.core.pipeline import Pipeline, create_default_pipeline
from laborsim.core.registry import get_stage, list_stages
from laborsim.core.stage import RegimeRun, Stage

# Export the decorator under its intended name (overrides the submodule name)
stage: Callable[..., Any] = stage_decorator

__all__ = [
    "Pipeline",
    "RegimeRun",
    "Stage",
    "create_default_pipeline",
    "get_stage",
    "list_stages",
    "stage",
]
