"""Configuration module for laborsim."""

from laborsim.config.schema import (
    Config,
    PopulationConfig,
    PreferenceConfig,
    Regime,
    SolverConfig,
    TaxConfig,
)
from laborsim.config.validator import ConfigValidator

__all__ = [
    "Config",
    "ConfigValidator",
    "PopulationConfig",
    "PreferenceConfig",
    "Regime",
    "SolverConfig",
    "TaxConfig",
]
