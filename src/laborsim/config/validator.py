"""Centralized configuration validation for laborsim."""

from __future__ import annotations

import math
import warnings
from pathlib import Path
from typing import Any

import yaml

from laborsim.errors import ConfigurationError


class ConfigValidator:
    """
    Centralized validation for simulation configuration.

    All validation happens once at Simulation.init() (and again for regimes
    passed directly to Simulation.simulate()) to ensure:
    - Type correctness
    - Valid parameter ranges (the FOC is ill-posed outside them)
    - Relationship constraints between parameters
    - Clear error messages with actionable feedback

    Every failure raises ConfigurationError before anything is drawn.
    """

    VALID_LOG_LEVELS = {"DEEP_DEBUG", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    VALID_ERROR_POLICIES = {"raise", "flag"}

    TOP_LEVEL_KEYS = {
        "n_agents",
        "seed",
        "n_workers",
        "participation",
        "pipeline_path",
        "preferences",
        "population",
        "regimes",
        "solver",
        "logging",
    }
    SECTION_KEYS: dict[str, set[str]] = {
        "preferences": {"eta", "gamma", "beta", "beta0", "heterogeneous_beta"},
        "population": {
            "income_return",
            "wage_noise_scale",
            "income_noise_scale",
            "beta_return",
            "beta_noise_scale",
        },
        "solver": {
            "max_iter",
            "tol",
            "eps",
            "residual_tol",
            "on_error",
            "record_projections",
        },
        "logging": {"default_level", "stages"},
    }
    REGIME_KEYS = {"wage_return", "rho", "r", "income_return", "label"}

    # section -> (int params, float params, bool params)
    _SECTION_TYPES: dict[str, tuple[list[str], list[str], list[str]]] = {
        "preferences": ([], ["eta", "gamma", "beta", "beta0"], ["heterogeneous_beta"]),
        "population": (
            [],
            [
                "income_return",
                "wage_noise_scale",
                "income_noise_scale",
                "beta_return",
                "beta_noise_scale",
            ],
            [],
        ),
        "solver": (
            ["max_iter"],
            ["tol", "eps", "residual_tol"],
            ["record_projections"],
        ),
    }

    # (section, key) -> (low, high, low_open, high_open); None means unbounded
    _RANGES: dict[tuple[str, str], tuple[float | None, float | None, bool, bool]] = {
        ("", "n_agents"): (1, None, False, False),
        ("", "n_workers"): (1, None, False, False),
        ("preferences", "eta"): (None, 0.0, False, True),
        ("preferences", "gamma"): (0.0, None, True, False),
        ("preferences", "beta"): (0.0, None, True, False),
        ("preferences", "beta0"): (0.0, None, False, False),
        ("population", "wage_noise_scale"): (0.0, None, False, False),
        ("population", "income_noise_scale"): (0.0, None, False, False),
        ("population", "beta_noise_scale"): (0.0, None, False, False),
        ("solver", "max_iter"): (1, None, False, False),
        ("solver", "tol"): (0.0, None, True, False),
        ("solver", "eps"): (1.0e-14, 1.0e-2, False, False),
        ("solver", "residual_tol"): (0.0, None, True, False),
        ("regime", "rho"): (0.0, None, True, False),
    }

    @staticmethod
    def validate_config(cfg: dict[str, Any]) -> None:
        """
        Validate all configuration parameters.

        Parameters
        ----------
        cfg : dict
            Merged configuration dictionary to validate.

        Raises
        ------
        ConfigurationError
            If any validation check fails.
        """
        ConfigValidator._validate_keys(cfg)
        ConfigValidator._validate_types(cfg)
        ConfigValidator._validate_ranges(cfg)
        if "regimes" in cfg:
            ConfigValidator.validate_regimes(cfg["regimes"])
        ConfigValidator._validate_relationships(cfg)

        if "logging" in cfg:
            ConfigValidator._validate_logging(cfg["logging"])

    @staticmethod
    def _validate_keys(cfg: dict[str, Any]) -> None:
        """
        Reject unknown parameter names (usually typos).

        Raises
        ------
        ConfigurationError
            If a top-level or section key is not recognised.
        """
        unknown = sorted(set(cfg) - ConfigValidator.TOP_LEVEL_KEYS)
        if unknown:
            raise ConfigurationError(
                f"Unknown config parameter(s) {unknown}. "
                f"Valid keys: {sorted(ConfigValidator.TOP_LEVEL_KEYS)}"
            )
        for section, valid in ConfigValidator.SECTION_KEYS.items():
            block = cfg.get(section)
            if not isinstance(block, dict):
                continue
            unknown = sorted(set(block) - valid)
            if unknown:
                raise ConfigurationError(
                    f"Unknown parameter(s) {unknown} in section '{section}'. "
                    f"Valid keys: {sorted(valid)}"
                )

    @staticmethod
    def _validate_types(cfg: dict[str, Any]) -> None:
        """
        Ensure correct types for configuration parameters.

        Raises
        ------
        ConfigurationError
            If any parameter has incorrect type.
        """
        for key in ("n_agents", "n_workers", "seed"):
            if key not in cfg or (key == "seed" and cfg[key] is None):
                continue
            val = cfg[key]
            if isinstance(val, bool) or not isinstance(val, int):
                raise ConfigurationError(
                    f"Config parameter '{key}' must be int, got {type(val).__name__}"
                )

        if "participation" in cfg and not isinstance(cfg["participation"], bool):
            raise ConfigurationError(
                "Config parameter 'participation' must be bool, "
                f"got {type(cfg['participation']).__name__}"
            )

        if "pipeline_path" in cfg:
            val = cfg["pipeline_path"]
            if val is not None and not isinstance(val, (str, Path)):
                raise ConfigurationError(
                    f"Config parameter 'pipeline_path' must be str or None, "
                    f"got {type(val).__name__}"
                )

        for section, (int_params, float_params, bool_params) in (
            ConfigValidator._SECTION_TYPES.items()
        ):
            if section not in cfg:
                continue
            block = cfg[section]
            if not isinstance(block, dict):
                raise ConfigurationError(
                    f"Config section '{section}' must be a mapping, "
                    f"got {type(block).__name__}"
                )
            for key in int_params:
                if key not in block:
                    continue
                val = block[key]
                if isinstance(val, bool) or not isinstance(val, int):
                    raise ConfigurationError(
                        f"Config parameter '{section}.{key}' must be int, "
                        f"got {type(val).__name__}"
                    )
            for key in float_params:
                # tol: null selects the fixed-iteration mode
                if key not in block or (key == "tol" and block[key] is None):
                    continue
                val = block[key]
                if isinstance(val, bool) or not isinstance(val, (int, float)):
                    raise ConfigurationError(
                        f"Config parameter '{section}.{key}' must be float, "
                        f"got {type(val).__name__}"
                    )
                if not math.isfinite(val):
                    raise ConfigurationError(
                        f"Config parameter '{section}.{key}' must be finite, got {val}"
                    )
            for key in bool_params:
                if key not in block:
                    continue
                val = block[key]
                if not isinstance(val, bool):
                    raise ConfigurationError(
                        f"Config parameter '{section}.{key}' must be bool, "
                        f"got {type(val).__name__}"
                    )

        solver = cfg.get("solver", {})
        if "on_error" in solver and solver["on_error"] not in (
            ConfigValidator.VALID_ERROR_POLICIES
        ):
            raise ConfigurationError(
                f"Invalid solver.on_error '{solver['on_error']}'. "
                f"Must be one of {sorted(ConfigValidator.VALID_ERROR_POLICIES)}"
            )

    @staticmethod
    def _check_range(
        name: str,
        val: float,
        low: float | None,
        high: float | None,
        low_open: bool,
        high_open: bool,
    ) -> None:
        if not math.isfinite(val):
            raise ConfigurationError(
                f"Config parameter '{name}' must be finite, got {val}"
            )
        if low is not None:
            if low_open and not val > low:
                raise ConfigurationError(
                    f"Config parameter '{name}' must be > {low}, got {val}"
                )
            if not low_open and val < low:
                raise ConfigurationError(
                    f"Config parameter '{name}' must be >= {low}, got {val}"
                )
        if high is not None:
            if high_open and not val < high:
                raise ConfigurationError(
                    f"Config parameter '{name}' must be < {high}, got {val}"
                )
            if not high_open and val > high:
                raise ConfigurationError(
                    f"Config parameter '{name}' must be <= {high}, got {val}"
                )

    @staticmethod
    def _validate_ranges(cfg: dict[str, Any]) -> None:
        """
        Ensure parameters are in valid ranges.

        Raises
        ------
        ConfigurationError
            If any parameter is out of valid range.
        """
        for (section, key), bounds in ConfigValidator._RANGES.items():
            if section == "regime":
                continue
            block = cfg if section == "" else cfg.get(section, {})
            val = block.get(key)
            if val is None:
                continue
            name = key if section == "" else f"{section}.{key}"
            ConfigValidator._check_range(name, val, *bounds)

        if cfg.get("preferences", {}).get("eta") == -1.0:
            raise ConfigurationError(
                "Config parameter 'preferences.eta' must differ from -1 "
                "(log utility is not a power form)"
            )

    @staticmethod
    def validate_regimes(regimes: Any) -> None:
        """
        Validate a list of regime mappings.

        Each regime needs a numeric ``wage_return``; ``rho`` must be
        strictly positive; ``r`` and ``income_return`` must be numeric.

        Raises
        ------
        ConfigurationError
            If the list is empty or any regime is malformed.
        """
        if not isinstance(regimes, (list, tuple)) or len(regimes) == 0:
            raise ConfigurationError(
                "Config parameter 'regimes' must be a non-empty list"
            )

        for i, regime in enumerate(regimes):
            if not isinstance(regime, dict):
                raise ConfigurationError(
                    f"Regime at index {i} must be a mapping, "
                    f"got {type(regime).__name__}"
                )
            if "wage_return" not in regime:
                raise ConfigurationError(f"Regime at index {i} must have 'wage_return'")
            unknown = sorted(set(regime) - ConfigValidator.REGIME_KEYS)
            if unknown:
                raise ConfigurationError(
                    f"Unknown parameter(s) {unknown} in regime {i}. "
                    f"Valid keys: {sorted(ConfigValidator.REGIME_KEYS)}"
                )
            for key in ("wage_return", "rho", "r", "income_return"):
                if key not in regime:
                    continue
                val = regime[key]
                if val is None and key == "income_return":
                    continue
                if isinstance(val, bool) or not isinstance(val, (int, float)):
                    raise ConfigurationError(
                        f"Regime {i} parameter '{key}' must be float, "
                        f"got {type(val).__name__}"
                    )
                if not math.isfinite(val):
                    raise ConfigurationError(
                        f"Regime {i} parameter '{key}' must be finite, got {val}"
                    )
            if "rho" in regime:
                ConfigValidator._check_range(
                    f"regimes[{i}].rho",
                    regime["rho"],
                    *ConfigValidator._RANGES[("regime", "rho")],
                )
            label = regime.get("label")
            if label is not None and not isinstance(label, str):
                raise ConfigurationError(
                    f"Regime {i} 'label' must be str, got {type(label).__name__}"
                )

    @staticmethod
    def _validate_relationships(cfg: dict[str, Any]) -> None:
        """Validate cross-parameter constraints (warnings only)."""
        for i, regime in enumerate(cfg.get("regimes", [])):
            rho = regime.get("rho", 1.0)
            if rho > 1.0:
                warnings.warn(
                    f"regimes[{i}].rho ({rho}) > 1 subsidises every unit of work.",
                    UserWarning,
                    stacklevel=3,
                )

        solver = cfg.get("solver", {})
        if solver.get("tol") is None and solver.get("max_iter", 30) < 5:
            warnings.warn(
                f"solver.max_iter ({solver['max_iter']}) is very small for the "
                "fixed-iteration mode; most agents will not reach the FOC.",
                UserWarning,
                stacklevel=3,
            )

        population = cfg.get("population", {})
        preferences = cfg.get("preferences", {})
        if preferences.get("heterogeneous_beta") and (
            population.get("beta_return", 0.5) == 0.0
        ):
            warnings.warn(
                "population.beta_return is 0: heterogeneous disutility weights "
                "are independent of the covariate.",
                UserWarning,
                stacklevel=3,
            )

    @staticmethod
    def _validate_logging(log_config: dict[str, Any]) -> None:
        """
        Validate logging configuration.

        Parameters
        ----------
        log_config : dict
            Logging configuration dictionary with keys:
            - default_level: str (e.g., 'INFO', 'DEBUG')
            - stages: dict[str, str] (per-stage overrides)

        Raises
        ------
        ConfigurationError
            If logging configuration is invalid.
        """
        if not isinstance(log_config, dict):
            raise ConfigurationError(
                f"Logging config must be a mapping, got {type(log_config).__name__}"
            )

        if "default_level" in log_config:
            level = log_config["default_level"]
            if not isinstance(level, str):
                raise ConfigurationError(
                    f"Logging default_level must be str, got {type(level).__name__}"
                )
            if level.upper() not in ConfigValidator.VALID_LOG_LEVELS:
                raise ConfigurationError(
                    f"Invalid log level '{level}'. "
                    f"Must be one of {ConfigValidator.VALID_LOG_LEVELS}"
                )

        if "stages" in log_config:
            stages = log_config["stages"]
            if not isinstance(stages, dict):
                raise ConfigurationError(
                    f"Logging stages must be dict, got {type(stages).__name__}"
                )
            for stage_name, level in stages.items():
                if not isinstance(level, str):
                    raise ConfigurationError(
                        f"Log level for stage '{stage_name}' must be str, "
                        f"got {type(level).__name__}"
                    )
                if level.upper() not in ConfigValidator.VALID_LOG_LEVELS:
                    raise ConfigurationError(
                        f"Invalid log level '{level}' for stage '{stage_name}'. "
                        f"Must be one of {ConfigValidator.VALID_LOG_LEVELS}"
                    )

    @staticmethod
    def validate_pipeline_path(pipeline_path: str | Path) -> None:
        """
        Validate pipeline path exists and is readable.

        Raises
        ------
        ConfigurationError
            If path does not exist or is not a file.
        """
        path = Path(pipeline_path)

        if not path.exists():
            raise ConfigurationError(f"Pipeline path '{pipeline_path}' does not exist")

        if not path.is_file():
            raise ConfigurationError(f"Pipeline path '{pipeline_path}' is not a file")

        if path.suffix not in [".yml", ".yaml"]:
            warnings.warn(
                f"Pipeline path '{pipeline_path}' does not have .yml/.yaml extension",
                UserWarning,
                stacklevel=2,
            )

    @staticmethod
    def validate_pipeline_yaml(yaml_path: str | Path) -> None:
        """
        Validate pipeline YAML file structure and stage references.

        Raises
        ------
        ConfigurationError
            If YAML structure is invalid or references unknown stages.
        """
        from laborsim.core.pipeline import Pipeline
        from laborsim.core.registry import list_stages

        with open(Path(yaml_path)) as f:
            config = yaml.safe_load(f)

        if not isinstance(config, dict):
            raise ConfigurationError(
                f"Pipeline YAML must be a dictionary, got {type(config).__name__}"
            )
        if "stages" not in config:
            raise ConfigurationError(
                f"Pipeline YAML must have 'stages' key: {yaml_path}"
            )

        stage_specs = config["stages"]
        if not isinstance(stage_specs, list):
            raise ConfigurationError(
                f"Pipeline 'stages' must be a list, got {type(stage_specs).__name__}"
            )

        registered = set(list_stages())
        for i, spec in enumerate(stage_specs):
            if not isinstance(spec, str):
                raise ConfigurationError(
                    f"Stage spec at index {i} must be str, got {type(spec).__name__}"
                )
            for name in set(Pipeline.parse_stage_spec(spec)):
                if name not in registered:
                    raise ConfigurationError(
                        f"Stage '{name}' (from spec '{spec}') not found in registry. "
                        f"Available stages: {sorted(registered)}"
                    )

    @staticmethod
    def validate_pipeline_stages(
        stage_names: list[str], heterogeneous_beta: bool, participation: bool
    ) -> None:
        """
        Check a user pipeline against the preference and participation flags.

        The default pipeline is trimmed to match these flags; a pipeline
        loaded from ``pipeline_path`` is used as given, so it must agree
        with them.

        Raises
        ------
        ConfigurationError
            If a stage the flags require is missing, or a stage they exclude
            is present.
        """
        for stage_name, flag, flag_name in (
            ("draw_disutility_weights", heterogeneous_beta, "heterogeneous_beta"),
            ("resolve_participation", participation, "participation"),
        ):
            present = stage_name in stage_names
            if flag and not present:
                raise ConfigurationError(
                    f"'{flag_name}' is true but the pipeline has no "
                    f"'{stage_name}' stage. Add the stage or set "
                    f"'{flag_name}: false'"
                )
            if present and not flag:
                raise ConfigurationError(
                    f"Pipeline has a '{stage_name}' stage but '{flag_name}' is "
                    f"false. Remove the stage or set '{flag_name}: true'"
                )
