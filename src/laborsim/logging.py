"""
Custom logging configuration for laborsim.

Extends Python's standard logging with a custom DEEP_DEBUG level (5)
for very verbose per-iteration output of the Newton solver. Provides the
SimLogger class used by every module of the package.

Log Levels
----------
- CRITICAL (50): Critical errors
- ERROR (40): Errors
- WARNING (30): Warnings (e.g. agents that did not reach the FOC tolerance)
- INFO (20): Informational messages (default)
- DEBUG (10): Per-regime summaries
- DEEP_DEBUG (5): Per-iteration solver diagnostics

Examples
--------
Use logger in a stage:

>>> from laborsim import logging
>>> logger = logging.getLogger("laborsim.stages.my_stage")
>>> logger.info("Stage executing")
>>> logger.deep("Very verbose output")

Configure per-stage log levels:

>>> import laborsim as ls
>>> log_config = {
...     "default_level": "INFO",
...     "stages": {"solve_interior_hours": "DEBUG"},
... }
>>> sim = ls.Simulation.init(logging=log_config)

See Also
--------
Stage.get_logger : Get logger for a specific stage
laborsim.config.validator.ConfigValidator : Validates the logging block
"""

import logging
from typing import Any

(CRITICAL, ERROR, WARNING, INFO, DEBUG) = (
    logging.CRITICAL,
    logging.ERROR,
    logging.WARNING,
    logging.INFO,
    logging.DEBUG,
)
DEEP_DEBUG = 5
logging.addLevelName(DEEP_DEBUG, "DEEP")


class SimLogger(logging.Logger):
    """
    Custom logger with DEEP_DEBUG level support.

    Extends Python's Logger to add the `deep()` method for very verbose
    debugging output (level 5).

    Examples
    --------
    >>> logger = SimLogger("test")
    >>> logger.setLevel(5)  # DEEP_DEBUG
    >>> logger.deep("Very verbose message")
    """

    def deep(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """
        Log message at DEEP_DEBUG level (5).

        Parameters
        ----------
        msg : str
            Message format string.
        *args : Any
            Arguments for message formatting.
        **kwargs : Any
            Additional logging kwargs.
        """
        if self.isEnabledFor(DEEP_DEBUG):
            self._log(DEEP_DEBUG, msg, args, **kwargs)


# Make the logging module hand out our subclass from now on
logging.setLoggerClass(SimLogger)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)


def getLogger(name: str | None = None) -> SimLogger:
    """
    Get a SimLogger instance.

    Convenience wrapper around logging.getLogger() that returns
    a SimLogger instance with DEEP_DEBUG support.

    Parameters
    ----------
    name : str, optional
        Logger name. If None, returns root logger.

    Returns
    -------
    SimLogger
        Logger instance with deep() method.
    """
    return logging.getLogger(name)  # type: ignore[return-value]


def level_from_name(name: str) -> int:
    """Translate a configured level name (``"DEEP_DEBUG"``, ``"info"``...) to an int."""
    upper = name.upper()
    if upper == "DEEP_DEBUG":
        return DEEP_DEBUG
    return int(getattr(logging, upper))


def configure(log_config: dict[str, Any]) -> None:
    """
    Configure logging levels for laborsim loggers.

    Parameters
    ----------
    log_config : dict
        Logging configuration with keys:
        - default_level: str (e.g., 'INFO', 'DEBUG')
        - stages: dict[str, str] (per-stage overrides)
    """
    default_level = log_config.get("default_level", "INFO")
    logging.getLogger("laborsim").setLevel(level_from_name(default_level))

    for stage_name, level in log_config.get("stages", {}).items():
        logger_name = f"laborsim.stages.{stage_name}"
        logging.getLogger(logger_name).setLevel(level_from_name(level))
