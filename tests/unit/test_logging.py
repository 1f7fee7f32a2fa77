"""Tests for logging configuration and behavior."""

import logging

import pytest

from laborsim import Simulation
from laborsim.logging import (
    DEEP_DEBUG,
    SimLogger,
    configure,
    getLogger,
    level_from_name,
)
from laborsim.stages import SolveInteriorHours


class TestSimLogger:
    """Test custom SimLogger functionality."""

    def test_deep_debug_level_value(self):
        assert DEEP_DEBUG == 5
        assert logging.getLevelName(DEEP_DEBUG) == "DEEP"

    def test_get_logger_returns_sim_logger(self):
        logger = getLogger("laborsim.test_get_logger")
        assert isinstance(logger, SimLogger)

    def test_deep_method_logs_when_enabled(self, caplog):
        logger = getLogger("laborsim.test_deep_enabled")
        logger.setLevel(DEEP_DEBUG)
        with caplog.at_level(DEEP_DEBUG, logger="laborsim.test_deep_enabled"):
            logger.deep("very verbose %d", 42)
        assert "very verbose 42" in caplog.text

    def test_deep_method_silent_above_level(self, caplog):
        logger = getLogger("laborsim.test_deep_disabled")
        logger.setLevel(logging.DEBUG)
        with caplog.at_level(logging.DEBUG, logger="laborsim.test_deep_disabled"):
            logger.deep("should not appear")
        assert "should not appear" not in caplog.text


class TestLevelFromName:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("DEEP_DEBUG", DEEP_DEBUG),
            ("deep_debug", DEEP_DEBUG),
            ("DEBUG", logging.DEBUG),
            ("info", logging.INFO),
            ("WARNING", logging.WARNING),
            ("CRITICAL", logging.CRITICAL),
        ],
    )
    def test_names(self, name, expected):
        assert level_from_name(name) == expected


class TestConfigure:
    def test_default_level(self):
        configure({"default_level": "WARNING"})
        assert logging.getLogger("laborsim").level == logging.WARNING

    def test_stage_override(self):
        configure(
            {"default_level": "INFO", "stages": {"solve_interior_hours": "DEEP_DEBUG"}}
        )
        assert logging.getLogger("laborsim").level == logging.INFO
        assert SolveInteriorHours().get_logger().level == DEEP_DEBUG
        # reset so later tests see the inherited level again
        configure({"stages": {"solve_interior_hours": "NOTSET"}})

    def test_simulation_init_applies_logging_block(self):
        Simulation.init(n_agents=5, logging={"default_level": "ERROR"})
        assert logging.getLogger("laborsim").level == logging.ERROR

    def test_stage_logs_reach_caplog(self, caplog):
        sim = Simulation.init(n_agents=20, seed=1, tol=1e-12, max_iter=200)
        caplog.set_level(logging.INFO, logger="laborsim")
        sim.simulate()
        assert "participation rate" in caplog.text
        assert "hours solved" in caplog.text
