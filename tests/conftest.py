"""Pytest configuration and fixtures for laborsim tests."""

import os

import pytest

import laborsim.stages  # noqa: F401 - register all stages
from laborsim import logging
from laborsim.config import PreferenceConfig, TaxConfig
from laborsim.core.registry import clear_registry
from laborsim.simulation import Simulation


@pytest.fixture
def clean_registry():
    """
    Save registry state, clear it for the test, then restore it.

    This fixture should be explicitly requested by tests that need isolation
    from the built-in stages or from test pollution by other test modules.

    DO NOT use autouse=True, as it would interfere with integration tests
    that rely on the built-in stages being registered.
    """
    # noinspection PyProtectedMember
    from laborsim.core.registry import _STAGE_REGISTRY

    saved = dict(_STAGE_REGISTRY)
    clear_registry()

    yield

    _STAGE_REGISTRY.clear()
    _STAGE_REGISTRY.update(saved)


@pytest.fixture
def prefs() -> PreferenceConfig:
    """Reference preferences: η=−1.5, γ=0.8, β=1, β0=0.1."""
    return PreferenceConfig(eta=-1.5, gamma=0.8, beta=1.0, beta0=0.1)


@pytest.fixture
def no_tax() -> TaxConfig:
    return TaxConfig(rho=1.0, r=0.0)


@pytest.fixture
def tiny_sim() -> Simulation:
    """A small deterministic simulation for fast integration tests."""
    return Simulation.init(
        n_agents=50,
        seed=123,
        # keep default-ish parameters explicit
        preferences={"eta": -1.5, "gamma": 0.8, "beta": 1.0, "beta0": 0.1},
        solver={"tol": 1e-12, "max_iter": 200},
    )


@pytest.fixture(autouse=True)
def mute_laborsim_logs(caplog):
    # - CI coverage run: DEBUG to execute all logging for accurate coverage
    # - Everything else: ERROR for faster tests
    if os.environ.get("COVERAGE_RUN") == "true":
        level = logging.DEBUG
    else:
        level = logging.ERROR

    # Set both caplog level (for capture) and actual logger level
    caplog.set_level(level, logger="laborsim")
    logging.getLogger("laborsim").setLevel(level)
