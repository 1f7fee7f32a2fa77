"""Property-based tests for laborsim invariants using Hypothesis.

These tests use randomized inputs to verify that the solver and the
participation rule behave across a wide range of parameter combinations.
"""

import numpy as np
from hypothesis import assume, given, settings
from hypothesis import strategies as st
from hypothesis.extra.numpy import arrays

from laborsim.config import PreferenceConfig, TaxConfig
from laborsim.systems.newton import (
    StoppingPolicy,
    initial_hours_guess,
    relative_foc_residual,
    solve_hours,
)
from laborsim.systems.participation import resolve_participation

EPS = 1e-8

# Hypothesis strategies for valid parameter ranges
n_strategy = st.integers(min_value=1, max_value=40)
eta_strategy = st.floats(min_value=-4.0, max_value=-0.05).filter(
    lambda e: abs(e + 1.0) > 1e-3
)
gamma_strategy = st.floats(min_value=0.2, max_value=3.0)
beta_strategy = st.floats(min_value=0.1, max_value=5.0)


def _vec(n, lo, hi):
    return arrays(np.float64, n, elements=st.floats(min_value=lo, max_value=hi))


@st.composite
def agents(draw, min_R=-5.0, max_R=5.0, min_wage=0.05):
    n = draw(n_strategy)
    wage = draw(_vec(n, min_wage, 20.0))
    R = draw(_vec(n, min_R, max_R))
    h0 = draw(_vec(n, 1e-6, 50.0))
    return wage, R, h0


class TestSolverInvariants:
    """Iterates never leave the feasible region, whatever the start."""

    @given(
        data=agents(),
        eta=eta_strategy,
        gamma=gamma_strategy,
        beta=beta_strategy,
        max_iter=st.integers(min_value=1, max_value=30),
    )
    @settings(max_examples=100, deadline=None)
    def test_feasible_and_above_floor(self, data, eta, gamma, beta, max_iter):
        wage, R, h0 = data
        h, report = solve_hours(
            h0,
            wage,
            R,
            eta=eta,
            gamma=gamma,
            beta=beta,
            policy=StoppingPolicy.fixed_count(max_iter),
            eps=EPS,
            on_error="flag",
        )
        ok = ~report.unresolved
        assert (h[ok] >= EPS).all()
        assert (wage[ok] * h[ok] + R[ok] > 0).all()
        assert report.n_iter == max_iter or report.unresolved.all()

    @given(data=agents(), eta=eta_strategy, gamma=gamma_strategy, beta=beta_strategy)
    @settings(max_examples=50, deadline=None)
    def test_inputs_untouched(self, data, eta, gamma, beta):
        wage, R, h0 = data
        copies = wage.copy(), R.copy(), h0.copy()
        solve_hours(h0, wage, R, eta=eta, gamma=gamma, beta=beta, on_error="flag")
        for before, after in zip(copies, (wage, R, h0)):
            np.testing.assert_array_equal(before, after)

    @given(
        # keeps the root well above the hours floor
        data=agents(min_R=0.05, max_R=2.0, min_wage=0.5),
        eta=st.floats(min_value=-2.0, max_value=-0.2).filter(
            lambda e: abs(e + 1.0) > 1e-3
        ),
        gamma=st.floats(min_value=0.5, max_value=2.0),
        beta=st.floats(min_value=0.2, max_value=2.0),
    )
    @settings(max_examples=50, deadline=None)
    def test_tolerance_mode_reaches_the_foc(self, data, eta, gamma, beta):
        wage, R, _ = data
        h0 = initial_hours_guess(R, wage, r=0.0, beta0=0.0)
        h, report = solve_hours(
            h0,
            wage,
            R,
            eta=eta,
            gamma=gamma,
            beta=beta,
            policy=StoppingPolicy.tolerance(tol=1e-10, max_iter=500),
        )
        res = relative_foc_residual(h, wage, R, eta=eta, gamma=gamma, beta=beta)
        assert np.abs(res).max() <= 1e-10
        assert report.n_iter <= 500


class TestMonotonicity:
    """Hours rise with the wage when η is in (−1, 0) and R >= 0."""

    @given(
        w=st.floats(min_value=0.5, max_value=10.0),
        bump=st.floats(min_value=1.05, max_value=3.0),
        R=st.floats(min_value=0.0, max_value=2.0),
        eta=st.floats(min_value=-0.9, max_value=-0.1),
        gamma=st.floats(min_value=0.5, max_value=3.0),
    )
    @settings(max_examples=75, deadline=None)
    def test_hours_increase_with_wage(self, w, bump, R, eta, gamma):
        wage = np.array([w, w * bump])
        Rs = np.full(2, R)
        h, report = solve_hours(
            initial_hours_guess(Rs, wage, r=0.0, beta0=0.0),
            wage,
            Rs,
            eta=eta,
            gamma=gamma,
            beta=1.0,
            policy=StoppingPolicy.tolerance(tol=1e-12, max_iter=500),
        )
        assume(report.converged.all())
        assert h[1] > h[0]


class TestParticipationInvariants:
    @given(
        data=agents(min_R=0.05),
        beta0=st.floats(min_value=0.0, max_value=3.0),
        r=st.floats(min_value=-0.5, max_value=0.5),
        eta=eta_strategy,
        gamma=gamma_strategy,
    )
    @settings(max_examples=75, deadline=None)
    def test_observed_choices_consistent(self, data, beta0, r, eta, gamma):
        wage, mu, h_interior = data
        prefs = PreferenceConfig(eta=eta, gamma=gamma, beta=1.0, beta0=beta0)
        out = resolve_participation(
            h_interior,
            wage,
            mu,
            tax=TaxConfig(rho=1.0, r=r),
            prefs=prefs,
            beta=1.0,
        )
        p = out.participates
        with np.errstate(invalid="ignore"):
            np.testing.assert_array_equal(p, out.u1 > out.u0)
        np.testing.assert_array_equal(out.hours[p], h_interior[p])
        assert (out.hours[~p] == 0.0).all()
        np.testing.assert_array_equal(out.consumption[~p], mu[~p])
        np.testing.assert_allclose(
            out.consumption[p], wage[p] * h_interior[p] + mu[p] - r - beta0
        )

    @given(
        data=agents(min_R=0.05),
        eta=eta_strategy,
        gamma=gamma_strategy,
        extra=st.floats(min_value=0.01, max_value=2.0),
    )
    @settings(max_examples=50, deadline=None)
    def test_fixed_cost_never_raises_participation(self, data, eta, gamma, extra):
        wage, mu, h_interior = data
        tax = TaxConfig()
        low = resolve_participation(
            h_interior,
            wage,
            mu,
            tax=tax,
            prefs=PreferenceConfig(eta=eta, gamma=gamma, beta0=0.1),
            beta=1.0,
        )
        high = resolve_participation(
            h_interior,
            wage,
            mu,
            tax=tax,
            prefs=PreferenceConfig(eta=eta, gamma=gamma, beta0=0.1 + extra),
            beta=1.0,
        )
        assert not (high.participates & ~low.participates).any()
