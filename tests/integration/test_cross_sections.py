"""
End-to-end tests of the cross-section simulator.

The datasets must carry the structure the interior first-order condition
implies: for participants

    log w = log β − η·log c + γ·log h

holds exactly, so least squares recovers (−η, γ) with an R² of one.
"""

import numpy as np
import pytest

from laborsim import ConfigurationError, NumericalError, Simulation, stage
from laborsim.core import RegimeRun
from laborsim.systems.newton import foc_residual
from tests.helpers.ols import ols

ETA, GAMMA = -1.5, 0.8

TOLERANCE_SOLVER = {"tol": 1e-13, "max_iter": 200}


def _participants(cs):
    return cs.outcome.participates


def _regress_foc(cs, *, add_beta0: float = 0.0, with_log_beta: bool = False):
    p = _participants(cs)
    w = cs.population.net_wage(cs.regime.tax)[p]
    c = cs.outcome.consumption[p] + add_beta0
    h = cs.outcome.hours[p]
    regressors = [np.log(c), np.log(h)]
    if with_log_beta:
        regressors.append(np.log(cs.population.beta_i[p]))
    return ols(np.log(w), *regressors)


class TestDeterminism:
    def test_same_seed_same_dataset(self, tiny_sim):
        a = tiny_sim.run_arrays()
        b = tiny_sim.run_arrays()
        for name in a:
            np.testing.assert_array_equal(a[name], b[name])

    def test_different_seeds_differ(self, tiny_sim):
        a = tiny_sim.simulate(seed=1)[0]
        b = tiny_sim.simulate(seed=2)[0]
        assert not np.array_equal(a.population.log_wage, b.population.log_wage)

    def test_regime_draws_independent_of_other_regimes(self, tiny_sim):
        """A regime's draws depend on its position, not on the other regimes."""
        one = tiny_sim.simulate(regimes=[{"wage_return": 0.5}], seed=9)
        two = tiny_sim.simulate(
            regimes=[{"wage_return": 0.5}, {"wage_return": 0.1, "rho": 0.5}], seed=9
        )
        np.testing.assert_array_equal(one[0].outcome.hours, two[0].outcome.hours)

    @pytest.mark.slow
    def test_parallel_matches_serial(self):
        regimes = [
            {"wage_return": 0.5},
            {"wage_return": 0.5, "rho": 0.7},
            {"wage_return": 0.3, "r": 0.1},
        ]
        serial = Simulation.init(n_agents=200, seed=4, n_workers=1)
        parallel = Simulation.init(n_agents=200, seed=4, n_workers=2)

        a = serial.run_arrays(regimes=regimes)
        b = parallel.run_arrays(regimes=regimes)
        assert list(a) == list(b)
        for name in a:
            np.testing.assert_array_equal(a[name], b[name])


class TestRegimes:
    def test_output_order_and_tags(self, tiny_sim):
        sections = tiny_sim.simulate(
            regimes=[
                {"wage_return": 0.5, "label": "base"},
                {"wage_return": 0.5, "rho": 0.6, "r": -0.1},
                {"wage_return": 0.2, "income_return": 0.0},
            ]
        )
        assert [cs.regime_id for cs in sections] == [0, 1, 2]
        assert [cs.label for cs in sections] == ["base", "regime_1", "regime_2"]
        assert sections[1].regime.tax.rho == 0.6
        assert sections[2].income_return == 0.0
        assert sections[0].income_return == 0.3

    def test_n_per_regime(self, tiny_sim):
        sections = tiny_sim.simulate(n_per_regime=17)
        assert sections[0].n_agents == 17

    @pytest.mark.parametrize("n", [0, -3, 2.5, True])
    def test_invalid_n_per_regime(self, tiny_sim, n):
        with pytest.raises(ConfigurationError, match="n_per_regime"):
            tiny_sim.simulate(n_per_regime=n)

    def test_invalid_regime_rejected_before_drawing(self, tiny_sim):
        with pytest.raises(ConfigurationError):
            tiny_sim.simulate(
                regimes=[{"wage_return": 0.5}, {"wage_return": 0.5, "rho": -1.0}]
            )

    def test_lower_retention_lowers_participation(self):
        sim = Simulation.init(n_agents=2000, seed=11, solver=TOLERANCE_SOLVER)
        full, taxed = sim.simulate(
            regimes=[{"wage_return": 0.5}, {"wage_return": 0.5, "rho": 0.3}]
        )
        assert taxed.outcome.participation_rate < full.outcome.participation_rate


class TestFirstOrderCondition:
    def test_foc_holds_for_participants(self):
        sim = Simulation.init(n_agents=500, seed=3, solver=TOLERANCE_SOLVER)
        cs = sim.simulate()[0]
        p = _participants(cs)
        assert p.any()

        w = cs.population.net_wage(cs.regime.tax)
        R = cs.population.adjusted_income(cs.regime.tax, sim.config.preferences)
        f = foc_residual(
            cs.outcome.hours_interior, w, R, eta=ETA, gamma=GAMMA, beta=1.0
        )
        scale = w * cs.outcome.consumption ** ETA
        np.testing.assert_array_less(np.abs(f[p] / scale[p]), 1e-10)

    def test_hours_feasible_for_everyone(self):
        sim = Simulation.init(
            n_agents=500,
            seed=5,
            beta0=0.8,
            regimes=[{"wage_return": 0.5, "r": 0.6}],
        )
        cs = sim.simulate()[0]
        w = cs.population.net_wage(cs.regime.tax)
        R = cs.population.adjusted_income(cs.regime.tax, sim.config.preferences)
        h = cs.outcome.hours_interior

        assert (h >= sim.config.solver.eps).all()
        assert (w * h + R > 0).all()
        # non-participants are observed at zero hours and consume their income
        np_mask = ~cs.outcome.participates
        assert (cs.outcome.hours[np_mask] == 0.0).all()
        np.testing.assert_array_equal(
            cs.outcome.consumption[np_mask], cs.population.mu[np_mask]
        )


class TestIdentification:
    def test_homogeneous_preferences_recovered(self):
        sim = Simulation.init(
            n_agents=1000, seed=21, beta0=0.2, solver=TOLERANCE_SOLVER
        )
        fit = _regress_foc(sim.simulate()[0])

        np.testing.assert_allclose(fit.coef, [-ETA, GAMMA], atol=1e-6)
        assert fit.intercept == pytest.approx(0.0, abs=1e-6)  # log β = 0
        assert fit.r_squared > 0.999

    def test_heterogeneous_needs_log_beta(self):
        sim = Simulation.init(
            n_agents=1000,
            seed=22,
            heterogeneous_beta=True,
            solver=TOLERANCE_SOLVER,
        )
        cs = sim.simulate()[0]
        assert cs.population.beta_i is not None

        full = _regress_foc(cs, with_log_beta=True)
        np.testing.assert_allclose(full.coef, [-ETA, GAMMA, 1.0], atol=1e-6)

        omitted = _regress_foc(cs)
        assert not np.allclose(omitted.coef, [-ETA, GAMMA], atol=0.01)

    def test_fixed_cost_must_be_netted_out(self):
        sim = Simulation.init(
            n_agents=1000, seed=23, beta0=0.5, solver=TOLERANCE_SOLVER
        )
        cs = sim.simulate()[0]

        exact = _regress_foc(cs)
        np.testing.assert_allclose(exact.coef, [-ETA, GAMMA], atol=1e-6)

        # consumption gross of the fixed cost gives a misspecified fit
        gross = _regress_foc(cs, add_beta0=0.5)
        assert not np.allclose(gross.coef, [-ETA, GAMMA], atol=0.01)

    @pytest.mark.slow
    def test_default_scenario(self):
        """Defaults: N=1000, fixed 30 Newton updates."""
        sim = Simulation.init()
        assert sim.config.solver.tol is None
        cs = sim.simulate()[0]

        assert cs.solver_report.n_iter == 30
        p = _participants(cs)
        converged = p & cs.solver_report.converged
        assert converged.sum() >= 0.99 * p.sum()

        w = cs.population.net_wage(cs.regime.tax)[converged]
        fit = ols(
            np.log(w),
            np.log(cs.outcome.consumption[converged]),
            np.log(cs.outcome.hours[converged]),
        )
        np.testing.assert_allclose(fit.coef, [1.5, 0.8], atol=0.01)
        assert fit.r_squared > 0.999


class TestPipelineVariants:
    def test_without_participation_everyone_works(self):
        sim = Simulation.init(
            n_agents=200, seed=8, participation=False, solver=TOLERANCE_SOLVER
        )
        cs = sim.simulate()[0]
        assert cs.outcome.participation_rate == 1.0
        np.testing.assert_array_equal(cs.outcome.hours, cs.outcome.hours_interior)

    def test_prohibitive_fixed_cost_nobody_works(self):
        sim = Simulation.init(n_agents=200, seed=8, beta0=25.0, solver=TOLERANCE_SOLVER)
        cs = sim.simulate()[0]
        assert cs.outcome.participation_rate == 0.0
        assert (cs.outcome.hours == 0.0).all()

    def test_custom_stage_inserted_after_solver(self):
        @stage
        class CapInteriorHours:
            cap: float = 0.5

            def execute(self, run: RegimeRun) -> None:
                run.hours_interior = np.minimum(run.hours_interior, self.cap)

        sim = Simulation.init(n_agents=100, seed=2)
        sim.pipeline.insert_after("solve_interior_hours", CapInteriorHours(cap=0.3))
        cs = sim.simulate()[0]
        assert (cs.outcome.hours_interior <= 0.3).all()

    def test_pipeline_missing_solver_fails_loudly(self, tmp_path):
        path = tmp_path / "pipeline.yml"
        path.write_text("stages:\n  - draw_population\n")
        sim = Simulation.init(
            n_agents=10, participation=False, pipeline_path=str(path)
        )
        with pytest.raises(RuntimeError, match="interior hours"):
            sim.simulate()

    def test_dataframe_output(self, tiny_sim):
        pytest.importorskip("pandas")
        df = tiny_sim.run(regimes=[{"wage_return": 0.5}, {"wage_return": 0.3}])
        assert len(df) == 100
        assert df["p1"].dtype == bool


class TestNumericalFailures:
    def test_flagged_agents_are_unresolved(self, monkeypatch):
        """With on_error='flag' a failing agent is reported, the rest proceed."""
        import laborsim.stages as stages_mod

        original = stages_mod.initial_hours_guess

        def _poisoned_guess(mu, wage, **kwargs):
            h0 = original(mu, wage, **kwargs)
            h0 = h0.copy()
            h0[0] = np.inf
            return h0

        monkeypatch.setattr(stages_mod, "initial_hours_guess", _poisoned_guess)
        sim = Simulation.init(n_agents=20, seed=1, on_error="flag")
        cs = sim.simulate()[0]

        assert not cs.outcome.resolved[0]
        assert np.isnan(cs.outcome.hours[0])
        assert not cs.outcome.participates[0]
        assert cs.outcome.resolved[1:].all()
        assert np.isfinite(cs.outcome.hours[1:]).all()

    def test_raise_policy_tags_regime(self, monkeypatch):
        import laborsim.stages as stages_mod

        original = stages_mod.initial_hours_guess

        def _poisoned_guess(mu, wage, **kwargs):
            h0 = original(mu, wage, **kwargs).copy()
            h0[2] = np.inf
            return h0

        monkeypatch.setattr(stages_mod, "initial_hours_guess", _poisoned_guess)
        sim = Simulation.init(n_agents=20, seed=1)
        with pytest.raises(NumericalError) as excinfo:
            sim.simulate(regimes=[{"wage_return": 0.5}])
        assert excinfo.value.regime_id == 0
        assert excinfo.value.agent_ids == (2,)
