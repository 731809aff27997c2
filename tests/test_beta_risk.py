import datetime as dt

import numpy as np
import pytest

from catrisk import BetaRisk, InvalidInputError, NumericError
from catrisk.sims.beta_risk import BetaRiskSimulation

START = dt.date(2020, 1, 1)
END = dt.date(2020, 12, 31)


class _ZeroGamma:
    """Stand-in generator whose Gamma draws are all zero."""
    def standard_gamma(self, shape):
        return 0.0

    def exponential(self, scale):
        return 0.1


class TestBetaRiskConstruction:
    """Test parameter derivation and validation"""

    def test_derived_parameters(self, beta_risk):
        assert beta_risk.lam == pytest.approx(1.0)
        assert beta_risk.alpha == pytest.approx(0.98)
        assert beta_risk.beta == pytest.approx(97.02)

    def test_rate_is_inverse_years(self):
        model = BetaRisk(max_loss=100.0, years=4, mean=10.0, std_dev=10.0)
        assert model.lam == pytest.approx(0.25)

    def test_small_mean_small_std_is_valid(self):
        model = BetaRisk(max_loss=1000, years=10, mean=1.0, std_dev=0.01)
        assert model.alpha > 0
        assert model.beta > 0

    def test_severity_moments(self, beta_risk):
        assert beta_risk.severity_mean == pytest.approx(1e7)
        a, b = beta_risk.alpha, beta_risk.beta
        expected = 1e18 * a * b / ((a + b) ** 2 * (a + b + 1))
        assert beta_risk.severity_variance == pytest.approx(expected)

    def test_mean_equal_to_max_loss_rejected(self):
        with pytest.raises(InvalidInputError):
            BetaRisk(max_loss=1000, years=10, mean=1000, std_dev=0.01)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_loss": 0.0, "years": 1, "mean": 1.0, "std_dev": 1.0},
            {"max_loss": -5.0, "years": 1, "mean": 1.0, "std_dev": 1.0},
            {"max_loss": 10.0, "years": 0, "mean": 1.0, "std_dev": 1.0},
            {"max_loss": 10.0, "years": 1, "mean": 0.0, "std_dev": 1.0},
            {"max_loss": 10.0, "years": 1, "mean": 11.0, "std_dev": 1.0},
            {"max_loss": 10.0, "years": 1, "mean": 1.0, "std_dev": 0.0},
        ],
    )
    def test_out_of_range_parameters(self, kwargs):
        with pytest.raises(InvalidInputError):
            BetaRisk(**kwargs)

    def test_unreachable_std_dev(self):
        with pytest.raises(InvalidInputError, match="not reachable"):
            BetaRisk(max_loss=1.0, years=1, mean=0.5, std_dev=0.6)

    def test_invalid_input_is_value_error(self):
        with pytest.raises(ValueError):
            BetaRisk(max_loss=1.0, years=1, mean=2.0, std_dev=0.1)

    def test_new_simulation_inverted_window(self, beta_risk):
        with pytest.raises(InvalidInputError):
            beta_risk.new_simulation(END, START)


class TestBetaRiskSimulation:
    """Test path synthesis"""

    def test_simulation_parameters(self, beta_risk):
        sim = beta_risk.new_simulation(START, END, seed=1)
        assert isinstance(sim, BetaRiskSimulation)
        assert sim.day_count == 365
        assert sim.year_fraction == pytest.approx(1.0)
        assert (sim.max_loss, sim.lam, sim.alpha, sim.beta) == (
            beta_risk.max_loss, beta_risk.lam, beta_risk.alpha, beta_risk.beta
        )

    def test_never_exhausts(self, beta_risk):
        sim = beta_risk.new_simulation(START, END, seed=3)
        path = []
        assert all(sim.next_path(path) for _ in range(200))

    def test_buffer_is_cleared(self, beta_risk):
        sim = beta_risk.new_simulation(START, END, seed=5)
        sentinel = (dt.date(1900, 1, 1), -1.0)
        path = [sentinel]
        sim.next_path(path)
        assert sentinel not in path

    def test_path_validity(self, beta_risk):
        """Every event inside the window, ordered, with a loss strictly inside (0, max_loss)"""
        sim = beta_risk.new_simulation(START, END, seed=2024)
        path = []
        n_events = 0
        for _ in range(10_000):
            assert sim.next_path(path)
            dates = [e.date for e in path]
            assert dates == sorted(dates)
            for e in path:
                assert START <= e.date <= END
                assert 0.0 < e.loss < 1e9
            n_events += len(path)
        assert n_events > 0

    def test_zero_length_window(self, beta_risk):
        sim = beta_risk.new_simulation(START, START, seed=11)
        path = []
        for _ in range(100):
            assert sim.next_path(path)
            assert path == []

    def test_poisson_rate(self):
        """Mean event count over five years at one event per five years"""
        model = BetaRisk(max_loss=1e9, years=5, mean=1e7, std_dev=1e7)
        sim = model.new_simulation(dt.date(2010, 1, 1), dt.date(2014, 12, 31), seed=7)
        assert sim.year_fraction == pytest.approx(5.0)
        counts = [len(p) for p in sim.iter_paths(100_000)]
        assert np.mean(counts) == pytest.approx(1.0, rel=0.01)

    def test_severity_distribution(self, beta_risk):
        sim = beta_risk.new_simulation(START, END, seed=99)
        draws = np.array([sim.generate_beta() for _ in range(100_000)])
        assert draws.min() >= 0.0
        assert draws.max() <= 1e9
        assert draws.mean() == pytest.approx(beta_risk.severity_mean, rel=0.02)
        assert draws.var(ddof=1) == pytest.approx(beta_risk.severity_variance, rel=0.05)

    def test_degenerate_gamma_draw(self, beta_risk):
        sim = beta_risk.new_simulation(START, END)
        sim.rng = _ZeroGamma()
        with pytest.raises(NumericError):
            sim.generate_beta()
        with pytest.raises(NumericError):
            sim.next_path([])


class TestSeeding:
    """Test reproducibility and independence"""

    def test_same_seed_same_paths(self, beta_risk):
        a = beta_risk.new_simulation(START, END, seed=42)
        b = beta_risk.new_simulation(START, END, seed=42)
        assert list(a.iter_paths(10)) == list(b.iter_paths(10))

    def test_identical_models_same_seed(self):
        params = dict(max_loss=5e8, years=0.5, mean=2e7, std_dev=3e7)
        a = BetaRisk(**params).new_simulation(START, END, seed=42)
        b = BetaRisk(**params).new_simulation(START, END, seed=42)
        for pa, pb in zip(a.iter_paths(10), b.iter_paths(10)):
            assert pa == pb

    def test_simulation_owns_generator(self, beta_risk):
        sim = beta_risk.new_simulation(START, END, seed=42)
        assert sim.stochastic
        assert isinstance(sim.rng, np.random.Generator)
        assert sim.seed_seq.entropy == 42

    def test_set_seed_restarts_sequence(self, beta_risk):
        sim = beta_risk.new_simulation(START, END, seed=8)
        first = list(sim.iter_paths(5))
        sim.set_seed(8)
        assert list(sim.iter_paths(5)) == first

    def test_unseeded_simulations_differ(self):
        model = BetaRisk(max_loss=1e9, years=0.1, mean=1e7, std_dev=1e7)
        a = model.new_simulation(START, END)
        b = model.new_simulation(START, END)
        assert list(a.iter_paths(20)) != list(b.iter_paths(20))

    def test_distinct_seeds_uncorrelated(self):
        model = BetaRisk(max_loss=1e9, years=0.5, mean=1e7, std_dev=1e7)
        a = model.new_simulation(START, END, seed=1)
        b = model.new_simulation(START, END, seed=2)
        ca = np.array([len(p) for p in a.iter_paths(5_000)])
        cb = np.array([len(p) for p in b.iter_paths(5_000)])
        assert abs(np.corrcoef(ca, cb)[0, 1]) < 0.06
