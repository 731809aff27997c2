import datetime as dt

import numpy as np
import pytest

from catrisk import BetaRisk, CatRiskFramework, CatSimulation, EventSet
from catrisk.core import CatEvent


class FixedSim(CatSimulation):
    """Simulation that replays a fixed list of paths, then exhausts."""
    def __init__(self, paths, start=dt.date(2010, 1, 1), end=dt.date(2010, 12, 31)):
        super().__init__(start, end, "FixedSim")
        self._paths = list(paths)

    def next_path(self, path):
        path.clear()
        if not self._paths:
            return False
        path.extend(self._paths.pop(0))
        return True


@pytest.fixture(autouse=True)
def _stable_seed():
    # Keep global state stable for any code that still touches np.random.*
    np.random.seed(42)


@pytest.fixture
def sample_data():
    """Fixture providing sample data for testing"""
    rng = np.random.default_rng(42)
    return rng.normal(5.0, 2.0, 1000)


@pytest.fixture
def ctx_basic():
    """Basic context for stats engine tests"""
    return {
        "n": 1000,
        "confidence": 0.95,
        "nan_policy": "propagate",
        "ci_method": "auto",
        "percentiles": (5, 25, 50, 75, 95),
    }


@pytest.fixture
def history():
    """Three historical losses over 2000-2002."""
    return [
        (dt.date(2000, 3, 15), 100.0),
        (dt.date(2001, 7, 4), 50.0),
        (dt.date(2002, 11, 20), 75.0),
    ]


@pytest.fixture
def event_set(history):
    """EventSet over [2000-01-01, 2002-12-31]."""
    return EventSet(history, dt.date(2000, 1, 1), dt.date(2002, 12, 31))


@pytest.fixture
def beta_risk():
    """BetaRisk with alpha ~ 0.98, beta ~ 97.02."""
    return BetaRisk(max_loss=1e9, years=1, mean=1e7, std_dev=1e7)


@pytest.fixture
def fixed_simulation():
    """Simulation with three known paths."""
    return FixedSim(
        [
            [CatEvent(dt.date(2010, 2, 1), 10.0), CatEvent(dt.date(2010, 5, 1), 30.0)],
            [],
            [CatEvent(dt.date(2010, 8, 1), 20.0)],
        ]
    )


@pytest.fixture
def framework():
    """Provide a framework with default state."""
    return CatRiskFramework()
