"""catrisk package public API."""

from .core import (
    CatEvent,
    CatRisk,
    CatRiskFramework,
    CatSimulation,
    SimulationResult,
    path_value,
)
from .errors import InvalidInputError, NumericError
from .sims import BetaRisk, BetaRiskSimulation, EventSet, EventSetSimulation
from .stats_engine import (
    DEFAULT_ENGINE,
    FnMetric,
    StatsContext,
    StatsEngine,
)
from .utils import autocrit, t_crit, z_crit

__all__ = [
    "CatEvent",
    "CatRisk",
    "CatSimulation",
    "CatRiskFramework",
    "SimulationResult",
    "path_value",
    "EventSet",
    "EventSetSimulation",
    "BetaRisk",
    "BetaRiskSimulation",
    "InvalidInputError",
    "NumericError",
    "StatsEngine",
    "StatsContext",
    "FnMetric",
    "DEFAULT_ENGINE",
    "z_crit",
    "t_crit",
    "autocrit",
]

__version__ = "0.1.0"
