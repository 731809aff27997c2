"""Simulation catalog for :mod:`catrisk`."""

from __future__ import annotations

from .beta_risk import BetaRisk, BetaRiskSimulation
from .event_set import EventSet, EventSetSimulation

__all__ = [
    "EventSet",
    "EventSetSimulation",
    "BetaRisk",
    "BetaRiskSimulation",
]
