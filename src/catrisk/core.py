r"""

catrisk.core
============

Core primitives for catastrophe-risk loss-path simulation.

A :class:`CatRisk` is a read-only model of catastrophe losses. Calling
:meth:`CatRisk.new_simulation` binds it to a reference window ``[start, end]``
and returns a :class:`CatSimulation`, a pull-style generator that fills a
caller-owned list with one loss path per :meth:`CatSimulation.next_path` call.

This module provides:

* :class:`~catrisk.core.CatEvent` – a ``(date, loss)`` pair.
* :class:`~catrisk.core.CatSimulation` – abstract base for path generators.
* :class:`~catrisk.core.CatRisk` – abstract factory for simulations.
* :class:`~catrisk.core.SimulationResult` – a lightweight container for run outputs.
* :class:`~catrisk.core.CatRiskFramework` – registry + convenience runner.

Path statistics
---------------

:meth:`CatSimulation.run` reduces every path to a single number (aggregate
loss, largest occurrence loss or event count) and summarises the sample with a
:class:`~catrisk.stats_engine.StatsEngine`. For aggregate losses the mean is
the expected annual loss over the window,

.. math::

   \mathbb{E}\Big[\sum_{e \in \text{path}} L_e\Big] \approx \frac{1}{N}\sum_{k=1}^N \sum_{e \in \text{path}_k} L_e .
"""

from __future__ import annotations

import datetime as dt
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Literal, Mapping, MutableSequence, NamedTuple, Optional

import numpy as np

from .dates import to_date
from .errors import InvalidInputError
from .stats_engine import DEFAULT_ENGINE, StatsContext, StatsEngine
from .utils import autocrit

logger = logging.getLogger(__name__)  # pragma: no cover
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


PathStatistic = Literal["aggregate", "occurrence", "count"]


class CatEvent(NamedTuple):
    """A single catastrophe loss on a calendar day."""

    date: dt.date
    loss: float


Path = MutableSequence[CatEvent]


def path_value(path: Iterable[CatEvent], statistic: PathStatistic = "aggregate") -> float:
    r"""
    Reduce a loss path to a single number.

    Parameters
    ----------
    path : iterable of CatEvent
        Events of one path.
    statistic : {"aggregate", "occurrence", "count"}, default ``"aggregate"``
        ``"aggregate"`` sums the losses, ``"occurrence"`` takes the largest
        single loss and ``"count"`` counts the events. Empty paths give ``0.0``.

    Returns
    -------
    float

    Examples
    --------
    >>> events = [CatEvent(dt.date(2010, 1, 5), 3.0), CatEvent(dt.date(2010, 6, 1), 4.0)]
    >>> path_value(events), path_value(events, "occurrence"), path_value(events, "count")
    (7.0, 4.0, 2.0)
    """
    losses = [e.loss for e in path]
    if statistic == "aggregate":
        return float(sum(losses))
    if statistic == "occurrence":
        return float(max(losses, default=0.0))
    if statistic == "count":
        return float(len(losses))
    raise ValueError(f"Unknown path statistic: {statistic}")


@dataclass
class SimulationResult:
    r"""
    Container for the outcome of a loss-path run.

    Attributes
    ----------
    results : ndarray of float
        Per-path values of length :attr:`n_simulations` (see ``statistic`` in metadata).
    n_simulations : int
        Number of paths actually drawn.
    execution_time : float
        Wall-clock time in seconds.
    mean : float
        Sample mean :math:`\bar X`.
    std : float
        Sample standard deviation with ``ddof=1``.
    percentiles : dict[int, float]
        Map of computed percentiles, e.g. ``{5: ..., 50: ..., 95: ...}``.
    event_counts : ndarray of int
        Number of events in each path.
    stats : dict
        Additional statistics from the stats engine (e.g. ``"ci_mean"``).
    metadata : dict
        Freeform metadata. Includes ``"simulation_name"``, ``"start"``, ``"end"``,
        ``"statistic"``, ``"exhausted"``, ``"seed_entropy"`` and ``"requested_percentiles"``.
    """

    results: np.ndarray
    n_simulations: int
    execution_time: float
    mean: float
    std: float
    percentiles: dict[int, float]
    event_counts: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=int))
    stats: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    def result_to_string(
        self,
        confidence: float = 0.95,
        method: str = "auto",
    ) -> str:
        r"""
        Human-readable summary of the result.

        Parameters
        ----------
        confidence : float, default ``0.95``
            Confidence level for the displayed CI.
        method : {"auto", "z", "t"}, default ``"auto"``
            Which critical value to use (``"auto"`` chooses based on ``n``).

        Returns
        -------
        str
            Multiline textual summary.
        """
        if simulation_name := self.metadata.get("simulation_name"):
            title = f"Results for simulation '{simulation_name}':"
        else:
            title = "Results for simulation:"
        n = int(self.n_simulations)
        crit, kind = autocrit(confidence, n, method)
        se = self.std / np.sqrt(max(1, n))
        lo = self.mean - crit * se
        hi = self.mean + crit * se
        lines = [
            "=" * 20 + " SIM RESULTS " + "=" * 20,
            title,
            f"  Number of paths: {self.n_simulations}",
            f"  Execution time: {self.execution_time:.2f} seconds",
            f"  Mean: {self.mean:.5f}   (SE: {se:.5f}, "
            f"{int(confidence * 100)}% {kind}-CI: [{lo:.5f}, {hi:.5f}])",
            f"  Std Dev (sample): {self.std:.5f}",
        ]
        if self.event_counts.size:
            lines.append(f"  Mean events per path: {float(np.mean(self.event_counts)):.5f}")
        lines.append("  Percentiles:")
        for p in sorted(self.percentiles):
            lines.append(f"    {p}th: {self.percentiles[p]:.5f}")
        if self.stats:
            lines.append("Additional Stats:")
        for k, v in self.stats.items():
            lines.append(f"  {k}: {v}")
        if self.metadata:
            lines.append("Metadata:")
        for k, v in self.metadata.items():
            lines.append(f"    {k}: {v}")
        lines.append("=" * 20 + " END " + "=" * 20)
        return "\n".join(lines)


class CatSimulation(ABC):
    r"""
    Abstract pull-style generator of loss paths over ``[start, end]``.

    Subclass this and implement :meth:`next_path`. Each call clears the
    caller's list and appends the next path's events in chronological order,
    returning ``False`` once the simulation is permanently exhausted.

    Simulations that draw random numbers set :attr:`stochastic` and own their
    random state exclusively: :attr:`rng` is a :class:`numpy.random.Generator`
    reseeded by :meth:`set_seed`. Deterministic simulations leave :attr:`rng`
    as ``None``. Concurrent :meth:`next_path` calls on one instance must be
    serialised by the caller.

    Examples
    --------
    >>> class NoLoss(CatSimulation):
    ...     def next_path(self, path):
    ...         path.clear()
    ...         return True
    >>> sim = NoLoss(dt.date(2010, 1, 1), dt.date(2010, 12, 31))
    >>> buf = []
    >>> sim.next_path(buf), buf
    (True, [])
    """

    stochastic: bool = False  # paths draw from rng

    def __init__(self, start: dt.date, end: dt.date, name: str = "Simulation"):
        self.start = start
        self.end = end
        self.name = name
        self.seed_seq: Optional[np.random.SeedSequence] = None
        self.rng: Optional[np.random.Generator] = None

    @abstractmethod
    def next_path(self, path: Path) -> bool:
        r"""
        Overwrite ``path`` with the next simulated loss path.

        Parameters
        ----------
        path : mutable sequence of CatEvent
            Caller-owned buffer; cleared before the new events are appended.

        Returns
        -------
        bool
            ``True`` if a (possibly empty) path was produced, ``False`` if the
            simulation is exhausted. On ``False`` the buffer is left empty.
        """

    def set_seed(self, seed: int | None) -> None:
        r"""
        Set the random seed for reproducible paths.

        Parameters
        ----------
        seed : int or None
            Seed for :class:`numpy.random.SeedSequence`. ``None`` chooses entropy
            from the OS.
        """
        self.seed_seq = np.random.SeedSequence(seed)
        self.rng = np.random.default_rng(self.seed_seq)

    def iter_paths(self, max_paths: Optional[int] = None) -> Iterator[list[CatEvent]]:
        r"""
        Yield fresh path lists until exhausted or ``max_paths`` are drawn.

        Simulations that never exhaust need ``max_paths``.
        """
        drawn = 0
        while max_paths is None or drawn < max_paths:
            path: list[CatEvent] = []
            if not self.next_path(path):
                return
            drawn += 1
            yield path

    def run(
        self,
        n_paths: int,
        *,
        statistic: PathStatistic = "aggregate",
        progress_callback: Optional[Callable[[int, int], None]] = None,
        percentiles: Optional[Iterable[int]] = None,
        compute_stats: bool = True,
        stats_engine: Optional[StatsEngine] = None,
        confidence: float = 0.95,
        ci_method: str = "auto",
        extra_context: Optional[Mapping[str, Any]] = None,
    ) -> SimulationResult:
        r"""
        Draw up to ``n_paths`` paths and summarise them.

        Parameters
        ----------
        n_paths : int
            Number of paths to draw. Fewer are drawn if the simulation exhausts.
        statistic : {"aggregate", "occurrence", "count"}, default ``"aggregate"``
            Per-path reduction, see :func:`path_value`.
        progress_callback : callable, optional
            A function ``f(completed: int, total: int)`` called periodically.
        percentiles : iterable of int, optional
            Percentiles to compute from the per-path values. If ``None`` and
            ``compute_stats=True`` the engine defaults are used; if
            ``compute_stats=False`` none are computed unless requested.
        compute_stats : bool, default ``True``
            Compute additional metrics via a :class:`~catrisk.stats_engine.StatsEngine`.
        stats_engine : StatsEngine, optional
            Custom engine (defaults to :data:`catrisk.stats_engine.DEFAULT_ENGINE`).
        confidence : float, default ``0.95``
            Confidence level for CI and tail metrics.
        ci_method : {"auto","z","t"}, default ``"auto"``
            Which critical values the stats engine should use.
        extra_context : mapping, optional
            Extra :class:`~catrisk.stats_engine.StatsContext` fields, e.g. ``{"target": attachment}``.

        Returns
        -------
        SimulationResult

        Raises
        ------
        ValueError
            If ``n_paths`` is not positive, the arguments are invalid, or the
            simulation is already exhausted.
        """
        if n_paths <= 0:
            raise ValueError("n_paths must be positive")
        if not 0.0 < confidence < 1.0:
            raise ValueError("confidence must be in the interval (0, 1)")
        if ci_method not in ("auto", "z", "t"):
            raise ValueError(f"ci_method must be one of 'auto', 'z', 't', got '{ci_method}'")
        if statistic not in ("aggregate", "occurrence", "count"):
            raise ValueError(f"Unknown path statistic: {statistic}")

        logger.info(f"Drawing {n_paths} loss paths over [{self.start}, {self.end}]...")
        t0 = time.time()
        values, counts = self._draw(n_paths, statistic, progress_callback)
        exec_time = time.time() - t0

        n_drawn = values.size
        exhausted = n_drawn < n_paths
        if n_drawn == 0:
            raise ValueError(f"Simulation '{self.name}' is exhausted; no paths were drawn")
        if exhausted:
            logger.warning(f"Simulation '{self.name}' exhausted after {n_drawn} of {n_paths} paths")

        user_pcts: tuple[int, ...] = tuple(int(p) for p in (percentiles or ()))
        stats: dict[str, Any] = {}
        percentile_map: dict[int, float] = {}

        if compute_stats:
            eng = stats_engine or DEFAULT_ENGINE
            ctx_dict: dict[str, Any] = {
                "n": n_drawn,
                "confidence": confidence,
                "ci_method": ci_method,
            }
            if extra_context:
                ctx_dict.update(dict(extra_context))
            try:
                ctx = StatsContext(**ctx_dict)
            except (TypeError, ValueError) as e:
                logger.warning(f"Invalid context parameters: {e}. Using defaults.")
                ctx = StatsContext(n=n_drawn, confidence=confidence, ci_method=ci_method)
            stats = eng.compute(values, ctx)
            engine_perc = stats.pop("percentiles", None) or {}
            percentile_map = {int(k): float(v) for k, v in engine_perc.items()}
        if user_pcts:
            percentile_map.update({int(p): float(np.percentile(values, p)) for p in user_pcts})

        meta = {
            "simulation_name": self.name,
            "timestamp": time.time(),
            "start": self.start,
            "end": self.end,
            "statistic": statistic,
            "n_requested": n_paths,
            "exhausted": exhausted,
            "seed_entropy": self.seed_seq.entropy if self.seed_seq else None,
            "requested_percentiles": list(user_pcts),
        }
        return SimulationResult(
            results=values,
            n_simulations=n_drawn,
            execution_time=exec_time,
            mean=float(np.mean(values)),
            std=float(np.std(values, ddof=1)) if n_drawn > 1 else 0.0,
            percentiles=percentile_map,
            event_counts=counts,
            stats=stats,
            metadata=meta,
        )

    def _draw(
        self,
        n_paths: int,
        statistic: PathStatistic,
        progress_callback: Optional[Callable[[int, int], None]],
    ) -> tuple[np.ndarray, np.ndarray]:
        """Pull paths sequentially, reusing one buffer, until ``n_paths`` or exhaustion."""
        values = np.empty(n_paths, dtype=float)
        counts = np.empty(n_paths, dtype=int)
        path: list[CatEvent] = []
        # Report progress every 1% of paths
        step = max(1, n_paths // 100)
        drawn = 0
        while drawn < n_paths and self.next_path(path):
            values[drawn] = path_value(path, statistic)
            counts[drawn] = len(path)
            drawn += 1
            if progress_callback and ((drawn % step == 0) or (drawn == n_paths)):
                progress_callback(drawn, n_paths)
        return values[:drawn], counts[:drawn]


class CatRisk(ABC):
    r"""
    Abstract factory of :class:`CatSimulation` instances.

    A model holds only its construction parameters and is never mutated by
    :meth:`new_simulation`, so one instance can be shared freely.
    """

    name: str = "CatRisk"

    def new_simulation(self, start: Any, end: Any, seed: Optional[int] = None) -> CatSimulation:
        r"""
        Create a fresh simulation bound to the reference window ``[start, end]``.

        Parameters
        ----------
        start, end : date-like
            Window bounds, coerced with :func:`catrisk.dates.to_date`.
        seed : int, optional
            Seed for the simulation's own random state. Without a seed each
            stochastic simulation draws fresh OS entropy, so simulations are
            independent. Deterministic simulations ignore it.

        Returns
        -------
        CatSimulation

        Raises
        ------
        InvalidInputError
            If ``end < start``.
        """
        start, end = to_date(start), to_date(end)
        if end < start:
            raise InvalidInputError(f"end ({end}) must not precede start ({start})")
        sim = self._simulation(start, end)
        if seed is not None:
            if sim.stochastic:
                sim.set_seed(seed)
            else:
                logger.debug(f"Seed {seed} ignored: '{sim.name}' simulation is deterministic")
        return sim

    @abstractmethod
    def _simulation(self, start: dt.date, end: dt.date) -> CatSimulation:
        """Build the model-specific simulation for a validated window."""


class CatRiskFramework:
    r"""
    Registry for named catastrophe models that runs and compares results.

    Examples
    --------
    >>> from catrisk import BetaRisk, CatRiskFramework
    >>> framework = CatRiskFramework()
    >>> framework.register_model(BetaRisk(1e9, 10, 1e7, 1e7), name="Hurricane")
    >>> res = framework.run_simulation("Hurricane", "2020-01-01", "2020-12-31", 10_000, seed=7)  # doctest: +SKIP
    >>> framework.compare_results(["Hurricane"], metric="p95")  # doctest: +SKIP
    """

    def __init__(self):
        self.models: dict[str, CatRisk] = {}
        self.results: dict[str, SimulationResult] = {}

    def register_model(self, model: CatRisk, name: Optional[str] = None):
        r"""
        Register a model instance under a name.

        If ``name`` is omitted, the model's :attr:`CatRisk.name` is used.
        """
        model_name = name or model.name
        self.models[model_name] = model

    def run_simulation(
        self,
        name: str,
        start: Any,
        end: Any,
        n_paths: int,
        seed: Optional[int] = None,
        **kwargs,
    ) -> SimulationResult:
        r"""
        Spawn a simulation of a registered model and run it.

        Parameters
        ----------
        name : str
            Key used in :meth:`register_model`.
        start, end : date-like
            Reference window.
        n_paths : int
            Number of paths.
        seed : int, optional
            Forwarded to :meth:`CatRisk.new_simulation`.
        **kwargs :
            Forwarded to :meth:`CatSimulation.run`.

        Returns
        -------
        SimulationResult
        """
        if name not in self.models:
            raise ValueError(f"Model '{name}' not found")
        sim = self.models[name].new_simulation(start, end, seed=seed)
        sim.name = name
        res = sim.run(n_paths, **kwargs)
        self.results[name] = res
        return res

    def compare_results(
        self,
        names: list[str],
        metric: str = "mean",
    ) -> dict[str, float]:
        r"""
        Compare a metric across previously run models.

        Parameters
        ----------
        names : list of str
            Model names (must exist in :attr:`results`).
        metric : {"mean","std","var","se","pX"}, default ``"mean"``
            Metric to extract. ``"pX"`` requests the X-th percentile (e.g. ``"p99"``).

        Returns
        -------
        dict
            ``{name: value}`` pairs.

        Raises
        ------
        ValueError
            If a percentile was not computed or the metric name is unknown.
        """
        out: dict[str, float] = {}
        for name in names:
            if name not in self.results:
                raise ValueError(f"No results found for model '{name}'")
            r = self.results[name]
            if metric == "mean":
                out[name] = r.mean
            elif metric == "std":
                out[name] = r.std
            elif metric == "var":
                out[name] = r.std**2
            elif metric == "se":
                out[name] = r.std / np.sqrt(max(1, r.n_simulations))
            elif metric.lower().startswith("p") and metric[1:].isdigit():
                p = int(metric[1:])
                if p not in r.percentiles:
                    raise ValueError(f"Percentile {p} not computed")
                out[name] = r.percentiles[p]
            else:
                raise ValueError(f"Unknown metric: {metric}")
        return out


__all__ = [
    "CatEvent",
    "Path",
    "PathStatistic",
    "path_value",
    "SimulationResult",
    "CatSimulation",
    "CatRisk",
    "CatRiskFramework",
]
