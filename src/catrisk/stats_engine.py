r"""
catrisk.stats_engine
====================
Statistical metrics and the engine used to summarise simulated loss paths.

This module defines:

- :class:`StatsContext`: a typed, explicit configuration object shared by all metrics.
- :class:`FnMetric`: a frozen adapter that names a metric function.
- :class:`StatsEngine`: an orchestrator that evaluates one or more metrics.

Common metrics include :func:`mean`, :func:`std`, :func:`percentiles`,
:func:`skew`, :func:`kurtosis` and :func:`ci_mean`. Loss-specific metrics are
:func:`loss_probability`, :func:`exceedance_probability` and :func:`tail_mean`.

See Also
--------
catrisk.utils.autocrit
    Selects a z/t critical value for a target confidence level and effective sample size.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Generic, Iterable, Optional, Protocol, Sequence, TypeVar

import numpy as np
from scipy.stats import kurtosis as sp_kurtosis
from scipy.stats import skew as sp_skew

from .utils import autocrit

# Local logger to avoid a circular import with core
logger = logging.getLogger(__name__)


_PCTS = (5, 25, 50, 75, 95)  # default percentiles


class NanPolicy(str, Enum):
    r"""
    Strategies for handling the propagation of non-finite values.

    Attributes
    ----------
    propagate : str
        Propagate any NaNs or infinities encountered in the sample.
    omit : str
        Drop non-finite observations before computing a metric.
    """

    propagate = "propagate"
    omit = "omit"


class CIMethod(str, Enum):
    r"""
    Parametric strategies for selecting confidence-interval critical values.

    Attributes
    ----------
    auto : str
        Choose Student-t when :math:`n_\text{eff} < 30`, otherwise z.
    z : str
        Always use the normal :math:`z` critical value.
    t : str
        Always use the Student-:math:`t` critical value.
    """

    auto = "auto"
    z = "z"
    t = "t"


@dataclass(slots=True)
class StatsContext:
    r"""
    Shared, explicit configuration for statistic and CI computations.

    Attributes
    ----------
    n : int
        Declared sample size (fallback when NaNs are not omitted).
    confidence : float, default 0.95
        Confidence level in :math:`(0, 1)`. Also the tail level of :func:`tail_mean`.
    ci_method : {"auto", "z", "t"}, default "auto"
        Strategy for :func:`ci_mean`.
    percentiles : tuple of int, default ``(5, 25, 50, 75, 95)``
        Percentiles to compute in :func:`percentiles`.
    nan_policy : {"propagate", "omit"}, default "propagate"
        If ``"omit"``, drop non-finite values before all computations.
    target : float, optional
        Threshold for :func:`exceedance_probability`, e.g. a cat-bond attachment point.
    ddof : int, default 1
        Degrees of freedom for :func:`std` (1 => Bessel correction).
    ess : int, optional
        Effective sample size override.

    Examples
    --------
    >>> ctx = StatsContext(n=5000, confidence=0.99, target=1e8)
    >>> round(ctx.alpha, 2)
    0.01
    """

    n: int
    confidence: float = 0.95
    ci_method: CIMethod = "auto"
    percentiles: tuple[int, ...] = _PCTS
    nan_policy: NanPolicy = "propagate"
    target: Optional[float] = None
    ddof: int = 1
    ess: Optional[int] = None

    def with_overrides(self, **changes) -> "StatsContext":
        """Return a shallow copy with selected fields replaced."""
        return replace(self, **changes)

    @property
    def alpha(self) -> float:
        r"""Tail probability :math:`\alpha = 1 - \text{confidence}`."""
        return 1.0 - self.confidence

    def eff_n(self, observed_len: int, finite_count: Optional[int] = None) -> int:
        r"""
        Effective sample size :math:`n_\text{eff}` used by CI calculations.

        Priority is:
        1) explicit :attr:`ess`; 2) count of finite values if ``nan_policy="omit"``;
        3) declared :attr:`n` (fallback); else ``observed_len``.
        """
        if self.ess is not None:
            return int(self.ess)
        if self.nan_policy == "omit" and finite_count is not None:
            return int(finite_count)
        return int(self.n or observed_len)

    def __post_init__(self) -> None:
        if not (0.0 < self.confidence < 1.0):
            raise ValueError("confidence must be in (0,1)")
        if any(p < 0 or p > 100 for p in self.percentiles):
            raise ValueError("percentiles must be in [0,100]")
        if self.ddof < 0:
            raise ValueError("ddof must be >= 0")
        if self.nan_policy not in ("propagate", "omit"):
            raise ValueError(f"Unknown nan_policy: {self.nan_policy}")
        if self.ci_method not in ("auto", "z", "t"):
            raise ValueError(f"ci_method must be one of 'auto', 'z', 't', got '{self.ci_method}'")


class Metric(Protocol):
    r"""
    Protocol for metric callables used by :class:`StatsEngine`.

    A metric exposes a ``name`` attribute and is callable as
    ``metric(x: numpy.ndarray, ctx: StatsContext) -> Any``.
    """

    name: str

    def __call__(self, x: np.ndarray, ctx: StatsContext, /) -> Any: ...


T = TypeVar("T")


@dataclass(frozen=True)
class FnMetric(Generic[T]):
    r"""
    Lightweight adapter that binds a human-readable ``name`` to a metric function.

    Parameters
    ----------
    name : str
        Key under which the metric result is stored in :meth:`StatsEngine.compute`.
    fn : callable
        Function with signature ``fn(x: ndarray, ctx: StatsContext) -> T``.
    doc : str, optional
        Short description.

    Examples
    --------
    >>> m = FnMetric("mean", lambda a, ctx: float(np.mean(a)))
    >>> m(np.array([1, 2, 3]), StatsContext(n=3))
    2.0
    """

    name: str
    fn: Callable[[np.ndarray, StatsContext], T]
    doc: str = ""

    def __call__(self, x: np.ndarray, ctx: StatsContext) -> T:
        return self.fn(x, ctx)


class StatsEngine:
    r"""
    Orchestrator that evaluates a set of metrics over an input array.

    Parameters
    ----------
    metrics : iterable of Metric
        Callables with a ``name`` and signature ``metric(x, ctx)``.

    Notes
    -----
    All metrics receive the *same* :class:`StatsContext`. Metrics that need an
    optional context field (such as ``target``) raise ``ValueError`` with
    ``"requires ctx.<field>"`` and are skipped when the field is missing.

    Examples
    --------
    >>> eng = StatsEngine([FnMetric("mean", mean), FnMetric("std", std)])
    >>> x = np.array([1., 2., 3.])
    >>> eng.compute(x, StatsContext(n=len(x)))
    {'mean': 2.0, 'std': 1.0}
    """

    def __init__(self, metrics: Iterable[Metric]):
        self._metrics = list(metrics)

    def available(self) -> tuple[str, ...]:
        return tuple(m.name for m in self._metrics)

    def compute(
        self,
        x: np.ndarray,
        ctx: Optional[StatsContext] = None,
        select: Sequence[str] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        r"""
        Evaluate all registered metrics on ``x``.

        Parameters
        ----------
        x : ndarray
            Sample values.
        ctx : StatsContext, optional
            Context parameters. If None, one is built from ``**kwargs``.
        select : sequence of str, optional
            If given, compute only the metrics with these names.
        **kwargs :
            Used to build a :class:`StatsContext` if ``ctx`` is None.

        Returns
        -------
        dict
            Mapping from metric name to computed value.
        """
        if ctx is not None:
            ctx = _ensure_ctx(ctx, x)
        else:
            base = dict(kwargs)
            base.setdefault("n", int(np.asarray(x).size))
            ctx = StatsContext(**base)

        wanted = set(select) if select is not None else None
        metrics_to_compute = self._metrics if wanted is None else [m for m in self._metrics if m.name in wanted]

        out: dict[str, Any] = {}
        for m in metrics_to_compute:
            try:
                out[m.name] = m(x, ctx)
            except ValueError as e:
                if "requires ctx." in str(e):
                    logger.debug(f"Skipping metric {m.name}: {e}")
                    continue
                raise
        return out


def _ensure_ctx(ctx: Any, x: np.ndarray) -> StatsContext:
    r"""
    Normalize a :class:`StatsContext`, mapping or ``None`` into a :class:`StatsContext`.

    Raises
    ------
    TypeError
        If ``ctx`` cannot be interpreted as configuration data.
    """
    if isinstance(ctx, StatsContext):
        return ctx
    arr_len = int(np.asarray(x).size)
    if ctx is None:
        return StatsContext(n=arr_len)
    if isinstance(ctx, dict):
        data = dict(ctx)
        data.setdefault("n", arr_len)
        return StatsContext(**data)
    raise TypeError("ctx must be a StatsContext, dict or None")


def _clean(x: np.ndarray, ctx: StatsContext) -> tuple[np.ndarray, int]:
    """Return the (possibly filtered) sample and its count of finite values."""
    arr = np.asarray(x, dtype=float)
    finite = np.isfinite(arr)
    if ctx.nan_policy == "omit":
        arr = arr[finite]
    return arr, int(finite.sum())


def mean(x: np.ndarray, ctx: StatsContext) -> float:
    r"""
    Sample mean :math:`\bar X`.

    Examples
    --------
    >>> mean(np.array([1, 2, 3]), {})
    2.0
    """
    ctx = _ensure_ctx(ctx, x)
    arr, _ = _clean(x, ctx)
    return float(np.mean(arr)) if arr.size else float("nan")


def std(x: np.ndarray, ctx: StatsContext) -> float:
    r"""
    Sample standard deviation with ``ctx.ddof`` (Bessel correction by default).

    Returns ``0.0`` if :math:`n_\text{eff} \le 1`.

    Examples
    --------
    >>> std(np.array([1, 2, 3]), {})
    1.0
    """
    ctx = _ensure_ctx(ctx, x)
    arr, finite = _clean(x, ctx)
    n_eff = ctx.eff_n(observed_len=arr.size, finite_count=finite)
    if n_eff <= 1 or arr.size <= ctx.ddof:
        return 0.0
    return float(np.std(arr, ddof=ctx.ddof))


def percentiles(x: np.ndarray, ctx: StatsContext) -> dict[int, float]:
    r"""
    Empirical percentiles evaluated on the cleaned sample.

    Examples
    --------
    >>> percentiles(np.array([0., 1., 2., 3.]), {"percentiles": (50, 75)})
    {50: 1.5, 75: 2.25}
    """
    ctx = _ensure_ctx(ctx, x)
    arr, _ = _clean(x, ctx)
    if arr.size == 0:
        return {p: float("nan") for p in ctx.percentiles}
    pct_values = np.percentile(arr, ctx.percentiles)
    return dict(zip(ctx.percentiles, map(float, pct_values)))


def skew(x: np.ndarray, ctx: StatsContext) -> float:
    """Unbiased sample skewness via :func:`scipy.stats.skew` (``0.0`` if fewer than 3 values)."""
    ctx = _ensure_ctx(ctx, x)
    arr, _ = _clean(x, ctx)
    if arr.size <= 2 or np.all(arr == arr[0]):
        return 0.0
    return float(sp_skew(arr, bias=False))  # type: ignore[arg-type]


def kurtosis(x: np.ndarray, ctx: StatsContext) -> float:
    """Unbiased excess kurtosis via :func:`scipy.stats.kurtosis` (``0.0`` if fewer than 4 values)."""
    ctx = _ensure_ctx(ctx, x)
    arr, _ = _clean(x, ctx)
    if arr.size <= 3 or np.all(arr == arr[0]):
        return 0.0
    return float(sp_kurtosis(arr, fisher=True, bias=False))  # type: ignore[arg-type]


def ci_mean(x: np.ndarray, ctx: StatsContext) -> dict[str, float | str]:
    r"""
    Parametric CI for :math:`\mathbb{E}[X]` using z/t critical values.

    With :math:`SE = s/\sqrt{n_\text{eff}}` the interval is

    .. math::
       \bar X \pm c \cdot SE,

    where :math:`c` is selected by :func:`catrisk.utils.autocrit`.

    Returns
    -------
    dict[str, float | str]
        Keys ``confidence``, ``method``, ``low``, ``high`` and, when
        :math:`n_\text{eff} \ge 2`, ``se`` and ``crit``.
    """
    ctx = _ensure_ctx(ctx, x)
    arr, finite = _clean(x, ctx)
    n_eff = ctx.eff_n(observed_len=arr.size, finite_count=finite)
    if arr.size == 0 or n_eff < 2:
        return {
            "confidence": ctx.confidence,
            "method": str(getattr(ctx.ci_method, "value", ctx.ci_method)),
            "low": float("nan"),
            "high": float("nan"),
        }

    mu = float(np.mean(arr))
    s = float(np.std(arr, ddof=ctx.ddof))
    # degenerate data -> zero SE -> CI collapses to point
    se = s / np.sqrt(n_eff) if s > 0.0 else 0.0
    crit, method = autocrit(ctx.confidence, n_eff, ctx.ci_method)
    return {
        "confidence": ctx.confidence,
        "method": method,
        "se": float(se),
        "crit": float(crit),
        "low": float(mu - crit * se),
        "high": float(mu + crit * se),
    }


def loss_probability(x: np.ndarray, ctx: StatsContext) -> float:
    r"""
    Share of paths with a strictly positive value, :math:`\Pr(X > 0)`.

    Examples
    --------
    >>> loss_probability(np.array([0.0, 0.0, 5.0, 1.0]), {})
    0.5
    """
    ctx = _ensure_ctx(ctx, x)
    arr, _ = _clean(x, ctx)
    return float(np.mean(arr > 0.0)) if arr.size else float("nan")


def exceedance_probability(x: np.ndarray, ctx: StatsContext) -> float:
    r"""
    Empirical :math:`\Pr(X > \text{target})`.

    With aggregate losses and ``target`` set to a layer's attachment point
    this is the attachment probability.
    """
    ctx = _ensure_ctx(ctx, x)
    if ctx.target is None:
        raise ValueError("exceedance_probability requires ctx.target")
    arr, _ = _clean(x, ctx)
    return float(np.mean(arr > ctx.target)) if arr.size else float("nan")


def tail_mean(x: np.ndarray, ctx: StatsContext) -> float:
    r"""
    Mean of the worst :math:`1 - \text{confidence}` share of the sample (TVaR).

    .. math::
       \operatorname{TVaR}_c(X) = \mathbb{E}\left[X \mid X \ge \operatorname{VaR}_c(X)\right]

    Examples
    --------
    >>> tail_mean(np.arange(1.0, 11.0), {"confidence": 0.8})
    9.5
    """
    ctx = _ensure_ctx(ctx, x)
    arr, _ = _clean(x, ctx)
    if arr.size == 0:
        return float("nan")
    var = np.percentile(arr, 100.0 * ctx.confidence)
    return float(np.mean(arr[arr >= var]))


def build_default_engine(include_tail: bool = True) -> StatsEngine:
    r"""
    Construct a :class:`StatsEngine` with a practical set of loss metrics.

    Parameters
    ----------
    include_tail : bool, default True
        Include :func:`loss_probability`, :func:`exceedance_probability` and :func:`tail_mean`.

    Returns
    -------
    StatsEngine
    """
    metrics: list[Metric] = [
        FnMetric[float]("mean", mean, "Sample mean"),
        FnMetric[float]("std", std, "Sample standard deviation"),
        FnMetric[dict[int, float]]("percentiles", percentiles, "Percentiles over the sample"),
        FnMetric[float]("skew", skew, "Fisher skewness (unbiased)"),
        FnMetric[float]("kurtosis", kurtosis, "Excess kurtosis (unbiased)"),
        FnMetric[dict[str, float | str]]("ci_mean", ci_mean, "z/t CI for the mean"),
    ]
    if include_tail:
        metrics.extend(
            [
                FnMetric[float]("loss_probability", loss_probability, "P(X > 0)"),
                FnMetric[float]("exceedance_probability", exceedance_probability, "P(X > target)"),
                FnMetric[float]("tail_mean", tail_mean, "Tail mean beyond the confidence quantile"),
            ]
        )
    return StatsEngine(metrics)


# Build a default engine at import time
DEFAULT_ENGINE = build_default_engine()

__all__ = [
    "NanPolicy",
    "CIMethod",
    "StatsContext",
    "Metric",
    "FnMetric",
    "StatsEngine",
    "mean",
    "std",
    "percentiles",
    "skew",
    "kurtosis",
    "ci_mean",
    "loss_probability",
    "exceedance_probability",
    "tail_mean",
    "build_default_engine",
    "DEFAULT_ENGINE",
]
