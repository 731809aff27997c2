r"""Parametric Poisson-frequency, Beta-severity catastrophe model.

Events arrive as a Poisson process with rate :math:`\lambda` per year. Each
event's loss is :math:`L = \text{max\_loss} \cdot B` with
:math:`B \sim \mathrm{Beta}(\alpha, \beta)`, synthesised from two Gamma draws

.. math::
   B = \frac{X}{X + Y}, \qquad X \sim \Gamma(\alpha, 1),\; Y \sim \Gamma(\beta, 1).
"""

from __future__ import annotations

import datetime as dt
import logging
import math
from typing import Optional

import numpy as np

from ..core import CatEvent, CatRisk, CatSimulation, Path
from ..dates import DAYS_PER_YEAR, add_days, days_between
from ..errors import InvalidInputError, NumericError

logger = logging.getLogger(__name__)

__all__ = ["BetaRisk", "BetaRiskSimulation"]


class BetaRiskSimulation(CatSimulation):
    r"""
    Draw Poisson/Beta loss paths over ``[start, end]``.

    Parameters
    ----------
    start, end : date
        Reference window of :math:`D` days and :math:`T = D / 365` years.
    max_loss : float
        Loss scale; every severity lies in ``[0, max_loss]``.
    lam : float
        Event rate per year.
    alpha, beta : float
        Beta shape parameters.
    seed : int, optional
        Seed for this simulation's :class:`numpy.random.Generator`.

    Notes
    -----
    Arrival times accumulate exponential gaps until they reach :math:`T`. An
    arrival at :math:`t` years lands on ``start + round(t * D / T)`` days, so
    dates never leave the window. The generator is never reset between paths.
    """

    stochastic = True

    def __init__(
        self,
        start: dt.date,
        end: dt.date,
        max_loss: float,
        lam: float,
        alpha: float,
        beta: float,
        seed: Optional[int] = None,
        name: str = "BetaRisk",
    ):
        super().__init__(start, end, name)
        self.rng = np.random.default_rng()
        self.max_loss = max_loss
        self.lam = lam
        self.alpha = alpha
        self.beta = beta
        self.day_count = days_between(start, end)
        self.year_fraction = self.day_count / DAYS_PER_YEAR
        if seed is not None:
            self.set_seed(seed)

    def generate_beta(self) -> float:
        r"""
        Draw one severity :math:`\text{max\_loss} \cdot X / (X + Y)`.

        Raises
        ------
        NumericError
            If both Gamma draws are zero.
        """
        x = self.rng.standard_gamma(self.alpha)
        y = self.rng.standard_gamma(self.beta)
        total = x + y
        if total == 0.0:
            raise NumericError(f"Degenerate Beta draw: Gamma({self.alpha}) + Gamma({self.beta}) == 0")
        return float(self.max_loss * x / total)

    def next_path(self, path: Path) -> bool:
        path.clear()
        scale = 1.0 / self.lam
        t = 0.0
        while True:
            t += self.rng.exponential(scale)
            if t >= self.year_fraction:
                break
            offset = math.floor(t * self.day_count / self.year_fraction + 0.5)
            path.append(CatEvent(add_days(self.start, offset), self.generate_beta()))
        return True


class BetaRisk(CatRisk):
    r"""
    Catastrophe model with Poisson frequency and scaled-Beta severity.

    Parameters
    ----------
    max_loss : float
        Largest possible single-event loss, ``> 0``.
    years : float
        Mean return period in years, ``> 0``; the event rate is ``1 / years``.
    mean : float
        Mean single-event loss, ``0 < mean < max_loss``.
    std_dev : float
        Standard deviation of the per-period loss, ``> 0``.
    name : str, default ``"BetaRisk"``

    Notes
    -----
    With :math:`\lambda = 1/\text{years}`, :math:`m = \text{mean}/\text{max\_loss}`
    and :math:`v = (\text{std\_dev}/\text{max\_loss})^2 \lambda`, the shape
    parameters are

    .. math::
       \alpha = \Big(\frac{1 - m}{v} - \frac{1}{m}\Big) m^2, \qquad
       \beta = \alpha \Big(\frac{1}{m} - 1\Big).

    Raises
    ------
    InvalidInputError
        If a parameter is out of range or the moments are not reachable by a
        scaled Beta (non-positive :math:`\alpha` or :math:`\beta`).

    Examples
    --------
    >>> model = BetaRisk(max_loss=1e9, years=1, mean=1e7, std_dev=1e7)
    >>> round(model.alpha, 4), round(model.beta, 4)
    (0.98, 97.02)
    """

    def __init__(
        self,
        max_loss: float,
        years: float,
        mean: float,
        std_dev: float,
        name: str = "BetaRisk",
    ):
        if max_loss <= 0:
            raise InvalidInputError(f"max_loss must be positive, got {max_loss}")
        if years <= 0:
            raise InvalidInputError(f"years must be positive, got {years}")
        if std_dev <= 0:
            raise InvalidInputError(f"std_dev must be positive, got {std_dev}")
        if not 0 < mean < max_loss:
            raise InvalidInputError(f"mean {mean} of the loss distribution must lie in (0, {max_loss})")

        self.name = name
        self.max_loss = float(max_loss)
        self.lam = 1.0 / years
        m = mean / max_loss
        v = (std_dev / max_loss) ** 2 * self.lam
        self.alpha = ((1.0 - m) / v - 1.0 / m) * m * m
        self.beta = self.alpha * (1.0 / m - 1.0)
        if self.alpha <= 0 or self.beta <= 0:
            raise InvalidInputError(
                f"Standard deviation {std_dev} is not reachable by a Beta distribution with mean {mean} "
                f"(alpha={self.alpha}, beta={self.beta})"
            )
        logger.debug(f"BetaRisk '{name}': lambda={self.lam}, alpha={self.alpha}, beta={self.beta}")

    @property
    def severity_mean(self) -> float:
        r"""Expected single-event loss :math:`\text{max\_loss}\,\alpha/(\alpha+\beta)`."""
        return self.max_loss * self.alpha / (self.alpha + self.beta)

    @property
    def severity_variance(self) -> float:
        r"""Single-event loss variance :math:`\text{max\_loss}^2\,\alpha\beta/((\alpha+\beta)^2(\alpha+\beta+1))`."""
        s = self.alpha + self.beta
        return self.max_loss**2 * self.alpha * self.beta / (s * s * (s + 1.0))

    def _simulation(self, start: dt.date, end: dt.date) -> BetaRiskSimulation:
        return BetaRiskSimulation(start, end, self.max_loss, self.lam, self.alpha, self.beta, name=self.name)
