r"""
Critical values for confidence intervals.

Functions
    :func:`z_crit`: two-sided normal critical value
    :func:`t_crit`: two-sided Student-t critical value
    :func:`autocrit`: choose between the two from the sample size
"""

from __future__ import annotations

from scipy.stats import norm
from scipy.stats import t as student_t

__all__ = ["z_crit", "t_crit", "autocrit"]

# Below this effective sample size the t distribution is preferred
_T_SWITCH = 30


def z_crit(confidence: float) -> float:
    r"""
    Two-sided normal critical value :math:`z_{1-\alpha/2}`.

    Parameters
    ----------
    confidence : float
        Confidence level in :math:`(0, 1)`.

    Returns
    -------
    float

    Examples
    --------
    >>> round(z_crit(0.95), 3)
    1.96
    """
    if not 0.0 < confidence < 1.0:
        raise ValueError("confidence must be in (0,1)")
    return float(norm.ppf(0.5 + confidence / 2.0))


def t_crit(confidence: float, df: int) -> float:
    r"""
    Two-sided Student-t critical value :math:`t_{1-\alpha/2,\,df}`.

    Parameters
    ----------
    confidence : float
        Confidence level in :math:`(0, 1)`.
    df : int
        Degrees of freedom, at least 1.

    Returns
    -------
    float
    """
    if not 0.0 < confidence < 1.0:
        raise ValueError("confidence must be in (0,1)")
    if df < 1:
        raise ValueError("df must be >= 1")
    return float(student_t.ppf(0.5 + confidence / 2.0, df))


def autocrit(confidence: float, n: int, method: str = "auto") -> tuple[float, str]:
    r"""
    Select a critical value for a mean CI.

    Parameters
    ----------
    confidence : float
        Confidence level in :math:`(0, 1)`.
    n : int
        Effective sample size.
    method : {"auto", "z", "t"}, default ``"auto"``
        ``"auto"`` uses t when ``n < 30`` and z otherwise.

    Returns
    -------
    tuple of (float, str)
        Critical value and the resolved method name (``"z"`` or ``"t"``).
    """
    method = getattr(method, "value", method)
    if method == "z":
        return z_crit(confidence), "z"
    if method == "t":
        return t_crit(confidence, max(1, n - 1)), "t"
    if method == "auto":
        if n < _T_SWITCH:
            return t_crit(confidence, max(1, n - 1)), "t"
        return z_crit(confidence), "z"
    raise ValueError(f"Unknown CI method: {method}")
