"""Exception types raised by :mod:`catrisk`."""

from __future__ import annotations

__all__ = ["InvalidInputError", "NumericError"]


class InvalidInputError(ValueError):
    """A model or simulation parameter violates its constraints."""


class NumericError(ArithmeticError):
    """A random draw degenerated (e.g. a zero Gamma sum in Beta synthesis)."""
