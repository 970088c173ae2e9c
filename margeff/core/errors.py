"""
Error taxonomy for margeff.

Every error raised for malformed posterior draws or weights derives from
:class:`MarginalEffectsError`, which is itself a ``ValueError`` so that code
catching ``ValueError`` keeps working.  Each error carries the draw, cell,
factor or level that triggered it where that is known.
"""

from __future__ import annotations

from typing import Any, Optional


class MarginalEffectsError(ValueError):
    """Base class for all margeff input errors."""


class IncompleteGridError(MarginalEffectsError):
    """
    A draw does not hold exactly one sample for every required cell.

    Attributes
    ----------
    draw : object or None
        Draw index where the first problem was found.
    cell : dict or None
        Predictor -> level assignment of the missing (or repeated) cell.
    n_missing : int
        Number of missing cells across all draws.
    n_duplicated : int
        Number of repeated (draw, cell) rows.
    """

    def __init__(
        self,
        message: str,
        draw: Any = None,
        cell: Optional[dict] = None,
        n_missing: int = 0,
        n_duplicated: int = 0,
    ):
        super().__init__(message)
        self.draw = draw
        self.cell = cell
        self.n_missing = n_missing
        self.n_duplicated = n_duplicated


class InvalidWeightError(MarginalEffectsError):
    """
    Population weights for a marginalized predictor are malformed.

    Attributes
    ----------
    factor : str or None
    level : object or None
        The offending level, when a single one can be named.
    """

    def __init__(self, message: str, factor: Optional[str] = None, level: Any = None):
        super().__init__(message)
        self.factor = factor
        self.level = level


class InsufficientLevelsError(MarginalEffectsError):
    """Fewer than two levels are available for a pairwise comparison."""

    def __init__(self, message: str, factor: Optional[str] = None, levels: tuple = ()):
        super().__init__(message)
        self.factor = factor
        self.levels = tuple(levels)
