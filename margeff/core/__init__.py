from margeff.core.errors import (
    MarginalEffectsError,
    IncompleteGridError,
    InvalidWeightError,
    InsufficientLevelsError,
)
from margeff.core.grid import PosteriorGrid, factor_columns, level_order

__all__ = [
    "MarginalEffectsError", "IncompleteGridError",
    "InvalidWeightError", "InsufficientLevelsError",
    "PosteriorGrid", "factor_columns", "level_order",
]
