"""
margeff: marginal effects from posterior draws.

A fitted model gives you E[y | every predictor].  The question you usually
care about is E[y | one predictor], averaged over a population.  This
library does that averaging draw by draw, so the answer stays a posterior.
"""

from margeff.core.grid import PosteriorGrid
from margeff.core.errors import (
    MarginalEffectsError,
    IncompleteGridError,
    InvalidWeightError,
    InsufficientLevelsError,
)
from margeff.stats.marginalize import marginalize
from margeff.stats.differences import difference_by_level
from margeff.stats.weights import uniform_weights, weights_from_counts
from margeff.stats.summary import summarize, report, PosteriorSummary

# Synthetic data for worked examples
from margeff.datasets.synthetic import (
    SyntheticDataset,
    logistic_cell_probs,
    simulate_binary_outcomes,
    two_factor_example,
)

__version__ = "0.1.0"
__all__ = [
    # Core
    "PosteriorGrid",
    # Errors
    "MarginalEffectsError", "IncompleteGridError",
    "InvalidWeightError", "InsufficientLevelsError",
    # Stats
    "marginalize", "difference_by_level",
    "uniform_weights", "weights_from_counts",
    "summarize", "report", "PosteriorSummary",
    # Datasets
    "SyntheticDataset", "logistic_cell_probs",
    "simulate_binary_outcomes", "two_factor_example",
]
