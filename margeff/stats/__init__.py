from margeff.stats.weights import uniform_weights, weights_from_counts, validate_weights, WEIGHT_TOLERANCE
from margeff.stats.marginalize import marginalize, check_complete_grid
from margeff.stats.differences import difference_by_level
from margeff.stats.summary import summarize, report, PosteriorSummary

__all__ = [
    "uniform_weights", "weights_from_counts", "validate_weights", "WEIGHT_TOLERANCE",
    "marginalize", "check_complete_grid",
    "difference_by_level",
    "summarize", "report", "PosteriorSummary",
]
