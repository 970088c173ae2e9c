"""
Posterior summaries for draws tables.

Collapses any table of posterior draws (conditional, marginal or
differences) to one row per group: mean, median, sd, a credible interval and
the probability that the quantity is positive.  Report distributions, not
point estimates: the interval and P(>0) are the headline numbers.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from margeff.core.grid import PosteriorGrid, factor_columns

DEFAULT_HDI_PROB = 0.94
MIN_RELIABLE_DRAWS = 400

_INTERVALS = ("eti", "hdi")


def _require_arviz():
    """Import ArviZ, raising a clear error if not installed."""
    try:
        import arviz as az  # noqa: PLC0415
    except ImportError as exc:
        raise ImportError(
            "ArviZ is required for highest-density intervals.\n\n"
            "Install it with:\n\n"
            "    pip install margeff[bayesian]\n\n"
            "or use interval='eti' for an equal-tailed interval.\n"
        ) from exc
    return az


@dataclass
class PosteriorSummary:
    """
    Output of :func:`summarize`.

    Attributes
    ----------
    table : pd.DataFrame
        One row per group with columns ``(*by, mean, median, sd, lower,
        upper, prob_positive, n_draws)``.
    prob : float
        Probability mass of the credible interval.
    interval : str
        ``"eti"`` (equal-tailed) or ``"hdi"`` (highest density).
    by : list of str
        Grouping columns.
    """

    table: pd.DataFrame
    prob: float = DEFAULT_HDI_PROB
    interval: str = "eti"
    by: list = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.table)

    def row(self, **levels) -> pd.Series:
        """The summary row matching the given group levels."""
        mask = np.ones(len(self.table), dtype=bool)
        for col, lvl in levels.items():
            if col not in self.by:
                raise ValueError(f"'{col}' is not a grouping column. Choose from {self.by}")
            mask &= (self.table[col] == lvl).to_numpy()
        if mask.sum() != 1:
            raise KeyError(f"{int(mask.sum())} summary rows match {levels}")
        return self.table.loc[mask].iloc[0]

    def __repr__(self) -> str:
        pct = int(round(self.prob * 100))
        kind = self.interval.upper()
        width = 72
        lines = [
            f"{'─' * width}",
            f"  Posterior summary   ({pct}% {kind})",
            f"{'─' * width}",
        ]
        for _, r in self.table.iterrows():
            label = ", ".join(f"{c}={r[c]}" for c in self.by) or "(all)"
            lines.append(
                f"  {label:<28} {r['mean']:+.4f}  "
                f"[{r['lower']:+.4f}, {r['upper']:+.4f}]  "
                f"P(>0)={r['prob_positive']:.3f}"
            )
        lines.append(f"{'─' * width}")
        lines.append(f"  Draws per group: {int(self.table['n_draws'].min())}"
                     if len(self.table) else "  No draws.")
        lines.append(f"{'─' * width}")
        return "\n".join(lines)


def _interval(x: np.ndarray, prob: float, interval: str) -> tuple[float, float]:
    if interval == "hdi":
        az = _require_arviz()
        lo, hi = np.asarray(az.hdi(x, hdi_prob=prob), dtype=float)
        return float(lo), float(hi)
    alpha = 1.0 - prob
    lo, hi = np.quantile(x, [alpha / 2, 1 - alpha / 2])
    return float(lo), float(hi)


def summarize(
    draws,
    by: Optional[Sequence[str]] = None,
    *,
    prob: float = DEFAULT_HDI_PROB,
    interval: str = "eti",
    draw_col: str = "draw",
    value_col: str = "value",
) -> PosteriorSummary:
    """
    Summarize posterior draws per group.

    Parameters
    ----------
    draws : pd.DataFrame or PosteriorGrid
        Any draws table: output of ``marginalize``, ``difference_by_level``,
        or the conditional grid itself.
    by : sequence of str, optional
        Grouping columns.  Defaults to every column other than the draw and
        value columns.
    prob : float
        Credible-interval mass.  Default 0.94.
    interval : str
        ``"eti"`` for the equal-tailed percentile interval (default) or
        ``"hdi"`` for the highest-density interval (needs ArviZ).

    Returns
    -------
    PosteriorSummary
    """
    if isinstance(draws, PosteriorGrid):
        frame, draw_col, value_col = draws.draws, draws.draw_col, draws.value_col
    else:
        frame = draws

    if interval not in _INTERVALS:
        raise ValueError(f"Unknown interval '{interval}'. Choose from {list(_INTERVALS)}")
    if not 0 < prob < 1:
        raise ValueError("prob must be in (0, 1).")
    if value_col not in frame.columns:
        raise ValueError(f"draws table has no '{value_col}' column.")

    by = factor_columns(frame, draw_col, value_col) if by is None else list(by)
    missing = [c for c in by if c not in frame.columns]
    if missing:
        raise ValueError(f"Unknown grouping columns {missing}.")

    groups = frame.groupby(by, sort=False, observed=True) if by else [((), frame)]

    rows = []
    for key, group in groups:
        key = key if isinstance(key, tuple) else (key,)
        x = group[value_col].to_numpy(dtype=float)
        lower, upper = _interval(x, prob, interval)
        row = dict(zip(by, key))
        row.update(
            mean=float(np.mean(x)),
            median=float(np.median(x)),
            sd=float(np.std(x, ddof=1)) if len(x) > 1 else float("nan"),
            lower=lower,
            upper=upper,
            prob_positive=float(np.mean(x > 0)),
            n_draws=len(x),
        )
        rows.append(row)

    columns = by + ["mean", "median", "sd", "lower", "upper", "prob_positive", "n_draws"]
    table = pd.DataFrame(rows, columns=columns)

    if len(table) and table["n_draws"].min() < MIN_RELIABLE_DRAWS:
        warnings.warn(
            f"Only {int(table['n_draws'].min())} draws in some groups; interval "
            f"endpoints carry large Monte Carlo error below {MIN_RELIABLE_DRAWS}.",
            stacklevel=2,
        )

    return PosteriorSummary(table=table, prob=prob, interval=interval, by=by)


def report(draws, **kwargs) -> str:
    """
    Print a human-readable posterior summary and return it as a string.

    Takes the same arguments as :func:`summarize`.
    """
    output = repr(summarize(draws, **kwargs))
    print(output)
    return output
