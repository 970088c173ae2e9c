"""
margeff.datasets.synthetic
==========================

Synthetic binary-outcome data with categorical predictors.

The data-generating process is a logistic regression on the full cross of
factor levels:

    logit Pr[y = 1 | A=a, B=b] = intercept + effect_A[a] + effect_B[b]

so the true conditional and marginal expectations are known exactly and a
fitted model's marginal draws can be checked against them.

Available helpers
-----------------
  logistic_cell_probs()        : true Pr[y = 1 | cell] for every cell
  simulate_binary_outcomes()   : n_per_cell Bernoulli draws per cell
  two_factor_example()         : 2 x 2 design, 40 observations per cell
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import product
from typing import Mapping, Optional

import numpy as np
import pandas as pd
from scipy.special import expit

from margeff.stats.marginalize import marginalize


@dataclass
class SyntheticDataset:
    """
    Simulated observations plus the truth they were drawn from.

    Attributes
    ----------
    data : pd.DataFrame
        One row per observation: one column per factor and a binary ``y``.
    cell_probs : pd.DataFrame
        One row per cell: one column per factor and the true probability ``p``.
    factors : list of str
    n_per_cell : int
    seed : int
    """

    data: pd.DataFrame
    cell_probs: pd.DataFrame
    factors: list
    n_per_cell: int
    seed: int

    @property
    def n_obs(self) -> int:
        return len(self.data)

    def cell_counts(self) -> pd.DataFrame:
        """Successes and trials per cell, the sufficient statistics of the model."""
        grouped = self.data.groupby(self.factors, sort=True, observed=True)["y"]
        return grouped.agg(successes="sum", trials="count").reset_index()

    def true_marginal(self, retain, weights: Optional[Mapping] = None) -> pd.DataFrame:
        """True E[y | retained levels], as a single pseudo-draw ``0``."""
        truth = self.cell_probs.rename(columns={"p": "value"})
        truth.insert(0, "draw", 0)
        return marginalize(truth, retain, weights=weights)

    def __repr__(self) -> str:
        levels = " x ".join(str(self.data[f].nunique()) for f in self.factors)
        return (
            f"SyntheticDataset({levels} cells, "
            f"{self.n_per_cell} obs/cell, {self.n_obs} obs, seed={self.seed})"
        )


def logistic_cell_probs(
    intercept: float,
    effects: Mapping[str, Mapping],
) -> pd.DataFrame:
    """
    True success probability for every cell of the cross of ``effects``.

    Parameters
    ----------
    intercept : float
        Log-odds at the reference cell.
    effects : dict
        ``{factor: {level: log_odds_shift}}``.  Factor order and level order
        are kept in the output.

    Returns
    -------
    pd.DataFrame
        Columns ``(*factors, "p")``.
    """
    if not effects:
        raise ValueError("effects must name at least one factor.")
    factors = list(effects)
    rows = []
    for cell in product(*(list(effects[f]) for f in factors)):
        eta = intercept + sum(effects[f][lvl] for f, lvl in zip(factors, cell))
        rows.append(cell + (float(expit(eta)),))
    return pd.DataFrame(rows, columns=factors + ["p"])


def simulate_binary_outcomes(
    cell_probs: pd.DataFrame,
    n_per_cell: int = 40,
    seed: int = 42,
) -> SyntheticDataset:
    """
    Draw ``n_per_cell`` Bernoulli outcomes for every cell.

    Parameters
    ----------
    cell_probs : pd.DataFrame
        Output of :func:`logistic_cell_probs`, or any table with one column
        per factor and a probability column ``p``.
    n_per_cell : int
        Observations per cell.  Default 40.
    seed : int
        RNG seed for reproducibility.
    """
    if "p" not in cell_probs.columns:
        raise ValueError("cell_probs needs a 'p' column of success probabilities.")
    if n_per_cell < 1:
        raise ValueError(f"n_per_cell must be at least 1, got {n_per_cell}.")
    p = cell_probs["p"].to_numpy(dtype=float)
    if not np.all((p >= 0) & (p <= 1)):
        raise ValueError("cell probabilities must lie in [0, 1].")

    factors = [c for c in cell_probs.columns if c != "p"]
    rng = np.random.default_rng(seed)

    cells = cell_probs[factors].reset_index(drop=True)
    data = cells.loc[cells.index.repeat(n_per_cell)].reset_index(drop=True)
    data["y"] = rng.binomial(1, np.repeat(p, n_per_cell))

    return SyntheticDataset(
        data=data,
        cell_probs=cell_probs.reset_index(drop=True).copy(),
        factors=factors,
        n_per_cell=n_per_cell,
        seed=seed,
    )


def two_factor_example(n_per_cell: int = 40, seed: int = 42) -> SyntheticDataset:
    """2 x 2 design: factors A (a1, a2) and B (b1, b2), 40 observations per cell."""
    probs = logistic_cell_probs(
        intercept=-0.5,
        effects={"A": {"a1": 0.0, "a2": 1.0}, "B": {"b1": 0.0, "b2": 0.5}},
    )
    return simulate_binary_outcomes(probs, n_per_cell=n_per_cell, seed=seed)
