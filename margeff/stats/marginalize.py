"""
Marginal posterior draws via the law of total expectation.

For every posterior draw d and every combination r of retained predictor
levels,

    E_d[y | r] = sum_c w(c) * E_d[y | r, c] / sum_c w(c)

where c runs over every combination of the marginalized predictors' levels
and w(c) is the product of the per-predictor population weights.  Draws are
never mixed: each output row is computed from the samples of a single draw,
so the output is itself a set of posterior draws and can be summarized or
differenced like any other.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from margeff.core.errors import IncompleteGridError
from margeff.core.grid import PosteriorGrid, level_order
from margeff.stats.weights import resolve_weights


def _as_list(names) -> list[str]:
    if names is None:
        return []
    if isinstance(names, str):
        return [names]
    return list(names)


def _as_grid(samples, draw_col: str, value_col: str) -> PosteriorGrid:
    if isinstance(samples, PosteriorGrid):
        return samples
    return PosteriorGrid(draws=samples, draw_col=draw_col, value_col=value_col)


def check_complete_grid(
    frame: pd.DataFrame,
    draw_col: str,
    retain: Sequence[str],
    out_levels: Mapping[str, Sequence],
) -> None:
    """
    Raise IncompleteGridError unless every draw holds every required cell.

    A cell is required when its retained levels occur anywhere in ``frame``
    and its marginalized levels are any combination of ``out_levels``.
    """
    keys = [draw_col] + list(retain) + list(out_levels)

    expected = pd.DataFrame({draw_col: pd.unique(frame[draw_col])})
    if retain:
        expected = expected.merge(frame[list(retain)].drop_duplicates(), how="cross")
    for factor, levels in out_levels.items():
        expected = expected.merge(pd.DataFrame({factor: list(levels)}), how="cross")

    # Every observed row is one of the expected cells, so equal counts
    # (with no repeats, enforced by PosteriorGrid) means nothing is missing.
    if len(expected) == len(frame):
        return

    present = pd.MultiIndex.from_frame(frame[keys])
    wanted = pd.MultiIndex.from_frame(expected[keys])
    missing = wanted[~wanted.isin(present)]
    first = dict(zip(keys, missing[0]))
    draw = first.pop(draw_col)
    n_draws_hit = missing.get_level_values(draw_col).nunique()
    raise IncompleteGridError(
        f"{len(missing)} required cells are missing across {n_draws_hit} draws; "
        f"first missing at draw {draw!r}, cell {first}. Marginalization "
        f"needs every cell for every draw.",
        draw=draw,
        cell=first,
        n_missing=len(missing),
    )


def marginalize(
    samples,
    retain,
    marginalize_out=None,
    weights: Optional[Mapping[str, Mapping]] = None,
    *,
    draw_col: str = "draw",
    value_col: str = "value",
) -> pd.DataFrame:
    """
    Average conditional-expectation draws over the levels of some predictors.

    Parameters
    ----------
    samples : PosteriorGrid or pd.DataFrame
        Long table with one row per (draw, cell).  For a DataFrame, every
        column other than ``draw_col`` and ``value_col`` is a predictor.
    retain : str or sequence of str
        Predictors kept distinct in the output.  May be empty, giving one
        grand average per draw.
    marginalize_out : sequence of str, optional
        Predictors to average over.  Defaults to every predictor not in
        ``retain``.
    weights : dict, optional
        ``{predictor: {level: proportion}}``.  Predictors without an entry
        get uniform weights.  Jointly marginalized predictors are assumed
        independent: a cell's weight is the product of its level weights.
    draw_col, value_col : str
        Column names, used only when ``samples`` is a DataFrame.

    Returns
    -------
    pd.DataFrame
        Columns ``(draw_col, *retain, value_col)``, one row per
        (draw, retained combination), sorted by draw and retained levels.

    Raises
    ------
    IncompleteGridError
        A draw lacks a required cell or repeats one.
    InvalidWeightError
        Weights are negative, do not sum to 1, or name unknown levels.

    Examples
    --------
    >>> marginalize(grid, retain="A")                            # uniform over B
    >>> marginalize(grid, retain="A", weights={"B": {"b1": 0.8, "b2": 0.2}})
    """
    grid = _as_grid(samples, draw_col, value_col)
    frame, draw_col, value_col = grid.draws, grid.draw_col, grid.value_col
    factors = grid.factors

    retain = _as_list(retain)
    unknown = [f for f in retain if f not in factors]
    if unknown:
        raise ValueError(f"Unknown factors {unknown} in retain. Choose from {factors}")
    if len(set(retain)) != len(retain):
        raise ValueError(f"retain lists a factor more than once: {retain}")

    if marginalize_out is None:
        out = [f for f in factors if f not in retain]
    else:
        out = _as_list(marginalize_out)
        unknown = [f for f in out if f not in factors]
        if unknown:
            raise ValueError(
                f"Unknown factors {unknown} in marginalize_out. Choose from {factors}"
            )
        overlap = [f for f in out if f in retain]
        if overlap:
            raise ValueError(f"Factors {overlap} are both retained and marginalized out.")
        uncovered = [f for f in factors if f not in retain and f not in out]
        if uncovered:
            raise ValueError(
                f"Factors {uncovered} are neither retained nor marginalized out; "
                f"every predictor in the grid must be one or the other."
            )

    if frame.empty:
        return pd.DataFrame(columns=[draw_col] + retain + [value_col])

    out_levels = {f: level_order(frame[f]) for f in out}
    resolved = resolve_weights(weights, out_levels)
    check_complete_grid(frame, draw_col, retain, out_levels)

    cell_weight = np.ones(len(frame))
    for factor in out:
        cell_weight *= frame[factor].astype(object).map(resolved[factor]).to_numpy(dtype=float)

    work = frame[[draw_col] + retain].copy()
    work["_wsum"] = frame[value_col].to_numpy(dtype=float) * cell_weight
    work["_wtotal"] = cell_weight

    totals = work.groupby([draw_col] + retain, sort=True, observed=True)[["_wsum", "_wtotal"]].sum()
    result = (totals["_wsum"] / totals["_wtotal"]).rename(value_col).reset_index()
    return result
