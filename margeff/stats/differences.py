"""
Pairwise differences between the levels of one retained predictor.

Given marginal draws E_d[y | A=a, ...], produce for every draw d, every
combination of the other retained predictors, and every unordered pair of
levels (earlier, later) in a fixed ordering:

    diff_d = E_d[y | A=later, ...] - E_d[y | A=earlier, ...]

Differences are formed inside a draw, so their distribution is the posterior
of the contrast and carries the correlation between the two marginals.
"""

from __future__ import annotations

import warnings
from itertools import combinations
from typing import Optional, Sequence

import pandas as pd

from margeff.core.errors import IncompleteGridError, InsufficientLevelsError
from margeff.core.grid import PosteriorGrid, factor_columns, level_order


def _resolve_ordering(present: list, ordering: Optional[Sequence], factor: str) -> list:
    if ordering is None:
        return present

    ordering = list(ordering)
    if len(set(ordering)) != len(ordering):
        raise ValueError(f"ordering for '{factor}' repeats a level: {ordering}")

    present_set = set(present)
    left_out = [lvl for lvl in present if lvl not in set(ordering)]
    if left_out:
        raise ValueError(
            f"ordering for '{factor}' leaves out levels present in the data: {left_out}"
        )
    unused = [lvl for lvl in ordering if lvl not in present_set]
    if unused:
        warnings.warn(
            f"Levels {unused} of '{factor}' are not in the data and are ignored.",
            stacklevel=3,
        )
    return [lvl for lvl in ordering if lvl in present_set]


def difference_by_level(
    marginal,
    factor: str,
    ordering: Optional[Sequence] = None,
    *,
    draw_col: str = "draw",
    value_col: str = "value",
) -> pd.DataFrame:
    """
    Per-draw pairwise differences between levels of ``factor``.

    Parameters
    ----------
    marginal : pd.DataFrame or PosteriorGrid
        Output of :func:`margeff.stats.marginalize.marginalize`: one row per
        (draw, retained combination).
    factor : str
        Retained predictor whose levels are compared.
    ordering : sequence, optional
        Level order.  Each pair is reported as (later - earlier).  Defaults to
        the natural order of the levels present (category order for
        categoricals, sorted otherwise).

    Returns
    -------
    pd.DataFrame
        Columns ``(draw_col, *other_retained, "contrast", "level",
        "baseline", value_col)`` with ``value = E[y | level] - E[y | baseline]``
        and one row per (draw, other combination, level pair).

    Raises
    ------
    InsufficientLevelsError
        Fewer than two levels of ``factor`` are present.
    IncompleteGridError
        A (draw, other combination) lacks a level or repeats one.
    """
    if isinstance(marginal, PosteriorGrid):
        frame, draw_col, value_col = marginal.draws, marginal.draw_col, marginal.value_col
    else:
        frame = marginal

    for col in (draw_col, value_col):
        if col not in frame.columns:
            raise ValueError(f"marginal draws have no '{col}' column.")
    factors = factor_columns(frame, draw_col, value_col)
    if factor not in factors:
        raise ValueError(f"Unknown factor '{factor}'. Choose from {factors}")
    others = [f for f in factors if f != factor]

    present = level_order(frame[factor])
    order = _resolve_ordering(present, ordering, factor)
    if len(order) < 2:
        raise InsufficientLevelsError(
            f"'{factor}' has {len(order)} level(s) {order}; pairwise differences "
            f"need at least 2.",
            factor=factor, levels=order,
        )

    keys = [draw_col] + others
    dup = frame.duplicated(keys + [factor])
    if dup.any():
        first = frame.loc[dup].iloc[0]
        raise IncompleteGridError(
            f"{int(dup.sum())} rows repeat a (draw, {factor}) combination; first at "
            f"draw {first[draw_col]!r}, {factor}={first[factor]!r}.",
            draw=first[draw_col],
            cell={f: first[f] for f in factors},
            n_duplicated=int(dup.sum()),
        )

    wide = frame.set_index(keys + [factor])[value_col].unstack(factor)
    wide = wide.reindex(columns=order)
    gaps = wide.isna()
    if gaps.any().any():
        row_pos, col_pos = next(zip(*gaps.to_numpy().nonzero()))
        where = dict(zip(keys, wide.index[row_pos] if len(keys) > 1 else (wide.index[row_pos],)))
        draw = where.pop(draw_col)
        where[factor] = order[col_pos]
        raise IncompleteGridError(
            f"{int(gaps.to_numpy().sum())} marginal draws are missing; first at "
            f"draw {draw!r}, cell {where}.",
            draw=draw,
            cell=where,
            n_missing=int(gaps.to_numpy().sum()),
        )

    index = wide.index.to_frame(index=False)
    pieces = []
    for pair_no, ((i, earlier), (j, later)) in enumerate(combinations(enumerate(order), 2)):
        piece = index.copy()
        piece["contrast"] = f"{later} - {earlier}"
        piece["level"] = later
        piece["baseline"] = earlier
        piece[value_col] = (wide.iloc[:, j] - wide.iloc[:, i]).to_numpy()
        piece["_pair"] = pair_no
        pieces.append(piece)

    result = pd.concat(pieces, ignore_index=True)
    result = result.sort_values(keys + ["_pair"]).drop(columns="_pair")
    return result.reset_index(drop=True)
