"""
PosteriorGrid: the central data structure of margeff.

Holds posterior draws of a conditional expectation E[y | cell] in long form,
one row per (draw, cell), where a cell is one combination of categorical
predictor levels.  Everything downstream (marginalization, level
differences, summaries) works on this table.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from margeff.core.errors import IncompleteGridError


def factor_columns(frame: pd.DataFrame, draw_col: str, value_col: str) -> list[str]:
    """Every column of a draws table that is neither the draw index nor the value."""
    return [c for c in frame.columns if c not in (draw_col, value_col)]


def level_order(series: pd.Series) -> list:
    """
    Natural ordering of the levels present in ``series``.

    Categorical columns keep their category order; anything else is sorted,
    by string form when the levels mix types.
    """
    present = series.unique().tolist()
    if isinstance(series.dtype, pd.CategoricalDtype):
        seen = set(present)
        return [c for c in series.cat.categories if c in seen]
    try:
        return sorted(present)
    except TypeError:
        return sorted(present, key=str)


@dataclass
class PosteriorGrid:
    """
    Posterior draws of E[y | cell] over a grid of categorical predictors.

    Attributes
    ----------
    draws : pd.DataFrame
        Long table with one row per (draw, cell): a draw column, one column
        per predictor and a value column holding E[y | cell] in [0, 1].
    draw_col : str
        Name of the draw index column.
    value_col : str
        Name of the value column.
    outcome : str
        Human-readable name of the outcome, used in reports.
    metadata : dict
        Arbitrary key-value pairs (model formula, sampler settings, etc.).
    """

    draws: pd.DataFrame
    draw_col: str = "draw"
    value_col: str = "value"
    outcome: str = "y"
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        self.draws = pd.DataFrame(self.draws).reset_index(drop=True)

        for col in (self.draw_col, self.value_col):
            if col not in self.draws.columns:
                raise ValueError(
                    f"draws table has no '{col}' column; "
                    f"got columns {list(self.draws.columns)}"
                )
        if not self.factors:
            raise ValueError("draws table needs at least one predictor column.")

        if self.draws[self.factors + [self.draw_col]].isna().any().any():
            raise ValueError("draw indices and predictor levels must not be missing.")

        values = pd.to_numeric(self.draws[self.value_col], errors="raise").astype(float)
        if not np.all(np.isfinite(values)):
            raise ValueError(f"'{self.value_col}' contains non-finite values.")
        if values.min() < 0.0 or values.max() > 1.0:
            raise ValueError(
                f"'{self.value_col}' must hold probabilities in [0, 1], got range "
                f"[{values.min():.4f}, {values.max():.4f}]."
            )
        self.draws[self.value_col] = values

        dup = self.draws.duplicated([self.draw_col] + self.factors)
        if dup.any():
            first = self.draws.loc[dup].iloc[0]
            cell = {f: first[f] for f in self.factors}
            raise IncompleteGridError(
                f"{int(dup.sum())} (draw, cell) rows are repeated; first at "
                f"draw {first[self.draw_col]!r}, cell {cell}.",
                draw=first[self.draw_col],
                cell=cell,
                n_duplicated=int(dup.sum()),
            )

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_array(
        cls,
        values,
        levels: Mapping[str, Sequence],
        draw_ids: Optional[Sequence] = None,
        **kwargs,
    ) -> "PosteriorGrid":
        """
        Build a grid from a dense array of shape (n_draws, n_levels_1, ...).

        The trailing axes follow the insertion order of ``levels``.

        Examples
        --------
        >>> values = [[[0.3, 0.5], [0.7, 0.9]],
        ...           [[0.2, 0.4], [0.6, 0.8]]]
        >>> grid = PosteriorGrid.from_array(values, {"A": ["a1", "a2"], "B": ["b1", "b2"]})
        >>> grid.n_draws, grid.n_cells
        (2, 4)
        """
        draw_col = kwargs.get("draw_col", "draw")
        value_col = kwargs.get("value_col", "value")

        values = np.asarray(values, dtype=float)
        factors = list(levels)
        if values.ndim != len(factors) + 1:
            raise ValueError(
                f"values must have 1 + {len(factors)} axes (draws + one per "
                f"factor), got shape {values.shape}"
            )
        expected = (values.shape[0],) + tuple(len(levels[f]) for f in factors)
        if values.shape != expected:
            raise ValueError(f"values shape {values.shape} does not match levels {expected}")

        n_draws = values.shape[0]
        draw_ids = np.arange(n_draws) if draw_ids is None else list(draw_ids)
        if len(draw_ids) != n_draws:
            raise ValueError(f"got {len(draw_ids)} draw ids for {n_draws} draws")

        index = pd.MultiIndex.from_product(
            [list(draw_ids)] + [list(levels[f]) for f in factors],
            names=[draw_col] + factors,
        )
        frame = pd.DataFrame({value_col: values.reshape(-1)}, index=index).reset_index()
        return cls(draws=frame, **kwargs)

    @classmethod
    def from_inference_data(
        cls,
        idata,
        var_name: str,
        grid: pd.DataFrame,
        **kwargs,
    ) -> "PosteriorGrid":
        """
        Build a grid from a fitted model's posterior.

        Parameters
        ----------
        idata : arviz.InferenceData (or anything with a ``.posterior`` mapping)
            ``idata.posterior[var_name]`` must have dims (chain, draw, row),
            where ``row`` indexes the rows of ``grid``.
        var_name : str
            Name of the deterministic holding E[y | cell] per grid row.
        grid : pd.DataFrame
            One row per cell, one column per predictor.

        Chains are stacked, so draw ids run 0 .. n_chains * n_draws - 1.
        """
        draw_col = kwargs.get("draw_col", "draw")
        value_col = kwargs.get("value_col", "value")

        for col in (draw_col, value_col):
            if col in grid.columns:
                raise ValueError(f"grid must not contain a '{col}' column.")

        arr = np.asarray(idata.posterior[var_name].values, dtype=float)
        if arr.ndim != 3:
            raise ValueError(
                f"posterior['{var_name}'] must have dims (chain, draw, row), "
                f"got shape {arr.shape}"
            )
        n_chains, n_draws, n_rows = arr.shape
        if n_rows != len(grid):
            raise ValueError(
                f"posterior['{var_name}'] has {n_rows} rows but grid has {len(grid)}."
            )

        total = n_chains * n_draws
        cells = grid.reset_index(drop=True)
        frame = pd.DataFrame({draw_col: np.repeat(np.arange(total), n_rows)})
        for col in cells.columns:
            frame[col] = np.tile(cells[col].to_numpy(), total)
        frame[value_col] = arr.reshape(-1)

        grid_obj = cls(draws=frame, **kwargs)
        grid_obj.metadata.setdefault("var_name", var_name)
        grid_obj.metadata.setdefault("n_chains", n_chains)
        return grid_obj

    # ------------------------------------------------------------------
    # Basic properties
    # ------------------------------------------------------------------

    @property
    def factors(self) -> list[str]:
        return factor_columns(self.draws, self.draw_col, self.value_col)

    @property
    def levels(self) -> dict[str, list]:
        """Predictor -> levels present, in natural order."""
        return {f: level_order(self.draws[f]) for f in self.factors}

    @property
    def n_draws(self) -> int:
        return int(self.draws[self.draw_col].nunique())

    @property
    def n_cells(self) -> int:
        return int(len(self.draws[self.factors].drop_duplicates()))

    # ------------------------------------------------------------------
    # Selection and marginalization
    # ------------------------------------------------------------------

    def at(self, **levels) -> pd.DataFrame:
        """
        Draws at representative values of some predictors.

        Each keyword names a predictor and either one level or a list of
        levels to keep.

        >>> grid.at(B="b1")          # E[y | A, B=b1] for every A and draw
        """
        mask = np.ones(len(self.draws), dtype=bool)
        for factor, wanted in levels.items():
            if factor not in self.factors:
                raise ValueError(f"Unknown factor '{factor}'. Choose from {self.factors}")
            wanted = list(wanted) if isinstance(wanted, (list, tuple, set)) else [wanted]
            missing = [lvl for lvl in wanted if lvl not in set(self.draws[factor])]
            if missing:
                raise ValueError(f"Levels {missing} of '{factor}' are not in the grid.")
            mask &= self.draws[factor].isin(wanted).to_numpy()
        return self.draws.loc[mask].reset_index(drop=True)

    def marginalize(self, retain, marginalize_out=None, weights=None) -> pd.DataFrame:
        """Shortcut for :func:`margeff.stats.marginalize.marginalize`."""
        from margeff.stats.marginalize import marginalize  # noqa: PLC0415
        return marginalize(self, retain, marginalize_out=marginalize_out, weights=weights)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def save(self, path: str | Path) -> None:
        """
        Save the grid to disk (JSON for portability).

        Category order of categorical predictors is stored alongside the
        draws so level ordering survives a round trip.
        """
        path = Path(path)
        categories = {
            col: {
                "categories": self.draws[col].cat.categories.tolist(),
                "ordered": bool(self.draws[col].cat.ordered),
            }
            for col in self.factors
            if isinstance(self.draws[col].dtype, pd.CategoricalDtype)
        }
        data = {
            "columns": list(self.draws.columns),
            "categories": categories,
            "draws": json.loads(self.draws.to_json(orient="records", double_precision=15)),
            "draw_col": self.draw_col,
            "value_col": self.value_col,
            "outcome": self.outcome,
            "metadata": self.metadata,
        }
        path.write_text(json.dumps(data, indent=2))

    @classmethod
    def load(cls, path: str | Path) -> "PosteriorGrid":
        """Load a grid from a JSON file saved with .save()."""
        path = Path(path)
        data = json.loads(path.read_text())
        draws = pd.DataFrame.from_records(data["draws"], columns=data["columns"])
        for col, info in data.get("categories", {}).items():
            draws[col] = pd.Categorical(
                draws[col], categories=info["categories"], ordered=info["ordered"]
            )
        return cls(
            draws=draws,
            draw_col=data["draw_col"],
            value_col=data["value_col"],
            outcome=data.get("outcome", "y"),
            metadata=data.get("metadata", {}),
        )

    def __repr__(self) -> str:
        levels = ", ".join(f"{f}={len(lv)}" for f, lv in self.levels.items())
        return (
            f"PosteriorGrid(outcome='{self.outcome}', "
            f"draws={self.n_draws}, cells={self.n_cells} ({levels}))"
        )
