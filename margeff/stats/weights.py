"""
Population weights for the predictors being marginalized out.

A weight mapping assigns each level of one predictor its assumed population
proportion Pr[B = b].  By the law of total expectation

    E[y | A] = sum_b E[y | A, B=b] * Pr[B=b]

so the choice of weights *is* the choice of target population.  When several
predictors are marginalized jointly, margeff assumes they are independent in
the population and weights a cell by the product of its per-predictor
weights.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

import numpy as np
import pandas as pd

from margeff.core.errors import InvalidWeightError

WEIGHT_TOLERANCE = 1e-6


def uniform_weights(levels: Sequence) -> dict:
    """Equal weight 1/n for each of the n levels."""
    levels = list(levels)
    if not levels:
        raise ValueError("uniform_weights needs at least one level.")
    return {lvl: 1.0 / len(levels) for lvl in levels}


def weights_from_counts(data: pd.DataFrame, factors: Iterable[str]) -> dict[str, dict]:
    """
    Empirical level proportions of each factor in an observed dataset.

    Useful when the sample is believed to be representative of the target
    population, e.g. ``weights_from_counts(observations, ["B"])``.
    """
    out = {}
    for factor in factors:
        if factor not in data.columns:
            raise ValueError(f"Unknown factor '{factor}'.")
        props = data[factor].value_counts(normalize=True, sort=False)
        out[factor] = {lvl: float(p) for lvl, p in props.items() if p > 0}
    return out


def validate_weights(weights: Mapping, levels: Sequence, factor: str = "") -> dict:
    """
    Check one predictor's weights against the levels present in the data.

    Returns a plain ``{level: float}`` mapping covering exactly ``levels``.

    Raises
    ------
    InvalidWeightError
        If a weight is negative or non-finite, names a level not in the
        data, omits a level present in the data, or the weights do not sum
        to 1 within ``WEIGHT_TOLERANCE``.
    """
    if isinstance(weights, pd.Series):
        weights = weights.to_dict()
    present = list(levels)
    present_set = set(present)

    unknown = [lvl for lvl in weights if lvl not in present_set]
    if unknown:
        raise InvalidWeightError(
            f"Weights for '{factor}' name levels not present in the data: {unknown}. "
            f"Levels present: {present}",
            factor=factor, level=unknown[0],
        )
    absent = [lvl for lvl in present if lvl not in weights]
    if absent:
        raise InvalidWeightError(
            f"Weights for '{factor}' omit levels {absent}. Give every level a "
            f"weight (0 is allowed).",
            factor=factor, level=absent[0],
        )

    clean = {}
    for lvl in present:
        try:
            w = float(weights[lvl])
        except (TypeError, ValueError) as exc:
            raise InvalidWeightError(
                f"Weight for '{factor}'={lvl!r} is not a number: {weights[lvl]!r}.",
                factor=factor, level=lvl,
            ) from exc
        if not np.isfinite(w) or w < 0:
            raise InvalidWeightError(
                f"Weight for '{factor}'={lvl!r} must be a non-negative number, got {w}.",
                factor=factor, level=lvl,
            )
        clean[lvl] = w

    total = sum(clean.values())
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise InvalidWeightError(
            f"Weights for '{factor}' sum to {total:.6g}, expected 1 "
            f"(tolerance {WEIGHT_TOLERANCE:g}).",
            factor=factor,
        )
    return clean


def resolve_weights(
    weights: Mapping[str, Mapping] | None,
    levels: Mapping[str, Sequence],
) -> dict[str, dict]:
    """
    Full per-factor weights for every marginalized factor in ``levels``.

    Factors without an entry in ``weights`` get uniform weights.
    """
    weights = dict(weights or {})
    extra = [f for f in weights if f not in levels]
    if extra:
        raise InvalidWeightError(
            f"Weights given for {extra}, which are not being marginalized out "
            f"(marginalizing over {list(levels)}).",
            factor=extra[0],
        )
    resolved = {}
    for factor, lv in levels.items():
        if factor in weights:
            resolved[factor] = validate_weights(weights[factor], lv, factor)
        else:
            resolved[factor] = uniform_weights(lv)
    return resolved
