"""
examples/logistic_example.py
-----------------------------
Marginal effects from a Bayesian logistic regression fitted with PyMC.

Walkthrough:
  1. simulate binary outcomes on a 2 x 2 design (A x B, 40 obs per cell)
  2. fit  logit p = alpha + beta_A[a] + beta_B[b] + gamma[a, b]
  3. read E[y | A, B] per posterior draw for every cell of the grid
  4. marginalize over B (uniform, then population-weighted)
  5. difference the levels of A and summarize

Requires:
    pip install margeff[bayesian]

Runtime: ~1 minute (MCMC sampling).
"""

import numpy as np
import pymc as pm

from margeff import (
    PosteriorGrid,
    difference_by_level,
    marginalize,
    report,
    two_factor_example,
)

# ── 1. Data ────────────────────────────────────────────────────────────────

dataset = two_factor_example(n_per_cell=40, seed=42)
print(dataset)
print(dataset.cell_counts())

data = dataset.data
a_levels = sorted(data["A"].unique())
b_levels = sorted(data["B"].unique())
a_idx = data["A"].map({lvl: i for i, lvl in enumerate(a_levels)}).to_numpy()
b_idx = data["B"].map({lvl: i for i, lvl in enumerate(b_levels)}).to_numpy()

# Every cell of the design, in the order the posterior will report them
grid = dataset.cell_probs[["A", "B"]]
grid_a = grid["A"].map({lvl: i for i, lvl in enumerate(a_levels)}).to_numpy()
grid_b = grid["B"].map({lvl: i for i, lvl in enumerate(b_levels)}).to_numpy()

# ── 2. Fit ─────────────────────────────────────────────────────────────────

with pm.Model() as model:
    alpha  = pm.Normal("alpha", mu=0.0, sigma=1.5)
    beta_a = pm.Normal("beta_a", mu=0.0, sigma=1.0, shape=len(a_levels))
    beta_b = pm.Normal("beta_b", mu=0.0, sigma=1.0, shape=len(b_levels))
    gamma  = pm.Normal("gamma", mu=0.0, sigma=0.5, shape=(len(a_levels), len(b_levels)))

    eta = alpha + beta_a[a_idx] + beta_b[b_idx] + gamma[a_idx, b_idx]
    pm.Bernoulli("y", logit_p=eta, observed=data["y"].to_numpy())

    # E[y | cell] for each grid row, per draw
    pm.Deterministic(
        "p_cell",
        pm.math.invlogit(alpha + beta_a[grid_a] + beta_b[grid_b] + gamma[grid_a, grid_b]),
    )

    idata = pm.sample(
        draws=1000,
        tune=1000,
        chains=4,
        target_accept=0.9,
        random_seed=42,
        progressbar=True,
    )

# ── 3. Conditional draws ───────────────────────────────────────────────────

posterior = PosteriorGrid.from_inference_data(idata, "p_cell", grid, outcome="y")
print(posterior)

print("\n── Effects at representative values (B = b1) ──")
report(posterior.at(B="b1"), by=["A"])

# ── 4. Average marginal effects ────────────────────────────────────────────

print("\n── E[y | A], uniform over B ──")
marg_a = posterior.marginalize(retain="A")
report(marg_a)

print("\n── E[y | A], population 80% b1 / 20% b2 ──")
marg_a_weighted = posterior.marginalize(retain="A", weights={"B": {"b1": 0.8, "b2": 0.2}})
report(marg_a_weighted)

print("\n── Truth ──")
print(dataset.true_marginal("A"))

# ── 5. Contrasts ───────────────────────────────────────────────────────────

print("\n── E[y | a2] - E[y | a1] ──")
diffs = difference_by_level(marg_a, "A", ordering=["a1", "a2"])
report(diffs, by=["contrast"], interval="hdi")

print("\n── Contrast of A within each level of B ──")
report(difference_by_level(posterior.draws, "A"), by=["B", "contrast"])

print(
    "Mean contrast equals difference of mean marginals:",
    np.isclose(
        diffs["value"].mean(),
        marg_a.loc[marg_a["A"] == "a2", "value"].mean()
        - marg_a.loc[marg_a["A"] == "a1", "value"].mean(),
    ),
)
