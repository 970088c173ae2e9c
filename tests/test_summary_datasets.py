"""
Tests for the supporting modules:
  - margeff.stats.summary
  - margeff.datasets.synthetic
"""

import warnings

import numpy as np
import pandas as pd
import pytest

from margeff.core.grid import PosteriorGrid
from margeff.stats.differences import difference_by_level
from margeff.stats.marginalize import marginalize
from margeff.stats.weights import weights_from_counts


# -----------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------

@pytest.fixture
def normal_draws():
    """2000 draws of a known quantity per group: N(0.2, 0.05) and N(-0.1, 0.05)."""
    rng = np.random.RandomState(0)
    n = 2000
    return pd.DataFrame({
        "draw": np.tile(np.arange(n), 2),
        "group": np.repeat(["g1", "g2"], n),
        "value": np.concatenate([rng.normal(0.2, 0.05, n), rng.normal(-0.1, 0.05, n)]),
    })


@pytest.fixture
def small_grid():
    values = [
        [[0.3, 0.5], [0.7, 0.9]],
        [[0.2, 0.4], [0.6, 0.8]],
    ]
    return PosteriorGrid.from_array(values, {"A": ["a1", "a2"], "B": ["b1", "b2"]})


# ═══════════════════════════════════════════════════════════════
# SUMMARY
# ═══════════════════════════════════════════════════════════════

class TestSummarize:

    def test_table_columns(self, normal_draws):
        from margeff.stats.summary import summarize
        s = summarize(normal_draws)
        assert s.by == ["group"]
        assert list(s.table.columns) == [
            "group", "mean", "median", "sd", "lower", "upper", "prob_positive", "n_draws",
        ]
        assert len(s) == 2

    def test_recovers_known_moments(self, normal_draws):
        from margeff.stats.summary import summarize
        s = summarize(normal_draws)
        g1 = s.row(group="g1")
        assert g1["mean"] == pytest.approx(0.2, abs=0.01)
        assert g1["sd"] == pytest.approx(0.05, abs=0.01)
        assert g1["n_draws"] == 2000
        # 94% ETI of N(0.2, 0.05) is roughly 0.2 -/+ 1.88 * 0.05
        assert g1["lower"] == pytest.approx(0.2 - 0.094, abs=0.015)
        assert g1["upper"] == pytest.approx(0.2 + 0.094, abs=0.015)

    def test_prob_positive(self, normal_draws):
        from margeff.stats.summary import summarize
        s = summarize(normal_draws)
        assert s.row(group="g1")["prob_positive"] > 0.99
        assert s.row(group="g2")["prob_positive"] < 0.05

    def test_interval_widens_with_prob(self, normal_draws):
        from margeff.stats.summary import summarize
        narrow = summarize(normal_draws, prob=0.5).row(group="g1")
        wide = summarize(normal_draws, prob=0.99).row(group="g1")
        assert wide["upper"] - wide["lower"] > narrow["upper"] - narrow["lower"]

    def test_no_grouping(self, normal_draws):
        from margeff.stats.summary import summarize
        s = summarize(normal_draws, by=[])
        assert len(s) == 1
        assert s.table["n_draws"].item() == 4000

    def test_grid_input(self, small_grid):
        from margeff.stats.summary import summarize
        with pytest.warns(UserWarning):
            s = summarize(small_grid)
        assert s.by == ["A", "B"]
        assert s.row(A="a1", B="b1")["mean"] == pytest.approx(0.25)

    def test_few_draws_warn(self, small_grid):
        from margeff.stats.summary import summarize
        m = marginalize(small_grid, "A")
        with pytest.warns(UserWarning, match="Monte Carlo"):
            s = summarize(m)
        assert s.row(A="a1")["mean"] == pytest.approx(0.35)
        assert s.row(A="a2")["mean"] == pytest.approx(0.75)

    def test_enough_draws_do_not_warn(self, normal_draws):
        from margeff.stats.summary import summarize
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            summarize(normal_draws)

    def test_difference_summary(self, small_grid):
        from margeff.stats.summary import summarize
        d = difference_by_level(marginalize(small_grid, "A"), "A")
        with pytest.warns(UserWarning):
            s = summarize(d, by=["contrast"])
        row = s.row(contrast="a2 - a1")
        assert row["mean"] == pytest.approx(0.4)
        assert row["prob_positive"] == 1.0

    def test_unknown_interval_raises(self, normal_draws):
        from margeff.stats.summary import summarize
        with pytest.raises(ValueError, match="Unknown interval"):
            summarize(normal_draws, interval="bca")

    def test_bad_prob_raises(self, normal_draws):
        from margeff.stats.summary import summarize
        with pytest.raises(ValueError, match="prob"):
            summarize(normal_draws, prob=1.5)

    def test_unknown_group_raises(self, normal_draws):
        from margeff.stats.summary import summarize
        with pytest.raises(ValueError, match="grouping"):
            summarize(normal_draws, by=["nope"])

    def test_row_lookup_errors(self, normal_draws):
        from margeff.stats.summary import summarize
        s = summarize(normal_draws)
        with pytest.raises(ValueError, match="not a grouping column"):
            s.row(other="x")
        with pytest.raises(KeyError):
            s.row(group="g9")

    def test_hdi(self, normal_draws):
        pytest.importorskip("arviz")
        from margeff.stats.summary import summarize
        s = summarize(normal_draws, interval="hdi")
        g1 = s.row(group="g1")
        assert g1["lower"] < g1["mean"] < g1["upper"]
        # symmetric posterior: HDI close to the equal-tailed interval
        eti = summarize(normal_draws).row(group="g1")
        assert g1["lower"] == pytest.approx(eti["lower"], abs=0.02)

    def test_repr_and_report(self, normal_draws, capsys):
        from margeff.stats.summary import report
        text = report(normal_draws)
        captured = capsys.readouterr()
        assert "group=g1" in text
        assert "94% ETI" in text
        assert "P(>0)" in captured.out


# ═══════════════════════════════════════════════════════════════
# DATASETS
# ═══════════════════════════════════════════════════════════════

class TestSyntheticData:

    def test_logistic_cell_probs(self):
        from margeff.datasets.synthetic import logistic_cell_probs
        probs = logistic_cell_probs(0.0, {"A": {"a1": 0.0, "a2": 1.0}, "B": {"b1": 0.0, "b2": -1.0}})
        assert list(probs.columns) == ["A", "B", "p"]
        assert len(probs) == 4
        p = probs.set_index(["A", "B"])["p"]
        assert p[("a1", "b1")] == pytest.approx(0.5)
        assert p[("a2", "b2")] == pytest.approx(0.5)
        assert p[("a2", "b1")] == pytest.approx(1 / (1 + np.exp(-1.0)))

    def test_logistic_cell_probs_needs_effects(self):
        from margeff.datasets.synthetic import logistic_cell_probs
        with pytest.raises(ValueError):
            logistic_cell_probs(0.0, {})

    def test_simulate_shape(self):
        from margeff.datasets.synthetic import two_factor_example
        ds = two_factor_example(n_per_cell=40, seed=0)
        assert ds.n_obs == 160
        assert ds.factors == ["A", "B"]
        assert set(ds.data["y"].unique()) <= {0, 1}

    def test_simulate_reproducible(self):
        from margeff.datasets.synthetic import two_factor_example
        a = two_factor_example(seed=3).data
        b = two_factor_example(seed=3).data
        pd.testing.assert_frame_equal(a, b)

    def test_cell_counts(self):
        from margeff.datasets.synthetic import two_factor_example
        counts = two_factor_example(n_per_cell=25).cell_counts()
        assert list(counts.columns) == ["A", "B", "successes", "trials"]
        assert (counts["trials"] == 25).all()
        assert (counts["successes"] <= 25).all()

    def test_extreme_probs(self):
        from margeff.datasets.synthetic import simulate_binary_outcomes
        probs = pd.DataFrame({"A": ["never", "always"], "p": [0.0, 1.0]})
        ds = simulate_binary_outcomes(probs, n_per_cell=10)
        counts = ds.cell_counts().set_index("A")["successes"]
        assert counts["never"] == 0
        assert counts["always"] == 10

    def test_invalid_probs_raise(self):
        from margeff.datasets.synthetic import simulate_binary_outcomes
        with pytest.raises(ValueError, match=r"\[0, 1\]"):
            simulate_binary_outcomes(pd.DataFrame({"A": ["a1"], "p": [1.2]}))

    def test_invalid_n_raises(self):
        from margeff.datasets.synthetic import simulate_binary_outcomes
        with pytest.raises(ValueError, match="n_per_cell"):
            simulate_binary_outcomes(pd.DataFrame({"A": ["a1"], "p": [0.5]}), n_per_cell=0)

    def test_true_marginal(self):
        from margeff.datasets.synthetic import two_factor_example
        ds = two_factor_example()
        truth = ds.true_marginal("A").set_index("A")["value"]
        p = ds.cell_probs.set_index(["A", "B"])["p"]
        assert truth["a1"] == pytest.approx((p[("a1", "b1")] + p[("a1", "b2")]) / 2)

    def test_true_marginal_weighted(self):
        from margeff.datasets.synthetic import two_factor_example
        ds = two_factor_example()
        truth = ds.true_marginal("A", weights={"B": {"b1": 1.0, "b2": 0.0}})
        p = ds.cell_probs.set_index(["A", "B"])["p"]
        assert truth.set_index("A")["value"]["a2"] == pytest.approx(p[("a2", "b1")])

    def test_balanced_design_weights(self):
        from margeff.datasets.synthetic import two_factor_example
        ds = two_factor_example()
        assert weights_from_counts(ds.data, ["B"]) == {"B": {"b1": 0.5, "b2": 0.5}}

    def test_repr(self):
        from margeff.datasets.synthetic import two_factor_example
        assert "2 x 2 cells" in repr(two_factor_example())


# ═══════════════════════════════════════════════════════════════
# END TO END
# ═══════════════════════════════════════════════════════════════

class TestEndToEnd:
    def test_full_workflow(self):
        """
        Simulate data, build conjugate posterior draws per cell, then
        marginalize, difference and summarize.  This is the core use case.
        """
        from margeff import PosteriorGrid, two_factor_example, summarize

        ds = two_factor_example(n_per_cell=40, seed=1)
        counts = ds.cell_counts()
        rng = np.random.default_rng(0)
        n_draws = 1000
        frames = []
        for _, row in counts.iterrows():
            frames.append(pd.DataFrame({
                "draw": np.arange(n_draws),
                "A": row["A"],
                "B": row["B"],
                "value": rng.beta(1 + row["successes"], 1 + row["trials"] - row["successes"], n_draws),
            }))
        grid = PosteriorGrid(draws=pd.concat(frames, ignore_index=True), outcome="y")

        marg = grid.marginalize("A")
        assert len(marg) == n_draws * 2

        diffs = difference_by_level(marg, "A")
        s = summarize(diffs, by=["contrast"])
        row = s.row(contrast="a2 - a1")
        assert row["lower"] < row["mean"] < row["upper"]

        truth = ds.true_marginal("A").set_index("A")["value"]
        assert row["mean"] == pytest.approx(truth["a2"] - truth["a1"], abs=0.3)
