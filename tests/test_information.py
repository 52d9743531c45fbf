from __future__ import annotations

import warnings

import numpy as np
import pandas as pd
import pytest

from pltree import ConvergenceWarning, GroupedRankings, PLTree, aic, loglik, pltree


def test_loglik_counts_splits(fitted_tree: PLTree) -> None:
    ll = loglik(fitted_tree)
    # two free worths per node plus one split
    assert ll.df == 5
    assert ll.nobs == 40
    objfun = sum(fitted_tree.node(i).info.objfun for i in (2, 3))
    assert ll.value == pytest.approx(-objfun)
    assert float(ll) == ll.value


def test_in_sample_aic(fitted_tree: PLTree) -> None:
    ll = loglik(fitted_tree)
    assert aic(fitted_tree) == pytest.approx(-2 * ll.value + 2 * ll.df)


def test_aic_on_training_data_matches_in_sample(
    fitted_tree: PLTree, ranking_data
) -> None:
    assert aic(fitted_tree, ranking_data) == pytest.approx(aic(fitted_tree), rel=1e-10)


def test_aic_on_new_data(fitted_tree: PLTree, holdout_data) -> None:
    G = GroupedRankings.from_series(holdout_data["G"])
    node = np.where(holdout_data["x"].to_numpy() == 0, 2, 3)
    total = 0.0
    for node_id in (2, 3):
        fit = fitted_tree.node(node_id).info.fit
        values = fit.fitted(G[node == node_id])
        total += float((values["n"] * np.log(values["fitted"])).sum())
    expected = -2 * total + 2 * loglik(fitted_tree).df
    assert aic(fitted_tree, holdout_data) == pytest.approx(expected, rel=1e-10)


def test_aic_with_empty_node(fitted_tree: PLTree, ranking_data) -> None:
    low = ranking_data[ranking_data["x"] == 0]
    objfun = fitted_tree.node(2).info.objfun
    expected = 2 * objfun + 2 * loglik(fitted_tree).df
    assert aic(fitted_tree, low) == pytest.approx(expected, rel=1e-10)


def test_aic_does_not_leak_convergence_warnings(
    fitted_tree: PLTree, holdout_data
) -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("error", ConvergenceWarning)
        aic(fitted_tree, holdout_data)


def test_storage_variants_give_same_aic(
    fitted_tree: PLTree, coefficient_tree: PLTree, holdout_data
) -> None:
    assert aic(coefficient_tree) == pytest.approx(aic(fitted_tree))
    assert aic(coefficient_tree, holdout_data) == pytest.approx(
        aic(fitted_tree, holdout_data), rel=1e-8
    )


def test_aic_errors(fitted_tree: PLTree, holdout_data) -> None:
    with pytest.raises(ValueError, match="must include response 'G'"):
        aic(fitted_tree, holdout_data.drop(columns="G"))

    with pytest.raises(KeyError, match="covariates not found"):
        aic(fitted_tree, holdout_data.drop(columns="x"))


def test_hand_built_tree(example_tree: PLTree, holdout_data) -> None:
    # objfun 10 in both nodes, two parameters each, one split
    assert loglik(example_tree).df == 5
    assert aic(example_tree) == pytest.approx(50.0)
    with pytest.raises(ValueError, match="no formula"):
        aic(example_tree, holdout_data)


@pytest.mark.slow
def test_weights_column_is_reused(ranking_data) -> None:
    data = ranking_data.assign(w=np.where(ranking_data["z"] > 0, 2.0, 1.0))
    tree = pltree("G ~ x", data, weights="w", minsize=5, maxdepth=1, npseudo=0)
    assert tree.weights == "w"
    assert aic(tree, data) == pytest.approx(aic(tree), rel=1e-10)
    unweighted = aic(tree, data, weights=np.ones(len(data)))
    assert unweighted < aic(tree)


def test_aic_on_empty_data(fitted_tree: PLTree, holdout_data) -> None:
    assert aic(fitted_tree, holdout_data.iloc[:0]) == pytest.approx(
        2 * loglik(fitted_tree).df
    )


def test_aic_rejects_unmodelled_ties(fitted_tree: PLTree) -> None:
    G = GroupedRankings(
        np.array([[1, 1, 1], [1, 2, 3]]), index=[0, 1], items=("A", "B", "C")
    )
    data = pd.DataFrame({"x": [0, 1], "z": [0.0, 0.0]})
    data["G"] = G.to_series(data.index)
    with pytest.raises(ValueError, match="ties of order 3"):
        aic(fitted_tree, data)
