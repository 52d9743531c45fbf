from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from pltree import PLTree, fitted, itempar, predict

NEWDATA = pd.DataFrame({"x": [0.0, 1.0, 0.2]})


def test_predict_node(example_tree: PLTree) -> None:
    node = predict(example_tree, NEWDATA, type="node")
    assert list(node) == ["2", "3", "2"]
    assert list(node.index) == ["1", "2", "3"]


def test_predict_best_and_rank(example_tree: PLTree) -> None:
    best = predict(example_tree, NEWDATA, type="best")
    assert list(best) == ["A", "C", "A"]
    assert list(best.index) == [0, 1, 2]

    rank = predict(example_tree, NEWDATA, type="rank")
    # equal worths keep item order, so rank 1 is always the best item;
    # see "Rank ties" in DESIGN.md
    assert list(rank.columns) == ["A", "B", "C"]
    np.testing.assert_array_equal(rank.to_numpy(), [[1, 2, 3], [2, 3, 1], [1, 2, 3]])


def test_predict_itempar(example_tree: PLTree) -> None:
    worth = predict(example_tree, NEWDATA)
    np.testing.assert_allclose(
        worth.to_numpy(), [[0.5, 0.3, 0.2], [0.2, 0.2, 0.6], [0.5, 0.3, 0.2]]
    )
    log_worth = predict(example_tree, NEWDATA, type="itempar", log=True, ref="C")
    np.testing.assert_array_equal(log_worth["C"], [0.0, 0.0, 0.0])
    assert log_worth.loc[0, "A"] == pytest.approx(np.log(0.5 / 0.2))
    assert log_worth.loc[1, "B"] == pytest.approx(np.log(0.2 / 0.6))


def test_predict_keeps_newdata_index(example_tree: PLTree) -> None:
    data = NEWDATA.set_index(pd.Index(["u", "v", "w"]))
    assert list(predict(example_tree, data, type="best").index) == ["u", "v", "w"]
    assert list(predict(example_tree, data, type="node").index) == ["1", "2", "3"]


def test_missing_value_routing(example_tree: PLTree) -> None:
    node = predict(example_tree, pd.DataFrame({"x": [np.nan, 2.0]}), type="node")
    assert list(node) == ["2", "3"]


def test_predict_training_data(fitted_tree: PLTree, ranking_data) -> None:
    node = predict(fitted_tree, type="node")
    assert len(node) == 40
    expected = np.where(ranking_data["x"] == 0, "2", "3")
    np.testing.assert_array_equal(node.to_numpy(dtype=str), expected)
    pd.testing.assert_series_equal(node, predict(fitted_tree, type="node"))

    worth = predict(fitted_tree)
    np.testing.assert_allclose(worth.iloc[0], itempar(fitted_tree, node=2))


def test_best_is_ranked_first(fitted_tree: PLTree, holdout_data) -> None:
    best = predict(fitted_tree, holdout_data, type="best")
    rank = predict(fitted_tree, holdout_data, type="rank")
    for label, row in zip(best, rank.itertuples(index=False)):
        assert rank.columns[list(row).index(1)] == label


def test_predict_errors(example_tree: PLTree) -> None:
    with pytest.raises(ValueError, match="type must be one of"):
        predict(example_tree, NEWDATA, type="probabilities")

    with pytest.raises(KeyError, match="missing covariates"):
        predict(example_tree, pd.DataFrame({"z": [1.0]}))

    with pytest.raises(ValueError, match="newdata is required"):
        predict(example_tree)

    with pytest.raises(TypeError, match="pandas DataFrame"):
        predict(example_tree, {"x": [0.0]})


def test_fitted_values(fitted_tree: PLTree) -> None:
    values = fitted(fitted_tree)
    assert list(values.columns) == [
        "ranking", "choice", "alternatives", "n", "fitted", "node",
    ]
    # two choices per complete ranking of three items
    assert len(values) == 400
    assert set(values["node"]) == {2, 3}
    assert values["fitted"].between(0, 1).all()
    first = values[values["alternatives"].map(len) == 3]
    totals = first.groupby(["ranking"])["fitted"].sum()
    assert (totals <= 1 + 1e-12).all()


def test_fitted_refits_coefficient_nodes(
    fitted_tree: PLTree, coefficient_tree: PLTree
) -> None:
    full = fitted(fitted_tree).sort_values("ranking", kind="stable")
    raw = fitted(coefficient_tree).sort_values("ranking", kind="stable")
    np.testing.assert_array_equal(full["ranking"], raw["ranking"])
    np.testing.assert_allclose(full["fitted"], raw["fitted"], rtol=1e-8)


def test_fitted_requires_training_data(example_tree: PLTree) -> None:
    with pytest.raises(ValueError, match="no training data"):
        fitted(example_tree)
