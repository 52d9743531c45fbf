from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from pltree import GroupedRankings, model_frame, parse_formula
from pltree.formula import Formula


class TestParseFormula:
    def test_named_covariates(self) -> None:
        f = parse_formula("G ~ age + gender + age")
        assert f == Formula("G", ("age", "gender"))
        assert str(f) == "G ~ age + gender"

    def test_dot(self) -> None:
        f = parse_formula("G ~ .")
        assert f.covariates is None
        assert f.resolve(["G", "a", "w"], exclude=("w",)) == ["a"]

    @pytest.mark.parametrize("text", ["G", "G ~ a ~ b", "G ~ a +", "1G ~ a", "G ~ G"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(ValueError):
            parse_formula(text)

    def test_not_a_string(self) -> None:
        with pytest.raises(TypeError, match="formula must be a string"):
            parse_formula(3)


class TestModelFrame:
    @pytest.fixture
    def data(self) -> pd.DataFrame:
        G = GroupedRankings(np.array([[1, 2], [2, 1], [1, 2]]), items=["p", "q"])
        df = pd.DataFrame({"a": [1, 2, 3], "w": [1.0, 0.5, 2.0]})
        df["G"] = G.to_series(df.index)
        return df

    def test_weights_column_excluded_from_dot(self, data) -> None:
        frame = model_frame("G ~ .", data, weights="w")
        assert list(frame.covariates.columns) == ["a"]
        np.testing.assert_array_equal(frame.case_weights(), [1.0, 0.5, 2.0])
        assert len(frame) == 3
        assert frame.response.items == ("p", "q")

    def test_unweighted(self, data) -> None:
        frame = model_frame("G ~ a", data)
        assert frame.weights is None
        np.testing.assert_array_equal(frame.case_weights(), np.ones(3))

    def test_missing_columns(self, data) -> None:
        with pytest.raises(KeyError, match="response 'H'"):
            model_frame("H ~ a", data)
        with pytest.raises(KeyError, match="covariates not found"):
            model_frame("G ~ b", data)
        with pytest.raises(KeyError, match="weights column"):
            model_frame("G ~ a", data, weights="v")
