"""
Model formulas and model frames.

A formula names the grouped-rankings response column and the partitioning
covariates of a :class:`pandas.DataFrame`:

- ``"G ~ age + gender"`` uses the listed columns,
- ``"G ~ ."`` uses every column except the response (and the weights
  column, when weights are given by name).

The response column holds one :class:`~pltree.rankings.RankingGroup` per
row, see :meth:`~pltree.rankings.GroupedRankings.to_series`.
"""

import re
from dataclasses import dataclass

import numpy as np
import pandas as pd

from ._base import validate_weights
from .rankings import GroupedRankings

_NAME = re.compile(r"^[A-Za-z_.][A-Za-z0-9_.]*$")


@dataclass(frozen=True)
class Formula:
    """
    Parsed ``response ~ covariates`` formula.

    Attributes:
        response: Name of the response column.
        covariates: Covariate names, or None for ``.`` (all other columns).
    """

    response: str
    covariates: tuple[str, ...] | None = None

    def __str__(self) -> str:
        rhs = "." if self.covariates is None else " + ".join(self.covariates)
        return f"{self.response} ~ {rhs}"

    def resolve(self, columns, exclude=()) -> list[str]:
        """Covariate names against the columns of a data frame."""
        columns = list(columns)
        if self.covariates is None:
            skip = {self.response, *exclude}
            return [c for c in columns if c not in skip]
        missing = [c for c in self.covariates if c not in columns]
        if missing:
            raise KeyError(f"covariates not found in data: {missing}")
        return list(self.covariates)


def parse_formula(formula) -> Formula:
    """
    Parse a formula string.

    Raises:
        TypeError: If ``formula`` is neither a string nor a :class:`Formula`.
        ValueError: If the string is not of the form ``y ~ x1 + ... + xn``
            or ``y ~ .``.
    """
    if isinstance(formula, Formula):
        return formula
    if not isinstance(formula, str):
        raise TypeError(f"formula must be a string, got {type(formula).__name__}")
    if formula.count("~") != 1:
        raise ValueError(f"formula must contain exactly one '~', got {formula!r}")
    lhs, rhs = (part.strip() for part in formula.split("~"))
    if not _NAME.match(lhs):
        raise ValueError(f"invalid response name {lhs!r} in formula")
    if rhs == ".":
        return Formula(lhs)
    terms = [term.strip() for term in rhs.split("+")]
    if not terms or any(not _NAME.match(term) for term in terms):
        raise ValueError(f"invalid covariates {rhs!r} in formula")
    if lhs in terms:
        raise ValueError("response cannot also be a covariate")
    # keep first occurrence order
    return Formula(lhs, tuple(dict.fromkeys(terms)))


@dataclass(frozen=True)
class ModelFrame:
    """
    Response, covariates and weights extracted from a data frame.

    Attributes:
        formula: The parsed formula.
        response: Grouped rankings, one group per row of ``covariates``.
        covariates: Partitioning covariates, in the row order of the data.
        weights: Per-group case weights, or None when unweighted.
    """

    formula: Formula
    response: GroupedRankings
    covariates: pd.DataFrame
    weights: np.ndarray | None = None

    def __len__(self) -> int:
        return len(self.response)

    def case_weights(self) -> np.ndarray:
        """Case weights, ones when unweighted."""
        if self.weights is None:
            return np.ones(len(self), dtype=float)
        return self.weights


def model_frame(formula, data: pd.DataFrame, weights=None) -> ModelFrame:
    """
    Build a model frame from ``data``.

    Args:
        formula: Formula string or :class:`Formula`.
        data: Data frame with the response column and the covariates.
        weights: Column name in ``data`` or array of per-row weights.

    Returns:
        :class:`ModelFrame`.

    Raises:
        TypeError: If ``data`` is not a DataFrame.
        KeyError: If the response, a covariate or the weights column is
            missing.
    """
    formula = parse_formula(formula)
    if not isinstance(data, pd.DataFrame):
        raise TypeError(f"data must be a pandas DataFrame, got {type(data).__name__}")
    if formula.response not in data.columns:
        raise KeyError(f"response {formula.response!r} not found in data")

    exclude = ()
    if isinstance(weights, str):
        if weights not in data.columns:
            raise KeyError(f"weights column {weights!r} not found in data")
        exclude = (weights,)
        weights = data[weights].to_numpy(dtype=float)
    if weights is not None:
        weights = validate_weights(weights, len(data))

    names = formula.resolve(data.columns, exclude=exclude)
    response = GroupedRankings.from_series(data[formula.response])
    covariates = data.loc[:, names].copy()
    return ModelFrame(formula, response, covariates, weights)


__all__ = ["Formula", "ModelFrame", "model_frame", "parse_formula"]
