"""
Growing Plackett-Luce trees by recursive partitioning.

Starting from all groups, a Plackett-Luce model is fitted in the current
node and every covariate is searched for the binary split whose two child
models improve the log-likelihood most. The improvement is summarized by
the likelihood ratio statistic

.. math::
    LR = 2\\,(\\ell_{\\text{left}} + \\ell_{\\text{right}} - \\ell_{\\text{node}}),

referred to a :math:`\\chi^2_k` distribution with :math:`k` the number of
free parameters of the node model. P-values are Bonferroni-adjusted for the
number of candidate splits of the covariate and for the number of
covariates; the node is split on the covariate with the smallest adjusted
p-value if it is below ``alpha`` and both children keep at least
``minsize`` (weighted) groups. Growth stops at ``maxdepth``.

Numeric covariates are split at ``x <= c`` for ``c`` between consecutive
observed values; other covariates are split into one level versus the rest.
Missing covariate values are sent to the child receiving more groups.
"""

import logging
from dataclasses import dataclass, fields, replace

import numpy as np
import pandas as pd
from scipy.stats import chi2

from ._base import validate_float, validate_int
from ._types import ItemRef, TerminalStorage
from .formula import ModelFrame, model_frame
from .party import FullModel, PartyNode, PLTree, RawCoefficients, Split
from .plackett_luce import PlackettLuceFit, plfit, resolve_ref

logger = logging.getLogger(__name__)

_FIT_OPTIONS = ("npseudo", "max_iter", "max_tied", "tol")


@dataclass(frozen=True)
class TreeControl:
    """
    Settings for growing a Plackett-Luce tree.

    Attributes:
        alpha: Significance level for splitting.
        bonferroni: Adjust p-values for multiple testing.
        minsize: Minimum (weighted) number of groups per node. Defaults to
            ten times the number of node parameters.
        maxdepth: Maximum depth; the root has depth 0, so ``maxdepth=1``
            allows a single split. None means unlimited.
        terminal: Node storage: ``"object"`` keeps the full fitted model,
            ``"coefficients"`` only the coefficient vector.
        dfsplit: Count one degree of freedom per split in the tree's
            log-likelihood.
        max_candidates: Largest number of thresholds tried per numeric
            covariate; more unique values are thinned to quantiles.
    """

    alpha: float = 0.05
    bonferroni: bool = True
    minsize: int | None = None
    maxdepth: int | None = None
    terminal: TerminalStorage = "object"
    dfsplit: bool = True
    max_candidates: int = 32

    def __post_init__(self):
        alpha = validate_float("alpha", self.alpha, minimum=0.0, inclusive=False)
        if alpha > 1.0:
            raise ValueError(f"alpha must be <= 1, got {self.alpha}")
        if self.minsize is not None:
            validate_int("minsize", self.minsize, minimum=1)
        if self.maxdepth is not None:
            validate_int("maxdepth", self.maxdepth, minimum=0)
        if self.terminal not in ("object", "coefficients"):
            raise ValueError(
                f"terminal must be 'object' or 'coefficients', got {self.terminal!r}"
            )
        validate_int("max_candidates", self.max_candidates, minimum=1)


@dataclass(frozen=True)
class _Candidate:
    split: Split
    statistic: float
    p_value: float
    left: np.ndarray
    right: np.ndarray


class _Grower:
    def __init__(self, frame: ModelFrame, weights: np.ndarray, control: TreeControl,
                 fit_options: dict):
        self.frame = frame
        self.weights = weights
        self.control = control
        self.fit_options = fit_options
        self.next_id = 1

    def fit(self, rows: np.ndarray) -> PlackettLuceFit:
        return plfit(
            self.frame.response[rows], weights=self.weights[rows], **self.fit_options
        )

    def info(self, fit: PlackettLuceFit):
        if self.control.terminal == "object":
            return FullModel(fit)
        return RawCoefficients.from_fit(fit)

    def grow(self, rows: np.ndarray, depth: int, fit: PlackettLuceFit | None = None) -> PartyNode:
        if fit is None:
            fit = self.fit(rows)
        node = PartyNode(id=self.next_id, info=self.info(fit), rows=rows)
        self.next_id += 1

        candidate = self.best_split(rows, depth, fit)
        if candidate is None:
            return node
        logger.debug(
            "node %d: split on %s (LR = %.3f, p = %.4g)",
            node.id, candidate.split, candidate.statistic, candidate.p_value,
        )
        node.split = candidate.split
        node.p_value = candidate.p_value
        left = self.grow(candidate.left, depth + 1)
        right = self.grow(candidate.right, depth + 1)
        node.kids = (left, right)
        return node

    def minsize(self, fit: PlackettLuceFit) -> float:
        if self.control.minsize is not None:
            return float(self.control.minsize)
        return 10.0 * fit.df

    def best_split(self, rows: np.ndarray, depth: int, fit: PlackettLuceFit):
        control = self.control
        if control.maxdepth is not None and depth >= control.maxdepth:
            return None
        minsize = self.minsize(fit)
        if self.weights[rows].sum() < 2 * minsize:
            return None

        best: list[_Candidate] = []
        covariates = self.frame.covariates
        for name in covariates.columns:
            values = covariates[name].iloc[rows]
            found = self.search_variable(name, values, rows, fit, minsize)
            if found is not None:
                best.append(found)
        if not best:
            logger.debug("node with %d groups: no admissible split", rows.size)
            return None

        n_vars = covariates.shape[1]
        chosen = min(best, key=lambda c: (c.p_value, -c.statistic))
        p_value = min(1.0, chosen.p_value * n_vars) if control.bonferroni else chosen.p_value
        if p_value >= control.alpha:
            logger.debug(
                "node with %d groups: best split %s not significant (p = %.4g)",
                rows.size, chosen.split, p_value,
            )
            return None
        return replace(chosen, p_value=p_value)

    def search_variable(self, name, values: pd.Series, rows, fit, minsize):
        missing = values.isna().to_numpy()
        observed = values[~missing]
        if observed.nunique() < 2:
            return None

        if pd.api.types.is_numeric_dtype(values) and not pd.api.types.is_bool_dtype(values):
            splits = [Split(name, threshold=float(c)) for c in self.thresholds(observed)]
        else:
            levels = sorted(observed.unique(), key=str)
            if len(levels) == 2:
                levels = levels[:1]
            splits = [Split(name, levels=frozenset([level])) for level in levels]

        w = self.weights[rows]
        top = None
        n_tried = 0
        for split in splits:
            left = split.goes_left(values) & ~missing
            right = ~left & ~missing
            # missing values follow the heavier child
            na_left = w[left].sum() >= w[right].sum()
            left = left | (missing & na_left)
            right = ~left
            if w[left].sum() < minsize or w[right].sum() < minsize:
                continue
            n_tried += 1
            ll = self.fit(rows[left]).loglik + self.fit(rows[right]).loglik
            statistic = max(0.0, 2.0 * (ll - fit.loglik))
            if top is None or statistic > top.statistic:
                top = _Candidate(
                    replace(split, na_left=bool(na_left)),
                    statistic,
                    1.0,
                    rows[left],
                    rows[right],
                )
        if top is None:
            return None

        p_value = float(chi2.sf(top.statistic, df=max(fit.df, 1)))
        if self.control.bonferroni:
            p_value = min(1.0, p_value * n_tried)
        return replace(top, p_value=p_value)

    def thresholds(self, observed: pd.Series) -> np.ndarray:
        unique = np.unique(observed.to_numpy(dtype=float))
        cuts = unique[:-1]
        if cuts.size > self.control.max_candidates:
            probs = np.linspace(0, 1, self.control.max_candidates + 2)[1:-1]
            cuts = np.unique(np.quantile(cuts, probs, method="lower"))
        return cuts


def pltree(
    formula,
    data: pd.DataFrame,
    ref: ItemRef = None,
    weights=None,
    control: TreeControl | None = None,
    **kwargs,
) -> PLTree:
    """
    Fit a Plackett-Luce tree.

    Args:
        formula: ``"G ~ x1 + ... + xn"`` or ``"G ~ ."`` where ``G`` is a
            column of :class:`~pltree.rankings.RankingGroup` cells and the
            ``x`` are partitioning covariates.
        data: Data frame holding the response and the covariates.
        ref: Reference item recorded on every node model (label or 0-based
            index); defaults to the first item.
        weights: Column name in ``data`` or array of per-group weights.
        control: :class:`TreeControl`; keyword arguments naming its fields
            override it.
        **kwargs: Remaining keyword arguments (``npseudo``, ``max_iter``,
            ``max_tied``, ``tol``) are passed to :func:`~pltree.plfit` for
            every node and recorded on the tree.

    Returns:
        :class:`~pltree.party.PLTree`.

    Raises:
        TypeError: If an unknown keyword argument is given.

    Examples:
        >>> tree = pltree("G ~ judge_age + gender", data, minsize=5)  # doctest: +SKIP
        >>> tree.nodeids(terminal=True)  # doctest: +SKIP
        [2, 3]
    """
    control_names = {f.name for f in fields(TreeControl)}
    control_args = {k: v for k, v in kwargs.items() if k in control_names}
    fit_args = {k: v for k, v in kwargs.items() if k not in control_names}
    unknown = sorted(set(fit_args) - set(_FIT_OPTIONS))
    if unknown:
        raise TypeError(f"pltree() got unexpected keyword arguments: {unknown}")
    control = replace(control or TreeControl(), **control_args)

    frame = model_frame(formula, data, weights=weights)
    response = frame.response
    if len(response) == 0:
        raise ValueError("data must contain at least one group")

    fit_options = dict(fit_args)
    fit_options["ref"] = resolve_ref(ref, response.items)
    # one parameter layout for every node
    fit_options.setdefault("max_tied", response.max_tied)

    group_weights = frame.case_weights() * response.weights
    grower = _Grower(frame, group_weights, control, fit_options)
    root = grower.grow(np.arange(len(response)), depth=0)
    logger.debug("grew tree with %d nodes", grower.next_id - 1)

    return PLTree(
        root,
        frame=frame,
        fit_options=fit_options,
        control=control,
        weights=weights if isinstance(weights, str) else None,
    )


__all__ = ["TreeControl", "pltree"]
