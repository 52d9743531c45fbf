"""
Log-likelihood and AIC of Plackett-Luce trees.

The tree log-likelihood is the sum of the terminal node log-likelihoods and
its degrees of freedom are the node parameters plus, optionally, one per
split. The AIC is

.. math::
    \\mathrm{AIC} = -2\\,\\ell + 2\\,\\mathrm{df}.

On new data the tree structure and node parameters are held fixed: each new
group is routed to a terminal node, the node's parameters are evaluated on
the new rankings by a zero-iteration fit, and the degrees of freedom of the
original fit are reused. This makes the criterion usable for out-of-sample
comparison of trees without refitting them.
"""

import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .coefficients import coef
from .formula import model_frame
from .party import PLTree
from .plackett_luce import ConvergenceWarning, plfit
from .predict import predict


@dataclass(frozen=True)
class LogLik:
    """Log-likelihood with its degrees of freedom and number of groups."""

    value: float
    df: int
    nobs: int

    def __float__(self) -> float:
        return self.value


def loglik(tree: PLTree) -> LogLik:
    """
    In-sample log-likelihood of a tree.

    Returns:
        :class:`LogLik` where ``df`` is the sum of the terminal node degrees
        of freedom plus the number of splits (when the tree was grown with
        ``dfsplit=True``).
    """
    terminals = [tree.node(i) for i in tree.nodeids(terminal=True)]
    value = -sum(node.info.objfun for node in terminals)
    df = sum(node.info.df for node in terminals)
    if tree.control is None or tree.control.dfsplit:
        df += tree.n_splits
    if tree.frame is not None:
        nobs = len(tree.frame)
    else:
        nobs = int(sum(node.rows.size for node in terminals))
    return LogLik(float(value), int(df), nobs)


def aic(tree: PLTree, newdata: pd.DataFrame | None = None, weights=None) -> float:
    """
    Akaike information criterion of a tree, in-sample or on new data.

    Args:
        tree: Fitted :class:`~pltree.party.PLTree`.
        newdata: Data frame with the response column and the covariates of
            the tree's formula. None gives the in-sample AIC.
        weights: Per-group weights for ``newdata`` (column name or array).
            Defaults to the tree's weights column when ``newdata`` has it,
            else unit weights.

    Returns:
        ``-2 * L + 2 * df`` with ``L`` the log-likelihood of the data under
        the fixed node parameters and ``df`` the degrees of freedom of the
        original fit.

    Raises:
        ValueError: If ``newdata`` does not include the response,
            or holds ties of a higher order than the tree models.

    Notes:
        Only :class:`~pltree.plackett_luce.ConvergenceWarning` is suppressed
        during the zero-iteration fits; other warnings propagate.
    """
    df = loglik(tree).df
    if newdata is None:
        return -2.0 * loglik(tree).value + 2.0 * df

    if tree.formula is None:
        raise ValueError("tree has no formula; cannot build a model frame")
    response = tree.formula.response
    if response not in newdata.columns:
        raise ValueError(f"`newdata` must include response {response!r}")
    if len(newdata) == 0:
        # every node is empty
        return 2.0 * df
    if weights is None and tree.weights is not None and tree.weights in newdata.columns:
        weights = tree.weights
    frame = model_frame(tree.formula, newdata, weights=weights)

    node = predict(tree, frame.covariates, type="node").astype(int).to_numpy()
    cf = coef(tree, log=False, drop=False)
    G = frame.response
    w = frame.case_weights() * G.weights
    options = {k: v for k, v in tree.fit_options.items() if k != "max_iter"}
    options.setdefault("max_tied", tree.node(cf.index[0]).info.max_tied)
    if G.max_tied > options["max_tied"]:
        raise ValueError(
            f"newdata has ties of order {G.max_tied}; the tree has no tie "
            f"parameter beyond order {options['max_tied']}"
        )

    LL = np.zeros(len(cf.index))
    for i, node_id in enumerate(cf.index):
        # fixed coefficients, likelihood only
        idx = node == node_id
        if not idx.any():
            continue
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConvergenceWarning)
            fit = plfit(
                G[idx],
                start=cf.loc[node_id].to_numpy(),
                weights=w[idx],
                max_iter=0,
                **options,
            )
        LL[i] = -fit.objfun
    return -2.0 * float(LL.sum()) + 2.0 * df


__all__ = ["LogLik", "aic", "loglik"]
