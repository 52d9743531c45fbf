"""
Predictions and fitted values for Plackett-Luce trees.

Every group (row of covariates) is routed to a terminal node and the node's
model is summarized in one of four ways:

- ``"itempar"``: item parameters (worths summing to one by default),
- ``"rank"``: item ranks by decreasing worth, ties in item order,
- ``"best"``: label of the top ranked item,
- ``"node"``: id of the terminal node, as a string.

Node summaries are computed once per terminal node and shared by all groups
routed to it.
"""

import numpy as np
import pandas as pd

from ._types import ItemRef, PredictType
from .coefficients import extract
from .party import FullModel, PLTree
from .plackett_luce import plfit
from .utils import best_item, rank_scores

_TYPES = ("itempar", "rank", "best", "node")


def _covariates(tree: PLTree, newdata) -> pd.DataFrame:
    if newdata is not None:
        if not isinstance(newdata, pd.DataFrame):
            raise TypeError(
                f"newdata must be a pandas DataFrame, got {type(newdata).__name__}"
            )
        return newdata
    if tree.frame is None:
        raise ValueError("tree has no training data; newdata is required")
    return tree.frame.covariates


def predict(
    tree: PLTree,
    newdata: pd.DataFrame | None = None,
    type: PredictType = "itempar",
    ref: ItemRef = None,
    log: bool = False,
):
    """
    Predict for each group from the model of the node it falls into.

    Args:
        tree: Fitted :class:`~pltree.party.PLTree`.
        newdata: Covariates of the groups to predict; must contain every
            covariate used by a split (the response is not needed).
            Defaults to the training data.
        type: One of ``"itempar"``, ``"rank"``, ``"best"``, ``"node"``.
        ref: Reference item for ``"itempar"``.
        log: Log-worths instead of worths for ``"itempar"``.

    Returns:
        - ``"node"``: Series of node id strings indexed by 1-based position
          strings ``"1", "2", ...``.
        - ``"itempar"`` / ``"rank"``: DataFrame with one row per group
          (indexed like ``newdata``) and one column per item.
        - ``"best"``: Series of item labels indexed like ``newdata``.

    Raises:
        ValueError: If ``type`` is unknown.
        KeyError: If ``newdata`` lacks a covariate used by the tree.

    Examples:
        >>> predict(tree, newdata.iloc[:3], type="best")  # doctest: +SKIP
        0    Anja
        1    Anni
        2    Anja
        dtype: object
    """
    if type not in _TYPES:
        raise ValueError(f"type must be one of {_TYPES}, got {type!r}")
    data = _covariates(tree, newdata)
    ids = tree.route(data)

    if type == "node":
        return pd.Series(
            [str(i) for i in ids],
            index=[str(k) for k in range(1, ids.size + 1)],
            dtype=object,
        )

    items = list(tree.items)
    summaries = {}
    for node_id in np.unique(ids):
        info = tree.node(node_id).info
        if type == "itempar":
            summaries[node_id] = extract(info, ref=ref, log=log).loc[items].to_numpy()
        else:
            worth = extract(info, log=False).loc[items].to_numpy()
            if type == "rank":
                summaries[node_id] = rank_scores(worth)["ordinal"].astype(int)
            else:
                summaries[node_id] = items[best_item(worth)]

    if type == "best":
        return pd.Series(
            [summaries[i] for i in ids], index=data.index, dtype=object
        )
    values = np.array([summaries[i] for i in ids]).reshape(ids.size, len(items))
    return pd.DataFrame(values, index=data.index, columns=items)


def fitted(tree: PLTree) -> pd.DataFrame:
    """
    Fitted probabilities of the training choices, node by node.

    Nodes storing only coefficients are refitted on their training groups
    with the tree's fit options.

    Returns:
        DataFrame with columns ``ranking`` (row in the training rankings),
        ``choice``, ``alternatives``, ``n``, ``fitted`` and ``node``.
    """
    if tree.frame is None:
        raise ValueError("tree has no training data")
    response = tree.frame.response
    weights = tree.frame.case_weights() * response.weights

    parts = []
    for node_id in tree.nodeids(terminal=True):
        node = tree.node(node_id)
        subset = response[node.rows]
        if isinstance(node.info, FullModel):
            fit = node.info.fit
        else:
            fit = plfit(subset, weights=weights[node.rows], **tree.fit_options)
        part = fit.fitted(subset, weights=weights[node.rows])
        members = [np.flatnonzero(response.group == g) for g in node.rows]
        global_rows = np.concatenate(members) if members else np.zeros(0, dtype=int)
        part["ranking"] = global_rows[part["ranking"].to_numpy(dtype=int)]
        part["node"] = node_id
        parts.append(part)
    columns = ["ranking", "choice", "alternatives", "n", "fitted", "node"]
    if not parts:
        return pd.DataFrame(columns=columns)
    return pd.concat(parts, ignore_index=True)[columns]


__all__ = ["fitted", "predict"]
