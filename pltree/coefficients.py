"""
Coefficient extraction for Plackett-Luce trees.

Each terminal node is reparameterized independently: the node's stored
model (full fit or bare coefficient vector) is asked for its parameters on
the requested scale and reference, and the rows are stacked by node id.

Scales:
    - log scale: item log-worths with the reference item fixed at 0,
      followed by log tie parameters;
    - worth scale: item worths summing to one, followed by the tie
      parameters (not renormalized).

    .. math::
        \\alpha_i = \\frac{\\exp(\\lambda_i)}{\\sum_{j} \\exp(\\lambda_j)}

Reference resolution order: the ``ref`` argument, then the reference
recorded on the node at fit time, then the first item.
"""

import numpy as np
import pandas as pd

from ._types import ItemRef
from .party import NodeInfo, PLTree


def extract(info: NodeInfo, ref: ItemRef = None, log: bool = True) -> pd.Series:
    """
    Parameters of one node model.

    Args:
        info: Node model (:class:`~pltree.party.FullModel` or
            :class:`~pltree.party.RawCoefficients`).
        ref: Reference item label or 0-based index; None uses the node's
            fit-time reference.
        log: Log scale if True, worth scale otherwise.

    Raises:
        TypeError: If ``info`` is not a :class:`~pltree.party.NodeInfo`.
        ValueError: If ``ref`` is not one of the node's items.
    """
    if not isinstance(info, NodeInfo):
        raise TypeError(f"expected NodeInfo, got {type(info).__name__}")
    return info.coefficients(ref=ref, log=log)


def _node_ids(tree: PLTree, node) -> list[int]:
    if node is None:
        return tree.nodeids(terminal=True)
    if isinstance(node, (int, np.integer)):
        return [int(node)]
    if isinstance(node, str):
        raise TypeError(f"node must be an integer id or ids, got {node!r}")
    return [int(n) for n in node]


def coef(
    tree: PLTree,
    node=None,
    ref: ItemRef = None,
    log: bool = True,
    drop: bool = True,
):
    """
    Coefficients of the node models, one row per node.

    Args:
        tree: Fitted :class:`~pltree.party.PLTree`.
        node: Node id or ids; defaults to all terminal nodes.
        ref: Reference item label or 0-based index.
        log: Log scale (default) or worth scale.
        drop: Return a Series when a single node is requested.

    Returns:
        DataFrame indexed by node id with item columns followed by
        ``tie2..tieD``; a Series when ``drop`` and only one node.

    Raises:
        TypeError: If ``node`` is a string.
        KeyError: If a node id does not exist.
        ValueError: If a requested node has no model or ``ref`` is not an
            item.
    """
    ids = _node_ids(tree, node)
    rows = []
    for node_id in ids:
        info = tree.node(node_id).info
        if info is None:
            raise ValueError(f"node {node_id} has no fitted model")
        rows.append(extract(info, ref=ref, log=log))
    cf = pd.DataFrame(rows, index=pd.Index(ids, name="node"))
    if drop and len(ids) == 1:
        return cf.iloc[0]
    return cf


def itempar(
    tree: PLTree,
    node=None,
    ref: ItemRef = None,
    log: bool = False,
    drop: bool = True,
):
    """
    Item parameters of the node models (tie parameters excluded).

    By default these are worths summing to one in each node, i.e. the
    probability of each item being ranked first out of all items.
    """
    cf = coef(tree, node=node, ref=ref, log=log, drop=drop)
    items = list(tree.items)
    if isinstance(cf, pd.Series):
        return cf.loc[items]
    return cf.loc[:, items]


__all__ = ["coef", "extract", "itempar"]
