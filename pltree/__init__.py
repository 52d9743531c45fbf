"""pltree: Plackett-Luce trees for heterogeneous ranking data.

Recursive partitioning of grouped rankings over covariates, with a
Plackett-Luce model (with ties) fitted in each node.

Modules
------------------
- ``pltree.rankings`` provides grouped rankings, the response of a tree.
- ``pltree.plackett_luce`` fits Plackett-Luce models with ties.
- ``pltree.partition`` grows trees; ``pltree.party`` holds their structure.
- ``pltree.coefficients`` extracts node parameters on a chosen scale and
  reference.
- ``pltree.predict`` routes groups to nodes and predicts from node models.
- ``pltree.information`` computes log-likelihood and AIC, including AIC on
  new data with the tree held fixed.
- ``pltree.utils`` provides ranking utilities shared across modules.

Examples
--------
>>> import pandas as pd
>>> from pltree import GroupedRankings, pltree, predict, aic
>>> G = GroupedRankings(R, index=judge, items=["A", "B", "C"])  # doctest: +SKIP
>>> data = covariates.assign(G=G.to_series(covariates.index))  # doctest: +SKIP
>>> tree = pltree("G ~ .", data, minsize=5, npseudo=0)  # doctest: +SKIP
>>> predict(tree, data, type="best")  # doctest: +SKIP
>>> aic(tree, newdata=holdout)  # doctest: +SKIP
"""

__version__ = "0.1.0"

from .coefficients import coef, itempar
from .formula import Formula, ModelFrame, model_frame, parse_formula
from .information import LogLik, aic, loglik
from .partition import TreeControl, pltree
from .party import FullModel, NodeInfo, PartyNode, PLTree, RawCoefficients, Split
from .plackett_luce import ConvergenceWarning, PlackettLuceFit, plfit
from .predict import fitted, predict
from .rankings import GroupedRankings, RankingGroup

__all__ = [
    # Response
    "GroupedRankings",
    "RankingGroup",
    # Ranking model
    "plfit",
    "PlackettLuceFit",
    "ConvergenceWarning",
    # Formula
    "Formula",
    "ModelFrame",
    "model_frame",
    "parse_formula",
    # Tree
    "pltree",
    "TreeControl",
    "PLTree",
    "PartyNode",
    "Split",
    "NodeInfo",
    "FullModel",
    "RawCoefficients",
    # Node parameters and predictions
    "coef",
    "itempar",
    "predict",
    "fitted",
    # Information criteria
    "loglik",
    "aic",
    "LogLik",
]
