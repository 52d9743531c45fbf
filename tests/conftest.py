from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from pltree import (
    FullModel,
    GroupedRankings,
    PartyNode,
    PlackettLuceFit,
    PLTree,
    RawCoefficients,
    Split,
    pltree,
)

ITEMS = ("A", "B", "C")
WORTH_LOW = np.array([0.6, 0.3, 0.1])
WORTH_HIGH = np.array([0.1, 0.3, 0.6])


def sample_rankings(
    rng: np.random.Generator, worth: np.ndarray, size: int
) -> np.ndarray:
    """Draw complete rankings from a Plackett-Luce model by sequential choice."""
    J = worth.size
    R = np.zeros((size, J), dtype=int)
    for r in range(size):
        remaining = list(range(J))
        for position in range(1, J + 1):
            p = worth[remaining] / worth[remaining].sum()
            k = int(rng.choice(len(remaining), p=p))
            R[r, remaining.pop(k)] = position
    return R


def _simulate(seed: int, n_judges: int, per_judge: int) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    x = np.repeat([0, 1], n_judges // 2)
    blocks = []
    index = []
    for judge, level in enumerate(x):
        worth = WORTH_LOW if level == 0 else WORTH_HIGH
        blocks.append(sample_rankings(rng, worth, per_judge))
        index.append(np.full(per_judge, judge))
    G = GroupedRankings(np.vstack(blocks), index=np.concatenate(index), items=ITEMS)
    data = pd.DataFrame(
        {
            "x": x,
            "z": rng.normal(size=x.size),
            "grp": np.where(x == 0, "low", "high"),
        }
    )
    data["G"] = G.to_series(data.index)
    return data


@pytest.fixture(scope="session")
def ranking_data() -> pd.DataFrame:
    return _simulate(seed=20261019, n_judges=40, per_judge=5)


@pytest.fixture(scope="session")
def holdout_data() -> pd.DataFrame:
    return _simulate(seed=20261020, n_judges=20, per_judge=5)


@pytest.fixture(scope="session")
def fitted_tree(ranking_data: pd.DataFrame) -> PLTree:
    return pltree("G ~ x + z", ranking_data, minsize=5, maxdepth=1, npseudo=0)


@pytest.fixture(scope="session")
def coefficient_tree(ranking_data: pd.DataFrame) -> PLTree:
    return pltree(
        "G ~ x + z",
        ranking_data,
        minsize=5,
        maxdepth=1,
        npseudo=0,
        terminal="coefficients",
    )


def _raw_node(worth) -> RawCoefficients:
    log_worth = np.log(np.asarray(worth, dtype=float))
    return RawCoefficients(
        pd.Series(log_worth - log_worth[0], index=list(ITEMS)),
        ref=0,
        max_tied=1,
        df=2,
        objfun=10.0,
    )


def _full_node(worth) -> FullModel:
    fit = PlackettLuceFit(
        items=ITEMS,
        worth=np.asarray(worth, dtype=float),
        tie=np.zeros(0),
        ref=0,
        loglik=-10.0,
        n_iter=0,
        converged=True,
        nobs=10,
    )
    return FullModel(fit)


@pytest.fixture(params=["raw", "full"])
def example_tree(request) -> PLTree:
    """Two terminal nodes over items A, B, C split at x <= 0.5."""
    make = _raw_node if request.param == "raw" else _full_node
    root = PartyNode(
        id=1,
        split=Split("x", threshold=0.5),
        kids=(
            PartyNode(id=2, info=make([0.5, 0.3, 0.2])),
            PartyNode(id=3, info=make([0.2, 0.2, 0.6])),
        ),
    )
    return PLTree(root)


@pytest.fixture(scope="session")
def pl_sampler():
    return sample_rankings
