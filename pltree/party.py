"""
Tree structure for Plackett-Luce trees.

A :class:`PLTree` is a binary tree of :class:`PartyNode` objects. Internal
nodes carry a :class:`Split` on one covariate; every node carries a
:class:`NodeInfo` describing the Plackett-Luce model fitted to the groups
that reached it. Node ids are assigned in preorder starting from 1 at the
root.

Terminal node information comes in two storage variants sharing the
:class:`NodeInfo` interface:

- :class:`FullModel` keeps the complete :class:`~pltree.plackett_luce.PlackettLuceFit`,
- :class:`RawCoefficients` keeps only the log-scale coefficient vector with
  its reference item and largest tie order.

Trees are immutable once built; every operation in :mod:`pltree.coefficients`,
:mod:`pltree.predict` and :mod:`pltree.information` reads them only.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from ._types import ItemRef
from .formula import ModelFrame
from .plackett_luce import PlackettLuceFit, parameterize, resolve_ref


class NodeInfo(ABC):
    """
    Interface of the model stored in a node.

    Subclasses expose the node's parameters on a requested scale and
    reference, its degrees of freedom and its negative log-likelihood.
    """

    @property
    @abstractmethod
    def items(self) -> tuple[str, ...]:
        pass

    @property
    @abstractmethod
    def ref(self) -> int:
        """Reference item position recorded when the node was fitted."""

    @property
    @abstractmethod
    def max_tied(self) -> int:
        pass

    @property
    @abstractmethod
    def df(self) -> int:
        pass

    @property
    @abstractmethod
    def objfun(self) -> float:
        """Negative log-likelihood of the node's training rankings."""

    @abstractmethod
    def coefficients(self, ref: ItemRef = None, log: bool = True) -> pd.Series:
        """
        Node parameters: items then tie parameters.

        Args:
            ref: Reference item; None uses :attr:`ref`.
            log: Log scale (reference fixed at 0) or worth scale (items sum
                to one).
        """


class FullModel(NodeInfo):
    """Node information holding the complete fitted model."""

    def __init__(self, fit: PlackettLuceFit):
        if not isinstance(fit, PlackettLuceFit):
            raise TypeError(f"fit must be a PlackettLuceFit, got {type(fit).__name__}")
        self.fit = fit

    @property
    def items(self) -> tuple[str, ...]:
        return self.fit.items

    @property
    def ref(self) -> int:
        return self.fit.ref

    @property
    def max_tied(self) -> int:
        return self.fit.max_tied

    @property
    def df(self) -> int:
        return self.fit.df

    @property
    def objfun(self) -> float:
        return self.fit.objfun

    def coefficients(self, ref: ItemRef = None, log: bool = True) -> pd.Series:
        return self.fit.coef(ref=ref, log=log)

    def __repr__(self) -> str:
        return f"FullModel(objfun={self.objfun:.4f}, df={self.df})"


class RawCoefficients(NodeInfo):
    """
    Node information holding a bare log-scale coefficient vector.

    Args:
        coefficients: Log-scale coefficients indexed by item labels followed
            by ``tie2..tieD``; log-worths are relative to ``ref``.
        ref: Reference item position of ``coefficients``.
        max_tied: Largest tie order ``D``.
        df: Degrees of freedom of the node model.
        objfun: Negative log-likelihood at fit time.
    """

    def __init__(
        self,
        coefficients: pd.Series,
        ref: int,
        max_tied: int,
        df: int,
        objfun: float,
    ):
        coefficients = pd.Series(coefficients, dtype=float)
        n_items = coefficients.size - max_tied + 1
        if max_tied < 1 or n_items < 2:
            raise ValueError(
                f"{coefficients.size} coefficients cannot hold max_tied={max_tied}"
            )
        self._coefficients = coefficients
        self._items = tuple(str(label) for label in coefficients.index[:n_items])
        self._ref = resolve_ref(ref, self._items)
        self._max_tied = int(max_tied)
        self._df = int(df)
        self._objfun = float(objfun)

    @classmethod
    def from_fit(cls, fit: PlackettLuceFit) -> "RawCoefficients":
        return cls(
            fit.coef(log=True),
            ref=fit.ref,
            max_tied=fit.max_tied,
            df=fit.df,
            objfun=fit.objfun,
        )

    @property
    def items(self) -> tuple[str, ...]:
        return self._items

    @property
    def ref(self) -> int:
        return self._ref

    @property
    def max_tied(self) -> int:
        return self._max_tied

    @property
    def df(self) -> int:
        return self._df

    @property
    def objfun(self) -> float:
        return self._objfun

    @property
    def raw(self) -> pd.Series:
        return self._coefficients.copy()

    def coefficients(self, ref: ItemRef = None, log: bool = True) -> pd.Series:
        # back to the parameterization of the original fit
        values = np.exp(self._coefficients.to_numpy())
        n = values.size - self._max_tied + 1
        worth = values[:n] / values[:n].sum()
        tie = values[n:]
        ref_id = self._ref if ref is None else resolve_ref(ref, self._items)
        return parameterize(worth, tie, self._items, ref_id, log)

    def __repr__(self) -> str:
        return f"RawCoefficients(objfun={self.objfun:.4f}, df={self.df})"


@dataclass(frozen=True)
class Split:
    """
    Binary split on one covariate.

    Numeric splits send ``x <= threshold`` to the left child, categorical
    splits send ``x in levels`` to the left child. Missing values follow
    ``na_left``.
    """

    variable: str
    threshold: float | None = None
    levels: frozenset | None = None
    na_left: bool = True

    def __post_init__(self):
        if (self.threshold is None) == (self.levels is None):
            raise ValueError("a split needs exactly one of threshold or levels")

    def goes_left(self, values) -> np.ndarray:
        values = pd.Series(values)
        missing = values.isna().to_numpy()
        if self.threshold is not None:
            left = values.to_numpy(dtype=float, na_value=np.nan) <= self.threshold
        else:
            left = values.isin(self.levels).to_numpy()
        return np.where(missing, self.na_left, left)

    def __str__(self) -> str:
        if self.threshold is not None:
            return f"{self.variable} <= {self.threshold:g}"
        levels = ", ".join(sorted(str(level) for level in self.levels))
        return f"{self.variable} in {{{levels}}}"


@dataclass(eq=False)
class PartyNode:
    """
    Node of a Plackett-Luce tree.

    Attributes:
        id: Preorder node id, 1 for the root.
        info: Model fitted to the groups in this node.
        split: Split of an internal node; None for terminal nodes.
        kids: ``(left, right)`` children of an internal node.
        rows: Positions (in the training model frame) of the groups in
            this node.
        p_value: Adjusted p-value of the chosen split.
    """

    id: int
    info: NodeInfo | None = None
    split: Split | None = None
    kids: tuple["PartyNode", ...] = ()
    rows: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))
    p_value: float | None = None

    @property
    def is_terminal(self) -> bool:
        return not self.kids

    def walk(self):
        """Nodes of this subtree in preorder."""
        yield self
        for kid in self.kids:
            yield from kid.walk()


class PLTree:
    """
    Plackett-Luce tree: partition over covariates with a model per node.

    Args:
        root: Root node; ids must be unique and terminal nodes must carry
            :class:`NodeInfo`.
        frame: Training model frame; None for trees assembled by hand.
        fit_options: Options passed to every node fit, reused when the tree
            is scored on new data.
        control: Partitioning settings used to grow the tree.
        weights: Name of the weights column in the training data, if any.

    Raises:
        ValueError: If node ids repeat, a terminal node has no model, or the
            terminal models do not share items.
    """

    def __init__(
        self,
        root: PartyNode,
        frame: ModelFrame | None = None,
        fit_options: dict | None = None,
        control=None,
        weights: str | None = None,
    ):
        ids = [node.id for node in root.walk()]
        if len(set(ids)) != len(ids):
            raise ValueError(f"node ids must be unique, got {ids}")
        items = None
        for node in root.walk():
            if not node.is_terminal:
                if node.split is None or len(node.kids) != 2:
                    raise ValueError(f"internal node {node.id} needs a split and two kids")
                continue
            if not isinstance(node.info, NodeInfo):
                raise ValueError(f"terminal node {node.id} has no fitted model")
            if items is None:
                items = node.info.items
            elif node.info.items != items:
                raise ValueError("terminal node models must share the same items")

        self.root = root
        self.frame = frame
        self.fit_options = dict(fit_options or {})
        self.control = control
        self.weights = weights
        self._nodes = {node.id: node for node in root.walk()}
        self._items = items

    @property
    def items(self) -> tuple[str, ...]:
        return self._items

    @property
    def formula(self):
        return None if self.frame is None else self.frame.formula

    @property
    def n_splits(self) -> int:
        return sum(1 for node in self.root.walk() if not node.is_terminal)

    def nodeids(self, terminal: bool = False) -> list[int]:
        return [
            node.id for node in self.root.walk() if node.is_terminal or not terminal
        ]

    def node(self, node_id: int) -> PartyNode:
        try:
            return self._nodes[int(node_id)]
        except KeyError:
            raise KeyError(f"no node with id {node_id}") from None

    def split_variables(self) -> list[str]:
        names = [node.split.variable for node in self.root.walk() if node.split]
        return list(dict.fromkeys(names))

    def route(self, data: pd.DataFrame) -> np.ndarray:
        """
        Terminal node id for every row of ``data``.

        Raises:
            KeyError: If ``data`` lacks a covariate used by a split.
        """
        missing = [name for name in self.split_variables() if name not in data.columns]
        if missing:
            raise KeyError(f"data is missing covariates used by the tree: {missing}")

        ids = np.zeros(len(data), dtype=int)
        stack = [(self.root, np.arange(len(data)))]
        while stack:
            node, rows = stack.pop()
            if node.is_terminal:
                ids[rows] = node.id
                continue
            left = node.split.goes_left(data[node.split.variable].iloc[rows])
            stack.append((node.kids[0], rows[left]))
            stack.append((node.kids[1], rows[~left]))
        return ids

    def __repr__(self) -> str:
        lines = [f"Plackett-Luce tree ({len(self.nodeids(terminal=True))} terminal nodes)"]

        def describe(node: PartyNode, depth: int, label: str) -> None:
            pad = "|   " * depth
            text = f"{pad}[{node.id}] {label}".rstrip()
            if node.is_terminal:
                text += f": n = {node.rows.size}, objfun = {node.info.objfun:.3f}"
            lines.append(text)
            if not node.is_terminal:
                describe(node.kids[0], depth + 1, str(node.split))
                right = node.split
                describe(node.kids[1], depth + 1, f"not ({right})")

        describe(self.root, 0, "root")
        return "\n".join(lines)


__all__ = [
    "FullModel",
    "NodeInfo",
    "PLTree",
    "PartyNode",
    "RawCoefficients",
    "Split",
]
