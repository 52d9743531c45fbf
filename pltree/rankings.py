"""
Grouped rankings: the response of a Plackett-Luce tree.

A ranking over :math:`J` items is stored as one row of a rank matrix,
``rankings[r, j]`` being the rank given to item ``j`` in ranking ``r``:

- ``1`` is the best rank; larger values are worse,
- equal non-zero values denote tied items,
- ``0`` marks an item that was not ranked (partial rankings).

Rankings are grouped into observational units (for example one group per
judge). Each group corresponds to one row of the covariate table used for
partitioning, so the number of groups is the number of observations seen by
the tree.

A ranking is decomposed into successive choices: at each stage the set of
items sharing the best remaining rank is chosen from the set of items not
yet chosen,

.. math::
    (T_1 \\mid S_1), (T_2 \\mid S_2), \\ldots, \\qquad
    S_{k+1} = S_k \\setminus T_k,

and the last stage is dropped when a single item remains.

Examples:
    >>> import numpy as np
    >>> R = np.array([
    ...     [1, 2, 3],
    ...     [2, 1, 0],
    ...     [1, 1, 2],
    ... ])
    >>> G = GroupedRankings(R, index=[0, 0, 1], items=["A", "B", "C"])
    >>> len(G)
    2
    >>> G.max_tied
    2
"""

import numpy as np
import pandas as pd

from ._base import validate_weights
from ._types import ChoiceEvent


class RankingGroup:
    """
    Rankings of a single observational unit.

    Instances are the cells of a DataFrame response column, see
    :meth:`GroupedRankings.to_series`.
    """

    __slots__ = ("rankings", "items")

    def __init__(self, rankings: np.ndarray, items: tuple[str, ...]):
        self.rankings = np.asarray(rankings, dtype=int).reshape(-1, len(items))
        self.items = tuple(items)

    def __repr__(self) -> str:
        rows = []
        for row in self.rankings:
            ranked = [(r, self.items[j]) for j, r in enumerate(row) if r > 0]
            ranked.sort(key=lambda pair: pair[0])
            text = ""
            for k, (r, label) in enumerate(ranked):
                if k > 0:
                    text += " = " if r == ranked[k - 1][0] else " > "
                text += label
            rows.append(text)
        return f"RankingGroup([{', '.join(rows)}])"


class GroupedRankings:
    """
    Collection of rankings partitioned into observational units.

    Args:
        rankings: Rank matrix of shape ``(n_rankings, n_items)``; a 1D array
            is treated as a single ranking.
        index: Group id for each ranking. Defaults to one group per ranking.
            Groups are ordered by sorted group id.
        items: Item labels. Defaults to ``"item1", "item2", ...``.
        weights: Optional non-negative weight per group.

    Raises:
        ValueError: If ranks are negative or not integer-valued, the label
            count does not match the number of columns, or ``index`` does not
            match the number of rankings.
    """

    def __init__(self, rankings, index=None, items=None, weights=None):
        R = np.asarray(rankings)
        if R.ndim == 1:
            R = R[np.newaxis, :]
        elif R.ndim != 2:
            raise ValueError(
                f"rankings must be a 1D or 2D array of ranks, got shape {R.shape}"
            )
        if R.size and not np.issubdtype(R.dtype, np.number):
            raise ValueError(f"rankings must be numeric, got dtype {R.dtype}")
        if R.size and (not np.all(np.isfinite(R)) or np.any(R != np.round(R))):
            raise ValueError("rankings must contain integer ranks")
        R = R.astype(int)
        if np.any(R < 0):
            raise ValueError("rankings must be non-negative (0 = not ranked)")

        n, J = R.shape
        if items is None:
            items = [f"item{j + 1}" for j in range(J)]
        items = tuple(str(label) for label in items)
        if len(items) != J:
            raise ValueError(f"expected {J} item labels, got {len(items)}")
        if len(set(items)) != J:
            raise ValueError("item labels must be unique")

        if index is None:
            group = np.arange(n)
        else:
            index = np.asarray(index).reshape(-1)
            if index.shape[0] != n:
                raise ValueError(
                    f"index must have one entry per ranking ({n}), got {index.shape[0]}"
                )
            _, group = np.unique(index, return_inverse=True)

        self._rankings = R
        self._group = group.astype(int)
        self._items = items
        self._n_groups = int(group.max()) + 1 if n else 0
        self._weights = (
            None if weights is None else validate_weights(weights, self._n_groups)
        )

    @property
    def rankings(self) -> np.ndarray:
        return self._rankings

    @property
    def group(self) -> np.ndarray:
        """Group position (0-based) of every ranking."""
        return self._group

    @property
    def items(self) -> tuple[str, ...]:
        return self._items

    @property
    def n_items(self) -> int:
        return len(self._items)

    @property
    def weights(self) -> np.ndarray:
        """Per-group weights; ones when the rankings are unweighted."""
        if self._weights is None:
            return np.ones(self._n_groups, dtype=float)
        return self._weights.copy()

    @property
    def max_tied(self) -> int:
        """Largest number of items sharing one rank in any ranking."""
        largest = 1
        for row in self._rankings:
            ranked = row[row > 0]
            if ranked.size:
                largest = max(largest, int(np.bincount(ranked).max()))
        return largest

    def __len__(self) -> int:
        return self._n_groups

    def __iter__(self):
        for g in range(self._n_groups):
            yield RankingGroup(self._rankings[self._group == g], self._items)

    def __getitem__(self, key) -> "GroupedRankings":
        positions = self._resolve_groups(key)
        rows = []
        new_index = []
        for new_g, g in enumerate(positions):
            members = np.flatnonzero(self._group == g)
            rows.append(members)
            new_index.append(np.full(members.size, new_g))
        if rows:
            take = np.concatenate(rows)
            index = np.concatenate(new_index)
        else:
            take = np.zeros(0, dtype=int)
            index = np.zeros(0, dtype=int)
        weights = None if self._weights is None else self._weights[positions]
        return GroupedRankings(
            self._rankings[take].reshape(-1, self.n_items),
            index=index,
            items=self._items,
            weights=weights,
        )

    def _resolve_groups(self, key) -> np.ndarray:
        G = self._n_groups
        if isinstance(key, slice):
            return np.arange(G)[key]
        if isinstance(key, (int, np.integer)) and not isinstance(key, bool):
            if not -G <= key < G:
                raise IndexError(f"group {key} out of range for {G} groups")
            return np.array([key % G])
        key = np.asarray(key)
        if key.dtype == bool:
            if key.shape != (G,):
                raise IndexError(
                    f"boolean index must have length {G}, got {key.shape[0]}"
                )
            return np.flatnonzero(key)
        if key.size == 0:
            return np.zeros(0, dtype=int)
        if not np.issubdtype(key.dtype, np.integer):
            raise IndexError("groups must be selected by slice, mask or integers")
        if np.any((key < -G) | (key >= G)):
            raise IndexError(f"group index out of range for {G} groups")
        return key.reshape(-1) % G

    def __repr__(self) -> str:
        return (
            f"GroupedRankings({self._rankings.shape[0]} rankings, "
            f"{self._n_groups} groups, {self.n_items} items)"
        )

    def choices(self) -> list[tuple[int, ChoiceEvent]]:
        """
        Decompose every ranking into successive choices.

        Returns:
            List of ``(ranking, (chosen, alternatives))`` where ``ranking`` is
            the row of the ranking and ``chosen`` / ``alternatives`` are
            sorted tuples of item positions with ``chosen`` a subset of
            ``alternatives``.
        """
        events: list[tuple[int, ChoiceEvent]] = []
        for r, row in enumerate(self._rankings):
            remaining = np.flatnonzero(row > 0)
            for level in np.unique(row[remaining]):
                if remaining.size < 2:
                    break
                chosen = remaining[row[remaining] == level]
                events.append((r, (tuple(int(i) for i in chosen),
                                   tuple(int(i) for i in remaining))))
                remaining = remaining[row[remaining] != level]
        return events

    def to_series(self, index=None, name: str | None = None) -> pd.Series:
        """
        Present the groups as a Series of :class:`RankingGroup` cells.

        The result can be stored as the response column of a covariate
        DataFrame, one cell per group.
        """
        if index is not None and len(index) != self._n_groups:
            raise ValueError(
                f"index must have one entry per group ({self._n_groups})"
            )
        return pd.Series(list(self), index=index, name=name, dtype=object)

    @classmethod
    def from_series(cls, cells, weights=None) -> "GroupedRankings":
        """
        Rebuild grouped rankings from :class:`RankingGroup` cells.

        Raises:
            TypeError: If a cell is not a :class:`RankingGroup`.
            ValueError: If the cells do not share the same items.
        """
        cells = list(cells)
        if not cells:
            raise ValueError("cannot build grouped rankings from zero groups")
        items = None
        rows = []
        index = []
        for g, cell in enumerate(cells):
            if not isinstance(cell, RankingGroup):
                raise TypeError(
                    f"response cells must be RankingGroup, got {type(cell).__name__}"
                )
            if items is None:
                items = cell.items
            elif cell.items != items:
                raise ValueError("all groups must rank the same items")
            if cell.rankings.shape[0] == 0:
                raise ValueError(f"group {g} has no rankings")
            rows.append(cell.rankings)
            index.append(np.full(cell.rankings.shape[0], g))
        return cls(
            np.vstack(rows),
            index=np.concatenate(index),
            items=items,
            weights=weights,
        )


__all__ = ["RankingGroup", "GroupedRankings"]
