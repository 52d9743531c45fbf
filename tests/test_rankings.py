from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from pltree import GroupedRankings, RankingGroup


@pytest.fixture
def small_rankings() -> GroupedRankings:
    R = np.array(
        [
            [1, 2, 3],
            [2, 1, 0],
            [1, 1, 2],
            [3, 1, 2],
        ]
    )
    return GroupedRankings(R, index=[7, 7, 2, 5], items=["A", "B", "C"])


class TestGroupedRankings:
    def test_groups_are_ordered_by_group_id(self, small_rankings) -> None:
        assert len(small_rankings) == 3
        # id 2 -> 0, id 5 -> 1, id 7 -> 2
        np.testing.assert_array_equal(small_rankings.group, [2, 2, 0, 1])

    def test_default_items_and_groups(self) -> None:
        G = GroupedRankings(np.array([[1, 2], [2, 1]]))
        assert G.items == ("item1", "item2")
        assert len(G) == 2

    def test_max_tied(self, small_rankings) -> None:
        assert small_rankings.max_tied == 2
        assert small_rankings[[1, 2]].max_tied == 1

    def test_weights_default_to_ones(self, small_rankings) -> None:
        np.testing.assert_array_equal(small_rankings.weights, [1.0, 1.0, 1.0])

    def test_subset_by_mask_keeps_weights(self) -> None:
        G = GroupedRankings(
            np.array([[1, 2], [2, 1], [1, 2]]), weights=[1.0, 2.0, 3.0]
        )
        sub = G[np.array([False, True, True])]
        assert len(sub) == 2
        np.testing.assert_array_equal(sub.weights, [2.0, 3.0])
        np.testing.assert_array_equal(sub.rankings, [[2, 1], [1, 2]])

    def test_subset_by_positions_reorders_groups(self, small_rankings) -> None:
        sub = small_rankings[[2, 0]]
        np.testing.assert_array_equal(sub.rankings, [[1, 2, 3], [2, 1, 0], [1, 1, 2]])
        np.testing.assert_array_equal(sub.group, [0, 0, 1])

    def test_empty_subset(self, small_rankings) -> None:
        sub = small_rankings[np.zeros(3, dtype=bool)]
        assert len(sub) == 0
        assert sub.choices() == []

    def test_choices_decompose_rankings(self, small_rankings) -> None:
        events = small_rankings.choices()
        assert events[:2] == [(0, ((0,), (0, 1, 2))), (0, ((1,), (1, 2)))]
        # partial ranking: C not ranked
        assert (1, ((1,), (0, 1))) in events
        # tie at the top
        assert (2, ((0, 1), (0, 1, 2))) in events
        assert all(len(alternatives) >= 2 for _, (_, alternatives) in events)

    def test_series_round_trip(self, small_rankings) -> None:
        s = small_rankings.to_series(index=["a", "b", "c"], name="G")
        assert isinstance(s, pd.Series)
        assert all(isinstance(cell, RankingGroup) for cell in s)
        back = GroupedRankings.from_series(s)
        assert back.items == small_rankings.items
        np.testing.assert_array_equal(back.rankings, small_rankings[[0, 1, 2]].rankings)

    def test_ranking_group_repr(self, small_rankings) -> None:
        text = repr(list(small_rankings)[0])
        assert "A = B > C" in text

    def test_validation_errors(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            GroupedRankings(np.array([[1, -1]]))
        with pytest.raises(ValueError, match="integer ranks"):
            GroupedRankings(np.array([[1.5, 2.0]]))
        with pytest.raises(ValueError, match="expected 2 item labels"):
            GroupedRankings(np.array([[1, 2]]), items=["A"])
        with pytest.raises(ValueError, match="one entry per ranking"):
            GroupedRankings(np.array([[1, 2], [2, 1]]), index=[0])
        with pytest.raises(TypeError, match="RankingGroup"):
            GroupedRankings.from_series(pd.Series([1, 2]))

    def test_index_errors(self, small_rankings) -> None:
        with pytest.raises(IndexError):
            small_rankings[5]
        with pytest.raises(IndexError, match="boolean index"):
            small_rankings[np.array([True, False])]
