import numpy as np
from scipy.stats import rankdata


def rank_scores(scores_in_id_order, tol=1e-12):
    """
    Rank scores in descending order with a tolerance for equal scores

    Args:
        scores_in_id_order (list or np.ndarray): Scores aligned by item order.
        tol (float): Tolerance threshold for treating scores as equal.

    Returns:
        dict: {
            "competition": np.ndarray of ranks (min-rank competition),
            "competition_max": np.ndarray of ranks (max-rank competition),
            "dense": np.ndarray of ranks (dense ranking),
            "avg": np.ndarray of ranks (average/fractional ranking),
            "ordinal": np.ndarray of ranks (ties broken by item order)
        }
    """
    scores = np.asarray(scores_in_id_order, dtype=float)
    order = np.argsort(-scores, kind="stable")  # descending, stable on ties
    sorted_scores = scores[order]

    # Group near-equal scores (within tolerance)
    grouped_scores = sorted_scores.copy()
    for i in range(1, len(grouped_scores)):
        if abs(grouped_scores[i] - grouped_scores[i - 1]) <= tol:
            grouped_scores[i] = grouped_scores[i - 1]

    def ranker(method):
        if method == "ordinal":
            # equal (grouped) scores keep item order
            tie_order = order[np.lexsort((order, -grouped_scores))]
            ranks = np.empty(len(scores), dtype=int)
            ranks[tie_order] = np.arange(1, len(scores) + 1)
            return ranks
        ranks_sorted = rankdata(-grouped_scores, method=method)
        ranks = np.empty_like(ranks_sorted)
        ranks[order] = ranks_sorted
        return ranks

    return {
        "competition": ranker("min"),        # 1,2,2,4,5
        "competition_max": ranker("max"),    # 1,3,3,4,5
        "dense": ranker("dense"),            # 1,2,2,3,4
        "avg": ranker("average"),            # 1.0,2.5,2.5,4.0,5.0
        "ordinal": ranker("ordinal"),        # 1,2,3,4,5
    }


def best_item(scores_in_id_order, tol=1e-12) -> int:
    """Index of the item ranked first; the earliest one wins on ties."""
    scores = np.asarray(scores_in_id_order, dtype=float)
    if scores.size == 0:
        raise ValueError("scores must not be empty")
    return int(np.argmin(rank_scores(scores, tol=tol)["ordinal"]))
