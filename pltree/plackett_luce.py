"""
Plackett-Luce model for rankings with ties.

Each item :math:`i` has a positive worth :math:`\\alpha_i`. A ranking is
decomposed into choices of a tied set :math:`T` from the remaining items
:math:`S` (see :mod:`pltree.rankings`), and each choice has the
Davidson-Luce probability

.. math::
    \\Pr(T \\mid S) =
    \\frac{\\delta_{|T|}\\, g_{|T|}(T)}
    {\\sum_{t=1}^{\\min(D, |S|)} \\delta_t \\sum_{|U|=t} g_t(U)},
    \\qquad
    g_t(U) = \\Big(\\prod_{i \\in U} \\alpha_i\\Big)^{1/t},

with :math:`\\delta_1 \\equiv 1` and tie parameters
:math:`\\delta_2, \\ldots, \\delta_D > 0` where :math:`D` is the largest tie
order. Without ties this is the Plackett-Luce model

.. math::
    \\Pr(i_1 \\succ \\cdots \\succ i_K)
    = \\prod_{k=1}^{K} \\frac{\\alpha_{i_k}}{\\sum_{j=k}^{K} \\alpha_{i_j}}.

Parameter layout:
    The coefficient vector has ``n_items + D - 1`` entries: the item worths
    followed by ``tie2, ..., tieD``. On the worth scale the item entries sum
    to one and tie entries are the raw :math:`\\delta_t`. On the log scale
    item entries are :math:`\\log\\alpha_i - \\log\\alpha_{ref}` and tie
    entries are :math:`\\log\\delta_t`.

Estimation maximizes the weighted log-likelihood with L-BFGS over
:math:`(\\log\\alpha, \\log\\delta)`. With ``max_iter=0`` no optimization
is done and the log-likelihood is evaluated at the starting values, which is
how a fixed set of parameters is scored on new rankings.

References:
    Plackett, R. L. (1975). The Analysis of Permutations.
    Journal of the Royal Statistical Society: Series C.

    Firth, D., Kosmidis, I., & Turner, H. L. (2019). Davidson-Luce model for
    multi-item choice with ties. arXiv:1909.07123.

    Turner, H. L., van Etten, J., Firth, D., & Kosmidis, I. (2020).
    Modelling rankings in R: the PlackettLuce package.
    Computational Statistics, 35, 1027-1057.
"""

import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy.optimize import minimize

from ._base import (
    log_elementary_symmetric_sum,
    logsumexp,
    validate_float,
    validate_int,
    validate_weights,
)
from ._types import ChoiceEvent, ItemRef
from .rankings import GroupedRankings


class ConvergenceWarning(UserWarning):
    """The optimizer stopped before convergence (iteration budget exhausted)."""


def tie_labels(max_tied: int) -> list[str]:
    return [f"tie{t}" for t in range(2, max_tied + 1)]


def resolve_ref(ref: ItemRef, items) -> int:
    """
    Resolve a reference item given by 0-based position or label.

    Raises:
        TypeError: If ``ref`` is neither an integer nor a string.
        ValueError: If ``ref`` does not identify one of ``items``.
    """
    items = tuple(items)
    if ref is None:
        return 0
    if isinstance(ref, bool):
        raise TypeError("ref must be an item label or index, got bool")
    if isinstance(ref, (int, np.integer)):
        if not 0 <= int(ref) < len(items):
            raise ValueError(
                f"ref index {int(ref)} out of range for {len(items)} items"
            )
        return int(ref)
    if isinstance(ref, str):
        if ref not in items:
            raise ValueError(f"ref {ref!r} is not one of the items {list(items)}")
        return items.index(ref)
    raise TypeError(f"ref must be an item label or index, got {type(ref).__name__}")


def parameterize(
    worth: np.ndarray,
    tie: np.ndarray,
    items,
    ref: int,
    log: bool,
) -> pd.Series:
    """
    Express worth and tie parameters on the requested scale.

    Args:
        worth: Positive item worths (any overall scale).
        tie: Tie parameters ``delta_2..delta_D``.
        items: Item labels.
        ref: Resolved reference position.
        log: If True, log-worth with ``ref`` fixed at 0 and log tie
            parameters; otherwise worth normalized to sum to one and raw tie
            parameters.

    Returns:
        Series indexed by item labels then ``tie2..tieD``.
    """
    worth = np.asarray(worth, dtype=float)
    tie = np.asarray(tie, dtype=float)
    if log:
        log_worth = np.log(worth)
        values = np.concatenate([log_worth - log_worth[ref], np.log(tie)])
        # exact zero at the reference irrespective of rounding
        values[ref] = 0.0
    else:
        values = np.concatenate([worth / worth.sum(), tie])
    index = list(items) + tie_labels(tie.size + 1)
    return pd.Series(values, index=index, dtype=float)


@dataclass(frozen=True, eq=False)
class PlackettLuceFit:
    """
    Fitted Plackett-Luce model.

    Attributes:
        items: Item labels.
        worth: Item worths, normalized to sum to one.
        tie: Tie parameters ``delta_2..delta_D`` (empty when ``D = 1``).
        ref: Reference item position recorded at fit time.
        loglik: Log-likelihood of the observed (non-pseudo) rankings.
        n_iter: Optimizer iterations used.
        converged: Whether the optimizer reported convergence.
        nobs: Number of groups with positive weight.
        npseudo: Pseudo-comparisons per item used in fitting.
    """

    items: tuple[str, ...]
    worth: np.ndarray
    tie: np.ndarray
    ref: int
    loglik: float
    n_iter: int
    converged: bool
    nobs: int
    npseudo: float = 0.0

    @property
    def max_tied(self) -> int:
        return int(self.tie.size) + 1

    @property
    def df(self) -> int:
        """Number of free parameters: ``n_items - 1`` worths plus tie parameters."""
        return len(self.items) - 1 + int(self.tie.size)

    @property
    def objfun(self) -> float:
        """Negative log-likelihood."""
        return -self.loglik

    def coef(self, ref: ItemRef = None, log: bool = True) -> pd.Series:
        """
        Coefficients on the log scale (default) or worth scale.

        Args:
            ref: Reference item; defaults to the one recorded at fit time.
            log: If False, worths summing to one are returned instead.
        """
        ref_id = self.ref if ref is None else resolve_ref(ref, self.items)
        return parameterize(self.worth, self.tie, self.items, ref_id, log)

    def itempar(self, ref: ItemRef = None, log: bool = False) -> pd.Series:
        """Item parameters only (no tie parameters); worth scale by default."""
        return self.coef(ref=ref, log=log).iloc[: len(self.items)]

    def fitted(self, rankings: GroupedRankings, weights=None) -> pd.DataFrame:
        """
        Fitted probability of every observed choice.

        Returns:
            DataFrame with one row per choice and columns ``ranking``,
            ``choice``, ``alternatives`` (tuples of item labels), ``n``
            (weight of the ranking's group) and ``fitted``.
        """
        rankings = _as_grouped(rankings)
        if rankings.items != self.items:
            raise ValueError("rankings must rank the items of the fitted model")
        w = (
            rankings.weights
            if weights is None
            else validate_weights(weights, len(rankings))
        )
        params = np.concatenate([np.log(self.worth), np.log(self.tie)])
        model = _ChoiceModel(len(self.items), self.max_tied)
        rows = []
        for r, (chosen, alternatives) in rankings.choices():
            log_p = model.log_choice_probability(params, chosen, alternatives)
            rows.append(
                {
                    "ranking": r,
                    "choice": tuple(self.items[i] for i in chosen),
                    "alternatives": tuple(self.items[i] for i in alternatives),
                    "n": float(w[rankings.group[r]]),
                    "fitted": float(np.exp(log_p)),
                }
            )
        columns = ["ranking", "choice", "alternatives", "n", "fitted"]
        return pd.DataFrame(rows, columns=columns)


class _ChoiceModel:
    """
    Weighted Davidson-Luce choice likelihood over aggregated choice events.

    Identical ``(chosen, alternatives)`` events are pooled so the objective
    cost scales with the number of distinct events.
    """

    def __init__(self, n_items: int, max_tied: int):
        self.n_items = n_items
        self.max_tied = max_tied
        self.events: dict[ChoiceEvent, float] = {}

    def add(self, event: ChoiceEvent, weight: float) -> None:
        if weight > 0:
            self.events[event] = self.events.get(event, 0.0) + weight

    def _log_denominator(
        self, log_alpha: np.ndarray, log_delta: np.ndarray, alternatives
    ) -> float:
        """
        log Z(S) with Z(S) = Σ_{t=1..min(D,|S|)} δ_t · e_t(α^{1/t}).
        """
        items = np.asarray(alternatives, dtype=int)
        D = min(self.max_tied, items.size)
        terms: list[float] = []
        for t in range(1, D + 1):
            log_delta_t = 0.0 if t == 1 else float(log_delta[t - 2])
            log_e_t = log_elementary_symmetric_sum(log_alpha[items] / float(t), t)
            if np.isneginf(log_e_t):
                continue
            terms.append(log_delta_t + log_e_t)
        return logsumexp(np.asarray(terms, dtype=float))

    def log_choice_probability(self, params: np.ndarray, chosen, alternatives) -> float:
        log_alpha = params[: self.n_items]
        log_delta = params[self.n_items :]
        t = len(chosen)
        log_delta_t = 0.0 if t == 1 else float(log_delta[t - 2])
        log_numerator = log_delta_t + float(log_alpha[list(chosen)].mean())
        return log_numerator - self._log_denominator(log_alpha, log_delta, alternatives)

    def loglik(self, params: np.ndarray) -> float:
        log_alpha = params[: self.n_items]
        log_delta = params[self.n_items :]
        denominators: dict[tuple[int, ...], float] = {}
        ll = 0.0
        for (chosen, alternatives), weight in self.events.items():
            if alternatives not in denominators:
                denominators[alternatives] = self._log_denominator(
                    log_alpha, log_delta, alternatives
                )
            t = len(chosen)
            log_delta_t = 0.0 if t == 1 else float(log_delta[t - 2])
            log_numerator = log_delta_t + float(log_alpha[list(chosen)].mean())
            ll += weight * (log_numerator - denominators[alternatives])
        return float(ll)


def _pseudo_loglik(log_alpha: np.ndarray, npseudo: float) -> float:
    """
    Log-likelihood of ``npseudo`` wins and losses of every item against a
    hypothetical item with log-worth 0.
    """
    if npseudo == 0:
        return 0.0
    log_denom = np.logaddexp(log_alpha, 0.0)
    return float(npseudo * np.sum((log_alpha - log_denom) + (0.0 - log_denom)))


def _as_grouped(rankings) -> GroupedRankings:
    if isinstance(rankings, GroupedRankings):
        return rankings
    if isinstance(rankings, np.ndarray):
        return GroupedRankings(rankings)
    raise TypeError(
        f"rankings must be GroupedRankings or a rank matrix, got {type(rankings).__name__}"
    )


def _start_params(start, n_items: int, max_tied: int) -> np.ndarray:
    n_tie = max_tied - 1
    if start is None:
        return np.concatenate([np.zeros(n_items), np.full(n_tie, np.log(0.1))])
    start = np.asarray(start, dtype=float).reshape(-1)
    if start.size not in (n_items, n_items + n_tie):
        raise ValueError(
            f"start must have length {n_items} or {n_items + n_tie}, got {start.size}"
        )
    if not np.all(np.isfinite(start)) or np.any(start <= 0):
        raise ValueError("start must contain positive finite worth and tie values")
    log_start = np.log(start)
    if start.size == n_items:
        log_start = np.concatenate([log_start, np.full(n_tie, np.log(0.1))])
    return log_start


def plfit(
    rankings,
    start=None,
    weights=None,
    max_iter: int = 500,
    ref: ItemRef = None,
    npseudo: float = 0.5,
    max_tied: int | None = None,
    tol: float = 1e-8,
) -> PlackettLuceFit:
    """
    Fit a Plackett-Luce model (with Davidson-Luce ties) to rankings.

    Args:
        rankings: :class:`GroupedRankings` or a rank matrix (one group per
            ranking).
        start: Optional starting values on the raw scale: ``n_items`` worths
            (need not sum to one), optionally followed by the
            ``max_tied - 1`` tie parameters.
        weights: Optional per-group weights; defaults to ``rankings.weights``.
        max_iter: Optimizer iteration budget. ``0`` evaluates the
            log-likelihood at ``start`` without optimizing.
        ref: Reference item recorded on the fit (label or 0-based index);
            defaults to the first item.
        npseudo: Pseudo wins and losses of each item against a hypothetical
            item, added to the objective (not to the reported
            log-likelihood) so that disconnected comparison networks remain
            estimable. ``0`` disables them.
        max_tied: Largest tie order ``D``; defaults to the largest tie in
            ``rankings``. Must be at least that large.
        tol: Relative objective tolerance passed to L-BFGS-B.

    Returns:
        :class:`PlackettLuceFit`.

    Warns:
        ConvergenceWarning: If the iteration budget is exhausted, which is
            always the case when ``max_iter=0``.

    Raises:
        RuntimeError: If optimization fails with a non-finite objective.

    Examples:
        >>> import numpy as np
        >>> R = np.array([[1, 2, 3], [1, 3, 2], [2, 1, 3]])
        >>> fit = plfit(R, npseudo=0)
        >>> round(float(fit.itempar().sum()), 8)
        1.0
        >>> fit.itempar().idxmax()
        'item1'
    """
    rankings = _as_grouped(rankings)
    max_iter = validate_int("max_iter", max_iter, minimum=0)
    npseudo = validate_float("npseudo", npseudo, minimum=0.0)
    tol = validate_float("tol", tol, minimum=0.0, inclusive=False)
    J = rankings.n_items
    if J < 2:
        raise ValueError(f"Need at least 2 items to rank, got {J}")
    ref_id = resolve_ref(ref, rankings.items)

    observed_tied = rankings.max_tied
    if max_tied is None:
        max_tied = observed_tied
    max_tied = validate_int("max_tied", max_tied, minimum=1)
    if max_tied < observed_tied:
        raise ValueError(
            f"max_tied must be >= the largest observed tie ({observed_tied}), got {max_tied}"
        )
    if max_tied > J:
        raise ValueError(f"max_tied must be <= number of items ({J}), got {max_tied}")

    w = (
        rankings.weights
        if weights is None
        else validate_weights(weights, len(rankings))
    )
    model = _ChoiceModel(J, max_tied)
    for r, event in rankings.choices():
        model.add(event, float(w[rankings.group[r]]))

    def negative_objective(params: np.ndarray) -> float:
        return -(model.loglik(params) + _pseudo_loglik(params[:J], npseudo))

    params0 = _start_params(start, J, max_tied)

    if max_iter == 0:
        params = params0
        n_iter = 0
        converged = False
        warnings.warn(
            "plfit iterations exhausted (max_iter=0): parameters not optimized",
            ConvergenceWarning,
            stacklevel=2,
        )
    else:
        result = minimize(
            negative_objective,
            params0,
            method="L-BFGS-B",
            options={"maxiter": max_iter, "ftol": tol},
        )
        if not np.isfinite(result.fun):
            raise RuntimeError(f"plfit optimization failed: {result.message}")
        params = result.x
        n_iter = int(result.nit)
        converged = bool(result.success)
        if not converged:
            warnings.warn(
                f"plfit did not converge: {result.message}",
                ConvergenceWarning,
                stacklevel=2,
            )

    log_alpha = params[:J] - logsumexp(params[:J])
    log_alpha = np.clip(log_alpha, -30.0, 0.0)
    tie = np.exp(np.clip(params[J:], -30.0, 30.0))
    worth = np.exp(log_alpha)
    worth = worth / worth.sum()

    loglik = model.loglik(np.concatenate([np.log(worth), np.log(tie)]))
    return PlackettLuceFit(
        items=rankings.items,
        worth=worth,
        tie=tie,
        ref=ref_id,
        loglik=loglik,
        n_iter=n_iter,
        converged=converged,
        nobs=int(np.count_nonzero(w > 0)),
        npseudo=npseudo,
    )


__all__ = [
    "ConvergenceWarning",
    "PlackettLuceFit",
    "parameterize",
    "plfit",
    "resolve_ref",
    "tie_labels",
]
