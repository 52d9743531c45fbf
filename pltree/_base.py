"""
Base utilities for Plackett-Luce fitting and tree construction.

This module provides argument validation and the log-space helpers used by
the likelihood code.
"""

import numpy as np


def validate_int(name: str, value: int, minimum: int = 0) -> int:
    """Validate integer settings with a lower bound."""
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    ivalue = int(value)
    if ivalue < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {ivalue}")
    return ivalue


def validate_float(
    name: str, value: float, minimum: float = 0.0, inclusive: bool = True
) -> float:
    """Validate finite scalar settings that must be >= (or >) minimum."""
    if isinstance(value, bool):
        raise TypeError(f"{name} must be a finite scalar, got bool")
    fvalue = float(value)
    if not np.isfinite(fvalue):
        raise ValueError(f"{name} must be a finite scalar, got {value}")
    if inclusive and fvalue < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    if not inclusive and fvalue <= minimum:
        raise ValueError(f"{name} must be > {minimum}, got {value}")
    return fvalue


def validate_weights(weights, n: int, name: str = "weights") -> np.ndarray:
    """
    Validate a per-group weight vector.

    Args:
        weights: Array-like of length ``n`` or None.
        n: Expected number of groups.
        name: Argument name used in error messages.

    Returns:
        Float array of shape ``(n,)``; ones when ``weights`` is None.

    Raises:
        ValueError: If the length is wrong or any weight is negative or
            not finite.
    """
    if weights is None:
        return np.ones(n, dtype=float)
    w = np.asarray(weights, dtype=float).reshape(-1)
    if w.shape != (n,):
        raise ValueError(f"{name} must have length {n}, got {w.shape[0]}")
    if not np.all(np.isfinite(w)):
        raise ValueError(f"{name} must not contain NaN or Inf values")
    if np.any(w < 0):
        raise ValueError(f"{name} must be non-negative")
    return w


def logsumexp(values: np.ndarray) -> float:
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        return -np.inf
    max_v = np.max(values)
    if np.isneginf(max_v):
        return -np.inf
    return float(max_v + np.log(np.sum(np.exp(values - max_v))))


def log_elementary_symmetric_sum(log_x: np.ndarray, k: int) -> float:
    """
    Compute log(e_k(x)) where e_k is the k-th elementary symmetric polynomial.

        e_k(x) = Σ_{|T|=k} ∏_{i∈T} x_i

    Uses the recurrence e_j <- e_j + x_i * e_{j-1} as log-add-exp.
    """
    if k < 0:
        raise ValueError("k must be >= 0")
    if k == 0:
        return 0.0

    log_x = np.asarray(log_x, dtype=float)
    n = log_x.size
    if k > n:
        return -np.inf

    log_e = np.full(k + 1, -np.inf, dtype=float)
    log_e[0] = 0.0

    for i in range(n):
        upper = min(k, i + 1)
        for j in range(upper, 0, -1):
            log_e[j] = np.logaddexp(log_e[j], log_e[j - 1] + log_x[i])

    return float(log_e[k])


__all__ = [
    "validate_int",
    "validate_float",
    "validate_weights",
    "logsumexp",
    "log_elementary_symmetric_sum",
]
