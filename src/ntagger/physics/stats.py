# src/ntagger/physics/stats.py
"""
Hit-window statistics over ascending-sorted time arrays.

All functions are pure. Statistics requiring a division return 0.0 for an
empty input so feature vectors are always finite. Moments are accumulated
left to right (see seq_sum) followed by a single division by N.
"""
from __future__ import annotations
import numpy as np

def _as_times(t) -> np.ndarray:
    return np.asarray(t, dtype=np.float64).reshape(-1)

def seq_sum(x) -> float:
    """
    Sum accumulated strictly left to right.

    np.sum uses pairwise summation, whose rounding depends on the array
    length; window moments must not.
    """
    X = np.asarray(x, dtype=np.float64).reshape(-1)
    if X.size == 0:
        return 0.0
    return float(np.add.accumulate(X)[-1])

def count_in_window(t, start: int, width: float) -> int:
    """
    Number of hits j >= start with t[j] - t[start] < width.

    `t` must be sorted ascending. Returns 0 for an out-of-range start.
    """
    T = _as_times(t)
    n = T.shape[0]
    if start < 0 or start >= n:
        return 0
    # the predicate is monotone over a sorted array
    dt = T[start:] - T[start]
    return int(np.searchsorted(dt, width, side="left"))

def window_slice(t, start: int, width: float) -> slice:
    """Index range of the hits counted by count_in_window."""
    return slice(start, start + count_in_window(t, start, width))

def count_centered(t, center: float, width: float) -> int:
    """
    Number of hits in [center - width/2, center + width/2).
    """
    T = _as_times(t)
    lo = np.searchsorted(T, center - width / 2.0, side="left")
    hi = np.searchsorted(T, center + width / 2.0, side="left")
    return int(max(hi - lo, 0))

def charge_sum(t, q, start: int, width: float) -> float:
    """
    Summed charge of the hits counted by count_in_window(t, start, width).
    """
    Q = np.asarray(q, dtype=np.float64).reshape(-1)
    sl = window_slice(t, start, width)
    return seq_sum(Q[sl])

def mean(x) -> float:
    X = np.asarray(x, dtype=np.float64).reshape(-1)
    if X.size == 0:
        return 0.0
    return seq_sum(X) / X.size

def median(x) -> float:
    X = np.asarray(x, dtype=np.float64).reshape(-1)
    if X.size == 0:
        return 0.0
    return float(np.median(X))

def rms(x) -> float:
    """
    Population standard deviation (divide by N).
    """
    X = np.asarray(x, dtype=np.float64).reshape(-1)
    if X.size == 0:
        return 0.0
    mu = seq_sum(X) / X.size
    d = X - mu
    return float(np.sqrt(seq_sum(d * d) / X.size))

def skewness(x) -> float:
    """
    Third standardized moment, population convention.

    0.0 for empty input or zero variance.
    """
    X = np.asarray(x, dtype=np.float64).reshape(-1)
    if X.size == 0:
        return 0.0
    mu = seq_sum(X) / X.size
    d = X - mu
    d2 = d * d
    m2 = seq_sum(d2) / X.size
    if m2 <= 0:
        return 0.0
    m3 = seq_sum(d2 * d) / X.size
    return float(m3 / m2 ** 1.5)

def rms_in_window(t, start: int, width: float) -> float:
    T = _as_times(t)
    return rms(T[window_slice(T, start, width)])
