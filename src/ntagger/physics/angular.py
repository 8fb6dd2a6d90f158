# src/ntagger/physics/angular.py
from __future__ import annotations
from typing import NamedTuple
import numpy as np

from .stats import mean, rms, seq_sum, skewness

def legendre(order: int, x):
    """
    Legendre polynomial P_order(x). Accepts a scalar or an array.

    Orders up to 5 use the closed forms; higher orders use Bonnet's recursion
    (n+1) P_{n+1} = (2n+1) x P_n - n P_{n-1}.
    """
    if order < 0:
        raise ValueError(f"Legendre order must be non-negative, got {order}")
    x = np.asarray(x, dtype=np.float64)
    if order == 0:
        out = np.ones_like(x)
    elif order == 1:
        out = x
    elif order == 2:
        out = (3 * x**2 - 1) / 2
    elif order == 3:
        out = (5 * x**3 - 3 * x) / 2
    elif order == 4:
        out = (35 * x**4 - 30 * x**2 + 3) / 8
    elif order == 5:
        out = (63 * x**5 - 70 * x**3 + 15 * x) / 8
    else:
        p_prev, p = legendre(4, x), legendre(5, x)
        for n in range(5, order):
            p_prev, p = p, ((2 * n + 1) * x * p - n * p_prev) / (n + 1)
        out = np.asarray(p)
    return float(out) if out.ndim == 0 else out

def hit_directions(positions: np.ndarray, vertex) -> np.ndarray:
    """
    Unit vectors from `vertex` to each PMT position, shape (N, 3).

    A PMT sitting at the vertex gets the zero vector.
    """
    P = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    d = P - np.asarray(vertex, dtype=np.float64)
    norm = np.linalg.norm(d, axis=1)
    out = np.zeros_like(d)
    ok = norm > 0
    out[ok] = d[ok] / norm[ok, None]
    return out

def _pair_cosines(directions: np.ndarray) -> np.ndarray:
    """cos(theta_ij) for i < j, row-major over (i, j)."""
    D = np.asarray(directions, dtype=np.float64).reshape(-1, 3)
    i, j = np.triu_indices(D.shape[0], k=1)
    return np.clip(np.einsum("ij,ij->i", D[i], D[j]), -1.0, 1.0)

def beta_coefficients(directions: np.ndarray, max_order: int = 5) -> np.ndarray:
    """
    Isotropy parameters beta_l, l = 1..max_order, returned as an array of
    length max_order + 1 with element 0 unused (always 0).

    beta_l = 2 / (N (N-1)) * sum_{i<j} P_l(cos theta_ij)

    See Eq. (5) of arXiv:1602.02469. Fewer than two hits gives all zeros.
    """
    betas = np.zeros(max_order + 1, dtype=np.float64)
    n = len(directions)
    if n < 2:
        return betas
    cos_ij = _pair_cosines(directions)
    for l in range(1, max_order + 1):
        betas[l] = 2.0 * seq_sum(legendre(l, cos_ij)) / n / (n - 1)
    return betas

class AngleStats(NamedTuple):
    mean: float
    stdev: float
    skew: float

def opening_angle_statistics(directions: np.ndarray) -> AngleStats:
    """
    Mean, population stdev and skewness of pairwise opening angles [deg].
    """
    if len(directions) < 2:
        return AngleStats(0.0, 0.0, 0.0)
    ang = np.degrees(np.arccos(_pair_cosines(directions)))
    return AngleStats(mean(ang), rms(ang), skewness(ang))

def mean_direction(directions: np.ndarray) -> np.ndarray:
    """Normalised sum of unit vectors; zero vector if they cancel."""
    D = np.asarray(directions, dtype=np.float64).reshape(-1, 3)
    s = D.sum(axis=0)
    n = np.linalg.norm(s)
    if n == 0:
        return np.zeros(3)
    return s / n

def angles_to_direction(directions: np.ndarray, axis: np.ndarray) -> np.ndarray:
    """Angle [deg] between each direction and `axis`."""
    D = np.asarray(directions, dtype=np.float64).reshape(-1, 3)
    c = np.clip(D @ np.asarray(axis, dtype=np.float64), -1.0, 1.0)
    return np.degrees(np.arccos(c))
