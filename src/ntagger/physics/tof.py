# src/ntagger/physics/tof.py
from __future__ import annotations
from dataclasses import dataclass
import numpy as np

from .hits import HitSeries
from ..geometry.pmts import PMTGeometry

# Speed of light in water [cm/ns]
C_WATER_CM_PER_NS = 21.5833

def as_vertex(vertex) -> np.ndarray:
    v = np.asarray(vertex, dtype=np.float64).reshape(-1)
    if v.shape != (3,):
        raise ValueError(f"Vertex must have 3 coordinates, got shape {v.shape}")
    if not np.all(np.isfinite(v)):
        raise ValueError(f"Non-finite vertex {v.tolist()}")
    return v

@dataclass(frozen=True)
class SortPermutation:
    """
    order[k]   : raw index of sorted element k
    reverse[i] : sorted position of raw element i
    """
    order: np.ndarray
    reverse: np.ndarray

    @classmethod
    def from_order(cls, order: np.ndarray) -> "SortPermutation":
        order = np.asarray(order, dtype=np.int64)
        reverse = np.empty_like(order)
        reverse[order] = np.arange(order.size, dtype=np.int64)
        return cls(order, reverse)

    @classmethod
    def identity(cls, n: int) -> "SortPermutation":
        return cls.from_order(np.arange(n, dtype=np.int64))

    def __len__(self) -> int:
        return int(self.order.size)

    def is_identity(self) -> bool:
        return bool(np.array_equal(self.order, np.arange(self.order.size)))

    def validate(self) -> None:
        """
        Raise ValueError if order/reverse are not mutually inverse.
        """
        n = self.order.size
        if self.reverse.size != n or not np.array_equal(
            self.reverse[self.order], np.arange(n)
        ):
            raise ValueError("SortPermutation order/reverse are inconsistent")

def time_of_flight(vertex, positions: np.ndarray, light_speed: float = C_WATER_CM_PER_NS) -> np.ndarray:
    """
    Light travel time [ns] from vertex to each position (N, 3).
    """
    v = as_vertex(vertex)
    P = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    return np.linalg.norm(P - v, axis=1) / light_speed

def subtract_tof(
    raw: HitSeries,
    vertex,
    geometry: PMTGeometry,
    light_speed: float = C_WATER_CM_PER_NS,
) -> np.ndarray:
    """
    Residual times t - ToF(vertex -> PMT) in raw hit order.
    """
    raw.validate()
    if len(raw) == 0:
        return np.zeros(0, dtype=np.float64)
    return raw.t_ns - time_of_flight(vertex, geometry.position_of(raw.pmt_id), light_speed)

def correct_and_sort(
    raw: HitSeries,
    vertex,
    geometry: PMTGeometry,
    light_speed: float = C_WATER_CM_PER_NS,
    sort: bool = True,
    subtract: bool = True,
) -> tuple[HitSeries, SortPermutation]:
    """
    ToF-correct a raw hit series and optionally sort it by corrected time.

    Returns (corrected, permutation). `corrected` carries charge, PMT id and
    signal flags re-ordered together with the times; the permutation maps
    between raw and corrected positions (identity when sort=False).
    The sort is stable, so equal times keep acquisition order.
    """
    raw.validate()
    t_res = subtract_tof(raw, vertex, geometry, light_speed) if subtract else raw.t_ns.copy()
    if sort:
        perm = SortPermutation.from_order(np.argsort(t_res, kind="stable"))
    else:
        perm = SortPermutation.identity(len(raw))
    return raw.take(perm.order, t_ns=t_res), perm
