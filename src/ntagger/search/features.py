# src/ntagger/search/features.py
from __future__ import annotations
from collections.abc import Mapping
from typing import Dict, Iterator, List, Literal, NamedTuple, Tuple, Union

import numpy as np

from ..geometry.tank import Tank
from ..physics import stats
from ..physics.angular import (
    angles_to_direction,
    beta_coefficients,
    hit_directions,
    mean_direction,
    opening_angle_statistics,
)

# Secondary window widths [ns]
N50_WINDOW_NS = 50.0
N1300_WINDOW_NS = 1300.0
TRMS50_WINDOW_NS = 50.0
BETA_MAX_ORDER = 5

class FeatureSpec(NamedTuple):
    name: str
    kind: Literal["int", "float"]
    doc: str

FEATURE_SCHEMA: Tuple[FeatureSpec, ...] = (
    FeatureSpec("N10", "int", "hits in the primary window from the trigger"),
    FeatureSpec("N50", "int", "hits in 50 ns from the trigger"),
    FeatureSpec("N200", "int", "hits in the wide window centred on the primary window"),
    FeatureSpec("N1300", "int", "hits in 1300 ns centred on the primary window"),
    FeatureSpec("ReconCT", "float", "trigger residual time [ns]"),
    FeatureSpec("sumQ", "float", "summed charge in the primary window [p.e.]"),
    FeatureSpec("spread", "float", "last minus first residual time in the primary window [ns]"),
    FeatureSpec("TRMS", "float", "RMS of residual times in the primary window [ns]"),
    FeatureSpec("TRMS50", "float", "RMS of residual times in 50 ns from the trigger [ns]"),
    FeatureSpec("Skewness", "float", "skewness of residual times in the primary window"),
    FeatureSpec("Beta1", "float", "isotropy parameter beta_1"),
    FeatureSpec("Beta2", "float", "isotropy parameter beta_2"),
    FeatureSpec("Beta3", "float", "isotropy parameter beta_3"),
    FeatureSpec("Beta4", "float", "isotropy parameter beta_4"),
    FeatureSpec("Beta5", "float", "isotropy parameter beta_5"),
    FeatureSpec("Beta14_10", "float", "beta_1 + 4 beta_4 of the primary-window hits"),
    FeatureSpec("Beta14_50", "float", "beta_1 + 4 beta_4 of the hits in 50 ns from the trigger"),
    FeatureSpec("AngleMean", "float", "mean pairwise opening angle [deg]"),
    FeatureSpec("AngleStdev", "float", "stdev of pairwise opening angles [deg]"),
    FeatureSpec("AngleSkew", "float", "skewness of pairwise opening angles"),
    FeatureSpec("MeanDirAngleMean", "float", "mean angle to the mean hit direction [deg]"),
    FeatureSpec("MeanDirAngleStdev", "float", "stdev of angles to the mean hit direction [deg]"),
    FeatureSpec("DWall", "float", "vertex distance to the nearest tank wall [cm]"),
    FeatureSpec("DWallMeanDir", "float", "vertex distance to the wall along the mean hit direction [cm]"),
)

FEATURE_NAMES: Tuple[str, ...] = tuple(f.name for f in FEATURE_SCHEMA)
_INDEX: Dict[str, int] = {name: k for k, name in enumerate(FEATURE_NAMES)}
_INT_FEATURES = frozenset(f.name for f in FEATURE_SCHEMA if f.kind == "int")

Number = Union[int, float]

class FeatureVector(Mapping):
    """
    Read-only name -> value mapping in FEATURE_SCHEMA order.

    Every schema feature is always present. Integer features are returned
    as int, the rest as float.
    """
    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, Number]):
        missing = [n for n in FEATURE_NAMES if n not in values]
        extra = [n for n in values if n not in _INDEX]
        if missing or extra:
            raise KeyError(f"Feature schema mismatch: missing={missing}, unknown={extra}")
        arr = np.array([float(values[n]) for n in FEATURE_NAMES], dtype=np.float64)
        if not np.all(np.isfinite(arr)):
            bad = [n for n, v in zip(FEATURE_NAMES, arr) if not np.isfinite(v)]
            raise ValueError(f"Non-finite feature values: {bad}")
        arr.flags.writeable = False
        self._values = arr

    def __getitem__(self, name: str) -> Number:
        v = self._values[_INDEX[name]]
        return int(v) if name in _INT_FEATURES else float(v)

    def __iter__(self) -> Iterator[str]:
        return iter(FEATURE_NAMES)

    def __len__(self) -> int:
        return len(FEATURE_NAMES)

    def __repr__(self) -> str:
        body = ", ".join(f"{n}={self[n]!r}" for n in FEATURE_NAMES)
        return f"FeatureVector({body})"

    @staticmethod
    def names() -> Tuple[str, ...]:
        return FEATURE_NAMES

    def as_array(self) -> np.ndarray:
        """Values in schema order, as float64 (classifier input row)."""
        return self._values.copy()

    def to_dict(self) -> Dict[str, Number]:
        return {n: self[n] for n in FEATURE_NAMES}


def _beta14(betas: np.ndarray) -> float:
    return float(betas[1] + 4.0 * betas[4])


def compute_features(
    t_sorted: np.ndarray,
    q_sorted: np.ndarray,
    trigger: int,
    n_primary: int,
    pmt_positions: np.ndarray,
    vertex: np.ndarray,
    tank: Tank,
    primary_window_ns: float,
    wide_window_ns: float,
) -> FeatureVector:
    """
    Feature vector of the candidate anchored at `trigger`.

    t_sorted, q_sorted: full sorted residual times and charges of the event.
    pmt_positions: (N, 3) PMT positions of the full sorted series.
    """
    t0 = float(t_sorted[trigger])
    t_win = t_sorted[trigger:trigger + n_primary]
    center = t0 + primary_window_ns / 2.0

    sl50 = stats.window_slice(t_sorted, trigger, N50_WINDOW_NS)
    dirs = hit_directions(pmt_positions[trigger:trigger + n_primary], vertex)
    betas = beta_coefficients(dirs, BETA_MAX_ORDER)
    betas50 = beta_coefficients(hit_directions(pmt_positions[sl50], vertex), 4)
    opening = opening_angle_statistics(dirs)
    axis = mean_direction(dirs)
    to_axis = angles_to_direction(dirs, axis)

    values: Dict[str, Number] = {
        "N10": n_primary,
        "N50": sl50.stop - sl50.start,
        "N200": stats.count_centered(t_sorted, center, wide_window_ns),
        "N1300": stats.count_centered(t_sorted, center, N1300_WINDOW_NS),
        "ReconCT": t0,
        "sumQ": stats.seq_sum(q_sorted[trigger:trigger + n_primary]),
        "spread": float(t_win[-1] - t_win[0]),
        "TRMS": stats.rms(t_win),
        "TRMS50": stats.rms_in_window(t_sorted, trigger, TRMS50_WINDOW_NS),
        "Skewness": stats.skewness(t_win),
        "AngleMean": opening.mean,
        "AngleStdev": opening.stdev,
        "AngleSkew": opening.skew,
        "MeanDirAngleMean": stats.mean(to_axis),
        "MeanDirAngleStdev": stats.rms(to_axis),
        "DWall": tank.dwall(vertex),
        "DWallMeanDir": tank.distance_to_wall(vertex, axis),
    }
    for l in range(1, BETA_MAX_ORDER + 1):
        values[f"Beta{l}"] = float(betas[l])
    values["Beta14_10"] = _beta14(betas)
    values["Beta14_50"] = _beta14(betas50)
    return FeatureVector(values)


def feature_matrix(vectors: List[FeatureVector]) -> np.ndarray:
    """Stack feature vectors into an (N, n_features) array."""
    if not vectors:
        return np.zeros((0, len(FEATURE_NAMES)), dtype=np.float64)
    return np.stack([v.as_array() for v in vectors], axis=0)
