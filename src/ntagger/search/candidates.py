# src/ntagger/search/candidates.py
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from ..config.schemas import SearchCfg
from ..geometry.pmts import PMTGeometry
from ..geometry.tank import Tank
from ..physics.hits import HitSeries
from ..physics.stats import count_in_window
from ..physics.tof import SortPermutation, as_vertex
from .features import FeatureVector, compute_features
from .scanner import ScanResult

def _frozen(a: np.ndarray) -> np.ndarray:
    out = np.array(a, copy=True)
    out.flags.writeable = False
    return out

@dataclass(frozen=True, slots=True)
class Candidate:
    """
    One delayed hit cluster.

    Hit arrays cover the primary window starting at the trigger hit, in
    residual-time order, and are private read-only copies.
    """
    candidate_id: int
    trigger_index: int
    n_primary: int
    t_raw_ns: np.ndarray
    t_res_ns: np.ndarray
    q_pe: np.ndarray
    pmt_id: np.ndarray
    features: FeatureVector
    sig_flag: Optional[np.ndarray] = None

    @property
    def recon_time_ns(self) -> float:
        return float(self.t_res_ns[0])

    @property
    def n_signal_hits(self) -> int:
        if self.sig_flag is None:
            return 0
        return int(np.count_nonzero(self.sig_flag))


def build_candidate(
    candidate_id: int,
    trigger: int,
    corrected: HitSeries,
    raw: HitSeries,
    permutation: SortPermutation,
    vertex,
    geometry: PMTGeometry,
    tank: Tank,
    cfg: SearchCfg,
) -> Candidate:
    """
    Slice the primary window at `trigger` out of the sorted series and
    compute its features.

    `corrected` is the ToF-corrected, sorted series and `permutation` maps
    it back onto `raw`, which supplies the uncorrected hit times.
    """
    n = len(corrected)
    if trigger < 0 or trigger >= n:
        raise IndexError(f"Trigger index {trigger} outside series of length {n}")
    if len(permutation) != n or len(raw) != n:
        raise ValueError(
            f"Series/permutation length mismatch: corrected={n}, raw={len(raw)}, "
            f"permutation={len(permutation)}"
        )

    n_primary = count_in_window(corrected.t_ns, trigger, cfg.primary_window_ns)
    assert n_primary > 0, "primary window always contains its trigger hit"
    sl = slice(trigger, trigger + n_primary)

    pmt_id = corrected.pmt_id[sl]
    v = as_vertex(vertex)
    features = compute_features(
        corrected.t_ns,
        corrected.q_pe,
        trigger,
        n_primary,
        geometry.position_of(corrected.pmt_id),
        v,
        tank,
        cfg.primary_window_ns,
        cfg.wide_window_ns,
    )

    return Candidate(
        candidate_id=candidate_id,
        trigger_index=trigger,
        n_primary=n_primary,
        t_raw_ns=_frozen(raw.t_ns[permutation.order[sl]]),
        t_res_ns=_frozen(corrected.t_ns[sl]),
        q_pe=_frozen(corrected.q_pe[sl]),
        pmt_id=_frozen(pmt_id),
        features=features,
        sig_flag=None if corrected.sig_flag is None else _frozen(corrected.sig_flag[sl]),
    )


def build_candidates(
    scan: ScanResult,
    corrected: HitSeries,
    raw: HitSeries,
    permutation: SortPermutation,
    vertex,
    geometry: PMTGeometry,
    tank: Tank,
    cfg: SearchCfg,
) -> List[Candidate]:
    """One Candidate per accepted peak, in scan order."""
    out: List[Candidate] = []
    for k, peak in enumerate(scan.peaks):
        cand = build_candidate(k, peak.index, corrected, raw, permutation, vertex, geometry, tank, cfg)
        if cand.n_primary != peak.n_primary:
            raise ValueError(
                f"Candidate {k}: primary count {cand.n_primary} differs from scan count {peak.n_primary}"
            )
        out.append(cand)
    return out
