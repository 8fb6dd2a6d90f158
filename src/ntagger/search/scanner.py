# src/ntagger/search/scanner.py
"""
Single-pass search for delayed hit clusters in a sorted residual-time series.

The scan walks the hits once. A hit can anchor a peak when the number of
hits in the primary window starting at it (N10 for the default 10 ns) lies
in [min_count, max_count]. Peaks closer than min_peak_separation_ns are one
group; the first hit reaching the group's largest N10 becomes its trigger.
A group is emitted when the next group starts (if its wide-window count is
below max_wide_count and it lies above the start-time floor) or when the
scan ends.

State is an immutable ScanState threaded through step(); nothing is kept
between events.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Dict, List, NamedTuple, Optional, Tuple

import numpy as np

from ..config.schemas import SearchCfg
from ..physics.stats import count_in_window, count_centered

NS_TO_US = 1.0e-3


class Peak(NamedTuple):
    index: int       # trigger position in the sorted series
    time_ns: float
    n_primary: int
    n_wide: int


@dataclass(frozen=True)
class ScanState:
    pending: Optional[Peak] = None
    pending_count: int = 0  # primary count to beat within the current group
    first_hit_time: Optional[float] = None
    max_wide_count: int = 0
    max_wide_time: Optional[float] = None


@dataclass
class ScanDiagnostics:
    hits_seen: int = 0
    below_floor: int = 0
    above_ceiling: int = 0
    outside_count_band: int = 0
    not_group_max: int = 0
    rejected_groups: int = 0
    emitted: int = 0
    reasons: Dict[str, int] = field(default_factory=dict)

    def inc(self, reason: str) -> None:
        self.reasons[reason] = self.reasons.get(reason, 0) + 1


@dataclass
class ScanResult:
    peaks: List[Peak]
    first_hit_time: Optional[float]
    max_wide_count: int
    max_wide_time: Optional[float]
    diagnostics: ScanDiagnostics

    @property
    def triggers(self) -> List[int]:
        return [p.index for p in self.peaks]

    @property
    def counts(self) -> List[int]:
        return [p.n_primary for p in self.peaks]


def _check_sorted(t: np.ndarray) -> None:
    if not np.all(np.isfinite(t)):
        raise ValueError("Hit times contain non-finite values")
    if t.size > 1 and np.any(np.diff(t) < 0):
        bad = int(np.argmax(np.diff(t) < 0))
        raise ValueError(
            f"Hit times are not sorted ascending: t[{bad}]={t[bad]} > t[{bad + 1}]={t[bad + 1]}"
        )


def _group_emittable(peak: Peak, cfg: SearchCfg) -> bool:
    return peak.n_wide < cfg.max_wide_count and peak.time_ns * NS_TO_US > cfg.start_time_floor_us


def step(
    state: ScanState,
    t: np.ndarray,
    i: int,
    cfg: SearchCfg,
    diag: Optional[ScanDiagnostics] = None,
) -> Tuple[ScanState, Optional[Peak]]:
    """
    Evaluate hit i of the sorted series `t`.

    Returns the updated state and the peak of the previous group if that
    group was closed and accepted by this hit.
    """
    diag = diag if diag is not None else ScanDiagnostics()
    diag.hits_seen += 1
    ti = float(t[i])
    t_us = ti * NS_TO_US

    if t_us < cfg.start_time_floor_us:
        diag.below_floor += 1
        return state, None
    if t_us > cfg.start_time_ceiling_us:
        diag.above_ceiling += 1
        return state, None

    if state.first_hit_time is None:
        state = replace(state, first_hit_time=ti)

    n_primary = count_in_window(t, i, cfg.primary_window_ns)
    if n_primary < cfg.min_count or n_primary > cfg.max_count:
        diag.outside_count_band += 1
        return state, None

    n_wide = count_centered(t, ti + cfg.primary_window_ns / 2.0, cfg.wide_window_ns)
    if t_us > cfg.start_time_floor_us and n_wide > state.max_wide_count:
        state = replace(state, max_wide_count=n_wide, max_wide_time=ti)

    emitted: Optional[Peak] = None
    if state.pending is None or ti - state.pending.time_ns > cfg.min_peak_separation_ns:
        if state.pending is not None:
            if _group_emittable(state.pending, cfg):
                emitted = state.pending
                diag.emitted += 1
            else:
                diag.rejected_groups += 1
                diag.inc("wide_count_or_floor")
        state = replace(state, pending_count=0)

    # first hit reaching the group's largest count wins
    if n_primary <= state.pending_count:
        diag.not_group_max += 1
        return state, emitted

    state = replace(
        state,
        pending=Peak(i, ti, n_primary, n_wide),
        pending_count=n_primary,
    )
    return state, emitted


def finish(
    state: ScanState,
    cfg: SearchCfg,
    diag: Optional[ScanDiagnostics] = None,
) -> Optional[Peak]:
    """Flush the last open group."""
    if state.pending is not None and state.pending_count >= cfg.min_count:
        if diag is not None:
            diag.emitted += 1
        return state.pending
    return None


def scan_candidates(
    t_sorted,
    cfg: SearchCfg | None = None,
    *,
    diagnostics_level: int = 0,
) -> ScanResult:
    """
    Run the candidate search over an ascending residual-time array.

    Raises ValueError for unsorted or non-finite input; no partial result
    is produced in that case.
    """
    if cfg is None:
        cfg = SearchCfg()
    t = np.asarray(t_sorted, dtype=np.float64).reshape(-1)
    _check_sorted(t)

    diag = ScanDiagnostics()
    state = ScanState()
    peaks: List[Peak] = []
    for i in range(t.size):
        state, emitted = step(state, t, i, cfg, diag)
        if emitted is not None:
            peaks.append(emitted)
    last = finish(state, cfg, diag)
    if last is not None:
        peaks.append(last)

    if diagnostics_level >= 2:
        print(f"[scan] {t.size} hits -> {len(peaks)} peaks "
              f"(below floor {diag.below_floor}, outside N band {diag.outside_count_band}, "
              f"rejected groups {diag.rejected_groups})")

    return ScanResult(
        peaks=peaks,
        first_hit_time=state.first_hit_time,
        max_wide_count=state.max_wide_count,
        max_wide_time=state.max_wide_time,
        diagnostics=diag,
    )
