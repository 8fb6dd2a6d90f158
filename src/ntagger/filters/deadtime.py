# src/ntagger/filters/deadtime.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Tuple

import numpy as np

from ..physics.hits import HitSeries

@dataclass
class DeadtimeDiagnostics:
    total: int = 0
    removed: int = 0
    removed_signal: int = 0
    per_pmt: Dict[int, int] = field(default_factory=dict)

    @property
    def kept(self) -> int:
        return self.total - self.removed

    def inc(self, pmt: int) -> None:
        self.per_pmt[pmt] = self.per_pmt.get(pmt, 0) + 1


def remove_repeated_hits(
    raw: HitSeries,
    deadtime_us: float,
) -> Tuple[HitSeries, DeadtimeDiagnostics]:
    """
    Drop hits that follow a kept hit on the same PMT by less than
    `deadtime_us` microseconds. Hits are walked in acquisition order;
    the first hit on every PMT is always kept.

    deadtime_us <= 0 returns the series unchanged.
    """
    raw.validate()
    diag = DeadtimeDiagnostics(total=len(raw))
    if deadtime_us <= 0 or len(raw) == 0:
        return raw, diag

    window_ns = deadtime_us * 1.0e3
    last_time: Dict[int, float] = {}
    keep = np.ones(len(raw), dtype=bool)
    for i, (t, pmt) in enumerate(zip(raw.t_ns.tolist(), raw.pmt_id.tolist())):
        prev = last_time.get(pmt)
        if prev is not None and abs(t - prev) < window_ns:
            keep[i] = False
            diag.removed += 1
            diag.inc(pmt)
            if raw.sig_flag is not None and raw.sig_flag[i]:
                diag.removed_signal += 1
            continue
        last_time[pmt] = t

    if diag.removed == 0:
        return raw, diag
    return raw.take(np.flatnonzero(keep)), diag
