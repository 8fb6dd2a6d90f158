from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence
import numpy as np

@dataclass(slots=True)
class HitSeries:
    """
    Index-aligned PMT hit arrays for one event.

    t_ns: hit time [ns] (raw, ToF-corrected, or corrected and sorted)
    q_pe: deposited charge [p.e.]
    pmt_id: PMT cable id, 1-based
    sig_flag: optional per-hit signal (1) / background (0) flag

    Element i of every array describes the same physical hit.
    """
    t_ns: np.ndarray
    q_pe: np.ndarray
    pmt_id: np.ndarray
    sig_flag: Optional[np.ndarray] = None

    @classmethod
    def from_arrays(
        cls,
        t_ns: Sequence[float],
        q_pe: Sequence[float],
        pmt_id: Sequence[int],
        sig_flag: Optional[Sequence[int]] = None,
    ) -> "HitSeries":
        hits = cls(
            t_ns=np.asarray(t_ns, dtype=np.float64).reshape(-1),
            q_pe=np.asarray(q_pe, dtype=np.float64).reshape(-1),
            pmt_id=np.asarray(pmt_id, dtype=np.int64).reshape(-1),
            sig_flag=None if sig_flag is None else np.asarray(sig_flag, dtype=np.int8).reshape(-1),
        )
        hits.validate()
        return hits

    @classmethod
    def empty(cls, with_flags: bool = False) -> "HitSeries":
        return cls.from_arrays([], [], [], [] if with_flags else None)

    def __len__(self) -> int:
        return int(self.t_ns.shape[0])

    @property
    def has_signal_flags(self) -> bool:
        return self.sig_flag is not None

    def validate(self) -> None:
        """
        Raise ValueError if the arrays are not index-aligned.
        """
        n = len(self.t_ns)
        lengths = {"t_ns": n, "q_pe": len(self.q_pe), "pmt_id": len(self.pmt_id)}
        if self.sig_flag is not None:
            lengths["sig_flag"] = len(self.sig_flag)
        if len(set(lengths.values())) != 1:
            raise ValueError(f"HitSeries length mismatch: {lengths}")

    def is_time_sorted(self) -> bool:
        if len(self) < 2:
            return True
        return bool(np.all(np.diff(self.t_ns) >= 0))

    def take(self, indices: np.ndarray, *, t_ns: Optional[np.ndarray] = None) -> "HitSeries":
        """
        Return a reindexed deep copy.

        If t_ns is given it replaces the time array before reindexing
        (used when the times were transformed, e.g. ToF-subtracted).
        """
        idx = np.asarray(indices, dtype=np.int64)
        times = self.t_ns if t_ns is None else np.asarray(t_ns, dtype=np.float64)
        return HitSeries(
            t_ns=times[idx].copy(),
            q_pe=self.q_pe[idx].copy(),
            pmt_id=self.pmt_id[idx].copy(),
            sig_flag=None if self.sig_flag is None else self.sig_flag[idx].copy(),
        )

    def with_times(self, t_ns: np.ndarray) -> "HitSeries":
        """Same hits in the same order with replaced times."""
        return self.take(np.arange(len(self)), t_ns=t_ns)
