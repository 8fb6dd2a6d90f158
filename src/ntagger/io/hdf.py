# src/ntagger/io/hdf.py
from __future__ import annotations
from pathlib import Path
from typing import Iterator, Optional, Tuple

import h5py
import numpy as np

from ..physics.hits import HitSeries

def _read_csr_hits(g_hits: h5py.Group) -> Tuple[np.ndarray, dict]:
    """
    Read CSR-style hit columns:

      event_ptr: (N_events+1,) int64 pointers into the flat hit arrays
      t_ns, q_pe, cable: (N_hits,)
      sig: optional (N_hits,) signal flags
    """
    for key in ("event_ptr", "t_ns", "q_pe", "cable"):
        if key not in g_hits:
            raise KeyError(f"Missing dataset {g_hits.name}/{key}")
    event_ptr = g_hits["event_ptr"][...].astype(np.int64)
    cols = {
        "t_ns": g_hits["t_ns"][...].astype(np.float64),
        "q_pe": g_hits["q_pe"][...].astype(np.float64),
        "cable": g_hits["cable"][...].astype(np.int64),
        "sig": g_hits["sig"][...].astype(np.int8) if "sig" in g_hits else None,
    }
    n_hits = cols["t_ns"].shape[0]
    if event_ptr.size == 0 or event_ptr[0] != 0 or np.any(np.diff(event_ptr) < 0) or event_ptr[-1] != n_hits:
        raise ValueError(
            f"{g_hits.name}/event_ptr is not a valid CSR pointer array for {n_hits} hits"
        )
    return event_ptr, cols

def count_hdf_events(path: str | Path, hits_group: str = "/hits") -> int:
    with h5py.File(path, "r") as f:
        return int(f[hits_group]["event_ptr"].shape[0] - 1)

def iter_hdf_events(
    path: str | Path,
    *,
    hits_group: str = "/hits",
    events_group: str = "/events",
    max_events: Optional[int] = None,
) -> Iterator[Tuple[int, HitSeries, np.ndarray]]:
    """
    Yield (event_id, raw HitSeries, vertex) per event from a ragged HDF5 file.

    Layout:
      {hits_group}/event_ptr, t_ns, q_pe, cable[, sig]
      {events_group}/vertex (N_events, 3) [cm][, event_id]
    """
    with h5py.File(path, "r") as f:
        event_ptr, cols = _read_csr_hits(f[hits_group])
        n_events = event_ptr.size - 1
        g_ev = f[events_group]
        vertex = g_ev["vertex"][...].astype(np.float64)
        if vertex.shape != (n_events, 3):
            raise ValueError(
                f"{events_group}/vertex has shape {vertex.shape}, expected ({n_events}, 3)"
            )
        event_ids = (
            g_ev["event_id"][...].astype(np.int64) if "event_id" in g_ev
            else np.arange(n_events, dtype=np.int64)
        )

    if max_events is not None:
        n_events = min(n_events, max_events)
    sig = cols["sig"]
    for k in range(n_events):
        a, b = int(event_ptr[k]), int(event_ptr[k + 1])
        hits = HitSeries.from_arrays(
            cols["t_ns"][a:b],
            cols["q_pe"][a:b],
            cols["cable"][a:b],
            None if sig is None else sig[a:b],
        )
        yield int(event_ids[k]), hits, vertex[k]
