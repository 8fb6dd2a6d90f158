from __future__ import annotations
import numpy as np
from typing import Sequence

from ..geometry.pmts import PMTGeometry
from ..geometry.tank import Tank
from ..physics.hits import HitSeries
from ..physics.tof import C_WATER_CM_PER_NS, time_of_flight

def cylinder_pmt_geometry(tank: Tank, n_phi: int = 24, n_z: int = 12) -> PMTGeometry:
    """
    PMTs on the barrel of `tank`: n_phi columns x n_z rows, ids 1..n_phi*n_z.
    """
    phi = np.linspace(0.0, 2.0 * np.pi, n_phi, endpoint=False)
    z = np.linspace(-tank.half_height, tank.half_height, n_z + 2)[1:-1]
    P, Z = np.meshgrid(phi, z, indexing="ij")
    xyz = np.stack(
        [tank.radius * np.cos(P).ravel(), tank.radius * np.sin(P).ravel(), Z.ravel()],
        axis=1,
    )
    return PMTGeometry.from_array(xyz)

def synth_capture_event(
    geometry: PMTGeometry,
    vertex: np.ndarray,
    capture_times_ns: Sequence[float],
    hits_per_capture: int = 10,
    jitter_ns: float = 1.0,
    dark_hits: int = 50,
    gate_ns: tuple[float, float] = (0.0, 535_000.0),
    light_speed: float = C_WATER_CM_PER_NS,
    rng: np.random.Generator | None = None,
) -> HitSeries:
    """
    Raw (uncorrected) hits for one event:
      - for each capture time, `hits_per_capture` hits on random PMTs with
        t = t_capture + ToF(vertex -> PMT) + N(0, jitter_ns), signal flag 1
      - `dark_hits` uniform noise hits in `gate_ns`, signal flag 0
    Hits are returned in acquisition (time) order.
    """
    rng = rng or np.random.default_rng()
    ids = []
    times = []
    flags = []

    for tc in capture_times_ns:
        pmts = rng.choice(geometry.n_pmts, size=hits_per_capture, replace=False) + 1
        tof = time_of_flight(vertex, geometry.position_of(pmts), light_speed)
        times.append(tc + tof + rng.normal(0.0, jitter_ns, size=hits_per_capture))
        ids.append(pmts)
        flags.append(np.ones(hits_per_capture, dtype=np.int8))

    if dark_hits > 0:
        times.append(rng.uniform(gate_ns[0], gate_ns[1], size=dark_hits))
        ids.append(rng.integers(1, geometry.n_pmts + 1, size=dark_hits))
        flags.append(np.zeros(dark_hits, dtype=np.int8))

    if not times:
        return HitSeries.empty(with_flags=True)

    t = np.concatenate(times)
    pmt = np.concatenate(ids)
    sig = np.concatenate(flags)
    q = rng.exponential(1.0, size=t.size) + 0.2
    order = np.argsort(t, kind="stable")
    return HitSeries.from_arrays(t[order], q[order], pmt[order], sig[order])
