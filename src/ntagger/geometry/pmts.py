from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import numpy as np
import h5py

@dataclass
class PMTGeometry:
    """
    PMT cable id -> position [cm] lookup.

    Cable ids are 1-based: id k lives in row k-1 of `positions`.
    Passed explicitly to the corrector and feature code so tests can
    substitute synthetic geometries.
    """
    positions: np.ndarray  # (M, 3), float64

    @classmethod
    def from_array(cls, xyz) -> "PMTGeometry":
        P = np.asarray(xyz, dtype=np.float64)
        if P.ndim != 2 or P.shape[1] != 3:
            raise ValueError(f"PMT table must have shape (M, 3), got {P.shape}")
        if not np.all(np.isfinite(P)):
            raise ValueError("PMT table contains non-finite coordinates")
        return cls(P)

    @classmethod
    def from_file(cls, path: str | Path, dataset: str = "/geometry/pmt_xyz") -> "PMTGeometry":
        p = Path(path)
        suffix = p.suffix.lower()
        if suffix == ".npy":
            return cls.from_array(np.load(p))
        if suffix == ".npz":
            with np.load(p) as z:
                if "pmt_xyz" not in z.files:
                    raise KeyError(f"'pmt_xyz' not found in {p.name}. Found keys: {sorted(z.files)}")
                return cls.from_array(z["pmt_xyz"])
        if suffix in (".h5", ".hdf5"):
            with h5py.File(p, "r") as f:
                if dataset not in f:
                    raise KeyError(f"{dataset} not found in {p}")
                return cls.from_array(f[dataset][...])
        raise ValueError(f"Unsupported PMT table format: {p.name}")

    @classmethod
    def from_cfg(cls, cfg_geometry, fallback_path: str | None = None) -> "PMTGeometry":
        path = cfg_geometry.pmt_table or fallback_path
        if path is None:
            raise ValueError("No PMT table configured ([geometry].pmt_table)")
        return cls.from_file(path, dataset=cfg_geometry.pmt_dataset)

    @property
    def n_pmts(self) -> int:
        return int(self.positions.shape[0])

    def position_of(self, pmt_id) -> np.ndarray:
        """
        Positions for one id (shape (3,)) or an id array (shape (N, 3)).
        """
        ids = np.asarray(pmt_id, dtype=np.int64)
        if ids.size and (ids.min() < 1 or ids.max() > self.n_pmts):
            bad = ids[(ids < 1) | (ids > self.n_pmts)]
            raise ValueError(
                f"PMT id out of range 1..{self.n_pmts}: {bad[:5].tolist()}"
            )
        return self.positions[ids - 1]
