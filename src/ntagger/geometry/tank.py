from __future__ import annotations
from dataclasses import dataclass
import numpy as np

@dataclass(frozen=True)
class Tank:
    """
    Upright cylinder centred on the origin, axis along z. Units: cm.
    """
    radius: float = 1690.0
    half_height: float = 1810.0

    @classmethod
    def from_cfg(cls, cfg_geometry) -> "Tank":
        return cls(float(cfg_geometry.tank_radius_cm), float(cfg_geometry.tank_half_height_cm))

    def dwall(self, point) -> float:
        """Distance to the nearest wall; negative outside the tank."""
        x, y, z = np.asarray(point, dtype=np.float64)
        r = float(np.hypot(x, y))
        return float(min(self.radius - r, self.half_height - abs(z)))

    def contains(self, point) -> bool:
        return self.dwall(point) >= 0.0

    def distance_to_wall(self, point, direction) -> float:
        """
        Path length from `point` to the wall along `direction`.

        0 for points outside the tank; the plain dwall for a zero direction.
        """
        P = np.asarray(point, dtype=np.float64)
        D = np.asarray(direction, dtype=np.float64)
        if not self.contains(P):
            return 0.0
        n = np.linalg.norm(D)
        if n == 0:
            return self.dwall(P)
        D = D / n

        # barrel: |P_xy + s D_xy| = R
        a = D[0] ** 2 + D[1] ** 2
        s_barrel = np.inf
        if a > 0:
            b = 2.0 * (P[0] * D[0] + P[1] * D[1])
            c = P[0] ** 2 + P[1] ** 2 - self.radius ** 2
            disc = max(b * b - 4.0 * a * c, 0.0)
            s_barrel = (-b + np.sqrt(disc)) / (2.0 * a)

        # caps
        s_cap = np.inf
        if D[2] > 0:
            s_cap = (self.half_height - P[2]) / D[2]
        elif D[2] < 0:
            s_cap = (-self.half_height - P[2]) / D[2]

        return float(max(min(s_barrel, s_cap), 0.0))
