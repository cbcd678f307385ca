"""
Sensor field of view mapped onto histogram bins.
"""

import math
from dataclasses import dataclass, field

import numpy as np

from .common import ALPHA_RES, GRID_LENGTH_E, PolarPoint, polar_to_histogram_index, wrap_index


@dataclass
class FieldOfView:
    """Histogram bins covered by a sensor: azimuth columns plus an elevation row band."""
    z_indices: list[int] = field(default_factory=list)
    e_min: int = 0
    e_max: int = GRID_LENGTH_E - 1

    def contains(self, e_idx, z_idx):
        """True where bin (e_idx, z_idx) is visible. Accepts scalars or arrays."""
        e_idx = np.asarray(e_idx)
        inside = (e_idx >= self.e_min) & (e_idx <= self.e_max) & np.isin(z_idx, self.z_indices)
        return bool(inside) if inside.ndim == 0 else inside


def calculate_fov(
    h_fov: float,
    v_fov: float,
    yaw: float,
    pitch: float,
    res: int = ALPHA_RES,
) -> FieldOfView:
    """
    Bins seen by a sensor with horizontal/vertical field of view h_fov/v_fov
    (degrees) looking along yaw/pitch (degrees, azimuth convention of the grid).
    The azimuth run is inclusive at both ends and wraps around the grid, so it
    can come back as two contiguous pieces.
    """
    e_dim = 180 // res
    z_dim = 360 // res
    e_min = int(math.floor((pitch - v_fov / 2.0 + 90.0) / res))
    e_max = int(math.floor((pitch + v_fov / 2.0 + 90.0) / res))
    e_min = max(0, min(e_dim - 1, e_min))
    e_max = max(0, min(e_dim - 1, e_max))

    z_min = int(math.floor((yaw - h_fov / 2.0 + 180.0) / res))
    z_max = int(math.floor((yaw + h_fov / 2.0 + 180.0) / res))
    if z_max - z_min + 1 >= z_dim:
        return FieldOfView(z_indices=list(range(z_dim)), e_min=e_min, e_max=e_max)

    raw = np.arange(z_min, z_max + 1)
    _, wrapped = wrap_index(np.zeros_like(raw), raw, e_dim, z_dim)
    return FieldOfView(z_indices=sorted(int(z) for z in wrapped), e_min=e_min, e_max=e_max)


def point_inside_fov(fov: FieldOfView, p_pol: PolarPoint) -> bool:
    """True if the polar direction falls in a visible bin."""
    e_idx, z_idx = polar_to_histogram_index(p_pol)
    return fov.contains(e_idx, z_idx)

