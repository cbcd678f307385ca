"""
Polar geometry shared by the planner: grid constants, angle wrapping,
cartesian <-> polar conversion and the wrap-aware grid accessor.

Coordinate system: local ENU frame. Azimuth 0° = +Y (North), 90° = +X (East),
elevation +90° = straight up. Histogram rows are elevation bins, columns are
azimuth bins.
"""

import math
from dataclasses import dataclass

import numpy as np

ALPHA_RES = 6  # degrees per histogram bin
GRID_LENGTH_E = 180 // ALPHA_RES
GRID_LENGTH_Z = 360 // ALPHA_RES


@dataclass
class PolarPoint:
    """Direction (degrees) plus range (metres)."""
    e: float = 0.0  # elevation [-90, 90]
    z: float = 0.0  # azimuth [-180, 180)
    r: float = 0.0


def wrap_angle_to_plus_minus_180(angle):
    """Wrap degrees into [-180, 180). Works on scalars and numpy arrays."""
    return (np.asarray(angle, dtype=float) + 180.0) % 360.0 - 180.0


def angle_difference(a, b):
    """Absolute wrapped difference between two azimuths, in [0, 180]."""
    return np.abs(wrap_angle_to_plus_minus_180(np.asarray(a) - np.asarray(b)))


def wrap_polar(p_pol: PolarPoint) -> PolarPoint:
    """Normalize a polar point. Elevations past a pole fold back and turn the azimuth by 180°."""
    e = float(wrap_angle_to_plus_minus_180(p_pol.e))
    z = float(p_pol.z)
    if e > 90.0:
        e = 180.0 - e
        z += 180.0
    elif e < -90.0:
        e = -(180.0 + e)
        z += 180.0
    return PolarPoint(e=e, z=float(wrap_angle_to_plus_minus_180(z)), r=p_pol.r)


def cartesian_to_polar_arrays(points, origin) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Vectorised cartesian -> polar for an (N, 3) array seen from origin.
    Returns (elevation_deg, azimuth_deg, radius) arrays.
    """
    pts = np.atleast_2d(np.asarray(points, dtype=float))
    delta = pts[:, :3] - np.asarray(origin, dtype=float)[:3]
    horizontal = np.hypot(delta[:, 0], delta[:, 1])
    e = np.degrees(np.arctan2(delta[:, 2], horizontal))
    z = np.degrees(np.arctan2(delta[:, 0], delta[:, 1]))
    r = np.linalg.norm(delta, axis=1)
    return e, wrap_angle_to_plus_minus_180(z), r


def cartesian_to_polar(position, origin) -> PolarPoint:
    """Polar coordinates of a single point seen from origin."""
    e, z, r = cartesian_to_polar_arrays(position, origin)
    return PolarPoint(e=float(e[0]), z=float(z[0]), r=float(r[0]))


def polar_to_cartesian(p_pol: PolarPoint, origin) -> np.ndarray:
    """Point at p_pol.r along the polar direction from origin."""
    e = math.radians(p_pol.e)
    z = math.radians(p_pol.z)
    offset = np.array([
        math.cos(e) * math.sin(z),
        math.cos(e) * math.cos(z),
        math.sin(e),
    ])
    return np.asarray(origin, dtype=float)[:3] + p_pol.r * offset


def polar_to_unit_vector(e, z) -> np.ndarray:
    """Unit direction vector(s) for elevation/azimuth in degrees. Shape (..., 3)."""
    e_rad = np.radians(e)
    z_rad = np.radians(z)
    return np.stack([
        np.cos(e_rad) * np.sin(z_rad),
        np.cos(e_rad) * np.cos(z_rad),
        np.sin(e_rad),
    ], axis=-1)


def polar_to_histogram_index_arrays(e, z, res: int = ALPHA_RES) -> tuple[np.ndarray, np.ndarray]:
    """
    Bin indices (e_idx, z_idx) for arrays of elevation/azimuth.
    Maps -90° to row 0 and -180° to column 0; clamps floating point overshoot.
    """
    e = np.asarray(e, dtype=float)
    z = wrap_angle_to_plus_minus_180(z)
    e_idx = np.floor((e + 90.0) / res).astype(int)
    z_idx = np.floor((z + 180.0) / res).astype(int)
    e_idx = np.clip(e_idx, 0, 180 // res - 1)
    z_idx = np.clip(z_idx, 0, 360 // res - 1)
    return e_idx, z_idx


def polar_to_histogram_index(p_pol: PolarPoint, res: int = ALPHA_RES) -> tuple[int, int]:
    """Histogram bin (e_idx, z_idx) of a polar direction."""
    wrapped = wrap_polar(p_pol)
    e_idx, z_idx = polar_to_histogram_index_arrays(wrapped.e, wrapped.z, res)
    return int(e_idx), int(z_idx)


def histogram_index_to_polar(e: int, z: int, res: int = ALPHA_RES, radius: float = 0.0) -> PolarPoint:
    """Polar direction through the centre of bin (e, z)."""
    half_res = res / 2.0
    return PolarPoint(e=e * res + half_res - 90.0, z=z * res + half_res - 180.0, r=radius)


def bin_centers(res: int = ALPHA_RES) -> tuple[np.ndarray, np.ndarray]:
    """Elevation and azimuth bin centres (degrees) as 2D arrays of shape (E, Z)."""
    e = np.arange(180 // res) * res + res / 2.0 - 90.0
    z = np.arange(360 // res) * res + res / 2.0 - 180.0
    return np.meshgrid(e, z, indexing="ij")


def wrap_index(row, col, rows: int, cols: int):
    """
    Map possibly out-of-range (row, col) onto the spherical grid.
    Columns wrap with period cols. A row k steps past the top or bottom edge
    comes back to row k-1 inside the grid, on the azimuthally opposite column.
    """
    row = np.asarray(row)
    col = np.asarray(col)
    above = row < 0
    below = row >= rows
    row = np.where(above, -row - 1, row)
    row = np.where(below, 2 * rows - row - 1, row)
    col = np.where(above | below, col + cols // 2, col)
    if np.any((row < 0) | (row >= rows)):
        raise ValueError("Row index reaches past the opposite pole")
    return row, np.mod(col, cols)


class PolarGrid:
    """Modulo-indexed accessor over an elevation x azimuth matrix."""

    def __init__(self, matrix: np.ndarray):
        self.matrix = matrix
        self.rows, self.cols = matrix.shape

    def get(self, row, col):
        r, c = wrap_index(row, col, self.rows, self.cols)
        return self.matrix[r, c]

    def set(self, row, col, value) -> None:
        r, c = wrap_index(row, col, self.rows, self.cols)
        self.matrix[r, c] = value

    def padded(self, n: int) -> np.ndarray:
        """Copy of the matrix grown by n cells on every side, following the wrap rules."""
        rows = np.arange(-n, self.rows + n)
        cols = np.arange(-n, self.cols + n)
        rr, cc = np.meshgrid(rows, cols, indexing="ij")
        return self.get(rr, cc)
