"""
Point cloud processing: fuse per-sensor clouds into one filtered cloud with memory.
Coordinate system: local ENU frame, metres. Fused points are stored as an
(N, 4) array of [x, y, z, age], age counted in planner cycles.
"""

import logging

import numpy as np

from .common import ALPHA_RES, cartesian_to_polar_arrays, polar_to_histogram_index_arrays
from .fov import FieldOfView

logger = logging.getLogger(__name__)

# Memory points compete with new points on a grid twice as fine as the histogram.
MEMORY_CELL_RES = ALPHA_RES // 2


def empty_cloud() -> np.ndarray:
    return np.empty((0, 4), dtype=float)


class Box:
    """
    Axis-aligned box around the vehicle. Points outside are ignored.
    The bottom face is raised so that the ground below the vehicle is not
    mistaken for an obstacle.
    """

    def __init__(self, radius: float = 12.0, dist_to_ground: float = 1.0):
        self.radius = radius
        self.dist_to_ground = dist_to_ground
        self.xmin = self.ymin = self.zmin = -radius
        self.xmax = self.ymax = self.zmax = radius

    def set_box_limits(self, position, ground_distance: float) -> None:
        """Centre the box on position. ground_distance <= 0 means unknown."""
        x, y, z = (float(v) for v in np.asarray(position, dtype=float)[:3])
        below = self.radius
        if ground_distance > 0.0:
            below = min(self.radius, max(0.0, ground_distance - self.dist_to_ground))
        self.xmin, self.xmax = x - self.radius, x + self.radius
        self.ymin, self.ymax = y - self.radius, y + self.radius
        self.zmin, self.zmax = z - below, z + self.radius

    def is_point_within_box(self, points) -> np.ndarray:
        """Boolean mask for an (N, >=3) array, strict on every face."""
        pts = np.atleast_2d(np.asarray(points, dtype=float))
        return (
            (pts[:, 0] > self.xmin) & (pts[:, 0] < self.xmax)
            & (pts[:, 1] > self.ymin) & (pts[:, 1] < self.ymax)
            & (pts[:, 2] > self.zmin) & (pts[:, 2] < self.zmax)
        )


def remove_nan_points(cloud) -> np.ndarray:
    """Drop rows with a non-finite coordinate. Returns an (N, 3) array."""
    pts = np.asarray(cloud, dtype=float).reshape(-1, 3)
    return pts[np.all(np.isfinite(pts), axis=1)]


def transform_cloud(points, transform) -> np.ndarray:
    """Apply a 4x4 homogeneous transform (sensor frame -> local frame) to (N, 3) points."""
    pts = np.asarray(points, dtype=float).reshape(-1, 3)
    t = np.asarray(transform, dtype=float)
    return pts @ t[:3, :3].T + t[:3, 3]


def _cell_ids(points: np.ndarray, position: np.ndarray, res: int) -> np.ndarray:
    e, z, _ = cartesian_to_polar_arrays(points, position)
    e_idx, z_idx = polar_to_histogram_index_arrays(e, z, res)
    return e_idx * (360 // res) + z_idx


def _in_range(points: np.ndarray, box: Box, position: np.ndarray, min_range: float) -> np.ndarray:
    dist = np.linalg.norm(points[:, :3] - position, axis=1)
    return box.is_point_within_box(points) & (dist > min_range) & (dist < box.radius)


def process_pointcloud(
    fused_cloud,
    clouds,
    box: Box,
    position,
    min_range: float,
    max_age: float,
    fov: FieldOfView | list[FieldOfView] | None = None,
) -> np.ndarray:
    """
    Merge the latest sensor clouds with the remembered points of the previous cycle.

    - New points are kept when inside the box and min_range < distance < box.radius.
    - Remembered points age by one; they are dropped when age > max_age, when
      they leave the box, when a new point already covers their cell, or when
      they sit inside the current field of view of any sensor (it should have
      seen them). fov is one FieldOfView or a list, one per sensor.
    """
    position = np.asarray(position, dtype=float)[:3]

    parts = []
    for cloud in clouds:
        pts = remove_nan_points(cloud)
        if len(pts):
            parts.append(pts[_in_range(pts, box, position, min_range)])
    new_points = np.concatenate(parts) if parts else np.empty((0, 3))
    fresh = np.column_stack([new_points, np.zeros(len(new_points))])

    memory = empty_cloud() if fused_cloud is None else np.asarray(fused_cloud, dtype=float).reshape(-1, 4)
    if len(memory) == 0:
        return fresh

    aged = memory.copy()
    aged[:, 3] += 1
    keep = (aged[:, 3] <= max_age) & _in_range(aged, box, position, min_range)
    aged = aged[keep]

    if len(aged) and len(fresh):
        covered = np.isin(_cell_ids(aged[:, :3], position, MEMORY_CELL_RES),
                          _cell_ids(fresh[:, :3], position, MEMORY_CELL_RES))
        aged = aged[~covered]

    if fov is None:
        fovs = []
    elif isinstance(fov, FieldOfView):
        fovs = [fov]
    else:
        fovs = list(fov)
    if len(aged) and fovs:
        e, z, _ = cartesian_to_polar_arrays(aged[:, :3], position)
        e_idx, z_idx = polar_to_histogram_index_arrays(e, z)
        seen = np.zeros(len(aged), dtype=bool)
        for f in fovs:
            seen |= f.contains(e_idx, z_idx)
        aged = aged[~seen]

    logger.debug("Fused cloud: %d new points, %d remembered", len(fresh), len(aged))
    return np.concatenate([fresh, aged])
