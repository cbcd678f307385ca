"""
Simulated depth cameras. Each sensor returns a point cloud in its own frame
(x forward, y left, z up) and records its pose in a stamped transform buffer,
the way a real driver and a transform tree would.
"""
import math
import threading
from collections import deque

import numpy as np

from .world import World


def yaw_rotation(yaw_deg: float) -> np.ndarray:
    """Rotation taking sensor-frame vectors (x forward) to the local frame for a grid azimuth."""
    theta = math.radians(90.0 - yaw_deg)
    c, s = math.cos(theta), math.sin(theta)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def pose_matrix(position, yaw_deg: float) -> np.ndarray:
    t = np.eye(4)
    t[:3, :3] = yaw_rotation(yaw_deg)
    t[:3, 3] = np.asarray(position, dtype=float)[:3]
    return t


class TransformBuffer:
    """Stamped sensor-to-local transforms, looked up by stamp with a timeout."""

    def __init__(self, maxlen: int = 100, tolerance: float = 1e-6):
        self._buffer: deque[tuple[float, np.ndarray]] = deque(maxlen=maxlen)
        self._cond = threading.Condition()
        self.tolerance = tolerance

    def add(self, stamp: float, transform: np.ndarray) -> None:
        with self._cond:
            self._buffer.append((stamp, transform))
            self._cond.notify_all()

    def _find(self, stamp: float) -> np.ndarray | None:
        for s, transform in reversed(self._buffer):
            if abs(s - stamp) <= self.tolerance:
                return transform
        return None

    def lookup(self, stamp: float, timeout: float) -> np.ndarray | None:
        with self._cond:
            self._cond.wait_for(lambda: self._find(stamp) is not None, timeout=timeout)
            return self._find(stamp)


class DepthSensor:
    """Depth camera mounted on the vehicle, rotated by mount_yaw degrees from its heading."""

    def __init__(
        self,
        mount_yaw: float = 0.0,
        h_fov: float = 59.0,
        v_fov: float = 46.0,
        angular_step: float = 3.0,
        max_range: float = 10.0,
        noise_std: float = 0.02,
        seed: int | None = None,
    ):
        self.mount_yaw = mount_yaw
        self.h_fov = h_fov
        self.v_fov = v_fov
        self.max_range = max_range
        self.noise_std = noise_std
        self._rng = np.random.default_rng(seed)

        az = np.radians(np.arange(-h_fov / 2, h_fov / 2 + 1e-9, angular_step))
        el = np.radians(np.arange(-v_fov / 2, v_fov / 2 + 1e-9, angular_step))
        az_grid, el_grid = np.meshgrid(az, el)
        self._rays = np.column_stack([
            (np.cos(el_grid) * np.cos(az_grid)).ravel(),
            (np.cos(el_grid) * np.sin(az_grid)).ravel(),
            np.sin(el_grid).ravel(),
        ])

    def transform(self, vehicle_position, vehicle_yaw: float) -> np.ndarray:
        return pose_matrix(vehicle_position, vehicle_yaw + self.mount_yaw)

    def capture(self, world: World, vehicle_position, vehicle_yaw: float) -> np.ndarray:
        """Hits as an (N, 3) array in the sensor frame. Misses are returned as NaN rows."""
        rotation = yaw_rotation(vehicle_yaw + self.mount_yaw)
        dist = world.raycast(vehicle_position, self._rays @ rotation.T, self.max_range)
        if self.noise_std > 0:
            dist = dist + self._rng.normal(0.0, self.noise_std, size=dist.shape)
        points = self._rays * dist[:, None]
        points[~np.isfinite(dist)] = np.nan
        return points


def make_sensor_ring(n_sensors: int, h_fov: float = 59.0, v_fov: float = 46.0) -> list[DepthSensor]:
    """n sensors spread evenly around the vehicle, the first one looking forward."""
    return [
        DepthSensor(mount_yaw=i * 360.0 / n_sensors, h_fov=h_fov, v_fov=v_fov, seed=i)
        for i in range(n_sensors)
    ]
