"""
3D world for the simulator: flat ground at z = 0, static axis-aligned boxes
and moving spheres. Coordinates are local ENU metres.
"""
from dataclasses import dataclass

import numpy as np

from .moving_obstacles import MovingObstacle, make_default_moving_obstacles


@dataclass
class BoxObstacle:
    """Axis-aligned box given by its min and max corners."""
    lower: tuple[float, float, float]
    upper: tuple[float, float, float]

    def contains(self, point) -> bool:
        p = np.asarray(point, dtype=float)
        return bool(np.all(p >= self.lower) and np.all(p <= self.upper))


def _wall(x0: float, x1: float, y: float, height: float = 6.0, thickness: float = 0.4) -> BoxObstacle:
    return BoxObstacle((x0, y - thickness / 2, 0.0), (x1, y + thickness / 2, height))


def _pillar(x: float, y: float, size: float = 0.8, height: float = 6.0) -> BoxObstacle:
    return BoxObstacle((x - size / 2, y - size / 2, 0.0), (x + size / 2, y + size / 2, height))


# Start near the origin, goal 24 m north. A wall with a gap, then a few pillars.
DEFAULT_START = (0.0, 0.0, 0.3)
DEFAULT_GOAL = (0.0, 24.0, 2.5)
DEFAULT_OBSTACLES = [
    _wall(-10.0, -1.5, 8.0),
    _wall(2.5, 10.0, 8.0),
    _pillar(-1.0, 14.0),
    _pillar(1.5, 16.0),
    _pillar(0.0, 19.0),
]


class World:
    def __init__(
        self,
        obstacles: list[BoxObstacle] | None = None,
        moving_obstacles: list[MovingObstacle] | None = None,
        ground: bool = True,
    ):
        self.obstacles = list(DEFAULT_OBSTACLES if obstacles is None else obstacles)
        self.moving_obstacles = list(make_default_moving_obstacles() if moving_obstacles is None else moving_obstacles)
        self.ground = ground

    def step(self, dt: float) -> None:
        for obs in self.moving_obstacles:
            obs.step(dt)

    def is_occupied(self, point) -> bool:
        if self.ground and point[2] < 0.0:
            return True
        if any(box.contains(point) for box in self.obstacles):
            return True
        p = np.asarray(point, dtype=float)
        return any(np.linalg.norm(p - obs.center) < obs.radius for obs in self.moving_obstacles)

    def raycast(self, origin, directions, max_range: float) -> np.ndarray:
        """
        Distance along each unit direction (N, 3) to the first hit, np.inf
        when nothing is hit within max_range.
        """
        o = np.asarray(origin, dtype=float)[:3]
        d = np.atleast_2d(np.asarray(directions, dtype=float))
        hit = np.full(len(d), np.inf)

        if self.ground:
            down = d[:, 2] < -1e-9
            t = np.full(len(d), np.inf)
            t[down] = -o[2] / d[down, 2]
            hit = np.minimum(hit, np.where(t >= 0.0, t, np.inf))

        with np.errstate(divide="ignore", invalid="ignore"):
            inv = 1.0 / d
            for box in self.obstacles:
                # slab method
                t1 = (np.asarray(box.lower) - o) * inv
                t2 = (np.asarray(box.upper) - o) * inv
                t_near = np.nanmax(np.minimum(t1, t2), axis=1)
                t_far = np.nanmin(np.maximum(t1, t2), axis=1)
                valid = (t_far >= np.maximum(t_near, 0.0))
                t = np.where(t_near >= 0.0, t_near, t_far)
                hit = np.minimum(hit, np.where(valid, t, np.inf))

        for obs in self.moving_obstacles:
            hit = np.minimum(hit, obs.ray_distances(o, d))

        return np.where(hit <= max_range, hit, np.inf)
