"""
Moving obstacles: spheres on circular paths, stepped with the simulation clock.
"""
import math

import numpy as np


class MovingObstacle:
    """Sphere of the given radius circling (cx, cy) at height z."""

    def __init__(
        self,
        cx: float,
        cy: float,
        z: float = 2.5,
        radius: float = 0.5,
        speed: float = 0.3,
        path_radius: float = 2.5,
    ):
        self.radius = radius
        self.speed = speed
        self._path_center = (cx, cy)
        self._path_radius = path_radius
        self._z = z
        self._t = 0.0
        self.center = np.array([cx + path_radius, cy, z])

    def step(self, dt: float) -> None:
        self._t += dt
        cx, cy = self._path_center
        self.center = np.array([
            cx + self._path_radius * math.cos(self._t * self.speed),
            cy + self._path_radius * math.sin(self._t * self.speed),
            self._z,
        ])

    def ray_distances(self, origin: np.ndarray, directions: np.ndarray) -> np.ndarray:
        """Distance along each unit ray to the sphere surface, np.inf on a miss."""
        oc = origin - self.center
        b = directions @ oc
        c = oc @ oc - self.radius * self.radius
        disc = b * b - c
        sqrt_d = np.sqrt(np.where(disc >= 0.0, disc, 0.0))
        t1 = -b - sqrt_d
        t2 = -b + sqrt_d
        t = np.where(t1 >= 0.0, t1, t2)
        return np.where((disc >= 0.0) & (t >= 0.0), t, np.inf)


def make_default_moving_obstacles() -> list[MovingObstacle]:
    """One sphere circling between the wall and the pillars."""
    return [
        MovingObstacle(0.0, 11.0, z=2.5, radius=0.5, speed=0.25, path_radius=2.5),
    ]
