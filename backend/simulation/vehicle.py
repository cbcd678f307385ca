"""
Point-mass multicopter that tracks position setpoints within the kinematic limits.
"""
import math

import numpy as np

from local_planner.models import ModelParameters
from local_planner.waypoint_generator import Setpoint, limit_velocity


class Vehicle:
    def __init__(self, position=(0.0, 0.0, 0.0), yaw: float = 0.0):
        self.position = np.asarray(position, dtype=float).copy()
        self.velocity = np.zeros(3)
        self.yaw = yaw  # degrees, 0 = +y

    def step(self, setpoint: Setpoint, dt: float, model: ModelParameters) -> None:
        """Accelerate toward the velocity that reaches the setpoint in one second."""
        desired = limit_velocity(setpoint.position - self.position, model)
        dv = desired - self.velocity
        dv_xy = math.hypot(dv[0], dv[1])
        if dv_xy > model.xy_acc * dt:
            dv[:2] *= model.xy_acc * dt / dv_xy
        acc_z = model.up_acc if dv[2] > 0 else model.down_acc
        dv[2] = max(-acc_z * dt, min(acc_z * dt, dv[2]))
        self.velocity += dv
        self.position += self.velocity * dt
        self.position[2] = max(0.0, self.position[2])

        if math.hypot(self.velocity[0], self.velocity[1]) > 0.2:
            self.yaw = math.degrees(math.atan2(self.velocity[0], self.velocity[1]))

    def to_dict(self):
        return {
            "position": [float(v) for v in self.position],
            "velocity": [float(v) for v in self.velocity],
            "yaw": self.yaw,
        }
