"""
Waypoint state machine: turn the planner's findings into one setpoint per cycle.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from .common import PolarPoint, polar_to_unit_vector
from .models import ModelParameters, PlannerParameters, SetpointMessage

logger = logging.getLogger(__name__)


class WaypointType(str, Enum):
    hover = "hover"
    costmap = "costmap"
    tryPath = "tryPath"
    direct = "direct"
    reachHeight = "reachHeight"
    goBack = "goBack"


@dataclass
class Setpoint:
    position: np.ndarray
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    waypoint_type: WaypointType = WaypointType.hover
    healthy: bool = True

    def to_message(self) -> SetpointMessage:
        return SetpointMessage(
            position=[float(v) for v in self.position],
            velocity=[float(v) for v in self.velocity],
            waypoint_type=self.waypoint_type.value,
            healthy=self.healthy,
        )


def select_waypoint_type(
    failsafe_hover: bool,
    obstacle_too_close: bool,
    height_reached: bool,
    tree_direction_available: bool,
    has_candidate: bool,
    goal_visible: bool,
) -> WaypointType:
    """First matching rule wins."""
    if failsafe_hover:
        return WaypointType.hover
    if obstacle_too_close:
        return WaypointType.goBack
    if not height_reached:
        return WaypointType.reachHeight
    if tree_direction_available:
        return WaypointType.tryPath
    if has_candidate:
        return WaypointType.costmap
    if goal_visible:
        return WaypointType.direct
    return WaypointType.hover


def limit_velocity(velocity, model: ModelParameters) -> np.ndarray:
    """Clip horizontal speed to xy_vel and vertical speed to [-down_vel, up_vel]."""
    v = np.asarray(velocity, dtype=float).copy()
    horizontal = math.hypot(v[0], v[1])
    if horizontal > model.xy_vel:
        v[:2] *= model.xy_vel / horizontal
    v[2] = min(max(v[2], -model.down_vel), model.up_vel)
    return v


class WaypointGenerator:
    """
    Produces the setpoint for the selected mode. Keeps the last sent waypoint
    (for smoothing and the cost function) and the point where hovering began.
    """

    def __init__(self, params: PlannerParameters | None = None):
        self.params = params or PlannerParameters()
        self.last_waypoint: np.ndarray | None = None
        self.hover_point: np.ndarray | None = None
        self.last_type = WaypointType.hover

    def set_params(self, params: PlannerParameters) -> None:
        self.params = params

    def reset(self) -> None:
        self.last_waypoint = None
        self.hover_point = None
        self.last_type = WaypointType.hover

    def _along(self, direction: np.ndarray, position: np.ndarray, goal: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Position/velocity one second ahead along direction, slowing down near the goal."""
        p = self.params
        goal_dist = float(np.linalg.norm(goal - position))
        speed = p.model.xy_vel * min(1.0, goal_dist / p.goal_slowdown_radius)
        velocity = limit_velocity(direction * speed, p.model)
        step = float(np.linalg.norm(velocity))
        if step > goal_dist:
            velocity *= goal_dist / step
        return position + velocity, velocity

    def _smooth(self, target: np.ndarray, dt: float) -> np.ndarray:
        if self.last_waypoint is None or dt <= 0.0:
            return target
        p = self.params
        alpha_xy = 1.0 - math.exp(-p.smoothing_speed_xy * dt)
        alpha_z = 1.0 - math.exp(-p.smoothing_speed_z * dt)
        smoothed = self.last_waypoint.copy()
        smoothed[:2] += alpha_xy * (target[:2] - self.last_waypoint[:2])
        smoothed[2] += alpha_z * (target[2] - self.last_waypoint[2])
        return smoothed

    def generate(
        self,
        waypoint_type: WaypointType,
        position,
        goal,
        direction: PolarPoint | None = None,
        obstacle_position=None,
        healthy: bool = True,
        dt: float = 0.0,
    ) -> Setpoint:
        """
        direction is the steering direction for tryPath/costmap,
        obstacle_position the nearest obstacle point for goBack.
        """
        p = self.params
        position = np.asarray(position, dtype=float)[:3]
        goal = np.asarray(goal, dtype=float)[:3]

        if waypoint_type != self.last_type:
            logger.info("Waypoint mode %s -> %s", self.last_type.value, waypoint_type.value)

        if waypoint_type == WaypointType.hover:
            if self.last_type != WaypointType.hover or self.hover_point is None:
                self.hover_point = position.copy()
            self.last_type = waypoint_type
            self.last_waypoint = self.hover_point.copy()
            return Setpoint(self.hover_point.copy(), np.zeros(3), waypoint_type, healthy)

        if waypoint_type == WaypointType.reachHeight:
            climb = p.starting_height - position[2]
            vz = p.model.takeoff_speed if climb > 0 else -p.model.land_speed
            velocity = limit_velocity([0.0, 0.0, vz], p.model)
            target = np.array([position[0], position[1], p.starting_height])
        elif waypoint_type == WaypointType.goBack:
            away = position - np.asarray(obstacle_position, dtype=float)[:3]
            away[2] = 0.0
            norm = float(np.linalg.norm(away))
            away = away / norm if norm > 0 else np.zeros(3)
            velocity = limit_velocity(away * 0.5 * p.model.xy_vel, p.model)
            target = position + away * p.back_off_distance
        elif waypoint_type == WaypointType.direct:
            offset = goal - position
            norm = float(np.linalg.norm(offset))
            unit = offset / norm if norm > 0 else np.zeros(3)
            target, velocity = self._along(unit, position, goal)
        else:
            unit = polar_to_unit_vector(direction.e, direction.z)
            target, velocity = self._along(unit, position, goal)

        target = self._smooth(target, dt)
        self.last_type = waypoint_type
        self.last_waypoint = target.copy()
        return Setpoint(target, velocity, waypoint_type, healthy)
