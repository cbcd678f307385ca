"""
Plain-data entry point of the planner: clouds, pose and goal in, setpoint out.
Knows nothing about where the data comes from or where the setpoint goes.
"""

import logging
import threading
import time
from dataclasses import dataclass, field

import numpy as np

from .common import cartesian_to_polar, polar_to_histogram_index
from .cost_matrix import get_best_candidates_from_cost_matrix, get_cost_matrix, generate_new_histogram
from .failsafe import FailsafeStatus
from .fov import calculate_fov
from .histogram import Histogram
from .models import PlannerParameters
from .point_cloud import Box, empty_cloud, process_pointcloud
from .star_planner import StarPlanner, get_direction_from_tree
from .waypoint_generator import Setpoint, WaypointGenerator, WaypointType, select_waypoint_type

logger = logging.getLogger(__name__)

# Share of the planning period the tree search may use.
TREE_PERIOD_SHARE = 0.5


@dataclass
class PlannerInput:
    clouds: list[np.ndarray]                # already in the local frame
    position: np.ndarray
    goal: np.ndarray
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    yaw: float = 0.0                        # degrees, grid azimuth convention
    sensor_yaws: list[float] = field(default_factory=lambda: [0.0])  # mount yaw of each sensor, relative to yaw
    pitch: float = 0.0
    ground_distance: float = -1.0           # <= 0: unknown
    armed: bool = True
    offboard: bool = True
    mission: bool = False
    failsafe: FailsafeStatus = field(default_factory=FailsafeStatus)
    dt: float = 0.0                         # seconds since the previous cycle


@dataclass
class PlannerOutput:
    setpoint: Setpoint
    healthy: bool
    waypoint_type: WaypointType
    closest_obstacle: float | None = None
    path: list[np.ndarray] = field(default_factory=list)
    fused_points: int = 0
    cost_image: np.ndarray | None = None
    cycle_time_ms: float = 0.0


class LocalPlanner:
    """
    Runs one full planning cycle per call. Fused cloud memory, the retained
    tree path, the last sent waypoint and the height-reached latch carry over
    between cycles; everything else is rebuilt.
    """

    def __init__(self, params: PlannerParameters | None = None):
        self.params = params or PlannerParameters()
        self._lock = threading.Lock()
        self.box = Box(self.params.box_radius, self.params.box_dist_to_ground)
        self.histogram = Histogram()
        self.fused_cloud = empty_cloud()
        self.star_planner = StarPlanner(self.params)
        self.waypoint_generator = WaypointGenerator(self.params)
        self.height_reached = False

    def set_params(self, params: PlannerParameters) -> None:
        with self._lock:
            self.params = params
            self.box = Box(params.box_radius, params.box_dist_to_ground)
            self.star_planner.set_params(params)
            self.waypoint_generator.set_params(params)
            logger.info("Planner parameters updated")

    def set_cycle_period(self, period: float) -> None:
        """Keep the tree search inside one planning period."""
        with self._lock:
            self.star_planner.set_time_limit(TREE_PERIOD_SHARE * period)

    def reset(self) -> None:
        """Forget remembered points, the tree path and the last waypoint."""
        with self._lock:
            self.fused_cloud = empty_cloud()
            self.histogram.set_zero()
            self.star_planner.path_node_positions = []
            self.waypoint_generator.reset()
            self.height_reached = False

    def histogram_snapshot(self) -> np.ndarray:
        with self._lock:
            return self.histogram.dist.copy()

    def run(self, data: PlannerInput) -> PlannerOutput:
        with self._lock:
            return self._run(data)

    def _nearest_obstacle(self, position: np.ndarray) -> tuple[float | None, np.ndarray | None]:
        if len(self.fused_cloud) == 0:
            return None, None
        dist = np.linalg.norm(self.fused_cloud[:, :3] - position, axis=1)
        i = int(np.argmin(dist))
        return float(dist[i]), self.fused_cloud[i, :3]

    def _goal_visible(self, position: np.ndarray, goal: np.ndarray) -> bool:
        goal_pol = cartesian_to_polar(goal, position)
        e_idx, z_idx = polar_to_histogram_index(goal_pol)
        obstacle = self.histogram.get_dist(e_idx, z_idx)
        return obstacle == 0.0 or obstacle > goal_pol.r

    def _back_off_distance(self, velocity: np.ndarray, position: np.ndarray, obstacle_position: np.ndarray) -> float:
        """back_off_distance plus the braking distance of the speed toward the obstacle."""
        p = self.params
        offset = obstacle_position - position
        norm = float(np.linalg.norm(offset))
        if norm == 0.0:
            return p.back_off_distance
        closing = max(0.0, float(np.dot(velocity[:3], offset)) / norm)
        return p.back_off_distance + closing ** 2 / (2.0 * p.model.xy_acc)

    def _run(self, data: PlannerInput) -> PlannerOutput:
        started = time.monotonic()
        p = self.params
        position = np.asarray(data.position, dtype=float)[:3]
        goal = np.asarray(data.goal, dtype=float)[:3]

        self.box.set_box_limits(position, data.ground_distance)
        fovs = [calculate_fov(p.h_fov, p.v_fov, data.yaw + mount, data.pitch) for mount in data.sensor_yaws]
        self.fused_cloud = process_pointcloud(
            self.fused_cloud, data.clouds, self.box, position,
            p.min_sensor_range, p.max_point_age, fovs,
        )
        generate_new_histogram(self.histogram, self.fused_cloud, position)
        closest, obstacle_position = self._nearest_obstacle(position)

        if not self.height_reached and abs(position[2] - p.starting_height) <= p.height_tolerance:
            self.height_reached = True
            logger.info("Starting height %.1f m reached", p.starting_height)

        last_waypoint = self.waypoint_generator.last_waypoint
        if last_waypoint is None:
            last_waypoint = position

        # only plan for a vehicle that is flying under offboard or mission control
        airborne = data.armed and (data.offboard or data.mission)
        hold = data.failsafe.hover or not airborne

        candidate = None
        cost_image = None
        if self.histogram.is_empty():
            self.star_planner.path_node_positions = []
        elif not hold:
            cost_matrix, cost_image = get_cost_matrix(
                self.histogram, goal, position, data.yaw, last_waypoint,
                p.cost, p.smoothing_margin_degrees,
            )
            candidates = get_best_candidates_from_cost_matrix(cost_matrix, 1)
            candidate = candidates[0] if candidates else None

            self.star_planner.set_pose(position, data.yaw)
            self.star_planner.set_goal(goal)
            self.star_planner.set_pointcloud(self.fused_cloud)
            self.star_planner.set_last_direction(last_waypoint)
            self.star_planner.build_look_ahead_tree()

        path = self.star_planner.path_node_positions
        tree_direction = get_direction_from_tree(path, position, goal, p.tree_validity_distance)

        waypoint_type = select_waypoint_type(
            failsafe_hover=hold,
            obstacle_too_close=closest is not None and closest < self._back_off_distance(
                np.asarray(data.velocity, dtype=float), position, obstacle_position),
            height_reached=self.height_reached,
            tree_direction_available=tree_direction is not None,
            has_candidate=candidate is not None,
            goal_visible=self._goal_visible(position, goal),
        )

        direction = None
        if waypoint_type == WaypointType.tryPath:
            direction = tree_direction
        elif waypoint_type == WaypointType.costmap:
            direction = candidate.to_polar(1.0, self.histogram.resolution)

        setpoint = self.waypoint_generator.generate(
            waypoint_type, position, goal,
            direction=direction,
            obstacle_position=obstacle_position,
            healthy=data.failsafe.healthy,
            dt=data.dt,
        )

        cycle_time_ms = (time.monotonic() - started) * 1000.0
        logger.debug("Cycle %.1f ms: %s, %d fused points", cycle_time_ms, waypoint_type.value, len(self.fused_cloud))
        return PlannerOutput(
            setpoint=setpoint,
            healthy=data.failsafe.healthy,
            waypoint_type=waypoint_type,
            closest_obstacle=closest,
            path=[np.array(n) for n in path],
            fused_points=len(self.fused_cloud),
            cost_image=cost_image,
            cycle_time_ms=cycle_time_ms,
        )
