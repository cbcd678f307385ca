"""
Look-ahead tree search over the cost matrix.

Nodes live in a single list; a node's origin is the index of its parent.
Each expansion builds the histogram and cost matrix as seen from the origin
node, branches along its cheapest directions and continues from the cheapest
open node, A*-style, until the goal is close, the node budget is spent or
time runs out.
"""

import logging
import time
from dataclasses import dataclass, field

import numpy as np

from .common import ALPHA_RES, PolarPoint, cartesian_to_polar, polar_to_cartesian
from .cost_matrix import generate_new_histogram, get_best_candidates_from_cost_matrix, get_cost_matrix
from .histogram import Histogram
from .models import PlannerParameters
from .point_cloud import empty_cloud

logger = logging.getLogger(__name__)


@dataclass
class TreeNode:
    position: np.ndarray
    origin: int
    depth: int
    total_cost: float
    heuristic: float
    yaw: float                  # azimuth of the edge leading here, degrees
    last_position: np.ndarray   # point the smoothness cost steers toward
    closed: bool = field(default=False)


class StarPlanner:
    """Grows the tree from the vehicle position and keeps the best path."""

    def __init__(self, params: PlannerParameters | None = None):
        self.params = params or PlannerParameters()
        self.cloud = empty_cloud()
        self.position = np.zeros(3)
        self.yaw = 0.0
        self.goal = np.zeros(3)
        self.last_direction = np.zeros(3)
        self.time_limit: float | None = None  # seconds, set from the planning period

        self.tree: list[TreeNode] = []
        self.closed_set: list[int] = []
        self.path_node_positions: list[np.ndarray] = []
        self.goal_reached = False

    def set_params(self, params: PlannerParameters) -> None:
        self.params = params

    def set_pointcloud(self, cloud) -> None:
        self.cloud = np.asarray(cloud, dtype=float)

    def set_pose(self, position, yaw: float) -> None:
        self.position = np.asarray(position, dtype=float)[:3].copy()
        self.yaw = float(yaw)

    def set_goal(self, goal) -> None:
        self.goal = np.asarray(goal, dtype=float)[:3].copy()

    def set_last_direction(self, waypoint) -> None:
        """Last waypoint sent to the vehicle; the root's smoothness reference."""
        self.last_direction = np.asarray(waypoint, dtype=float)[:3].copy()

    def set_time_limit(self, seconds: float | None) -> None:
        """Upper bound on the search time, on top of tree_time_budget_s."""
        self.time_limit = seconds

    @property
    def time_budget(self) -> float:
        if self.time_limit is None:
            return self.params.tree_time_budget_s
        return min(self.params.tree_time_budget_s, self.time_limit)

    def _heuristic(self, position: np.ndarray) -> float:
        return self.params.tree_heuristic_weight * float(np.linalg.norm(self.goal - position))

    def _too_close_to_tree(self, position: np.ndarray) -> bool:
        positions = np.array([node.position for node in self.tree])
        return bool(np.min(np.linalg.norm(positions - position, axis=1)) < self.params.min_node_spacing)

    def _best_open_node(self) -> int | None:
        open_nodes = [i for i, node in enumerate(self.tree) if not node.closed]
        if not open_nodes:
            return None
        return min(open_nodes, key=lambda i: self.tree[i].total_cost)

    def _expand(self, origin: int, histogram: Histogram) -> int | None:
        """Add children of tree[origin]. Returns the index of a child within goal tolerance, if any."""
        p = self.params
        node = self.tree[origin]
        generate_new_histogram(histogram, self.cloud, node.position)
        cost_matrix, _ = get_cost_matrix(
            histogram, self.goal, node.position, node.yaw, node.last_position,
            p.cost, p.smoothing_margin_degrees,
        )
        candidates = get_best_candidates_from_cost_matrix(cost_matrix, p.children_per_node)

        goal_child = None
        for candidate in candidates:
            direction = candidate.to_polar(p.tree_node_distance, histogram.resolution)
            child_position = polar_to_cartesian(direction, node.position)
            if self._too_close_to_tree(child_position):
                continue
            heuristic = self._heuristic(child_position)
            self.tree.append(TreeNode(
                position=child_position,
                origin=origin,
                depth=node.depth + 1,
                total_cost=node.total_cost - node.heuristic + candidate.cost * p.tree_discount_factor + heuristic,
                heuristic=heuristic,
                yaw=direction.z,
                # one step further along the incoming edge
                last_position=2.0 * child_position - node.position,
            ))
            if goal_child is None and np.linalg.norm(self.goal - child_position) < p.goal_tolerance:
                goal_child = len(self.tree) - 1

        node.closed = True
        self.closed_set.append(origin)
        return goal_child

    def build_look_ahead_tree(self) -> list[np.ndarray]:
        """
        Grow the tree and store the chosen path in path_node_positions,
        goal end first, vehicle position last.
        """
        p = self.params
        started = time.monotonic()
        self.tree = [TreeNode(
            position=self.position.copy(),
            origin=0,
            depth=0,
            total_cost=self._heuristic(self.position),
            heuristic=self._heuristic(self.position),
            yaw=self.yaw,
            last_position=self.last_direction.copy(),
        )]
        self.closed_set = []
        self.goal_reached = bool(np.linalg.norm(self.goal - self.position) < p.goal_tolerance)

        histogram = Histogram(ALPHA_RES)
        leaf = 0
        origin: int | None = 0
        expansions = 0
        while not self.goal_reached and origin is not None and expansions < p.n_expanded_nodes:
            goal_child = self._expand(origin, histogram)
            expansions += 1
            if goal_child is not None:
                leaf = goal_child
                self.goal_reached = True
                break
            if time.monotonic() - started > self.time_budget:
                logger.debug("Tree search stopped on time budget after %d expansions", expansions)
                break
            origin = self._best_open_node()

        if not self.goal_reached:
            best = self._best_open_node()
            leaf = best if best is not None else 0

        path = []
        index = leaf
        while True:
            path.append(self.tree[index].position)
            if index == 0:
                break
            index = self.tree[index].origin
        self.path_node_positions = path

        logger.debug(
            "Tree: %d nodes, %d expanded, path length %d, goal reached %s, %.1f ms",
            len(self.tree), expansions, len(path), self.goal_reached,
            (time.monotonic() - started) * 1000.0,
        )
        return path


def get_direction_from_tree(
    path_node_positions,
    position,
    goal,
    validity_distance: float = 3.0,
) -> PolarPoint | None:
    """
    Direction to follow a stored tree path (goal end first).

    Finds the path segment closest to position and looks the same fraction
    ahead along the next segment toward the goal end; on the last segment the
    look-ahead aims at goal itself. Returns None when the path has fewer than
    two nodes or the vehicle is farther than validity_distance from it.
    """
    nodes = [np.asarray(n, dtype=float)[:3] for n in path_node_positions]
    if len(nodes) < 2:
        return None
    position = np.asarray(position, dtype=float)[:3]

    best_k, best_t, best_dist = 0, 0.0, np.inf
    for k in range(len(nodes) - 1):
        start, end = nodes[k + 1], nodes[k]
        segment = end - start
        length_sq = float(segment @ segment)
        t = 0.0 if length_sq == 0.0 else float(np.clip((position - start) @ segment / length_sq, 0.0, 1.0))
        dist = float(np.linalg.norm(start + t * segment - position))
        if dist < best_dist:
            best_k, best_t, best_dist = k, t, dist

    if best_dist > validity_distance:
        return None

    if best_k == 0:
        target = nodes[0] + best_t * (np.asarray(goal, dtype=float)[:3] - nodes[0])
    else:
        target = nodes[best_k] + best_t * (nodes[best_k - 1] - nodes[best_k])
    return cartesian_to_polar(target, position)
