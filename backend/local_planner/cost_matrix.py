"""
Direction costs over the polar histogram.

Every bin gets an obstacle cost (closer obstacle = higher cost) and a
steering cost (deviation from goal, heading and last waypoint, plus a
height-change penalty). The obstacle layer is smoothed with a pyramid kernel
that follows the spherical wrap rules, then the cheapest bins become the
candidate directions.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np

from .common import (
    PolarGrid,
    PolarPoint,
    angle_difference,
    bin_centers,
    cartesian_to_polar,
    cartesian_to_polar_arrays,
    histogram_index_to_polar,
    polar_to_histogram_index_arrays,
)
from .histogram import Histogram
from .models import CostParameters

logger = logging.getLogger(__name__)


@dataclass(order=True)
class CandidateDirection:
    """Histogram bin ranked by cost."""
    cost: float
    e: int
    z: int

    def to_polar(self, radius: float, res: int) -> PolarPoint:
        return histogram_index_to_polar(self.e, self.z, res, radius)


def generate_new_histogram(histogram: Histogram, cloud, position) -> None:
    """
    Rebuild histogram from a cloud seen from position: each bin holds the
    smallest radius of the points that fall into it, empty bins stay 0.
    """
    histogram.set_zero()
    pts = np.asarray(cloud, dtype=float)
    if pts.size == 0:
        return
    pts = pts.reshape(len(pts), -1)[:, :3]
    e, z, r = cartesian_to_polar_arrays(pts, position)
    valid = r > 0.0
    if not np.any(valid):
        return
    e_idx, z_idx = polar_to_histogram_index_arrays(e[valid], z[valid], histogram.resolution)
    nearest = np.full(histogram.dist.shape, np.inf)
    np.minimum.at(nearest, (e_idx, z_idx), r[valid])
    histogram.dist[...] = np.where(np.isfinite(nearest), nearest, 0.0)


def cost_function(
    e,
    z,
    obstacle_distance,
    goal,
    position,
    heading: float,
    last_waypoint,
    params: CostParameters,
):
    """
    Cost of flying along (e, z) degrees. Broadcasts over numpy arrays.

    Returns (distance_cost, other_costs):
    - distance_cost: 0 without an obstacle, otherwise params.obstacle_cost_param / distance.
    - other_costs: weighted angular deviation from the goal direction, the
      current heading and the direction of the last sent waypoint, plus the
      height-change penalty. Deviations add the wrapped azimuth difference and
      the elevation difference, so each term is zero only on its reference.
    """
    e = np.asarray(e, dtype=float)
    z = np.asarray(z, dtype=float)
    d = np.asarray(obstacle_distance, dtype=float)
    position = np.asarray(position, dtype=float)

    occupied = d > 0.0
    distance_cost = np.where(occupied, params.obstacle_cost_param / np.where(occupied, d, 1.0), 0.0)

    def deviation(e_ref: float, z_ref: float):
        return angle_difference(z, z_ref) + np.abs(e - e_ref)

    goal_pol = cartesian_to_polar(goal, position)
    goal_cost = params.goal_cost_param * deviation(goal_pol.e, goal_pol.z)
    heading_cost = params.heading_cost_param * deviation(0.0, heading)

    smooth_cost = 0.0
    if np.linalg.norm(np.asarray(last_waypoint, dtype=float) - position) > 1e-6:
        wp_pol = cartesian_to_polar(last_waypoint, position)
        smooth_cost = params.smooth_cost_param * deviation(wp_pol.e, wp_pol.z)

    climb = e - goal_pol.e
    height_cost = np.where(
        climb > 0.0,
        params.height_change_cost_param_adapted * climb,
        -params.height_change_cost_param * climb,
    )

    other_costs = goal_cost + heading_cost + smooth_cost + height_cost
    if distance_cost.ndim == 0 and np.ndim(other_costs) == 0:
        return float(distance_cost), float(other_costs)
    return distance_cost, other_costs


def pad_polar_matrix(matrix: np.ndarray, n: int) -> np.ndarray:
    """
    Grow matrix by n cells on each side. Azimuth (columns) wraps around;
    crossing a pole (rows) lands on the opposite azimuth one row back inside.
    """
    return PolarGrid(matrix).padded(n)


def smooth_polar_matrix(matrix: np.ndarray, smoothing_radius: int) -> np.ndarray:
    """
    Convolve with a separable pyramid kernel of half-width smoothing_radius,
    weight (r + 1 - |d|) / (r + 1) per axis, over the polar padding.
    The radius is capped at the number of rows, the widest padding the poles allow.
    """
    rows, cols = matrix.shape
    radius = min(int(smoothing_radius), rows)
    if radius <= 0:
        return np.array(matrix, dtype=float)
    padded = pad_polar_matrix(np.asarray(matrix, dtype=float), radius)
    kernel = (radius + 1 - np.abs(np.arange(-radius, radius + 1))) / (radius + 1)

    along_z = np.zeros((rows + 2 * radius, cols))
    for i, w in enumerate(kernel):
        along_z += w * padded[:, i:i + cols]
    smoothed = np.zeros((rows, cols))
    for i, w in enumerate(kernel):
        smoothed += w * along_z[i:i + rows, :]
    return smoothed


def _to_uint8(layer: np.ndarray) -> np.ndarray:
    layer = np.nan_to_num(layer, nan=0.0, posinf=0.0, neginf=0.0)
    peak = layer.max() if layer.size else 0.0
    if peak <= 0.0:
        return np.zeros(layer.shape, dtype=np.uint8)
    return np.clip(255.0 * layer / peak, 0, 255).astype(np.uint8)


def generate_cost_image(other_costs: np.ndarray, distance_costs: np.ndarray) -> np.ndarray:
    """Debug image (E x Z x 3, uint8): red = obstacle cost, green = steering cost."""
    image = np.zeros(other_costs.shape + (3,), dtype=np.uint8)
    image[..., 0] = _to_uint8(distance_costs)
    image[..., 1] = _to_uint8(other_costs)
    return image


def get_cost_matrix(
    histogram: Histogram,
    goal,
    position,
    heading: float,
    last_waypoint,
    params: CostParameters,
    smoothing_margin_degrees: float,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Cost of every histogram bin. The obstacle layer is smoothed over
    ceil(smoothing_margin_degrees / resolution) bins before the steering
    costs are added. Bins whose cost is not finite are NaN.

    Returns (cost_matrix, cost_image).
    """
    e_grid, z_grid = bin_centers(histogram.resolution)
    distance_costs, other_costs = cost_function(
        e_grid, z_grid, histogram.dist, goal, position, heading, last_waypoint, params,
    )
    invalid = ~np.isfinite(distance_costs) | ~np.isfinite(other_costs)
    if np.any(invalid):
        logger.warning("Excluding %d bins with non-finite cost", int(invalid.sum()))
    distance_costs = np.where(invalid, 0.0, distance_costs)

    smooth_radius = int(math.ceil(smoothing_margin_degrees / histogram.resolution))
    distance_costs = smooth_polar_matrix(distance_costs, smooth_radius)

    cost_image = generate_cost_image(other_costs, distance_costs)
    cost_matrix = distance_costs + other_costs
    cost_matrix[invalid] = np.nan
    return cost_matrix, cost_image


def get_best_candidates_from_cost_matrix(matrix: np.ndarray, n_candidates: int) -> list[CandidateDirection]:
    """n lowest-cost finite bins, ascending; equal costs keep scan order."""
    flat = np.asarray(matrix, dtype=float).ravel()
    valid = np.flatnonzero(np.isfinite(flat))
    order = valid[np.argsort(flat[valid], kind="stable")][:max(0, n_candidates)]
    cols = matrix.shape[1]
    return [CandidateDirection(cost=float(flat[i]), e=int(i // cols), z=int(i % cols)) for i in order]
