import math

import numpy as np
import pytest
from pydantic import ValidationError

from local_planner.common import GRID_LENGTH_E, GRID_LENGTH_Z, cartesian_to_polar, polar_to_histogram_index
from local_planner.cost_matrix import (
    cost_function,
    generate_new_histogram,
    get_best_candidates_from_cost_matrix,
    get_cost_matrix,
    pad_polar_matrix,
    smooth_polar_matrix,
)
from local_planner.histogram import Histogram
from local_planner.models import PlannerParameters

from conftest import make_wall

POSITION = np.zeros(3)
GOAL = np.array([0.0, 5.0, 0.0])
LAST_WAYPOINT = np.array([0.0, 1.0, 0.0])


def test_best_candidates_are_sorted():
    matrix = np.full((GRID_LENGTH_E, GRID_LENGTH_Z), 10.0)
    matrix[0, 2] = 1.1
    matrix[0, 1] = 2.5
    matrix[1, 2] = 3.8
    matrix[1, 0] = 4.7
    matrix[2, 2] = 4.9

    candidates = get_best_candidates_from_cost_matrix(matrix, 4)

    assert [c.cost for c in candidates] == pytest.approx([1.1, 2.5, 3.8, 4.7])
    assert (candidates[0].e, candidates[0].z) == (0, 2)


def test_best_candidates_skip_non_finite_costs():
    matrix = np.full((GRID_LENGTH_E, GRID_LENGTH_Z), 10.0)
    matrix[0, 0] = np.nan
    matrix[0, 1] = np.inf
    matrix[5, 5] = 1.0
    candidates = get_best_candidates_from_cost_matrix(matrix, 3)
    assert all(math.isfinite(c.cost) for c in candidates)
    assert (candidates[0].e, candidates[0].z) == (5, 5)
    # ties keep scan order
    assert (candidates[1].e, candidates[1].z) == (0, 2)


def test_smoothing_spreads_a_costly_cell():
    radius = 2
    matrix = np.zeros((GRID_LENGTH_E, GRID_LENGTH_Z))
    r_obj, c_obj = GRID_LENGTH_E // 2, GRID_LENGTH_Z // 2
    matrix[r_obj, c_obj] = 100.0

    smoothed = smooth_polar_matrix(matrix, radius)

    for r in range(r_obj - radius, r_obj + radius):
        for c in range(c_obj - radius, c_obj + radius):
            if (r, c) != (r_obj, c_obj):
                assert smoothed[r, c] > matrix[r, c]
    assert np.all(smoothed >= matrix)


def test_smoothing_matches_pyramid_kernel():
    matrix = np.zeros((10, 20))
    matrix[3, 16] = 100.0
    matrix[6, 6] = -100.0

    smoothed = smooth_polar_matrix(matrix, 4)

    expected = np.array([
        [8, 0, 4, 8, 12, 16, 20, 16, 12, 8, 4, 0, 8, 16, 24, 32, 40, 32, 24, 16],
        [12, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 12, 24, 36, 48, 60, 48, 36, 24],
        [16, 0, -4, -8, -12, -16, -20, -16, -12, -8, -4, 0, 16, 32, 48, 64, 80, 64, 48, 32],
        [20, 0, -8, -16, -24, -32, -40, -32, -24, -16, -8, 0, 20, 40, 60, 80, 100, 80, 60, 40],
        [16, 0, -12, -24, -36, -48, -60, -48, -36, -24, -12, 0, 16, 32, 48, 64, 80, 64, 48, 32],
        [12, 0, -16, -32, -48, -64, -80, -64, -48, -32, -16, 0, 12, 24, 36, 48, 60, 48, 36, 24],
        [8, 0, -20, -40, -60, -80, -100, -80, -60, -40, -20, 0, 8, 16, 24, 32, 40, 32, 24, 16],
        [4, 0, -16, -32, -48, -64, -80, -64, -48, -32, -16, 0, 4, 8, 12, 16, 20, 16, 12, 8],
        [0, 0, -12, -24, -36, -48, -60, -48, -36, -24, -12, 0, 0, 0, 0, 0, 0, 0, 0, 0],
        [-4, 0, -8, -16, -24, -32, -40, -32, -24, -16, -8, 0, -4, -8, -12, -16, -20, -16, -12, -8],
    ], dtype=float)
    assert np.max(np.abs(expected - smoothed)) < 1e-5


def test_cost_matrix_without_obstacles_points_at_the_goal(cost_params):
    cost_params.goal_cost_param = 2.0
    cost_matrix, cost_image = get_cost_matrix(
        Histogram(), GOAL, POSITION, 0.0, LAST_WAYPOINT, cost_params, 30.0,
    )
    assert cost_image.shape == (GRID_LENGTH_E, GRID_LENGTH_Z, 3)
    assert cost_image.dtype == np.uint8

    best_e, best_z = polar_to_histogram_index(cartesian_to_polar(GOAL, POSITION))
    min_row, min_col = np.unravel_index(np.nanargmin(cost_matrix), cost_matrix.shape)
    assert abs(min_row - best_e) <= 1
    assert abs(min_col - best_z) <= 1

    check = 3
    padded = pad_polar_matrix(cost_matrix, check)
    e = min_row + check
    assert np.all(padded[e + 2] > padded[e + 1])
    assert np.all(padded[e + 3] > padded[e + 2])
    assert np.all(padded[e - 2] > padded[e] - 1)
    assert np.all(padded[e - 3] > padded[e] - 2)

    inner = padded[check:check + GRID_LENGTH_E, check:check + GRID_LENGTH_Z]
    z = min_col + check
    assert np.all(inner[:, z + 10] > inner[:, z + 1])
    assert np.all(inner[:, z + 20] > inner[:, z + 10])
    assert np.all(inner[:, z - 10] > inner[:, z] - 1)
    assert np.all(inner[:, z - 20] > inner[:, z] - 10)


def test_cost_matrix_avoids_obstacle_directions(cost_params):
    histogram = Histogram()
    best_e, best_z = polar_to_histogram_index(cartesian_to_polar(GOAL, POSITION))
    for e in range(best_e - 2, best_e + 3):
        for z in range(best_z - 2, best_z + 3):
            histogram.set_dist(e, z, 1.0)

    cost_matrix, _ = get_cost_matrix(histogram, GOAL, POSITION, 0.0, LAST_WAYPOINT, cost_params, 30.0)
    best = get_best_candidates_from_cost_matrix(cost_matrix, 1)[0]
    assert (abs(best.e - best_e) > 2) or (abs(best.z - best_z) > 2)


def test_distance_cost(cost_params):
    d0, _ = cost_function(0.0, 0.0, 0.0, GOAL, POSITION, 0.0, LAST_WAYPOINT, cost_params)
    d3, _ = cost_function(0.0, 0.0, 3.0, GOAL, POSITION, 0.0, LAST_WAYPOINT, cost_params)
    d5, _ = cost_function(0.0, 0.0, 5.0, GOAL, POSITION, 0.0, LAST_WAYPOINT, cost_params)
    assert d0 == 0.0
    assert d3 > d5 > 0.0


def test_goal_cost(cost_params):
    _, aligned = cost_function(0.0, 0.0, 0.0, GOAL, POSITION, 0.0, LAST_WAYPOINT, cost_params)
    _, diverged = cost_function(0.0, 0.0, 0.0, [3.0, 3.0, 0.0], POSITION, 0.0, LAST_WAYPOINT, cost_params)
    assert aligned < diverged


def test_heading_cost(cost_params):
    _, close = cost_function(0.0, 0.0, 0.0, GOAL, POSITION, 10.0, LAST_WAYPOINT, cost_params)
    _, far = cost_function(0.0, 0.0, 0.0, GOAL, POSITION, 30.0, LAST_WAYPOINT, cost_params)
    assert close < far


def test_smoothing_cost(cost_params):
    _, close = cost_function(0.0, 0.0, 0.0, GOAL, POSITION, 0.0, [1.0, 2.0, 0.0], cost_params)
    _, far = cost_function(0.0, 0.0, 0.0, GOAL, POSITION, 0.0, [1.5, 1.5, 0.0], cost_params)
    assert close < far


def test_climbing_above_the_goal_costs_more(cost_params):
    _, level = cost_function(0.0, 0.0, 0.0, GOAL, POSITION, 0.0, LAST_WAYPOINT, cost_params)
    _, climb = cost_function(30.0, 0.0, 0.0, GOAL, POSITION, 0.0, LAST_WAYPOINT, cost_params)
    assert climb > level


def test_default_costs_steer_through_a_gap_in_a_wall(params):
    # wall 8 m ahead with a 4 m gap between x = -1.5 and x = 2.5
    position = np.array([0.0, 0.0, 2.0])
    goal = np.array([0.0, 24.0, 2.0])
    cloud = np.vstack([
        make_wall(8.0, x_range=(-10.0, -1.5), z_range=(0.5, 6.0)),
        make_wall(8.0, x_range=(2.5, 10.0), z_range=(0.5, 6.0)),
    ])
    histogram = Histogram()
    generate_new_histogram(histogram, cloud, position)

    cost_matrix, _ = get_cost_matrix(
        histogram, goal, position, 0.0, position, params.cost, params.smoothing_margin_degrees,
    )
    best = get_best_candidates_from_cost_matrix(cost_matrix, 1)[0].to_polar(1.0, histogram.resolution)

    left_edge = math.degrees(math.atan2(-1.5, 8.0))
    right_edge = math.degrees(math.atan2(2.5, 8.0))
    assert left_edge < best.z < right_edge
    assert abs(best.e) < 12.0


def test_smoothing_radius_is_capped_at_the_poles():
    matrix = np.ones((GRID_LENGTH_E, GRID_LENGTH_Z))
    smoothed = smooth_polar_matrix(matrix, GRID_LENGTH_E + 15)
    assert smoothed.shape == matrix.shape
    assert np.all(np.isfinite(smoothed))
    np.testing.assert_allclose(smoothed, smooth_polar_matrix(matrix, GRID_LENGTH_E))


def test_smoothing_margin_is_bounded():
    with pytest.raises(ValidationError):
        PlannerParameters(smoothing_margin_degrees=200.0)
    assert PlannerParameters(smoothing_margin_degrees=180.0).smoothing_margin_degrees == 180.0
