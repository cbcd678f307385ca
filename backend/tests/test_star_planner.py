import math
import time

import numpy as np
import pytest

from local_planner.models import PlannerParameters
from local_planner.star_planner import StarPlanner, get_direction_from_tree

from conftest import make_wall


def reference_path():
    n0 = np.array([0.0, 0.0, 2.5])
    n1 = np.array([0.8, math.sqrt(1 - 0.8 ** 2), 2.5])
    n2 = np.array([1.5, n1[1] + math.sqrt(1 - (1.5 - n1[0]) ** 2), 2.5])
    n3 = np.array([2.1, n2[1] + math.sqrt(1 - (2.1 - n2[0]) ** 2), 2.5])
    n4 = np.array([2.3, n3[1] + math.sqrt(1 - (2.3 - n3[0]) ** 2), 2.5])
    return [n4, n3, n2, n1, n0]


GOAL = np.array([10.0, 5.0, 2.5])


def test_direction_between_first_nodes():
    p = get_direction_from_tree(reference_path(), [0.2, 0.3, 1.5], GOAL)
    assert p is not None
    assert p.e == pytest.approx(45.0, abs=1.0)
    assert p.z == pytest.approx(57.0, abs=1.0)


def test_direction_between_last_nodes():
    p = get_direction_from_tree(reference_path(), [1.1, 2.3, 2.5], GOAL)
    assert p is not None
    assert p.e == pytest.approx(0.0, abs=1.0)
    assert p.z == pytest.approx(72.0, abs=1.0)


def test_no_direction_far_from_the_path():
    assert get_direction_from_tree(reference_path(), [5.4, 2.0, 2.5], GOAL) is None


def test_no_direction_from_a_single_node():
    assert get_direction_from_tree([np.zeros(3)], [0.0, 0.0, 0.0], GOAL) is None
    assert get_direction_from_tree([], [0.0, 0.0, 0.0], GOAL) is None


def test_final_segment_steers_toward_the_goal():
    path = [np.array([0.0, 1.0, 2.0]), np.array([0.0, 0.0, 2.0])]
    p = get_direction_from_tree(path, [0.0, 0.5, 2.0], [5.0, 1.0, 2.0])
    assert p is not None
    assert 0.0 < p.z < 90.0


def make_planner(params=None, cloud=None, goal=(0.0, 10.0, 2.5)):
    planner = StarPlanner(params or PlannerParameters())
    planner.set_pose([0.0, 0.0, 2.5], 0.0)
    planner.set_goal(goal)
    planner.set_last_direction([0.0, 0.0, 2.5])
    planner.set_pointcloud(make_wall(3.0) if cloud is None else cloud)
    return planner


def test_tree_reaches_a_close_goal():
    planner = make_planner(cloud=np.empty((0, 3)), goal=(0.0, 1.6, 2.5))
    path = planner.build_look_ahead_tree()
    assert planner.goal_reached
    assert np.linalg.norm(path[0] - np.array([0.0, 1.6, 2.5])) < 1.0
    np.testing.assert_allclose(path[-1], [0.0, 0.0, 2.5])


def test_tree_path_is_usable_for_steering():
    params = PlannerParameters(n_expanded_nodes=15, tree_time_budget_s=5.0)
    planner = make_planner(params)
    path = planner.build_look_ahead_tree()

    assert len(path) >= 2
    np.testing.assert_allclose(path[-1], [0.0, 0.0, 2.5])
    assert len(planner.closed_set) <= params.n_expanded_nodes
    assert get_direction_from_tree(path, [0.0, 0.0, 2.5], planner.goal) is not None


def test_tree_nodes_keep_their_spacing():
    params = PlannerParameters(n_expanded_nodes=10, tree_time_budget_s=5.0)
    planner = make_planner(params)
    planner.build_look_ahead_tree()
    positions = np.array([node.position for node in planner.tree])
    for i, p in enumerate(positions):
        others = np.delete(positions, i, axis=0)
        assert np.min(np.linalg.norm(others - p, axis=1)) >= params.min_node_spacing


def test_tree_search_respects_the_time_budget():
    params = PlannerParameters(n_expanded_nodes=1000, tree_time_budget_s=1e-6)
    planner = make_planner(params)
    started = time.monotonic()
    planner.build_look_ahead_tree()
    assert len(planner.closed_set) == 1
    assert time.monotonic() - started < 1.0


def test_parent_indices_point_backwards():
    planner = make_planner(PlannerParameters(n_expanded_nodes=8, tree_time_budget_s=5.0))
    planner.build_look_ahead_tree()
    for i, node in enumerate(planner.tree[1:], start=1):
        assert node.origin < i
        assert node.depth == planner.tree[node.origin].depth + 1


def test_time_limit_caps_the_configured_budget():
    planner = make_planner(PlannerParameters(n_expanded_nodes=1000, tree_time_budget_s=5.0))
    assert planner.time_budget == 5.0
    planner.set_time_limit(1e-6)
    assert planner.time_budget == 1e-6
    started = time.monotonic()
    planner.build_look_ahead_tree()
    assert len(planner.closed_set) == 1
    assert time.monotonic() - started < 1.0
