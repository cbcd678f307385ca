import numpy as np
import pytest

from local_planner.models import CostParameters, PlannerParameters


@pytest.fixture
def params() -> PlannerParameters:
    return PlannerParameters()


@pytest.fixture
def cost_params() -> CostParameters:
    return CostParameters(
        goal_cost_param=3.0,
        heading_cost_param=0.5,
        smooth_cost_param=1.5,
        height_change_cost_param=4.0,
        height_change_cost_param_adapted=4.0,
    )


def make_wall(y: float, x_range=(-3.0, 3.0), z_range=(0.5, 4.5), step: float = 0.1) -> np.ndarray:
    """Dense vertical wall of points facing the origin."""
    xs = np.arange(x_range[0], x_range[1] + 1e-9, step)
    zs = np.arange(z_range[0], z_range[1] + 1e-9, step)
    xx, zz = np.meshgrid(xs, zs)
    return np.column_stack([xx.ravel(), np.full(xx.size, y), zz.ravel()])
