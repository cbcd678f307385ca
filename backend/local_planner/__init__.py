from .common import ALPHA_RES, GRID_LENGTH_E, GRID_LENGTH_Z, PolarPoint
from .histogram import Histogram, HistogramResolutionError
from .failsafe import FailsafeMonitor, FailsafeStatus, MavState
from .local_planner import LocalPlanner, PlannerInput, PlannerOutput
from .models import CostParameters, ModelParameters, PlannerParameters
from .planner_node import PlannerNode, VehicleState
from .sensor_coordinator import SensorCoordinator
from .star_planner import StarPlanner, get_direction_from_tree
from .waypoint_generator import Setpoint, WaypointGenerator, WaypointType

__all__ = [
    "ALPHA_RES", "GRID_LENGTH_E", "GRID_LENGTH_Z", "PolarPoint",
    "Histogram", "HistogramResolutionError",
    "FailsafeMonitor", "FailsafeStatus", "MavState",
    "LocalPlanner", "PlannerInput", "PlannerOutput",
    "CostParameters", "ModelParameters", "PlannerParameters",
    "PlannerNode", "VehicleState",
    "SensorCoordinator",
    "StarPlanner", "get_direction_from_tree",
    "Setpoint", "WaypointGenerator", "WaypointType",
]
