"""Pydantic models for planner parameters and API request/response payloads."""

from pathlib import Path

from pydantic import BaseModel, Field


class CostParameters(BaseModel):
    """Weights of the direction cost function."""
    goal_cost_param: float = Field(3.0, ge=0)                   # deviation from goal direction
    heading_cost_param: float = Field(0.5, ge=0)                # deviation from current heading
    smooth_cost_param: float = Field(1.5, ge=0)                 # deviation from last sent waypoint
    height_change_cost_param: float = Field(4.0, ge=0)          # descending below goal elevation
    height_change_cost_param_adapted: float = Field(4.0, ge=0)  # climbing above goal elevation
    obstacle_cost_param: float = Field(300.0, gt=0)             # cost = param / obstacle distance


class ModelParameters(BaseModel):
    """Vehicle kinematic limits (m/s, m/s^2) used to bound setpoints."""
    up_acc: float = Field(10.0, gt=0)
    up_vel: float = Field(3.0, gt=0)
    down_acc: float = Field(10.0, gt=0)
    down_vel: float = Field(1.0, gt=0)
    xy_acc: float = Field(5.0, gt=0)
    xy_vel: float = Field(3.0, gt=0)
    takeoff_speed: float = Field(1.0, gt=0)
    land_speed: float = Field(0.7, gt=0)


class PlannerParameters(BaseModel):
    """All tunables of one planner instance."""
    cost: CostParameters = Field(default_factory=CostParameters)
    model: ModelParameters = Field(default_factory=ModelParameters)

    # Point cloud fusion
    box_radius: float = Field(12.0, gt=0)
    box_dist_to_ground: float = Field(1.0, ge=0)
    min_sensor_range: float = Field(0.2, ge=0)
    max_point_age: int = Field(20, ge=0)         # cycles
    h_fov: float = Field(59.0, gt=0, le=360)     # degrees
    v_fov: float = Field(46.0, gt=0, le=180)

    # Cost matrix
    smoothing_margin_degrees: float = Field(12.0, ge=0, le=180)  # radius stays within the elevation rows

    # Tree search
    children_per_node: int = Field(8, ge=1)
    n_expanded_nodes: int = Field(30, ge=1)
    tree_node_distance: float = Field(1.5, gt=0)
    min_node_spacing: float = Field(0.2, ge=0)
    tree_discount_factor: float = Field(0.8, gt=0, le=1)
    goal_tolerance: float = Field(1.0, gt=0)
    tree_time_budget_s: float = Field(0.05, gt=0)  # further capped by the planning period
    tree_validity_distance: float = Field(3.0, gt=0)
    tree_heuristic_weight: float = Field(35.0, ge=0)  # cost per metre still to go

    # Waypoint generation
    starting_height: float = Field(2.0)          # absolute z the vehicle climbs to before planning
    height_tolerance: float = Field(0.5, gt=0)
    back_off_distance: float = Field(1.0, ge=0)  # retreat when an obstacle is closer than this
    goal_slowdown_radius: float = Field(2.0, gt=0)
    smoothing_speed_xy: float = Field(10.0, gt=0)
    smoothing_speed_z: float = Field(3.0, gt=0)

    # Failsafe (seconds)
    timeout_startup: float = Field(5.0, ge=0)
    timeout_critical: float = Field(0.5, gt=0)
    timeout_termination: float = Field(15.0, gt=0)

    # Sensor fan-in (seconds)
    cloud_wait_timeout: float = Field(0.5, gt=0)
    transform_timeout: float = Field(0.1, gt=0)
    data_ready_timeout: float = Field(0.2, gt=0)

    @classmethod
    def from_file(cls, path: str | Path) -> "PlannerParameters":
        """Load parameters from a JSON file; missing keys keep their defaults."""
        return cls.model_validate_json(Path(path).read_text())


class GoalPayload(BaseModel):
    """New goal position from an API client."""
    x: float
    y: float
    z: float


class SetpointMessage(BaseModel):
    """Setpoint handed to the flight-controller interface."""
    position: list[float]       # [x, y, z] metres
    velocity: list[float]       # [vx, vy, vz] m/s
    waypoint_type: str
    healthy: bool


class PlannerUpdate(BaseModel):
    """WebSocket broadcast / status response."""
    timestamp: float
    setpoint: SetpointMessage
    mav_state: str
    vehicle_position: list[float]
    goal: list[float]
    sensors_ready: int
    sensors_total: int
    closest_obstacle_m: float | None = None
    path: list[list[float]] = []  # retained tree path, goal end first
    cycle_time_ms: float | None = None
