from .world import World, BoxObstacle, DEFAULT_GOAL, DEFAULT_START
from .moving_obstacles import MovingObstacle
from .vehicle import Vehicle
from .sensors import DepthSensor, TransformBuffer, make_sensor_ring
from .engine import SimulationEngine

__all__ = [
    "World", "BoxObstacle", "DEFAULT_GOAL", "DEFAULT_START",
    "MovingObstacle", "Vehicle",
    "DepthSensor", "TransformBuffer", "make_sensor_ring",
    "SimulationEngine",
]
