"""
Main simulation loop: world + vehicle + depth sensors feeding the planner node.
The engine steps physics and sensors; planning runs in its own thread and the
vehicle follows the latest setpoint.
"""
import asyncio
import logging
import time

import numpy as np

from local_planner.local_planner import LocalPlanner
from local_planner.models import PlannerParameters, PlannerUpdate
from local_planner.planner_node import PlannerNode, VehicleState
from local_planner.sensor_coordinator import SensorCoordinator
from .sensors import TransformBuffer, make_sensor_ring
from .vehicle import Vehicle
from .world import DEFAULT_GOAL, DEFAULT_START, World

logger = logging.getLogger(__name__)

TRAIL_LENGTH = 500


class SimulationEngine:
    def __init__(
        self,
        params: PlannerParameters | None = None,
        n_sensors: int = 3,
        rate_hz: float = 10.0,
        dt: float = 0.05,
        world: World | None = None,
        start=DEFAULT_START,
        goal=DEFAULT_GOAL,
    ):
        self.params = params or PlannerParameters()
        self.world = world or World()
        self.vehicle = Vehicle(position=start)
        self.dt = dt
        self.sensors = make_sensor_ring(n_sensors, self.params.h_fov, self.params.v_fov)
        self.transform_buffers = [TransformBuffer() for _ in self.sensors]
        self.coordinator = SensorCoordinator(
            [b.lookup for b in self.transform_buffers], self.params, [s.mount_yaw for s in self.sensors],
        )
        self.planner = LocalPlanner(self.params)
        self.node = PlannerNode(self.planner, self.coordinator, self.vehicle_state, self.params, rate_hz)
        self.node.set_goal(goal)

        self._running = False
        self._started = False
        self._trail: list[tuple[float, float, float]] = []

    def vehicle_state(self) -> VehicleState:
        return VehicleState(
            position=self.vehicle.position.copy(),
            velocity=self.vehicle.velocity.copy(),
            yaw=self.vehicle.yaw,
            ground_distance=float(self.vehicle.position[2]),
        )

    def get_trail(self) -> list[tuple[float, float, float]]:
        return list(self._trail)

    def set_goal(self, goal) -> None:
        self.node.set_goal(goal)

    def step(self) -> None:
        """Advance the world one tick and publish fresh sensor clouds."""
        self.world.step(self.dt)

        output = self.node.latest_output
        if output is not None:
            self.vehicle.step(output.setpoint, self.dt, self.params.model)

        stamp = time.monotonic()
        for i, (sensor, buffer) in enumerate(zip(self.sensors, self.transform_buffers)):
            cloud = sensor.capture(self.world, self.vehicle.position, self.vehicle.yaw)
            buffer.add(stamp, sensor.transform(self.vehicle.position, self.vehicle.yaw))
            self.coordinator.submit(i, cloud, stamp)

        self._trail.append(tuple(float(v) for v in self.vehicle.position))
        if len(self._trail) > TRAIL_LENGTH:
            self._trail.pop(0)

    def start(self) -> None:
        """Start sensor workers and the planning thread."""
        if self._started:
            return
        self.coordinator.start()
        self.node.start()
        self._started = True
        logger.info("Simulation started with %d sensors", len(self.sensors))

    def get_update(self) -> PlannerUpdate | None:
        output = self.node.latest_output
        if output is None:
            return None
        return PlannerUpdate(
            timestamp=time.time(),
            setpoint=output.setpoint.to_message(),
            mav_state=self.node.failsafe.state.value,
            vehicle_position=[float(v) for v in self.vehicle.position],
            goal=[float(v) for v in self.node.goal],
            sensors_ready=self.coordinator.last_ready_count,
            sensors_total=self.coordinator.sensor_count,
            closest_obstacle_m=output.closest_obstacle,
            path=[[float(v) for v in np.asarray(n)] for n in output.path],
            cycle_time_ms=output.cycle_time_ms,
        )

    async def run_loop(self):
        self.start()
        self._running = True
        while self._running:
            t0 = time.time()
            self.step()
            elapsed = time.time() - t0
            await asyncio.sleep(max(0, self.dt - elapsed))

    def stop(self):
        self._running = False
        self.node.stop()
        self.coordinator.stop()
        logger.info("Simulation stopped")
