"""
Planning thread: gathers sensor clouds, checks the failsafe, runs one planner
cycle and publishes the result. Runs at a fixed rate until stopped.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

import numpy as np

from .failsafe import FailsafeMonitor
from .local_planner import LocalPlanner, PlannerInput, PlannerOutput
from .models import PlannerParameters
from .sensor_coordinator import SensorChannel, SensorCoordinator

logger = logging.getLogger(__name__)


@dataclass
class VehicleState:
    """Latest vehicle telemetry handed to the planner."""
    position: np.ndarray
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    yaw: float = 0.0
    pitch: float = 0.0
    ground_distance: float = -1.0
    armed: bool = True
    offboard: bool = True
    mission: bool = False


class PlannerNode(threading.Thread):
    def __init__(
        self,
        planner: LocalPlanner,
        coordinator: SensorCoordinator,
        state_provider: Callable[[], VehicleState | None],
        params: PlannerParameters | None = None,
        rate_hz: float = 10.0,
    ):
        super().__init__(name="planner", daemon=True)
        self.planner = planner
        self.coordinator = coordinator
        self.state_provider = state_provider
        self.params = params or planner.params
        self.failsafe = FailsafeMonitor(self.params)
        self.period = 1.0 / rate_hz
        self.planner.set_cycle_period(self.period)
        self.outputs = SensorChannel()  # newest PlannerOutput wins

        self._goal = np.zeros(3)
        self._goal_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._started_at = time.monotonic()
        self._last_cycle: float | None = None

        self.latest_output: PlannerOutput | None = None
        self.latest_state: VehicleState | None = None
        self.cycles = 0

    @property
    def goal(self) -> np.ndarray:
        with self._goal_lock:
            return self._goal.copy()

    def set_goal(self, goal) -> None:
        with self._goal_lock:
            self._goal = np.asarray(goal, dtype=float)[:3].copy()
        logger.info("New goal: (%.2f, %.2f, %.2f)", *self._goal)

    def cycle_once(self) -> PlannerOutput | None:
        """One gather -> failsafe -> plan -> publish step."""
        clouds = self.coordinator.gather(self.params.data_ready_timeout)
        state = self.state_provider()
        now = time.monotonic()
        since_start = now - self._started_at
        last_cloud = self.coordinator.last_cloud_time
        since_last_cloud = since_start if last_cloud is None else now - last_cloud
        status = self.failsafe.check(since_last_cloud, since_start, position_received=state is not None)

        if state is None:
            logger.warning("No vehicle state yet, skipping cycle")
            return None

        dt = 0.0 if self._last_cycle is None else now - self._last_cycle
        self._last_cycle = now
        output = self.planner.run(PlannerInput(
            clouds=clouds,
            position=state.position,
            goal=self.goal,
            velocity=state.velocity,
            yaw=state.yaw,
            sensor_yaws=self.coordinator.mount_yaws,
            pitch=state.pitch,
            ground_distance=state.ground_distance,
            armed=state.armed,
            offboard=state.offboard,
            mission=state.mission,
            failsafe=status,
            dt=dt,
        ))
        self.latest_state = state
        self.latest_output = output
        self.cycles += 1
        self.outputs.put(output)
        return output

    def run(self) -> None:
        logger.info("Planner node started at %.1f Hz", 1.0 / self.period)
        self._started_at = time.monotonic()
        while not self._stop_event.is_set():
            started = time.monotonic()
            try:
                self.cycle_once()
            except Exception:
                logger.exception("Planner cycle failed")
            self._stop_event.wait(max(0.0, self.period - (time.monotonic() - started)))
        logger.info("Planner node stopped after %d cycles", self.cycles)

    def stop(self, timeout: float = 2.0) -> None:
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout=timeout)
