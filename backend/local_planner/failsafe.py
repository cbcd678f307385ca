"""
Failsafe tiers driven by how stale the sensor data is.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from .models import PlannerParameters

logger = logging.getLogger(__name__)


class MavState(str, Enum):
    ACTIVE = "ACTIVE"
    CRITICAL = "CRITICAL"
    FLIGHT_TERMINATION = "FLIGHT_TERMINATION"


@dataclass
class FailsafeStatus:
    state: MavState = MavState.ACTIVE
    healthy: bool = True
    hover: bool = False


class FailsafeMonitor:
    def __init__(self, params: PlannerParameters | None = None):
        self.params = params or PlannerParameters()
        self.state = MavState.ACTIVE

    def set_params(self, params: PlannerParameters) -> None:
        self.params = params

    def check(self, since_last_cloud: float, since_start: float, position_received: bool = True) -> FailsafeStatus:
        """
        since_last_cloud / since_start in seconds. Nothing escalates during
        the startup grace period. Without a position the vehicle hovers.
        """
        p = self.params
        if since_last_cloud > p.timeout_termination and since_start > p.timeout_termination:
            status = FailsafeStatus(MavState.FLIGHT_TERMINATION, healthy=False, hover=True)
        elif since_last_cloud > p.timeout_critical and since_start > p.timeout_startup:
            status = FailsafeStatus(MavState.CRITICAL, healthy=True, hover=True)
        else:
            status = FailsafeStatus(MavState.ACTIVE, healthy=True, hover=not position_received)

        if status.state != self.state:
            if status.state == MavState.ACTIVE:
                logger.info("Failsafe cleared, sensor data is fresh again")
            else:
                logger.warning("Failsafe %s: no cloud for %.2f s", status.state.value, since_last_cloud)
            self.state = status.state
        return status
