"""
Per-sensor worker threads and the fan-in the planning thread waits on.

Each sensor has two single-slot channels: raw clouds from the driver and
transformed clouds ready for planning. A newer item replaces an unread one,
so the planner always sees the latest data and nothing piles up.
"""

import logging
import threading
import time
from dataclasses import dataclass
from queue import Empty, Queue
from typing import Callable

import numpy as np

from .models import PlannerParameters
from .point_cloud import remove_nan_points, transform_cloud

logger = logging.getLogger(__name__)

# (stamp, timeout) -> 4x4 sensor-to-local transform, or None if unavailable in time
TransformProvider = Callable[[float, float], "np.ndarray | None"]


@dataclass
class SensorFrame:
    cloud: np.ndarray
    stamp: float
    sensor_index: int = 0


class SensorChannel:
    """Bounded single-producer/single-consumer channel holding at most one item."""

    def __init__(self):
        self._queue: Queue = Queue(maxsize=1)
        self._lock = threading.Lock()

    def put(self, item) -> bool:
        """Store item, discarding an unread one. Returns True if one was discarded."""
        with self._lock:
            replaced = False
            try:
                self._queue.get_nowait()
                replaced = True
            except Empty:
                pass
            self._queue.put_nowait(item)
        return replaced

    def get(self, timeout: float | None = None):
        """Wait up to timeout seconds for an item. Returns None on timeout."""
        try:
            return self._queue.get(timeout=max(0.0, timeout) if timeout is not None else None)
        except Empty:
            return None

    def empty(self) -> bool:
        return self._queue.empty()


class SensorWorker(threading.Thread):
    """Takes raw clouds off its channel, moves them into the local frame, publishes them."""

    def __init__(
        self,
        index: int,
        transform_provider: TransformProvider,
        wait_timeout: float = 0.5,
        transform_timeout: float = 0.1,
    ):
        super().__init__(name=f"sensor-{index}", daemon=True)
        self.index = index
        self.transform_provider = transform_provider
        self.wait_timeout = wait_timeout
        self.transform_timeout = transform_timeout
        self.raw = SensorChannel()
        self.ready = SensorChannel()
        self.dropped = 0
        self._stop_event = threading.Event()

    def process(self, frame: SensorFrame) -> bool:
        transform = self.transform_provider(frame.stamp, self.transform_timeout)
        if transform is None:
            self.dropped += 1
            logger.warning("Sensor %d: no transform for stamp %.3f, dropping cloud", self.index, frame.stamp)
            return False
        cloud = transform_cloud(remove_nan_points(frame.cloud), transform)
        if self.ready.put(SensorFrame(cloud, frame.stamp, self.index)):
            logger.debug("Sensor %d: replaced an unread cloud", self.index)
        return True

    def run(self) -> None:
        logger.info("Sensor worker %d started", self.index)
        while not self._stop_event.is_set():
            frame = self.raw.get(self.wait_timeout)
            if frame is None:
                continue
            try:
                self.process(frame)
            except Exception:
                logger.exception("Sensor %d: error processing cloud", self.index)
        logger.info("Sensor worker %d stopped", self.index)

    def stop(self) -> None:
        self._stop_event.set()


class SensorCoordinator:
    """Owns one worker per sensor and gathers their latest clouds."""

    def __init__(
        self,
        transform_providers: list[TransformProvider],
        params: PlannerParameters | None = None,
        mount_yaws: list[float] | None = None,
    ):
        params = params or PlannerParameters()
        self.workers = [
            SensorWorker(i, provider, params.cloud_wait_timeout, params.transform_timeout)
            for i, provider in enumerate(transform_providers)
        ]
        # degrees from the vehicle heading, used for field-of-view masking
        self.mount_yaws = list(mount_yaws) if mount_yaws is not None else [0.0] * len(self.workers)
        self.missing_counts = [0] * len(self.workers)
        self.last_ready_count = 0
        self.last_cloud_time: float | None = None

    @property
    def sensor_count(self) -> int:
        return len(self.workers)

    def start(self) -> None:
        for worker in self.workers:
            worker.start()
        logger.info("Sensor coordinator started with %d sensors", len(self.workers))

    def stop(self, timeout: float = 2.0) -> None:
        for worker in self.workers:
            worker.stop()
        for worker in self.workers:
            if worker.is_alive():
                worker.join(timeout=timeout)

    def submit(self, index: int, cloud, stamp: float) -> None:
        """Called by the sensor driver (or simulation) with a raw cloud in the sensor frame."""
        self.workers[index].raw.put(SensorFrame(np.asarray(cloud, dtype=float), stamp, index))

    def gather(self, timeout: float) -> list[np.ndarray]:
        """
        Collect the ready cloud of every sensor, waiting at most timeout
        seconds in total. Sensors that did not deliver are counted and skipped.
        """
        deadline = time.monotonic() + timeout
        clouds = []
        missing = []
        for i, worker in enumerate(self.workers):
            frame = worker.ready.get(deadline - time.monotonic())
            if frame is None:
                self.missing_counts[i] += 1
                missing.append(i)
            else:
                clouds.append(frame.cloud)

        self.last_ready_count = len(clouds)
        if clouds:
            self.last_cloud_time = time.monotonic()
        if missing:
            logger.warning("No cloud from sensor(s) %s within %.2f s", missing, timeout)
        return clouds
