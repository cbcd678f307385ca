"""
FastAPI backend: REST + WebSocket around the local planner running in the simulated world.

Environment:
    PLANNER_CONFIG   path to a JSON file with PlannerParameters (optional)
    PLANNER_SENSORS  number of simulated depth sensors (default 3)
    PLANNER_RATE_HZ  planning rate (default 10)
    PLANNER_HOST / PLANNER_PORT  bind address for uvicorn
"""
import asyncio
import logging
import os
import sys
from contextlib import asynccontextmanager

# Ensure INFO logs are visible (uvicorn may set WARNING by default)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    stream=sys.stdout,
)

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from local_planner.models import GoalPayload, PlannerParameters
from simulation.engine import SimulationEngine

logger = logging.getLogger(__name__)

LIVE_INTERVAL = 0.15  # seconds between WebSocket pushes

engine: SimulationEngine | None = None
_sim_task: asyncio.Task | None = None


def load_parameters() -> PlannerParameters:
    path = os.environ.get("PLANNER_CONFIG")
    if path:
        logger.info("Loading planner parameters from %s", path)
        return PlannerParameters.from_file(path)
    return PlannerParameters()


@asynccontextmanager
async def lifespan(app: FastAPI):
    global engine, _sim_task

    params = load_parameters()
    n_sensors = int(os.environ.get("PLANNER_SENSORS", "3"))
    rate_hz = float(os.environ.get("PLANNER_RATE_HZ", "10"))
    engine = SimulationEngine(params=params, n_sensors=n_sensors, rate_hz=rate_hz)
    _sim_task = asyncio.create_task(engine.run_loop())
    logger.info("Simulation engine started (%d sensors, %.1f Hz planning)", n_sensors, rate_hz)

    yield

    # Shutdown
    if engine:
        engine.stop()
    if _sim_task:
        _sim_task.cancel()
        try:
            await _sim_task
        except asyncio.CancelledError:
            pass


app = FastAPI(title="Local Planner API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _engine() -> SimulationEngine:
    if engine is None:
        raise HTTPException(status_code=503, detail="Planner not running")
    return engine


@app.get("/")
def root():
    return {"message": "Hello from the local planner!"}


@app.get("/api/status")
def get_status():
    eng = _engine()
    update = eng.get_update()
    return {
        "mav_state": eng.node.failsafe.state.value,
        "cycles": eng.node.cycles,
        "vehicle": eng.vehicle.to_dict(),
        "goal": [float(v) for v in eng.node.goal],
        "sensors_total": eng.coordinator.sensor_count,
        "sensors_ready": eng.coordinator.last_ready_count,
        "missing_counts": list(eng.coordinator.missing_counts),
        "waypoint_type": update.setpoint.waypoint_type if update else None,
        "trail": eng.get_trail(),
    }


@app.get("/api/setpoint")
def get_setpoint():
    update = _engine().get_update()
    if update is None:
        return {"message": "No data yet"}
    return update.setpoint.model_dump()


@app.get("/api/histogram")
def get_histogram():
    eng = _engine()
    dist = eng.planner.histogram_snapshot()
    return {
        "resolution": eng.planner.histogram.resolution,
        "rows": dist.shape[0],
        "cols": dist.shape[1],
        "dist": dist.round(3).tolist(),
    }


@app.post("/api/goal")
def set_goal(payload: GoalPayload):
    goal = [payload.x, payload.y, payload.z]
    _engine().set_goal(goal)
    return {"status": "ok", "goal": goal}


@app.websocket("/ws/live")
async def websocket_live(ws: WebSocket):
    await ws.accept()
    try:
        while True:
            update = engine.get_update() if engine else None
            if update is not None:
                await ws.send_text(update.model_dump_json())
            await asyncio.sleep(LIVE_INTERVAL)
    except WebSocketDisconnect:
        pass


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.environ.get("PLANNER_HOST", "0.0.0.0"),
        port=int(os.environ.get("PLANNER_PORT", "8000")),
    )
