import logging
from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Optional
from .config import config
from .db import init_db
from .api.endpoints import router as api_router
from .persistence import SqlKeyValueStore
from .schemas import NotificationPrefs, Role
from .simulator import load_route_csv, run_in_background, stop_simulation, is_running
from .tracking import VehicleSession
from .wsmanager import ConnectionManager

logger = logging.getLogger(__name__)


class SimulationRequest(BaseModel):
    interval: Optional[float] = None
    max_samples: Optional[int] = None


# Create FastAPI app
app = FastAPI(
    title="SecureStop",
    description="Alert routing, incidents and trip tracking for school transportation",
    version="1.0.0"
)

if config.enable_cors:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Create connection manager and the vehicle session it feeds
def current_prefs() -> NotificationPrefs:
    return session.notifications.prefs


manager = ConnectionManager(prefs_provider=current_prefs)
session = VehicleSession(
    kv=SqlKeyValueStore(),
    notifier=manager.schedule_local_notification,
    publisher=manager.broadcast_alert,
)

app.state.manager = manager
app.state.session = session

# Include API routes
app.include_router(api_router, prefix="/api")


@app.on_event("startup")
async def startup():
    """Initialize database, restore incidents and load the configured route."""
    init_db()
    session.incidents.hydrate()
    if config.route_csv:
        try:
            route, stops = load_route_csv(config.route_csv)
        except (OSError, ValueError) as e:
            logger.warning("Could not load route from %s, keeping default route: %s", config.route_csv, e)
        else:
            session.set_route(route, stops)
            logger.info("Loaded route with %d stops from %s", len(stops), config.route_csv)


@app.on_event("shutdown")
async def shutdown():
    stop_simulation()


@app.get("/")
async def root():
    return {"message": "SecureStop", "docs": "/docs"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.websocket("/ws/alerts")
async def websocket_endpoint(
    websocket: WebSocket,
    role: str = "parent",
    enabled: Optional[bool] = None,
    receive_driver_alerts: Optional[bool] = None,
    receive_admin_broadcasts: Optional[bool] = None,
):
    """WebSocket stream of alerts visible to `role`, plus notifications and trip updates.

    Prefs given as query parameters are fixed for this connection, on top of
    the current prefs; without them the connection follows `PUT /api/prefs`.
    """
    try:
        viewer_role = Role(role)
    except ValueError:
        await websocket.close(code=1008)
        return

    overrides = {
        "enabled": enabled,
        "receive_driver_alerts": receive_driver_alerts,
        "receive_admin_broadcasts": receive_admin_broadcasts,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    prefs = current_prefs().model_copy(update=overrides) if overrides else None

    await manager.connect(websocket, viewer_role, prefs)
    try:
        while True:
            # Keep connection alive - wait for messages
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("WebSocket client closed the connection")
    except Exception as e:
        logger.warning("WebSocket receive error: %s", e)
    finally:
        manager.disconnect(websocket)


@app.post("/api/start_simulation")
async def api_start_simulation(request: SimulationRequest = None):
    """Start the mock vehicle feed."""
    if not config.simulation_enabled:
        raise HTTPException(status_code=503, detail="Simulation is disabled")
    if is_running():
        return {"message": "Simulation already running"}

    request = request or SimulationRequest()
    if request.interval is not None and request.interval <= 0:
        raise HTTPException(status_code=400, detail="interval must be positive")

    run_in_background(session, manager, request.interval, request.max_samples)
    return {"message": "simulation started"}


@app.post("/api/stop_simulation")
async def api_stop_simulation():
    """Stop the mock vehicle feed."""
    return stop_simulation()


@app.get("/api/simulation_status")
async def api_simulation_status():
    """Get current simulation status."""
    return {"is_running": is_running()}
