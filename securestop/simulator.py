import asyncio
import logging
import pandas as pd
from typing import Iterator, List, Optional, Tuple
from .config import config
from .schemas import LatLng, Stop, VehicleLocation
from .tracking import VehicleSession
from .wsmanager import ConnectionManager

logger = logging.getLogger(__name__)

# Global state
RUNNING = False
current_task: Optional[asyncio.Task] = None
background_task: Optional[asyncio.Task] = None


def load_route_csv(csv_path: str) -> Tuple[List[LatLng], List[Stop]]:
    """Load a route from a CSV with latitude/longitude columns; each row is a stop."""
    df = pd.read_csv(csv_path)
    missing = {"latitude", "longitude"} - set(df.columns)
    if missing:
        raise ValueError(f"Route CSV {csv_path} is missing columns: {sorted(missing)}")

    df = df.dropna(subset=["latitude", "longitude"])
    route = []
    stops = []
    for i, row in enumerate(df.itertuples(index=False)):
        coordinate = LatLng(latitude=float(row.latitude), longitude=float(row.longitude))
        name = getattr(row, "name", None)
        route.append(coordinate)
        stops.append(Stop(
            id=f"stop-{i + 1}",
            name=str(name) if isinstance(name, str) and name else f"Stop {i + 1}",
            coordinate=coordinate,
        ))
    return route, stops


def mock_feed(route: List[LatLng]) -> Iterator[Tuple[LatLng, float]]:
    """Walk the route forward then back, forever. Yields (coordinate, heading)."""
    if not route:
        return
    index = 0
    forward = True
    while True:
        yield route[index], 90.0 if forward else 270.0
        if len(route) == 1:
            continue
        if forward:
            index += 1
            if index >= len(route) - 1:
                forward = False
        else:
            index -= 1
            if index <= 0:
                forward = True


async def start_simulation(session: VehicleSession, manager: Optional[ConnectionManager] = None,
                           interval: float = None, max_samples: int = None):
    """Start the mock vehicle feed."""
    global RUNNING, current_task

    if RUNNING:
        logger.info("=== Simulation already running ===")
        return

    if interval is None:
        interval = config.emit_interval_seconds

    logger.info("=== Starting Simulation (route %s, interval %.1fs) ===", session.trip.route_id, interval)
    RUNNING = True

    try:
        current_task = asyncio.create_task(_run_simulation(session, manager, interval, max_samples))
        await current_task
    except asyncio.CancelledError:
        logger.info("=== Simulation cancelled ===")
    except Exception:
        logger.exception("=== Simulation Error ===")
    finally:
        logger.info("=== Simulation Task Completed ===")
        RUNNING = False


def run_in_background(session: VehicleSession, manager: Optional[ConnectionManager] = None,
                      interval: float = None, max_samples: int = None) -> asyncio.Task:
    """Schedule start_simulation on the running loop; stop_simulation cancels it."""
    global background_task

    background_task = asyncio.create_task(start_simulation(session, manager, interval, max_samples))
    return background_task


def stop_simulation():
    """Stop the mock vehicle feed."""
    global RUNNING, current_task, background_task

    logger.info("=== Stopping Simulation ===")
    RUNNING = False

    if current_task and not current_task.done():
        current_task.cancel()
    if background_task and not background_task.done():
        background_task.cancel()
    background_task = None

    return {"message": "simulation stopped"}


def is_running():
    """Check if simulation is currently running."""
    return RUNNING


async def _run_simulation(session: VehicleSession, manager: Optional[ConnectionManager],
                          interval: float, max_samples: Optional[int] = None):
    """Internal simulation runner."""
    sent = 0
    for coordinate, heading in mock_feed(session.route):
        if not RUNNING:
            logger.info("=== Simulation stopped by user ===")
            break
        if max_samples is not None and sent >= max_samples:
            break

        sample = VehicleLocation(coordinate=coordinate, heading=heading, updated_at=session.clock())
        result = await session.handle_location(sample)
        sent += 1

        if manager and manager.active_connections:
            await manager.broadcast({"type": "trip", "payload": result})

        if sent % 10 == 0:
            logger.info("Processed %d samples, status %s, stop %d",
                        sent, result["status"], result["current_stop_index"])

        await asyncio.sleep(interval)

    logger.info("=== _run_simulation ending after %d samples ===", sent)
