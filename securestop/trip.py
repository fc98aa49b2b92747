import logging
from typing import Callable, Optional, Sequence
from .config import config
from .schemas import LatLng, Stop, TripStatus
from .templates import AlertTemplate
from .utils import now_ms

logger = logging.getLogger(__name__)


def nearest_stop_index(coordinate: LatLng, stops: Sequence[Stop]) -> Optional[int]:
    """Index of the stop closest to `coordinate`.

    Squared Euclidean distance in lat/lng degrees; only meaningful over the
    short distances of a single route.
    """
    best_index = None
    best_score = float("inf")
    for i, stop in enumerate(stops):
        d_lat = coordinate.latitude - stop.coordinate.latitude
        d_lng = coordinate.longitude - stop.coordinate.longitude
        score = d_lat * d_lat + d_lng * d_lng
        if score < best_score:
            best_score = score
            best_index = i
    return best_index


def route_progress(current_stop_index: int, stop_count: int) -> float:
    if stop_count < 2:
        return 0.0
    return current_stop_index / (stop_count - 1)


def next_stop(stops: Sequence[Stop], current_stop_index: int) -> Optional[Stop]:
    if not stops:
        return None
    return stops[min(len(stops) - 1, current_stop_index + 1)]


class TripState:
    """Operational status of one vehicle's run.

    In Depot -> Departed -> On Route -> Arriving -> Completed, with Paused
    reachable from any state except Completed. start, pause and end are
    no-ops once Completed; set_status and reset_trip can still leave it.
    """

    def __init__(
        self,
        route_id: Optional[str] = None,
        vehicle_id: Optional[str] = None,
        driver_name: Optional[str] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.route_id = route_id or config.default_route_id
        self.vehicle_id = vehicle_id or config.default_vehicle_id
        self.driver_name = driver_name or config.default_driver_name
        self.clock = clock
        self.status = TripStatus.IN_DEPOT
        self.started_at: Optional[int] = None
        self.ended_at: Optional[int] = None
        self.current_stop_index = 0

    def start_trip(self) -> bool:
        """Go On Route; started_at is only recorded the first time."""
        if self.status == TripStatus.COMPLETED:
            return False
        self.status = TripStatus.ON_ROUTE
        if self.started_at is None:
            self.started_at = self.clock()
        self.ended_at = None
        logger.info("Trip %s on route", self.route_id)
        return True

    def pause_trip(self) -> bool:
        if self.status == TripStatus.COMPLETED:
            return False
        self.status = TripStatus.PAUSED
        logger.info("Trip %s paused", self.route_id)
        return True

    def end_trip(self) -> bool:
        if self.status == TripStatus.COMPLETED:
            return False
        self.status = TripStatus.COMPLETED
        self.ended_at = self.clock()
        logger.info("Trip %s completed", self.route_id)
        return True

    def set_status(self, status: TripStatus) -> None:
        """Override the status directly, e.g. from a driver alert."""
        self.status = TripStatus(status)

    def reset_trip(self) -> None:
        self.status = TripStatus.IN_DEPOT
        self.started_at = None
        self.ended_at = None
        self.current_stop_index = 0
        logger.info("Trip %s reset", self.route_id)

    def set_current_stop_index(self, index: int) -> None:
        self.current_stop_index = max(0, index)

    def apply_template_status(self, template: AlertTemplate) -> bool:
        """Apply the status change implied by a driver alert template."""
        if template == AlertTemplate.ROUTE_STARTED:
            return self.start_trip()
        status = template.trip_status
        if status is None:
            return False
        self.set_status(status)
        return True

    def to_dict(self) -> dict:
        return {
            "route_id": self.route_id,
            "vehicle_id": self.vehicle_id,
            "driver_name": self.driver_name,
            "status": self.status.value,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "current_stop_index": self.current_stop_index,
        }
