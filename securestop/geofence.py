import math
import logging
from enum import Enum
from typing import List, Optional, Sequence
from .config import config
from .schemas import LatLng, Stop, TripStatus

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371000


def calculate_distance_m(a: LatLng, b: LatLng) -> float:
    """Great-circle distance between two points in meters using the Haversine formula."""
    lat1_rad = math.radians(a.latitude)
    lon1_rad = math.radians(a.longitude)
    lat2_rad = math.radians(b.latitude)
    lon2_rad = math.radians(b.longitude)

    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad

    h = math.sin(dlat/2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon/2)**2
    c = 2 * math.asin(math.sqrt(h))

    return EARTH_RADIUS_M * c


def compute_eta_minutes(vehicle: LatLng, stop: LatLng, average_speed_kph: Optional[float] = None) -> int:
    """Rough ETA in whole minutes, never less than 1.

    Uses a flat 111 km per degree, not a geodesic distance.
    """
    speed = max(5.0, average_speed_kph if average_speed_kph is not None else config.average_speed_kph)
    d_lat = vehicle.latitude - stop.latitude
    d_lng = vehicle.longitude - stop.longitude
    distance_km = math.sqrt(d_lat * d_lat + d_lng * d_lng) * 111
    hours = distance_km / speed
    return max(1, round(hours * 60))


class DeparturePhase(Enum):
    NOT_YET_DEPARTED = "not_yet_departed"
    DEPARTED = "departed"


class ArrivalPhase(Enum):
    NOT_YET_ARRIVED = "not_yet_arrived"
    ARRIVED = "arrived"


class GeofenceAction(Enum):
    AUTO_START = "auto_start"
    AUTO_END = "auto_end"


class GeofenceTrigger:
    """Edge detection around the start and end terminals of a route.

    Auto-start fires once, on the first observation that leaves the start
    radius while the trip is still In Depot. Auto-end fires when the vehicle
    is inside the end radius and the trip is not Completed; it re-arms if the
    vehicle leaves the end radius before the trip is Completed, so a vehicle
    that drives out and back in triggers it again.
    """

    def __init__(self, radius_m: Optional[float] = None):
        self.radius_m = radius_m if radius_m is not None else config.geofence_radius_m
        self.reset()

    def reset(self) -> None:
        self.was_near_start: Optional[bool] = None
        self.departure = DeparturePhase.NOT_YET_DEPARTED
        self.arrival = ArrivalPhase.NOT_YET_ARRIVED

    def evaluate(self, coordinate: LatLng, stops: Sequence[Stop], status: TripStatus) -> List[GeofenceAction]:
        """Observe one location sample and return the transitions to apply."""
        if len(stops) < 2:
            return []

        actions = []
        near_start = calculate_distance_m(coordinate, stops[0].coordinate) <= self.radius_m
        near_end = calculate_distance_m(coordinate, stops[-1].coordinate) <= self.radius_m

        if self.was_near_start is None:
            self.was_near_start = near_start
        else:
            left_start = self.was_near_start and not near_start
            if (left_start and status == TripStatus.IN_DEPOT
                    and self.departure == DeparturePhase.NOT_YET_DEPARTED):
                self.departure = DeparturePhase.DEPARTED
                actions.append(GeofenceAction.AUTO_START)
                logger.info("Vehicle left start terminal, auto-starting trip")
            self.was_near_start = near_start

        if status != TripStatus.COMPLETED:
            if near_end and self.arrival == ArrivalPhase.NOT_YET_ARRIVED:
                self.arrival = ArrivalPhase.ARRIVED
                actions.append(GeofenceAction.AUTO_END)
                logger.info("Vehicle reached end terminal, auto-ending trip")
            elif not near_end and self.arrival == ArrivalPhase.ARRIVED:
                self.arrival = ArrivalPhase.NOT_YET_ARRIVED
                logger.debug("Vehicle left end terminal before completion, re-arming auto-end")

        return actions
