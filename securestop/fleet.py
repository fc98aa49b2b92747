import re
import logging
from typing import Callable, Dict, List, Optional, Sequence
from .schemas import FleetVehicle, LatLng, Stop, TripStatus, VehicleLocation
from .utils import now_ms

logger = logging.getLogger(__name__)

# Demo vehicles around the default route: (id, driver, status, delay, d_lat, d_lng)
DEMO_VEHICLES = [
    ("bus-74", "A. Johnson", TripStatus.ON_ROUTE, 0, 0.0, 0.0),
    ("bus-33", "M. Chen", TripStatus.IN_DEPOT, 0, -0.002, 0.002),
    ("bus-88", "D. Patel", TripStatus.ON_ROUTE, 0, 0.0015, 0.0025),
    ("bus-45", "K. Brooks", TripStatus.ON_ROUTE, 3, 0.003, 0.001),
    ("bus-52", "L. Garcia", TripStatus.ON_ROUTE, 9, -0.001, -0.003),
    ("bus-7", "T. Williams", TripStatus.IN_DEPOT, 0, 0.004, -0.0025),
    ("bus-21", "G. Price", TripStatus.ARRIVING, 0, 0.0042, 0.0019),
]


def offset_route(route: Sequence[LatLng], d_lat: float, d_lng: float) -> List[LatLng]:
    return [LatLng(latitude=p.latitude + d_lat, longitude=p.longitude + d_lng) for p in route]


def offset_stops(stops: Sequence[Stop], d_lat: float, d_lng: float) -> List[Stop]:
    return [
        Stop(
            id=s.id,
            name=s.name,
            coordinate=LatLng(latitude=s.coordinate.latitude + d_lat, longitude=s.coordinate.longitude + d_lng),
        )
        for s in stops
    ]


def badge_number(vehicle_id: str) -> int:
    """Numeric part of a vehicle id, e.g. 12 for "bus-12"; 0 if there is none."""
    match = re.search(r"(\d+)$", vehicle_id)
    return int(match.group(1)) if match else 0


class FleetRegistry:
    """Every vehicle an admin can see, keyed by vehicle id.

    Each vehicle carries its own location and operational status.
    status_updated_at only moves when the status actually changes.
    """

    def __init__(self, clock: Callable[[], int] = now_ms):
        self.clock = clock
        self.vehicles: Dict[str, FleetVehicle] = {}

    def register(self, vehicle: FleetVehicle) -> FleetVehicle:
        self.vehicles[vehicle.id] = vehicle
        return vehicle

    def list_vehicles(self, status: Optional[TripStatus] = None) -> List[FleetVehicle]:
        vehicles = list(self.vehicles.values())
        if status is not None:
            vehicles = [v for v in vehicles if v.status == TripStatus(status)]
        return vehicles

    def get(self, vehicle_id: str) -> Optional[FleetVehicle]:
        return self.vehicles.get(vehicle_id)

    def set_location(self, vehicle_id: str, location: VehicleLocation) -> Optional[FleetVehicle]:
        vehicle = self.vehicles.get(vehicle_id)
        if vehicle is None:
            return None
        vehicle.vehicle_location = location
        return vehicle

    def set_operational(self, vehicle_id: str, status: TripStatus, delay_minutes: int = 0) -> Optional[FleetVehicle]:
        vehicle = self.vehicles.get(vehicle_id)
        if vehicle is None:
            return None
        status = TripStatus(status)
        if vehicle.status != status:
            vehicle.status = status
            vehicle.status_updated_at = self.clock()
            logger.info("Fleet vehicle %s is now %s", vehicle_id, status.value)
        vehicle.delay_minutes = max(0, delay_minutes)
        return vehicle

    def load_demo(self, route: Sequence[LatLng], stops: Sequence[Stop]) -> None:
        """Seed the demo vehicles, each following an offset copy of the route."""
        ts = self.clock()
        for vehicle_id, driver, status, delay, d_lat, d_lng in DEMO_VEHICLES:
            if vehicle_id in self.vehicles:
                continue
            polyline = offset_route(route, d_lat, d_lng)
            start = polyline[0] if polyline else LatLng(latitude=0.0, longitude=0.0)
            self.register(FleetVehicle(
                id=vehicle_id,
                badge_number=badge_number(vehicle_id),
                driver_name=driver,
                status=status,
                status_updated_at=ts,
                delay_minutes=delay,
                vehicle_location=VehicleLocation(coordinate=start, heading=90, updated_at=ts),
                route_polyline=polyline,
                stops=offset_stops(stops, d_lat, d_lng),
            ))
