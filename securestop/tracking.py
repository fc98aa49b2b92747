import logging
from typing import Callable, Dict, List, Optional
from .config import config
from .fleet import FleetRegistry, badge_number
from .geofence import GeofenceAction, GeofenceTrigger, compute_eta_minutes
from .inbox import NotificationState, Notifier, Publisher
from .incidents import IncidentStore
from .schemas import AlertMessage, FleetVehicle, LatLng, RecipientGroup, Stop, VehicleLocation
from .templates import AlertTemplate
from .trip import TripState, nearest_stop_index, next_stop, route_progress
from .utils import now_ms

logger = logging.getLogger(__name__)

DEFAULT_ROUTE: List[LatLng] = [
    LatLng(latitude=40.758, longitude=-73.9855),
    LatLng(latitude=40.7572, longitude=-73.98),
    LatLng(latitude=40.7545, longitude=-73.977),
    LatLng(latitude=40.7503, longitude=-73.975),
]

DEFAULT_STOPS: List[Stop] = [
    Stop(id="stop-1", name="8th Ave", coordinate=DEFAULT_ROUTE[0]),
    Stop(id="stop-2", name="Broadway", coordinate=DEFAULT_ROUTE[1]),
    Stop(id="stop-3", name="5th Ave", coordinate=DEFAULT_ROUTE[2]),
    Stop(id="stop-4", name="Terminal", coordinate=DEFAULT_ROUTE[3]),
]


class VehicleSession:
    """Everything one driver's client holds: inbox, incidents, trip and geofence.

    Location samples and driver actions go through this object; it applies
    geofence transitions to the trip and emits the matching alerts.
    The session's own vehicle is also kept current in the fleet registry.
    """

    def __init__(
        self,
        kv=None,
        notifier: Optional[Notifier] = None,
        publisher: Optional[Publisher] = None,
        clock: Callable[[], int] = now_ms,
        route: Optional[List[LatLng]] = None,
        stops: Optional[List[Stop]] = None,
        geofence_radius_m: Optional[float] = None,
        fleet: Optional[FleetRegistry] = None,
    ):
        self.clock = clock
        self.incidents = IncidentStore(kv=kv, clock=clock)
        self.notifications = NotificationState(self.incidents, notifier=notifier, publisher=publisher, clock=clock)
        self.trip = TripState(clock=clock)
        self.geofence = GeofenceTrigger(radius_m=geofence_radius_m)
        self.route = list(route) if route is not None else list(DEFAULT_ROUTE)
        self.stops = list(stops) if stops is not None else list(DEFAULT_STOPS)
        start = self.route[0] if self.route else LatLng(latitude=0.0, longitude=0.0)
        self.vehicle_location = VehicleLocation(coordinate=start, heading=90, updated_at=clock())
        self.fleet = fleet if fleet is not None else FleetRegistry(clock=clock)
        self.fleet.register(self._own_fleet_entry())
        if fleet is None and config.fleet_demo_enabled:
            self.fleet.load_demo(self.route, self.stops)

    def set_route(self, route: List[LatLng], stops: List[Stop]) -> None:
        self.route = list(route)
        self.stops = list(stops)
        self.geofence.reset()
        self.trip.set_current_stop_index(0)
        own = self.fleet.get(self.trip.vehicle_id)
        if own is not None:
            own.route_polyline = list(self.route)
            own.stops = list(self.stops)

    def reset_trip(self) -> None:
        self.trip.reset_trip()
        self.geofence.reset()
        self.sync_fleet()

    async def report_driver_alert(
        self,
        template_id: str,
        recipients: Optional[RecipientGroup] = None,
        notes: Optional[List[str]] = None,
    ) -> AlertMessage:
        """Send a driver alert, applying the trip status its template implies."""
        self.trip.apply_template_status(AlertTemplate.lookup(template_id))
        self.sync_fleet()
        return await self.notifications.send_driver_alert(
            template_id,
            recipients=recipients,
            notes=notes,
            vehicle_id=self.trip.vehicle_id,
        )

    async def report_incident(self) -> AlertMessage:
        return await self.notifications.send_driver_alert(
            AlertTemplate.CONTACT_ADMIN.value,
            recipients=RecipientGroup.SCHOOL,
            notes=["Incident Report"],
            vehicle_id=self.trip.vehicle_id,
        )

    async def handle_location(self, sample: VehicleLocation) -> Dict:
        """Process a location sample and return the derived trip view."""
        self.vehicle_location = sample
        self.fleet.set_location(self.trip.vehicle_id, sample)
        coordinate = sample.coordinate

        index = nearest_stop_index(coordinate, self.stops)
        if index is not None:
            self.trip.set_current_stop_index(index)

        actions = self.geofence.evaluate(coordinate, self.stops, self.trip.status)
        for action in actions:
            if action == GeofenceAction.AUTO_START and self.trip.start_trip():
                await self.notifications.send_driver_alert(
                    AlertTemplate.ROUTE_STARTED.value,
                    recipients=RecipientGroup.BOTH,
                    vehicle_id=self.trip.vehicle_id,
                )
            elif action == GeofenceAction.AUTO_END and self.trip.end_trip():
                await self.notifications.send_driver_alert(
                    AlertTemplate.ROUTE_COMPLETED.value,
                    recipients=RecipientGroup.BOTH,
                    vehicle_id=self.trip.vehicle_id,
                )
        self.sync_fleet()

        upcoming = next_stop(self.stops, self.trip.current_stop_index)
        result = {
            "vehicle_id": self.trip.vehicle_id,
            "timestamp": sample.updated_at,
            "lat": coordinate.latitude,
            "lon": coordinate.longitude,
            "heading": sample.heading,
            "status": self.trip.status.value,
            "current_stop_index": self.trip.current_stop_index,
            "next_stop_id": upcoming.id if upcoming else None,
            "eta_minutes": compute_eta_minutes(coordinate, upcoming.coordinate) if upcoming else None,
            "progress": route_progress(self.trip.current_stop_index, len(self.stops)),
            "actions": [a.value for a in actions],
        }
        logger.debug("Location %s: %s", self.trip.vehicle_id, result)
        return result

    def sync_fleet(self) -> None:
        """Mirror the trip status onto this session's fleet entry."""
        own = self.fleet.get(self.trip.vehicle_id)
        if own is None:
            own = self.fleet.register(self._own_fleet_entry())
        self.fleet.set_operational(own.id, self.trip.status, own.delay_minutes)

    def _own_fleet_entry(self) -> FleetVehicle:
        return FleetVehicle(
            id=self.trip.vehicle_id,
            badge_number=badge_number(self.trip.vehicle_id),
            driver_name=self.trip.driver_name,
            status=self.trip.status,
            status_updated_at=self.clock(),
            vehicle_location=self.vehicle_location,
            route_polyline=list(self.route),
            stops=list(self.stops),
        )

    def trip_view(self) -> Dict:
        view = self.trip.to_dict()
        upcoming = next_stop(self.stops, self.trip.current_stop_index)
        view.update({
            "progress": route_progress(self.trip.current_stop_index, len(self.stops)),
            "next_stop": upcoming.model_dump() if upcoming else None,
            "stops": [s.model_dump() for s in self.stops],
            "vehicle_location": self.vehicle_location.model_dump(),
        })
        return view
