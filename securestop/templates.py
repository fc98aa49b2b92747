"""Driver alert templates and the trip status each one implies."""
from enum import Enum
from typing import NamedTuple, Optional

from .schemas import AlertSeverity, TripStatus


class TemplateSpec(NamedTuple):
    title: str
    body: str
    severity: AlertSeverity


class AlertTemplate(Enum):
    # Green
    DEPARTED_DEPOT = "departed_depot"
    DEPARTED_SCHOOL = "departed_school"
    ROUTE_STARTED = "route_started"
    ROUTE_COMPLETED = "route_completed"

    # Yellow
    MINOR_DELAY_TRAFFIC = "minor_delay_traffic"
    RUNNING_EARLY = "running_early"
    WEATHER_DELAY = "weather_delay"

    # Orange
    MECHANICAL_ISSUE = "mechanical_issue"
    ROUTE_CHANGE = "route_change"
    SUBSTITUTE_BUS = "substitute_bus"

    # Red
    EMERGENCY = "emergency"
    UNSAFE_SITUATION = "unsafe_situation"
    CONTACT_ADMIN = "contact_admin"

    # Used when the id is not a known template
    DRIVER_ALERT = "driver_alert"

    @classmethod
    def lookup(cls, template_id: Optional[str]) -> "AlertTemplate":
        """Resolve a template id, falling back to DRIVER_ALERT."""
        try:
            return cls(template_id)
        except ValueError:
            return cls.DRIVER_ALERT

    @property
    def spec(self) -> TemplateSpec:
        return TEMPLATES[self]

    @property
    def trip_status(self) -> Optional[TripStatus]:
        """Status a driver alert of this template moves the trip to, if any."""
        return STATUS_EFFECTS.get(self)


ADMIN_BROADCAST_TEMPLATE_ID = "admin_broadcast"

TEMPLATES = {
    AlertTemplate.DEPARTED_DEPOT: TemplateSpec("Departed Depot", "The vehicle has departed the depot.", AlertSeverity.GREEN),
    AlertTemplate.DEPARTED_SCHOOL: TemplateSpec("Departed School", "The vehicle has departed the school/terminal.", AlertSeverity.GREEN),
    AlertTemplate.ROUTE_STARTED: TemplateSpec("Route Started", "The route has started.", AlertSeverity.GREEN),
    AlertTemplate.ROUTE_COMPLETED: TemplateSpec("Route Completed", "The vehicle has reached the final stop.", AlertSeverity.GREEN),
    AlertTemplate.MINOR_DELAY_TRAFFIC: TemplateSpec("Minor Delay", "Minor delay due to traffic.", AlertSeverity.YELLOW),
    AlertTemplate.RUNNING_EARLY: TemplateSpec("Running Early", "The vehicle is running early.", AlertSeverity.YELLOW),
    AlertTemplate.WEATHER_DELAY: TemplateSpec("Weather Delay", "Delay due to weather conditions.", AlertSeverity.YELLOW),
    AlertTemplate.MECHANICAL_ISSUE: TemplateSpec("Mechanical Issue", "Mechanical issue reported. Updates to follow.", AlertSeverity.ORANGE),
    AlertTemplate.ROUTE_CHANGE: TemplateSpec("Route Change", "Route has changed. Please check updates.", AlertSeverity.ORANGE),
    AlertTemplate.SUBSTITUTE_BUS: TemplateSpec("Substitute Vehicle", "A substitute vehicle is in service.", AlertSeverity.ORANGE),
    AlertTemplate.EMERGENCY: TemplateSpec("Emergency", "Emergency reported. Follow instructions.", AlertSeverity.RED),
    AlertTemplate.UNSAFE_SITUATION: TemplateSpec("Unsafe Situation", "Unsafe situation reported. Updates to follow.", AlertSeverity.RED),
    AlertTemplate.CONTACT_ADMIN: TemplateSpec("Contact Admin", "Please contact administration for details.", AlertSeverity.RED),
    AlertTemplate.DRIVER_ALERT: TemplateSpec("Driver Alert", "A driver alert was sent.", AlertSeverity.YELLOW),
}

# ROUTE_STARTED maps to On Route but goes through start_trip() so started_at is kept
STATUS_EFFECTS = {
    AlertTemplate.DEPARTED_DEPOT: TripStatus.DEPARTED,
    AlertTemplate.DEPARTED_SCHOOL: TripStatus.DEPARTED,
    AlertTemplate.ROUTE_STARTED: TripStatus.ON_ROUTE,
}

# Templates shown as road-condition updates on the driver map
ROAD_TEMPLATES = frozenset({
    AlertTemplate.MINOR_DELAY_TRAFFIC,
    AlertTemplate.WEATHER_DELAY,
    AlertTemplate.MECHANICAL_ISSUE,
    AlertTemplate.ROUTE_CHANGE,
    AlertTemplate.SUBSTITUTE_BUS,
    AlertTemplate.EMERGENCY,
    AlertTemplate.UNSAFE_SITUATION,
})
