from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class Role(str, Enum):
    PARENT = "parent"
    DRIVER = "driver"
    ADMIN = "admin"


class RecipientGroup(str, Enum):
    PARENTS = "parents"
    SCHOOL = "school"
    DRIVER = "driver"
    BOTH = "both"


class AlertSeverity(str, Enum):
    """Alert severity, ordered by ascending urgency."""
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    RED = "red"


class TripStatus(str, Enum):
    IN_DEPOT = "In Depot"
    DEPARTED = "Departed"
    ON_ROUTE = "On Route"
    ARRIVING = "Arriving"
    PAUSED = "Paused"
    COMPLETED = "Completed"


class IncidentStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class IncidentEventType(str, Enum):
    CREATED = "created"
    NOTE = "note"
    RESOLVED = "resolved"


class AlertMessage(BaseModel):
    id: str
    title: str
    body: str
    recipients: RecipientGroup
    severity: Optional[AlertSeverity] = None
    template_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    created_at: int  # epoch ms
    created_by_role: Role


class NotificationPrefs(BaseModel):
    enabled: bool = True
    receive_driver_alerts: bool = True
    receive_admin_broadcasts: bool = True


class IncidentEvent(BaseModel):
    id: str
    at: int
    by_role: Role
    type: IncidentEventType
    message: str


class Incident(BaseModel):
    id: str
    alert_id: Optional[str] = None
    title: str
    description: str
    severity: AlertSeverity
    status: IncidentStatus = IncidentStatus.OPEN
    created_at: int
    updated_at: int
    vehicle_id: Optional[str] = None
    created_by_role: Role
    events: List[IncidentEvent] = Field(default_factory=list)


class LatLng(BaseModel):
    latitude: float
    longitude: float


class Stop(BaseModel):
    id: str
    name: str
    coordinate: LatLng


class VehicleLocation(BaseModel):
    coordinate: LatLng
    heading: Optional[float] = None
    updated_at: int


class FleetVehicle(BaseModel):
    id: str
    badge_number: int
    driver_name: str
    status: TripStatus = TripStatus.IN_DEPOT
    status_updated_at: int
    delay_minutes: int = 0
    vehicle_location: VehicleLocation
    route_polyline: List[LatLng] = Field(default_factory=list)
    stops: List[Stop] = Field(default_factory=list)
