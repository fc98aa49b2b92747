from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from typing import List, Dict, Any, Optional
from ..config import config
from ..schemas import (
    AlertMessage,
    FleetVehicle,
    Incident,
    LatLng,
    NotificationPrefs,
    RecipientGroup,
    Role,
    TripStatus,
    VehicleLocation,
)
from ..tracking import VehicleSession

router = APIRouter()


class DriverAlertRequest(BaseModel):
    template_id: str
    recipients: Optional[RecipientGroup] = None
    notes: Optional[List[str]] = None


class BroadcastRequest(BaseModel):
    title: str = Field(..., min_length=1)
    body: str
    recipients: RecipientGroup
    vehicle_id: Optional[str] = None


class PrefsUpdate(BaseModel):
    enabled: Optional[bool] = None
    receive_driver_alerts: Optional[bool] = None
    receive_admin_broadcasts: Optional[bool] = None


class RecipientSelection(BaseModel):
    recipients: RecipientGroup


class NoteRequest(BaseModel):
    message: str = Field(..., min_length=1)
    by_role: Role


class ResolveRequest(BaseModel):
    message: Optional[str] = None
    by_role: Role


class StatusRequest(BaseModel):
    status: TripStatus


class LocationRequest(BaseModel):
    coordinate: LatLng
    heading: Optional[float] = None
    timestamp: Optional[int] = None


class OperationalUpdate(BaseModel):
    status: TripStatus
    delay_minutes: int = Field(0, ge=0)


def get_session(request: Request) -> VehicleSession:
    """Dependency returning the process-wide vehicle session."""
    return request.app.state.session


async def publish_trip(request: Request, session: VehicleSession):
    session.sync_fleet()
    manager = getattr(request.app.state, "manager", None)
    if manager is not None:
        await manager.broadcast({"type": "trip", "payload": session.trip_view()})


# Alerts

@router.get("/alerts", response_model=List[AlertMessage])
def list_alerts(
    session: VehicleSession = Depends(get_session),
    viewer_role: Optional[Role] = Query(None, description="Only alerts visible to this role"),
) -> List[AlertMessage]:
    """Get the inbox, newest arrival first."""
    if viewer_role is None:
        return session.notifications.inbox
    return session.notifications.visible_alerts(viewer_role)


@router.get("/alerts/road-conditions", response_model=List[AlertMessage])
def road_conditions(session: VehicleSession = Depends(get_session)) -> List[AlertMessage]:
    return session.notifications.road_condition_updates()


@router.get("/alerts/recipient-selection")
def get_recipient_selection(session: VehicleSession = Depends(get_session)) -> Dict[str, Any]:
    return {"recipients": session.notifications.driver_recipient_selection.value}


@router.put("/alerts/recipient-selection")
def set_recipient_selection(body: RecipientSelection, session: VehicleSession = Depends(get_session)) -> Dict[str, Any]:
    session.notifications.set_driver_recipient_selection(body.recipients)
    return {"recipients": session.notifications.driver_recipient_selection.value}


@router.post("/alerts/driver", response_model=AlertMessage)
async def send_driver_alert(body: DriverAlertRequest, request: Request,
                            session: VehicleSession = Depends(get_session)) -> AlertMessage:
    """Send a templated driver alert; unknown templates fall back to a generic alert."""
    msg = await session.report_driver_alert(body.template_id, recipients=body.recipients, notes=body.notes)
    await publish_trip(request, session)
    return msg


@router.post("/alerts/incident-report", response_model=AlertMessage)
async def send_incident_report(session: VehicleSession = Depends(get_session)) -> AlertMessage:
    return await session.report_incident()


@router.post("/alerts/broadcast", response_model=AlertMessage)
async def send_admin_broadcast(body: BroadcastRequest, session: VehicleSession = Depends(get_session)) -> AlertMessage:
    return await session.notifications.send_admin_broadcast(
        body.title, body.body, body.recipients, vehicle_id=body.vehicle_id
    )


@router.get("/alerts/{alert_id}", response_model=AlertMessage)
def get_alert(alert_id: str, session: VehicleSession = Depends(get_session)) -> AlertMessage:
    msg = session.notifications.get_alert(alert_id)
    if msg is None:
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    return msg


@router.delete("/alerts/{alert_id}")
def remove_alert(alert_id: str, session: VehicleSession = Depends(get_session)) -> Dict[str, Any]:
    if not session.notifications.remove_alert_by_id(alert_id):
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    return {"removed": alert_id}


@router.get("/prefs", response_model=NotificationPrefs)
def get_prefs(session: VehicleSession = Depends(get_session)) -> NotificationPrefs:
    return session.notifications.prefs


@router.put("/prefs", response_model=NotificationPrefs)
def update_prefs(body: PrefsUpdate, session: VehicleSession = Depends(get_session)) -> NotificationPrefs:
    return session.notifications.set_prefs(**body.model_dump())


# Incidents

@router.get("/incidents", response_model=List[Incident])
def list_incidents(
    session: VehicleSession = Depends(get_session),
    status: Optional[str] = Query(None, description="Filter by status (open/resolved)"),
) -> List[Incident]:
    incidents = session.incidents.incidents
    if status:
        incidents = [i for i in incidents if i.status.value == status]
    return incidents


@router.get("/incidents/{incident_id}", response_model=Incident)
def get_incident(incident_id: str, session: VehicleSession = Depends(get_session)) -> Incident:
    incident = session.incidents.get(incident_id)
    if incident is None:
        raise HTTPException(status_code=404, detail=f"Incident {incident_id} not found")
    return incident


@router.post("/incidents/{incident_id}/notes", response_model=Incident)
def add_incident_note(incident_id: str, body: NoteRequest, session: VehicleSession = Depends(get_session)) -> Incident:
    incident = session.incidents.add_note(incident_id, body.message, body.by_role)
    if incident is None:
        raise HTTPException(status_code=404, detail=f"Incident {incident_id} not found")
    return incident


@router.post("/incidents/{incident_id}/resolve", response_model=Incident)
def resolve_incident(incident_id: str, body: ResolveRequest, session: VehicleSession = Depends(get_session)) -> Incident:
    incident = session.incidents.resolve(incident_id, body.message, body.by_role)
    if incident is None:
        raise HTTPException(status_code=404, detail=f"Incident {incident_id} not found")
    return incident


@router.delete("/incidents")
def clear_incidents(session: VehicleSession = Depends(get_session)) -> Dict[str, Any]:
    session.incidents.clear_all()
    return {"message": "incidents cleared"}


# Trip

@router.get("/trip")
def get_trip(session: VehicleSession = Depends(get_session)) -> Dict[str, Any]:
    return session.trip_view()


@router.post("/trip/start")
async def start_trip(request: Request, session: VehicleSession = Depends(get_session)) -> Dict[str, Any]:
    session.trip.start_trip()
    await publish_trip(request, session)
    return session.trip_view()


@router.post("/trip/pause")
async def pause_trip(request: Request, session: VehicleSession = Depends(get_session)) -> Dict[str, Any]:
    session.trip.pause_trip()
    await publish_trip(request, session)
    return session.trip_view()


@router.post("/trip/end")
async def end_trip(request: Request, session: VehicleSession = Depends(get_session)) -> Dict[str, Any]:
    session.trip.end_trip()
    await publish_trip(request, session)
    return session.trip_view()


@router.post("/trip/reset")
async def reset_trip(request: Request, session: VehicleSession = Depends(get_session)) -> Dict[str, Any]:
    session.reset_trip()
    await publish_trip(request, session)
    return session.trip_view()


@router.put("/trip/status")
async def set_trip_status(body: StatusRequest, request: Request,
                          session: VehicleSession = Depends(get_session)) -> Dict[str, Any]:
    session.trip.set_status(body.status)
    await publish_trip(request, session)
    return session.trip_view()


@router.post("/location")
async def post_location(body: LocationRequest, session: VehicleSession = Depends(get_session)) -> Dict[str, Any]:
    """Feed one location sample through stop tracking and the geofence."""
    sample = VehicleLocation(
        coordinate=body.coordinate,
        heading=body.heading,
        updated_at=body.timestamp if body.timestamp is not None else session.clock(),
    )
    return await session.handle_location(sample)


@router.get("/tenants")
def list_tenants() -> List[Dict[str, str]]:
    return config.tenants


# Fleet

@router.get("/fleet", response_model=List[FleetVehicle])
def list_fleet(
    session: VehicleSession = Depends(get_session),
    status: Optional[TripStatus] = Query(None, description="Only vehicles in this status"),
) -> List[FleetVehicle]:
    return session.fleet.list_vehicles(status)


@router.get("/fleet/{vehicle_id}", response_model=FleetVehicle)
def get_fleet_vehicle(vehicle_id: str, session: VehicleSession = Depends(get_session)) -> FleetVehicle:
    vehicle = session.fleet.get(vehicle_id)
    if vehicle is None:
        raise HTTPException(status_code=404, detail=f"Vehicle {vehicle_id} not found")
    return vehicle


@router.put("/fleet/{vehicle_id}/location", response_model=FleetVehicle)
def set_fleet_vehicle_location(vehicle_id: str, body: LocationRequest,
                               session: VehicleSession = Depends(get_session)) -> FleetVehicle:
    location = VehicleLocation(
        coordinate=body.coordinate,
        heading=body.heading,
        updated_at=body.timestamp if body.timestamp is not None else session.clock(),
    )
    vehicle = session.fleet.set_location(vehicle_id, location)
    if vehicle is None:
        raise HTTPException(status_code=404, detail=f"Vehicle {vehicle_id} not found")
    return vehicle


@router.put("/fleet/{vehicle_id}/operational", response_model=FleetVehicle)
def set_fleet_vehicle_operational(vehicle_id: str, body: OperationalUpdate,
                                  session: VehicleSession = Depends(get_session)) -> FleetVehicle:
    """Set a vehicle's status and delay as shown on the fleet board."""
    vehicle = session.fleet.set_operational(vehicle_id, body.status, body.delay_minutes)
    if vehicle is None:
        raise HTTPException(status_code=404, detail=f"Vehicle {vehicle_id} not found")
    return vehicle
