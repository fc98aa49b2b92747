import logging
from typing import Callable, List, Optional
from pydantic import ValidationError
from .config import config
from .schemas import (
    AlertMessage,
    AlertSeverity,
    Incident,
    IncidentEvent,
    IncidentEventType,
    IncidentStatus,
    Role,
)
from .utils import now_ms, random_suffix

logger = logging.getLogger(__name__)

STORAGE_KEY = "securestop.incidents.v1"

ESCALATING_SEVERITIES = frozenset({AlertSeverity.RED, AlertSeverity.ORANGE})


def should_create_incident(severity: Optional[AlertSeverity]) -> bool:
    """Only red and orange alerts open incidents."""
    return severity is not None and AlertSeverity(severity) in ESCALATING_SEVERITIES


class IncidentStore:
    """Incidents derived from high-severity alerts, newest first.

    Every mutation is written through to the key-value store. Storage
    failures are logged and dropped; the in-memory list stays authoritative.
    """

    def __init__(self, kv=None, clock: Callable[[], int] = now_ms, cap: Optional[int] = None):
        if kv is None:
            from .persistence import MemoryKeyValueStore
            kv = MemoryKeyValueStore()
        self.kv = kv
        self.clock = clock
        self.cap = cap if cap is not None else config.incident_cap
        self.incidents: List[Incident] = []
        self.hydrated = False

    def hydrate(self) -> None:
        """Load persisted incidents; anything unreadable is dropped."""
        try:
            data = self.kv.get_json(STORAGE_KEY)
        except Exception as e:
            logger.warning("Could not read persisted incidents: %s", e)
            data = None
        raw = data.get("incidents") if isinstance(data, dict) else None
        incidents = []
        if isinstance(raw, list):
            for item in raw:
                try:
                    incidents.append(Incident.model_validate(item))
                except ValidationError as e:
                    logger.warning("Skipping unreadable persisted incident: %s", e)
        self.incidents = incidents
        self.hydrated = True
        logger.info("Hydrated %d incidents", len(incidents))

    def get(self, incident_id: str) -> Optional[Incident]:
        for incident in self.incidents:
            if incident.id == incident_id:
                return incident
        return None

    def find_by_alert(self, alert_id: str) -> Optional[Incident]:
        for incident in self.incidents:
            if incident.alert_id == alert_id:
                return incident
        return None

    def upsert_from_alert(self, alert: AlertMessage) -> Optional[Incident]:
        """Open an incident for a red/orange alert, at most once per alert."""
        if not should_create_incident(alert.severity):
            return None
        if self.find_by_alert(alert.id) is not None:
            return None

        ts = self.clock()
        severity = AlertSeverity(alert.severity)
        incident = Incident(
            id=f"inc-{alert.id}",
            alert_id=alert.id,
            title=alert.title,
            description=alert.body,
            severity=severity,
            status=IncidentStatus.OPEN,
            created_at=alert.created_at or ts,
            updated_at=ts,
            vehicle_id=alert.vehicle_id,
            created_by_role=alert.created_by_role,
            events=[
                IncidentEvent(
                    id=f"evt-{ts}",
                    at=ts,
                    by_role=alert.created_by_role,
                    type=IncidentEventType.CREATED,
                    message=f"Incident created from alert ({severity.value.upper()}).",
                )
            ],
        )
        self.incidents = ([incident] + self.incidents)[: self.cap]
        self._persist()
        logger.info("Opened incident %s (%s)", incident.id, severity.value)
        return incident

    def add_note(self, incident_id: str, message: str, by_role: Role) -> Optional[Incident]:
        incident = self.get(incident_id)
        if incident is None:
            return None
        self._append_event(incident, IncidentEventType.NOTE, message, by_role)
        self._persist()
        return incident

    def resolve(self, incident_id: str, message: Optional[str], by_role: Role) -> Optional[Incident]:
        """Resolve an open incident. Resolving twice leaves the first resolution alone."""
        incident = self.get(incident_id)
        if incident is None:
            return None
        if incident.status == IncidentStatus.RESOLVED:
            return incident

        note = message.strip() if message and message.strip() else "Resolved."
        incident.status = IncidentStatus.RESOLVED
        self._append_event(incident, IncidentEventType.RESOLVED, note, by_role)
        self._persist()
        logger.info("Resolved incident %s by %s", incident.id, Role(by_role).value)
        return incident

    def clear_all(self) -> None:
        self.incidents = []
        try:
            self.kv.set_json(STORAGE_KEY, None)
        except Exception as e:
            logger.warning("Could not clear persisted incidents: %s", e)
        logger.info("Cleared all incidents")

    def _append_event(self, incident: Incident, event_type: IncidentEventType, message: str, by_role: Role):
        ts = self.clock()
        incident.events.append(
            IncidentEvent(
                id=f"evt-{ts}-{random_suffix()}",
                at=ts,
                by_role=by_role,
                type=event_type,
                message=message,
            )
        )
        incident.updated_at = ts

    def _persist(self):
        try:
            self.kv.set_json(
                STORAGE_KEY,
                {"incidents": [incident.model_dump(mode="json") for incident in self.incidents]},
            )
        except Exception as e:
            logger.warning("Could not persist incidents: %s", e)
