import re
import logging
from typing import Awaitable, Callable, List, Optional, Sequence
from .config import config
from .incidents import IncidentStore
from .schemas import (
    AlertMessage,
    AlertSeverity,
    Incident,
    NotificationPrefs,
    RecipientGroup,
    Role,
)
from .templates import ADMIN_BROADCAST_TEMPLATE_ID, ROAD_TEMPLATES, AlertTemplate
from .utils import MonotonicIds, now_ms
from .visibility import is_visible

logger = logging.getLogger(__name__)

Notifier = Callable[[AlertMessage], Awaitable[None]]
Publisher = Callable[[AlertMessage], Awaitable[None]]

ROAD_NOTE_PATTERN = re.compile(r"(road|traffic|weather|accident|crash|closed|closure|detour)", re.IGNORECASE)


def receive(inbox: Sequence[AlertMessage], msg: AlertMessage, cap: int = 50) -> List[AlertMessage]:
    """Put `msg` at the front of the inbox, replacing any entry with the same id.

    The inbox is ordered by arrival, not by created_at, and holds at most
    `cap` entries; older ones are dropped.
    """
    return ([msg] + [m for m in inbox if m.id != msg.id])[:cap]


def remove_by_id(inbox: Sequence[AlertMessage], alert_id: str) -> List[AlertMessage]:
    return [m for m in inbox if m.id != alert_id]


class NotificationState:
    """Inbox, viewer preferences and alert sending for one client.

    Every received alert is also offered to the incident store, which opens
    an incident for red and orange alerts.
    """

    def __init__(
        self,
        incidents: IncidentStore,
        notifier: Optional[Notifier] = None,
        publisher: Optional[Publisher] = None,
        clock: Callable[[], int] = now_ms,
        cap: Optional[int] = None,
    ):
        self.incidents = incidents
        self.notifier = notifier
        self.publisher = publisher
        self.clock = clock
        self.cap = cap if cap is not None else config.inbox_cap
        self.prefs = NotificationPrefs()
        self.inbox: List[AlertMessage] = []
        self.driver_recipient_selection = RecipientGroup.PARENTS
        self._ids = MonotonicIds()

    def set_prefs(self, **changes) -> NotificationPrefs:
        """Merge a partial update into the current prefs."""
        updates = {k: v for k, v in changes.items() if v is not None}
        self.prefs = self.prefs.model_copy(update=updates)
        return self.prefs

    def set_driver_recipient_selection(self, recipients: RecipientGroup) -> None:
        self.driver_recipient_selection = RecipientGroup(recipients)

    def receive_alert(self, msg: AlertMessage) -> Optional[Incident]:
        """Store an inbound alert and return the incident it opened, if any."""
        self.inbox = receive(self.inbox, msg, self.cap)
        return self.incidents.upsert_from_alert(msg)

    def remove_alert_by_id(self, alert_id: str) -> bool:
        before = len(self.inbox)
        self.inbox = remove_by_id(self.inbox, alert_id)
        return len(self.inbox) != before

    def get_alert(self, alert_id: str) -> Optional[AlertMessage]:
        for msg in self.inbox:
            if msg.id == alert_id:
                return msg
        return None

    def visible_alerts(self, viewer_role: Role, prefs: Optional[NotificationPrefs] = None) -> List[AlertMessage]:
        prefs = prefs or self.prefs
        return [m for m in self.inbox if is_visible(m, viewer_role, prefs)]

    def road_condition_updates(self, limit: int = 3) -> List[AlertMessage]:
        """Latest driver alerts that describe road conditions, newest first."""
        items = []
        for msg in self.inbox:
            if msg.created_by_role != Role.DRIVER:
                continue
            if msg.template_id and AlertTemplate.lookup(msg.template_id) in ROAD_TEMPLATES:
                items.append(msg)
            elif ROAD_NOTE_PATTERN.search(msg.title) or ROAD_NOTE_PATTERN.search(msg.body):
                items.append(msg)
        items.sort(key=lambda m: m.created_at, reverse=True)
        return items[:limit]

    async def send_driver_alert(
        self,
        template_id: str,
        recipients: Optional[RecipientGroup] = None,
        notes: Optional[List[str]] = None,
        vehicle_id: Optional[str] = None,
    ) -> AlertMessage:
        """Build a driver alert from a template, notify, and deliver it to the inbox."""
        spec = AlertTemplate.lookup(template_id).spec
        note_suffix = f"\n\nNotes: {', '.join(notes)}" if notes else ""
        ts = self.clock()

        msg = AlertMessage(
            id=self._ids.next("alert", ts),
            title=spec.title,
            body=f"{spec.body}{note_suffix}",
            recipients=recipients or self.driver_recipient_selection,
            severity=spec.severity,
            template_id=template_id,
            vehicle_id=vehicle_id,
            created_at=ts,
            created_by_role=Role.DRIVER,
        )
        await self._deliver(msg)
        return msg

    async def send_admin_broadcast(
        self,
        title: str,
        body: str,
        recipients: RecipientGroup,
        vehicle_id: Optional[str] = None,
    ) -> AlertMessage:
        ts = self.clock()
        msg = AlertMessage(
            id=self._ids.next("broadcast", ts),
            title=title,
            body=body,
            recipients=recipients,
            severity=AlertSeverity.ORANGE,
            template_id=ADMIN_BROADCAST_TEMPLATE_ID,
            vehicle_id=vehicle_id,
            created_at=ts,
            created_by_role=Role.ADMIN,
        )
        await self._deliver(msg)
        return msg

    async def _deliver(self, msg: AlertMessage):
        if self.notifier is not None:
            try:
                await self.notifier(msg)
            except Exception as e:
                logger.warning("Local notification for %s failed: %s", msg.id, e)

        self.receive_alert(msg)
        logger.info("Alert %s (%s) from %s to %s", msg.id, msg.template_id, msg.created_by_role.value, msg.recipients.value)

        if self.publisher is not None:
            try:
                await self.publisher(msg)
            except Exception as e:
                logger.warning("Publishing alert %s failed: %s", msg.id, e)
