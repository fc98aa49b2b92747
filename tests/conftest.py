import os
import tempfile

# Point the service at a throwaway SQLite file before securestop.config is imported
_TMP_DIR = tempfile.mkdtemp(prefix="securestop-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("EMIT_INTERVAL_SECONDS", "0")

import pytest

from securestop.schemas import AlertMessage, LatLng, RecipientGroup, Role, Stop


class FakeClock:
    """Deterministic epoch-ms clock for stores and state machines."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.value = start

    def __call__(self) -> int:
        return self.value

    def advance(self, ms: int = 1000) -> int:
        self.value += ms
        return self.value


class BrokenKeyValueStore:
    """Key-value store whose every call fails."""

    def get_json(self, key):
        raise RuntimeError("storage offline")

    def set_json(self, key, value):
        raise RuntimeError("storage offline")


@pytest.fixture
def clock():
    return FakeClock()


def make_alert(alert_id="a1", severity="red", recipients="school",
               created_by_role="driver", created_at=1_700_000_000_000, **kwargs):
    return AlertMessage(
        id=alert_id,
        title=kwargs.pop("title", "Emergency"),
        body=kwargs.pop("body", "Emergency reported."),
        recipients=RecipientGroup(recipients),
        severity=severity,
        created_at=created_at,
        created_by_role=Role(created_by_role),
        **kwargs,
    )


START = LatLng(latitude=40.758, longitude=-73.9855)
END = LatLng(latitude=40.7503, longitude=-73.975)

ROUTE_STOPS = [
    Stop(id="stop-1", name="8th Ave", coordinate=START),
    Stop(id="stop-2", name="Broadway", coordinate=LatLng(latitude=40.7572, longitude=-73.98)),
    Stop(id="stop-3", name="5th Ave", coordinate=LatLng(latitude=40.7545, longitude=-73.977)),
    Stop(id="stop-4", name="Terminal", coordinate=END),
]


def offset(point: LatLng, d_lat: float = 0.0, d_lng: float = 0.0) -> LatLng:
    return LatLng(latitude=point.latitude + d_lat, longitude=point.longitude + d_lng)
