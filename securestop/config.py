import os
import json
import logging
from typing import Dict, List, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Database configuration (key-value cache)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///securestop.db")

# Simulation configuration
EMIT_INTERVAL_SECONDS = float(os.getenv("EMIT_INTERVAL_SECONDS", "1.5"))
SIMULATION_ENABLED = os.getenv("SIMULATION_ENABLED", "true").lower() == "true"
ROUTE_CSV = os.getenv("ROUTE_CSV", "")

# Store limits
INBOX_CAP = int(os.getenv("INBOX_CAP", "50"))
INCIDENT_CAP = int(os.getenv("INCIDENT_CAP", "200"))

# Geofence
GEOFENCE_RADIUS_M = float(os.getenv("GEOFENCE_RADIUS_M", "90"))
AVERAGE_SPEED_KPH = float(os.getenv("AVERAGE_SPEED_KPH", "25"))

# Session identity
DEFAULT_ROUTE_ID = os.getenv("DEFAULT_ROUTE_ID", "route-21")
DEFAULT_VEHICLE_ID = os.getenv("DEFAULT_VEHICLE_ID", "bus-12")
DEFAULT_DRIVER_NAME = os.getenv("DEFAULT_DRIVER_NAME", "Driver (mock)")

# Seed demo vehicles into the fleet registry
FLEET_DEMO_ENABLED = os.getenv("FLEET_DEMO_ENABLED", "true").lower() == "true"

# Tenants: JSON array or "id:name,id2:name2"
TENANTS_RAW = os.getenv("TENANTS", "")

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
LOG_FILE = os.getenv("LOG_FILE", "")

# Development configuration
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
ENABLE_CORS = os.getenv("ENABLE_CORS", "true").lower() == "true"

DEFAULT_TENANTS = [{"id": "mock-school", "name": "Demo School"}]


def parse_tenants(raw: str) -> List[Dict[str, str]]:
    """Parse the TENANTS setting, falling back to the demo tenant."""
    raw = (raw or "").strip()
    if not raw:
        return list(DEFAULT_TENANTS)

    if raw.startswith("[") or raw.startswith("{"):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return list(DEFAULT_TENANTS)
        items = parsed if isinstance(parsed, list) else parsed.get("tenants") if isinstance(parsed, dict) else None
        if not isinstance(items, list):
            return list(DEFAULT_TENANTS)
        cleaned = []
        for item in items:
            if not isinstance(item, dict):
                continue
            tenant_id = str(item.get("id") or "").strip()
            name = str(item.get("name") or "").strip()
            if tenant_id and name:
                cleaned.append({"id": tenant_id, "name": name})
        return cleaned or list(DEFAULT_TENANTS)

    pairs = []
    for pair in raw.split(","):
        pair = pair.strip()
        if ":" not in pair:
            continue
        tenant_id, _, name = pair.partition(":")
        tenant_id, name = tenant_id.strip(), name.strip()
        if tenant_id and name:
            pairs.append({"id": tenant_id, "name": name})
    return pairs or list(DEFAULT_TENANTS)


class Config:
    """Configuration class with runtime overrides."""

    def __init__(self):
        self.database_url = DATABASE_URL
        self.emit_interval_seconds = EMIT_INTERVAL_SECONDS
        self.simulation_enabled = SIMULATION_ENABLED
        self.route_csv = ROUTE_CSV

        # Store limits
        self.inbox_cap = INBOX_CAP
        self.incident_cap = INCIDENT_CAP

        # Geofence
        self.geofence_radius_m = GEOFENCE_RADIUS_M
        self.average_speed_kph = AVERAGE_SPEED_KPH

        # Session identity
        self.default_route_id = DEFAULT_ROUTE_ID
        self.default_vehicle_id = DEFAULT_VEHICLE_ID
        self.default_driver_name = DEFAULT_DRIVER_NAME
        self.fleet_demo_enabled = FLEET_DEMO_ENABLED
        self.tenants = parse_tenants(TENANTS_RAW)

        # Logging
        self.log_level = LOG_LEVEL
        self.log_format = LOG_FORMAT
        self.log_file = LOG_FILE

        # Development
        self.debug = DEBUG
        self.enable_cors = ENABLE_CORS

    def update_geofence(self, radius_m: Optional[float] = None):
        """Update the terminal geofence radius at runtime."""
        if radius_m is not None:
            self.geofence_radius_m = radius_m

    def update_limits(self,
                      inbox_cap: Optional[int] = None,
                      incident_cap: Optional[int] = None):
        """Update store caps at runtime."""
        if inbox_cap is not None:
            self.inbox_cap = inbox_cap
        if incident_cap is not None:
            self.incident_cap = incident_cap

    def get_geofence_config(self) -> dict:
        """Get geofence configuration as dictionary."""
        return {
            "radius_m": self.geofence_radius_m,
            "average_speed_kph": self.average_speed_kph,
        }

    def get_limits_config(self) -> dict:
        """Get store limits as dictionary."""
        return {
            "inbox_cap": self.inbox_cap,
            "incident_cap": self.incident_cap,
        }


# Global configuration instance
config = Config()


def setup_logging():
    """Setup logging configuration."""
    handlers = [logging.StreamHandler()]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format=config.log_format,
        handlers=handlers
    )

    # Set specific logger levels
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("fastapi").setLevel(logging.INFO)

    return logging.getLogger(__name__)


# Initialize logger
logger = setup_logging()
