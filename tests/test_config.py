from securestop.config import Config, DEFAULT_TENANTS, parse_tenants


class TestTenantParsing:
    """TENANTS setting in JSON or CSV form."""

    def test_empty_falls_back(self):
        assert parse_tenants("") == DEFAULT_TENANTS

    def test_json_array(self):
        raw = '[{"id": "north", "name": "North High"}, {"id": "", "name": "Nameless"}]'
        assert parse_tenants(raw) == [{"id": "north", "name": "North High"}]

    def test_json_object(self):
        raw = '{"tenants": [{"id": "east", "name": "East Elementary"}]}'
        assert parse_tenants(raw) == [{"id": "east", "name": "East Elementary"}]

    def test_invalid_json(self):
        assert parse_tenants("[not json") == DEFAULT_TENANTS

    def test_csv_pairs(self):
        raw = "north:North High, east:East Elementary,broken, :nameless"
        assert parse_tenants(raw) == [
            {"id": "north", "name": "North High"},
            {"id": "east", "name": "East Elementary"},
        ]

    def test_csv_nothing_valid(self):
        assert parse_tenants("broken,also-broken") == DEFAULT_TENANTS


class TestRuntimeOverrides:
    """Config updates at runtime."""

    def test_update_geofence(self):
        cfg = Config()
        cfg.update_geofence(radius_m=150)
        assert cfg.get_geofence_config()["radius_m"] == 150
        cfg.update_geofence()
        assert cfg.geofence_radius_m == 150

    def test_update_limits(self):
        cfg = Config()
        cfg.update_limits(inbox_cap=10)
        assert cfg.get_limits_config() == {"inbox_cap": 10, "incident_cap": cfg.incident_cap}

    def test_defaults(self):
        cfg = Config()
        assert cfg.inbox_cap == 50
        assert cfg.incident_cap == 200
        assert cfg.geofence_radius_m == 90
