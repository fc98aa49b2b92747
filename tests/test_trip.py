import pytest
from securestop.schemas import LatLng, TripStatus
from securestop.templates import AlertTemplate
from securestop.trip import TripState, nearest_stop_index, next_stop, route_progress
from conftest import FakeClock, ROUTE_STOPS, START, END, offset


class TestTripTransitions:
    """Manual driver transitions."""

    def setup_method(self):
        self.clock = FakeClock()
        self.trip = TripState(route_id="route-21", vehicle_id="bus-12", clock=self.clock)

    def test_initial_state(self):
        assert self.trip.status == TripStatus.IN_DEPOT
        assert self.trip.started_at is None
        assert self.trip.ended_at is None
        assert self.trip.current_stop_index == 0

    def test_start_start_end(self):
        assert self.trip.start_trip()
        assert self.trip.status == TripStatus.ON_ROUTE
        started = self.trip.started_at
        assert started == self.clock.value

        self.clock.advance(60_000)
        self.trip.start_trip()
        assert self.trip.status == TripStatus.ON_ROUTE
        assert self.trip.started_at == started

        self.clock.advance(60_000)
        assert self.trip.end_trip()
        assert self.trip.status == TripStatus.COMPLETED
        assert self.trip.ended_at == self.clock.value

    def test_resume_after_pause_keeps_started_at(self):
        self.trip.start_trip()
        started = self.trip.started_at
        assert self.trip.pause_trip()
        assert self.trip.status == TripStatus.PAUSED
        self.clock.advance()
        self.trip.start_trip()
        assert self.trip.status == TripStatus.ON_ROUTE
        assert self.trip.started_at == started

    def test_pause_from_any_active_state(self):
        for status in [TripStatus.IN_DEPOT, TripStatus.DEPARTED, TripStatus.ARRIVING, TripStatus.ON_ROUTE]:
            self.trip.set_status(status)
            assert self.trip.pause_trip()
            assert self.trip.status == TripStatus.PAUSED

    def test_completed_blocks_manual_transitions(self):
        self.trip.start_trip()
        self.trip.end_trip()
        ended = self.trip.ended_at
        self.clock.advance()

        assert not self.trip.pause_trip()
        assert not self.trip.start_trip()
        assert not self.trip.end_trip()
        assert self.trip.status == TripStatus.COMPLETED
        assert self.trip.ended_at == ended

    def test_set_status_overrides(self):
        self.trip.end_trip()
        self.trip.set_status(TripStatus.ARRIVING)
        assert self.trip.status == TripStatus.ARRIVING

    def test_reset_trip(self):
        self.trip.start_trip()
        self.trip.set_current_stop_index(2)
        self.trip.end_trip()
        self.trip.reset_trip()
        assert self.trip.status == TripStatus.IN_DEPOT
        assert self.trip.started_at is None
        assert self.trip.ended_at is None
        assert self.trip.current_stop_index == 0

    def test_stop_index_clamped(self):
        self.trip.set_current_stop_index(-3)
        assert self.trip.current_stop_index == 0
        self.trip.set_current_stop_index(2)
        assert self.trip.current_stop_index == 2


class TestTemplateStatus:
    """Driver alert templates that move the trip."""

    def setup_method(self):
        self.trip = TripState(clock=FakeClock())

    @pytest.mark.parametrize("template", [AlertTemplate.DEPARTED_DEPOT, AlertTemplate.DEPARTED_SCHOOL])
    def test_departed_templates(self, template):
        assert self.trip.apply_template_status(template)
        assert self.trip.status == TripStatus.DEPARTED

    def test_route_started_starts_trip(self):
        assert self.trip.apply_template_status(AlertTemplate.ROUTE_STARTED)
        assert self.trip.status == TripStatus.ON_ROUTE
        assert self.trip.started_at is not None

    def test_other_templates_leave_status(self):
        assert not self.trip.apply_template_status(AlertTemplate.EMERGENCY)
        assert self.trip.status == TripStatus.IN_DEPOT

    def test_unknown_template_lookup(self):
        assert AlertTemplate.lookup("nope") == AlertTemplate.DRIVER_ALERT
        assert AlertTemplate.lookup(None) == AlertTemplate.DRIVER_ALERT
        assert AlertTemplate.lookup("emergency") == AlertTemplate.EMERGENCY


class TestRouteHelpers:
    """Nearest stop, progress and next stop."""

    def test_nearest_stop(self):
        assert nearest_stop_index(START, ROUTE_STOPS) == 0
        assert nearest_stop_index(offset(END, 0.0002), ROUTE_STOPS) == 3
        assert nearest_stop_index(LatLng(latitude=40.7546, longitude=-73.9771), ROUTE_STOPS) == 2

    def test_nearest_stop_empty(self):
        assert nearest_stop_index(START, []) is None

    def test_progress(self):
        assert route_progress(0, 4) == 0.0
        assert route_progress(3, 4) == 1.0
        assert route_progress(1, 3) == 0.5
        assert route_progress(0, 1) == 0.0

    def test_next_stop(self):
        assert next_stop(ROUTE_STOPS, 0).id == "stop-2"
        assert next_stop(ROUTE_STOPS, 3).id == "stop-4"
        assert next_stop([], 0) is None

if __name__ == "__main__":
    pytest.main([__file__])
