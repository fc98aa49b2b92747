import asyncio
import itertools
import os
import tempfile
import pandas as pd
import pytest
from securestop import simulator
from securestop.simulator import (
    is_running, load_route_csv, mock_feed, run_in_background, start_simulation, stop_simulation,
)
from securestop.tracking import VehicleSession
from conftest import FakeClock, ROUTE_STOPS


def create_route_csv(rows):
    df = pd.DataFrame(rows)
    temp_file = tempfile.NamedTemporaryFile(mode='w', suffix='.csv', delete=False)
    df.to_csv(temp_file.name, index=False)
    temp_file.close()
    return temp_file.name


class TestRouteLoading:
    """CSV route loader."""

    def test_load_route_with_names(self):
        path = create_route_csv([
            {"latitude": 40.758, "longitude": -73.9855, "name": "8th Ave"},
            {"latitude": 40.7572, "longitude": -73.98, "name": "Broadway"},
            {"latitude": 40.7503, "longitude": -73.975, "name": "Terminal"},
        ])
        try:
            route, stops = load_route_csv(path)
        finally:
            os.remove(path)

        assert len(route) == 3
        assert [s.id for s in stops] == ["stop-1", "stop-2", "stop-3"]
        assert stops[-1].name == "Terminal"
        assert stops[0].coordinate == route[0]

    def test_load_route_without_names(self):
        path = create_route_csv([
            {"latitude": 1.0, "longitude": 2.0},
            {"latitude": 1.5, "longitude": 2.5},
        ])
        try:
            _, stops = load_route_csv(path)
        finally:
            os.remove(path)
        assert [s.name for s in stops] == ["Stop 1", "Stop 2"]

    def test_missing_columns(self):
        path = create_route_csv([{"lat": 1.0, "lon": 2.0}])
        try:
            with pytest.raises(ValueError):
                load_route_csv(path)
        finally:
            os.remove(path)


class TestMockFeed:
    """Ping-pong walk over the route."""

    def test_forward_then_back(self):
        route = [s.coordinate for s in ROUTE_STOPS]
        points = list(itertools.islice(mock_feed(route), 8))
        indexes = [route.index(c) for c, _ in points]
        headings = [h for _, h in points]
        assert indexes == [0, 1, 2, 3, 2, 1, 0, 1]
        assert headings == [90.0, 90.0, 90.0, 270.0, 270.0, 270.0, 90.0, 90.0]

    def test_empty_route(self):
        assert list(mock_feed([])) == []

    def test_single_point(self):
        route = [ROUTE_STOPS[0].coordinate]
        points = list(itertools.islice(mock_feed(route), 3))
        assert [c for c, _ in points] == route * 3


class TestSimulationRun:
    """Simulation loop driving a vehicle session."""

    def teardown_method(self):
        stop_simulation()

    def test_runs_full_route_and_completes_trip(self):
        session = VehicleSession(clock=FakeClock(), stops=ROUTE_STOPS,
                                 route=[s.coordinate for s in ROUTE_STOPS], geofence_radius_m=90)
        asyncio.run(start_simulation(session, None, interval=0, max_samples=4))

        assert not is_running()
        assert session.trip.status.value == "Completed"
        assert session.trip.current_stop_index == 3
        assert [m.template_id for m in session.notifications.inbox] == ["route_completed", "route_started"]

    def test_stop_simulation(self):
        result = stop_simulation()
        assert result == {"message": "simulation stopped"}
        assert not simulator.RUNNING

    def test_stop_cancels_background_run(self):
        session = VehicleSession(clock=FakeClock(), stops=ROUTE_STOPS,
                                 route=[s.coordinate for s in ROUTE_STOPS], geofence_radius_m=90)

        async def run_then_stop():
            task = run_in_background(session, None, interval=0.01)
            assert simulator.background_task is task
            await asyncio.sleep(0.05)
            assert is_running()
            stop_simulation()
            await task
            return task

        task = asyncio.run(run_then_stop())
        assert task.done()
        assert not is_running()
        assert simulator.background_task is None
