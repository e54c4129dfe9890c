"""
Unit tests for routing/summary.py
"""
import pytest

from conftest import make_route
from routing.models import NavigationStep, Resolution, ResolutionKind, ResolvedRoute, Waypoint
from routing.summary import (
    format_distance,
    format_duration,
    format_step_distance,
    format_step_time,
    step_icon,
    summarize,
    summarize_route,
)

A = Waypoint("a", "Lakeside", 28.2, 83.9)
B = Waypoint("b", "Begnas Lake", 28.3, 84.0)


def _route_resolution(route):
    return Resolution(kind=ResolutionKind.ROUTE, waypoints=(A, B), route=route, attempts=(route.source,))


class TestFormatting:

    @pytest.mark.parametrize("seconds,expected", [
        (125 * 60, "2h 5m"),
        (45 * 60, "45m"),
        (60 * 60, "1h 0m"),
        (59, "< 1 min"),
        (0, "< 1 min"),
        (45 * 60 + 59, "45m"),
    ])
    def test_duration(self, seconds, expected):
        assert format_duration(seconds) == expected

    def test_distance(self):
        assert format_distance(14823.4) == "14.8 km"
        assert format_distance(0) == "0.0 km"

    def test_step_distance(self):
        assert format_step_distance(350) == "350 m"
        assert format_step_distance(2500) == "2.5 km"

    def test_step_time(self):
        assert format_step_time(20) == "< 1 min"
        assert format_step_time(150) == "2 min"
        assert format_step_time(2 * 3600 + 600) == "2h 10m"


class TestStepIcons:

    @pytest.mark.parametrize("kind,icon", [
        ("depart", "🚀"),
        ("arrive", "🏁"),
        ("waypoint", "📍"),
        ("turn-left", "↰"),
        ("turn-right", "↱"),
        ("turn-slight-left", "↙"),
        ("turn-slight-right", "↘"),
        ("continue", "⬆"),
        ("straight", "🔷"),
        ("roundabout", "➡"),
    ])
    def test_icon(self, kind, icon):
        assert step_icon(kind) == icon


class TestSummarize:

    def test_exact_route(self):
        summary = summarize(_route_resolution(make_route(distance=15000, duration=125 * 60)))
        assert summary.distance == "15.0 km"
        assert summary.duration == "2h 5m"
        assert summary.approximate is False

    def test_approximate_route_is_prefixed(self):
        summary = summarize(_route_resolution(make_route(approximate=True, distance=14800, duration=888)))
        assert summary.distance == "~14.8 km"
        assert summary.duration == "~14m"
        assert summary.approximate is True

    def test_steps_are_numbered_with_icons(self):
        route = ResolvedRoute(
            distance_meters=15000,
            duration_seconds=1200,
            geometry=(A.latlng, B.latlng),
            steps=(
                NavigationStep("Head east", 500, 60, "depart"),
                NavigationStep("Turn left onto Prithvi Hwy", 14500, 1140, "turn-left"),
                NavigationStep("Arrive at Begnas Lake", 0, 0, "arrive"),
            ),
            source="direct-api",
        )
        summary = summarize_route(route)

        assert [(s.index, s.icon) for s in summary.steps] == [(1, "🚀"), (2, "↰"), (3, "🏁")]
        assert summary.steps[1].distance == "14.5 km"
        assert summary.steps[1].duration == "19 min"
        # zero-length arrival carries no distance or time
        assert summary.steps[2].distance is None
        assert summary.steps[2].duration is None
        assert summary.source == "direct-api"

    def test_does_not_mutate_route(self):
        route = make_route()
        resolution = _route_resolution(route)
        summarize(resolution)
        assert resolution.route is route
        assert route == make_route()

    def test_empty_and_single_have_no_summary(self):
        assert summarize(Resolution.empty()) is None
        assert summarize(Resolution.single(A)) is None

    def test_to_dict(self):
        data = summarize(_route_resolution(make_route())).to_dict()
        assert set(data) == {"distance", "duration", "steps", "approximate", "source"}
        assert len(data["steps"]) == 0
