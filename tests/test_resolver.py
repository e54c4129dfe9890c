"""
Unit tests for routing/resolver.py
"""
import pytest

from conftest import StubStrategy
from routing import RouteResolver, resolve_route
from routing.errors import ResolutionCancelled, ResolutionExhausted
from routing.geo import haversine_km
from routing.models import ResolutionKind
from routing.strategies import StraightLineStrategy


class TestDegenerateInputs:

    def test_no_records_is_empty_and_calls_nothing(self, succeeding):
        strategy = succeeding()
        resolution = RouteResolver([strategy]).resolve([])

        assert resolution.kind is ResolutionKind.EMPTY
        assert resolution.is_empty
        assert resolution.route is None
        assert strategy.calls == []

    def test_only_invalid_records_is_empty(self, succeeding):
        strategy = succeeding()
        resolution = RouteResolver([strategy]).resolve([{"name": "?", "latitude": "n/a", "longitude": 0}])
        assert resolution.kind is ResolutionKind.EMPTY
        assert strategy.calls == []

    def test_single_waypoint(self, succeeding, pokhara_records):
        strategy = succeeding()
        resolution = RouteResolver([strategy]).resolve(pokhara_records[:1])

        assert resolution.kind is ResolutionKind.SINGLE
        assert resolution.waypoints[0].name == "Lakeside"
        assert resolution.route.distance_meters == 0
        assert resolution.route.geometry == ((28.2096, 83.9856),)
        assert strategy.calls == []

    def test_invalid_records_are_dropped_before_routing(self, succeeding, pokhara_records):
        strategy = succeeding()
        records = [pokhara_records[0], {"name": "Bad", "latitude": 200, "longitude": 0}, pokhara_records[1]]
        resolution = RouteResolver([strategy]).resolve(records)

        assert resolution.kind is ResolutionKind.ROUTE
        sent, _ = strategy.calls[0]
        assert [w.name for w in sent] == ["Lakeside", "Sarangkot"]


class TestFallbackChain:

    def test_first_success_wins(self, succeeding, pokhara_records):
        first, second = succeeding("engine-client"), succeeding("direct-api")
        resolution = RouteResolver([first, second]).resolve(pokhara_records)

        assert resolution.route.source == "engine-client"
        assert resolution.attempts == ("engine-client",)
        assert second.calls == []

    def test_falls_through_failures_in_order(self, succeeding, failing, pokhara_records):
        chain = [failing("engine-client"), failing("direct-api"), succeeding("straight-line", approximate=True)]
        resolution = RouteResolver(chain).resolve(pokhara_records)

        assert resolution.kind is ResolutionKind.ROUTE
        assert resolution.approximate
        assert resolution.attempts == ("engine-client", "direct-api", "straight-line")
        assert all(len(s.calls) == 1 for s in chain)

    def test_strategy_exception_is_treated_as_failure(self, succeeding, pokhara_records):
        chain = [StubStrategy("engine-client", exc=RuntimeError("kaboom")), succeeding("direct-api")]
        resolution = RouteResolver(chain).resolve(pokhara_records)
        assert resolution.route.source == "direct-api"

    def test_exhausted(self, failing, pokhara_records):
        chain = [failing("engine-client"), failing("direct-api")]
        with pytest.raises(ResolutionExhausted) as excinfo:
            RouteResolver(chain).resolve(pokhara_records)

        assert excinfo.value.attempts == ("engine-client", "direct-api")
        assert excinfo.value.retryable is True

    def test_straight_line_terminates_the_chain(self, failing, pokhara_records):
        chain = [failing("engine-client"), failing("direct-api"), StraightLineStrategy()]
        resolution = RouteResolver(chain).resolve(pokhara_records)
        assert resolution.route.source == "straight-line"
        assert resolution.route.approximate

    def test_both_upstreams_down_gives_haversine_route(self, failing):
        records = [
            {"name": "Lakeside", "latitude": 28.2, "longitude": 83.9},
            {"name": "Begnas Lake", "latitude": 28.3, "longitude": 84.0},
        ]
        chain = [failing("engine-client"), failing("direct-api"), StraightLineStrategy()]
        route = RouteResolver(chain).resolve(records).route

        km = haversine_km((28.2, 83.9), (28.3, 84.0))
        assert route.distance_meters / 1000 == pytest.approx(km, abs=0.01)
        assert route.duration_seconds / 60 == pytest.approx(km, abs=0.01)
        assert len(route.steps) == 2

    def test_waypoints_passed_in_order(self, succeeding, pokhara_records):
        strategy = succeeding()
        RouteResolver([strategy]).resolve(pokhara_records)
        sent, token = strategy.calls[0]
        assert [w.id for w in sent] == ["a", "b", "c"]
        assert token is not None

    def test_deterministic(self, pokhara_records):
        resolver = RouteResolver([StraightLineStrategy()])
        assert resolver.resolve(pokhara_records) == resolver.resolve(pokhara_records)

    def test_resolve_route_helper(self, pokhara_records):
        resolution = resolve_route(pokhara_records, [StraightLineStrategy()])
        assert resolution.kind is ResolutionKind.ROUTE


class TestCancellation:

    def test_cancel_during_strategy_raises(self, succeeding, pokhara_records):
        resolver = RouteResolver()
        strategy = StubStrategy("engine-client", result=succeeding().result, on_call=resolver.cancel)
        later = succeeding("direct-api")
        resolver.strategies = [strategy, later]

        with pytest.raises(ResolutionCancelled):
            resolver.resolve(pokhara_records)
        assert later.calls == []
        assert not resolver.busy

    def test_new_resolve_cancels_previous_token(self, succeeding, pokhara_records):
        resolver = RouteResolver([succeeding()])
        first = resolver._begin()
        resolver.resolve(pokhara_records)
        assert first.cancelled

    def test_not_busy_after_completion(self, succeeding, pokhara_records):
        resolver = RouteResolver([succeeding()])
        resolver.resolve(pokhara_records)
        assert not resolver.busy

    def test_not_busy_after_exhaustion(self, failing, pokhara_records):
        resolver = RouteResolver([failing()])
        with pytest.raises(ResolutionExhausted):
            resolver.resolve(pokhara_records)
        assert not resolver.busy
