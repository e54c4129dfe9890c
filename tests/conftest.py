import sys
import os
import pytest

# In-memory database for the API tests; must be set before database is imported.
os.environ["DATABASE_URL"] = "sqlite://"

# Project root: main, database, route_map and routing are imported by name.
_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _root not in sys.path:
    sys.path.insert(0, _root)

from routing.models import Failure, ResolvedRoute, Success, Waypoint
from routing.strategies import RoutingStrategy


# ---------------------------------------------------------------------------
# Routing fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def pokhara_records():
    """Three stops around Pokhara, as the API hands them to the resolver."""
    return [
        {"id": "a", "name": "Lakeside", "latitude": 28.2096, "longitude": 83.9856},
        {"id": "b", "name": "Sarangkot", "latitude": 28.2439, "longitude": 83.9486},
        {"id": "c", "name": "Begnas Lake", "latitude": 28.1726, "longitude": 84.0985},
    ]


@pytest.fixture
def two_waypoints():
    return (
        Waypoint("a", "Lakeside", 28.2, 83.9),
        Waypoint("b", "Begnas Lake", 28.3, 84.0),
    )


def make_route(source="stub", approximate=False, distance=12000.0, duration=900.0):
    return ResolvedRoute(
        distance_meters=distance,
        duration_seconds=duration,
        geometry=((28.2, 83.9), (28.25, 83.95), (28.3, 84.0)),
        steps=(),
        approximate=approximate,
        source=source,
    )


class StubStrategy(RoutingStrategy):
    """Strategy returning a canned result and recording its calls."""

    def __init__(self, name, result=None, exc=None, on_call=None):
        self.name = name
        self.result = result
        self.exc = exc
        self.on_call = on_call
        self.calls = []

    def resolve(self, waypoints, token=None):
        self.calls.append((tuple(waypoints), token))
        if self.on_call is not None:
            self.on_call()
        if self.exc is not None:
            raise self.exc
        return self.result


@pytest.fixture
def succeeding():
    def _make(name="stub", **route_kwargs):
        return StubStrategy(name, result=Success(make_route(source=name, **route_kwargs)))
    return _make


@pytest.fixture
def failing():
    def _make(name="broken", reason="backend down"):
        return StubStrategy(name, result=Failure(reason))
    return _make


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    import main
    from database import Base, engine

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with TestClient(main.app) as test_client:
        yield test_client


def _register(client, email, name="Traveller"):
    resp = client.post("/auth/register", json={"email": email, "name": name, "password": "s3cret"})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def auth_headers(client):
    return _register(client, "alice@example.com", "Alice")


@pytest.fixture
def other_headers(client):
    return _register(client, "bob@example.com", "Bob")


@pytest.fixture
def trip_id(client, auth_headers):
    resp = client.post(
        "/trips",
        json={"name": "Pokhara", "start_date": "2026-03-01", "end_date": "2026-03-07"},
        headers=auth_headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["id"]
