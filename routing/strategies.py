"""Routing strategies, tried in order by the resolver.

1. ``EngineClientStrategy``  - routingpy's OSRM client, bounded by a timeout.
2. ``DirectApiStrategy``     - plain HTTP call to the same OSRM route service.
3. ``StraightLineStrategy``  - haversine lines between stops; never fails.

Every strategy returns ``Success(route)`` or ``Failure(reason)`` and
releases whatever it opened (worker thread, HTTP session) before returning,
so the next strategy starts clean.
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests
from routingpy import OSRM
from routingpy.exceptions import RouterError, Timeout as RouterTimeout

from .errors import UpstreamUnavailable
from .geo import haversine_km
from .models import Failure, NavigationStep, ResolvedRoute, StrategyResult, Success, Waypoint

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

OSRM_BASE_URL = os.getenv("OSRM_BASE_URL", "https://router.project-osrm.org").rstrip("/")
ROUTING_PROFILE = os.getenv("ROUTING_PROFILE", "driving")
ENGINE_TIMEOUT_SECONDS = float(os.getenv("ROUTING_ENGINE_TIMEOUT", "15"))
API_TIMEOUT_SECONDS = float(os.getenv("ROUTING_API_TIMEOUT", "30"))
# routingpy retries 503/504 for up to 60 s when retry_timeout is falsy; a
# tiny positive window makes the first retry raise Timeout instead.
ENGINE_RETRY_TIMEOUT_SECONDS = 0.001

# Flat 1 min/km (60 km/h) estimate for straight-line routes. Ignores terrain
# and road type on purpose; keep it as is.
FALLBACK_MINUTES_PER_KM = 1.0

_POLL_INTERVAL = 0.25
_ROUTE_PARAMS = {"overview": "full", "geometries": "geojson", "steps": "true"}
_COMPASS = ["north", "northeast", "east", "southeast", "south", "southwest", "west", "northwest"]
_MODIFIER_VERBS = {"fork": "Keep", "merge": "Merge"}


# ---------------------------------------------------------------------------
# OSRM payload parsing (shared by the engine-client and direct-API strategies)
# ---------------------------------------------------------------------------

def maneuver_type(maneuver: Dict[str, Any]) -> str:
    """Map an OSRM maneuver onto the display categories used for step icons."""
    kind = maneuver.get("type") or ""
    modifier = (maneuver.get("modifier") or "").replace(" ", "-")

    if kind in ("depart", "arrive"):
        return kind
    if modifier in ("left", "sharp-left"):
        return "turn-left"
    if modifier in ("right", "sharp-right"):
        return "turn-right"
    if modifier in ("slight-left", "slight-right"):
        return f"turn-{modifier}"
    if kind in ("continue", "new name"):
        return "continue"
    if modifier == "straight":
        return "straight"
    return kind or "straight"


def _heading(bearing: Any) -> str:
    try:
        return _COMPASS[int((float(bearing) % 360 + 22.5) // 45) % 8]
    except (TypeError, ValueError):
        return "out"


def instruction_text(step: Dict[str, Any]) -> str:
    """Human-readable instruction for one OSRM step.

    The public OSRM server sends no instruction text, so one is composed
    from the maneuver when the backend leaves it out.
    """
    maneuver = step.get("maneuver") or {}
    if maneuver.get("instruction"):
        return maneuver["instruction"]

    kind = maneuver.get("type") or ""
    modifier = maneuver.get("modifier")
    road = step.get("name") or ""
    onto = f" onto {road}" if road else ""

    if kind == "depart":
        text = f"Head {_heading(maneuver.get('bearing_after'))}"
        return f"{text} on {road}" if road else text
    if kind in ("roundabout", "rotary", "roundabout turn"):
        exit_number = maneuver.get("exit")
        if exit_number:
            return f"At the roundabout, take exit {exit_number}{onto}"
        return f"Enter the roundabout{onto}"
    if modifier == "uturn":
        return f"Make a U-turn{onto}"
    if kind in ("continue", "new name") or modifier in (None, "straight"):
        if road:
            return f"Continue{onto}"
        return f"Continue for {float(step.get('distance') or 0) / 1000:.1f} km"

    verb = _MODIFIER_VERBS.get(kind, "Turn")
    return f"{verb} {modifier}{onto}"


def _stop_name(waypoints: Sequence[Waypoint], index: int) -> str:
    if 0 <= index < len(waypoints):
        return waypoints[index].name
    return f"Stop {index + 1}"


def _steps_from_legs(legs: List[Dict[str, Any]], waypoints: Sequence[Waypoint]) -> List[NavigationStep]:
    steps: List[NavigationStep] = []
    last_leg = len(legs) - 1

    for leg_index, leg in enumerate(legs):
        for raw in leg.get("steps") or []:
            maneuver = raw.get("maneuver") or {}
            if maneuver.get("type") == "arrive":
                # leg N ends at waypoint N + 1
                stop = _stop_name(waypoints, leg_index + 1)
                kind = "arrive" if leg_index == last_leg else "waypoint"
                steps.append(NavigationStep(f"Arrive at {stop}", 0.0, 0.0, kind))
                continue
            steps.append(NavigationStep(
                instruction=instruction_text(raw),
                distance_meters=float(raw.get("distance") or 0),
                duration_seconds=float(raw.get("duration") or 0),
                maneuver_type=maneuver_type(maneuver),
            ))
    return steps


def route_from_payload(payload: Any, waypoints: Sequence[Waypoint], source: str) -> ResolvedRoute:
    """Build a ResolvedRoute from an OSRM ``/route`` response.

    Raises UpstreamUnavailable for anything other than a well-formed
    ``code == "Ok"`` response with at least one route.
    """
    if not isinstance(payload, dict):
        raise UpstreamUnavailable("malformed routing payload")
    if payload.get("code") != "Ok":
        raise UpstreamUnavailable(f"routing backend returned code={payload.get('code')!r}")

    routes = payload.get("routes")
    if not routes:
        raise UpstreamUnavailable("routing backend returned no routes")

    route = routes[0]
    try:
        coordinates = route["geometry"]["coordinates"]
        geometry = tuple((float(lat), float(lng)) for lng, lat, *_ in coordinates)
        distance = float(route["distance"])
        duration = float(route["duration"])
        steps = _steps_from_legs(route.get("legs") or [], waypoints)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise UpstreamUnavailable(f"malformed route: {exc!r}") from exc

    return ResolvedRoute(
        distance_meters=distance,
        duration_seconds=duration,
        geometry=geometry,
        steps=tuple(steps),
        approximate=False,
        source=source,
    )


def parse_route(payload: Any, waypoints: Sequence[Waypoint], source: str) -> StrategyResult:
    try:
        return Success(route_from_payload(payload, waypoints, source))
    except UpstreamUnavailable as exc:
        return Failure(str(exc))


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

class RoutingStrategy:
    name = "strategy"

    def resolve(self, waypoints: Sequence[Waypoint], token=None) -> StrategyResult:
        raise NotImplementedError


class EngineClientStrategy(RoutingStrategy):
    """Route through routingpy's OSRM client on a worker thread.

    The call is abandoned once ``timeout`` passes or the token is cancelled;
    whatever the worker returns afterwards is never read.
    """

    name = "engine-client"

    def __init__(
        self,
        base_url: Optional[str] = None,
        profile: Optional[str] = None,
        timeout: Optional[float] = None,
        client_factory: Optional[Callable[[], Any]] = None,
    ):
        self.base_url = base_url or OSRM_BASE_URL
        self.profile = profile or ROUTING_PROFILE
        self.timeout = ENGINE_TIMEOUT_SECONDS if timeout is None else timeout
        self._client_factory = client_factory or self._default_client

    def _default_client(self):
        return OSRM(
            base_url=self.base_url,
            timeout=self.timeout,
            retry_timeout=ENGINE_RETRY_TIMEOUT_SECONDS,
        )

    def resolve(self, waypoints: Sequence[Waypoint], token=None) -> StrategyResult:
        client = self._client_factory()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="routing-engine")
        try:
            future = executor.submit(
                client.directions,
                locations=[[w.longitude, w.latitude] for w in waypoints],
                profile=self.profile,
                steps=True,
                geometries="geojson",
                overview="full",
            )
            deadline = time.monotonic() + self.timeout
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return Failure(f"engine client timed out after {self.timeout:g}s")
                done, _ = wait([future], timeout=min(_POLL_INTERVAL, remaining))
                if done:
                    break
                if token is not None and token.cancelled:
                    return Failure("cancelled")

            try:
                direction = future.result()
            except (RouterError, RouterTimeout, requests.RequestException) as exc:
                return Failure(f"engine client error: {exc}")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return parse_route(getattr(direction, "raw", None), waypoints, self.name)


class DirectApiStrategy(RoutingStrategy):
    name = "direct-api"

    def __init__(
        self,
        base_url: Optional[str] = None,
        profile: Optional[str] = None,
        timeout: Optional[float] = None,
        session_factory: Callable[[], Any] = requests.Session,
    ):
        self.base_url = (base_url or OSRM_BASE_URL).rstrip("/")
        self.profile = profile or ROUTING_PROFILE
        self.timeout = API_TIMEOUT_SECONDS if timeout is None else timeout
        self._session_factory = session_factory

    def route_url(self, waypoints: Sequence[Waypoint]) -> str:
        coords = ";".join(f"{w.longitude},{w.latitude}" for w in waypoints)
        return f"{self.base_url}/route/v1/{self.profile}/{coords}"

    def resolve(self, waypoints: Sequence[Waypoint], token=None) -> StrategyResult:
        url = self.route_url(waypoints)
        log.debug("Fetching route from %s", url)

        session = self._session_factory()
        try:
            resp = session.get(url, params=_ROUTE_PARAMS, timeout=self.timeout)
        except requests.RequestException as exc:
            session.close()
            return Failure(f"request failed: {exc}")

        try:
            payload = resp.json()
        except ValueError:
            return Failure(f"malformed payload (HTTP {resp.status_code})")
        finally:
            session.close()

        if token is not None and token.cancelled:
            return Failure("cancelled")
        return parse_route(payload, waypoints, self.name)


class StraightLineStrategy(RoutingStrategy):
    name = "straight-line"

    def __init__(self, minutes_per_km: float = FALLBACK_MINUTES_PER_KM):
        self.minutes_per_km = minutes_per_km

    def resolve(self, waypoints: Sequence[Waypoint], token=None) -> StrategyResult:
        if not waypoints:
            return Failure("no waypoints")

        steps: List[NavigationStep] = []
        for current, nxt in zip(waypoints, waypoints[1:]):
            km = haversine_km(current.latlng, nxt.latlng)
            steps.append(NavigationStep(
                instruction=f"Head directly from {current.name} to {nxt.name}",
                distance_meters=km * 1000,
                duration_seconds=km * self.minutes_per_km * 60,
                maneuver_type="straight",
            ))
        steps.append(NavigationStep(f"Arrive at {waypoints[-1].name}", 0.0, 0.0, "arrive"))

        return Success(ResolvedRoute(
            distance_meters=sum(s.distance_meters for s in steps),
            duration_seconds=sum(s.duration_seconds for s in steps),
            geometry=tuple(w.latlng for w in waypoints),
            steps=tuple(steps),
            approximate=True,
            source=self.name,
        ))


def default_strategies() -> List[RoutingStrategy]:
    return [EngineClientStrategy(), DirectApiStrategy(), StraightLineStrategy()]
