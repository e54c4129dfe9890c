"""Route resolution for trip maps.

Waypoint validation -> strategy chain (routing engine client, direct OSRM
call, straight-line fallback) -> display summary.
"""

from .errors import (
    AuthorizationDenied,
    InvalidInput,
    ResolutionCancelled,
    ResolutionExhausted,
    RoutingError,
    UpstreamUnavailable,
)
from .models import (
    Failure,
    NavigationStep,
    Resolution,
    ResolutionKind,
    ResolvedRoute,
    Success,
    Waypoint,
)
from .resolver import RouteResolver, resolve_route
from .summary import ItinerarySummary, summarize
from .waypoints import validate_waypoints

__all__ = [
    "AuthorizationDenied",
    "Failure",
    "InvalidInput",
    "ItinerarySummary",
    "NavigationStep",
    "Resolution",
    "ResolutionCancelled",
    "ResolutionExhausted",
    "ResolutionKind",
    "ResolvedRoute",
    "RouteResolver",
    "RoutingError",
    "Success",
    "UpstreamUnavailable",
    "Waypoint",
    "resolve_route",
    "summarize",
    "validate_waypoints",
]
