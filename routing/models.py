"""Value types shared by the route resolution pipeline.

Everything here is frozen: a route is produced once per resolution attempt
and handed to the renderer as-is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union

LatLng = Tuple[float, float]


@dataclass(frozen=True)
class Waypoint:
    id: str
    name: str
    latitude: float
    longitude: float
    description: Optional[str] = None

    @property
    def latlng(self) -> LatLng:
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class NavigationStep:
    instruction: str
    distance_meters: float
    duration_seconds: float
    maneuver_type: str


@dataclass(frozen=True)
class ResolvedRoute:
    """A path through the waypoints, or an approximation of one.

    ``approximate`` is set when the geometry is straight lines between stops
    rather than real roads, so the caller can style it differently.
    """
    distance_meters: float
    duration_seconds: float
    geometry: Tuple[LatLng, ...]
    steps: Tuple[NavigationStep, ...]
    approximate: bool = False
    source: str = ""


@dataclass(frozen=True)
class Success:
    route: ResolvedRoute
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Failure:
    reason: str
    ok: bool = field(default=False, init=False)


StrategyResult = Union[Success, Failure]


class ResolutionKind(str, Enum):
    EMPTY = "empty"
    SINGLE = "single"
    ROUTE = "route"


@dataclass(frozen=True)
class Resolution:
    kind: ResolutionKind
    waypoints: Tuple[Waypoint, ...] = ()
    route: Optional[ResolvedRoute] = None
    attempts: Tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> "Resolution":
        return cls(kind=ResolutionKind.EMPTY)

    @classmethod
    def single(cls, waypoint: Waypoint) -> "Resolution":
        point = ResolvedRoute(
            distance_meters=0.0,
            duration_seconds=0.0,
            geometry=(waypoint.latlng,),
            steps=(),
            source="single-point",
        )
        return cls(kind=ResolutionKind.SINGLE, waypoints=(waypoint,), route=point)

    @property
    def is_empty(self) -> bool:
        return self.kind is ResolutionKind.EMPTY

    @property
    def approximate(self) -> bool:
        return bool(self.route and self.route.approximate)
