"""Turn a resolved route into display strings for the map panel."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple

from .models import Resolution, ResolvedRoute

STEP_ICONS = {
    "depart": "🚀",
    "arrive": "🏁",
    "waypoint": "📍",
    "turn-left": "↰",
    "turn-right": "↱",
    "turn-slight-left": "↙",
    "turn-slight-right": "↘",
    "continue": "⬆",
    "straight": "🔷",
}
DEFAULT_STEP_ICON = "➡"
APPROXIMATE_PREFIX = "~"


def step_icon(maneuver_type: str) -> str:
    return STEP_ICONS.get(maneuver_type, DEFAULT_STEP_ICON)


def format_distance(meters: float) -> str:
    return f"{meters / 1000:.1f} km"


def format_duration(seconds: float) -> str:
    """``2h 5m`` from one hour up, ``45m`` below, ``< 1 min`` for nothing."""
    total_minutes = int(seconds // 60)
    if total_minutes < 1:
        return "< 1 min"
    hours, minutes = divmod(total_minutes, 60)
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_step_distance(meters: float) -> str:
    if meters >= 1000:
        return f"{meters / 1000:.1f} km"
    return f"{meters:.0f} m"


def format_step_time(seconds: float) -> str:
    minutes = round(seconds / 60)
    if minutes < 1:
        return "< 1 min"
    if minutes >= 60:
        hours, rest = divmod(minutes, 60)
        return f"{hours}h {rest}m"
    return f"{minutes} min"


@dataclass(frozen=True)
class StepDescriptor:
    index: int
    icon: str
    instruction: str
    maneuver_type: str
    distance: Optional[str] = None
    duration: Optional[str] = None


@dataclass(frozen=True)
class ItinerarySummary:
    distance: str
    duration: str
    steps: Tuple[StepDescriptor, ...]
    approximate: bool
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def summarize_route(route: ResolvedRoute) -> ItinerarySummary:
    prefix = APPROXIMATE_PREFIX if route.approximate else ""
    steps = tuple(
        StepDescriptor(
            index=i + 1,
            icon=step_icon(step.maneuver_type),
            instruction=step.instruction,
            maneuver_type=step.maneuver_type,
            distance=format_step_distance(step.distance_meters) if step.distance_meters > 0 else None,
            duration=format_step_time(step.duration_seconds) if step.duration_seconds > 0 else None,
        )
        for i, step in enumerate(route.steps)
    )
    return ItinerarySummary(
        distance=prefix + format_distance(route.distance_meters),
        duration=prefix + format_duration(route.duration_seconds),
        steps=steps,
        approximate=route.approximate,
        source=route.source,
    )


def summarize(resolution: Resolution) -> Optional[ItinerarySummary]:
    """Summary for a multi-stop route; None for empty and single-point views."""
    if resolution.route is None or len(resolution.waypoints) < 2:
        return None
    return summarize_route(resolution.route)
