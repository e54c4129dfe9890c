"""
Folium rendering for trip routes and the visited-places overview.

``MapSession`` is the per-view owner of a route resolution: it holds the
resolver, the current resolution/summary/error, and the rendered map.
Showing a new set of locations tears the previous one down first.
"""
from __future__ import annotations

import html
import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

import folium

from routing import RouteResolver, summarize
from routing.errors import ResolutionCancelled, ResolutionExhausted
from routing.models import Resolution, ResolutionKind

log = logging.getLogger(__name__)

START_COLOR = "#10b981"
END_COLOR = "#ef4444"
STOP_COLOR = "#3b82f6"
ROUTE_COLOR = "#ef4444"
APPROXIMATE_ROUTE_COLOR = "#6b7280"
TRIP_COLORS = [
    "#3B82F6", "#EF4444", "#10B981", "#F59E0B", "#8B5CF6",
    "#EC4899", "#06B6D4", "#84CC16", "#F97316", "#6366F1",
]
TILES_URL = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
TILES_ATTR = "© OpenStreetMap contributors"


def numbered_icon(number: int, color: str, size: int = 30) -> folium.DivIcon:
    return folium.DivIcon(
        html=(
            f'<div style="background-color:{color};width:{size}px;height:{size}px;'
            f'border-radius:50%;border:3px solid white;display:flex;'
            f'align-items:center;justify-content:center;color:white;'
            f'font-weight:bold;font-size:12px;box-shadow:0 2px 4px rgba(0,0,0,.3);"'
            f'>{number}</div>'
        ),
        icon_size=(size, size),
        icon_anchor=(size // 2, size // 2),
    )


def _marker_color(index: int, total: int) -> str:
    if index == 0:
        return START_COLOR
    if index == total - 1:
        return END_COLOR
    return STOP_COLOR


def _popup_html(waypoint, index: int, total: int) -> str:
    if total == 1:
        label = "📍 "
    elif index == 0:
        label = "🚀 Start: "
    elif index == total - 1:
        label = "🏁 End: "
    else:
        label = f"📍 Stop {index + 1}: "
    popup = f"<b>{label}{html.escape(waypoint.name)}</b><br>"
    if waypoint.description:
        popup += f"{html.escape(waypoint.description)}<br>"
    popup += f"📍 {waypoint.latitude:.6f}, {waypoint.longitude:.6f}"
    if total > 1:
        popup += f"<br>Stop {index + 1} of {total}"
    return popup


def _base_map(**kwargs) -> folium.Map:
    m = folium.Map(tiles=None, **kwargs)
    folium.TileLayer(tiles=TILES_URL, attr=TILES_ATTR, name="OpenStreetMap", max_zoom=19).add_to(m)
    return m


def build_route_map(resolution: Resolution, overview: bool = False) -> Optional[folium.Map]:
    """Render a resolution; None when there is nothing to show."""
    if resolution.kind is ResolutionKind.EMPTY:
        return None

    waypoints = resolution.waypoints
    if resolution.kind is ResolutionKind.SINGLE:
        only = waypoints[0]
        m = _base_map(location=list(only.latlng), zoom_start=13)
        folium.Marker(
            location=list(only.latlng),
            popup=folium.Popup(_popup_html(only, 0, 1), max_width=250),
            tooltip=html.escape(only.name),
            icon=numbered_icon(1, START_COLOR),
        ).add_to(m)
        return m

    m = _base_map()
    total = len(waypoints)
    for i, wp in enumerate(waypoints):
        folium.Marker(
            location=list(wp.latlng),
            popup=folium.Popup(_popup_html(wp, i, total), max_width=250),
            tooltip=f"{i + 1}. {html.escape(wp.name)}",
            icon=numbered_icon(i + 1, _marker_color(i, total)),
        ).add_to(m)

    route = resolution.route
    if route is not None and len(route.geometry) > 1:
        if route.approximate:
            folium.PolyLine(
                locations=[list(p) for p in route.geometry],
                color=APPROXIMATE_ROUTE_COLOR,
                weight=4,
                opacity=0.6,
                dash_array="15, 10",
                tooltip="Straight-line approximation",
            ).add_to(m)
        else:
            folium.PolyLine(
                locations=[list(p) for p in route.geometry],
                color=ROUTE_COLOR,
                weight=4,
                opacity=0.8,
                line_cap="round",
            ).add_to(m)

    bounds = [list(wp.latlng) for wp in waypoints]
    m.fit_bounds(bounds, padding=(20, 20), max_zoom=12 if overview else 15)
    return m


def build_visited_map(locations: Iterable[Dict[str, Any]]) -> folium.Map:
    """All visited locations, one colour per trip, numbered by order within the trip."""
    trips: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
    for loc in locations:
        trips.setdefault(loc["trip_id"], []).append(loc)

    if not trips:
        # nothing visited yet; show a default view
        return _base_map(location=[28.3949, 84.1240], zoom_start=7)

    m = _base_map()
    bounds = []
    for trip_index, trip_locations in enumerate(trips.values()):
        color = TRIP_COLORS[trip_index % len(TRIP_COLORS)]
        ordered = sorted(trip_locations, key=lambda loc: loc.get("order", 0))
        for i, loc in enumerate(ordered):
            point = [loc["latitude"], loc["longitude"]]
            title = html.escape(loc["title"])
            trip_name = html.escape(loc["trip_name"])
            bounds.append(point)
            folium.Marker(
                location=point,
                popup=folium.Popup(
                    f"<b>{title}</b><br>✈️ {trip_name}<br>"
                    f"📍 {loc['latitude']:.4f}, {loc['longitude']:.4f}",
                    max_width=250,
                ),
                tooltip=f"{trip_name}: {title}",
                icon=numbered_icon(i + 1, color, size=24),
            ).add_to(m)
        if len(ordered) > 1:
            folium.PolyLine(
                locations=[[loc["latitude"], loc["longitude"]] for loc in ordered],
                color=color,
                weight=3,
                opacity=0.7,
                dash_array="5, 5",
            ).add_to(m)

    m.fit_bounds(bounds, padding=(20, 20), max_zoom=12)
    return m


class MapSession:
    """State for one rendered trip map.

    Only one resolution runs per session; ``show`` cancels whatever was in
    flight and clears the previous map before resolving again.
    """

    def __init__(self, resolver: Optional[RouteResolver] = None, overview: bool = False):
        self.resolver = resolver or RouteResolver()
        self.overview = overview
        self.records: List[Any] = []
        self.resolution: Optional[Resolution] = None
        self.summary = None
        self.map: Optional[folium.Map] = None
        self.error: Optional[ResolutionExhausted] = None
        self._shown = 0

    def teardown(self) -> None:
        self.resolver.cancel()
        self.resolution = None
        self.summary = None
        self.map = None
        self.error = None

    def show(self, records: Iterable[Any]) -> Optional[Resolution]:
        """Resolve and render *records*; returns None if superseded or failed."""
        self.teardown()
        self._shown += 1
        ticket = self._shown
        self.records = list(records)
        try:
            resolution = self.resolver.resolve(self.records)
        except ResolutionCancelled:
            log.debug("Map resolution superseded")
            return None
        except ResolutionExhausted as exc:
            log.error("Route resolution exhausted after %s", ", ".join(exc.attempts))
            if ticket == self._shown:
                self.error = exc
            return None

        if ticket != self._shown:
            # a newer show() started while this one was resolving
            return None
        self.resolution = resolution
        self.summary = summarize(resolution)
        self.map = build_route_map(resolution, overview=self.overview)
        return resolution

    def retry(self) -> Optional[Resolution]:
        """Re-run the whole pipeline on the last records shown."""
        return self.show(self.records)

    def render_html(self) -> str:
        if self.map is None:
            return ""
        return self.map.get_root().render()
