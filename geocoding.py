"""Location search suggestions backed by Nominatim (via geopy).

Used by the "add location" form: the user types a place name and picks one
of the returned candidates, whose coordinates are then stored on the trip.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

from geopy.exc import GeopyError
from geopy.geocoders import Nominatim

log = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3
MAX_SUGGESTIONS = 5


def _get_user_agent() -> str:
    """Read lazily so that dotenv has loaded by the time we need it."""
    return os.getenv("NOMINATIM_USER_AGENT", "trip-mapper")


def _geolocator() -> Nominatim:
    return Nominatim(user_agent=_get_user_agent())


def location_suggestions(
    query: Optional[str],
    limit: int = MAX_SUGGESTIONS,
    geolocator: Any = None,
) -> List[Dict[str, Any]]:
    """Return up to *limit* ``{display_name, lat, lon, place_id}`` candidates.

    Queries shorter than three characters return nothing without a lookup.
    Lookup failures are logged and also return an empty list.
    """
    query = (query or "").strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []

    geolocator = geolocator or _geolocator()
    try:
        results = geolocator.geocode(
            query,
            exactly_one=False,
            limit=limit,
            addressdetails=True,
            timeout=10,
        )
    except GeopyError as exc:
        log.warning("Location suggestion lookup failed for %r: %s", query, exc)
        return []

    suggestions = []
    for place in results or []:
        raw = place.raw or {}
        suggestions.append({
            "display_name": raw.get("display_name", place.address),
            "lat": raw.get("lat", place.latitude),
            "lon": raw.get("lon", place.longitude),
            "place_id": raw.get("place_id"),
        })
    return suggestions
