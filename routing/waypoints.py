"""Filter raw location records down to usable waypoints.

Records come from the database (``Location`` rows), from API payloads
(dicts) or from the front end, so both mappings and attribute objects are
accepted.  Anything with unusable coordinates is dropped, never raised,
and the surviving records keep their relative order.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional

from .errors import InvalidInput
from .models import Waypoint

log = logging.getLogger(__name__)

_NAME_KEYS = ("name", "title")
_LAT_KEYS = ("latitude", "lat")
_LNG_KEYS = ("longitude", "lng", "lon")


def _field(record: Any, keys: Iterable[str]) -> Any:
    for key in keys:
        if isinstance(record, Mapping):
            if key in record:
                return record[key]
        elif hasattr(record, key):
            return getattr(record, key)
    return None


def parse_coordinate(value: Any) -> Optional[float]:
    """Return *value* as a finite float, or None if it isn't one."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def is_valid_coordinate(lat: Any, lng: Any) -> bool:
    lat_f = parse_coordinate(lat)
    lng_f = parse_coordinate(lng)
    if lat_f is None or lng_f is None:
        return False
    return -90 <= lat_f <= 90 and -180 <= lng_f <= 180


def to_waypoint(record: Any, position: int = 0) -> Waypoint:
    """Convert one record, raising InvalidInput when its coordinates are bad."""
    raw_lat = _field(record, _LAT_KEYS)
    raw_lng = _field(record, _LNG_KEYS)
    if not is_valid_coordinate(raw_lat, raw_lng):
        raise InvalidInput(f"Invalid coordinates: ({raw_lat!r}, {raw_lng!r})")

    name = _field(record, _NAME_KEYS)
    name = str(name).strip() if name is not None else ""
    record_id = _field(record, ("id",))
    description = _field(record, ("description",))

    return Waypoint(
        id=str(record_id) if record_id is not None else str(position),
        name=name or f"Stop {position + 1}",
        latitude=parse_coordinate(raw_lat),
        longitude=parse_coordinate(raw_lng),
        description=description or None,
    )


def validate_waypoints(records: Optional[Iterable[Any]]) -> List[Waypoint]:
    waypoints: List[Waypoint] = []
    dropped = 0
    for position, record in enumerate(records or ()):
        try:
            waypoints.append(to_waypoint(record, position))
        except InvalidInput as exc:
            dropped += 1
            log.debug("Skipping record %d: %s", position, exc)

    if dropped:
        log.info("Dropped %d location(s) with invalid coordinates", dropped)
    return waypoints
