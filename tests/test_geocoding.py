"""
Unit tests for geocoding.py
"""
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from geopy.exc import GeocoderTimedOut

import geocoding


def _place(name, lat, lon, place_id):
    return SimpleNamespace(
        address=name,
        latitude=float(lat),
        longitude=float(lon),
        raw={"display_name": name, "lat": lat, "lon": lon, "place_id": place_id},
    )


class TestLocationSuggestions:

    def test_short_query_skips_lookup(self):
        geolocator = MagicMock()
        assert geocoding.location_suggestions("Po", geolocator=geolocator) == []
        assert geocoding.location_suggestions("   ", geolocator=geolocator) == []
        assert geocoding.location_suggestions(None, geolocator=geolocator) == []
        geolocator.geocode.assert_not_called()

    def test_maps_results(self):
        geolocator = MagicMock()
        geolocator.geocode.return_value = [
            _place("Pokhara, Kaski, Nepal", "28.2096", "83.9856", 1001),
            _place("Pokhara Airport, Nepal", "28.2009", "83.9821", 1002),
        ]

        result = geocoding.location_suggestions(" Pokhara ", geolocator=geolocator)

        assert result == [
            {"display_name": "Pokhara, Kaski, Nepal", "lat": "28.2096", "lon": "83.9856", "place_id": 1001},
            {"display_name": "Pokhara Airport, Nepal", "lat": "28.2009", "lon": "83.9821", "place_id": 1002},
        ]
        geolocator.geocode.assert_called_once_with(
            "Pokhara", exactly_one=False, limit=5, addressdetails=True, timeout=10,
        )

    def test_no_results(self):
        geolocator = MagicMock()
        geolocator.geocode.return_value = None
        assert geocoding.location_suggestions("Atlantis", geolocator=geolocator) == []

    def test_lookup_failure_returns_empty(self):
        geolocator = MagicMock()
        geolocator.geocode.side_effect = GeocoderTimedOut("slow")
        assert geocoding.location_suggestions("Kathmandu", geolocator=geolocator) == []

    def test_default_geolocator_uses_configured_user_agent(self, monkeypatch):
        monkeypatch.setenv("NOMINATIM_USER_AGENT", "trip-mapper-tests")
        with patch("geocoding.Nominatim") as mock_nominatim:
            mock_nominatim.return_value.geocode.return_value = []
            geocoding.location_suggestions("Kathmandu")
            mock_nominatim.assert_called_once_with(user_agent="trip-mapper-tests")
