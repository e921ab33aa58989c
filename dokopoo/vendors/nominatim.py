"""Client utilities for the Nominatim reverse-geocoding API."""

import logging
from typing import Any, Dict

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
DEFAULT_ZOOM = 18


class NominatimError(RuntimeError):
    """Raised when Nominatim returns an unusable response."""


def reverse_geocode(
    latitude: float,
    longitude: float,
    *,
    base_url: str,
    user_agent: str,
    timeout: float = 5.0,
    zoom: int = DEFAULT_ZOOM,
) -> Dict[str, Any]:
    params = {
        "lat": latitude,
        "lon": longitude,
        "format": "json",
        "zoom": zoom,
        "addressdetails": 1,
    }
    response = _SESSION.get(
        f"{base_url.rstrip('/')}/reverse",
        params=params,
        headers={"User-Agent": user_agent},
        timeout=timeout,
    )
    response.raise_for_status()
    payload = response.json()
    if not isinstance(payload, dict):
        raise NominatimError("unexpected payload type")
    if "error" in payload:
        logger.debug("reverse_geocode failed: lat=%s lon=%s error=%s", latitude, longitude, payload["error"])
        raise NominatimError(payload["error"])
    return payload


class NominatimGeocoder:
    """Reverse-geocode capability backed by a Nominatim instance."""

    def __init__(self, base_url: str, user_agent: str, timeout: float = 5.0, zoom: int = DEFAULT_ZOOM) -> None:
        self.base_url = base_url
        self.user_agent = user_agent
        self.timeout = timeout
        self.zoom = zoom

    def reverse(self, latitude: float, longitude: float) -> Dict[str, Any]:
        return reverse_geocode(
            latitude,
            longitude,
            base_url=self.base_url,
            user_agent=self.user_agent,
            timeout=self.timeout,
            zoom=self.zoom,
        )
