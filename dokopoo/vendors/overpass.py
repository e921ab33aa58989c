"""Client utilities for the OpenStreetMap Overpass API."""

import logging
from typing import Any, Dict, List, Mapping

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()

# Tokyo 23 wards
TOKYO_BBOX = {"south": 35.53, "west": 139.56, "north": 35.82, "east": 139.92}


class OverpassError(RuntimeError):
    """Raised when the Overpass API returns a non-successful response."""


def build_toilets_query(bbox: Mapping[str, float], timeout: int = 300) -> str:
    box = f"{bbox['south']},{bbox['west']},{bbox['north']},{bbox['east']}"
    return (
        f"[out:json][timeout:{timeout}];\n"
        "(\n"
        f'  node["amenity"="toilets"]({box});\n'
        f'  way["amenity"="toilets"]({box});\n'
        ");\n"
        "out center body;\n"
    )


def fetch_toilets(bbox: Mapping[str, float], *, url: str, timeout: int = 300) -> List[Dict[str, Any]]:
    query = build_toilets_query(bbox, timeout=timeout)
    response = _SESSION.post(url, data={"data": query}, timeout=timeout + 30)
    if response.status_code >= 400:
        logger.error("Overpass query failed: status=%s body=%s", response.status_code, response.text[:200])
        raise OverpassError(f"Overpass API error: {response.status_code}")
    payload = response.json()
    return payload.get("elements", [])
