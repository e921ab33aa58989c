"""Utilities for transforming Overpass elements into facility rows."""

import logging
from typing import Any, Dict, Mapping, Optional

from dokopoo.models import VenueType

logger = logging.getLogger(__name__)

_OUTDOOR_VENUES = {VenueType.STREET.value, VenueType.PARK.value}
_STATION_OPERATOR_HINTS = ("jr", "metro", "station")
_MALL_BUILDING_HINTS = ("retail", "commercial")


def parse_venue_type(tags: Mapping[str, Any]) -> str:
    location = str(tags.get("location") or "").lower()
    building = str(tags.get("building") or "").lower()
    operator = str(tags.get("operator") or "").lower()

    if tags.get("railway") or any(hint in operator for hint in _STATION_OPERATOR_HINTS):
        return VenueType.STATION.value
    if any(hint in building for hint in _MALL_BUILDING_HINTS) or tags.get("shop"):
        return VenueType.MALL.value
    if location == "indoor" or building:
        return VenueType.CONVENIENCE_STORE.value
    if tags.get("leisure") == "park" or tags.get("landuse") == "recreation_ground":
        return VenueType.PARK.value
    return VenueType.STREET.value


def parse_address(tags: Mapping[str, Any]) -> Optional[str]:
    if tags.get("addr:full"):
        return tags["addr:full"]
    parts = [
        tags.get("addr:housenumber"),
        tags.get("addr:street"),
        tags.get("addr:city"),
        tags.get("addr:postcode"),
    ]
    parts = [str(part) for part in parts if part]
    return ", ".join(parts) if parts else None


def to_facility_row(element: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    tags = element.get("tags") or {}
    center = element.get("center") or {}
    lat = element.get("lat") or center.get("lat")
    lon = element.get("lon") or center.get("lon")
    if lat is None or lon is None:
        logger.debug("Skipping element without coordinates: %s", element.get("id"))
        return None

    venue_type = parse_venue_type(tags)

    return {
        "osm_id": element.get("id"),
        "name": tags.get("name") or tags.get("name:en"),
        "description": tags.get("description") or tags.get("description:en"),
        "latitude": float(lat),
        "longitude": float(lon),
        "is_free": tags.get("fee") != "yes",
        "is_accessible": tags.get("wheelchair") == "yes",
        "has_baby_change": tags.get("changing_table") == "yes" or tags.get("diaper") == "yes",
        "is_gender_neutral": tags.get("unisex") == "yes" or tags.get("gender") == "unisex",
        "is_indoor": venue_type not in _OUTDOOR_VENUES,
        "venue_type": venue_type,
        "building_name": tags.get("building:name") or tags.get("name:building"),
        "address": parse_address(tags),
        "floor_level": tags.get("level") or tags.get("addr:floor"),
        "opening_hours": tags.get("opening_hours"),
    }
