"""Core data models shared by the search engine, the store and the HTTP layer."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class VenueType(str, Enum):
    STATION = "station"
    MALL = "mall"
    DEPARTMENT_STORE = "department_store"
    CONVENIENCE_STORE = "convenience_store"
    PARK = "park"
    STREET = "street"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class Facility:
    """A public restroom as stored in the ``toilets`` table."""

    id: Optional[int]
    latitude: Optional[float]
    longitude: Optional[float]
    osm_id: Optional[int] = None
    name: Optional[str] = None
    description: Optional[str] = None
    is_free: bool = False
    is_accessible: bool = False
    has_baby_change: bool = False
    is_gender_neutral: bool = False
    is_indoor: bool = False
    venue_type: str = VenueType.UNKNOWN.value
    building_name: Optional[str] = None
    address: Optional[str] = None
    floor_level: Optional[str] = None
    opening_hours: Optional[str] = None
    status: str = "open"
    quality_score: Optional[float] = None
    review_count: int = 0
    positive_percentage: Optional[int] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Facility":
        """Build a facility from a database row (``RealDictCursor`` output)."""
        return cls(
            id=row.get("id"),
            osm_id=row.get("osm_id"),
            latitude=_safe_float(row.get("latitude")),
            longitude=_safe_float(row.get("longitude")),
            name=row.get("name"),
            description=row.get("description"),
            is_free=bool(row.get("is_free")),
            is_accessible=bool(row.get("is_accessible")),
            has_baby_change=bool(row.get("has_baby_change")),
            is_gender_neutral=bool(row.get("is_gender_neutral")),
            is_indoor=bool(row.get("is_indoor")),
            venue_type=row.get("venue_type") or VenueType.UNKNOWN.value,
            building_name=row.get("building_name"),
            address=row.get("address"),
            floor_level=row.get("floor_level"),
            opening_hours=row.get("opening_hours"),
            status=row.get("status") or "open",
            quality_score=_safe_float(row.get("quality_score")),
            review_count=int(row.get("review_count") or 0),
            positive_percentage=_safe_int(row.get("positive_percentage")),
        )

    def has_valid_geometry(self) -> bool:
        if self.latitude is None or self.longitude is None:
            return False
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            return False
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0

    def has_complete_address(self) -> bool:
        return bool(self.building_name) and bool(self.address)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class Candidate:
    """A facility annotated with query-time distance and rank for one search."""

    facility: Facility
    distance_m: int
    walk_time_min: int
    rank_score: float

    def to_dict(self) -> Dict[str, Any]:
        payload = self.facility.to_dict()
        payload["distance_m"] = self.distance_m
        payload["walk_time_min"] = self.walk_time_min
        payload["rank_score"] = self.rank_score
        return payload


@dataclass(slots=True)
class Review:
    id: Optional[int]
    facility_id: int
    rating: int
    fingerprint: Optional[str] = None
    comment: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any], facility_id: Optional[int] = None) -> "Review":
        return cls(
            id=row.get("id"),
            facility_id=row.get("toilet_id", facility_id),
            rating=int(row["rating"]),
            fingerprint=row.get("fingerprint"),
            comment=row.get("comment"),
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        created_at = self.created_at.isoformat() if self.created_at else None
        return {
            "id": self.id,
            "rating": self.rating,
            "comment": self.comment,
            "created_at": created_at,
        }


def _safe_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None
