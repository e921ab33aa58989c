"""Nearby search: radius expansion, scoring and top-K selection."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from dokopoo.models import Candidate, Facility

logger = logging.getLogger(__name__)

PROVIDER_LIMIT = 20
WALK_SPEED_M_PER_MIN = 80
DISTANCE_FALLOFF_M = 500
DISTANCE_WEIGHT = 0.4
QUALITY_WEIGHT = 0.6
DEFAULT_QUALITY_SCORE = 5.0
MIN_TRUSTED_REVIEWS = 5
FULL_TRUST_REVIEWS = 10


class InvalidInputError(ValueError):
    """Raised when search coordinates or parameters cannot be used."""


class SpatialQueryProvider(Protocol):
    def find_open_within_radius(
        self, latitude: float, longitude: float, radius_m: int, limit: int
    ) -> Sequence[Tuple[Facility, float]]:
        ...


class SearchState(Enum):
    QUERYING = "querying"
    EXPAND = "expand"
    DONE = "done"


@dataclass
class NearbyResult:
    results: List[Candidate] = field(default_factory=list)
    radius_used: int = 0
    expanded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [candidate.to_dict() for candidate in self.results],
            "radius_used": self.radius_used,
            "expanded": self.expanded,
        }


def parse_coordinate(value: Any, name: str, bound: float = 180.0) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidInputError(f"{name} is required")
    if isinstance(value, bool):
        raise InvalidInputError(f"{name} must be numeric")
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"{name} must be numeric") from exc
    if not math.isfinite(parsed):
        raise InvalidInputError(f"{name} must be finite")
    if abs(parsed) > bound:
        raise InvalidInputError(f"{name} must be between -{bound:g} and {bound:g}")
    return parsed


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def walk_time_minutes(distance_m: float) -> int:
    return max(1, round_half_up(distance_m / WALK_SPEED_M_PER_MIN))


def rank_score(
    distance_m: float,
    quality_score: Optional[float],
    positive_percentage: Optional[float],
    review_count: Optional[int],
) -> float:
    """Blend proximity with quality, trusting user reviews as they accumulate.

    Below ``MIN_TRUSTED_REVIEWS`` only the metadata quality counts. From there
    the user approval rate is mixed in linearly until it fully replaces the
    metadata estimate at ``FULL_TRUST_REVIEWS``.
    """
    distance_score = max(0.0, 1 - distance_m / DISTANCE_FALLOFF_M)

    meta_quality = (DEFAULT_QUALITY_SCORE if quality_score is None else quality_score) / 10
    count = review_count or 0
    if count < MIN_TRUSTED_REVIEWS:
        quality_norm = meta_quality
    else:
        user_quality = (positive_percentage or 0) / 100
        review_weight = min(count / FULL_TRUST_REVIEWS, 1.0)
        quality_norm = meta_quality * (1 - review_weight) + user_quality * review_weight

    return DISTANCE_WEIGHT * distance_score + QUALITY_WEIGHT * quality_norm


def to_candidate(facility: Facility, raw_distance_m: float) -> Candidate:
    return Candidate(
        facility=facility,
        distance_m=round_half_up(raw_distance_m),
        walk_time_min=walk_time_minutes(raw_distance_m),
        rank_score=rank_score(
            raw_distance_m,
            facility.quality_score,
            facility.positive_percentage,
            facility.review_count,
        ),
    )


def rank_candidates(rows: Sequence[Tuple[Facility, float]], top_k: int) -> List[Candidate]:
    """Score provider rows and keep the ``top_k`` best.

    ``sorted`` is stable, so equal scores keep the provider's distance order.
    """
    candidates = []
    for facility, raw_distance in rows:
        if not facility.has_valid_geometry():
            logger.debug("Dropping facility %s with invalid geometry", facility.id)
            continue
        candidates.append(to_candidate(facility, float(raw_distance)))

    ranked = sorted(candidates, key=lambda candidate: candidate.rank_score, reverse=True)
    return ranked[:top_k]


def find_nearby(
    provider: SpatialQueryProvider,
    lat: Any,
    lng: Any,
    *,
    initial_radius: int = 500,
    max_radius: int = 2000,
    step: int = 500,
    top_k: int = 5,
) -> NearbyResult:
    latitude = parse_coordinate(lat, "lat", bound=90.0)
    longitude = parse_coordinate(lng, "lng")
    for name, value in (("initial_radius", initial_radius), ("max_radius", max_radius), ("step", step), ("top_k", top_k)):
        if value <= 0:
            raise InvalidInputError(f"{name} must be positive")

    radius = initial_radius
    rows: Sequence[Tuple[Facility, float]] = []
    state = SearchState.QUERYING

    while state is not SearchState.DONE:
        if state is SearchState.QUERYING:
            rows = provider.find_open_within_radius(latitude, longitude, radius, PROVIDER_LIMIT)
            if rows or radius >= max_radius:
                state = SearchState.DONE
            else:
                state = SearchState.EXPAND
        elif state is SearchState.EXPAND:
            next_radius = min(radius + step, max_radius)
            logger.info("No facilities within %dm of (%s, %s); expanding to %dm", radius, latitude, longitude, next_radius)
            radius = next_radius
            state = SearchState.QUERYING

    results = rank_candidates(rows, top_k)
    return NearbyResult(results=results, radius_used=radius, expanded=radius > initial_radius)
