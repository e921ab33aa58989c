"""Metadata-only quality estimate, computed once per facility at ingestion."""

from typing import Any, Mapping

from dokopoo.models import VenueType

BASE_SCORE = 5.0
MAX_SCORE = 10.0
INDOOR_BONUS = 2.0
ACCESSIBLE_BONUS = 1.0
BABY_CHANGE_BONUS = 0.5
FREE_BONUS = 0.5

VENUE_BONUS = {
    VenueType.STATION.value: 2.0,
    VenueType.MALL.value: 2.5,
    VenueType.DEPARTMENT_STORE.value: 2.5,
    VenueType.CONVENIENCE_STORE.value: 1.0,
    VenueType.PARK.value: 0.5,
    VenueType.STREET.value: 0.0,
}


def calculate_quality_score(metadata: Mapping[str, Any]) -> float:
    """Score a facility on a 0-10 scale from its tags alone.

    Indoor venues and those advertising accessibility features tend to be
    better maintained, so they earn bonuses on top of the base score. The
    result is capped at ``MAX_SCORE``; there is no lower clamp since every
    bonus is non-negative.
    """
    score = BASE_SCORE

    if metadata.get("is_indoor"):
        score += INDOOR_BONUS

    venue_type = metadata.get("venue_type")
    if isinstance(venue_type, VenueType):
        venue_type = venue_type.value
    score += VENUE_BONUS.get(venue_type, 0.0)

    if metadata.get("is_accessible"):
        score += ACCESSIBLE_BONUS
    if metadata.get("has_baby_change"):
        score += BABY_CHANGE_BONUS
    if metadata.get("is_free"):
        score += FREE_BONUS

    return min(score, MAX_SCORE)
