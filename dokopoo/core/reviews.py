"""Review submission: payload validation and persistence."""

import logging
from typing import Any, Dict, Optional, Tuple

from dokopoo.core.db import FacilityStore
from dokopoo.models import Review

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 200


class InvalidReviewError(ValueError):
    """Raised when a review payload is missing fields or out of range."""


def validate_review(payload: Dict[str, Any]) -> Tuple[str, int, Optional[str]]:
    fingerprint = payload.get("fingerprint")
    rating = payload.get("rating")
    if not isinstance(fingerprint, str) or not fingerprint.strip():
        raise InvalidReviewError("fingerprint and rating (0 or 1) are required")
    # bool is an int subclass; JSON true/false is not a valid rating
    if isinstance(rating, bool) or rating not in (0, 1) or not isinstance(rating, int):
        raise InvalidReviewError("fingerprint and rating (0 or 1) are required")

    comment = payload.get("comment")
    if comment is not None:
        if not isinstance(comment, str):
            raise InvalidReviewError("comment must be a string")
        if len(comment) > MAX_COMMENT_LENGTH:
            raise InvalidReviewError(f"Comment must be {MAX_COMMENT_LENGTH} characters or less")
        comment = comment.strip() or None

    return fingerprint.strip(), rating, comment


def submit_review(store: FacilityStore, facility_id: int, payload: Dict[str, Any]) -> Review:
    fingerprint, rating, comment = validate_review(payload)
    review = store.insert_review(facility_id, fingerprint, rating, comment)
    logger.debug("Review %s accepted for facility %s", review.id, facility_id)
    return review
