"""Nearby search orchestration: rank, then enrich the top results."""

import logging
from typing import Any, Optional

from dokopoo.core.config import Settings
from dokopoo.core.geocode_enricher import GeocodeEnricher
from dokopoo.core.ranking import NearbyResult, SpatialQueryProvider, find_nearby

logger = logging.getLogger(__name__)


class NearbySearch:
    def __init__(self, provider: SpatialQueryProvider, enricher: GeocodeEnricher, settings: Settings) -> None:
        self.provider = provider
        self.enricher = enricher
        self.settings = settings

    def search(self, lat: Any, lng: Any, radius: Optional[int] = None, top_k: Optional[int] = None) -> NearbyResult:
        result = find_nearby(
            self.provider,
            lat,
            lng,
            initial_radius=radius or self.settings.initial_radius,
            max_radius=self.settings.max_radius,
            step=self.settings.radius_step,
            top_k=top_k or self.settings.top_k,
        )
        result.results = self.enricher.enrich_all(result.results)
        logger.info(
            "Nearby search lat=%s lng=%s returned %d results (radius_used=%d expanded=%s)",
            lat,
            lng,
            len(result.results),
            result.radius_used,
            result.expanded,
        )
        return result
