"""Best-effort reverse-geocode enrichment for search results."""

from __future__ import annotations

import dataclasses
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, List, Mapping, Optional, Protocol, Tuple

from dokopoo.models import Candidate, Facility

logger = logging.getLogger(__name__)

BUILDING_NAME_KEYS = ("building", "amenity", "shop", "leisure")


class GeocodeProvider(Protocol):
    def reverse(self, latitude: float, longitude: float) -> Mapping[str, Any]:
        ...


class AddressCache(Protocol):
    def update_cached_address(
        self, facility_id: int, building_name: Optional[str], address: Optional[str]
    ) -> None:
        ...


def merge_geocode(facility: Facility, payload: Mapping[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(building_name, address)`` with existing values taking priority."""
    addr = payload.get("address") or {}

    building_name = facility.building_name
    if not building_name:
        options = [payload.get("name")] + [addr.get(key) for key in BUILDING_NAME_KEYS]
        building_name = next((option for option in options if option), None)

    address = facility.address
    if not address:
        parts = [
            addr.get("house_number"),
            addr.get("road"),
            addr.get("neighbourhood") or addr.get("suburb"),
            addr.get("city") or addr.get("town"),
        ]
        parts = [str(part) for part in parts if part]
        if parts:
            address = ", ".join(parts)

    return building_name, address


class CacheFillQueue:
    """Detached writer for geocoded fields; callers never wait on it."""

    def __init__(self, cache: AddressCache, max_workers: int = 2, executor: Optional[ThreadPoolExecutor] = None) -> None:
        self.cache = cache
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="cache-fill")

    def submit(self, facility_id: int, building_name: Optional[str], address: Optional[str]) -> Optional[Future]:
        try:
            return self._executor.submit(self._write_safe, facility_id, building_name, address)
        except RuntimeError as exc:
            logger.warning("Cache-fill queue rejected facility %s: %s", facility_id, exc)
            return None

    def _write_safe(self, facility_id: int, building_name: Optional[str], address: Optional[str]) -> None:
        try:
            self.cache.update_cached_address(facility_id, building_name, address)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cache-fill write failed for facility %s: %s", facility_id, exc)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class GeocodeEnricher:
    """Fills missing building names and addresses on ranked candidates."""

    def __init__(self, provider: GeocodeProvider, cache_fill: Optional[CacheFillQueue] = None, max_workers: int = 5) -> None:
        self.provider = provider
        self.cache_fill = cache_fill
        self.max_workers = max_workers

    def enrich(self, candidate: Candidate) -> Candidate:
        facility = candidate.facility
        if facility.has_complete_address():
            return candidate

        try:
            payload = self.provider.reverse(facility.latitude, facility.longitude)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Reverse geocode failed for facility %s: %s", facility.id, exc)
            return candidate
        if not isinstance(payload, Mapping) or not isinstance(payload.get("address") or {}, Mapping):
            logger.debug("Reverse geocode returned no usable data for facility %s", facility.id)
            return candidate

        building_name, address = merge_geocode(facility, payload)
        if (building_name or address) and self.cache_fill is not None and facility.id is not None:
            self.cache_fill.submit(facility.id, building_name, address)

        enriched = dataclasses.replace(facility, building_name=building_name, address=address)
        return dataclasses.replace(candidate, facility=enriched)

    def enrich_all(self, candidates: List[Candidate]) -> List[Candidate]:
        """Enrich every candidate concurrently and return them in input order."""
        if not candidates:
            return []

        workers = min(self.max_workers, len(candidates))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="geocode") as executor:
            futures = [executor.submit(self.enrich, candidate) for candidate in candidates]

        enriched: List[Candidate] = []
        for candidate, future in zip(candidates, futures):
            try:
                enriched.append(future.result())
            except Exception as exc:  # noqa: BLE001
                logger.warning("Enrichment task failed for facility %s: %s", candidate.facility.id, exc)
                enriched.append(candidate)
        return enriched

