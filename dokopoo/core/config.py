"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    database_url: str
    api_port: int = 3000
    nominatim_url: str = "https://nominatim.openstreetmap.org"
    geocode_user_agent: str = "Dokopoo/1.0"
    geocode_timeout: float = 5.0
    query_timeout_ms: int = 5000
    initial_radius: int = 500
    max_radius: int = 2000
    radius_step: int = 500
    top_k: int = 5
    cache_fill_workers: int = 2
    overpass_url: str = "https://overpass-api.de/api/interpreter"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    api_port = int(os.getenv("API_PORT", "3000"))
    nominatim_url = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org").rstrip("/")
    geocode_user_agent = os.getenv("GEOCODE_USER_AGENT", "Dokopoo/1.0")
    geocode_timeout = float(os.getenv("GEOCODE_TIMEOUT_SECONDS", "5"))
    query_timeout_ms = int(os.getenv("QUERY_TIMEOUT_MS", "5000"))
    initial_radius = int(os.getenv("SEARCH_INITIAL_RADIUS", "500"))
    max_radius = int(os.getenv("SEARCH_MAX_RADIUS", "2000"))
    radius_step = int(os.getenv("SEARCH_RADIUS_STEP", "500"))
    top_k = int(os.getenv("SEARCH_TOP_K", "5"))
    cache_fill_workers = int(os.getenv("CACHE_FILL_WORKERS", "2"))
    overpass_url = os.getenv("OVERPASS_URL", "https://overpass-api.de/api/interpreter")

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if max_radius < initial_radius:
        logger.warning(
            "SEARCH_MAX_RADIUS (%d) is below SEARCH_INITIAL_RADIUS (%d); radius expansion is disabled.",
            max_radius,
            initial_radius,
        )

    return Settings(
        database_url=database_url,
        api_port=api_port,
        nominatim_url=nominatim_url,
        geocode_user_agent=geocode_user_agent,
        geocode_timeout=geocode_timeout,
        query_timeout_ms=query_timeout_ms,
        initial_radius=initial_radius,
        max_radius=max_radius,
        radius_step=radius_step,
        top_k=top_k,
        cache_fill_workers=cache_fill_workers,
        overpass_url=overpass_url,
    )
