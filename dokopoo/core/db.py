"""Database helpers for the restroom store."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Tuple

from psycopg2 import errors, extras, pool

from dokopoo.models import Facility, Review

logger = logging.getLogger(__name__)


class DuplicateReviewError(RuntimeError):
    """Raised when a fingerprint has already reviewed a facility."""


class FacilityNotFoundError(LookupError):
    """Raised when a facility id does not exist."""


class Database:
    """Owns the connection pool; opened at process start, closed at shutdown."""

    def __init__(self, dsn: str, minconn: int = 1, maxconn: int = 5, statement_timeout_ms: int = 5000) -> None:
        self.dsn = dsn
        self.minconn = minconn
        self.maxconn = maxconn
        self.statement_timeout_ms = statement_timeout_ms
        self._pool: Optional[pool.ThreadedConnectionPool] = None

    def open(self) -> pool.ThreadedConnectionPool:
        """Initialise and return the connection pool."""
        if self._pool is None:
            if not self.dsn:
                raise RuntimeError("DATABASE_URL is required for database connections")
            self._pool = pool.ThreadedConnectionPool(
                self.minconn,
                self.maxconn,
                dsn=self.dsn,
                connect_timeout=10,
                options=f"-c statement_timeout={self.statement_timeout_ms}",
            )
            logger.info("Database connection pool initialised")
        return self._pool

    def close(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None
            logger.info("Database connection pool closed")

    @contextmanager
    def connection(self):
        """Context manager yielding a pooled connection."""
        pg_pool = self.open()
        conn = pg_pool.getconn()
        try:
            yield conn
        finally:
            pg_pool.putconn(conn)


SCHEMA_STATEMENTS = (
    "CREATE EXTENSION IF NOT EXISTS postgis",
    """
    CREATE TABLE IF NOT EXISTS toilets (
        id SERIAL PRIMARY KEY,
        osm_id BIGINT UNIQUE,
        name TEXT,
        description TEXT,
        latitude DOUBLE PRECISION NOT NULL,
        longitude DOUBLE PRECISION NOT NULL,
        geom geometry(Point, 4326) NOT NULL,
        is_free BOOLEAN NOT NULL DEFAULT FALSE,
        is_accessible BOOLEAN NOT NULL DEFAULT FALSE,
        has_baby_change BOOLEAN NOT NULL DEFAULT FALSE,
        is_gender_neutral BOOLEAN NOT NULL DEFAULT FALSE,
        is_indoor BOOLEAN NOT NULL DEFAULT FALSE,
        venue_type TEXT NOT NULL DEFAULT 'unknown',
        building_name TEXT,
        address TEXT,
        floor_level TEXT,
        opening_hours TEXT,
        status TEXT NOT NULL DEFAULT 'open',
        quality_score REAL,
        review_count INTEGER NOT NULL DEFAULT 0,
        positive_percentage INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_toilets_geom ON toilets USING GIST (geom)",
    "CREATE INDEX IF NOT EXISTS idx_toilets_status ON toilets (status)",
    """
    CREATE TABLE IF NOT EXISTS reviews (
        id SERIAL PRIMARY KEY,
        toilet_id INTEGER NOT NULL REFERENCES toilets(id) ON DELETE CASCADE,
        fingerprint TEXT NOT NULL,
        rating SMALLINT NOT NULL CHECK (rating IN (0, 1)),
        comment VARCHAR(200),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE (fingerprint, toilet_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_reviews_toilet ON reviews (toilet_id, created_at DESC)",
)


def init_schema(database: Database) -> None:
    """Create tables and indexes if they do not exist yet."""
    with database.connection() as conn:
        with conn.cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                cur.execute(statement)
        conn.commit()
    logger.info("Database schema initialised")


_FACILITY_COLUMNS = """
    id, osm_id, name, description, latitude, longitude,
    is_free, is_accessible, has_baby_change, is_gender_neutral,
    is_indoor, venue_type, building_name, address, floor_level,
    opening_hours, status,
    quality_score, positive_percentage, review_count
"""

_FIND_WITHIN_RADIUS = f"""
SELECT
    {_FACILITY_COLUMNS},
    ST_Distance(
        geom::geography,
        ST_SetSRID(ST_MakePoint(%(lng)s, %(lat)s), 4326)::geography
    ) AS distance_m
FROM toilets
WHERE status = 'open'
  AND ST_DWithin(
    geom::geography,
    ST_SetSRID(ST_MakePoint(%(lng)s, %(lat)s), 4326)::geography,
    %(radius)s
  )
ORDER BY distance_m
LIMIT %(limit)s
"""

_GET_FACILITY = f"SELECT {_FACILITY_COLUMNS} FROM toilets WHERE id = %(id)s"

_UPDATE_CACHED_ADDRESS = """
UPDATE toilets SET
    building_name = COALESCE(building_name, %(building_name)s),
    address = COALESCE(address, %(address)s),
    updated_at = NOW()
WHERE id = %(id)s
"""

_UPSERT_FACILITY = """
INSERT INTO toilets (
    osm_id,
    name,
    description,
    latitude,
    longitude,
    geom,
    is_free,
    is_accessible,
    has_baby_change,
    is_gender_neutral,
    is_indoor,
    venue_type,
    building_name,
    address,
    floor_level,
    opening_hours,
    quality_score
) VALUES (
    %(osm_id)s,
    %(name)s,
    %(description)s,
    %(latitude)s,
    %(longitude)s,
    ST_SetSRID(ST_MakePoint(%(longitude)s, %(latitude)s), 4326),
    %(is_free)s,
    %(is_accessible)s,
    %(has_baby_change)s,
    %(is_gender_neutral)s,
    %(is_indoor)s,
    %(venue_type)s,
    %(building_name)s,
    %(address)s,
    %(floor_level)s,
    %(opening_hours)s,
    %(quality_score)s
)
ON CONFLICT (osm_id) DO UPDATE SET
    name = EXCLUDED.name,
    description = EXCLUDED.description,
    latitude = EXCLUDED.latitude,
    longitude = EXCLUDED.longitude,
    geom = EXCLUDED.geom,
    is_free = EXCLUDED.is_free,
    is_accessible = EXCLUDED.is_accessible,
    has_baby_change = EXCLUDED.has_baby_change,
    is_gender_neutral = EXCLUDED.is_gender_neutral,
    is_indoor = EXCLUDED.is_indoor,
    venue_type = EXCLUDED.venue_type,
    building_name = COALESCE(EXCLUDED.building_name, toilets.building_name),
    address = COALESCE(EXCLUDED.address, toilets.address),
    floor_level = EXCLUDED.floor_level,
    opening_hours = EXCLUDED.opening_hours,
    quality_score = EXCLUDED.quality_score,
    updated_at = NOW();
"""

_LIST_REVIEWS = """
SELECT id, rating, comment, created_at
FROM reviews
WHERE toilet_id = %(toilet_id)s
ORDER BY created_at DESC
LIMIT %(limit)s
"""

_FACILITY_EXISTS = "SELECT id FROM toilets WHERE id = %(toilet_id)s"

_EXISTING_REVIEW = "SELECT id FROM reviews WHERE fingerprint = %(fingerprint)s AND toilet_id = %(toilet_id)s"

_INSERT_REVIEW = """
INSERT INTO reviews (toilet_id, fingerprint, rating, comment)
VALUES (%(toilet_id)s, %(fingerprint)s, %(rating)s, %(comment)s)
RETURNING id, toilet_id, fingerprint, rating, comment, created_at
"""

_RECOMPUTE_AGGREGATES = """
UPDATE toilets SET
    review_count = (SELECT COUNT(*) FROM reviews WHERE toilet_id = %(toilet_id)s),
    positive_percentage = COALESCE(
        (SELECT ROUND(AVG(rating) * 100) FROM reviews WHERE toilet_id = %(toilet_id)s), 0
    ),
    updated_at = NOW()
WHERE id = %(toilet_id)s
"""


def _prepare_params(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "osm_id": row.get("osm_id"),
        "name": row.get("name"),
        "description": row.get("description"),
        "latitude": row.get("latitude"),
        "longitude": row.get("longitude"),
        "is_free": bool(row.get("is_free")),
        "is_accessible": bool(row.get("is_accessible")),
        "has_baby_change": bool(row.get("has_baby_change")),
        "is_gender_neutral": bool(row.get("is_gender_neutral")),
        "is_indoor": bool(row.get("is_indoor")),
        "venue_type": row.get("venue_type") or "unknown",
        "building_name": row.get("building_name"),
        "address": row.get("address"),
        "floor_level": row.get("floor_level"),
        "opening_hours": row.get("opening_hours"),
        "quality_score": row.get("quality_score"),
    }


class FacilityStore:
    """Read/write access to facilities and reviews."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def find_open_within_radius(
        self, latitude: float, longitude: float, radius_m: int, limit: int
    ) -> List[Tuple[Facility, float]]:
        params = {"lat": latitude, "lng": longitude, "radius": radius_m, "limit": limit}
        with self.database.connection() as conn:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(_FIND_WITHIN_RADIUS, params)
                rows = cur.fetchall()
            conn.rollback()
        logger.debug("Spatial query radius=%dm returned %d rows", radius_m, len(rows))
        return [(Facility.from_row(row), float(row["distance_m"])) for row in rows]

    def get_facility(self, facility_id: int) -> Optional[Facility]:
        with self.database.connection() as conn:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(_GET_FACILITY, {"id": facility_id})
                row = cur.fetchone()
            conn.rollback()
        return Facility.from_row(row) if row else None

    def update_cached_address(
        self, facility_id: int, building_name: Optional[str], address: Optional[str]
    ) -> None:
        """Fill building name/address only where the stored value is still NULL."""
        params = {"id": facility_id, "building_name": building_name, "address": address}
        with self.database.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_UPDATE_CACHED_ADDRESS, params)
            conn.commit()
        logger.debug("Cached geocoded address for facility %s", facility_id)

    def upsert_facility(self, row: Dict[str, Any]) -> None:
        """Persist an ingested facility, performing an idempotent upsert on osm_id."""
        params = _prepare_params(row)
        if params["osm_id"] is None:
            raise ValueError("osm_id is required for upsert")
        if params["latitude"] is None or params["longitude"] is None:
            raise ValueError("latitude and longitude are required for upsert")

        with self.database.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_UPSERT_FACILITY, params)
            conn.commit()
        logger.debug("Upserted facility osm_id=%s", params["osm_id"])

    def list_reviews(self, facility_id: int, limit: int = 10) -> List[Review]:
        with self.database.connection() as conn:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(_LIST_REVIEWS, {"toilet_id": facility_id, "limit": limit})
                rows = cur.fetchall()
            conn.rollback()
        return [Review.from_row(row, facility_id=facility_id) for row in rows]

    def insert_review(
        self, facility_id: int, fingerprint: str, rating: int, comment: Optional[str]
    ) -> Review:
        """Insert a review and refresh the facility's aggregates in one transaction."""
        params = {
            "toilet_id": facility_id,
            "fingerprint": fingerprint,
            "rating": rating,
            "comment": comment,
        }
        with self.database.connection() as conn:
            try:
                with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                    cur.execute(_FACILITY_EXISTS, params)
                    if cur.fetchone() is None:
                        raise FacilityNotFoundError(f"facility {facility_id} not found")
                    cur.execute(_EXISTING_REVIEW, params)
                    if cur.fetchone() is not None:
                        raise DuplicateReviewError("Already reviewed this toilet")
                    cur.execute(_INSERT_REVIEW, params)
                    created = cur.fetchone()
                    cur.execute(_RECOMPUTE_AGGREGATES, params)
                conn.commit()
            except errors.UniqueViolation as exc:
                # lost the race against a concurrent submission for the same pair
                conn.rollback()
                raise DuplicateReviewError("Already reviewed this toilet") from exc
            except Exception:
                conn.rollback()
                raise
        logger.info("Stored review %s for facility %s", created["id"], facility_id)
        return Review.from_row(created, facility_id=facility_id)
