"""HTTP entrypoint serving nearby-restroom search and reviews."""

from __future__ import annotations

import atexit
import logging
import os
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from dokopoo.core.config import Settings, get_settings
from dokopoo.core.db import Database, DuplicateReviewError, FacilityNotFoundError, FacilityStore, init_schema
from dokopoo.core.geocode_enricher import CacheFillQueue, GeocodeEnricher
from dokopoo.core.ranking import InvalidInputError
from dokopoo.core.reviews import InvalidReviewError, submit_review
from dokopoo.core.search import NearbySearch
from dokopoo.vendors.nominatim import NominatimGeocoder

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _positive_int(raw: Optional[str]) -> Optional[int]:
    """Parse an optional query parameter; unusable values fall back to defaults."""
    if raw is None:
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def create_app(search: NearbySearch, store: FacilityStore) -> Flask:
    app = Flask(__name__)

    # ---------- Routes ----------

    @app.get("/")
    def root() -> Any:
        """Simple root to avoid 404 on GET /"""
        return "ok", 200

    @app.get("/healthz")
    @app.get("/api/health")
    def healthcheck() -> Any:
        """Lightweight health endpoint; does not touch the database."""
        return jsonify({"status": "ok"}), 200

    @app.get("/api/toilets/nearby")
    def nearby() -> Any:
        """
        Top restrooms around a coordinate, ranked by distance and quality.
        Required query params: lat, lng
        Optional: radius (meters), limit (number of results)
        """
        lat = request.args.get("lat")
        lng = request.args.get("lng")
        if not lat or not lng:
            return jsonify({"error": "lat and lng are required"}), 400

        radius = _positive_int(request.args.get("radius"))
        top_k = _positive_int(request.args.get("limit"))

        try:
            result = search.search(lat, lng, radius=radius, top_k=top_k)
        except InvalidInputError:
            return jsonify({"error": "Invalid coordinates"}), 400
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error querying toilets: %s", exc)
            return jsonify({"error": "Internal server error"}), 500

        return jsonify(result.to_dict()), 200

    @app.get("/api/toilets/<int:facility_id>")
    def facility_detail(facility_id: int) -> Any:
        try:
            facility = store.get_facility(facility_id)
            if facility is None:
                return jsonify({"error": "Toilet not found"}), 404
            reviews = store.list_reviews(facility_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error fetching toilet %s: %s", facility_id, exc)
            return jsonify({"error": "Internal server error"}), 500

        return jsonify({"toilet": facility.to_dict(), "reviews": [r.to_dict() for r in reviews]}), 200

    @app.get("/api/toilets/<int:facility_id>/reviews")
    def list_reviews(facility_id: int) -> Any:
        try:
            reviews = store.list_reviews(facility_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error fetching reviews for %s: %s", facility_id, exc)
            return jsonify({"error": "Internal server error"}), 500
        return jsonify({"reviews": [r.to_dict() for r in reviews]}), 200

    @app.post("/api/toilets/<int:facility_id>/reviews")
    def create_review(facility_id: int) -> Any:
        """
        Submit a thumbs up/down review.
        Required JSON fields: fingerprint, rating (0 or 1)
        Optional: comment (<= 200 chars)
        """
        payload: Dict[str, Any] = request.get_json(silent=True) or {}

        try:
            review = submit_review(store, facility_id, payload)
        except InvalidReviewError as exc:
            return jsonify({"error": str(exc)}), 400
        except FacilityNotFoundError:
            return jsonify({"error": "Toilet not found"}), 404
        except DuplicateReviewError:
            return jsonify({"error": "Already reviewed this toilet"}), 409
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error creating review for %s: %s", facility_id, exc)
            return jsonify({"error": "Internal server error"}), 500

        return jsonify(review.to_dict()), 201

    return app


def build_services(settings: Settings) -> Dict[str, Any]:
    """Wire the store, geocoder and cache-fill queue for one process."""
    database = Database(settings.database_url, statement_timeout_ms=settings.query_timeout_ms)
    store = FacilityStore(database)
    cache_fill = CacheFillQueue(store, max_workers=settings.cache_fill_workers)
    geocoder = NominatimGeocoder(
        settings.nominatim_url,
        settings.geocode_user_agent,
        timeout=settings.geocode_timeout,
    )
    enricher = GeocodeEnricher(geocoder, cache_fill=cache_fill, max_workers=settings.top_k)
    search = NearbySearch(store, enricher, settings)
    return {"database": database, "store": store, "cache_fill": cache_fill, "search": search}


def main() -> None:
    """Bind on PORT when the platform injects one, otherwise API_PORT."""
    settings = get_settings()
    services = build_services(settings)
    database: Database = services["database"]
    cache_fill: CacheFillQueue = services["cache_fill"]

    def _shutdown() -> None:
        cache_fill.shutdown(wait=True)
        database.close()

    atexit.register(_shutdown)

    try:
        database.open()
        init_schema(database)
    except Exception as exc:  # noqa: BLE001
        logger.error("Failed to initialise database: %s", exc)

    app = create_app(services["search"], services["store"])

    env_port = os.getenv("PORT")
    port = int(env_port or settings.api_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
