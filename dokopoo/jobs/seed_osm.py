"""CLI job to fetch OpenStreetMap toilets and persist them."""

import argparse
import logging
from typing import Dict, Optional, Tuple

from dokopoo.core.config import get_settings
from dokopoo.core.db import Database, FacilityStore, init_schema
from dokopoo.core.quality import calculate_quality_score
from dokopoo.etl.transform import to_facility_row
from dokopoo.vendors import overpass

logger = logging.getLogger(__name__)


def run_seed_job(
    *,
    bbox: Dict[str, float],
    database: Optional[Database] = None,
    skip_schema: bool = False,
) -> Tuple[int, int]:
    """Fetch, score and upsert every toilet in ``bbox``; returns (upserted, skipped)."""
    settings = get_settings()
    if bbox["south"] >= bbox["north"] or bbox["west"] >= bbox["east"]:
        raise ValueError("Bounding box must have south < north and west < east")

    database = database or Database(settings.database_url, statement_timeout_ms=0)
    database.open()
    store = FacilityStore(database)
    if not skip_schema:
        init_schema(database)

    logger.info("Fetching toilets from Overpass for bbox=%s", bbox)
    elements = overpass.fetch_toilets(bbox, url=settings.overpass_url)
    logger.info("Fetched %d toilet elements from OSM", len(elements))

    upserted = 0
    skipped = 0
    for element in elements:
        row = to_facility_row(element)
        if row is None:
            skipped += 1
            continue

        row["quality_score"] = calculate_quality_score(row)

        try:
            store.upsert_facility(row)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to upsert osm_id=%s: %s", row.get("osm_id"), exc)
            skipped += 1
            continue
        upserted += 1

    logger.info("Completed seed: upserted=%d skipped=%d", upserted, skipped)
    return upserted, skipped


def build_parser() -> argparse.ArgumentParser:
    default_bbox = overpass.TOKYO_BBOX
    parser = argparse.ArgumentParser(description="Seed the restroom store from OpenStreetMap")
    parser.add_argument("--south", type=float, default=default_bbox["south"], help="Southern latitude bound")
    parser.add_argument("--west", type=float, default=default_bbox["west"], help="Western longitude bound")
    parser.add_argument("--north", type=float, default=default_bbox["north"], help="Northern latitude bound")
    parser.add_argument("--east", type=float, default=default_bbox["east"], help="Eastern longitude bound")
    parser.add_argument("--skip-schema", action="store_true", help="Do not run schema bootstrap first")
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    database = Database(get_settings().database_url, statement_timeout_ms=0)
    try:
        run_seed_job(
            bbox={"south": args.south, "west": args.west, "north": args.north, "east": args.east},
            database=database,
            skip_schema=args.skip_schema,
        )
    finally:
        database.close()


if __name__ == "__main__":
    main()
