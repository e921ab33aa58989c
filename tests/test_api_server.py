import pytest

from dokopoo.core.config import Settings
from dokopoo.core.db import DuplicateReviewError, FacilityNotFoundError
from dokopoo.core.ranking import InvalidInputError, NearbyResult
from dokopoo.jobs import api_server
from dokopoo.models import Candidate, Facility, Review


class FakeSearch:
    def __init__(self, result=None, error=None):
        self.result = result or NearbyResult(results=[], radius_used=500, expanded=False)
        self.error = error
        self.calls = []

    def search(self, lat, lng, radius=None, top_k=None):
        self.calls.append((lat, lng, radius, top_k))
        if self.error:
            raise self.error
        return self.result


class FakeStore:
    def __init__(self, facility=None, reviews=None, insert_error=None):
        self.facility = facility
        self.reviews = reviews or []
        self.insert_error = insert_error
        self.inserted = []

    def get_facility(self, facility_id):
        return self.facility

    def list_reviews(self, facility_id, limit=10):
        return self.reviews

    def insert_review(self, facility_id, fingerprint, rating, comment):
        if self.insert_error:
            raise self.insert_error
        self.inserted.append((facility_id, fingerprint, rating, comment))
        return Review(id=1, facility_id=facility_id, rating=rating, comment=comment)


def make_client(search=None, store=None):
    app = api_server.create_app(search or FakeSearch(), store or FakeStore())
    return app.test_client()


def test_health_endpoints():
    client = make_client()
    assert client.get("/healthz").get_json() == {"status": "ok"}
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}
    assert client.get("/").status_code == 200


def test_nearby_requires_coordinates():
    search = FakeSearch()
    client = make_client(search=search)

    response = client.get("/api/toilets/nearby?lat=35.6")

    assert response.status_code == 400
    assert response.get_json()["error"] == "lat and lng are required"
    assert search.calls == []


def test_nearby_invalid_coordinates():
    client = make_client(search=FakeSearch(error=InvalidInputError("lat must be numeric")))

    response = client.get("/api/toilets/nearby?lat=abc&lng=139.7")

    assert response.status_code == 400
    assert response.get_json()["error"] == "Invalid coordinates"


def test_nearby_provider_failure_is_opaque():
    client = make_client(search=FakeSearch(error=RuntimeError("connection refused to 10.0.0.5")))

    response = client.get("/api/toilets/nearby?lat=35.6&lng=139.7")

    assert response.status_code == 500
    assert response.get_json() == {"error": "Internal server error"}


def test_nearby_returns_result_shape_and_passes_params():
    facility = Facility(id=3, latitude=35.6, longitude=139.7, building_name="Hikarie", quality_score=8.0)
    result = NearbyResult(
        results=[Candidate(facility=facility, distance_m=250, walk_time_min=3, rank_score=0.68)],
        radius_used=1000,
        expanded=True,
    )
    search = FakeSearch(result=result)
    client = make_client(search=search)

    response = client.get("/api/toilets/nearby?lat=35.6&lng=139.7&radius=800&limit=3")

    assert response.status_code == 200
    body = response.get_json()
    assert body["radius_used"] == 1000
    assert body["expanded"] is True
    assert body["results"][0]["id"] == 3
    assert body["results"][0]["building_name"] == "Hikarie"
    assert body["results"][0]["walk_time_min"] == 3
    assert search.calls == [("35.6", "139.7", 800, 3)]


@pytest.mark.parametrize("query", ["radius=abc&limit=-2", "radius=0&limit=zero"])
def test_nearby_bad_optional_params_fall_back_to_defaults(query):
    search = FakeSearch()
    client = make_client(search=search)

    response = client.get(f"/api/toilets/nearby?lat=35.6&lng=139.7&{query}")

    assert response.status_code == 200
    assert search.calls == [("35.6", "139.7", None, None)]


def test_facility_detail_not_found():
    assert make_client(store=FakeStore()).get("/api/toilets/5").status_code == 404


def test_facility_detail_with_reviews():
    store = FakeStore(
        facility=Facility(id=5, latitude=35.6, longitude=139.7, review_count=1, positive_percentage=100),
        reviews=[Review(id=2, facility_id=5, rating=1, comment="clean")],
    )

    body = make_client(store=store).get("/api/toilets/5").get_json()

    assert body["toilet"]["id"] == 5
    assert body["toilet"]["positive_percentage"] == 100
    assert body["reviews"] == [{"id": 2, "rating": 1, "comment": "clean", "created_at": None}]


def test_list_reviews():
    store = FakeStore(reviews=[Review(id=2, facility_id=5, rating=0)])
    body = make_client(store=store).get("/api/toilets/5/reviews").get_json()
    assert body["reviews"][0]["rating"] == 0


def test_create_review_validation():
    client = make_client()
    assert client.post("/api/toilets/5/reviews", json={}).status_code == 400
    assert client.post("/api/toilets/5/reviews", json={"fingerprint": "a", "rating": 5}).status_code == 400
    response = client.post("/api/toilets/5/reviews", json={"fingerprint": "a", "rating": 1, "comment": "x" * 201})
    assert response.status_code == 400
    assert response.get_json()["error"] == "Comment must be 200 characters or less"


def test_create_review_success():
    store = FakeStore()
    response = make_client(store=store).post(
        "/api/toilets/5/reviews", json={"fingerprint": "dev", "rating": 1, "comment": "nice"}
    )

    assert response.status_code == 201
    assert response.get_json()["comment"] == "nice"
    assert store.inserted == [(5, "dev", 1, "nice")]


def test_create_review_conflict():
    store = FakeStore(insert_error=DuplicateReviewError("Already reviewed this toilet"))
    response = make_client(store=store).post("/api/toilets/5/reviews", json={"fingerprint": "dev", "rating": 0})

    assert response.status_code == 409
    assert response.get_json()["error"] == "Already reviewed this toilet"


def test_create_review_unknown_facility():
    store = FakeStore(insert_error=FacilityNotFoundError("facility 5 not found"))
    response = make_client(store=store).post("/api/toilets/5/reviews", json={"fingerprint": "dev", "rating": 0})
    assert response.status_code == 404


def test_build_services_wires_components():
    settings = Settings(database_url="postgres://x", top_k=3, query_timeout_ms=1234)
    services = api_server.build_services(settings)
    try:
        assert services["database"].statement_timeout_ms == 1234
        assert services["search"].provider is services["store"]
        assert services["search"].enricher.cache_fill is services["cache_fill"]
        assert services["search"].enricher.max_workers == 3
    finally:
        services["cache_fill"].shutdown()
