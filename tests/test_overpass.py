import pytest

from dokopoo.vendors import overpass


class DummyResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text

    def json(self):
        return self._payload


class DummySession:
    def __init__(self):
        self.calls = []
        self.response = DummyResponse()

    def post(self, url, data=None, timeout=None):
        self.calls.append((url, data, timeout))
        return self.response


@pytest.fixture(autouse=True)
def patch_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(overpass, "_SESSION", session)
    return session


def test_build_toilets_query_uses_bbox():
    query = overpass.build_toilets_query({"south": 1, "west": 2, "north": 3, "east": 4}, timeout=60)
    assert query.startswith("[out:json][timeout:60];")
    assert 'node["amenity"="toilets"](1,2,3,4);' in query
    assert 'way["amenity"="toilets"](1,2,3,4);' in query
    assert "out center body;" in query


def test_fetch_toilets_returns_elements(patch_session):
    patch_session.response = DummyResponse(payload={"elements": [{"id": 1}]})

    elements = overpass.fetch_toilets(overpass.TOKYO_BBOX, url="https://overpass.example/api")

    assert elements == [{"id": 1}]
    url, data, timeout = patch_session.calls[0]
    assert url == "https://overpass.example/api"
    assert "amenity" in data["data"]
    assert timeout == 330


def test_fetch_toilets_error_status(patch_session):
    patch_session.response = DummyResponse(status_code=429, text="rate limited")
    with pytest.raises(overpass.OverpassError):
        overpass.fetch_toilets(overpass.TOKYO_BBOX, url="https://overpass.example/api")
