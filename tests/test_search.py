import pytest

from dokopoo.core.config import Settings
from dokopoo.core.geocode_enricher import GeocodeEnricher
from dokopoo.core.ranking import InvalidInputError
from dokopoo.core.search import NearbySearch
from dokopoo.models import Facility


class FakeProvider:
    def __init__(self, rows_by_radius):
        self.rows_by_radius = rows_by_radius
        self.radii = []

    def find_open_within_radius(self, latitude, longitude, radius_m, limit):
        self.radii.append(radius_m)
        return self.rows_by_radius.get(radius_m, [])


class FakeGeocoder:
    def __init__(self):
        self.calls = []

    def reverse(self, latitude, longitude):
        self.calls.append((latitude, longitude))
        return {"name": "Hikarie", "address": {"road": "Meiji-dori", "city": "Shibuya"}}


class RecordingCacheFill:
    def __init__(self):
        self.submitted = []

    def submit(self, facility_id, building_name, address):
        self.submitted.append((facility_id, building_name, address))


def make_rows(count):
    return [
        (Facility(id=i, latitude=35.6, longitude=139.7, quality_score=float(5 + i % 5)), 100.0 + i * 30)
        for i in range(count)
    ]


def test_search_uses_settings_and_enriches_top_results():
    settings = Settings(database_url="", initial_radius=500, max_radius=1500, radius_step=500, top_k=3)
    provider = FakeProvider({1000: make_rows(8)})
    geocoder = FakeGeocoder()
    cache_fill = RecordingCacheFill()
    search = NearbySearch(provider, GeocodeEnricher(geocoder, cache_fill=cache_fill), settings)

    result = search.search("35.6", "139.7")

    assert provider.radii == [500, 1000]
    assert result.radius_used == 1000
    assert result.expanded is True
    assert len(result.results) == 3
    assert len(geocoder.calls) == 3
    assert all(c.facility.address == "Meiji-dori, Shibuya" for c in result.results)
    assert sorted(entry[0] for entry in cache_fill.submitted) == sorted(c.facility.id for c in result.results)


def test_search_caller_overrides_radius_and_top_k():
    settings = Settings(database_url="", top_k=5)
    provider = FakeProvider({300: make_rows(8)})
    search = NearbySearch(provider, GeocodeEnricher(FakeGeocoder()), settings)

    result = search.search(35.6, 139.7, radius=300, top_k=2)

    assert provider.radii == [300]
    assert len(result.results) == 2
    assert result.expanded is False


def test_search_invalid_input():
    search = NearbySearch(FakeProvider({}), GeocodeEnricher(FakeGeocoder()), Settings(database_url=""))
    with pytest.raises(InvalidInputError):
        search.search("north", 139.7)
