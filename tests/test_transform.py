from dokopoo.etl import transform


def test_parse_venue_type_priority():
    assert transform.parse_venue_type({"railway": "station", "shop": "mall"}) == "station"
    assert transform.parse_venue_type({"operator": "Tokyo Metro"}) == "station"
    assert transform.parse_venue_type({"operator": "JR East"}) == "station"
    assert transform.parse_venue_type({"building": "retail"}) == "mall"
    assert transform.parse_venue_type({"shop": "convenience"}) == "mall"
    assert transform.parse_venue_type({"location": "Indoor"}) == "convenience_store"
    assert transform.parse_venue_type({"building": "yes"}) == "convenience_store"
    assert transform.parse_venue_type({"leisure": "park"}) == "park"
    assert transform.parse_venue_type({"landuse": "recreation_ground"}) == "park"
    assert transform.parse_venue_type({}) == "street"


def test_parse_address():
    assert transform.parse_address({"addr:full": "1-1 Chiyoda", "addr:street": "x"}) == "1-1 Chiyoda"
    assert transform.parse_address({"addr:housenumber": "3", "addr:street": "Main", "addr:postcode": "100"}) == "3, Main, 100"
    assert transform.parse_address({}) is None


def test_to_facility_row_node():
    element = {
        "id": 123,
        "lat": 35.6812,
        "lon": 139.7671,
        "tags": {
            "amenity": "toilets",
            "name": "Marunouchi Toilet",
            "railway": "station",
            "wheelchair": "yes",
            "changing_table": "yes",
            "unisex": "yes",
            "fee": "no",
            "level": "B1",
            "building:name": "Tokyo Station",
        },
    }

    row = transform.to_facility_row(element)

    assert row["osm_id"] == 123
    assert row["name"] == "Marunouchi Toilet"
    assert row["venue_type"] == "station"
    assert row["is_indoor"] is True
    assert row["is_free"] is True
    assert row["is_accessible"] is True
    assert row["has_baby_change"] is True
    assert row["is_gender_neutral"] is True
    assert row["floor_level"] == "B1"
    assert row["building_name"] == "Tokyo Station"
    assert row["address"] is None


def test_to_facility_row_way_uses_center_and_defaults():
    element = {"id": 5, "center": {"lat": 35.7, "lon": 139.8}, "tags": {"fee": "yes", "leisure": "park"}}

    row = transform.to_facility_row(element)

    assert row["latitude"] == 35.7
    assert row["longitude"] == 139.8
    assert row["venue_type"] == "park"
    assert row["is_indoor"] is False
    assert row["is_free"] is False
    assert row["is_accessible"] is False


def test_to_facility_row_without_coordinates():
    assert transform.to_facility_row({"id": 9, "tags": {}}) is None
