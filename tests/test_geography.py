import json

import pytest

from placerank.domain.errors import NotFoundError
from placerank.domain.models import VisitType
from placerank.geography.catalog import ReferenceGeography, load_geography


def test_borough_expands_to_whole_city(geography):
    assert geography.sibling_location_ids_for("Manhattan") == {"soho", "harlem", "williamsburg"}


def test_city_expands_to_metropolitan_area(geography):
    expected = {"back-bay", "north-end", "harvard-square"}
    assert geography.sibling_location_ids_for("Cambridge") == expected
    assert geography.sibling_location_ids_for("boston") == expected


def test_city_without_metro_key_is_its_own_area(geography):
    assert geography.sibling_location_ids_for("Portland") == {"pearl"}


def test_unknown_area_is_not_found(geography):
    with pytest.raises(NotFoundError):
        geography.sibling_location_ids_for("Atlantis")


def test_countries_are_scoped_by_continent(geography):
    assert geography.continent_sibling_ids_for("France") == {"fr", "it", "es"}
    assert geography.scope_ids(VisitType.COUNTRY, "Asia") == {"jp"}
    assert geography.scope_ids(VisitType.COUNTRY, "Italy") == {"fr", "it", "es"}
    with pytest.raises(NotFoundError):
        geography.continent_sibling_ids_for("Narnia")


def test_scope_for_location_matches_name_resolution(geography):
    assert geography.scope_for_location(VisitType.NEIGHBORHOOD, "harvard-square") == {
        "back-bay",
        "north-end",
        "harvard-square",
    }
    assert geography.scope_for_location(VisitType.NEIGHBORHOOD, "soho") == {"soho", "harlem", "williamsburg"}
    assert geography.scope_for_location(VisitType.COUNTRY, "jp") == {"jp"}
    with pytest.raises(NotFoundError):
        geography.scope_for_location(VisitType.COUNTRY, "zz")


def test_location_id_lookups(geography):
    assert geography.neighborhood_id_for("SoHo", "Manhattan") == "soho"
    assert geography.neighborhood_id_for("Back Bay", "Boston") == "back-bay"
    assert geography.country_id_for("japan") == "jp"
    with pytest.raises(NotFoundError):
        geography.neighborhood_id_for("SoHo", "Brooklyn")


def test_load_geography_validates_neighborhood_parent(tmp_path):
    path = tmp_path / "geo.json"
    path.write_text(
        json.dumps({"neighborhoods": [{"id": "n", "name": "N", "borough_id": "b", "city_id": "c"}]}),
        encoding="utf-8",
    )
    with pytest.raises(ValueError):
        load_geography(path)


def test_packaged_sample_catalog_loads():
    geo = ReferenceGeography.from_path("data/geography.json")
    assert "davis-square" in geo.sibling_location_ids_for("Somerville")
