"""
Reference geography catalog and scope resolver.

The catalog is a local JSON file (default: `data/geography.json`) with four lists:
`countries`, `cities`, `boroughs`, `neighborhoods`. We validate it into typed Pydantic
models so the ranking engine can ask plain questions ("which neighborhoods share a
metro area with X?") without knowing how the entities reference each other.

Scope rules:
- neighborhoods: the named area is a borough (preferred) or a city; it expands to every
  city sharing the city's `metropolitan_area` key, then to every neighborhood in those
  cities or in their boroughs.
- countries: every country on the same continent.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, TypeAdapter, model_validator

from placerank.core.env import resolve_project_path
from placerank.domain.errors import NotFoundError
from placerank.domain.models import VisitType

logger = logging.getLogger(__name__)


class Country(BaseModel):
    id: str
    name: str
    code: str = ""
    continent: str


class City(BaseModel):
    id: str
    name: str
    state: str | None = None
    country: str = "United States"
    metropolitan_area: str | None = None


class Borough(BaseModel):
    id: str
    name: str
    city: str


class Neighborhood(BaseModel):
    id: str
    name: str
    borough_id: str | None = None
    city_id: str | None = None

    @model_validator(mode="after")
    def _validate_parent(self) -> "Neighborhood":
        if bool(self.borough_id) == bool(self.city_id):
            raise ValueError(f"neighborhood {self.id} needs exactly one of borough_id or city_id")
        return self


class GeographyCatalog(BaseModel):
    countries: list[Country] = Field(default_factory=list)
    cities: list[City] = Field(default_factory=list)
    boroughs: list[Borough] = Field(default_factory=list)
    neighborhoods: list[Neighborhood] = Field(default_factory=list)


_CATALOG_ADAPTER = TypeAdapter(GeographyCatalog)


def load_geography(path: str | Path) -> GeographyCatalog:
    """Load and validate a geography catalog JSON file."""
    resolved = resolve_project_path(path)
    payload = json.loads(resolved.read_text(encoding="utf-8"))
    catalog = _CATALOG_ADAPTER.validate_python(payload)
    logger.info(
        "Loaded geography catalog %s (%d countries, %d cities, %d boroughs, %d neighborhoods)",
        resolved,
        len(catalog.countries),
        len(catalog.cities),
        len(catalog.boroughs),
        len(catalog.neighborhoods),
    )
    return catalog


def _norm(name: str) -> str:
    return " ".join(str(name or "").split()).casefold()


def _index_by_name(records: list) -> dict[str, object]:
    out: dict[str, object] = {}
    for r in records:
        out.setdefault(_norm(r.name), r)
    return out


class ReferenceGeography:
    """Resolves location names and ids into comparison scopes."""

    def __init__(self, catalog: GeographyCatalog):
        self._catalog = catalog
        self._countries_by_name = _index_by_name(catalog.countries)
        self._cities_by_name = _index_by_name(catalog.cities)
        self._boroughs_by_name = _index_by_name(catalog.boroughs)
        self._countries = {c.id: c for c in catalog.countries}
        self._cities = {c.id: c for c in catalog.cities}
        self._boroughs = {b.id: b for b in catalog.boroughs}
        self._neighborhoods = {n.id: n for n in catalog.neighborhoods}

    @classmethod
    def from_path(cls, path: str | Path) -> "ReferenceGeography":
        return cls(load_geography(path))

    def _borough(self, name: str) -> Borough | None:
        return self._boroughs_by_name.get(_norm(name))

    def _city(self, name: str) -> City | None:
        return self._cities_by_name.get(_norm(name))

    def _metro_cities(self, city: City) -> list[City]:
        key = _norm(city.metropolitan_area) if city.metropolitan_area else None
        if not key:
            return [city]
        return [c for c in self._catalog.cities if c.metropolitan_area and _norm(c.metropolitan_area) == key]

    def _neighborhood_ids_in_cities(self, cities: list[City]) -> set[str]:
        city_ids = {c.id for c in cities}
        city_names = {_norm(c.name) for c in cities}
        borough_ids = {b.id for b in self._catalog.boroughs if _norm(b.city) in city_names}
        return {
            n.id
            for n in self._catalog.neighborhoods
            if (n.city_id and n.city_id in city_ids) or (n.borough_id and n.borough_id in borough_ids)
        }

    def _siblings_of_borough(self, borough: Borough) -> set[str]:
        city = self._city(borough.city)
        if city is None:
            return {n.id for n in self._catalog.neighborhoods if n.borough_id == borough.id}
        return self._neighborhood_ids_in_cities(self._metro_cities(city))

    def sibling_location_ids_for(self, area_name: str) -> set[str]:
        """Every neighborhood id in the metro area of a borough or city name."""
        borough = self._borough(area_name)
        if borough is not None:
            return self._siblings_of_borough(borough)
        city = self._city(area_name)
        if city is None:
            raise NotFoundError(f"Borough or city '{area_name}' not found")
        return self._neighborhood_ids_in_cities(self._metro_cities(city))

    def continent_of(self, country_name: str) -> str:
        country = self._countries_by_name.get(_norm(country_name))
        if country is None:
            raise NotFoundError(f"Country '{country_name}' not found")
        return country.continent

    def country_ids_on_continent(self, continent: str) -> set[str]:
        key = _norm(continent)
        return {c.id for c in self._catalog.countries if _norm(c.continent) == key}

    def continent_sibling_ids_for(self, country_name: str) -> set[str]:
        return self.country_ids_on_continent(self.continent_of(country_name))

    def scope_ids(self, visit_type: VisitType, name: str) -> set[str]:
        """Resolve a geographic scope name for ranking filters.

        For neighborhoods `name` is a borough, city or metro member city. For
        countries it may be a continent or a country (meaning that country's continent).
        """
        if visit_type is VisitType.NEIGHBORHOOD:
            return self.sibling_location_ids_for(name)
        by_continent = self.country_ids_on_continent(name)
        if by_continent:
            return by_continent
        return self.continent_sibling_ids_for(name)

    def scope_for_location(self, visit_type: VisitType, location_id: str) -> set[str]:
        """Comparison scope derived from a stored location id."""
        if visit_type is VisitType.COUNTRY:
            country = self._countries.get(location_id)
            if country is None:
                raise NotFoundError(f"Country {location_id} not found")
            return self.country_ids_on_continent(country.continent)

        neighborhood = self._neighborhoods.get(location_id)
        if neighborhood is None:
            raise NotFoundError(f"Neighborhood {location_id} not found")
        if neighborhood.borough_id:
            borough = self._boroughs.get(neighborhood.borough_id)
            if borough is None:
                raise NotFoundError(f"Borough {neighborhood.borough_id} not found")
            return self._siblings_of_borough(borough)
        city = self._cities.get(neighborhood.city_id)
        if city is None:
            raise NotFoundError(f"City {neighborhood.city_id} not found")
        return self._neighborhood_ids_in_cities(self._metro_cities(city))

    def neighborhood_id_for(self, name: str, area_name: str) -> str:
        """Id of the neighborhood called `name` directly under a borough or city."""
        key = _norm(name)
        borough = self._borough(area_name)
        if borough is not None:
            matches = [n for n in self._catalog.neighborhoods if n.borough_id == borough.id and _norm(n.name) == key]
        else:
            city = self._city(area_name)
            if city is None:
                raise NotFoundError(f"Borough or city '{area_name}' not found")
            matches = [n for n in self._catalog.neighborhoods if n.city_id == city.id and _norm(n.name) == key]
        if not matches:
            raise NotFoundError(f"Neighborhood '{name}' not found in '{area_name}'")
        return matches[0].id

    def country_id_for(self, name: str) -> str:
        country = self._countries_by_name.get(_norm(name))
        if country is None:
            raise NotFoundError(f"Country '{name}' not found")
        return country.id
