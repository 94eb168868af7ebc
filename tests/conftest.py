from __future__ import annotations

import itertools
from datetime import datetime, timezone

import pytest

from placerank.domain.models import Category, RatedItem, VisitType
from placerank.geography.catalog import GeographyCatalog, ReferenceGeography
from placerank.ranking.engine import RankingEngine
from placerank.storage.documents import FileDocumentStore
from placerank.storage.sessions import SessionRepository
from placerank.storage.visits import VisitRepository

FIXED_NOW = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)

CATALOG = {
    "countries": [
        {"id": "fr", "name": "France", "code": "FR", "continent": "Europe"},
        {"id": "it", "name": "Italy", "code": "IT", "continent": "Europe"},
        {"id": "es", "name": "Spain", "code": "ES", "continent": "Europe"},
        {"id": "jp", "name": "Japan", "code": "JP", "continent": "Asia"},
    ],
    "cities": [
        {"id": "nyc", "name": "NYC", "metropolitan_area": "New York"},
        {"id": "boston", "name": "Boston", "metropolitan_area": "Greater Boston"},
        {"id": "cambridge", "name": "Cambridge", "metropolitan_area": "Greater Boston"},
        {"id": "portland", "name": "Portland"},
    ],
    "boroughs": [
        {"id": "manhattan", "name": "Manhattan", "city": "NYC"},
        {"id": "brooklyn", "name": "Brooklyn", "city": "NYC"},
    ],
    "neighborhoods": [
        {"id": "soho", "name": "SoHo", "borough_id": "manhattan"},
        {"id": "harlem", "name": "Harlem", "borough_id": "manhattan"},
        {"id": "williamsburg", "name": "Williamsburg", "borough_id": "brooklyn"},
        {"id": "back-bay", "name": "Back Bay", "city_id": "boston"},
        {"id": "north-end", "name": "North End", "city_id": "boston"},
        {"id": "harvard-square", "name": "Harvard Square", "city_id": "cambridge"},
        {"id": "pearl", "name": "Pearl District", "city_id": "portland"},
    ],
}


@pytest.fixture
def geography() -> ReferenceGeography:
    return ReferenceGeography(GeographyCatalog.model_validate(CATALOG))


@pytest.fixture
def visits(tmp_path) -> VisitRepository:
    return VisitRepository(FileDocumentStore(tmp_path, "visits"))


@pytest.fixture
def sessions(tmp_path) -> SessionRepository:
    return SessionRepository(FileDocumentStore(tmp_path, "sessions", default_ttl_seconds=86400))


@pytest.fixture
def engine(visits, sessions, geography) -> RankingEngine:
    counter = itertools.count(1)
    return RankingEngine(
        visits,
        sessions,
        geography,
        clock=lambda: FIXED_NOW,
        id_factory=lambda: f"id-{next(counter)}",
    )


@pytest.fixture
def add_visit(visits):
    """Save a rated item for a test user; neighborhood unless `country_id` is given."""

    def _add(
        item_id: str,
        score: float | None,
        category: Category | None,
        *,
        user_id: str = "u1",
        neighborhood_id: str | None = None,
        country_id: str | None = None,
    ) -> RatedItem:
        visit_type = VisitType.COUNTRY if country_id else VisitType.NEIGHBORHOOD
        item = RatedItem(
            id=item_id,
            user_id=user_id,
            visit_type=visit_type,
            neighborhood_id=neighborhood_id,
            country_id=country_id,
            score=score,
            category=category,
        )
        return visits.save(item)

    return _add
