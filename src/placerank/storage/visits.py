"""
Rated item ("visit") persistence.

Rated items are stored in the `visits` namespace (no TTL). Queries are full scans
filtered in Python; a single user's journal is small enough for that.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable

from placerank.domain.models import Category, RatedItem, VisitDraft, VisitType
from placerank.geography.catalog import ReferenceGeography
from placerank.scoring import bands
from placerank.storage.documents import FileDocumentStore

logger = logging.getLogger(__name__)


def _score_order(item: RatedItem) -> tuple[float, str]:
    return (-(item.score if item.score is not None else -1.0), item.id)


class VisitRepository:
    def __init__(self, store: FileDocumentStore):
        self._store = store

    @property
    def store(self) -> FileDocumentStore:
        return self._store

    def get(self, item_id: str) -> RatedItem | None:
        raw = self._store.get(item_id)
        if raw is None:
            return None
        return RatedItem.model_validate(raw)

    def all(self) -> list[RatedItem]:
        return [RatedItem.model_validate(v) for _, v in self._store.scan()]

    def find(
        self,
        user_id: str,
        *,
        visit_type: VisitType | None = None,
        category: Category | None = None,
        scored: bool = True,
        location_ids: Iterable[str] | None = None,
        exclude_id: str | None = None,
    ) -> list[RatedItem]:
        """Return the user's items matching every given filter, highest score first.

        `category` matches the stored category, or the score band of an item stored
        without one.
        """
        wanted = set(location_ids) if location_ids is not None else None
        out: list[RatedItem] = []
        for item in self.all():
            if item.user_id != user_id:
                continue
            if visit_type is not None and item.visit_type is not visit_type:
                continue
            if category is not None and bands.category_of(item) is not category:
                continue
            if scored and item.score is None:
                continue
            if wanted is not None and item.location_id not in wanted:
                continue
            if exclude_id is not None and item.id == exclude_id:
                continue
            out.append(item)
        out.sort(key=_score_order)
        return out

    def find_by_location(self, user_id: str, visit_type: VisitType, location_id: str) -> RatedItem | None:
        for item in self.all():
            if item.user_id == user_id and item.visit_type is visit_type and item.location_id == location_id:
                return item
        return None

    def save(self, item: RatedItem) -> RatedItem:
        self._store.put(item.id, item.model_dump(mode="json"))
        return item

    def bulk_update(self, items: list[RatedItem]) -> int:
        return self._store.bulk_put({item.id: item.model_dump(mode="json") for item in items})

    def apply_draft(
        self,
        draft: VisitDraft,
        geography: ReferenceGeography,
        *,
        id_factory: Callable[[], str],
        now: datetime,
    ) -> tuple[RatedItem, bool]:
        """Create or update the user's visit for the draft's location.

        Returns `(item, created)`. Raises `NotFoundError` when the location names
        do not resolve.
        """
        if draft.visit_type is VisitType.NEIGHBORHOOD:
            location_id = geography.neighborhood_id_for(draft.neighborhood_name or "", draft.borough_name or "")
            location = {"neighborhood_id": location_id}
        else:
            location_id = geography.country_id_for(draft.country_name or "")
            location = {"country_id": location_id}

        fields = {
            "visited": draft.visited,
            "notes": draft.notes,
            "visit_date": draft.visit_date,
            "score": draft.score,
            "category": draft.category,
            "updated_at": now,
        }
        existing = self.find_by_location(draft.user_id, draft.visit_type, location_id)
        if existing is not None:
            item = existing.model_copy(update=fields)
            self.save(item)
            logger.info("Updated visit %s for user %s", item.id, draft.user_id)
            return item, False

        item = RatedItem(
            id=id_factory(),
            user_id=draft.user_id,
            visit_type=draft.visit_type,
            created_at=now,
            **location,
            **fields,
        )
        self.save(item)
        logger.info("Created visit %s for user %s", item.id, draft.user_id)
        return item, True
