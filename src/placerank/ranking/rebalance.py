"""
Score redistribution within one (user, category) partition.

Repeated insertions between two close neighbours halve the gap each time until
the scores collide. Rebalancing spreads the partition evenly across the whole
category band (best item at the top of the band, worst at the bottom), keeping
the existing rank order. Running it twice on the same order is a no-op.

The partition spans every visit type: neighborhoods and countries in the same
category share one band.
Scored items stored without a category join the band their score falls in, and
are written back with that category.
"""

from __future__ import annotations

import logging

from placerank.domain.models import Category, RatedItem
from placerank.scoring import bands
from placerank.storage.visits import VisitRepository

logger = logging.getLogger(__name__)


def spread_scores(count: int, category: Category) -> list[float]:
    """Evenly spaced scores for `count` ranked items, best first."""
    lo, hi = bands.bounds(category)
    if count <= 0:
        return []
    if count == 1:
        return [bands.midpoint(category)]
    out = []
    for i in range(count):
        frac = (count - 1 - i) / (count - 1)
        # Weighted form keeps both endpoints exact.
        out.append(hi * frac + lo * (1 - frac))
    return out


def _partition(visits: VisitRepository, user_id: str, category: Category) -> list[RatedItem]:
    return visits.find(user_id, category=category, scored=True)


def needs_rebalancing(
    visits: VisitRepository,
    user_id: str,
    category: Category,
    *,
    epsilon: float = bands.DEFAULT_COLLISION_EPSILON,
) -> bool:
    """True when two adjacent scores in the partition collide."""
    items = _partition(visits, user_id, category)
    return any(bands.scores_collide(a.score, b.score, epsilon) for a, b in zip(items, items[1:]))


def rebalance(visits: VisitRepository, user_id: str, category: Category) -> int:
    """Redistribute the partition's scores; returns the number of items in it.

    Partitions of zero or one item are left untouched. The write is a single bulk
    update; on failure the caller must treat the partition as possibly half-written.
    """
    items = _partition(visits, user_id, category)
    if len(items) <= 1:
        return len(items)

    targets = spread_scores(len(items), category)
    updated = [
        item.model_copy(update={"score": score, "category": category}) for item, score in zip(items, targets)
    ]
    visits.bulk_update(updated)
    logger.info("Rebalanced %d %s items for user %s", len(updated), category.value, user_id)
    return len(updated)
