"""
Turn a converged insertion index into a score and category.

Cases, for `n` comparable items sorted best first:
- `n == 0`: midpoint of the pre-selected category (or the default category).
- index 0: one step above the best item, capped at the top of the pre-selected
  category, or of the best item's own category when nothing was pre-selected.
- index n: one step below the worst item, floored at the bottom of the
  pre-selected category, or of the worst item's own category.
- otherwise: halfway between the two neighbours; when their scores collide the
  upper neighbour's category is rebalanced and the candidate takes its midpoint.

A pre-selected category is always kept verbatim, even when the arithmetic lands
outside its band.
"""

from __future__ import annotations

from typing import Callable

from placerank.domain.errors import NotFoundError
from placerank.domain.models import Category, RatedItem, RankingResult
from placerank.scoring import bands

ItemLoader = Callable[[str], RatedItem | None]
Rebalancer = Callable[[Category], float]


def _load_scored(load_item: ItemLoader, item_id: str) -> RatedItem:
    item = load_item(item_id)
    if item is None or item.score is None:
        raise NotFoundError(f"Compared item {item_id} no longer exists or has no score")
    return item


def place_candidate(
    *,
    item_ids: list[str],
    insertion_index: int,
    load_item: ItemLoader,
    rebalance: Rebalancer,
    pre_selected: Category | None = None,
    default_category: Category = Category.GOOD,
    boundary_step: float = 1.0,
    collision_epsilon: float = bands.DEFAULT_COLLISION_EPSILON,
) -> RankingResult:
    """Compute the final score for a candidate inserted at `insertion_index`.

    Neighbours are re-read through `load_item` so the current stored scores are used.
    """
    n = len(item_ids)

    if n == 0:
        target = pre_selected or default_category
        score = bands.midpoint(target)
    elif insertion_index <= 0:
        best = _load_scored(load_item, item_ids[0])
        cap = bands.upper_bound(pre_selected or bands.category_of(best))
        score = min(best.score + boundary_step, cap)
    elif insertion_index >= n:
        worst = _load_scored(load_item, item_ids[n - 1])
        floor = bands.lower_bound(pre_selected or bands.category_of(worst))
        score = max(worst.score - boundary_step, floor)
    else:
        upper = _load_scored(load_item, item_ids[insertion_index - 1])
        lower = _load_scored(load_item, item_ids[insertion_index])
        if bands.scores_collide(upper.score, lower.score, collision_epsilon):
            score = rebalance(bands.category_of(upper))
        else:
            score = (upper.score + lower.score) / 2

    category = pre_selected if pre_selected is not None else bands.category_for_score(score)
    return RankingResult(score=score, category=category)
