"""
Category score bands.

Every rated item lives in one of three categories, each owning a fixed closed
sub-interval of the 0..10 score range:

    Good  7.0 .. 10.0
    Mid   4.0 .. 6.9
    Bad   0.0 .. 3.9

The bands never overlap; they are not configurable.
"""

from __future__ import annotations

from placerank.domain.models import Category, RatedItem

CATEGORY_BOUNDS: dict[Category, tuple[float, float]] = {
    Category.GOOD: (7.0, 10.0),
    Category.MID: (4.0, 6.9),
    Category.BAD: (0.0, 3.9),
}

DEFAULT_COLLISION_EPSILON = 0.0001


def bounds(category: Category | str) -> tuple[float, float]:
    """Return the `(min, max)` score interval for a category."""
    return CATEGORY_BOUNDS[Category(category)]


def lower_bound(category: Category | str) -> float:
    return bounds(category)[0]


def upper_bound(category: Category | str) -> float:
    return bounds(category)[1]


def midpoint(category: Category | str) -> float:
    """Return the centre of a category's interval."""
    lo, hi = bounds(category)
    return (lo + hi) / 2


def category_for_score(score: float) -> Category:
    """Derive the category from a score (`>= 7.0` Good, `>= 4.0` Mid, else Bad)."""
    if score >= CATEGORY_BOUNDS[Category.GOOD][0]:
        return Category.GOOD
    if score >= CATEGORY_BOUNDS[Category.MID][0]:
        return Category.MID
    return Category.BAD


def category_of(item: RatedItem) -> Category | None:
    """An item's stored category, else the band its score falls in (None when unscored)."""
    if item.category is not None:
        return item.category
    if item.score is None:
        return None
    return category_for_score(item.score)


def scores_collide(a: float, b: float, epsilon: float = DEFAULT_COLLISION_EPSILON) -> bool:
    """True when two adjacent scores leave no usable gap between them."""
    return abs(a - b) < epsilon
