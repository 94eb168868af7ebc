import pytest

from placerank.domain.models import Category
from placerank.ranking.rebalance import needs_rebalancing, rebalance, spread_scores


def test_spread_scores_fills_band_evenly():
    scores = spread_scores(4, Category.GOOD)
    assert scores[0] == 10.0
    assert scores[-1] == 7.0
    gaps = [a - b for a, b in zip(scores, scores[1:])]
    assert gaps == pytest.approx([1.0, 1.0, 1.0])


@pytest.mark.parametrize("category", list(Category))
@pytest.mark.parametrize("count", [2, 3, 5, 11])
def test_spread_scores_hits_exact_endpoints(category, count):
    lo, hi = {Category.GOOD: (7.0, 10.0), Category.MID: (4.0, 6.9), Category.BAD: (0.0, 3.9)}[category]
    scores = spread_scores(count, category)
    assert scores[0] == hi
    assert scores[-1] == lo
    gaps = [a - b for a, b in zip(scores, scores[1:])]
    assert gaps == pytest.approx([(hi - lo) / (count - 1)] * (count - 1))


def test_rebalance_redistributes_collided_scores(visits, add_visit):
    add_visit("a", 2.0, Category.BAD, neighborhood_id="soho")
    add_visit("b", 2.0, Category.BAD, neighborhood_id="harlem")
    assert needs_rebalancing(visits, "u1", Category.BAD)

    assert rebalance(visits, "u1", Category.BAD) == 2
    assert sorted(i.score for i in visits.find("u1")) == [0.0, 3.9]
    assert not needs_rebalancing(visits, "u1", Category.BAD)


def test_rebalance_is_a_fixed_point(visits, add_visit):
    for item_id, score in [("a", 9.3), ("b", 8.1), ("c", 8.0), ("d", 7.2)]:
        add_visit(item_id, score, Category.GOOD, country_id=item_id)
    rebalance(visits, "u1", Category.GOOD)
    first = {i.id: i.score for i in visits.find("u1")}
    rebalance(visits, "u1", Category.GOOD)
    second = {i.id: i.score for i in visits.find("u1")}
    assert first == second
    assert first["a"] == 10.0 and first["d"] == 7.0


def test_rebalance_keeps_rank_order(visits, add_visit):
    for item_id, score in [("x", 5.0), ("y", 6.5), ("z", 4.1)]:
        add_visit(item_id, score, Category.MID, country_id=item_id)
    rebalance(visits, "u1", Category.MID)
    assert [i.id for i in visits.find("u1")] == ["y", "x", "z"]


def test_rebalance_leaves_small_partitions_and_other_users_alone(visits, add_visit):
    add_visit("mine", 8.0, Category.GOOD, neighborhood_id="soho")
    add_visit("theirs-1", 8.0, Category.GOOD, neighborhood_id="soho", user_id="u2")
    add_visit("theirs-2", 8.0, Category.GOOD, neighborhood_id="harlem", user_id="u2")

    assert rebalance(visits, "u1", Category.GOOD) == 1
    assert visits.get("mine").score == 8.0
    assert visits.get("theirs-1").score == 8.0
    assert rebalance(visits, "u1", Category.MID) == 0
