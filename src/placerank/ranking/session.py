"""
Binary-search state machine for one comparison session.

The session holds the ids of the user's comparable items sorted by score (best
first) and a `[low, high)` window over them. Each answer to "is the new place
better than item `mid`?" halves the window; when it closes, `low` is the 0-based
rank at which the new place belongs.

These helpers only move the cursor. Turning the final rank into a score lives in
`placerank.ranking.placement`; persistence lives in the engine.
"""

from __future__ import annotations

from datetime import datetime

from placerank.domain.errors import StateConflictError
from placerank.domain.models import ComparisonRecord, ComparisonSession, RankingResult, SearchState


def total_comparisons_for(count: int) -> int:
    """Worst-case number of comparisons for `count` items: ceil(log2(count + 1))."""
    # For non-negative ints, bit_length() is exactly ceil(log2(n + 1)).
    return max(0, int(count)).bit_length()


def start_search(sorted_visit_ids: list[str]) -> SearchState:
    n = len(sorted_visit_ids)
    return SearchState(
        sorted_visit_ids=list(sorted_visit_ids),
        current_low=0,
        current_high=n,
        current_mid=n // 2,
        comparisons_completed=0,
        total_comparisons=total_comparisons_for(n),
    )


def is_active(session: ComparisonSession) -> bool:
    state = session.search_state
    return not session.is_complete and state.current_low < state.current_high


def insertion_index(session: ComparisonSession) -> int:
    return session.search_state.current_low


def current_comparison_id(session: ComparisonSession) -> str:
    """Id of the existing item the candidate must be compared with next."""
    if not is_active(session):
        raise StateConflictError(f"Comparison session {session.session_id} is not active")
    state = session.search_state
    return state.sorted_visit_ids[state.current_mid]


def submit(session: ComparisonSession, new_location_better: bool, now: datetime) -> bool:
    """Record one answer and narrow the window.

    Returns True when the search has converged; the caller must then score the
    candidate and call `complete`.
    """
    item_id = current_comparison_id(session)
    state = session.search_state

    session.comparisons.append(
        ComparisonRecord(item_id=item_id, new_location_better=bool(new_location_better), timestamp=now)
    )
    state.comparisons_completed += 1

    if new_location_better:
        state.current_high = state.current_mid
    else:
        state.current_low = state.current_mid + 1

    if state.current_low >= state.current_high:
        return True

    state.current_mid = (state.current_low + state.current_high) // 2
    return False


def complete(session: ComparisonSession, result: RankingResult) -> None:
    """Mark the session terminal with its final score and category."""
    if session.is_complete:
        raise StateConflictError(f"Comparison session {session.session_id} is already complete")
    session.is_complete = True
    session.final_score = result.score
    session.final_category = result.category
