"""Build a visit draft from a finished comparison session."""

from __future__ import annotations

from placerank.domain.errors import NotFoundError
from placerank.domain.models import ComparisonSession, VisitDraft, VisitType


def build_visit_draft(session: ComparisonSession | None) -> VisitDraft:
    if session is None or not session.is_complete:
        raise NotFoundError("Completed comparison session not found")

    data = session.new_location_data
    draft = VisitDraft(
        user_id=session.user_id,
        visit_type=data.visit_type,
        visited=data.visited,
        notes=data.notes,
        visit_date=data.visit_date,
        score=session.final_score,
        category=session.final_category,
    )
    if data.visit_type is VisitType.NEIGHBORHOOD:
        return draft.model_copy(
            update={"neighborhood_name": data.neighborhood_name, "borough_name": data.borough_name}
        )
    return draft.model_copy(update={"country_name": data.country_name})
