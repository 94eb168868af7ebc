"""
API routes.

Endpoints (caller identity comes from the `X-User-Id` header):
- POST `/api/pairwise/start`: start ranking a new place.
- POST `/api/pairwise/compare`: answer the current comparison.
- POST `/api/pairwise/create-visit`: write the visit for a finished session.
- GET  `/api/pairwise/rankings`: the caller's visits grouped by category.
- POST `/api/pairwise/rebalance`: evenly respread one category.
- GET  `/api/pairwise/session/{session_id}`: session progress / result.
- GET  `/api/pairwise/position/{item_id}`: rank of one visit within its scope.
- POST `/api/pairwise/cleanup`: delete expired sessions.
"""

from __future__ import annotations

import logging
from datetime import datetime
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Header, HTTPException, Query, Response
from pydantic import BaseModel

from placerank.domain.errors import NotFoundError, StateConflictError, ValidationFailure
from placerank.domain.models import SessionOutcome, SessionSummary
from placerank.ranking.engine import RankingEngine, build_engine
from placerank.storage.documents import record_store_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pairwise")


class StartRequest(BaseModel):
    visit_type: str | None = None
    neighborhood_name: str | None = None
    borough_name: str | None = None
    country_name: str | None = None
    visited: bool = False
    notes: str = ""
    visit_date: datetime | None = None
    category: str | None = None
    is_reranking: bool = False
    exclude_item_id: str | None = None


class CompareRequest(BaseModel):
    session_id: str
    new_location_better: Any = None


class SessionRequest(BaseModel):
    session_id: str


class RebalanceRequest(BaseModel):
    category: str | None = None


@lru_cache
def _engine() -> RankingEngine:
    return build_engine()


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ValidationFailure):
        return HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": str(exc)})
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": str(exc)})
    if isinstance(exc, StateConflictError):
        return HTTPException(status_code=409, detail={"code": "STATE_CONFLICT", "message": str(exc)})
    logger.exception("Unhandled ranking error")
    return HTTPException(status_code=500, detail={"code": "INTERNAL_ERROR", "message": str(exc)})


@router.post("/start")
def post_start(body: StartRequest, x_user_id: str = Header(...)) -> dict:
    """Start a session; returns the first comparison or, with nothing to compare, the result."""
    location = body.model_dump(exclude={"category", "is_reranking", "exclude_item_id"})
    try:
        with record_store_stats() as stats:
            outcome = _engine().initialize_session(
                x_user_id,
                location,
                body.category,
                is_reranking=body.is_reranking,
                exclude_item_id=body.exclude_item_id,
            )
    except Exception as e:
        raise _http_error(e) from e

    payload = outcome.model_dump(mode="json")
    payload["meta"] = {"store": stats.as_dict()}
    if outcome.is_complete:
        scope = f" in {body.category} category" if body.category else ""
        payload["message"] = f"No existing visits{scope} to compare. Location automatically ranked."
    return payload


@router.post("/compare", response_model=SessionOutcome)
def post_compare(body: CompareRequest, x_user_id: str = Header(...)) -> SessionOutcome:
    try:
        return _engine().submit_comparison(body.session_id, body.new_location_better, user_id=x_user_id)
    except Exception as e:
        raise _http_error(e) from e


@router.post("/create-visit", status_code=201)
def post_create_visit(body: SessionRequest, response: Response, x_user_id: str = Header(...)) -> dict:
    """201 when a new visit is written, 200 when the existing visit is updated."""
    try:
        item, created = _engine().create_visit_from_session(body.session_id, user_id=x_user_id)
    except Exception as e:
        raise _http_error(e) from e
    if not created:
        response.status_code = 200
    return {"visit": item.model_dump(mode="json"), "created": created}


@router.get("/rankings")
def get_rankings(
    x_user_id: str = Header(...),
    visit_type: str | None = Query(default=None),
    category: str | None = Query(default=None),
    scope: str | None = Query(default=None, description="Borough/city, continent or country name"),
) -> dict:
    try:
        grouped = _engine().get_user_rankings(x_user_id, visit_type, category, scope)
    except Exception as e:
        raise _http_error(e) from e
    return {k: [item.model_dump(mode="json") for item in items] for k, items in grouped.items()}


@router.post("/rebalance")
def post_rebalance(body: RebalanceRequest, x_user_id: str = Header(...)) -> dict:
    try:
        affected = _engine().rebalance_category(x_user_id, body.category)
    except Exception as e:
        raise _http_error(e) from e
    return {
        "message": f"Rebalanced {affected} visits in {body.category} category",
        "affected_count": affected,
    }


@router.get("/session/{session_id}", response_model=SessionSummary)
def get_session(session_id: str, x_user_id: str = Header(...)) -> SessionSummary:
    try:
        return _engine().summarize_session(session_id, user_id=x_user_id)
    except Exception as e:
        raise _http_error(e) from e


@router.get("/position/{item_id}")
def get_position(item_id: str, visit_type: str = Query(...), x_user_id: str = Header(...)) -> dict:
    try:
        position = _engine().get_global_ranking_position(x_user_id, item_id, visit_type)
    except Exception as e:
        raise _http_error(e) from e
    return position.model_dump(mode="json")


@router.post("/cleanup")
def post_cleanup() -> dict:
    try:
        deleted = _engine().cleanup_expired_sessions()
    except Exception as e:
        raise _http_error(e) from e
    return {"deleted_count": deleted}
