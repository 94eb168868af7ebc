from __future__ import annotations

# This module is the orchestrator for pairwise ranking sessions.
# It wires together:
# - scope resolution (reference geography: metro areas, continents)
# - candidate selection (the user's scored visits, best first)
# - the binary-search state machine (`ranking.session`)
# - final scoring + collision rebalancing (`ranking.placement`, `ranking.rebalance`)
# - persistence (visit + session repositories)

import logging
import uuid
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Callable

from pydantic import ValidationError

from placerank.config.settings import RankingSettings, Settings, get_settings
from placerank.core.env import resolve_project_path
from placerank.core.time import Clock, utc_now
from placerank.domain.errors import NotFoundError, StateConflictError, ValidationFailure
from placerank.domain.models import (
    CATEGORY_ORDER,
    Category,
    ComparisonProgress,
    ComparisonRequest,
    ComparisonSession,
    GlobalPosition,
    NewLocationData,
    RankingResult,
    RatedItem,
    SessionOutcome,
    SessionSummary,
    VisitDraft,
    VisitType,
)
from placerank.geography.catalog import ReferenceGeography
from placerank.ranking import session as search
from placerank.ranking.materialize import build_visit_draft
from placerank.ranking.placement import place_candidate
from placerank.ranking.rebalance import needs_rebalancing, rebalance
from placerank.scoring import bands
from placerank.storage.documents import FileDocumentStore
from placerank.storage.sessions import SessionRepository
from placerank.storage.visits import VisitRepository

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


def parse_category(value: Category | str | None) -> Category | None:
    """Accept a Category, its string value, or None; anything else is a validation failure."""
    if value is None or value == "":
        return None
    try:
        return Category(value)
    except ValueError as e:
        raise ValidationFailure("category must be one of: Good, Mid, Bad") from e


def parse_visit_type(value: VisitType | str | None) -> VisitType:
    try:
        return VisitType(value)
    except ValueError as e:
        raise ValidationFailure('visitType must be either "neighborhood" or "country"') from e


def _parse_location(data: NewLocationData | Mapping[str, Any]) -> NewLocationData:
    if isinstance(data, NewLocationData):
        return data
    parse_visit_type(data.get("visit_type"))
    try:
        return NewLocationData.model_validate(dict(data))
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        msg = str(first.get("msg", "invalid location data")).removeprefix("Value error, ")
        raise ValidationFailure(msg) from e


class RankingEngine:
    """Session lifecycle: start, compare, finish, plus ranking queries."""

    def __init__(
        self,
        visits: VisitRepository,
        sessions: SessionRepository,
        geography: ReferenceGeography,
        *,
        ranking: RankingSettings | None = None,
        session_ttl_seconds: int = 60 * 60 * 24,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = _new_id,
    ):
        self.visits = visits
        self.sessions = sessions
        self.geography = geography
        self._ranking = ranking or RankingSettings()
        self._session_ttl = timedelta(seconds=session_ttl_seconds)
        self._clock = clock
        self._id_factory = id_factory

    # ------------------------------------------------------------------ scope

    def _scope_for_candidate(self, data: NewLocationData) -> set[str]:
        if data.visit_type is VisitType.NEIGHBORHOOD:
            return self.geography.sibling_location_ids_for(data.borough_name)
        return self.geography.continent_sibling_ids_for(data.country_name)

    # --------------------------------------------------------------- sessions

    def initialize_session(
        self,
        user_id: str,
        new_location_data: NewLocationData | Mapping[str, Any],
        pre_selected_category: Category | str | None = None,
        *,
        is_reranking: bool = False,
        exclude_item_id: str | None = None,
    ) -> SessionOutcome:
        """Start ranking a new location against the user's comparable visits.

        Completes immediately (and persists an already-terminal session) when there
        is nothing to compare against.
        """
        data = _parse_location(new_location_data)
        category = parse_category(pre_selected_category) or data.pre_selected_category
        if category is not None and category is not data.pre_selected_category:
            data = data.model_copy(update={"pre_selected_category": category})
        if is_reranking and not exclude_item_id:
            raise ValidationFailure("exclude_item_id is required when re-ranking")

        scope = self._scope_for_candidate(data)
        candidates = self.visits.find(
            user_id,
            visit_type=data.visit_type,
            category=category,
            scored=True,
            location_ids=scope,
            exclude_id=exclude_item_id if is_reranking else None,
        )

        now = self._clock()
        session = ComparisonSession(
            session_id=self._id_factory(),
            user_id=user_id,
            new_location_data=data,
            search_state=search.start_search([c.id for c in candidates]),
            rerank_item_id=exclude_item_id if is_reranking else None,
            created_at=now,
            expires_at=now + self._session_ttl,
        )
        logger.info(
            "Starting %s ranking session %s for user %s (%d candidates, category=%s)",
            data.visit_type.value,
            session.session_id,
            user_id,
            len(candidates),
            category.value if category else None,
        )

        if not candidates:
            result = self._finalize(session)
            self.sessions.create(session)
            return SessionOutcome(session_id=session.session_id, is_complete=True, result=result)

        self.sessions.create(session)
        return SessionOutcome(
            session_id=session.session_id,
            is_complete=False,
            comparison=self._comparison_request(session),
        )

    def submit_comparison(
        self, session_id: str, new_location_better: bool, *, user_id: str | None = None
    ) -> SessionOutcome:
        """Apply one answer to an active session and persist it."""
        if not isinstance(new_location_better, bool):
            raise ValidationFailure("new_location_better must be a boolean")
        session = self._owned_session(session_id, user_id)
        if session.is_complete:
            raise StateConflictError(f"Comparison session {session_id} is already complete")

        converged = search.submit(session, new_location_better, self._clock())
        logger.debug(
            "Session %s: comparison %d/%d answered (new better=%s)",
            session_id,
            session.search_state.comparisons_completed,
            session.search_state.total_comparisons,
            new_location_better,
        )

        if converged:
            result = self._finalize(session)
            self.sessions.save(session)
            return SessionOutcome(session_id=session_id, is_complete=True, result=result)

        saved = self.sessions.save(session)
        return SessionOutcome(
            session_id=session_id,
            is_complete=False,
            comparison=self._comparison_request(saved),
        )

    def get_current_comparison(self, session_id: str, *, user_id: str | None = None) -> ComparisonRequest:
        session = self._owned_session(session_id, user_id)
        return self._comparison_request(session)

    def get_session(self, session_id: str) -> ComparisonSession | None:
        return self.sessions.get(session_id)

    def summarize_session(self, session_id: str, *, user_id: str | None = None) -> SessionSummary:
        session = self._owned_session(session_id, user_id)
        final = None
        if session.is_complete:
            final = {"score": session.final_score, "category": session.final_category}
        return SessionSummary(
            session_id=session.session_id,
            is_complete=session.is_complete,
            new_location_data=session.new_location_data,
            progress=ComparisonProgress(
                current=session.search_state.comparisons_completed,
                total=session.search_state.total_comparisons,
            ),
            final_result=final,
        )

    def cleanup_expired_sessions(self) -> int:
        deleted = self.sessions.purge_expired()
        logger.info("Expired session sweep removed %d sessions", deleted)
        return deleted

    # ---------------------------------------------------------- materializing

    def materialize_from_session(self, session_id: str, *, user_id: str | None = None) -> VisitDraft:
        session = self.sessions.get(session_id)
        if session is not None and user_id is not None and session.user_id != user_id:
            session = None
        return build_visit_draft(session)

    def create_visit_from_session(self, session_id: str, *, user_id: str | None = None) -> tuple[RatedItem, bool]:
        """Materialize a finished session and upsert the user's visit for that location."""
        draft = self.materialize_from_session(session_id, user_id=user_id)
        return self.visits.apply_draft(draft, self.geography, id_factory=self._id_factory, now=self._clock())

    # --------------------------------------------------------------- rankings

    def get_user_rankings(
        self,
        user_id: str,
        visit_type: VisitType | str | None = None,
        category: Category | str | None = None,
        geographic_scope: str | None = None,
    ) -> dict[str, list[RatedItem]]:
        """The user's scored visits grouped into Good/Mid/Bad, each best first."""
        vt = parse_visit_type(visit_type) if visit_type else None
        cat = parse_category(category)
        scope = None
        if geographic_scope:
            if vt is None:
                raise ValidationFailure("visitType is required when filtering by geographic scope")
            scope = self.geography.scope_ids(vt, geographic_scope)

        items = self.visits.find(user_id, visit_type=vt, category=cat, scored=True, location_ids=scope)
        grouped: dict[str, list[RatedItem]] = {c.value: [] for c in CATEGORY_ORDER}
        for item in items:
            bucket = bands.category_of(item)
            grouped[bucket.value].append(item)
        return grouped

    def rebalance_category(self, user_id: str, category: Category | str) -> int:
        cat = parse_category(category)
        if cat is None:
            raise ValidationFailure("category must be one of: Good, Mid, Bad")
        return rebalance(self.visits, user_id, cat)

    def needs_rebalancing(self, user_id: str, category: Category | str) -> bool:
        cat = parse_category(category)
        if cat is None:
            raise ValidationFailure("category must be one of: Good, Mid, Bad")
        return needs_rebalancing(self.visits, user_id, cat, epsilon=self._ranking.collision_epsilon)

    def get_global_ranking_position(
        self, user_id: str, item_id: str, visit_type: VisitType | str
    ) -> GlobalPosition:
        """1-based rank of an item among the user's same-category, same-scope visits."""
        vt = parse_visit_type(visit_type)
        item = self.visits.get(item_id)
        if item is None or item.user_id != user_id or item.visit_type is not vt:
            raise NotFoundError(f"Visit {item_id} not found")
        if item.score is None:
            raise NotFoundError(f"Visit {item_id} has not been ranked")

        category = bands.category_of(item)
        scope = self.geography.scope_for_location(vt, item.location_id)
        comparable = self.visits.find(user_id, visit_type=vt, category=category, scored=True, location_ids=scope)
        ids = [c.id for c in comparable]
        return GlobalPosition(
            position=ids.index(item.id) + 1,
            total=len(ids),
            category=category,
            score=item.score,
        )

    # ---------------------------------------------------------------- helpers

    def _owned_session(self, session_id: str, user_id: str | None) -> ComparisonSession:
        session = self.sessions.get(session_id)
        if session is None or (user_id is not None and session.user_id != user_id):
            raise NotFoundError(f"Comparison session {session_id} not found")
        return session

    def _comparison_request(self, session: ComparisonSession) -> ComparisonRequest:
        item_id = search.current_comparison_id(session)
        return ComparisonRequest(
            session_id=session.session_id,
            item_id=item_id,
            compare_visit=self.visits.get(item_id),
            new_location=session.new_location_data,
            progress=ComparisonProgress(
                current=session.search_state.comparisons_completed,
                total=session.search_state.total_comparisons,
            ),
        )

    def _trigger_rebalance(self, user_id: str) -> Callable[[Category], float]:
        def _run(category: Category) -> float:
            logger.info("Score collision in %s for user %s; rebalancing", category.value, user_id)
            rebalance(self.visits, user_id, category)
            return bands.midpoint(category)

        return _run

    def _finalize(self, session: ComparisonSession) -> RankingResult:
        result = place_candidate(
            item_ids=session.search_state.sorted_visit_ids,
            insertion_index=search.insertion_index(session),
            load_item=self.visits.get,
            rebalance=self._trigger_rebalance(session.user_id),
            pre_selected=session.new_location_data.pre_selected_category,
            default_category=Category(self._ranking.default_category),
            boundary_step=self._ranking.boundary_step,
            collision_epsilon=self._ranking.collision_epsilon,
        )
        search.complete(session, result)
        logger.info(
            "Session %s complete: score=%.4f category=%s",
            session.session_id,
            result.score,
            result.category.value,
        )
        return result


def build_engine(settings: Settings | None = None, *, geography: ReferenceGeography | None = None) -> RankingEngine:
    """Wire an engine with file-backed stores under `settings.storage.dir`."""
    settings = settings or get_settings()
    data_dir = resolve_project_path(settings.storage.dir)
    visits = VisitRepository(FileDocumentStore(data_dir, "visits"))
    sessions = SessionRepository(
        FileDocumentStore(data_dir, "sessions", default_ttl_seconds=settings.storage.session_ttl_seconds)
    )
    if geography is None:
        geography = ReferenceGeography.from_path(settings.geography.catalog_path)
    return RankingEngine(
        visits,
        sessions,
        geography,
        ranking=settings.ranking,
        session_ttl_seconds=settings.storage.session_ttl_seconds,
    )
