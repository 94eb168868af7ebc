"""
Domain models (Pydantic).

These types represent the stable "contract" between layers:
- inputs (`NewLocationData`)
- persisted documents (`RatedItem`, `ComparisonSession`)
- results returned to the API/CLI (`SessionOutcome`, `VisitDraft`, `GlobalPosition`)

Keeping these models in one place helps:
- validation (reject bad inputs early),
- typed refactors,
- consistent JSON output across CLI/API and the document store.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class Category(str, Enum):
    """Coarse rating bucket; each owns a fixed score interval (see `scoring.bands`)."""

    BAD = "Bad"
    MID = "Mid"
    GOOD = "Good"


CATEGORY_ORDER: tuple[Category, ...] = (Category.GOOD, Category.MID, Category.BAD)


class VisitType(str, Enum):
    NEIGHBORHOOD = "neighborhood"
    COUNTRY = "country"


class NewLocationData(BaseModel):
    """Identity fields of the candidate location being ranked."""

    visit_type: VisitType
    neighborhood_name: str | None = None
    borough_name: str | None = None
    country_name: str | None = None
    visited: bool = False
    notes: str = ""
    visit_date: datetime | None = None
    pre_selected_category: Category | None = None

    @model_validator(mode="after")
    def _validate_location_fields(self) -> "NewLocationData":
        if self.visit_type is VisitType.NEIGHBORHOOD and not (self.neighborhood_name and self.borough_name):
            raise ValueError("neighborhood_name and borough_name are required for neighborhood visits")
        if self.visit_type is VisitType.COUNTRY and not self.country_name:
            raise ValueError("country_name is required for country visits")
        return self


class RatedItem(BaseModel):
    """One user's scored judgment of one neighborhood or country (a "visit")."""

    id: str
    user_id: str
    visit_type: VisitType
    neighborhood_id: str | None = None
    country_id: str | None = None
    visited: bool = False
    notes: str = ""
    visit_date: datetime | None = None
    score: float | None = Field(default=None, ge=0, le=10)
    category: Category | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def _validate_location(self) -> "RatedItem":
        if self.visit_type is VisitType.NEIGHBORHOOD:
            if not self.neighborhood_id or self.country_id:
                raise ValueError("neighborhood visits need neighborhood_id and no country_id")
        elif not self.country_id or self.neighborhood_id:
            raise ValueError("country visits need country_id and no neighborhood_id")
        return self

    @property
    def location_id(self) -> str:
        return self.neighborhood_id if self.visit_type is VisitType.NEIGHBORHOOD else self.country_id


class SearchState(BaseModel):
    """Binary-search cursor over the comparable items (sorted by score, descending)."""

    sorted_visit_ids: list[str] = Field(default_factory=list)
    current_low: int = 0
    current_high: int = 0
    current_mid: int = 0
    comparisons_completed: int = 0
    total_comparisons: int = 0


class ComparisonRecord(BaseModel):
    item_id: str
    new_location_better: bool
    timestamp: datetime


class ComparisonSession(BaseModel):
    """A persisted, resumable binary-search ranking of one candidate location."""

    session_id: str
    user_id: str
    new_location_data: NewLocationData
    search_state: SearchState = Field(default_factory=SearchState)
    comparisons: list[ComparisonRecord] = Field(default_factory=list)
    is_complete: bool = False
    final_score: float | None = None
    final_category: Category | None = None
    rerank_item_id: str | None = None
    created_at: datetime
    expires_at: datetime
    version: int = 0


class ComparisonProgress(BaseModel):
    current: int
    total: int


class ComparisonRequest(BaseModel):
    """The next head-to-head question to put to the user."""

    session_id: str
    item_id: str
    compare_visit: RatedItem | None = None
    new_location: NewLocationData
    progress: ComparisonProgress


class RankingResult(BaseModel):
    score: float
    category: Category


class SessionOutcome(BaseModel):
    """Either the next comparison or the final result of a session."""

    session_id: str
    is_complete: bool
    comparison: ComparisonRequest | None = None
    result: RankingResult | None = None


class SessionSummary(BaseModel):
    session_id: str
    is_complete: bool
    new_location_data: NewLocationData
    progress: ComparisonProgress
    final_result: RankingResult | None = None


class VisitDraft(BaseModel):
    """A rated visit ready to be written; location ids are resolved by the visit store."""

    user_id: str
    visit_type: VisitType
    visited: bool = False
    notes: str = ""
    visit_date: datetime | None = None
    score: float
    category: Category
    neighborhood_name: str | None = None
    borough_name: str | None = None
    country_name: str | None = None


class GlobalPosition(BaseModel):
    position: int = Field(..., ge=1)
    total: int = Field(..., ge=1)
    category: Category | None = None
    score: float | None = None
