"""Performance review Pydantic v2 schemas."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrms.common.constants import MAX_RATING, GoalStatus, ReviewPeriod, ReviewStatus


# ═════════════════════════════════════════════════════════════════════
# Goals & competencies
# ═════════════════════════════════════════════════════════════════════


class GoalIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    target_value: Optional[Decimal] = None
    achieved_value: Optional[Decimal] = None
    unit: Optional[str] = Field(None, max_length=50)
    status: GoalStatus = GoalStatus.NOT_STARTED
    weight: Decimal = Field(Decimal("1"), ge=0, le=1)
    comments: Optional[str] = None


class CompetencyIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    rating: Optional[Decimal] = Field(None, ge=0, le=MAX_RATING)
    max_rating: Decimal = Field(Decimal(MAX_RATING), gt=0, le=MAX_RATING)
    weight: Decimal = Field(Decimal("1"), ge=0, le=1)
    comments: Optional[str] = None

    @model_validator(mode="after")
    def _rating_within_scale(self) -> "CompetencyIn":
        if self.rating is not None and self.rating > self.max_rating:
            raise ValueError("rating cannot exceed max_rating.")
        return self


class GoalOut(GoalIn):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID


class CompetencyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    rating: Optional[Decimal] = None
    max_rating: Decimal
    weight: Decimal
    comments: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# Review
# ═════════════════════════════════════════════════════════════════════


class ReviewCreate(BaseModel):
    employee_id: uuid.UUID
    reviewer_id: uuid.UUID
    review_period: ReviewPeriod
    review_date: date
    overall_rating: Optional[Decimal] = Field(None, ge=0, le=MAX_RATING)
    overall_comments: Optional[str] = None
    goals: list[GoalIn] = Field(default_factory=list)
    competencies: list[CompetencyIn] = Field(default_factory=list)


class ReviewUpdate(BaseModel):
    """Partial update. ``goals`` / ``competencies`` replace the whole list when given."""

    reviewer_id: Optional[uuid.UUID] = None
    review_period: Optional[ReviewPeriod] = None
    review_date: Optional[date] = None
    overall_rating: Optional[Decimal] = Field(None, ge=0, le=MAX_RATING)
    overall_comments: Optional[str] = None
    goals: Optional[list[GoalIn]] = None
    competencies: Optional[list[CompetencyIn]] = None


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    reviewer_id: uuid.UUID
    review_period: ReviewPeriod
    review_date: date
    status: ReviewStatus
    overall_rating: Optional[Decimal] = None
    overall_comments: Optional[str] = None
    submitted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    goals: list[GoalOut] = Field(default_factory=list)
    competencies: list[CompetencyOut] = Field(default_factory=list)
