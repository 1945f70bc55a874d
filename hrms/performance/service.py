"""Performance review service: CRUD and the review status workflow.

DRAFT → SUBMITTED → COMPLETED → ARCHIVED, one step at a time. Reviews can
be edited until completed and deleted only while still a draft.
"""

from __future__ import annotations

import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.schemas import Principal
from hrms.common.constants import (
    EDITABLE_REVIEW_STATUSES,
    MAX_RATING,
    EmployeeRole,
    ReviewPeriod,
    ReviewStatus,
)
from hrms.common.exceptions import (
    FailedPreconditionException,
    ForbiddenException,
    InternalError,
    NotFoundException,
    ValidationException,
)
from hrms.common.pagination import PaginatedResponse
from hrms.core_hr.repository import EmployeeRepository
from hrms.database import utcnow
from hrms.performance.models import (
    PerformanceCompetency,
    PerformanceGoal,
    PerformanceReview,
)
from hrms.performance.repository import PerformanceReviewRepository
from hrms.performance.schemas import (
    CompetencyIn,
    GoalIn,
    ReviewCreate,
    ReviewOut,
    ReviewUpdate,
)

logger = logging.getLogger(__name__)

_TWO_PLACES = Decimal("0.01")

# status → (next status, verb used in errors and logs)
_TRANSITIONS: dict[ReviewStatus, tuple[ReviewStatus, str]] = {
    ReviewStatus.DRAFT: (ReviewStatus.SUBMITTED, "submit"),
    ReviewStatus.SUBMITTED: (ReviewStatus.COMPLETED, "complete"),
    ReviewStatus.COMPLETED: (ReviewStatus.ARCHIVED, "archive"),
}


def weighted_rating(competencies: Iterable[PerformanceCompetency]) -> Optional[Decimal]:
    """Weight-averaged competency rating on the 0–5 scale, or None if nothing is rated."""
    total_weight = Decimal("0")
    weighted_sum = Decimal("0")
    for comp in competencies:
        if comp.rating is None or not comp.weight or not comp.max_rating:
            continue
        normalised = Decimal(comp.rating) / Decimal(comp.max_rating) * MAX_RATING
        weighted_sum += normalised * Decimal(comp.weight)
        total_weight += Decimal(comp.weight)
    if not total_weight:
        return None
    return (weighted_sum / total_weight).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


class PerformanceService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.reviews = PerformanceReviewRepository(db)
        self.employees = EmployeeRepository(db)

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    async def _get_or_404(self, review_id: uuid.UUID, *, lock: bool = False) -> PerformanceReview:
        review = await self.reviews.get(review_id, lock=lock)
        if review is None:
            raise NotFoundException("Performance review", review_id)
        return review

    async def _check_employee(self, employee_id: uuid.UUID) -> None:
        if not await self.employees.exists(employee_id):
            raise NotFoundException("Employee", employee_id)

    @staticmethod
    def _check_viewer(actor: Optional[Principal], review: PerformanceReview) -> None:
        if actor is None or actor.is_at_least(EmployeeRole.MANAGER):
            return
        if actor.employee_id not in (review.employee_id, review.reviewer_id):
            raise ForbiddenException("You can only view reviews you are part of.")

    @staticmethod
    def _goals(items: list[GoalIn]) -> list[PerformanceGoal]:
        return [PerformanceGoal(**item.model_dump()) for item in items]

    @staticmethod
    def _competencies(items: list[CompetencyIn]) -> list[PerformanceCompetency]:
        return [PerformanceCompetency(**item.model_dump()) for item in items]

    async def _flush(self, action: str, review_id: Optional[uuid.UUID] = None) -> None:
        try:
            await self.reviews.flush()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(
                "Review %s failed",
                action,
                extra={"review_id": str(review_id) if review_id else None, "error": str(exc)},
            )
            raise InternalError(f"Failed to {action} performance review.") from exc

    # ─────────────────────────────────────────────────────────────────
    # CRUD
    # ─────────────────────────────────────────────────────────────────

    async def create_review(self, data: ReviewCreate) -> ReviewOut:
        if data.employee_id == data.reviewer_id:
            raise ValidationException({"reviewer_id": ["An employee cannot review themselves."]})
        await self._check_employee(data.employee_id)
        await self._check_employee(data.reviewer_id)

        review = PerformanceReview(
            **data.model_dump(exclude={"goals", "competencies"}),
            status=ReviewStatus.DRAFT,
            goals=self._goals(data.goals),
            competencies=self._competencies(data.competencies),
        )
        self.db.add(review)
        await self._flush("create")

        logger.info(
            "Performance review created",
            extra={"review_id": str(review.id), "employee_id": str(review.employee_id)},
        )
        return ReviewOut.model_validate(review)

    async def get_review(
        self,
        review_id: uuid.UUID,
        actor: Optional[Principal] = None,
    ) -> ReviewOut:
        review = await self._get_or_404(review_id)
        self._check_viewer(actor, review)
        return ReviewOut.model_validate(review)

    async def update_review(self, review_id: uuid.UUID, data: ReviewUpdate) -> ReviewOut:
        changes = data.model_dump(exclude_unset=True, exclude={"goals", "competencies"})
        if not changes and data.goals is None and data.competencies is None:
            raise ValidationException({"body": ["At least one field must be provided."]})

        review = await self._get_or_404(review_id, lock=True)
        if review.status not in EDITABLE_REVIEW_STATUSES:
            raise FailedPreconditionException(
                f"cannot update review with status: {review.status.value}",
            )

        if changes.get("reviewer_id") is not None:
            if changes["reviewer_id"] == review.employee_id:
                raise ValidationException({"reviewer_id": ["An employee cannot review themselves."]})
            await self._check_employee(changes["reviewer_id"])

        for field, value in changes.items():
            if value is None and field in ("reviewer_id", "review_period", "review_date"):
                continue
            setattr(review, field, value)
        if data.goals is not None:
            review.goals = self._goals(data.goals)
        if data.competencies is not None:
            review.competencies = self._competencies(data.competencies)
        await self._flush("update", review.id)

        logger.info("Performance review updated", extra={"review_id": str(review.id)})
        return ReviewOut.model_validate(review)

    async def delete_review(self, review_id: uuid.UUID) -> None:
        review = await self._get_or_404(review_id, lock=True)
        if review.status != ReviewStatus.DRAFT:
            raise FailedPreconditionException(
                f"cannot delete review with status: {review.status.value}",
            )
        await self.reviews.delete(review)
        logger.info("Performance review deleted", extra={"review_id": str(review_id)})

    async def list_reviews(
        self,
        *,
        page: int = 1,
        page_size: int = 10,
        employee_id: Optional[uuid.UUID] = None,
        reviewer_id: Optional[uuid.UUID] = None,
        status: Optional[ReviewStatus] = None,
        review_period: Optional[ReviewPeriod] = None,
        actor: Optional[Principal] = None,
    ) -> PaginatedResponse[ReviewOut]:
        if actor is not None and not actor.is_at_least(EmployeeRole.MANAGER):
            # Plain employees see their own reviews unless asking for ones they wrote
            if reviewer_id != actor.employee_id:
                if employee_id is not None and employee_id != actor.employee_id:
                    raise ForbiddenException("You can only view reviews you are part of.")
                employee_id = actor.employee_id

        result = await self.reviews.list(
            page=page,
            page_size=page_size,
            employee_id=employee_id,
            reviewer_id=reviewer_id,
            status=status,
            review_period=review_period,
        )
        return PaginatedResponse[ReviewOut](
            data=[ReviewOut.model_validate(r) for r in result.data],
            meta=result.meta,
        )

    # ─────────────────────────────────────────────────────────────────
    # Workflow
    # ─────────────────────────────────────────────────────────────────

    async def _advance(self, review_id: uuid.UUID, target: ReviewStatus) -> ReviewOut:
        review = await self._get_or_404(review_id, lock=True)
        next_status, verb = _TRANSITIONS.get(review.status, (None, None))
        if next_status != target:
            action = next(v for s, v in _TRANSITIONS.values() if s == target)
            raise FailedPreconditionException(
                f"cannot {action} review with status: {review.status.value}",
            )

        now = utcnow()
        if target == ReviewStatus.SUBMITTED:
            review.submitted_at = now
        elif target == ReviewStatus.COMPLETED:
            review.completed_at = now
            if review.overall_rating is None:
                review.overall_rating = weighted_rating(review.competencies)
        review.status = target
        await self._flush(verb, review.id)

        logger.info(
            "Performance review status changed",
            extra={"review_id": str(review.id), "action": verb, "status": target.value},
        )
        return ReviewOut.model_validate(review)

    async def submit_review(self, review_id: uuid.UUID) -> ReviewOut:
        return await self._advance(review_id, ReviewStatus.SUBMITTED)

    async def complete_review(self, review_id: uuid.UUID) -> ReviewOut:
        return await self._advance(review_id, ReviewStatus.COMPLETED)

    async def archive_review(self, review_id: uuid.UUID) -> ReviewOut:
        return await self._advance(review_id, ReviewStatus.ARCHIVED)
