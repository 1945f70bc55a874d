"""Performance review persistence access."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.constants import ReviewPeriod, ReviewStatus
from hrms.common.filters import apply_filters
from hrms.common.pagination import PaginatedResponse, paginate
from hrms.performance.models import PerformanceReview


class PerformanceReviewRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, review_id: uuid.UUID, *, lock: bool = False) -> Optional[PerformanceReview]:
        query = select(PerformanceReview).where(PerformanceReview.id == review_id)
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def delete(self, review: PerformanceReview) -> None:
        await self.db.delete(review)
        await self.db.flush()

    async def flush(self) -> None:
        await self.db.flush()

    async def list(
        self,
        *,
        page: int,
        page_size: int,
        employee_id: Optional[uuid.UUID] = None,
        reviewer_id: Optional[uuid.UUID] = None,
        status: Optional[ReviewStatus] = None,
        review_period: Optional[ReviewPeriod] = None,
    ) -> PaginatedResponse:
        query = select(PerformanceReview)
        query = apply_filters(
            query,
            PerformanceReview,
            {
                "employee_id": employee_id,
                "reviewer_id": reviewer_id,
                "status": status,
                "review_period": review_period,
            },
        )
        query = query.order_by(
            PerformanceReview.review_date.desc(), PerformanceReview.created_at.desc(),
        )
        return await paginate(self.db, query, page=page, page_size=page_size)
