"""Performance review router: CRUD plus submit / complete / archive.

Writes need MANAGER or above. Reads are open to the reviewed employee and
the reviewer as well.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_principal, require_role
from hrms.auth.schemas import Principal
from hrms.common.constants import EmployeeRole, ReviewPeriod, ReviewStatus
from hrms.common.pagination import PaginatedResponse, PaginationParams
from hrms.database import get_db
from hrms.performance.schemas import ReviewCreate, ReviewOut, ReviewUpdate
from hrms.performance.service import PerformanceService

router = APIRouter(prefix="", tags=["performance"])

_manager_or_above = require_role(EmployeeRole.MANAGER)


def get_performance_service(db: AsyncSession = Depends(get_db)) -> PerformanceService:
    return PerformanceService(db)


@router.post("", response_model=ReviewOut, status_code=status.HTTP_201_CREATED)
async def create_review(
    body: ReviewCreate,
    service: PerformanceService = Depends(get_performance_service),
    principal: Principal = Depends(_manager_or_above),
):
    return await service.create_review(body)


@router.get("", response_model=PaginatedResponse[ReviewOut])
async def list_reviews(
    pagination: PaginationParams = Depends(),
    employee_id: Optional[uuid.UUID] = Query(None),
    reviewer_id: Optional[uuid.UUID] = Query(None),
    review_status: Optional[ReviewStatus] = Query(None, alias="status"),
    review_period: Optional[ReviewPeriod] = Query(None),
    service: PerformanceService = Depends(get_performance_service),
    principal: Principal = Depends(get_current_principal),
):
    return await service.list_reviews(
        page=pagination.page,
        page_size=pagination.page_size,
        employee_id=employee_id,
        reviewer_id=reviewer_id,
        status=review_status,
        review_period=review_period,
        actor=principal,
    )


@router.get("/{review_id}", response_model=ReviewOut)
async def get_review(
    review_id: uuid.UUID,
    service: PerformanceService = Depends(get_performance_service),
    principal: Principal = Depends(get_current_principal),
):
    return await service.get_review(review_id, actor=principal)


@router.patch("/{review_id}", response_model=ReviewOut)
async def update_review(
    review_id: uuid.UUID,
    body: ReviewUpdate,
    service: PerformanceService = Depends(get_performance_service),
    principal: Principal = Depends(_manager_or_above),
):
    return await service.update_review(review_id, body)


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: uuid.UUID,
    service: PerformanceService = Depends(get_performance_service),
    principal: Principal = Depends(_manager_or_above),
):
    await service.delete_review(review_id)


# ── Workflow ────────────────────────────────────────────────────────

@router.post("/{review_id}/submit", response_model=ReviewOut)
async def submit_review(
    review_id: uuid.UUID,
    service: PerformanceService = Depends(get_performance_service),
    principal: Principal = Depends(_manager_or_above),
):
    return await service.submit_review(review_id)


@router.post("/{review_id}/complete", response_model=ReviewOut)
async def complete_review(
    review_id: uuid.UUID,
    service: PerformanceService = Depends(get_performance_service),
    principal: Principal = Depends(_manager_or_above),
):
    """Completing fills in overall_rating from the competencies when unset."""
    return await service.complete_review(review_id)


@router.post("/{review_id}/archive", response_model=ReviewOut)
async def archive_review(
    review_id: uuid.UUID,
    service: PerformanceService = Depends(get_performance_service),
    principal: Principal = Depends(_manager_or_above),
):
    return await service.archive_review(review_id)
