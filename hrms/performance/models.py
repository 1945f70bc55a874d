"""Performance ORM models: PerformanceReview with its goals and competencies."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.constants import GoalStatus, ReviewPeriod, ReviewStatus
from hrms.database import Base, utcnow


# ═════════════════════════════════════════════════════════════════════
# PerformanceReview
# ═════════════════════════════════════════════════════════════════════


class PerformanceReview(Base):
    __tablename__ = "performance_reviews"
    __table_args__ = (
        sa.CheckConstraint(
            "overall_rating IS NULL OR (overall_rating >= 0 AND overall_rating <= 5)",
            name="ck_review_overall_rating",
        ),
        sa.Index("ix_performance_reviews_employee_date", "employee_id", "review_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False,
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False, index=True,
    )
    review_period: Mapped[ReviewPeriod] = mapped_column(
        sa.Enum(ReviewPeriod, name="review_period", native_enum=False, length=20),
        nullable=False,
    )
    review_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    status: Mapped[ReviewStatus] = mapped_column(
        sa.Enum(ReviewStatus, name="review_status", native_enum=False, length=20),
        nullable=False,
        default=ReviewStatus.DRAFT,
    )
    overall_rating: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(3, 2))
    overall_comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    # ── Relationships (always loaded with the review) ───────────────
    goals: Mapped[list[PerformanceGoal]] = relationship(
        back_populates="review",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PerformanceGoal.created_at",
    )
    competencies: Mapped[list[PerformanceCompetency]] = relationship(
        back_populates="review",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PerformanceCompetency.created_at",
    )

    def __repr__(self) -> str:
        return f"<PerformanceReview {self.review_period.value} {self.review_date} {self.status.value}>"


# ═════════════════════════════════════════════════════════════════════
# Goals & competencies
# ═════════════════════════════════════════════════════════════════════


class PerformanceGoal(Base):
    __tablename__ = "performance_goals"
    __table_args__ = (
        sa.CheckConstraint("weight >= 0 AND weight <= 1", name="ck_goal_weight"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    review_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("performance_reviews.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    target_value: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    achieved_value: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    unit: Mapped[Optional[str]] = mapped_column(sa.String(50))
    status: Mapped[GoalStatus] = mapped_column(
        sa.Enum(GoalStatus, name="goal_status", native_enum=False, length=20),
        nullable=False,
        default=GoalStatus.NOT_STARTED,
    )
    weight: Mapped[Decimal] = mapped_column(sa.Numeric(3, 2), nullable=False, default=Decimal("1"))
    comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )

    review: Mapped[PerformanceReview] = relationship(back_populates="goals")


class PerformanceCompetency(Base):
    __tablename__ = "performance_competencies"
    __table_args__ = (
        sa.CheckConstraint(
            "rating IS NULL OR (rating >= 0 AND rating <= max_rating)",
            name="ck_competency_rating",
        ),
        sa.CheckConstraint("weight >= 0 AND weight <= 1", name="ck_competency_weight"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    review_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("performance_reviews.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    rating: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(3, 2))
    max_rating: Mapped[Decimal] = mapped_column(sa.Numeric(3, 2), nullable=False, default=Decimal("5"))
    weight: Mapped[Decimal] = mapped_column(sa.Numeric(3, 2), nullable=False, default=Decimal("1"))
    comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )

    review: Mapped[PerformanceReview] = relationship(back_populates="competencies")
