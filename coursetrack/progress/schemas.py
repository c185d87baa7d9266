"""Pydantic schemas for learner progress.

Response models for:
- Course progress queries
- Course listing with enrollment state
- Enrollments
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field, SerializerFunctionWrapHandler, model_serializer

from coursetrack.core.schemas import CamelModel

from .aggregator import ProgressSnapshot
from .models import Enrollment, EnrollmentStatus


# ==============================================================================
# Progress Schemas
# ==============================================================================


class CourseProgressResponse(CamelModel):
    """Learner progress in one course, derived from the live lesson set."""

    course_id: UUID
    completed_lesson_count: int = Field(ge=0)
    total_lesson_count: int = Field(ge=0)
    percentage: int = Field(ge=0, le=100)
    completed_lesson_ids: list[UUID] = []

    @classmethod
    def from_snapshot(cls, snapshot: ProgressSnapshot) -> "CourseProgressResponse":
        """Create response from an aggregator snapshot."""
        return cls(
            course_id=snapshot.course_id,
            completed_lesson_count=snapshot.done,
            total_lesson_count=snapshot.total,
            percentage=snapshot.percentage,
            completed_lesson_ids=sorted(snapshot.completed_lesson_ids, key=str),
        )


class CourseWithProgressResponse(CamelModel):
    """Course card for the learner's course list.

    progressPercentage is only present for courses the learner is enrolled in.
    """

    id: UUID
    title: str
    description: str
    cover_url: str | None = None
    module_count: int = 0
    is_enrolled: bool = False
    progress_percentage: int | None = Field(None, ge=0, le=100)

    @model_serializer(mode="wrap")
    def _omit_progress_when_not_enrolled(
        self, handler: SerializerFunctionWrapHandler
    ) -> dict[str, Any]:
        data = handler(self)
        if self.progress_percentage is None:
            data.pop("progressPercentage", None)
            data.pop("progress_percentage", None)
        return data


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollmentResponse(CamelModel):
    """Enrollment with its live progress."""

    course_id: UUID
    user_id: UUID
    status: EnrollmentStatus
    enrolled_at: datetime
    completed_at: datetime | None = None
    completed_lesson_count: int = 0
    total_lesson_count: int = 0
    progress_percentage: int = Field(0, ge=0, le=100)

    @classmethod
    def from_entity(
        cls, enrollment: Enrollment, snapshot: ProgressSnapshot | None = None
    ) -> "EnrollmentResponse":
        """Create response from entity and optional progress snapshot."""
        data = enrollment.to_dict()
        if snapshot is not None:
            data.update(
                completed_lesson_count=snapshot.done,
                total_lesson_count=snapshot.total,
                progress_percentage=snapshot.percentage,
            )
        return cls(**data)


class EnrollmentListResponse(CamelModel):
    """Learner's enrollments."""

    items: list[EnrollmentResponse]
    total: int
