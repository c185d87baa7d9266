"""Learner progress service layer.

Business logic for:
- Lesson completion, followed by course recomputation
- Course enrollment (idempotent)
- Progress and enrollment queries
- Course listing with per-learner enrollment state
"""

from uuid import UUID

import structlog

from coursetrack.catalog.service import CatalogService

from .aggregator import (
    InvariantViolationError,
    ProgressAggregator,
    ProgressError,
    ProgressSnapshot,
)
from .models import Enrollment
from .repository import CompletionLedger, EnrollmentLedger
from .schemas import (
    CourseProgressResponse,
    CourseWithProgressResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
)


__all__ = [
    "InvariantViolationError",
    "NotEnrolledError",
    "ProgressError",
    "ProgressService",
]

logger = structlog.get_logger(__name__)


class NotEnrolledError(ProgressError):
    """User not enrolled in course."""

    def __init__(self, message: str = "User is not enrolled in this course"):
        super().__init__(message, "not_enrolled")


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Service for learner progress tracking."""

    def __init__(
        self,
        catalog: CatalogService,
        aggregator: ProgressAggregator,
        enrollments: EnrollmentLedger,
        completions: CompletionLedger,
    ):
        self.catalog = catalog
        self.aggregator = aggregator
        self.enrollments = enrollments
        self.completions = completions

    # ==========================================================================
    # Lesson Completion
    # ==========================================================================

    async def mark_lesson_complete(
        self, user_id: UUID, lesson_id: UUID
    ) -> ProgressSnapshot:
        """Mark a lesson complete and recompute its course.

        Idempotent: re-marking a completed lesson leaves every ledger as is.
        Raises LessonNotFoundError if the lesson does not exist.
        """
        lesson = await self.catalog.require_lesson(lesson_id)

        await self.completions.mark_complete(user_id, lesson.id, lesson.course_id)

        snapshot = await self.aggregator.recompute(user_id, lesson.course_id)

        logger.info(
            "lesson_marked_complete",
            user_id=str(user_id),
            lesson_id=str(lesson_id),
            course_id=str(lesson.course_id),
            percentage=snapshot.percentage,
        )
        return snapshot

    async def is_lesson_complete(self, user_id: UUID, lesson_id: UUID) -> bool:
        """Check a single lesson's completion mark."""
        return await self.completions.is_complete(user_id, lesson_id)

    # ==========================================================================
    # Enrollment
    # ==========================================================================

    async def enroll_user(self, user_id: UUID, course_id: UUID) -> EnrollmentResponse:
        """Enroll user in course.

        Enrolling again returns the existing record with its completion
        timestamp untouched. Marks made before enrolling count immediately.
        """
        await self.catalog.require_course(course_id)

        enrollment = await self.enrollments.enroll(user_id, course_id)
        snapshot = await self.aggregator.recompute(
            user_id, course_id, enrollment=enrollment
        )

        logger.info(
            "user_enrolled",
            user_id=str(user_id),
            course_id=str(course_id),
        )
        return await self._enrollment_response(user_id, course_id, snapshot)

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> EnrollmentResponse:
        """Get enrollment with live progress, or raise NotEnrolledError."""
        enrollment = await self.enrollments.get_enrollment(user_id, course_id)
        if enrollment is None:
            raise NotEnrolledError

        snapshot = await self.aggregator.compute(user_id, course_id)
        return EnrollmentResponse.from_entity(enrollment, snapshot)

    async def get_user_enrollments(self, user_id: UUID) -> EnrollmentListResponse:
        """List all enrollments for user."""
        enrollments = await self.enrollments.list_learner_enrollments(user_id)

        items = []
        for enrollment in sorted(enrollments, key=lambda e: e.enrolled_at, reverse=True):
            snapshot = await self.aggregator.compute(user_id, enrollment.course_id)
            items.append(EnrollmentResponse.from_entity(enrollment, snapshot))

        return EnrollmentListResponse(items=items, total=len(items))

    async def _enrollment_response(
        self, user_id: UUID, course_id: UUID, snapshot: ProgressSnapshot
    ) -> EnrollmentResponse:
        # Re-read so a completion applied by the recompute is visible
        enrollment: Enrollment | None = await self.enrollments.get_enrollment(
            user_id, course_id
        )
        if enrollment is None:
            raise NotEnrolledError
        return EnrollmentResponse.from_entity(enrollment, snapshot)

    # ==========================================================================
    # Progress Queries
    # ==========================================================================

    async def get_course_progress(
        self, user_id: UUID, course_id: UUID
    ) -> CourseProgressResponse:
        """Progress of the learner in a course, scoped to its current lessons."""
        await self.catalog.require_course(course_id)

        snapshot = await self.aggregator.compute(user_id, course_id)
        return CourseProgressResponse.from_snapshot(snapshot)

    async def list_courses_for_learner(
        self, user_id: UUID
    ) -> list[CourseWithProgressResponse]:
        """Every course, with enrollment state and live percentage when enrolled."""
        enrolled = {
            enrollment.course_id
            for enrollment in await self.enrollments.list_learner_enrollments(user_id)
        }

        items = []
        for course in await self.catalog.list_courses():
            percentage = None
            if course.id in enrolled:
                snapshot = await self.aggregator.compute(user_id, course.id)
                percentage = snapshot.percentage

            items.append(
                CourseWithProgressResponse(
                    id=course.id,
                    title=course.title,
                    description=course.description,
                    cover_url=course.cover_url,
                    module_count=await self.catalog.count_modules(course.id),
                    is_enrolled=course.id in enrolled,
                    progress_percentage=percentage,
                )
            )
        return items
