"""Learner progress API endpoints.

Provides routes for:
- Lesson completion
- Course progress queries
- Course listing with enrollment state, and enrollment
- Enrollment queries
"""

from uuid import UUID

from fastapi import APIRouter, Response, status

from coursetrack.auth.dependencies import CurrentUser
from coursetrack.catalog.dependencies import handle_catalog_error
from coursetrack.catalog.service import CatalogError

from .dependencies import ProgressServiceDep, handle_progress_error
from .schemas import (
    CourseProgressResponse,
    CourseWithProgressResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
)
from .service import ProgressError


router = APIRouter(prefix="/v1/progress", tags=["progress"])
courses_router = APIRouter(prefix="/v1/courses", tags=["courses"])
enrollments_router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


# ==============================================================================
# Lesson Completion Endpoints
# ==============================================================================


@router.post(
    "/lessons/{lesson_id}/complete",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark lesson as complete",
)
async def mark_lesson_complete(
    lesson_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> Response:
    """Mark a lesson complete for the current learner.

    Idempotent. Recomputes the lesson's course and completes the
    enrollment once every current lesson is done.
    """
    try:
        await progress_service.mark_lesson_complete(user.id, lesson_id)
    except CatalogError as e:
        raise handle_catalog_error(e) from e
    except ProgressError as e:
        raise handle_progress_error(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ==============================================================================
# Progress Query Endpoints
# ==============================================================================


@router.get(
    "/courses/{course_id}",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> CourseProgressResponse:
    """Completed and total lesson counts with percentage, over current lessons."""
    try:
        return await progress_service.get_course_progress(user.id, course_id)
    except CatalogError as e:
        raise handle_catalog_error(e) from e
    except ProgressError as e:
        raise handle_progress_error(e) from e


# ==============================================================================
# Course Listing & Enrollment Endpoints
# ==============================================================================


@courses_router.get(
    "",
    response_model=list[CourseWithProgressResponse],
    summary="List courses with enrollment state",
)
async def list_courses(
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> list[CourseWithProgressResponse]:
    """List every course; progressPercentage is present only where enrolled."""
    try:
        return await progress_service.list_courses_for_learner(user.id)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@courses_router.post(
    "/{course_id}/enroll",
    response_model=EnrollmentResponse,
    summary="Enroll in course",
)
async def enroll_in_course(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Enroll the current learner. Enrolling again returns the same record."""
    try:
        return await progress_service.enroll_user(user.id, course_id)
    except CatalogError as e:
        raise handle_catalog_error(e) from e
    except ProgressError as e:
        raise handle_progress_error(e) from e


# ==============================================================================
# Enrollment Query Endpoints
# ==============================================================================


@enrollments_router.get(
    "/my",
    response_model=EnrollmentListResponse,
    summary="Get my enrollments",
)
async def get_my_enrollments(
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> EnrollmentListResponse:
    """Get current user's enrollments."""
    try:
        return await progress_service.get_user_enrollments(user.id)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@enrollments_router.get(
    "/{course_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment",
)
async def get_enrollment(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    try:
        return await progress_service.get_enrollment(user.id, course_id)
    except ProgressError as e:
        raise handle_progress_error(e) from e
