"""Catalog management API endpoints.

Provides routes for:
- Courses: create, update, delete, nested detail view
- Modules: create, update, delete
- Lessons: create, read, update, delete

Structural edits are admin-only. Course listing for learners lives in the
progress router, since it carries per-learner enrollment state.
"""

from uuid import UUID

from fastapi import APIRouter, status

from coursetrack.auth.dependencies import AdminUser, CurrentUser

from .dependencies import CatalogServiceDep, handle_catalog_error
from .schemas import (
    CourseDetailResponse,
    CourseResponse,
    CreateCourseRequest,
    CreateLessonRequest,
    CreateModuleRequest,
    LessonResponse,
    ModuleResponse,
    UpdateCourseRequest,
    UpdateLessonRequest,
    UpdateModuleRequest,
)
from .service import CatalogError


# ==============================================================================
# Courses Router
# ==============================================================================

router_courses = APIRouter(prefix="/v1/courses", tags=["courses"])


@router_courses.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new course",
)
async def create_course(
    data: CreateCourseRequest,
    catalog_service: CatalogServiceDep,
    user: AdminUser,
) -> CourseResponse:
    """Create a new course (ADMIN only)."""
    try:
        course = await catalog_service.create_course(data, user)
        return CourseResponse.from_entity(course)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


@router_courses.get(
    "/{course_id}",
    response_model=CourseDetailResponse,
    summary="Get course with modules and lessons",
)
async def get_course(
    course_id: UUID,
    catalog_service: CatalogServiceDep,
    _user: CurrentUser,
) -> CourseDetailResponse:
    """Get course detail with nested modules and lessons."""
    try:
        return await catalog_service.get_course_detail(course_id)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


@router_courses.put(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Update course",
)
async def update_course(
    course_id: UUID,
    data: UpdateCourseRequest,
    catalog_service: CatalogServiceDep,
    user: AdminUser,
) -> CourseResponse:
    """Update course (ADMIN only)."""
    try:
        course = await catalog_service.update_course(course_id, data, user)
        return CourseResponse.from_entity(course)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


@router_courses.delete(
    "/{course_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete course",
)
async def delete_course(
    course_id: UUID,
    catalog_service: CatalogServiceDep,
    user: AdminUser,
) -> None:
    """Delete course with its modules, lessons, marks and enrollments."""
    try:
        await catalog_service.delete_course(course_id, user)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


# ==============================================================================
# Modules Router
# ==============================================================================

router_modules = APIRouter(prefix="/v1/modules", tags=["modules"])


@router_modules.post(
    "",
    response_model=ModuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new module",
)
async def create_module(
    data: CreateModuleRequest,
    catalog_service: CatalogServiceDep,
    user: AdminUser,
) -> ModuleResponse:
    """Create a module inside a course (ADMIN only)."""
    try:
        module = await catalog_service.create_module(data, user)
        return ModuleResponse.from_entity(module)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


@router_modules.put(
    "/{module_id}",
    response_model=ModuleResponse,
    summary="Update module",
)
async def update_module(
    module_id: UUID,
    data: UpdateModuleRequest,
    catalog_service: CatalogServiceDep,
    user: AdminUser,
) -> ModuleResponse:
    """Rename module (ADMIN only)."""
    try:
        module = await catalog_service.update_module(module_id, data, user)
        return ModuleResponse.from_entity(module)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


@router_modules.delete(
    "/{module_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete module",
)
async def delete_module(
    module_id: UUID,
    catalog_service: CatalogServiceDep,
    user: AdminUser,
) -> None:
    """Delete module and its lessons (ADMIN only)."""
    try:
        await catalog_service.delete_module(module_id, user)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


# ==============================================================================
# Lessons Router
# ==============================================================================

router_lessons = APIRouter(prefix="/v1/lessons", tags=["lessons"])


@router_lessons.post(
    "",
    response_model=LessonResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new lesson",
)
async def create_lesson(
    data: CreateLessonRequest,
    catalog_service: CatalogServiceDep,
    user: AdminUser,
) -> LessonResponse:
    """Create a lesson inside a module (ADMIN only)."""
    try:
        lesson = await catalog_service.create_lesson(data, user)
        return LessonResponse.from_entity(lesson)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


@router_lessons.get(
    "/{lesson_id}",
    response_model=LessonResponse,
    summary="Get lesson",
)
async def get_lesson(
    lesson_id: UUID,
    catalog_service: CatalogServiceDep,
    _user: CurrentUser,
) -> LessonResponse:
    try:
        lesson = await catalog_service.require_lesson(lesson_id)
        return LessonResponse.from_entity(lesson)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


@router_lessons.put(
    "/{lesson_id}",
    response_model=LessonResponse,
    summary="Update lesson",
)
async def update_lesson(
    lesson_id: UUID,
    data: UpdateLessonRequest,
    catalog_service: CatalogServiceDep,
    user: AdminUser,
) -> LessonResponse:
    """Update lesson content (ADMIN only)."""
    try:
        lesson = await catalog_service.update_lesson(lesson_id, data, user)
        return LessonResponse.from_entity(lesson)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


@router_lessons.delete(
    "/{lesson_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete lesson",
)
async def delete_lesson(
    lesson_id: UUID,
    catalog_service: CatalogServiceDep,
    user: AdminUser,
) -> None:
    """Delete lesson and re-evaluate its course's enrollments (ADMIN only)."""
    try:
        await catalog_service.delete_lesson(lesson_id, user)
    except CatalogError as e:
        raise handle_catalog_error(e) from e
