"""Catalog management service layer.

Business logic for:
- Course, module and lesson CRUD, each validated against its parent
- Cascading deletes (course -> modules -> lessons)
- Publishing lesson-set changes to the progress engine
"""

from datetime import UTC, datetime
from uuid import UUID

import structlog

from coursetrack.auth.permissions import can_edit_catalog
from coursetrack.auth.schemas import Principal

from .events import CatalogChange, CatalogChangeKind, CatalogEventBus
from .models import Course, Lesson, Module
from .repository import CatalogRepository
from .schemas import (
    CourseDetailResponse,
    CreateCourseRequest,
    CreateLessonRequest,
    CreateModuleRequest,
    LessonResponse,
    ModuleDetailResponse,
    UpdateCourseRequest,
    UpdateLessonRequest,
    UpdateModuleRequest,
)


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CatalogError(Exception):
    """Base catalog error."""

    def __init__(self, message: str, code: str = "catalog_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CatalogError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class ModuleNotFoundError(CatalogError):
    """Module not found."""

    def __init__(self, message: str = "Module not found"):
        super().__init__(message, "module_not_found")


class LessonNotFoundError(CatalogError):
    """Lesson not found."""

    def __init__(self, message: str = "Lesson not found"):
        super().__init__(message, "lesson_not_found")


class CatalogPermissionError(CatalogError):
    """Caller lacks the role required for a structural mutation."""

    def __init__(self, message: str = "Only administrators can edit the catalog"):
        super().__init__(message, "forbidden")


# ==============================================================================
# Catalog Service
# ==============================================================================


class CatalogService:
    """Service for course/module/lesson management."""

    def __init__(self, repository: CatalogRepository, events: CatalogEventBus):
        self.repository = repository
        self.events = events

    @staticmethod
    def _require_admin(actor: Principal) -> None:
        if not can_edit_catalog(actor.role):
            logger.warning(
                "catalog_mutation_forbidden",
                actor_id=str(actor.id),
                role=actor.role.value,
            )
            raise CatalogPermissionError

    # ==========================================================================
    # Courses
    # ==========================================================================

    async def create_course(self, data: CreateCourseRequest, actor: Principal) -> Course:
        """Create a new course."""
        self._require_admin(actor)

        course = Course(
            title=data.title,
            description=data.description,
            cover_url=data.cover_url,
        )
        await self.repository.save_course(course)

        logger.info("course_created", course_id=str(course.id))
        return course

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course by id."""
        return await self.repository.get_course(course_id)

    async def require_course(self, course_id: UUID) -> Course:
        """Get course by id or raise CourseNotFoundError."""
        course = await self.repository.get_course(course_id)
        if course is None:
            raise CourseNotFoundError
        return course

    async def list_courses(self) -> list[Course]:
        """List every course."""
        return await self.repository.list_courses()

    async def update_course(
        self, course_id: UUID, data: UpdateCourseRequest, actor: Principal
    ) -> Course:
        """Update course fields that were provided."""
        self._require_admin(actor)
        course = await self.require_course(course_id)

        changes = data.model_dump(exclude_unset=True)
        if changes.get("title") is not None:
            course.title = changes["title"].strip()
        if changes.get("description") is not None:
            course.description = changes["description"]
        if "cover_url" in changes:
            course.cover_url = changes["cover_url"]
        course.updated_at = datetime.now(UTC)

        await self.repository.save_course(course)
        return course

    async def delete_course(self, course_id: UUID, actor: Principal) -> None:
        """Delete a course and everything under it.

        Publishes COURSE_REMOVED with every lesson id that was removed, so
        the progress engine can prune marks and enrollments.
        """
        self._require_admin(actor)
        await self.require_course(course_id)

        # Course row goes first; a module saved concurrently either lands
        # before the listing below or sees the course gone and rolls back
        await self.repository.delete_course(course_id)

        removed = set()
        for module in await self.repository.list_course_modules(course_id):
            removed |= await self._delete_module_tree(module)

        logger.info(
            "course_deleted",
            course_id=str(course_id),
            lessons_removed=len(removed),
        )
        await self.events.publish(
            CatalogChange(
                kind=CatalogChangeKind.COURSE_REMOVED,
                course_id=course_id,
                lesson_ids=frozenset(removed),
            )
        )

    async def get_course_detail(self, course_id: UUID) -> CourseDetailResponse:
        """Course with nested modules and lessons."""
        course = await self.require_course(course_id)

        modules = []
        for module in await self.repository.list_course_modules(course_id):
            lessons = await self.repository.list_module_lessons(module.id)
            modules.append(
                ModuleDetailResponse(
                    **module.to_dict(),
                    lessons=[LessonResponse.from_entity(les) for les in lessons],
                )
            )

        return CourseDetailResponse(**course.to_dict(), modules=modules)

    async def get_course_lesson_ids(self, course_id: UUID) -> set[UUID]:
        """Every lesson id currently reachable through the course's modules."""
        return await self.repository.get_course_lesson_ids(course_id)

    async def count_modules(self, course_id: UUID) -> int:
        """Number of modules in a course."""
        return len(await self.repository.list_course_modules(course_id))

    # ==========================================================================
    # Modules
    # ==========================================================================

    async def create_module(self, data: CreateModuleRequest, actor: Principal) -> Module:
        """Create a module inside an existing course."""
        self._require_admin(actor)
        await self.require_course(data.course_id)

        module = Module(course_id=data.course_id, title=data.title)
        await self.repository.save_module(module)

        if await self.repository.get_course(data.course_id) is None:
            removed = await self._delete_module_tree(module)
            logger.warning(
                "module_create_rolled_back",
                module_id=str(module.id),
                course_id=str(module.course_id),
            )
            await self._publish_removed(module.course_id, removed)
            raise CourseNotFoundError

        logger.info(
            "module_created",
            module_id=str(module.id),
            course_id=str(module.course_id),
        )
        return module

    async def require_module(self, module_id: UUID) -> Module:
        """Get module by id or raise ModuleNotFoundError."""
        module = await self.repository.get_module(module_id)
        if module is None:
            raise ModuleNotFoundError
        return module

    async def update_module(
        self, module_id: UUID, data: UpdateModuleRequest, actor: Principal
    ) -> Module:
        """Rename a module."""
        self._require_admin(actor)
        module = await self.require_module(module_id)

        module.title = data.title.strip()
        module.updated_at = datetime.now(UTC)
        await self.repository.save_module(module)
        return module

    async def delete_module(self, module_id: UUID, actor: Principal) -> None:
        """Delete a module and its lessons."""
        self._require_admin(actor)
        module = await self.require_module(module_id)

        removed = await self._delete_module_tree(module)

        logger.info(
            "module_deleted",
            module_id=str(module_id),
            course_id=str(module.course_id),
            lessons_removed=len(removed),
        )
        await self._publish_removed(module.course_id, removed)

    async def _delete_module_tree(self, module: Module) -> set[UUID]:
        # Module row goes first; a lesson saved concurrently either lands
        # before the listing below or sees the module gone and rolls back
        await self.repository.delete_module(module)

        removed = set()
        for lesson in await self.repository.list_module_lessons(module.id):
            await self.repository.delete_lesson(lesson)
            removed.add(lesson.id)
        return removed

    async def _publish_removed(self, course_id: UUID, lesson_ids: set[UUID]) -> None:
        if lesson_ids:
            await self.events.publish(
                CatalogChange(
                    kind=CatalogChangeKind.LESSONS_REMOVED,
                    course_id=course_id,
                    lesson_ids=frozenset(lesson_ids),
                )
            )

    # ==========================================================================
    # Lessons
    # ==========================================================================

    async def create_lesson(self, data: CreateLessonRequest, actor: Principal) -> Lesson:
        """Create a lesson inside an existing module."""
        self._require_admin(actor)
        module = await self.require_module(data.module_id)

        lesson = Lesson(
            module_id=module.id,
            course_id=module.course_id,
            title=data.title,
            video_url=data.video_url,
            content_text=data.content_text,
            duration_seconds=data.duration_seconds,
        )
        await self.repository.save_lesson(lesson)

        if await self.repository.get_module(module.id) is None:
            await self.repository.delete_lesson(lesson)
            logger.warning(
                "lesson_create_rolled_back",
                lesson_id=str(lesson.id),
                module_id=str(module.id),
            )
            # A learner may have marked it in the meantime
            await self._publish_removed(lesson.course_id, {lesson.id})
            raise ModuleNotFoundError

        logger.info(
            "lesson_created",
            lesson_id=str(lesson.id),
            module_id=str(module.id),
            course_id=str(module.course_id),
        )
        await self.events.publish(
            CatalogChange(
                kind=CatalogChangeKind.LESSONS_ADDED,
                course_id=lesson.course_id,
                lesson_ids=frozenset({lesson.id}),
            )
        )
        return lesson

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        """Get lesson by id."""
        return await self.repository.get_lesson(lesson_id)

    async def require_lesson(self, lesson_id: UUID) -> Lesson:
        """Get lesson by id or raise LessonNotFoundError."""
        lesson = await self.repository.get_lesson(lesson_id)
        if lesson is None:
            raise LessonNotFoundError
        return lesson

    async def update_lesson(
        self, lesson_id: UUID, data: UpdateLessonRequest, actor: Principal
    ) -> Lesson:
        """Update lesson content. Never changes the course's lesson set."""
        self._require_admin(actor)
        lesson = await self.require_lesson(lesson_id)

        changes = data.model_dump(exclude_unset=True)
        if changes.get("title") is not None:
            lesson.title = changes["title"].strip()
        for name in ("video_url", "content_text", "duration_seconds"):
            if name in changes:
                setattr(lesson, name, changes[name])
        lesson.updated_at = datetime.now(UTC)

        await self.repository.save_lesson(lesson)
        return lesson

    async def delete_lesson(self, lesson_id: UUID, actor: Principal) -> None:
        """Delete a lesson and re-evaluate its course's enrollments."""
        self._require_admin(actor)
        lesson = await self.require_lesson(lesson_id)

        await self.repository.delete_lesson(lesson)

        logger.info(
            "lesson_deleted",
            lesson_id=str(lesson_id),
            course_id=str(lesson.course_id),
        )
        await self.events.publish(
            CatalogChange(
                kind=CatalogChangeKind.LESSONS_REMOVED,
                course_id=lesson.course_id,
                lesson_ids=frozenset({lesson.id}),
            )
        )
