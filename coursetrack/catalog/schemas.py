"""Pydantic schemas for catalog management.

Request and response models for:
- Courses
- Modules
- Lessons
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from coursetrack.core.schemas import CamelModel

from .models import Course, Lesson, Module


# ==============================================================================
# Course Schemas
# ==============================================================================


class CreateCourseRequest(CamelModel):
    """Request to create a new course."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    cover_url: str | None = Field(None, max_length=2048)


class UpdateCourseRequest(CamelModel):
    """Request to update a course. Only provided fields change."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    cover_url: str | None = Field(None, max_length=2048)


class CourseResponse(CamelModel):
    """Course response."""

    id: UUID
    title: str
    description: str
    cover_url: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, course: Course) -> "CourseResponse":
        """Create response from entity."""
        return cls(**course.to_dict())


# ==============================================================================
# Module Schemas
# ==============================================================================


class CreateModuleRequest(CamelModel):
    """Request to create a module inside a course."""

    title: str = Field(..., min_length=1, max_length=200)
    course_id: UUID


class UpdateModuleRequest(CamelModel):
    """Request to rename a module."""

    title: str = Field(..., min_length=1, max_length=200)


class ModuleResponse(CamelModel):
    """Module response."""

    id: UUID
    course_id: UUID
    title: str
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, module: Module) -> "ModuleResponse":
        """Create response from entity."""
        return cls(**module.to_dict())


# ==============================================================================
# Lesson Schemas
# ==============================================================================


class CreateLessonRequest(CamelModel):
    """Request to create a lesson inside a module."""

    title: str = Field(..., min_length=1, max_length=200)
    module_id: UUID
    video_url: str | None = Field(None, max_length=2048)
    content_text: str | None = None
    duration_seconds: int | None = Field(None, ge=0)


class UpdateLessonRequest(CamelModel):
    """Request to update a lesson. A lesson never moves between modules."""

    title: str | None = Field(None, min_length=1, max_length=200)
    video_url: str | None = Field(None, max_length=2048)
    content_text: str | None = None
    duration_seconds: int | None = Field(None, ge=0)


class LessonResponse(CamelModel):
    """Lesson response."""

    id: UUID
    module_id: UUID
    course_id: UUID
    title: str
    video_url: str | None = None
    content_text: str | None = None
    duration_seconds: int | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, lesson: Lesson) -> "LessonResponse":
        """Create response from entity."""
        return cls(**lesson.to_dict())


# ==============================================================================
# Detail Schemas
# ==============================================================================


class ModuleDetailResponse(ModuleResponse):
    """Module with its lessons."""

    lessons: list[LessonResponse] = []


class CourseDetailResponse(CourseResponse):
    """Course with nested modules and lessons."""

    modules: list[ModuleDetailResponse] = []
