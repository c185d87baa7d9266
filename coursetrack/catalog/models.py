"""Database models for the course catalog.

Cassandra table definitions for:
- Courses, modules, lessons: main tables keyed by id
- Lookup tables: children by parent, and every lesson by course

Ownership is strict (Course owns Modules, Module owns Lessons), so a
lesson also records its course id; `lessons_by_course` is what the
progress aggregator reads to get a course's current lesson set.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    cover_url TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

MODULE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.modules (
    id UUID PRIMARY KEY,
    course_id UUID,
    title TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

LESSON_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons (
    id UUID PRIMARY KEY,
    module_id UUID,
    course_id UUID,
    title TEXT,
    video_url TEXT,
    content_text TEXT,
    duration_seconds INT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Reverse lookups
MODULES_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.modules_by_course (
    course_id UUID,
    module_id UUID,
    PRIMARY KEY (course_id, module_id)
)
"""

LESSONS_BY_MODULE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons_by_module (
    module_id UUID,
    lesson_id UUID,
    PRIMARY KEY (module_id, lesson_id)
)
"""

# Current lesson set per course (read by the progress aggregator)
LESSONS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons_by_course (
    course_id UUID,
    lesson_id UUID,
    module_id UUID,
    PRIMARY KEY (course_id, lesson_id)
)
"""

CATALOG_TABLES_CQL = [
    COURSE_TABLE_CQL,
    MODULE_TABLE_CQL,
    LESSON_TABLE_CQL,
    MODULES_BY_COURSE_TABLE_CQL,
    LESSONS_BY_MODULE_TABLE_CQL,
    LESSONS_BY_COURSE_TABLE_CQL,
]


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# Entity Classes
# ==============================================================================


class Course:
    """Course entity, the root of the catalog hierarchy.

    Attributes:
        id: Unique identifier (UUID)
        title: Course title
        description: Course description
        cover_url: Cover image reference (stored by the upload service)
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        id: UUID | None = None,
        title: str = "",
        description: str = "",
        cover_url: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.title = title.strip()
        self.description = description
        self.cover_url = cover_url
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title or "",
            description=row.description or "",
            cover_url=row.cover_url,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "cover_url": self.cover_url,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Course {self.title}>"


class Module:
    """Module entity; belongs to exactly one course."""

    def __init__(
        self,
        course_id: UUID,
        id: UUID | None = None,
        title: str = "",
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.course_id = course_id
        self.title = title.strip()
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Module":
        """Create Module instance from Cassandra row."""
        return cls(
            id=row.id,
            course_id=row.course_id,
            title=row.title or "",
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "course_id": self.course_id,
            "title": self.title,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Module {self.title} course={self.course_id}>"


class Lesson:
    """Lesson entity; belongs to exactly one module.

    Attributes:
        id: Unique identifier (UUID)
        module_id: Owning module
        course_id: Owning course (copied from the module on creation)
        title: Lesson title
        video_url: Optional video reference
        content_text: Optional text content
        duration_seconds: Optional duration
    """

    def __init__(
        self,
        module_id: UUID,
        course_id: UUID,
        id: UUID | None = None,
        title: str = "",
        video_url: str | None = None,
        content_text: str | None = None,
        duration_seconds: int | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.module_id = module_id
        self.course_id = course_id
        self.title = title.strip()
        self.video_url = video_url
        self.content_text = content_text
        self.duration_seconds = duration_seconds
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Lesson":
        """Create Lesson instance from Cassandra row."""
        return cls(
            id=row.id,
            module_id=row.module_id,
            course_id=row.course_id,
            title=row.title or "",
            video_url=row.video_url,
            content_text=row.content_text,
            duration_seconds=row.duration_seconds,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "module_id": self.module_id,
            "course_id": self.course_id,
            "title": self.title,
            "video_url": self.video_url,
            "content_text": self.content_text,
            "duration_seconds": self.duration_seconds,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Lesson {self.title} module={self.module_id}>"
