"""Database models for learner progress.

Cassandra table definitions for:
- Enrollments: one row per (learner, course), with the sticky completion timestamp
- Completion marks: one row per (learner, lesson)
- Lookup tables: enrollments by learner, marks by lesson (for pruning)

Course percentage is never stored; it is recomputed from the marks
filtered to the course's current lesson set.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from coursetrack.catalog.models import ensure_utc_aware


class EnrollmentStatus(str, Enum):
    """Course completion state of an enrollment."""

    INCOMPLETE = "incomplete"
    COMPLETE = "complete"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Partition by course: the maintainer re-evaluates every enrollment of a course
ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    course_id UUID,
    user_id UUID,
    enrolled_at TIMESTAMP,
    completed_at TIMESTAMP,
    PRIMARY KEY (course_id, user_id)
)
"""

# Lookup: "which courses is this learner enrolled in?"
ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    course_id UUID,
    PRIMARY KEY (user_id, course_id)
)
"""

# Partition by learner, cluster by lesson: IN-filtering to a course's lesson set
COMPLETION_MARKS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.completion_marks (
    user_id UUID,
    lesson_id UUID,
    course_id UUID,
    completed BOOLEAN,
    completed_at TIMESTAMP,
    PRIMARY KEY (user_id, lesson_id)
)
"""

# Lookup: "who has a mark on this lesson?" (purge on lesson delete)
COMPLETION_MARKS_BY_LESSON_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.completion_marks_by_lesson (
    lesson_id UUID,
    user_id UUID,
    PRIMARY KEY (lesson_id, user_id)
)
"""

PROGRESS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
    COMPLETION_MARKS_TABLE_CQL,
    COMPLETION_MARKS_BY_LESSON_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """Course enrollment entity.

    Attributes:
        course_id: Course UUID
        user_id: Learner UUID
        enrolled_at: Enrollment timestamp
        completed_at: First time every lesson of the course was complete
    """

    def __init__(
        self,
        course_id: UUID,
        user_id: UUID,
        enrolled_at: datetime | None = None,
        completed_at: datetime | None = None,
    ):
        self.course_id = course_id
        self.user_id = user_id
        self.enrolled_at = ensure_utc_aware(enrolled_at) or datetime.now(UTC)
        self.completed_at = ensure_utc_aware(completed_at)

    @property
    def is_completed(self) -> bool:
        """Check if course is completed."""
        return self.completed_at is not None

    @property
    def status(self) -> EnrollmentStatus:
        return (
            EnrollmentStatus.COMPLETE if self.is_completed else EnrollmentStatus.INCOMPLETE
        )

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            course_id=row.course_id,
            user_id=row.user_id,
            enrolled_at=row.enrolled_at,
            completed_at=row.completed_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "course_id": self.course_id,
            "user_id": self.user_id,
            "enrolled_at": self.enrolled_at,
            "completed_at": self.completed_at,
            "status": self.status,
        }

    def __repr__(self) -> str:
        return (
            f"<Enrollment user={self.user_id} course={self.course_id} "
            f"{self.status.value}>"
        )


class CompletionMark:
    """A learner finished a lesson.

    Only completed marks are ever written; absence means not complete.
    """

    def __init__(
        self,
        user_id: UUID,
        lesson_id: UUID,
        course_id: UUID | None = None,
        completed: bool = True,
        completed_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.lesson_id = lesson_id
        self.course_id = course_id
        self.completed = completed
        self.completed_at = ensure_utc_aware(completed_at) or datetime.now(UTC)

    @classmethod
    def from_row(cls, row: Any) -> "CompletionMark":
        """Create CompletionMark instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            lesson_id=row.lesson_id,
            course_id=row.course_id,
            completed=bool(row.completed),
            completed_at=row.completed_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "lesson_id": self.lesson_id,
            "course_id": self.course_id,
            "completed": self.completed,
            "completed_at": self.completed_at,
        }

    def __repr__(self) -> str:
        return f"<CompletionMark user={self.user_id} lesson={self.lesson_id}>"
