"""Enrollment and completion ledgers.

Both ledgers guarantee atomic upserts on their composite keys:

- (learner, course) for enrollments
- (learner, lesson) for completion marks

In memory that is an asyncio.Lock around each mutation; in Cassandra it is
a lightweight transaction (`IF NOT EXISTS`, `IF completed_at = null`).
A lightweight transaction that loses a Paxos race surfaces as a CAS write
timeout; those are retried here and never reach the caller as a conflict.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from typing import Protocol, TypeVar
from uuid import UUID

import structlog
from cassandra import WriteTimeout
from cassandra.policies import WriteType
from cassandra.query import BatchStatement

from .models import CompletionMark, Enrollment


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class EnrollmentLedger(Protocol):
    """One record per (learner, course)."""

    async def enroll(self, user_id: UUID, course_id: UUID) -> Enrollment: ...

    async def get_enrollment(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None: ...

    async def set_completed(
        self,
        user_id: UUID,
        course_id: UUID,
        completed_at: datetime | None,
        only_if_unset: bool = False,
    ) -> bool: ...

    async def list_course_enrollments(self, course_id: UUID) -> list[Enrollment]: ...

    async def list_learner_enrollments(self, user_id: UUID) -> list[Enrollment]: ...

    async def delete_course_enrollments(self, course_id: UUID) -> int: ...


class CompletionLedger(Protocol):
    """One record per (learner, lesson)."""

    async def mark_complete(
        self, user_id: UUID, lesson_id: UUID, course_id: UUID
    ) -> CompletionMark: ...

    async def is_complete(self, user_id: UUID, lesson_id: UUID) -> bool: ...

    async def list_completed_lesson_ids(
        self, user_id: UUID, lesson_ids: Iterable[UUID]
    ) -> set[UUID]: ...

    async def purge_lessons(self, lesson_ids: Iterable[UUID]) -> int: ...


# ==============================================================================
# In-memory implementations
# ==============================================================================


class InMemoryEnrollmentLedger:
    """Dict-backed enrollment ledger keyed by (user_id, course_id)."""

    def __init__(self) -> None:
        self._rows: dict[tuple[UUID, UUID], Enrollment] = {}
        self._lock = asyncio.Lock()

    async def enroll(self, user_id: UUID, course_id: UUID) -> Enrollment:
        async with self._lock:
            key = (user_id, course_id)
            existing = self._rows.get(key)
            if existing is not None:
                return _copy_enrollment(existing)
            enrollment = Enrollment(course_id=course_id, user_id=user_id)
            self._rows[key] = enrollment
            return _copy_enrollment(enrollment)

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        row = self._rows.get((user_id, course_id))
        return _copy_enrollment(row) if row else None

    async def set_completed(
        self,
        user_id: UUID,
        course_id: UUID,
        completed_at: datetime | None,
        only_if_unset: bool = False,
    ) -> bool:
        async with self._lock:
            row = self._rows.get((user_id, course_id))
            if row is None:
                return False
            if only_if_unset and row.completed_at is not None:
                return False
            row.completed_at = completed_at
            return True

    async def list_course_enrollments(self, course_id: UUID) -> list[Enrollment]:
        return [
            _copy_enrollment(row)
            for (_, cid), row in self._rows.items()
            if cid == course_id
        ]

    async def list_learner_enrollments(self, user_id: UUID) -> list[Enrollment]:
        return [
            _copy_enrollment(row)
            for (uid, _), row in self._rows.items()
            if uid == user_id
        ]

    async def delete_course_enrollments(self, course_id: UUID) -> int:
        async with self._lock:
            keys = [key for key in self._rows if key[1] == course_id]
            for key in keys:
                del self._rows[key]
            return len(keys)


def _copy_enrollment(row: Enrollment) -> Enrollment:
    # Callers get snapshots; only set_completed mutates stored rows
    return Enrollment(
        course_id=row.course_id,
        user_id=row.user_id,
        enrolled_at=row.enrolled_at,
        completed_at=row.completed_at,
    )


class InMemoryCompletionLedger:
    """Dict-backed completion ledger keyed by (user_id, lesson_id)."""

    def __init__(self) -> None:
        self._rows: dict[tuple[UUID, UUID], CompletionMark] = {}
        self._lock = asyncio.Lock()

    async def mark_complete(
        self, user_id: UUID, lesson_id: UUID, course_id: UUID
    ) -> CompletionMark:
        async with self._lock:
            key = (user_id, lesson_id)
            mark = self._rows.get(key)
            if mark is None:
                mark = CompletionMark(
                    user_id=user_id, lesson_id=lesson_id, course_id=course_id
                )
                self._rows[key] = mark
            return _copy_mark(mark)

    async def is_complete(self, user_id: UUID, lesson_id: UUID) -> bool:
        mark = self._rows.get((user_id, lesson_id))
        return mark is not None and mark.completed

    async def list_completed_lesson_ids(
        self, user_id: UUID, lesson_ids: Iterable[UUID]
    ) -> set[UUID]:
        async with self._lock:
            return {
                lesson_id
                for lesson_id in set(lesson_ids)
                if (mark := self._rows.get((user_id, lesson_id))) and mark.completed
            }

    async def purge_lessons(self, lesson_ids: Iterable[UUID]) -> int:
        targets = set(lesson_ids)
        async with self._lock:
            keys = [key for key in self._rows if key[1] in targets]
            for key in keys:
                del self._rows[key]
            return len(keys)


def _copy_mark(mark: CompletionMark) -> CompletionMark:
    return CompletionMark(
        user_id=mark.user_id,
        lesson_id=mark.lesson_id,
        course_id=mark.course_id,
        completed=mark.completed,
        completed_at=mark.completed_at,
    )


# ==============================================================================
# Cassandra implementations
# ==============================================================================


async def retry_on_cas_contention(
    operation: Callable[[], Awaitable[T]],
    retries: int,
    **log_fields: str,
) -> T:
    """Run a lightweight-transaction write, retrying when it loses a race."""
    attempt = 0
    while True:
        try:
            return await operation()
        except WriteTimeout as e:
            if e.write_type != WriteType.CAS or attempt >= retries:
                raise
            attempt += 1
            logger.warning("cas_contention_retry", attempt=attempt, **log_fields)
            await asyncio.sleep(0.01 * attempt)


class CassandraEnrollmentLedger:
    """Enrollment ledger backed by enrollments + enrollments_by_user."""

    def __init__(self, session, keyspace: str, conflict_retries: int = 3):
        """Initialize with Cassandra session (cassandra-asyncio-driver)."""
        self.session = session
        self.keyspace = keyspace
        self.conflict_retries = conflict_retries
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        ks = self.keyspace

        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {ks}.enrollments (course_id, user_id, enrolled_at)
            VALUES (?, ?, ?)
            IF NOT EXISTS
        """)
        self._insert_enrollment_by_user = self.session.prepare(
            f"INSERT INTO {ks}.enrollments_by_user (user_id, course_id) VALUES (?, ?)"
        )
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {ks}.enrollments
            WHERE course_id = ? AND user_id = ?
        """)
        self._get_course_enrollments = self.session.prepare(
            f"SELECT * FROM {ks}.enrollments WHERE course_id = ?"
        )
        self._get_user_course_ids = self.session.prepare(
            f"SELECT course_id FROM {ks}.enrollments_by_user WHERE user_id = ?"
        )
        self._set_completed_if_unset = self.session.prepare(f"""
            UPDATE {ks}.enrollments SET completed_at = ?
            WHERE course_id = ? AND user_id = ?
            IF completed_at = null
        """)
        self._set_completed = self.session.prepare(f"""
            UPDATE {ks}.enrollments SET completed_at = ?
            WHERE course_id = ? AND user_id = ?
            IF EXISTS
        """)
        self._delete_course_enrollments = self.session.prepare(
            f"DELETE FROM {ks}.enrollments WHERE course_id = ?"
        )
        self._delete_enrollment_by_user = self.session.prepare(
            f"DELETE FROM {ks}.enrollments_by_user WHERE user_id = ? AND course_id = ?"
        )

    async def enroll(self, user_id: UUID, course_id: UUID) -> Enrollment:
        enrollment = Enrollment(course_id=course_id, user_id=user_id)

        result = await retry_on_cas_contention(
            lambda: self.session.aexecute(
                self._insert_enrollment,
                [course_id, user_id, enrollment.enrolled_at],
            ),
            self.conflict_retries,
            user_id=str(user_id),
            course_id=str(course_id),
        )
        # Lookup row is idempotent; always write it so a crash between the
        # two statements heals on the next enroll call
        await self.session.aexecute(
            self._insert_enrollment_by_user, [user_id, course_id]
        )

        if result.was_applied:
            return enrollment

        existing = await self.get_enrollment(user_id, course_id)
        return existing or enrollment

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        result = await self.session.aexecute(self._get_enrollment, [course_id, user_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def set_completed(
        self,
        user_id: UUID,
        course_id: UUID,
        completed_at: datetime | None,
        only_if_unset: bool = False,
    ) -> bool:
        statement = self._set_completed_if_unset if only_if_unset else self._set_completed
        result = await retry_on_cas_contention(
            lambda: self.session.aexecute(
                statement, [completed_at, course_id, user_id]
            ),
            self.conflict_retries,
            user_id=str(user_id),
            course_id=str(course_id),
        )
        return bool(result.was_applied)

    async def list_course_enrollments(self, course_id: UUID) -> list[Enrollment]:
        rows = await self.session.aexecute(self._get_course_enrollments, [course_id])
        return [Enrollment.from_row(row) for row in rows]

    async def list_learner_enrollments(self, user_id: UUID) -> list[Enrollment]:
        rows = await self.session.aexecute(self._get_user_course_ids, [user_id])
        enrollments = []
        for row in rows:
            enrollment = await self.get_enrollment(user_id, row.course_id)
            if enrollment is not None:
                enrollments.append(enrollment)
        return enrollments

    async def delete_course_enrollments(self, course_id: UUID) -> int:
        enrollments = await self.list_course_enrollments(course_id)
        for enrollment in enrollments:
            await self.session.aexecute(
                self._delete_enrollment_by_user, [enrollment.user_id, course_id]
            )
        await self.session.aexecute(self._delete_course_enrollments, [course_id])
        return len(enrollments)


class CassandraCompletionLedger:
    """Completion ledger backed by completion_marks + completion_marks_by_lesson."""

    def __init__(self, session, keyspace: str, conflict_retries: int = 3):
        """Initialize with Cassandra session (cassandra-asyncio-driver)."""
        self.session = session
        self.keyspace = keyspace
        self.conflict_retries = conflict_retries
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        ks = self.keyspace

        self._insert_mark = self.session.prepare(f"""
            INSERT INTO {ks}.completion_marks
            (user_id, lesson_id, course_id, completed, completed_at)
            VALUES (?, ?, ?, true, ?)
            IF NOT EXISTS
        """)
        self._insert_mark_by_lesson = self.session.prepare(f"""
            INSERT INTO {ks}.completion_marks_by_lesson (lesson_id, user_id)
            VALUES (?, ?)
        """)
        self._get_mark = self.session.prepare(f"""
            SELECT * FROM {ks}.completion_marks
            WHERE user_id = ? AND lesson_id = ?
        """)
        self._get_marks_in = self.session.prepare(f"""
            SELECT lesson_id, completed FROM {ks}.completion_marks
            WHERE user_id = ? AND lesson_id IN ?
        """)
        self._get_users_by_lesson = self.session.prepare(
            f"SELECT user_id FROM {ks}.completion_marks_by_lesson WHERE lesson_id = ?"
        )
        self._delete_mark = self.session.prepare(
            f"DELETE FROM {ks}.completion_marks WHERE user_id = ? AND lesson_id = ?"
        )
        self._delete_marks_by_lesson = self.session.prepare(
            f"DELETE FROM {ks}.completion_marks_by_lesson WHERE lesson_id = ?"
        )

    async def mark_complete(
        self, user_id: UUID, lesson_id: UUID, course_id: UUID
    ) -> CompletionMark:
        mark = CompletionMark(user_id=user_id, lesson_id=lesson_id, course_id=course_id)

        result = await retry_on_cas_contention(
            lambda: self.session.aexecute(
                self._insert_mark,
                [user_id, lesson_id, course_id, mark.completed_at],
            ),
            self.conflict_retries,
            user_id=str(user_id),
            lesson_id=str(lesson_id),
        )
        await self.session.aexecute(self._insert_mark_by_lesson, [lesson_id, user_id])

        if result.was_applied:
            return mark

        existing = await self.session.aexecute(self._get_mark, [user_id, lesson_id])
        row = existing.one()
        return CompletionMark.from_row(row) if row else mark

    async def is_complete(self, user_id: UUID, lesson_id: UUID) -> bool:
        result = await self.session.aexecute(self._get_mark, [user_id, lesson_id])
        row = result.one()
        return bool(row and row.completed)

    async def list_completed_lesson_ids(
        self, user_id: UUID, lesson_ids: Iterable[UUID]
    ) -> set[UUID]:
        candidates = set(lesson_ids)
        if not candidates:
            return set()
        rows = await self.session.aexecute(
            self._get_marks_in, [user_id, list(candidates)]
        )
        return {row.lesson_id for row in rows if row.completed} & candidates

    async def purge_lessons(self, lesson_ids: Iterable[UUID]) -> int:
        removed = 0
        for lesson_id in set(lesson_ids):
            rows = await self.session.aexecute(self._get_users_by_lesson, [lesson_id])
            batch = BatchStatement()
            for row in rows:
                batch.add(self._delete_mark, [row.user_id, lesson_id])
                removed += 1
            batch.add(self._delete_marks_by_lesson, [lesson_id])
            await self.session.aexecute(batch)
        return removed
