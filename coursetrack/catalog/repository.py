"""Catalog storage.

`CatalogRepository` is the storage contract the catalog service and the
progress aggregator depend on. Two implementations:

- InMemoryCatalogRepository: dict-backed, one asyncio.Lock per store
- CassandraCatalogRepository: prepared statements, logged batches so a
  lesson row and its lookup rows land together
"""

import asyncio
from typing import Protocol
from uuid import UUID

from cassandra.query import BatchStatement

from .models import Course, Lesson, Module


class CatalogRepository(Protocol):
    """Storage contract for the Course -> Module -> Lesson hierarchy."""

    async def save_course(self, course: Course) -> None: ...

    async def get_course(self, course_id: UUID) -> Course | None: ...

    async def list_courses(self) -> list[Course]: ...

    async def delete_course(self, course_id: UUID) -> None: ...

    async def save_module(self, module: Module) -> None: ...

    async def get_module(self, module_id: UUID) -> Module | None: ...

    async def list_course_modules(self, course_id: UUID) -> list[Module]: ...

    async def delete_module(self, module: Module) -> None: ...

    async def save_lesson(self, lesson: Lesson) -> None: ...

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...

    async def list_module_lessons(self, module_id: UUID) -> list[Lesson]: ...

    async def get_course_lesson_ids(self, course_id: UUID) -> set[UUID]: ...

    async def delete_lesson(self, lesson: Lesson) -> None: ...


# ==============================================================================
# In-memory implementation
# ==============================================================================


class InMemoryCatalogRepository:
    """Dict-backed catalog for tests and single-process runs."""

    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._modules: dict[UUID, Module] = {}
        self._lessons: dict[UUID, Lesson] = {}
        self._lock = asyncio.Lock()

    async def save_course(self, course: Course) -> None:
        async with self._lock:
            self._courses[course.id] = course

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def list_courses(self) -> list[Course]:
        return sorted(self._courses.values(), key=lambda c: c.created_at)

    async def delete_course(self, course_id: UUID) -> None:
        async with self._lock:
            self._courses.pop(course_id, None)

    async def save_module(self, module: Module) -> None:
        async with self._lock:
            self._modules[module.id] = module

    async def get_module(self, module_id: UUID) -> Module | None:
        return self._modules.get(module_id)

    async def list_course_modules(self, course_id: UUID) -> list[Module]:
        modules = [m for m in self._modules.values() if m.course_id == course_id]
        return sorted(modules, key=lambda m: m.created_at)

    async def delete_module(self, module: Module) -> None:
        async with self._lock:
            self._modules.pop(module.id, None)

    async def save_lesson(self, lesson: Lesson) -> None:
        async with self._lock:
            self._lessons[lesson.id] = lesson

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def list_module_lessons(self, module_id: UUID) -> list[Lesson]:
        lessons = [les for les in self._lessons.values() if les.module_id == module_id]
        return sorted(lessons, key=lambda les: les.created_at)

    async def get_course_lesson_ids(self, course_id: UUID) -> set[UUID]:
        # Snapshot under the lock so a concurrent delete can't tear the set
        async with self._lock:
            return {
                les.id for les in self._lessons.values() if les.course_id == course_id
            }

    async def delete_lesson(self, lesson: Lesson) -> None:
        async with self._lock:
            self._lessons.pop(lesson.id, None)


# ==============================================================================
# Cassandra implementation
# ==============================================================================


class CassandraCatalogRepository:
    """Catalog backed by the tables in catalog.models."""

    def __init__(self, session, keyspace: str):
        """Initialize with Cassandra session (cassandra-asyncio-driver)."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        ks = self.keyspace

        # Courses
        self._upsert_course = self.session.prepare(f"""
            INSERT INTO {ks}.courses
            (id, title, description, cover_url, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """)
        self._get_course = self.session.prepare(
            f"SELECT * FROM {ks}.courses WHERE id = ?"
        )
        self._list_courses = self.session.prepare(f"SELECT * FROM {ks}.courses")
        self._delete_course = self.session.prepare(
            f"DELETE FROM {ks}.courses WHERE id = ?"
        )

        # Modules
        self._upsert_module = self.session.prepare(f"""
            INSERT INTO {ks}.modules (id, course_id, title, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
        """)
        self._insert_module_by_course = self.session.prepare(
            f"INSERT INTO {ks}.modules_by_course (course_id, module_id) VALUES (?, ?)"
        )
        self._get_module = self.session.prepare(
            f"SELECT * FROM {ks}.modules WHERE id = ?"
        )
        self._get_modules_by_course = self.session.prepare(
            f"SELECT module_id FROM {ks}.modules_by_course WHERE course_id = ?"
        )
        self._delete_module = self.session.prepare(
            f"DELETE FROM {ks}.modules WHERE id = ?"
        )
        self._delete_module_by_course = self.session.prepare(
            f"DELETE FROM {ks}.modules_by_course WHERE course_id = ? AND module_id = ?"
        )

        # Lessons
        self._upsert_lesson = self.session.prepare(f"""
            INSERT INTO {ks}.lessons
            (id, module_id, course_id, title, video_url, content_text,
             duration_seconds, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._insert_lesson_by_module = self.session.prepare(
            f"INSERT INTO {ks}.lessons_by_module (module_id, lesson_id) VALUES (?, ?)"
        )
        self._insert_lesson_by_course = self.session.prepare(f"""
            INSERT INTO {ks}.lessons_by_course (course_id, lesson_id, module_id)
            VALUES (?, ?, ?)
        """)
        self._get_lesson = self.session.prepare(
            f"SELECT * FROM {ks}.lessons WHERE id = ?"
        )
        self._get_lessons_by_module = self.session.prepare(
            f"SELECT lesson_id FROM {ks}.lessons_by_module WHERE module_id = ?"
        )
        self._get_lesson_ids_by_course = self.session.prepare(
            f"SELECT lesson_id FROM {ks}.lessons_by_course WHERE course_id = ?"
        )
        self._delete_lesson = self.session.prepare(
            f"DELETE FROM {ks}.lessons WHERE id = ?"
        )
        self._delete_lesson_by_module = self.session.prepare(
            f"DELETE FROM {ks}.lessons_by_module WHERE module_id = ? AND lesson_id = ?"
        )
        self._delete_lesson_by_course = self.session.prepare(
            f"DELETE FROM {ks}.lessons_by_course WHERE course_id = ? AND lesson_id = ?"
        )

    # ==========================================================================
    # Courses
    # ==========================================================================

    async def save_course(self, course: Course) -> None:
        await self.session.aexecute(
            self._upsert_course,
            [
                course.id,
                course.title,
                course.description,
                course.cover_url,
                course.created_at,
                course.updated_at,
            ],
        )

    async def get_course(self, course_id: UUID) -> Course | None:
        result = await self.session.aexecute(self._get_course, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def list_courses(self) -> list[Course]:
        rows = await self.session.aexecute(self._list_courses)
        return sorted((Course.from_row(row) for row in rows), key=lambda c: c.created_at)

    async def delete_course(self, course_id: UUID) -> None:
        await self.session.aexecute(self._delete_course, [course_id])

    # ==========================================================================
    # Modules
    # ==========================================================================

    async def save_module(self, module: Module) -> None:
        batch = BatchStatement()
        batch.add(
            self._upsert_module,
            [
                module.id,
                module.course_id,
                module.title,
                module.created_at,
                module.updated_at,
            ],
        )
        batch.add(self._insert_module_by_course, [module.course_id, module.id])
        await self.session.aexecute(batch)

    async def get_module(self, module_id: UUID) -> Module | None:
        result = await self.session.aexecute(self._get_module, [module_id])
        row = result.one()
        return Module.from_row(row) if row else None

    async def list_course_modules(self, course_id: UUID) -> list[Module]:
        rows = await self.session.aexecute(self._get_modules_by_course, [course_id])
        modules = []
        for row in rows:
            module = await self.get_module(row.module_id)
            if module is not None:
                modules.append(module)
        return sorted(modules, key=lambda m: m.created_at)

    async def delete_module(self, module: Module) -> None:
        batch = BatchStatement()
        batch.add(self._delete_module, [module.id])
        batch.add(self._delete_module_by_course, [module.course_id, module.id])
        await self.session.aexecute(batch)

    # ==========================================================================
    # Lessons
    # ==========================================================================

    async def save_lesson(self, lesson: Lesson) -> None:
        batch = BatchStatement()
        batch.add(
            self._upsert_lesson,
            [
                lesson.id,
                lesson.module_id,
                lesson.course_id,
                lesson.title,
                lesson.video_url,
                lesson.content_text,
                lesson.duration_seconds,
                lesson.created_at,
                lesson.updated_at,
            ],
        )
        batch.add(self._insert_lesson_by_module, [lesson.module_id, lesson.id])
        batch.add(
            self._insert_lesson_by_course,
            [lesson.course_id, lesson.id, lesson.module_id],
        )
        await self.session.aexecute(batch)

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        result = await self.session.aexecute(self._get_lesson, [lesson_id])
        row = result.one()
        return Lesson.from_row(row) if row else None

    async def list_module_lessons(self, module_id: UUID) -> list[Lesson]:
        rows = await self.session.aexecute(self._get_lessons_by_module, [module_id])
        lessons = []
        for row in rows:
            lesson = await self.get_lesson(row.lesson_id)
            if lesson is not None:
                lessons.append(lesson)
        return sorted(lessons, key=lambda les: les.created_at)

    async def get_course_lesson_ids(self, course_id: UUID) -> set[UUID]:
        rows = await self.session.aexecute(
            self._get_lesson_ids_by_course, [course_id]
        )
        return {row.lesson_id for row in rows}

    async def delete_lesson(self, lesson: Lesson) -> None:
        batch = BatchStatement()
        batch.add(self._delete_lesson, [lesson.id])
        batch.add(self._delete_lesson_by_module, [lesson.module_id, lesson.id])
        batch.add(self._delete_lesson_by_course, [lesson.course_id, lesson.id])
        await self.session.aexecute(batch)
