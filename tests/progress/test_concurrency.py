"""Concurrent learner and admin actions converge."""

import asyncio
from collections.abc import Awaitable, Callable

import pytest

from coursetrack.catalog.schemas import CreateLessonRequest, CreateModuleRequest
from coursetrack.catalog.service import CourseNotFoundError, ModuleNotFoundError


def hold_first_call(
    func: Callable[..., Awaitable], gate: asyncio.Event, entered: asyncio.Event
) -> Callable[..., Awaitable]:
    """Wrap func so its first call parks on gate until the test releases it."""
    held = False

    async def wrapper(*args, **kwargs):
        nonlocal held
        if not held:
            held = True
            entered.set()
            await gate.wait()
        return await func(*args, **kwargs)

    return wrapper


class TestConcurrentCompletion:
    """Near-simultaneous completions."""

    @pytest.mark.asyncio
    async def test_parallel_marks_complete_the_course(
        self, progress_service, enrollments, seed_course, student
    ) -> None:
        course, lessons = await seed_course(lesson_count=5)
        await progress_service.enroll_user(student.id, course.id)

        await asyncio.gather(
            *(
                progress_service.mark_lesson_complete(student.id, lesson.id)
                for lesson in lessons
            )
        )

        progress = await progress_service.get_course_progress(student.id, course.id)
        assert progress.completed_lesson_count == 5
        assert progress.percentage == 100
        enrollment = await enrollments.get_enrollment(student.id, course.id)
        assert enrollment.completed_at is not None

    @pytest.mark.asyncio
    async def test_parallel_enrolls_create_one_record(
        self, progress_service, enrollments, seed_course, student
    ) -> None:
        course, _ = await seed_course()

        results = await asyncio.gather(
            *(progress_service.enroll_user(student.id, course.id) for _ in range(10))
        )

        assert len({r.enrolled_at for r in results}) == 1
        assert len(await enrollments.list_course_enrollments(course.id)) == 1

    @pytest.mark.asyncio
    async def test_same_lesson_marked_concurrently(
        self, progress_service, seed_course, student
    ) -> None:
        course, (l1, _) = await seed_course(lesson_count=2)

        await asyncio.gather(
            *(progress_service.mark_lesson_complete(student.id, l1.id) for _ in range(10))
        )

        progress = await progress_service.get_course_progress(student.id, course.id)
        assert progress.completed_lesson_count == 1


class TestCompletionRacingStructure:
    """A completion racing a structural edit settles to the live state."""

    @pytest.mark.asyncio
    async def test_mark_and_add_lesson(
        self, progress_service, catalog_service, seed_course, admin, student
    ) -> None:
        course, (l1, l2) = await seed_course(lesson_count=2)
        await progress_service.enroll_user(student.id, course.id)
        await progress_service.mark_lesson_complete(student.id, l1.id)

        await asyncio.gather(
            progress_service.mark_lesson_complete(student.id, l2.id),
            catalog_service.create_lesson(
                CreateLessonRequest(title="Lesson 3", module_id=l1.module_id), admin
            ),
        )

        progress = await progress_service.get_course_progress(student.id, course.id)
        assert progress.total_lesson_count == 3
        assert progress.completed_lesson_count == 2
        assert 0 <= progress.completed_lesson_count <= progress.total_lesson_count

    @pytest.mark.asyncio
    async def test_mark_and_delete_remaining_lesson(
        self, progress_service, catalog_service, enrollments, seed_course, admin, student
    ) -> None:
        course, (l1, l2, l3) = await seed_course(lesson_count=3)
        await progress_service.enroll_user(student.id, course.id)
        await progress_service.mark_lesson_complete(student.id, l1.id)

        await asyncio.gather(
            progress_service.mark_lesson_complete(student.id, l2.id),
            catalog_service.delete_lesson(l3.id, admin),
        )

        progress = await progress_service.get_course_progress(student.id, course.id)
        assert progress.percentage == 100
        enrollment = await enrollments.get_enrollment(student.id, course.id)
        assert enrollment.completed_at is not None


class TestStrictCompletionRacingStructure:
    """Under the strict policy a completion computed from a stale lesson set is undone."""

    @pytest.fixture
    def completion_policy(self) -> str:
        return "strict"

    @pytest.mark.asyncio
    async def test_lesson_added_between_read_and_completion_write(
        self,
        progress_service,
        catalog_service,
        enrollments,
        seed_course,
        admin,
        student,
        monkeypatch,
    ) -> None:
        course, (l1,) = await seed_course(lesson_count=1)
        await progress_service.enroll_user(student.id, course.id)
        gate, entered = asyncio.Event(), asyncio.Event()
        monkeypatch.setattr(
            enrollments,
            "get_enrollment",
            hold_first_call(enrollments.get_enrollment, gate, entered),
        )

        # The mark computes 1/1 and parks before reading the enrollment
        mark = asyncio.create_task(
            progress_service.mark_lesson_complete(student.id, l1.id)
        )
        await entered.wait()
        l2 = await catalog_service.create_lesson(
            CreateLessonRequest(title="Lesson 2", module_id=l1.module_id), admin
        )
        gate.set()
        await mark

        progress = await progress_service.get_course_progress(student.id, course.id)
        enrollment = await enrollments.get_enrollment(student.id, course.id)
        assert progress.percentage == 50
        assert enrollment.completed_at is None

        await progress_service.mark_lesson_complete(student.id, l2.id)
        enrollment = await enrollments.get_enrollment(student.id, course.id)
        assert enrollment.completed_at is not None


class TestCreationRacingDelete:
    """A child saved while its parent is being deleted does not survive."""

    @pytest.mark.asyncio
    async def test_lesson_saved_after_module_delete(
        self, catalog_service, catalog_repository, seed_course, admin, monkeypatch
    ) -> None:
        course, (l1,) = await seed_course(lesson_count=1)
        gate, entered = asyncio.Event(), asyncio.Event()
        monkeypatch.setattr(
            catalog_repository,
            "save_lesson",
            hold_first_call(catalog_repository.save_lesson, gate, entered),
        )

        create = asyncio.create_task(
            catalog_service.create_lesson(
                CreateLessonRequest(title="Late", module_id=l1.module_id), admin
            )
        )
        await entered.wait()
        await catalog_service.delete_module(l1.module_id, admin)
        gate.set()

        with pytest.raises(ModuleNotFoundError):
            await create

        assert await catalog_service.get_course_lesson_ids(course.id) == set()
        detail = await catalog_service.get_course_detail(course.id)
        assert detail.modules == []

    @pytest.mark.asyncio
    async def test_module_saved_after_course_delete(
        self, catalog_service, catalog_repository, seed_course, admin, monkeypatch
    ) -> None:
        course, _ = await seed_course(lesson_count=0)
        gate, entered = asyncio.Event(), asyncio.Event()
        monkeypatch.setattr(
            catalog_repository,
            "save_module",
            hold_first_call(catalog_repository.save_module, gate, entered),
        )

        create = asyncio.create_task(
            catalog_service.create_module(
                CreateModuleRequest(title="Late", course_id=course.id), admin
            )
        )
        await entered.wait()
        await catalog_service.delete_course(course.id, admin)
        gate.set()

        with pytest.raises(CourseNotFoundError):
            await create

        assert await catalog_repository.list_course_modules(course.id) == []
