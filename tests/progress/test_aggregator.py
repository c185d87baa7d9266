"""Tests for course progress aggregation."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from coursetrack.progress.aggregator import (
    InvariantViolationError,
    ProgressAggregator,
    ProgressSnapshot,
    calculate_percentage,
)


class TestCalculatePercentage:
    """Whole-number percentage with halves rounded up."""

    def test_empty_course_is_zero(self) -> None:
        assert calculate_percentage(0, 0) == 0

    def test_one_third_rounds_down(self) -> None:
        assert calculate_percentage(1, 3) == 33

    def test_two_thirds_rounds_up(self) -> None:
        assert calculate_percentage(2, 3) == 67

    def test_exact_half_rounds_up(self) -> None:
        """1/8 = 12.5% rounds to 13, not banker's 12."""
        assert calculate_percentage(1, 8) == 13

    def test_complete(self) -> None:
        assert calculate_percentage(7, 7) == 100


class TestProgressSnapshot:
    """Derived snapshot properties."""

    def test_zero_lessons_never_complete(self) -> None:
        snapshot = ProgressSnapshot(user_id=uuid4(), course_id=uuid4(), total=0)
        assert snapshot.done == 0
        assert snapshot.percentage == 0
        assert snapshot.is_complete is False

    def test_all_done_is_complete(self) -> None:
        ids = frozenset({uuid4(), uuid4()})
        snapshot = ProgressSnapshot(
            user_id=uuid4(), course_id=uuid4(), total=2, completed_lesson_ids=ids
        )
        assert snapshot.is_complete is True
        assert snapshot.percentage == 100


class TestCompute:
    """compute() scopes marks to the live lesson set."""

    @pytest.mark.asyncio
    async def test_counts_only_current_lessons(
        self, aggregator, completions, seed_course, student
    ) -> None:
        course, lessons = await seed_course(lesson_count=3)
        await completions.mark_complete(student.id, lessons[0].id, course.id)
        # A mark on a lesson outside the course never counts
        await completions.mark_complete(student.id, uuid4(), course.id)

        snapshot = await aggregator.compute(student.id, course.id)

        assert snapshot.total == 3
        assert snapshot.done == 1
        assert snapshot.percentage == 33
        assert snapshot.completed_lesson_ids == frozenset({lessons[0].id})

    @pytest.mark.asyncio
    async def test_course_without_lessons(self, aggregator, seed_course, student) -> None:
        course, _ = await seed_course(lesson_count=0)

        snapshot = await aggregator.compute(student.id, course.id)

        assert snapshot.total == 0
        assert snapshot.percentage == 0
        assert snapshot.is_complete is False


class TestInvariantViolation:
    """done > total is reported, and raised when strict."""

    def _aggregator(self, strict: bool) -> ProgressAggregator:
        lesson_id = uuid4()
        catalog = AsyncMock()
        catalog.get_course_lesson_ids = AsyncMock(return_value={lesson_id})
        completions = AsyncMock()
        # A broken ledger that ignores the candidate filter
        completions.list_completed_lesson_ids = AsyncMock(
            return_value={lesson_id, uuid4()}
        )
        return ProgressAggregator(
            catalog=catalog,
            enrollments=AsyncMock(),
            completions=completions,
            strict_invariants=strict,
        )

    @pytest.mark.asyncio
    async def test_strict_raises(self) -> None:
        aggregator = self._aggregator(strict=True)

        with pytest.raises(InvariantViolationError) as exc_info:
            await aggregator.compute(uuid4(), uuid4())

        assert exc_info.value.code == "invariant_violation"

    @pytest.mark.asyncio
    async def test_lenient_clamps(self) -> None:
        aggregator = self._aggregator(strict=False)

        snapshot = await aggregator.compute(uuid4(), uuid4())

        assert snapshot.done == 1
        assert snapshot.total == 1
        assert snapshot.percentage == 100


class TestRecompute:
    """recompute() drives the enrollment completion timestamp."""

    @pytest.mark.asyncio
    async def test_sets_completed_at_when_all_done(
        self, aggregator, enrollments, completions, seed_course, student
    ) -> None:
        course, lessons = await seed_course(lesson_count=2)
        await enrollments.enroll(student.id, course.id)
        for lesson in lessons:
            await completions.mark_complete(student.id, lesson.id, course.id)

        snapshot = await aggregator.recompute(student.id, course.id)

        enrollment = await enrollments.get_enrollment(student.id, course.id)
        assert snapshot.is_complete
        assert enrollment.completed_at is not None

    @pytest.mark.asyncio
    async def test_keeps_first_completion_timestamp(
        self, aggregator, enrollments, completions, seed_course, student
    ) -> None:
        course, lessons = await seed_course(lesson_count=1)
        await enrollments.enroll(student.id, course.id)
        await completions.mark_complete(student.id, lessons[0].id, course.id)
        await aggregator.recompute(student.id, course.id)
        first = (await enrollments.get_enrollment(student.id, course.id)).completed_at

        await aggregator.recompute(student.id, course.id)

        again = (await enrollments.get_enrollment(student.id, course.id)).completed_at
        assert again == first

    @pytest.mark.asyncio
    async def test_without_enrollment_writes_nothing(
        self, aggregator, enrollments, completions, seed_course, student
    ) -> None:
        course, lessons = await seed_course(lesson_count=1)
        await completions.mark_complete(student.id, lessons[0].id, course.id)

        snapshot = await aggregator.recompute(student.id, course.id)

        assert snapshot.is_complete
        assert await enrollments.get_enrollment(student.id, course.id) is None

    @pytest.mark.asyncio
    async def test_empty_course_never_completes(
        self, aggregator, enrollments, seed_course, student
    ) -> None:
        course, _ = await seed_course(lesson_count=0)
        await enrollments.enroll(student.id, course.id)

        await aggregator.recompute(student.id, course.id)

        enrollment = await enrollments.get_enrollment(student.id, course.id)
        assert enrollment.completed_at is None
