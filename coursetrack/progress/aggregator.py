"""Course progress aggregation.

Derives a learner's course progress from the live lesson set and the
completion ledger, and decides whether the enrollment transitions to
complete. Nothing computed here is ever stored except the enrollment's
completion timestamp.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Literal
from uuid import UUID

import structlog


if TYPE_CHECKING:
    from coursetrack.catalog.repository import CatalogRepository

    from .models import Enrollment
    from .repository import CompletionLedger, EnrollmentLedger


logger = structlog.get_logger(__name__)

CompletionPolicy = Literal["sticky", "strict"]


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvariantViolationError(ProgressError):
    """Completed lesson count exceeded the course's lesson count."""

    def __init__(self, message: str = "Progress invariant violated"):
        super().__init__(message, "invariant_violation")


# ==============================================================================
# Calculation
# ==============================================================================


def calculate_percentage(done: int, total: int) -> int:
    """Whole-number percentage, halves rounded up. Empty courses are 0."""
    if total == 0:
        return 0
    ratio = Decimal(done) * 100 / Decimal(total)
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class ProgressSnapshot:
    """Progress of one learner in one course at evaluation time."""

    user_id: UUID
    course_id: UUID
    total: int
    completed_lesson_ids: frozenset[UUID] = field(default_factory=frozenset)

    @property
    def done(self) -> int:
        return len(self.completed_lesson_ids)

    @property
    def percentage(self) -> int:
        return calculate_percentage(self.done, self.total)

    @property
    def is_complete(self) -> bool:
        return self.total > 0 and self.done == self.total


# ==============================================================================
# Aggregator
# ==============================================================================


class ProgressAggregator:
    """Computes course progress and drives enrollment completion.

    completion_policy:
        "sticky" - once set, completed_at is never cleared.
        "strict" - completed_at is cleared whenever the live state
                   is no longer complete (e.g. a lesson was added).
    """

    MAX_SETTLE_PASSES = 3

    def __init__(
        self,
        catalog: CatalogRepository,
        enrollments: EnrollmentLedger,
        completions: CompletionLedger,
        completion_policy: CompletionPolicy = "sticky",
        strict_invariants: bool = True,
    ) -> None:
        self.catalog = catalog
        self.enrollments = enrollments
        self.completions = completions
        self.completion_policy = completion_policy
        self.strict_invariants = strict_invariants

    async def compute(self, user_id: UUID, course_id: UUID) -> ProgressSnapshot:
        """Read the lesson set, then the marks scoped to it."""
        lesson_ids = await self.catalog.get_course_lesson_ids(course_id)
        completed = await self.completions.list_completed_lesson_ids(
            user_id, lesson_ids
        )

        if not completed <= lesson_ids:
            self._report_violation(user_id, course_id, len(completed), len(lesson_ids))
            completed = completed & lesson_ids

        return ProgressSnapshot(
            user_id=user_id,
            course_id=course_id,
            total=len(lesson_ids),
            completed_lesson_ids=frozenset(completed),
        )

    def _report_violation(
        self, user_id: UUID, course_id: UUID, done: int, total: int
    ) -> None:
        logger.error(
            "progress_invariant_violation",
            user_id=str(user_id),
            course_id=str(course_id),
            done=done,
            total=total,
        )
        if self.strict_invariants:
            raise InvariantViolationError(
                f"Completed lessons ({done}) outside course lesson set ({total})"
            )

    async def recompute(
        self,
        user_id: UUID,
        course_id: UUID,
        enrollment: Enrollment | None = None,
    ) -> ProgressSnapshot:
        """Compute progress and apply the completion decision.

        Each enrollment write is a single conditional update issued after
        every read, so a failure before it leaves nothing half-applied.
        Learners without an enrollment get a snapshot and no write.

        Under the strict policy a write is followed by another pass until
        one makes no change: a structural edit reconciled between our read
        and our write saw the enrollment as it was before the write.
        """
        snapshot = await self.compute(user_id, course_id)

        for _ in range(self.MAX_SETTLE_PASSES):
            if enrollment is None:
                enrollment = await self.enrollments.get_enrollment(user_id, course_id)
            if enrollment is None:
                return snapshot

            wrote = await self._apply_completion(snapshot, enrollment)
            if not wrote or self.completion_policy != "strict":
                return snapshot

            snapshot = await self.compute(user_id, course_id)
            enrollment = None

        logger.warning(
            "enrollment_completion_unsettled",
            user_id=str(user_id),
            course_id=str(course_id),
            passes=self.MAX_SETTLE_PASSES,
        )
        return snapshot

    async def _apply_completion(
        self, snapshot: ProgressSnapshot, enrollment: Enrollment
    ) -> bool:
        """Set or clear completed_at; True when a write landed."""
        user_id, course_id = snapshot.user_id, snapshot.course_id

        if snapshot.is_complete and enrollment.completed_at is None:
            applied = await self.enrollments.set_completed(
                user_id, course_id, datetime.now(UTC), only_if_unset=True
            )
            if applied:
                logger.info(
                    "enrollment_completed",
                    user_id=str(user_id),
                    course_id=str(course_id),
                    total_lessons=snapshot.total,
                )
            return applied

        if (
            not snapshot.is_complete
            and enrollment.completed_at is not None
            and self.completion_policy == "strict"
        ):
            applied = await self.enrollments.set_completed(user_id, course_id, None)
            if applied:
                logger.info(
                    "enrollment_completion_cleared",
                    user_id=str(user_id),
                    course_id=str(course_id),
                    done=snapshot.done,
                    total=snapshot.total,
                )
            return applied

        return False
