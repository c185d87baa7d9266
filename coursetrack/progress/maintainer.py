"""Keeps enrollments consistent with catalog structure.

Subscribed to the catalog event bus. Every change to a course's lesson
set re-evaluates each enrollment on that course, so learners never need
to act for their completion state to follow the catalog.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from coursetrack.catalog.events import CatalogChange, CatalogChangeKind


if TYPE_CHECKING:
    from .aggregator import ProgressAggregator
    from .repository import CompletionLedger, EnrollmentLedger


logger = structlog.get_logger(__name__)


class ConsistencyMaintainer:
    """Applies catalog changes to the enrollment and completion ledgers."""

    def __init__(
        self,
        aggregator: ProgressAggregator,
        enrollments: EnrollmentLedger,
        completions: CompletionLedger,
    ) -> None:
        self.aggregator = aggregator
        self.enrollments = enrollments
        self.completions = completions

    async def handle(self, change: CatalogChange) -> None:
        """Event bus entry point."""
        marks_purged = 0
        enrollments_touched = 0

        if change.kind == CatalogChangeKind.COURSE_REMOVED:
            marks_purged = await self.completions.purge_lessons(change.lesson_ids)
            enrollments_touched = await self.enrollments.delete_course_enrollments(
                change.course_id
            )
        else:
            if change.kind == CatalogChangeKind.LESSONS_REMOVED:
                marks_purged = await self.completions.purge_lessons(change.lesson_ids)
            enrollments_touched = await self.reevaluate_course(change.course_id)

        logger.info(
            "catalog_change_handled",
            change_id=str(change.id),
            kind=change.kind.value,
            course_id=str(change.course_id),
            lessons=len(change.lesson_ids),
            marks_purged=marks_purged,
            enrollments=enrollments_touched,
        )

    async def reevaluate_course(self, course_id) -> int:
        """Re-run aggregation for every enrollment on the course."""
        enrollments = await self.enrollments.list_course_enrollments(course_id)
        for enrollment in enrollments:
            await self.aggregator.recompute(
                enrollment.user_id, course_id, enrollment=enrollment
            )
        return len(enrollments)
