"""Structural catalog change events.

The catalog service publishes one CatalogChange per mutation that alters a
course's lesson set. Publishing awaits every subscriber in order, so the
dependent progress state is fixed before the admin call returns.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

import structlog


logger = structlog.get_logger(__name__)


class CatalogChangeKind(str, Enum):
    """What happened to the course's lesson set."""

    LESSONS_ADDED = "lessons_added"
    LESSONS_REMOVED = "lessons_removed"
    COURSE_REMOVED = "course_removed"


@dataclass(frozen=True)
class CatalogChange:
    """A change to the lesson set of one course."""

    kind: CatalogChangeKind
    course_id: UUID
    lesson_ids: frozenset[UUID] = frozenset()
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    id: UUID = field(default_factory=uuid4)


CatalogChangeHandler = Callable[[CatalogChange], Awaitable[None]]


class CatalogEventBus:
    """In-process, synchronous-delivery publisher for catalog changes."""

    def __init__(self) -> None:
        self._handlers: list[CatalogChangeHandler] = []

    def subscribe(self, handler: CatalogChangeHandler) -> None:
        """Register a handler; handlers run in subscription order."""
        self._handlers.append(handler)

    async def publish(self, change: CatalogChange) -> None:
        """Deliver a change to every handler and wait for all of them.

        A failing handler propagates to the caller; the catalog write has
        already happened, and the next change or completion on the course
        re-runs the same reconciliation.
        """
        logger.debug(
            "catalog_change_published",
            change_id=str(change.id),
            kind=change.kind.value,
            course_id=str(change.course_id),
            lesson_count=len(change.lesson_ids),
        )
        for handler in self._handlers:
            await handler(change)
