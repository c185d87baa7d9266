"""Shared fixtures.

The environment is switched to testing with in-memory storage before the
application package is imported, so importing coursetrack.main never
reaches for Cassandra or writes log files.
"""

import os


os.environ["ENVIRONMENT"] = "testing"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from collections.abc import Awaitable, Callable, Iterator  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402

from coursetrack.auth.permissions import UserRole  # noqa: E402
from coursetrack.auth.schemas import Principal  # noqa: E402
from coursetrack.catalog.events import CatalogEventBus  # noqa: E402
from coursetrack.catalog.models import Course, Lesson  # noqa: E402
from coursetrack.catalog.repository import InMemoryCatalogRepository  # noqa: E402
from coursetrack.catalog.schemas import (  # noqa: E402
    CreateCourseRequest,
    CreateLessonRequest,
    CreateModuleRequest,
)
from coursetrack.catalog.service import CatalogService  # noqa: E402
from coursetrack.config import Settings  # noqa: E402
from coursetrack.main import create_app  # noqa: E402
from coursetrack.progress.aggregator import ProgressAggregator  # noqa: E402
from coursetrack.progress.maintainer import ConsistencyMaintainer  # noqa: E402
from coursetrack.progress.repository import (  # noqa: E402
    InMemoryCompletionLedger,
    InMemoryEnrollmentLedger,
)
from coursetrack.progress.service import ProgressService  # noqa: E402


# ==============================================================================
# Settings & Application
# ==============================================================================


@pytest.fixture
def settings() -> Settings:
    """Testing settings with in-memory storage."""
    return Settings(
        environment="testing",
        storage_backend="memory",
        log_level="WARNING",
        log_requests=False,
    )


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    """Application wired to fresh in-memory storage."""
    return create_app(settings)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """Test client; entering it runs the lifespan that builds the services."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_token(settings: Settings) -> Callable[..., str]:
    """Sign an access token the way the identity service does."""

    def _make(user_id: UUID, role: str, token_type: str = "access") -> str:
        payload = {
            "sub": str(user_id),
            "role": role,
            "type": token_type,
            "exp": datetime.now(UTC) + timedelta(hours=1),
        }
        return jwt.encode(
            payload, settings.auth_secret_key, algorithm=settings.auth_algorithm
        )

    return _make


@pytest.fixture
def admin_headers(make_token) -> dict[str, str]:
    """Authorization header for an administrator."""
    return {"Authorization": f"Bearer {make_token(uuid4(), 'admin')}"}


@pytest.fixture
def student_id() -> UUID:
    """Test learner ID."""
    return uuid4()


@pytest.fixture
def student_headers(make_token, student_id: UUID) -> dict[str, str]:
    """Authorization header for a learner."""
    return {"Authorization": f"Bearer {make_token(student_id, 'student')}"}


# ==============================================================================
# Principals
# ==============================================================================


@pytest.fixture
def admin() -> Principal:
    """Administrator principal."""
    return Principal(id=uuid4(), role=UserRole.ADMIN)


@pytest.fixture
def student() -> Principal:
    """Learner principal."""
    return Principal(id=uuid4(), role=UserRole.STUDENT)


# ==============================================================================
# Engine (services over in-memory storage)
# ==============================================================================


@pytest.fixture
def completion_policy() -> str:
    """Override in a test module to exercise the strict policy."""
    return "sticky"


@pytest.fixture
def catalog_repository() -> InMemoryCatalogRepository:
    return InMemoryCatalogRepository()


@pytest.fixture
def enrollments() -> InMemoryEnrollmentLedger:
    return InMemoryEnrollmentLedger()


@pytest.fixture
def completions() -> InMemoryCompletionLedger:
    return InMemoryCompletionLedger()


@pytest.fixture
def events() -> CatalogEventBus:
    return CatalogEventBus()


@pytest.fixture
def catalog_service(catalog_repository, events) -> CatalogService:
    """Catalog service publishing to the shared event bus."""
    return CatalogService(repository=catalog_repository, events=events)


@pytest.fixture
def aggregator(
    catalog_repository, enrollments, completions, completion_policy
) -> ProgressAggregator:
    """Aggregator with strict invariants."""
    return ProgressAggregator(
        catalog=catalog_repository,
        enrollments=enrollments,
        completions=completions,
        completion_policy=completion_policy,
        strict_invariants=True,
    )


@pytest.fixture
def maintainer(aggregator, enrollments, completions, events) -> ConsistencyMaintainer:
    """Maintainer subscribed to catalog changes."""
    maintainer = ConsistencyMaintainer(
        aggregator=aggregator,
        enrollments=enrollments,
        completions=completions,
    )
    events.subscribe(maintainer.handle)
    return maintainer


@pytest.fixture
def progress_service(
    catalog_service, aggregator, enrollments, completions, maintainer
) -> ProgressService:
    """Progress service; depends on maintainer so catalog edits reconcile."""
    return ProgressService(
        catalog=catalog_service,
        aggregator=aggregator,
        enrollments=enrollments,
        completions=completions,
    )


SeedCourse = Callable[..., Awaitable[tuple[Course, list[Lesson]]]]


@pytest.fixture
def seed_course(catalog_service: CatalogService, admin: Principal) -> SeedCourse:
    """Create a course with one module holding the requested lessons."""

    async def _seed(lesson_count: int = 2, title: str = "Pharmacology") -> tuple:
        course = await catalog_service.create_course(
            CreateCourseRequest(title=title), admin
        )
        module = await catalog_service.create_module(
            CreateModuleRequest(title="Module 1", course_id=course.id), admin
        )
        lessons = [
            await catalog_service.create_lesson(
                CreateLessonRequest(title=f"Lesson {i + 1}", module_id=module.id),
                admin,
            )
            for i in range(lesson_count)
        ]
        return course, lessons

    return _seed
