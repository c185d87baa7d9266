"""Tests for application settings."""

from coursetrack.config import Settings


class TestProgressSettings:
    """Defaults for the progress engine."""

    def test_sticky_completion_by_default(self) -> None:
        assert Settings().progress_completion_policy == "sticky"

    def test_strict_invariants_outside_production(self) -> None:
        assert Settings(environment="development").strict_invariants is True
        assert Settings(environment="testing").strict_invariants is True

    def test_lenient_invariants_in_production(self) -> None:
        assert Settings(environment="production").strict_invariants is False

    def test_explicit_override_wins(self) -> None:
        settings = Settings(environment="production", progress_strict_invariants=True)
        assert settings.strict_invariants is True
