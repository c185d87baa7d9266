"""Tests for request context management."""

from uuid import uuid4

from coursetrack.core.context import (
    clear_context,
    get_context,
    get_request_id,
    set_correlation_id,
    set_request_id,
    set_user,
)


class TestRequestContext:
    """Context variables feed every log line."""

    def setup_method(self) -> None:
        clear_context()

    def test_set_user(self) -> None:
        user_id = uuid4()
        set_user(user_id, "student")

        context = get_context()
        assert context["user_id"] == str(user_id)
        assert context["user_role"] == "student"

    def test_set_request_id_generates_when_missing(self) -> None:
        request_id = set_request_id()

        assert request_id
        assert get_request_id() == request_id

    def test_correlation_id_included(self) -> None:
        set_request_id("req-1")
        set_correlation_id("import-1")

        assert get_context() == {"request_id": "req-1", "correlation_id": "import-1"}

    def test_clear_context(self) -> None:
        set_request_id("req-1")
        set_user(uuid4(), "admin")

        clear_context()

        assert get_context() == {}
