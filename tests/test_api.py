"""HTTP tests for the catalog and progress endpoints."""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def course_with_lessons(client: TestClient, admin_headers):
    """Create a course with one module and two lessons through the API."""

    def _create(lesson_count: int = 2) -> tuple[str, list[str]]:
        course = client.post(
            "/v1/courses",
            json={"title": "Dispensing", "coverUrl": "https://cdn/cover.png"},
            headers=admin_headers,
        ).json()
        module = client.post(
            "/v1/modules",
            json={"title": "Basics", "courseId": course["id"]},
            headers=admin_headers,
        ).json()
        lesson_ids = [
            client.post(
                "/v1/lessons",
                json={"title": f"Lesson {i}", "moduleId": module["id"]},
                headers=admin_headers,
            ).json()["id"]
            for i in range(lesson_count)
        ]
        return course["id"], lesson_ids

    return _create


class TestAuthentication:
    """Tests for bearer token handling."""

    def test_missing_token(self, client: TestClient) -> None:
        response = client.get("/v1/courses")
        assert response.status_code == 401
        assert response.json()["error"] is True

    def test_invalid_token(self, client: TestClient) -> None:
        response = client.get(
            "/v1/courses", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    def test_unknown_role(self, client: TestClient, make_token) -> None:
        token = make_token(uuid4(), "instructor")
        response = client.get("/v1/courses", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestCatalogEndpoints:
    """Tests for admin catalog routes."""

    def test_create_course_camel_case(self, client: TestClient, admin_headers) -> None:
        response = client.post(
            "/v1/courses",
            json={"title": "Dispensing", "coverUrl": "https://cdn/cover.png"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["coverUrl"] == "https://cdn/cover.png"
        assert "createdAt" in data

    def test_student_forbidden(self, client: TestClient, student_headers) -> None:
        response = client.post(
            "/v1/courses", json={"title": "Nope"}, headers=student_headers
        )
        assert response.status_code == 403

    def test_module_for_missing_course(self, client: TestClient, admin_headers) -> None:
        response = client.post(
            "/v1/modules",
            json={"title": "M", "courseId": str(uuid4())},
            headers=admin_headers,
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Course not found"

    def test_malformed_id_rejected(self, client: TestClient, admin_headers) -> None:
        response = client.delete("/v1/lessons/not-a-uuid", headers=admin_headers)
        assert response.status_code == 422

    def test_negative_duration_rejected(
        self, client: TestClient, admin_headers, course_with_lessons
    ) -> None:
        course_id, _ = course_with_lessons(0)
        detail = client.get(f"/v1/courses/{course_id}", headers=admin_headers).json()
        response = client.post(
            "/v1/lessons",
            json={
                "title": "Bad",
                "moduleId": detail["modules"][0]["id"],
                "durationSeconds": -1,
            },
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_course_detail(
        self, client: TestClient, student_headers, course_with_lessons
    ) -> None:
        course_id, lesson_ids = course_with_lessons(2)
        response = client.get(f"/v1/courses/{course_id}", headers=student_headers)
        assert response.status_code == 200
        lessons = response.json()["modules"][0]["lessons"]
        assert [les["id"] for les in lessons] == lesson_ids

    def test_update_and_get_lesson(
        self, client: TestClient, admin_headers, student_headers, course_with_lessons
    ) -> None:
        _, (lesson_id, _) = course_with_lessons(2)
        response = client.put(
            f"/v1/lessons/{lesson_id}",
            json={"contentText": "Read this"},
            headers=admin_headers,
        )
        assert response.status_code == 200

        lesson = client.get(f"/v1/lessons/{lesson_id}", headers=student_headers).json()
        assert lesson["contentText"] == "Read this"

    def test_delete_course(
        self, client: TestClient, admin_headers, course_with_lessons
    ) -> None:
        course_id, _ = course_with_lessons(1)
        response = client.delete(f"/v1/courses/{course_id}", headers=admin_headers)
        assert response.status_code == 204
        response = client.get(f"/v1/courses/{course_id}", headers=admin_headers)
        assert response.status_code == 404


class TestProgressEndpoints:
    """Tests for learner routes."""

    def test_completion_walkthrough(
        self, client: TestClient, student_headers, admin_headers, course_with_lessons
    ) -> None:
        course_id, (l1, l2) = course_with_lessons(2)
        response = client.post(f"/v1/courses/{course_id}/enroll", headers=student_headers)
        assert response.status_code == 200
        assert response.json()["completedAt"] is None

        response = client.post(
            f"/v1/progress/lessons/{l1}/complete", headers=student_headers
        )
        assert response.status_code == 204

        progress = client.get(
            f"/v1/progress/courses/{course_id}", headers=student_headers
        ).json()
        assert progress["completedLessonCount"] == 1
        assert progress["totalLessonCount"] == 2
        assert progress["percentage"] == 50
        assert progress["completedLessonIds"] == [l1]

        client.post(f"/v1/progress/lessons/{l2}/complete", headers=student_headers)
        enrollment = client.get(
            f"/v1/enrollments/{course_id}", headers=student_headers
        ).json()
        assert enrollment["completedAt"] is not None
        assert enrollment["status"] == "complete"
        assert enrollment["progressPercentage"] == 100

        # A new lesson lowers live progress but completion is kept
        detail = client.get(f"/v1/courses/{course_id}", headers=admin_headers).json()
        client.post(
            "/v1/lessons",
            json={"title": "Lesson 3", "moduleId": detail["modules"][0]["id"]},
            headers=admin_headers,
        )
        progress = client.get(
            f"/v1/progress/courses/{course_id}", headers=student_headers
        ).json()
        assert progress["percentage"] == 67
        enrollment = client.get(
            f"/v1/enrollments/{course_id}", headers=student_headers
        ).json()
        assert enrollment["completedAt"] is not None

    def test_complete_unknown_lesson(self, client: TestClient, student_headers) -> None:
        response = client.post(
            f"/v1/progress/lessons/{uuid4()}/complete", headers=student_headers
        )
        assert response.status_code == 404

    def test_course_list(
        self, client: TestClient, student_headers, course_with_lessons
    ) -> None:
        enrolled_id, _ = course_with_lessons(2)
        other_id, _ = course_with_lessons(1)
        client.post(f"/v1/courses/{enrolled_id}/enroll", headers=student_headers)

        response = client.get("/v1/courses", headers=student_headers)
        assert response.status_code == 200
        courses = {c["id"]: c for c in response.json()}

        assert courses[enrolled_id]["isEnrolled"] is True
        assert courses[enrolled_id]["progressPercentage"] == 0
        assert courses[enrolled_id]["moduleCount"] == 1
        assert courses[other_id]["isEnrolled"] is False
        assert "progressPercentage" not in courses[other_id]

    def test_enroll_is_idempotent(
        self, client: TestClient, student_headers, course_with_lessons
    ) -> None:
        course_id, _ = course_with_lessons(1)
        first = client.post(f"/v1/courses/{course_id}/enroll", headers=student_headers)
        second = client.post(f"/v1/courses/{course_id}/enroll", headers=student_headers)
        assert first.json()["enrolledAt"] == second.json()["enrolledAt"]

        mine = client.get("/v1/enrollments/my", headers=student_headers).json()
        assert mine["total"] == 1

    def test_enroll_unknown_course(self, client: TestClient, student_headers) -> None:
        response = client.post(f"/v1/courses/{uuid4()}/enroll", headers=student_headers)
        assert response.status_code == 404

    def test_enrollment_not_found(
        self, client: TestClient, student_headers, course_with_lessons
    ) -> None:
        course_id, _ = course_with_lessons(1)
        response = client.get(f"/v1/enrollments/{course_id}", headers=student_headers)
        assert response.status_code == 404
        assert "request_id" in response.json()
