from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import (
    STUDENT,
    apply,
    certificate_minted,
    course_added_to_certificate,
    course_created,
    license_minted,
)


def test_get_enrollment(client: TestClient) -> None:
    apply(course_created(), license_minted(1, price=1_000_000))
    body = client.get("/v1/enrollments/1").json()
    assert body["student"] == STUDENT
    assert body["status"] == "ACTIVE"
    assert body["platform_fee"]["raw"] == "20000"
    assert body["creator_revenue"]["raw"] == "980000"


def test_lookup_by_student_and_course(client: TestClient) -> None:
    apply(course_created(), license_minted(8))
    resp = client.get(
        "/v1/enrollments/lookup", params={"student": STUDENT, "course_id": "1"}
    )
    assert resp.status_code == 200
    assert resp.json()["id"] == "8"


def test_lookup_without_enrollment_is_404(client: TestClient) -> None:
    apply(course_created())
    resp = client.get(
        "/v1/enrollments/lookup", params={"student": STUDENT, "course_id": "1"}
    )
    assert resp.status_code == 404


def test_unknown_enrollment_is_404(client: TestClient) -> None:
    resp = client.get("/v1/enrollments/77")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Enrollment 77 not found"


def test_certificate_and_its_courses(client: TestClient) -> None:
    apply(
        course_created(1),
        course_created(2),
        license_minted(1, 1),
        license_minted(2, 2),
        certificate_minted(3),
        course_added_to_certificate(3, 2),
        course_added_to_certificate(3, 1),
    )
    body = client.get("/v1/certificates/3").json()
    assert body["owner"] == STUDENT
    assert body["total_courses"] == 2
    assert body["platform_name"] == "EduVerse"

    courses = client.get("/v1/certificates/3/courses").json()
    assert [(c["course_id"], c["is_first_course"]) for c in courses] == [
        ("2", True),
        ("1", False),
    ]
    assert courses[0]["platform_fee"]["raw"] == "100000"


def test_unknown_certificate_is_404(client: TestClient) -> None:
    assert client.get("/v1/certificates/1").status_code == 404
    assert client.get("/v1/certificates/1/courses").status_code == 404
