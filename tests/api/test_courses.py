from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from ledger_indexer.services import cache
from ledger_indexer.services.cache import cache_service
from tests.conftest import (
    CREATOR,
    ONE_TOKEN,
    apply,
    course_created,
    license_minted,
    make_event,
    section_added,
    section_completed,
    section_deleted,
)


def test_get_course(client: TestClient) -> None:
    apply(course_created(), section_added(1, 0, 60), license_minted(1, price=ONE_TOKEN))

    resp = client.get("/v1/courses/1")

    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == "1"
    assert body["creator"] == CREATOR
    assert body["category"] == "Programming"
    assert body["sections_count"] == 1
    assert body["total_enrollments"] == 1
    assert body["total_revenue"]["raw"] == str(ONE_TOKEN)
    assert body["total_revenue"]["display"].startswith("1.")


def test_get_unknown_course_is_404(client: TestClient) -> None:
    resp = client.get("/v1/courses/999")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Course 999 not found"


def test_course_detail_is_cached_until_invalidated(client: TestClient) -> None:
    apply(course_created())
    assert client.get("/v1/courses/1").json()["sections_count"] == 0

    [result] = apply(section_added(1, 0))
    # Still the cached copy.
    assert client.get("/v1/courses/1").json()["sections_count"] == 0

    asyncio.run(cache.invalidate(cache_service, result.touched))
    assert client.get("/v1/courses/1").json()["sections_count"] == 1


def test_list_courses_filters_and_orders(client: TestClient) -> None:
    other = "0x" + "d" * 40
    apply(
        course_created(10),
        course_created(2),
        course_created(3, creator=other),
        make_event("CourseFactory", "CourseDeleted", {"courseId": 2}),
    )

    assert [c["id"] for c in client.get("/v1/courses").json()] == ["3", "10"]
    assert [c["id"] for c in client.get("/v1/courses?include_deleted=true").json()] == [
        "2",
        "3",
        "10",
    ]
    # Creator filter accepts any address casing.
    resp = client.get("/v1/courses", params={"creator": "0x" + "D" * 40})
    assert [c["id"] for c in resp.json()] == ["3"]


def test_list_courses_paginates(client: TestClient) -> None:
    apply(*(course_created(i) for i in range(1, 6)))
    resp = client.get("/v1/courses?limit=2&offset=1")
    assert [c["id"] for c in resp.json()] == ["2", "3"]
    assert client.get("/v1/courses?limit=0").status_code == 422


def test_list_sections_in_display_order(client: TestClient) -> None:
    apply(
        course_created(),
        section_added(1, 0, title="Intro"),
        section_added(1, 1, title="Basics"),
        section_added(1, 2, title="Advanced"),
        section_deleted(1, 0),
    )
    resp = client.get("/v1/courses/1/sections")
    assert resp.status_code == 200
    assert [(s["title"], s["order_id"]) for s in resp.json()] == [
        ("Basics", 0),
        ("Advanced", 1),
    ]


def test_list_course_enrollments(client: TestClient) -> None:
    apply(
        course_created(),
        section_added(1, 0),
        section_added(1, 1),
        license_minted(1),
        section_completed(1, 0),
    )
    resp = client.get("/v1/courses/1/enrollments")
    assert resp.status_code == 200
    [enrollment] = resp.json()
    assert enrollment["id"] == "1"
    assert enrollment["completion_percentage"] == 50


def test_sections_of_unknown_course_is_404(client: TestClient) -> None:
    assert client.get("/v1/courses/5/sections").status_code == 404
