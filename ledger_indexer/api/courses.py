from __future__ import annotations

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from ledger_indexer.api.common import AmountOut, amount, get_or_404, get_store
from ledger_indexer.api.enrollments import EnrollmentOut, enrollment_out
from ledger_indexer.models.base import normalize_address
from ledger_indexer.models.course import (
    Course,
    CourseEnrollmentIndex,
    CourseSection,
    CourseSectionIndex,
)
from ledger_indexer.models.enrollment import Enrollment
from ledger_indexer.repos.entity_store import EntityStore
from ledger_indexer.services import cache
from ledger_indexer.services.cache import cache_service

router = APIRouter(prefix="/v1/courses", tags=["courses"])

Store = Annotated[EntityStore, Depends(get_store)]


class CourseOut(BaseModel):
    id: str
    creator: str
    creator_name: str
    title: str
    description: str
    thumbnail_cid: str
    category: str
    difficulty: str
    price: AmountOut
    is_active: bool
    is_deleted: bool
    is_emergency_deactivated: bool
    sections_count: int
    total_duration: int
    average_rating: Decimal
    total_ratings: int
    ratings_disabled: bool
    total_enrollments: int
    active_enrollments: int
    completed_students: int
    completion_rate: Decimal
    total_revenue: AmountOut
    certificate_revenue: AmountOut
    certificate_price: AmountOut
    created_at: int
    updated_at: int


class SectionOut(BaseModel):
    id: str
    section_id: int
    order_id: int
    title: str
    content_cid: str
    duration: int
    started_count: int
    completed_count: int
    dropoff_rate: Decimal


def course_out(c: Course) -> CourseOut:
    return CourseOut(
        id=c.id,
        creator=c.creator,
        creator_name=c.creator_name,
        title=c.title,
        description=c.description,
        thumbnail_cid=c.thumbnail_cid,
        category=c.category,
        difficulty=c.difficulty,
        price=amount(c.price),
        is_active=c.is_active,
        is_deleted=c.is_deleted,
        is_emergency_deactivated=c.is_emergency_deactivated,
        sections_count=c.sections_count,
        total_duration=c.total_duration,
        average_rating=c.average_rating,
        total_ratings=c.total_ratings,
        ratings_disabled=c.ratings_disabled,
        total_enrollments=c.total_enrollments,
        active_enrollments=c.active_enrollments,
        completed_students=c.completed_students,
        completion_rate=c.completion_rate,
        total_revenue=amount(c.total_revenue),
        certificate_revenue=amount(c.certificate_revenue),
        certificate_price=amount(c.certificate_price),
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


def _numeric_id(entity_id: str) -> tuple[int, str]:
    return (int(entity_id), "") if entity_id.isdigit() else (-1, entity_id)


@router.get("", response_model=list[CourseOut])
def list_courses(
    store: Store,
    creator: str | None = None,
    include_deleted: bool = False,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[CourseOut]:
    courses = store.list(Course.KIND)
    if creator is not None:
        wanted = normalize_address(creator)
        courses = [c for c in courses if c.creator == wanted]
    if not include_deleted:
        courses = [c for c in courses if not c.is_deleted]
    courses.sort(key=lambda c: _numeric_id(c.id))
    return [course_out(c) for c in courses[offset : offset + limit]]


@router.get("/{course_id}", response_model=CourseOut)
async def get_course(course_id: str, store: Store) -> CourseOut:
    async def load() -> str | None:
        course = store.get(Course.KIND, course_id)
        return course_out(course).model_dump_json() if course is not None else None

    cached = await cache.read_through(cache_service, cache.course_key(course_id), load)
    if cached is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Course {course_id} not found",
        )
    return CourseOut.model_validate_json(cached)


@router.get("/{course_id}/sections", response_model=list[SectionOut])
def list_sections(course_id: str, store: Store) -> list[SectionOut]:
    get_or_404(store, Course, course_id)
    index = store.get(CourseSectionIndex.KIND, course_id)
    section_ids = index.section_ids if index is not None else ()
    sections = [
        s
        for s in (
            store.get(CourseSection.KIND, CourseSection.key(course_id, sid))
            for sid in section_ids
        )
        if s is not None and not s.is_deleted
    ]
    sections.sort(key=lambda s: s.order_id)
    return [
        SectionOut(
            id=s.id,
            section_id=s.section_id,
            order_id=s.order_id,
            title=s.title,
            content_cid=s.content_cid,
            duration=s.duration,
            started_count=s.started_count,
            completed_count=s.completed_count,
            dropoff_rate=s.dropoff_rate,
        )
        for s in sections
    ]


@router.get("/{course_id}/enrollments", response_model=list[EnrollmentOut])
def list_course_enrollments(course_id: str, store: Store) -> list[EnrollmentOut]:
    get_or_404(store, Course, course_id)
    index = store.get(CourseEnrollmentIndex.KIND, course_id)
    enrollment_ids = index.enrollment_ids if index is not None else ()
    enrollments = [store.get(Enrollment.KIND, eid) for eid in enrollment_ids]
    enrollments = [e for e in enrollments if e is not None]
    return [enrollment_out(e) for e in enrollments]
