"""Catalog handler group (CourseFactory events).

SECTION ORDERING
-----------------
A course's sections carry two numbers:

  section_id  stable identity, assigned by the contract, never reused
  order_id    display position

Among a course's non-deleted sections the order ids are always exactly
0..sections_count-1.  Every structural event below restores that
property before it returns:

  add      append at position sections_count
  delete   close the gap: every later sibling moves up by one
  move     array-splice semantics without materializing the array:
             forward  (src < dst)  siblings in (src, dst] move up by one
             backward (dst < src)  siblings in [dst, src) move down by one
  swap     exchange the order ids of the two positions
  reorder  position in the permutation becomes the order id; a list that
           is not a permutation of the live sections is rejected

Add and delete change the denominator of every enrollment's completion
percentage, so both end with the completion recompute cascade.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from ledger_indexer.core.units import mean, unscale_rating
from ledger_indexer.models import events
from ledger_indexer.models.base import ZERO_ADDRESS, BlockRef
from ledger_indexer.models.course import Course, CourseSection
from ledger_indexer.models.enums import category_name, difficulty_name
from ledger_indexer.repos import accessors
from ledger_indexer.repos.accessors import require
from ledger_indexer.repos.unit_of_work import UnitOfWork
from ledger_indexer.services import activity, aggregates, completion
from ledger_indexer.services.registry import HandlerContext, handles

logger = logging.getLogger(__name__)

CONTRACT = "CourseFactory"


def _touch(course: Course, at: BlockRef, **changes: object) -> Course:
    return replace(course, updated_at=at.timestamp, **changes)


def live_sections(uow: UnitOfWork, course_id: str) -> list[CourseSection]:
    """Non-deleted sections of a course, by order id."""
    sections = []
    for section_id in accessors.section_index(uow, course_id).section_ids:
        section = uow.get(CourseSection, CourseSection.key(course_id, section_id))
        if section is not None and not section.is_deleted:
            sections.append(section)
    return sorted(sections, key=lambda s: s.order_id)


def _reorder(uow: UnitOfWork, section: CourseSection, order_id: int, at: BlockRef) -> None:
    if section.order_id != order_id:
        uow.put(replace(section, order_id=order_id, updated_at=at.timestamp))


# ---------------------------------------------------------------------------
# Course lifecycle
# ---------------------------------------------------------------------------


@handles(CONTRACT, "CourseCreated", events.CourseCreated)
def course_created(ctx: HandlerContext, p: events.CourseCreated) -> None:
    course_id = str(p.course_id)
    at = ctx.at
    if ctx.uow.get(Course, course_id) is not None:
        logger.warning("Course %s already indexed; ignoring re-creation", course_id)
        return

    strict = ctx.settings.strict_schema
    details = ctx.chain.course_details(course_id)
    course = replace(
        Course.new(course_id=course_id, creator=p.creator, at=at),
        creator_name=p.creator_name,
        title=p.title,
        category=category_name(p.category, strict=strict),
        difficulty=difficulty_name(p.difficulty, strict=strict),
        description=details.description if details else "",
        thumbnail_cid=details.thumbnail_cid if details else "",
        price=details.price if details else 0,
    )
    ctx.uow.put(course)

    creator = accessors.profile(ctx.uow, p.creator, at)
    ctx.uow.put(
        accessors.touch_profile(
            creator,
            at,
            courses_created=creator.courses_created + 1,
            active_courses_created=creator.active_courses_created + 1,
            first_course_created_at=creator.first_course_created_at or at.timestamp,
        )
    )
    aggregates.bump_platform(ctx.uow, at, total_courses=1)
    activity.record(
        ctx,
        user=p.creator,
        type="COURSE_CREATED",
        description=f"Created course '{p.title}'",
        course_id=course_id,
        metadata={"category": course.category, "difficulty": course.difficulty},
    )


@handles(CONTRACT, "CourseUpdated", events.CourseUpdated)
def course_updated(ctx: HandlerContext, p: events.CourseUpdated) -> None:
    course = require(ctx.uow, Course, str(p.course_id))
    ctx.uow.put(_touch(course, ctx.at, price=p.new_price, is_active=p.is_active))
    activity.record(
        ctx,
        user=course.creator,
        type="COURSE_UPDATED",
        description=f"Updated course '{course.title}'",
        course_id=course.id,
        metadata={"price": p.new_price, "is_active": p.is_active},
    )


@handles(CONTRACT, "CourseDeleted", events.CourseRef)
def course_deleted(ctx: HandlerContext, p: events.CourseRef) -> None:
    at = ctx.at
    course = require(ctx.uow, Course, str(p.course_id))
    if course.is_deleted:
        logger.info("Course %s already deleted", course.id)
        return

    # The contract clears the whole section array; mirror it.
    for section in live_sections(ctx.uow, course.id):
        ctx.uow.put(replace(section, is_deleted=True, updated_at=at.timestamp))
    ctx.uow.put(
        _touch(
            course,
            at,
            is_deleted=True,
            is_active=False,
            sections_count=0,
            total_duration=0,
        )
    )

    creator = accessors.profile(ctx.uow, course.creator, at)
    ctx.uow.put(
        accessors.touch_profile(
            creator,
            at,
            deleted_courses_created=creator.deleted_courses_created + 1,
            active_courses_created=max(creator.active_courses_created - 1, 0),
        )
    )
    activity.record(
        ctx,
        user=course.creator,
        type="COURSE_DELETED",
        description=f"Deleted course '{course.title}'",
        course_id=course.id,
    )


@handles(CONTRACT, "CourseUnpublished", events.CourseRef)
def course_unpublished(ctx: HandlerContext, p: events.CourseRef) -> None:
    _set_published(ctx, p, False)


@handles(CONTRACT, "CourseRepublished", events.CourseRef)
def course_republished(ctx: HandlerContext, p: events.CourseRef) -> None:
    _set_published(ctx, p, True)


def _set_published(ctx: HandlerContext, p: events.CourseRef, published: bool) -> None:
    course = require(ctx.uow, Course, str(p.course_id))
    ctx.uow.put(_touch(course, ctx.at, is_active=published))
    activity.record(
        ctx,
        user=course.creator,
        type="COURSE_REPUBLISHED" if published else "COURSE_UNPUBLISHED",
        description=f"{'Republished' if published else 'Unpublished'} course '{course.title}'",
        course_id=course.id,
    )


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@handles(CONTRACT, "SectionAdded", events.SectionAdded)
def section_added(ctx: HandlerContext, p: events.SectionAdded) -> None:
    at = ctx.at
    course = require(ctx.uow, Course, str(p.course_id))
    key = CourseSection.key(course.id, p.section_id)
    existing = ctx.uow.get(CourseSection, key)
    if existing is not None and not existing.is_deleted:
        logger.warning("Section %s already indexed; ignoring re-add", key)
        return

    order_id = len(live_sections(ctx.uow, course.id))
    if order_id != p.section_id:
        logger.debug(
            "Section %s appended at position %d (section id %d)",
            key,
            order_id,
            p.section_id,
        )
    section = replace(
        CourseSection.new(
            course_id=course.id, section_id=p.section_id, order_id=order_id, at=at
        ),
        title=p.title,
        content_cid=p.content_cid,
        duration=p.duration,
    )
    index = accessors.section_index(ctx.uow, course.id)
    if p.section_id not in index.section_ids:
        index = replace(index, section_ids=(*index.section_ids, p.section_id))
    ctx.uow.put_all(
        section,
        index,
        _touch(
            course,
            at,
            sections_count=order_id + 1,
            total_duration=course.total_duration + p.duration,
        ),
    )
    completion.cascade(ctx.uow, course.id, at)
    activity.record(
        ctx,
        user=course.creator,
        type="SECTION_ADDED",
        description=f"Added section '{p.title}' to '{course.title}'",
        course_id=course.id,
        metadata={"section_id": p.section_id, "duration": p.duration},
    )


@handles(CONTRACT, "SectionUpdated", events.SectionRef)
def section_updated(ctx: HandlerContext, p: events.SectionRef) -> None:
    # The event carries no new values; record that the section changed.
    course = require(ctx.uow, Course, str(p.course_id))
    section = require(ctx.uow, CourseSection, CourseSection.key(course.id, p.section_id))
    ctx.uow.put(replace(section, updated_at=ctx.at.timestamp))
    activity.record(
        ctx,
        user=course.creator,
        type="SECTION_UPDATED",
        description=f"Updated section '{section.title}' of '{course.title}'",
        course_id=course.id,
        metadata={"section_id": p.section_id},
    )


@handles(CONTRACT, "SectionDeleted", events.SectionRef)
def section_deleted(ctx: HandlerContext, p: events.SectionRef) -> None:
    at = ctx.at
    course = require(ctx.uow, Course, str(p.course_id))
    section = require(ctx.uow, CourseSection, CourseSection.key(course.id, p.section_id))
    if section.is_deleted:
        logger.info("Section %s already deleted", section.id)
        return

    for sibling in live_sections(ctx.uow, course.id):
        if sibling.order_id > section.order_id:
            _reorder(ctx.uow, sibling, sibling.order_id - 1, at)
    ctx.uow.put_all(
        replace(section, is_deleted=True, updated_at=at.timestamp),
        _touch(
            course,
            at,
            sections_count=max(course.sections_count - 1, 0),
            total_duration=max(course.total_duration - section.duration, 0),
        ),
    )
    completion.cascade(ctx.uow, course.id, at)
    activity.record(
        ctx,
        user=course.creator,
        type="SECTION_DELETED",
        description=f"Deleted section '{section.title}' from '{course.title}'",
        course_id=course.id,
        metadata={"section_id": p.section_id},
    )


@handles(CONTRACT, "BatchSectionsAdded", events.BatchSectionsAdded)
def batch_sections_added(ctx: HandlerContext, p: events.BatchSectionsAdded) -> None:
    # Section data arrives through the individual SectionAdded events.
    course = require(ctx.uow, Course, str(p.course_id))
    ctx.uow.put(_touch(course, ctx.at))
    activity.record(
        ctx,
        user=course.creator,
        type="SECTIONS_BATCH_ADDED",
        description=f"Added {len(p.section_ids)} sections to '{course.title}'",
        course_id=course.id,
        metadata={"section_ids": p.section_ids},
    )


@handles(CONTRACT, "SectionsSwapped", events.SectionsSwapped)
def sections_swapped(ctx: HandlerContext, p: events.SectionsSwapped) -> None:
    at = ctx.at
    course = require(ctx.uow, Course, str(p.course_id))
    by_order = {s.order_id: s for s in live_sections(ctx.uow, course.id)}
    a, b = by_order.get(p.index_a), by_order.get(p.index_b)
    if a is None or b is None:
        logger.warning(
            "Swap %d<->%d outside the %d sections of course %s",
            p.index_a,
            p.index_b,
            len(by_order),
            course.id,
        )
        return
    _reorder(ctx.uow, a, b.order_id, at)
    _reorder(ctx.uow, b, a.order_id, at)
    ctx.uow.put(_touch(course, at))
    activity.record(
        ctx,
        user=course.creator,
        type="SECTIONS_SWAPPED",
        description=f"Swapped sections '{a.title}' and '{b.title}'",
        course_id=course.id,
        metadata={"index_a": p.index_a, "index_b": p.index_b},
    )


def _find_moved(
    sections: list[CourseSection], p: events.SectionMoved
) -> CourseSection | None:
    if p.section_id is not None:
        return next((s for s in sections if s.section_id == p.section_id), None)
    matches = [s for s in sections if s.title == p.section_title]
    if len(matches) > 1:
        logger.warning(
            "%d sections titled %r; resolving by position %d",
            len(matches),
            p.section_title,
            p.from_index,
        )
    at_position = [s for s in matches if s.order_id == p.from_index]
    return (at_position or matches or [None])[0]


@handles(CONTRACT, "SectionMoved", events.SectionMoved)
def section_moved(ctx: HandlerContext, p: events.SectionMoved) -> None:
    at = ctx.at
    course = require(ctx.uow, Course, str(p.course_id))
    sections = live_sections(ctx.uow, course.id)
    moved = _find_moved(sections, p)
    if moved is None:
        logger.warning(
            "Moved section %r not found in course %s",
            p.section_id if p.section_id is not None else p.section_title,
            course.id,
        )
        return

    src = moved.order_id
    dst = min(p.to_index, len(sections) - 1)
    if src != p.from_index:
        logger.warning(
            "Section %s is at position %d, event says %d", moved.id, src, p.from_index
        )
    for sibling in sections:
        if sibling.id == moved.id:
            continue
        if src < dst and src < sibling.order_id <= dst:
            _reorder(ctx.uow, sibling, sibling.order_id - 1, at)
        elif dst < src and dst <= sibling.order_id < src:
            _reorder(ctx.uow, sibling, sibling.order_id + 1, at)
    _reorder(ctx.uow, moved, dst, at)
    ctx.uow.put(_touch(course, at))
    logger.info(
        "Section '%s' moved in course %s from %d to %d", moved.title, course.id, src, dst
    )
    activity.record(
        ctx,
        user=course.creator,
        type="SECTION_MOVED",
        description=f"Moved section '{moved.title}' from {src} to {dst}",
        course_id=course.id,
        metadata={"section_id": moved.section_id, "from": src, "to": dst},
    )


@handles(CONTRACT, "SectionsBatchReordered", events.SectionsBatchReordered)
def sections_batch_reordered(
    ctx: HandlerContext, p: events.SectionsBatchReordered
) -> None:
    at = ctx.at
    course = require(ctx.uow, Course, str(p.course_id))
    sections = {s.section_id: s for s in live_sections(ctx.uow, course.id)}
    if sorted(p.new_order) != sorted(sections):
        logger.warning(
            "Reorder %s of course %s is not a permutation of its live sections %s",
            p.new_order,
            course.id,
            sorted(sections),
        )
        return
    for position, section_id in enumerate(p.new_order):
        _reorder(ctx.uow, sections[section_id], position, at)
    ctx.uow.put(_touch(course, at))
    logger.info("Batch reordered %d sections for course %s", len(p.new_order), course.id)
    activity.record(
        ctx,
        user=course.creator,
        type="SECTIONS_REORDERED",
        description=f"Reordered {len(p.new_order)} sections of '{course.title}'",
        course_id=course.id,
        metadata={"new_order": p.new_order},
    )


# ---------------------------------------------------------------------------
# Ratings
# ---------------------------------------------------------------------------


def _rate_creator(
    ctx: HandlerContext, course: Course, *, count_delta: int, sum_delta: int
) -> None:
    creator = accessors.profile(ctx.uow, course.creator, ctx.at)
    count = max(creator.total_ratings_received + count_delta, 0)
    total = max(creator.rating_sum_received + sum_delta, 0) if count else 0
    ctx.uow.put(
        replace(
            creator,
            total_ratings_received=count,
            rating_sum_received=total,
            average_rating=mean(total, count),
            updated_at=ctx.at.timestamp,
        )
    )


@handles(CONTRACT, "CourseRated", events.CourseRated)
def course_rated(ctx: HandlerContext, p: events.CourseRated) -> None:
    at = ctx.at
    course = require(ctx.uow, Course, str(p.course_id))
    # The contract's average is authoritative; sum and count only mirror it.
    ctx.uow.put(
        _touch(
            course,
            at,
            average_rating=unscale_rating(p.new_average_rating),
            total_ratings=course.total_ratings + 1,
            rating_sum=course.rating_sum + p.rating,
            last_rating_at=at.timestamp,
        )
    )
    _rate_creator(ctx, course, count_delta=1, sum_delta=p.rating)
    activity.record(
        ctx,
        user=p.user,
        type="COURSE_RATED",
        description=f"Rated '{course.title}' {p.rating}",
        course_id=course.id,
        metadata={"rating": p.rating},
    )


@handles(CONTRACT, "RatingUpdated", events.RatingUpdated)
def rating_updated(ctx: HandlerContext, p: events.RatingUpdated) -> None:
    at = ctx.at
    course = require(ctx.uow, Course, str(p.course_id))
    delta = p.new_rating - p.old_rating
    ctx.uow.put(
        _touch(
            course,
            at,
            average_rating=unscale_rating(p.new_average_rating),
            rating_sum=max(course.rating_sum + delta, 0),
            last_rating_at=at.timestamp,
        )
    )
    _rate_creator(ctx, course, count_delta=0, sum_delta=delta)
    activity.record(
        ctx,
        user=p.user,
        type="RATING_UPDATED",
        description=f"Changed rating of '{course.title}' from {p.old_rating} to {p.new_rating}",
        course_id=course.id,
        metadata={"old_rating": p.old_rating, "new_rating": p.new_rating},
    )


@handles(CONTRACT, "RatingDeleted", events.RatingDeleted)
def rating_deleted(ctx: HandlerContext, p: events.RatingDeleted) -> None:
    course = require(ctx.uow, Course, str(p.course_id))
    count = max(course.total_ratings - 1, 0)
    total = max(course.rating_sum - p.previous_rating, 0) if count else 0
    # No authoritative average on this event: recompute locally.
    ctx.uow.put(
        _touch(
            course,
            ctx.at,
            total_ratings=count,
            rating_sum=total,
            average_rating=mean(total, count),
        )
    )
    _rate_creator(ctx, course, count_delta=-1, sum_delta=-p.previous_rating)
    activity.record(
        ctx,
        user=p.user,
        type="RATING_DELETED",
        description=f"Deleted rating of '{course.title}'",
        course_id=course.id,
        metadata={"previous_rating": p.previous_rating},
    )


@handles(CONTRACT, "RatingRemoved", events.RatingRemoved)
def rating_removed(ctx: HandlerContext, p: events.RatingRemoved) -> None:
    course = require(ctx.uow, Course, str(p.course_id))
    count = max(course.total_ratings - 1, 0)
    changes: dict[str, object] = {"total_ratings": count}
    if count == 0:
        changes.update(rating_sum=0, average_rating=mean(0, 0))
    # Otherwise the removed value is unknown and the average is kept.
    ctx.uow.put(_touch(course, ctx.at, **changes))
    _rate_creator(ctx, course, count_delta=-1, sum_delta=0)
    logger.info("Rating of %s removed from course %s by admin %s", p.user, course.id, p.admin)
    activity.record(
        ctx,
        user=p.admin,
        type="RATING_REMOVED",
        description=f"Removed rating by {p.user} from '{course.title}'",
        course_id=course.id,
        metadata={"user": p.user},
    )


@handles(CONTRACT, "RatingsPaused", events.RatingsModeration)
def ratings_paused(ctx: HandlerContext, p: events.RatingsModeration) -> None:
    _set_ratings_disabled(ctx, p, True)


@handles(CONTRACT, "RatingsUnpaused", events.RatingsModeration)
def ratings_unpaused(ctx: HandlerContext, p: events.RatingsModeration) -> None:
    _set_ratings_disabled(ctx, p, False)


def _set_ratings_disabled(
    ctx: HandlerContext, p: events.RatingsModeration, disabled: bool
) -> None:
    course = require(ctx.uow, Course, str(p.course_id))
    ctx.uow.put(_touch(course, ctx.at, ratings_disabled=disabled))
    verb = "paused" if disabled else "unpaused"
    logger.info("Ratings %s for course %s by admin %s", verb, course.id, p.admin)
    activity.record(
        ctx,
        user=p.admin,
        type="RATINGS_PAUSED" if disabled else "RATINGS_UNPAUSED",
        description=f"Ratings {verb} for '{course.title}'",
        course_id=course.id,
    )


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------


@handles(CONTRACT, "UserBlacklisted", events.UserModeration)
def user_blacklisted(ctx: HandlerContext, p: events.UserModeration) -> None:
    at = ctx.at
    user = accessors.profile(ctx.uow, p.user, at)
    ctx.uow.put(
        replace(
            user,
            is_blacklisted=True,
            blacklisted_at=at.timestamp,
            blacklisted_by=p.admin,
            updated_at=at.timestamp,
            last_tx_hash=at.tx_hash,
        )
    )
    logger.warning("User %s blacklisted by admin %s", p.user, p.admin)
    activity.record(
        ctx,
        user=p.admin,
        type="USER_BLACKLISTED",
        description=f"Blacklisted {p.user}",
        metadata={"user": p.user},
    )


@handles(CONTRACT, "UserUnblacklisted", events.UserModeration)
def user_unblacklisted(ctx: HandlerContext, p: events.UserModeration) -> None:
    at = ctx.at
    user = accessors.profile(ctx.uow, p.user, at)
    ctx.uow.put(
        replace(
            user,
            is_blacklisted=False,
            blacklisted_at=0,
            blacklisted_by=ZERO_ADDRESS,
            updated_at=at.timestamp,
            last_tx_hash=at.tx_hash,
        )
    )
    logger.info("User %s unblacklisted by admin %s", p.user, p.admin)
    activity.record(
        ctx,
        user=p.admin,
        type="USER_UNBLACKLISTED",
        description=f"Unblacklisted {p.user}",
        metadata={"user": p.user},
    )


@handles(CONTRACT, "CourseEmergencyDeactivated", events.CourseEmergencyDeactivated)
def course_emergency_deactivated(
    ctx: HandlerContext, p: events.CourseEmergencyDeactivated
) -> None:
    course = require(ctx.uow, Course, str(p.course_id))
    ctx.uow.put(
        _touch(
            course,
            ctx.at,
            is_active=False,
            is_emergency_deactivated=True,
            emergency_deactivation_reason=(
                f"Emergency deactivation at timestamp: {p.timestamp}"
            ),
        )
    )
    logger.warning(
        "Course %s emergency deactivated by admin %s at %d",
        course.id,
        p.admin,
        p.timestamp,
    )
    activity.record(
        ctx,
        user=p.admin,
        type="COURSE_EMERGENCY_DEACTIVATED",
        description=f"Emergency deactivated '{course.title}'",
        course_id=course.id,
    )
