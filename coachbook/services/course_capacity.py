from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from coachbook.db.models.course import Course
from coachbook.db.models.course_booking import CourseBooking
from coachbook.services.booking_store import BookingStore


def active_participants_expr():
    """Correlated count of active bookings, for use in listings selecting ``Course``."""
    return (
        select(func.count())
        .select_from(CourseBooking)
        .where(CourseBooking.course_id == Course.id, CourseBooking.cancelled_at.is_(None))
        .correlate(Course)
        .scalar_subquery()
    )


class CourseCapacityTracker:
    def __init__(self, store: BookingStore) -> None:
        self.store = store

    async def active_participant_count(self, course_id: UUID) -> int:
        return await self.store.count_active_bookings_for_course(course_id)

    async def capacity(self, course_id: UUID) -> int:
        course = await self.store.get_course(course_id)
        return course.max_participants if course is not None else 0

    async def has_seat(self, course: Course) -> bool:
        """True while active bookings are strictly below ``max_participants``."""
        return await self.active_participant_count(course.id) < course.max_participants
