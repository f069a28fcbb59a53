from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator
from uuid import UUID, uuid4

import pytest

from coachbook.db.models import coach as _coach_model  # noqa: F401
from coachbook.db.models import credit as _credit_model  # noqa: F401
from coachbook.db.models import skill as _skill_model  # noqa: F401
from coachbook.db.models import user as _user_model  # noqa: F401
from coachbook.db.models.course import Course
from coachbook.db.models.course_booking import CourseBooking
from coachbook.services.booking_store import DuplicateActiveBooking


class InMemoryBookingStore:
    """BookingStore kept in dicts.

    One asyncio lock stands in for the user/course row locks: a transaction
    holds it from start to end, and a failed transaction restores bookings.
    Every read yields to the loop so unserialized callers would interleave.
    """

    def __init__(self) -> None:
        self.courses: dict[UUID, Course] = {}
        self.credits: dict[UUID, int] = {}
        self.bookings: list[CourseBooking] = []
        self._lock = asyncio.Lock()

    def add_course(self, *, max_participants: int) -> Course:
        now = datetime.now(timezone.utc)
        course = Course(
            id=uuid4(),
            user_id=uuid4(),
            skill_id=uuid4(),
            name="Course",
            description="desc",
            start_at=now + timedelta(days=1),
            end_at=now + timedelta(days=1, hours=1),
            max_participants=max_participants,
        )
        self.courses[course.id] = course
        return course

    def add_credits(self, user_id: UUID, amount: int) -> None:
        self.credits[user_id] = self.credits.get(user_id, 0) + amount

    def active(self) -> list[CourseBooking]:
        return [b for b in self.bookings if b.cancelled_at is None]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            snapshot = [(b, b.cancelled_at) for b in self.bookings]
            try:
                yield
            except BaseException:
                self.bookings = [b for b, _ in snapshot]
                for booking, cancelled_at in snapshot:
                    booking.cancelled_at = cancelled_at
                raise

    async def lock_user(self, user_id: UUID) -> None:
        await asyncio.sleep(0)

    async def lock_course(self, course_id: UUID) -> Course | None:
        await asyncio.sleep(0)
        return self.courses.get(course_id)

    async def get_course(self, course_id: UUID) -> Course | None:
        await asyncio.sleep(0)
        return self.courses.get(course_id)

    async def find_active_booking(self, user_id: UUID, course_id: UUID) -> CourseBooking | None:
        await asyncio.sleep(0)
        for booking in self.active():
            if booking.user_id == user_id and booking.course_id == course_id:
                return booking
        return None

    async def sum_purchased_credits(self, user_id: UUID) -> int:
        await asyncio.sleep(0)
        return self.credits.get(user_id, 0)

    async def count_active_bookings_for_user(self, user_id: UUID) -> int:
        await asyncio.sleep(0)
        return sum(1 for b in self.active() if b.user_id == user_id)

    async def count_active_bookings_for_course(self, course_id: UUID) -> int:
        await asyncio.sleep(0)
        return sum(1 for b in self.active() if b.course_id == course_id)

    async def insert_booking(self, user_id: UUID, course_id: UUID, booking_at: datetime) -> CourseBooking:
        await asyncio.sleep(0)
        if any(b.user_id == user_id and b.course_id == course_id for b in self.active()):
            raise DuplicateActiveBooking(str(course_id))
        booking = CourseBooking(
            id=uuid4(),
            user_id=user_id,
            course_id=course_id,
            booking_at=booking_at,
            cancelled_at=None,
        )
        self.bookings.append(booking)
        return booking

    async def mark_cancelled(self, booking: CourseBooking, cancelled_at: datetime) -> None:
        await asyncio.sleep(0)
        booking.cancelled_at = cancelled_at


@pytest.fixture
def store() -> InMemoryBookingStore:
    return InMemoryBookingStore()
