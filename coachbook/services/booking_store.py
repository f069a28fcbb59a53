from __future__ import annotations

from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coachbook.db.models.course import Course
from coachbook.db.models.course_booking import ACTIVE_BOOKING_INDEX, CourseBooking
from coachbook.db.models.credit import CreditPurchase
from coachbook.db.models.user import User


class DuplicateActiveBooking(Exception):
    """The store refused a second active booking for the same (user, course)."""


class BookingStore(Protocol):
    """Persistence operations the booking core relies on.

    ``transaction()`` wraps one booking decision. Inside it, ``lock_user`` and
    ``lock_course`` hold their rows until the transaction ends, so checks and
    the following write see a stable view.
    """

    def transaction(self) -> AbstractAsyncContextManager[None]: ...

    async def lock_user(self, user_id: UUID) -> None: ...

    async def lock_course(self, course_id: UUID) -> Course | None: ...

    async def get_course(self, course_id: UUID) -> Course | None: ...

    async def find_active_booking(self, user_id: UUID, course_id: UUID) -> CourseBooking | None: ...

    async def sum_purchased_credits(self, user_id: UUID) -> int: ...

    async def count_active_bookings_for_user(self, user_id: UUID) -> int: ...

    async def count_active_bookings_for_course(self, course_id: UUID) -> int: ...

    async def insert_booking(self, user_id: UUID, course_id: UUID, booking_at: datetime) -> CourseBooking: ...

    async def mark_cancelled(self, booking: CourseBooking, cancelled_at: datetime) -> None: ...


class SqlAlchemyBookingStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        # The request session may already have autobegun a transaction (the
        # auth dependency reads the user), so commit/rollback explicitly
        # instead of opening a nested begin().
        try:
            yield
            await self.db.commit()
        except BaseException:
            await self.db.rollback()
            raise

    async def lock_user(self, user_id: UUID) -> None:
        await self.db.execute(select(User.id).where(User.id == user_id).with_for_update())

    async def lock_course(self, course_id: UUID) -> Course | None:
        res = await self.db.execute(select(Course).where(Course.id == course_id).with_for_update())
        return res.scalar_one_or_none()

    async def get_course(self, course_id: UUID) -> Course | None:
        res = await self.db.execute(select(Course).where(Course.id == course_id))
        return res.scalar_one_or_none()

    async def find_active_booking(self, user_id: UUID, course_id: UUID) -> CourseBooking | None:
        res = await self.db.execute(
            select(CourseBooking).where(
                CourseBooking.user_id == user_id,
                CourseBooking.course_id == course_id,
                CourseBooking.cancelled_at.is_(None),
            )
        )
        return res.scalar_one_or_none()

    async def sum_purchased_credits(self, user_id: UUID) -> int:
        res = await self.db.execute(
            select(func.coalesce(func.sum(CreditPurchase.purchased_credits), 0)).where(
                CreditPurchase.user_id == user_id
            )
        )
        return int(res.scalar_one())

    async def count_active_bookings_for_user(self, user_id: UUID) -> int:
        res = await self.db.execute(
            select(func.count())
            .select_from(CourseBooking)
            .where(CourseBooking.user_id == user_id, CourseBooking.cancelled_at.is_(None))
        )
        return int(res.scalar_one())

    async def count_active_bookings_for_course(self, course_id: UUID) -> int:
        res = await self.db.execute(
            select(func.count())
            .select_from(CourseBooking)
            .where(CourseBooking.course_id == course_id, CourseBooking.cancelled_at.is_(None))
        )
        return int(res.scalar_one())

    async def insert_booking(self, user_id: UUID, course_id: UUID, booking_at: datetime) -> CourseBooking:
        booking = CourseBooking(user_id=user_id, course_id=course_id, booking_at=booking_at)
        self.db.add(booking)
        try:
            await self.db.flush()
        except IntegrityError as e:
            # Only the active-booking index means "already booked"; FK and other
            # violations propagate.
            if ACTIVE_BOOKING_INDEX not in str(e.orig):
                raise
            raise DuplicateActiveBooking(str(course_id)) from e
        return booking

    async def mark_cancelled(self, booking: CourseBooking, cancelled_at: datetime) -> None:
        booking.cancelled_at = cancelled_at
        await self.db.flush()
