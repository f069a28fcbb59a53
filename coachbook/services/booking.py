"""
Course booking state machine.

Per (user, course) pair a booking is NONE, ACTIVE or CANCELLED. Creating a
booking moves NONE -> ACTIVE; cancelling moves ACTIVE -> CANCELLED and keeps
the row. Both transitions run inside one store transaction holding the user
and course row locks (always in that order), so concurrent requests cannot
both pass the credit or seat checks.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable
from uuid import UUID

from coachbook.core.errors import DomainError
from coachbook.db.models.course_booking import BookingState, CourseBooking
from coachbook.services.booking_store import BookingStore, DuplicateActiveBooking
from coachbook.services.course_capacity import CourseCapacityTracker
from coachbook.services.credit_ledger import CreditLedger

logger = logging.getLogger(__name__)


class BookingRejection(DomainError):
    """A booking or cancellation precondition was not met."""


class CourseNotFound(BookingRejection):
    default_message = "課程不存在"

    def __init__(self) -> None:
        super().__init__(code="course_not_found")


class AlreadyBooked(BookingRejection):
    default_message = "已經報名過此課程"

    def __init__(self) -> None:
        super().__init__(code="already_booked")


class NoCreditsRemaining(BookingRejection):
    default_message = "已無可使用堂數"

    def __init__(self) -> None:
        super().__init__(code="no_credits_remaining")


class CourseFull(BookingRejection):
    default_message = "已達最大參加人數，無法參加"

    def __init__(self) -> None:
        super().__init__(code="course_full")


class NotBooked(BookingRejection):
    default_message = "尚未報名此課程或已取消"

    def __init__(self) -> None:
        super().__init__(code="not_booked")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookingService:
    def __init__(self, store: BookingStore, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.store = store
        self.clock = clock
        self.ledger = CreditLedger(store)
        self.capacity = CourseCapacityTracker(store)

    async def booking_state(self, user_id: UUID, course_id: UUID) -> BookingState:
        booking = await self.store.find_active_booking(user_id, course_id)
        return booking.state if booking is not None else BookingState.NONE

    async def remaining_credits(self, user_id: UUID) -> int:
        return await self.ledger.remaining_credits(user_id)

    async def create_booking(self, user_id: UUID, course_id: UUID) -> CourseBooking:
        async with self.store.transaction():
            await self.store.lock_user(user_id)
            course = await self.store.lock_course(course_id)
            if course is None:
                raise CourseNotFound()

            if await self.booking_state(user_id, course_id) is BookingState.ACTIVE:
                raise AlreadyBooked()

            balance = await self.ledger.balance(user_id)
            if not balance.has_credit:
                raise NoCreditsRemaining()

            if not await self.capacity.has_seat(course):
                raise CourseFull()

            try:
                booking = await self.store.insert_booking(user_id, course_id, self.clock())
            except DuplicateActiveBooking:
                raise AlreadyBooked() from None

        logger.info(
            "Booking created user=%s course=%s credits_remaining=%d",
            user_id,
            course_id,
            balance.remaining - 1,
        )
        return booking

    async def cancel_booking(self, user_id: UUID, course_id: UUID) -> CourseBooking:
        async with self.store.transaction():
            await self.store.lock_user(user_id)
            course = await self.store.lock_course(course_id)
            if course is None:
                raise CourseNotFound()

            booking = await self.store.find_active_booking(user_id, course_id)
            if booking is None or booking.state is not BookingState.ACTIVE:
                raise NotBooked()

            await self.store.mark_cancelled(booking, self.clock())

        logger.info("Booking cancelled user=%s course=%s", user_id, course_id)
        return booking
