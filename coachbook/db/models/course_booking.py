from __future__ import annotations

import enum
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Index, func, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coachbook.db.base import Base


class BookingState(str, enum.Enum):
    NONE = "NONE"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


ACTIVE_BOOKING_INDEX = "uq_course_bookings_active_user_course"


class CourseBooking(Base):
    __tablename__ = "course_bookings"
    __table_args__ = (
        # At most one active booking per (user, course); cancelled rows are kept.
        Index(
            ACTIVE_BOOKING_INDEX,
            "user_id",
            "course_id",
            unique=True,
            postgresql_where=text("cancelled_at IS NULL"),
        ),
        Index("ix_course_bookings_course_id_cancelled_at", "course_id", "cancelled_at"),
        Index("ix_course_bookings_user_id_cancelled_at", "user_id", "cancelled_at"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)

    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    course_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    )

    booking_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    course = relationship("Course")

    @property
    def state(self) -> BookingState:
        return BookingState.ACTIVE if self.cancelled_at is None else BookingState.CANCELLED
