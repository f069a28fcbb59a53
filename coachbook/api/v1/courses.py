from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coachbook.api.deps import get_booking_service, get_current_user
from coachbook.db.models.course import Course
from coachbook.db.models.skill import Skill
from coachbook.db.models.user import User
from coachbook.db.session import get_db
from coachbook.schemas.common import Envelope
from coachbook.schemas.course import BookingPublic, CourseListItem
from coachbook.services.booking import BookingService
from coachbook.services.course_capacity import active_participants_expr
from coachbook.services.course_status import course_status

router = APIRouter(prefix="/courses", tags=["courses"])


@router.get("", response_model=Envelope[list[CourseListItem]])
async def list_courses(db: AsyncSession = Depends(get_db)):
    res = await db.execute(
        select(
            Course.id,
            User.name.label("coach_name"),
            Skill.name.label("skill_name"),
            Course.name,
            Course.description,
            Course.start_at,
            Course.end_at,
            Course.max_participants,
            active_participants_expr().label("participants"),
        )
        .join(User, User.id == Course.user_id)
        .join(Skill, Skill.id == Course.skill_id)
        .order_by(Course.start_at)
    )

    now = datetime.now(timezone.utc)
    return Envelope(
        data=[
            CourseListItem(
                id=row.id,
                coach_name=row.coach_name,
                skill_name=row.skill_name,
                name=row.name,
                description=row.description,
                start_at=row.start_at,
                end_at=row.end_at,
                max_participants=row.max_participants,
                participants=int(row.participants),
                status=course_status(now, row.start_at, row.end_at).booker_label,
            )
            for row in res.all()
        ]
    )


@router.post("/{course_id}", response_model=Envelope[BookingPublic], status_code=status.HTTP_201_CREATED)
async def book_course(
    course_id: UUID,
    current_user: User = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service),
):
    created = await booking.create_booking(current_user.id, course_id)
    return Envelope(data=BookingPublic.model_validate(created))


@router.delete("/{course_id}", response_model=Envelope[BookingPublic])
async def cancel_course_booking(
    course_id: UUID,
    current_user: User = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service),
):
    cancelled = await booking.cancel_booking(current_user.id, course_id)
    return Envelope(data=BookingPublic.model_validate(cancelled))
