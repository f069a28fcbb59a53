from __future__ import annotations

import calendar
import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from coachbook.api.deps import get_current_coach, get_current_user
from coachbook.core.errors import ConflictError, NotFoundError, ValidationError
from coachbook.db.models.coach import Coach
from coachbook.db.models.course import Course
from coachbook.db.models.course_booking import CourseBooking
from coachbook.db.models.credit import CreditPurchase
from coachbook.db.models.skill import CoachLinkSkill, Skill
from coachbook.db.models.user import User, UserRole
from coachbook.db.session import get_db
from coachbook.schemas.coach import (
    CoachProfile,
    CoachProfileUpdate,
    CoachPromoteData,
    CoachPromoteRequest,
    CoachPublic,
    CoachUser,
    RevenueData,
    RevenueTotal,
)
from coachbook.schemas.common import Envelope
from coachbook.schemas.course import (
    CoachCourseDetail,
    CoachCourseSummary,
    CourseCreate,
    CourseData,
    CoursePublic,
    CourseUpdate,
)
from coachbook.services.course_capacity import active_participants_expr
from coachbook.services.course_status import course_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

USER_NOT_FOUND_MESSAGE = "使用者不存在"
NOT_COACH_MESSAGE = "使用者尚未成為教練"
SKILL_NOT_FOUND_MESSAGE = "專長不存在"
COURSE_NOT_FOUND_MESSAGE = "課程不存在"
CAPACITY_BELOW_BOOKINGS_MESSAGE = "最大參加人數不可少於目前報名人數"

_MONTHS = {name.lower(): index for index, name in enumerate(calendar.month_name) if name}


async def _require_skill(db: AsyncSession, skill_id: UUID) -> None:
    if await db.get(Skill, skill_id) is None:
        raise NotFoundError(SKILL_NOT_FOUND_MESSAGE)


# Static "/coaches/courses" paths are declared before "/coaches/{user_id}".


@router.post(
    "/coaches/courses",
    response_model=Envelope[CourseData],
    status_code=status.HTTP_201_CREATED,
)
async def create_course(
    body: CourseCreate,
    db: AsyncSession = Depends(get_db),
    _coach: Coach = Depends(get_current_coach),
):
    owner = await db.get(User, body.user_id)
    if owner is None:
        raise NotFoundError(USER_NOT_FOUND_MESSAGE)
    if not owner.is_coach:
        raise ValidationError(NOT_COACH_MESSAGE)
    await _require_skill(db, body.skill_id)

    course = Course(**body.model_dump())
    db.add(course)
    await db.commit()
    await db.refresh(course)
    logger.info("Course created id=%s coach_user=%s", course.id, course.user_id)
    return Envelope(data=CourseData(course=CoursePublic.model_validate(course)))


@router.put("/coaches/courses/{course_id}", response_model=Envelope[CourseData])
async def update_course(
    course_id: UUID,
    body: CourseUpdate,
    db: AsyncSession = Depends(get_db),
    _coach: Coach = Depends(get_current_coach),
):
    # Bookings take the same row lock, so the count below cannot move under us.
    res = await db.execute(select(Course).where(Course.id == course_id).with_for_update())
    course = res.scalar_one_or_none()
    if course is None:
        raise NotFoundError(COURSE_NOT_FOUND_MESSAGE)
    await _require_skill(db, body.skill_id)

    res = await db.execute(
        select(func.count())
        .select_from(CourseBooking)
        .where(CourseBooking.course_id == course_id, CourseBooking.cancelled_at.is_(None))
    )
    if body.max_participants < int(res.scalar_one()):
        raise ValidationError(CAPACITY_BELOW_BOOKINGS_MESSAGE)

    for field, value in body.model_dump().items():
        setattr(course, field, value)
    await db.commit()
    await db.refresh(course)
    return Envelope(data=CourseData(course=CoursePublic.model_validate(course)))


@router.get("/coaches/courses", response_model=Envelope[list[CoachCourseSummary]])
async def list_own_courses(
    db: AsyncSession = Depends(get_db),
    coach: Coach = Depends(get_current_coach),
):
    res = await db.execute(
        select(
            Course.id,
            Course.name,
            Course.start_at,
            Course.end_at,
            Course.max_participants,
            active_participants_expr().label("participants"),
        )
        .where(Course.user_id == coach.user_id)
        .order_by(Course.start_at)
    )

    now = datetime.now(timezone.utc)
    return Envelope(
        data=[
            CoachCourseSummary(
                id=row.id,
                status=course_status(now, row.start_at, row.end_at).coach_label,
                name=row.name,
                start_at=row.start_at,
                end_at=row.end_at,
                max_participants=row.max_participants,
                participants=int(row.participants),
            )
            for row in res.all()
        ]
    )


@router.get("/coaches/courses/{course_id}", response_model=Envelope[CoachCourseDetail])
async def get_own_course(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    coach: Coach = Depends(get_current_coach),
):
    res = await db.execute(
        select(
            Course.id,
            Skill.name.label("skill_name"),
            Course.name,
            Course.description,
            Course.start_at,
            Course.end_at,
            Course.max_participants,
        )
        .join(Skill, Skill.id == Course.skill_id)
        .where(Course.id == course_id, Course.user_id == coach.user_id)
    )
    row = res.one_or_none()
    if row is None:
        raise NotFoundError(COURSE_NOT_FOUND_MESSAGE)
    return Envelope(data=CoachCourseDetail.model_validate(row, from_attributes=True))


@router.get("/coaches/revenue", response_model=Envelope[RevenueData])
async def get_revenue(
    month: str = Query(),
    db: AsyncSession = Depends(get_db),
    coach: Coach = Depends(get_current_coach),
):
    month_index = _MONTHS.get(month.strip().lower())
    if month_index is None:
        raise ValidationError()

    year = datetime.now(timezone.utc).year
    last_day = calendar.monthrange(year, month_index)[1]
    start = datetime(year, month_index, 1, tzinfo=timezone.utc)
    end = datetime(year, month_index, last_day, 23, 59, 59, 999999, tzinfo=timezone.utc)

    course_ids = select(Course.id).where(
        Course.user_id == coach.user_id, Course.end_at >= start, Course.end_at <= end
    )
    res = await db.execute(
        select(
            func.count(func.distinct(CourseBooking.user_id)),
            func.count(CourseBooking.id),
        ).where(CourseBooking.course_id.in_(course_ids), CourseBooking.cancelled_at.is_(None))
    )
    participants, course_count = res.one()

    totals = await db.execute(
        select(
            func.coalesce(func.sum(CreditPurchase.price_paid), 0),
            func.coalesce(func.sum(CreditPurchase.purchased_credits), 0),
        )
    )
    total_price, total_credits = totals.one()
    per_credit_price = int(total_price // total_credits) if total_credits else 0

    return Envelope(
        data=RevenueData(
            total=RevenueTotal(
                participants=int(participants),
                revenue=per_credit_price * int(course_count),
                course_count=int(course_count),
            )
        )
    )


@router.get("/coaches", response_model=Envelope[CoachProfile])
async def get_own_profile(
    db: AsyncSession = Depends(get_db),
    coach: Coach = Depends(get_current_coach),
):
    return Envelope(data=await _coach_profile(db, coach))


@router.put("/coaches", response_model=Envelope[CoachProfile])
async def put_own_profile(
    body: CoachProfileUpdate,
    db: AsyncSession = Depends(get_db),
    coach: Coach = Depends(get_current_coach),
):
    skill_ids = list(dict.fromkeys(body.skill_ids))
    if skill_ids:
        res = await db.execute(select(func.count()).select_from(Skill).where(Skill.id.in_(skill_ids)))
        existing = int(res.scalar_one())
    else:
        existing = 0
    if existing != len(skill_ids):
        raise NotFoundError(SKILL_NOT_FOUND_MESSAGE)

    coach.experience_years = body.experience_years
    coach.description = body.description
    coach.profile_image_url = body.profile_image_url

    # Links are replaced wholesale, never patched.
    await db.execute(delete(CoachLinkSkill).where(CoachLinkSkill.coach_id == coach.id))
    db.add_all([CoachLinkSkill(coach_id=coach.id, skill_id=skill_id) for skill_id in skill_ids])
    await db.commit()
    await db.refresh(coach)

    return Envelope(data=await _coach_profile(db, coach))


async def _coach_profile(db: AsyncSession, coach: Coach) -> CoachProfile:
    res = await db.execute(
        select(CoachLinkSkill.skill_id)
        .where(CoachLinkSkill.coach_id == coach.id)
        .order_by(CoachLinkSkill.created_at, CoachLinkSkill.skill_id)
    )
    return CoachProfile(
        id=coach.id,
        experience_years=coach.experience_years,
        description=coach.description,
        profile_image_url=coach.profile_image_url,
        skill_ids=list(res.scalars().all()),
    )


@router.post(
    "/coaches/{user_id}",
    response_model=Envelope[CoachPromoteData],
    status_code=status.HTTP_201_CREATED,
)
async def promote_to_coach(
    user_id: UUID,
    body: CoachPromoteRequest,
    db: AsyncSession = Depends(get_db),
    _current_user: User = Depends(get_current_user),
):
    res = await db.execute(select(User).where(User.id == user_id).with_for_update())
    user = res.scalar_one_or_none()
    if user is None:
        raise NotFoundError(USER_NOT_FOUND_MESSAGE)
    if user.is_coach:
        raise ConflictError("使用者已經是教練")

    user.role = UserRole.COACH.value
    coach = Coach(user_id=user.id, **body.model_dump())
    db.add(coach)
    await db.commit()
    await db.refresh(coach)
    logger.info("User %s promoted to coach %s", user.id, coach.id)

    return Envelope(
        data=CoachPromoteData(
            user=CoachUser(name=user.name, role=user.role),
            coach=CoachPublic.model_validate(coach),
        )
    )
