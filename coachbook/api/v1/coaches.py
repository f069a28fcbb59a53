from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coachbook.core.errors import NotFoundError
from coachbook.core.settings import Settings, get_settings
from coachbook.db.models.coach import Coach
from coachbook.db.models.course import Course
from coachbook.db.models.skill import Skill
from coachbook.db.models.user import User
from coachbook.db.session import get_db
from coachbook.schemas.coach import CoachDetailData, CoachListItem, CoachPublic, CoachUser
from coachbook.schemas.common import Envelope
from coachbook.schemas.course import CoachCourseItem

router = APIRouter(prefix="/coaches", tags=["coaches"])

COACH_NOT_FOUND_MESSAGE = "找不到該教練"


async def _get_coach(db: AsyncSession, coach_id: UUID) -> Coach:
    res = await db.execute(select(Coach).where(Coach.id == coach_id))
    coach = res.scalar_one_or_none()
    if coach is None:
        raise NotFoundError(COACH_NOT_FOUND_MESSAGE)
    return coach


@router.get("", response_model=Envelope[list[CoachListItem]])
async def list_coaches(
    per: int = Query(ge=1),
    page: int = Query(ge=1),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    per = min(per, settings.coach_page_max)
    res = await db.execute(
        select(Coach.id, User.name)
        .join(User, User.id == Coach.user_id)
        .order_by(Coach.created_at, Coach.id)
        .limit(per)
        .offset((page - 1) * per)
    )
    return Envelope(data=[CoachListItem(id=row.id, name=row.name) for row in res.all()])


@router.get("/{coach_id}", response_model=Envelope[CoachDetailData])
async def get_coach_detail(coach_id: UUID, db: AsyncSession = Depends(get_db)):
    coach = await _get_coach(db, coach_id)
    user = await db.get(User, coach.user_id)
    return Envelope(
        data=CoachDetailData(
            user=CoachUser(name=user.name, role=user.role),
            coach=CoachPublic.model_validate(coach),
        )
    )


@router.get("/{coach_id}/courses", response_model=Envelope[list[CoachCourseItem]])
async def list_coach_courses(coach_id: UUID, db: AsyncSession = Depends(get_db)):
    coach = await _get_coach(db, coach_id)
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
        )
        .join(User, User.id == Course.user_id)
        .join(Skill, Skill.id == Course.skill_id)
        .where(Course.user_id == coach.user_id)
        .order_by(Course.start_at)
    )
    return Envelope(data=[CoachCourseItem.model_validate(row, from_attributes=True) for row in res.all()])
