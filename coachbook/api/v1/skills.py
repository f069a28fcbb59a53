from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coachbook.core.errors import ConflictError, NotFoundError
from coachbook.db.models.skill import Skill
from coachbook.db.session import get_db
from coachbook.schemas.catalog import SkillCreate, SkillPublic
from coachbook.schemas.common import Envelope, OkEnvelope

router = APIRouter(prefix="/coaches/skill", tags=["skills"])


@router.get("", response_model=Envelope[list[SkillPublic]])
async def list_skills(db: AsyncSession = Depends(get_db)):
    res = await db.execute(select(Skill).order_by(Skill.created_at))
    return Envelope(data=[SkillPublic.model_validate(s) for s in res.scalars().all()])


@router.post("", response_model=Envelope[SkillPublic])
async def create_skill(body: SkillCreate, db: AsyncSession = Depends(get_db)):
    res = await db.execute(select(Skill).where(Skill.name == body.name))
    if res.scalar_one_or_none() is not None:
        raise ConflictError()

    skill = Skill(name=body.name)
    db.add(skill)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError()
    await db.refresh(skill)
    return Envelope(data=SkillPublic.model_validate(skill))


@router.delete("/{skill_id}", response_model=OkEnvelope)
async def delete_skill(skill_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        res = await db.execute(delete(Skill).where(Skill.id == skill_id))
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("專長使用中，無法刪除")

    if res.rowcount == 0:
        raise NotFoundError("id 不存在")
    return OkEnvelope()
