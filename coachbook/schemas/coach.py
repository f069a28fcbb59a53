from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from coachbook.schemas.common import HttpUrlStr, NaturalInt, NonBlankStr


class CoachPromoteRequest(BaseModel):
    experience_years: NaturalInt
    description: NonBlankStr
    profile_image_url: HttpUrlStr | None = None


class CoachProfileUpdate(CoachPromoteRequest):
    skill_ids: list[UUID]


class CoachPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    experience_years: int
    description: str
    profile_image_url: str | None
    created_at: datetime
    updated_at: datetime


class CoachUser(BaseModel):
    name: str
    role: str


class CoachPromoteData(BaseModel):
    user: CoachUser
    coach: CoachPublic


class CoachDetailData(BaseModel):
    user: CoachUser
    coach: CoachPublic


class CoachListItem(BaseModel):
    id: UUID
    name: str


class CoachProfile(BaseModel):
    id: UUID
    experience_years: int
    description: str
    profile_image_url: str | None
    skill_ids: list[UUID]


class RevenueTotal(BaseModel):
    participants: int
    revenue: int
    course_count: int


class RevenueData(BaseModel):
    total: RevenueTotal
