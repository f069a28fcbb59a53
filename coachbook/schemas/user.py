from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from coachbook.schemas.auth import check_user_name
from coachbook.schemas.common import Money, NonBlankStr


class UserProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    email: str


class UserProfileData(BaseModel):
    user: UserProfile


class ProfileUpdateRequest(BaseModel):
    name: NonBlankStr

    @field_validator("name")
    @classmethod
    def _name_rules(cls, v: str) -> str:
        return check_user_name(v)


class UserName(BaseModel):
    name: str


class UserNameData(BaseModel):
    user: UserName


class PurchaseRecord(BaseModel):
    name: str
    purchased_credits: int
    price_paid: Money
    purchase_at: datetime


class BookedCourse(BaseModel):
    course_id: UUID
    name: str
    coach_name: str
    start_at: datetime
    end_at: datetime
    meeting_url: str | None
    status: str


class BookedCoursesData(BaseModel):
    credit_remain: int
    credit_usage: int
    course_booking: list[BookedCourse]
