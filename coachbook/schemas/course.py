from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, model_validator

from coachbook.schemas.common import HttpUrlStr, NaturalInt, NonBlankStr, UtcDatetime, rule_error

COURSE_TIME_WINDOW_MESSAGE = "課程結束時間必須晚於開始時間"


class CourseInput(BaseModel):
    skill_id: UUID
    name: NonBlankStr
    description: NonBlankStr
    start_at: UtcDatetime
    end_at: UtcDatetime
    max_participants: NaturalInt
    meeting_url: HttpUrlStr | None = None

    @model_validator(mode="after")
    def _validate_window(self) -> "CourseInput":
        if self.end_at <= self.start_at:
            raise rule_error(COURSE_TIME_WINDOW_MESSAGE)
        return self


class CourseCreate(CourseInput):
    user_id: UUID


class CourseUpdate(CourseInput):
    pass


class CoursePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    skill_id: UUID
    name: str
    description: str
    start_at: datetime
    end_at: datetime
    max_participants: int
    meeting_url: str | None
    created_at: datetime


class CourseData(BaseModel):
    course: CoursePublic


class CourseListItem(BaseModel):
    id: UUID
    coach_name: str
    skill_name: str
    name: str
    description: str
    start_at: datetime
    end_at: datetime
    max_participants: int
    participants: int
    status: str


class CoachCourseSummary(BaseModel):
    id: UUID
    status: str
    name: str
    start_at: datetime
    end_at: datetime
    max_participants: int
    participants: int


class CoachCourseDetail(BaseModel):
    id: UUID
    skill_name: str
    name: str
    description: str
    start_at: datetime
    end_at: datetime
    max_participants: int


class CoachCourseItem(BaseModel):
    id: UUID
    coach_name: str
    skill_name: str
    name: str
    description: str
    start_at: datetime
    end_at: datetime
    max_participants: int


class BookingPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    booking_at: datetime
    cancelled_at: datetime | None
