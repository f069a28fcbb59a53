from __future__ import annotations

import enum
from datetime import datetime


class CourseStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    OPEN = "OPEN"
    ENDED = "ENDED"

    @property
    def coach_label(self) -> str:
        return _COACH_LABELS[self]

    @property
    def booker_label(self) -> str:
        return _BOOKER_LABELS[self]


_COACH_LABELS = {
    CourseStatus.NOT_STARTED: "尚未開始",
    CourseStatus.OPEN: "報名中",
    CourseStatus.ENDED: "已結束",
}

_BOOKER_LABELS = {
    CourseStatus.NOT_STARTED: "PENDING",
    CourseStatus.OPEN: "PROGRESS",
    CourseStatus.ENDED: "COMPLETED",
}


def course_status(now: datetime, start_at: datetime, end_at: datetime) -> CourseStatus:
    """Place ``now`` in the course window: inclusive at ``start_at``, exclusive at ``end_at``."""
    if now < start_at:
        return CourseStatus.NOT_STARTED
    if now < end_at:
        return CourseStatus.OPEN
    return CourseStatus.ENDED
