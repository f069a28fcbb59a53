from __future__ import annotations

from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coachbook.core.errors import AuthError
from coachbook.core.security import TokenExpired, decode_access_token
from coachbook.core.settings import Settings, get_settings
from coachbook.db.models.coach import Coach
from coachbook.db.models.user import User
from coachbook.db.session import get_db
from coachbook.services.booking import BookingService
from coachbook.services.booking_store import SqlAlchemyBookingStore

LOGIN_REQUIRED_MESSAGE = "請先登入"
TOKEN_EXPIRED_MESSAGE = "token 已過期"
INVALID_TOKEN_MESSAGE = "無效的 token"
NOT_COACH_MESSAGE = "使用者尚未成為教練"


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    token = _bearer_token(request)
    if not token:
        raise AuthError(LOGIN_REQUIRED_MESSAGE)

    try:
        payload = decode_access_token(token, settings.jwt_secret)
    except TokenExpired:
        raise AuthError(TOKEN_EXPIRED_MESSAGE)
    except ValueError:
        raise AuthError(INVALID_TOKEN_MESSAGE)

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise AuthError(INVALID_TOKEN_MESSAGE)

    res = await db.execute(select(User).where(User.id == user_id))
    user = res.scalar_one_or_none()
    if user is None:
        raise AuthError(INVALID_TOKEN_MESSAGE)

    return user


async def get_current_coach(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Coach:
    if not current_user.is_coach:
        raise AuthError(NOT_COACH_MESSAGE)

    res = await db.execute(select(Coach).where(Coach.user_id == current_user.id))
    coach = res.scalar_one_or_none()
    if coach is None:
        raise AuthError(NOT_COACH_MESSAGE)
    return coach


def get_booking_service(db: AsyncSession = Depends(get_db)) -> BookingService:
    return BookingService(SqlAlchemyBookingStore(db))
