from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coachbook.api.deps import get_booking_service, get_current_user
from coachbook.core.errors import ConflictError, ValidationError
from coachbook.core.security import create_access_token, hash_password, verify_password
from coachbook.core.settings import Settings, get_settings
from coachbook.db.models.course import Course
from coachbook.db.models.course_booking import CourseBooking
from coachbook.db.models.credit import CreditPackage, CreditPurchase
from coachbook.db.models.user import User, UserRole
from coachbook.db.session import get_db
from coachbook.schemas.auth import (
    LoginData,
    LoginRequest,
    LoginUser,
    PasswordChangeRequest,
    SignupData,
    SignupRequest,
    SignupUser,
)
from coachbook.schemas.common import Envelope, OkEnvelope
from coachbook.schemas.user import (
    BookedCourse,
    BookedCoursesData,
    ProfileUpdateRequest,
    PurchaseRecord,
    UserName,
    UserNameData,
    UserProfile,
    UserProfileData,
)
from coachbook.services.booking import BookingService
from coachbook.services.course_status import course_status

router = APIRouter(prefix="/users", tags=["users"])

EMAIL_TAKEN_MESSAGE = "Email 已被使用"


@router.post("/signup", response_model=Envelope[SignupData], status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    # Fast path: pre-check email uniqueness for a clean 409; still handle race via IntegrityError.
    res = await db.execute(select(User).where(User.email == body.email))
    if res.scalar_one_or_none() is not None:
        raise ConflictError(EMAIL_TAKEN_MESSAGE)

    user = User(
        name=body.name,
        email=body.email,
        hashed_password=hash_password(body.password, rounds=settings.bcrypt_rounds),
        role=UserRole.USER.value,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(EMAIL_TAKEN_MESSAGE)
    await db.refresh(user)

    return Envelope(data=SignupData(user=SignupUser(id=user.id, name=user.name)))


@router.post("/login", response_model=Envelope[LoginData])
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    res = await db.execute(select(User).where(User.email == body.email))
    user = res.scalar_one_or_none()

    if user is None or not verify_password(body.password, user.hashed_password):
        raise ValidationError("使用者不存在或密碼輸入錯誤")

    token = create_access_token(
        user_id=user.id,
        role=user.role,
        ttl_seconds=settings.jwt_expires_seconds,
        secret=settings.jwt_secret,
    )
    return Envelope(data=LoginData(token=token, user=LoginUser(name=user.name)))


@router.get("/profile", response_model=Envelope[UserProfileData])
async def get_profile(current_user: User = Depends(get_current_user)):
    return Envelope(data=UserProfileData(user=UserProfile.model_validate(current_user)))


@router.put("/profile", response_model=Envelope[UserNameData])
async def put_profile(
    body: ProfileUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if current_user.name == body.name:
        raise ValidationError("使用者名稱未變更")

    current_user.name = body.name
    await db.commit()
    await db.refresh(current_user)
    return Envelope(data=UserNameData(user=UserName(name=current_user.name)))


@router.put("/password", response_model=OkEnvelope)
async def put_password(
    body: PasswordChangeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    if body.new_password != body.confirm_new_password:
        raise ValidationError("新密碼與驗證新密碼不一致")
    if not verify_password(body.password, current_user.hashed_password):
        raise ValidationError("密碼輸入錯誤")
    if body.password == body.new_password:
        raise ValidationError("新密碼不能與舊密碼相同")

    current_user.hashed_password = hash_password(body.new_password, rounds=settings.bcrypt_rounds)
    await db.commit()
    return OkEnvelope()


@router.get("/credit-package", response_model=Envelope[list[PurchaseRecord]])
async def list_purchases(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    res = await db.execute(
        select(
            CreditPackage.name,
            CreditPurchase.purchased_credits,
            CreditPurchase.price_paid,
            CreditPurchase.purchase_at,
        )
        .join(CreditPackage, CreditPackage.id == CreditPurchase.credit_package_id)
        .where(CreditPurchase.user_id == current_user.id)
        .order_by(CreditPurchase.purchase_at.desc())
    )
    return Envelope(data=[PurchaseRecord.model_validate(row, from_attributes=True) for row in res.all()])


@router.get("/courses", response_model=Envelope[BookedCoursesData])
async def list_booked_courses(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service),
):
    res = await db.execute(
        select(
            Course.id,
            Course.name,
            User.name.label("coach_name"),
            Course.start_at,
            Course.end_at,
            Course.meeting_url,
        )
        .join(CourseBooking, CourseBooking.course_id == Course.id)
        .join(User, User.id == Course.user_id)
        .where(CourseBooking.user_id == current_user.id, CourseBooking.cancelled_at.is_(None))
        .order_by(Course.start_at)
    )
    rows = res.all()
    balance = await booking.ledger.balance(current_user.id)

    now = datetime.now(timezone.utc)
    return Envelope(
        data=BookedCoursesData(
            credit_remain=balance.remaining,
            credit_usage=balance.used,
            course_booking=[
                BookedCourse(
                    course_id=row.id,
                    name=row.name,
                    coach_name=row.coach_name,
                    start_at=row.start_at,
                    end_at=row.end_at,
                    meeting_url=row.meeting_url,
                    status=course_status(now, row.start_at, row.end_at).booker_label,
                )
                for row in rows
            ],
        )
    )
