from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

import httpx
import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from coachbook.core.security import hash_password
from coachbook.core.settings import get_settings
from coachbook.db.models.coach import Coach
from coachbook.db.models.course import Course
from coachbook.db.models.credit import CreditPackage, CreditPurchase
from coachbook.db.models.skill import Skill
from coachbook.db.models.user import User, UserRole
from coachbook.main import app
from coachbook.services.booking import AlreadyBooked, BookingService, CourseFull
from coachbook.services.booking_store import SqlAlchemyBookingStore

PASSWORD = "Passw0rd"


async def _can_connect(database_url: str) -> bool:
    engine = create_async_engine(database_url, pool_pre_ping=True)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
    finally:
        await engine.dispose()


def _run_migrations_sync() -> None:
    project_root = Path(__file__).resolve().parents[1]
    cfg = Config(str(project_root / "alembic.ini"))
    cfg.set_main_option("script_location", str(project_root / "alembic"))
    command.upgrade(cfg, "head")


async def _prepare(database_url: str) -> None:
    if not await _can_connect(database_url):
        pytest.skip("Database not reachable. Start Postgres and ensure DATABASE_URL is correct.")
    await asyncio.to_thread(_run_migrations_sync)


async def _create_user(database_url: str, *, name: str, coach: bool = False) -> User:
    engine = create_async_engine(database_url, pool_pre_ping=True)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with SessionLocal() as session:
            user = User(
                name=name,
                email=f"test-{uuid4()}@example.com",
                hashed_password=hash_password(PASSWORD, rounds=4),
                role=(UserRole.COACH if coach else UserRole.USER).value,
            )
            session.add(user)
            await session.flush()
            if coach:
                session.add(Coach(user_id=user.id, experience_years=3, description="Coach"))
            await session.commit()
            await session.refresh(user)
            return user
    finally:
        await engine.dispose()


async def _create_skill(database_url: str) -> Skill:
    engine = create_async_engine(database_url, pool_pre_ping=True)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with SessionLocal() as session:
            skill = Skill(name=f"skill-{uuid4().hex[:12]}")
            session.add(skill)
            await session.commit()
            await session.refresh(skill)
            return skill
    finally:
        await engine.dispose()


async def _create_course(database_url: str, *, coach_user_id: UUID, max_participants: int) -> Course:
    skill = await _create_skill(database_url)
    engine = create_async_engine(database_url, pool_pre_ping=True)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)
    now = datetime.now(timezone.utc)
    try:
        async with SessionLocal() as session:
            course = Course(
                user_id=coach_user_id,
                skill_id=skill.id,
                name="Course",
                description="desc",
                start_at=now + timedelta(days=1),
                end_at=now + timedelta(days=1, hours=1),
                max_participants=max_participants,
            )
            session.add(course)
            await session.commit()
            await session.refresh(course)
            return course
    finally:
        await engine.dispose()


async def _grant_credits(database_url: str, *, user_id: UUID, credits: int) -> None:
    engine = create_async_engine(database_url, pool_pre_ping=True)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with SessionLocal() as session:
            package = CreditPackage(name=f"pkg-{uuid4().hex[:12]}", credit_amount=credits, price=Decimal("100"))
            session.add(package)
            await session.flush()
            session.add(
                CreditPurchase(
                    user_id=user_id,
                    credit_package_id=package.id,
                    purchased_credits=credits,
                    price_paid=package.price,
                    purchase_at=datetime.now(timezone.utc),
                )
            )
            await session.commit()
    finally:
        await engine.dispose()


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


async def _login(client: httpx.AsyncClient, email: str) -> dict[str, str]:
    r = await client.post("/api/v1/users/login", json={"email": email, "password": PASSWORD})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['data']['token']}"}


@pytest.mark.asyncio
async def test_purchase_book_cancel_rebook_over_http() -> None:
    settings = get_settings()
    await _prepare(settings.database_url)

    coach = await _create_user(settings.database_url, name="教練", coach=True)
    learner = await _create_user(settings.database_url, name="學員")
    skill = await _create_skill(settings.database_url)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        coach_auth = await _login(client, coach.email)
        now = datetime.now(timezone.utc)
        r = await client.post(
            "/api/v1/admin/coaches/courses",
            headers=coach_auth,
            json={
                "user_id": str(coach.id),
                "skill_id": str(skill.id),
                "name": "重量訓練",
                "description": "入門課",
                "start_at": (now + timedelta(days=2)).isoformat(),
                "end_at": (now + timedelta(days=2, hours=1)).isoformat(),
                "max_participants": 1,
                "meeting_url": "https://meet.example.com/abc",
            },
        )
        assert r.status_code == 201
        course_id = r.json()["data"]["course"]["id"]

        r = await client.post(
            "/api/v1/credit-package",
            json={"name": f"1 堂 {uuid4().hex[:8]}", "credit_amount": 1, "price": 500},
        )
        assert r.status_code == 200
        package_id = r.json()["data"]["id"]

        learner_auth = await _login(client, learner.email)

        r = await client.post(f"/api/v1/courses/{course_id}", headers=learner_auth)
        assert r.status_code == 400
        assert r.json()["message"] == "已無可使用堂數"

        r = await client.post(f"/api/v1/credit-package/{package_id}", headers=learner_auth)
        assert r.status_code == 201
        assert r.json()["data"]["purchased_credits"] == 1
        assert r.json()["data"]["price_paid"] == 500

        r = await client.post(f"/api/v1/courses/{course_id}", headers=learner_auth)
        assert r.status_code == 201
        first_booking_at = r.json()["data"]["booking_at"]

        r = await client.get("/api/v1/users/courses", headers=learner_auth)
        data = r.json()["data"]
        assert (data["credit_remain"], data["credit_usage"]) == (0, 1)
        assert [c["course_id"] for c in data["course_booking"]] == [course_id]
        assert data["course_booking"][0]["status"] == "PENDING"

        r = await client.get("/api/v1/admin/coaches/courses", headers=coach_auth)
        mine = {c["id"]: c for c in r.json()["data"]}
        assert mine[course_id]["participants"] == 1
        assert mine[course_id]["status"] == "尚未開始"

        r = await client.delete(f"/api/v1/courses/{course_id}", headers=learner_auth)
        assert r.status_code == 200

        r = await client.get("/api/v1/users/courses", headers=learner_auth)
        data = r.json()["data"]
        assert (data["credit_remain"], data["credit_usage"], data["course_booking"]) == (1, 0, [])

        r = await client.post(f"/api/v1/courses/{course_id}", headers=learner_auth)
        assert r.status_code == 201
        assert _parse(r.json()["data"]["booking_at"]) > _parse(first_booking_at)

        r = await client.delete(f"/api/v1/credit-package/{package_id}")
        assert r.status_code == 409


@pytest.mark.asyncio
async def test_concurrent_bookings_for_the_last_seat_on_postgres() -> None:
    settings = get_settings()
    await _prepare(settings.database_url)

    coach = await _create_user(settings.database_url, name="教練", coach=True)
    course = await _create_course(settings.database_url, coach_user_id=coach.id, max_participants=1)
    learners = [await _create_user(settings.database_url, name=f"學員{i}") for i in range(4)]
    for learner in learners:
        await _grant_credits(settings.database_url, user_id=learner.id, credits=1)

    engine = create_async_engine(settings.database_url, pool_pre_ping=True, pool_size=len(learners))
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)

    async def _book(user_id: UUID):
        async with SessionLocal() as session:
            service = BookingService(SqlAlchemyBookingStore(session))
            return await service.create_booking(user_id, course.id)

    try:
        results = await asyncio.gather(*(_book(learner.id) for learner in learners), return_exceptions=True)
    finally:
        await engine.dispose()

    assert sum(1 for r in results if not isinstance(r, Exception)) == 1
    assert all(isinstance(r, CourseFull) for r in results if isinstance(r, Exception))


@pytest.mark.asyncio
async def test_concurrent_duplicate_bookings_on_postgres() -> None:
    settings = get_settings()
    await _prepare(settings.database_url)

    coach = await _create_user(settings.database_url, name="教練", coach=True)
    course = await _create_course(settings.database_url, coach_user_id=coach.id, max_participants=5)
    learner = await _create_user(settings.database_url, name="學員")
    await _grant_credits(settings.database_url, user_id=learner.id, credits=5)

    engine = create_async_engine(settings.database_url, pool_pre_ping=True, pool_size=3)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)

    async def _book():
        async with SessionLocal() as session:
            service = BookingService(SqlAlchemyBookingStore(session))
            return await service.create_booking(learner.id, course.id)

    try:
        results = await asyncio.gather(*(_book() for _ in range(3)), return_exceptions=True)
        async with SessionLocal() as session:
            res = await session.execute(
                text("SELECT count(*) FROM course_bookings WHERE user_id = :u AND cancelled_at IS NULL"),
                {"u": learner.id},
            )
            active = res.scalar_one()
    finally:
        await engine.dispose()

    assert sum(1 for r in results if not isinstance(r, Exception)) == 1
    assert all(isinstance(r, AlreadyBooked) for r in results if isinstance(r, Exception))
    assert active == 1


@pytest.mark.asyncio
async def test_coach_promotion_profile_and_revenue() -> None:
    settings = get_settings()
    await _prepare(settings.database_url)

    learner = await _create_user(settings.database_url, name="學員")
    await _grant_credits(settings.database_url, user_id=learner.id, credits=2)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        email = f"Coach-{uuid4().hex[:8]}@Example.com"
        r = await client.post("/api/v1/users/signup", json={"name": "新教練", "email": email, "password": PASSWORD})
        assert r.status_code == 201
        user_id = r.json()["data"]["user"]["id"]

        r = await client.post("/api/v1/users/signup", json={"name": "新教練", "email": email, "password": PASSWORD})
        assert r.status_code == 409

        auth = await _login(client, email.lower())

        r = await client.get("/api/v1/admin/coaches", headers=auth)
        assert r.status_code == 401
        assert r.json()["message"] == "使用者尚未成為教練"

        promote = {"experience_years": 5, "description": "十年教學經驗"}
        r = await client.post(f"/api/v1/admin/coaches/{user_id}", headers=auth, json=promote)
        assert r.status_code == 201
        assert r.json()["data"]["user"]["role"] == "COACH"
        coach_id = r.json()["data"]["coach"]["id"]

        r = await client.post(f"/api/v1/admin/coaches/{user_id}", headers=auth, json=promote)
        assert r.status_code == 409

        r = await client.get(f"/api/v1/coaches/{coach_id}")
        assert r.status_code == 200
        assert r.json()["data"]["coach"]["experience_years"] == 5

        r = await client.get(f"/api/v1/coaches/{uuid4()}")
        assert r.status_code == 400
        assert r.json()["message"] == "找不到該教練"

        skill_name = f"瑜珈{uuid4().hex[:6]}"
        r = await client.post("/api/v1/coaches/skill", json={"name": skill_name})
        assert r.status_code == 200
        skill_id = r.json()["data"]["id"]

        r = await client.get("/api/v1/coaches/skill")
        assert skill_id in [s["id"] for s in r.json()["data"]]

        r = await client.put(
            "/api/v1/admin/coaches",
            headers=auth,
            json={"experience_years": 6, "description": "更新", "skill_ids": [skill_id, skill_id]},
        )
        assert r.status_code == 200
        assert r.json()["data"]["skill_ids"] == [skill_id]

        r = await client.put(
            "/api/v1/admin/coaches",
            headers=auth,
            json={"experience_years": 9, "description": "不該寫入", "skill_ids": [skill_id, str(uuid4())]},
        )
        assert r.status_code == 400
        assert r.json() == {"status": "failed", "message": "專長不存在"}

        r = await client.get("/api/v1/admin/coaches", headers=auth)
        profile = r.json()["data"]
        assert (profile["experience_years"], profile["description"], profile["skill_ids"]) == (6, "更新", [skill_id])

        r = await client.delete(f"/api/v1/coaches/skill/{skill_id}")
        assert r.status_code == 409

        now = datetime.now(timezone.utc)
        r = await client.post(
            "/api/v1/admin/coaches/courses",
            headers=auth,
            json={
                "user_id": user_id,
                "skill_id": skill_id,
                "name": "晨間瑜珈",
                "description": "伸展",
                "start_at": (now - timedelta(hours=2)).isoformat(),
                "end_at": (now - timedelta(hours=1)).isoformat(),
                "max_participants": 3,
            },
        )
        assert r.status_code == 201
        course = r.json()["data"]["course"]

        r = await client.get(f"/api/v1/admin/coaches/courses/{course['id']}", headers=auth)
        assert r.json()["data"]["skill_name"] == skill_name

        r = await client.get(f"/api/v1/coaches/{coach_id}/courses")
        assert [c["id"] for c in r.json()["data"]] == [course["id"]]

        learner_auth = await _login(client, learner.email)
        r = await client.post(f"/api/v1/courses/{course['id']}", headers=learner_auth)
        assert r.status_code == 201

        r = await client.get("/api/v1/courses")
        listed = {c["id"]: c for c in r.json()["data"]}
        assert listed[course["id"]]["participants"] == 1
        assert listed[course["id"]]["status"] == "COMPLETED"

        update = {
            "skill_id": skill_id,
            "name": "晨間瑜珈",
            "description": "伸展",
            "start_at": course["start_at"],
            "end_at": course["end_at"],
            "max_participants": 0,
        }
        r = await client.put(f"/api/v1/admin/coaches/courses/{course['id']}", headers=auth, json=update)
        assert r.status_code == 400
        assert r.json()["message"] == "最大參加人數不可少於目前報名人數"

        r = await client.put(
            f"/api/v1/admin/coaches/courses/{course['id']}",
            headers=auth,
            json={**update, "max_participants": 1},
        )
        assert r.status_code == 200
        assert r.json()["data"]["course"]["max_participants"] == 1

        month = _parse(course["end_at"]).strftime("%B").lower()
        r = await client.get("/api/v1/admin/coaches/revenue", headers=auth, params={"month": month})
        assert r.status_code == 200
        total = r.json()["data"]["total"]
        assert (total["participants"], total["course_count"]) == (1, 1)
        assert total["revenue"] >= 0

        r = await client.get("/api/v1/admin/coaches/revenue", headers=auth, params={"month": "smarch"})
        assert r.status_code == 400

        r = await client.get("/api/v1/coaches", params={"per": 1000, "page": 1})
        assert r.status_code == 200
        assert len(r.json()["data"]) <= settings.coach_page_max
