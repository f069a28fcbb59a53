from __future__ import annotations

import argparse
import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from coachbook.core.security import hash_password
from coachbook.core.settings import get_settings
from coachbook.db.models import course as _course_model  # noqa: F401
from coachbook.db.models import skill as _skill_model  # noqa: F401
from coachbook.db.models.coach import Coach
from coachbook.db.models.user import User, UserRole


async def main() -> None:
    parser = argparse.ArgumentParser(description="Create a dev user in the database.")
    parser.add_argument("--name", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--coach", action="store_true", help="Also create a coach profile for the user.")
    parser.add_argument("--experience-years", type=int, default=0)
    parser.add_argument("--description", default="")
    args = parser.parse_args()

    settings = get_settings()
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)
    email = args.email.strip().lower()

    try:
        async with SessionLocal() as session:
            res = await session.execute(select(User).where(User.email == email))
            existing = res.scalar_one_or_none()
            if existing is not None:
                print(f"User already exists: id={existing.id} email={existing.email}")
                return

            user = User(
                name=args.name.strip(),
                email=email,
                hashed_password=hash_password(args.password, rounds=settings.bcrypt_rounds),
                role=(UserRole.COACH if args.coach else UserRole.USER).value,
            )
            session.add(user)
            await session.flush()

            if args.coach:
                session.add(
                    Coach(
                        user_id=user.id,
                        experience_years=args.experience_years,
                        description=args.description,
                    )
                )

            await session.commit()
            await session.refresh(user)
            print(f"Created user: id={user.id} email={user.email} role={user.role}")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
