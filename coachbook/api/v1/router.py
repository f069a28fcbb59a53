from __future__ import annotations

from fastapi import APIRouter

from coachbook.api.v1 import admin, coaches, courses, credit_packages, skills, users

api_router = APIRouter()
api_router.include_router(users.router)
api_router.include_router(credit_packages.router)
# "/coaches/skill" must be matched before "/coaches/{coach_id}".
api_router.include_router(skills.router)
api_router.include_router(coaches.router)
api_router.include_router(courses.router)
api_router.include_router(admin.router)
