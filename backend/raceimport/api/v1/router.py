"""
API Router v1

Combines all route modules.
"""

from fastapi import APIRouter

from raceimport.api.v1.routes import admin, races

api_router = APIRouter()

api_router.include_router(races.router, prefix="/races", tags=["Races"])
api_router.include_router(admin.router)
