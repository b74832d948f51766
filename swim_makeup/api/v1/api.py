# swim_makeup/api/v1/api.py

from fastapi import APIRouter
from swim_makeup.api.v1.endpoints import (
    makeup,
    absences,
    admin,
)

# This is the main router for the v1 API.
api_router = APIRouter()

api_router.include_router(makeup.router)
api_router.include_router(absences.router)
api_router.include_router(admin.router)
