"""FastAPI router aggregating the search insights endpoints."""
from fastapi import APIRouter

from app.routers import analytics, clicks

router = APIRouter(
    responses={404: {"description": "Not found"}},
)

router.include_router(analytics.router)
router.include_router(clicks.router)
