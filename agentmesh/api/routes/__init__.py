"""Read-only API routers, mounted by the app factory under /api/v1."""

from fastapi import APIRouter

from .agents import router as agents_router
from .collaborations import router as collaborations_router
from .stats import router as stats_router

router = APIRouter()
router.include_router(agents_router)
router.include_router(collaborations_router)
router.include_router(stats_router)

__all__ = ["router"]
