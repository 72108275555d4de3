"""API routes for the Taskminder hook API."""

from fastapi import APIRouter

from .lifecycle import router as lifecycle_router
from .notifications import router as notifications_router
from .tasks import router as tasks_router

api_router = APIRouter(prefix="/api")

api_router.include_router(lifecycle_router)
api_router.include_router(notifications_router)
api_router.include_router(tasks_router)

__all__ = ["api_router"]
