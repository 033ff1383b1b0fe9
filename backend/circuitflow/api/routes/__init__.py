"""API Routes module"""
from fastapi import APIRouter

from .circuits import router as circuits_router
from .steps import router as steps_router
from .statuses import router as statuses_router
from .actions import router as actions_router
from .workflow import router as workflow_router

# Main API router
api_router = APIRouter()

api_router.include_router(circuits_router, prefix="/circuits", tags=["Circuits"])
api_router.include_router(steps_router, prefix="/steps", tags=["Steps"])
api_router.include_router(statuses_router, prefix="/statuses", tags=["Statuses"])
api_router.include_router(actions_router, prefix="/actions", tags=["Actions"])
api_router.include_router(workflow_router, prefix="/workflow", tags=["Workflow"])

__all__ = ["api_router"]
