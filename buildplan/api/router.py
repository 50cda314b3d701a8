"""Top-level API router."""

from fastapi import APIRouter

from buildplan.api.routes.activities import router as activities_router
from buildplan.api.routes.health import router as health_router
from buildplan.api.routes.measurements import router as measurements_router
from buildplan.api.routes.projects import router as projects_router
from buildplan.api.routes.schedule import router as schedule_router
from buildplan.api.routes.templates import router as templates_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(schedule_router)
api_router.include_router(projects_router)
api_router.include_router(activities_router)
api_router.include_router(measurements_router)
api_router.include_router(templates_router)
