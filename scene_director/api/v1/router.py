from fastapi import APIRouter

from scene_director.api.v1.routes.generation import router as generation_router
from scene_director.api.v1.routes.projects import router as projects_router

api_router = APIRouter()
api_router.include_router(projects_router, prefix="/projects", tags=["projects"])
api_router.include_router(generation_router, tags=["generation"])
