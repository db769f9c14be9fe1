from fastapi import APIRouter

from timebank.api.overtime import overtime_router
from timebank.api.settings import global_settings_router, organization_settings_router

api_router = APIRouter()
api_router.include_router(global_settings_router)
api_router.include_router(organization_settings_router)
api_router.include_router(overtime_router)
